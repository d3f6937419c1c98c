import logging
import secrets
import string
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional

import pandas as pd
from supabase import Client

from smartapolice.erros import DadosInvalidos, ErroIntegracao, RegistroNaoEncontrado, StatusInvalido
from smartapolice.supabase_client import agora_iso, get_supabase, primeiro
from smartapolice.webhooks import notificar_ticket

logger = logging.getLogger(__name__)

# ============================================================
# TIPOS, SUBTIPOS E STATUS
# ============================================================

SUBTIPOS = {
    "sinistro": ("colisao", "roubo", "furto", "avaria", "incendio", "danos_terceiros"),
    "assistencia": ("guincho", "vidro", "mecanica", "chaveiro", "pneu", "combustivel", "residencia"),
}
PREFIXO_PROTOCOLO = {"sinistro": "SIN", "assistencia": "ASS"}
GRAVIDADES = ("baixa", "media", "alta", "critica")

TRANSICOES = {
    "aberto": ("em_analise", "cancelado"),
    "em_analise": ("finalizado", "cancelado"),
    "finalizado": (),
    "cancelado": (),
}
STATUS_ABERTOS = ("aberto", "em_analise")

_ALFABETO_PROTOCOLO = string.ascii_uppercase + string.digits


def gerar_protocolo(tipo: str, agora: datetime = None) -> str:
    """SIN-20240315-7GQ2KD para sinistros, ASS-... para assistências."""
    if tipo not in PREFIXO_PROTOCOLO:
        raise DadosInvalidos(f"Tipo de ticket inválido: {tipo}")
    agora = agora or datetime.now()
    sufixo = "".join(secrets.choice(_ALFABETO_PROTOCOLO) for _ in range(6))
    return f"{PREFIXO_PROTOCOLO[tipo]}-{agora:%Y%m%d}-{sufixo}"


def validar_tipo_subtipo(tipo: str, subtipo: Optional[str]):
    if tipo not in SUBTIPOS:
        raise DadosInvalidos(f"Tipo de ticket inválido: {tipo}")
    if subtipo and subtipo not in SUBTIPOS[tipo]:
        raise DadosInvalidos(f"Subtipo '{subtipo}' não pertence a {tipo}")


def pode_transicionar(atual: str, novo: str) -> bool:
    return novo in TRANSICOES.get(atual, ())


# ============================================================
# OPERAÇÕES
# ============================================================

def registrar_movimento(ticket_id: str, tipo: str, payload: Dict[str, Any] = None, descricao: str = None,
                        usuario: str = None, client: Client = None) -> Optional[Dict[str, Any]]:
    client = client or get_supabase()
    return primeiro(client.table("ticket_movements").insert({
        "ticket_id": ticket_id,
        "tipo": tipo,
        "descricao": descricao,
        "payload": payload or {},
        "created_by": usuario,
    }).execute())


def _avisar_automacao(evento: str, ticket: Dict[str, Any], extra: Dict[str, Any] = None):
    # O ticket já está gravado; falha no webhook só é logada
    try:
        notificar_ticket(evento, ticket, extra)
    except ErroIntegracao as e:
        logger.warning(f"Webhook de tickets falhou para {ticket.get('protocol_code')}: {e.mensagem}")


def criar_ticket(dados: Dict[str, Any], usuario: str = None, client: Client = None) -> Dict[str, Any]:
    client = client or get_supabase()
    tipo = dados.get("tipo")
    validar_tipo_subtipo(tipo, dados.get("subtipo"))
    if not dados.get("vehicle_id") and not dados.get("segurado_id"):
        raise DadosInvalidos("Informe o veículo ou o segurado do ticket")
    if dados.get("gravidade") and dados["gravidade"] not in GRAVIDADES:
        raise DadosInvalidos(f"Gravidade inválida: {dados['gravidade']}")

    registro = {
        **dados,
        "status": "aberto",
        "origem": dados.get("origem") or "portal",
        "protocol_code": dados.get("protocol_code") or gerar_protocolo(tipo),
        "created_by": usuario,
    }
    ticket = primeiro(client.table("tickets").insert(registro).execute())
    if not ticket:
        raise DadosInvalidos("Não foi possível criar o ticket")

    registrar_movimento(ticket["id"], "criacao", {"status_novo": "aberto"},
                        descricao=f"Ticket {ticket['protocol_code']} criado", usuario=usuario, client=client)
    _avisar_automacao("ticket.created", ticket, {"tipo": tipo, "subtipo": dados.get("subtipo")})
    logger.info(f"Ticket {ticket['protocol_code']} criado ({tipo}/{dados.get('subtipo')})")
    return ticket


def obter_ticket(ticket_id: str, client: Client = None) -> Dict[str, Any]:
    client = client or get_supabase()
    ticket = primeiro(client.table("tickets").select("*").eq("id", ticket_id).limit(1).execute())
    if not ticket:
        raise RegistroNaoEncontrado("Ticket não encontrado", "TICKET_NOT_FOUND")
    return ticket


def listar_tickets(empresa_id: str = None, tipo: str = None, status: str = None, busca: str = None,
                   client: Client = None) -> List[Dict[str, Any]]:
    client = client or get_supabase()
    query = client.table("tickets").select("*, frota_veiculos(placa, marca, modelo, status_seguro)")
    if empresa_id:
        query = query.eq("empresa_id", empresa_id)
    if tipo:
        query = query.eq("tipo", tipo)
    if status:
        query = query.eq("status", status)
    tickets = query.order("created_at", desc=True).execute().data or []

    for t in tickets:
        t["vehicle"] = t.pop("frota_veiculos", None)

    if busca:
        termo = busca.strip().lower()

        def casa(t):
            v = t.get("vehicle") or {}
            campos = (v.get("placa"), v.get("marca"), v.get("modelo"), t.get("descricao"), t.get("protocol_code"))
            return any(termo in str(c).lower() for c in campos if c)

        tickets = [t for t in tickets if casa(t)]
    return tickets


def alterar_status_ticket(ticket_id: str, novo_status: str, usuario: str = None, observacao: str = None,
                          client: Client = None) -> Dict[str, Any]:
    client = client or get_supabase()
    if novo_status not in TRANSICOES:
        raise DadosInvalidos(f"Status inválido: {novo_status}")

    ticket = obter_ticket(ticket_id, client=client)
    anterior = ticket.get("status")
    if not pode_transicionar(anterior, novo_status):
        raise StatusInvalido(f"Não é possível mudar de '{anterior}' para '{novo_status}'")

    atualizado = primeiro(client.table("tickets").update({"status": novo_status, "updated_at": agora_iso()})
                          .eq("id", ticket_id).execute()) or {**ticket, "status": novo_status}
    registrar_movimento(ticket_id, "status_change", {
        "status_anterior": anterior,
        "status_novo": novo_status,
        "motivo": observacao,
    }, descricao=observacao or f'Status alterado para "{novo_status}"', usuario=usuario, client=client)
    _avisar_automacao("ticket.status_changed", atualizado,
                      {"status_anterior": anterior, "status_novo": novo_status, "motivo": observacao})
    return atualizado


def adicionar_comentario(ticket_id: str, texto: str, usuario: str = None, client: Client = None):
    if not texto or not texto.strip():
        raise DadosInvalidos("Comentário vazio")
    client = client or get_supabase()
    obter_ticket(ticket_id, client=client)
    return registrar_movimento(ticket_id, "comentario", {"texto": texto.strip()}, descricao=texto.strip(),
                               usuario=usuario, client=client)


def listar_movimentos(ticket_id: str, client: Client = None) -> List[Dict[str, Any]]:
    client = client or get_supabase()
    return client.table("ticket_movements").select("*").eq("ticket_id", ticket_id) \
        .order("created_at").execute().data or []


def excluir_ticket(ticket_id: str, usuario: str = None, client: Client = None) -> bool:
    client = client or get_supabase()
    obter_ticket(ticket_id, client=client)
    client.table("ticket_movements").delete().eq("ticket_id", ticket_id).execute()
    client.table("tickets").delete().eq("id", ticket_id).execute()
    logger.info(f"Ticket {ticket_id} excluído por {usuario or 'sistema'}")
    return True


def kpis_tickets(tickets: Iterable[Dict[str, Any]], agora: datetime = None) -> Dict[str, Any]:
    df = pd.DataFrame(list(tickets))
    vazio = {"total": 0, "por_status": {}, "por_tipo": {}, "valor_estimado_total": 0.0,
             "sinistros_abertos": 0, "assistencias_abertas": 0, "ultimos_60_dias": 0}
    if df.empty:
        return vazio
    for coluna in ("status", "tipo", "valor_estimado", "created_at"):
        if coluna not in df.columns:
            df[coluna] = None

    abertos = df["status"].isin(STATUS_ABERTOS)
    agora = agora or datetime.now(timezone.utc)
    criado = pd.to_datetime(df["created_at"], errors="coerce", utc=True)
    return {
        "total": int(len(df)),
        "por_status": {k: int(v) for k, v in df["status"].value_counts().items()},
        "por_tipo": {k: int(v) for k, v in df["tipo"].value_counts().items()},
        "valor_estimado_total": round(float(pd.to_numeric(df["valor_estimado"], errors="coerce").fillna(0).sum()), 2),
        "sinistros_abertos": int((abertos & (df["tipo"] == "sinistro")).sum()),
        "assistencias_abertas": int((abertos & (df["tipo"] == "assistencia")).sum()),
        "ultimos_60_dias": int((criado >= pd.Timestamp(agora - timedelta(days=60))).sum()),
    }
