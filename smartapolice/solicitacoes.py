"""
Fluxo de aprovação das solicitações de inclusão e exclusão de colaboradores.

    colaborador/RH -> aguardando_aprovacao -> (adm) aprovado_adm + ticket aberto
    ticket aberto/em_validacao -> (corretora) aprovado | rejeitado
    solicitação -> concluido | recusado

Efeitos colaterais secundários (trilha em request_approvals, webhook e
external_ref) nunca desfazem a aprovação: falhas neles são apenas logadas.
"""
import logging
import re
from typing import Any, Dict, Iterable, List

import pandas as pd
from supabase import Client

from smartapolice.config import get_config
from smartapolice.erros import DadosInvalidos, ErroIntegracao, RegistroNaoEncontrado, StatusInvalido
from smartapolice.supabase_client import agora_iso, get_supabase_admin, primeiro
from smartapolice.webhooks import enviar_webhook

logger = logging.getLogger(__name__)

STATUS_AGUARDANDO = "aguardando_aprovacao"
STATUS_TICKET_DECIDIVEL = ("aberto", "em_validacao")
STATUS_REJEITAVEL = ("recebido", "em_validacao", "aguardando_aprovacao")
CAMPOS_COLABORADOR = ("nome", "email", "telefone", "data_nascimento", "cargo", "centro_custo", "data_admissao")


def obter_solicitacao(request_id: str, client: Client = None) -> Dict[str, Any]:
    client = client or get_supabase_admin()
    solicitacao = primeiro(client.table("requests").select(
        "id, protocol_code, kind, status, submitted_at, channel, metadata, updated_at"
    ).eq("id", request_id).limit(1).execute())
    if not solicitacao:
        raise RegistroNaoEncontrado("Solicitação não encontrada", "REQUEST_NOT_FOUND")
    return solicitacao


def _registrar_aprovacao(client: Client, request_id: str, papel: str, decisao: str, note: str = None):
    try:
        client.table("request_approvals").insert({
            "request_id": request_id,
            "role": papel,
            "decision": decisao,
            "note": note or None,
            "decided_at": agora_iso(),
        }).execute()
    except Exception as e:
        logger.error(f"Erro ao criar aprovação: {e}")


def _enviar_e_guardar_referencia(client: Client, url: str, payload: Dict[str, Any], ticket_id: str):
    """Chama o webhook de tickets e grava o external_ref devolvido, se houver."""
    if not url:
        return None
    try:
        resposta = enviar_webhook(url, payload)
    except ErroIntegracao as e:
        logger.error(f"Erro no webhook: {e.mensagem}")
        return None

    referencia = (resposta or {}).get("external_ref")
    if referencia:
        try:
            client.table("tickets").update({"external_ref": referencia}).eq("id", ticket_id).execute()
        except Exception as e:
            logger.error(f"Não foi possível gravar external_ref do ticket {ticket_id}: {e}")
    return referencia


def _processar_inclusao(client: Client, solicitacao: Dict[str, Any]):
    metadata = solicitacao.get("metadata") or {}
    dados = metadata.get("employee_data")
    if not dados:
        raise DadosInvalidos("Dados do colaborador não encontrados")

    empresa = None
    if metadata.get("company_id"):
        empresa = primeiro(client.table("empresas").select("id").eq("id", metadata["company_id"]).limit(1).execute())
    if not empresa:
        raise DadosInvalidos("Empresa não encontrada", "COMPANY_NOT_FOUND")

    registro = {campo: dados.get(campo) for campo in CAMPOS_COLABORADOR}
    registro.update({
        "cpf": re.sub(r"\D", "", dados.get("cpf") or ""),
        "empresa_id": empresa["id"],
        "status": "ativo",
    })
    colaborador = primeiro(client.table("colaboradores").insert(registro).execute())
    logger.info(f"✅ Colaborador criado: {colaborador.get('id') if colaborador else '?'}")


def _processar_exclusao(client: Client, solicitacao: Dict[str, Any]):
    dados = (solicitacao.get("metadata") or {}).get("employee_data") or {}
    employee_id = dados.get("employee_id")
    if not employee_id:
        raise DadosInvalidos("ID do colaborador não encontrado")

    client.table("colaboradores").update({
        "status": "inativo",
        "data_demissao": dados.get("data_desligamento"),
    }).eq("id", employee_id).execute()
    logger.info(f"✅ Colaborador inativado: {employee_id}")


def aprovar_solicitacao_adm(request_id: str, note: str = None, client: Client = None,
                            webhook_url: str = None) -> Dict[str, Any]:
    """
    Aprovação do administrador da corretora.

    Returns:
        {"ticketId", "protocolCode", "externalRef"} e `existed=True` quando o
        ticket da solicitação já existia.
    """
    if not request_id:
        raise DadosInvalidos("Request ID é obrigatório", "MISSING_REQUEST_ID")
    client = client or get_supabase_admin()

    solicitacao = obter_solicitacao(request_id, client=client)
    logger.info(f"Request found: {solicitacao['protocol_code']} Status: {solicitacao['status']}")
    if solicitacao["status"] != STATUS_AGUARDANDO:
        raise StatusInvalido("Solicitação deve estar aguardando aprovação")

    if solicitacao.get("kind") == "inclusao":
        _processar_inclusao(client, solicitacao)
    elif solicitacao.get("kind") == "exclusao":
        _processar_exclusao(client, solicitacao)

    client.table("requests").update({"status": "aprovado_adm", "updated_at": agora_iso()}) \
        .eq("id", request_id).execute()

    metadata = solicitacao.get("metadata") or {}
    snapshot = {
        "request_id": solicitacao["id"],
        "protocol_code": solicitacao["protocol_code"],
        "employee_data": metadata.get("employee_data"),
        "kind": solicitacao.get("kind"),
        "channel": solicitacao.get("channel"),
        "submitted_at": solicitacao.get("submitted_at"),
        "approved_at": agora_iso(),
        "metadata": metadata,
    }

    existente = primeiro(client.table("tickets").select("id, status").eq("request_id", request_id)
                         .limit(1).execute())
    if existente:
        logger.info(f"Ticket already exists: {existente['id']} Status: {existente.get('status')}")
        return {"ticketId": existente["id"], "protocolCode": solicitacao["protocol_code"],
                "externalRef": None, "existed": True}

    ticket = primeiro(client.table("tickets").insert({
        "request_id": request_id,
        "protocol_code": solicitacao["protocol_code"],
        "status": "aberto",
        "payload": snapshot,
    }).execute())
    if not ticket:
        raise DadosInvalidos("Erro ao criar ticket", "TICKET_ERROR")

    _registrar_aprovacao(client, request_id, "adm", "aprovado", note)

    url = webhook_url or get_config().tickets_webhook_url
    referencia = _enviar_e_guardar_referencia(client, url, {
        "event": "request.approved_by_admin",
        "protocol_code": solicitacao["protocol_code"],
        "request_id": request_id,
        "ticket_id": ticket["id"],
        "snapshot": snapshot,
    }, ticket["id"])

    return {"ticketId": ticket["id"], "protocolCode": solicitacao["protocol_code"],
            "externalRef": referencia or ticket.get("external_ref")}


def decidir_ticket_corretora(ticket_id: str, acao: str, note: str = None, client: Client = None,
                             webhook_url: str = None) -> Dict[str, Any]:
    if not ticket_id or acao not in ("approve", "reject"):
        raise DadosInvalidos("ticketId e action são obrigatórios", "INVALID_INPUT")
    client = client or get_supabase_admin()

    ticket = primeiro(client.table("tickets").select("*").eq("id", ticket_id).limit(1).execute())
    if not ticket:
        raise RegistroNaoEncontrado("Ticket não encontrado", "TICKET_NOT_FOUND")
    if ticket.get("status") not in STATUS_TICKET_DECIDIVEL:
        raise StatusInvalido("Ticket já foi processado")

    aprovado = acao == "approve"
    novo_status = "aprovado" if aprovado else "rejeitado"
    client.table("tickets").update({"status": novo_status, "rh_note": note or None, "updated_at": agora_iso()}) \
        .eq("id", ticket_id).execute()

    if ticket.get("request_id"):
        try:
            client.table("requests").update({
                "status": "concluido" if aprovado else "recusado",
                "updated_at": agora_iso(),
            }).eq("id", ticket["request_id"]).execute()
        except Exception as e:
            logger.error(f"Erro ao atualizar request: {e}")

    if aprovado:
        _enviar_e_guardar_referencia(client, webhook_url or get_config().tickets_webhook_url, {
            "protocol_code": ticket.get("protocol_code"),
            "status": "aprovado",
            "external_ref": ticket.get("external_ref"),
            "note": note or "Aprovado pelo administrador da corretora",
            "payload": ticket.get("payload"),
        }, ticket_id)

    logger.info(f"Ticket {ticket_id} {novo_status} com sucesso")
    return {"ticketId": ticket_id, "status": novo_status, "protocol_code": ticket.get("protocol_code")}


def rejeitar_solicitacao(request_id: str, motivo: str, papel: str = "adm", client: Client = None) -> Dict[str, Any]:
    if not motivo or not motivo.strip():
        raise DadosInvalidos("Informe o motivo da recusa")
    if papel not in ("rh", "adm"):
        raise DadosInvalidos(f"Papel inválido: {papel}")
    client = client or get_supabase_admin()

    solicitacao = obter_solicitacao(request_id, client=client)
    if solicitacao["status"] not in STATUS_REJEITAVEL:
        raise StatusInvalido(f"Solicitação com status '{solicitacao['status']}' não pode ser recusada")

    client.table("requests").update({"status": "recusado", "updated_at": agora_iso()}).eq("id", request_id).execute()
    _registrar_aprovacao(client, request_id, papel, "recusado", motivo.strip())
    return {**solicitacao, "status": "recusado"}


def listar_solicitacoes(status: str = None, empresa_id: str = None, client: Client = None) -> List[Dict[str, Any]]:
    client = client or get_supabase_admin()
    query = client.table("requests").select("*").order("submitted_at", desc=True)
    if status:
        query = query.eq("status", status)
    solicitacoes = query.execute().data or []
    if empresa_id:
        solicitacoes = [s for s in solicitacoes if (s.get("metadata") or {}).get("company_id") == empresa_id]
    return solicitacoes


def kpis_solicitacoes(solicitacoes: Iterable[Dict[str, Any]]) -> Dict[str, Any]:
    df = pd.DataFrame(list(solicitacoes))
    if df.empty:
        return {"total": 0, "por_status": {}, "por_tipo": {}, "pendentes_adm": 0}
    for coluna in ("status", "kind"):
        if coluna not in df.columns:
            df[coluna] = None
    return {
        "total": int(len(df)),
        "por_status": {k: int(v) for k, v in df["status"].value_counts().items()},
        "por_tipo": {k: int(v) for k, v in df["kind"].value_counts().items()},
        "pendentes_adm": int((df["status"] == STATUS_AGUARDANDO).sum()),
    }
