import logging
import re
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional, Union

import pandas as pd
from dateutil.relativedelta import relativedelta
from supabase import Client, create_client

from smartapolice.config import get_config
from smartapolice.erros import DadosInvalidos, RegistroNaoEncontrado
from smartapolice.parcelas import calcular_vencimentos
from smartapolice.pdf_parser import valor_brl

logger = logging.getLogger(__name__)

# ============================================================
# 1. LÓGICA DE CONEXÃO
# ============================================================

_supabase: Optional[Client] = None
_supabase_admin: Optional[Client] = None


def get_supabase() -> Client:
    """Cliente com a chave anon, criado uma única vez por processo."""
    global _supabase
    if _supabase is None:
        config = get_config()
        _supabase = create_client(config.exigir("supabase_url"), config.exigir("supabase_key"))
    return _supabase


def get_supabase_admin() -> Client:
    """Cliente com a service role, usado só nas operações privilegiadas."""
    global _supabase_admin
    if _supabase_admin is None:
        config = get_config()
        _supabase_admin = create_client(config.exigir("supabase_url"),
                                        config.exigir("supabase_service_role_key"))
    return _supabase_admin


def agora_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def primeiro(response) -> Optional[Dict[str, Any]]:
    """Primeira linha de uma resposta do PostgREST, ou None."""
    if response is None or not response.data:
        return None
    return response.data[0]


# ============================================================
# 2. APÓLICES
# ============================================================

def buscar_apolices(termo: str = None, empresa_id: str = None, client: Client = None) -> List[Dict[str, Any]]:
    client = client or get_supabase()
    query = client.table("apolices").select("*").order("id", desc=True)
    if empresa_id:
        query = query.eq("empresa_id", empresa_id)
    if termo:
        t = f"%{termo.strip()}%"
        query = query.or_(f"numero_apolice.ilike.{t},segurado.ilike.{t},placa.ilike.{t}")
    return query.execute().data or []


def obter_apolice(apolice_id: str, client: Client = None) -> Dict[str, Any]:
    client = client or get_supabase()
    apolice = primeiro(client.table("apolices").select("*").eq("id", apolice_id).limit(1).execute())
    if not apolice:
        raise RegistroNaoEncontrado("Apólice não encontrada", "POLICY_NOT_FOUND")
    return apolice


def _para_numero(valor) -> Optional[float]:
    if valor is None or valor == "":
        return None
    numero = valor_brl(valor)
    if numero is None:
        raise DadosInvalidos(f"Valor numérico inválido: {valor}")
    return numero


def salvar_apolice(dados: Dict[str, Any], usuario: str = "sistema", client: Client = None) -> Dict[str, Any]:
    """
    Insere ou atualiza (quando `dados` traz `id`) uma apólice.
    Prêmios vindos do formulário em formato brasileiro são convertidos para float.
    """
    client = client or get_supabase()
    if not dados.get("numero_apolice"):
        raise DadosInvalidos("Número da apólice é obrigatório")
    if not dados.get("empresa_id"):
        raise DadosInvalidos("A apólice precisa estar vinculada a uma empresa")

    registro = dict(dados)
    for campo in ("premio_anual", "premio_mensal", "valor_parcela", "cobertura_total"):
        if campo in registro:
            registro[campo] = _para_numero(registro[campo])
    for campo in ("inicio_vigencia", "fim_vigencia"):
        if isinstance(registro.get(campo), date):
            registro[campo] = registro[campo].isoformat()
    registro["data_atualizacao"] = agora_iso()

    apolice_id = registro.pop("id", None)
    if apolice_id:
        res = client.table("apolices").update(registro).eq("id", apolice_id).execute()
        acao = "Atualização de Apólice"
    else:
        res = client.table("apolices").insert(registro).execute()
        acao = "Cadastro de Apólice"

    salva = primeiro(res) or {**registro, "id": apolice_id}
    add_historico(salva.get("id"), usuario, acao, f"Apólice {registro['numero_apolice']}", client=client)
    return salva


def excluir_apolice(apolice_id: str, usuario: str = "sistema", client: Client = None) -> bool:
    client = client or get_supabase()
    obter_apolice(apolice_id, client=client)
    client.table("parcelas").delete().eq("apolice_id", apolice_id).execute()
    client.table("apolices").delete().eq("id", apolice_id).execute()
    logger.info(f"Apólice {apolice_id} excluída por {usuario}")
    return True


def prioridade_renovacao(dias_restantes) -> str:
    if dias_restantes is None or pd.isna(dias_restantes):
        return "Sem vigência"
    if dias_restantes < 0:
        return "⚪ Expirada"
    if dias_restantes <= 15:
        return "🔥 Urgente"
    if dias_restantes <= 30:
        return "⚠️ Alta"
    if dias_restantes <= 60:
        return "⚠️ Média"
    return "✅ Baixa"


def apolices_dataframe(termo: str = None, empresa_id: str = None, hoje: date = None,
                       client: Client = None) -> pd.DataFrame:
    """
    Apólices em DataFrame com `fim_vigencia`, `dias_restantes` e `prioridade` de renovação.
    Sem `fim_vigencia` cadastrado, assume um ano a partir do início.
    """
    hoje = hoje or date.today()
    df = pd.DataFrame(buscar_apolices(termo, empresa_id, client=client))
    if df.empty:
        return df

    for coluna in ("inicio_vigencia", "fim_vigencia"):
        if coluna not in df.columns:
            df[coluna] = None
    inicio = pd.to_datetime(df["inicio_vigencia"], errors="coerce").dt.date
    fim = pd.to_datetime(df["fim_vigencia"], errors="coerce").dt.date
    df["fim_vigencia"] = [
        f if pd.notnull(f) else (i + relativedelta(years=1) if pd.notnull(i) else None)
        for f, i in zip(fim, inicio)
    ]
    df["dias_restantes"] = df["fim_vigencia"].apply(lambda d: (d - hoje).days if d is not None else None)
    df["prioridade"] = df["dias_restantes"].apply(prioridade_renovacao)
    return df


# ============================================================
# 3. PARCELAS
# ============================================================

def buscar_parcelas(apolice_id: str, client: Client = None) -> List[Dict[str, Any]]:
    client = client or get_supabase()
    res = client.table("parcelas").select("*").eq("apolice_id", apolice_id).order("numero_parcela").execute()
    return res.data or []


def buscar_parcelas_pendentes(empresa_id: str = None, client: Client = None) -> List[Dict[str, Any]]:
    """Parcelas pendentes com o segurado e o número da apólice já achatados."""
    client = client or get_supabase()
    query = client.table("parcelas").select("*, apolices!inner(segurado, numero_apolice, empresa_id)") \
        .eq("status", "pendente")
    if empresa_id:
        query = query.eq("apolices.empresa_id", empresa_id)
    lista = []
    for p in query.execute().data or []:
        apolice = p.pop("apolices", None) or {}
        p["segurado"] = apolice.get("segurado")
        p["numero_apolice"] = apolice.get("numero_apolice")
        lista.append(p)
    return lista


def buscar_parcelas_vencendo(dia: date = None, client: Client = None) -> List[Dict[str, Any]]:
    client = client or get_supabase()
    dia = dia or date.today()
    res = client.table("parcelas").select(
        "valor, numero_parcela, data_vencimento, apolices!inner(segurado, contato, numero_apolice, placa)"
    ).eq("data_vencimento", dia.isoformat()).eq("status", "pendente").execute()
    return res.data or []


def marcar_parcela_paga(parcela_id: str, pago_em: date = None, client: Client = None) -> Dict[str, Any]:
    client = client or get_supabase()
    pago_em = pago_em or date.today()
    res = client.table("parcelas").update({
        "status": "paga",
        "data_pagamento": pago_em.isoformat(),
    }).eq("id", parcela_id).execute()
    parcela = primeiro(res)
    if not parcela:
        raise RegistroNaoEncontrado("Parcela não encontrada", "INSTALLMENT_NOT_FOUND")
    return parcela


def recriar_parcelas(apolice_id: str, quantidade: int, valor: Union[float, str], primeiro_vencimento: date,
                     dia_vencimento: int, usuario: str = "sistema", client: Client = None) -> List[Dict[str, Any]]:
    """Apaga as parcelas da apólice e grava um novo cronograma."""
    client = client or get_supabase()
    valor = _para_numero(valor)
    if quantidade < 1 or valor is None or valor <= 0:
        raise DadosInvalidos("Quantidade e valor da parcela devem ser positivos")

    client.table("parcelas").delete().eq("apolice_id", apolice_id).execute()
    novas = [
        {
            "apolice_id": apolice_id,
            "numero_parcela": i + 1,
            "data_vencimento": vencimento.isoformat(),
            "valor": valor,
            "status": "pendente",
        }
        for i, vencimento in enumerate(calcular_vencimentos(quantidade, primeiro_vencimento, dia_vencimento))
    ]
    client.table("parcelas").insert(novas).execute()
    add_historico(apolice_id, usuario, "Parcelas recriadas", f"{quantidade} parcelas de R$ {valor:,.2f}",
                  client=client)
    return novas


# ============================================================
# 4. HISTÓRICO E STORAGE
# ============================================================

def add_historico(apolice_id, usuario, acao, detalhes="", client: Client = None):
    """Registra uma ação em 'historico'. Falha aqui não deve derrubar quem chamou."""
    client = client or get_supabase()
    try:
        client.table("historico").insert(
            {"apolice_id": apolice_id, "usuario": usuario, "acao": acao, "detalhes": detalhes}).execute()
    except Exception as e:
        logger.warning(f"Não foi possível registrar a ação no histórico: {e}")


def salvar_arquivo(conteudo: bytes, nome_arquivo: str, empresa_id: str, referencia: str,
                   bucket: str = None, content_type: str = "application/pdf", client: Client = None) -> str:
    """Salva um arquivo no Storage e devolve a URL pública."""
    client = client or get_supabase()
    bucket = bucket or get_config().bucket_apolices
    nome_seguro = re.sub(r"[^a-zA-Z0-9._-]", "_", nome_arquivo)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    caminho = f"{empresa_id}/{referencia}/{timestamp}_{nome_seguro}"

    client.storage.from_(bucket).upload(path=caminho, file=conteudo, file_options={"content-type": content_type})
    return client.storage.from_(bucket).get_public_url(caminho)
