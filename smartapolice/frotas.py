import logging
from typing import Any, Callable, Dict, Iterable, List, Optional

import pandas as pd
from supabase import Client

from smartapolice.erros import DadosInvalidos, RegistroNaoEncontrado
from smartapolice.supabase_client import agora_iso, get_supabase, primeiro

logger = logging.getLogger(__name__)

MIN_CARACTERES_BUSCA = 2
STATUS_SEGURO = ("segurado", "sem_seguro", "em_cotacao", "sinistrado")
CANAL_FROTA = "frota-status-changes"


def buscar_veiculos(termo: str, empresa_id: str = None, limite: int = 50,
                    client: Client = None) -> List[Dict[str, Any]]:
    if not termo or len(termo.strip()) < MIN_CARACTERES_BUSCA:
        return []
    client = client or get_supabase()
    t = f"%{termo.strip()}%"
    query = client.table("frota_veiculos").select("*") \
        .or_(f"placa.ilike.{t},marca.ilike.{t},modelo.ilike.{t},proprietario_nome.ilike.{t},chassi.ilike.{t}")
    if empresa_id:
        query = query.eq("empresa_id", empresa_id)
    return query.order("placa").limit(limite).execute().data or []


def obter_apolice_do_veiculo(veiculo_id: str, client: Client = None) -> Optional[Dict[str, Any]]:
    client = client or get_supabase()
    return primeiro(client.table("apolices").select("*").eq("veiculo_id", veiculo_id)
                    .order("inicio_vigencia", desc=True).limit(1).execute())


def alterar_status_seguro(veiculo_id: str, status: str, client: Client = None) -> Dict[str, Any]:
    if status not in STATUS_SEGURO:
        raise DadosInvalidos(f"Status de seguro inválido: {status}")
    client = client or get_supabase()
    veiculo = primeiro(client.table("frota_veiculos").update({"status_seguro": status, "updated_at": agora_iso()})
                       .eq("id", veiculo_id).execute())
    if not veiculo:
        raise RegistroNaoEncontrado("Veículo não encontrado", "VEHICLE_NOT_FOUND")
    return veiculo


def verificar_categoria_outros(empresa_id: str = None, client: Client = None) -> Dict[str, Any]:
    """Veículos com categoria 'outros', que devem ficar como sem seguro."""
    client = client or get_supabase()
    query = client.table("frota_veiculos").select("placa, categoria").eq("categoria", "outros")
    if empresa_id:
        query = query.eq("empresa_id", empresa_id)
    placas = [v["placa"] for v in query.execute().data or []]
    return {"tem_outros": bool(placas), "total": len(placas), "placas": placas}


def corrigir_categoria_outros(client: Client = None) -> Dict[str, Any]:
    client = client or get_supabase()
    try:
        res = client.rpc("fix_categoria_outros_to_sem_seguro", {}).execute()
    except Exception as e:
        logger.error(f"Erro ao executar correção de status: {e}")
        return {"success": False, "veiculos_atualizados": 0, "placas_alteradas": [],
                "message": "Erro ao executar correção", "error": str(e)}

    dados = res.data[0] if isinstance(res.data, list) and res.data else (res.data or {})
    return {
        "success": bool(dados.get("success", False)),
        "veiculos_atualizados": dados.get("veiculos_atualizados", 0),
        "placas_alteradas": dados.get("placas_alteradas") or [],
        "message": dados.get("message", "Resultado inesperado"),
        "error": dados.get("error"),
    }


def verificar_e_corrigir_outros(empresa_id: str = None, client: Client = None) -> Dict[str, Any]:
    verificacao = verificar_categoria_outros(empresa_id, client=client)
    if not verificacao["tem_outros"]:
        return {"success": True, "veiculos_atualizados": 0, "placas_alteradas": [],
                "message": 'Nenhum veículo com categoria "Outros" encontrado', "error": None}
    return corrigir_categoria_outros(client=client)


def kpis_frota(veiculos: Iterable[Dict[str, Any]]) -> Dict[str, Any]:
    df = pd.DataFrame(list(veiculos))
    if df.empty:
        return {"total": 0, "por_categoria": {}, "por_status_seguro": {}, "valor_fipe_total": 0.0}
    for coluna in ("categoria", "status_seguro", "preco_fipe"):
        if coluna not in df.columns:
            df[coluna] = None
    return {
        "total": int(len(df)),
        "por_categoria": {k: int(v) for k, v in df["categoria"].fillna("sem categoria").value_counts().items()},
        "por_status_seguro": {k: int(v) for k, v in df["status_seguro"].fillna("sem_seguro").value_counts().items()},
        "valor_fipe_total": round(float(pd.to_numeric(df["preco_fipe"], errors="coerce").fillna(0).sum()), 2),
    }


async def assinar_mudancas_frota(client_async, callback: Callable[[Dict[str, Any]], None]):
    """
    Assina inserções, alterações e exclusões em public.frota_veiculos.
    `client_async` é um AsyncClient (supabase.acreate_client). Devolve o canal para cancelar depois.
    """
    def ao_mudar(payload):
        logger.info(f"Mudança detectada na frota: {payload.get('eventType') if isinstance(payload, dict) else payload}")
        callback(payload)

    canal = client_async.channel(CANAL_FROTA)
    canal.on_postgres_changes("*", schema="public", table="frota_veiculos", callback=ao_mudar)
    await canal.subscribe()
    return canal


async def cancelar_assinatura(client_async, canal):
    await client_async.remove_channel(canal)
