import logging
from datetime import date
from typing import Any, Dict

import pandas as pd
from dateutil.relativedelta import relativedelta
from supabase import Client

from smartapolice.frotas import kpis_frota
from smartapolice.parcelas import resumo_parcelas
from smartapolice.supabase_client import apolices_dataframe, get_supabase_admin
from smartapolice.tickets import kpis_tickets

logger = logging.getLogger(__name__)


def montar_relatorio_mensal(empresa_id: str, referencia: date = None, client: Client = None) -> Dict[str, Any]:
    """
    Resumo do mês de `referencia` (padrão: mês corrente) para uma empresa:
    apólices a renovar, parcelas, frota e tickets abertos no mês.
    """
    client = client or get_supabase_admin()
    referencia = referencia or date.today()
    inicio_mes = referencia.replace(day=1)
    proximo_mes = inicio_mes + relativedelta(months=1)
    fim_mes = proximo_mes - relativedelta(days=1)

    # Apólices
    df = apolices_dataframe(empresa_id=empresa_id, hoje=inicio_mes, client=client)
    if df.empty:
        apolices = {"total": 0, "vencendo_no_mes": 0, "premio_anual_total": 0.0}
        ids_apolices = []
    else:
        vence_no_mes = df["fim_vigencia"].apply(lambda d: d is not None and inicio_mes <= d <= fim_mes)
        premio = pd.to_numeric(df["premio_anual"], errors="coerce") if "premio_anual" in df.columns \
            else pd.Series(dtype=float)
        apolices = {
            "total": int(len(df)),
            "vencendo_no_mes": int(vence_no_mes.sum()),
            "premio_anual_total": round(float(premio.fillna(0).sum()), 2),
        }
        ids_apolices = df["id"].tolist()

    # Parcelas
    parcelas = []
    if ids_apolices:
        linhas = client.table("parcelas").select("valor, status, data_vencimento") \
            .in_("apolice_id", ids_apolices).execute().data or []
        parcelas = [
            {"data": p["data_vencimento"], "valor": float(p.get("valor") or 0), "status": p.get("status")}
            for p in linhas if p.get("data_vencimento")
        ]

    # Frota
    veiculos = client.table("frota_veiculos").select("categoria, status_seguro, preco_fipe") \
        .eq("empresa_id", empresa_id).execute().data or []

    # Tickets abertos no mês
    tickets = client.table("tickets").select("status, tipo, valor_estimado, created_at") \
        .eq("empresa_id", empresa_id) \
        .gte("created_at", inicio_mes.isoformat()) \
        .lt("created_at", proximo_mes.isoformat()) \
        .execute().data or []

    relatorio = {
        "empresa_id": empresa_id,
        "referencia": inicio_mes.strftime("%Y-%m"),
        "periodo": {"inicio": inicio_mes.isoformat(), "fim": fim_mes.isoformat()},
        "apolices": apolices,
        "parcelas": resumo_parcelas(parcelas, hoje=inicio_mes),
        "frota": kpis_frota(veiculos),
        "tickets": kpis_tickets(tickets),
    }
    logger.info(f"Relatório {relatorio['referencia']} montado para a empresa {empresa_id}")
    return relatorio
