import calendar
from datetime import date, datetime, timedelta
from typing import Any, Dict, Iterable, List

import pandas as pd
from dateutil.relativedelta import relativedelta

QUANTIDADE_PARCELAS_SIMULADAS = 12
VALOR_BASE_PADRAO = 1000.0


def _preenchido(valor) -> bool:
    """Falso para None, string vazia e NaN/NaT vindos de linhas de DataFrame."""
    return valor is not None and valor != "" and bool(pd.notna(valor))


def _para_data(valor) -> date:
    if isinstance(valor, datetime):
        return valor.date()
    if isinstance(valor, date):
        return valor
    return date.fromisoformat(str(valor)[:10])


def gerar_parcelas_simuladas(apolice: Dict[str, Any], hoje: date = None) -> List[Dict[str, Any]]:
    """
    Gera 12 parcelas mensais para uma apólice que não trouxe o quadro de parcelamento.

    A base é a cobertura total, depois o prêmio, e por último R$ 1.000,00.
    A primeira parcela absorve a diferença de arredondamento, para que a soma
    feche no total. Parcelas com vencimento anterior a `hoje` saem como pagas.
    """
    hoje = hoje or date.today()
    total = next((apolice[c] for c in ("cobertura_total", "premio_anual", "premio")
                  if _preenchido(apolice.get(c)) and apolice[c]), VALOR_BASE_PADRAO)
    total = float(total)
    inicio = _para_data(apolice["inicio_vigencia"]) if _preenchido(apolice.get("inicio_vigencia")) else hoje

    valor_base = round(total / QUANTIDADE_PARCELAS_SIMULADAS, 2)
    primeira = round(total - valor_base * (QUANTIDADE_PARCELAS_SIMULADAS - 1), 2)

    parcelas = []
    for i in range(QUANTIDADE_PARCELAS_SIMULADAS):
        vencimento = inicio + relativedelta(months=i)
        parcelas.append({
            "numero": i + 1,
            "valor": primeira if i == 0 else valor_base,
            "data": vencimento.isoformat(),
            "status": "paga" if vencimento < hoje else "pendente",
        })
    return parcelas


def criar_parcelas_estendidas(apolices: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [
        {
            **parcela,
            "apolice_nome": apolice.get("nome") or apolice.get("numero_apolice"),
            "apolice_tipo": apolice.get("tipo"),
            "seguradora": apolice.get("seguradora"),
        }
        for apolice in apolices
        for parcela in apolice.get("parcelas", [])
    ]


def filtrar_proximas(parcelas: Iterable[Dict[str, Any]], hoje: date = None, dias: int = 30):
    hoje = hoje or date.today()
    limite = hoje + timedelta(days=dias)
    return [p for p in parcelas if p["status"] == "pendente" and hoje <= _para_data(p["data"]) <= limite]


def filtrar_vencidas(parcelas: Iterable[Dict[str, Any]], hoje: date = None):
    hoje = hoje or date.today()
    return [p for p in parcelas if p["status"] == "pendente" and _para_data(p["data"]) < hoje]


def filtrar_pagas(parcelas: Iterable[Dict[str, Any]]):
    return [p for p in parcelas if p["status"] == "paga"]


def calcular_vencimentos(quantidade: int, primeiro_vencimento: date, dia_vencimento: int) -> List[date]:
    """A primeira data é a informada; as demais caem no `dia_vencimento`, limitado ao fim do mês."""
    datas = []
    for i in range(quantidade):
        if i == 0:
            datas.append(primeiro_vencimento)
            continue
        base = primeiro_vencimento + relativedelta(months=i)
        ultimo_dia = calendar.monthrange(base.year, base.month)[1]
        datas.append(date(base.year, base.month, min(dia_vencimento, ultimo_dia)))
    return datas


def resumo_parcelas(parcelas: Iterable[Dict[str, Any]], hoje: date = None) -> Dict[str, Any]:
    hoje = hoje or date.today()
    df = pd.DataFrame(list(parcelas))
    vazio = {"quantidade": 0, "valor": 0.0}
    if df.empty:
        return {"pagas": dict(vazio), "pendentes": dict(vazio), "vencidas": dict(vazio), "proximas": dict(vazio)}

    df["data"] = pd.to_datetime(df["data"]).dt.date
    pendentes = df[df["status"] == "pendente"]
    grupos = {
        "pagas": df[df["status"] == "paga"],
        "pendentes": pendentes,
        "vencidas": pendentes[pendentes["data"] < hoje],
        "proximas": pendentes[(pendentes["data"] >= hoje) & (pendentes["data"] <= hoje + timedelta(days=30))],
    }
    return {
        nome: {"quantidade": int(len(g)), "valor": round(float(g["valor"].sum()), 2)}
        for nome, g in grupos.items()
    }
