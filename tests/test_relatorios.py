from datetime import date

from smartapolice.relatorios import montar_relatorio_mensal
from tests.conftest import FakeSupabase


def _banco():
    return FakeSupabase(
        apolices=[
            {"id": "a1", "empresa_id": "e1", "numero_apolice": "1", "inicio_vigencia": "2023-06-20",
             "fim_vigencia": "2024-06-20", "premio_anual": 1200},
            {"id": "a2", "empresa_id": "e1", "numero_apolice": "2", "inicio_vigencia": "2024-01-01",
             "fim_vigencia": "2025-01-01", "premio_anual": None},
            {"id": "a3", "empresa_id": "e2", "numero_apolice": "3", "inicio_vigencia": "2024-01-01",
             "fim_vigencia": "2024-06-10", "premio_anual": 5000},
        ],
        parcelas=[
            {"apolice_id": "a1", "valor": 100, "status": "paga", "data_vencimento": "2024-05-20"},
            {"apolice_id": "a1", "valor": 100, "status": "pendente", "data_vencimento": "2024-06-20"},
            {"apolice_id": "a3", "valor": 900, "status": "pendente", "data_vencimento": "2024-06-20"},
        ],
        frota_veiculos=[
            {"empresa_id": "e1", "categoria": "Carros", "status_seguro": "segurado", "preco_fipe": 50000},
            {"empresa_id": "e2", "categoria": "Motos", "status_seguro": None, "preco_fipe": 9000},
        ],
        tickets=[
            {"empresa_id": "e1", "tipo": "sinistro", "status": "aberto", "valor_estimado": 800,
             "created_at": "2024-06-05T12:00:00+00:00"},
            {"empresa_id": "e1", "tipo": "assistencia", "status": "finalizado", "valor_estimado": 0,
             "created_at": "2024-05-28T12:00:00+00:00"},
        ],
    )


def test_relatorio_do_mes():
    relatorio = montar_relatorio_mensal("e1", date(2024, 6, 18), client=_banco())

    assert relatorio["referencia"] == "2024-06"
    assert relatorio["periodo"] == {"inicio": "2024-06-01", "fim": "2024-06-30"}
    assert relatorio["apolices"] == {"total": 2, "vencendo_no_mes": 1, "premio_anual_total": 1200.0}
    assert relatorio["parcelas"]["pagas"]["quantidade"] == 1
    assert relatorio["parcelas"]["pendentes"] == {"quantidade": 1, "valor": 100.0}
    assert relatorio["frota"]["total"] == 1
    assert relatorio["frota"]["valor_fipe_total"] == 50000.0
    assert relatorio["tickets"]["total"] == 1
    assert relatorio["tickets"]["por_tipo"] == {"sinistro": 1}


def test_empresa_sem_dados():
    relatorio = montar_relatorio_mensal("e9", date(2024, 2, 1), client=_banco())
    assert relatorio["periodo"]["fim"] == "2024-02-29"
    assert relatorio["apolices"]["total"] == 0
    assert relatorio["parcelas"]["pendentes"]["quantidade"] == 0
    assert relatorio["frota"]["total"] == 0
    assert relatorio["tickets"]["total"] == 0


def test_tickets_no_limite_do_mes():
    banco = _banco()
    banco.tabelas["tickets"] = [
        {"empresa_id": "e1", "tipo": "sinistro", "status": "aberto", "created_at": "2024-06-01T00:00:00+00:00"},
        {"empresa_id": "e1", "tipo": "sinistro", "status": "aberto",
         "created_at": "2024-06-30T23:59:59.750000+00:00"},
        {"empresa_id": "e1", "tipo": "assistencia", "status": "aberto", "created_at": "2024-07-01T00:00:00+00:00"},
    ]
    relatorio = montar_relatorio_mensal("e1", date(2024, 6, 18), client=banco)
    assert relatorio["tickets"]["total"] == 2
    assert relatorio["tickets"]["por_tipo"] == {"sinistro": 2}
