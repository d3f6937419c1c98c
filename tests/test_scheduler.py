from datetime import date

import pytest

import scheduler
from smartapolice.erros import ErroIntegracao
from tests.conftest import FakeSupabase


@pytest.fixture
def banco(monkeypatch):
    banco = FakeSupabase(
        empresas=[{"id": "e1", "nome": "Empresa Um"}, {"id": "e2", "nome": "Empresa Dois"}],
        apolices=[{"id": "a1", "empresa_id": "e1", "segurado": "Ana", "contato": "11999990000",
                   "numero_apolice": "0101", "placa": "ABC1D23"}],
        parcelas=[
            {"apolice_id": "a1", "valor": 250.0, "numero_parcela": 2, "status": "pendente",
             "data_vencimento": "2024-07-10"},
        ],
    )
    monkeypatch.setattr(scheduler, "get_supabase_admin", lambda: banco)
    return banco


def test_cobranca_envia_parcelas_do_dia(banco, monkeypatch):
    enviados = []
    monkeypatch.setattr(scheduler, "notificar_parcelas", lambda parcelas, dia: enviados.append((parcelas, dia)) or {})

    assert scheduler.executar_fluxo_de_cobranca(date(2024, 7, 10)) == 1
    parcelas, dia = enviados[0]
    assert dia == date(2024, 7, 10)
    assert parcelas[0]["apolices"]["segurado"] == "Ana"

    assert scheduler.executar_fluxo_de_cobranca(date(2024, 7, 11)) == 0
    assert len(enviados) == 1


def test_cobranca_nao_derruba_o_agendador(banco, monkeypatch):
    def falha(parcelas, dia):
        raise ErroIntegracao("Webhook respondeu 502", "WEBHOOK_ERROR", status=502)

    monkeypatch.setattr(scheduler, "notificar_parcelas", falha)
    assert scheduler.executar_fluxo_de_cobranca(date(2024, 7, 10)) == 0


def test_relatorios_so_no_dia_primeiro(banco, monkeypatch):
    enviados = []
    monkeypatch.setenv("N8N_WEBHOOK_URL", "https://n8n.teste/webhook")
    scheduler.get_config.cache_clear()
    monkeypatch.setattr(scheduler, "enviar_webhook", lambda url, payload: enviados.append(payload) or {})

    assert scheduler.enviar_relatorios_mensais(date(2024, 7, 2)) == 0
    assert scheduler.enviar_relatorios_mensais(date(2024, 7, 1)) == 2
    assert [p["empresa"]["id"] for p in enviados] == ["e1", "e2"]
    assert enviados[0]["event"] == "relatorio.mensal"
    assert enviados[0]["relatorio"]["referencia"] == "2024-06"


def test_relatorios_sem_webhook_configurado(banco):
    assert scheduler.enviar_relatorios_mensais(date(2024, 7, 1)) == 0


def test_falha_inesperada_numa_empresa_nao_para_as_outras(banco, monkeypatch):
    monkeypatch.setenv("N8N_WEBHOOK_URL", "https://n8n.teste/webhook")
    scheduler.get_config.cache_clear()
    enviados = []
    monkeypatch.setattr(scheduler, "enviar_webhook", lambda url, payload: enviados.append(payload) or {})
    montar_original = scheduler.montar_relatorio_mensal

    def montar(empresa_id, referencia, client):
        if empresa_id == "e1":
            raise RuntimeError("APIError: connection reset")
        return montar_original(empresa_id, referencia, client)

    monkeypatch.setattr(scheduler, "montar_relatorio_mensal", montar)
    assert scheduler.enviar_relatorios_mensais(date(2024, 7, 1)) == 1
    assert [p["empresa"]["id"] for p in enviados] == ["e2"]


def test_falha_ao_listar_empresas(banco, monkeypatch):
    monkeypatch.setenv("N8N_WEBHOOK_URL", "https://n8n.teste/webhook")
    scheduler.get_config.cache_clear()
    banco.falhas["empresas"] = RuntimeError("APIError: relation does not exist")
    assert scheduler.enviar_relatorios_mensais(date(2024, 7, 1)) == 0
