import re
from datetime import datetime, timezone

import pytest

from smartapolice import tickets
from smartapolice.erros import DadosInvalidos, ErroIntegracao, RegistroNaoEncontrado, StatusInvalido
from smartapolice.tickets import (adicionar_comentario, alterar_status_ticket, criar_ticket, excluir_ticket,
                                  gerar_protocolo, kpis_tickets, listar_movimentos, listar_tickets,
                                  pode_transicionar)
from tests.conftest import FakeSupabase


@pytest.fixture
def client():
    return FakeSupabase(frota_veiculos=[
        {"id": "v1", "placa": "ABC1D23", "marca": "Fiat", "modelo": "Strada", "status_seguro": "segurado"},
        {"id": "v2", "placa": "XYZ9K88", "marca": "Volvo", "modelo": "FH", "status_seguro": "sem_seguro"},
    ])


def _novo(client, **extra):
    dados = {"tipo": "sinistro", "subtipo": "colisao", "vehicle_id": "v1", "empresa_id": "e1",
             "descricao": "Batida leve no estacionamento", "valor_estimado": 3500}
    dados.update(extra)
    return criar_ticket(dados, usuario="ana@corretora.com", client=client)


def test_protocolo():
    agora = datetime(2024, 3, 15, 10, 0)
    assert re.fullmatch(r"SIN-20240315-[A-Z0-9]{6}", gerar_protocolo("sinistro", agora))
    assert re.fullmatch(r"ASS-20240315-[A-Z0-9]{6}", gerar_protocolo("assistencia", agora))
    with pytest.raises(DadosInvalidos):
        gerar_protocolo("reclamacao", agora)


def test_maquina_de_status():
    assert pode_transicionar("aberto", "em_analise")
    assert pode_transicionar("aberto", "cancelado")
    assert pode_transicionar("em_analise", "finalizado")
    assert not pode_transicionar("aberto", "finalizado")
    assert not pode_transicionar("finalizado", "aberto")
    assert not pode_transicionar("cancelado", "em_analise")


def test_criar_ticket_registra_movimento(client):
    ticket = _novo(client)
    assert ticket["status"] == "aberto"
    assert ticket["origem"] == "portal"
    assert ticket["protocol_code"].startswith("SIN-")

    movimentos = listar_movimentos(ticket["id"], client=client)
    assert [m["tipo"] for m in movimentos] == ["criacao"]
    assert movimentos[0]["created_by"] == "ana@corretora.com"


def test_subtipo_incompativel(client):
    with pytest.raises(DadosInvalidos):
        _novo(client, tipo="assistencia", subtipo="roubo")
    with pytest.raises(DadosInvalidos):
        _novo(client, vehicle_id=None)
    with pytest.raises(DadosInvalidos):
        _novo(client, gravidade="apocaliptica")


def test_fluxo_de_status(client):
    ticket = _novo(client)
    alterar_status_ticket(ticket["id"], "em_analise", "ana", client=client)
    finalizado = alterar_status_ticket(ticket["id"], "finalizado", "ana", "Indenização paga", client=client)
    assert finalizado["status"] == "finalizado"

    with pytest.raises(StatusInvalido):
        alterar_status_ticket(ticket["id"], "cancelado", client=client)

    movimentos = listar_movimentos(ticket["id"], client=client)
    assert [m["tipo"] for m in movimentos] == ["criacao", "status_change", "status_change"]
    assert movimentos[-1]["payload"] == {"status_anterior": "em_analise", "status_novo": "finalizado",
                                         "motivo": "Indenização paga"}


def test_status_desconhecido_e_ticket_inexistente(client):
    ticket = _novo(client)
    with pytest.raises(DadosInvalidos):
        alterar_status_ticket(ticket["id"], "aprovado", client=client)
    with pytest.raises(RegistroNaoEncontrado):
        alterar_status_ticket("nao-existe", "em_analise", client=client)


def test_listar_com_busca_no_veiculo(client):
    _novo(client)
    _novo(client, tipo="assistencia", subtipo="guincho", vehicle_id="v2", descricao="Pane seca")

    assert len(listar_tickets("e1", client=client)) == 2
    assert [t["vehicle"]["placa"] for t in listar_tickets("e1", busca="volvo", client=client)] == ["XYZ9K88"]
    assert [t["subtipo"] for t in listar_tickets("e1", busca="estacionamento", client=client)] == ["colisao"]
    assert [t["tipo"] for t in listar_tickets("e1", tipo="assistencia", client=client)] == ["assistencia"]
    assert listar_tickets("e1", status="finalizado", client=client) == []


def test_comentario_e_exclusao(client):
    ticket = _novo(client)
    adicionar_comentario(ticket["id"], "  Cliente enviou o B.O.  ", "ana", client=client)
    assert listar_movimentos(ticket["id"], client=client)[-1]["payload"] == {"texto": "Cliente enviou o B.O."}
    with pytest.raises(DadosInvalidos):
        adicionar_comentario(ticket["id"], "   ", client=client)

    assert excluir_ticket(ticket["id"], "ana", client=client)
    assert client.tabelas["tickets"] == []
    assert client.tabelas["ticket_movements"] == []


def test_kpis_tickets():
    agora = datetime(2024, 6, 30, tzinfo=timezone.utc)
    tickets = [
        {"tipo": "sinistro", "status": "aberto", "valor_estimado": 1000, "created_at": "2024-06-01T10:00:00+00:00"},
        {"tipo": "sinistro", "status": "finalizado", "valor_estimado": None, "created_at": "2024-01-01T10:00:00+00:00"},
        {"tipo": "assistencia", "status": "em_analise", "valor_estimado": 250.5,
         "created_at": "2024-06-20T10:00:00+00:00"},
    ]
    kpis = kpis_tickets(tickets, agora)
    assert kpis["total"] == 3
    assert kpis["por_tipo"] == {"sinistro": 2, "assistencia": 1}
    assert kpis["valor_estimado_total"] == 1250.5
    assert kpis["sinistros_abertos"] == 1
    assert kpis["assistencias_abertas"] == 1
    assert kpis["ultimos_60_dias"] == 2
    assert kpis_tickets([])["total"] == 0


def test_criacao_e_mudanca_de_status_avisam_a_automacao(client, monkeypatch):
    eventos = []
    monkeypatch.setattr(tickets, "notificar_ticket",
                        lambda evento, ticket, extra=None: eventos.append((evento, ticket["id"], extra)))
    ticket = _novo(client)
    alterar_status_ticket(ticket["id"], "em_analise", "ana", "Vistoria agendada", client=client)

    assert [(e[0], e[1]) for e in eventos] == [("ticket.created", ticket["id"]),
                                                ("ticket.status_changed", ticket["id"])]
    assert eventos[0][2] == {"tipo": "sinistro", "subtipo": "colisao"}
    assert eventos[1][2] == {"status_anterior": "aberto", "status_novo": "em_analise",
                             "motivo": "Vistoria agendada"}


def test_falha_no_webhook_nao_desfaz_o_ticket(client, monkeypatch):
    def falha(evento, ticket, extra=None):
        raise ErroIntegracao("Webhook respondeu 503", "WEBHOOK_ERROR", status=503)

    monkeypatch.setattr(tickets, "notificar_ticket", falha)
    ticket = _novo(client)
    assert alterar_status_ticket(ticket["id"], "cancelado", client=client)["status"] == "cancelado"
    assert [t["status"] for t in client.tabelas["tickets"]] == ["cancelado"]
