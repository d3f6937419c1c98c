import pytest

from smartapolice.erros import AcessoNegado, DadosInvalidos, NaoAutenticado
from smartapolice.usuarios import alterar_senha, excluir_usuario, obter_usuario_do_token
from tests.conftest import FakeSupabase


@pytest.fixture
def client():
    client = FakeSupabase(
        user_profiles=[{"id": "adm", "is_admin": True}, {"id": "u2", "is_admin": False}],
        user_memberships=[{"user_id": "u2", "empresa_id": "e1"}],
        users=[{"id": "u2"}],
    )
    client.auth.registrar("tok-adm", "adm", "adm@corretora.com")
    client.auth.registrar("tok-u2", "u2", "rh@empresa.com", senha="antiga123")
    return client


def test_token_com_e_sem_bearer(client):
    assert obter_usuario_do_token("Bearer tok-adm", client=client).id == "adm"
    assert obter_usuario_do_token("tok-u2", client=client).email == "rh@empresa.com"
    with pytest.raises(NaoAutenticado):
        obter_usuario_do_token("", client=client)
    with pytest.raises(NaoAutenticado):
        obter_usuario_do_token("Bearer invalido", client=client)


def test_admin_exclui_usuario(client):
    assert excluir_usuario("adm", "u2", client=client)["success"] is True
    assert client.auth.admin.excluidos == ["u2"]
    assert client.tabelas["user_memberships"] == []
    assert [p["id"] for p in client.tabelas["user_profiles"]] == ["adm"]
    assert client.tabelas["users"] == []


def test_exclusao_exige_admin_e_proibe_a_propria_conta(client):
    with pytest.raises(AcessoNegado):
        excluir_usuario("u2", "adm", client=client)
    with pytest.raises(DadosInvalidos):
        excluir_usuario("adm", "adm", client=client)
    with pytest.raises(DadosInvalidos):
        excluir_usuario("adm", "", client=client)
    assert client.auth.admin.excluidos == []


def test_falha_nas_tabelas_nao_impede_exclusao_no_auth(client):
    client.falhas["users"] = RuntimeError("relation does not exist")
    excluir_usuario("adm", "u2", client=client)
    assert client.auth.admin.excluidos == ["u2"]


def test_falha_no_auth_e_propagada(client):
    client.auth.admin.falha_exclusao = RuntimeError("User not found")
    with pytest.raises(RuntimeError):
        excluir_usuario("adm", "u2", client=client)


def test_alterar_senha(client):
    resultado = alterar_senha("Bearer tok-u2", "antiga123", "nova-senha", client=client, client_admin=client)
    assert resultado == {"success": True, "message": "Senha alterada com sucesso!"}
    assert client.auth.admin.senhas_alteradas == {"u2": "nova-senha"}


def test_alterar_senha_recusas(client):
    with pytest.raises(DadosInvalidos):
        alterar_senha("tok-u2", "antiga123", "123", client=client, client_admin=client)
    with pytest.raises(DadosInvalidos):
        alterar_senha("tok-u2", "", "nova-senha", client=client, client_admin=client)
    with pytest.raises(DadosInvalidos) as erro:
        alterar_senha("tok-u2", "errada", "nova-senha", client=client, client_admin=client)
    assert erro.value.codigo == "WRONG_PASSWORD"
    with pytest.raises(NaoAutenticado):
        alterar_senha("tok-x", "antiga123", "nova-senha", client=client, client_admin=client)
    assert client.auth.admin.senhas_alteradas == {}
