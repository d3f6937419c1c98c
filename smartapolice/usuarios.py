import logging
from typing import Any, Dict

from supabase import Client

from smartapolice.erros import AcessoNegado, DadosInvalidos, NaoAutenticado
from smartapolice.supabase_client import get_supabase, get_supabase_admin, primeiro

logger = logging.getLogger(__name__)

TAMANHO_MINIMO_SENHA = 6


def _token_sem_bearer(token: str) -> str:
    token = (token or "").strip()
    if token.lower().startswith("bearer "):
        token = token[7:].strip()
    return token


def obter_usuario_do_token(token: str, client: Client = None):
    """Usuário do Supabase Auth dono do JWT (aceita o header Authorization inteiro)."""
    token = _token_sem_bearer(token)
    if not token:
        raise NaoAutenticado("Token de autenticação não fornecido")
    client = client or get_supabase_admin()
    try:
        resposta = client.auth.get_user(token)
    except Exception as e:
        logger.warning(f"Token rejeitado pelo Supabase Auth: {e}")
        raise NaoAutenticado("Usuário não autenticado")
    usuario = getattr(resposta, "user", None)
    if not usuario:
        raise NaoAutenticado("Usuário não autenticado")
    return usuario


def exigir_admin(usuario_id: str, client: Client = None) -> Dict[str, Any]:
    client = client or get_supabase_admin()
    perfil = primeiro(client.table("user_profiles").select("is_admin").eq("id", usuario_id).limit(1).execute())
    if not perfil or not perfil.get("is_admin"):
        raise AcessoNegado("Acesso negado: apenas administradores podem deletar usuários")
    return perfil


def excluir_usuario(admin_id: str, user_id: str, client: Client = None) -> Dict[str, Any]:
    """
    Remove um usuário da plataforma. O chamador precisa ser admin e não pode
    excluir a própria conta. As tabelas de perfil são limpas antes do Auth;
    erro nelas só é logado, erro no Auth é propagado.
    """
    if not user_id:
        raise DadosInvalidos("ID do usuário inválido")
    client = client or get_supabase_admin()
    exigir_admin(admin_id, client=client)
    if user_id == admin_id:
        raise DadosInvalidos("Você não pode deletar sua própria conta")

    logger.info(f"Deletando usuário: {user_id}")
    for tabela, coluna in (("user_memberships", "user_id"), ("user_profiles", "id"), ("users", "id")):
        try:
            client.table(tabela).delete().eq(coluna, user_id).execute()
        except Exception as e:
            logger.error(f"Erro ao deletar de {tabela}: {e}")

    client.auth.admin.delete_user(user_id)
    logger.info(f"Usuário {user_id} deletado com sucesso")
    return {"success": True, "message": "Usuário deletado com sucesso"}


def alterar_senha(token: str, senha_atual: str, nova_senha: str, client: Client = None,
                  client_admin: Client = None) -> Dict[str, Any]:
    if not senha_atual or not nova_senha:
        raise DadosInvalidos("Senha atual e nova senha são obrigatórias")
    if len(nova_senha) < TAMANHO_MINIMO_SENHA:
        raise DadosInvalidos(f"A nova senha deve ter no mínimo {TAMANHO_MINIMO_SENHA} caracteres")

    client = client or get_supabase()
    client_admin = client_admin or get_supabase_admin()
    usuario = obter_usuario_do_token(token, client=client_admin)

    # Confere a senha atual fazendo login com ela
    try:
        client.auth.sign_in_with_password({"email": usuario.email, "password": senha_atual})
    except Exception as e:
        logger.info(f"Senha atual recusada para {usuario.id}: {e}")
        raise DadosInvalidos("Senha atual incorreta", "WRONG_PASSWORD")

    client_admin.auth.admin.update_user_by_id(usuario.id, {"password": nova_senha})
    logger.info(f"Password updated successfully for user: {usuario.id}")
    return {"success": True, "message": "Senha alterada com sucesso!"}
