"""Exceções do domínio. A API converte cada uma num HTTPException com `codigo` e `mensagem`."""


class ErroSmartApolice(Exception):
    codigo = "INTERNAL_ERROR"
    status_http = 500

    def __init__(self, mensagem: str, codigo: str = None):
        super().__init__(mensagem)
        self.mensagem = mensagem
        if codigo:
            self.codigo = codigo

    def como_dict(self) -> dict:
        return {"ok": False, "error": {"code": self.codigo, "message": self.mensagem}}


class ErroConfiguracao(ErroSmartApolice):
    codigo = "CONFIG_ERROR"
    status_http = 500


class DadosInvalidos(ErroSmartApolice):
    codigo = "INVALID_DATA"
    status_http = 400


class RegistroNaoEncontrado(ErroSmartApolice):
    codigo = "NOT_FOUND"
    status_http = 404


class StatusInvalido(ErroSmartApolice):
    codigo = "INVALID_STATUS"
    status_http = 400


class NaoAutenticado(ErroSmartApolice):
    codigo = "UNAUTHORIZED"
    status_http = 401


class AcessoNegado(ErroSmartApolice):
    codigo = "FORBIDDEN"
    status_http = 403


class ErroIntegracao(ErroSmartApolice):
    """Falha ao falar com um serviço externo (FIPE, CorpNuvem, webhooks)."""
    codigo = "INTEGRATION_ERROR"
    status_http = 502

    def __init__(self, mensagem: str, codigo: str = None, status: int = None, detalhes: str = None):
        super().__init__(mensagem, codigo)
        self.status = status
        self.detalhes = detalhes
