import logging
import threading
import time
from typing import Any, Dict, List, Optional

import requests

from smartapolice.config import get_config
from smartapolice.erros import ErroConfiguracao, ErroIntegracao

logger = logging.getLogger(__name__)

VALIDADE_TOKEN = 60 * 60
TIMEOUT = 20

# Partes do cadastro agregadas em cliente_detalhado: (rota, chave na resposta)
PARTES_CLIENTE = {
    "emails": ("/cliente_emails", "emails"),
    "telefones": ("/cliente_telefones", "telefones"),
    "enderecos": ("/cliente_enderecos", "enderecos"),
    "sinistros": ("/cliente_sinistros", "sinistros"),
    "renovacoes": ("/cliente_renovacoes", "renovacoes"),
    "negocios": ("/cliente_negocios", "negocios"),
    "anexos": ("/cliente_anexos", "anexos"),
}


class ClienteCorpNuvem:
    """
    Cliente do ERP CorpNuvem.

    O token de login vale 1 hora e vai no header Authorization sem o prefixo
    "Bearer". Uma resposta 401 descarta o token e repete a requisição uma vez.
    """

    def __init__(self, base_url: str = None, email: str = None, senha: str = None,
                 sessao: requests.Session = None):
        config = get_config()
        self.base_url = (base_url or config.corpnuvem_url).rstrip("/")
        self.email = email or config.corpnuvem_email
        self.senha = senha or config.corpnuvem_senha
        self.sessao = sessao or requests.Session()
        self._token: Optional[str] = None
        self._expira_em = 0.0
        self._lock = threading.Lock()

    def _obter_token(self) -> str:
        with self._lock:
            if self._token and time.monotonic() < self._expira_em:
                return self._token
            if not self.email or not self.senha:
                raise ErroConfiguracao("Credenciais do CorpNuvem não configuradas")

            logger.info("🔑 [CorpNuvem Auth] Fazendo login...")
            try:
                response = self.sessao.post(f"{self.base_url}/login", timeout=TIMEOUT, json={
                    "email": self.email, "senha": self.senha, "aplicacao": 0,
                })
            except requests.RequestException as e:
                raise ErroIntegracao(f"Falha no login do CorpNuvem: {e}", "CORPNUVEM_LOGIN")
            try:
                token = (response.json() or {}).get("token") if response.ok else None
            except ValueError:
                raise ErroIntegracao("Resposta de login inválida do CorpNuvem", "CORPNUVEM_LOGIN",
                                     status=response.status_code, detalhes=response.text)
            if not token:
                raise ErroIntegracao("Token não retornado pela API", "CORPNUVEM_LOGIN", status=response.status_code)

            self._token = token
            self._expira_em = time.monotonic() + VALIDADE_TOKEN
            return token

    def invalidar_token(self):
        with self._lock:
            self._token = None
            self._expira_em = 0.0

    def get(self, rota: str, params: Dict[str, Any] = None) -> Any:
        tentativa = 0
        while True:
            headers = {"Content-Type": "application/json", "Authorization": self._obter_token()}
            try:
                response = self.sessao.get(f"{self.base_url}{rota}", params=params, headers=headers,
                                           timeout=TIMEOUT)
            except requests.RequestException as e:
                raise ErroIntegracao(f"Erro de rede no CorpNuvem: {e}", "CORPNUVEM_ERROR")

            if response.status_code == 401 and tentativa == 0:
                logger.info("🔄 [CorpNuvem Auth] Renovando token após 401...")
                self.invalidar_token()
                tentativa += 1
                continue
            if not response.ok:
                logger.error(f"❌ [CorpNuvem] {rota} respondeu {response.status_code}")
                raise ErroIntegracao(f"Erro na API CorpNuvem: {response.status_code}", "CORPNUVEM_ERROR",
                                     status=response.status_code, detalhes=response.text)
            try:
                return response.json()
            except ValueError:
                raise ErroIntegracao(f"Resposta inválida do CorpNuvem em {rota}", "CORPNUVEM_ERROR",
                                     status=response.status_code, detalhes=response.text)

    def ramos(self) -> List[Dict[str, Any]]:
        return self.get("/ramos")

    def lista_clientes(self, **params) -> Any:
        return self.get("/lista_clientes", params=params)

    def cliente(self, codfil: int, codigo: int) -> Dict[str, Any]:
        return self.get("/cliente", params={"codfil": codfil, "codigo": codigo})

    def cliente_detalhado(self, codfil: int, codigo: int) -> Dict[str, Any]:
        """Cadastro do cliente com contatos, sinistros, renovações e negócios; partes que falharem vêm vazias."""
        detalhado = {"cliente": self.cliente(codfil, codigo)}
        for nome, (rota, chave) in PARTES_CLIENTE.items():
            try:
                resposta = self.get(rota, params={"codfil": codfil, "codigo": codigo}) or {}
                detalhado[nome] = resposta.get(chave, []) if isinstance(resposta, dict) else resposta
            except ErroIntegracao as e:
                logger.warning(f"[CorpNuvem] {nome} indisponível para {codfil}/{codigo}: {e.mensagem}")
                detalhado[nome] = []
        return detalhado
