import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv

from smartapolice.erros import ErroConfiguracao

FIPE_BASE_URL_PADRAO = "https://fipe.parallelum.com.br/api/v2"
CORPNUVEM_URL_PADRAO = "https://api.corpnuvem.com"


@dataclass(frozen=True)
class Config:
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None
    supabase_service_role_key: Optional[str] = None
    jwt_secret: Optional[str] = None
    fipe_token: Optional[str] = None
    fipe_base_url: str = FIPE_BASE_URL_PADRAO
    corpnuvem_url: str = CORPNUVEM_URL_PADRAO
    corpnuvem_email: Optional[str] = None
    corpnuvem_senha: Optional[str] = None
    tickets_webhook_url: Optional[str] = None
    n8n_webhook_url: Optional[str] = None
    backend_write_token: str = ""
    bucket_apolices: str = "apolices-pdfs"
    log_level: str = "INFO"

    def exigir(self, campo: str) -> str:
        """Devolve o valor do campo ou levanta ErroConfiguracao se estiver vazio."""
        valor = getattr(self, campo)
        if not valor:
            raise ErroConfiguracao(f"Configuração do servidor incompleta: falta a variável {campo.upper()}.")
        return valor


def _ler_secrets_streamlit() -> dict:
    # Fora do `streamlit run` o acesso a st.secrets levanta erro; nesse caso vale o .env
    try:
        import streamlit as st
        return {k.lower(): v for k, v in st.secrets.items()}
    except Exception:
        return {}


@lru_cache(maxsize=1)
def get_config() -> Config:
    """
    Monta a configuração lendo primeiro os "Secrets" do Streamlit e depois o .env.
    """
    load_dotenv()
    secrets = _ler_secrets_streamlit()

    def valor(nome: str, padrao=None):
        return secrets.get(nome.lower()) or os.environ.get(nome) or padrao

    return Config(
        supabase_url=valor("SUPABASE_URL"),
        supabase_key=valor("SUPABASE_KEY"),
        supabase_service_role_key=valor("SUPABASE_SERVICE_ROLE_KEY"),
        jwt_secret=valor("JWT_SECRET") or valor("SUPABASE_JWT_SECRET"),
        fipe_token=valor("FIPE_TOKEN"),
        fipe_base_url=valor("FIPE_BASE_URL", FIPE_BASE_URL_PADRAO),
        corpnuvem_url=valor("CORPNUVEM_URL", CORPNUVEM_URL_PADRAO),
        corpnuvem_email=valor("CORPNUVEM_EMAIL"),
        corpnuvem_senha=valor("CORPNUVEM_SENHA"),
        tickets_webhook_url=valor("TICKETS_WEBHOOK_URL"),
        n8n_webhook_url=valor("N8N_WEBHOOK_URL"),
        backend_write_token=valor("BACKEND_WRITE_TOKEN", ""),
        bucket_apolices=valor("BUCKET_APOLICES", "apolices-pdfs"),
        log_level=valor("LOG_LEVEL", "INFO"),
    )


def limpar_cache_config():
    get_config.cache_clear()
