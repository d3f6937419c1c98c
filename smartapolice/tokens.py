"""
Token público enviado por link ao colaborador (formulário de inclusão/atualização).

Assinado com HS256 usando o segredo JWT do projeto. Só existe validação com
verificação de assinatura; nada aqui decodifica o token sem conferir a assinatura.
"""
import logging
import time
from typing import Any, Dict, Optional

from jose import ExpiredSignatureError, JWTError, jwt

from smartapolice.config import get_config
from smartapolice.erros import DadosInvalidos

logger = logging.getLogger(__name__)

ALGORITMO = "HS256"
SEGUNDOS_POR_DIA = 24 * 60 * 60
VALIDADE_PADRAO_DIAS = 7


def _segredo(segredo: Optional[str]) -> str:
    return segredo or get_config().exigir("jwt_secret")


def gerar_token_publico(employee_id: str, validade_dias: int = VALIDADE_PADRAO_DIAS,
                        agora: int = None, segredo: str = None) -> Dict[str, Any]:
    if not employee_id:
        raise DadosInvalidos("employeeId is required", "MISSING_EMPLOYEE_ID")
    if validade_dias <= 0:
        raise DadosInvalidos("validityDays deve ser positivo")

    chave = _segredo(segredo)
    agora = int(agora if agora is not None else time.time())
    expira_em = validade_dias * SEGUNDOS_POR_DIA
    payload = {"employeeId": employee_id, "iat": agora, "exp": agora + expira_em}

    token = jwt.encode(payload, chave, algorithm=ALGORITMO)
    return {"token": token, "expiresIn": expira_em}


def validar_token_publico(token: str, segredo: str = None) -> Optional[Dict[str, Any]]:
    """Payload do token se a assinatura confere e ainda não expirou; senão None."""
    chave = _segredo(segredo)
    if not token:
        return None
    try:
        payload = jwt.decode(token, chave, algorithms=[ALGORITMO])
    except ExpiredSignatureError:
        logger.info("Token público expirado")
        return None
    except JWTError as e:
        logger.warning(f"Token público inválido: {e}")
        return None
    if not payload.get("employeeId"):
        return None
    return payload
