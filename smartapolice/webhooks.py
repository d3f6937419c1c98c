import logging
from datetime import date
from typing import Any, Dict, Iterable, Optional

import requests

from smartapolice.config import get_config
from smartapolice.erros import ErroIntegracao

logger = logging.getLogger(__name__)

TIMEOUT = 15


def enviar_webhook(url: str, payload: Dict[str, Any], token: str = None, timeout: int = TIMEOUT,
                   sessao: requests.Session = None) -> Dict[str, Any]:
    """
    POST JSON para uma automação (n8n ou backend de tickets).

    Returns:
        O JSON devolvido pelo webhook, ou {} quando a resposta não tem corpo JSON.
    """
    http = sessao or requests
    headers = {"Content-Type": "application/json"}
    if token is None:
        token = get_config().backend_write_token
    if token:
        headers["Authorization"] = f"Bearer {token}"

    try:
        response = http.post(url, json=payload, headers=headers, timeout=timeout)
    except requests.RequestException as e:
        logger.error(f"Erro de rede no webhook {url}: {e}")
        raise ErroIntegracao("Falha ao chamar o webhook", "WEBHOOK_ERROR")

    if not response.ok:
        logger.warning(f"Webhook falhou ({response.status_code}): {response.text[:200]}")
        raise ErroIntegracao(f"Webhook respondeu {response.status_code}", "WEBHOOK_ERROR",
                             status=response.status_code, detalhes=response.text)
    try:
        return response.json() or {}
    except ValueError:
        return {}


def notificar_ticket(evento: str, ticket: Dict[str, Any], extra: Dict[str, Any] = None,
                     url: str = None) -> Optional[Dict[str, Any]]:
    """Dispara o webhook de tickets, se configurado. Sem URL, não faz nada e devolve None."""
    url = url or get_config().tickets_webhook_url
    if not url:
        return None
    payload = {
        "event": evento,
        "ticket_id": ticket.get("id"),
        "protocol_code": ticket.get("protocol_code"),
        "external_ref": ticket.get("external_ref"),
        **(extra or {}),
    }
    return enviar_webhook(url, payload)


def notificar_parcelas(parcelas: Iterable[Dict[str, Any]], dia: date = None,
                       url: str = None) -> Optional[Dict[str, Any]]:
    url = url or get_config().n8n_webhook_url
    if not url:
        return None
    lista = list(parcelas)
    payload = {
        "event": "parcelas.vencendo",
        "data_referencia": (dia or date.today()).isoformat(),
        "quantidade": len(lista),
        "parcelas": lista,
    }
    return enviar_webhook(url, payload)
