import logging
import re
import threading
import time
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Optional

import requests

from smartapolice.config import get_config
from smartapolice.erros import DadosInvalidos, ErroIntegracao
from smartapolice.pdf_parser import valor_brl
from smartapolice.seguradoras import normalizar
from smartapolice.supabase_client import agora_iso, get_supabase_admin

logger = logging.getLogger(__name__)

TIPOS_VEICULO = ("cars", "motorcycles", "trucks")
DURACAO_CACHE = 12 * 60 * 60  # 12 horas
TIMEOUT = 15


def resolver_tipo_veiculo(tipo_veiculo: str = None, categoria: str = None) -> str:
    if tipo_veiculo in TIPOS_VEICULO:
        return tipo_veiculo

    if categoria == "Carros":
        return "cars"
    if categoria == "Caminhão":
        return "trucks"
    if categoria == "Moto":
        return "motorcycles"

    # Categorias antigas, cadastradas livremente
    c = normalizar(categoria or "").strip()
    if "caminh" in c or "truck" in c:
        return "trucks"
    if "moto" in c:
        return "motorcycles"
    return "cars"


def ano_para_year_id(ano) -> str:
    """'2013' -> '2013-0'; '2013-1' é aceito como está."""
    s = str(ano if ano is not None else "").strip()
    if re.fullmatch(r"\d{4}", s):
        return f"{s}-0"
    if re.fullmatch(r"\d{4}-\d", s):
        return s
    raise DadosInvalidos("Ano inválido. Use YYYY ou YYYY-d.", "INVALID_YEAR")


def brl_para_numero(valor) -> Optional[float]:
    if not isinstance(valor, str):
        return None
    return valor_brl(valor)


def normalizar_resposta(corpo: Dict[str, Any], requisicao: Dict[str, Any]) -> Dict[str, Any]:
    historico = [
        {
            "month": h.get("month"),
            "priceFormatted": h.get("price"),
            "priceNumber": brl_para_numero(h.get("price")),
            "reference": h.get("reference"),
        }
        for h in corpo.get("priceHistory") or []
        if isinstance(h, dict)
    ]
    return {
        "ok": True,
        "request": requisicao,
        "data": {
            "brand": corpo.get("brand"),
            "codeFipe": corpo.get("codeFipe"),
            "model": corpo.get("model"),
            "modelYear": corpo.get("modelYear"),
            "fuel": corpo.get("fuel"),
            "fuelAcronym": corpo.get("fuelAcronym"),
            "priceFormatted": corpo.get("price"),
            "priceNumber": brl_para_numero(corpo.get("price")),
            "referenceMonth": corpo.get("referenceMonth"),
            "vehicleType": corpo.get("vehicleType"),
            "priceHistory": historico,
        },
    }


class ClienteFipe:
    """
    Cliente da API FIPE (parallelum v2) com cache em memória de 12 horas.
    """

    def __init__(self, token: str = None, base_url: str = None, sessao: requests.Session = None,
                 duracao_cache: int = DURACAO_CACHE):
        config = get_config()
        self.token = token if token is not None else config.fipe_token
        self.base_url = (base_url or config.fipe_base_url).rstrip("/")
        self.sessao = sessao or requests.Session()
        self.duracao_cache = duracao_cache
        self._cache: Dict[str, tuple] = {}
        self._lock = threading.Lock()

    def _ler_cache(self, chave: str):
        with self._lock:
            item = self._cache.get(chave)
            if item and item[1] > time.monotonic():
                return item[0]
            if item:
                del self._cache[chave]
        return None

    def _gravar_cache(self, chave: str, dados):
        with self._lock:
            self._cache[chave] = (dados, time.monotonic() + self.duracao_cache)

    def limpar_cache(self):
        with self._lock:
            self._cache.clear()

    def estatisticas_cache(self) -> Dict[str, Any]:
        with self._lock:
            return {"size": len(self._cache), "keys": list(self._cache.keys())}

    def consultar(self, codigo_fipe: str, ano, categoria: str = None, tipo_veiculo: str = None,
                  referencia: int = None) -> Dict[str, Any]:
        if not codigo_fipe:
            raise DadosInvalidos("fipeCode é obrigatório", "MISSING_FIPE_CODE")
        if not ano:
            raise DadosInvalidos("Ano (year) é obrigatório. Informe o ano do modelo.", "MISSING_YEAR")

        tipo = resolver_tipo_veiculo(tipo_veiculo, categoria)
        year_id = ano_para_year_id(ano)
        chave = f"{tipo}|{codigo_fipe}|{year_id}|{referencia or ''}"

        em_cache = self._ler_cache(chave)
        if em_cache is not None:
            return em_cache

        url = f"{self.base_url}/{tipo}/{requests.utils.quote(codigo_fipe, safe='')}/years/{year_id}"
        params = {"reference": referencia} if referencia else None
        headers = {"accept": "application/json", "content-type": "application/json"}
        if self.token:
            headers["X-Subscription-Token"] = self.token

        logger.info(f"[FIPE] Consultando {url}")
        try:
            response = self.sessao.get(url, headers=headers, params=params, timeout=TIMEOUT)
        except requests.RequestException as e:
            logger.error(f"[FIPE] Erro de rede: {e}")
            raise ErroIntegracao("Não foi possível conectar à API FIPE", "FIPE_UNAVAILABLE")

        if response.status_code != 200:
            mensagem = ("Código FIPE ou ano não encontrado na tabela FIPE" if response.status_code == 404
                        else f"Erro ao consultar FIPE: {response.status_code}")
            logger.error(f"[FIPE] Erro {response.status_code}: {response.text[:200]}")
            raise ErroIntegracao(mensagem, "FIPE_ERROR", status=response.status_code, detalhes=response.text)

        resultado = normalizar_resposta(response.json(), {
            "vehicleType": tipo,
            "fipeCode": codigo_fipe,
            "yearId": year_id,
            "reference": referencia,
        })
        self._gravar_cache(chave, resultado)
        return resultado


def atualizar_fipe_frota(empresa_id: str, ids: Iterable[str] = None, client=None, fipe: ClienteFipe = None,
                         pausa: float = 0.5) -> Dict[str, Any]:
    """
    Atualiza preço FIPE, marca, modelo, ano e combustível dos veículos da empresa.

    Veículos sem código FIPE ou sem ano, e os não encontrados na tabela (404),
    contam como ignorados; demais erros contam como falha e o lote continua.
    """
    client = client or get_supabase_admin()
    fipe = fipe or ClienteFipe()

    query = client.table("frota_veiculos") \
        .select("id, placa, codigo_fipe, ano_modelo, marca, modelo, categoria") \
        .eq("empresa_id", empresa_id)
    ids = list(ids or [])
    if ids:
        query = query.in_("id", ids)
    veiculos = query.execute().data or []

    resultado = {"total": len(veiculos), "success": 0, "failed": 0, "skipped": 0, "errors": []}
    if not veiculos:
        resultado["message"] = "Nenhum veículo encontrado para processar"
        return resultado

    logger.info(f"[Batch FIPE] Processando {len(veiculos)} veículos da empresa {empresa_id}")
    for i, veiculo in enumerate(veiculos):
        placa = veiculo.get("placa")
        if not veiculo.get("codigo_fipe"):
            resultado["skipped"] += 1
            resultado["errors"].append({"placa": placa, "error": "Código FIPE não preenchido"})
            continue
        if not veiculo.get("ano_modelo"):
            resultado["skipped"] += 1
            resultado["errors"].append({"placa": placa, "error": "Ano do modelo não preenchido"})
            continue

        if i and pausa:
            time.sleep(pausa)

        try:
            dados = fipe.consultar(veiculo["codigo_fipe"], veiculo["ano_modelo"], categoria=veiculo.get("categoria"))["data"]
        except ErroIntegracao as e:
            if e.status == 404:
                resultado["skipped"] += 1
            else:
                resultado["failed"] += 1
            resultado["errors"].append({"placa": placa, "error": e.mensagem})
            continue
        except DadosInvalidos as e:
            resultado["failed"] += 1
            resultado["errors"].append({"placa": placa, "error": e.mensagem})
            continue

        atualizacao: Dict[str, Any] = {"updated_at": agora_iso()}
        if dados.get("priceNumber"):
            atualizacao["preco_fipe"] = dados["priceNumber"]
        if dados.get("brand"):
            atualizacao["marca"] = dados["brand"]
        if dados.get("model"):
            atualizacao["modelo"] = dados["model"]
        if str(dados.get("modelYear") or "").isdigit():
            atualizacao["ano_modelo"] = int(dados["modelYear"])
        if dados.get("fuel"):
            atualizacao["combustivel"] = dados["fuel"]

        try:
            client.table("frota_veiculos").update(atualizacao).eq("id", veiculo["id"]).execute()
        except Exception as e:
            logger.error(f"[Batch FIPE] ✗ Erro ao atualizar {placa}: {e}")
            resultado["failed"] += 1
            resultado["errors"].append({"placa": placa, "error": f"Erro ao atualizar: {e}"})
            continue

        resultado["success"] += 1
        logger.info(f"[Batch FIPE] ✓ {placa} atualizado - Preço: {atualizacao.get('preco_fipe', 'N/A')}")

    logger.info(f"[Batch FIPE] Concluído - Sucesso: {resultado['success']}, Falhas: {resultado['failed']}, "
                f"Ignorados: {resultado['skipped']}")
    resultado["atualizado_em"] = datetime.now(timezone.utc).isoformat()
    return resultado
