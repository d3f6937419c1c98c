import logging
import re
import unicodedata
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Pattern, Tuple

logger = logging.getLogger(__name__)

NAO_IDENTIFICADA = "Seguradora não identificada"

SEGURADORAS = [
    "Porto Seguro",
    "Azul Seguros",
    "Itaú Seguros",
    "Bradesco Seguros",
    "SulAmérica Seguros",
    "Allianz Seguros",
    "Tokio Marine Seguradora",
    "HDI Seguros",
    "Yelum Seguros",
    "Liberty Seguros",
    "Mapfre Seguros",
    "Zurich Seguros",
    "Sompo Seguros",
    "Mitsui Sumitomo Seguros",
    "Suhai Seguradora",
    "Alfa Seguradora",
    "Kovr Seguradora",
    "Essor Seguros",
    "Pottencial Seguradora",
    "Ezze Seguros",
    "Youse Seguros",
]

STOPWORDS = {"seguros", "seguradora", "cia", "companhia", "ltda", "s.a.", "sa"}
SCORE_MINIMO_PALAVRAS = 0.7
SIMILARIDADE_MINIMA = 0.3

_LETRAS = "a-záâêôãõçàéíóúü"


def _r(padrao: str) -> Pattern:
    return re.compile(padrao, re.IGNORECASE)


PADROES_GENERICOS: Dict[str, Pattern] = {
    "numero_apolice": _r(r"(?:apólice|apolice|número|numero|n[°º])\s*:?\s*([0-9][0-9.-]*)"),
    "premio_anual": _r(r"(?:prêmio|premio)\s*(?:total|anual)?\s*(?:\(r\$\))?\s*:?\s*(?:r\$)?\s*([\d.,]+)"),
    "premio_mensal": _r(r"(?:parcela|mensal|mês)\s*(?:\(r\$\))?\s*:?\s*(?:r\$)?\s*([\d.,]+)"),
    "inicio_vigencia": _r(r"(?:início|inicio|vigência|de)\s*:?\s*(\d{2}/\d{2}/\d{4})"),
    "fim_vigencia": _r(r"(?:fim|final|até|término)\s*:?\s*(\d{2}/\d{2}/\d{4})"),
    "segurado": _r(rf"(?:segurado|nome)\s*:?[ \t]*([{_LETRAS} ]+)"),
    "corretor": _r(rf"(?:corretor|corretora|emitido\s+por)\s*:?[ \t]*([{_LETRAS} &.-]+)"),
}


@dataclass
class ConfigSeguradora:
    nome: str
    palavras_chave: List[str]
    padroes: Dict[str, Pattern] = field(default_factory=lambda: dict(PADROES_GENERICOS))
    categoria_padrao: str = "Categoria Padrão"
    cobertura_padrao: str = "Cobertura Básica"


def _config(nome, palavras_chave, categoria, cobertura, **padroes) -> ConfigSeguradora:
    combinados = dict(PADROES_GENERICOS)
    combinados.update({campo: _r(p) for campo, p in padroes.items()})
    return ConfigSeguradora(nome, palavras_chave, combinados, categoria, cobertura)


CONFIGS_SEGURADORAS = [
    _config("Porto Seguro", ["porto seguro", "porto seguro cia"], "Automóvel", "Compreensiva",
            numero_apolice=r"apólice\s*(?:n[°º]|número)?\s*:?\s*(\d{3}\.?\d{2}\.?\d{2}\.?\d{6})"),
    _config("Bradesco Seguros", ["bradesco auto", "bradesco seguros"], "Automóvel", "Compreensiva",
            premio_anual=r"prêmio\s+total\s*(?:\(r\$\))?\s*:?\s*(?:r\$)?\s*([\d.,]+)"),
    _config("Tokio Marine Seguradora", ["tokio marine"], "Automóvel", "Compreensiva"),
    _config("Allianz Seguros", ["allianz"], "Automóvel", "Compreensiva"),
    _config("SulAmérica Seguros", ["sulamerica", "sul america"], "Saúde", "Plano Empresarial"),
    _config("HDI Seguros", ["hdi seguros", "hdi"], "Automóvel", "Compreensiva"),
    _config("Kovr Seguradora", ["kovr"], "Frota", "RCF-V",
            numero_apolice=r"apólice\s+número\s*:?\s*(\d{10,16})",
            inicio_vigencia=r"das\s+24:00\s*h\s+do\s+dia\s+(\d{2}/\d{2}/\d{4})"),
]


def normalizar(texto: str) -> str:
    """Minúsculas e sem acentos (decomposição NFD sem as marcas combinantes)."""
    decomposto = unicodedata.normalize("NFD", texto.lower())
    return "".join(c for c in decomposto if not unicodedata.combining(c))


def extrair_secoes_prioritarias(texto: str) -> List[Tuple[str, str]]:
    secoes = []

    emitido_por = re.search(r"emitido\s+por\s+([^\n.]{5,100})", texto, re.IGNORECASE)
    if emitido_por:
        secoes.append(("emitido_por", emitido_por.group(1).strip()))

    corretor = re.search(r"dados\s+do\s+corretor.*?([a-z\s&.-]{10,150})", texto, re.IGNORECASE | re.DOTALL)
    if corretor:
        secoes.append(("dados_corretor", corretor.group(1).strip()))

    secoes.append(("cabecalho", texto[:500]))

    for i, cnpj in enumerate(re.findall(r"\d{2}\.\d{3}\.\d{3}/\d{4}-\d{2}", texto)):
        posicao = texto.find(cnpj)
        secoes.append((f"contexto_cnpj_{i}", texto[max(0, posicao - 100):posicao + 200]))

    return secoes


def extrair_palavras_chave(nome_normalizado: str) -> List[str]:
    return [p for p in nome_normalizado.split() if len(p) > 2 and p not in STOPWORDS]


def calcular_score(texto: str, palavras_chave: List[str]) -> float:
    """Fração ponderada das palavras-chave presentes; palavras com mais de 4 letras pesam 2."""
    if not palavras_chave:
        return 0.0
    encontrado = 0
    total = 0
    for palavra in palavras_chave:
        peso = 2 if len(palavra) > 4 else 1
        total += peso
        if palavra in texto:
            encontrado += peso
    return encontrado / total


def distancia_levenshtein(a: str, b: str) -> int:
    if len(a) < len(b):
        a, b = b, a
    anterior = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        atual = [i]
        for j, cb in enumerate(b, start=1):
            atual.append(min(
                anterior[j] + 1,
                atual[j - 1] + 1,
                anterior[j - 1] + (ca != cb),
            ))
        anterior = atual
    return anterior[-1]


def similaridade(a: str, b: str) -> float:
    maior = max(len(a), len(b))
    if maior == 0:
        return 1.0
    return (maior - distancia_levenshtein(a, b)) / maior


def _busca_aproximada(texto: str) -> Optional[str]:
    melhor, melhor_score = None, 0.0
    for seguradora in SEGURADORAS:
        score = similaridade(texto, normalizar(seguradora))
        if score > melhor_score and score > SIMILARIDADE_MINIMA:
            melhor, melhor_score = seguradora, score
    return melhor


def detectar_seguradora(texto_pdf: str) -> str:
    """
    Identifica a seguradora emissora a partir do texto da apólice.

    Percorre as seções prioritárias (emitido por, dados do corretor,
    cabeçalho, contexto dos CNPJs) procurando o nome completo ou palavras-chave
    suficientes; como último recurso compara o texto inteiro por similaridade.
    """
    texto = normalizar(texto_pdf or "")

    for nome_secao, trecho in extrair_secoes_prioritarias(texto):
        if not trecho.strip():
            continue
        for seguradora in SEGURADORAS:
            nome = normalizar(seguradora)
            if nome in trecho:
                logger.info(f"✅ Seguradora detectada (exata): {seguradora} na seção {nome_secao}")
                return seguradora
            score = calcular_score(trecho, extrair_palavras_chave(nome))
            if score >= SCORE_MINIMO_PALAVRAS:
                logger.info(f"✅ Seguradora detectada (similaridade {score:.2f}): {seguradora}")
                return seguradora

    aproximada = _busca_aproximada(texto)
    if aproximada:
        logger.info(f"✅ Seguradora detectada (fuzzy): {aproximada}")
        return aproximada

    logger.info("⚠️ Seguradora não identificada")
    return NAO_IDENTIFICADA


def obter_config_seguradora(nome: str) -> ConfigSeguradora:
    for config in CONFIGS_SEGURADORAS:
        if config.nome.lower() == (nome or "").lower():
            return config
    # Seguradora sem configuração própria usa os padrões genéricos
    return ConfigSeguradora(nome=nome, palavras_chave=[(nome or "").lower()])
