import io
import logging
import re
from datetime import date, datetime
from typing import Any, Dict, Optional

from pypdf import PasswordType, PdfReader
from pypdf.errors import PyPdfError

from smartapolice.erros import DadosInvalidos
from smartapolice.seguradoras import detectar_seguradora, obter_config_seguradora

logger = logging.getLogger(__name__)

CAMPOS_MONETARIOS = ("premio_anual", "premio_mensal")
CAMPOS_DATA = ("inicio_vigencia", "fim_vigencia")


def extrair_texto_pdf(pdf_bytes: bytes, senha: str = None) -> str:
    """Texto de todas as páginas, decriptando com `senha` quando o PDF for protegido."""
    try:
        reader = PdfReader(io.BytesIO(pdf_bytes))
        if reader.is_encrypted and reader.decrypt(senha or "") == PasswordType.NOT_DECRYPTED:
            raise DadosInvalidos("PDF protegido por senha: informe a senha correta", "PDF_PASSWORD_REQUIRED")
        return "\n".join((pagina.extract_text() or "") for pagina in reader.pages)
    except (PyPdfError, ValueError, OSError) as e:
        logger.error(f"Erro ao ler PDF: {e}")
        raise DadosInvalidos("Não foi possível ler o arquivo PDF", "INVALID_PDF")


def extrair_codigo_de_barras(pdf_bytes: bytes, senha: str = None) -> Optional[str]:
    """
    Lê um boleto em PDF e tenta encontrar a linha digitável.
    """
    texto_completo = extrair_texto_pdf(pdf_bytes, senha)
    texto_limpo = texto_completo.replace('\n', ' ').replace('  ', ' ')

    # Boleto formatado (AAAAA.AAAAA BBBBB.BBBBBB CCCCC.CCCCCC D EEEEEEEEEEEEEE)
    padrao_linha_digitavel = r'\d{5}\.?\d{5} ?\d{5}\.?\d{6} ?\d{5}\.?\d{6} ?\d ?\d{14}'
    match = re.search(padrao_linha_digitavel, texto_limpo)
    if match:
        return match.group(0)

    # Sequência bruta de 47 dígitos
    numeros = re.sub(r'\D', '', texto_completo)
    match_bruto = re.search(r'\d{47}', numeros)
    if match_bruto:
        c = match_bruto.group(0)
        return f"{c[:5]}.{c[5:10]} {c[10:15]}.{c[15:21]} {c[21:26]}.{c[26:32]} {c[32]} {c[33:]}"

    return None


def valor_brl(texto) -> Optional[float]:
    """
    Número em formato brasileiro: '1.234,56' -> 1234.56, 'R$ 1.500' -> 1500.0.

    A vírgula é a casa decimal. Sem vírgula, ponto seguido de exatamente três
    dígitos é separador de milhar; qualquer outro ponto é decimal ('1234.5').
    """
    if isinstance(texto, (int, float)):
        return float(texto)
    if not texto:
        return None
    limpo = re.sub(r"[^\d,.-]", "", str(texto)).rstrip(".,")
    if "," in limpo:
        limpo = limpo.replace(".", "").replace(",", ".")
    else:
        limpo = re.sub(r"\.(?=\d{3}(?!\d))", "", limpo)
    try:
        return float(limpo)
    except ValueError:
        return None


def data_br(texto: str) -> Optional[date]:
    try:
        return datetime.strptime(texto.strip(), "%d/%m/%Y").date()
    except (ValueError, AttributeError):
        return None


def extrair_dados_apolice(texto: str) -> Dict[str, Any]:
    """
    Extrai os campos principais da apólice com os padrões da seguradora detectada.
    Campos não encontrados voltam como None.
    """
    seguradora = detectar_seguradora(texto)
    config = obter_config_seguradora(seguradora)

    dados: Dict[str, Any] = {"seguradora": seguradora}
    for campo, padrao in config.padroes.items():
        match = padrao.search(texto)
        bruto = match.group(1).strip() if match else None
        if campo in CAMPOS_MONETARIOS:
            dados[campo] = valor_brl(bruto)
        elif campo in CAMPOS_DATA:
            dados[campo] = data_br(bruto) if bruto else None
        else:
            dados[campo] = bruto or None

    dados["categoria"] = config.categoria_padrao
    dados["cobertura"] = config.cobertura_padrao
    return dados
