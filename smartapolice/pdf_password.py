import io
import logging
from dataclasses import dataclass
from typing import Optional

from pypdf import PasswordType, PdfReader, PdfWriter
from pypdf.errors import PyPdfError

logger = logging.getLogger(__name__)

MIME_PDF = "application/pdf"


@dataclass
class StatusSenhaPDF:
    protegido: bool
    requer_senha: bool
    pode_desbloquear: bool


@dataclass
class ResultadoDesbloqueio:
    sucesso: bool
    pdf_bytes: Optional[bytes] = None
    erro: Optional[str] = None


def detectar_protecao_senha(pdf_bytes: bytes) -> StatusSenhaPDF:
    """
    Verifica se o PDF está criptografado e se abre sem senha de usuário.

    PDFs com apenas senha de proprietário (restrição de impressão/cópia)
    abrem com senha vazia: são protegidos mas não exigem senha.
    """
    try:
        reader = PdfReader(io.BytesIO(pdf_bytes))
        if not reader.is_encrypted:
            return StatusSenhaPDF(protegido=False, requer_senha=False, pode_desbloquear=True)

        abre_sem_senha = reader.decrypt("") != PasswordType.NOT_DECRYPTED
        return StatusSenhaPDF(protegido=True, requer_senha=not abre_sem_senha, pode_desbloquear=True)
    except (PyPdfError, ValueError, OSError) as e:
        logger.error(f"Erro ao analisar PDF: {e}")
        return StatusSenhaPDF(protegido=False, requer_senha=False, pode_desbloquear=False)


def desbloquear_pdf(pdf_bytes: bytes, senha: str) -> ResultadoDesbloqueio:
    """Decripta o PDF com a senha informada e devolve uma cópia sem proteção."""
    try:
        reader = PdfReader(io.BytesIO(pdf_bytes))
        if reader.is_encrypted and reader.decrypt(senha or "") == PasswordType.NOT_DECRYPTED:
            return ResultadoDesbloqueio(sucesso=False, erro="Senha incorreta")

        writer = PdfWriter()
        for pagina in reader.pages:
            writer.add_page(pagina)
        if reader.metadata:
            writer.add_metadata({k: str(v) for k, v in reader.metadata.items()})

        saida = io.BytesIO()
        writer.write(saida)
        return ResultadoDesbloqueio(sucesso=True, pdf_bytes=saida.getvalue())
    except (PyPdfError, ValueError, OSError) as e:
        logger.error(f"Erro ao desbloquear PDF: {e}")
        mensagem = "Senha incorreta" if "password" in str(e).lower() else "Erro ao processar o arquivo"
        return ResultadoDesbloqueio(sucesso=False, erro=mensagem)


def validar_arquivo_pdf(nome_arquivo: str, mime_type: str = None) -> bool:
    return mime_type == MIME_PDF or (nome_arquivo or "").lower().endswith(".pdf")
