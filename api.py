# api.py - API do SmartApólice (operações privilegiadas, FIPE, tokens e PDFs)
import logging
from dataclasses import asdict
from typing import List, Optional

from fastapi import Depends, FastAPI, File, Form, Header, HTTPException, UploadFile
from fastapi.responses import Response
from pydantic import BaseModel

from smartapolice import __version__
from smartapolice.config import get_config
from smartapolice.corpnuvem import ClienteCorpNuvem
from smartapolice.erros import ErroIntegracao, ErroSmartApolice
from smartapolice.fipe import ClienteFipe, atualizar_fipe_frota
from smartapolice.pdf_parser import extrair_dados_apolice, extrair_texto_pdf
from smartapolice.pdf_password import desbloquear_pdf, detectar_protecao_senha, validar_arquivo_pdf
from smartapolice.solicitacoes import aprovar_solicitacao_adm, decidir_ticket_corretora, rejeitar_solicitacao
from smartapolice.supabase_client import buscar_apolices, get_supabase, get_supabase_admin
from smartapolice.tokens import gerar_token_publico, validar_token_publico
from smartapolice.usuarios import alterar_senha, excluir_usuario, obter_usuario_do_token

# Configuração do logging para vermos mensagens detalhadas no Cloud Run
logging.basicConfig(level=get_config().log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title="SmartApólice API", version=__version__)


# ============================================================
# DEPENDÊNCIAS
# ============================================================

_fipe: Optional[ClienteFipe] = None
_corpnuvem: Optional[ClienteCorpNuvem] = None


def get_client():
    return get_supabase()


def get_admin_client():
    return get_supabase_admin()


def get_fipe() -> ClienteFipe:
    """Um único cliente FIPE por processo, para o cache de 12 horas valer entre requisições."""
    global _fipe
    if _fipe is None:
        _fipe = ClienteFipe()
    return _fipe


def get_corpnuvem() -> ClienteCorpNuvem:
    """Um cliente CorpNuvem por processo, para reaproveitar o token de login."""
    global _corpnuvem
    if _corpnuvem is None:
        _corpnuvem = ClienteCorpNuvem()
    return _corpnuvem


def usuario_autenticado(authorization: str = Header(None), admin=Depends(get_admin_client)):
    try:
        return obter_usuario_do_token(authorization, client=admin)
    except ErroSmartApolice as e:
        raise _como_http(e)


def _como_http(e: ErroSmartApolice) -> HTTPException:
    status = e.status_http
    if isinstance(e, ErroIntegracao) and e.status == 404:
        status = 404
    return HTTPException(status_code=status, detail=e.como_dict()["error"])


# ============================================================
# MODELOS
# ============================================================

class PedidoTokenPublico(BaseModel):
    employeeId: str
    validityDays: int = 7


class PedidoValidarToken(BaseModel):
    token: str


class PedidoFipe(BaseModel):
    fipeCode: str
    year: str
    category: Optional[str] = None
    vehicleType: Optional[str] = None
    reference: Optional[int] = None


class PedidoFipeLote(BaseModel):
    empresaId: str
    vehicleIds: List[str] = []


class PedidoAprovacao(BaseModel):
    note: Optional[str] = None


class PedidoRejeicao(BaseModel):
    motivo: str
    papel: str = "adm"


class PedidoDecisaoTicket(BaseModel):
    action: str
    note: Optional[str] = None


class PedidoExcluirUsuario(BaseModel):
    user_id: str


class PedidoAlterarSenha(BaseModel):
    currentPassword: str
    newPassword: str


# ============================================================
# ROTAS
# ============================================================

@app.get("/")
def read_root():
    """Endpoint raiz para verificar se a API está online."""
    return {"status": "SmartApólice API está online!", "version": __version__}


@app.get("/apolices/")
def get_apolices(termo: Optional[str] = None, empresa_id: Optional[str] = None, client=Depends(get_client)):
    """
    Busca apólices por número, segurado ou placa.
    """
    logger.info("Recebido pedido para /apolices/")
    try:
        apolices = buscar_apolices(termo, empresa_id, client=client)
        logger.info(f"Encontradas {len(apolices)} apólices.")
        return apolices
    except Exception as e:
        logger.error(f"Erro ao buscar apólices: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Erro interno ao buscar dados das apólices.")


# --- Tokens públicos ---

@app.post("/tokens/publico")
def criar_token_publico(pedido: PedidoTokenPublico):
    try:
        return {"ok": True, **gerar_token_publico(pedido.employeeId, pedido.validityDays)}
    except ErroSmartApolice as e:
        raise _como_http(e)


@app.post("/tokens/validar")
def validar_token(pedido: PedidoValidarToken):
    try:
        payload = validar_token_publico(pedido.token)
    except ErroSmartApolice as e:
        raise _como_http(e)
    if not payload:
        return {"ok": True, "valid": False}
    return {"ok": True, "valid": True, "employeeId": payload["employeeId"], "exp": payload.get("exp")}


# --- FIPE ---

@app.post("/fipe/consulta")
def consultar_fipe(pedido: PedidoFipe, fipe: ClienteFipe = Depends(get_fipe)):
    try:
        return fipe.consultar(pedido.fipeCode, pedido.year, categoria=pedido.category,
                              tipo_veiculo=pedido.vehicleType, referencia=pedido.reference)
    except ErroSmartApolice as e:
        raise _como_http(e)


@app.post("/fipe/lote")
def atualizar_fipe_lote(pedido: PedidoFipeLote, usuario=Depends(usuario_autenticado),
                        admin=Depends(get_admin_client), fipe: ClienteFipe = Depends(get_fipe)):
    logger.info(f"[Batch FIPE] Pedido de {usuario.id} para a empresa {pedido.empresaId}")
    try:
        return {"ok": True, **atualizar_fipe_frota(pedido.empresaId, pedido.vehicleIds, client=admin, fipe=fipe)}
    except ErroSmartApolice as e:
        raise _como_http(e)


# --- Solicitações e tickets ---

@app.post("/solicitacoes/{request_id}/aprovar")
def aprovar_solicitacao(request_id: str, pedido: PedidoAprovacao, usuario=Depends(usuario_autenticado),
                        admin=Depends(get_admin_client)):
    logger.info(f"Processing admin approval for request: {request_id}")
    try:
        dados = aprovar_solicitacao_adm(request_id, pedido.note, client=admin)
    except ErroSmartApolice as e:
        raise _como_http(e)
    if dados.get("existed"):
        return {"ok": True, "message": "Ticket já existe para esta solicitação", "data": dados}
    return {"ok": True, "data": dados}


@app.post("/solicitacoes/{request_id}/rejeitar")
def rejeitar(request_id: str, pedido: PedidoRejeicao, usuario=Depends(usuario_autenticado),
             admin=Depends(get_admin_client)):
    try:
        return {"ok": True, "data": rejeitar_solicitacao(request_id, pedido.motivo, pedido.papel, client=admin)}
    except ErroSmartApolice as e:
        raise _como_http(e)


@app.post("/tickets/{ticket_id}/decisao")
def decidir_ticket(ticket_id: str, pedido: PedidoDecisaoTicket, usuario=Depends(usuario_autenticado),
                   admin=Depends(get_admin_client)):
    try:
        dados = decidir_ticket_corretora(ticket_id, pedido.action, pedido.note, client=admin)
    except ErroSmartApolice as e:
        raise _como_http(e)
    return {"ok": True, "message": f"Ticket {dados['status']} com sucesso", "data": dados}


# --- CorpNuvem (ERP) ---

@app.get("/corpnuvem/ramos")
def listar_ramos(usuario=Depends(usuario_autenticado), corpnuvem: ClienteCorpNuvem = Depends(get_corpnuvem)):
    try:
        return {"ok": True, "data": corpnuvem.ramos()}
    except ErroSmartApolice as e:
        raise _como_http(e)


@app.get("/corpnuvem/clientes/{codfil}/{codigo}")
def cliente_corpnuvem(codfil: int, codigo: int, usuario=Depends(usuario_autenticado),
                      corpnuvem: ClienteCorpNuvem = Depends(get_corpnuvem)):
    """Cadastro completo do cliente no ERP (contatos, sinistros, renovações, negócios e anexos)."""
    logger.info(f"[CorpNuvem] Cliente {codfil}/{codigo} pedido por {usuario.id}")
    try:
        return {"ok": True, "data": corpnuvem.cliente_detalhado(codfil, codigo)}
    except ErroSmartApolice as e:
        raise _como_http(e)


# --- Usuários ---

@app.post("/admin/usuarios/excluir")
def excluir(pedido: PedidoExcluirUsuario, usuario=Depends(usuario_autenticado), admin=Depends(get_admin_client)):
    try:
        return excluir_usuario(usuario.id, pedido.user_id, client=admin)
    except ErroSmartApolice as e:
        raise _como_http(e)
    except Exception as e:
        logger.error(f"Erro ao deletar usuário: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/auth/alterar-senha")
def trocar_senha(pedido: PedidoAlterarSenha, authorization: str = Header(None), client=Depends(get_client),
                 admin=Depends(get_admin_client)):
    try:
        return alterar_senha(authorization, pedido.currentPassword, pedido.newPassword,
                             client=client, client_admin=admin)
    except ErroSmartApolice as e:
        raise _como_http(e)
    except Exception as e:
        logger.error(f"Update password error: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Erro ao atualizar senha: {e}")


# --- PDFs ---

async def _ler_pdf(arquivo: UploadFile) -> bytes:
    if not validar_arquivo_pdf(arquivo.filename, arquivo.content_type):
        raise HTTPException(status_code=400, detail={"code": "INVALID_FILE", "message": "Envie um arquivo PDF"})
    return await arquivo.read()


@app.post("/pdf/status")
async def status_pdf(arquivo: UploadFile = File(...)):
    conteudo = await _ler_pdf(arquivo)
    return asdict(detectar_protecao_senha(conteudo))


@app.post("/pdf/desbloquear")
async def desbloquear(arquivo: UploadFile = File(...), senha: str = Form(...)):
    conteudo = await _ler_pdf(arquivo)
    resultado = desbloquear_pdf(conteudo, senha)
    if not resultado.sucesso:
        raise HTTPException(status_code=400, detail={"code": "UNLOCK_FAILED", "message": resultado.erro})
    return Response(content=resultado.pdf_bytes, media_type="application/pdf",
                    headers={"Content-Disposition": f'attachment; filename="{arquivo.filename}"'})


@app.post("/pdf/extrair")
async def extrair(arquivo: UploadFile = File(...), senha: Optional[str] = Form(None)):
    conteudo = await _ler_pdf(arquivo)
    try:
        dados = extrair_dados_apolice(extrair_texto_pdf(conteudo, senha))
    except ErroSmartApolice as e:
        raise _como_http(e)
    return {"ok": True, "data": dados}
