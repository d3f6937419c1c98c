import streamlit as st

# DEVE SER O PRIMEIRO COMANDO STREAMLIT
st.set_page_config(
    page_title="SmartApólice - Gestão de Apólices e Frotas",
    page_icon="🛡️",
    layout="wide",
    initial_sidebar_state="expanded",
)
import logging
from datetime import date, timedelta

import pandas as pd

from smartapolice.busca_veiculos import BuscaVeiculos
from smartapolice.corpnuvem import PARTES_CLIENTE, ClienteCorpNuvem
from smartapolice.erros import ErroSmartApolice
from smartapolice.fipe import atualizar_fipe_frota
from smartapolice.frotas import (STATUS_SEGURO, alterar_status_seguro, buscar_veiculos, kpis_frota,
                                 obter_apolice_do_veiculo, verificar_categoria_outros, verificar_e_corrigir_outros)
from smartapolice.parcelas import (criar_parcelas_estendidas, filtrar_proximas, filtrar_vencidas,
                                   gerar_parcelas_simuladas, resumo_parcelas)
from smartapolice.pdf_parser import extrair_dados_apolice, extrair_texto_pdf
from smartapolice.pdf_password import desbloquear_pdf, detectar_protecao_senha
from smartapolice.solicitacoes import (aprovar_solicitacao_adm, decidir_ticket_corretora, kpis_solicitacoes,
                                       listar_solicitacoes, rejeitar_solicitacao)
from smartapolice.supabase_client import (apolices_dataframe, buscar_parcelas, buscar_parcelas_pendentes,
                                          get_supabase, get_supabase_admin, marcar_parcela_paga, recriar_parcelas,
                                          salvar_apolice, salvar_arquivo)
from smartapolice.tickets import (SUBTIPOS, TRANSICOES, adicionar_comentario, alterar_status_ticket, criar_ticket,
                                  kpis_tickets, listar_movimentos, listar_tickets)

logger = logging.getLogger(__name__)

try:
    supabase = get_supabase()
except ErroSmartApolice as e:
    st.error(f"ERRO CRÍTICO DE CONEXÃO: {e.mensagem}")
    st.info("Verifique se suas 'Secrets' no Streamlit Cloud estão corretas (formato TOML) e reinicie o app.")
    st.stop()


def _brl(valor) -> str:
    return f"R$ {valor:,.2f}".replace(",", "X").replace(".", ",").replace("X", ".")


def login_user(email, senha):
    """Tenta autenticar o usuário usando o Supabase Auth."""
    try:
        auth_response = supabase.auth.sign_in_with_password({
            "email": email.strip(),
            "password": senha.strip()
        })
    except Exception as e:
        logger.info(f"Login recusado para {email}: {e}")
        return None

    usuario = auth_response.user
    metadata = usuario.user_metadata or {}
    return {
        'id': usuario.id,
        'email': usuario.email,
        'nome': metadata.get('nome_completo', usuario.email.split('@')[0]),
        'perfil': metadata.get('perfil', 'user'),
        'empresa_id': metadata.get('empresa_id'),
    }


# --- RENDERIZAÇÃO DA INTERFACE ---

def render_dashboard():
    st.title("📊 Painel de Controle")
    empresa_id = st.session_state.empresa_id
    tab_parcelas, tab_renovacoes = st.tabs(["📊 Controle de Parcelas", "🔥 Controle de Renovações"])

    with tab_parcelas:
        st.subheader("Visão Financeira (Parcelas)")
        try:
            pendentes = buscar_parcelas_pendentes(empresa_id)
            apolices_df = apolices_dataframe(empresa_id=empresa_id)
        except Exception as e:
            st.error(f"Erro ao carregar dados do Supabase para o painel de parcelas: {e}")
            st.stop()

        hoje = date.today()
        cronograma = [{"data": p["data_vencimento"], "valor": float(p.get("valor") or 0), "status": p["status"]}
                      for p in pendentes]
        resumo = resumo_parcelas(cronograma, hoje)

        col1, col2, col3, col4 = st.columns(4)
        col1.metric("Total de Apólices", len(apolices_df))
        col2.metric("Parcelas Pendentes", resumo["pendentes"]["quantidade"])
        if st.session_state.user_perfil == 'admin':
            col3.metric("Valor Total Pendente", _brl(resumo["pendentes"]["valor"]))
        col4.metric("Vencidas", resumo["vencidas"]["quantidade"], _brl(resumo["vencidas"]["valor"]),
                    delta_color="inverse")

        st.divider()
        st.subheader("Parcelas a vencer nos próximos 30 dias")
        proximas = [p for p in pendentes if hoje <= date.fromisoformat(p["data_vencimento"][:10])
                    <= hoje + timedelta(days=30)]
        if proximas:
            df = pd.DataFrame(proximas).sort_values(by="data_vencimento")
            df["data_vencimento"] = pd.to_datetime(df["data_vencimento"]).dt.strftime("%d/%m/%Y")
            st.dataframe(df[["segurado", "numero_apolice", "numero_parcela", "data_vencimento", "valor"]],
                         use_container_width=True)
            with st.expander("✅ Dar baixa em parcela"):
                escolha = st.selectbox("Parcela", proximas, format_func=lambda p: (
                    f"{p['numero_apolice']} - {p['numero_parcela']}ª parcela ({p['data_vencimento'][:10]})"))
                if st.button("Marcar como paga"):
                    marcar_parcela_paga(escolha["id"])
                    st.toast("Parcela marcada como paga", icon="✅")
                    st.rerun()
        else:
            st.info("Nenhuma parcela pendente nos próximos 30 dias.")

    with tab_renovacoes:
        st.subheader("Visão de Renovação de Apólices")
        if apolices_df.empty:
            st.info("Nenhuma apólice cadastrada para analisar as renovações.")
            return

        col1, col2, col3 = st.columns(3)
        col1.metric("Total de Apólices", len(apolices_df))
        a_renovar = apolices_df[apolices_df["dias_restantes"].between(0, 60)]
        col2.metric("Apólices a Renovar", len(a_renovar), "Próximos 60 dias")
        expiradas = apolices_df[apolices_df["dias_restantes"] < 0]
        col3.metric("Apólices Expiradas", len(expiradas))

        st.divider()
        prioridades = ['🔥 Urgente', '⚠️ Alta', '⚠️ Média', '✅ Baixa', '⚪ Expirada']
        colunas = [c for c in ['segurado', 'numero_apolice', 'seguradora', 'fim_vigencia', 'dias_restantes']
                   if c in apolices_df.columns]
        for tab, prioridade in zip(st.tabs(prioridades), prioridades):
            with tab:
                df = apolices_df[apolices_df["prioridade"] == prioridade]
                if df.empty:
                    st.info(f"Nenhuma apólice com prioridade '{prioridade.split(' ')[-1]}'.")
                else:
                    st.dataframe(df[colunas], use_container_width=True)


def _ler_pdf_enviado(arquivo):
    """Bytes legíveis do PDF enviado, pedindo a senha quando o arquivo for protegido."""
    conteudo = arquivo.getvalue()
    status = detectar_protecao_senha(conteudo)
    if not status.pode_desbloquear:
        st.error("Não foi possível analisar o arquivo PDF.")
        return None
    if not status.requer_senha:
        return conteudo

    st.warning("🔒 Este PDF está protegido por senha.")
    senha = st.text_input("Senha do PDF", type="password", key=f"senha_{arquivo.name}")
    if not senha:
        return None
    resultado = desbloquear_pdf(conteudo, senha)
    if not resultado.sucesso:
        st.error(resultado.erro)
        return None
    st.success("PDF desbloqueado com sucesso.")
    return resultado.pdf_bytes


def render_apolices():
    st.title("📄 Apólices")
    empresa_id = st.session_state.empresa_id
    tab_cadastro, tab_pesquisa = st.tabs(["➕ Cadastrar Apólice", "🔍 Pesquisar e Editar"])

    with tab_cadastro:
        if 'dados_extraidos' not in st.session_state:
            st.session_state.dados_extraidos = {}

        with st.expander("📂 Preenchimento automático a partir do PDF", expanded=True):
            arquivo = st.file_uploader("Suba a Apólice (PDF)", type=["pdf"], key="pdf_apolice")
            if arquivo:
                conteudo = _ler_pdf_enviado(arquivo)
                if conteudo and st.button("Ler apólice"):
                    with st.spinner("Lendo apólice..."):
                        try:
                            dados = extrair_dados_apolice(extrair_texto_pdf(conteudo))
                        except ErroSmartApolice as e:
                            st.error(e.mensagem)
                        else:
                            st.session_state.dados_extraidos = dados
                            st.session_state.pdf_apolice_bytes = conteudo
                            st.success(f"Seguradora detectada: {dados['seguradora']}")

        dados = st.session_state.dados_extraidos
        with st.form("form_cadastro", clear_on_submit=False):
            col1, col2 = st.columns(2)
            with col1:
                seguradora = st.text_input("Seguradora*", value=dados.get("seguradora") or "")
                numero_apolice = st.text_input("Número da Apólice*", value=dados.get("numero_apolice") or "")
                segurado = st.text_input("Segurado*", value=dados.get("segurado") or "")
                placa = st.text_input("🚗 Placa (opcional)", max_chars=10)
            with col2:
                inicio = st.date_input("📅 Início de Vigência*", value=dados.get("inicio_vigencia") or date.today(),
                                       format="DD/MM/YYYY")
                fim = st.date_input("📅 Fim de Vigência", value=dados.get("fim_vigencia"), format="DD/MM/YYYY")
                premio_anual = st.text_input("💰 Prêmio anual (R$)*",
                                             value=f"{dados.get('premio_anual') or 0:.2f}".replace(".", ","))
                categoria = st.text_input("Categoria", value=dados.get("categoria") or "")
            contato = st.text_input("📱 Contato do Segurado", max_chars=100)

            if st.form_submit_button("💾 Salvar Apólice", use_container_width=True):
                try:
                    apolice = salvar_apolice({
                        "empresa_id": empresa_id, "seguradora": seguradora, "numero_apolice": numero_apolice,
                        "segurado": segurado, "placa": placa, "inicio_vigencia": inicio, "fim_vigencia": fim,
                        "premio_anual": premio_anual, "categoria": categoria, "contato": contato,
                        "corretor": dados.get("corretor"), "cobertura": dados.get("cobertura"),
                    }, usuario=st.session_state.user_email)
                    if st.session_state.get("pdf_apolice_bytes"):
                        url = salvar_arquivo(st.session_state.pdf_apolice_bytes, f"{numero_apolice}.pdf",
                                             empresa_id, numero_apolice)
                        supabase.table("apolices").update({"arquivo_url": url}).eq("id", apolice["id"]).execute()
                    st.session_state.dados_extraidos = {}
                    st.session_state.pdf_apolice_bytes = None
                    st.success(f"🎉 Apólice '{numero_apolice}' salva com sucesso!")
                except ErroSmartApolice as e:
                    st.error(e.mensagem)
                except Exception as e:
                    st.error(f"❌ Erro ao salvar: {e}")

    with tab_pesquisa:
        termo = st.text_input("Pesquisar por Nº Apólice, Segurado ou Placa:", key="search_box")
        if not termo:
            return
        resultados = apolices_dataframe(termo, empresa_id)
        if resultados.empty:
            st.info("Nenhuma apólice encontrada com o termo pesquisado.")
            return

        st.success(f"{len(resultados)} apólice(s) encontrada(s).")
        resultados = resultados.astype(object).where(resultados.notna(), None)
        for _, apolice in resultados.iterrows():
            apolice_id = apolice["id"]
            with st.expander(f"**{apolice['numero_apolice']}** - {apolice.get('segurado')}"):
                parcelas = buscar_parcelas(apolice_id)
                if parcelas:
                    st.dataframe(pd.DataFrame(parcelas)[["numero_parcela", "data_vencimento", "valor", "status"]],
                                 use_container_width=True)
                else:
                    st.caption("Sem parcelas cadastradas; cronograma simulado:")
                    st.dataframe(pd.DataFrame(gerar_parcelas_simuladas(apolice.to_dict())), use_container_width=True)

                with st.form(f"parcelas_{apolice_id}"):
                    st.subheader("📝 Recriar parcelas")
                    c1, c2, c3, c4 = st.columns(4)
                    quantidade = c1.number_input("Quantidade*", min_value=1, max_value=24, value=12)
                    valor = c2.text_input("Valor da parcela (R$)*", value="0,00")
                    primeiro = c3.date_input("1º vencimento*", format="DD/MM/YYYY")
                    dia = c4.number_input("Dia das demais*", min_value=1, max_value=31, value=10)
                    if st.form_submit_button("Gerar parcelas"):
                        try:
                            recriar_parcelas(apolice_id, int(quantidade), valor, primeiro, int(dia),
                                             usuario=st.session_state.user_email)
                            st.success("Parcelas recriadas.")
                            st.rerun()
                        except ErroSmartApolice as e:
                            st.error(e.mensagem)


def render_frota():
    st.title("🚚 Frota")
    empresa_id = st.session_state.empresa_id

    veiculos = supabase.table("frota_veiculos").select("*").eq("empresa_id", empresa_id).execute().data or []
    kpis = kpis_frota(veiculos)
    col1, col2, col3 = st.columns(3)
    col1.metric("Veículos", kpis["total"])
    col2.metric("Segurados", kpis["por_status_seguro"].get("segurado", 0))
    col3.metric("Valor FIPE total", _brl(kpis["valor_fipe_total"]))

    outros = verificar_categoria_outros(empresa_id)
    if outros["tem_outros"]:
        st.warning(f'{outros["total"]} veículo(s) com categoria "Outros": {", ".join(outros["placas"][:10])}')
        if st.button('Corrigir veículos "Outros" para sem seguro'):
            resultado = verificar_e_corrigir_outros(empresa_id)
            if resultado["success"]:
                st.toast(f"{resultado['veiculos_atualizados']} veículo(s) atualizados", icon="✅")
            else:
                st.error(resultado["error"] or resultado["message"])

    st.divider()
    if "busca_veiculos" not in st.session_state:
        st.session_state.busca_veiculos = BuscaVeiculos(lambda t: buscar_veiculos(t, empresa_id))
    busca = st.session_state.busca_veiculos

    termo = st.text_input("🔍 Buscar por placa, marca, modelo, proprietário ou chassi")
    if termo != busca.termo:
        busca.pesquisar(termo)
    busca.aguardar(timeout=5)
    if busca.erro:
        st.error(busca.erro)
    for veiculo in busca.resultados:
        with st.expander(f"**{veiculo['placa']}** - {veiculo.get('marca') or ''} {veiculo.get('modelo') or ''}"):
            apolice = obter_apolice_do_veiculo(veiculo["id"])
            st.write(f"Apólice: {apolice['numero_apolice'] if apolice else 'nenhuma vinculada'}")
            atual = veiculo.get("status_seguro") or "sem_seguro"
            novo = st.selectbox("Status do seguro", STATUS_SEGURO, index=STATUS_SEGURO.index(atual)
                                if atual in STATUS_SEGURO else 1, key=f"status_{veiculo['id']}")
            if novo != atual and st.button("Salvar status", key=f"salvar_{veiculo['id']}"):
                alterar_status_seguro(veiculo["id"], novo)
                st.toast("Status atualizado", icon="✅")

    st.divider()
    if st.button("🔄 Atualizar valores FIPE da frota"):
        with st.spinner("Consultando a tabela FIPE..."):
            try:
                resultado = atualizar_fipe_frota(empresa_id, client=get_supabase_admin())
            except ErroSmartApolice as e:
                st.error(e.mensagem)
            else:
                st.success(f"Atualizados: {resultado['success']} | Falhas: {resultado['failed']} | "
                           f"Ignorados: {resultado['skipped']}")
                if resultado["errors"]:
                    st.dataframe(pd.DataFrame(resultado["errors"]), use_container_width=True)


def render_tickets():
    st.title("🚨 Sinistros e Assistências")
    empresa_id = st.session_state.empresa_id
    tab_lista, tab_novo = st.tabs(["📋 Tickets", "➕ Novo Ticket"])

    with tab_lista:
        c1, c2, c3 = st.columns(3)
        tipo = c1.selectbox("Tipo", ["", "sinistro", "assistencia"])
        status = c2.selectbox("Status", [""] + list(TRANSICOES))
        busca = c3.text_input("Busca (placa, modelo, descrição)")
        tickets = listar_tickets(empresa_id, tipo or None, status or None, busca or None)

        kpis = kpis_tickets(tickets)
        k1, k2, k3 = st.columns(3)
        k1.metric("Sinistros abertos", kpis["sinistros_abertos"])
        k2.metric("Assistências abertas", kpis["assistencias_abertas"])
        k3.metric("Valor estimado", _brl(kpis["valor_estimado_total"]))

        for ticket in tickets:
            veiculo = ticket.get("vehicle") or {}
            with st.expander(f"**{ticket['protocol_code']}** - {ticket['tipo']} / {ticket.get('subtipo') or '-'} "
                             f"({ticket['status']}) {veiculo.get('placa') or ''}"):
                st.write(ticket.get("descricao") or "")
                movimentos = listar_movimentos(ticket["id"])
                if movimentos:
                    st.dataframe(pd.DataFrame(movimentos)[["created_at", "tipo", "descricao"]],
                                 use_container_width=True)
                proximos = TRANSICOES.get(ticket["status"], ())
                if proximos:
                    novo = st.selectbox("Mover para", proximos, key=f"mov_{ticket['id']}")
                    obs = st.text_input("Observação", key=f"obs_{ticket['id']}")
                    if st.button("Atualizar status", key=f"btn_{ticket['id']}"):
                        try:
                            alterar_status_ticket(ticket["id"], novo, st.session_state.user_email, obs)
                            st.toast(f'Status alterado para "{novo}"', icon="✅")
                            st.rerun()
                        except ErroSmartApolice as e:
                            st.error(e.mensagem)
                comentario = st.text_input("Comentário", key=f"com_{ticket['id']}")
                if comentario and st.button("Comentar", key=f"btn_com_{ticket['id']}"):
                    adicionar_comentario(ticket["id"], comentario, st.session_state.user_email)
                    st.rerun()

    with tab_novo:
        tipo_novo = st.radio("Tipo", list(SUBTIPOS), horizontal=True)
        with st.form("form_ticket"):
            subtipo = st.selectbox("Subtipo", SUBTIPOS[tipo_novo])
            placa = st.text_input("Placa do veículo*")
            data_evento = st.date_input("Data do evento", format="DD/MM/YYYY")
            valor = st.number_input("Valor estimado (R$)", min_value=0.0, step=100.0)
            descricao = st.text_area("Descrição")
            if st.form_submit_button("Abrir ticket", use_container_width=True):
                veiculos = buscar_veiculos(placa, empresa_id)
                if not veiculos:
                    st.error("Veículo não encontrado para a placa informada.")
                else:
                    try:
                        ticket = criar_ticket({
                            "tipo": tipo_novo, "subtipo": subtipo, "vehicle_id": veiculos[0]["id"],
                            "empresa_id": empresa_id, "data_evento": data_evento.isoformat(),
                            "valor_estimado": valor, "descricao": descricao,
                        }, usuario=st.session_state.user_email)
                        st.success(f"Ticket {ticket['protocol_code']} aberto.")
                    except ErroSmartApolice as e:
                        st.error(e.mensagem)


def render_aprovacoes():
    st.title("✅ Aprovações")
    admin = get_supabase_admin()
    solicitacoes = listar_solicitacoes(client=admin)
    kpis = kpis_solicitacoes(solicitacoes)
    col1, col2 = st.columns(2)
    col1.metric("Solicitações", kpis["total"])
    col2.metric("Aguardando aprovação", kpis["pendentes_adm"])

    st.subheader("Solicitações aguardando aprovação")
    for s in [s for s in solicitacoes if s["status"] == "aguardando_aprovacao"]:
        funcionario = (s.get("metadata") or {}).get("employee_data") or {}
        with st.expander(f"**{s['protocol_code']}** - {s['kind']} - {funcionario.get('nome', '')}"):
            st.json(funcionario)
            nota = st.text_input("Observação", key=f"nota_{s['id']}")
            c1, c2 = st.columns(2)
            try:
                if c1.button("Aprovar", key=f"aprovar_{s['id']}"):
                    dados = aprovar_solicitacao_adm(s["id"], nota, client=admin)
                    st.toast(f"Ticket {dados['ticketId']} gerado", icon="✅")
                    st.rerun()
                if c2.button("Recusar", key=f"recusar_{s['id']}"):
                    rejeitar_solicitacao(s["id"], nota or "Recusado pelo administrador", client=admin)
                    st.rerun()
            except ErroSmartApolice as e:
                st.error(e.mensagem)

    st.subheader("Tickets aguardando a corretora")
    tickets = admin.table("tickets").select("*").in_("status", ["aberto", "em_validacao"]) \
        .not_.is_("request_id", "null").execute().data or []
    for t in tickets:
        with st.expander(f"**{t['protocol_code']}** ({t['status']})"):
            nota = st.text_input("Nota", key=f"nota_t_{t['id']}")
            c1, c2 = st.columns(2)
            for coluna, acao, rotulo in ((c1, "approve", "Aprovar"), (c2, "reject", "Rejeitar")):
                if coluna.button(rotulo, key=f"{acao}_{t['id']}"):
                    try:
                        decidir_ticket_corretora(t["id"], acao, nota, client=admin)
                        st.rerun()
                    except ErroSmartApolice as e:
                        st.error(e.mensagem)


def render_parcelas_simuladas():
    st.title("🧮 Parcelas por Apólice")
    apolices = apolices_dataframe(empresa_id=st.session_state.empresa_id)
    if apolices.empty:
        st.info("Nenhuma apólice cadastrada.")
        return
    # NaN do DataFrame vira None para os campos opcionais da apólice
    registros = apolices.astype(object).where(apolices.notna(), None).to_dict("records")
    for a in registros:
        a["parcelas"] = gerar_parcelas_simuladas(a)
    estendidas = criar_parcelas_estendidas(registros)
    hoje = date.today()

    tab_proximas, tab_vencidas = st.tabs(["📅 Próximos 30 dias", "⚠️ Vencidas"])
    with tab_proximas:
        st.dataframe(pd.DataFrame(filtrar_proximas(estendidas, hoje)), use_container_width=True)
    with tab_vencidas:
        st.dataframe(pd.DataFrame(filtrar_vencidas(estendidas, hoje)), use_container_width=True)


def render_central_de_dados():
    st.title("🗂️ Central de Dados (CorpNuvem)")
    if "corpnuvem" not in st.session_state:
        st.session_state.corpnuvem = ClienteCorpNuvem()

    with st.form("busca_cliente_corpnuvem"):
        c1, c2 = st.columns(2)
        codfil = c1.number_input("Filial (codfil)*", min_value=1, value=1, step=1)
        codigo = c2.number_input("Código do cliente*", min_value=1, step=1)
        buscar = st.form_submit_button("Buscar cliente")
    if not buscar:
        return

    try:
        with st.spinner("Consultando o CorpNuvem..."):
            detalhado = st.session_state.corpnuvem.cliente_detalhado(int(codfil), int(codigo))
    except ErroSmartApolice as e:
        st.error(e.mensagem)
        return

    st.subheader("Cadastro")
    st.json(detalhado["cliente"] or {})
    abas = st.tabs([nome.capitalize() for nome in PARTES_CLIENTE])
    for aba, nome in zip(abas, PARTES_CLIENTE):
        with aba:
            if detalhado.get(nome):
                st.dataframe(pd.DataFrame(detalhado[nome]), use_container_width=True)
            else:
                st.caption("Nada encontrado.")


def main():
    if 'user_email' not in st.session_state:
        st.session_state.user_email = None
        st.session_state.user_nome = None
        st.session_state.user_perfil = None
        st.session_state.empresa_id = None

    if not st.session_state.user_email:
        # TELA DE LOGIN
        col1, col2, col3 = st.columns([1, 1.5, 1])
        with col2:
            st.header("🛡️ SmartApólice")
            with st.form("login_form"):
                email = st.text_input("📧 E-mail")
                senha = st.text_input("🔑 Senha", type="password")
                if st.form_submit_button("Entrar", use_container_width=True):
                    usuario = login_user(email, senha)
                    if usuario:
                        st.session_state.user_email = usuario['email']
                        st.session_state.user_nome = usuario['nome']
                        st.session_state.user_perfil = usuario['perfil']
                        st.session_state.empresa_id = usuario['empresa_id']
                        st.rerun()
                    else:
                        st.error("E-mail ou senha inválidos. Verifique as credenciais.")
        return

    with st.sidebar:
        st.title(f"Olá, {st.session_state.user_nome.split()[0]}!")
        st.write(f"Perfil: `{st.session_state.user_perfil.capitalize()}`")
        st.divider()

        menu_options = ["📊 Painel de Controle", "📄 Apólices", "🧮 Parcelas", "🚚 Frota",
                        "🚨 Sinistros e Assistências"]
        if st.session_state.user_perfil == 'admin':
            menu_options += ["✅ Aprovações", "🗂️ Central de Dados"]
        menu_opcao = st.radio("Menu Principal", menu_options)
        st.divider()

        if st.button("🚪 Sair do Sistema", use_container_width=True):
            try:
                supabase.auth.sign_out()
            except Exception as e:
                logger.warning(f"Erro no sign out: {e}")
            st.session_state.user_email = None
            st.session_state.user_nome = None
            st.session_state.user_perfil = None
            st.session_state.empresa_id = None
            st.rerun()

    if menu_opcao == "📊 Painel de Controle":
        render_dashboard()
    elif menu_opcao == "📄 Apólices":
        render_apolices()
    elif menu_opcao == "🧮 Parcelas":
        render_parcelas_simuladas()
    elif menu_opcao == "🚚 Frota":
        render_frota()
    elif menu_opcao == "🚨 Sinistros e Assistências":
        render_tickets()
    elif menu_opcao == "✅ Aprovações" and st.session_state.user_perfil == 'admin':
        render_aprovacoes()
    elif menu_opcao == "🗂️ Central de Dados" and st.session_state.user_perfil == 'admin':
        render_central_de_dados()


if __name__ == "__main__":
    main()
