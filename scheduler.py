import logging
import time
from datetime import date

import schedule
from dateutil.relativedelta import relativedelta

from smartapolice.config import get_config
from smartapolice.erros import ErroSmartApolice
from smartapolice.relatorios import montar_relatorio_mensal
from smartapolice.supabase_client import buscar_parcelas_vencendo, get_supabase_admin
from smartapolice.webhooks import enviar_webhook, notificar_parcelas

logging.basicConfig(level=get_config().log_level)
logger = logging.getLogger(__name__)


# --- FUNÇÕES DE TRABALHO ---

def executar_fluxo_de_cobranca(hoje: date = None):
    """
    Envia ao n8n as parcelas pendentes que vencem hoje; a automação cuida dos lembretes.
    """
    hoje = hoje or date.today()
    logger.info(f"INICIANDO FLUXO DE COBRANÇA DIÁRIA ({hoje:%d/%m/%Y})...")
    try:
        parcelas = buscar_parcelas_vencendo(hoje, client=get_supabase_admin())
        if not parcelas:
            logger.info("Nenhuma parcela vencendo hoje.")
            return 0
        resposta = notificar_parcelas(parcelas, hoje)
        if resposta is None:
            logger.warning("N8N_WEBHOOK_URL não configurada; lembretes não enviados.")
        logger.info(f"FLUXO DE COBRANÇA CONCLUÍDO: {len(parcelas)} parcela(s).")
        return len(parcelas)
    except ErroSmartApolice as e:
        logger.error(f"Erro no fluxo de cobrança: {e.mensagem}")
    except Exception as e:
        logger.error(f"ERRO CRÍTICO no agendador ao executar o fluxo de cobrança: {e}", exc_info=True)
    return 0


def enviar_relatorios_mensais(hoje: date = None):
    """Roda todo dia, mas só trabalha no dia 1: monta o relatório de cada empresa e envia ao n8n."""
    hoje = hoje or date.today()
    if hoje.day != 1:
        return 0

    url = get_config().n8n_webhook_url
    if not url:
        logger.warning("N8N_WEBHOOK_URL não configurada; relatórios mensais não enviados.")
        return 0

    mes_anterior = hoje.replace(day=1) - relativedelta(months=1)
    try:
        client = get_supabase_admin()
        empresas = client.table("empresas").select("id, nome").execute().data or []
    except Exception as e:
        logger.error(f"ERRO CRÍTICO ao listar empresas para os relatórios: {e}", exc_info=True)
        return 0

    enviados = 0
    for empresa in empresas:
        try:
            relatorio = montar_relatorio_mensal(empresa["id"], mes_anterior, client)
            enviar_webhook(url, {"event": "relatorio.mensal", "empresa": empresa, "relatorio": relatorio})
            enviados += 1
        except ErroSmartApolice as e:
            logger.error(f"Relatório da empresa {empresa['id']} não enviado: {e.mensagem}")
        except Exception as e:
            logger.error(f"ERRO CRÍTICO no relatório da empresa {empresa['id']}: {e}", exc_info=True)
    logger.info(f"Relatórios mensais enviados: {enviados}/{len(empresas)}")
    return enviados


# --- CONFIGURAÇÃO DO AGENDAMENTO (SCHEDULE) ---

def configurar_agendamentos():
    schedule.every().day.at("09:00").do(executar_fluxo_de_cobranca)
    schedule.every().day.at("07:00").do(enviar_relatorios_mensais)
    logger.info("Agendador configurado: cobrança às 09:00 e relatório mensal às 07:00 do dia 1.")


if __name__ == '__main__':
    configurar_agendamentos()
    schedule.run_pending()

    logger.info("Iniciando loop de agendamento. (CTRL+C para parar se estiver localmente)")
    while True:
        schedule.run_pending()
        time.sleep(1)
