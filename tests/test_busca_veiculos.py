import threading

from smartapolice.busca_veiculos import BuscaVeiculos


def test_termo_curto_limpa_sem_buscar():
    chamadas = []
    busca = BuscaVeiculos(lambda t: chamadas.append(t) or [{"placa": t}], debounce_ms=10)
    busca.pesquisar("a")
    assert busca.aguardar(1)
    assert busca.resultados == []
    assert not busca.carregando
    assert chamadas == []


def test_debounce_executa_so_a_ultima_busca():
    chamadas = []
    busca = BuscaVeiculos(lambda t: chamadas.append(t) or [{"placa": t}], debounce_ms=50)
    busca.pesquisar("ab")
    busca.pesquisar("abc")
    assert busca.carregando
    assert busca.aguardar(2)
    assert chamadas == ["abc"]
    assert busca.resultados == [{"placa": "abc"}]
    assert not busca.carregando


def test_resultado_atrasado_de_busca_antiga_e_descartado():
    liberar = threading.Event()
    iniciou = threading.Event()

    def lenta(termo):
        if termo == "lento":
            iniciou.set()
            liberar.wait(2)
        return [{"placa": termo}]

    busca = BuscaVeiculos(lenta, debounce_ms=0)
    busca.pesquisar("lento")
    assert iniciou.wait(2)

    busca.pesquisar("rapido")
    assert busca.aguardar(2)
    assert busca.resultados == [{"placa": "rapido"}]

    liberar.set()
    # dá tempo à busca antiga de terminar; o estado não muda
    threading.Event().wait(0.1)
    assert busca.resultados == [{"placa": "rapido"}]


def test_erro_na_busca():
    def falha(termo):
        raise RuntimeError("timeout")

    busca = BuscaVeiculos(falha, debounce_ms=0)
    busca.pesquisar("abc")
    assert busca.aguardar(2)
    assert busca.erro == "Erro ao buscar veículos"
    assert busca.resultados == []


def test_limpar_e_fechar_cancelam_pendentes():
    chamadas = []
    notificacoes = []
    busca = BuscaVeiculos(lambda t: chamadas.append(t) or [], debounce_ms=200,
                          ao_atualizar=lambda b: notificacoes.append(b.carregando))
    busca.pesquisar("abc")
    busca.limpar()
    assert busca.termo == ""
    assert not busca.carregando

    busca.pesquisar("xyz")
    busca.fechar()
    assert busca.aguardar(1)
    threading.Event().wait(0.3)
    assert chamadas == []
    assert notificacoes[:2] == [True, False]
