import logging
import threading
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


class BuscaVeiculos:
    """
    Busca de veículos enquanto o usuário digita.

    Cada chamada a `pesquisar` invalida a anterior: só o resultado da última
    busca agendada é aplicado ao estado, mesmo que uma busca antiga termine
    depois dela.
    """

    def __init__(self, funcao_busca: Callable[[str], List[Dict[str, Any]]], min_caracteres: int = 2,
                 debounce_ms: int = 300, ao_atualizar: Callable[["BuscaVeiculos"], None] = None):
        self.funcao_busca = funcao_busca
        self.min_caracteres = min_caracteres
        self.debounce = debounce_ms / 1000
        self.ao_atualizar = ao_atualizar

        self.termo = ""
        self.resultados: List[Dict[str, Any]] = []
        self.carregando = False
        self.erro: Optional[str] = None

        self._lock = threading.Lock()
        self._geracao = 0
        self._timer: Optional[threading.Timer] = None
        self._concluida = threading.Event()
        self._concluida.set()

    def _notificar(self):
        if self.ao_atualizar:
            self.ao_atualizar(self)

    def _cancelar_pendente(self):
        self._geracao += 1
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def pesquisar(self, termo: str):
        with self._lock:
            self._cancelar_pendente()
            self.termo = termo or ""

            if len(self.termo.strip()) < self.min_caracteres:
                self.resultados = []
                self.carregando = False
                self.erro = None
                self._concluida.set()
            else:
                self.carregando = True
                self.erro = None
                self._concluida.clear()
                geracao = self._geracao
                self._timer = threading.Timer(self.debounce, self._executar, args=(geracao, self.termo.strip()))
                self._timer.daemon = True
                self._timer.start()
        self._notificar()

    def _executar(self, geracao: int, termo: str):
        try:
            resultados, erro = self.funcao_busca(termo) or [], None
        except Exception as e:
            logger.error(f"Erro na busca de veículos: {e}")
            resultados, erro = [], "Erro ao buscar veículos"

        with self._lock:
            if geracao != self._geracao:
                return
            self.resultados = resultados
            self.erro = erro
            self.carregando = False
            self._timer = None
            self._concluida.set()
        self._notificar()

    def limpar(self):
        with self._lock:
            self._cancelar_pendente()
            self.termo = ""
            self.resultados = []
            self.carregando = False
            self.erro = None
            self._concluida.set()
        self._notificar()

    def fechar(self):
        """Cancela a busca pendente sem mexer nos resultados já exibidos."""
        with self._lock:
            self._cancelar_pendente()
            self.carregando = False
            self._concluida.set()

    def aguardar(self, timeout: float = None) -> bool:
        return self._concluida.wait(timeout)
