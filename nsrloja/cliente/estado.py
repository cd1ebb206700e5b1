import threading
from typing import Callable, Generic, List, TypeVar

T = TypeVar('T')
R = TypeVar('R')


class Store(Generic[T]):
    """
    Estado da aplicação cliente com assinaturas e seletores.
    O estado é tratado como imutável: `atualizar` recebe uma função que
    devolve o novo estado.
    """

    def __init__(self, inicial: T):
        self._estado = inicial
        self._lock = threading.RLock()
        self._assinantes: List[Callable[[T], None]] = []

    def obter(self) -> T:
        with self._lock:
            return self._estado

    def atualizar(self, transformar: Callable[[T], T]) -> T:
        with self._lock:
            novo = transformar(self._estado)
            if novo is self._estado:
                return novo
            self._estado = novo
            assinantes = list(self._assinantes)

        # Notificação fora do lock: assinantes podem ler a store
        for callback in assinantes:
            callback(novo)
        return novo

    def assinar(self, callback: Callable[[T], None]) -> Callable[[], None]:
        """Registra o callback e devolve a função que cancela a assinatura."""
        with self._lock:
            self._assinantes.append(callback)

        def cancelar():
            with self._lock:
                if callback in self._assinantes:
                    self._assinantes.remove(callback)
        return cancelar

    def selecionar(self, seletor: Callable[[T], R]) -> R:
        return seletor(self.obter())
