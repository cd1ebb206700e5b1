# nsrloja/cliente/pix.py
"""
Acompanhamento de um pagamento PIX pendente: consulta o status em intervalo
fixo até sair de PENDING ou até o QR code expirar.
"""
import logging
import threading
from datetime import datetime
from typing import Callable, Optional

from nsrloja.core.entities import StatusPagamento, agora_utc
from nsrloja.core.exceptions import ErroDeRedeError, ErroServidorError

logger = logging.getLogger(__name__)

INTERVALO_PADRAO_SEGUNDOS = 5


def tempo_restante(expira_em: datetime, agora: Optional[datetime] = None) -> str:
    """Contagem regressiva no formato m:ss, ou 'Expirado'."""
    agora = agora or agora_utc()
    segundos = int((expira_em - agora).total_seconds())
    if segundos <= 0:
        return 'Expirado'
    minutos, segundos = divmod(segundos, 60)
    return f"{minutos}:{segundos:02d}"


def ler_expiracao(valor: Optional[str]) -> Optional[datetime]:
    """Converte o `pixExpiresAt` ISO 8601 da API."""
    if not valor:
        return None
    return datetime.fromisoformat(valor.replace('Z', '+00:00'))


class MonitorPagamentoPix:

    def __init__(self, consultar: Callable[[], dict], expira_em: datetime,
                 intervalo: float = INTERVALO_PADRAO_SEGUNDOS,
                 ao_atualizar: Optional[Callable[[dict], None]] = None,
                 ao_erro: Optional[Callable[[ErroServidorError], None]] = None,
                 relogio: Callable[[], datetime] = agora_utc):
        self.consultar = consultar
        self.expira_em = expira_em
        self.intervalo = intervalo
        self.ao_atualizar = ao_atualizar
        self.ao_erro = ao_erro
        self.relogio = relogio
        self.status_final: Optional[str] = None
        # Erro 4xx que encerrou o acompanhamento (pedido sumiu, acesso negado)
        self.erro: Optional[ErroServidorError] = None
        self._parar = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def executar(self) -> Optional[str]:
        """
        Roda o laço de consulta na thread atual.
        Retorna o status final, 'EXPIRED' se o QR venceu, ou None se foi parado
        ou interrompido por um 4xx (guardado em `erro` e passado a `ao_erro`).
        Falhas de rede e 5xx são temporárias: a consulta segue no próximo ciclo.
        """
        while not self._parar.is_set():
            if self.relogio() >= self.expira_em:
                self.status_final = StatusPagamento.EXPIRADO
                break

            try:
                resposta = self.consultar()
            except ErroDeRedeError as e:
                logger.warning("Falha de rede ao consultar PIX, tentando no próximo ciclo: %s", e.message)
            except ErroServidorError as e:
                if e.status >= 500:
                    logger.warning("Servidor respondeu %s ao consultar PIX, tentando no próximo ciclo", e.status)
                else:
                    logger.error("Consulta do PIX recusada (HTTP %s): %s", e.status, e.message)
                    self.erro = e
                    if self.ao_erro:
                        self.ao_erro(e)
                    break
            else:
                if self.ao_atualizar:
                    self.ao_atualizar(resposta)
                status = resposta.get('status')
                if status != StatusPagamento.PENDENTE:
                    self.status_final = status
                    break

            if self._parar.wait(self.intervalo):
                break

        return self.status_final

    def iniciar(self) -> threading.Thread:
        self._thread = threading.Thread(target=self.executar, name='monitor-pix', daemon=True)
        self._thread.start()
        return self._thread

    def parar(self, aguardar: bool = True):
        self._parar.set()
        if aguardar and self._thread and self._thread is not threading.current_thread():
            self._thread.join()
