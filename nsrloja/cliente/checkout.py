# nsrloja/cliente/checkout.py
"""
Máquina de estados do checkout:

    comprador -> destinatario -> pagamento -> confirmacao

Avança uma etapa por vez, volta livremente e não sai de 'confirmacao'.
Todo o estado é local; cancelar descarta tudo sem tocar no servidor.
"""
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from nsrloja.core.entities import MetodoPagamento
from nsrloja.core.exceptions import (
    BaseErroCore,
    DadosInvalidosError,
    StatusInvalidoError,
)
from nsrloja.cliente.carrinho import ItemCarrinho
from nsrloja.cliente.cartao import DadosCartao
from nsrloja.cliente.pedidos import OrquestradorPedido

logger = logging.getLogger(__name__)


class EtapaCheckout:
    COMPRADOR = 'comprador'
    DESTINATARIO = 'destinatario'
    PAGAMENTO = 'pagamento'
    CONFIRMACAO = 'confirmacao'

    ORDEM = [COMPRADOR, DESTINATARIO, PAGAMENTO, CONFIRMACAO]


@dataclass
class DadosComprador:
    nome: str = ''
    email: str = ''
    cpf: str = ''
    telefone: str = ''


@dataclass
class DadosDestinatario:
    endereco_id: str = ''
    metodo_envio_id: str = ''
    observacoes: str = ''


@dataclass
class DadosPagamentoCheckout:
    metodo: str = ''
    cartao: Optional[DadosCartao] = None
    cupom: str = ''


@dataclass
class ErroCheckout:
    """Painel de erro exibido ao usuário: tipo da exceção, mensagem e detalhes."""
    tipo: str
    codigo: str
    mensagem: str
    detalhes: list = field(default_factory=list)

    @classmethod
    def de_excecao(cls, exc: BaseErroCore) -> 'ErroCheckout':
        detalhes = (getattr(exc, 'erros', None) or getattr(exc, 'itens_indisponiveis', None)
                    or getattr(exc, 'detalhes', None) or [])
        return cls(tipo=type(exc).__name__, codigo=exc.codigo, mensagem=exc.message, detalhes=list(detalhes))


def _faltando(dados, campos: Sequence[str]) -> List[str]:
    return [campo for campo in campos if not str(getattr(dados, campo) or '').strip()]


class MaquinaCheckout:

    def __init__(self, orquestrador: OrquestradorPedido):
        self.orquestrador = orquestrador
        self._reiniciar()

    def _reiniciar(self):
        self.etapa = EtapaCheckout.COMPRADOR
        self.comprador = DadosComprador()
        self.destinatario = DadosDestinatario()
        self.pagamento = DadosPagamentoCheckout()
        self.pedido: Optional[dict] = None
        self.erro: Optional[ErroCheckout] = None

    # --- Preenchimento das etapas ---

    def _exigir_etapa(self, etapa: str):
        if self.etapa != etapa:
            raise StatusInvalidoError(f"Os dados de '{etapa}' só podem ser alterados nessa etapa")

    def definir_comprador(self, **campos):
        self._exigir_etapa(EtapaCheckout.COMPRADOR)
        for nome, valor in campos.items():
            setattr(self.comprador, nome, valor)

    def definir_destinatario(self, **campos):
        self._exigir_etapa(EtapaCheckout.DESTINATARIO)
        for nome, valor in campos.items():
            setattr(self.destinatario, nome, valor)

    def definir_pagamento(self, **campos):
        self._exigir_etapa(EtapaCheckout.PAGAMENTO)
        for nome, valor in campos.items():
            setattr(self.pagamento, nome, valor)

    # --- Navegação ---

    def _validar_etapa_atual(self):
        faltando = []
        if self.etapa == EtapaCheckout.COMPRADOR:
            faltando = _faltando(self.comprador, ['nome', 'email', 'cpf', 'telefone'])
        elif self.etapa == EtapaCheckout.DESTINATARIO:
            faltando = _faltando(self.comprador, ['nome', 'email', 'cpf', 'telefone'])
            faltando += _faltando(self.destinatario, ['endereco_id', 'metodo_envio_id'])
        if faltando:
            raise DadosInvalidosError("Preencha os campos obrigatórios", detalhes=faltando)

    def avancar(self) -> str:
        if self.etapa == EtapaCheckout.CONFIRMACAO:
            raise StatusInvalidoError("O checkout já foi concluído")
        if self.etapa == EtapaCheckout.PAGAMENTO:
            raise StatusInvalidoError("Use finalizar() para concluir o pagamento")

        self._validar_etapa_atual()
        self.etapa = EtapaCheckout.ORDEM[EtapaCheckout.ORDEM.index(self.etapa) + 1]
        self.erro = None
        return self.etapa

    def voltar(self) -> str:
        if self.etapa == EtapaCheckout.CONFIRMACAO:
            raise StatusInvalidoError("O checkout já foi concluído")
        indice = EtapaCheckout.ORDEM.index(self.etapa)
        if indice > 0:
            self.etapa = EtapaCheckout.ORDEM[indice - 1]
        return self.etapa

    def ir_para(self, etapa: str) -> str:
        """Só permite voltar para uma etapa anterior (ou ficar na atual)."""
        if etapa not in EtapaCheckout.ORDEM:
            raise DadosInvalidosError(f"Etapa desconhecida: {etapa}")
        if self.etapa == EtapaCheckout.CONFIRMACAO and etapa != self.etapa:
            raise StatusInvalidoError("O checkout já foi concluído")
        if EtapaCheckout.ORDEM.index(etapa) > EtapaCheckout.ORDEM.index(self.etapa):
            raise StatusInvalidoError("Não é possível pular etapas do checkout")
        self.etapa = etapa
        return self.etapa

    def cancelar(self):
        self._reiniciar()

    # --- Conclusão ---

    def finalizar(self, itens: Sequence[ItemCarrinho]) -> Optional[dict]:
        """
        Cria o pedido a partir da etapa de pagamento.
        Erros do fluxo ficam em `self.erro` e o retorno é None.
        """
        self._exigir_etapa(EtapaCheckout.PAGAMENTO)
        self.erro = None
        try:
            if self.pagamento.metodo not in MetodoPagamento.TODOS:
                raise DadosInvalidosError("Selecione a forma de pagamento")
            pedido = self.orquestrador.criar_pedido(
                endereco_id=self.destinatario.endereco_id,
                itens=itens,
                metodo_envio_id=self.destinatario.metodo_envio_id,
                metodo_pagamento=self.pagamento.metodo,
                dados_cartao=self.pagamento.cartao,
                cupom=self.pagamento.cupom or None,
                observacoes=self.destinatario.observacoes or None,
                nome_destinatario=self.comprador.nome,
                telefone_destinatario=self.comprador.telefone,
                cpf_comprador=self.comprador.cpf,
            )
        except BaseErroCore as e:
            logger.warning("Checkout interrompido: %s (%s)", e.message, e.codigo)
            self.erro = ErroCheckout.de_excecao(e)
            return None

        self.pedido = pedido
        self.etapa = EtapaCheckout.CONFIRMACAO
        return pedido
