# nsrloja/cliente/pedidos.py
"""
Orquestrador do pedido no lado do cliente: valida o carrinho localmente,
consulta estoque e frete em paralelo, criptografa o cartão antes de qualquer
chamada ao backend e acompanha o PIX até a confirmação.
"""
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Callable, List, Optional, Sequence

from nsrloja.core.entities import MetodoPagamento, StatusPagamento
from nsrloja.core.exceptions import DadosInvalidosError, ErroServidorError, EstoqueInsuficienteError
from nsrloja.core.validadores import cep_valido, normalizar_cep
from nsrloja.cliente.api import ClienteApi, ler_itens_indisponiveis
from nsrloja.cliente.carrinho import ItemCarrinho, itens_para_api, validar_itens_carrinho_para_checkout
from nsrloja.cliente.cartao import DadosCartao, SdkCriptografiaPagBank, obter_sdk
from nsrloja.cliente.pix import MonitorPagamentoPix, ler_expiracao

logger = logging.getLogger(__name__)


@dataclass
class PreparacaoCheckout:
    """Resultado das consultas feitas antes da etapa de pagamento."""
    opcoes_frete: List[dict] = field(default_factory=list)


class OrquestradorPedido:

    def __init__(self, api: ClienteApi, sdk: Optional[SdkCriptografiaPagBank] = None):
        self.api = api
        self.sdk = sdk or obter_sdk()

    # ====================================================================
    # ESTOQUE E FRETE
    # ====================================================================

    def preparar_checkout(self, itens: Sequence[ItemCarrinho], cep: str) -> PreparacaoCheckout:
        validar_itens_carrinho_para_checkout(itens)
        if not cep_valido(cep):
            raise DadosInvalidosError("CEP inválido. Informe os 8 dígitos.")

        corpo = itens_para_api(itens)
        total = sum((item.subtotal for item in itens), Decimal('0.00'))

        # Consultas independentes: nenhuma depende do resultado da outra
        with ThreadPoolExecutor(max_workers=2, thread_name_prefix='checkout') as executor:
            futuro_estoque = executor.submit(self.api.validar_estoque, corpo)
            futuro_frete = executor.submit(self.api.calcular_frete, corpo, normalizar_cep(cep), total)
            estoque = futuro_estoque.result()
            frete = futuro_frete.result()

        if not estoque.get('available'):
            raise EstoqueInsuficienteError(ler_itens_indisponiveis(estoque.get('unavailableItems', [])))

        return PreparacaoCheckout(opcoes_frete=frete.get('methods', []))

    # ====================================================================
    # PAGAMENTO
    # ====================================================================

    def _dados_pagamento(self, metodo_pagamento: str, dados_cartao: Optional[DadosCartao]) -> dict:
        if metodo_pagamento not in MetodoPagamento.TODOS:
            raise DadosInvalidosError(f"Método de pagamento inválido: {metodo_pagamento}")

        corpo = {'paymentMethod': metodo_pagamento}
        if metodo_pagamento == MetodoPagamento.CARTAO_CREDITO:
            if dados_cartao is None:
                raise DadosInvalidosError("Dados do cartão são obrigatórios")
            # Falha de criptografia aparece aqui, antes de qualquer chamada ao backend
            cartao = self.sdk.criptografar(dados_cartao)
            corpo['creditCard'] = {
                'encrypted': cartao.criptografado,
                'holderName': cartao.nome_titular,
                'holderCpf': cartao.cpf_titular,
            }
        return corpo

    def criar_pedido(self, endereco_id: str, itens: Sequence[ItemCarrinho], metodo_envio_id: str,
                     metodo_pagamento: str, dados_cartao: Optional[DadosCartao] = None,
                     cupom: Optional[str] = None, observacoes: Optional[str] = None,
                     nome_destinatario: Optional[str] = None, telefone_destinatario: Optional[str] = None,
                     cpf_comprador: Optional[str] = None) -> dict:
        validar_itens_carrinho_para_checkout(itens)

        corpo = {
            'addressId': endereco_id,
            'items': itens_para_api(itens),
            'shippingMethodId': metodo_envio_id,
            **self._dados_pagamento(metodo_pagamento, dados_cartao),
        }
        if cupom:
            corpo['couponCode'] = cupom
        if observacoes:
            corpo['notes'] = observacoes
        if nome_destinatario:
            corpo['receiverName'] = nome_destinatario
        if telefone_destinatario:
            corpo['receiverPhone'] = telefone_destinatario
        if cpf_comprador:
            corpo['customerCpf'] = cpf_comprador

        pedido = self.api.criar_pedido(corpo)
        logger.info("Pedido %s criado (pagamento %s)", pedido.get('orderNumber'), pedido.get('paymentStatus'))
        return pedido

    def retentar_pagamento(self, pedido_id: str, metodo_pagamento: str,
                           dados_cartao: Optional[DadosCartao] = None) -> dict:
        return self.api.retentar_pagamento(pedido_id, self._dados_pagamento(metodo_pagamento, dados_cartao))

    def consultar_status(self, pedido_id: str) -> dict:
        return self.api.status_pagamento(pedido_id)

    def monitorar_pix(self, pedido: dict, ao_atualizar: Optional[Callable[[dict], None]] = None,
                      intervalo: Optional[float] = None,
                      ao_erro: Optional[Callable[[ErroServidorError], None]] = None) -> Optional[MonitorPagamentoPix]:
        """
        Inicia o monitor em segundo plano para um pedido PIX ainda pendente.
        Retorna None quando não há nada para acompanhar.
        """
        pagamento = pedido.get('payment') or {}
        expira_em = ler_expiracao(pagamento.get('pixExpiresAt'))
        if expira_em is None or pagamento.get('status') != StatusPagamento.PENDENTE:
            return None

        opcoes = {'ao_atualizar': ao_atualizar, 'ao_erro': ao_erro}
        if intervalo is not None:
            opcoes['intervalo'] = intervalo
        monitor = MonitorPagamentoPix(lambda: self.consultar_status(pedido['id']), expira_em, **opcoes)
        monitor.iniciar()
        return monitor
