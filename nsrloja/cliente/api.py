"""
Cliente HTTP da API v1 da NSR Loja usado pelo fluxo de checkout.

Sem resposta do servidor -> ErroDeRedeError; resposta fora de 2xx -> ErroServidorError,
exceto falta de estoque, que volta como EstoqueInsuficienteError com os itens.
"""
import logging
from decimal import Decimal
from typing import List, Optional

import requests
from decouple import config

from nsrloja.core.entities import ItemIndisponivel
from nsrloja.core.exceptions import ErroDeRedeError, ErroServidorError, EstoqueInsuficienteError

logger = logging.getLogger(__name__)


def ler_itens_indisponiveis(itens: List[dict]) -> List[ItemIndisponivel]:
    """`unavailableItems` / `details` da API -> ItemIndisponivel."""
    return [
        ItemIndisponivel(
            produto_id=item.get('productId'),
            nome_produto=item.get('productName'),
            quantidade_solicitada=item.get('requestedQuantity', 0),
            quantidade_disponivel=item.get('availableQuantity', 0),
        )
        for item in itens
    ]


class ClienteApi:

    def __init__(self, base_url: Optional[str] = None, token: Optional[str] = None,
                 timeout: Optional[int] = None, session: Optional[requests.Session] = None):
        self.base_url = (base_url or config('NSR_API_URL', default='http://localhost:8000/api/v1')).rstrip('/')
        self.timeout = timeout or config('NSR_API_TIMEOUT', default=30, cast=int)
        self.session = session or requests.Session()
        self.session.headers.update({'Content-Type': 'application/json', 'Accept': 'application/json'})
        if token:
            self.definir_token(token)

    def definir_token(self, token: str):
        self.session.headers['Authorization'] = f'Bearer {token}'

    def _requisitar(self, metodo: str, caminho: str, json: Optional[dict] = None) -> dict:
        url = f"{self.base_url}/{caminho.lstrip('/')}"
        try:
            response = self.session.request(metodo, url, json=json, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            logger.warning("Sem resposta de %s %s: %s", metodo, url, e)
            raise ErroDeRedeError()

        if not response.ok:
            try:
                payload = response.json()
            except ValueError:
                payload = {}
            mensagem = payload.get('message') if isinstance(payload, dict) else None
            if isinstance(payload, dict) and payload.get('code') == EstoqueInsuficienteError.codigo:
                raise EstoqueInsuficienteError(ler_itens_indisponiveis(payload.get('details') or []), mensagem)
            raise ErroServidorError(response.status_code, payload, mensagem)

        return response.json() if response.content else {}

    # --- Autenticação ---

    def autenticar(self, email: str, senha: str) -> dict:
        tokens = self._requisitar('POST', 'auth/token/', {'email': email, 'password': senha})
        self.definir_token(tokens['access'])
        return tokens

    # --- Estoque e frete ---

    def validar_estoque(self, itens: List[dict]) -> dict:
        return self._requisitar('POST', 'inventory/validate', {'items': itens})

    def calcular_frete(self, itens: List[dict], cep: str, total_carrinho: Decimal) -> dict:
        corpo = {
            'items': [{'productId': i['productId'], 'quantity': i['quantity']} for i in itens],
            'zipCode': cep,
            'cartTotal': str(total_carrinho),
        }
        return self._requisitar('POST', 'shipping/calculate', corpo)

    # --- Endereços ---

    def listar_enderecos(self) -> List[dict]:
        return self._requisitar('GET', 'user/addresses')

    def criar_endereco(self, dados: dict) -> dict:
        return self._requisitar('POST', 'user/addresses', dados)

    def definir_endereco_principal(self, endereco_id: str) -> dict:
        return self._requisitar('PATCH', f'user/addresses/{endereco_id}/default')

    # --- Pedidos ---

    def criar_pedido(self, dados: dict) -> dict:
        return self._requisitar('POST', 'orders', dados)

    def obter_pedido(self, pedido_id: str) -> dict:
        return self._requisitar('GET', f'orders/{pedido_id}')

    def retentar_pagamento(self, pedido_id: str, dados: dict) -> dict:
        return self._requisitar('POST', f'orders/{pedido_id}/retry-payment', dados)

    def status_pagamento(self, pedido_id: str) -> dict:
        return self._requisitar('GET', f'orders/{pedido_id}/payment-status')

    def cancelar_pedido(self, pedido_id: str, motivo: str) -> dict:
        return self._requisitar('POST', f'orders/{pedido_id}/cancel', {'reason': motivo})
