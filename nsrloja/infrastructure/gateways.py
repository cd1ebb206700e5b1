import copy
import logging
import uuid
from datetime import timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

import requests
from django.conf import settings
from django.core.mail import send_mail
from django.utils.dateparse import parse_datetime

# Importa os Protocols e Entidades da camada Core
from nsrloja.core.ports import IGatewayPagamento, IEmailService
from nsrloja.core.entities import (
    Pedido, Usuario, Endereco, TransacaoPagamento, CartaoCriptografado,
    StatusPagamento, MetodoPagamento, agora_utc
)
from nsrloja.core.exceptions import PagamentoFalhouError
from nsrloja.core.validadores import somente_digitos

logger = logging.getLogger(__name__)


# ====================================================================
# GATEWAYS: Implementações concretas que se comunicam com APIs externas.
# ====================================================================

def _centavos(valor) -> int:
    return int((Decimal(valor) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class PagBankGateway(IGatewayPagamento):
    """
    Gateway para a API de Pedidos do PagBank.
    Cartão e boleto viram `charges`; PIX vira `qr_codes`. O cartão chega
    sempre criptografado pelo cliente.
    """

    URLS = {
        "sandbox": "https://sandbox.api.pagseguro.com",
        "production": "https://api.pagseguro.com",
    }

    # Mapeamento do status do PagBank para StatusPagamento
    _STATUS_MAP = {
        "WAITING": StatusPagamento.PENDENTE,
        "IN_ANALYSIS": StatusPagamento.PENDENTE,
        "AUTHORIZED": StatusPagamento.PENDENTE,
        "PAID": StatusPagamento.PAGO,
        "AVAILABLE": StatusPagamento.PAGO,
        "DECLINED": StatusPagamento.FALHOU,
        "CANCELED": StatusPagamento.CANCELADO,
        "RETURNED": StatusPagamento.ESTORNADO,
    }

    def __init__(self, token: Optional[str] = None, ambiente: Optional[str] = None,
                 notification_url: Optional[str] = None, pix_expiracao_minutos: Optional[int] = None,
                 timeout: int = 30):
        ambiente = ambiente or getattr(settings, "PAGBANK_ENV", "sandbox")
        self.api_base_url = self.URLS.get(ambiente, self.URLS["sandbox"])
        self.access_token = token if token is not None else getattr(settings, "PAGBANK_TOKEN", "")
        self.notification_url = (
            notification_url if notification_url is not None
            else getattr(settings, "PAGBANK_NOTIFICATION_URL", "")
        )
        self.pix_expiracao_minutos = pix_expiracao_minutos or getattr(settings, "PIX_EXPIRACAO_MINUTOS", 15)
        self.timeout = timeout

        if not self.access_token:
            logger.warning("PAGBANK_TOKEN não configurado. Pagamentos reais falharão.")

    # --- MONTAGEM DO PAYLOAD ---

    def _headers(self, idempotente: bool = False) -> dict:
        headers = {
            "Authorization": f"Bearer {self.access_token}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if idempotente:
            headers["X-Idempotency-Key"] = str(uuid.uuid4())  # Para evitar cobrança duplicada
        return headers

    @staticmethod
    def _sanitizar(payload: dict) -> dict:
        """Remove o cartão criptografado dos logs; o titular fica para depuração."""
        limpo = copy.deepcopy(payload)
        for charge in limpo.get("charges", []):
            card = charge.get("payment_method", {}).get("card")
            if card:
                card["encrypted"] = "[REDACTED]"
        return limpo

    @staticmethod
    def _telefone(numero: Optional[str]) -> Optional[dict]:
        digitos = somente_digitos(numero or "")
        if digitos.startswith("55") and len(digitos) > 11:
            digitos = digitos[2:]
        if len(digitos) not in (10, 11):
            return None
        return {"country": "55", "area": digitos[:2], "number": digitos[2:], "type": "MOBILE"}

    def _cliente(self, pedido: Pedido, usuario: Usuario) -> dict:
        cliente = {
            "name": usuario.nome or pedido.nome_cliente,
            "email": usuario.email or pedido.email_cliente,
            "tax_id": somente_digitos(usuario.cpf or ""),
        }
        telefone = self._telefone(usuario.telefone or pedido.telefone_cliente)
        if telefone:
            cliente["phones"] = [telefone]
        return cliente

    @staticmethod
    def _endereco(endereco: Endereco) -> dict:
        dados = {
            "street": endereco.rua,
            "number": endereco.numero,
            "locality": endereco.bairro,
            "city": endereco.cidade,
            "region_code": endereco.estado.upper(),
            "country": "BRA",
            "postal_code": somente_digitos(endereco.cep),
        }
        if endereco.complemento:
            dados["complement"] = endereco.complemento
        return dados

    def _montar_payload(self, pedido: Pedido, metodo: str, usuario: Usuario,
                        cartao: Optional[CartaoCriptografado]) -> dict:
        payload = {
            "reference_id": pedido.numero or pedido.id,
            "customer": self._cliente(pedido, usuario),
            "items": [
                {
                    "reference_id": f"item-{indice}",
                    "name": item.nome_produto,
                    "quantity": item.quantidade,
                    "unit_amount": _centavos(item.preco_unitario),
                }
                for indice, item in enumerate(pedido.itens, start=1)
            ],
            "shipping": {"address": self._endereco(pedido.endereco_entrega)},
            "notification_urls": [self.notification_url] if self.notification_url else [],
        }
        valor = {"value": _centavos(pedido.total), "currency": "BRL"}

        if metodo == MetodoPagamento.PIX:
            expira_em = agora_utc() + timedelta(minutes=self.pix_expiracao_minutos)
            payload["qr_codes"] = [{
                "amount": {"value": valor["value"]},
                "expiration_date": expira_em.isoformat(timespec="seconds"),
            }]
            return payload

        if metodo == MetodoPagamento.CARTAO_CREDITO:
            metodo_pagamento = {
                "type": "CREDIT_CARD",
                "installments": 1,
                "capture": True,
                "card": {
                    "encrypted": cartao.criptografado,
                    "holder": {
                        "name": cartao.nome_titular.strip().upper(),
                        "tax_id": somente_digitos(cartao.cpf_titular),
                    },
                },
            }
        else:
            vencimento = (agora_utc() + timedelta(days=3)).date().isoformat()
            metodo_pagamento = {
                "type": "BOLETO",
                "boleto": {
                    "due_date": vencimento,
                    "holder": {
                        "name": payload["customer"]["name"],
                        "tax_id": payload["customer"]["tax_id"],
                        "email": payload["customer"]["email"],
                        "address": payload["shipping"]["address"],
                    },
                },
            }

        payload["charges"] = [{
            "reference_id": pedido.numero or pedido.id,
            "description": f"Pedido {pedido.numero}",
            "amount": valor,
            "payment_method": metodo_pagamento,
        }]
        return payload

    # --- LEITURA DA RESPOSTA ---

    def _mapear_resposta(self, data: dict, valor: Decimal, metodo: str) -> TransacaoPagamento:
        """Converte o JSON do PagBank (pedido ou cobrança) em TransacaoPagamento."""
        charges = data.get("charges") or []
        charge = charges[0] if charges else data

        status_psp = charge.get("status") or data.get("status")
        if not status_psp:
            # Pedido PIX ainda sem cobrança não traz status
            status_psp = "WAITING" if data.get("qr_codes") else "DECLINED"
        status = self._STATUS_MAP.get(status_psp, StatusPagamento.PENDENTE)

        transacao = TransacaoPagamento(
            referencia_externa=str(charge.get("id") or data.get("id")),
            status_pagamento=status,
            valor=valor,
            metodo=metodo,
        )

        qr_codes = data.get("qr_codes") or []
        if qr_codes:
            qr = qr_codes[0]
            transacao.pix_qr_code = qr.get("text")
            transacao.pix_qr_code_imagem = next(
                (link.get("href") for link in qr.get("links", []) if link.get("media") == "image/png"),
                None
            )
            if qr.get("expiration_date"):
                transacao.pix_expira_em = parse_datetime(qr["expiration_date"])

        boleto = charge.get("payment_method", {}).get("boleto") or {}
        if boleto:
            transacao.boleto_codigo_barras = boleto.get("barcode") or boleto.get("formatted_barcode")
            transacao.boleto_url = next(
                (link.get("href") for link in charge.get("links", []) if link.get("media") == "application/pdf"),
                None
            )

        # payment_response também vem em cobranças aprovadas; só é erro se recusada
        resposta = charge.get("payment_response") or {}
        if status == StatusPagamento.FALHOU:
            transacao.mensagem_erro = resposta.get("message") or "Pagamento recusado pela operadora"
            transacao.codigo_erro = resposta.get("code")

        return transacao

    @staticmethod
    def _erro_http(e: requests.exceptions.HTTPError) -> PagamentoFalhouError:
        try:
            corpo = e.response.json()
        except ValueError:
            corpo = {}

        mensagens = corpo.get("error_messages") or []
        if not mensagens:
            return PagamentoFalhouError(f"Erro na API do PagBank (HTTP {e.response.status_code})")

        logger.error("Erros detalhados do PagBank: %s", mensagens)
        primeiro = mensagens[0]
        mensagem = primeiro.get("description") or primeiro.get("error") or "Erro desconhecido"
        if primeiro.get("parameter_name"):
            mensagem += f" (campo: {primeiro['parameter_name']})"

        erros = [
            {"campo": m.get("parameter_name"), "mensagem": m.get("description") or m.get("error")}
            for m in mensagens
        ]
        return PagamentoFalhouError(mensagem, erros=erros, codigo_erro=primeiro.get("code"))

    @staticmethod
    def _recurso(transacao_id: str) -> str:
        # Cartão/boleto guardam o ID da cobrança; PIX guarda o ID do pedido
        return "charges" if str(transacao_id).startswith("CHAR_") else "orders"

    # --- MÉTODOS PÚBLICOS QUE IMPLEMENTAM O PROTOCOLO CORE ---

    def processar_pagamento(self, pedido: Pedido, metodo: str, usuario: Usuario,
                            cartao: Optional[CartaoCriptografado] = None) -> TransacaoPagamento:
        """Cria o pedido/cobrança no PagBank para o método escolhido."""
        if metodo not in MetodoPagamento.TODOS:
            raise PagamentoFalhouError(f"Método de pagamento '{metodo}' não suportado.")
        if metodo == MetodoPagamento.CARTAO_CREDITO and not cartao:
            raise PagamentoFalhouError("Dados do cartão de crédito não fornecidos")

        payload = self._montar_payload(pedido, metodo, usuario, cartao)
        logger.info("PagBank POST /orders: %s", self._sanitizar(payload))

        try:
            response = requests.post(
                f"{self.api_base_url}/orders",
                json=payload,
                headers=self._headers(idempotente=True),
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.exceptions.HTTPError as e:
            logger.error("PagBank recusou o pedido %s: HTTP %s", pedido.numero, e.response.status_code)
            raise self._erro_http(e)
        except requests.exceptions.RequestException as e:
            raise PagamentoFalhouError(f"Erro de conexão com a API do PagBank: {e}")

        transacao = self._mapear_resposta(response.json(), pedido.total, metodo)
        logger.info("PagBank respondeu %s para o pedido %s", transacao.status_pagamento, pedido.numero)
        return transacao

    def verificar_status(self, transacao_id: str) -> TransacaoPagamento:
        """Busca o status atual de uma cobrança no PagBank."""
        url = f"{self.api_base_url}/{self._recurso(transacao_id)}/{transacao_id}"

        try:
            response = requests.get(url, headers=self._headers(), timeout=self.timeout)
            response.raise_for_status()
        except requests.exceptions.HTTPError as e:
            raise self._erro_http(e)
        except requests.exceptions.RequestException as e:
            logger.error("Falha ao buscar status da transação %s: %s", transacao_id, e)
            raise PagamentoFalhouError("Falha ao buscar status da transação no Gateway.")

        data = response.json()
        charges = data.get("charges") or [data]
        amount = charges[0].get("amount", {}).get("value", 0)
        metodo = charges[0].get("payment_method", {}).get("type", "")

        transacao = self._mapear_resposta(data, Decimal(amount) / 100, metodo.lower())
        # A consulta deve responder pelo mesmo ID armazenado
        transacao.referencia_externa = transacao_id
        return transacao

    def cancelar_cobranca(self, transacao_id: str) -> bool:
        url = f"{self.api_base_url}/{self._recurso(transacao_id)}/{transacao_id}/cancel"
        try:
            response = requests.post(url, headers=self._headers(idempotente=True), timeout=self.timeout)
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            logger.error("Falha ao cancelar a cobrança %s: %s", transacao_id, e)
            return False

        logger.info("Cobrança %s cancelada", transacao_id)
        return True

    def obter_chave_publica(self) -> str:
        """Chave pública usada pelo cliente para criptografar o cartão."""
        try:
            response = requests.get(
                f"{self.api_base_url}/public-keys/card", headers=self._headers(), timeout=self.timeout
            )
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            raise PagamentoFalhouError(f"Não foi possível obter a chave pública do PagBank: {e}")
        return response.json()["public_key"]


class EmailServiceGateway(IEmailService):
    """
    Gateway para envio de e-mails usando o sistema de e-mail do Django.
    Erros de envio sobem para o caso de uso, que apenas os registra.
    """

    @staticmethod
    def _enviar(pedido: Pedido, assunto: str, mensagem: str):
        remetente = getattr(settings, "DEFAULT_FROM_EMAIL", "noreply@nsrloja.com.br")
        send_mail(assunto, mensagem, remetente, [pedido.email_cliente], fail_silently=False)
        logger.info("E-mail '%s' enviado para %s", assunto, pedido.email_cliente)

    def enviar_confirmacao_pedido(self, pedido: Pedido) -> None:
        pagamento = pedido.pagamento
        linhas = [
            f"Olá, {pedido.nome_cliente}!",
            "",
            f"Recebemos o seu pedido {pedido.numero}.",
            f"Total: R$ {pedido.total:.2f}",
        ]
        if pagamento and pagamento.metodo == MetodoPagamento.PIX and pagamento.pix_qr_code:
            linhas += ["", "Pague com o PIX copia e cola abaixo:", pagamento.pix_qr_code]
        if pagamento and pagamento.boleto_url:
            linhas += ["", f"Boleto: {pagamento.boleto_url}"]
        linhas += ["", "Obrigado por comprar na NSR Loja!"]

        self._enviar(pedido, f"Pedido {pedido.numero} recebido", "\n".join(linhas))

    def enviar_aprovacao_pagamento(self, pedido: Pedido) -> None:
        mensagem = (
            f"Olá, {pedido.nome_cliente}!\n\n"
            f"O pagamento do pedido {pedido.numero} foi APROVADO.\n"
            f"Seu pedido já está sendo preparado para envio.\n\n"
            f"Equipe NSR Loja."
        )
        self._enviar(pedido, f"Pagamento aprovado - Pedido {pedido.numero}", mensagem)
