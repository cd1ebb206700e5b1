import logging

from rest_framework import status
from rest_framework.exceptions import ValidationError
from rest_framework.permissions import IsAuthenticated, AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from nsrloja.core import dependency_injection as di
from nsrloja.core.exceptions import (
    BaseErroCore,
    DadosInvalidosError,
    ItemNaoEncontradoError,
    AcessoNegadoError,
    EstoqueInsuficienteError,
    StatusInvalidoError,
    PagamentoFalhouError,
)
from .serializers import (
    ValidarEstoqueSerializer,
    CalcularFreteSerializer,
    CartaoCriptografadoSerializer,
    CriarPedidoSerializer,
    RetentarPagamentoSerializer,
    CancelarPedidoSerializer,
    EnderecoSerializer,
    ItemIndisponivelSerializer,
    ResultadoEstoqueSerializer,
    OpcaoFreteSerializer,
    PedidoSerializer,
    StatusPagamentoSerializer,
    itens_solicitados,
)

logger = logging.getLogger(__name__)


# ====================================================================
# TRADUÇÃO DAS EXCEÇÕES DO CORE PARA HTTP
# ====================================================================

class ErrosCoreMixin:
    """
    Converte as exceções do Core em respostas {message, code, details}.
    A ordem importa: subclasses antes das classes base.
    """
    STATUS_POR_ERRO = [
        (DadosInvalidosError, status.HTTP_400_BAD_REQUEST),
        (ItemNaoEncontradoError, status.HTTP_404_NOT_FOUND),
        (AcessoNegadoError, status.HTTP_403_FORBIDDEN),
        (EstoqueInsuficienteError, status.HTTP_409_CONFLICT),
        (StatusInvalidoError, status.HTTP_409_CONFLICT),
        (PagamentoFalhouError, status.HTTP_402_PAYMENT_REQUIRED),
    ]

    def handle_exception(self, exc):
        if isinstance(exc, BaseErroCore):
            http_status = next(
                (codigo for classe, codigo in self.STATUS_POR_ERRO if isinstance(exc, classe)),
                status.HTTP_500_INTERNAL_SERVER_ERROR
            )
            corpo = {'message': exc.message, 'code': exc.codigo, 'details': self._detalhes(exc)}
            if http_status >= 500:
                logger.error("Erro não mapeado na API: %s", exc.message)
            return Response(corpo, status=http_status)

        if isinstance(exc, ValidationError):
            corpo = {'message': 'Dados inválidos', 'code': DadosInvalidosError.codigo, 'details': exc.detail}
            return Response(corpo, status=status.HTTP_400_BAD_REQUEST)

        return super().handle_exception(exc)

    @staticmethod
    def _detalhes(exc):
        if isinstance(exc, EstoqueInsuficienteError):
            return ItemIndisponivelSerializer(exc.itens_indisponiveis, many=True).data
        if isinstance(exc, PagamentoFalhouError):
            return exc.erros
        if isinstance(exc, DadosInvalidosError):
            return exc.detalhes
        return []


class BaseAPIView(ErrosCoreMixin, APIView):
    permission_classes = [IsAuthenticated]

    @staticmethod
    def usuario_id(request) -> str:
        return str(request.user.id)


# ====================================================================
# ESTOQUE E FRETE
# ====================================================================

class ValidarEstoqueAPIView(BaseAPIView):
    """Checagem prévia de estoque das linhas do carrinho (não reserva nada)."""

    def post(self, request):
        serializer = ValidarEstoqueSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        resultado = di.get_validar_estoque_use_case().executar(itens_solicitados(serializer.validated_data))
        return Response(ResultadoEstoqueSerializer(resultado).data)


class CalcularFreteAPIView(BaseAPIView):

    def post(self, request):
        serializer = CalcularFreteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        dados = serializer.validated_data

        opcoes = di.get_calcular_frete_use_case().executar(
            itens=itens_solicitados(dados),
            cep=dados['cep'],
            total_carrinho=dados['total_carrinho'],
        )
        return Response({'methods': OpcaoFreteSerializer(opcoes, many=True).data})


# ====================================================================
# ENDEREÇOS
# ====================================================================

class EnderecosAPIView(BaseAPIView):

    def get(self, request):
        enderecos = di.get_gerenciar_enderecos_use_case().listar(self.usuario_id(request))
        return Response(EnderecoSerializer(enderecos, many=True).data)

    def post(self, request):
        serializer = EnderecoSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        endereco = di.get_gerenciar_enderecos_use_case().criar(self.usuario_id(request), serializer.validated_data)
        return Response(EnderecoSerializer(endereco).data, status=status.HTTP_201_CREATED)


class EnderecoDetalheAPIView(BaseAPIView):

    def get(self, request, endereco_id):
        endereco = di.get_gerenciar_enderecos_use_case().obter(self.usuario_id(request), str(endereco_id))
        return Response(EnderecoSerializer(endereco).data)

    def put(self, request, endereco_id):
        return self._atualizar(request, endereco_id, parcial=False)

    def patch(self, request, endereco_id):
        return self._atualizar(request, endereco_id, parcial=True)

    def _atualizar(self, request, endereco_id, parcial):
        serializer = EnderecoSerializer(data=request.data, partial=parcial)
        serializer.is_valid(raise_exception=True)

        endereco = di.get_gerenciar_enderecos_use_case().atualizar(
            self.usuario_id(request), str(endereco_id), serializer.validated_data
        )
        return Response(EnderecoSerializer(endereco).data)

    def delete(self, request, endereco_id):
        di.get_gerenciar_enderecos_use_case().deletar(self.usuario_id(request), str(endereco_id))
        return Response(status=status.HTTP_204_NO_CONTENT)


class EnderecoPrincipalAPIView(BaseAPIView):

    def patch(self, request, endereco_id):
        endereco = di.get_gerenciar_enderecos_use_case().definir_principal(
            self.usuario_id(request), str(endereco_id)
        )
        return Response(EnderecoSerializer(endereco).data)


# ====================================================================
# PEDIDOS E PAGAMENTOS
# ====================================================================

def _cartao(dados):
    cartao = dados.get('cartao')
    return CartaoCriptografadoSerializer().to_entity(cartao) if cartao else None


class PedidosAPIView(BaseAPIView):

    def get(self, request):
        pedidos = di.get_listar_pedidos_use_case().executar(self.usuario_id(request))
        return Response(PedidoSerializer(pedidos, many=True).data)

    def post(self, request):
        """Finaliza o checkout: cria o pedido, reserva o estoque e cobra no PagBank."""
        serializer = CriarPedidoSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        dados = serializer.validated_data

        pedido = di.get_criar_pedido_use_case().executar(
            usuario_id=self.usuario_id(request),
            endereco_id=str(dados['endereco_id']),
            itens=itens_solicitados(dados),
            metodo_envio_id=str(dados['metodo_envio_id']),
            metodo_pagamento=dados['metodo_pagamento'],
            cartao=_cartao(dados),
            cupom_codigo=dados.get('cupom_codigo') or None,
            observacoes=dados.get('observacoes', ''),
            nome_destinatario=dados.get('nome_destinatario') or None,
            telefone_destinatario=dados.get('telefone_destinatario') or None,
            cpf_comprador=dados.get('cpf_comprador') or None,
        )
        return Response(PedidoSerializer(pedido).data, status=status.HTTP_201_CREATED)


class PedidoDetalheAPIView(BaseAPIView):

    def get(self, request, pedido_id):
        pedido = di.get_detalhar_pedido_use_case().executar(self.usuario_id(request), str(pedido_id))
        return Response(PedidoSerializer(pedido).data)


class RetentarPagamentoAPIView(BaseAPIView):

    def post(self, request, pedido_id):
        serializer = RetentarPagamentoSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        dados = serializer.validated_data

        pedido = di.get_retentar_pagamento_use_case().executar(
            usuario_id=self.usuario_id(request),
            pedido_id=str(pedido_id),
            metodo_pagamento=dados['metodo_pagamento'],
            cartao=_cartao(dados),
        )
        return Response(StatusPagamentoSerializer(pedido).data)


class StatusPagamentoAPIView(BaseAPIView):
    """Endpoint consultado periodicamente pelo cliente enquanto o PIX está pendente."""

    def get(self, request, pedido_id):
        pedido = di.get_consultar_status_pagamento_use_case().executar(self.usuario_id(request), str(pedido_id))
        return Response(StatusPagamentoSerializer(pedido).data)


class CancelarPedidoAPIView(BaseAPIView):

    def post(self, request, pedido_id):
        serializer = CancelarPedidoSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        pedido = di.get_cancelar_pedido_use_case().executar(
            self.usuario_id(request), str(pedido_id), serializer.validated_data['motivo']
        )
        return Response(PedidoSerializer(pedido).data)


class WebhookPagBankAPIView(ErrosCoreMixin, APIView):
    """
    Recebe as notificações do PagBank. O corpo serve só para identificar a
    cobrança: o status é sempre reconsultado no gateway.
    """
    permission_classes = [AllowAny]
    authentication_classes = []

    def post(self, request):
        data = request.data
        candidatos = [c.get('id') for c in data.get('charges') or [] if c.get('id')]
        if data.get('id'):
            candidatos.append(data['id'])

        if not candidatos:
            return Response({'message': 'Notificação sem identificador'}, status=status.HTTP_400_BAD_REQUEST)

        use_case = di.get_atualizar_status_por_transacao_use_case()
        for transacao_id in candidatos:
            pedido = use_case.executar(str(transacao_id))
            if pedido:
                logger.info("Webhook PagBank processado para o pedido %s", pedido.numero)
                break

        # 200 mesmo sem pedido correspondente, para o PagBank não reenviar
        return Response(status=status.HTTP_200_OK)
