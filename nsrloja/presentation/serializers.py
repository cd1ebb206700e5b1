import re

from rest_framework import serializers

from nsrloja.core.entities import ItemSolicitado, CartaoCriptografado, MetodoPagamento
from nsrloja.core.validadores import somente_digitos, validar_cpf


# ====================================================================
# SERIALIZERS DE ENTRADA (JSON camelCase -> nomes do domínio)
# ====================================================================

class ItemCarrinhoSerializer(serializers.Serializer):
    """Linha do carrinho enviada pelo cliente."""
    productId = serializers.UUIDField(source='produto_id')
    quantity = serializers.IntegerField(source='quantidade', min_value=1)
    size = serializers.CharField(source='tamanho', required=False, allow_blank=True, allow_null=True)
    color = serializers.CharField(source='cor', required=False, allow_blank=True, allow_null=True)

    def to_item(self, dados: dict) -> ItemSolicitado:
        return ItemSolicitado(
            produto_id=str(dados['produto_id']),
            quantidade=dados['quantidade'],
            tamanho=dados.get('tamanho') or None,
            cor=dados.get('cor') or None,
        )


def itens_solicitados(validated_data: dict):
    serializer = ItemCarrinhoSerializer()
    return [serializer.to_item(item) for item in validated_data['itens']]


class ValidarEstoqueSerializer(serializers.Serializer):
    items = ItemCarrinhoSerializer(source='itens', many=True, allow_empty=False)


class CalcularFreteSerializer(serializers.Serializer):
    items = ItemCarrinhoSerializer(source='itens', many=True, allow_empty=True)
    # CEP e total são validados pelo caso de uso, com as mensagens do domínio
    zipCode = serializers.CharField(source='cep', allow_blank=True)
    cartTotal = serializers.DecimalField(source='total_carrinho', max_digits=12, decimal_places=2)


class CartaoCriptografadoSerializer(serializers.Serializer):
    """Saída do adaptador de criptografia. Nunca recebe número ou CVV."""
    encrypted = serializers.CharField(source='criptografado')
    holderName = serializers.CharField(source='nome_titular', max_length=100)
    holderCpf = serializers.CharField(source='cpf_titular')

    def validate_holderCpf(self, value):
        cpf = somente_digitos(value)
        if not validar_cpf(cpf):
            raise serializers.ValidationError("CPF do titular inválido.")
        return cpf

    def to_entity(self, dados: dict) -> CartaoCriptografado:
        return CartaoCriptografado(**dados)


def _exigir_cartao(attrs: dict) -> dict:
    if attrs['metodo_pagamento'] == MetodoPagamento.CARTAO_CREDITO and not attrs.get('cartao'):
        raise serializers.ValidationError({'creditCard': "Dados do cartão são obrigatórios"})
    return attrs


class CriarPedidoSerializer(serializers.Serializer):
    addressId = serializers.UUIDField(source='endereco_id')
    items = ItemCarrinhoSerializer(source='itens', many=True, allow_empty=False)
    shippingMethodId = serializers.UUIDField(source='metodo_envio_id')
    paymentMethod = serializers.ChoiceField(source='metodo_pagamento', choices=MetodoPagamento.TODOS)
    creditCard = CartaoCriptografadoSerializer(source='cartao', required=False, allow_null=True)
    couponCode = serializers.CharField(source='cupom_codigo', required=False, allow_blank=True, allow_null=True)
    notes = serializers.CharField(source='observacoes', required=False, allow_blank=True, max_length=500)
    # Destinatário diferente do comprador e CPF informado no checkout
    receiverName = serializers.CharField(source='nome_destinatario', required=False, allow_blank=True, max_length=150)
    receiverPhone = serializers.CharField(source='telefone_destinatario', required=False, allow_blank=True,
                                          max_length=15)
    customerCpf = serializers.CharField(source='cpf_comprador', required=False, allow_blank=True, max_length=14)

    def validate(self, attrs):
        return _exigir_cartao(attrs)


class RetentarPagamentoSerializer(serializers.Serializer):
    paymentMethod = serializers.ChoiceField(source='metodo_pagamento', choices=MetodoPagamento.TODOS)
    creditCard = CartaoCriptografadoSerializer(source='cartao', required=False, allow_null=True)

    def validate(self, attrs):
        return _exigir_cartao(attrs)


class CancelarPedidoSerializer(serializers.Serializer):
    reason = serializers.CharField(source='motivo', min_length=10, max_length=500)


class EnderecoSerializer(serializers.Serializer):
    """Entrada e saída de endereços. Com partial=True serve para a atualização."""
    id = serializers.CharField(read_only=True)
    label = serializers.CharField(source='apelido', min_length=2, max_length=50)
    receiverName = serializers.CharField(source='nome_destinatario', min_length=3, max_length=100)
    receiverPhone = serializers.CharField(source='telefone_destinatario', required=False, allow_blank=True)
    zipCode = serializers.CharField(source='cep')
    street = serializers.CharField(source='rua', min_length=3, max_length=200)
    number = serializers.CharField(source='numero', max_length=10)
    complement = serializers.CharField(source='complemento', required=False, allow_blank=True,
                                       allow_null=True, max_length=100)
    neighborhood = serializers.CharField(source='bairro', min_length=2, max_length=100)
    city = serializers.CharField(source='cidade', min_length=2, max_length=100)
    state = serializers.CharField(source='estado', min_length=2, max_length=2)
    isDefault = serializers.BooleanField(source='is_principal', required=False)

    def validate_receiverName(self, value):
        if not re.match(r"^[a-zA-ZÀ-ÿ\s'-]+$", value):
            raise serializers.ValidationError("Nome contém caracteres inválidos")
        return value.strip()

    def validate_receiverPhone(self, value):
        if value and not re.match(r'^(\+55\s?)?(\(?\d{2}\)?\s?)?9?\d{4}[-\s]?\d{4}$', value):
            raise serializers.ValidationError("Telefone inválido. Use formato: (11) 98765-4321")
        return re.sub(r'[^\d+]', '', value or '')

    def validate_zipCode(self, value):
        if not re.match(r'^\d{5}-?\d{3}$', value):
            raise serializers.ValidationError("CEP inválido. Use formato: 12345-678")
        return somente_digitos(value)

    def validate_state(self, value):
        value = value.upper()
        if not re.match(r'^[A-Z]{2}$', value):
            raise serializers.ValidationError("Estado inválido")
        return value


# ====================================================================
# SERIALIZERS DE SAÍDA (Entidades do Core -> JSON)
# ====================================================================

class ItemIndisponivelSerializer(serializers.Serializer):
    productId = serializers.CharField(source='produto_id')
    productName = serializers.CharField(source='nome_produto', allow_null=True)
    requestedQuantity = serializers.IntegerField(source='quantidade_solicitada')
    availableQuantity = serializers.IntegerField(source='quantidade_disponivel')


class ResultadoEstoqueSerializer(serializers.Serializer):
    available = serializers.BooleanField(source='disponivel')
    unavailableItems = ItemIndisponivelSerializer(source='itens_indisponiveis', many=True)


class OpcaoFreteSerializer(serializers.Serializer):
    id = serializers.CharField()
    name = serializers.CharField(source='nome')
    description = serializers.CharField(source='descricao')
    cost = serializers.DecimalField(source='custo', max_digits=10, decimal_places=2, coerce_to_string=False)
    estimatedDays = serializers.SerializerMethodField()
    isFree = serializers.BooleanField(source='gratis')

    def get_estimatedDays(self, opcao):
        return {'min': opcao.prazo_min_dias, 'max': opcao.prazo_max_dias}


class PagamentoSerializer(serializers.Serializer):
    id = serializers.CharField()
    method = serializers.CharField(source='metodo')
    status = serializers.CharField()
    attempt = serializers.IntegerField(source='tentativa')
    chargeId = serializers.CharField(source='referencia_externa', allow_null=True)
    pixQrCode = serializers.CharField(source='pix_qr_code', allow_null=True)
    pixQrCodeBase64 = serializers.CharField(source='pix_qr_code_imagem', allow_null=True)
    pixExpiresAt = serializers.DateTimeField(source='pix_expira_em', allow_null=True)
    boletoUrl = serializers.CharField(source='boleto_url', allow_null=True)
    boletoBarcode = serializers.CharField(source='boleto_codigo_barras', allow_null=True)
    errorMessage = serializers.CharField(source='mensagem_erro', allow_null=True)


class ItemPedidoSerializer(serializers.Serializer):
    productId = serializers.CharField(source='produto_id')
    productName = serializers.CharField(source='nome_produto')
    size = serializers.CharField(source='tamanho', allow_null=True)
    color = serializers.CharField(source='cor', allow_null=True)
    unitPrice = serializers.DecimalField(source='preco_unitario', max_digits=10, decimal_places=2,
                                         coerce_to_string=False)
    quantity = serializers.IntegerField(source='quantidade')
    subtotal = serializers.DecimalField(max_digits=10, decimal_places=2, coerce_to_string=False)


class PedidoSerializer(serializers.Serializer):
    id = serializers.CharField()
    orderNumber = serializers.CharField(source='numero')
    status = serializers.CharField()
    paymentStatus = serializers.CharField(source='status_pagamento')
    paymentMethod = serializers.CharField(source='metodo_pagamento')
    subtotal = serializers.DecimalField(max_digits=10, decimal_places=2, coerce_to_string=False)
    shippingCost = serializers.DecimalField(source='frete', max_digits=10, decimal_places=2, coerce_to_string=False)
    discount = serializers.DecimalField(source='desconto', max_digits=10, decimal_places=2, coerce_to_string=False)
    total = serializers.DecimalField(max_digits=10, decimal_places=2, coerce_to_string=False)
    couponCode = serializers.CharField(source='cupom_codigo', allow_null=True)
    notes = serializers.CharField(source='observacoes')
    estimatedDelivery = serializers.DateTimeField(source='previsao_entrega', allow_null=True)
    cancellationReason = serializers.CharField(source='motivo_cancelamento', allow_null=True)
    createdAt = serializers.DateTimeField(source='data_pedido')
    shippingAddress = EnderecoSerializer(source='endereco_entrega')
    items = ItemPedidoSerializer(source='itens', many=True)
    payment = PagamentoSerializer(source='pagamento', allow_null=True)


class StatusPagamentoSerializer(serializers.Serializer):
    """Resposta enxuta do polling do status do pagamento."""
    orderId = serializers.CharField(source='id')
    orderStatus = serializers.CharField(source='status')
    status = serializers.CharField(source='status_pagamento')
    payment = PagamentoSerializer(source='pagamento', allow_null=True)
