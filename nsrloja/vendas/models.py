import uuid
from decimal import Decimal
from django.db import models
from django.utils import timezone


STATUS_PEDIDO_CHOICES = [
    ('PENDING', 'Aguardando Pagamento'),
    ('PROCESSING', 'Em Preparação'),
    ('SHIPPED', 'Enviado'),
    ('DELIVERED', 'Entregue'),
    ('CANCELLED', 'Cancelado'),
]

STATUS_PAGAMENTO_CHOICES = [
    ('PENDING', 'Pendente'),
    ('PAID', 'Pago'),
    ('FAILED', 'Recusado'),
    ('EXPIRED', 'Expirado'),
    ('CANCELLED', 'Cancelado'),
    ('REFUNDED', 'Estornado'),
]

METODO_PAGAMENTO_CHOICES = [
    ('credit_card', 'Cartão de Crédito'),
    ('pix', 'PIX'),
    ('boleto', 'Boleto'),
]


# ====================================================================
# 1. Frete e Cupons
# ====================================================================

class MetodoEnvio(models.Model):
    """Modalidade de entrega com custo linear: base + custo por kg acima de 1 kg."""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    nome = models.CharField(max_length=100)
    descricao = models.CharField(max_length=255, blank=True)
    custo_base = models.DecimalField(max_digits=10, decimal_places=2)
    custo_por_kg = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0.00'))
    prazo_min_dias = models.PositiveIntegerField()
    prazo_max_dias = models.PositiveIntegerField()
    frete_gratis_acima = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    ativo = models.BooleanField(default=True)

    class Meta:
        verbose_name = 'Método de Envio'
        verbose_name_plural = 'Métodos de Envio'
        db_table = 'vendas_metodo_envio'
        ordering = ['custo_base']

    def __str__(self):
        return self.nome


class Cupom(models.Model):
    TIPO_CHOICES = [
        ('percentual', 'Percentual'),
        ('fixo', 'Valor Fixo'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    codigo = models.CharField(max_length=50, unique=True)
    tipo_desconto = models.CharField(max_length=10, choices=TIPO_CHOICES)
    valor_desconto = models.DecimalField(max_digits=10, decimal_places=2)
    compra_minima = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    desconto_maximo = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    limite_uso = models.PositiveIntegerField(null=True, blank=True)
    vezes_usado = models.PositiveIntegerField(default=0)
    data_inicio = models.DateTimeField()
    data_fim = models.DateTimeField()
    ativo = models.BooleanField(default=True)

    class Meta:
        verbose_name = 'Cupom'
        verbose_name_plural = 'Cupons'
        db_table = 'vendas_cupom'

    def __str__(self):
        return self.codigo

    def save(self, *args, **kwargs):
        self.codigo = self.codigo.strip().upper()
        super().save(*args, **kwargs)


# ====================================================================
# 2. Pedido
# ====================================================================

class Pedido(models.Model):
    """
    Pedido de venda. Guarda um snapshot do cliente, do destinatário e do
    endereço no momento da compra.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    numero = models.CharField(max_length=20, unique=True)

    # Relacionamentos
    usuario = models.ForeignKey('infrastructure.Usuario', on_delete=models.PROTECT, related_name='pedidos')
    endereco = models.ForeignKey('infrastructure.Endereco', on_delete=models.SET_NULL, null=True, blank=True,
                                 related_name='pedidos')
    metodo_envio = models.ForeignKey(MetodoEnvio, on_delete=models.SET_NULL, null=True, blank=True)
    cupom_codigo = models.CharField(max_length=50, blank=True, null=True)

    # Status e Datas
    status = models.CharField(max_length=20, choices=STATUS_PEDIDO_CHOICES, default='PENDING')
    status_pagamento = models.CharField(max_length=20, choices=STATUS_PAGAMENTO_CHOICES, default='PENDING')
    metodo_pagamento = models.CharField(max_length=20, choices=METODO_PAGAMENTO_CHOICES)
    data_pedido = models.DateTimeField(default=timezone.now)
    data_modificacao = models.DateTimeField(auto_now=True)
    previsao_entrega = models.DateTimeField(null=True, blank=True)
    motivo_cancelamento = models.TextField(blank=True, null=True)
    # Verdadeiro enquanto o estoque dos itens estiver baixado para este pedido
    estoque_reservado = models.BooleanField(default=False)

    # Valores
    subtotal = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0.00'))
    desconto = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0.00'))
    frete = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0.00'))
    total = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0.00'))

    # Cliente (snapshot)
    nome_cliente = models.CharField(max_length=255)
    email_cliente = models.EmailField()
    telefone_cliente = models.CharField(max_length=15, blank=True)

    # Entrega (snapshot do endereço no momento do pedido)
    nome_destinatario = models.CharField(max_length=100)
    telefone_destinatario = models.CharField(max_length=15, blank=True)
    apelido_endereco = models.CharField(max_length=50, blank=True)
    cep_entrega = models.CharField(max_length=8)
    rua_entrega = models.CharField(max_length=200)
    numero_entrega = models.CharField(max_length=10)
    complemento_entrega = models.CharField(max_length=100, blank=True, null=True)
    bairro_entrega = models.CharField(max_length=100)
    cidade_entrega = models.CharField(max_length=100)
    estado_entrega = models.CharField(max_length=2)

    observacoes = models.TextField(blank=True)

    class Meta:
        verbose_name = 'Pedido'
        verbose_name_plural = 'Pedidos'
        db_table = 'vendas_pedido'
        ordering = ['-data_pedido']

    def __str__(self):
        return f"Pedido {self.numero} - {self.email_cliente}"

    @property
    def pagamento_atual(self):
        """Tentativa de pagamento mais recente (a ativa)."""
        return self.pagamentos.order_by('-tentativa').first()


class ItemPedido(models.Model):
    """
    Item dentro de um pedido.
    Mantém um snapshot dos dados do produto no momento da compra.
    """
    pedido = models.ForeignKey(Pedido, related_name='itens', on_delete=models.CASCADE)
    produto = models.ForeignKey('catalog.Produto', on_delete=models.PROTECT, related_name='itens_venda')

    # Snapshot dos dados do produto
    nome_produto = models.CharField(max_length=255)
    tamanho = models.CharField(max_length=10, blank=True, null=True)
    cor = models.CharField(max_length=50, blank=True, null=True)
    preco_unitario = models.DecimalField(max_digits=10, decimal_places=2)
    quantidade = models.PositiveIntegerField()
    subtotal = models.DecimalField(max_digits=10, decimal_places=2)

    class Meta:
        verbose_name = 'Item do Pedido'
        verbose_name_plural = 'Itens do Pedido'
        db_table = 'vendas_item_pedido'

    def __str__(self):
        return f"{self.quantidade}x {self.nome_produto} em Pedido {self.pedido.numero}"

    def save(self, *args, **kwargs):
        """Calcula o subtotal antes de salvar."""
        self.subtotal = self.preco_unitario * self.quantidade
        super().save(*args, **kwargs)


# ====================================================================
# 3. Pagamento
# ====================================================================

class Pagamento(models.Model):
    """
    Tentativa de pagamento de um pedido. Nunca guarda o número do cartão,
    apenas o ID da cobrança no PagBank e os dados de PIX/boleto.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    pedido = models.ForeignKey(Pedido, related_name='pagamentos', on_delete=models.CASCADE)
    metodo = models.CharField(max_length=20, choices=METODO_PAGAMENTO_CHOICES)
    valor = models.DecimalField(max_digits=10, decimal_places=2)
    status = models.CharField(max_length=20, choices=STATUS_PAGAMENTO_CHOICES, default='PENDING')
    tentativa = models.PositiveIntegerField(default=1)
    referencia_externa = models.CharField(max_length=100, blank=True, null=True, db_index=True)

    pix_qr_code = models.TextField(blank=True, null=True)
    pix_qr_code_imagem = models.TextField(blank=True, null=True)
    pix_expira_em = models.DateTimeField(null=True, blank=True)
    boleto_url = models.URLField(max_length=500, blank=True, null=True)
    boleto_codigo_barras = models.CharField(max_length=100, blank=True, null=True)

    mensagem_erro = models.TextField(blank=True, null=True)
    codigo_erro = models.CharField(max_length=50, blank=True, null=True)

    data_criacao = models.DateTimeField(default=timezone.now)
    data_atualizacao = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'Pagamento'
        verbose_name_plural = 'Pagamentos'
        db_table = 'vendas_pagamento'
        ordering = ['-tentativa']
        unique_together = ('pedido', 'tentativa')

    def __str__(self):
        return f"Pagamento {self.tentativa} do pedido {self.pedido.numero} ({self.status})"
