from dataclasses import dataclass, field
from decimal import Decimal
from datetime import datetime, timezone
from typing import List, Optional
import uuid


def agora_utc() -> datetime:
    """Instante atual com fuso (UTC), comparável aos datetimes do Django com USE_TZ."""
    return datetime.now(timezone.utc)

# ====================================================================
# VOCABULÁRIO DE STATUS E MÉTODOS
# Os valores são os mesmos expostos no contrato JSON da API.
# ====================================================================

class StatusPedido:
    PENDENTE = "PENDING"
    PROCESSANDO = "PROCESSING"
    ENVIADO = "SHIPPED"
    ENTREGUE = "DELIVERED"
    CANCELADO = "CANCELLED"

    TODOS = [PENDENTE, PROCESSANDO, ENVIADO, ENTREGUE, CANCELADO]


class StatusPagamento:
    PENDENTE = "PENDING"
    PAGO = "PAID"
    FALHOU = "FAILED"
    EXPIRADO = "EXPIRED"
    CANCELADO = "CANCELLED"
    ESTORNADO = "REFUNDED"

    TODOS = [PENDENTE, PAGO, FALHOU, EXPIRADO, CANCELADO, ESTORNADO]
    # Status a partir dos quais o pagamento pode ser refeito
    RETENTAVEIS = [FALHOU, EXPIRADO]


class MetodoPagamento:
    CARTAO_CREDITO = "credit_card"
    PIX = "pix"
    BOLETO = "boleto"

    TODOS = [CARTAO_CREDITO, PIX, BOLETO]


# ====================================================================
# ENTIDADES CORE
# Representam os objetos de negócio puros.
# ====================================================================

@dataclass
class Usuario:
    """Entidade do Usuário, usada como referência para pedidos/endereços."""
    nome: str
    email: str
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    cpf: Optional[str] = None
    telefone: Optional[str] = None


@dataclass
class Endereco:
    """Entidade do Endereço de Entrega de um usuário."""
    usuario_id: str
    apelido: str
    nome_destinatario: str
    telefone_destinatario: str
    cep: str
    rua: str
    numero: str
    bairro: str
    cidade: str
    estado: str
    complemento: Optional[str] = None
    is_principal: bool = False
    id: Optional[str] = field(default_factory=lambda: str(uuid.uuid4()))
    data_criacao: datetime = field(default_factory=agora_utc)


@dataclass
class VarianteProduto:
    """SKU de um produto para um tamanho/cor específico."""
    tamanho: str
    cor: Optional[str]
    estoque: int
    id: str = field(default_factory=lambda: str(uuid.uuid4()))


@dataclass
class Produto:
    """Entidade do Produto vendido na loja."""
    nome: str
    preco: Decimal
    estoque: int
    peso: Optional[Decimal] = None
    ativo: bool = True
    variantes: List[VarianteProduto] = field(default_factory=list)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def buscar_variante(self, tamanho: Optional[str], cor: Optional[str] = None) -> Optional[VarianteProduto]:
        """Localiza a variante pelo tamanho e, quando informada, pela cor."""
        for variante in self.variantes:
            if variante.tamanho != tamanho:
                continue
            if cor and variante.cor != cor:
                continue
            return variante
        return None

    def estoque_disponivel(self, tamanho: Optional[str] = None, cor: Optional[str] = None) -> int:
        """
        Estoque considerado para uma linha do carrinho: nível de variante quando
        tamanho/cor são informados, nível de produto caso contrário.
        """
        if not self.ativo:
            return 0
        if tamanho or cor:
            if not self.variantes:
                return self.estoque
            variante = self.buscar_variante(tamanho, cor)
            return variante.estoque if variante else 0
        return self.estoque


@dataclass
class ItemSolicitado:
    """Linha do carrinho enviada pelo cliente (produto, quantidade, tamanho/cor)."""
    produto_id: str
    quantidade: int
    tamanho: Optional[str] = None
    cor: Optional[str] = None


@dataclass
class ItemIndisponivel:
    produto_id: str
    nome_produto: Optional[str]
    quantidade_solicitada: int
    quantidade_disponivel: int


@dataclass
class ResultadoEstoque:
    """Resultado da checagem prévia de estoque (não altera o estoque)."""
    disponivel: bool
    itens_indisponiveis: List[ItemIndisponivel] = field(default_factory=list)


@dataclass
class MetodoEnvio:
    """Modalidade de entrega cadastrada (modelo de custo linear por peso)."""
    nome: str
    custo_base: Decimal
    custo_por_kg: Decimal
    prazo_min_dias: int
    prazo_max_dias: int
    descricao: str = ""
    frete_gratis_acima: Optional[Decimal] = None
    ativo: bool = True
    id: str = field(default_factory=lambda: str(uuid.uuid4()))


@dataclass
class OpcaoFrete:
    """Opção de frete calculada por requisição (não persistida)."""
    id: str
    nome: str
    descricao: str
    custo: Decimal
    prazo_min_dias: int
    prazo_max_dias: int
    gratis: bool = False


@dataclass
class Cupom:
    """Cupom de desconto percentual ou de valor fixo."""
    codigo: str
    tipo_desconto: str  # 'percentual' ou 'fixo'
    valor_desconto: Decimal
    data_inicio: datetime
    data_fim: datetime
    ativo: bool = True
    compra_minima: Optional[Decimal] = None
    desconto_maximo: Optional[Decimal] = None
    limite_uso: Optional[int] = None
    vezes_usado: int = 0
    id: str = field(default_factory=lambda: str(uuid.uuid4()))


@dataclass
class CartaoCriptografado:
    """Saída do adaptador de criptografia: nunca contém o número do cartão."""
    criptografado: str
    nome_titular: str
    cpf_titular: str


@dataclass
class ItemPedido:
    """Snapshot de um item no momento da compra (imutável)."""
    produto_id: str
    nome_produto: str
    preco_unitario: Decimal
    quantidade: int
    tamanho: Optional[str] = None
    cor: Optional[str] = None
    subtotal: Decimal = field(init=False)

    def __post_init__(self):
        """Calcula o subtotal após a inicialização."""
        self.subtotal = self.preco_unitario * self.quantidade


@dataclass
class TransacaoPagamento:
    """Entidade que registra a resposta do Gateway de Pagamento."""
    referencia_externa: Optional[str]  # ID da cobrança no PagBank
    status_pagamento: str              # Um dos valores de StatusPagamento
    valor: Decimal
    metodo: str
    pix_qr_code: Optional[str] = None
    pix_qr_code_imagem: Optional[str] = None
    pix_expira_em: Optional[datetime] = None
    boleto_url: Optional[str] = None
    boleto_codigo_barras: Optional[str] = None
    mensagem_erro: Optional[str] = None
    codigo_erro: Optional[str] = None
    data_transacao: datetime = field(default_factory=agora_utc)


@dataclass
class Pagamento:
    """Tentativa de pagamento de um pedido. A tentativa mais recente é a ativa."""
    pedido_id: Optional[str]
    metodo: str
    valor: Decimal
    status: str = StatusPagamento.PENDENTE
    tentativa: int = 1
    referencia_externa: Optional[str] = None
    pix_qr_code: Optional[str] = None
    pix_qr_code_imagem: Optional[str] = None
    pix_expira_em: Optional[datetime] = None
    boleto_url: Optional[str] = None
    boleto_codigo_barras: Optional[str] = None
    mensagem_erro: Optional[str] = None
    codigo_erro: Optional[str] = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    data_criacao: datetime = field(default_factory=agora_utc)

    def pix_expirado(self, agora: datetime) -> bool:
        return (
            self.metodo == MetodoPagamento.PIX
            and self.status == StatusPagamento.PENDENTE
            and self.pix_expira_em is not None
            and agora >= self.pix_expira_em
        )

    def aplicar_transacao(self, transacao: TransacaoPagamento):
        """Copia para o pagamento os dados devolvidos pelo gateway."""
        self.status = transacao.status_pagamento
        self.referencia_externa = transacao.referencia_externa or self.referencia_externa
        self.pix_qr_code = transacao.pix_qr_code
        self.pix_qr_code_imagem = transacao.pix_qr_code_imagem
        self.pix_expira_em = transacao.pix_expira_em
        self.boleto_url = transacao.boleto_url
        self.boleto_codigo_barras = transacao.boleto_codigo_barras
        self.mensagem_erro = transacao.mensagem_erro
        self.codigo_erro = transacao.codigo_erro


@dataclass
class Pedido:
    """Entidade do Pedido de Venda."""
    # Campos obrigatórios
    usuario_id: str
    itens: List[ItemPedido]
    metodo_pagamento: str
    endereco_entrega: Endereco
    subtotal: Decimal
    frete: Decimal
    total: Decimal
    # Campos opcionais/calculados
    numero: Optional[str] = None
    status: str = StatusPedido.PENDENTE
    status_pagamento: str = StatusPagamento.PENDENTE
    desconto: Decimal = Decimal("0.00")
    metodo_envio_id: Optional[str] = None
    cupom_codigo: Optional[str] = None
    nome_cliente: str = ""
    email_cliente: str = ""
    telefone_cliente: str = ""
    observacoes: str = ""
    previsao_entrega: Optional[datetime] = None
    estoque_reservado: bool = False
    motivo_cancelamento: Optional[str] = None
    pagamento: Optional[Pagamento] = None
    id: Optional[str] = field(default_factory=lambda: str(uuid.uuid4()))
    data_pedido: datetime = field(default_factory=agora_utc)
