# Configuração da interface administrativa do Django para os modelos da NSR Loja.

from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from nsrloja.infrastructure.models import Usuario, Endereco
from nsrloja.catalog.models import Produto, VarianteProduto
from nsrloja.vendas.models import MetodoEnvio, Cupom, Pedido, ItemPedido, Pagamento

# ====================================================================
# 1. ADMIN PERSONALIZADO PARA USUÁRIOS
# ====================================================================

class EnderecoInline(admin.StackedInline):
    model = Endereco
    extra = 0


@admin.register(Usuario)
class UsuarioAdmin(BaseUserAdmin):
    """Login por e-mail: os fieldsets do UserAdmin são redefinidos sem o 'username'."""

    list_display = ('email', 'first_name', 'last_name', 'is_staff', 'is_active', 'telefone', 'cpf')
    inlines = [EnderecoInline]

    fieldsets = (
        (None, {'fields': ('email', 'password')}),
        ('Informações Pessoais', {'fields': ('first_name', 'last_name', 'telefone', 'cpf')}),
        ('Permissões', {'fields': ('is_active', 'is_staff', 'is_superuser', 'groups', 'user_permissions')}),
        ('Datas Importantes', {'fields': ('last_login', 'date_joined')}),
    )
    add_fieldsets = (
        (None, {
            'classes': ('wide',),
            'fields': ('email', 'first_name', 'last_name', 'password1', 'password2'),
        }),
    )

    search_fields = ('email', 'first_name', 'last_name', 'cpf')
    ordering = ('email',)


# ====================================================================
# 2. ADMIN PARA O CATÁLOGO
# ====================================================================

class VarianteInline(admin.TabularInline):
    model = VarianteProduto
    extra = 1


@admin.register(Produto)
class ProdutoAdmin(admin.ModelAdmin):
    list_display = ('nome', 'preco', 'estoque', 'peso', 'ativo', 'data_criacao')
    list_filter = ('ativo',)
    search_fields = ('nome', 'descricao', 'id')
    ordering = ('nome',)
    inlines = [VarianteInline]


# ====================================================================
# 3. ADMIN PARA FRETE E CUPONS
# ====================================================================

@admin.register(MetodoEnvio)
class MetodoEnvioAdmin(admin.ModelAdmin):
    list_display = ('nome', 'custo_base', 'custo_por_kg', 'prazo_min_dias', 'prazo_max_dias',
                    'frete_gratis_acima', 'ativo')
    list_filter = ('ativo',)


@admin.register(Cupom)
class CupomAdmin(admin.ModelAdmin):
    list_display = ('codigo', 'tipo_desconto', 'valor_desconto', 'vezes_usado', 'limite_uso',
                    'data_inicio', 'data_fim', 'ativo')
    list_filter = ('ativo', 'tipo_desconto')
    search_fields = ('codigo',)


# ====================================================================
# 4. ADMIN PARA PEDIDOS
# ====================================================================

class ItemPedidoInline(admin.TabularInline):
    """Exibe os itens comprados dentro do detalhe do Pedido."""
    model = ItemPedido
    readonly_fields = ('produto', 'nome_produto', 'tamanho', 'cor', 'preco_unitario', 'quantidade', 'subtotal')
    extra = 0
    can_delete = False


class PagamentoInline(admin.TabularInline):
    model = Pagamento
    fields = ('tentativa', 'metodo', 'status', 'valor', 'referencia_externa', 'mensagem_erro', 'data_criacao')
    readonly_fields = fields
    extra = 0
    can_delete = False


@admin.register(Pedido)
class PedidoAdmin(admin.ModelAdmin):
    list_display = ('numero', 'usuario', 'data_pedido', 'total', 'status', 'status_pagamento', 'metodo_pagamento')
    list_filter = ('status', 'status_pagamento', 'metodo_pagamento', 'data_pedido')
    search_fields = ('numero', 'usuario__email', 'email_cliente', 'cidade_entrega')
    date_hierarchy = 'data_pedido'
    inlines = [ItemPedidoInline, PagamentoInline]

    readonly_fields = (
        'numero',
        'usuario',
        'data_pedido',
        'subtotal',
        'frete',
        'desconto',
        'total',
        'metodo_pagamento',
        'status_pagamento',
        'estoque_reservado',
        'cep_entrega',
        'rua_entrega',
        'numero_entrega',
        'bairro_entrega',
        'cidade_entrega',
        'estado_entrega',
    )

    def has_add_permission(self, request):
        """Pedidos só nascem pelo checkout."""
        return False
