import uuid
import django.db.models.deletion
import django.utils.timezone
from decimal import Decimal
from django.conf import settings
from django.db import migrations, models


STATUS_PEDIDO = [('PENDING', 'Aguardando Pagamento'), ('PROCESSING', 'Em Preparação'), ('SHIPPED', 'Enviado'), ('DELIVERED', 'Entregue'), ('CANCELLED', 'Cancelado')]
STATUS_PAGAMENTO = [('PENDING', 'Pendente'), ('PAID', 'Pago'), ('FAILED', 'Recusado'), ('EXPIRED', 'Expirado'), ('CANCELLED', 'Cancelado'), ('REFUNDED', 'Estornado')]
METODO_PAGAMENTO = [('credit_card', 'Cartão de Crédito'), ('pix', 'PIX'), ('boleto', 'Boleto')]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ('infrastructure', '0001_initial'),
        ('catalog', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='MetodoEnvio',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('nome', models.CharField(max_length=100)),
                ('descricao', models.CharField(blank=True, max_length=255)),
                ('custo_base', models.DecimalField(decimal_places=2, max_digits=10)),
                ('custo_por_kg', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=10)),
                ('prazo_min_dias', models.PositiveIntegerField()),
                ('prazo_max_dias', models.PositiveIntegerField()),
                ('frete_gratis_acima', models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                ('ativo', models.BooleanField(default=True)),
            ],
            options={
                'verbose_name': 'Método de Envio',
                'verbose_name_plural': 'Métodos de Envio',
                'db_table': 'vendas_metodo_envio',
                'ordering': ['custo_base'],
            },
        ),
        migrations.CreateModel(
            name='Cupom',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('codigo', models.CharField(max_length=50, unique=True)),
                ('tipo_desconto', models.CharField(choices=[('percentual', 'Percentual'), ('fixo', 'Valor Fixo')], max_length=10)),
                ('valor_desconto', models.DecimalField(decimal_places=2, max_digits=10)),
                ('compra_minima', models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                ('desconto_maximo', models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                ('limite_uso', models.PositiveIntegerField(blank=True, null=True)),
                ('vezes_usado', models.PositiveIntegerField(default=0)),
                ('data_inicio', models.DateTimeField()),
                ('data_fim', models.DateTimeField()),
                ('ativo', models.BooleanField(default=True)),
            ],
            options={
                'verbose_name': 'Cupom',
                'verbose_name_plural': 'Cupons',
                'db_table': 'vendas_cupom',
            },
        ),
        migrations.CreateModel(
            name='Pedido',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('numero', models.CharField(max_length=20, unique=True)),
                ('cupom_codigo', models.CharField(blank=True, max_length=50, null=True)),
                ('status', models.CharField(choices=STATUS_PEDIDO, default='PENDING', max_length=20)),
                ('status_pagamento', models.CharField(choices=STATUS_PAGAMENTO, default='PENDING', max_length=20)),
                ('metodo_pagamento', models.CharField(choices=METODO_PAGAMENTO, max_length=20)),
                ('data_pedido', models.DateTimeField(default=django.utils.timezone.now)),
                ('data_modificacao', models.DateTimeField(auto_now=True)),
                ('previsao_entrega', models.DateTimeField(blank=True, null=True)),
                ('motivo_cancelamento', models.TextField(blank=True, null=True)),
                ('estoque_reservado', models.BooleanField(default=False)),
                ('subtotal', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=10)),
                ('desconto', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=10)),
                ('frete', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=10)),
                ('total', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=10)),
                ('nome_cliente', models.CharField(max_length=255)),
                ('email_cliente', models.EmailField(max_length=254)),
                ('telefone_cliente', models.CharField(blank=True, max_length=15)),
                ('nome_destinatario', models.CharField(max_length=100)),
                ('telefone_destinatario', models.CharField(blank=True, max_length=15)),
                ('apelido_endereco', models.CharField(blank=True, max_length=50)),
                ('cep_entrega', models.CharField(max_length=8)),
                ('rua_entrega', models.CharField(max_length=200)),
                ('numero_entrega', models.CharField(max_length=10)),
                ('complemento_entrega', models.CharField(blank=True, max_length=100, null=True)),
                ('bairro_entrega', models.CharField(max_length=100)),
                ('cidade_entrega', models.CharField(max_length=100)),
                ('estado_entrega', models.CharField(max_length=2)),
                ('observacoes', models.TextField(blank=True)),
                ('usuario', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='pedidos', to=settings.AUTH_USER_MODEL)),
                ('endereco', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='pedidos', to='infrastructure.endereco')),
                ('metodo_envio', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, to='vendas.metodoenvio')),
            ],
            options={
                'verbose_name': 'Pedido',
                'verbose_name_plural': 'Pedidos',
                'db_table': 'vendas_pedido',
                'ordering': ['-data_pedido'],
            },
        ),
        migrations.CreateModel(
            name='ItemPedido',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('nome_produto', models.CharField(max_length=255)),
                ('tamanho', models.CharField(blank=True, max_length=10, null=True)),
                ('cor', models.CharField(blank=True, max_length=50, null=True)),
                ('preco_unitario', models.DecimalField(decimal_places=2, max_digits=10)),
                ('quantidade', models.PositiveIntegerField()),
                ('subtotal', models.DecimalField(decimal_places=2, max_digits=10)),
                ('pedido', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='itens', to='vendas.pedido')),
                ('produto', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='itens_venda', to='catalog.produto')),
            ],
            options={
                'verbose_name': 'Item do Pedido',
                'verbose_name_plural': 'Itens do Pedido',
                'db_table': 'vendas_item_pedido',
            },
        ),
        migrations.CreateModel(
            name='Pagamento',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('metodo', models.CharField(choices=METODO_PAGAMENTO, max_length=20)),
                ('valor', models.DecimalField(decimal_places=2, max_digits=10)),
                ('status', models.CharField(choices=STATUS_PAGAMENTO, default='PENDING', max_length=20)),
                ('tentativa', models.PositiveIntegerField(default=1)),
                ('referencia_externa', models.CharField(blank=True, db_index=True, max_length=100, null=True)),
                ('pix_qr_code', models.TextField(blank=True, null=True)),
                ('pix_qr_code_imagem', models.TextField(blank=True, null=True)),
                ('pix_expira_em', models.DateTimeField(blank=True, null=True)),
                ('boleto_url', models.URLField(blank=True, max_length=500, null=True)),
                ('boleto_codigo_barras', models.CharField(blank=True, max_length=100, null=True)),
                ('mensagem_erro', models.TextField(blank=True, null=True)),
                ('codigo_erro', models.CharField(blank=True, max_length=50, null=True)),
                ('data_criacao', models.DateTimeField(default=django.utils.timezone.now)),
                ('data_atualizacao', models.DateTimeField(auto_now=True)),
                ('pedido', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='pagamentos', to='vendas.pedido')),
            ],
            options={
                'verbose_name': 'Pagamento',
                'verbose_name_plural': 'Pagamentos',
                'db_table': 'vendas_pagamento',
                'ordering': ['-tentativa'],
                'unique_together': {('pedido', 'tentativa')},
            },
        ),
    ]
