from datetime import timedelta
from decimal import Decimal

from django.core.management.base import BaseCommand
from django.utils import timezone

from nsrloja.catalog.models import Produto, VarianteProduto
from nsrloja.vendas.models import MetodoEnvio, Cupom


class Command(BaseCommand):
    help = 'Carrega métodos de envio, produtos e o cupom de boas-vindas para teste da loja'

    def handle(self, *args, **kwargs):
        self.stdout.write('Criando dados iniciais...')

        # Métodos de envio
        metodos = [
            ('PAC', 'Entrega econômica pelos Correios', Decimal('15.00'), Decimal('2.50'), 5, 10, Decimal('299.00')),
            ('SEDEX', 'Entrega expressa pelos Correios', Decimal('25.00'), Decimal('4.00'), 2, 4, None),
            ('Expresso', 'Entrega no dia seguinte (capitais)', Decimal('39.90'), Decimal('6.00'), 1, 2, None),
        ]

        for nome, descricao, base, por_kg, prazo_min, prazo_max, gratis_acima in metodos:
            metodo, created = MetodoEnvio.objects.get_or_create(
                nome=nome,
                defaults={
                    'descricao': descricao,
                    'custo_base': base,
                    'custo_por_kg': por_kg,
                    'prazo_min_dias': prazo_min,
                    'prazo_max_dias': prazo_max,
                    'frete_gratis_acima': gratis_acima,
                }
            )
            if created:
                self.stdout.write(self.style.SUCCESS(f'Criado método de envio "{metodo.nome}"'))

        # Produtos com (tamanho, cor, estoque) por variante
        produtos = [
            ('Camiseta Básica NSR', 'Camiseta 100% algodão', Decimal('79.90'), Decimal('0.250'),
             [('P', 'Preto', 10), ('M', 'Preto', 12), ('G', 'Preto', 8), ('M', 'Branco', 6)]),
            ('Moletom Canguru', 'Moletom flanelado com capuz', Decimal('189.90'), Decimal('0.800'),
             [('M', 'Cinza', 5), ('G', 'Cinza', 3)]),
            ('Calça Cargo', 'Calça cargo em sarja', Decimal('229.90'), Decimal('0.650'),
             [('38', '', 4), ('40', '', 6), ('42', '', 2)]),
            ('Boné Aba Curva', 'Boné ajustável', Decimal('69.90'), None, []),
        ]

        for nome, descricao, preco, peso, variantes in produtos:
            produto, created = Produto.objects.get_or_create(
                nome=nome,
                defaults={
                    'descricao': descricao,
                    'preco': preco,
                    'peso': peso,
                    'estoque': sum(v[2] for v in variantes) if variantes else 20,
                }
            )
            if not created:
                continue

            for tamanho, cor, estoque in variantes:
                VarianteProduto.objects.create(produto=produto, tamanho=tamanho, cor=cor, estoque=estoque)
            self.stdout.write(self.style.SUCCESS(f'Criado produto "{produto.nome}" ({len(variantes)} variantes)'))

        # Cupom
        agora = timezone.now()
        cupom, created = Cupom.objects.get_or_create(
            codigo='BEMVINDO10',
            defaults={
                'tipo_desconto': 'percentual',
                'valor_desconto': Decimal('10.00'),
                'desconto_maximo': Decimal('50.00'),
                'data_inicio': agora,
                'data_fim': agora + timedelta(days=365),
            }
        )
        if created:
            self.stdout.write(self.style.SUCCESS(f'Criado cupom "{cupom.codigo}"'))

        self.stdout.write(self.style.SUCCESS('Dados iniciais carregados com sucesso!'))
