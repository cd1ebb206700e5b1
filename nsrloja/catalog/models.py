import uuid
from django.db import models

# ====================================================================
# 1. Produto
# ====================================================================

class Produto(models.Model):
    """
    Produto do catálogo. O estoque de nível de produto vale para produtos sem
    variantes; com variantes, o estoque de cada tamanho/cor é o que conta.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    nome = models.CharField(max_length=255, verbose_name="Nome do Produto")
    descricao = models.TextField(blank=True, verbose_name="Descrição")

    preco = models.DecimalField(max_digits=10, decimal_places=2, verbose_name="Preço de Venda")
    estoque = models.PositiveIntegerField(default=0, verbose_name="Estoque Atual")
    peso = models.DecimalField(max_digits=8, decimal_places=3, null=True, blank=True,
                               help_text="Peso em kg (0,5 kg é assumido quando vazio)")
    ativo = models.BooleanField(default=True)

    data_criacao = models.DateTimeField(auto_now_add=True)
    data_atualizacao = models.DateTimeField(auto_now=True, null=True)

    class Meta:
        verbose_name = "Produto"
        verbose_name_plural = "Produtos"
        ordering = ['nome']
        db_table = 'catalogo_produto'

    def __str__(self):
        return self.nome

    @property
    def preco_formatado(self):
        """Retorna o preço formatado em Real Brasileiro."""
        return f"R$ {self.preco:,.2f}".replace(",", "X").replace(".", ",").replace("X", ".")


# ====================================================================
# 2. Variante (tamanho/cor)
# ====================================================================

class VarianteProduto(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    produto = models.ForeignKey(Produto, on_delete=models.CASCADE, related_name='variantes')
    tamanho = models.CharField(max_length=10)
    cor = models.CharField(max_length=50, blank=True, default='')
    estoque = models.PositiveIntegerField(default=0)

    class Meta:
        verbose_name = "Variante"
        verbose_name_plural = "Variantes"
        db_table = 'catalogo_variante'
        unique_together = ('produto', 'tamanho', 'cor')
        ordering = ['tamanho', 'cor']

    def __str__(self):
        cor = f"/{self.cor}" if self.cor else ""
        return f"{self.produto.nome} - {self.tamanho}{cor}"
