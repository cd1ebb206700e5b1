# nsrloja/cliente/carrinho.py
"""
Carrinho do cliente: itens imutáveis guardados numa Store, seletores de
total/quantidade e a validação local feita antes de iniciar o checkout.
"""
from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import List, Optional, Sequence, Tuple

from nsrloja.core.exceptions import DadosInvalidosError
from nsrloja.cliente.estado import Store


@dataclass(frozen=True)
class VarianteCarrinho:
    tamanho: str
    cor: str
    estoque: int


@dataclass(frozen=True)
class ItemCarrinho:
    id: Optional[str]
    nome: str
    preco: Decimal
    quantidade: int
    tamanho_selecionado: Optional[str] = None
    cor_selecionada: Optional[str] = None
    variantes: Tuple[VarianteCarrinho, ...] = ()
    # Estoque do produto quando ele não tem variantes
    estoque: Optional[int] = None

    @property
    def chave(self) -> Tuple[Optional[str], Optional[str], Optional[str]]:
        return (self.id, self.tamanho_selecionado, self.cor_selecionada)

    @property
    def subtotal(self) -> Decimal:
        return self.preco * self.quantidade

    def buscar_variante(self) -> Optional[VarianteCarrinho]:
        for variante in self.variantes:
            if variante.tamanho != self.tamanho_selecionado:
                continue
            if self.cor_selecionada and variante.cor != self.cor_selecionada:
                continue
            return variante
        return None

    def estoque_disponivel(self) -> Optional[int]:
        """Estoque da variante escolhida, ou do produto quando não há variantes. None = desconhecido."""
        if self.variantes:
            variante = self.buscar_variante()
            return variante.estoque if variante else None
        return self.estoque


@dataclass(frozen=True)
class EstadoCarrinho:
    itens: Tuple[ItemCarrinho, ...] = field(default_factory=tuple)


# ====================================================================
# VALIDAÇÃO PARA CHECKOUT
# ====================================================================

def _descrever(item: ItemCarrinho) -> str:
    return f"{item.nome} - {item.tamanho_selecionado}/{item.cor_selecionada or '-'}"


def validar_itens_carrinho_para_checkout(itens: Sequence[ItemCarrinho]) -> None:
    """
    Levanta DadosInvalidosError no primeiro problema encontrado.
    Não consulta o servidor: usa o estoque que veio junto com o produto.
    """
    if not itens:
        raise DadosInvalidosError("Carrinho vazio")

    for item in itens:
        if not item.id:
            raise DadosInvalidosError("Produto inválido no carrinho (ID ausente)")

        if not isinstance(item.quantidade, int) or item.quantidade <= 0:
            raise DadosInvalidosError(f"Quantidade inválida para {item.nome}")

        if not item.variantes:
            if item.estoque is not None and item.quantidade > item.estoque:
                raise DadosInvalidosError(
                    f"Quantidade acima do estoque para {item.nome}. Disponível: {item.estoque}"
                )
            continue

        if not item.tamanho_selecionado:
            raise DadosInvalidosError(f"Selecione um tamanho para {item.nome}")

        variante = item.buscar_variante()
        if variante is None:
            raise DadosInvalidosError(
                f"Variante não encontrada para {item.nome} "
                f"({item.tamanho_selecionado}/{item.cor_selecionada or '-'})"
            )

        if variante.estoque <= 0:
            raise DadosInvalidosError(f"Produto sem estoque: {_descrever(item)}")

        if item.quantidade > variante.estoque:
            raise DadosInvalidosError(
                f"Quantidade acima do estoque para {_descrever(item)}. Disponível: {variante.estoque}"
            )


def itens_para_api(itens: Sequence[ItemCarrinho]) -> List[dict]:
    """Converte os itens para o contrato JSON da API (camelCase)."""
    corpo = []
    for item in itens:
        linha = {'productId': item.id, 'quantity': item.quantidade}
        if item.tamanho_selecionado:
            linha['size'] = item.tamanho_selecionado
        if item.cor_selecionada:
            linha['color'] = item.cor_selecionada
        corpo.append(linha)
    return corpo


# ====================================================================
# SELETORES
# ====================================================================

def total_carrinho(estado: EstadoCarrinho) -> Decimal:
    return sum((item.subtotal for item in estado.itens), Decimal('0.00'))


def quantidade_itens(estado: EstadoCarrinho) -> int:
    return sum(item.quantidade for item in estado.itens)


# ====================================================================
# CARRINHO
# ====================================================================

def _conferir_estoque(item: ItemCarrinho, quantidade: int) -> None:
    """Checagem leve no carrinho; a definitiva acontece no checkout e no servidor."""
    estoque = item.estoque_disponivel()
    if estoque is None:
        return
    if estoque <= 0:
        raise DadosInvalidosError(f"Produto sem estoque: {item.nome}")
    if quantidade > estoque:
        raise DadosInvalidosError(f"Quantidade acima do estoque para {item.nome}. Disponível: {estoque}")


class Carrinho:
    """Operações do carrinho sobre uma Store[EstadoCarrinho]."""

    def __init__(self, store: Optional[Store] = None):
        self.store = store or Store(EstadoCarrinho())

    @property
    def itens(self) -> Tuple[ItemCarrinho, ...]:
        return self.store.obter().itens

    def total(self) -> Decimal:
        return self.store.selecionar(total_carrinho)

    def quantidade(self) -> int:
        return self.store.selecionar(quantidade_itens)

    def adicionar(self, item: ItemCarrinho) -> EstadoCarrinho:
        """
        Mesmo produto/tamanho/cor soma a quantidade na linha existente.
        Recusa produto sem estoque e soma acima do estoque (DadosInvalidosError).
        """
        def transformar(estado: EstadoCarrinho) -> EstadoCarrinho:
            for i, existente in enumerate(estado.itens):
                if existente.chave == item.chave:
                    quantidade = existente.quantidade + item.quantidade
                    _conferir_estoque(item, quantidade)
                    novo = replace(existente, quantidade=quantidade)
                    return replace(estado, itens=estado.itens[:i] + (novo,) + estado.itens[i + 1:])
            _conferir_estoque(item, item.quantidade)
            return replace(estado, itens=estado.itens + (item,))
        return self.store.atualizar(transformar)

    def alterar_quantidade(self, chave, quantidade: int) -> EstadoCarrinho:
        if quantidade <= 0:
            return self.remover(chave)

        def transformar(estado: EstadoCarrinho) -> EstadoCarrinho:
            itens = []
            for item in estado.itens:
                if item.chave == chave:
                    # Diminuir é sempre permitido, mesmo que o estoque tenha caído
                    if quantidade > item.quantidade:
                        _conferir_estoque(item, quantidade)
                    item = replace(item, quantidade=quantidade)
                itens.append(item)
            return replace(estado, itens=tuple(itens))
        return self.store.atualizar(transformar)

    def remover(self, chave) -> EstadoCarrinho:
        return self.store.atualizar(
            lambda estado: replace(estado, itens=tuple(i for i in estado.itens if i.chave != chave))
        )

    def limpar(self) -> EstadoCarrinho:
        return self.store.atualizar(lambda estado: EstadoCarrinho())
