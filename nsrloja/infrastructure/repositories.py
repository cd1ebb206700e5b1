"""
Camada de Infraestrutura: Implementação dos Repositórios com o Django ORM.

Esta camada traduz as operações abstratas definidas nas Portas do Core
em chamadas concretas ao framework.
"""
import logging
import uuid
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from django.apps import apps
from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction
from django.db.models import F, IntegerField, Max, Q
from django.db.models.functions import Cast, Substr
from django.utils import timezone

# Importações da Camada CORE (ENTIDADES e INTERFACES)
from nsrloja.core.entities import (
    Produto, Endereco, MetodoEnvio, Cupom, Usuario, Pedido, Pagamento, ItemPedido,
    ItemIndisponivel, StatusPedido, StatusPagamento, MetodoPagamento
)
from nsrloja.core.ports import (
    IProdutoRepository,
    IEnderecoRepository,
    IMetodoEnvioRepository,
    ICupomRepository,
    IUsuarioRepository,
    IPedidoRepository,
)
from nsrloja.core.exceptions import (
    CupomInvalidoError,
    EstoqueInsuficienteError,
    EnderecoNaoEncontradoError,
    PedidoNaoEncontradoError,
)

from .mappers import (
    ProdutoMapper, EnderecoMapper, MetodoEnvioMapper, CupomMapper, UsuarioMapper,
    PedidoMapper, ItemPedidoMapper, PagamentoMapper
)

logger = logging.getLogger(__name__)

# Colisões de número aceitas antes de desistir da criação do pedido
TENTATIVAS_NUMERO = 5


# Helper para Lazy Loading
def get_model(app_label, model_name):
    """Busca o modelo Django de forma segura (Lazy Loading)."""
    return apps.get_model(app_label, model_name)


def _uuid_ou_none(valor) -> Optional[uuid.UUID]:
    """IDs vindos da API podem não ser UUIDs válidos; nesse caso não existem."""
    try:
        return uuid.UUID(str(valor))
    except (ValueError, TypeError, AttributeError):
        return None


# ====================================================================
# 1. CATÁLOGO E FRETE
# ====================================================================

class ProdutoRepositoryDjango(IProdutoRepository):
    """Leitura de produtos com as variantes pré-carregadas."""

    @property
    def ProdutoModel(self):
        return get_model('catalog', 'Produto')

    def buscar_por_ids(self, produto_ids: Iterable[str]) -> Dict[str, Produto]:
        uuids = [u for u in (_uuid_ou_none(pid) for pid in produto_ids) if u]
        qs = self.ProdutoModel.objects.filter(pk__in=uuids).prefetch_related('variantes')
        return {str(model.id): ProdutoMapper.to_entity(model) for model in qs}


class MetodoEnvioRepositoryDjango(IMetodoEnvioRepository):

    @property
    def MetodoEnvioModel(self):
        return get_model('vendas', 'MetodoEnvio')

    def listar_ativos(self) -> List[MetodoEnvio]:
        qs = self.MetodoEnvioModel.objects.filter(ativo=True).order_by('custo_base', 'nome')
        return [MetodoEnvioMapper.to_entity(model) for model in qs]

    def buscar_por_id(self, metodo_id: str) -> Optional[MetodoEnvio]:
        pk = _uuid_ou_none(metodo_id)
        if not pk:
            return None
        return MetodoEnvioMapper.to_entity(self.MetodoEnvioModel.objects.filter(pk=pk).first())


class CupomRepositoryDjango(ICupomRepository):

    @property
    def CupomModel(self):
        return get_model('vendas', 'Cupom')

    def buscar_por_codigo(self, codigo: str) -> Optional[Cupom]:
        return CupomMapper.to_entity(self.CupomModel.objects.filter(codigo__iexact=codigo).first())


# ====================================================================
# 2. USUÁRIOS E ENDEREÇOS
# ====================================================================

class UsuarioRepositoryDjango(IUsuarioRepository):

    def buscar_por_id(self, usuario_id: str) -> Optional[Usuario]:
        try:
            model = get_user_model().objects.filter(pk=int(usuario_id)).first()
        except (TypeError, ValueError):
            return None
        return UsuarioMapper.to_entity(model)


class EnderecoRepositoryDjango(IEnderecoRepository):
    """Endereços de entrega; a troca do endereço principal é sempre atômica."""

    @property
    def EnderecoModel(self):
        return get_model('infrastructure', 'Endereco')

    def listar_por_usuario(self, usuario_id: str) -> List[Endereco]:
        qs = self.EnderecoModel.objects.filter(usuario_id=usuario_id).order_by('-is_principal', '-data_criacao')
        return [EnderecoMapper.to_entity(model) for model in qs]

    def buscar_por_id(self, endereco_id: str) -> Optional[Endereco]:
        pk = _uuid_ou_none(endereco_id)
        if not pk:
            return None
        return EnderecoMapper.to_entity(self.EnderecoModel.objects.filter(pk=pk).first())

    def contar_por_usuario(self, usuario_id: str) -> int:
        return self.EnderecoModel.objects.filter(usuario_id=usuario_id).count()

    @transaction.atomic
    def salvar(self, endereco: Endereco) -> Endereco:
        model = self.EnderecoModel.objects.filter(pk=_uuid_ou_none(endereco.id)).first()
        model = EnderecoMapper.to_model(endereco, model)

        if model.is_principal:
            self.EnderecoModel.objects.filter(usuario_id=model.usuario_id).exclude(pk=model.pk).update(
                is_principal=False
            )
        model.save()
        return EnderecoMapper.to_entity(model)

    @transaction.atomic
    def definir_principal(self, usuario_id: str, endereco_id: str) -> Endereco:
        enderecos = self.EnderecoModel.objects.select_for_update().filter(usuario_id=usuario_id)
        try:
            model = enderecos.get(pk=_uuid_ou_none(endereco_id))
        except self.EnderecoModel.DoesNotExist:
            raise EnderecoNaoEncontradoError()

        enderecos.exclude(pk=model.pk).update(is_principal=False)
        model.is_principal = True
        model.save(update_fields=['is_principal', 'data_atualizacao'])
        return EnderecoMapper.to_entity(model)

    @transaction.atomic
    def deletar(self, endereco_id: str) -> None:
        model = self.EnderecoModel.objects.filter(pk=_uuid_ou_none(endereco_id)).first()
        if not model:
            raise EnderecoNaoEncontradoError()

        era_principal = model.is_principal
        usuario_id = model.usuario_id
        model.delete()

        if era_principal:
            proximo = self.EnderecoModel.objects.filter(usuario_id=usuario_id).order_by('-data_criacao').first()
            if proximo:
                proximo.is_principal = True
                proximo.save(update_fields=['is_principal', 'data_atualizacao'])


# ====================================================================
# 3. PEDIDOS E PAGAMENTOS
# ====================================================================

class PedidoRepositoryDjango(IPedidoRepository):
    """Implementação do PedidoRepository usando o Django ORM."""

    # Propriedades para carregar modelos de forma LAZY
    @property
    def PedidoModel(self):
        return get_model('vendas', 'Pedido')

    @property
    def ItemPedidoModel(self):
        return get_model('vendas', 'ItemPedido')

    @property
    def PagamentoModel(self):
        return get_model('vendas', 'Pagamento')

    @property
    def ProdutoModel(self):
        return get_model('catalog', 'Produto')

    @property
    def VarianteModel(self):
        return get_model('catalog', 'VarianteProduto')

    @property
    def CupomModel(self):
        return get_model('vendas', 'Cupom')

    def _queryset(self):
        return self.PedidoModel.objects.prefetch_related('itens', 'pagamentos')

    # --- Numeração ---

    def gerar_numero(self, ano: int) -> str:
        prefixo = f"NSR-{ano}-"
        # Maior sufixo numérico: a ordem textual colocaria 9999 depois de 10000
        ultimo = (
            self.PedidoModel.objects.filter(numero__startswith=prefixo)
            .annotate(sequencia=Cast(Substr('numero', len(prefixo) + 1), output_field=IntegerField()))
            .aggregate(maior=Max('sequencia'))['maior']
        )
        return f"{prefixo}{(ultimo or 0) + 1:04d}"

    # --- Estoque ---

    def _localizar_estoque(self, item: ItemPedido):
        """
        Devolve (queryset, nome) do registro que guarda o estoque do item:
        a variante quando o produto tem variantes e o item traz tamanho/cor,
        senão o próprio produto. queryset é None quando nada foi encontrado.
        """
        produto = self.ProdutoModel.objects.filter(pk=_uuid_ou_none(item.produto_id)).first()
        if not produto:
            return None, item.nome_produto

        if (item.tamanho or item.cor) and produto.variantes.exists():
            variantes = self.VarianteModel.objects.filter(produto_id=produto.pk, tamanho=item.tamanho)
            if item.cor:
                variantes = variantes.filter(cor=item.cor)
            variante = variantes.first()
            if not variante:
                return None, produto.nome
            return self.VarianteModel.objects.filter(pk=variante.pk), produto.nome

        return self.ProdutoModel.objects.filter(pk=produto.pk), produto.nome

    def _baixar_estoque(self, itens: List[ItemPedido]):
        """Baixa condicional com F(): nunca deixa o estoque negativo sob concorrência."""
        for item in itens:
            qs, nome = self._localizar_estoque(item)
            atualizados = 0
            if qs is not None:
                atualizados = qs.filter(estoque__gte=item.quantidade).update(
                    estoque=F('estoque') - item.quantidade
                )
            if not atualizados:
                disponivel = qs.values_list('estoque', flat=True).first() if qs is not None else 0
                raise EstoqueInsuficienteError([ItemIndisponivel(
                    produto_id=item.produto_id,
                    nome_produto=nome,
                    quantidade_solicitada=item.quantidade,
                    quantidade_disponivel=disponivel or 0,
                )])

    def _devolver_estoque(self, itens: List[ItemPedido]):
        for item in itens:
            qs, _ = self._localizar_estoque(item)
            if qs is None:
                logger.warning("Produto %s não encontrado ao devolver estoque", item.produto_id)
                continue
            qs.update(estoque=F('estoque') + item.quantidade)

    def _gravar_com_numero(self, pedido: Pedido):
        """
        Grava o pedido com o próximo número do ano. Dois checkouts simultâneos
        podem ler o mesmo último número; a constraint unique decide e o
        perdedor gera outro dentro de um savepoint.
        """
        for tentativa in range(1, TENTATIVAS_NUMERO + 1):
            pedido.numero = self.gerar_numero(pedido.data_pedido.year)
            model = PedidoMapper.to_model(pedido)
            try:
                with transaction.atomic():
                    model.save()
                return model
            except IntegrityError:
                if tentativa == TENTATIVAS_NUMERO:
                    raise
                logger.warning("Número %s já usado, gerando outro (tentativa %s)", pedido.numero, tentativa)

    def _consumir_cupom(self, codigo: str) -> None:
        """Incremento condicional: falha quando o limite de uso já foi atingido."""
        atualizados = (
            self.CupomModel.objects.filter(codigo__iexact=codigo)
            .filter(Q(limite_uso__isnull=True) | Q(vezes_usado__lt=F('limite_uso')))
            .update(vezes_usado=F('vezes_usado') + 1)
        )
        if not atualizados:
            raise CupomInvalidoError("Cupom esgotado")

    @transaction.atomic
    def criar_pedido(self, pedido: Pedido, pagamento: Pagamento) -> Pedido:
        """
        Pedido, itens, primeiro pagamento e baixa de estoque na mesma transação:
        qualquer falha desfaz tudo.
        """
        model = self._gravar_com_numero(pedido)
        if pedido.cupom_codigo:
            self._consumir_cupom(pedido.cupom_codigo)

        self.ItemPedidoModel.objects.bulk_create([
            ItemPedidoMapper.to_model(item, pedido_id=model.id)
            for item in pedido.itens
        ])

        pagamento.pedido_id = str(model.id)
        PagamentoMapper.to_model(pagamento).save()

        self._baixar_estoque(pedido.itens)
        logger.info("Estoque reservado para o pedido %s", pedido.numero)

        return self.buscar_por_id(model.id)

    @transaction.atomic
    def reservar_estoque(self, pedido_id: str) -> None:
        model = self.PedidoModel.objects.select_for_update().filter(pk=_uuid_ou_none(pedido_id)).first()
        if not model:
            raise PedidoNaoEncontradoError()
        if model.estoque_reservado:
            return

        itens = [ItemPedidoMapper.to_entity(item) for item in model.itens.all()]
        self._baixar_estoque(itens)
        model.estoque_reservado = True
        model.save(update_fields=['estoque_reservado', 'data_modificacao'])
        logger.info("Estoque reservado novamente para o pedido %s", model.numero)

    @transaction.atomic
    def liberar_estoque(self, pedido_id: str) -> bool:
        model = self.PedidoModel.objects.select_for_update().filter(pk=_uuid_ou_none(pedido_id)).first()
        if not model or not model.estoque_reservado:
            return False

        itens = [ItemPedidoMapper.to_entity(item) for item in model.itens.all()]
        self._devolver_estoque(itens)
        model.estoque_reservado = False
        model.save(update_fields=['estoque_reservado', 'data_modificacao'])
        logger.info("Estoque liberado para o pedido %s", model.numero)
        return True

    # --- Consultas ---

    def buscar_por_id(self, pedido_id: str) -> Optional[Pedido]:
        pk = _uuid_ou_none(pedido_id)
        if not pk:
            return None
        return PedidoMapper.to_entity(self._queryset().filter(pk=pk).first())

    def buscar_por_referencia_pagamento(self, referencia_externa: str) -> Optional[Pedido]:
        pedido_id = (
            self.PagamentoModel.objects.filter(referencia_externa=referencia_externa)
            .values_list('pedido_id', flat=True)
            .first()
        )
        return self.buscar_por_id(pedido_id) if pedido_id else None

    def listar_pedidos_por_usuario(self, usuario_id: str) -> List[Pedido]:
        qs = self._queryset().filter(usuario_id=usuario_id).order_by('-data_pedido')
        return [PedidoMapper.to_entity(model) for model in qs]

    def listar_pix_vencidos(self, agora: datetime) -> List[Pedido]:
        pedido_ids = set(
            self.PagamentoModel.objects.filter(
                metodo=MetodoPagamento.PIX,
                status=StatusPagamento.PENDENTE,
                pix_expira_em__lte=agora,
                pedido__status=StatusPedido.PENDENTE,
            ).values_list('pedido_id', flat=True)
        )
        pedidos = [PedidoMapper.to_entity(model) for model in self._queryset().filter(pk__in=pedido_ids)]
        # Só interessa quando a tentativa vencida é a atual
        return [p for p in pedidos if p.pagamento and p.pagamento.pix_expirado(agora)]

    def listar_pendentes_criados_antes(self, limite: datetime) -> List[Pedido]:
        qs = self._queryset().filter(status=StatusPedido.PENDENTE, data_pedido__lt=limite)
        return [PedidoMapper.to_entity(model) for model in qs]

    # --- Atualizações ---

    def criar_pagamento(self, pagamento: Pagamento) -> Pagamento:
        model = PagamentoMapper.to_model(pagamento)
        model.save()
        return PagamentoMapper.to_entity(model)

    def salvar_pagamento(self, pagamento: Pagamento) -> Pagamento:
        model = self.PagamentoModel.objects.filter(pk=_uuid_ou_none(pagamento.id)).first()
        model = PagamentoMapper.to_model(pagamento, model)
        model.save()
        return PagamentoMapper.to_entity(model)

    def atualizar_status(
        self,
        pedido_id: str,
        novo_status: Optional[str] = None,
        status_pagamento: Optional[str] = None,
        motivo_cancelamento: Optional[str] = None,
        metodo_pagamento: Optional[str] = None,
    ) -> Pedido:
        campos = {'data_modificacao': timezone.now()}
        if novo_status:
            campos['status'] = novo_status
        if status_pagamento:
            campos['status_pagamento'] = status_pagamento
        if motivo_cancelamento:
            campos['motivo_cancelamento'] = motivo_cancelamento
        if metodo_pagamento:
            campos['metodo_pagamento'] = metodo_pagamento

        atualizados = self.PedidoModel.objects.filter(pk=_uuid_ou_none(pedido_id)).update(**campos)
        if not atualizados:
            raise PedidoNaoEncontradoError()
        return self.buscar_por_id(pedido_id)
