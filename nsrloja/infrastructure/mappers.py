"""
Mapeadores (Mappers) para converter entre:
1. Modelos do Django ORM
2. Entidades de Domínio (nsrloja.core.entities)

Os IDs das entidades são sempre strings; os modelos usam UUID (e inteiro no Usuário).
"""
from typing import Any, Optional, Type
from django.db import models
from django.apps import apps

# Importa as entidades do Core
from nsrloja.core.entities import (
    Usuario as UsuarioEntity,
    Endereco as EnderecoEntity,
    Produto as ProdutoEntity,
    VarianteProduto as VarianteEntity,
    MetodoEnvio as MetodoEnvioEntity,
    Cupom as CupomEntity,
    Pedido as PedidoEntity,
    ItemPedido as ItemPedidoEntity,
    Pagamento as PagamentoEntity,
)


# ====================================================================
# Uso de apps.get_model para evitar dependências circulares
# ====================================================================

def get_model(app_label: str, model_name: str):
    """Retorna um modelo do Django de forma segura (lazy loading)."""
    return apps.get_model(app_label, model_name)


def _id(valor) -> Optional[str]:
    return str(valor) if valor is not None else None


# ====================================================================
# MAPPERS DO CATÁLOGO
# ====================================================================

class ProdutoMapper:
    """Mapeador para Produto, incluindo as variantes pré-carregadas."""

    @classmethod
    def model_class(cls) -> Type[models.Model]:
        return get_model('catalog', 'Produto')

    @staticmethod
    def to_entity(model: Any) -> Optional[ProdutoEntity]:
        if not model: return None
        return ProdutoEntity(
            id=str(model.id),
            nome=model.nome,
            preco=model.preco,
            estoque=model.estoque,
            peso=model.peso,
            ativo=model.ativo,
            variantes=[
                VarianteEntity(
                    id=str(variante.id),
                    tamanho=variante.tamanho,
                    cor=variante.cor or None,
                    estoque=variante.estoque,
                )
                for variante in model.variantes.all()
            ],
        )


class MetodoEnvioMapper:

    @staticmethod
    def to_entity(model: Any) -> Optional[MetodoEnvioEntity]:
        if not model: return None
        return MetodoEnvioEntity(
            id=str(model.id),
            nome=model.nome,
            descricao=model.descricao,
            custo_base=model.custo_base,
            custo_por_kg=model.custo_por_kg,
            prazo_min_dias=model.prazo_min_dias,
            prazo_max_dias=model.prazo_max_dias,
            frete_gratis_acima=model.frete_gratis_acima,
            ativo=model.ativo,
        )


class CupomMapper:

    @staticmethod
    def to_entity(model: Any) -> Optional[CupomEntity]:
        if not model: return None
        return CupomEntity(
            id=str(model.id),
            codigo=model.codigo,
            tipo_desconto=model.tipo_desconto,
            valor_desconto=model.valor_desconto,
            data_inicio=model.data_inicio,
            data_fim=model.data_fim,
            ativo=model.ativo,
            compra_minima=model.compra_minima,
            desconto_maximo=model.desconto_maximo,
            limite_uso=model.limite_uso,
            vezes_usado=model.vezes_usado,
        )


# ====================================================================
# MAPPERS DE USUÁRIO E ENDEREÇO
# ====================================================================

class UsuarioMapper:
    """Mapeador para o Usuário."""

    @staticmethod
    def to_entity(model: Any) -> Optional[UsuarioEntity]:
        if not model: return None
        return UsuarioEntity(
            id=str(model.id),
            nome=model.get_full_name() or model.email,
            email=model.email,
            cpf=model.cpf,
            telefone=model.telefone,
        )


class EnderecoMapper:
    """Mapeador para Endereço."""

    CAMPOS = [
        'apelido', 'nome_destinatario', 'telefone_destinatario', 'cep', 'rua',
        'numero', 'complemento', 'bairro', 'cidade', 'estado', 'is_principal'
    ]

    @classmethod
    def model_class(cls) -> Type[models.Model]:
        return get_model('infrastructure', 'Endereco')

    @staticmethod
    def to_entity(model: Any) -> Optional[EnderecoEntity]:
        if not model: return None
        return EnderecoEntity(
            id=str(model.id),
            usuario_id=str(model.usuario_id),
            apelido=model.apelido,
            nome_destinatario=model.nome_destinatario,
            telefone_destinatario=model.telefone_destinatario,
            cep=model.cep,
            rua=model.rua,
            numero=model.numero,
            complemento=model.complemento,
            bairro=model.bairro,
            cidade=model.cidade,
            estado=model.estado,
            is_principal=model.is_principal,
            data_criacao=model.data_criacao,
        )

    @classmethod
    def to_model(cls, entity: EnderecoEntity, model: Optional[Any] = None) -> Any:
        if not model:
            model = cls.model_class()(id=entity.id, usuario_id=entity.usuario_id)

        for campo in cls.CAMPOS:
            setattr(model, campo, getattr(entity, campo))
        model.telefone_destinatario = model.telefone_destinatario or ''
        return model


# ====================================================================
# MAPPERS DE PEDIDO E PAGAMENTO
# ====================================================================

class ItemPedidoMapper:
    """Mapeador para ItemPedido."""

    @classmethod
    def model_class(cls) -> Type[models.Model]:
        return get_model('vendas', 'ItemPedido')

    @staticmethod
    def to_entity(model: Any) -> Optional[ItemPedidoEntity]:
        if not model: return None
        return ItemPedidoEntity(
            produto_id=str(model.produto_id),
            nome_produto=model.nome_produto,
            preco_unitario=model.preco_unitario,
            quantidade=model.quantidade,
            tamanho=model.tamanho,
            cor=model.cor,
        )

    @classmethod
    def to_model(cls, entity: ItemPedidoEntity, pedido_id) -> Any:
        # Snapshot dos dados do produto no momento da compra
        return cls.model_class()(
            pedido_id=pedido_id,
            produto_id=entity.produto_id,
            nome_produto=entity.nome_produto,
            tamanho=entity.tamanho,
            cor=entity.cor,
            preco_unitario=entity.preco_unitario,
            quantidade=entity.quantidade,
            subtotal=entity.subtotal,
        )


class PagamentoMapper:

    CAMPOS = [
        'metodo', 'valor', 'status', 'tentativa', 'referencia_externa', 'pix_qr_code',
        'pix_qr_code_imagem', 'pix_expira_em', 'boleto_url', 'boleto_codigo_barras',
        'mensagem_erro', 'codigo_erro'
    ]

    @classmethod
    def model_class(cls) -> Type[models.Model]:
        return get_model('vendas', 'Pagamento')

    @staticmethod
    def to_entity(model: Any) -> Optional[PagamentoEntity]:
        if not model: return None
        return PagamentoEntity(
            id=str(model.id),
            pedido_id=str(model.pedido_id),
            metodo=model.metodo,
            valor=model.valor,
            status=model.status,
            tentativa=model.tentativa,
            referencia_externa=model.referencia_externa,
            pix_qr_code=model.pix_qr_code,
            pix_qr_code_imagem=model.pix_qr_code_imagem,
            pix_expira_em=model.pix_expira_em,
            boleto_url=model.boleto_url,
            boleto_codigo_barras=model.boleto_codigo_barras,
            mensagem_erro=model.mensagem_erro,
            codigo_erro=model.codigo_erro,
            data_criacao=model.data_criacao,
        )

    @classmethod
    def to_model(cls, entity: PagamentoEntity, model: Optional[Any] = None) -> Any:
        if not model:
            model = cls.model_class()(id=entity.id, pedido_id=entity.pedido_id, data_criacao=entity.data_criacao)

        for campo in cls.CAMPOS:
            setattr(model, campo, getattr(entity, campo))
        return model


class PedidoMapper:
    """Mapeador para Pedido."""

    @classmethod
    def model_class(cls) -> Type[models.Model]:
        return get_model('vendas', 'Pedido')

    @staticmethod
    def to_entity(model: Any) -> Optional[PedidoEntity]:
        """Converte Pedido Model para Pedido Entity, incluindo endereço snapshot e o pagamento atual."""
        if not model: return None

        endereco_entity = EnderecoEntity(
            id=_id(model.endereco_id),
            usuario_id=str(model.usuario_id),
            apelido=model.apelido_endereco,
            nome_destinatario=model.nome_destinatario,
            telefone_destinatario=model.telefone_destinatario,
            cep=model.cep_entrega,
            rua=model.rua_entrega,
            numero=model.numero_entrega,
            complemento=model.complemento_entrega,
            bairro=model.bairro_entrega,
            cidade=model.cidade_entrega,
            estado=model.estado_entrega,
        )

        # Funciona com ou sem prefetch_related('pagamentos')
        pagamentos = list(model.pagamentos.all())
        pagamento_atual = max(pagamentos, key=lambda p: p.tentativa) if pagamentos else None

        return PedidoEntity(
            id=str(model.id),
            numero=model.numero,
            usuario_id=str(model.usuario_id),
            itens=[ItemPedidoMapper.to_entity(item) for item in model.itens.all()],
            metodo_pagamento=model.metodo_pagamento,
            endereco_entrega=endereco_entity,
            subtotal=model.subtotal,
            frete=model.frete,
            desconto=model.desconto,
            total=model.total,
            status=model.status,
            status_pagamento=model.status_pagamento,
            metodo_envio_id=_id(model.metodo_envio_id),
            cupom_codigo=model.cupom_codigo,
            nome_cliente=model.nome_cliente,
            email_cliente=model.email_cliente,
            telefone_cliente=model.telefone_cliente,
            observacoes=model.observacoes,
            previsao_entrega=model.previsao_entrega,
            estoque_reservado=model.estoque_reservado,
            motivo_cancelamento=model.motivo_cancelamento,
            pagamento=PagamentoMapper.to_entity(pagamento_atual),
            data_pedido=model.data_pedido,
        )

    @classmethod
    def to_model(cls, entity: PedidoEntity) -> Any:
        """Converte Pedido Entity para um novo Pedido Model (criação)."""
        endereco = entity.endereco_entrega
        return cls.model_class()(
            id=entity.id,
            numero=entity.numero,
            usuario_id=entity.usuario_id,
            endereco_id=endereco.id,
            metodo_envio_id=entity.metodo_envio_id,
            cupom_codigo=entity.cupom_codigo,
            status=entity.status,
            status_pagamento=entity.status_pagamento,
            metodo_pagamento=entity.metodo_pagamento,
            data_pedido=entity.data_pedido,
            previsao_entrega=entity.previsao_entrega,
            estoque_reservado=entity.estoque_reservado,
            subtotal=entity.subtotal,
            desconto=entity.desconto,
            frete=entity.frete,
            total=entity.total,
            nome_cliente=entity.nome_cliente,
            email_cliente=entity.email_cliente,
            telefone_cliente=entity.telefone_cliente or '',
            nome_destinatario=endereco.nome_destinatario,
            telefone_destinatario=endereco.telefone_destinatario or '',
            apelido_endereco=endereco.apelido,
            cep_entrega=endereco.cep,
            rua_entrega=endereco.rua,
            numero_entrega=endereco.numero,
            complemento_entrega=endereco.complemento,
            bairro_entrega=endereco.bairro,
            cidade_entrega=endereco.cidade,
            estado_entrega=endereco.estado,
            observacoes=entity.observacoes,
        )
