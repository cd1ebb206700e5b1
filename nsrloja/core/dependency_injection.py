# nsrloja/core/dependency_injection.py
"""
Módulo de Injeção de Dependência (DI).
Responsável por instanciar os Use Cases com suas dependências de Repositórios/Gateways
concretos da camada de Infraestrutura.
"""
from django.conf import settings

from nsrloja.infrastructure.repositories import (
    ProdutoRepositoryDjango,
    EnderecoRepositoryDjango,
    MetodoEnvioRepositoryDjango,
    CupomRepositoryDjango,
    UsuarioRepositoryDjango,
    PedidoRepositoryDjango,
)
from nsrloja.infrastructure.gateways import PagBankGateway, EmailServiceGateway
from .use_cases import (
    ValidarEstoqueUseCase,
    CalcularFreteUseCase,
    GerenciarEnderecosUseCase,
    CriarPedidoUseCase,
    RetentarPagamentoUseCase,
    ConsultarStatusPagamentoUseCase,
    CancelarPedidoUseCase,
    ExpirarPagamentosUseCase,
    AtualizarStatusPedidoPorTransacaoUseCase,
    ListarPedidosDoUsuarioUseCase,
    DetalharPedidoUseCase,
)

# Repositórios e Gateways Concretos
produto_repo = ProdutoRepositoryDjango()
endereco_repo = EnderecoRepositoryDjango()
metodo_envio_repo = MetodoEnvioRepositoryDjango()
cupom_repo = CupomRepositoryDjango()
usuario_repo = UsuarioRepositoryDjango()
pedido_repo = PedidoRepositoryDjango()
pagamento_gateway = PagBankGateway()
email_service = EmailServiceGateway()

# ====================================================================
# Use Cases de Estoque, Frete e Endereços
# ====================================================================

def get_validar_estoque_use_case() -> ValidarEstoqueUseCase:
    return ValidarEstoqueUseCase(produto_repo)

def get_calcular_frete_use_case() -> CalcularFreteUseCase:
    return CalcularFreteUseCase(produto_repo, metodo_envio_repo)

def get_gerenciar_enderecos_use_case() -> GerenciarEnderecosUseCase:
    return GerenciarEnderecosUseCase(endereco_repo)


# ====================================================================
# Use Cases de Pedidos/Pagamentos
# ====================================================================

def get_criar_pedido_use_case() -> CriarPedidoUseCase:
    return CriarPedidoUseCase(
        produto_repo=produto_repo,
        endereco_repo=endereco_repo,
        metodo_envio_repo=metodo_envio_repo,
        cupom_repo=cupom_repo,
        usuario_repo=usuario_repo,
        pedido_repo=pedido_repo,
        pagamento_gateway=pagamento_gateway,
        email_service=email_service
    )

def get_retentar_pagamento_use_case() -> RetentarPagamentoUseCase:
    return RetentarPagamentoUseCase(pedido_repo, usuario_repo, pagamento_gateway, email_service)

def get_consultar_status_pagamento_use_case() -> ConsultarStatusPagamentoUseCase:
    return ConsultarStatusPagamentoUseCase(pedido_repo, pagamento_gateway, email_service)

def get_cancelar_pedido_use_case() -> CancelarPedidoUseCase:
    return CancelarPedidoUseCase(pedido_repo, pagamento_gateway)

def get_expirar_pagamentos_use_case() -> ExpirarPagamentosUseCase:
    return ExpirarPagamentosUseCase(
        pedido_repo,
        pagamento_gateway,
        horas_expiracao_pedido=getattr(settings, 'PEDIDO_EXPIRACAO_HORAS', 24)
    )

def get_atualizar_status_por_transacao_use_case() -> AtualizarStatusPedidoPorTransacaoUseCase:
    return AtualizarStatusPedidoPorTransacaoUseCase(pedido_repo, pagamento_gateway, email_service)

def get_listar_pedidos_use_case() -> ListarPedidosDoUsuarioUseCase:
    return ListarPedidosDoUsuarioUseCase(pedido_repo)

def get_detalhar_pedido_use_case() -> DetalharPedidoUseCase:
    return DetalharPedidoUseCase(pedido_repo)
