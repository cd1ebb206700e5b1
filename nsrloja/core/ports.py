# nsrloja/core/ports.py
"""
Definição das Portas (Interfaces/Protocolos) da Arquitetura Limpa.

Estes protocolos definem o contrato que a camada de Infraestrutura (Repositorios, Gateways)
DEVE seguir para se conectar à camada Core (Casos de Uso).
"""

from typing import Protocol, List, Optional, Dict, Iterable
from abc import abstractmethod
from datetime import datetime

# Importa as Entidades que definem o Contrato de Dados
from nsrloja.core.entities import (
    Produto, Pedido, Pagamento, Usuario, TransacaoPagamento, Endereco,
    MetodoEnvio, Cupom, CartaoCriptografado
)


# ====================================================================
# 1. REPOSITÓRIOS (Portas de Persistência)
# ====================================================================

class IProdutoRepository(Protocol):
    """Protocolo para a leitura de Produtos e suas variantes."""

    @abstractmethod
    def buscar_por_ids(self, produto_ids: Iterable[str]) -> Dict[str, Produto]:
        """Retorna {produto_id: Produto}; ids inexistentes ficam de fora."""
        ...


class IEnderecoRepository(Protocol):
    """Protocolo para os endereços de entrega do usuário."""

    @abstractmethod
    def listar_por_usuario(self, usuario_id: str) -> List[Endereco]:
        """Endereço principal primeiro, depois os mais recentes."""
        ...

    @abstractmethod
    def buscar_por_id(self, endereco_id: str) -> Optional[Endereco]: ...

    @abstractmethod
    def contar_por_usuario(self, usuario_id: str) -> int: ...

    @abstractmethod
    def salvar(self, endereco: Endereco) -> Endereco:
        """
        Cria ou atualiza. Se `is_principal` for verdadeiro, desmarca os demais
        endereços do usuário na mesma transação.
        """
        ...

    @abstractmethod
    def definir_principal(self, usuario_id: str, endereco_id: str) -> Endereco: ...

    @abstractmethod
    def deletar(self, endereco_id: str) -> None:
        """Remove o endereço; se era o principal, promove o mais recente restante."""
        ...


class IMetodoEnvioRepository(Protocol):

    @abstractmethod
    def listar_ativos(self) -> List[MetodoEnvio]:
        """Métodos ativos ordenados pelo custo base (crescente)."""
        ...

    @abstractmethod
    def buscar_por_id(self, metodo_id: str) -> Optional[MetodoEnvio]: ...


class ICupomRepository(Protocol):

    @abstractmethod
    def buscar_por_codigo(self, codigo: str) -> Optional[Cupom]: ...


class IUsuarioRepository(Protocol):
    """Protocolo para a leitura de Usuários."""

    @abstractmethod
    def buscar_por_id(self, usuario_id: str) -> Optional[Usuario]: ...


class IPedidoRepository(Protocol):
    """Protocolo para a persistência e gestão de Pedidos e Pagamentos."""

    @abstractmethod
    def gerar_numero(self, ano: int) -> str:
        """Próximo número sequencial do ano no formato NSR-AAAA-0001 (usado dentro de criar_pedido)."""
        ...

    @abstractmethod
    def criar_pedido(self, pedido: Pedido, pagamento: Pagamento) -> Pedido:
        """
        Cria o pedido, seus itens e o primeiro pagamento, e baixa (reserva) o
        estoque em uma única transação atômica. Também conta o uso do cupom
        (`pedido.cupom_codigo`) na mesma transação. Levanta
        EstoqueInsuficienteError ou CupomInvalidoError sem deixar nenhum
        registro se algum item não puder ser reservado ou o cupom esgotou.
        """
        ...

    @abstractmethod
    def buscar_por_id(self, pedido_id: str) -> Optional[Pedido]: ...

    @abstractmethod
    def buscar_por_referencia_pagamento(self, referencia_externa: str) -> Optional[Pedido]: ...

    @abstractmethod
    def listar_pedidos_por_usuario(self, usuario_id: str) -> List[Pedido]: ...

    @abstractmethod
    def criar_pagamento(self, pagamento: Pagamento) -> Pagamento: ...

    @abstractmethod
    def salvar_pagamento(self, pagamento: Pagamento) -> Pagamento: ...

    @abstractmethod
    def atualizar_status(
        self,
        pedido_id: str,
        novo_status: Optional[str] = None,
        status_pagamento: Optional[str] = None,
        motivo_cancelamento: Optional[str] = None,
        metodo_pagamento: Optional[str] = None,
    ) -> Pedido: ...

    @abstractmethod
    def reservar_estoque(self, pedido_id: str) -> None:
        """Baixa novamente o estoque de um pedido cuja reserva foi liberada."""
        ...

    @abstractmethod
    def liberar_estoque(self, pedido_id: str) -> bool:
        """Devolve o estoque reservado. Retorna False se não havia reserva."""
        ...

    @abstractmethod
    def listar_pix_vencidos(self, agora: datetime) -> List[Pedido]: ...

    @abstractmethod
    def listar_pendentes_criados_antes(self, limite: datetime) -> List[Pedido]: ...


# ====================================================================
# 2. GATEWAYS (Portas de Serviços Externos)
# ====================================================================

class IGatewayPagamento(Protocol):
    """Protocolo para serviços externos de processamento de pagamento."""

    @abstractmethod
    def processar_pagamento(
        self,
        pedido: Pedido,
        metodo: str,
        usuario: Usuario,
        cartao: Optional[CartaoCriptografado] = None,
    ) -> TransacaoPagamento: ...

    @abstractmethod
    def verificar_status(self, transacao_id: str) -> TransacaoPagamento: ...

    @abstractmethod
    def cancelar_cobranca(self, transacao_id: str) -> bool: ...


class IEmailService(Protocol):
    """Protocolo para o serviço de envio de e-mails."""

    @abstractmethod
    def enviar_confirmacao_pedido(self, pedido: Pedido): ...

    @abstractmethod
    def enviar_aprovacao_pagamento(self, pedido: Pedido): ...
