class BaseErroCore(Exception):
    """Classe base para todas as exceções da Camada Core."""
    codigo = "ERRO_INTERNO"

    def __init__(self, message="Ocorreu um erro inesperado."):
        self.message = message
        super().__init__(self.message)


class DadosInvalidosError(BaseErroCore):
    """Erro levantado quando dados inválidos são fornecidos."""
    codigo = "DADOS_INVALIDOS"

    def __init__(self, message="Os dados fornecidos são inválidos.", detalhes=None):
        self.detalhes = detalhes or []
        super().__init__(message)

# ===============================================
# ERROS DE PERSISTÊNCIA E ENTIDADE
# ===============================================

class ItemNaoEncontradoError(BaseErroCore):
    """Erro levantado quando um item (genérico) não é encontrado."""
    codigo = "NAO_ENCONTRADO"

    def __init__(self, message="O item solicitado não foi encontrado."):
        super().__init__(message)

class PedidoNaoEncontradoError(ItemNaoEncontradoError):
    """Erro específico para Pedidos não encontrados."""
    def __init__(self, message="Pedido não encontrado"):
        super().__init__(message)

class EnderecoNaoEncontradoError(ItemNaoEncontradoError):
    def __init__(self, message="Endereço não encontrado"):
        super().__init__(message)

class UsuarioNaoEncontradoError(ItemNaoEncontradoError):
    def __init__(self, message="Usuário não encontrado"):
        super().__init__(message)

class AcessoNegadoError(BaseErroCore):
    """Erro levantado quando o recurso existe mas pertence a outro usuário."""
    codigo = "ACESSO_NEGADO"

    def __init__(self, message="Você não tem permissão para acessar este recurso."):
        super().__init__(message)

class EnderecoInvalidoError(DadosInvalidosError):
    """Erro levantado quando um endereço de entrega é inválido ou não pertence ao usuário."""
    def __init__(self, message="Endereço inválido", detalhes=None):
        super().__init__(message, detalhes)

# ===============================================
# ERROS DE FLUXO DE COMPRA E PAGAMENTO
# ===============================================

class CarrinhoVazioError(DadosInvalidosError):
    """Erro levantado ao tentar fazer checkout com carrinho vazio."""
    def __init__(self, message="Carrinho vazio"):
        super().__init__(message)

class CupomInvalidoError(DadosInvalidosError):
    def __init__(self, message="Cupom inválido"):
        super().__init__(message)

class EstoqueInsuficienteError(BaseErroCore):
    """
    Erro levantado quando a quantidade solicitada excede o estoque.
    Carrega a lista detalhada dos itens indisponíveis (ItemIndisponivel).
    """
    codigo = "ESTOQUE_INSUFICIENTE"

    def __init__(self, itens_indisponiveis=None, message=None):
        self.itens_indisponiveis = list(itens_indisponiveis or [])
        if message is None:
            if self.itens_indisponiveis:
                item = self.itens_indisponiveis[0]
                nome = item.nome_produto or item.produto_id
                message = (f"Estoque insuficiente para {nome}. "
                           f"Disponível: {item.quantidade_disponivel}, "
                           f"Solicitado: {item.quantidade_solicitada}")
            else:
                message = "Estoque insuficiente."
        super().__init__(message)

class PagamentoFalhouError(BaseErroCore):
    """
    Erro levantado quando o Gateway de Pagamento (ou o SDK de criptografia)
    rejeita a transação. `erros` guarda a lista de mensagens por campo.
    """
    codigo = "PAGAMENTO_FALHOU"

    def __init__(self, message="A transação de pagamento foi rejeitada ou falhou.", erros=None, codigo_erro=None):
        self.erros = list(erros or [])
        self.codigo_erro = codigo_erro
        super().__init__(message)

class StatusInvalidoError(BaseErroCore):
    """Erro levantado ao tentar uma transição de status não permitida."""
    codigo = "STATUS_INVALIDO"

    def __init__(self, message="O status atual não permite esta operação."):
        super().__init__(message)

# ===============================================
# ERROS DE COMUNICAÇÃO (CLIENTE DA API)
# ===============================================

class ErroDeRedeError(BaseErroCore):
    """Nenhuma resposta do servidor (conexão recusada, DNS, timeout)."""
    codigo = "ERRO_REDE"

    def __init__(self, message="Erro de conexão. Verifique sua internet."):
        super().__init__(message)

class ErroServidorError(BaseErroCore):
    """O servidor respondeu com status diferente de 2xx."""
    codigo = "ERRO_SERVIDOR"

    def __init__(self, status: int, payload=None, message=None):
        self.status = status
        self.payload = payload if payload is not None else {}
        if message is None:
            message = f"Erro no servidor (HTTP {status})."
        super().__init__(message)
