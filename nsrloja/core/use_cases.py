# nsrloja/core/use_cases.py
"""
Implementação dos Casos de Uso (Lógica de Negócio) da aplicação.
Esta camada depende apenas das Entidades e Portas (Interfaces) do Core,
garantindo o isolamento da lógica de negócio.
"""
import logging
from dataclasses import replace
from typing import List, Optional, Dict, Tuple
from decimal import Decimal, ROUND_HALF_UP
from datetime import datetime, timedelta

# Entidades e Exceções
from nsrloja.core.entities import (
    Produto, Endereco, Pedido, ItemPedido, Usuario, Pagamento, TransacaoPagamento,
    ItemSolicitado, ItemIndisponivel, ResultadoEstoque, MetodoEnvio, OpcaoFrete,
    Cupom, CartaoCriptografado, StatusPedido, StatusPagamento, MetodoPagamento,
    agora_utc
)
from nsrloja.core.exceptions import (
    DadosInvalidosError,
    CarrinhoVazioError,
    CupomInvalidoError,
    EstoqueInsuficienteError,
    PagamentoFalhouError,
    PedidoNaoEncontradoError,
    EnderecoNaoEncontradoError,
    UsuarioNaoEncontradoError,
    AcessoNegadoError,
    StatusInvalidoError
)
from nsrloja.core.validadores import normalizar_cep, cep_valido, somente_digitos, validar_cpf

# Portas (Interfaces) - Importadas do nsrloja/core/ports.py
from nsrloja.core.ports import (
    IProdutoRepository,
    IEnderecoRepository,
    IMetodoEnvioRepository,
    ICupomRepository,
    IUsuarioRepository,
    IPedidoRepository,
    IGatewayPagamento,
    IEmailService
)

logger = logging.getLogger(__name__)

CENTAVOS = Decimal("0.01")
# Peso assumido (kg) para produtos sem peso cadastrado
PESO_PADRAO_KG = Decimal("0.5")


def arredondar_centavos(valor: Decimal) -> Decimal:
    return Decimal(valor).quantize(CENTAVOS, rounding=ROUND_HALF_UP)


# ====================================================================
# 1. ESTOQUE E FRETE
# ====================================================================

class ValidarEstoqueUseCase:
    """
    Checagem prévia de estoque para as linhas do carrinho.
    Não altera o estoque: a baixa acontece de forma atômica na criação do pedido.
    """
    def __init__(self, produto_repo: IProdutoRepository):
        self.produto_repo = produto_repo

    def executar(self, itens: List[ItemSolicitado]) -> ResultadoEstoque:
        for item in itens:
            if item.quantidade is None or item.quantidade < 1:
                raise DadosInvalidosError("Quantidade deve ser maior que zero.")

        produtos = self.produto_repo.buscar_por_ids({item.produto_id for item in itens})
        indisponiveis = []

        for item in itens:
            produto = produtos.get(item.produto_id)
            # Produto inexistente conta como indisponível (estoque 0), não como erro
            disponivel = produto.estoque_disponivel(item.tamanho, item.cor) if produto else 0

            if disponivel < item.quantidade:
                indisponiveis.append(ItemIndisponivel(
                    produto_id=item.produto_id,
                    nome_produto=produto.nome if produto else None,
                    quantidade_solicitada=item.quantidade,
                    quantidade_disponivel=disponivel,
                ))

        return ResultadoEstoque(disponivel=not indisponiveis, itens_indisponiveis=indisponiveis)


class CalcularFreteUseCase:
    """Calcula as opções de frete (modelo linear: custo base + custo por kg excedente)."""
    def __init__(self, produto_repo: IProdutoRepository, metodo_envio_repo: IMetodoEnvioRepository):
        self.produto_repo = produto_repo
        self.metodo_envio_repo = metodo_envio_repo

    @staticmethod
    def validar_entrada(itens: List[ItemSolicitado], cep: str, total_carrinho: Decimal):
        """Validação feita antes de qualquer consulta ao banco."""
        if not cep_valido(cep):
            raise DadosInvalidosError("CEP inválido. Informe os 8 dígitos do CEP.")
        if not itens:
            raise CarrinhoVazioError()
        if total_carrinho is None or Decimal(total_carrinho) < 0:
            raise DadosInvalidosError("O valor total do carrinho não pode ser negativo.")

    def peso_total(self, itens: List[ItemSolicitado], produtos: Optional[Dict[str, Produto]] = None) -> Decimal:
        if produtos is None:
            produtos = self.produto_repo.buscar_por_ids({item.produto_id for item in itens})

        total = Decimal("0")
        for item in itens:
            produto = produtos.get(item.produto_id)
            peso = produto.peso if produto and produto.peso is not None else PESO_PADRAO_KG
            total += Decimal(peso) * item.quantidade
        return total

    @staticmethod
    def calcular_opcao(metodo: MetodoEnvio, peso_total: Decimal, total_carrinho: Decimal) -> OpcaoFrete:
        """custo = base + por_kg * max(0, peso - 1); zerado acima do limite de frete grátis."""
        gratis = (
            metodo.frete_gratis_acima is not None
            and Decimal(total_carrinho) >= metodo.frete_gratis_acima
        )
        if gratis:
            custo = Decimal("0.00")
        else:
            excedente = max(Decimal("0"), Decimal(peso_total) - 1)
            custo = arredondar_centavos(metodo.custo_base + metodo.custo_por_kg * excedente)

        return OpcaoFrete(
            id=metodo.id,
            nome=metodo.nome,
            descricao=metodo.descricao,
            custo=custo,
            prazo_min_dias=metodo.prazo_min_dias,
            prazo_max_dias=metodo.prazo_max_dias,
            gratis=gratis,
        )

    def executar(self, itens: List[ItemSolicitado], cep: str, total_carrinho: Decimal) -> List[OpcaoFrete]:
        self.validar_entrada(itens, cep, total_carrinho)

        peso = self.peso_total(itens)
        opcoes = [
            self.calcular_opcao(metodo, peso, Decimal(total_carrinho))
            for metodo in self.metodo_envio_repo.listar_ativos()
        ]
        logger.debug("Frete calculado para CEP %s (peso %s kg): %d opções",
                     normalizar_cep(cep), peso, len(opcoes))
        return opcoes


# ====================================================================
# 2. ENDEREÇOS
# ====================================================================

class GerenciarEnderecosUseCase:
    """CRUD dos endereços de entrega. Cada usuário tem exatamente um endereço principal."""

    CAMPOS_EDITAVEIS = [
        'apelido', 'nome_destinatario', 'telefone_destinatario', 'cep', 'rua',
        'numero', 'complemento', 'bairro', 'cidade', 'estado', 'is_principal'
    ]

    def __init__(self, endereco_repo: IEnderecoRepository):
        self.endereco_repo = endereco_repo

    def listar(self, usuario_id: str) -> List[Endereco]:
        return self.endereco_repo.listar_por_usuario(usuario_id)

    def obter(self, usuario_id: str, endereco_id: str) -> Endereco:
        endereco = self.endereco_repo.buscar_por_id(endereco_id)
        if not endereco:
            raise EnderecoNaoEncontradoError()
        if str(endereco.usuario_id) != str(usuario_id):
            logger.warning("Usuário %s tentou acessar o endereço %s de outro usuário",
                           usuario_id, endereco_id)
            raise AcessoNegadoError("Você não tem permissão para acessar este endereço")
        return endereco

    def criar(self, usuario_id: str, dados: dict) -> Endereco:
        endereco = Endereco(
            usuario_id=usuario_id,
            apelido=dados['apelido'],
            nome_destinatario=dados['nome_destinatario'],
            telefone_destinatario=dados.get('telefone_destinatario', ''),
            cep=normalizar_cep(dados['cep']),
            rua=dados['rua'],
            numero=dados['numero'],
            bairro=dados['bairro'],
            cidade=dados['cidade'],
            estado=dados['estado'].upper(),
            complemento=dados.get('complemento') or None,
            is_principal=bool(dados.get('is_principal', False)),
        )
        # O primeiro endereço do usuário é sempre o principal
        if self.endereco_repo.contar_por_usuario(usuario_id) == 0:
            endereco.is_principal = True

        return self.endereco_repo.salvar(endereco)

    def atualizar(self, usuario_id: str, endereco_id: str, dados: dict) -> Endereco:
        endereco = self.obter(usuario_id, endereco_id)
        for campo in self.CAMPOS_EDITAVEIS:
            if campo in dados:
                setattr(endereco, campo, dados[campo])

        endereco.cep = normalizar_cep(endereco.cep)
        endereco.estado = endereco.estado.upper()
        return self.endereco_repo.salvar(endereco)

    def definir_principal(self, usuario_id: str, endereco_id: str) -> Endereco:
        self.obter(usuario_id, endereco_id)
        return self.endereco_repo.definir_principal(usuario_id, endereco_id)

    def deletar(self, usuario_id: str, endereco_id: str) -> None:
        self.obter(usuario_id, endereco_id)
        self.endereco_repo.deletar(endereco_id)


# ====================================================================
# 3. CUPONS
# ====================================================================

class AplicarCupomUseCase:
    """Valida um cupom e calcula o desconto sobre o subtotal."""
    def __init__(self, cupom_repo: ICupomRepository):
        self.cupom_repo = cupom_repo

    def calcular_desconto(self, codigo: str, subtotal: Decimal, agora: Optional[datetime] = None) -> Tuple[Cupom, Decimal]:
        agora = agora or agora_utc()
        cupom = self.cupom_repo.buscar_por_codigo(codigo.strip().upper())

        if not cupom or not cupom.ativo:
            raise CupomInvalidoError("Cupom inválido")
        if not (cupom.data_inicio <= agora <= cupom.data_fim):
            raise CupomInvalidoError("Cupom expirado")
        if cupom.limite_uso is not None and cupom.vezes_usado >= cupom.limite_uso:
            raise CupomInvalidoError("Cupom esgotado")
        if cupom.compra_minima is not None and subtotal < cupom.compra_minima:
            raise CupomInvalidoError(f"Valor mínimo para este cupom: R$ {cupom.compra_minima:.2f}")

        if cupom.tipo_desconto == 'percentual':
            desconto = subtotal * cupom.valor_desconto / Decimal("100")
            if cupom.desconto_maximo is not None:
                desconto = min(desconto, cupom.desconto_maximo)
        else:
            desconto = cupom.valor_desconto

        # O desconto nunca ultrapassa o subtotal
        return cupom, arredondar_centavos(min(desconto, subtotal))


# ====================================================================
# 4. PEDIDO E PAGAMENTO
# ====================================================================

class _FluxoPagamentoBase:
    """
    Passos de pagamento compartilhados pela criação do pedido, retentativa,
    consulta de status, webhook e rotinas de expiração.
    """
    pedido_repo: IPedidoRepository
    pagamento_gateway: IGatewayPagamento
    email_service: Optional[IEmailService] = None

    def _buscar_pedido_do_usuario(self, usuario_id: str, pedido_id: str) -> Pedido:
        pedido = self.pedido_repo.buscar_por_id(pedido_id)
        # Pedido de outro usuário responde como inexistente
        if not pedido or str(pedido.usuario_id) != str(usuario_id):
            raise PedidoNaoEncontradoError()
        return pedido

    def _cobrar(self, pedido: Pedido, pagamento: Pagamento, usuario: Usuario,
                cartao: Optional[CartaoCriptografado]) -> Pedido:
        """Cria a cobrança no gateway e reflete o resultado no pagamento e no pedido."""
        try:
            transacao: TransacaoPagamento = self.pagamento_gateway.processar_pagamento(
                pedido=pedido,
                metodo=pagamento.metodo,
                usuario=usuario,
                cartao=cartao
            )
            pagamento.aplicar_transacao(transacao)
        except PagamentoFalhouError as e:
            # Pedido continua PENDENTE e pode ter o pagamento refeito
            logger.warning("Pagamento do pedido %s recusado: %s", pedido.numero, e.message)
            pagamento.status = StatusPagamento.FALHOU
            pagamento.mensagem_erro = e.message
            pagamento.codigo_erro = e.codigo_erro

        pagamento = self.pedido_repo.salvar_pagamento(pagamento)
        return self._sincronizar_pedido(pedido, pagamento)

    def _sincronizar_pedido(self, pedido: Pedido, pagamento: Pagamento) -> Pedido:
        if pagamento.status == StatusPagamento.PAGO and pedido.status == StatusPedido.PENDENTE:
            pedido_final = self.pedido_repo.atualizar_status(
                pedido.id, StatusPedido.PROCESSANDO, status_pagamento=StatusPagamento.PAGO
            )
            logger.info("Pagamento do pedido %s aprovado", pedido.numero)
            if self.email_service:
                self._notificar(self.email_service.enviar_aprovacao_pagamento, pedido_final)
        else:
            pedido_final = self.pedido_repo.atualizar_status(pedido.id, status_pagamento=pagamento.status)

        pedido_final.pagamento = pagamento
        return pedido_final

    def _aplicar_status_gateway(self, pedido: Pedido, transacao: TransacaoPagamento) -> Pedido:
        """Atualiza apenas o status (e a mensagem de erro) vindos de uma consulta ao gateway."""
        pagamento = pedido.pagamento
        if pagamento is None or transacao.status_pagamento == pagamento.status:
            return pedido

        logger.info("Pagamento do pedido %s: %s -> %s",
                    pedido.numero, pagamento.status, transacao.status_pagamento)
        pagamento.status = transacao.status_pagamento
        if transacao.mensagem_erro:
            pagamento.mensagem_erro = transacao.mensagem_erro
        pagamento = self.pedido_repo.salvar_pagamento(pagamento)
        return self._sincronizar_pedido(pedido, pagamento)

    def _expirar_pix(self, pedido: Pedido) -> Pedido:
        pagamento = pedido.pagamento
        pagamento.status = StatusPagamento.EXPIRADO
        pagamento = self.pedido_repo.salvar_pagamento(pagamento)
        self.pedido_repo.liberar_estoque(pedido.id)

        pedido_final = self.pedido_repo.atualizar_status(pedido.id, status_pagamento=StatusPagamento.EXPIRADO)
        pedido_final.pagamento = pagamento
        logger.info("PIX do pedido %s expirou; estoque liberado", pedido.numero)
        return pedido_final

    def _cancelar(self, pedido: Pedido, motivo: str) -> Pedido:
        self.pedido_repo.liberar_estoque(pedido.id)

        pagamento = pedido.pagamento
        status_pagamento = None
        if pagamento and pagamento.status == StatusPagamento.PENDENTE:
            if pagamento.referencia_externa:
                try:
                    self.pagamento_gateway.cancelar_cobranca(pagamento.referencia_externa)
                except PagamentoFalhouError as e:
                    logger.warning("Não foi possível cancelar a cobrança %s: %s",
                                   pagamento.referencia_externa, e.message)
            pagamento.status = StatusPagamento.CANCELADO
            pagamento = self.pedido_repo.salvar_pagamento(pagamento)
            status_pagamento = StatusPagamento.CANCELADO

        pedido_final = self.pedido_repo.atualizar_status(
            pedido.id,
            StatusPedido.CANCELADO,
            status_pagamento=status_pagamento,
            motivo_cancelamento=motivo
        )
        if pagamento:
            pedido_final.pagamento = pagamento
        logger.info("Pedido %s cancelado: %s", pedido.numero, motivo)
        return pedido_final

    @staticmethod
    def _notificar(envio, pedido: Pedido):
        """Falhas de notificação são registradas e nunca interrompem o fluxo."""
        try:
            envio(pedido)
        except Exception:
            logger.exception("Falha ao enviar notificação do pedido %s", pedido.numero)

    @staticmethod
    def _validar_metodo(metodo_pagamento: str, cartao: Optional[CartaoCriptografado]):
        if metodo_pagamento not in MetodoPagamento.TODOS:
            raise DadosInvalidosError("Método de pagamento inválido")
        if metodo_pagamento == MetodoPagamento.CARTAO_CREDITO and not cartao:
            raise DadosInvalidosError("Dados do cartão são obrigatórios")


class CriarPedidoUseCase(_FluxoPagamentoBase):
    """
    Caso de Uso que coordena a finalização do checkout:
    validação, snapshot dos itens, reserva de estoque, cobrança e notificação.
    """
    def __init__(self,
                 produto_repo: IProdutoRepository,
                 endereco_repo: IEnderecoRepository,
                 metodo_envio_repo: IMetodoEnvioRepository,
                 cupom_repo: ICupomRepository,
                 usuario_repo: IUsuarioRepository,
                 pedido_repo: IPedidoRepository,
                 pagamento_gateway: IGatewayPagamento,
                 email_service: IEmailService):

        self.produto_repo = produto_repo
        self.endereco_repo = endereco_repo
        self.metodo_envio_repo = metodo_envio_repo
        self.cupom_repo = cupom_repo
        self.usuario_repo = usuario_repo
        self.pedido_repo = pedido_repo
        self.pagamento_gateway = pagamento_gateway
        self.email_service = email_service

    def executar(
        self,
        usuario_id: str,
        endereco_id: str,
        itens: List[ItemSolicitado],
        metodo_envio_id: str,
        metodo_pagamento: str,
        cartao: Optional[CartaoCriptografado] = None,
        cupom_codigo: Optional[str] = None,
        observacoes: str = "",
        nome_destinatario: Optional[str] = None,
        telefone_destinatario: Optional[str] = None,
        cpf_comprador: Optional[str] = None
    ) -> Pedido:
        """
        Processa o checkout. Nome e telefone do destinatário substituem os do
        cadastro no pedido; o CPF do comprador só é usado quando o cadastro
        não tem CPF.
        """

        if not itens:
            raise CarrinhoVazioError()
        self._validar_metodo(metodo_pagamento, cartao)

        usuario = self.usuario_repo.buscar_por_id(usuario_id)
        if not usuario:
            raise UsuarioNaoEncontradoError()

        if cpf_comprador and not usuario.cpf:
            if not validar_cpf(cpf_comprador):
                raise DadosInvalidosError("CPF do comprador inválido")
            usuario = replace(usuario, cpf=somente_digitos(cpf_comprador))

        if metodo_pagamento != MetodoPagamento.CARTAO_CREDITO and not usuario.cpf:
            raise DadosInvalidosError("CPF é obrigatório para pagamentos via PIX ou boleto")

        # 1. Endereço do próprio usuário
        endereco = self.endereco_repo.buscar_por_id(endereco_id)
        if not endereco:
            raise EnderecoNaoEncontradoError()
        if str(endereco.usuario_id) != str(usuario_id):
            logger.warning("Usuário %s tentou usar o endereço %s de outro usuário", usuario_id, endereco_id)
            raise AcessoNegadoError("Endereço inválido")

        # 2. Método de envio ativo
        metodo_envio = self.metodo_envio_repo.buscar_por_id(metodo_envio_id)
        if not metodo_envio or not metodo_envio.ativo:
            raise DadosInvalidosError("Método de envio inválido")

        # 3. Checagem prévia de estoque (a reserva definitiva é feita pelo repositório)
        resultado = ValidarEstoqueUseCase(self.produto_repo).executar(itens)
        if not resultado.disponivel:
            raise EstoqueInsuficienteError(resultado.itens_indisponiveis)

        # 4. Snapshot dos itens com o preço atual
        produtos = self.produto_repo.buscar_por_ids({item.produto_id for item in itens})
        itens_pedido = [
            ItemPedido(
                produto_id=item.produto_id,
                nome_produto=produtos[item.produto_id].nome,
                preco_unitario=produtos[item.produto_id].preco,
                quantidade=item.quantidade,
                tamanho=item.tamanho,
                cor=item.cor,
            )
            for item in itens
        ]
        subtotal = arredondar_centavos(sum((item.subtotal for item in itens_pedido), Decimal("0")))

        # 5. Frete, desconto e total
        calculadora = CalcularFreteUseCase(self.produto_repo, self.metodo_envio_repo)
        opcao = calculadora.calcular_opcao(metodo_envio, calculadora.peso_total(itens, produtos), subtotal)

        desconto = Decimal("0.00")
        cupom = None
        if cupom_codigo:
            cupom, desconto = AplicarCupomUseCase(self.cupom_repo).calcular_desconto(cupom_codigo, subtotal)

        total = max(Decimal("0.00"), subtotal + opcao.custo - desconto)
        agora = agora_utc()

        pedido = Pedido(
            usuario_id=usuario.id,
            itens=itens_pedido,
            metodo_pagamento=metodo_pagamento,
            endereco_entrega=endereco,
            subtotal=subtotal,
            frete=opcao.custo,
            desconto=desconto,
            total=arredondar_centavos(total),
            metodo_envio_id=metodo_envio.id,
            cupom_codigo=cupom.codigo if cupom else None,
            nome_cliente=nome_destinatario or usuario.nome,
            email_cliente=usuario.email,
            telefone_cliente=telefone_destinatario or usuario.telefone or endereco.telefone_destinatario,
            observacoes=observacoes or "",
            previsao_entrega=agora + timedelta(days=metodo_envio.prazo_max_dias),
            estoque_reservado=True,
            data_pedido=agora,
        )
        pagamento = Pagamento(pedido_id=pedido.id, metodo=metodo_pagamento, valor=pedido.total)

        # 6. Pedido + itens + pagamento + baixa de estoque + uso do cupom ATOMICAMENTE
        pedido = self.pedido_repo.criar_pedido(pedido, pagamento)
        logger.info("Pedido %s criado (%s, total R$ %s)", pedido.numero, metodo_pagamento, pedido.total)

        # 7. Cobrança no gateway
        pedido = self._cobrar(pedido, pedido.pagamento, usuario, cartao)

        # 8. Notificações
        self._notificar(self.email_service.enviar_confirmacao_pedido, pedido)
        return pedido


class RetentarPagamentoUseCase(_FluxoPagamentoBase):
    """
    Refaz apenas o passo de pagamento de um pedido PENDENTE cujo último
    pagamento falhou ou expirou. O pedido não é recriado.
    """
    def __init__(self, pedido_repo: IPedidoRepository, usuario_repo: IUsuarioRepository,
                 pagamento_gateway: IGatewayPagamento, email_service: Optional[IEmailService] = None):
        self.pedido_repo = pedido_repo
        self.usuario_repo = usuario_repo
        self.pagamento_gateway = pagamento_gateway
        self.email_service = email_service

    def executar(self, usuario_id: str, pedido_id: str, metodo_pagamento: str,
                 cartao: Optional[CartaoCriptografado] = None, agora: Optional[datetime] = None) -> Pedido:
        pedido = self._buscar_pedido_do_usuario(usuario_id, pedido_id)

        if pedido.status != StatusPedido.PENDENTE:
            raise StatusInvalidoError("Só é possível refazer o pagamento de pedidos pendentes")

        anterior = pedido.pagamento
        if anterior and anterior.pix_expirado(agora or agora_utc()):
            pedido = self._expirar_pix(pedido)
            anterior = pedido.pagamento

        if anterior and anterior.status not in StatusPagamento.RETENTAVEIS:
            raise StatusInvalidoError("O pagamento atual ainda não pode ser refeito")

        self._validar_metodo(metodo_pagamento, cartao)

        usuario = self.usuario_repo.buscar_por_id(pedido.usuario_id)
        if not usuario:
            raise UsuarioNaoEncontradoError()

        # Estoque devolvido por expiração do PIX precisa ser reservado novamente
        if not pedido.estoque_reservado:
            self.pedido_repo.reservar_estoque(pedido.id)
            pedido.estoque_reservado = True

        novo_pagamento = self.pedido_repo.criar_pagamento(Pagamento(
            pedido_id=pedido.id,
            metodo=metodo_pagamento,
            valor=pedido.total,
            tentativa=(anterior.tentativa + 1) if anterior else 1,
        ))
        if metodo_pagamento != pedido.metodo_pagamento:
            pedido = self.pedido_repo.atualizar_status(pedido.id, metodo_pagamento=metodo_pagamento)

        logger.info("Nova tentativa (%d) de pagamento do pedido %s via %s",
                    novo_pagamento.tentativa, pedido.numero, metodo_pagamento)
        return self._cobrar(pedido, novo_pagamento, usuario, cartao)


class ConsultarStatusPagamentoUseCase(_FluxoPagamentoBase):
    """
    Consulta usada pelo polling do cliente. Pagamentos pendentes são
    atualizados junto ao gateway; PIX vencido passa a EXPIRADO.
    """
    def __init__(self, pedido_repo: IPedidoRepository, pagamento_gateway: IGatewayPagamento,
                 email_service: Optional[IEmailService] = None):
        self.pedido_repo = pedido_repo
        self.pagamento_gateway = pagamento_gateway
        self.email_service = email_service

    def executar(self, usuario_id: str, pedido_id: str, agora: Optional[datetime] = None) -> Pedido:
        pedido = self._buscar_pedido_do_usuario(usuario_id, pedido_id)
        pagamento = pedido.pagamento

        if pagamento is None or pagamento.status != StatusPagamento.PENDENTE:
            return pedido

        if pagamento.pix_expirado(agora or agora_utc()):
            return self._expirar_pix(pedido)

        if not pagamento.referencia_externa:
            return pedido

        try:
            transacao = self.pagamento_gateway.verificar_status(pagamento.referencia_externa)
        except PagamentoFalhouError as e:
            # Falha na consulta não muda nada: devolve o status armazenado
            logger.warning("Falha ao consultar o pagamento %s: %s", pagamento.referencia_externa, e.message)
            return pedido

        return self._aplicar_status_gateway(pedido, transacao)


class CancelarPedidoUseCase(_FluxoPagamentoBase):
    """Cancelamento pelo cliente: apenas pedidos PENDENTES, com motivo de 10 a 500 caracteres."""
    def __init__(self, pedido_repo: IPedidoRepository, pagamento_gateway: IGatewayPagamento):
        self.pedido_repo = pedido_repo
        self.pagamento_gateway = pagamento_gateway

    def executar(self, usuario_id: str, pedido_id: str, motivo: str) -> Pedido:
        motivo = (motivo or "").strip()
        if not (10 <= len(motivo) <= 500):
            raise DadosInvalidosError("O motivo do cancelamento deve ter entre 10 e 500 caracteres")

        pedido = self._buscar_pedido_do_usuario(usuario_id, pedido_id)
        if pedido.status != StatusPedido.PENDENTE:
            raise StatusInvalidoError("Apenas pedidos pendentes podem ser cancelados")

        return self._cancelar(pedido, motivo)


class ExpirarPagamentosUseCase(_FluxoPagamentoBase):
    """
    Rotina periódica: expira PIX vencidos (liberando o estoque) e cancela
    pedidos que ficaram pendentes além do prazo sem pagamento.
    """
    MOTIVO_CANCELAMENTO = "Pedido cancelado automaticamente por falta de pagamento"

    def __init__(self, pedido_repo: IPedidoRepository, pagamento_gateway: IGatewayPagamento,
                 horas_expiracao_pedido: int = 24):
        self.pedido_repo = pedido_repo
        self.pagamento_gateway = pagamento_gateway
        self.horas_expiracao_pedido = horas_expiracao_pedido

    def executar(self, agora: Optional[datetime] = None) -> Dict[str, int]:
        agora = agora or agora_utc()

        pix_expirados = 0
        for pedido in self.pedido_repo.listar_pix_vencidos(agora):
            self._expirar_pix(pedido)
            pix_expirados += 1

        limite = agora - timedelta(hours=self.horas_expiracao_pedido)
        cancelados = 0
        for pedido in self.pedido_repo.listar_pendentes_criados_antes(limite):
            self._cancelar(pedido, self.MOTIVO_CANCELAMENTO)
            cancelados += 1

        return {'pix_expirados': pix_expirados, 'pedidos_cancelados': cancelados}


class AtualizarStatusPedidoPorTransacaoUseCase(_FluxoPagamentoBase):
    """
    Use Case para atualizar o status de um pedido baseado na notificação
    de pagamento (Webhook). O corpo da notificação não é confiável: o status
    é sempre consultado novamente no gateway.
    """
    def __init__(self, pedido_repo: IPedidoRepository, pagamento_gateway: IGatewayPagamento,
                 email_service: IEmailService):
        self.pedido_repo = pedido_repo
        self.pagamento_gateway = pagamento_gateway
        self.email_service = email_service

    def executar(self, transacao_id: str) -> Optional[Pedido]:
        pedido = self.pedido_repo.buscar_por_referencia_pagamento(transacao_id)
        if not pedido:
            logger.warning("Notificação para a cobrança %s sem pedido correspondente", transacao_id)
            return None

        try:
            transacao = self.pagamento_gateway.verificar_status(transacao_id)
        except PagamentoFalhouError as e:
            logger.error("Falha ao consultar a cobrança %s da notificação: %s", transacao_id, e.message)
            return None

        return self._aplicar_status_gateway(pedido, transacao)


class ListarPedidosDoUsuarioUseCase:
    """Caso de Uso para listar os pedidos de um cliente específico."""
    def __init__(self, pedido_repo: IPedidoRepository):
        self.pedido_repo = pedido_repo

    def executar(self, usuario_id: str) -> List[Pedido]:
        return self.pedido_repo.listar_pedidos_por_usuario(usuario_id)


class DetalharPedidoUseCase(_FluxoPagamentoBase):
    def __init__(self, pedido_repo: IPedidoRepository):
        self.pedido_repo = pedido_repo

    def executar(self, usuario_id: str, pedido_id: str) -> Pedido:
        return self._buscar_pedido_do_usuario(usuario_id, pedido_id)
