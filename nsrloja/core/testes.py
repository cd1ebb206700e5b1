# nsrloja/core/testes.py

import unittest
from unittest.mock import Mock
from decimal import Decimal
from datetime import datetime, timedelta, timezone

from nsrloja.core.use_cases import (
    ValidarEstoqueUseCase, CalcularFreteUseCase, GerenciarEnderecosUseCase,
    AplicarCupomUseCase, CriarPedidoUseCase, RetentarPagamentoUseCase,
    ConsultarStatusPagamentoUseCase, CancelarPedidoUseCase, ExpirarPagamentosUseCase,
    AtualizarStatusPedidoPorTransacaoUseCase
)
from nsrloja.core.entities import (
    Produto, VarianteProduto, ItemSolicitado, MetodoEnvio, Endereco, Usuario,
    Cupom, Pedido, ItemPedido, Pagamento, TransacaoPagamento, CartaoCriptografado,
    StatusPedido, StatusPagamento, MetodoPagamento
)
from nsrloja.core.exceptions import (
    DadosInvalidosError, CarrinhoVazioError, CupomInvalidoError, EstoqueInsuficienteError,
    PagamentoFalhouError, PedidoNaoEncontradoError, EnderecoNaoEncontradoError,
    AcessoNegadoError, StatusInvalidoError
)
from nsrloja.core.validadores import (
    validar_luhn, validar_cpf, detectar_bandeira, formatar_cpf, formatar_numero_cartao, cep_valido
)

CPF_VALIDO = '52998224725'
AGORA = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


def criar_endereco(usuario_id='u1', **kwargs) -> Endereco:
    dados = dict(
        usuario_id=usuario_id, apelido='Casa', nome_destinatario='Maria Souza',
        telefone_destinatario='11987654321', cep='01310100', rua='Av. Paulista',
        numero='1000', bairro='Bela Vista', cidade='São Paulo', estado='SP', id='end-1'
    )
    dados.update(kwargs)
    return Endereco(**dados)


def criar_pedido(status=StatusPedido.PENDENTE, pagamento=None, **kwargs) -> Pedido:
    dados = dict(
        id='ped-1', numero='NSR-2026-0001', usuario_id='u1',
        itens=[ItemPedido('p1', 'Camiseta', Decimal('50.00'), 2, 'M', 'Preto')],
        metodo_pagamento=MetodoPagamento.PIX, endereco_entrega=criar_endereco(),
        subtotal=Decimal('100.00'), frete=Decimal('15.00'), total=Decimal('115.00'),
        status=status, estoque_reservado=True, pagamento=pagamento
    )
    dados.update(kwargs)
    return Pedido(**dados)


def repetir_pedido(pedido):
    """Faz atualizar_status devolver o próprio pedido com os campos alterados."""
    def _atualizar(pedido_id, novo_status=None, status_pagamento=None,
                   motivo_cancelamento=None, metodo_pagamento=None):
        if novo_status:
            pedido.status = novo_status
        if status_pagamento:
            pedido.status_pagamento = status_pagamento
        if motivo_cancelamento:
            pedido.motivo_cancelamento = motivo_cancelamento
        if metodo_pagamento:
            pedido.metodo_pagamento = metodo_pagamento
        return pedido
    return _atualizar


# ====================================================================
# VALIDADORES
# ====================================================================

class TestValidadores(unittest.TestCase):

    def test_luhn(self):
        self.assertTrue(validar_luhn('4539620659922097'))
        self.assertTrue(validar_luhn('4539 6206 5992 2097'))
        self.assertFalse(validar_luhn('4539620659922098'))
        self.assertFalse(validar_luhn(''))
        self.assertFalse(validar_luhn('4539abcd'))

    def test_cpf(self):
        self.assertTrue(validar_cpf(CPF_VALIDO))
        self.assertTrue(validar_cpf('529.982.247-25'))
        self.assertFalse(validar_cpf('52998224726'))
        self.assertFalse(validar_cpf('123'))

    def test_cpf_com_digitos_iguais_sempre_invalido(self):
        for digito in '0123456789':
            self.assertFalse(validar_cpf(digito * 11))

    def test_bandeiras(self):
        self.assertEqual(detectar_bandeira('4539620659922097'), 'visa')
        self.assertEqual(detectar_bandeira('5555666677778884'), 'mastercard')
        self.assertEqual(detectar_bandeira('378282246310005'), 'amex')
        self.assertEqual(detectar_bandeira('6362970000457013'), 'elo')
        self.assertEqual(detectar_bandeira('4011780000000000'), 'elo')
        self.assertEqual(detectar_bandeira('6062825624254001'), 'hipercard')
        self.assertIsNone(detectar_bandeira('9999'))

    def test_formatacao(self):
        self.assertEqual(formatar_numero_cartao('4539620659922097'), '4539 6206 5992 2097')
        self.assertEqual(formatar_cpf(CPF_VALIDO), '529.982.247-25')
        self.assertTrue(cep_valido('01310-100'))
        self.assertFalse(cep_valido('0131010'))


# ====================================================================
# ESTOQUE E FRETE
# ====================================================================

class TestValidarEstoque(unittest.TestCase):

    def setUp(self):
        self.produto_repo_mock = Mock()
        self.use_case = ValidarEstoqueUseCase(self.produto_repo_mock)
        self.camiseta = Produto(
            id='p1', nome='Camiseta', preco=Decimal('50.00'), estoque=10,
            variantes=[VarianteProduto('M', 'Preto', 2), VarianteProduto('G', 'Preto', 0)]
        )
        self.produto_repo_mock.buscar_por_ids.return_value = {'p1': self.camiseta}

    def test_itens_disponiveis(self):
        resultado = self.use_case.executar([ItemSolicitado('p1', 2, 'M', 'Preto')])
        self.assertTrue(resultado.disponivel)
        self.assertEqual(resultado.itens_indisponiveis, [])

    def test_quantidade_acima_do_estoque_da_variante(self):
        resultado = self.use_case.executar([ItemSolicitado('p1', 3, 'M', 'Preto')])

        self.assertFalse(resultado.disponivel)
        item = resultado.itens_indisponiveis[0]
        self.assertEqual(item.nome_produto, 'Camiseta')
        self.assertEqual(item.quantidade_solicitada, 3)
        self.assertEqual(item.quantidade_disponivel, 2)

    def test_produto_inexistente_tem_estoque_zero(self):
        resultado = self.use_case.executar([ItemSolicitado('nao-existe', 1)])

        self.assertFalse(resultado.disponivel)
        item = resultado.itens_indisponiveis[0]
        self.assertIsNone(item.nome_produto)
        self.assertEqual(item.quantidade_disponivel, 0)

    def test_produto_inativo_tem_estoque_zero(self):
        self.camiseta.ativo = False
        resultado = self.use_case.executar([ItemSolicitado('p1', 1)])
        self.assertEqual(resultado.itens_indisponiveis[0].quantidade_disponivel, 0)

    def test_sem_tamanho_usa_estoque_do_produto(self):
        resultado = self.use_case.executar([ItemSolicitado('p1', 10)])
        self.assertTrue(resultado.disponivel)

    def test_quantidade_zero_invalida(self):
        with self.assertRaises(DadosInvalidosError):
            self.use_case.executar([ItemSolicitado('p1', 0)])


class TestCalcularFrete(unittest.TestCase):

    def setUp(self):
        self.produto_repo_mock = Mock()
        self.metodo_envio_repo_mock = Mock()
        self.use_case = CalcularFreteUseCase(self.produto_repo_mock, self.metodo_envio_repo_mock)

        self.pac = MetodoEnvio(
            id='pac', nome='PAC', custo_base=Decimal('15.00'), custo_por_kg=Decimal('2.50'),
            prazo_min_dias=5, prazo_max_dias=10, frete_gratis_acima=Decimal('299.00')
        )
        self.sedex = MetodoEnvio(
            id='sedex', nome='SEDEX', custo_base=Decimal('25.00'), custo_por_kg=Decimal('4.00'),
            prazo_min_dias=1, prazo_max_dias=3
        )
        self.metodo_envio_repo_mock.listar_ativos.return_value = [self.pac, self.sedex]
        self.produto_repo_mock.buscar_por_ids.return_value = {
            'p1': Produto(id='p1', nome='Jaqueta', preco=Decimal('200'), estoque=5, peso=Decimal('1.5')),
        }

    def test_custo_linear_por_peso(self):
        # 2 x 1.5 kg = 3 kg -> 2 kg excedentes
        opcoes = self.use_case.executar([ItemSolicitado('p1', 2)], '01310-100', Decimal('100.00'))

        self.assertEqual([o.id for o in opcoes], ['pac', 'sedex'])
        self.assertEqual(opcoes[0].custo, Decimal('20.00'))
        self.assertEqual(opcoes[1].custo, Decimal('33.00'))
        self.assertFalse(opcoes[0].gratis)
        self.assertEqual(opcoes[1].prazo_max_dias, 3)

    def test_peso_padrao_para_produto_sem_peso(self):
        # Produto desconhecido: 0.5 kg, abaixo de 1 kg só cobra o custo base
        opcoes = self.use_case.executar([ItemSolicitado('x', 1)], '01310100', Decimal('10'))
        self.assertEqual(opcoes[1].custo, Decimal('25.00'))

    def test_frete_gratis_acima_do_limite(self):
        opcoes = self.use_case.executar([ItemSolicitado('p1', 2)], '01310100', Decimal('299.00'))
        self.assertEqual(opcoes[0].custo, Decimal('0.00'))
        self.assertTrue(opcoes[0].gratis)
        self.assertFalse(opcoes[1].gratis)

    def test_custo_nao_diminui_com_o_peso(self):
        custos = [
            CalcularFreteUseCase.calcular_opcao(self.sedex, Decimal(peso), Decimal('0')).custo
            for peso in ('1', '1.2', '2', '7.5', '30')
        ]
        self.assertEqual(custos, sorted(custos))

    def test_cep_invalido(self):
        with self.assertRaises(DadosInvalidosError):
            self.use_case.executar([ItemSolicitado('p1', 1)], '1234', Decimal('10'))
        self.metodo_envio_repo_mock.listar_ativos.assert_not_called()

    def test_carrinho_vazio(self):
        with self.assertRaises(CarrinhoVazioError):
            self.use_case.executar([], '01310100', Decimal('10'))

    def test_total_negativo(self):
        with self.assertRaises(DadosInvalidosError):
            self.use_case.executar([ItemSolicitado('p1', 1)], '01310100', Decimal('-1'))


# ====================================================================
# ENDEREÇOS E CUPONS
# ====================================================================

class TestGerenciarEnderecos(unittest.TestCase):

    def setUp(self):
        self.endereco_repo_mock = Mock()
        self.endereco_repo_mock.salvar.side_effect = lambda endereco: endereco
        self.use_case = GerenciarEnderecosUseCase(self.endereco_repo_mock)
        self.dados = {
            'apelido': 'Casa', 'nome_destinatario': 'Maria Souza', 'cep': '01310-100',
            'rua': 'Av. Paulista', 'numero': '1000', 'bairro': 'Bela Vista',
            'cidade': 'São Paulo', 'estado': 'sp'
        }

    def test_primeiro_endereco_vira_principal(self):
        self.endereco_repo_mock.contar_por_usuario.return_value = 0
        endereco = self.use_case.criar('u1', self.dados)

        self.assertTrue(endereco.is_principal)
        self.assertEqual(endereco.cep, '01310100')
        self.assertEqual(endereco.estado, 'SP')

    def test_segundo_endereco_nao_vira_principal(self):
        self.endereco_repo_mock.contar_por_usuario.return_value = 1
        self.assertFalse(self.use_case.criar('u1', self.dados).is_principal)

    def test_endereco_de_outro_usuario(self):
        self.endereco_repo_mock.buscar_por_id.return_value = criar_endereco(usuario_id='outro')
        with self.assertRaises(AcessoNegadoError) as ctx:
            self.use_case.definir_principal('u1', 'end-1')
        self.assertEqual(ctx.exception.message, 'Você não tem permissão para acessar este endereço')
        self.endereco_repo_mock.definir_principal.assert_not_called()

    def test_endereco_inexistente(self):
        self.endereco_repo_mock.buscar_por_id.return_value = None
        with self.assertRaises(EnderecoNaoEncontradoError):
            self.use_case.deletar('u1', 'end-x')


class TestAplicarCupom(unittest.TestCase):

    def setUp(self):
        self.cupom_repo_mock = Mock()
        self.use_case = AplicarCupomUseCase(self.cupom_repo_mock)
        self.cupom = Cupom(
            codigo='BEMVINDO10', tipo_desconto='percentual', valor_desconto=Decimal('10'),
            data_inicio=AGORA - timedelta(days=1), data_fim=AGORA + timedelta(days=30),
            desconto_maximo=Decimal('15.00')
        )
        self.cupom_repo_mock.buscar_por_codigo.return_value = self.cupom

    def test_desconto_percentual_com_teto(self):
        _, desconto = self.use_case.calcular_desconto('bemvindo10', Decimal('100.00'), AGORA)
        self.assertEqual(desconto, Decimal('10.00'))
        _, desconto = self.use_case.calcular_desconto('BEMVINDO10', Decimal('500.00'), AGORA)
        self.assertEqual(desconto, Decimal('15.00'))
        self.cupom_repo_mock.buscar_por_codigo.assert_called_with('BEMVINDO10')

    def test_desconto_fixo_limitado_ao_subtotal(self):
        self.cupom.tipo_desconto = 'fixo'
        self.cupom.valor_desconto = Decimal('80.00')
        _, desconto = self.use_case.calcular_desconto('BEMVINDO10', Decimal('50.00'), AGORA)
        self.assertEqual(desconto, Decimal('50.00'))

    def test_cupom_expirado_esgotado_e_minimo(self):
        with self.assertRaises(CupomInvalidoError):
            self.use_case.calcular_desconto('BEMVINDO10', Decimal('100'), AGORA + timedelta(days=60))

        self.cupom.limite_uso, self.cupom.vezes_usado = 5, 5
        with self.assertRaises(CupomInvalidoError):
            self.use_case.calcular_desconto('BEMVINDO10', Decimal('100'), AGORA)

        self.cupom.limite_uso = None
        self.cupom.compra_minima = Decimal('150.00')
        with self.assertRaises(CupomInvalidoError):
            self.use_case.calcular_desconto('BEMVINDO10', Decimal('100'), AGORA)


# ====================================================================
# PEDIDO E PAGAMENTO
# ====================================================================

class TestCriarPedido(unittest.TestCase):

    def setUp(self):
        self.produto_repo_mock = Mock()
        self.endereco_repo_mock = Mock()
        self.metodo_envio_repo_mock = Mock()
        self.cupom_repo_mock = Mock()
        self.usuario_repo_mock = Mock()
        self.pedido_repo_mock = Mock()
        self.pagamento_gateway_mock = Mock()
        self.email_service_mock = Mock()

        self.use_case = CriarPedidoUseCase(
            produto_repo=self.produto_repo_mock,
            endereco_repo=self.endereco_repo_mock,
            metodo_envio_repo=self.metodo_envio_repo_mock,
            cupom_repo=self.cupom_repo_mock,
            usuario_repo=self.usuario_repo_mock,
            pedido_repo=self.pedido_repo_mock,
            pagamento_gateway=self.pagamento_gateway_mock,
            email_service=self.email_service_mock
        )

        self.usuario = Usuario(id='u1', nome='Maria Souza', email='maria@example.com', cpf=CPF_VALIDO)
        self.usuario_repo_mock.buscar_por_id.return_value = self.usuario
        self.endereco_repo_mock.buscar_por_id.return_value = criar_endereco()
        self.metodo_envio_repo_mock.buscar_por_id.return_value = MetodoEnvio(
            id='pac', nome='PAC', custo_base=Decimal('15.00'), custo_por_kg=Decimal('2.50'),
            prazo_min_dias=5, prazo_max_dias=10
        )
        self.produto_repo_mock.buscar_por_ids.return_value = {
            'p1': Produto(id='p1', nome='Camiseta', preco=Decimal('50.00'), estoque=10,
                          variantes=[VarianteProduto('M', 'Preto', 5)])
        }
        self.itens = [ItemSolicitado('p1', 2, 'M', 'Preto')]

        def _criar(pedido, pagamento):
            pedido.numero = 'NSR-2026-0001'
            pedido.pagamento = pagamento
            return pedido
        self.pedido_repo_mock.criar_pedido.side_effect = _criar
        self.pedido_repo_mock.salvar_pagamento.side_effect = lambda pagamento: pagamento
        self.pedido_repo_mock.atualizar_status.side_effect = (
            lambda pedido_id, novo_status=None, status_pagamento=None, **kw: Pedido(
                usuario_id='u1', itens=[], metodo_pagamento='pix', endereco_entrega=criar_endereco(),
                subtotal=Decimal('100.00'), frete=Decimal('15.00'), total=Decimal('115.00'),
                id=pedido_id, status=novo_status or StatusPedido.PENDENTE,
                status_pagamento=status_pagamento or StatusPagamento.PENDENTE
            )
        )

    def test_criar_pedido_pix_com_sucesso(self):
        expira = AGORA + timedelta(minutes=15)
        self.pagamento_gateway_mock.processar_pagamento.return_value = TransacaoPagamento(
            referencia_externa='ORDE_123', status_pagamento=StatusPagamento.PENDENTE,
            valor=Decimal('115.00'), metodo='pix', pix_qr_code='000201...', pix_expira_em=expira
        )

        pedido = self.use_case.executar('u1', 'end-1', self.itens, 'pac', MetodoPagamento.PIX)

        pedido_criado, pagamento = self.pedido_repo_mock.criar_pedido.call_args[0]
        self.assertEqual(pedido_criado.subtotal, Decimal('100.00'))
        self.assertEqual(pedido_criado.frete, Decimal('15.00'))
        self.assertEqual(pedido_criado.total, Decimal('115.00'))
        self.assertTrue(pedido_criado.estoque_reservado)
        self.assertEqual(pagamento.tentativa, 1)

        self.assertEqual(pedido.status, StatusPedido.PENDENTE)
        self.assertEqual(pedido.pagamento.pix_qr_code, '000201...')
        self.assertEqual(pedido.pagamento.pix_expira_em, expira)
        self.assertEqual(pedido.pagamento.referencia_externa, 'ORDE_123')
        self.email_service_mock.enviar_confirmacao_pedido.assert_called_once()

    def test_cartao_aprovado_vai_para_processando(self):
        self.pagamento_gateway_mock.processar_pagamento.return_value = TransacaoPagamento(
            referencia_externa='CHAR_1', status_pagamento=StatusPagamento.PAGO,
            valor=Decimal('115.00'), metodo='credit_card'
        )
        cartao = CartaoCriptografado('ZW5j', 'MARIA SOUZA', CPF_VALIDO)

        pedido = self.use_case.executar('u1', 'end-1', self.itens, 'pac', MetodoPagamento.CARTAO_CREDITO, cartao)

        self.assertEqual(pedido.status, StatusPedido.PROCESSANDO)
        self.assertEqual(pedido.status_pagamento, StatusPagamento.PAGO)
        self.assertEqual(self.pagamento_gateway_mock.processar_pagamento.call_args.kwargs['cartao'], cartao)

    def test_pagamento_recusado_mantem_pedido_pendente(self):
        self.pagamento_gateway_mock.processar_pagamento.side_effect = PagamentoFalhouError(
            "Cartão recusado", codigo_erro='DECLINED'
        )
        cartao = CartaoCriptografado('ZW5j', 'MARIA SOUZA', CPF_VALIDO)

        pedido = self.use_case.executar('u1', 'end-1', self.itens, 'pac', MetodoPagamento.CARTAO_CREDITO, cartao)

        self.assertEqual(pedido.status, StatusPedido.PENDENTE)
        self.assertEqual(pedido.status_pagamento, StatusPagamento.FALHOU)
        self.assertEqual(pedido.pagamento.mensagem_erro, "Cartão recusado")

    def test_cartao_obrigatorio(self):
        with self.assertRaises(DadosInvalidosError) as ctx:
            self.use_case.executar('u1', 'end-1', self.itens, 'pac', MetodoPagamento.CARTAO_CREDITO)
        self.assertEqual(ctx.exception.message, "Dados do cartão são obrigatórios")
        self.pedido_repo_mock.criar_pedido.assert_not_called()

    def test_cpf_informado_no_checkout_completa_o_cadastro(self):
        """Cenário: cadastro sem CPF; o CPF digitado no checkout vai para a cobrança PIX."""
        self.usuario_repo_mock.buscar_por_id.return_value = Usuario(
            id='u1', nome='Maria Souza', email='maria@example.com', telefone='11999990000'
        )
        self.pagamento_gateway_mock.processar_pagamento.return_value = TransacaoPagamento(
            referencia_externa='ORDE_1', status_pagamento=StatusPagamento.PENDENTE,
            valor=Decimal('115.00'), metodo='pix'
        )

        self.use_case.executar('u1', 'end-1', self.itens, 'pac', MetodoPagamento.PIX,
                               nome_destinatario='Ana Souza', telefone_destinatario='11911112222',
                               cpf_comprador='529.982.247-25')

        usuario_cobrado = self.pagamento_gateway_mock.processar_pagamento.call_args.kwargs['usuario']
        self.assertEqual(usuario_cobrado.cpf, CPF_VALIDO)
        pedido_criado, _ = self.pedido_repo_mock.criar_pedido.call_args[0]
        self.assertEqual(pedido_criado.nome_cliente, 'Ana Souza')
        self.assertEqual(pedido_criado.telefone_cliente, '11911112222')

    def test_cpf_do_comprador_invalido(self):
        self.usuario_repo_mock.buscar_por_id.return_value = Usuario(id='u1', nome='Maria', email='m@example.com')
        with self.assertRaises(DadosInvalidosError):
            self.use_case.executar('u1', 'end-1', self.itens, 'pac', MetodoPagamento.PIX,
                                   cpf_comprador='11111111111')
        self.pedido_repo_mock.criar_pedido.assert_not_called()

    def test_endereco_de_outro_usuario_rejeitado(self):
        self.endereco_repo_mock.buscar_por_id.return_value = criar_endereco(usuario_id='outro')
        with self.assertRaises(AcessoNegadoError):
            self.use_case.executar('u1', 'end-1', self.itens, 'pac', MetodoPagamento.PIX)
        self.pedido_repo_mock.criar_pedido.assert_not_called()

    def test_metodo_de_envio_inativo(self):
        self.metodo_envio_repo_mock.buscar_por_id.return_value.ativo = False
        with self.assertRaises(DadosInvalidosError):
            self.use_case.executar('u1', 'end-1', self.itens, 'pac', MetodoPagamento.PIX)

    def test_estoque_insuficiente_aborta_sem_pedido(self):
        itens = [ItemSolicitado('p1', 6, 'M', 'Preto')]
        with self.assertRaises(EstoqueInsuficienteError) as ctx:
            self.use_case.executar('u1', 'end-1', itens, 'pac', MetodoPagamento.PIX)

        self.assertEqual(ctx.exception.itens_indisponiveis[0].quantidade_disponivel, 5)
        self.pedido_repo_mock.criar_pedido.assert_not_called()
        self.pagamento_gateway_mock.processar_pagamento.assert_not_called()

    def test_falha_no_email_nao_interrompe(self):
        self.pagamento_gateway_mock.processar_pagamento.return_value = TransacaoPagamento(
            referencia_externa='ORDE_1', status_pagamento=StatusPagamento.PENDENTE,
            valor=Decimal('115.00'), metodo='boleto', boleto_url='https://boleto'
        )
        self.email_service_mock.enviar_confirmacao_pedido.side_effect = RuntimeError('smtp fora')

        with self.assertLogs('nsrloja.core.use_cases', level='ERROR'):
            pedido = self.use_case.executar('u1', 'end-1', self.itens, 'pac', MetodoPagamento.BOLETO)
        self.assertEqual(pedido.pagamento.boleto_url, 'https://boleto')

    def test_cupom_aplicado_no_total(self):
        self.cupom_repo_mock.buscar_por_codigo.return_value = Cupom(
            codigo='DESC20', tipo_desconto='fixo', valor_desconto=Decimal('20.00'),
            data_inicio=datetime(2020, 1, 1, tzinfo=timezone.utc),
            data_fim=datetime(2099, 1, 1, tzinfo=timezone.utc), id='c1'
        )
        self.pagamento_gateway_mock.processar_pagamento.return_value = TransacaoPagamento(
            referencia_externa='ORDE_1', status_pagamento=StatusPagamento.PENDENTE,
            valor=Decimal('95.00'), metodo='pix'
        )

        self.use_case.executar('u1', 'end-1', self.itens, 'pac', MetodoPagamento.PIX, cupom_codigo='desc20')

        pedido_criado, _ = self.pedido_repo_mock.criar_pedido.call_args[0]
        self.assertEqual(pedido_criado.desconto, Decimal('20.00'))
        self.assertEqual(pedido_criado.total, Decimal('95.00'))
        self.assertEqual(pedido_criado.cupom_codigo, 'DESC20')


class TestRetentarPagamento(unittest.TestCase):

    def setUp(self):
        self.pedido_repo_mock = Mock()
        self.usuario_repo_mock = Mock()
        self.pagamento_gateway_mock = Mock()
        self.use_case = RetentarPagamentoUseCase(
            self.pedido_repo_mock, self.usuario_repo_mock, self.pagamento_gateway_mock
        )
        self.usuario_repo_mock.buscar_por_id.return_value = Usuario(
            id='u1', nome='Maria', email='maria@example.com', cpf=CPF_VALIDO
        )
        self.pedido_repo_mock.criar_pagamento.side_effect = lambda pagamento: pagamento
        self.pedido_repo_mock.salvar_pagamento.side_effect = lambda pagamento: pagamento

    def _pedido_com_pagamento(self, status_pagamento, **kwargs):
        pagamento = Pagamento(pedido_id='ped-1', metodo='pix', valor=Decimal('115.00'),
                              status=status_pagamento, tentativa=1, **kwargs)
        pedido = criar_pedido(pagamento=pagamento, status_pagamento=status_pagamento)
        self.pedido_repo_mock.buscar_por_id.return_value = pedido
        self.pedido_repo_mock.atualizar_status.side_effect = repetir_pedido(pedido)
        return pedido

    def test_retentativa_apos_falha_cria_nova_tentativa(self):
        self._pedido_com_pagamento(StatusPagamento.FALHOU)
        self.pagamento_gateway_mock.processar_pagamento.return_value = TransacaoPagamento(
            referencia_externa='ORDE_2', status_pagamento=StatusPagamento.PENDENTE,
            valor=Decimal('115.00'), metodo='pix', pix_qr_code='novo-qr'
        )

        pedido = self.use_case.executar('u1', 'ped-1', MetodoPagamento.PIX)

        novo = self.pedido_repo_mock.criar_pagamento.call_args[0][0]
        self.assertEqual(novo.tentativa, 2)
        self.assertEqual(pedido.pagamento.pix_qr_code, 'novo-qr')
        self.pedido_repo_mock.criar_pedido.assert_not_called()
        self.pedido_repo_mock.reservar_estoque.assert_not_called()

    def test_retentativa_com_pagamento_pendente_nao_permitida(self):
        self._pedido_com_pagamento(StatusPagamento.PENDENTE)
        with self.assertRaises(StatusInvalidoError):
            self.use_case.executar('u1', 'ped-1', MetodoPagamento.PIX)

    def test_pix_vencido_libera_e_reserva_de_novo(self):
        pedido = self._pedido_com_pagamento(
            StatusPagamento.PENDENTE, pix_expira_em=AGORA - timedelta(minutes=1)
        )

        def _liberar(pedido_id):
            pedido.estoque_reservado = False
            return True
        self.pedido_repo_mock.liberar_estoque.side_effect = _liberar
        self.pagamento_gateway_mock.processar_pagamento.return_value = TransacaoPagamento(
            referencia_externa='ORDE_3', status_pagamento=StatusPagamento.PENDENTE,
            valor=Decimal('115.00'), metodo='pix'
        )

        self.use_case.executar('u1', 'ped-1', MetodoPagamento.PIX, agora=AGORA)

        self.pedido_repo_mock.liberar_estoque.assert_called_once_with('ped-1')
        self.pedido_repo_mock.reservar_estoque.assert_called_once_with('ped-1')

    def test_pedido_de_outro_usuario(self):
        self._pedido_com_pagamento(StatusPagamento.FALHOU)
        with self.assertRaises(PedidoNaoEncontradoError):
            self.use_case.executar('outro', 'ped-1', MetodoPagamento.PIX)


class TestConsultarStatusPagamento(unittest.TestCase):

    def setUp(self):
        self.pedido_repo_mock = Mock()
        self.pagamento_gateway_mock = Mock()
        self.email_service_mock = Mock()
        self.use_case = ConsultarStatusPagamentoUseCase(
            self.pedido_repo_mock, self.pagamento_gateway_mock, self.email_service_mock
        )
        self.pagamento = Pagamento(pedido_id='ped-1', metodo='pix', valor=Decimal('115.00'),
                                   referencia_externa='ORDE_1',
                                   pix_expira_em=AGORA + timedelta(minutes=10))
        self.pedido = criar_pedido(pagamento=self.pagamento)
        self.pedido_repo_mock.buscar_por_id.return_value = self.pedido
        self.pedido_repo_mock.salvar_pagamento.side_effect = lambda pagamento: pagamento
        self.pedido_repo_mock.atualizar_status.side_effect = repetir_pedido(self.pedido)

    def test_pix_pago_no_gateway(self):
        self.pagamento_gateway_mock.verificar_status.return_value = TransacaoPagamento(
            referencia_externa='ORDE_1', status_pagamento=StatusPagamento.PAGO,
            valor=Decimal('115.00'), metodo='pix'
        )

        pedido = self.use_case.executar('u1', 'ped-1', agora=AGORA)

        self.assertEqual(pedido.pagamento.status, StatusPagamento.PAGO)
        self.assertEqual(pedido.status, StatusPedido.PROCESSANDO)
        self.email_service_mock.enviar_aprovacao_pagamento.assert_called_once()

    def test_pix_vencido_expira_e_libera_estoque(self):
        pedido = self.use_case.executar('u1', 'ped-1', agora=AGORA + timedelta(minutes=11))

        self.assertEqual(pedido.pagamento.status, StatusPagamento.EXPIRADO)
        self.assertEqual(pedido.status, StatusPedido.PENDENTE)
        self.pedido_repo_mock.liberar_estoque.assert_called_once_with('ped-1')
        self.pagamento_gateway_mock.verificar_status.assert_not_called()

    def test_erro_no_gateway_devolve_status_armazenado(self):
        self.pagamento_gateway_mock.verificar_status.side_effect = PagamentoFalhouError("timeout")
        pedido = self.use_case.executar('u1', 'ped-1', agora=AGORA)

        self.assertEqual(pedido.pagamento.status, StatusPagamento.PENDENTE)
        self.pedido_repo_mock.salvar_pagamento.assert_not_called()


class TestCancelarPedido(unittest.TestCase):

    def setUp(self):
        self.pedido_repo_mock = Mock()
        self.pagamento_gateway_mock = Mock()
        self.use_case = CancelarPedidoUseCase(self.pedido_repo_mock, self.pagamento_gateway_mock)
        self.pagamento = Pagamento(pedido_id='ped-1', metodo='boleto', valor=Decimal('115.00'),
                                   referencia_externa='ORDE_1')
        self.pedido = criar_pedido(pagamento=self.pagamento)
        self.pedido_repo_mock.buscar_por_id.return_value = self.pedido
        self.pedido_repo_mock.salvar_pagamento.side_effect = lambda pagamento: pagamento
        self.pedido_repo_mock.atualizar_status.side_effect = repetir_pedido(self.pedido)

    def test_cancelar_pedido_pendente(self):
        pedido = self.use_case.executar('u1', 'ped-1', 'Desisti da compra, obrigado')

        self.assertEqual(pedido.status, StatusPedido.CANCELADO)
        self.assertEqual(pedido.pagamento.status, StatusPagamento.CANCELADO)
        self.pedido_repo_mock.liberar_estoque.assert_called_once_with('ped-1')
        self.pagamento_gateway_mock.cancelar_cobranca.assert_called_once_with('ORDE_1')

    def test_falha_ao_cancelar_cobranca_nao_impede(self):
        self.pagamento_gateway_mock.cancelar_cobranca.side_effect = PagamentoFalhouError("indisponível")
        pedido = self.use_case.executar('u1', 'ped-1', 'Desisti da compra, obrigado')
        self.assertEqual(pedido.status, StatusPedido.CANCELADO)

    def test_motivo_curto(self):
        with self.assertRaises(DadosInvalidosError):
            self.use_case.executar('u1', 'ped-1', 'curto')

    def test_pedido_nao_pendente(self):
        self.pedido.status = StatusPedido.ENVIADO
        with self.assertRaises(StatusInvalidoError):
            self.use_case.executar('u1', 'ped-1', 'Desisti da compra, obrigado')


class TestExpirarPagamentos(unittest.TestCase):

    def test_expira_pix_e_cancela_pedidos_antigos(self):
        pedido_repo_mock = Mock()
        pagamento_gateway_mock = Mock()
        use_case = ExpirarPagamentosUseCase(pedido_repo_mock, pagamento_gateway_mock, horas_expiracao_pedido=24)

        pix = criar_pedido(pagamento=Pagamento(pedido_id='ped-1', metodo='pix', valor=Decimal('10')))
        antigo = criar_pedido(id='ped-2', pagamento=Pagamento(
            pedido_id='ped-2', metodo='boleto', valor=Decimal('10'), status=StatusPagamento.FALHOU
        ))
        pedido_repo_mock.listar_pix_vencidos.return_value = [pix]
        pedido_repo_mock.listar_pendentes_criados_antes.return_value = [antigo]
        pedido_repo_mock.salvar_pagamento.side_effect = lambda pagamento: pagamento
        pedido_repo_mock.atualizar_status.side_effect = lambda pedido_id, *a, **kw: criar_pedido(id=pedido_id)

        resultado = use_case.executar(agora=AGORA)

        self.assertEqual(resultado, {'pix_expirados': 1, 'pedidos_cancelados': 1})
        self.assertEqual(pix.pagamento.status, StatusPagamento.EXPIRADO)
        pedido_repo_mock.listar_pendentes_criados_antes.assert_called_once_with(AGORA - timedelta(hours=24))
        pedido_repo_mock.atualizar_status.assert_any_call(
            'ped-2', StatusPedido.CANCELADO, status_pagamento=None,
            motivo_cancelamento=ExpirarPagamentosUseCase.MOTIVO_CANCELAMENTO
        )
        # Pagamento já falhou: nada a cancelar no gateway
        pagamento_gateway_mock.cancelar_cobranca.assert_not_called()


class TestAtualizarStatusPorWebhook(unittest.TestCase):

    def setUp(self):
        self.pedido_repo_mock = Mock()
        self.pagamento_gateway_mock = Mock()
        self.email_service_mock = Mock()
        self.use_case = AtualizarStatusPedidoPorTransacaoUseCase(
            self.pedido_repo_mock, self.pagamento_gateway_mock, self.email_service_mock
        )

    def test_cobranca_desconhecida(self):
        self.pedido_repo_mock.buscar_por_referencia_pagamento.return_value = None
        self.assertIsNone(self.use_case.executar('ORDE_X'))
        self.pagamento_gateway_mock.verificar_status.assert_not_called()

    def test_pagamento_recusado(self):
        pedido = criar_pedido(pagamento=Pagamento(
            pedido_id='ped-1', metodo='boleto', valor=Decimal('115.00'), referencia_externa='ORDE_1'
        ))
        self.pedido_repo_mock.buscar_por_referencia_pagamento.return_value = pedido
        self.pedido_repo_mock.salvar_pagamento.side_effect = lambda pagamento: pagamento
        self.pedido_repo_mock.atualizar_status.side_effect = repetir_pedido(pedido)
        self.pagamento_gateway_mock.verificar_status.return_value = TransacaoPagamento(
            referencia_externa='ORDE_1', status_pagamento=StatusPagamento.FALHOU,
            valor=Decimal('115.00'), metodo='boleto', mensagem_erro='Recusado pelo banco'
        )

        resultado = self.use_case.executar('ORDE_1')

        self.assertEqual(resultado.status_pagamento, StatusPagamento.FALHOU)
        self.assertEqual(resultado.status, StatusPedido.PENDENTE)
        self.assertEqual(resultado.pagamento.mensagem_erro, 'Recusado pelo banco')
        self.email_service_mock.enviar_aprovacao_pagamento.assert_not_called()


if __name__ == '__main__':
    unittest.main()
