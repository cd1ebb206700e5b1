from datetime import timedelta
from decimal import Decimal
from unittest import mock

import requests
from django.contrib.auth import get_user_model
from django.core import mail
from django.test import SimpleTestCase, TestCase
from django.utils import timezone

from nsrloja.catalog.models import Produto as ProdutoModel, VarianteProduto as VarianteModel
from nsrloja.vendas.models import Cupom as CupomModel, Pedido as PedidoModel
from nsrloja.infrastructure.models import Endereco as EnderecoModel
from nsrloja.infrastructure.repositories import (
    ProdutoRepositoryDjango, EnderecoRepositoryDjango, CupomRepositoryDjango, PedidoRepositoryDjango
)
from nsrloja.infrastructure.gateways import PagBankGateway, EmailServiceGateway
from nsrloja.core.entities import (
    Endereco, ItemPedido, Pedido, Pagamento, Usuario, CartaoCriptografado,
    StatusPagamento, MetodoPagamento
)
from nsrloja.core.exceptions import (
    CupomInvalidoError, EstoqueInsuficienteError, EnderecoNaoEncontradoError, PedidoNaoEncontradoError,
    PagamentoFalhouError
)


def criar_usuario(email='maria@example.com', cpf='52998224725'):
    return get_user_model().objects.create_user(
        email=email, password='senha-forte-123', first_name='Maria', last_name='Souza',
        cpf=cpf, telefone='11987654321'
    )


def criar_endereco_model(usuario, **kwargs):
    dados = dict(
        usuario=usuario, apelido='Casa', nome_destinatario='Maria Souza',
        telefone_destinatario='11987654321', cep='01310100', rua='Av. Paulista', numero='1000',
        bairro='Bela Vista', cidade='São Paulo', estado='SP', is_principal=True
    )
    dados.update(kwargs)
    return EnderecoModel.objects.create(**dados)


# ====================================================================
# REPOSITÓRIOS
# ====================================================================

class ProdutoRepositoryTestCase(TestCase):

    def setUp(self):
        self.repository = ProdutoRepositoryDjango()
        self.produto = ProdutoModel.objects.create(nome='Camiseta', preco=Decimal('50.00'), estoque=0)
        VarianteModel.objects.create(produto=self.produto, tamanho='M', cor='Preto', estoque=2)

    def test_buscar_por_ids_com_variantes(self):
        """
        Cenário: IDs inválidos ou inexistentes são ignorados; o produto encontrado
        vem com as variantes.
        """
        # ACT
        produtos = self.repository.buscar_por_ids([str(self.produto.id), 'nao-e-uuid',
                                                   '00000000-0000-0000-0000-000000000000'])

        # ASSERT
        self.assertEqual(list(produtos), [str(self.produto.id)])
        produto = produtos[str(self.produto.id)]
        self.assertEqual(produto.estoque_disponivel('M', 'Preto'), 2)


class CupomRepositoryTestCase(TestCase):

    def setUp(self):
        self.repository = CupomRepositoryDjango()
        agora = timezone.now()
        self.cupom = CupomModel.objects.create(
            codigo='bemvindo10', tipo_desconto='percentual', valor_desconto=Decimal('10.00'),
            data_inicio=agora - timedelta(days=1), data_fim=agora + timedelta(days=30)
        )

    def test_codigo_sem_diferenciar_maiusculas(self):
        cupom = self.repository.buscar_por_codigo('BemVindo10')
        self.assertEqual(cupom.codigo, 'BEMVINDO10')
        self.assertIsNone(self.repository.buscar_por_codigo('OUTRO'))


class EnderecoRepositoryTestCase(TestCase):

    def setUp(self):
        self.repository = EnderecoRepositoryDjango()
        self.usuario = criar_usuario()
        self.casa = criar_endereco_model(self.usuario)
        self.trabalho = criar_endereco_model(self.usuario, apelido='Trabalho', is_principal=False)

    def _principais(self):
        return list(EnderecoModel.objects.filter(usuario=self.usuario, is_principal=True)
                    .values_list('apelido', flat=True))

    def test_salvar_novo_principal_desmarca_o_anterior(self):
        novo = Endereco(
            usuario_id=str(self.usuario.pk), apelido='Praia', nome_destinatario='Maria Souza',
            telefone_destinatario='', cep='11010000', rua='Rua XV', numero='10', bairro='Centro',
            cidade='Santos', estado='SP', is_principal=True
        )

        salvo = self.repository.salvar(novo)

        self.assertTrue(salvo.is_principal)
        self.assertEqual(self._principais(), ['Praia'])
        self.assertEqual(self.repository.contar_por_usuario(str(self.usuario.pk)), 3)

    def test_definir_principal(self):
        endereco = self.repository.definir_principal(str(self.usuario.pk), str(self.trabalho.id))
        self.assertTrue(endereco.is_principal)
        self.assertEqual(self._principais(), ['Trabalho'])

    def test_definir_principal_de_outro_usuario(self):
        outro = criar_usuario(email='joao@example.com', cpf='11144477735')
        with self.assertRaises(EnderecoNaoEncontradoError):
            self.repository.definir_principal(str(outro.pk), str(self.trabalho.id))
        self.assertEqual(self._principais(), ['Casa'])

    def test_deletar_principal_promove_outro(self):
        self.repository.deletar(str(self.casa.id))
        self.assertEqual(self._principais(), ['Trabalho'])

    def test_listar_principal_primeiro(self):
        enderecos = self.repository.listar_por_usuario(str(self.usuario.pk))
        self.assertEqual([e.apelido for e in enderecos], ['Casa', 'Trabalho'])

    def test_id_invalido(self):
        self.assertIsNone(self.repository.buscar_por_id('123'))
        with self.assertRaises(EnderecoNaoEncontradoError):
            self.repository.deletar('123')


class PedidoRepositoryTestCase(TestCase):

    def setUp(self):
        self.repository = PedidoRepositoryDjango()
        self.usuario = criar_usuario()
        self.endereco = EnderecoRepositoryDjango().buscar_por_id(criar_endereco_model(self.usuario).id)

        self.camiseta = ProdutoModel.objects.create(nome='Camiseta', preco=Decimal('50.00'), estoque=0)
        self.variante = VarianteModel.objects.create(produto=self.camiseta, tamanho='M', cor='Preto', estoque=2)
        self.caneca = ProdutoModel.objects.create(nome='Caneca', preco=Decimal('30.00'), estoque=5)

    def _item_camiseta(self, quantidade):
        return ItemPedido(str(self.camiseta.id), 'Camiseta', Decimal('50.00'), quantidade, 'M', 'Preto')

    def _item_caneca(self, quantidade):
        return ItemPedido(str(self.caneca.id), 'Caneca', Decimal('30.00'), quantidade)

    def _criar(self, itens, metodo=MetodoPagamento.PIX, **kwargs):
        subtotal = sum((item.subtotal for item in itens), Decimal('0.00'))
        pedido = Pedido(
            usuario_id=str(self.usuario.pk), itens=itens, metodo_pagamento=metodo,
            endereco_entrega=self.endereco, subtotal=subtotal, frete=Decimal('15.00'),
            total=subtotal + Decimal('15.00'), nome_cliente='Maria Souza',
            email_cliente='maria@example.com', estoque_reservado=True, **kwargs
        )
        return self.repository.criar_pedido(pedido, Pagamento(pedido_id=None, metodo=metodo, valor=pedido.total))

    def _cupom(self, **kwargs):
        agora = timezone.now()
        return CupomModel.objects.create(
            codigo='frete10', tipo_desconto='fixo', valor_desconto=Decimal('10.00'),
            data_inicio=agora - timedelta(days=1), data_fim=agora + timedelta(days=30), **kwargs
        )

    def _estoques(self):
        self.variante.refresh_from_db()
        self.caneca.refresh_from_db()
        return self.variante.estoque, self.caneca.estoque

    def test_criar_pedido_baixa_estoque_da_variante(self):
        # ACT
        pedido = self._criar([self._item_camiseta(2), self._item_caneca(1)])

        # ASSERT
        self.assertEqual(pedido.numero, f"NSR-{timezone.now().year}-0001")
        self.assertEqual(len(pedido.itens), 2)
        self.assertEqual(pedido.pagamento.tentativa, 1)
        self.assertEqual(pedido.pagamento.status, StatusPagamento.PENDENTE)
        self.assertEqual(self._estoques(), (0, 4))

    def test_falta_de_estoque_desfaz_tudo(self):
        """
        Cenário: o segundo item não tem estoque; nada do pedido pode ficar gravado
        e a baixa do primeiro item é desfeita.
        """
        with self.assertRaises(EstoqueInsuficienteError) as ctx:
            self._criar([self._item_caneca(2), self._item_camiseta(3)])

        indisponivel = ctx.exception.itens_indisponiveis[0]
        self.assertEqual(indisponivel.quantidade_solicitada, 3)
        self.assertEqual(indisponivel.quantidade_disponivel, 2)
        self.assertEqual(PedidoModel.objects.count(), 0)
        self.assertEqual(self._estoques(), (2, 5))

    def test_variante_inexistente(self):
        item = ItemPedido(str(self.camiseta.id), 'Camiseta', Decimal('50.00'), 1, 'GG', 'Azul')
        with self.assertRaises(EstoqueInsuficienteError) as ctx:
            self._criar([item])
        self.assertEqual(ctx.exception.itens_indisponiveis[0].quantidade_disponivel, 0)

    def test_numeracao_sequencial(self):
        primeiro = self._criar([self._item_caneca(1)])
        segundo = self._criar([self._item_caneca(1)])
        self.assertTrue(primeiro.numero.endswith('-0001'))
        self.assertTrue(segundo.numero.endswith('-0002'))

    def test_numeracao_passa_de_9999_sem_repetir(self):
        """
        Cenário: já existem NSR-AAAA-9999 e NSR-AAAA-10000; o próximo número
        segue o maior sufixo numérico e não a ordem alfabética.
        """
        ano = timezone.now().year
        for numero in (f"NSR-{ano}-9999", f"NSR-{ano}-10000"):
            pedido = self._criar([self._item_caneca(1)])
            PedidoModel.objects.filter(pk=pedido.id).update(numero=numero)

        self.assertEqual(self.repository.gerar_numero(ano), f"NSR-{ano}-10001")
        self.assertEqual(self._criar([self._item_caneca(1)]).numero, f"NSR-{ano}-10001")

    def test_numero_em_uso_gera_outro(self):
        """Cenário: outro checkout gravou o mesmo número antes; o pedido fica com o seguinte."""
        ano = timezone.now().year
        existente = self._criar([self._item_caneca(1)])

        with mock.patch.object(self.repository, 'gerar_numero',
                               side_effect=[existente.numero, f"NSR-{ano}-0002"]):
            pedido = self._criar([self._item_caneca(1)])

        self.assertEqual(pedido.numero, f"NSR-{ano}-0002")
        self.assertEqual(PedidoModel.objects.count(), 2)

    def test_cupom_conta_uso_na_criacao(self):
        cupom = self._cupom(limite_uso=2)
        self._criar([self._item_caneca(1)], cupom_codigo='FRETE10')
        cupom.refresh_from_db()
        self.assertEqual(cupom.vezes_usado, 1)

    def test_cupom_esgotado_desfaz_o_pedido(self):
        cupom = self._cupom(limite_uso=1, vezes_usado=1)

        with self.assertRaises(CupomInvalidoError):
            self._criar([self._item_caneca(2)], cupom_codigo='FRETE10')

        cupom.refresh_from_db()
        self.assertEqual(cupom.vezes_usado, 1)
        self.assertEqual(PedidoModel.objects.count(), 0)
        self.assertEqual(self._estoques(), (2, 5))

    def test_liberar_e_reservar_estoque(self):
        pedido = self._criar([self._item_camiseta(2)])

        self.assertTrue(self.repository.liberar_estoque(pedido.id))
        self.assertFalse(self.repository.liberar_estoque(pedido.id))
        self.assertEqual(self._estoques(), (2, 5))
        self.assertFalse(self.repository.buscar_por_id(pedido.id).estoque_reservado)

        self.repository.reservar_estoque(pedido.id)
        self.assertEqual(self._estoques(), (0, 5))
        self.assertTrue(self.repository.buscar_por_id(pedido.id).estoque_reservado)

    def test_reservar_sem_estoque(self):
        pedido = self._criar([self._item_camiseta(2)])
        self.repository.liberar_estoque(pedido.id)
        VarianteModel.objects.filter(pk=self.variante.pk).update(estoque=1)

        with self.assertRaises(EstoqueInsuficienteError):
            self.repository.reservar_estoque(pedido.id)
        self.assertFalse(self.repository.buscar_por_id(pedido.id).estoque_reservado)

    def test_novo_pagamento_vira_o_atual(self):
        pedido = self._criar([self._item_caneca(1)])
        segundo = Pagamento(pedido_id=pedido.id, metodo=MetodoPagamento.BOLETO, valor=pedido.total,
                            tentativa=2, referencia_externa='CHAR_2')
        self.repository.criar_pagamento(segundo)

        atual = self.repository.buscar_por_referencia_pagamento('CHAR_2')
        self.assertEqual(atual.id, pedido.id)
        self.assertEqual(atual.pagamento.tentativa, 2)

    def test_listar_pix_vencidos(self):
        pedido = self._criar([self._item_caneca(1)])
        agora = timezone.now()
        pagamento = pedido.pagamento
        pagamento.pix_expira_em = agora - timedelta(minutes=1)
        self.repository.salvar_pagamento(pagamento)

        self.assertEqual([p.id for p in self.repository.listar_pix_vencidos(agora)], [pedido.id])
        self.assertEqual(self.repository.listar_pix_vencidos(agora - timedelta(minutes=5)), [])

    def test_listar_pendentes_criados_antes(self):
        pedido = self._criar([self._item_caneca(1)])
        PedidoModel.objects.filter(pk=pedido.id).update(data_pedido=timezone.now() - timedelta(hours=25))

        limite = timezone.now() - timedelta(hours=24)
        self.assertEqual([p.id for p in self.repository.listar_pendentes_criados_antes(limite)], [pedido.id])

    def test_atualizar_status(self):
        pedido = self._criar([self._item_caneca(1)])
        atualizado = self.repository.atualizar_status(
            pedido.id, novo_status='PROCESSING', status_pagamento='PAID'
        )
        self.assertEqual((atualizado.status, atualizado.status_pagamento), ('PROCESSING', 'PAID'))

        with self.assertRaises(PedidoNaoEncontradoError):
            self.repository.atualizar_status('00000000-0000-0000-0000-000000000000', novo_status='CANCELLED')

    def test_listar_por_usuario(self):
        self._criar([self._item_caneca(1)])
        outro = criar_usuario(email='joao@example.com', cpf='11144477735')
        self.assertEqual(len(self.repository.listar_pedidos_por_usuario(str(self.usuario.pk))), 1)
        self.assertEqual(self.repository.listar_pedidos_por_usuario(str(outro.pk)), [])


# ====================================================================
# GATEWAYS
# ====================================================================

def criar_pedido_entity(metodo=MetodoPagamento.PIX):
    endereco = Endereco(
        usuario_id='1', apelido='Casa', nome_destinatario='Maria Souza', telefone_destinatario='11987654321',
        cep='01310-100', rua='Av. Paulista', numero='1000', bairro='Bela Vista', cidade='São Paulo',
        estado='sp', complemento='Apto 12'
    )
    return Pedido(
        usuario_id='1', numero='NSR-2026-0001', metodo_pagamento=metodo, endereco_entrega=endereco,
        itens=[ItemPedido('p1', 'Camiseta', Decimal('50.00'), 2, 'M', 'Preto')],
        subtotal=Decimal('100.00'), frete=Decimal('15.50'), total=Decimal('115.50'),
        nome_cliente='Maria Souza', email_cliente='maria@example.com'
    )


def criar_resposta(corpo, status=200):
    resposta = mock.Mock(status_code=status)
    resposta.json.return_value = corpo
    if status >= 400:
        resposta.raise_for_status.side_effect = requests.exceptions.HTTPError(response=resposta)
    return resposta


USUARIO = Usuario(nome='Maria Souza', email='maria@example.com', id='1',
                  cpf='529.982.247-25', telefone='+55 (11) 98765-4321')
CARTAO = CartaoCriptografado(criptografado='ENC==', nome_titular='Maria Souza', cpf_titular='52998224725')


class PagBankGatewayTestCase(SimpleTestCase):

    def setUp(self):
        self.gateway = PagBankGateway(token='token-teste', ambiente='sandbox',
                                      notification_url='https://loja.test/api/v1/webhooks/pagbank',
                                      pix_expiracao_minutos=15)

    @mock.patch('nsrloja.infrastructure.gateways.requests.post')
    def test_pix_usa_qr_codes(self, mock_post):
        mock_post.return_value = criar_resposta({
            'id': 'ORDE_123',
            'qr_codes': [{
                'id': 'QRCO_1', 'text': '00020101021226...',
                'expiration_date': '2026-03-10T09:15:00-03:00',
                'links': [{'media': 'image/png', 'href': 'https://sandbox.api.pagseguro.com/qrcode/QRCO_1/png'}],
            }],
        })

        transacao = self.gateway.processar_pagamento(criar_pedido_entity(), MetodoPagamento.PIX, USUARIO)

        _, kwargs = mock_post.call_args
        payload = kwargs['json']
        self.assertEqual(payload['qr_codes'][0]['amount']['value'], 11550)
        self.assertNotIn('charges', payload)
        self.assertEqual(payload['customer']['tax_id'], '52998224725')
        self.assertEqual(payload['customer']['phones'][0], {'country': '55', 'area': '11',
                                                            'number': '987654321', 'type': 'MOBILE'})
        self.assertEqual(payload['shipping']['address']['region_code'], 'SP')
        self.assertIn('X-Idempotency-Key', kwargs['headers'])

        self.assertEqual(transacao.status_pagamento, StatusPagamento.PENDENTE)
        self.assertEqual(transacao.referencia_externa, 'ORDE_123')
        self.assertEqual(transacao.pix_qr_code, '00020101021226...')
        self.assertTrue(transacao.pix_qr_code_imagem.endswith('/png'))
        self.assertEqual(transacao.pix_expira_em.isoformat(), '2026-03-10T09:15:00-03:00')

    @mock.patch('nsrloja.infrastructure.gateways.requests.post')
    def test_cartao_aprovado(self, mock_post):
        mock_post.return_value = criar_resposta({
            'id': 'ORDE_1',
            'charges': [{'id': 'CHAR_1', 'status': 'PAID',
                         'payment_response': {'code': '20000', 'message': 'SUCESSO'}}],
        })

        transacao = self.gateway.processar_pagamento(
            criar_pedido_entity(MetodoPagamento.CARTAO_CREDITO), MetodoPagamento.CARTAO_CREDITO, USUARIO, CARTAO
        )

        card = mock_post.call_args.kwargs['json']['charges'][0]['payment_method']['card']
        self.assertEqual(card['encrypted'], 'ENC==')
        self.assertEqual(card['holder'], {'name': 'MARIA SOUZA', 'tax_id': '52998224725'})
        self.assertEqual(transacao.status_pagamento, StatusPagamento.PAGO)
        self.assertEqual(transacao.referencia_externa, 'CHAR_1')
        self.assertIsNone(transacao.mensagem_erro)

    @mock.patch('nsrloja.infrastructure.gateways.requests.post')
    def test_cartao_recusado(self, mock_post):
        mock_post.return_value = criar_resposta({
            'id': 'ORDE_1',
            'charges': [{'id': 'CHAR_1', 'status': 'DECLINED',
                         'payment_response': {'code': '10002', 'message': 'NAO AUTORIZADO'}}],
        })

        transacao = self.gateway.processar_pagamento(
            criar_pedido_entity(MetodoPagamento.CARTAO_CREDITO), MetodoPagamento.CARTAO_CREDITO, USUARIO, CARTAO
        )

        self.assertEqual(transacao.status_pagamento, StatusPagamento.FALHOU)
        self.assertEqual(transacao.mensagem_erro, 'NAO AUTORIZADO')
        self.assertEqual(transacao.codigo_erro, '10002')

    @mock.patch('nsrloja.infrastructure.gateways.requests.post')
    def test_boleto(self, mock_post):
        mock_post.return_value = criar_resposta({
            'id': 'ORDE_1',
            'charges': [{
                'id': 'CHAR_9', 'status': 'WAITING',
                'payment_method': {'type': 'BOLETO', 'boleto': {'barcode': '03399853012970000024227020901016278150000015500'}},
                'links': [{'media': 'application/pdf', 'href': 'https://boleto.test/CHAR_9.pdf'}],
            }],
        })

        transacao = self.gateway.processar_pagamento(criar_pedido_entity(MetodoPagamento.BOLETO),
                                                     MetodoPagamento.BOLETO, USUARIO)

        boleto = mock_post.call_args.kwargs['json']['charges'][0]['payment_method']['boleto']
        self.assertEqual(boleto['holder']['tax_id'], '52998224725')
        self.assertEqual(transacao.boleto_url, 'https://boleto.test/CHAR_9.pdf')
        self.assertEqual(transacao.status_pagamento, StatusPagamento.PENDENTE)

    @mock.patch('nsrloja.infrastructure.gateways.requests.post')
    def test_erro_de_validacao_do_pagbank(self, mock_post):
        mock_post.return_value = criar_resposta({'error_messages': [{
            'code': '40002', 'description': 'invalid_parameter',
            'parameter_name': 'customer.tax_id',
        }]}, status=400)

        with self.assertRaises(PagamentoFalhouError) as ctx:
            self.gateway.processar_pagamento(criar_pedido_entity(), MetodoPagamento.PIX, USUARIO)

        self.assertEqual(ctx.exception.message, 'invalid_parameter (campo: customer.tax_id)')
        self.assertEqual(ctx.exception.codigo_erro, '40002')
        self.assertEqual(ctx.exception.erros, [{'campo': 'customer.tax_id', 'mensagem': 'invalid_parameter'}])

    @mock.patch('nsrloja.infrastructure.gateways.requests.post')
    def test_sem_conexao(self, mock_post):
        mock_post.side_effect = requests.exceptions.ConnectionError('offline')
        with self.assertRaises(PagamentoFalhouError):
            self.gateway.processar_pagamento(criar_pedido_entity(), MetodoPagamento.PIX, USUARIO)

    def test_cartao_obrigatorio(self):
        with self.assertRaises(PagamentoFalhouError):
            self.gateway.processar_pagamento(criar_pedido_entity(), MetodoPagamento.CARTAO_CREDITO, USUARIO)

    def test_cartao_nao_aparece_no_log(self):
        payload = self.gateway._montar_payload(criar_pedido_entity(), MetodoPagamento.CARTAO_CREDITO, USUARIO, CARTAO)
        limpo = self.gateway._sanitizar(payload)
        self.assertEqual(limpo['charges'][0]['payment_method']['card']['encrypted'], '[REDACTED]')
        self.assertEqual(payload['charges'][0]['payment_method']['card']['encrypted'], 'ENC==')

    @mock.patch('nsrloja.infrastructure.gateways.requests.get')
    def test_verificar_status_por_recurso(self, mock_get):
        mock_get.return_value = criar_resposta({
            'id': 'ORDE_7', 'charges': [{'id': 'CHAR_8', 'status': 'PAID', 'amount': {'value': 11550},
                                         'payment_method': {'type': 'PIX'}}],
        })

        transacao = self.gateway.verificar_status('ORDE_7')

        self.assertTrue(mock_get.call_args.args[0].endswith('/orders/ORDE_7'))
        self.assertEqual(transacao.referencia_externa, 'ORDE_7')
        self.assertEqual(transacao.status_pagamento, StatusPagamento.PAGO)
        self.assertEqual(transacao.valor, Decimal('115.5'))

        mock_get.return_value = criar_resposta({'id': 'CHAR_1', 'status': 'CANCELED'})
        transacao = self.gateway.verificar_status('CHAR_1')
        self.assertTrue(mock_get.call_args.args[0].endswith('/charges/CHAR_1'))
        self.assertEqual(transacao.status_pagamento, StatusPagamento.CANCELADO)

    @mock.patch('nsrloja.infrastructure.gateways.requests.post')
    def test_cancelar_cobranca(self, mock_post):
        mock_post.return_value = criar_resposta({})
        self.assertTrue(self.gateway.cancelar_cobranca('CHAR_1'))
        self.assertTrue(mock_post.call_args.args[0].endswith('/charges/CHAR_1/cancel'))

        mock_post.side_effect = requests.exceptions.Timeout()
        self.assertFalse(self.gateway.cancelar_cobranca('CHAR_1'))

    @mock.patch('nsrloja.infrastructure.gateways.requests.get')
    def test_obter_chave_publica(self, mock_get):
        mock_get.return_value = criar_resposta({'public_key': 'MIIBIjANBg...', 'created_at': 1})
        self.assertEqual(self.gateway.obter_chave_publica(), 'MIIBIjANBg...')
        self.assertTrue(mock_get.call_args.args[0].endswith('/public-keys/card'))


class EmailServiceGatewayTestCase(SimpleTestCase):

    def test_confirmacao_de_pedido_pix(self):
        pedido = criar_pedido_entity()
        pedido.pagamento = Pagamento(pedido_id=pedido.id, metodo=MetodoPagamento.PIX, valor=pedido.total,
                                     pix_qr_code='00020101021226...')

        EmailServiceGateway().enviar_confirmacao_pedido(pedido)

        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, ['maria@example.com'])
        self.assertIn('NSR-2026-0001', mail.outbox[0].subject)
        self.assertIn('00020101021226...', mail.outbox[0].body)

    def test_aprovacao_de_pagamento(self):
        EmailServiceGateway().enviar_aprovacao_pagamento(criar_pedido_entity())
        self.assertIn('APROVADO', mail.outbox[0].body)
