from datetime import timedelta
from decimal import Decimal
from io import StringIO
from unittest import mock

from django.contrib.auth import get_user_model
from django.core.management import call_command
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from nsrloja.core import dependency_injection as di
from nsrloja.core.entities import TransacaoPagamento, StatusPagamento, MetodoPagamento
from nsrloja.catalog.models import Produto, VarianteProduto
from nsrloja.vendas.models import MetodoEnvio, Pedido, Pagamento
from nsrloja.infrastructure.models import Endereco


def criar_transacao(status_pagamento=StatusPagamento.PENDENTE, referencia='ORDE_1',
                    metodo=MetodoPagamento.PIX, **kwargs):
    dados = dict(referencia_externa=referencia, status_pagamento=status_pagamento,
                 valor=Decimal('65.00'), metodo=metodo)
    if metodo == MetodoPagamento.PIX:
        dados.update(pix_qr_code='00020101021226...', pix_qr_code_imagem='https://qr.test/ORDE_1.png',
                     pix_expira_em=timezone.now() + timedelta(minutes=15))
    dados.update(kwargs)
    return TransacaoPagamento(**dados)


class CheckoutAPITestCase(APITestCase):
    """Base: usuário autenticado, endereço, produto com variante e método de envio."""

    def setUp(self):
        Usuario = get_user_model()
        self.usuario = Usuario.objects.create_user(
            email='maria@example.com', password='senha-forte-123', first_name='Maria',
            last_name='Souza', cpf='52998224725', telefone='11987654321'
        )
        self.outro_usuario = Usuario.objects.create_user(
            email='joao@example.com', password='senha-forte-123', first_name='João', cpf='11144477735'
        )
        self.endereco = Endereco.objects.create(
            usuario=self.usuario, apelido='Casa', nome_destinatario='Maria Souza',
            telefone_destinatario='11987654321', cep='01310100', rua='Av. Paulista', numero='1000',
            bairro='Bela Vista', cidade='São Paulo', estado='SP', is_principal=True
        )
        self.produto = Produto.objects.create(nome='Camiseta', preco=Decimal('50.00'), estoque=0,
                                              peso=Decimal('0.300'))
        self.variante = VarianteProduto.objects.create(produto=self.produto, tamanho='M', cor='Preto', estoque=2)
        self.pac = MetodoEnvio.objects.create(
            nome='PAC', descricao='Entrega econômica', custo_base=Decimal('15.00'),
            custo_por_kg=Decimal('2.50'), prazo_min_dias=5, prazo_max_dias=10,
            frete_gratis_acima=Decimal('299.00')
        )

        # Gateway e e-mail externos substituídos no módulo de injeção de dependência
        patcher_gateway = mock.patch.object(di, 'pagamento_gateway')
        patcher_email = mock.patch.object(di, 'email_service')
        self.gateway = patcher_gateway.start()
        self.email = patcher_email.start()
        self.addCleanup(patcher_gateway.stop)
        self.addCleanup(patcher_email.stop)
        self.gateway.processar_pagamento.return_value = criar_transacao()

        self.client.force_authenticate(user=self.usuario)

    def item(self, quantidade=1):
        return {'productId': str(self.produto.id), 'quantity': quantidade, 'size': 'M', 'color': 'Preto'}

    def corpo_pedido(self, **kwargs):
        corpo = {
            'addressId': str(self.endereco.id),
            'items': [self.item()],
            'shippingMethodId': str(self.pac.id),
            'paymentMethod': 'pix',
        }
        corpo.update(kwargs)
        return corpo

    def criar_pedido(self, **kwargs):
        response = self.client.post(reverse('pedidos'), self.corpo_pedido(**kwargs), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.data)
        return response.data

    def estoque_variante(self):
        self.variante.refresh_from_db()
        return self.variante.estoque


# ====================================================================
# ESTOQUE E FRETE
# ====================================================================

class EstoqueEFreteAPITest(CheckoutAPITestCase):

    def test_exige_autenticacao(self):
        self.client.force_authenticate(user=None)
        response = self.client.post(reverse('validar_estoque'), {'items': [self.item()]}, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_validar_estoque_insuficiente(self):
        response = self.client.post(reverse('validar_estoque'), {'items': [self.item(3)]}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['available'])
        item = response.data['unavailableItems'][0]
        self.assertEqual((item['requestedQuantity'], item['availableQuantity']), (3, 2))

    def test_validar_produto_inexistente(self):
        corpo = {'items': [{'productId': '00000000-0000-0000-0000-000000000000', 'quantity': 1}]}
        response = self.client.post(reverse('validar_estoque'), corpo, format='json')
        self.assertEqual(response.data['unavailableItems'][0]['availableQuantity'], 0)

    def test_calcular_frete(self):
        corpo = {'items': [{'productId': str(self.produto.id), 'quantity': 2}],
                 'zipCode': '01310-100', 'cartTotal': '100.00'}

        response = self.client.post(reverse('calcular_frete'), corpo, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        pac = response.data['methods'][0]
        self.assertEqual(pac['name'], 'PAC')
        self.assertEqual(pac['cost'], Decimal('15.00'))
        self.assertEqual(pac['estimatedDays'], {'min': 5, 'max': 10})
        self.assertFalse(pac['isFree'])

    def test_frete_gratis(self):
        corpo = {'items': [{'productId': str(self.produto.id), 'quantity': 1}],
                 'zipCode': '01310100', 'cartTotal': '299.00'}
        pac = self.client.post(reverse('calcular_frete'), corpo, format='json').data['methods'][0]
        self.assertEqual(pac['cost'], Decimal('0.00'))
        self.assertTrue(pac['isFree'])

    def test_cep_invalido(self):
        corpo = {'items': [{'productId': str(self.produto.id), 'quantity': 1}],
                 'zipCode': '1234', 'cartTotal': '50.00'}

        response = self.client.post(reverse('calcular_frete'), corpo, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['code'], 'DADOS_INVALIDOS')
        self.assertIn('CEP inválido', response.data['message'])


# ====================================================================
# PEDIDOS
# ====================================================================

class PedidosAPITest(CheckoutAPITestCase):

    def test_criar_pedido_pix(self):
        pedido = self.criar_pedido()

        self.assertRegex(pedido['orderNumber'], r'^NSR-\d{4}-0001$')
        self.assertEqual(pedido['status'], 'PENDING')
        self.assertEqual(pedido['paymentStatus'], 'PENDING')
        self.assertEqual(pedido['subtotal'], Decimal('50.00'))
        self.assertEqual(pedido['shippingCost'], Decimal('15.00'))
        self.assertEqual(pedido['total'], Decimal('65.00'))
        self.assertEqual(pedido['payment']['pixQrCode'], '00020101021226...')
        self.assertIsNotNone(pedido['payment']['pixExpiresAt'])
        self.assertIsNotNone(pedido['estimatedDelivery'])
        self.assertEqual(self.estoque_variante(), 1)
        self.email.enviar_confirmacao_pedido.assert_called_once()

    def test_cartao_obrigatorio(self):
        response = self.client.post(reverse('pedidos'), self.corpo_pedido(paymentMethod='credit_card'),
                                    format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('creditCard', response.data['details'])
        self.gateway.processar_pagamento.assert_not_called()

    def test_cartao_recusado_deixa_pedido_pendente(self):
        self.gateway.processar_pagamento.return_value = criar_transacao(
            StatusPagamento.FALHOU, referencia='CHAR_1', metodo=MetodoPagamento.CARTAO_CREDITO,
            mensagem_erro='NAO AUTORIZADO'
        )
        cartao = {'encrypted': 'ENC==', 'holderName': 'Maria Souza', 'holderCpf': '529.982.247-25'}

        pedido = self.criar_pedido(paymentMethod='credit_card', creditCard=cartao)

        self.assertEqual(pedido['status'], 'PENDING')
        self.assertEqual(pedido['paymentStatus'], 'FAILED')
        self.assertEqual(pedido['payment']['errorMessage'], 'NAO AUTORIZADO')
        recebido = self.gateway.processar_pagamento.call_args.kwargs['cartao']
        self.assertEqual(recebido.cpf_titular, '52998224725')

    def test_cartao_aprovado(self):
        self.gateway.processar_pagamento.return_value = criar_transacao(
            StatusPagamento.PAGO, referencia='CHAR_1', metodo=MetodoPagamento.CARTAO_CREDITO
        )
        cartao = {'encrypted': 'ENC==', 'holderName': 'Maria Souza', 'holderCpf': '52998224725'}

        pedido = self.criar_pedido(paymentMethod='credit_card', creditCard=cartao)

        self.assertEqual((pedido['status'], pedido['paymentStatus']), ('PROCESSING', 'PAID'))

    def test_estoque_insuficiente(self):
        response = self.client.post(reverse('pedidos'), self.corpo_pedido(items=[self.item(3)]), format='json')

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['code'], 'ESTOQUE_INSUFICIENTE')
        self.assertEqual(response.data['details'][0]['availableQuantity'], 2)
        self.assertEqual(Pedido.objects.count(), 0)
        self.assertEqual(self.estoque_variante(), 2)

    def test_endereco_de_outro_usuario(self):
        endereco = Endereco.objects.create(
            usuario=self.outro_usuario, apelido='Casa', nome_destinatario='João Lima', cep='20040002',
            rua='Rua da Assembleia', numero='10', bairro='Centro', cidade='Rio de Janeiro', estado='RJ'
        )
        response = self.client.post(reverse('pedidos'), self.corpo_pedido(addressId=str(endereco.id)),
                                    format='json')

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data['code'], 'ACESSO_NEGADO')

    def test_cpf_informado_no_checkout_para_cadastro_sem_cpf(self):
        sem_cpf = get_user_model().objects.create_user(email='ana@example.com', password='senha-forte-123',
                                                       first_name='Ana')
        endereco = Endereco.objects.create(
            usuario=sem_cpf, apelido='Casa', nome_destinatario='Ana Lima', cep='01310100',
            rua='Av. Paulista', numero='200', bairro='Bela Vista', cidade='São Paulo', estado='SP'
        )
        self.client.force_authenticate(user=sem_cpf)

        recusado = self.client.post(reverse('pedidos'), self.corpo_pedido(addressId=str(endereco.id)),
                                    format='json')
        self.assertEqual(recusado.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.post(reverse('pedidos'), self.corpo_pedido(
            addressId=str(endereco.id), customerCpf='529.982.247-25',
            receiverName='Ana Lima', receiverPhone='11911112222'
        ), format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.data)
        self.assertEqual(self.gateway.processar_pagamento.call_args.kwargs['usuario'].cpf, '52998224725')
        pedido = Pedido.objects.get(pk=response.data['id'])
        self.assertEqual((pedido.nome_cliente, pedido.telefone_cliente), ('Ana Lima', '11911112222'))

    def test_metodo_de_envio_inativo(self):
        MetodoEnvio.objects.filter(pk=self.pac.pk).update(ativo=False)
        response = self.client.post(reverse('pedidos'), self.corpo_pedido(), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_listar_e_detalhar(self):
        pedido = self.criar_pedido()

        lista = self.client.get(reverse('pedidos'))
        self.assertEqual([p['id'] for p in lista.data], [pedido['id']])

        detalhe = self.client.get(reverse('pedido_detalhe', args=[pedido['id']]))
        self.assertEqual(detalhe.data['items'][0]['size'], 'M')

    def test_pedido_de_outro_usuario_responde_404(self):
        pedido = self.criar_pedido()
        self.client.force_authenticate(user=self.outro_usuario)

        response = self.client.get(reverse('pedido_detalhe', args=[pedido['id']]))

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['message'], 'Pedido não encontrado')


# ====================================================================
# PAGAMENTOS
# ====================================================================

class PagamentosAPITest(CheckoutAPITestCase):

    def test_retentar_pagamento_recusado(self):
        self.gateway.processar_pagamento.return_value = criar_transacao(
            StatusPagamento.FALHOU, referencia='CHAR_1', metodo=MetodoPagamento.CARTAO_CREDITO
        )
        cartao = {'encrypted': 'ENC==', 'holderName': 'Maria Souza', 'holderCpf': '52998224725'}
        pedido = self.criar_pedido(paymentMethod='credit_card', creditCard=cartao)
        self.gateway.processar_pagamento.return_value = criar_transacao()

        response = self.client.post(reverse('retentar_pagamento', args=[pedido['id']]),
                                    {'paymentMethod': 'pix'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'PENDING')
        self.assertEqual(response.data['payment']['attempt'], 2)
        self.assertEqual(response.data['payment']['method'], 'pix')
        self.assertEqual(Pagamento.objects.filter(pedido_id=pedido['id']).count(), 2)
        self.assertEqual(Pedido.objects.get(pk=pedido['id']).metodo_pagamento, 'pix')
        # O estoque continua reservado uma única vez
        self.assertEqual(self.estoque_variante(), 1)

    def test_retentar_com_pagamento_pendente(self):
        pedido = self.criar_pedido()
        response = self.client.post(reverse('retentar_pagamento', args=[pedido['id']]),
                                    {'paymentMethod': 'pix'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['code'], 'STATUS_INVALIDO')

    def test_status_pagamento_consulta_o_gateway(self):
        pedido = self.criar_pedido()
        self.gateway.verificar_status.return_value = criar_transacao(StatusPagamento.PAGO)

        response = self.client.get(reverse('status_pagamento', args=[pedido['id']]))

        self.assertEqual(response.data['status'], 'PAID')
        self.assertEqual(response.data['orderStatus'], 'PROCESSING')
        self.gateway.verificar_status.assert_called_once_with('ORDE_1')
        self.email.enviar_aprovacao_pagamento.assert_called_once()

    def test_pix_vencido_expira_e_libera_estoque(self):
        pedido = self.criar_pedido()
        Pagamento.objects.filter(pedido_id=pedido['id']).update(
            pix_expira_em=timezone.now() - timedelta(minutes=1)
        )

        response = self.client.get(reverse('status_pagamento', args=[pedido['id']]))

        self.assertEqual(response.data['status'], 'EXPIRED')
        self.assertEqual(self.estoque_variante(), 2)
        self.gateway.verificar_status.assert_not_called()

    def test_cancelar_pedido(self):
        pedido = self.criar_pedido()
        url = reverse('cancelar_pedido', args=[pedido['id']])

        curto = self.client.post(url, {'reason': 'curto'}, format='json')
        self.assertEqual(curto.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.post(url, {'reason': 'Desisti da compra, obrigado'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'CANCELLED')
        self.assertEqual(response.data['paymentStatus'], 'CANCELLED')
        self.assertEqual(response.data['cancellationReason'], 'Desisti da compra, obrigado')
        self.assertEqual(self.estoque_variante(), 2)
        self.gateway.cancelar_cobranca.assert_called_once_with('ORDE_1')

        de_novo = self.client.post(url, {'reason': 'Desisti da compra, obrigado'}, format='json')
        self.assertEqual(de_novo.status_code, status.HTTP_409_CONFLICT)

    def test_webhook_reconsulta_o_gateway(self):
        pedido = self.criar_pedido()
        self.gateway.verificar_status.return_value = criar_transacao(StatusPagamento.PAGO)
        self.client.force_authenticate(user=None)

        response = self.client.post(reverse('webhook_pagbank'),
                                    {'id': 'ORDE_1', 'charges': [{'id': 'CHAR_DESCONHECIDA', 'status': 'PAID'}]},
                                    format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.gateway.verificar_status.assert_called_once_with('ORDE_1')
        self.assertEqual(Pedido.objects.get(pk=pedido['id']).status, 'PROCESSING')

    def test_webhook_sem_identificador(self):
        self.client.force_authenticate(user=None)
        response = self.client.post(reverse('webhook_pagbank'), {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_comando_expirar_pagamentos(self):
        pedido = self.criar_pedido()
        Pagamento.objects.filter(pedido_id=pedido['id']).update(
            pix_expira_em=timezone.now() - timedelta(minutes=1)
        )
        saida = StringIO()

        call_command('expirar_pagamentos', stdout=saida)

        self.assertIn('1 PIX expirado(s)', saida.getvalue())
        self.assertEqual(Pagamento.objects.get(pedido_id=pedido['id']).status, 'EXPIRED')
        self.assertEqual(self.estoque_variante(), 2)


# ====================================================================
# ENDEREÇOS
# ====================================================================

class EnderecosAPITest(CheckoutAPITestCase):

    corpo = {
        'label': 'Trabalho', 'receiverName': 'Maria Souza', 'receiverPhone': '(11) 98765-4321',
        'zipCode': '04538-133', 'street': 'Av. Brigadeiro Faria Lima', 'number': '3477',
        'neighborhood': 'Itaim Bibi', 'city': 'São Paulo', 'state': 'sp', 'isDefault': True,
    }

    def test_criar_endereco_principal(self):
        response = self.client.post(reverse('enderecos'), self.corpo, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['zipCode'], '04538133')
        self.assertEqual(response.data['state'], 'SP')
        self.assertTrue(response.data['isDefault'])
        self.endereco.refresh_from_db()
        self.assertFalse(self.endereco.is_principal)

    def test_validacao_do_endereco(self):
        response = self.client.post(reverse('enderecos'), dict(self.corpo, zipCode='0453'), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('zipCode', response.data['details'])

    def test_primeiro_endereco_e_sempre_principal(self):
        self.client.force_authenticate(user=self.outro_usuario)
        response = self.client.post(reverse('enderecos'), dict(self.corpo, isDefault=False), format='json')
        self.assertTrue(response.data['isDefault'])

    def test_definir_principal_e_listar(self):
        outro = self.client.post(reverse('enderecos'), dict(self.corpo, isDefault=False), format='json').data

        response = self.client.patch(reverse('endereco_principal', args=[outro['id']]))

        self.assertTrue(response.data['isDefault'])
        lista = self.client.get(reverse('enderecos')).data
        self.assertEqual([e['isDefault'] for e in lista], [True, False])
        self.assertEqual(lista[0]['id'], outro['id'])

    def test_atualizar_parcial(self):
        response = self.client.patch(reverse('endereco_detalhe', args=[self.endereco.id]),
                                     {'number': '2000'}, format='json')
        self.assertEqual(response.data['number'], '2000')
        self.assertEqual(response.data['label'], 'Casa')

    def test_deletar(self):
        response = self.client.delete(reverse('endereco_detalhe', args=[self.endereco.id]))
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Endereco.objects.filter(pk=self.endereco.pk).exists())

    def test_endereco_de_outro_usuario(self):
        self.client.force_authenticate(user=self.outro_usuario)
        response = self.client.get(reverse('endereco_detalhe', args=[self.endereco.id]))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_endereco_inexistente(self):
        response = self.client.get(reverse('endereco_detalhe', args=['00000000-0000-0000-0000-000000000000']))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
