# nsrloja/cliente/testes.py

import base64
import threading
import time
import unittest
from unittest.mock import Mock
from decimal import Decimal
from datetime import date, timedelta

import requests
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from nsrloja.core.entities import CartaoCriptografado, agora_utc
from nsrloja.core.exceptions import (
    DadosInvalidosError, EstoqueInsuficienteError, PagamentoFalhouError,
    StatusInvalidoError, ErroDeRedeError, ErroServidorError
)
from nsrloja.cliente.api import ClienteApi
from nsrloja.cliente.estado import Store
from nsrloja.cliente.carrinho import (
    Carrinho, EstadoCarrinho, ItemCarrinho, VarianteCarrinho,
    validar_itens_carrinho_para_checkout, itens_para_api
)
from nsrloja.cliente.cartao import (
    DadosCartao, EstadoSdk, SdkCriptografiaPagBank, validar_dados_cartao
)
from nsrloja.cliente.checkout import EtapaCheckout, MaquinaCheckout
from nsrloja.cliente.pedidos import OrquestradorPedido
from nsrloja.cliente.pix import MonitorPagamentoPix, tempo_restante

CPF_VALIDO = '52998224725'

CONFLITO_DE_ESTOQUE = {
    'message': 'Estoque insuficiente para Camiseta',
    'code': 'ESTOQUE_INSUFICIENTE',
    'details': [{'productId': 'p1', 'productName': 'Camiseta', 'requestedQuantity': 2, 'availableQuantity': 1}],
}


def criar_item(**kwargs) -> ItemCarrinho:
    dados = dict(
        id='p1', nome='Camiseta', preco=Decimal('50.00'), quantidade=1,
        tamanho_selecionado='M', variantes=(VarianteCarrinho('M', 'Preto', 2),)
    )
    dados.update(kwargs)
    return ItemCarrinho(**dados)


def criar_dados_cartao(**kwargs) -> DadosCartao:
    dados = dict(
        numero='4539 6206 5992 2097', titular='MARIA SOUZA', mes_expiracao='12',
        ano_expiracao='2035', cvv='123', cpf_titular='529.982.247-25'
    )
    dados.update(kwargs)
    return DadosCartao(**dados)


def gerar_chaves():
    """Par RSA de teste; a pública no formato base64 DER usado pelo PagBank."""
    privada = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    der = privada.public_key().public_bytes(
        serialization.Encoding.DER, serialization.PublicFormat.SubjectPublicKeyInfo
    )
    return privada, base64.b64encode(der).decode('ascii')


# ====================================================================
# STORE E CARRINHO
# ====================================================================

class TestStore(unittest.TestCase):

    def test_atualizar_notifica_assinantes_ate_cancelar(self):
        store = Store(0)
        recebidos = []
        cancelar = store.assinar(recebidos.append)

        store.atualizar(lambda n: n + 1)
        cancelar()
        store.atualizar(lambda n: n + 1)

        self.assertEqual(recebidos, [1])
        self.assertEqual(store.obter(), 2)

    def test_sem_mudanca_nao_notifica(self):
        store = Store('a')
        callback = Mock()
        store.assinar(callback)
        store.atualizar(lambda s: s)
        callback.assert_not_called()

    def test_selecionar(self):
        store = Store({'itens': [1, 2, 3]})
        self.assertEqual(store.selecionar(lambda s: len(s['itens'])), 3)


class TestCarrinho(unittest.TestCase):

    def test_adicionar_mesma_variante_soma_quantidade(self):
        variantes = (VarianteCarrinho('M', 'Preto', 5), VarianteCarrinho('G', 'Preto', 5))
        carrinho = Carrinho()
        carrinho.adicionar(criar_item(variantes=variantes))
        carrinho.adicionar(criar_item(quantidade=2, variantes=variantes))
        carrinho.adicionar(criar_item(tamanho_selecionado='G', variantes=variantes))

        self.assertEqual(len(carrinho.itens), 2)
        self.assertEqual(carrinho.itens[0].quantidade, 3)
        self.assertEqual(carrinho.quantidade(), 4)
        self.assertEqual(carrinho.total(), Decimal('200.00'))

    def test_soma_acima_do_estoque_e_recusada(self):
        carrinho = Carrinho()
        carrinho.adicionar(criar_item(quantidade=2))

        with self.assertRaises(DadosInvalidosError) as ctx:
            carrinho.adicionar(criar_item(quantidade=1))

        self.assertIn('acima do estoque', ctx.exception.message)
        self.assertEqual(carrinho.itens[0].quantidade, 2)

    def test_variante_sem_estoque_nao_entra(self):
        carrinho = Carrinho()
        with self.assertRaises(DadosInvalidosError) as ctx:
            carrinho.adicionar(criar_item(id='p2', variantes=(VarianteCarrinho('M', 'Preto', 0),)))
        self.assertIn('sem estoque', ctx.exception.message)
        self.assertEqual(carrinho.itens, ())

    def test_produto_sem_variantes_respeita_estoque_do_produto(self):
        carrinho = Carrinho()
        with self.assertRaises(DadosInvalidosError):
            carrinho.adicionar(criar_item(id='p3', variantes=(), tamanho_selecionado=None, estoque=1, quantidade=2))

    def test_alterar_quantidade_respeita_estoque(self):
        carrinho = Carrinho()
        item = criar_item()
        carrinho.adicionar(item)

        with self.assertRaises(DadosInvalidosError):
            carrinho.alterar_quantidade(item.chave, 3)
        self.assertEqual(carrinho.itens[0].quantidade, 1)

        carrinho.alterar_quantidade(item.chave, 2)
        self.assertEqual(carrinho.itens[0].quantidade, 2)

    def test_alterar_para_zero_remove(self):
        carrinho = Carrinho()
        item = criar_item()
        carrinho.adicionar(item)
        carrinho.alterar_quantidade(item.chave, 0)
        self.assertEqual(carrinho.itens, ())

    def test_limpar(self):
        carrinho = Carrinho(Store(EstadoCarrinho(itens=(criar_item(),))))
        carrinho.limpar()
        self.assertEqual(carrinho.total(), Decimal('0.00'))

    def test_itens_para_api(self):
        corpo = itens_para_api([criar_item(cor_selecionada='Preto'), criar_item(id='p2', variantes=(),
                                                                              tamanho_selecionado=None)])
        self.assertEqual(corpo[0], {'productId': 'p1', 'quantity': 1, 'size': 'M', 'color': 'Preto'})
        self.assertEqual(corpo[1], {'productId': 'p2', 'quantity': 1})


class TestValidarCarrinhoParaCheckout(unittest.TestCase):

    def assertMensagem(self, itens, trecho):
        with self.assertRaises(DadosInvalidosError) as ctx:
            validar_itens_carrinho_para_checkout(itens)
        self.assertIn(trecho, ctx.exception.message)

    def test_carrinho_valido(self):
        validar_itens_carrinho_para_checkout([criar_item()])

    def test_quantidade_acima_do_estoque(self):
        self.assertMensagem([criar_item(quantidade=3)], 'acima do estoque')

    def test_cada_condicao_tem_mensagem_propria(self):
        self.assertMensagem([], 'Carrinho vazio')
        self.assertMensagem([criar_item(id=None)], 'ID ausente')
        self.assertMensagem([criar_item(quantidade=0)], 'Quantidade inválida')
        self.assertMensagem([criar_item(tamanho_selecionado=None)], 'Selecione um tamanho')
        self.assertMensagem([criar_item(tamanho_selecionado='GG')], 'Variante não encontrada')
        self.assertMensagem([criar_item(variantes=(VarianteCarrinho('M', 'Preto', 0),))], 'sem estoque')

    def test_cor_selecionada_precisa_casar(self):
        self.assertMensagem([criar_item(cor_selecionada='Branco')], 'Variante não encontrada')

    def test_produto_sem_variantes_usa_estoque_do_produto(self):
        item = criar_item(variantes=(), tamanho_selecionado=None, estoque=1)
        validar_itens_carrinho_para_checkout([item])
        self.assertMensagem([criar_item(variantes=(), estoque=1, quantidade=2)], 'acima do estoque')


# ====================================================================
# CRIPTOGRAFIA DO CARTÃO
# ====================================================================

class TestValidarDadosCartao(unittest.TestCase):

    def test_cartao_valido(self):
        self.assertEqual(validar_dados_cartao(criar_dados_cartao(), hoje=date(2026, 3, 10)), [])

    def test_erros_por_campo(self):
        dados = criar_dados_cartao(numero='4539620659922098', cvv='12', titular=' ', cpf_titular='11111111111')
        campos = [e['campo'] for e in validar_dados_cartao(dados, hoje=date(2026, 3, 10))]
        self.assertEqual(campos, ['numero', 'cvv', 'titular', 'cpf'])

    def test_validade(self):
        expirado = validar_dados_cartao(criar_dados_cartao(mes_expiracao='02', ano_expiracao='26'),
                                        hoje=date(2026, 3, 10))
        self.assertEqual(expirado[0]['mensagem'], 'Cartão expirado')

        invalido = validar_dados_cartao(criar_dados_cartao(mes_expiracao='13'), hoje=date(2026, 3, 10))
        self.assertEqual(invalido[0]['mensagem'], 'Data de validade inválida')

        mes_atual = validar_dados_cartao(criar_dados_cartao(mes_expiracao='03', ano_expiracao='2026'),
                                         hoje=date(2026, 3, 10))
        self.assertEqual(mes_atual, [])


class TestSdkCriptografia(unittest.TestCase):

    @classmethod
    def setUpClass(cls):
        cls.privada, cls.chave_publica = gerar_chaves()

    def test_payload_cifrado_pode_ser_decifrado_pela_chave_privada(self):
        sdk = SdkCriptografiaPagBank(chave_publica=self.chave_publica)

        cartao = sdk.criptografar(criar_dados_cartao())

        self.assertIsInstance(cartao, CartaoCriptografado)
        self.assertEqual(cartao.nome_titular, 'MARIA SOUZA')
        self.assertEqual(cartao.cpf_titular, CPF_VALIDO)
        self.assertNotIn('4539', cartao.criptografado)

        claro = self.privada.decrypt(base64.b64decode(cartao.criptografado), padding.PKCS1v15()).decode()
        numero, cvv, mes, ano, titular, timestamp = claro.split(';')
        self.assertEqual((numero, cvv, mes, ano, titular), ('4539620659922097', '123', '12', '2035', 'MARIA SOUZA'))
        self.assertTrue(timestamp.isdigit())
        self.assertEqual(sdk.estado, EstadoSdk.PRONTO)

    def test_chave_informada_na_chamada_dispensa_o_carregamento(self):
        sdk = SdkCriptografiaPagBank(chave_publica='', buscar_chave=Mock())
        sdk.criptografar(criar_dados_cartao(), chave_publica=self.chave_publica)
        sdk._buscar_chave.assert_not_called()
        self.assertEqual(sdk.estado, EstadoSdk.DESCARREGADO)

    def test_dados_invalidos_nao_chegam_a_cifrar(self):
        buscar = Mock()
        sdk = SdkCriptografiaPagBank(chave_publica='', buscar_chave=buscar)

        with self.assertRaises(PagamentoFalhouError) as ctx:
            sdk.criptografar(criar_dados_cartao(cvv='1'))

        self.assertTrue(ctx.exception.message.startswith('Erro ao criptografar cartão: '))
        self.assertIn('CVV inválido', ctx.exception.message)
        self.assertEqual(ctx.exception.erros, [{'campo': 'cvv', 'mensagem': 'CVV inválido'}])
        buscar.assert_not_called()

    def test_carregamento_concorrente_acontece_uma_vez(self):
        liberar = threading.Event()
        chamadas = []

        def buscar():
            chamadas.append(1)
            liberar.wait(5)
            return self.chave_publica

        sdk = SdkCriptografiaPagBank(chave_publica='', buscar_chave=buscar)
        resultados = []
        threads = [
            threading.Thread(target=lambda: resultados.append(sdk.garantir_pronto(timeout=10)))
            for _ in range(5)
        ]
        for t in threads:
            t.start()

        for _ in range(200):
            if sdk.estado == EstadoSdk.CARREGANDO:
                break
            time.sleep(0.01)
        liberar.set()
        for t in threads:
            t.join(10)

        self.assertEqual(len(chamadas), 1)
        self.assertEqual(len(resultados), 5)
        self.assertEqual(sdk.estado, EstadoSdk.PRONTO)

    def test_falha_no_carregamento_pode_ser_repetida(self):
        buscar = Mock(side_effect=[requests.exceptions.ConnectionError('offline'), self.chave_publica])
        sdk = SdkCriptografiaPagBank(chave_publica='', buscar_chave=buscar)

        with self.assertRaises(PagamentoFalhouError):
            sdk.garantir_pronto()
        self.assertEqual(sdk.estado, EstadoSdk.FALHOU)

        sdk.garantir_pronto()
        self.assertEqual(sdk.estado, EstadoSdk.PRONTO)
        self.assertEqual(buscar.call_count, 2)

    def test_aceita_chave_pem(self):
        pem = self.privada.public_key().public_bytes(
            serialization.Encoding.PEM, serialization.PublicFormat.SubjectPublicKeyInfo
        ).decode('ascii')
        cartao = SdkCriptografiaPagBank(chave_publica=pem).criptografar(criar_dados_cartao())
        claro = self.privada.decrypt(base64.b64decode(cartao.criptografado), padding.PKCS1v15()).decode()
        self.assertTrue(claro.startswith('4539620659922097;123;'))


# ====================================================================
# CLIENTE DA API
# ====================================================================

class TestClienteApi(unittest.TestCase):

    def setUp(self):
        self.session = Mock()
        self.session.headers = {}
        self.api = ClienteApi(base_url='http://api.test/api/v1/', token='abc', timeout=30, session=self.session)

    def _resposta(self, status=200, corpo=None):
        resposta = Mock(ok=200 <= status < 300, status_code=status, content=b'{}')
        resposta.json.return_value = corpo if corpo is not None else {}
        return resposta

    def test_token_bearer(self):
        self.assertEqual(self.session.headers['Authorization'], 'Bearer abc')

    def test_sucesso_devolve_json(self):
        self.session.request.return_value = self._resposta(201, {'id': 'ped-1'})

        pedido = self.api.criar_pedido({'addressId': 'end-1'})

        self.assertEqual(pedido, {'id': 'ped-1'})
        self.session.request.assert_called_once_with(
            'POST', 'http://api.test/api/v1/orders', json={'addressId': 'end-1'}, timeout=30
        )

    def test_sem_resposta_vira_erro_de_rede(self):
        for excecao in (requests.exceptions.ConnectionError(), requests.exceptions.Timeout()):
            self.session.request.side_effect = excecao
            with self.assertRaises(ErroDeRedeError):
                self.api.status_pagamento('ped-1')

    def test_status_fora_de_2xx_vira_erro_de_servidor(self):
        corpo = {'message': 'Endereço inválido', 'code': 'ACESSO_NEGADO', 'details': []}
        self.session.request.return_value = self._resposta(403, corpo)

        with self.assertRaises(ErroServidorError) as ctx:
            self.api.criar_pedido({'addressId': 'end-2'})

        self.assertEqual(ctx.exception.status, 403)
        self.assertEqual(ctx.exception.payload, corpo)
        self.assertEqual(ctx.exception.message, 'Endereço inválido')

    def test_conflito_de_estoque_vira_erro_de_estoque_com_itens(self):
        self.session.request.return_value = self._resposta(409, CONFLITO_DE_ESTOQUE)

        with self.assertRaises(EstoqueInsuficienteError) as ctx:
            self.api.criar_pedido({'addressId': 'end-1'})

        item = ctx.exception.itens_indisponiveis[0]
        self.assertEqual(ctx.exception.message, 'Estoque insuficiente para Camiseta')
        self.assertEqual((item.produto_id, item.quantidade_solicitada, item.quantidade_disponivel), ('p1', 2, 1))

    def test_erro_sem_json(self):
        resposta = self._resposta(502)
        resposta.json.side_effect = ValueError('not json')
        self.session.request.return_value = resposta

        with self.assertRaises(ErroServidorError) as ctx:
            self.api.listar_enderecos()
        self.assertEqual(ctx.exception.message, 'Erro no servidor (HTTP 502).')

    def test_calcular_frete_envia_apenas_produto_e_quantidade(self):
        self.session.request.return_value = self._resposta(200, {'methods': []})
        self.api.calcular_frete([{'productId': 'p1', 'quantity': 2, 'size': 'M'}], '01310100', Decimal('100.00'))

        _, kwargs = self.session.request.call_args
        self.assertEqual(kwargs['json'], {
            'items': [{'productId': 'p1', 'quantity': 2}], 'zipCode': '01310100', 'cartTotal': '100.00'
        })


# ====================================================================
# ORQUESTRADOR
# ====================================================================

class TestOrquestradorPedido(unittest.TestCase):

    def setUp(self):
        self.api = Mock()
        self.api.validar_estoque.return_value = {'available': True, 'unavailableItems': []}
        self.api.calcular_frete.return_value = {'methods': [{'id': 'm1', 'name': 'PAC', 'cost': '15.00'}]}
        self.api.criar_pedido.return_value = {'id': 'ped-1', 'orderNumber': 'NSR-2026-0001'}
        self.sdk = Mock()
        self.sdk.criptografar.return_value = CartaoCriptografado('ENC==', 'MARIA SOUZA', CPF_VALIDO)
        self.orquestrador = OrquestradorPedido(self.api, sdk=self.sdk)

    def test_preparar_checkout_consulta_estoque_e_frete(self):
        preparacao = self.orquestrador.preparar_checkout([criar_item(quantidade=2)], '01310-100')

        self.assertEqual(preparacao.opcoes_frete[0]['id'], 'm1')
        self.api.validar_estoque.assert_called_once_with([{'productId': 'p1', 'quantity': 2, 'size': 'M'}])
        self.api.calcular_frete.assert_called_once_with(
            [{'productId': 'p1', 'quantity': 2, 'size': 'M'}], '01310100', Decimal('100.00')
        )

    def test_preparar_checkout_cep_invalido_nao_chama_api(self):
        with self.assertRaises(DadosInvalidosError):
            self.orquestrador.preparar_checkout([criar_item()], '0131')
        self.api.validar_estoque.assert_not_called()
        self.api.calcular_frete.assert_not_called()

    def test_preparar_checkout_estoque_indisponivel(self):
        self.api.validar_estoque.return_value = {
            'available': False,
            'unavailableItems': [{'productId': 'p1', 'productName': 'Camiseta',
                                  'requestedQuantity': 2, 'availableQuantity': 1}],
        }
        with self.assertRaises(EstoqueInsuficienteError) as ctx:
            self.orquestrador.preparar_checkout([criar_item(quantidade=2)], '01310100')
        self.assertEqual(ctx.exception.itens_indisponiveis[0].quantidade_disponivel, 1)

    def test_criar_pedido_cartao_envia_somente_dados_criptografados(self):
        self.orquestrador.criar_pedido('end-1', [criar_item()], 'm1', 'credit_card',
                                       dados_cartao=criar_dados_cartao(), cupom='BEMVINDO10')

        corpo = self.api.criar_pedido.call_args[0][0]
        self.assertEqual(corpo['creditCard'], {'encrypted': 'ENC==', 'holderName': 'MARIA SOUZA',
                                               'holderCpf': CPF_VALIDO})
        self.assertEqual(corpo['couponCode'], 'BEMVINDO10')
        self.assertNotIn('4539', str(corpo))

    def test_falha_de_criptografia_antes_do_backend(self):
        self.sdk.criptografar.side_effect = PagamentoFalhouError('Erro ao criptografar cartão: CVV inválido')
        with self.assertRaises(PagamentoFalhouError):
            self.orquestrador.criar_pedido('end-1', [criar_item()], 'm1', 'credit_card',
                                           dados_cartao=criar_dados_cartao())
        self.api.criar_pedido.assert_not_called()

    def test_cartao_obrigatorio_e_metodo_valido(self):
        with self.assertRaises(DadosInvalidosError):
            self.orquestrador.criar_pedido('end-1', [criar_item()], 'm1', 'credit_card')
        with self.assertRaises(DadosInvalidosError):
            self.orquestrador.criar_pedido('end-1', [criar_item()], 'm1', 'cheque')
        self.api.criar_pedido.assert_not_called()

    def test_pix_nao_criptografa(self):
        self.orquestrador.criar_pedido('end-1', [criar_item()], 'm1', 'pix')
        self.sdk.criptografar.assert_not_called()
        self.assertEqual(self.api.criar_pedido.call_args[0][0]['paymentMethod'], 'pix')

    def test_dados_do_comprador_seguem_para_a_api(self):
        self.orquestrador.criar_pedido('end-1', [criar_item()], 'm1', 'pix', nome_destinatario='Ana Souza',
                                       telefone_destinatario='11911112222', cpf_comprador=CPF_VALIDO)

        corpo = self.api.criar_pedido.call_args[0][0]
        self.assertEqual(corpo['receiverName'], 'Ana Souza')
        self.assertEqual(corpo['receiverPhone'], '11911112222')
        self.assertEqual(corpo['customerCpf'], CPF_VALIDO)

    def test_retentar_pagamento(self):
        self.orquestrador.retentar_pagamento('ped-1', 'boleto')
        self.api.retentar_pagamento.assert_called_once_with('ped-1', {'paymentMethod': 'boleto'})

    def test_monitorar_pix_ate_pagamento(self):
        self.api.status_pagamento.side_effect = [{'status': 'PENDING'}, {'status': 'PAID'}]
        expira = (agora_utc() + timedelta(minutes=15)).isoformat()
        pedido = {'id': 'ped-1', 'payment': {'status': 'PENDING', 'pixExpiresAt': expira}}

        monitor = self.orquestrador.monitorar_pix(pedido, intervalo=0)
        monitor._thread.join(5)

        self.assertEqual(monitor.status_final, 'PAID')
        self.api.status_pagamento.assert_called_with('ped-1')

    def test_monitorar_pix_sem_qr_code(self):
        self.assertIsNone(self.orquestrador.monitorar_pix({'id': 'ped-1', 'payment': {'status': 'PAID'}}))


# ====================================================================
# PIX
# ====================================================================

class TestMonitorPagamentoPix(unittest.TestCase):

    def setUp(self):
        self.expira = agora_utc() + timedelta(minutes=15)

    def test_para_quando_status_sai_de_pending(self):
        consultar = Mock(side_effect=[{'status': 'PENDING'}, {'status': 'FAILED'}])
        atualizacoes = []
        monitor = MonitorPagamentoPix(consultar, self.expira, intervalo=0, ao_atualizar=atualizacoes.append)

        self.assertEqual(monitor.executar(), 'FAILED')
        self.assertEqual(consultar.call_count, 2)
        self.assertEqual(len(atualizacoes), 2)

    def test_para_quando_qr_code_expira(self):
        consultar = Mock(return_value={'status': 'PENDING'})
        monitor = MonitorPagamentoPix(consultar, self.expira, intervalo=0,
                                      relogio=lambda: self.expira + timedelta(seconds=1))

        self.assertEqual(monitor.executar(), 'EXPIRED')
        consultar.assert_not_called()

    def test_erro_de_rede_continua_consultando(self):
        consultar = Mock(side_effect=[ErroDeRedeError(), {'status': 'PAID'}])
        monitor = MonitorPagamentoPix(consultar, self.expira, intervalo=0)
        self.assertEqual(monitor.executar(), 'PAID')

    def test_erro_5xx_continua_consultando(self):
        consultar = Mock(side_effect=[ErroServidorError(502, {}), {'status': 'PAID'}])
        monitor = MonitorPagamentoPix(consultar, self.expira, intervalo=0)

        self.assertEqual(monitor.executar(), 'PAID')
        self.assertEqual(consultar.call_count, 2)
        self.assertIsNone(monitor.erro)

    def test_erro_4xx_encerra_e_avisa(self):
        consultar = Mock(side_effect=[ErroServidorError(404, {}, 'Pedido não encontrado'), {'status': 'PAID'}])
        erros = []
        monitor = MonitorPagamentoPix(consultar, self.expira, intervalo=0, ao_erro=erros.append)

        self.assertIsNone(monitor.executar())
        self.assertEqual(consultar.call_count, 1)
        self.assertEqual(monitor.erro.status, 404)
        self.assertEqual(erros, [monitor.erro])

    def test_erro_5xx_nao_derruba_a_thread(self):
        consultar = Mock(side_effect=[ErroServidorError(503, {}), {'status': 'PAID'}])
        monitor = MonitorPagamentoPix(consultar, self.expira, intervalo=0)

        monitor.iniciar().join(timeout=5)

        self.assertEqual(monitor.status_final, 'PAID')

    def test_parar_interrompe_a_espera(self):
        monitor = MonitorPagamentoPix(Mock(return_value={'status': 'PENDING'}), self.expira, intervalo=30)
        thread = monitor.iniciar()
        monitor.parar()
        self.assertFalse(thread.is_alive())
        self.assertIsNone(monitor.status_final)

    def test_contagem_regressiva(self):
        agora = agora_utc()
        self.assertEqual(tempo_restante(agora + timedelta(minutes=14, seconds=5), agora), '14:05')
        self.assertEqual(tempo_restante(agora + timedelta(seconds=9), agora), '0:09')
        self.assertEqual(tempo_restante(agora, agora), 'Expirado')
        self.assertEqual(tempo_restante(agora - timedelta(minutes=1), agora), 'Expirado')


# ====================================================================
# MÁQUINA DE ESTADOS DO CHECKOUT
# ====================================================================

class TestMaquinaCheckout(unittest.TestCase):

    def setUp(self):
        self.orquestrador = Mock()
        self.orquestrador.criar_pedido.return_value = {'id': 'ped-1', 'status': 'PENDING'}
        self.maquina = MaquinaCheckout(self.orquestrador)

    def _ate_pagamento(self):
        self.maquina.definir_comprador(nome='Maria Souza', email='maria@example.com',
                                       cpf=CPF_VALIDO, telefone='11987654321')
        self.maquina.avancar()
        self.maquina.definir_destinatario(endereco_id='end-1', metodo_envio_id='m1')
        self.maquina.avancar()

    def test_fluxo_linear_ate_confirmacao(self):
        self._ate_pagamento()
        self.assertEqual(self.maquina.etapa, EtapaCheckout.PAGAMENTO)

        self.maquina.definir_pagamento(metodo='pix')
        pedido = self.maquina.finalizar([criar_item()])

        self.assertEqual(pedido['id'], 'ped-1')
        self.assertEqual(self.maquina.etapa, EtapaCheckout.CONFIRMACAO)
        kwargs = self.orquestrador.criar_pedido.call_args.kwargs
        self.assertEqual(kwargs['endereco_id'], 'end-1')
        self.assertEqual(kwargs['metodo_envio_id'], 'm1')
        self.assertEqual(kwargs['cpf_comprador'], CPF_VALIDO)
        self.assertEqual(kwargs['nome_destinatario'], 'Maria Souza')
        self.assertEqual(kwargs['telefone_destinatario'], '11987654321')

    def test_campos_obrigatorios_para_avancar(self):
        self.maquina.definir_comprador(nome='Maria Souza')
        with self.assertRaises(DadosInvalidosError) as ctx:
            self.maquina.avancar()
        self.assertEqual(ctx.exception.detalhes, ['email', 'cpf', 'telefone'])
        self.assertEqual(self.maquina.etapa, EtapaCheckout.COMPRADOR)

    def test_pagamento_exige_frete_selecionado(self):
        self.maquina.definir_comprador(nome='Maria', email='m@example.com', cpf=CPF_VALIDO, telefone='11987654321')
        self.maquina.avancar()
        self.maquina.definir_destinatario(endereco_id='end-1')
        with self.assertRaises(DadosInvalidosError) as ctx:
            self.maquina.avancar()
        self.assertIn('metodo_envio_id', ctx.exception.detalhes)

    def test_nao_pula_etapas_mas_volta(self):
        with self.assertRaises(StatusInvalidoError):
            self.maquina.ir_para(EtapaCheckout.PAGAMENTO)

        self._ate_pagamento()
        self.assertEqual(self.maquina.voltar(), EtapaCheckout.DESTINATARIO)
        self.assertEqual(self.maquina.ir_para(EtapaCheckout.COMPRADOR), EtapaCheckout.COMPRADOR)
        self.assertEqual(self.maquina.voltar(), EtapaCheckout.COMPRADOR)

    def test_confirmacao_e_terminal(self):
        self._ate_pagamento()
        self.maquina.definir_pagamento(metodo='boleto')
        self.maquina.finalizar([criar_item()])

        for acao in (self.maquina.voltar, self.maquina.avancar):
            with self.assertRaises(StatusInvalidoError):
                acao()
        with self.assertRaises(StatusInvalidoError):
            self.maquina.ir_para(EtapaCheckout.COMPRADOR)

    def test_erro_fica_no_painel_e_permite_nova_tentativa(self):
        self._ate_pagamento()
        self.maquina.definir_pagamento(metodo='pix')
        self.orquestrador.criar_pedido.side_effect = ErroServidorError(409, {}, 'Estoque insuficiente')

        self.assertIsNone(self.maquina.finalizar([criar_item()]))
        self.assertEqual(self.maquina.erro.tipo, 'ErroServidorError')
        self.assertEqual(self.maquina.erro.mensagem, 'Estoque insuficiente')
        self.assertEqual(self.maquina.etapa, EtapaCheckout.PAGAMENTO)

        self.orquestrador.criar_pedido.side_effect = None
        self.assertIsNotNone(self.maquina.finalizar([criar_item()]))
        self.assertIsNone(self.maquina.erro)

    def test_conflito_de_estoque_no_servidor_detalha_itens_no_painel(self):
        """Cenário: o estoque acabou entre a preparação e a criação do pedido."""
        session = Mock()
        session.headers = {}
        session.request.return_value = Mock(ok=False, status_code=409, content=b'{}',
                                            json=Mock(return_value=CONFLITO_DE_ESTOQUE))
        maquina = MaquinaCheckout(OrquestradorPedido(ClienteApi(base_url='http://api.test', session=session),
                                                     sdk=Mock()))
        maquina.definir_comprador(nome='Maria Souza', email='maria@example.com', cpf=CPF_VALIDO,
                                  telefone='11987654321')
        maquina.avancar()
        maquina.definir_destinatario(endereco_id='end-1', metodo_envio_id='m1')
        maquina.avancar()
        maquina.definir_pagamento(metodo='pix')

        self.assertIsNone(maquina.finalizar([criar_item()]))

        self.assertEqual(maquina.erro.tipo, 'EstoqueInsuficienteError')
        self.assertEqual(maquina.erro.codigo, 'ESTOQUE_INSUFICIENTE')
        self.assertEqual(maquina.erro.detalhes[0].quantidade_disponivel, 1)
        self.assertEqual(maquina.etapa, EtapaCheckout.PAGAMENTO)

    def test_metodo_de_pagamento_obrigatorio(self):
        self._ate_pagamento()
        self.maquina.finalizar([criar_item()])
        self.assertEqual(self.maquina.erro.codigo, 'DADOS_INVALIDOS')
        self.orquestrador.criar_pedido.assert_not_called()

    def test_cancelar_descarta_estado(self):
        self._ate_pagamento()
        self.maquina.cancelar()

        self.assertEqual(self.maquina.etapa, EtapaCheckout.COMPRADOR)
        self.assertEqual(self.maquina.comprador.nome, '')
        self.assertEqual(self.maquina.destinatario.endereco_id, '')
        self.orquestrador.criar_pedido.assert_not_called()
