# opticalmarket/presentation/testes.py

from unittest.mock import Mock, call, patch

from django.apps import apps
from django.test import TestCase
from rest_framework.test import APIClient

from opticalmarket.core.dependency_injection import ContainerDependencias
from opticalmarket.core.entities import EstadoAutenticacao, Usuario
from opticalmarket.core.exceptions import ErroApi
from opticalmarket.infrastructure.repositories import ArmazenamentoMemoria

PRODUTO = {"id": "p1", "name": "Armação Aviador", "price": "250.00", "stock": 2, "images": ["aviador.png"]}
PEDIDO = {"id": "ped-1", "status": "PENDING", "paymentMethod": "CREDIT_CARD", "total": "250.00", "items": []}


class StorefrontAPITestCase(TestCase):
    """
    Exercita as APIs com o container real sobre armazenamento em memória.
    Apenas o cliente HTTP do backend REST é simulado.
    """

    def setUp(self):
        self.api = Mock()
        self.api.get.return_value = PRODUTO
        self.respostas_post = {}
        self.api.post.side_effect = self._post
        self.container = ContainerDependencias(
            armazenamento=ArmazenamentoMemoria(),
            cliente_api_factory=lambda token=None: self.api,
        )
        patcher = patch.object(apps.get_app_config('presentation'), 'container', self.container)
        patcher.start()
        self.addCleanup(patcher.stop)
        self.client = APIClient()

    def _post(self, caminho, json=None):
        resposta = self.respostas_post[caminho]
        if isinstance(resposta, Exception):
            raise resposta
        return resposta

    def _adicionar_produto(self, quantidade=1):
        return self.client.post('/api/carrinho/', {'productId': 'p1', 'quantity': quantidade}, format='json')


class CarrinhoAPITestCase(StorefrontAPITestCase):

    def test_carrinho_vazio_e_cookie_de_cliente(self):
        # ACT
        response = self.client.get('/api/carrinho/')
        segunda = self.client.get('/api/carrinho/')

        # ASSERT
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {'items': [], 'total': '0.00', 'itemCount': 0})
        self.assertIn('om_cliente_id', response.cookies)
        self.assertNotIn('om_cliente_id', segunda.cookies)

    def test_adicionar_e_limitar_ao_estoque(self):
        # ACT
        primeira = self._adicionar_produto(1)
        segunda = self._adicionar_produto(5)

        # ASSERT
        self.assertEqual(primeira.status_code, 201)
        self.assertEqual(primeira.json()['resultado'], 'ADICIONADO')
        self.assertEqual(segunda.status_code, 200)
        self.assertEqual(segunda.json()['resultado'], 'LIMITADO')
        self.assertEqual(segunda.json()['carrinho']['itemCount'], 2)
        self.assertEqual(segunda.json()['carrinho']['total'], '500.00')
        self.api.get.assert_called_with('/products/p1')

    def test_atualizar_acima_do_estoque_e_rejeitado(self):
        self._adicionar_produto(1)

        response = self.client.patch('/api/carrinho/', {'productId': 'p1', 'quantity': 3}, format='json')

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['resultado'], 'REJEITADO')
        self.assertEqual(response.json()['carrinho']['itemCount'], 1)

    def test_remover_e_limpar(self):
        self._adicionar_produto(1)

        removido = self.client.delete('/api/carrinho/', {'productId': 'p1'}, format='json')
        limpo = self.client.delete('/api/carrinho/')

        self.assertEqual(removido.json()['resultado'], 'REMOVIDO')
        self.assertEqual(limpo.json()['resultado'], 'LIMPO')

    def test_visitantes_sem_cookie_nao_acumulam_estado_no_container(self):
        for _ in range(5):
            APIClient().get('/api/carrinho/')

        self.assertEqual(set(vars(self.container)), {'armazenamento', 'cliente_api_factory'})

    def test_carrinho_sobrevive_entre_requisicoes(self):
        self._adicionar_produto(2)

        response = self.client.get('/api/carrinho/')

        self.assertEqual(response.json()['itemCount'], 2)

    def test_produto_inexistente_no_backend(self):
        self.api.get.side_effect = ErroApi("Produto não encontrado", status_code=404)

        response = self._adicionar_produto(1)

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()['message'], "Produto não encontrado")


class CheckoutAPITestCase(StorefrontAPITestCase):

    def test_pagamento_com_carrinho_vazio_volta_ao_carrinho(self):
        response = self.client.post('/api/checkout/pagamento/', {'paymentMethod': 'PIX'}, format='json')

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['proxima_acao'], 'voltar_ao_carrinho')
        self.assertEqual(response.json()['redirecionar_para'], '/cart')
        self.api.post.assert_not_called()

    def test_pagamento_sem_endereco_volta_ao_endereco(self):
        self._adicionar_produto(1)

        response = self.client.get('/api/checkout/pagamento/')

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['redirecionar_para'], '/checkout')

    def test_metodo_de_pagamento_invalido(self):
        self._adicionar_produto(1)
        self.client.post('/api/checkout/endereco/', {'addressId': 'end-1'}, format='json')

        response = self.client.post('/api/checkout/pagamento/', {'paymentMethod': 'BOLETO'}, format='json')

        self.assertEqual(response.status_code, 400)
        self.assertIn('paymentMethod', response.json())
        self.api.post.assert_not_called()

    def test_fluxo_completo_com_cartao_aprovado(self):
        """
        Cenário: endereço -> pagamento aprovado. Carrinho e sessão são limpos.
        """
        # ARRANGE
        self._adicionar_produto(1)
        self.respostas_post = {
            '/orders': PEDIDO,
            '/payment/create': {'paymentId': 'pay-1', 'status': 'APPROVED'},
        }

        # ACT
        endereco = self.client.post('/api/checkout/endereco/', {'addressId': 'end-1'}, format='json')
        pagamento = self.client.post('/api/checkout/pagamento/', {'paymentMethod': 'CREDIT_CARD'}, format='json')

        # ASSERT
        self.assertEqual(endereco.status_code, 200)
        self.assertEqual(pagamento.status_code, 201)
        self.assertEqual(pagamento.json()['estado'], 'APROVADO')
        self.assertEqual(pagamento.json()['orderId'], 'ped-1')
        self.assertEqual(self.client.get('/api/carrinho/').json()['itemCount'], 0)
        self.assertIsNone(self.client.get('/api/checkout/').json()['addressId'])

    def test_falha_no_pagamento_preserva_carrinho_e_informa_pedido(self):
        # ARRANGE
        self._adicionar_produto(1)
        self.client.post('/api/checkout/endereco/', {'addressId': 'end-1'}, format='json')
        self.respostas_post = {
            '/orders': PEDIDO,
            '/payment/create': ErroApi("Gateway indisponível", status_code=500),
        }

        # ACT
        response = self.client.post('/api/checkout/pagamento/', {'paymentMethod': 'PIX'}, format='json')

        # ASSERT
        self.assertEqual(response.status_code, 424)
        self.assertEqual(response.json()['orderId'], 'ped-1')
        self.assertEqual(response.json()['proxima_acao'], 'retentar_pagamento')
        self.assertEqual(self.client.get('/api/carrinho/').json()['itemCount'], 1)
        sessao = self.client.get('/api/checkout/').json()
        self.assertEqual(sessao['addressId'], 'end-1')
        self.assertEqual(sessao['pendingOrderId'], 'ped-1')

    def test_pix_pendente_e_verificacao_manual(self):
        # ARRANGE
        self._adicionar_produto(1)
        self.client.post('/api/checkout/endereco/', {'addressId': 'end-1'}, format='json')
        self.respostas_post = {
            '/orders': PEDIDO,
            '/payment/create': {'paymentId': 'pay-1', 'status': 'PENDING', 'pixQrCode': '00020126...'},
        }
        pagamento = self.client.post('/api/checkout/pagamento/', {'paymentMethod': 'PIX'}, format='json')
        self.api.get.return_value = {'paymentStatus': 'PENDING'}

        # ACT
        verificacao = self.client.post('/api/checkout/confirmacao/ped-1/', {}, format='json')

        # ASSERT
        self.assertEqual(pagamento.json()['estado'], 'PENDENTE')
        self.assertEqual(pagamento.json()['payment']['pixQrCode'], '00020126...')
        self.assertEqual(verificacao.status_code, 200)
        self.assertFalse(verificacao.json()['confirmado'])
        self.assertEqual(verificacao.json()['estado'], 'PENDENTE')
        self.assertEqual(self.client.get('/api/carrinho/').json()['itemCount'], 1)
        self.api.get.assert_called_with('/payment/ped-1/status')

    def _pix_pendente(self):
        self._adicionar_produto(1)
        self.client.post('/api/checkout/endereco/', {'addressId': 'end-1'}, format='json')
        self.respostas_post = {
            '/orders': PEDIDO,
            '/payment/create': {'paymentId': 'pay-1', 'status': 'PENDING', 'pixQrCode': '00020126...'},
        }
        return self.client.post('/api/checkout/pagamento/', {'paymentMethod': 'PIX'}, format='json')

    def test_verificacao_do_pedido_aguardado_confirmada_limpa_carrinho(self):
        # ARRANGE
        self._pix_pendente()
        self.api.get.return_value = {'paymentStatus': 'APPROVED'}

        # ACT
        response = self.client.post('/api/checkout/confirmacao/ped-1/', {}, format='json')

        # ASSERT
        self.assertTrue(response.json()['confirmado'])
        self.assertEqual(response.json()['confirmationUrl'], '/checkout/confirmation?orderId=ped-1')
        self.assertEqual(self.client.get('/api/carrinho/').json()['itemCount'], 0)
        self.assertIsNone(self.client.get('/api/checkout/').json()['awaitingOrderId'])

    def test_pedido_antigo_aprovado_nao_limpa_carrinho_novo(self):
        """
        Cenário: carrinho novo com endereço escolhido; o comprador consulta um
        pedido antigo já pago. O status é informado sem tocar no checkout atual.
        """
        # ARRANGE
        self._adicionar_produto(2)
        self.client.post('/api/checkout/endereco/', {'addressId': 'end-1'}, format='json')
        self.api.get.return_value = {'paymentStatus': 'APPROVED'}

        # ACT
        response = self.client.post('/api/checkout/confirmacao/pedido-antigo/', {}, format='json')

        # ASSERT
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['estado'], 'APROVADO')
        self.assertEqual(self.client.get('/api/carrinho/').json()['itemCount'], 2)
        self.assertEqual(self.client.get('/api/checkout/').json()['addressId'], 'end-1')

    def test_pedido_recusado_nao_volta_a_ficar_pendente(self):
        # ARRANGE
        self._adicionar_produto(1)
        self.client.post('/api/checkout/endereco/', {'addressId': 'end-1'}, format='json')
        self.respostas_post = {
            '/orders': PEDIDO,
            '/payment/create': {'paymentId': 'pay-1', 'status': 'REJECTED'},
        }
        pagamento = self.client.post('/api/checkout/pagamento/', {'paymentMethod': 'CREDIT_CARD'}, format='json')
        self.api.get.return_value = {'paymentStatus': 'PENDING'}

        # ACT
        response = self.client.post('/api/checkout/confirmacao/ped-1/', {'automatico': True}, format='json')

        # ASSERT
        self.assertEqual(pagamento.status_code, 402)
        self.assertEqual(pagamento.json()['proxima_acao'], 'novo_pedido')
        self.assertEqual(response.json()['estado'], 'FALHOU')
        self.assertNotIn(call('/payment/ped-1/status'), self.api.get.call_args_list)

    def test_segundo_envio_com_pix_pendente_nao_cria_outro_pedido(self):
        # ARRANGE
        self._pix_pendente()

        # ACT
        response = self.client.post('/api/checkout/pagamento/', {'paymentMethod': 'PIX'}, format='json')

        # ASSERT
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()['proxima_acao'], 'confirmar_pagamento')
        self.assertEqual(response.json()['orderId'], 'ped-1')
        pedidos_criados = [c for c in self.api.post.call_args_list if c.args[0] == '/orders']
        self.assertEqual(len(pedidos_criados), 1)

    def test_cancelar_checkout_libera_novo_pedido(self):
        self._pix_pendente()

        self.client.delete('/api/checkout/')
        self.client.post('/api/checkout/endereco/', {'addressId': 'end-1'}, format='json')
        response = self.client.post('/api/checkout/pagamento/', {'paymentMethod': 'PIX'}, format='json')

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()['estado'], 'PENDENTE')

    def test_criar_endereco_invalido(self):
        self.api.get.return_value = []

        response = self.client.post('/api/enderecos/', {'street': 'Rua A', 'state': 'SPX'}, format='json')

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['proxima_acao'], 'corrigir_dados')
        self.assertIn('state', response.json()['errors'])
        self.api.post.assert_not_called()


class PedidosEIntegracoesAPITestCase(StorefrontAPITestCase):

    def _autenticar(self, papel):
        self.client.get('/api/carrinho/')
        cliente_id = self.client.cookies['om_cliente_id'].value
        usuario = Usuario(id='u1', email='u1@example.com', nome='Usuário', papel=papel)
        self.container.autenticacao_repo(cliente_id).save(EstadoAutenticacao(usuario=usuario, token='tok'))

    def test_cliente_nao_acessa_pedidos_do_vendedor(self):
        self._autenticar('CUSTOMER')

        response = self.client.get('/api/pedidos/vendedor/')

        self.assertEqual(response.status_code, 403)
        self.api.get.assert_not_called()

    def test_vendedor_atualiza_status(self):
        self._autenticar('SELLER')
        self.api.patch.return_value = dict(PEDIDO, status='SHIPPED')

        response = self.client.patch('/api/pedidos/ped-1/status/', {'status': 'shipped'}, format='json')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['status'], 'SHIPPED')
        self.api.patch.assert_called_once_with('/orders/ped-1/status', {'status': 'SHIPPED'})

    def test_conectar_bling(self):
        url = 'https://www.bling.com.br/Api/v3/oauth/authorize?client_id=abc&state=xyz'

        response = self.client.post('/api/bling/conectar/', {'invitationUrl': url, 'clientSecret': 's3cr3t'}, format='json')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['authorizationUrl'], url)
        self.api.requisitar.assert_called_once_with('POST', '/bling/credentials', json={
            'clientId': 'abc',
            'clientSecret': 's3cr3t',
            'state': 'xyz',
        })

    def test_cadastro_invalido_nao_chama_backend(self):
        response = self.client.post('/api/auth/cadastro/', {'name': '', 'email': 'x', 'password': '1'}, format='json')

        self.assertEqual(response.status_code, 400)
        self.assertIn('email', response.json()['errors'])
        self.api.post.assert_not_called()

    def test_logout(self):
        self._autenticar('CUSTOMER')

        response = self.client.post('/api/auth/logout/')
        usuario = self.client.get('/api/auth/usuario/').json()

        self.assertEqual(response.status_code, 204)
        self.assertFalse(usuario['authenticated'])
