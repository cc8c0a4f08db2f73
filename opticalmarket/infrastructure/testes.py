# opticalmarket/infrastructure/testes.py

import json
import os
import tempfile
import unittest
from decimal import Decimal
from unittest.mock import Mock

import requests
from django.test import TestCase

from opticalmarket.core.entities import (
    EstadoAutenticacao,
    EstadoCarrinho,
    EstadoSessaoCheckout,
    ItemCarrinho,
    MetodoPagamento,
    OpcaoFrete,
    Usuario,
)
from opticalmarket.core.exceptions import ErroApi, ErroDeRede, IntegracaoBlingError, TempoEsgotadoError
from opticalmarket.infrastructure.gateways import (
    BlingGatewayHttp,
    ClienteApi,
    EnderecoGatewayHttp,
    PagamentoGatewayHttp,
    PedidoGatewayHttp,
)
from opticalmarket.infrastructure.mappers import PedidoMapper, ResultadoPagamentoMapper
from opticalmarket.infrastructure.repositories import (
    ArmazenamentoArquivoJson,
    ArmazenamentoBancoDjango,
    ArmazenamentoMemoria,
    AutenticacaoRepository,
    CarrinhoRepository,
    SessaoCheckoutRepository,
    TravaSubmissao,
)


def resposta_http(status_code, corpo=None):
    """Monta um requests.Response real para exercitar raise_for_status."""
    response = requests.Response()
    response.status_code = status_code
    response._content = json.dumps(corpo).encode("utf-8") if corpo is not None else b""
    response.url = "http://api.test/recurso"
    return response


# ====================================================================
# 1. CLIENTE HTTP
# ====================================================================

class ClienteApiTestCase(unittest.TestCase):

    def setUp(self):
        self.http = Mock()
        self.cliente = ClienteApi(token="tok-123", base_url="http://api.test/", timeout=5, sessao_http=self.http)

    def test_envia_token_bearer_e_retorna_json(self):
        # ARRANGE
        self.http.request.return_value = resposta_http(201, {"id": "ped-1"})

        # ACT
        dados = self.cliente.post("/orders", {"addressId": "end-1"})

        # ASSERT
        self.assertEqual(dados, {"id": "ped-1"})
        args, kwargs = self.http.request.call_args
        self.assertEqual(args, ("POST", "http://api.test/orders"))
        self.assertEqual(kwargs["headers"]["Authorization"], "Bearer tok-123")
        self.assertEqual(kwargs["json"], {"addressId": "end-1"})
        self.assertEqual(kwargs["timeout"], 5)

    def test_sem_token_nao_envia_authorization(self):
        cliente = ClienteApi(base_url="http://api.test", timeout=5, sessao_http=self.http)
        self.http.request.return_value = resposta_http(200, [])

        cliente.get("/products")

        self.assertNotIn("Authorization", self.http.request.call_args[1]["headers"])

    def test_erro_http_usa_mensagem_do_backend(self):
        self.http.request.return_value = resposta_http(409, {"message": "Estoque insuficiente"})

        with self.assertRaises(ErroApi) as contexto:
            self.cliente.post("/orders", {})

        self.assertEqual(contexto.exception.status_code, 409)
        self.assertEqual(contexto.exception.message, "Estoque insuficiente")

    def test_resposta_2xx_sem_json_vira_erro_api(self):
        response = requests.Response()
        response.status_code = 200
        response._content = b"<html>manutencao</html>"
        self.http.request.return_value = response

        with self.assertRaises(ErroApi) as contexto:
            self.cliente.get("/products")

        self.assertIsNone(contexto.exception.status_code)
        self.assertEqual(contexto.exception.message, "Resposta inválida do servidor.")

    def test_erro_http_com_lista_de_mensagens(self):
        self.http.request.return_value = resposta_http(400, {"message": ["street inválido", "city inválido"]})

        with self.assertRaises(ErroApi) as contexto:
            self.cliente.post("/address", {})

        self.assertEqual(contexto.exception.message, "street inválido; city inválido")

    def test_timeout_vira_tempo_esgotado(self):
        self.http.request.side_effect = requests.exceptions.Timeout()

        with self.assertRaises(TempoEsgotadoError):
            self.cliente.get("/orders")

    def test_falha_de_conexao_vira_erro_de_rede(self):
        self.http.request.side_effect = requests.exceptions.ConnectionError()

        with self.assertRaises(ErroDeRede) as contexto:
            self.cliente.get("/orders")

        self.assertNotIsInstance(contexto.exception, TempoEsgotadoError)

    def test_resposta_vazia_retorna_none(self):
        self.http.request.return_value = resposta_http(204)

        self.assertIsNone(self.cliente.delete("/address/1"))


# ====================================================================
# 2. GATEWAYS
# ====================================================================

class GatewaysTestCase(unittest.TestCase):

    def setUp(self):
        self.cliente = Mock()

    def test_criar_pedido_envia_itens_sem_preco(self):
        # ARRANGE
        self.cliente.post.return_value = {"id": 7, "status": "PENDING", "total": "200.00", "items": []}
        itens = [{"productId": "p1", "quantity": 2}]

        # ACT
        pedido = PedidoGatewayHttp(self.cliente).criar_pedido("end-1", MetodoPagamento.PIX, itens)

        # ASSERT
        self.cliente.post.assert_called_once_with("/orders", {
            "addressId": "end-1",
            "paymentMethod": "PIX",
            "items": itens,
        })
        self.assertEqual(pedido.id, "7")
        self.assertEqual(pedido.total, Decimal("200.00"))

    def test_verificar_status_do_pagamento(self):
        self.cliente.get.return_value = {"paymentStatus": "APPROVED"}

        status = PagamentoGatewayHttp(self.cliente).verificar_status("ped-1")

        self.cliente.get.assert_called_once_with("/payment/ped-1/status")
        self.assertEqual(status, "APPROVED")

    def test_criar_pagamento_mapeia_artefatos_pix(self):
        self.cliente.post.return_value = {
            "paymentId": 99,
            "status": "pending",
            "pixQrCode": "00020126...",
            "ticketUrl": "https://pagamento.example.com/t/99",
        }

        resultado = PagamentoGatewayHttp(self.cliente).criar_pagamento("ped-1", MetodoPagamento.PIX, None)

        self.assertEqual(resultado.pagamento_id, "99")
        self.assertTrue(resultado.possui_artefato)
        self.assertEqual(resultado.url_redirecionamento, "https://pagamento.example.com/t/99")

    def test_listar_enderecos_com_resposta_invalida(self):
        self.cliente.get.return_value = {"message": "inesperado"}

        self.assertEqual(EnderecoGatewayHttp(self.cliente).listar(), [])

    def test_falha_no_bling_vira_erro_de_integracao(self):
        self.cliente.requisitar.side_effect = ErroApi("Unauthorized", status_code=401)

        with self.assertRaises(IntegracaoBlingError):
            BlingGatewayHttp(self.cliente).status()

    def test_status_bling(self):
        self.cliente.requisitar.return_value = {"configured": True, "connected": True}

        status = BlingGatewayHttp(self.cliente).status()

        self.assertTrue(status.disponivel)


class MappersTestCase(unittest.TestCase):

    def test_pedido_com_produto_aninhado(self):
        dados = {
            "id": "ped-1",
            "status": "PAID",
            "paymentStatus": "APPROVED",
            "paymentMethod": "PIX",
            "total": 150.5,
            "items": [{"product": {"id": "p1", "name": "Armação"}, "price": "75.25", "quantity": 2}],
            "address": {"id": 3, "street": "Rua A", "number": "1", "neighborhood": "B",
                        "city": "C", "state": "SP", "zipCode": "01000-000", "isDefault": True},
        }

        pedido = PedidoMapper.to_entity(dados)

        self.assertEqual(pedido.total, Decimal("150.5"))
        self.assertEqual(pedido.itens[0].product_id, "p1")
        self.assertEqual(pedido.itens[0].nome, "Armação")
        self.assertEqual(pedido.endereco.id, "3")
        self.assertTrue(pedido.endereco.padrao)

    def test_resultado_pagamento_sem_status(self):
        resultado = ResultadoPagamentoMapper.to_entity({})

        self.assertEqual(resultado.status, "PENDING")
        self.assertIsNone(resultado.pagamento_id)
        self.assertFalse(resultado.possui_artefato)


# ====================================================================
# 3. REPOSITÓRIOS E ARMAZENAMENTOS
# ====================================================================

class RepositoriosMemoriaTestCase(unittest.TestCase):

    def setUp(self):
        self.armazenamento = ArmazenamentoMemoria()

    def test_carrinho_preserva_precos_decimais(self):
        # ARRANGE
        repo = CarrinhoRepository(self.armazenamento, "cliente-1")
        estado = EstadoCarrinho(itens=[
            ItemCarrinho(product_id="p1", nome="Lente", preco=Decimal("19.90"), quantidade=3, estoque=5),
        ])

        # ACT
        repo.save(estado)
        carregado = repo.load()

        # ASSERT
        self.assertEqual(self.armazenamento.get("cart-storage:cliente-1")["items"][0]["price"], "19.90")
        self.assertEqual(carregado.itens[0].preco, Decimal("19.90"))
        self.assertEqual(carregado.itens[0].quantidade, 3)

    def test_carrinhos_de_clientes_diferentes_sao_isolados(self):
        CarrinhoRepository(self.armazenamento, "a").save(EstadoCarrinho(itens=[
            ItemCarrinho(product_id="p1", nome="Lente", preco=Decimal("1"), quantidade=1, estoque=1),
        ]))

        self.assertEqual(CarrinhoRepository(self.armazenamento, "b").load().itens, [])

    def test_carrinho_corrompido_e_descartado(self):
        self.armazenamento.set("cart-storage:cliente-1", {"items": [{"name": "sem productId"}]})

        estado = CarrinhoRepository(self.armazenamento, "cliente-1").load()

        self.assertEqual(estado.itens, [])

    def test_sessao_checkout_com_frete(self):
        repo = SessaoCheckoutRepository(self.armazenamento)
        repo.save(EstadoSessaoCheckout(
            endereco_id="end-1",
            frete=OpcaoFrete(nome="SEDEX", preco=Decimal("25.90"), prazo_dias=3),
        ))

        carregado = repo.load()

        self.assertEqual(carregado.endereco_id, "end-1")
        self.assertEqual(carregado.frete.preco, Decimal("25.90"))
        self.assertIsNone(carregado.pedido_pendente_id)

    def test_sessao_checkout_guarda_pedidos_aguardado_e_falho(self):
        repo = SessaoCheckoutRepository(self.armazenamento)
        repo.save(EstadoSessaoCheckout(endereco_id="end-1", pedido_aguardando_id="ped-2", pedido_falho_id="ped-1"))

        carregado = repo.load()

        self.assertEqual(self.armazenamento.get("checkout")["awaitingOrderId"], "ped-2")
        self.assertEqual(carregado.pedido_aguardando_id, "ped-2")
        self.assertEqual(carregado.pedido_falho_id, "ped-1")

    def test_sessao_checkout_delete(self):
        repo = SessaoCheckoutRepository(self.armazenamento)
        repo.save(EstadoSessaoCheckout(endereco_id="end-1", pedido_pendente_id="ped-1"))

        repo.delete()

        self.assertIsNone(repo.load().endereco_id)

    def test_autenticacao_persistida(self):
        repo = AutenticacaoRepository(self.armazenamento, "cliente-1")
        usuario = Usuario(id="u1", email="ana@example.com", nome="Ana", papel="SELLER")

        repo.save(EstadoAutenticacao(usuario=usuario, token="tok"))
        estado = repo.load()

        self.assertTrue(estado.autenticado)
        self.assertEqual(estado.usuario, usuario)
        self.assertEqual(self.armazenamento.get("auth-storage:cliente-1")["user"]["role"], "SELLER")


class ArmazenamentoArquivoJsonTestCase(unittest.TestCase):

    def setUp(self):
        self.diretorio = tempfile.TemporaryDirectory()
        self.armazenamento = ArmazenamentoArquivoJson(self.diretorio.name)

    def tearDown(self):
        self.diretorio.cleanup()

    def test_set_get_delete(self):
        self.armazenamento.set("cart-storage:abc", {"items": []})

        self.assertEqual(self.armazenamento.get("cart-storage:abc"), {"items": []})
        self.assertTrue(os.path.exists(os.path.join(self.diretorio.name, "cart-storage_abc.json")))

        self.armazenamento.delete("cart-storage:abc")
        self.assertIsNone(self.armazenamento.get("cart-storage:abc"))

    def test_delete_de_chave_inexistente(self):
        self.armazenamento.delete("nao-existe")

        self.assertIsNone(self.armazenamento.get("nao-existe"))

    def test_criar_nao_sobrescreve_chave_existente(self):
        self.assertTrue(self.armazenamento.criar("submissao:abc", {"expiraEm": 1}))
        self.assertFalse(self.armazenamento.criar("submissao:abc", {"expiraEm": 2}))

        self.assertEqual(self.armazenamento.get("submissao:abc"), {"expiraEm": 1})


class ArmazenamentoBancoDjangoTestCase(TestCase):

    def setUp(self):
        self.armazenamento = ArmazenamentoBancoDjango()

    def test_set_atualiza_registro_existente(self):
        # ARRANGE
        self.armazenamento.set("cart-storage:x", {"items": []})

        # ACT
        self.armazenamento.set("cart-storage:x", {"items": [{"productId": "p1"}]})

        # ASSERT
        self.assertEqual(self.armazenamento.EstadoModel.objects.count(), 1)
        self.assertEqual(self.armazenamento.get("cart-storage:x"), {"items": [{"productId": "p1"}]})

    def test_delete(self):
        self.armazenamento.set("auth-storage:x", {"token": "t"})

        self.armazenamento.delete("auth-storage:x")

        self.assertIsNone(self.armazenamento.get("auth-storage:x"))

    def test_criar_so_grava_uma_vez(self):
        self.assertTrue(self.armazenamento.criar("submissao:x", {"expiraEm": 10}))
        self.assertFalse(ArmazenamentoBancoDjango().criar("submissao:x", {"expiraEm": 20}))

        self.assertEqual(self.armazenamento.get("submissao:x"), {"expiraEm": 10})

    def test_trava_compartilhada_entre_instancias(self):
        """
        Cenário: duas submissões do mesmo comprador em workers diferentes.
        Cada worker monta sua trava, mas o registro no banco é o mesmo.
        """
        # ARRANGE
        trava_worker_1 = TravaSubmissao(ArmazenamentoBancoDjango(), "cliente-1", validade=60)
        trava_worker_2 = TravaSubmissao(ArmazenamentoBancoDjango(), "cliente-1", validade=60)

        # ACT & ASSERT
        self.assertTrue(trava_worker_1.acquire(blocking=False))
        self.assertFalse(trava_worker_2.acquire(blocking=False))
        trava_worker_1.release()
        self.assertTrue(trava_worker_2.acquire(blocking=False))
        trava_worker_2.release()


class TravaSubmissaoTestCase(unittest.TestCase):

    def setUp(self):
        self.armazenamento = ArmazenamentoMemoria()
        self.agora = 1000.0
        self.trava = self._trava()

    def _trava(self, cliente_id="cliente-1"):
        return TravaSubmissao(self.armazenamento, cliente_id, validade=30, relogio=lambda: self.agora)

    def test_segunda_aquisicao_falha_ate_liberar(self):
        outra = self._trava()

        self.assertTrue(self.trava.acquire(blocking=False))
        self.assertTrue(outra.locked())
        self.assertFalse(outra.acquire(blocking=False))

        self.trava.release()
        self.assertFalse(outra.locked())
        self.assertTrue(outra.acquire(blocking=False))

    def test_compradores_diferentes_nao_se_bloqueiam(self):
        self.assertTrue(self.trava.acquire(blocking=False))
        self.assertTrue(self._trava("cliente-2").acquire(blocking=False))

    def test_trava_expirada_pode_ser_assumida(self):
        # ARRANGE: worker que adquiriu e nunca liberou
        self.trava.acquire(blocking=False)
        self.agora += 31

        # ACT
        adquirida = self._trava().acquire(blocking=False)

        # ASSERT
        self.assertTrue(adquirida)
        self.assertEqual(self.armazenamento.get("submissao:cliente-1"), {"expiraEm": 1061.0})

    def test_liberar_sem_adquirir_falha(self):
        with self.assertRaises(RuntimeError):
            self.trava.release()
