# opticalmarket/core/testes.py

import random
import threading
import unittest
from decimal import Decimal
from unittest.mock import Mock

from opticalmarket.core.carrinho import CarrinhoStore
from opticalmarket.core.confirmacao import ConfirmacaoPagamento
from opticalmarket.core.entities import (
    Endereco,
    EstadoAutenticacao,
    EstadoCarrinho,
    EstadoConfirmacao,
    EstadoSessaoCheckout,
    MetodoPagamento,
    OpcaoFrete,
    Pedido,
    Produto,
    ResultadoOperacao,
    ResultadoPagamento,
    StatusBling,
    Usuario,
)
from opticalmarket.core.exceptions import (
    CarrinhoVazioError,
    CriacaoPagamentoFalhouError,
    CriacaoPedidoFalhouError,
    DadosInvalidosError,
    EnderecoAusenteError,
    ErroApi,
    ErroDeRede,
    FreteAusenteError,
    IntegracaoBlingError,
    PagamentoAguardandoConfirmacaoError,
    PagamentoNaoAprovadoError,
    PedidoNaoEncontradoError,
    PermissaoNegadaError,
    StatusInvalidoError,
    SubmissaoEmAndamentoError,
)
from opticalmarket.core.sessao_checkout import SessaoCheckout
from opticalmarket.core.use_cases import (
    AdicionarAoCarrinhoUseCase,
    AutenticacaoUseCase,
    GerenciarEnderecosUseCase,
    GerenciarPedidosUseCase,
    IntegracaoBlingUseCase,
    SubmeterPedidoUseCase,
    validar_endereco,
)


# Repositórios em memória usados no lugar da Infraestrutura

class CarrinhoRepositoryFake:

    def __init__(self, estado=None):
        self.estado = estado or EstadoCarrinho()
        self.saves = 0

    def load(self):
        return EstadoCarrinho(itens=list(self.estado.itens))

    def save(self, estado):
        self.saves += 1
        self.estado = estado


class SessaoRepositoryFake:

    def __init__(self):
        self.estado = EstadoSessaoCheckout()

    def load(self):
        return self.estado

    def save(self, estado):
        self.estado = estado

    def delete(self):
        self.estado = EstadoSessaoCheckout()


def novo_carrinho(*itens):
    carrinho = CarrinhoStore(CarrinhoRepositoryFake())
    for product_id, quantidade in itens:
        carrinho.add_item(product_id, f"Óculos {product_id}", Decimal("100.00"), None, estoque=10, quantidade=quantidade)
    return carrinho


# ====================================================================
# 1. CARRINHO
# ====================================================================

class TestCarrinhoStore(unittest.TestCase):

    def setUp(self):
        self.repo = CarrinhoRepositoryFake()
        self.carrinho = CarrinhoStore(self.repo)

    def test_adicionar_item_novo(self):
        # ACT
        resultado = self.carrinho.add_item("p1", "Armação Aviador", Decimal("100.00"), "img.png", estoque=10, quantidade=2)

        # ASSERT
        self.assertEqual(resultado, ResultadoOperacao.ADICIONADO)
        self.assertEqual(self.carrinho.get_item_count(), 2)
        self.assertEqual(self.carrinho.get_total(), Decimal("200.00"))
        self.assertEqual(self.repo.saves, 1)

    def test_adicionar_acima_do_estoque_limita_quantidade(self):
        """
        Cenário: estoque 5, adiciona 2 e depois 5. A linha fica com 5 (teto do estoque).
        """
        # ARRANGE
        self.carrinho.add_item("p1", "Lente", Decimal("50.00"), None, estoque=5, quantidade=2)

        # ACT
        resultado = self.carrinho.add_item("p1", "Lente", Decimal("50.00"), None, estoque=5, quantidade=5)

        # ASSERT
        self.assertEqual(resultado, ResultadoOperacao.LIMITADO)
        self.assertEqual(self.carrinho.get_item("p1").quantidade, 5)
        self.assertEqual(len(self.carrinho.get_itens()), 1)

    def test_adicionar_produto_sem_estoque_e_rejeitado(self):
        resultado = self.carrinho.add_item("p1", "Lente", Decimal("50.00"), None, estoque=0)

        self.assertEqual(resultado, ResultadoOperacao.REJEITADO)
        self.assertTrue(self.carrinho.is_empty())
        self.assertEqual(self.repo.saves, 0)

    def test_adicionar_quantidade_zero_e_rejeitado(self):
        resultado = self.carrinho.add_item("p1", "Lente", Decimal("50.00"), None, estoque=3, quantidade=0)

        self.assertEqual(resultado, ResultadoOperacao.REJEITADO)
        self.assertTrue(self.carrinho.is_empty())

    def test_preco_negativo_falha(self):
        with self.assertRaises(DadosInvalidosError):
            self.carrinho.add_item("p1", "Lente", Decimal("-1.00"), None, estoque=3)

    def test_mesclar_linha_mantem_nome_e_preco_e_atualiza_estoque(self):
        # ARRANGE
        self.carrinho.add_item("p1", "Nome Original", Decimal("100.00"), None, estoque=10)

        # ACT
        resultado = self.carrinho.add_item("p1", "Nome Novo", Decimal("150.00"), None, estoque=3)

        # ASSERT
        item = self.carrinho.get_item("p1")
        self.assertEqual(resultado, ResultadoOperacao.ATUALIZADO)
        self.assertEqual(item.quantidade, 2)
        self.assertEqual(item.nome, "Nome Original")
        self.assertEqual(item.preco, Decimal("100.00"))
        self.assertEqual(item.estoque, 3)

    def test_atualizar_quantidade_acima_do_estoque_nao_altera(self):
        self.carrinho.add_item("p1", "Lente", Decimal("50.00"), None, estoque=4, quantidade=2)

        resultado = self.carrinho.update_quantity("p1", 5)

        self.assertEqual(resultado, ResultadoOperacao.REJEITADO)
        self.assertEqual(self.carrinho.get_item("p1").quantidade, 2)

    def test_atualizar_quantidade_rejeita_aceita_e_remove(self):
        """
        Cenário: linha A com preço 10.00, quantidade 2 e estoque 5.
        """
        # ARRANGE
        self.carrinho.add_item("A", "Lente A", Decimal("10.00"), None, estoque=5, quantidade=2)

        # ACT & ASSERT
        self.assertEqual(self.carrinho.update_quantity("A", 6), ResultadoOperacao.REJEITADO)
        self.assertEqual(self.carrinho.get_item("A").quantidade, 2)

        self.assertEqual(self.carrinho.update_quantity("A", 5), ResultadoOperacao.ATUALIZADO)
        self.assertEqual(self.carrinho.get_item("A").quantidade, 5)

        self.assertEqual(self.carrinho.update_quantity("A", 0), ResultadoOperacao.REMOVIDO)
        self.assertTrue(self.carrinho.is_empty())

    def test_sequencias_de_operacoes_respeitam_o_estoque(self):
        aleatorio = random.Random(42)
        estoques = {"p1": 1, "p2": 3, "p3": 7}

        for _ in range(300):
            product_id = aleatorio.choice(list(estoques))
            quantidade = aleatorio.randint(-2, 9)
            if aleatorio.random() < 0.5:
                self.carrinho.add_item(product_id, "X", Decimal("3.33"), None, estoques[product_id], quantidade)
            else:
                self.carrinho.update_quantity(product_id, quantidade)

            itens = self.carrinho.get_itens()
            self.assertEqual(len({item.product_id for item in itens}), len(itens))
            for item in itens:
                self.assertTrue(1 <= item.quantidade <= item.estoque)
            self.assertEqual(
                self.carrinho.get_total(),
                sum((item.preco * item.quantidade for item in itens), Decimal("0")),
            )

    def test_atualizar_quantidade_dentro_do_estoque(self):
        self.carrinho.add_item("p1", "Lente", Decimal("50.00"), None, estoque=4)

        resultado = self.carrinho.update_quantity("p1", 4)

        self.assertEqual(resultado, ResultadoOperacao.ATUALIZADO)
        self.assertEqual(self.carrinho.get_total(), Decimal("200.00"))

    def test_atualizar_para_zero_remove_a_linha(self):
        self.carrinho.add_item("p1", "Lente", Decimal("50.00"), None, estoque=4)

        resultado = self.carrinho.update_quantity("p1", 0)

        self.assertEqual(resultado, ResultadoOperacao.REMOVIDO)
        self.assertIsNone(self.carrinho.get_item("p1"))

    def test_atualizar_produto_ausente_e_inalterado(self):
        self.assertEqual(self.carrinho.update_quantity("nao-existe", 2), ResultadoOperacao.INALTERADO)

    def test_remover_produto_ausente_nao_persiste(self):
        resultado = self.carrinho.remove_item("nao-existe")

        self.assertEqual(resultado, ResultadoOperacao.INALTERADO)
        self.assertEqual(self.repo.saves, 0)

    def test_limpar_carrinho(self):
        self.carrinho.add_item("p1", "Lente", Decimal("50.00"), None, estoque=4)
        self.carrinho.add_item("p2", "Estojo", Decimal("15.00"), None, estoque=4)

        resultado = self.carrinho.clear_cart()

        self.assertEqual(resultado, ResultadoOperacao.LIMPO)
        self.assertTrue(self.carrinho.is_empty())
        self.assertEqual(self.carrinho.get_total(), Decimal("0"))
        self.assertEqual(self.carrinho.get_item_count(), 0)

    def test_total_decimal_sem_erro_de_arredondamento(self):
        self.carrinho.add_item("p1", "Lente", Decimal("19.90"), None, estoque=10, quantidade=3)
        self.carrinho.add_item("p2", "Flanela", Decimal("5.05"), None, estoque=10)

        self.assertEqual(self.carrinho.get_total(), Decimal("64.75"))
        self.assertEqual(self.carrinho.get_item_count(), 4)

    def test_estado_persistido_e_recarregado(self):
        """
        Cenário: um novo store sobre o mesmo repositório enxerga o carrinho salvo.
        """
        self.carrinho.add_item("p1", "Lente", Decimal("50.00"), None, estoque=4, quantidade=3)

        recarregado = CarrinhoStore(self.repo)

        self.assertEqual(recarregado.get_item("p1").quantidade, 3)
        self.assertEqual(recarregado.get_total(), Decimal("150.00"))

    def test_observadores_sao_notificados_ate_cancelar(self):
        # ARRANGE
        observador = Mock()
        cancelar = self.carrinho.inscrever(observador)

        # ACT
        self.carrinho.add_item("p1", "Lente", Decimal("50.00"), None, estoque=4)
        cancelar()
        self.carrinho.clear_cart()

        # ASSERT
        observador.assert_called_once()
        estado = observador.call_args[0][0]
        self.assertEqual(estado.itens[0].product_id, "p1")

    def test_snapshot_nao_compartilha_itens(self):
        self.carrinho.add_item("p1", "Lente", Decimal("50.00"), None, estoque=4)

        itens = self.carrinho.get_itens()
        itens[0].quantidade = 99

        self.assertEqual(self.carrinho.get_item("p1").quantidade, 1)


# ====================================================================
# 2. SESSÃO DE CHECKOUT
# ====================================================================

class TestSessaoCheckout(unittest.TestCase):

    def setUp(self):
        self.sessao = SessaoCheckout(SessaoRepositoryFake())

    def test_exigir_endereco_sem_endereco_falha(self):
        with self.assertRaises(EnderecoAusenteError) as contexto:
            self.sessao.exigir_endereco()
        self.assertEqual(contexto.exception.redirecionar_para, "/checkout")

    def test_endereco_e_frete_gravados(self):
        frete = OpcaoFrete(nome="SEDEX", preco=Decimal("25.90"), prazo_dias=3)

        self.sessao.set_address("end-1")
        self.sessao.set_shipping(frete)

        self.assertEqual(self.sessao.exigir_endereco(), "end-1")
        self.assertEqual(self.sessao.exigir_frete(), frete)

    def test_exigir_frete_sem_frete_falha(self):
        self.sessao.set_address("end-1")

        with self.assertRaises(FreteAusenteError):
            self.sessao.exigir_frete()

    def test_clear_apaga_todo_o_estado(self):
        self.sessao.set_address("end-1")
        self.sessao.set_pedido_pendente("ped-1")

        self.sessao.clear()

        self.assertIsNone(self.sessao.get_address())
        self.assertIsNone(self.sessao.get_pedido_pendente())


# ====================================================================
# 3. CONFIRMAÇÃO DE PAGAMENTO
# ====================================================================

class TestConfirmacaoPagamento(unittest.TestCase):

    def setUp(self):
        self.pagamento_gateway = Mock()
        self.carrinho = Mock()
        self.sessao = Mock()
        self.confirmacao = ConfirmacaoPagamento(self.pagamento_gateway, self.carrinho, self.sessao)
        self.pix = ResultadoPagamento(pagamento_id="pay-1", status="PENDING", pix_qr_code="00020126...")

    def test_pix_com_qr_code_fica_pendente_sem_limpar_carrinho(self):
        estado = self.confirmacao.iniciar("ped-1", MetodoPagamento.PIX, self.pix)

        self.assertEqual(estado, EstadoConfirmacao.PENDENTE)
        self.carrinho.clear_cart.assert_not_called()
        self.sessao.clear.assert_not_called()
        self.assertIsNone(self.confirmacao.url_confirmacao)

    def test_pix_sem_artefato_falha(self):
        resultado = ResultadoPagamento(pagamento_id="pay-1", status="PENDING")

        estado = self.confirmacao.iniciar("ped-1", MetodoPagamento.PIX, resultado)

        self.assertEqual(estado, EstadoConfirmacao.FALHOU)

    def test_pendente_depois_aprovado_limpa_carrinho_e_sessao(self):
        """
        Cenário: "Já paguei" antes da confirmação e depois de confirmado.
        """
        # ARRANGE
        self.confirmacao.iniciar("ped-1", MetodoPagamento.PIX, self.pix)
        self.pagamento_gateway.verificar_status.side_effect = ["PENDING", "APPROVED"]

        # ACT
        primeira = self.confirmacao.verificar_status()
        segunda = self.confirmacao.verificar_status()

        # ASSERT
        self.assertFalse(primeira.confirmado)
        self.assertEqual(primeira.estado, EstadoConfirmacao.PENDENTE)
        self.assertTrue(segunda.confirmado)
        self.assertEqual(segunda.url_confirmacao, "/checkout/confirmation?orderId=ped-1")
        self.carrinho.clear_cart.assert_called_once()
        self.sessao.clear.assert_called_once()

    def test_status_cancelado_durante_verificacao_falha(self):
        self.confirmacao.iniciar("ped-1", MetodoPagamento.PIX, self.pix)
        self.pagamento_gateway.verificar_status.return_value = "CANCELLED"

        resultado = self.confirmacao.verificar_status()

        self.assertEqual(resultado.estado, EstadoConfirmacao.FALHOU)
        self.carrinho.clear_cart.assert_not_called()

    def test_estado_terminal_nao_consulta_backend(self):
        aprovado = ResultadoPagamento(pagamento_id="pay-2", status="APPROVED")
        self.confirmacao.iniciar("ped-1", MetodoPagamento.CREDIT_CARD, aprovado)

        resultado = self.confirmacao.verificar_status()

        self.assertTrue(resultado.confirmado)
        self.pagamento_gateway.verificar_status.assert_not_called()

    def test_cartao_recusado_falha(self):
        recusado = ResultadoPagamento(pagamento_id="pay-2", status="REJECTED")

        estado = self.confirmacao.iniciar("ped-1", MetodoPagamento.CREDIT_CARD, recusado)

        self.assertEqual(estado, EstadoConfirmacao.FALHOU)
        self.carrinho.clear_cart.assert_not_called()

    def test_verificar_sem_pedido_falha(self):
        with self.assertRaises(PedidoNaoEncontradoError):
            self.confirmacao.verificar_status()

    def test_polling_conta_falha_de_rede_como_tentativa(self):
        # ARRANGE
        self.confirmacao.retomar("ped-1")
        self.pagamento_gateway.verificar_status.side_effect = [ErroDeRede(), "PENDING", "PAID"]
        dormir = Mock()

        # ACT
        resultado = self.confirmacao.aguardar_confirmacao(intervalo=2, max_tentativas=5, dormir=dormir)

        # ASSERT
        self.assertTrue(resultado.confirmado)
        self.assertEqual(self.pagamento_gateway.verificar_status.call_count, 3)
        self.assertEqual(dormir.call_count, 2)
        dormir.assert_called_with(2)

    def test_polling_limitado_pelo_maximo_de_tentativas(self):
        self.confirmacao.retomar("ped-1")
        self.pagamento_gateway.verificar_status.return_value = "PENDING"
        dormir = Mock()

        resultado = self.confirmacao.aguardar_confirmacao(intervalo=1, max_tentativas=3, dormir=dormir)

        self.assertEqual(resultado.estado, EstadoConfirmacao.PENDENTE)
        self.assertEqual(self.pagamento_gateway.verificar_status.call_count, 3)
        self.assertEqual(dormir.call_count, 2)

    def test_observador_recebe_transicoes(self):
        observador = Mock()
        self.confirmacao.inscrever(observador)

        self.confirmacao.iniciar("ped-1", MetodoPagamento.PIX, self.pix)

        observador.assert_called_once_with(EstadoConfirmacao.PENDENTE)


class TestConfirmacaoVinculadaAoCheckout(unittest.TestCase):
    """Confirmação com sessão real: só o pedido aguardado pelo checkout mexe no estado do comprador."""

    def setUp(self):
        self.pagamento_gateway = Mock()
        self.carrinho = novo_carrinho(("p1", 2))
        self.sessao = SessaoCheckout(SessaoRepositoryFake())
        self.sessao.set_address("end-1")
        self.pix = ResultadoPagamento(pagamento_id="pay-1", status="PENDING", pix_qr_code="00020126...")

    def _confirmacao(self):
        return ConfirmacaoPagamento(self.pagamento_gateway, self.carrinho, self.sessao)

    def test_pix_pendente_guarda_pedido_aguardado(self):
        self._confirmacao().iniciar("ped-1", MetodoPagamento.PIX, self.pix)

        self.assertEqual(self.sessao.get_pedido_aguardando(), "ped-1")

    def test_retomar_pedido_aguardado_aprovado_limpa_carrinho_e_sessao(self):
        # ARRANGE
        self._confirmacao().iniciar("ped-1", MetodoPagamento.PIX, self.pix)
        self.pagamento_gateway.verificar_status.return_value = "APPROVED"
        confirmacao = self._confirmacao()

        # ACT
        confirmacao.retomar("ped-1")
        resultado = confirmacao.verificar_status()

        # ASSERT
        self.assertTrue(resultado.confirmado)
        self.assertTrue(self.carrinho.is_empty())
        self.assertIsNone(self.sessao.get_address())
        self.assertIsNone(self.sessao.get_pedido_aguardando())

    def test_pedido_antigo_aprovado_nao_altera_carrinho_nem_sessao(self):
        """
        Cenário: o comprador consulta um pedido já pago do histórico enquanto
        monta um novo carrinho. O status é informado, o carrinho fica intacto.
        """
        # ARRANGE
        self.pagamento_gateway.verificar_status.return_value = "APPROVED"
        confirmacao = self._confirmacao()

        # ACT
        confirmacao.retomar("pedido-antigo")
        resultado = confirmacao.verificar_status()

        # ASSERT
        self.assertTrue(resultado.confirmado)
        self.assertEqual(self.carrinho.get_item_count(), 2)
        self.assertEqual(self.sessao.get_address(), "end-1")

    def test_pedido_falho_nao_volta_a_ficar_pendente(self):
        # ARRANGE: cartão recusado na criação do pagamento
        recusado = ResultadoPagamento(pagamento_id="pay-2", status="REJECTED")
        self._confirmacao().iniciar("ped-1", MetodoPagamento.CREDIT_CARD, recusado)
        self.pagamento_gateway.verificar_status.return_value = "PENDING"
        confirmacao = self._confirmacao()

        # ACT
        estado = confirmacao.retomar("ped-1")
        resultado = confirmacao.aguardar_confirmacao(intervalo=1, max_tentativas=3, dormir=Mock())

        # ASSERT
        self.assertEqual(self.sessao.get_pedido_falho(), "ped-1")
        self.assertEqual(estado, EstadoConfirmacao.FALHOU)
        self.assertEqual(resultado.estado, EstadoConfirmacao.FALHOU)
        self.pagamento_gateway.verificar_status.assert_not_called()

    def test_cancelamento_durante_espera_libera_pedido_aguardado(self):
        confirmacao = self._confirmacao()
        confirmacao.iniciar("ped-1", MetodoPagamento.PIX, self.pix)
        self.pagamento_gateway.verificar_status.return_value = "CANCELLED"

        confirmacao.verificar_status()

        self.assertIsNone(self.sessao.get_pedido_aguardando())
        self.assertEqual(self.sessao.get_pedido_falho(), "ped-1")
        self.assertEqual(self.carrinho.get_item_count(), 2)


# ====================================================================
# 4. SUBMISSÃO DE PEDIDO
# ====================================================================

class TestSubmeterPedidoUseCase(unittest.TestCase):

    def setUp(self):
        """
        Carrinho e sessão reais (em memória); backend simulado com Mock.
        """
        self.pedido_gateway = Mock()
        self.pagamento_gateway = Mock()
        self.carrinho = novo_carrinho(("p1", 2))
        self.sessao = SessaoCheckout(SessaoRepositoryFake())
        self.sessao.set_address("end-1")
        self.confirmacao = ConfirmacaoPagamento(self.pagamento_gateway, self.carrinho, self.sessao)
        self.trava = threading.Lock()
        self.use_case = SubmeterPedidoUseCase(
            pedido_gateway=self.pedido_gateway,
            pagamento_gateway=self.pagamento_gateway,
            sessao=self.sessao,
            confirmacao=self.confirmacao,
            trava=self.trava,
        )
        self.pedido_gateway.criar_pedido.return_value = Pedido(
            id="ped-1",
            status="PENDING",
            status_pagamento=None,
            metodo_pagamento="CREDIT_CARD",
            total=Decimal("200.00"),
        )

    def test_carrinho_vazio_falha_sem_chamar_backend(self):
        # ARRANGE
        self.carrinho.clear_cart()

        # ACT & ASSERT
        with self.assertRaises(CarrinhoVazioError):
            self.use_case.executar(self.carrinho, "end-1", "PIX")
        self.pedido_gateway.criar_pedido.assert_not_called()
        self.pagamento_gateway.criar_pagamento.assert_not_called()

    def test_sem_endereco_falha_sem_chamar_backend(self):
        with self.assertRaises(EnderecoAusenteError):
            self.use_case.executar(self.carrinho, None, "PIX")
        self.pedido_gateway.criar_pedido.assert_not_called()

    def test_metodo_invalido_falha(self):
        with self.assertRaises(DadosInvalidosError) as contexto:
            self.use_case.executar(self.carrinho, "end-1", "BOLETO")
        self.assertIn("paymentMethod", contexto.exception.erros)
        self.pedido_gateway.criar_pedido.assert_not_called()

    def test_cartao_aprovado_limpa_carrinho_e_sessao(self):
        # ARRANGE
        self.pagamento_gateway.criar_pagamento.return_value = ResultadoPagamento(pagamento_id="pay-1", status="APPROVED")

        # ACT
        resultado = self.use_case.executar(self.carrinho, "end-1", "CREDIT_CARD", "comprador@example.com")

        # ASSERT
        self.assertEqual(resultado.estado, EstadoConfirmacao.APROVADO)
        self.assertEqual(resultado.pedido_id, "ped-1")
        self.pedido_gateway.criar_pedido.assert_called_once_with(
            "end-1", MetodoPagamento.CREDIT_CARD, [{"productId": "p1", "quantity": 2}]
        )
        self.pagamento_gateway.criar_pagamento.assert_called_once_with(
            "ped-1", MetodoPagamento.CREDIT_CARD, "comprador@example.com"
        )
        self.assertTrue(self.carrinho.is_empty())
        self.assertIsNone(self.sessao.get_address())
        self.assertFalse(self.trava.locked())

    def test_pix_pendente_mantem_carrinho_ate_confirmacao(self):
        self.pagamento_gateway.criar_pagamento.return_value = ResultadoPagamento(
            pagamento_id="pay-1",
            status="PENDING",
            pix_qr_code="00020126...",
            ticket_url="https://pagamento.example.com/ticket/1",
        )

        resultado = self.use_case.executar(self.carrinho, "end-1", "pix")

        self.assertEqual(resultado.estado, EstadoConfirmacao.PENDENTE)
        self.assertEqual(resultado.url_redirecionamento, "https://pagamento.example.com/ticket/1")
        self.assertFalse(self.carrinho.is_empty())
        self.assertEqual(self.sessao.get_address(), "end-1")
        self.assertEqual(self.sessao.get_pedido_aguardando(), "ped-1")

    def test_pix_pendente_bloqueia_novo_pedido_do_mesmo_checkout(self):
        """
        Cenário: o PIX foi emitido e o comprador envia o pagamento de novo.
        Nenhum segundo pedido é criado para o mesmo carrinho.
        """
        # ARRANGE
        self.pagamento_gateway.criar_pagamento.return_value = ResultadoPagamento(
            pagamento_id="pay-1", status="PENDING", pix_qr_code="00020126..."
        )
        self.use_case.executar(self.carrinho, "end-1", "PIX")

        # ACT
        with self.assertRaises(PagamentoAguardandoConfirmacaoError) as contexto:
            self.use_case.executar(self.carrinho, "end-1", "PIX")

        # ASSERT
        self.assertEqual(contexto.exception.pedido_id, "ped-1")
        self.pedido_gateway.criar_pedido.assert_called_once()
        self.assertFalse(self.trava.locked())

    def test_cancelar_checkout_libera_novo_pedido(self):
        self.pagamento_gateway.criar_pagamento.return_value = ResultadoPagamento(
            pagamento_id="pay-1", status="PENDING", pix_qr_code="00020126..."
        )
        self.use_case.executar(self.carrinho, "end-1", "PIX")

        self.sessao.clear()
        self.sessao.set_address("end-1")
        resultado = self.use_case.executar(self.carrinho, "end-1", "PIX")

        self.assertEqual(resultado.estado, EstadoConfirmacao.PENDENTE)
        self.assertEqual(self.pedido_gateway.criar_pedido.call_count, 2)

    def test_falha_no_pagamento_preserva_carrinho_sessao_e_pedido(self):
        """
        Cenário: o pedido é criado mas o pagamento falha. Nada é limpo
        e o ID do pedido é devolvido para nova tentativa.
        """
        # ARRANGE
        self.pagamento_gateway.criar_pagamento.side_effect = ErroApi("Gateway indisponível", status_code=500)

        # ACT
        with self.assertRaises(CriacaoPagamentoFalhouError) as contexto:
            self.use_case.executar(self.carrinho, "end-1", "PIX")

        # ASSERT
        self.assertEqual(contexto.exception.pedido_id, "ped-1")
        self.assertFalse(self.carrinho.is_empty())
        self.assertEqual(self.sessao.get_address(), "end-1")
        self.assertEqual(self.sessao.get_pedido_pendente(), "ped-1")
        self.assertFalse(self.trava.locked())

    def test_retentar_pagamento_nao_cria_novo_pedido(self):
        # ARRANGE
        self.pagamento_gateway.criar_pagamento.side_effect = ErroDeRede()
        with self.assertRaises(CriacaoPagamentoFalhouError):
            self.use_case.executar(self.carrinho, "end-1", "CREDIT_CARD")
        self.pagamento_gateway.criar_pagamento.side_effect = None
        self.pagamento_gateway.criar_pagamento.return_value = ResultadoPagamento(pagamento_id="pay-2", status="APPROVED")

        # ACT
        resultado = self.use_case.retentar_pagamento("CREDIT_CARD")

        # ASSERT
        self.assertEqual(resultado.estado, EstadoConfirmacao.APROVADO)
        self.assertEqual(resultado.pedido_id, "ped-1")
        self.pedido_gateway.criar_pedido.assert_called_once()
        self.assertIsNone(self.sessao.get_pedido_pendente())

    def test_retentar_sem_pedido_pendente_falha(self):
        with self.assertRaises(PedidoNaoEncontradoError):
            self.use_case.retentar_pagamento("PIX")
        self.pagamento_gateway.criar_pagamento.assert_not_called()

    def test_falha_na_criacao_do_pedido_nao_cria_pagamento(self):
        self.pedido_gateway.criar_pedido.side_effect = ErroApi("Estoque insuficiente", status_code=409)

        with self.assertRaises(CriacaoPedidoFalhouError) as contexto:
            self.use_case.executar(self.carrinho, "end-1", "PIX")

        self.assertEqual(contexto.exception.message, "Estoque insuficiente")
        self.pagamento_gateway.criar_pagamento.assert_not_called()
        self.assertFalse(self.carrinho.is_empty())

    def test_erro_de_rede_na_criacao_do_pedido_e_propagado(self):
        self.pedido_gateway.criar_pedido.side_effect = ErroDeRede()

        with self.assertRaises(ErroDeRede):
            self.use_case.executar(self.carrinho, "end-1", "PIX")
        self.assertFalse(self.trava.locked())

    def test_pagamento_recusado_mantem_carrinho(self):
        self.pagamento_gateway.criar_pagamento.return_value = ResultadoPagamento(pagamento_id="pay-1", status="REJECTED")

        with self.assertRaises(PagamentoNaoAprovadoError) as contexto:
            self.use_case.executar(self.carrinho, "end-1", "CREDIT_CARD")

        self.assertEqual(contexto.exception.pedido_id, "ped-1")
        self.assertFalse(self.carrinho.is_empty())
        self.assertEqual(self.sessao.get_pedido_falho(), "ped-1")

    def test_submissao_duplicada_e_rejeitada(self):
        # ARRANGE: outra submissão segura a trava
        self.trava.acquire()

        # ACT & ASSERT
        try:
            with self.assertRaises(SubmissaoEmAndamentoError):
                self.use_case.executar(self.carrinho, "end-1", "PIX")
        finally:
            self.trava.release()
        self.pedido_gateway.criar_pedido.assert_not_called()


# ====================================================================
# 5. CATÁLOGO, ENDEREÇOS, PEDIDOS, BLING E AUTENTICAÇÃO
# ====================================================================

class TestAdicionarAoCarrinhoUseCase(unittest.TestCase):

    def test_usa_snapshot_do_produto(self):
        # ARRANGE
        catalogo = Mock()
        catalogo.buscar_produto.return_value = Produto(
            id="p9", nome="Óculos de Sol", preco=Decimal("299.90"), estoque=1, imagens=["a.png", "b.png"]
        )
        carrinho = CarrinhoStore(CarrinhoRepositoryFake())

        # ACT
        resultado = AdicionarAoCarrinhoUseCase(catalogo).executar(carrinho, "p9", 3)

        # ASSERT
        item = carrinho.get_item("p9")
        self.assertEqual(resultado, ResultadoOperacao.LIMITADO)
        self.assertEqual(item.quantidade, 1)
        self.assertEqual(item.imagem, "a.png")
        self.assertEqual(item.preco, Decimal("299.90"))


class TestGerenciarEnderecosUseCase(unittest.TestCase):

    def setUp(self):
        self.endereco_gateway = Mock()
        self.use_case = GerenciarEnderecosUseCase(self.endereco_gateway)
        self.dados = {
            "street": "Rua das Lentes",
            "number": "42",
            "neighborhood": "Centro",
            "city": "Curitiba",
            "state": "pr",
            "zipCode": "80000-000",
        }

    def _endereco(self, id, padrao=False):
        return Endereco(rua="Rua", numero="1", bairro="B", cidade="C", estado="SP", cep="01000-000", padrao=padrao, id=id)

    def test_validar_endereco_normaliza_estado(self):
        endereco = validar_endereco(self.dados)

        self.assertEqual(endereco.estado, "PR")
        self.assertIsNone(endereco.complemento)

    def test_validar_endereco_reporta_erros_por_campo(self):
        dados = dict(self.dados, street="", state="Paraná", zipCode="80000-0000")

        with self.assertRaises(DadosInvalidosError) as contexto:
            validar_endereco(dados)

        self.assertEqual(set(contexto.exception.erros), {"street", "state", "zipCode"})

    def test_listar_preseleciona_endereco_padrao(self):
        self.endereco_gateway.listar.return_value = [self._endereco("e1"), self._endereco("e2", padrao=True)]

        enderecos, selecionado = self.use_case.listar()

        self.assertEqual(len(enderecos), 2)
        self.assertEqual(selecionado, "e2")

    def test_listar_sem_padrao_preseleciona_o_primeiro(self):
        self.endereco_gateway.listar.return_value = [self._endereco("e1"), self._endereco("e2")]

        _, selecionado = self.use_case.listar()

        self.assertEqual(selecionado, "e1")

    def test_primeiro_endereco_vira_padrao(self):
        self.endereco_gateway.listar.return_value = []
        self.endereco_gateway.criar.side_effect = lambda endereco: endereco

        endereco = self.use_case.criar(self.dados)

        self.assertTrue(endereco.padrao)

    def test_selecionar_com_carrinho_vazio_falha(self):
        sessao = SessaoCheckout(SessaoRepositoryFake())

        with self.assertRaises(CarrinhoVazioError):
            self.use_case.selecionar(novo_carrinho(), sessao, "e1")
        self.assertIsNone(sessao.get_address())

    def test_selecionar_grava_endereco_e_frete(self):
        sessao = SessaoCheckout(SessaoRepositoryFake())
        frete = OpcaoFrete(nome="PAC", preco=Decimal("12.00"), prazo_dias=7)

        self.use_case.selecionar(novo_carrinho(("p1", 1)), sessao, "e1", frete)

        self.assertEqual(sessao.get_address(), "e1")
        self.assertEqual(sessao.get_shipping(), frete)


class TestGerenciarPedidosUseCase(unittest.TestCase):

    def setUp(self):
        self.pedido_gateway = Mock()
        self.bling_gateway = Mock()
        self.use_case = GerenciarPedidosUseCase(self.pedido_gateway, self.bling_gateway)
        self.vendedor = Usuario(id="u1", email="vendedor@example.com", nome="Loja", papel="SELLER")
        self.cliente = Usuario(id="u2", email="cliente@example.com", nome="Cliente")

    def test_cliente_nao_acessa_pedidos_do_vendedor(self):
        with self.assertRaises(PermissaoNegadaError):
            self.use_case.listar_do_vendedor(self.cliente)
        self.pedido_gateway.listar_do_vendedor.assert_not_called()

    def test_atualizar_status_normaliza_valor(self):
        self.use_case.atualizar_status(self.vendedor, "ped-1", "shipped")

        self.pedido_gateway.atualizar_status.assert_called_once_with("ped-1", "SHIPPED")

    def test_status_invalido_falha(self):
        with self.assertRaises(StatusInvalidoError):
            self.use_case.atualizar_status(self.vendedor, "ped-1", "PERDIDO")
        self.pedido_gateway.atualizar_status.assert_not_called()

    def test_detalhar_pedido_inexistente(self):
        self.pedido_gateway.buscar_por_id.side_effect = ErroApi("Not found", status_code=404)

        with self.assertRaises(PedidoNaoEncontradoError):
            self.use_case.detalhar("ped-x")

    def test_sincronizacao_bling_com_falha(self):
        self.bling_gateway.sincronizar_pedido.return_value = {"success": False, "error": "Token expirado"}

        with self.assertRaises(IntegracaoBlingError) as contexto:
            self.use_case.sincronizar_bling(self.vendedor, "ped-1")

        self.assertIn("Token expirado", contexto.exception.message)


class TestIntegracaoBlingUseCase(unittest.TestCase):

    def setUp(self):
        self.bling_gateway = Mock()
        self.use_case = IntegracaoBlingUseCase(self.bling_gateway)

    def test_conectar_extrai_client_id_e_state(self):
        url = "https://www.bling.com.br/Api/v3/oauth/authorize?response_type=code&client_id=abc123&state=xyz"

        retorno = self.use_case.conectar(url, " segredo ")

        self.assertEqual(retorno, url)
        self.bling_gateway.salvar_credenciais.assert_called_once_with("abc123", "segredo", "xyz")

    def test_conectar_sem_state_falha(self):
        with self.assertRaises(DadosInvalidosError):
            self.use_case.conectar("https://www.bling.com.br/oauth?client_id=abc123", "segredo")
        self.bling_gateway.salvar_credenciais.assert_not_called()

    def test_sincronizar_produtos_exige_conexao(self):
        self.bling_gateway.status.return_value = StatusBling(configurado=True, conectado=False)

        with self.assertRaises(IntegracaoBlingError):
            self.use_case.sincronizar_produtos()
        self.bling_gateway.sincronizar_produtos.assert_not_called()


class TestAutenticacaoUseCase(unittest.TestCase):

    def setUp(self):
        self.auth_gateway = Mock()
        self.auth_repo = Mock()
        self.use_case = AutenticacaoUseCase(self.auth_gateway, self.auth_repo)

    def test_registro_invalido_nao_chama_backend(self):
        with self.assertRaises(DadosInvalidosError) as contexto:
            self.use_case.registrar("", "email-invalido", "123", "ADMIN")

        self.assertEqual(set(contexto.exception.erros), {"name", "email", "password", "role"})
        self.auth_gateway.registrar.assert_not_called()

    def test_registro_persiste_usuario_e_token(self):
        usuario = Usuario(id="u1", email="ana@example.com", nome="Ana", papel="SELLER")
        self.auth_gateway.registrar.return_value = EstadoAutenticacao(usuario=usuario, token="tok")

        self.use_case.registrar(" Ana ", "ana@example.com", "segredo1", "SELLER")

        self.auth_gateway.registrar.assert_called_once_with("Ana", "ana@example.com", "segredo1", "SELLER")
        self.auth_repo.save.assert_called_once_with(EstadoAutenticacao(usuario=usuario, token="tok"))

    def test_logout_apaga_estado(self):
        self.use_case.logout()

        self.auth_repo.delete.assert_called_once()


if __name__ == '__main__':
    unittest.main()
