# opticalmarket/core/confirmacao.py
"""
Fluxo de confirmação de pagamento.

Máquina de estados AGUARDANDO_ACAO -> PENDENTE -> APROVADO | FALHOU.
Cada método de pagamento tem uma estratégia que classifica a resposta da
criação do pagamento; métodos assíncronos (PIX) ficam PENDENTES até que o
backend confirme, por verificação manual ("Já paguei") ou por polling limitado.
"""
import logging
import time
from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Optional

from opticalmarket.core.carrinho import CarrinhoStore
from opticalmarket.core.entities import (
    EstadoConfirmacao,
    MetodoPagamento,
    ResultadoPagamento,
    ResultadoVerificacao,
)
from opticalmarket.core.exceptions import ErroDeRede, PedidoNaoEncontradoError
from opticalmarket.core.ports import IPagamentoGateway
from opticalmarket.core.sessao_checkout import SessaoCheckout

logger = logging.getLogger(__name__)

STATUS_APROVADOS = {"APPROVED", "PAID"}
STATUS_FALHOS = {"REJECTED", "CANCELLED"}
STATUS_PENDENTES = {"PENDING", "IN_PROCESS"}

URL_CONFIRMACAO = "/checkout/confirmation?orderId={pedido_id}"


# ====================================================================
# ESTRATÉGIAS POR MÉTODO DE PAGAMENTO
# ====================================================================

class EstrategiaConfirmacao(ABC):
    """Classifica a resposta da criação do pagamento no estado inicial do fluxo."""

    assincrono = False

    @abstractmethod
    def classificar(self, resultado: ResultadoPagamento) -> EstadoConfirmacao: ...


class ConfirmacaoPix(EstrategiaConfirmacao):
    """PIX: o comprador paga fora da aplicação (QR Code / link) e o backend confirma depois."""

    assincrono = True

    def classificar(self, resultado: ResultadoPagamento) -> EstadoConfirmacao:
        status = resultado.status.upper()
        if status in STATUS_APROVADOS:
            return EstadoConfirmacao.APROVADO
        if status in STATUS_FALHOS:
            return EstadoConfirmacao.FALHOU
        if resultado.possui_artefato:
            return EstadoConfirmacao.PENDENTE
        logger.warning("Pagamento PIX %s sem QR Code ou link de pagamento.", resultado.pagamento_id)
        return EstadoConfirmacao.FALHOU


class ConfirmacaoCartao(EstrategiaConfirmacao):
    """Cartão: normalmente aprovado ou recusado na hora; checkout externo fica pendente."""

    def classificar(self, resultado: ResultadoPagamento) -> EstadoConfirmacao:
        status = resultado.status.upper()
        if status in STATUS_APROVADOS:
            return EstadoConfirmacao.APROVADO
        if status in STATUS_PENDENTES and resultado.url_redirecionamento:
            return EstadoConfirmacao.PENDENTE
        return EstadoConfirmacao.FALHOU


ESTRATEGIAS: Dict[MetodoPagamento, EstrategiaConfirmacao] = {
    MetodoPagamento.PIX: ConfirmacaoPix(),
    MetodoPagamento.CREDIT_CARD: ConfirmacaoCartao(),
}


# ====================================================================
# MÁQUINA DE ESTADOS
# ====================================================================

Observador = Callable[[EstadoConfirmacao], None]


class ConfirmacaoPagamento:

    def __init__(
        self,
        pagamento_gateway: IPagamentoGateway,
        carrinho: CarrinhoStore,
        sessao: SessaoCheckout,
        estrategias: Optional[Dict[MetodoPagamento, EstrategiaConfirmacao]] = None,
    ):
        self.pagamento_gateway = pagamento_gateway
        self.carrinho = carrinho
        self.sessao = sessao
        self.estrategias = estrategias or ESTRATEGIAS
        self.estado = EstadoConfirmacao.AGUARDANDO_ACAO
        self.pedido_id: Optional[str] = None
        self.metodo: Optional[MetodoPagamento] = None
        self.resultado: Optional[ResultadoPagamento] = None
        # Verdadeiro quando o pedido é o deste checkout; só ele altera carrinho e sessão
        self.vinculado = False
        self._observadores: List[Observador] = []

    @property
    def url_confirmacao(self) -> Optional[str]:
        if self.estado != EstadoConfirmacao.APROVADO:
            return None
        return URL_CONFIRMACAO.format(pedido_id=self.pedido_id)

    def inscrever(self, observador: Observador) -> Callable[[], None]:
        self._observadores.append(observador)
        return lambda: self._observadores.remove(observador)

    def _transicionar(self, novo_estado: EstadoConfirmacao):
        if novo_estado == self.estado:
            return
        logger.info("Pedido %s: %s -> %s", self.pedido_id, self.estado.value, novo_estado.value)
        self.estado = novo_estado

        if self.vinculado:
            if novo_estado == EstadoConfirmacao.APROVADO:
                self.carrinho.clear_cart()
                self.sessao.clear()
            elif novo_estado == EstadoConfirmacao.PENDENTE:
                self.sessao.set_pedido_aguardando(self.pedido_id)
            elif novo_estado == EstadoConfirmacao.FALHOU:
                self.sessao.marcar_pedido_falho(self.pedido_id)

        for observador in list(self._observadores):
            observador(novo_estado)

    def iniciar(self, pedido_id: str, metodo: MetodoPagamento, resultado: ResultadoPagamento) -> EstadoConfirmacao:
        """Entra no fluxo a partir da resposta de criação do pagamento."""
        self.pedido_id = pedido_id
        self.metodo = metodo
        self.resultado = resultado
        self.vinculado = True
        self._transicionar(self.estrategias[metodo].classificar(resultado))
        return self.estado

    def retomar(self, pedido_id: str, metodo: Optional[MetodoPagamento] = None) -> EstadoConfirmacao:
        """
        Retoma um pagamento assíncrono já criado (ex: nova requisição do comprador).

        Apenas o pedido que a sessão aguarda pode limpar carrinho e sessão; para
        qualquer outro pedido o status é só consultado. Um pedido marcado como
        falho na sessão continua FALHOU e não é consultado de novo.
        """
        self.pedido_id = pedido_id
        self.metodo = metodo
        if pedido_id == self.sessao.get_pedido_falho():
            self.vinculado = False
            self._transicionar(EstadoConfirmacao.FALHOU)
            return self.estado

        self.vinculado = pedido_id == self.sessao.get_pedido_aguardando()
        if not self.vinculado:
            logger.info("Pedido %s não pertence ao checkout atual; apenas consulta de status.", pedido_id)
        self._transicionar(EstadoConfirmacao.PENDENTE)
        return self.estado

    def verificar_status(self) -> ResultadoVerificacao:
        """Consulta o backend. Ausência de confirmação não é erro."""
        if self.pedido_id is None:
            raise PedidoNaoEncontradoError("Nenhum pagamento em andamento para verificar.")

        if not self.estado.terminal:
            status = (self.pagamento_gateway.verificar_status(self.pedido_id) or "").upper()
            if status in STATUS_APROVADOS:
                self._transicionar(EstadoConfirmacao.APROVADO)
            elif status in STATUS_FALHOS:
                self._transicionar(EstadoConfirmacao.FALHOU)

        return self._resultado_verificacao()

    def aguardar_confirmacao(
        self,
        intervalo: float,
        max_tentativas: int,
        dormir: Callable[[float], None] = time.sleep,
    ) -> ResultadoVerificacao:
        """Polling automático limitado. Falhas de rede contam como tentativa."""
        for tentativa in range(1, max_tentativas + 1):
            try:
                resultado = self.verificar_status()
            except ErroDeRede as e:
                logger.warning("Tentativa %s de verificação do pedido %s falhou: %s", tentativa, self.pedido_id, e)
            else:
                if resultado.estado.terminal:
                    return resultado
            if tentativa < max_tentativas:
                dormir(intervalo)
        return self._resultado_verificacao()

    def _resultado_verificacao(self) -> ResultadoVerificacao:
        mensagens = {
            EstadoConfirmacao.APROVADO: "Pagamento confirmado!",
            EstadoConfirmacao.FALHOU: "O pagamento não foi aprovado. Inicie um novo pedido.",
            EstadoConfirmacao.PENDENTE: "Pagamento ainda não confirmado. Tente novamente em instantes.",
            EstadoConfirmacao.AGUARDANDO_ACAO: "Aguardando ação do comprador.",
        }
        return ResultadoVerificacao(
            estado=self.estado,
            confirmado=self.estado == EstadoConfirmacao.APROVADO,
            mensagem=mensagens[self.estado],
            url_confirmacao=self.url_confirmacao,
        )
