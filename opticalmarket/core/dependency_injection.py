# opticalmarket/core/dependency_injection.py
"""
Módulo de Injeção de Dependência (DI).
Responsável por instanciar os Use Cases com suas dependências de Repositórios/Gateways
concretos da camada de Infraestrutura.

O container não guarda estado por comprador: carrinho e trava de submissão são
montados a cada requisição sobre o armazenamento durável, chaveados pelo cookie
de cliente.
"""
from typing import Optional

from opticalmarket.infrastructure.gateways import (
    AutenticacaoGatewayHttp,
    BlingGatewayHttp,
    CatalogoGatewayHttp,
    ClienteApi,
    EnderecoGatewayHttp,
    PagamentoGatewayHttp,
    PedidoGatewayHttp,
)
from opticalmarket.infrastructure.repositories import (
    ArmazenamentoBancoDjango,
    ArmazenamentoSessaoDjango,
    AutenticacaoRepository,
    CarrinhoRepository,
    IArmazenamento,
    SessaoCheckoutRepository,
    TravaSubmissao,
)

from .carrinho import CarrinhoStore
from .confirmacao import ConfirmacaoPagamento
from .sessao_checkout import SessaoCheckout
from .use_cases import (
    AdicionarAoCarrinhoUseCase,
    AutenticacaoUseCase,
    GerenciarEnderecosUseCase,
    GerenciarPedidosUseCase,
    IntegracaoBlingUseCase,
    ListarCatalogoUseCase,
    SubmeterPedidoUseCase,
)


class ContainerDependencias:

    def __init__(self, armazenamento: Optional[IArmazenamento] = None, cliente_api_factory=None):
        # Armazenamento durável (carrinho e autenticação)
        self.armazenamento = armazenamento or ArmazenamentoBancoDjango()
        self.cliente_api_factory = cliente_api_factory or ClienteApi

    # ====================================================================
    # Estado do Comprador
    # ====================================================================

    def carrinho(self, cliente_id: str) -> CarrinhoStore:
        return CarrinhoStore(CarrinhoRepository(self.armazenamento, cliente_id))

    def trava_submissao(self, cliente_id: str) -> TravaSubmissao:
        return TravaSubmissao(self.armazenamento, cliente_id)

    def autenticacao_repo(self, cliente_id: str) -> AutenticacaoRepository:
        return AutenticacaoRepository(self.armazenamento, cliente_id)

    def sessao_checkout(self, session) -> SessaoCheckout:
        return SessaoCheckout(SessaoCheckoutRepository(ArmazenamentoSessaoDjango(session)))

    def cliente_api(self, cliente_id: str) -> ClienteApi:
        return self.cliente_api_factory(token=self.autenticacao_repo(cliente_id).load().token)

    def confirmacao(self, cliente_id: str, session) -> ConfirmacaoPagamento:
        return ConfirmacaoPagamento(
            pagamento_gateway=PagamentoGatewayHttp(self.cliente_api(cliente_id)),
            carrinho=self.carrinho(cliente_id),
            sessao=self.sessao_checkout(session),
        )

    # ====================================================================
    # Use Cases de Catálogo/Carrinho
    # ====================================================================

    def listar_catalogo_use_case(self, cliente_id: str) -> ListarCatalogoUseCase:
        return ListarCatalogoUseCase(CatalogoGatewayHttp(self.cliente_api(cliente_id)))

    def adicionar_ao_carrinho_use_case(self, cliente_id: str) -> AdicionarAoCarrinhoUseCase:
        return AdicionarAoCarrinhoUseCase(CatalogoGatewayHttp(self.cliente_api(cliente_id)))

    # ====================================================================
    # Use Cases de Checkout/Pedidos
    # ====================================================================

    def gerenciar_enderecos_use_case(self, cliente_id: str) -> GerenciarEnderecosUseCase:
        return GerenciarEnderecosUseCase(EnderecoGatewayHttp(self.cliente_api(cliente_id)))

    def submeter_pedido_use_case(
        self, cliente_id: str, session, carrinho: Optional[CarrinhoStore] = None
    ) -> SubmeterPedidoUseCase:
        cliente = self.cliente_api(cliente_id)
        if carrinho is None:
            carrinho = self.carrinho(cliente_id)
        sessao = self.sessao_checkout(session)
        pagamento_gateway = PagamentoGatewayHttp(cliente)
        return SubmeterPedidoUseCase(
            pedido_gateway=PedidoGatewayHttp(cliente),
            pagamento_gateway=pagamento_gateway,
            sessao=sessao,
            confirmacao=ConfirmacaoPagamento(pagamento_gateway, carrinho, sessao),
            trava=self.trava_submissao(cliente_id),
        )

    def gerenciar_pedidos_use_case(self, cliente_id: str) -> GerenciarPedidosUseCase:
        cliente = self.cliente_api(cliente_id)
        return GerenciarPedidosUseCase(PedidoGatewayHttp(cliente), BlingGatewayHttp(cliente))

    # ====================================================================
    # Use Cases de Integrações e Autenticação
    # ====================================================================

    def integracao_bling_use_case(self, cliente_id: str) -> IntegracaoBlingUseCase:
        return IntegracaoBlingUseCase(BlingGatewayHttp(self.cliente_api(cliente_id)))

    def autenticacao_use_case(self, cliente_id: str) -> AutenticacaoUseCase:
        return AutenticacaoUseCase(
            AutenticacaoGatewayHttp(self.cliente_api(cliente_id)),
            self.autenticacao_repo(cliente_id),
        )
