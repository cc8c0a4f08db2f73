import logging
from decimal import Decimal

from django.apps import apps
from django.conf import settings
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from opticalmarket.core.entities import OpcaoFrete, ResultadoOperacao
from opticalmarket.core.exceptions import (
    BaseErroCore,
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
    SubmissaoEmAndamentoError,
    TempoEsgotadoError,
)
from opticalmarket.infrastructure.mappers import FreteMapper

from .serializers import (
    AdicionarItemSerializer,
    AtualizarQuantidadeSerializer,
    AtualizarStatusSerializer,
    CarrinhoSerializer,
    CategoriaSerializer,
    ConectarBlingSerializer,
    EnderecoSerializer,
    PagamentoSerializer,
    PedidoSerializer,
    ProdutoSerializer,
    RegistroSerializer,
    RemoverItemSerializer,
    ResultadoSubmissaoSerializer,
    ResultadoVerificacaoSerializer,
    SelecionarEnderecoSerializer,
    StatusBlingSerializer,
    UsuarioSerializer,
    VerificarPagamentoSerializer,
)

logger = logging.getLogger(__name__)


# ====================================================================
# TRADUÇÃO DE ERROS: Exceção do Core -> (status HTTP, próxima ação)
# ====================================================================

# A ordem importa: subclasses antes das classes base.
MAPA_ERROS = [
    (FreteAusenteError, status.HTTP_400_BAD_REQUEST, 'escolher_frete'),
    (EnderecoAusenteError, status.HTTP_400_BAD_REQUEST, 'voltar_ao_endereco'),
    (CarrinhoVazioError, status.HTTP_400_BAD_REQUEST, 'voltar_ao_carrinho'),
    (DadosInvalidosError, status.HTTP_400_BAD_REQUEST, 'corrigir_dados'),
    (PermissaoNegadaError, status.HTTP_403_FORBIDDEN, None),
    (PedidoNaoEncontradoError, status.HTTP_404_NOT_FOUND, None),
    (PagamentoAguardandoConfirmacaoError, status.HTTP_409_CONFLICT, 'confirmar_pagamento'),
    (SubmissaoEmAndamentoError, status.HTTP_409_CONFLICT, 'aguardar'),
    (PagamentoNaoAprovadoError, status.HTTP_402_PAYMENT_REQUIRED, 'novo_pedido'),
    # Precisa ser < 500 para o SessionMiddleware salvar o pedido pendente
    (CriacaoPagamentoFalhouError, status.HTTP_424_FAILED_DEPENDENCY, 'retentar_pagamento'),
    (CriacaoPedidoFalhouError, status.HTTP_502_BAD_GATEWAY, 'tentar_novamente'),
    (IntegracaoBlingError, status.HTTP_502_BAD_GATEWAY, 'tentar_novamente'),
    (TempoEsgotadoError, status.HTTP_504_GATEWAY_TIMEOUT, 'tentar_novamente'),
    (ErroDeRede, status.HTTP_503_SERVICE_UNAVAILABLE, 'tentar_novamente'),
]


def resposta_erro(erro: BaseErroCore) -> Response:
    """Converte uma exceção do Core em resposta JSON com a ação sugerida ao comprador."""
    codigo, proxima_acao = status.HTTP_400_BAD_REQUEST, None
    for classe, codigo_classe, acao in MAPA_ERROS:
        if isinstance(erro, classe):
            codigo, proxima_acao = codigo_classe, acao
            break
    else:
        if isinstance(erro, ErroApi):
            # 4xx do backend é repassado; 5xx vira falha de gateway
            codigo = erro.status_code if erro.status_code and erro.status_code < 500 else status.HTTP_502_BAD_GATEWAY

    corpo = {'message': erro.message, 'proxima_acao': proxima_acao}
    if getattr(erro, 'redirecionar_para', None):
        corpo['redirecionar_para'] = erro.redirecionar_para
    if getattr(erro, 'pedido_id', None):
        corpo['orderId'] = erro.pedido_id
    if getattr(erro, 'erros', None):
        corpo['errors'] = erro.erros

    if codigo >= 500:
        logger.warning("Falha externa (%s): %s", type(erro).__name__, erro.message)
    return Response(corpo, status=codigo)


class StorefrontAPIView(APIView):
    """
    Base das APIs do storefront. Resolve o container de dependências e o
    comprador da requisição e traduz exceções do Core em respostas JSON.
    """

    @property
    def container(self):
        return apps.get_app_config('presentation').container

    def cliente_id(self) -> str:
        return self.request.cliente_id

    def handle_exception(self, exc):
        if isinstance(exc, BaseErroCore):
            return resposta_erro(exc)
        return super().handle_exception(exc)


# ====================================================================
# 1. CATÁLOGO
# ====================================================================

class ProdutosAPIView(StorefrontAPIView):

    def get(self, request):
        uc = self.container.listar_catalogo_use_case(self.cliente_id())
        produtos = uc.listar_produtos(request.query_params.get('categoryId'))
        return Response(ProdutoSerializer(produtos, many=True).data)


class ProdutoDetalheAPIView(StorefrontAPIView):

    def get(self, request, produto_id):
        uc = self.container.listar_catalogo_use_case(self.cliente_id())
        return Response(ProdutoSerializer(uc.detalhar_produto(produto_id)).data)


class CategoriasAPIView(StorefrontAPIView):

    def get(self, request):
        uc = self.container.listar_catalogo_use_case(self.cliente_id())
        return Response(CategoriaSerializer(uc.listar_categorias(), many=True).data)


# ====================================================================
# 2. CARRINHO
# ====================================================================

MENSAGENS_CARRINHO = {
    ResultadoOperacao.ADICIONADO: "Produto adicionado ao carrinho.",
    ResultadoOperacao.ATUALIZADO: "Carrinho atualizado.",
    ResultadoOperacao.LIMITADO: "Quantidade ajustada ao estoque disponível.",
    ResultadoOperacao.REJEITADO: "Quantidade indisponível em estoque.",
    ResultadoOperacao.REMOVIDO: "Produto removido do carrinho.",
    ResultadoOperacao.INALTERADO: "Nenhuma alteração no carrinho.",
    ResultadoOperacao.LIMPO: "Carrinho esvaziado.",
}


class CarrinhoAPIView(StorefrontAPIView):
    """
    API View para gerenciar o carrinho do comprador (identificado pelo cookie de cliente).
    """

    def _resposta(self, carrinho, resultado: ResultadoOperacao) -> Response:
        codigo = {
            ResultadoOperacao.ADICIONADO: status.HTTP_201_CREATED,
            ResultadoOperacao.REJEITADO: status.HTTP_400_BAD_REQUEST,
        }.get(resultado, status.HTTP_200_OK)
        return Response({
            'resultado': resultado.value,
            'message': MENSAGENS_CARRINHO[resultado],
            'carrinho': CarrinhoSerializer(carrinho).data,
        }, status=codigo)

    def get(self, request):
        """
        Retorna o carrinho com total e quantidade recalculados.
        """
        carrinho = self.container.carrinho(self.cliente_id())
        return Response(CarrinhoSerializer(carrinho).data)

    def post(self, request):
        """
        Adiciona um produto ao carrinho (snapshot de nome, preço e estoque do catálogo).
        """
        serializer = AdicionarItemSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        carrinho = self.container.carrinho(self.cliente_id())
        uc = self.container.adicionar_ao_carrinho_use_case(self.cliente_id())
        resultado = uc.executar(
            carrinho,
            serializer.validated_data['productId'],
            serializer.validated_data['quantity'],
        )
        return self._resposta(carrinho, resultado)

    def patch(self, request):
        serializer = AtualizarQuantidadeSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        carrinho = self.container.carrinho(self.cliente_id())
        resultado = carrinho.update_quantity(
            serializer.validated_data['productId'],
            serializer.validated_data['quantity'],
        )
        return self._resposta(carrinho, resultado)

    def delete(self, request):
        """
        Remove um item do carrinho. Sem productId, esvazia o carrinho.
        """
        carrinho = self.container.carrinho(self.cliente_id())
        if not request.data.get('productId'):
            return self._resposta(carrinho, carrinho.clear_cart())

        serializer = RemoverItemSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        return self._resposta(carrinho, carrinho.remove_item(serializer.validated_data['productId']))


# ====================================================================
# 3. CHECKOUT - ETAPA 1 (ENDEREÇO)
# ====================================================================

class EnderecosAPIView(StorefrontAPIView):

    def get(self, request):
        uc = self.container.gerenciar_enderecos_use_case(self.cliente_id())
        enderecos, preselecionado = uc.listar()
        sessao = self.container.sessao_checkout(request.session)
        return Response({
            'addresses': EnderecoSerializer(enderecos, many=True).data,
            'selectedAddressId': sessao.get_address() or preselecionado,
            'shippingRequired': settings.CHECKOUT_EXIGE_FRETE,
        })

    def post(self, request):
        uc = self.container.gerenciar_enderecos_use_case(self.cliente_id())
        endereco = uc.criar(request.data)
        return Response(EnderecoSerializer(endereco).data, status=status.HTTP_201_CREATED)


class CheckoutEnderecoAPIView(StorefrontAPIView):
    """Conclui a etapa de endereço gravando a escolha na sessão de checkout."""

    def post(self, request):
        serializer = SelecionarEnderecoSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        dados_frete = serializer.validated_data.get('shipping')
        frete = None
        if dados_frete:
            frete = OpcaoFrete(
                nome=dados_frete['name'],
                preco=dados_frete['price'],
                prazo_dias=dados_frete['deliveryDays'],
            )
        if settings.CHECKOUT_EXIGE_FRETE and frete is None:
            raise FreteAusenteError()

        carrinho = self.container.carrinho(self.cliente_id())
        sessao = self.container.sessao_checkout(request.session)
        uc = self.container.gerenciar_enderecos_use_case(self.cliente_id())
        uc.selecionar(carrinho, sessao, serializer.validated_data.get('addressId'), frete)

        return Response({'message': 'Endereço selecionado.', 'proxima_etapa': '/checkout/payment'})


class CheckoutSessaoAPIView(StorefrontAPIView):

    def get(self, request):
        sessao = self.container.sessao_checkout(request.session)
        frete = sessao.get_shipping()
        return Response({
            'addressId': sessao.get_address(),
            'shipping': FreteMapper.to_dict(frete) if frete else None,
            'pendingOrderId': sessao.get_pedido_pendente(),
            'awaitingOrderId': sessao.get_pedido_aguardando(),
            'failedOrderId': sessao.get_pedido_falho(),
        })

    def delete(self, request):
        """
        Cancelamento explícito do checkout: apaga a sessão (inclusive o pedido
        aguardando pagamento), mantém o carrinho.
        """
        self.container.sessao_checkout(request.session).clear()
        return Response(status=status.HTTP_204_NO_CONTENT)


# ====================================================================
# 4. CHECKOUT - ETAPA 2 (PAGAMENTO) E CONFIRMAÇÃO
# ====================================================================

class CheckoutPagamentoAPIView(StorefrontAPIView):

    def _exigir_etapas_anteriores(self, carrinho, sessao) -> str:
        if carrinho.is_empty():
            raise CarrinhoVazioError()
        endereco_id = sessao.exigir_endereco()
        if settings.CHECKOUT_EXIGE_FRETE:
            sessao.exigir_frete()
        return endereco_id

    def get(self, request):
        """Resumo da etapa de pagamento (guarda de rota: carrinho e endereço)."""
        carrinho = self.container.carrinho(self.cliente_id())
        sessao = self.container.sessao_checkout(request.session)
        endereco_id = self._exigir_etapas_anteriores(carrinho, sessao)

        frete = sessao.get_shipping()
        total = carrinho.get_total() + (frete.preco if frete else Decimal('0'))
        return Response({
            'addressId': endereco_id,
            'shipping': FreteMapper.to_dict(frete) if frete else None,
            'carrinho': CarrinhoSerializer(carrinho).data,
            'total': str(total.quantize(Decimal('0.01'))),
        })

    def post(self, request):
        """
        Cria o pedido e em seguida o pagamento.
        """
        serializer = PagamentoSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        carrinho = self.container.carrinho(self.cliente_id())
        sessao = self.container.sessao_checkout(request.session)
        endereco_id = self._exigir_etapas_anteriores(carrinho, sessao)

        uc = self.container.submeter_pedido_use_case(self.cliente_id(), request.session, carrinho)
        resultado = uc.executar(
            carrinho,
            endereco_id,
            serializer.validated_data['paymentMethod'],
            serializer.validated_data.get('payerEmail') or None,
        )
        return Response(ResultadoSubmissaoSerializer(resultado).data, status=status.HTTP_201_CREATED)


class RetentarPagamentoAPIView(StorefrontAPIView):
    """Repete a criação do pagamento para o pedido já criado e guardado na sessão."""

    def post(self, request):
        serializer = PagamentoSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        uc = self.container.submeter_pedido_use_case(self.cliente_id(), request.session)
        resultado = uc.retentar_pagamento(
            serializer.validated_data['paymentMethod'],
            serializer.validated_data.get('payerEmail') or None,
        )
        return Response(ResultadoSubmissaoSerializer(resultado).data, status=status.HTTP_201_CREATED)


class VerificarPagamentoAPIView(StorefrontAPIView):
    """
    "Já paguei": consulta o status do pagamento no backend.
    Com `automatico`, faz polling limitado pelas configurações POLLING_*.
    Só o pedido que o checkout aguarda limpa carrinho e sessão quando aprovado.
    """

    def post(self, request, pedido_id):
        serializer = VerificarPagamentoSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        confirmacao = self.container.confirmacao(self.cliente_id(), request.session)
        confirmacao.retomar(pedido_id)

        if serializer.validated_data['automatico']:
            resultado = confirmacao.aguardar_confirmacao(
                settings.POLLING_INTERVALO,
                settings.POLLING_MAX_TENTATIVAS,
            )
        else:
            resultado = confirmacao.verificar_status()

        return Response(ResultadoVerificacaoSerializer(resultado).data)


# ====================================================================
# 5. PEDIDOS (COMPRADOR E VENDEDOR)
# ====================================================================

class PedidosAPIView(StorefrontAPIView):

    def get(self, request):
        uc = self.container.gerenciar_pedidos_use_case(self.cliente_id())
        return Response(PedidoSerializer(uc.listar_do_comprador(), many=True).data)


class PedidoDetalheAPIView(StorefrontAPIView):

    def get(self, request, pedido_id):
        uc = self.container.gerenciar_pedidos_use_case(self.cliente_id())
        return Response(PedidoSerializer(uc.detalhar(pedido_id)).data)


class PedidosVendedorMixin:

    def usuario_atual(self):
        return self.container.autenticacao_use_case(self.cliente_id()).estado_atual().usuario


class PedidosVendedorAPIView(PedidosVendedorMixin, StorefrontAPIView):

    def get(self, request):
        uc = self.container.gerenciar_pedidos_use_case(self.cliente_id())
        return Response(PedidoSerializer(uc.listar_do_vendedor(self.usuario_atual()), many=True).data)


class PedidoStatusAPIView(PedidosVendedorMixin, StorefrontAPIView):

    def patch(self, request, pedido_id):
        serializer = AtualizarStatusSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        uc = self.container.gerenciar_pedidos_use_case(self.cliente_id())
        pedido = uc.atualizar_status(self.usuario_atual(), pedido_id, serializer.validated_data['status'])
        return Response(PedidoSerializer(pedido).data)


class PedidoBlingAPIView(PedidosVendedorMixin, StorefrontAPIView):

    def post(self, request, pedido_id):
        uc = self.container.gerenciar_pedidos_use_case(self.cliente_id())
        uc.sincronizar_bling(self.usuario_atual(), pedido_id)
        return Response({'message': 'Pedido sincronizado com o Bling.'})


# ====================================================================
# 6. INTEGRAÇÃO BLING
# ====================================================================

class BlingStatusAPIView(StorefrontAPIView):

    def get(self, request):
        uc = self.container.integracao_bling_use_case(self.cliente_id())
        return Response(StatusBlingSerializer(uc.verificar_conexao()).data)


class BlingProdutosAPIView(StorefrontAPIView):

    def post(self, request):
        uc = self.container.integracao_bling_use_case(self.cliente_id())
        return Response(uc.sincronizar_produtos())


class BlingConectarAPIView(StorefrontAPIView):

    def post(self, request):
        serializer = ConectarBlingSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        uc = self.container.integracao_bling_use_case(self.cliente_id())
        url = uc.conectar(
            serializer.validated_data['invitationUrl'],
            serializer.validated_data['clientSecret'],
        )
        return Response({'authorizationUrl': url})


# ====================================================================
# 7. AUTENTICAÇÃO
# ====================================================================

class RegistroAPIView(StorefrontAPIView):

    def post(self, request):
        serializer = RegistroSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        uc = self.container.autenticacao_use_case(self.cliente_id())
        estado = uc.registrar(
            serializer.validated_data['name'],
            serializer.validated_data['email'],
            serializer.validated_data['password'],
            serializer.validated_data['role'],
        )
        return Response({'user': UsuarioSerializer(estado.usuario).data}, status=status.HTTP_201_CREATED)


class UsuarioAtualAPIView(StorefrontAPIView):

    def get(self, request):
        estado = self.container.autenticacao_use_case(self.cliente_id()).estado_atual()
        return Response({
            'authenticated': estado.autenticado,
            'user': UsuarioSerializer(estado.usuario).data if estado.usuario else None,
        })


class LogoutAPIView(StorefrontAPIView):

    def post(self, request):
        self.container.autenticacao_use_case(self.cliente_id()).logout()
        return Response(status=status.HTTP_204_NO_CONTENT)
