"""
Define as rotas de API REST do storefront: catálogo, carrinho, checkout em duas
etapas com confirmação de pagamento, pedidos, integração Bling e autenticação.
"""
from django.urls import path
from . import views


urlpatterns = [
    # ====================================================================
    # 1. ROTAS DE CATÁLOGO
    # ====================================================================
    path('produtos/', views.ProdutosAPIView.as_view(), name='api_produtos'),
    path('produtos/<str:produto_id>/', views.ProdutoDetalheAPIView.as_view(), name='api_produto_detalhe'),
    path('categorias/', views.CategoriasAPIView.as_view(), name='api_categorias'),

    # ====================================================================
    # 2. ROTAS DE COMPRA (CARRINHO E CHECKOUT)
    # ====================================================================
    path('carrinho/', views.CarrinhoAPIView.as_view(), name='api_carrinho'),
    path('enderecos/', views.EnderecosAPIView.as_view(), name='api_enderecos'),
    path('checkout/', views.CheckoutSessaoAPIView.as_view(), name='api_checkout'),
    path('checkout/endereco/', views.CheckoutEnderecoAPIView.as_view(), name='api_checkout_endereco'),
    path('checkout/pagamento/', views.CheckoutPagamentoAPIView.as_view(), name='api_checkout_pagamento'),
    path('checkout/pagamento/retentar/', views.RetentarPagamentoAPIView.as_view(), name='api_retentar_pagamento'),
    path('checkout/confirmacao/<str:pedido_id>/', views.VerificarPagamentoAPIView.as_view(), name='api_verificar_pagamento'),

    # ====================================================================
    # 3. ROTAS DE PEDIDOS
    # ====================================================================
    path('pedidos/', views.PedidosAPIView.as_view(), name='api_pedidos'),
    path('pedidos/vendedor/', views.PedidosVendedorAPIView.as_view(), name='api_pedidos_vendedor'),
    path('pedidos/<str:pedido_id>/', views.PedidoDetalheAPIView.as_view(), name='api_pedido_detalhe'),
    path('pedidos/<str:pedido_id>/status/', views.PedidoStatusAPIView.as_view(), name='api_pedido_status'),
    path('pedidos/<str:pedido_id>/bling/', views.PedidoBlingAPIView.as_view(), name='api_pedido_bling'),

    # ====================================================================
    # 4. ROTAS DA INTEGRAÇÃO BLING
    # ====================================================================
    path('bling/status/', views.BlingStatusAPIView.as_view(), name='api_bling_status'),
    path('bling/produtos/', views.BlingProdutosAPIView.as_view(), name='api_bling_produtos'),
    path('bling/conectar/', views.BlingConectarAPIView.as_view(), name='api_bling_conectar'),

    # ====================================================================
    # 5. ROTAS DE AUTENTICAÇÃO
    # ====================================================================
    path('auth/cadastro/', views.RegistroAPIView.as_view(), name='api_cadastro'),
    path('auth/usuario/', views.UsuarioAtualAPIView.as_view(), name='api_usuario_atual'),
    path('auth/logout/', views.LogoutAPIView.as_view(), name='api_logout'),
]
