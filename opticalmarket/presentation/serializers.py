from decimal import Decimal

from rest_framework import serializers

from opticalmarket.core.entities import MetodoPagamento


def _moeda(valor: Decimal) -> str:
    return str(Decimal(valor).quantize(Decimal("0.01")))


# ====================================================================
# SERIALIZERS PARA O CARRINHO
# ====================================================================

class ItemCarrinhoSerializer(serializers.Serializer):
    """Representação de uma linha do carrinho (ItemCarrinho)."""
    productId = serializers.CharField(source='product_id')
    name = serializers.CharField(source='nome')
    price = serializers.DecimalField(source='preco', max_digits=12, decimal_places=2)
    quantity = serializers.IntegerField(source='quantidade')
    stock = serializers.IntegerField(source='estoque')
    image = serializers.CharField(source='imagem', allow_null=True)
    subtotal = serializers.DecimalField(max_digits=12, decimal_places=2)


class CarrinhoSerializer(serializers.Serializer):
    """
    Serializer principal para o carrinho de compras.
    Recebe o CarrinhoStore; total e quantidade são sempre recalculados.
    """
    items = serializers.SerializerMethodField()
    total = serializers.SerializerMethodField()
    itemCount = serializers.SerializerMethodField()

    def get_items(self, carrinho):
        return ItemCarrinhoSerializer(carrinho.get_itens(), many=True).data

    def get_total(self, carrinho):
        return _moeda(carrinho.get_total())

    def get_itemCount(self, carrinho):
        return carrinho.get_item_count()


class AdicionarItemSerializer(serializers.Serializer):
    productId = serializers.CharField(max_length=255)
    quantity = serializers.IntegerField(default=1)


class AtualizarQuantidadeSerializer(serializers.Serializer):
    productId = serializers.CharField(max_length=255)
    # Zero ou negativo remove a linha
    quantity = serializers.IntegerField()


class RemoverItemSerializer(serializers.Serializer):
    productId = serializers.CharField(max_length=255)


# ====================================================================
# SERIALIZERS DO CATÁLOGO
# ====================================================================

class ProdutoSerializer(serializers.Serializer):
    id = serializers.CharField()
    name = serializers.CharField(source='nome')
    price = serializers.DecimalField(source='preco', max_digits=12, decimal_places=2)
    stock = serializers.IntegerField(source='estoque')
    images = serializers.ListField(source='imagens', child=serializers.CharField())
    description = serializers.CharField(source='descricao', allow_null=True)
    categoryId = serializers.CharField(source='categoria_id', allow_null=True)


class CategoriaSerializer(serializers.Serializer):
    id = serializers.CharField()
    name = serializers.CharField(source='nome')


# ====================================================================
# SERIALIZERS DE ENDEREÇO E CHECKOUT
# ====================================================================

class EnderecoSerializer(serializers.Serializer):
    id = serializers.CharField(allow_null=True)
    street = serializers.CharField(source='rua')
    number = serializers.CharField(source='numero')
    complement = serializers.CharField(source='complemento', allow_null=True)
    neighborhood = serializers.CharField(source='bairro')
    city = serializers.CharField(source='cidade')
    state = serializers.CharField(source='estado')
    zipCode = serializers.CharField(source='cep')
    isDefault = serializers.BooleanField(source='padrao')


class FreteSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=100)
    price = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal("0"))
    deliveryDays = serializers.IntegerField(min_value=0)


class SelecionarEnderecoSerializer(serializers.Serializer):
    addressId = serializers.CharField(max_length=255, required=False, allow_blank=True, allow_null=True)
    shipping = FreteSerializer(required=False)


class PagamentoSerializer(serializers.Serializer):
    """Escolha do método de pagamento na etapa 2 do checkout."""
    METODOS_CHOICES = [
        (MetodoPagamento.PIX.value, 'PIX'),
        (MetodoPagamento.CREDIT_CARD.value, 'Cartão de Crédito'),
    ]
    paymentMethod = serializers.ChoiceField(choices=METODOS_CHOICES)
    payerEmail = serializers.EmailField(required=False, allow_null=True, allow_blank=True)


class VerificarPagamentoSerializer(serializers.Serializer):
    # Quando verdadeiro, faz polling limitado em vez de uma única consulta
    automatico = serializers.BooleanField(default=False)


class ResultadoPagamentoSerializer(serializers.Serializer):
    paymentId = serializers.CharField(source='pagamento_id', allow_null=True)
    status = serializers.CharField()
    pixQrCode = serializers.CharField(source='pix_qr_code', allow_null=True)
    pixQrCodeBase64 = serializers.CharField(source='pix_qr_code_base64', allow_null=True)
    ticketUrl = serializers.CharField(source='ticket_url', allow_null=True)


class ResultadoSubmissaoSerializer(serializers.Serializer):
    orderId = serializers.CharField(source='pedido_id')
    estado = serializers.CharField(source='estado.value')
    redirectUrl = serializers.CharField(source='url_redirecionamento', allow_null=True)
    payment = ResultadoPagamentoSerializer(source='pagamento')


class ResultadoVerificacaoSerializer(serializers.Serializer):
    estado = serializers.CharField(source='estado.value')
    confirmado = serializers.BooleanField()
    mensagem = serializers.CharField()
    confirmationUrl = serializers.CharField(source='url_confirmacao', allow_null=True)


# ====================================================================
# SERIALIZERS DE PEDIDOS
# ====================================================================

class ItemPedidoSerializer(serializers.Serializer):
    productId = serializers.CharField(source='product_id')
    name = serializers.CharField(source='nome')
    price = serializers.DecimalField(source='preco', max_digits=12, decimal_places=2)
    quantity = serializers.IntegerField(source='quantidade')


class PedidoSerializer(serializers.Serializer):
    id = serializers.CharField()
    status = serializers.CharField()
    paymentStatus = serializers.CharField(source='status_pagamento', allow_null=True)
    paymentMethod = serializers.CharField(source='metodo_pagamento', allow_null=True)
    total = serializers.DecimalField(max_digits=12, decimal_places=2)
    items = ItemPedidoSerializer(source='itens', many=True)
    address = EnderecoSerializer(source='endereco', allow_null=True)
    createdAt = serializers.CharField(source='criado_em', allow_null=True)
    user = serializers.DictField(source='comprador', allow_null=True)


class AtualizarStatusSerializer(serializers.Serializer):
    status = serializers.CharField(max_length=20)


# ====================================================================
# SERIALIZERS DE INTEGRAÇÃO E AUTENTICAÇÃO
# ====================================================================

class StatusBlingSerializer(serializers.Serializer):
    configured = serializers.BooleanField(source='configurado')
    connected = serializers.BooleanField(source='conectado')
    available = serializers.BooleanField(source='disponivel')


class ConectarBlingSerializer(serializers.Serializer):
    invitationUrl = serializers.CharField()
    clientSecret = serializers.CharField()


class UsuarioSerializer(serializers.Serializer):
    id = serializers.CharField()
    email = serializers.CharField()
    name = serializers.CharField(source='nome')
    role = serializers.CharField(source='papel')


class RegistroSerializer(serializers.Serializer):
    # A validação de formato fica no caso de uso, que devolve erros por campo.
    name = serializers.CharField(allow_blank=True, default='')
    email = serializers.CharField(allow_blank=True, default='')
    password = serializers.CharField(allow_blank=True, default='', write_only=True)
    role = serializers.CharField(default='CUSTOMER')
