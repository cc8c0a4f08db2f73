"""
Mapeadores (Mappers) para converter entre:
1. Dicionários JSON (backend REST e armazenamento persistido)
2. Entidades de Domínio (opticalmarket.core.entities)
"""
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional

from opticalmarket.core.entities import (
    Categoria,
    Endereco,
    EstadoAutenticacao,
    EstadoCarrinho,
    EstadoSessaoCheckout,
    ItemCarrinho,
    ItemPedido,
    OpcaoFrete,
    Pedido,
    Produto,
    ResultadoPagamento,
    StatusBling,
    Usuario,
)


def to_decimal(valor: Any) -> Decimal:
    """Converte números e strings do JSON para Decimal sem perda de precisão."""
    if valor is None or valor == "":
        return Decimal("0")
    try:
        return Decimal(str(valor))
    except InvalidOperation:
        raise ValueError(f"Valor monetário inválido: {valor!r}")


# ====================================================================
# ESTADO PERSISTIDO DO CLIENTE
# ====================================================================

class CarrinhoMapper:
    """Formato persistido: {"items": [{productId, name, price, quantity, image, stock}]}"""

    @staticmethod
    def to_dict(estado: EstadoCarrinho) -> Dict[str, Any]:
        return {
            "items": [
                {
                    "productId": item.product_id,
                    "name": item.nome,
                    "price": str(item.preco),
                    "quantity": item.quantidade,
                    "image": item.imagem,
                    "stock": item.estoque,
                }
                for item in estado.itens
            ]
        }

    @staticmethod
    def to_entity(dados: Optional[Dict[str, Any]]) -> EstadoCarrinho:
        if not dados:
            return EstadoCarrinho()
        return EstadoCarrinho(itens=[
            ItemCarrinho(
                product_id=str(item["productId"]),
                nome=item.get("name", ""),
                preco=to_decimal(item.get("price")),
                quantidade=int(item["quantity"]),
                estoque=int(item.get("stock", 0)),
                imagem=item.get("image"),
            )
            for item in dados.get("items", [])
        ])


class FreteMapper:

    @staticmethod
    def to_dict(frete: OpcaoFrete) -> Dict[str, Any]:
        return {"name": frete.nome, "price": str(frete.preco), "deliveryDays": frete.prazo_dias}

    @staticmethod
    def to_entity(dados: Optional[Dict[str, Any]]) -> Optional[OpcaoFrete]:
        if not dados:
            return None
        return OpcaoFrete(
            nome=dados["name"],
            preco=to_decimal(dados.get("price")),
            prazo_dias=int(dados.get("deliveryDays", 0)),
        )


class SessaoCheckoutMapper:
    """Formato persistido: {addressId, shipping?, pendingOrderId?, awaitingOrderId?, failedOrderId?}"""

    @staticmethod
    def to_dict(estado: EstadoSessaoCheckout) -> Dict[str, Any]:
        dados: Dict[str, Any] = {"addressId": estado.endereco_id}
        if estado.frete is not None:
            dados["shipping"] = FreteMapper.to_dict(estado.frete)
        if estado.pedido_pendente_id:
            dados["pendingOrderId"] = estado.pedido_pendente_id
        if estado.pedido_aguardando_id:
            dados["awaitingOrderId"] = estado.pedido_aguardando_id
        if estado.pedido_falho_id:
            dados["failedOrderId"] = estado.pedido_falho_id
        return dados

    @staticmethod
    def to_entity(dados: Optional[Dict[str, Any]]) -> EstadoSessaoCheckout:
        if not dados:
            return EstadoSessaoCheckout()
        return EstadoSessaoCheckout(
            endereco_id=dados.get("addressId"),
            frete=FreteMapper.to_entity(dados.get("shipping")),
            pedido_pendente_id=dados.get("pendingOrderId"),
            pedido_aguardando_id=dados.get("awaitingOrderId"),
            pedido_falho_id=dados.get("failedOrderId"),
        )


class UsuarioMapper:

    @staticmethod
    def to_dict(usuario: Usuario) -> Dict[str, Any]:
        return {"id": usuario.id, "email": usuario.email, "name": usuario.nome, "role": usuario.papel}

    @staticmethod
    def to_entity(dados: Optional[Dict[str, Any]]) -> Optional[Usuario]:
        if not dados:
            return None
        return Usuario(
            id=str(dados["id"]),
            email=dados.get("email", ""),
            nome=dados.get("name", ""),
            papel=dados.get("role", "CUSTOMER"),
        )


class AutenticacaoMapper:
    """Formato persistido: {user, token}"""

    @staticmethod
    def to_dict(estado: EstadoAutenticacao) -> Dict[str, Any]:
        return {
            "user": UsuarioMapper.to_dict(estado.usuario) if estado.usuario else None,
            "token": estado.token,
        }

    @staticmethod
    def to_entity(dados: Optional[Dict[str, Any]]) -> EstadoAutenticacao:
        if not dados:
            return EstadoAutenticacao()
        return EstadoAutenticacao(usuario=UsuarioMapper.to_entity(dados.get("user")), token=dados.get("token"))


# ====================================================================
# RESPOSTAS DO BACKEND REST
# ====================================================================

class EnderecoMapper:

    @staticmethod
    def to_json(endereco: Endereco) -> Dict[str, Any]:
        return {
            "street": endereco.rua,
            "number": endereco.numero,
            "complement": endereco.complemento or "",
            "neighborhood": endereco.bairro,
            "city": endereco.cidade,
            "state": endereco.estado,
            "zipCode": endereco.cep,
            "isDefault": endereco.padrao,
        }

    @staticmethod
    def to_entity(dados: Optional[Dict[str, Any]]) -> Optional[Endereco]:
        if not dados:
            return None
        return Endereco(
            id=str(dados["id"]) if dados.get("id") is not None else None,
            rua=dados.get("street", ""),
            numero=dados.get("number", ""),
            complemento=dados.get("complement") or None,
            bairro=dados.get("neighborhood", ""),
            cidade=dados.get("city", ""),
            estado=dados.get("state", ""),
            cep=dados.get("zipCode", ""),
            padrao=bool(dados.get("isDefault", False)),
        )


class ProdutoMapper:

    @staticmethod
    def to_entity(dados: Dict[str, Any]) -> Produto:
        return Produto(
            id=str(dados["id"]),
            nome=dados.get("name", ""),
            preco=to_decimal(dados.get("price")),
            estoque=int(dados.get("stock") or 0),
            imagens=list(dados.get("images") or []),
            descricao=dados.get("description"),
            categoria_id=dados.get("categoryId"),
        )


class CategoriaMapper:

    @staticmethod
    def to_entity(dados: Dict[str, Any]) -> Categoria:
        return Categoria(id=str(dados["id"]), nome=dados.get("name", ""))


class PedidoMapper:

    @staticmethod
    def _item(dados: Dict[str, Any]) -> ItemPedido:
        produto = dados.get("product") or {}
        return ItemPedido(
            product_id=str(produto.get("id") or dados.get("productId", "")),
            nome=produto.get("name", ""),
            preco=to_decimal(dados.get("price")),
            quantidade=int(dados.get("quantity", 0)),
        )

    @staticmethod
    def to_entity(dados: Dict[str, Any]) -> Pedido:
        return Pedido(
            id=str(dados["id"]),
            status=dados.get("status", "PENDING"),
            status_pagamento=dados.get("paymentStatus"),
            metodo_pagamento=dados.get("paymentMethod"),
            total=to_decimal(dados.get("total")),
            itens=[PedidoMapper._item(item) for item in dados.get("items") or []],
            endereco=EnderecoMapper.to_entity(dados.get("address")),
            criado_em=dados.get("createdAt"),
            comprador=dados.get("user"),
        )


class ResultadoPagamentoMapper:

    @staticmethod
    def to_entity(dados: Dict[str, Any]) -> ResultadoPagamento:
        pagamento_id = dados.get("paymentId")
        return ResultadoPagamento(
            pagamento_id=str(pagamento_id) if pagamento_id is not None else None,
            status=str(dados.get("status") or "PENDING"),
            pix_qr_code=dados.get("pixQrCode"),
            pix_qr_code_base64=dados.get("pixQrCodeBase64"),
            ticket_url=dados.get("ticketUrl"),
            init_point=dados.get("initPoint"),
            sandbox_init_point=dados.get("sandboxInitPoint"),
        )


class StatusBlingMapper:

    @staticmethod
    def to_entity(dados: Dict[str, Any]) -> StatusBling:
        return StatusBling(configurado=bool(dados.get("configured")), conectado=bool(dados.get("connected")))
