import logging
from typing import Any, Dict, List, Optional

import requests
from decouple import config

from opticalmarket.core.entities import (
    Categoria,
    Endereco,
    EstadoAutenticacao,
    MetodoPagamento,
    Pedido,
    Produto,
    ResultadoPagamento,
    StatusBling,
)
from opticalmarket.core.exceptions import (
    BaseErroCore,
    ErroApi,
    ErroDeRede,
    IntegracaoBlingError,
    TempoEsgotadoError,
)
from opticalmarket.core.ports import (
    IAutenticacaoGateway,
    IBlingGateway,
    ICatalogoGateway,
    IEnderecoGateway,
    IPagamentoGateway,
    IPedidoGateway,
)

from .mappers import (
    AutenticacaoMapper,
    CategoriaMapper,
    EnderecoMapper,
    PedidoMapper,
    ProdutoMapper,
    ResultadoPagamentoMapper,
    StatusBlingMapper,
)

logger = logging.getLogger(__name__)


# ====================================================================
# CLIENTE HTTP DO BACKEND REST
# ====================================================================

class ClienteApi:
    """
    Cliente do backend REST da loja.
    Anexa o token Bearer do comprador e traduz falhas do `requests`
    para as exceções do Core.
    """

    def __init__(
        self,
        token: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        sessao_http: Optional[requests.Session] = None,
    ):
        self.base_url = (base_url or config("API_URL", default="http://localhost:3000/api")).rstrip("/")
        self.timeout = timeout or config("API_TIMEOUT", default=15, cast=float)
        self.token = token
        self.http = sessao_http or requests.Session()

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    @staticmethod
    def _mensagem_erro(response: requests.Response) -> str:
        try:
            dados = response.json()
        except ValueError:
            return f"Erro {response.status_code} no servidor."
        mensagem = dados.get("message") if isinstance(dados, dict) else None
        if isinstance(mensagem, list):
            mensagem = "; ".join(str(m) for m in mensagem)
        return mensagem or f"Erro {response.status_code} no servidor."

    def requisitar(self, metodo: str, caminho: str, json: Any = None, params: Optional[Dict] = None) -> Any:
        url = f"{self.base_url}{caminho}"
        try:
            response = self.http.request(
                metodo, url, json=json, params=params, headers=self._headers(), timeout=self.timeout
            )
            response.raise_for_status()
        except requests.exceptions.Timeout as e:
            logger.warning("Tempo esgotado em %s %s", metodo, url)
            raise TempoEsgotadoError() from e
        except requests.exceptions.HTTPError as e:
            status_code = e.response.status_code if e.response is not None else None
            mensagem = self._mensagem_erro(e.response) if e.response is not None else str(e)
            logger.warning("Backend respondeu %s em %s %s: %s", status_code, metodo, url, mensagem)
            raise ErroApi(mensagem, status_code=status_code) from e
        except requests.exceptions.RequestException as e:
            logger.error("Erro de conexão com o backend em %s %s: %s", metodo, url, e)
            raise ErroDeRede() from e

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            # requests.JSONDecodeError herda de ValueError
            logger.error("Resposta inválida (não JSON) do backend em %s %s", metodo, url)
            raise ErroApi("Resposta inválida do servidor.") from e

    def get(self, caminho: str, params: Optional[Dict] = None) -> Any:
        return self.requisitar("GET", caminho, params=params)

    def post(self, caminho: str, json: Any = None) -> Any:
        return self.requisitar("POST", caminho, json=json)

    def put(self, caminho: str, json: Any = None) -> Any:
        return self.requisitar("PUT", caminho, json=json)

    def patch(self, caminho: str, json: Any = None) -> Any:
        return self.requisitar("PATCH", caminho, json=json)

    def delete(self, caminho: str, json: Any = None) -> Any:
        return self.requisitar("DELETE", caminho, json=json)


def _lista(dados: Any) -> List[Dict[str, Any]]:
    return dados if isinstance(dados, list) else []


# ====================================================================
# GATEWAYS: Implementações das Portas do Core sobre o ClienteApi
# ====================================================================

class PedidoGatewayHttp(IPedidoGateway):

    def __init__(self, cliente: ClienteApi):
        self.cliente = cliente

    def criar_pedido(self, endereco_id: str, metodo: MetodoPagamento, itens: List[Dict[str, Any]]) -> Pedido:
        dados = self.cliente.post("/orders", {
            "addressId": endereco_id,
            "paymentMethod": metodo.value,
            "items": itens,
        })
        return PedidoMapper.to_entity(dados)

    def buscar_por_id(self, pedido_id: str) -> Pedido:
        return PedidoMapper.to_entity(self.cliente.get(f"/orders/{pedido_id}"))

    def listar_do_comprador(self) -> List[Pedido]:
        return [PedidoMapper.to_entity(p) for p in _lista(self.cliente.get("/orders"))]

    def listar_do_vendedor(self) -> List[Pedido]:
        return [PedidoMapper.to_entity(p) for p in _lista(self.cliente.get("/orders/seller"))]

    def atualizar_status(self, pedido_id: str, status: str) -> Pedido:
        return PedidoMapper.to_entity(self.cliente.patch(f"/orders/{pedido_id}/status", {"status": status}))


class PagamentoGatewayHttp(IPagamentoGateway):

    def __init__(self, cliente: ClienteApi):
        self.cliente = cliente

    def criar_pagamento(self, pedido_id: str, metodo: MetodoPagamento, email_pagador: Optional[str]) -> ResultadoPagamento:
        dados = self.cliente.post("/payment/create", {
            "orderId": pedido_id,
            "paymentMethod": metodo.value,
            "payerEmail": email_pagador,
        })
        return ResultadoPagamentoMapper.to_entity(dados or {})

    def verificar_status(self, pedido_id: str) -> str:
        dados = self.cliente.get(f"/payment/{pedido_id}/status") or {}
        return str(dados.get("paymentStatus") or "")


class EnderecoGatewayHttp(IEnderecoGateway):

    def __init__(self, cliente: ClienteApi):
        self.cliente = cliente

    def listar(self) -> List[Endereco]:
        return [EnderecoMapper.to_entity(e) for e in _lista(self.cliente.get("/address"))]

    def criar(self, endereco: Endereco) -> Endereco:
        return EnderecoMapper.to_entity(self.cliente.post("/address", EnderecoMapper.to_json(endereco)))


class CatalogoGatewayHttp(ICatalogoGateway):

    def __init__(self, cliente: ClienteApi):
        self.cliente = cliente

    def buscar_produto(self, produto_id: str) -> Produto:
        return ProdutoMapper.to_entity(self.cliente.get(f"/products/{produto_id}"))

    def listar_produtos(self, categoria_id: Optional[str] = None) -> List[Produto]:
        params = {"categoryId": categoria_id} if categoria_id else None
        return [ProdutoMapper.to_entity(p) for p in _lista(self.cliente.get("/products", params=params))]

    def listar_categorias(self) -> List[Categoria]:
        return [CategoriaMapper.to_entity(c) for c in _lista(self.cliente.get("/categories"))]


class BlingGatewayHttp(IBlingGateway):
    """
    Gateway da integração com o ERP Bling (via backend).
    Toda falha vira IntegracaoBlingError, separada dos erros de compra.
    """

    def __init__(self, cliente: ClienteApi):
        self.cliente = cliente

    def _chamar(self, metodo: str, caminho: str, json: Any = None) -> Any:
        try:
            return self.cliente.requisitar(metodo, caminho, json=json)
        except BaseErroCore as e:
            raise IntegracaoBlingError(f"Falha na integração com o Bling: {e.message}") from e

    def status(self) -> StatusBling:
        return StatusBlingMapper.to_entity(self._chamar("GET", "/bling/status") or {})

    def sincronizar_produtos(self) -> Dict[str, Any]:
        return self._chamar("GET", "/bling/sync/products") or {}

    def salvar_credenciais(self, client_id: str, client_secret: str, state: str) -> None:
        self._chamar("POST", "/bling/credentials", {
            "clientId": client_id,
            "clientSecret": client_secret,
            "state": state,
        })

    def sincronizar_pedido(self, pedido_id: str) -> Dict[str, Any]:
        return self._chamar("POST", f"/orders/{pedido_id}/bling") or {}


class AutenticacaoGatewayHttp(IAutenticacaoGateway):

    def __init__(self, cliente: ClienteApi):
        self.cliente = cliente

    def registrar(self, nome: str, email: str, senha: str, papel: str) -> EstadoAutenticacao:
        dados = self.cliente.post("/auth/register", {
            "name": nome,
            "email": email,
            "password": senha,
            "role": papel,
        })
        return AutenticacaoMapper.to_entity(dados)
