# opticalmarket/core/ports.py
"""
Definição das Portas (Interfaces/Protocolos) da Arquitetura Limpa.

Estes protocolos definem o contrato que a camada de Infraestrutura (Repositórios, Gateways)
DEVE seguir para se conectar à camada Core (Store do carrinho, Sessão de checkout, Casos de Uso).
"""

from typing import Protocol, List, Optional, Dict, Any
from abc import abstractmethod

from opticalmarket.core.entities import (
    EstadoCarrinho,
    EstadoSessaoCheckout,
    EstadoAutenticacao,
    Endereco,
    Pedido,
    Produto,
    Categoria,
    ResultadoPagamento,
    StatusBling,
    MetodoPagamento,
)


# ====================================================================
# 1. REPOSITÓRIOS (Portas de Persistência do estado do cliente)
# ====================================================================

class ICarrinhoRepository(Protocol):
    """Persistência durável do carrinho (sobrevive entre sessões do navegador)."""

    @abstractmethod
    def load(self) -> EstadoCarrinho: ...

    @abstractmethod
    def save(self, estado: EstadoCarrinho) -> None: ...


class ISessaoCheckoutRepository(Protocol):
    """Persistência transitória da sessão de checkout (escopo da aba/sessão)."""

    @abstractmethod
    def load(self) -> EstadoSessaoCheckout: ...

    @abstractmethod
    def save(self, estado: EstadoSessaoCheckout) -> None: ...

    @abstractmethod
    def delete(self) -> None: ...


class IAutenticacaoRepository(Protocol):
    """Persistência durável de {user, token}."""

    @abstractmethod
    def load(self) -> EstadoAutenticacao: ...

    @abstractmethod
    def save(self, estado: EstadoAutenticacao) -> None: ...

    @abstractmethod
    def delete(self) -> None: ...


class ITravaSubmissao(Protocol):
    """Trava de submissão por comprador. Mesma assinatura de threading.Lock."""

    @abstractmethod
    def acquire(self, blocking: bool = True) -> bool: ...

    @abstractmethod
    def release(self) -> None: ...


# ====================================================================
# 2. GATEWAYS (Portas do backend REST)
# ====================================================================

class IPedidoGateway(Protocol):

    @abstractmethod
    def criar_pedido(self, endereco_id: str, metodo: MetodoPagamento, itens: List[Dict[str, Any]]) -> Pedido: ...

    @abstractmethod
    def buscar_por_id(self, pedido_id: str) -> Pedido: ...

    @abstractmethod
    def listar_do_comprador(self) -> List[Pedido]: ...

    @abstractmethod
    def listar_do_vendedor(self) -> List[Pedido]: ...

    @abstractmethod
    def atualizar_status(self, pedido_id: str, status: str) -> Pedido: ...


class IPagamentoGateway(Protocol):

    @abstractmethod
    def criar_pagamento(self, pedido_id: str, metodo: MetodoPagamento, email_pagador: Optional[str]) -> ResultadoPagamento: ...

    @abstractmethod
    def verificar_status(self, pedido_id: str) -> str:
        """Retorna o paymentStatus atual do pedido."""
        ...


class IEnderecoGateway(Protocol):

    @abstractmethod
    def listar(self) -> List[Endereco]: ...

    @abstractmethod
    def criar(self, endereco: Endereco) -> Endereco: ...


class ICatalogoGateway(Protocol):

    @abstractmethod
    def buscar_produto(self, produto_id: str) -> Produto: ...

    @abstractmethod
    def listar_produtos(self, categoria_id: Optional[str] = None) -> List[Produto]: ...

    @abstractmethod
    def listar_categorias(self) -> List[Categoria]: ...


class IBlingGateway(Protocol):

    @abstractmethod
    def status(self) -> StatusBling: ...

    @abstractmethod
    def sincronizar_produtos(self) -> Dict[str, Any]: ...

    @abstractmethod
    def salvar_credenciais(self, client_id: str, client_secret: str, state: str) -> None: ...

    @abstractmethod
    def sincronizar_pedido(self, pedido_id: str) -> Dict[str, Any]: ...


class IAutenticacaoGateway(Protocol):

    @abstractmethod
    def registrar(self, nome: str, email: str, senha: str, papel: str) -> EstadoAutenticacao: ...
