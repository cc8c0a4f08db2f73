from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import List, Optional, Dict, Any

# ====================================================================
# ENTIDADES CORE
# Representam os objetos de negócio puros da loja (sem Django).
# ====================================================================


class MetodoPagamento(str, Enum):
    """Métodos de pagamento aceitos pelo backend (variante fechada)."""
    PIX = "PIX"
    CREDIT_CARD = "CREDIT_CARD"

    @classmethod
    def from_valor(cls, valor: str) -> "MetodoPagamento":
        return cls(str(valor).upper())


class EstadoConfirmacao(str, Enum):
    """Estados do fluxo de confirmação de pagamento."""
    AGUARDANDO_ACAO = "AGUARDANDO_ACAO"
    PENDENTE = "PENDENTE"
    APROVADO = "APROVADO"
    FALHOU = "FALHOU"

    @property
    def terminal(self) -> bool:
        return self in (EstadoConfirmacao.APROVADO, EstadoConfirmacao.FALHOU)


class ResultadoOperacao(str, Enum):
    """Resultado de uma mutação do carrinho."""
    ADICIONADO = "ADICIONADO"
    ATUALIZADO = "ATUALIZADO"
    LIMITADO = "LIMITADO"      # quantidade ajustada ao teto de estoque
    REJEITADO = "REJEITADO"
    REMOVIDO = "REMOVIDO"
    INALTERADO = "INALTERADO"
    LIMPO = "LIMPO"


@dataclass
class ItemCarrinho:
    """Linha do carrinho: snapshot do produto no momento da adição."""
    product_id: str
    nome: str
    preco: Decimal
    quantidade: int
    estoque: int
    imagem: Optional[str] = None

    @property
    def subtotal(self) -> Decimal:
        return self.preco * self.quantidade


@dataclass
class EstadoCarrinho:
    """Estado persistido do carrinho (sequência ordenada de itens)."""
    itens: List[ItemCarrinho] = field(default_factory=list)


@dataclass
class OpcaoFrete:
    """Opção de frete escolhida na etapa de endereço."""
    nome: str
    preco: Decimal
    prazo_dias: int


@dataclass
class EstadoSessaoCheckout:
    """Estado efêmero que liga as etapas endereço -> pagamento -> confirmação."""
    endereco_id: Optional[str] = None
    frete: Optional[OpcaoFrete] = None
    pedido_pendente_id: Optional[str] = None
    # Pedido cujo pagamento foi criado e aguarda confirmação (PIX / checkout externo)
    pedido_aguardando_id: Optional[str] = None
    pedido_falho_id: Optional[str] = None


@dataclass
class Endereco:
    """Endereço de entrega pertencente ao comprador (mantido pelo backend)."""
    rua: str
    numero: str
    bairro: str
    cidade: str
    estado: str
    cep: str
    complemento: Optional[str] = None
    padrao: bool = False
    id: Optional[str] = None


@dataclass
class Usuario:
    """Usuário autenticado, como devolvido pelo backend."""
    id: str
    email: str
    nome: str
    papel: str = "CUSTOMER"  # CUSTOMER | SELLER | ADMIN

    @property
    def is_vendedor(self) -> bool:
        return self.papel in ("SELLER", "ADMIN")


@dataclass
class EstadoAutenticacao:
    """Estado persistido da autenticação: {user, token}."""
    usuario: Optional[Usuario] = None
    token: Optional[str] = None

    @property
    def autenticado(self) -> bool:
        return bool(self.usuario and self.token)


@dataclass
class Produto:
    """Produto do catálogo (somente leitura na loja)."""
    id: str
    nome: str
    preco: Decimal
    estoque: int
    imagens: List[str] = field(default_factory=list)
    descricao: Optional[str] = None
    categoria_id: Optional[str] = None

    @property
    def imagem_principal(self) -> Optional[str]:
        return self.imagens[0] if self.imagens else None


@dataclass
class Categoria:
    id: str
    nome: str


@dataclass
class ItemPedido:
    """Item de um pedido com o preço autoritativo do backend."""
    product_id: str
    nome: str
    preco: Decimal
    quantidade: int


@dataclass
class Pedido:
    """Pedido de venda, de propriedade do backend."""
    id: str
    status: str
    status_pagamento: Optional[str]
    metodo_pagamento: Optional[str]
    total: Decimal
    itens: List[ItemPedido] = field(default_factory=list)
    endereco: Optional[Endereco] = None
    criado_em: Optional[str] = None
    comprador: Optional[Dict[str, Any]] = None


@dataclass
class ResultadoPagamento:
    """Resposta da criação de pagamento."""
    pagamento_id: Optional[str]
    status: str
    pix_qr_code: Optional[str] = None
    pix_qr_code_base64: Optional[str] = None
    ticket_url: Optional[str] = None
    init_point: Optional[str] = None
    sandbox_init_point: Optional[str] = None

    @property
    def url_redirecionamento(self) -> Optional[str]:
        """URL externa onde o comprador conclui o pagamento, se houver."""
        return self.sandbox_init_point or self.init_point or self.ticket_url

    @property
    def possui_artefato(self) -> bool:
        return bool(self.pix_qr_code or self.pix_qr_code_base64 or self.url_redirecionamento)


@dataclass
class ResultadoSubmissao:
    """Retorno do fluxo de submissão de pedido."""
    pedido_id: str
    pagamento: ResultadoPagamento
    estado: EstadoConfirmacao
    url_redirecionamento: Optional[str] = None


@dataclass
class ResultadoVerificacao:
    """Retorno de uma verificação de status de pagamento."""
    estado: EstadoConfirmacao
    confirmado: bool
    mensagem: str
    url_confirmacao: Optional[str] = None


@dataclass
class StatusBling:
    configurado: bool
    conectado: bool

    @property
    def disponivel(self) -> bool:
        return self.configurado and self.conectado
