from typing import Dict, Optional


class BaseErroCore(Exception):
    """Classe base para todas as exceções da Camada Core."""
    message = "Ocorreu um erro inesperado."

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.message
        super().__init__(self.message)


class DadosInvalidosError(BaseErroCore):
    """Erro levantado quando dados inválidos são fornecidos (validação de formulário)."""
    message = "Os dados fornecidos são inválidos."

    def __init__(self, message: Optional[str] = None, erros: Optional[Dict[str, str]] = None):
        self.erros = erros or {}
        super().__init__(message)


class StatusInvalidoError(DadosInvalidosError):
    """Erro levantado ao tentar definir um status de pedido inválido."""
    message = "O status fornecido não é válido para um pedido."


class PermissaoNegadaError(BaseErroCore):
    """O usuário atual não tem o papel exigido para a operação."""
    message = "Você não tem permissão para executar esta operação."


# ===============================================
# ERROS DE FLUXO DE CHECKOUT
# ===============================================

class CarrinhoVazioError(BaseErroCore):
    """Erro levantado ao tentar fazer checkout com carrinho vazio."""
    message = "O carrinho de compras está vazio."
    redirecionar_para = "/cart"


class EnderecoAusenteError(BaseErroCore):
    """Nenhum endereço de entrega foi selecionado na sessão de checkout."""
    message = "Selecione um endereço de entrega."
    redirecionar_para = "/checkout"


class FreteAusenteError(EnderecoAusenteError):
    """A variante do fluxo exige frete e nenhuma opção foi escolhida."""
    message = "Selecione uma opção de frete."


class SubmissaoEmAndamentoError(BaseErroCore):
    """Já existe uma submissão de pedido em andamento para este comprador."""
    message = "Seu pedido já está sendo processado."


class PagamentoAguardandoConfirmacaoError(SubmissaoEmAndamentoError):
    """
    O último pedido do checkout ainda aguarda a confirmação do pagamento.
    Um novo pedido só é aceito depois da confirmação, da falha ou do cancelamento do checkout.
    """
    message = "Seu último pedido ainda aguarda a confirmação do pagamento."

    def __init__(self, pedido_id: str, message: Optional[str] = None):
        self.pedido_id = pedido_id
        super().__init__(message)


# ===============================================
# ERROS DE REDE
# ===============================================

class ErroDeRede(BaseErroCore):
    """Falha de transporte ao falar com o backend. Operação pode ser repetida."""
    message = "Falha de comunicação com o servidor."


class TempoEsgotadoError(ErroDeRede):
    """A requisição ao backend excedeu o tempo limite."""
    message = "O servidor demorou demais para responder."


class ErroApi(BaseErroCore):
    """O backend respondeu com um status de erro (4xx/5xx)."""

    def __init__(self, message: Optional[str] = None, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


# ===============================================
# ERROS DE PEDIDO E PAGAMENTO
# ===============================================

class CriacaoPedidoFalhouError(BaseErroCore):
    """O backend rejeitou a criação do pedido (ex: conflito de estoque)."""
    message = "Não foi possível criar o pedido."


class CriacaoPagamentoFalhouError(BaseErroCore):
    """O pedido existe, mas o pagamento não foi criado. O ID do pedido é preservado."""
    message = "O pedido foi criado, mas o pagamento não pôde ser iniciado."

    def __init__(self, pedido_id: str, message: Optional[str] = None):
        self.pedido_id = pedido_id
        super().__init__(message)


class PagamentoNaoAprovadoError(BaseErroCore):
    """O pagamento foi processado e recusado."""
    message = "O pagamento não foi aprovado. Tente outro método de pagamento."

    def __init__(self, pedido_id: Optional[str] = None, message: Optional[str] = None):
        self.pedido_id = pedido_id
        super().__init__(message)


class PedidoNaoEncontradoError(BaseErroCore):
    """Erro específico para Pedidos não encontrados."""
    message = "O pedido solicitado não foi encontrado."


# ===============================================
# ERROS DE INTEGRAÇÃO EXTERNA
# ===============================================

class IntegracaoBlingError(BaseErroCore):
    """Falha na integração com o ERP Bling. Nunca bloqueia carrinho/checkout."""
    message = "Falha na integração com o Bling."
