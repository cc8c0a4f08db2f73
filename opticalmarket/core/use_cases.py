# opticalmarket/core/use_cases.py
"""
Implementação dos Casos de Uso (Lógica de Negócio) da loja.
Esta camada depende apenas das Entidades e Portas (Interfaces) do Core,
garantindo o isolamento da lógica de negócio.
"""
import logging
import re
import threading
from typing import Dict, List, Optional, Tuple, Union
from urllib.parse import urlparse, parse_qs

from opticalmarket.core.carrinho import CarrinhoStore
from opticalmarket.core.confirmacao import ConfirmacaoPagamento
from opticalmarket.core.entities import (
    Categoria,
    Endereco,
    EstadoAutenticacao,
    EstadoConfirmacao,
    MetodoPagamento,
    OpcaoFrete,
    Pedido,
    Produto,
    ResultadoOperacao,
    ResultadoSubmissao,
    StatusBling,
    Usuario,
)
from opticalmarket.core.exceptions import (
    CarrinhoVazioError,
    CriacaoPagamentoFalhouError,
    CriacaoPedidoFalhouError,
    DadosInvalidosError,
    EnderecoAusenteError,
    ErroApi,
    ErroDeRede,
    IntegracaoBlingError,
    PagamentoAguardandoConfirmacaoError,
    PagamentoNaoAprovadoError,
    PedidoNaoEncontradoError,
    PermissaoNegadaError,
    StatusInvalidoError,
    SubmissaoEmAndamentoError,
)
from opticalmarket.core.ports import (
    IAutenticacaoGateway,
    IAutenticacaoRepository,
    IBlingGateway,
    ICatalogoGateway,
    IEnderecoGateway,
    IPagamentoGateway,
    IPedidoGateway,
    ITravaSubmissao,
)
from opticalmarket.core.sessao_checkout import SessaoCheckout

logger = logging.getLogger(__name__)


def _metodo(valor: Union[str, MetodoPagamento]) -> MetodoPagamento:
    try:
        return MetodoPagamento.from_valor(valor)
    except ValueError:
        raise DadosInvalidosError(
            f"Método de pagamento '{valor}' não suportado.",
            erros={"paymentMethod": "Método de pagamento inválido."},
        )


# ====================================================================
# 1. CASOS DE USO DO CATÁLOGO E CARRINHO
# ====================================================================

class ListarCatalogoUseCase:
    """Caso de Uso responsável por listar produtos e categorias do backend."""
    def __init__(self, catalogo_gateway: ICatalogoGateway):
        self.catalogo_gateway = catalogo_gateway

    def listar_produtos(self, categoria_id: Optional[str] = None) -> List[Produto]:
        return self.catalogo_gateway.listar_produtos(categoria_id)

    def detalhar_produto(self, produto_id: str) -> Produto:
        return self.catalogo_gateway.buscar_produto(produto_id)

    def listar_categorias(self) -> List[Categoria]:
        return self.catalogo_gateway.listar_categorias()


class AdicionarAoCarrinhoUseCase:
    """
    Busca o produto no catálogo e adiciona ao carrinho com o snapshot
    de nome, preço e estoque do momento da adição.
    """
    def __init__(self, catalogo_gateway: ICatalogoGateway):
        self.catalogo_gateway = catalogo_gateway

    def executar(self, carrinho: CarrinhoStore, produto_id: str, quantidade: int = 1) -> ResultadoOperacao:
        produto = self.catalogo_gateway.buscar_produto(produto_id)
        return carrinho.add_item(
            product_id=produto.id,
            nome=produto.nome,
            preco=produto.preco,
            imagem=produto.imagem_principal,
            estoque=produto.estoque,
            quantidade=quantidade,
        )


# ====================================================================
# 2. CASOS DE USO DE ENDEREÇO (ETAPA 1 DO CHECKOUT)
# ====================================================================

CAMPOS_ENDERECO_OBRIGATORIOS = {
    "street": "rua",
    "number": "numero",
    "neighborhood": "bairro",
    "city": "cidade",
    "state": "estado",
    "zipCode": "cep",
}


def validar_endereco(dados: Dict[str, str]) -> Endereco:
    """Valida os campos do formulário de endereço e retorna a Entidade."""
    erros = {}
    valores = {}
    for campo, atributo in CAMPOS_ENDERECO_OBRIGATORIOS.items():
        valor = str(dados.get(campo) or "").strip()
        if not valor:
            erros[campo] = "Este campo é obrigatório."
        valores[atributo] = valor

    if valores["estado"] and not re.fullmatch(r"[A-Za-z]{2}", valores["estado"]):
        erros["state"] = "Informe a sigla do estado com 2 letras."
    if valores["cep"] and len(valores["cep"]) > 9:
        erros["zipCode"] = "O CEP deve ter no máximo 9 caracteres."

    if erros:
        raise DadosInvalidosError("Endereço inválido.", erros=erros)

    valores["estado"] = valores["estado"].upper()
    return Endereco(complemento=(dados.get("complement") or None), **valores)


class GerenciarEnderecosUseCase:
    """Lista, cria e seleciona endereços de entrega para a sessão de checkout."""
    def __init__(self, endereco_gateway: IEnderecoGateway):
        self.endereco_gateway = endereco_gateway

    def listar(self) -> Tuple[List[Endereco], Optional[str]]:
        """Retorna os endereços e o ID pré-selecionado (padrão, senão o primeiro)."""
        enderecos = self.endereco_gateway.listar()
        padrao = next((e for e in enderecos if e.padrao), None)
        if padrao:
            return enderecos, padrao.id
        return enderecos, (enderecos[0].id if enderecos else None)

    def criar(self, dados: Dict[str, str]) -> Endereco:
        endereco = validar_endereco(dados)
        # O primeiro endereço do comprador vira o padrão.
        endereco.padrao = not self.endereco_gateway.listar()
        return self.endereco_gateway.criar(endereco)

    def selecionar(
        self,
        carrinho: CarrinhoStore,
        sessao: SessaoCheckout,
        endereco_id: Optional[str],
        frete: Optional[OpcaoFrete] = None,
    ):
        """Conclui a etapa de endereço gravando a escolha na sessão de checkout."""
        if carrinho.is_empty():
            raise CarrinhoVazioError()
        if not endereco_id:
            raise EnderecoAusenteError()
        sessao.set_address(endereco_id)
        if frete is not None:
            sessao.set_shipping(frete)


# ====================================================================
# 3. CASOS DE USO DE PEDIDO E PAGAMENTO (ETAPA 2 DO CHECKOUT)
# ====================================================================

class SubmeterPedidoUseCase:
    """
    Transforma carrinho + endereço + método em um pedido e depois em um pagamento.

    As duas chamadas são sequenciais (o pagamento depende do ID do pedido) e
    uma segunda submissão concorrente para o mesmo comprador é rejeitada.
    """
    def __init__(
        self,
        pedido_gateway: IPedidoGateway,
        pagamento_gateway: IPagamentoGateway,
        sessao: SessaoCheckout,
        confirmacao: ConfirmacaoPagamento,
        trava: Optional[ITravaSubmissao] = None,
    ):
        self.pedido_gateway = pedido_gateway
        self.pagamento_gateway = pagamento_gateway
        self.sessao = sessao
        self.confirmacao = confirmacao
        self.trava = trava or threading.Lock()

    def executar(
        self,
        carrinho: CarrinhoStore,
        endereco_id: Optional[str],
        metodo_pagamento: Union[str, MetodoPagamento],
        email_pagador: Optional[str] = None,
    ) -> ResultadoSubmissao:
        if carrinho.is_empty():
            raise CarrinhoVazioError("Não é possível finalizar o checkout com o carrinho vazio.")
        if not endereco_id:
            raise EnderecoAusenteError()
        metodo = _metodo(metodo_pagamento)

        if not self.trava.acquire(blocking=False):
            raise SubmissaoEmAndamentoError()
        try:
            # Um PIX já emitido para este checkout bloqueia um segundo pedido do mesmo carrinho
            aguardando = self.sessao.get_pedido_aguardando()
            if aguardando:
                raise PagamentoAguardandoConfirmacaoError(aguardando)

            # 1. Criação do pedido. O preço não é enviado: o backend recalcula.
            itens = [
                {"productId": item.product_id, "quantity": item.quantidade}
                for item in carrinho.get_itens()
            ]
            try:
                pedido = self.pedido_gateway.criar_pedido(endereco_id, metodo, itens)
            except ErroApi as e:
                raise CriacaoPedidoFalhouError(e.message) from e

            logger.info("Pedido %s criado (%s itens, %s).", pedido.id, len(itens), metodo.value)

            # 2. Criação do pagamento
            return self._pagar(pedido.id, metodo, email_pagador)
        finally:
            self.trava.release()

    def retentar_pagamento(
        self,
        metodo_pagamento: Union[str, MetodoPagamento],
        email_pagador: Optional[str] = None,
    ) -> ResultadoSubmissao:
        """Repete apenas a criação do pagamento para o pedido guardado na sessão."""
        pedido_id = self.sessao.get_pedido_pendente()
        if not pedido_id:
            raise PedidoNaoEncontradoError("Não há pedido aguardando pagamento.")
        metodo = _metodo(metodo_pagamento)

        if not self.trava.acquire(blocking=False):
            raise SubmissaoEmAndamentoError()
        try:
            return self._pagar(pedido_id, metodo, email_pagador)
        finally:
            self.trava.release()

    def _pagar(self, pedido_id: str, metodo: MetodoPagamento, email_pagador: Optional[str]) -> ResultadoSubmissao:
        try:
            resultado = self.pagamento_gateway.criar_pagamento(pedido_id, metodo, email_pagador)
        except (ErroApi, ErroDeRede) as e:
            # O pedido já existe: o ID fica na sessão para nova tentativa ou suporte.
            logger.error("Pagamento do pedido %s não foi criado: %s", pedido_id, e)
            self.sessao.set_pedido_pendente(pedido_id)
            raise CriacaoPagamentoFalhouError(pedido_id) from e

        if self.sessao.get_pedido_pendente():
            self.sessao.set_pedido_pendente(None)

        # 3. Entrega ao fluxo de confirmação (aprovado limpa carrinho e sessão)
        estado = self.confirmacao.iniciar(pedido_id, metodo, resultado)
        if estado == EstadoConfirmacao.FALHOU:
            raise PagamentoNaoAprovadoError(pedido_id=pedido_id)

        return ResultadoSubmissao(
            pedido_id=pedido_id,
            pagamento=resultado,
            estado=estado,
            url_redirecionamento=resultado.url_redirecionamento,
        )


# ====================================================================
# 4. CASOS DE USO DE HISTÓRICO DE PEDIDOS
# ====================================================================

class GerenciarPedidosUseCase:
    """Histórico do comprador, painel do vendedor e atualização de status."""

    STATUS_VALIDOS = ["PENDING", "PAID", "SHIPPED", "DELIVERED", "CANCELLED"]

    def __init__(self, pedido_gateway: IPedidoGateway, bling_gateway: Optional[IBlingGateway] = None):
        self.pedido_gateway = pedido_gateway
        self.bling_gateway = bling_gateway

    @staticmethod
    def _exigir_vendedor(usuario: Optional[Usuario]):
        if not usuario or not usuario.is_vendedor:
            raise PermissaoNegadaError()

    def listar_do_comprador(self) -> List[Pedido]:
        return self.pedido_gateway.listar_do_comprador()

    def listar_do_vendedor(self, usuario: Optional[Usuario]) -> List[Pedido]:
        self._exigir_vendedor(usuario)
        return self.pedido_gateway.listar_do_vendedor()

    def detalhar(self, pedido_id: str) -> Pedido:
        try:
            return self.pedido_gateway.buscar_por_id(pedido_id)
        except ErroApi as e:
            if e.status_code == 404:
                raise PedidoNaoEncontradoError(f"Pedido ID {pedido_id} não encontrado.") from e
            raise

    def atualizar_status(self, usuario: Optional[Usuario], pedido_id: str, novo_status: str) -> Pedido:
        self._exigir_vendedor(usuario)
        novo_status_upper = (novo_status or "").upper()
        if novo_status_upper not in self.STATUS_VALIDOS:
            raise StatusInvalidoError(f"O status '{novo_status}' não é um status de pedido válido.")
        return self.pedido_gateway.atualizar_status(pedido_id, novo_status_upper)

    def sincronizar_bling(self, usuario: Optional[Usuario], pedido_id: str):
        """Envia o pedido para o Bling. Falhas são reportadas à parte do fluxo de compra."""
        self._exigir_vendedor(usuario)
        if self.bling_gateway is None:
            raise IntegracaoBlingError("Integração com o Bling não configurada.")
        resposta = self.bling_gateway.sincronizar_pedido(pedido_id)
        if not resposta.get("success"):
            raise IntegracaoBlingError(f"Falha ao sincronizar: {resposta.get('error') or 'erro desconhecido'}")
        logger.info("Pedido %s sincronizado com o Bling.", pedido_id)


# ====================================================================
# 5. CASOS DE USO DA INTEGRAÇÃO BLING (ERP)
# ====================================================================

class IntegracaoBlingUseCase:

    def __init__(self, bling_gateway: IBlingGateway):
        self.bling_gateway = bling_gateway

    def verificar_conexao(self) -> StatusBling:
        return self.bling_gateway.status()

    def sincronizar_produtos(self) -> Dict:
        status = self.bling_gateway.status()
        if not status.disponivel:
            raise IntegracaoBlingError("Conecte sua conta Bling para sincronizar produtos.")
        return self.bling_gateway.sincronizar_produtos()

    def conectar(self, url_convite: str, client_secret: str) -> str:
        """
        Extrai client_id e state da URL de convite, salva as credenciais
        e retorna a URL de autorização OAuth para redirecionamento.
        """
        if not (url_convite or "").strip() or not (client_secret or "").strip():
            raise DadosInvalidosError("Preencha todos os campos.")

        parametros = parse_qs(urlparse(url_convite.strip()).query)
        client_id = (parametros.get("client_id") or [None])[0]
        state = (parametros.get("state") or [None])[0]
        if not client_id or not state:
            raise DadosInvalidosError(
                "URL de convite inválida: parâmetro client_id ou state ausente.",
                erros={"invitationUrl": "client_id e state são obrigatórios."},
            )

        self.bling_gateway.salvar_credenciais(client_id, client_secret.strip(), state)
        return url_convite.strip()


# ====================================================================
# 6. CASOS DE USO DE AUTENTICAÇÃO
# ====================================================================

class AutenticacaoUseCase:
    """Cadastro no backend e manutenção do estado {user, token} persistido."""

    PAPEIS_CADASTRO = ("CUSTOMER", "SELLER")

    def __init__(self, auth_gateway: Optional[IAutenticacaoGateway], auth_repo: IAutenticacaoRepository):
        self.auth_gateway = auth_gateway
        self.auth_repo = auth_repo

    def registrar(self, nome: str, email: str, senha: str, papel: str = "CUSTOMER") -> EstadoAutenticacao:
        erros = {}
        if not (nome or "").strip():
            erros["name"] = "Este campo é obrigatório."
        if not re.fullmatch(r"[^@\s]+@[^@\s]+\.[^@\s]+", email or ""):
            erros["email"] = "Informe um e-mail válido."
        if len(senha or "") < 6:
            erros["password"] = "A senha deve ter pelo menos 6 caracteres."
        if papel not in self.PAPEIS_CADASTRO:
            erros["role"] = "Papel inválido."
        if erros:
            raise DadosInvalidosError("Dados de cadastro inválidos.", erros=erros)

        estado = self.auth_gateway.registrar(nome.strip(), email, senha, papel)
        # Cadastro bem-sucedido já deixa o comprador autenticado
        self.set_auth(estado.usuario, estado.token)
        return estado

    def set_auth(self, usuario: Usuario, token: str):
        self.auth_repo.save(EstadoAutenticacao(usuario=usuario, token=token))

    def estado_atual(self) -> EstadoAutenticacao:
        return self.auth_repo.load()

    def logout(self):
        self.auth_repo.delete()
