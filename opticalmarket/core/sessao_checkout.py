# opticalmarket/core/sessao_checkout.py
"""
Estado efêmero compartilhado entre as etapas do checkout (endereço -> pagamento -> confirmação).

Diferente do carrinho, vive apenas enquanto durar a sessão do navegador e é apagado
após um pagamento aprovado ou um cancelamento explícito.
"""
from typing import Optional

from opticalmarket.core.entities import EstadoSessaoCheckout, OpcaoFrete
from opticalmarket.core.exceptions import EnderecoAusenteError, FreteAusenteError
from opticalmarket.core.ports import ISessaoCheckoutRepository


class SessaoCheckout:

    def __init__(self, repositorio: ISessaoCheckoutRepository):
        self.repositorio = repositorio

    def _atualizar(self, **campos) -> EstadoSessaoCheckout:
        estado = self.repositorio.load()
        for nome, valor in campos.items():
            setattr(estado, nome, valor)
        self.repositorio.save(estado)
        return estado

    def set_address(self, endereco_id: str):
        self._atualizar(endereco_id=endereco_id)

    def get_address(self) -> Optional[str]:
        return self.repositorio.load().endereco_id

    def set_shipping(self, frete: Optional[OpcaoFrete]):
        self._atualizar(frete=frete)

    def get_shipping(self) -> Optional[OpcaoFrete]:
        return self.repositorio.load().frete

    def set_pedido_pendente(self, pedido_id: Optional[str]):
        """Guarda um pedido criado cujo pagamento ainda não foi iniciado."""
        self._atualizar(pedido_pendente_id=pedido_id)

    def get_pedido_pendente(self) -> Optional[str]:
        return self.repositorio.load().pedido_pendente_id

    def set_pedido_aguardando(self, pedido_id: Optional[str]):
        """Guarda o pedido deste checkout cujo pagamento aguarda confirmação."""
        self._atualizar(pedido_aguardando_id=pedido_id)

    def get_pedido_aguardando(self) -> Optional[str]:
        return self.repositorio.load().pedido_aguardando_id

    def marcar_pedido_falho(self, pedido_id: str):
        """Falha é terminal para o pedido: ele não volta a ser aguardado."""
        estado = self.repositorio.load()
        estado.pedido_falho_id = pedido_id
        if estado.pedido_aguardando_id == pedido_id:
            estado.pedido_aguardando_id = None
        self.repositorio.save(estado)

    def get_pedido_falho(self) -> Optional[str]:
        return self.repositorio.load().pedido_falho_id

    def exigir_endereco(self) -> str:
        """Guarda da etapa de pagamento: sem endereço, volta para a etapa de endereço."""
        endereco_id = self.get_address()
        if not endereco_id:
            raise EnderecoAusenteError()
        return endereco_id

    def exigir_frete(self) -> OpcaoFrete:
        frete = self.get_shipping()
        if frete is None:
            raise FreteAusenteError()
        return frete

    def clear(self):
        self.repositorio.delete()
