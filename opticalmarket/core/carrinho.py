# opticalmarket/core/carrinho.py
# Store do Carrinho de Compras: estado em memória + persistência durável via repositório.

import logging
import threading
from decimal import Decimal
from typing import Callable, List, Optional

from opticalmarket.core.entities import EstadoCarrinho, ItemCarrinho, ResultadoOperacao
from opticalmarket.core.exceptions import DadosInvalidosError
from opticalmarket.core.ports import ICarrinhoRepository

logger = logging.getLogger(__name__)

Observador = Callable[[EstadoCarrinho], None]


class CarrinhoStore:
    """
    Dono único do carrinho de um comprador.

    Toda mutação é serializada pelo lock do store e persistida pelo repositório
    antes de retornar, de modo que um recarregamento logo após a chamada já
    enxerga o novo estado. O estoque de cada linha é um snapshot do momento
    da adição; o carrinho nunca revalida estoque no backend.
    """

    def __init__(self, repositorio: ICarrinhoRepository):
        self.repositorio = repositorio
        self._lock = threading.RLock()
        self._observadores: List[Observador] = []
        self._itens: List[ItemCarrinho] = list(repositorio.load().itens)

    # --- Métodos de Persistência ---

    def _persistir(self):
        """Salva o estado atual e notifica os observadores."""
        estado = self.snapshot()
        self.repositorio.save(estado)
        for observador in list(self._observadores):
            observador(estado)

    def snapshot(self) -> EstadoCarrinho:
        """Cópia do estado atual (itens copiados, não compartilhados)."""
        with self._lock:
            return EstadoCarrinho(itens=[
                ItemCarrinho(
                    product_id=item.product_id,
                    nome=item.nome,
                    preco=item.preco,
                    quantidade=item.quantidade,
                    estoque=item.estoque,
                    imagem=item.imagem,
                )
                for item in self._itens
            ])

    def inscrever(self, observador: Observador) -> Callable[[], None]:
        """Registra um observador de mudanças. Retorna a função para cancelar a inscrição."""
        self._observadores.append(observador)

        def cancelar():
            if observador in self._observadores:
                self._observadores.remove(observador)

        return cancelar

    # --- Métodos de Manipulação ---

    def add_item(
        self,
        product_id: str,
        nome: str,
        preco: Decimal,
        imagem: Optional[str],
        estoque: int,
        quantidade: int = 1,
    ) -> ResultadoOperacao:
        """Adiciona ou soma a quantidade de um produto, limitando ao estoque."""
        preco = Decimal(str(preco))
        if preco < 0:
            raise DadosInvalidosError("O preço do produto não pode ser negativo.")

        with self._lock:
            if quantidade < 1 or estoque < 1:
                return ResultadoOperacao.REJEITADO

            existente = self._get(product_id)
            solicitada = (existente.quantidade if existente else 0) + quantidade
            nova_quantidade = min(solicitada, estoque)

            if existente:
                existente.quantidade = nova_quantidade
                existente.estoque = estoque
                resultado = ResultadoOperacao.ATUALIZADO
            else:
                self._itens.append(ItemCarrinho(
                    product_id=product_id,
                    nome=nome,
                    preco=preco,
                    quantidade=nova_quantidade,
                    estoque=estoque,
                    imagem=imagem,
                ))
                resultado = ResultadoOperacao.ADICIONADO

            if nova_quantidade < solicitada:
                logger.info("Quantidade do produto %s limitada ao estoque (%s).", product_id, estoque)
                resultado = ResultadoOperacao.LIMITADO

            self._persistir()
            return resultado

    def remove_item(self, product_id: str) -> ResultadoOperacao:
        """Remove a linha se existir; ausência não é erro."""
        with self._lock:
            restantes = [item for item in self._itens if item.product_id != product_id]
            if len(restantes) == len(self._itens):
                return ResultadoOperacao.INALTERADO
            self._itens = restantes
            self._persistir()
            return ResultadoOperacao.REMOVIDO

    def update_quantity(self, product_id: str, quantidade: int) -> ResultadoOperacao:
        """Define a quantidade de uma linha. Acima do estoque a linha fica inalterada."""
        with self._lock:
            if quantidade < 1:
                return self.remove_item(product_id)

            item = self._get(product_id)
            if not item:
                return ResultadoOperacao.INALTERADO
            if quantidade > item.estoque:
                return ResultadoOperacao.REJEITADO

            item.quantidade = quantidade
            self._persistir()
            return ResultadoOperacao.ATUALIZADO

    def clear_cart(self) -> ResultadoOperacao:
        """Esvazia o carrinho incondicionalmente."""
        with self._lock:
            self._itens = []
            self._persistir()
            return ResultadoOperacao.LIMPO

    # --- Métodos de Consulta ---

    def _get(self, product_id: str) -> Optional[ItemCarrinho]:
        return next((item for item in self._itens if item.product_id == product_id), None)

    def get_item(self, product_id: str) -> Optional[ItemCarrinho]:
        with self._lock:
            return self._get(product_id)

    def get_itens(self) -> List[ItemCarrinho]:
        return self.snapshot().itens

    def get_total(self) -> Decimal:
        # Recalculado a cada chamada, nunca armazenado.
        with self._lock:
            return sum((item.subtotal for item in self._itens), Decimal("0"))

    def get_item_count(self) -> int:
        with self._lock:
            return sum(item.quantidade for item in self._itens)

    def is_empty(self) -> bool:
        with self._lock:
            return not self._itens
