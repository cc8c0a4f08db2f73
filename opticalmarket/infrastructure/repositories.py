"""
Camada de Infraestrutura: Implementação dos Repositórios de estado do cliente.

Os repositórios traduzem load()/save() das Portas do Core em leituras e escritas
num armazenamento chave-valor plugável: banco (Django ORM), sessão do Django,
arquivo JSON ou memória.
"""
import json
import logging
import os
import threading
import time
from pathlib import Path
from typing import Any, Dict, Optional, Protocol

from decouple import config

from opticalmarket.core.entities import EstadoAutenticacao, EstadoCarrinho, EstadoSessaoCheckout
from opticalmarket.core.ports import IAutenticacaoRepository, ICarrinhoRepository, ISessaoCheckoutRepository

from .mappers import AutenticacaoMapper, CarrinhoMapper, SessaoCheckoutMapper

logger = logging.getLogger(__name__)


# ====================================================================
# 1. ARMAZENAMENTOS CHAVE-VALOR
# ====================================================================

class IArmazenamento(Protocol):

    def get(self, chave: str) -> Optional[Dict[str, Any]]: ...

    def set(self, chave: str, dados: Dict[str, Any]) -> None: ...

    def delete(self, chave: str) -> None: ...

    def criar(self, chave: str, dados: Dict[str, Any]) -> bool:
        """Grava apenas se a chave não existir. Retorna True se gravou."""
        ...


class ArmazenamentoMemoria(IArmazenamento):
    """Armazenamento em memória (testes e desenvolvimento)."""

    def __init__(self):
        self._dados: Dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, chave):
        bruto = self._dados.get(chave)
        return json.loads(bruto) if bruto is not None else None

    def set(self, chave, dados):
        # Serializa para não compartilhar referências mutáveis com o chamador.
        self._dados[chave] = json.dumps(dados)

    def delete(self, chave):
        self._dados.pop(chave, None)

    def criar(self, chave, dados):
        with self._lock:
            if chave in self._dados:
                return False
            self._dados[chave] = json.dumps(dados)
            return True


class ArmazenamentoArquivoJson(IArmazenamento):
    """Um arquivo JSON por chave dentro de um diretório."""

    def __init__(self, diretorio):
        self.diretorio = Path(diretorio)
        self.diretorio.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def _caminho(self, chave: str) -> Path:
        nome = "".join(c if c.isalnum() or c in "-_" else "_" for c in chave)
        return self.diretorio / f"{nome}.json"

    def get(self, chave):
        caminho = self._caminho(chave)
        if not caminho.exists():
            return None
        with caminho.open(encoding="utf-8") as arquivo:
            return json.load(arquivo)

    def set(self, chave, dados):
        caminho = self._caminho(chave)
        temporario = caminho.with_suffix(".tmp")
        with self._lock:
            with temporario.open("w", encoding="utf-8") as arquivo:
                json.dump(dados, arquivo)
            os.replace(temporario, caminho)

    def delete(self, chave):
        with self._lock:
            self._caminho(chave).unlink(missing_ok=True)

    def criar(self, chave, dados):
        try:
            with self._caminho(chave).open("x", encoding="utf-8") as arquivo:
                json.dump(dados, arquivo)
        except FileExistsError:
            return False
        return True


class ArmazenamentoSessaoDjango(IArmazenamento):
    """Sessão do Django: dura apenas enquanto a sessão do navegador existir."""

    def __init__(self, session):
        self.session = session

    def get(self, chave):
        return self.session.get(chave)

    def set(self, chave, dados):
        self.session[chave] = dados
        self.session.modified = True

    def delete(self, chave):
        if chave in self.session:
            del self.session[chave]
            self.session.modified = True

    def criar(self, chave, dados):
        if chave in self.session:
            return False
        self.set(chave, dados)
        return True


class ArmazenamentoBancoDjango(IArmazenamento):
    """Armazenamento durável no banco via modelo EstadoPersistido."""

    @property
    def EstadoModel(self):
        from django.apps import apps
        return apps.get_model('infrastructure', 'EstadoPersistido')

    def get(self, chave):
        registro = self.EstadoModel.objects.filter(chave=chave).first()
        return registro.dados if registro else None

    def set(self, chave, dados):
        self.EstadoModel.objects.update_or_create(chave=chave, defaults={'dados': dados})

    def delete(self, chave):
        self.EstadoModel.objects.filter(chave=chave).delete()

    def criar(self, chave, dados):
        # A restrição unique de `chave` garante a exclusividade entre processos
        _, criado = self.EstadoModel.objects.get_or_create(chave=chave, defaults={'dados': dados})
        return criado


# ====================================================================
# 2. REPOSITÓRIOS (Implementação das Portas do Core)
# ====================================================================

class CarrinhoRepository(ICarrinhoRepository):
    """Persistência durável do carrinho sob a chave 'cart-storage:<cliente>'."""

    def __init__(self, armazenamento: IArmazenamento, cliente_id: str):
        self.armazenamento = armazenamento
        self.chave = f"cart-storage:{cliente_id}"

    def load(self) -> EstadoCarrinho:
        try:
            return CarrinhoMapper.to_entity(self.armazenamento.get(self.chave))
        except (KeyError, TypeError, ValueError) as e:
            logger.error("Carrinho persistido em '%s' está corrompido e foi descartado: %s", self.chave, e)
            return EstadoCarrinho()

    def save(self, estado: EstadoCarrinho) -> None:
        self.armazenamento.set(self.chave, CarrinhoMapper.to_dict(estado))


class SessaoCheckoutRepository(ISessaoCheckoutRepository):

    CHAVE = "checkout"

    def __init__(self, armazenamento: IArmazenamento):
        self.armazenamento = armazenamento

    def load(self) -> EstadoSessaoCheckout:
        return SessaoCheckoutMapper.to_entity(self.armazenamento.get(self.CHAVE))

    def save(self, estado: EstadoSessaoCheckout) -> None:
        self.armazenamento.set(self.CHAVE, SessaoCheckoutMapper.to_dict(estado))

    def delete(self) -> None:
        self.armazenamento.delete(self.CHAVE)


class AutenticacaoRepository(IAutenticacaoRepository):
    """Persistência durável de {user, token} sob a chave 'auth-storage:<cliente>'."""

    def __init__(self, armazenamento: IArmazenamento, cliente_id: str):
        self.armazenamento = armazenamento
        self.chave = f"auth-storage:{cliente_id}"

    def load(self) -> EstadoAutenticacao:
        try:
            return AutenticacaoMapper.to_entity(self.armazenamento.get(self.chave))
        except (KeyError, TypeError, ValueError) as e:
            logger.error("Falha ao ler dados de autenticação: %s", e)
            return EstadoAutenticacao()

    def save(self, estado: EstadoAutenticacao) -> None:
        self.armazenamento.set(self.chave, AutenticacaoMapper.to_dict(estado))

    def delete(self) -> None:
        self.armazenamento.delete(self.chave)


# ====================================================================
# 3. TRAVA DE SUBMISSÃO DE PEDIDO
# ====================================================================

class TravaSubmissao:
    """
    Trava de submissão por comprador, compartilhada entre processos/workers.

    A posse é o registro 'submissao:<cliente>' gravado de forma atômica no
    armazenamento. O registro expira para que um worker que morreu no meio
    da submissão não bloqueie o comprador para sempre.
    """

    def __init__(self, armazenamento: IArmazenamento, cliente_id: str, validade: Optional[int] = None, relogio=time.time):
        self.armazenamento = armazenamento
        self.chave = f"submissao:{cliente_id}"
        self.validade = validade if validade is not None else config('SUBMISSAO_TRAVA_VALIDADE', default=120, cast=int)
        self.relogio = relogio
        self._possuida = False

    def _tentar(self) -> bool:
        agora = self.relogio()
        if self.armazenamento.criar(self.chave, {"expiraEm": agora + self.validade}):
            return True

        atual = self.armazenamento.get(self.chave)
        if atual is not None and atual.get("expiraEm", 0) < agora:
            logger.warning("Trava %s expirada, assumindo a submissão.", self.chave)
            self.armazenamento.delete(self.chave)
            return self.armazenamento.criar(self.chave, {"expiraEm": agora + self.validade})
        return False

    def acquire(self, blocking: bool = True) -> bool:
        while not self._tentar():
            if not blocking:
                return False
            time.sleep(0.1)
        self._possuida = True
        return True

    def release(self) -> None:
        if not self._possuida:
            raise RuntimeError("Trava de submissão liberada sem ter sido adquirida.")
        self._possuida = False
        self.armazenamento.delete(self.chave)

    def locked(self) -> bool:
        return self.armazenamento.get(self.chave) is not None
