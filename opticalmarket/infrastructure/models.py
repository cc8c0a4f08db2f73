# Define os modelos do banco de dados da camada de infraestrutura.

from django.db import models


class EstadoPersistido(models.Model):
    """
    Armazenamento chave-valor durável para o estado do cliente
    (carrinho e autenticação), serializado em JSON.
    """
    chave = models.CharField('Chave', max_length=255, unique=True)
    dados = models.JSONField('Dados', default=dict)
    atualizado_em = models.DateTimeField('Atualizado em', auto_now=True)

    class Meta:
        verbose_name = 'Estado Persistido'
        verbose_name_plural = 'Estados Persistidos'

    def __str__(self):
        return self.chave
