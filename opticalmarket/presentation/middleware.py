"""
Middleware de identificação do comprador.
"""
import re
import uuid

from django.conf import settings

_FORMATO_ID = re.compile(r"^[0-9a-f]{32}$")


class IdentificacaoClienteMiddleware:
    """
    Garante um identificador persistente por navegador em `request.cliente_id`.
    É a chave do carrinho e da autenticação duráveis, que sobrevivem ao
    fechamento do navegador (ao contrário da sessão de checkout).
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        cookie = request.COOKIES.get(settings.CLIENTE_COOKIE_NAME, "")
        novo = not _FORMATO_ID.match(cookie)
        request.cliente_id = uuid.uuid4().hex if novo else cookie

        response = self.get_response(request)

        if novo:
            response.set_cookie(
                settings.CLIENTE_COOKIE_NAME,
                request.cliente_id,
                max_age=settings.CLIENTE_COOKIE_MAX_AGE,
                httponly=True,
                samesite='Lax',
            )
        return response
