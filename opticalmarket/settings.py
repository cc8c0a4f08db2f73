"""
Configurações para o projeto Optical Market.
"""

import os
from decouple import config, Csv
from pathlib import Path

# Build paths inside the project like this: BASE_DIR / 'subdir'.
BASE_DIR = Path(__file__).resolve().parent.parent


# ====================================================================
# CONFIGURAÇÕES BÁSICAS
# ====================================================================

# A SECRET_KEY deve ser lida de uma variável de ambiente por segurança.
SECRET_KEY = config('SECRET_KEY', default='django-insecure-default-key-for-development')

# SECURITY WARNING: don't run with debug turned on in production!
DEBUG = config('DEBUG', default=False, cast=bool)

ALLOWED_HOSTS = config('ALLOWED_HOSTS', default='localhost,127.0.0.1,testserver', cast=Csv())


# ====================================================================
# APLICAÇÕES INSTALADAS
# ====================================================================

INSTALLED_APPS = [
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.staticfiles',

    # Aplicações de Terceiros (Primeiro)
    'rest_framework',
    'drf_spectacular',

    # Nossas Aplicações
    'opticalmarket.infrastructure.apps.InfrastructureConfig', # Estado persistido e Gateways
    'opticalmarket.presentation.apps.PresentationConfig', # API do storefront
]


# ====================================================================
# MIDDLEWARE
# ====================================================================

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',

    # Identifica o comprador por cookie persistente (chave do carrinho durável)
    'opticalmarket.presentation.middleware.IdentificacaoClienteMiddleware',
]

ROOT_URLCONF = 'opticalmarket.urls'

WSGI_APPLICATION = 'opticalmarket.wsgi.application'


# ====================================================================
# CONFIGURAÇÃO DO BANCO DE DADOS
# ====================================================================

DB_ENGINE = config('DB_ENGINE', default='django.db.backends.sqlite3')

if DB_ENGINE == 'django.db.backends.sqlite3':
    DATABASES = {
        'default': {
            'ENGINE': DB_ENGINE,
            'NAME': config('DB_NAME', default=str(BASE_DIR / 'db.sqlite3')),
        }
    }
else:
    # PostgreSQL (psycopg2)
    DATABASES = {
        'default': {
            'ENGINE': DB_ENGINE,
            'NAME': config('DB_NAME', default='opticalmarket'),
            'USER': config('DB_USER', default='postgres'),
            'PASSWORD': config('DB_PASSWORD', default=''),
            'HOST': config('DB_HOST', default='localhost'),
            'PORT': config('DB_PORT', default=5432, cast=int),
        }
    }


# ====================================================================
# SESSÃO (Estado efêmero do checkout)
# ====================================================================

# A sessão de checkout vive apenas enquanto o navegador estiver aberto.
SESSION_EXPIRE_AT_BROWSER_CLOSE = True

# Cookie persistente que identifica o comprador (carrinho e autenticação duráveis)
CLIENTE_COOKIE_NAME = config('CLIENTE_COOKIE_NAME', default='om_cliente_id')
CLIENTE_COOKIE_MAX_AGE = config('CLIENTE_COOKIE_MAX_AGE', default=60 * 60 * 24 * 365, cast=int)


# ====================================================================
# INTERNACIONALIZAÇÃO
# ====================================================================

LANGUAGE_CODE = 'pt-br'

TIME_ZONE = 'America/Sao_Paulo'

USE_I18N = True

USE_TZ = True


# ====================================================================
# ARQUIVOS ESTÁTICOS
# ====================================================================

STATIC_URL = '/static/'
STATIC_ROOT = os.path.join(BASE_DIR, 'staticfiles')

# Default primary key field type
DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'


# ====================================================================
# CONFIGURAÇÕES DO DJANGO REST FRAMEWORK (DRF) E DOCS (SPECTACULAR)
# ====================================================================

SPECTACULAR_SETTINGS = {
    'TITLE': 'API do Optical Market',
    'DESCRIPTION': 'Carrinho, checkout e confirmação de pagamento do storefront Optical Market.',
    'VERSION': '1.0.0',
    'SERVE_INCLUDE_SCHEMA': False,
}

REST_FRAMEWORK = {
    # A autenticação é do backend REST: o token do comprador é apenas repassado.
    'DEFAULT_AUTHENTICATION_CLASSES': [],
    'DEFAULT_PERMISSION_CLASSES': ['rest_framework.permissions.AllowAny'],
    'UNAUTHENTICATED_USER': None,
    'DEFAULT_SCHEMA_CLASS': 'drf_spectacular.openapi.AutoSchema',
}


# ====================================================================
# CONFIGURAÇÕES DE SERVIÇOS EXTERNOS (Backend REST e Checkout)
# ====================================================================

# Backend REST da loja (pedidos, pagamentos, endereços, catálogo, Bling)
API_URL = config('API_URL', default='http://localhost:3000/api')
API_TIMEOUT = config('API_TIMEOUT', default=15, cast=float)

# Exige a escolha de frete na etapa de endereço
CHECKOUT_EXIGE_FRETE = config('CHECKOUT_EXIGE_FRETE', default=False, cast=bool)

# Polling automático da confirmação de pagamento (PIX).
# O polling roda dentro da requisição e ocupa o worker por até
# POLLING_INTERVALO * (POLLING_MAX_TENTATIVAS - 1) segundos (+ timeouts do backend).
# O frontend pode preferir chamadas manuais (automatico=false) em intervalos próprios.
POLLING_INTERVALO = config('POLLING_INTERVALO', default=2, cast=float)
POLLING_MAX_TENTATIVAS = config('POLLING_MAX_TENTATIVAS', default=5, cast=int)

# Validade (segundos) da trava de submissão de pedido compartilhada entre workers
SUBMISSAO_TRAVA_VALIDADE = config('SUBMISSAO_TRAVA_VALIDADE', default=120, cast=int)


# Configurações de Logging
LOG_FILE = config('LOG_FILE', default=str(BASE_DIR / 'logs' / 'opticalmarket.log'))
os.makedirs(os.path.dirname(LOG_FILE), exist_ok=True)

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'handlers': {
        'console': {
            'level': config('LOG_LEVEL', default='INFO'),
            'class': 'logging.StreamHandler',
            'formatter': 'verbose',
        },
        'file': {
            'level': config('LOG_LEVEL', default='INFO'),
            'class': 'logging.handlers.RotatingFileHandler',
            'filename': LOG_FILE,
            'maxBytes': 1024 * 1024 * 5,  # 5 MB
            'backupCount': 5,
            'formatter': 'verbose',
        },
    },
    'formatters': {
        'verbose': {
            'format': '{levelname} {asctime} {module} {process:d} {thread:d} {message}',
            'style': '{',
        },
    },
    'loggers': {
        'django': {
            'handlers': ['console', 'file'],
            'level': 'WARNING',
            'propagate': True,
        },
        'opticalmarket': {
            'handlers': ['console', 'file'],
            'level': 'INFO',
            'propagate': False,
        },
    },
}
