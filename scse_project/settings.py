"""
Django settings for scse_project project.

SCSE - Sistema de Controle de Saidas.
Values are read from the environment with development defaults.

For more information on this file, see
https://docs.djangoproject.com/en/5.2/topics/settings/
"""
import os
from datetime import timedelta
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent


def env_bool(name, default=False):
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def env_list(name, default=''):
    return [item.strip() for item in os.getenv(name, default).split(',') if item.strip()]


# SECURITY WARNING: keep the secret key used in production secret!
SECRET_KEY = os.getenv('SECRET_KEY', 'django-insecure-scse-development-key-change-me-in-production')

DEBUG = env_bool('DEBUG', True)

ALLOWED_HOSTS = env_list('ALLOWED_HOSTS', 'localhost,127.0.0.1')


# Application definition

INSTALLED_APPS = [
    'django.contrib.contenttypes',
    'django.contrib.auth',
    'django.contrib.staticfiles',

    'rest_framework',

    # Core apps
    'core.user_accounts',
    'core.audit',
    'core.app_settings',
    'core.notifications',

    # Movement processes
    'movements.machine_exit',
    'movements.transfer',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

ROOT_URLCONF = 'scse_project.urls'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.request',
            ],
        },
    },
]

WSGI_APPLICATION = 'scse_project.wsgi.application'


# Database
# SQLite by default, PostgreSQL when DB_ENGINE=postgresql

if os.getenv('DB_ENGINE', 'sqlite') == 'postgresql':
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.postgresql',
            'NAME': os.getenv('DB_NAME', 'scse'),
            'USER': os.getenv('DB_USER', 'scse'),
            'PASSWORD': os.getenv('DB_PASSWORD', ''),
            'HOST': os.getenv('DB_HOST', 'localhost'),
            'PORT': os.getenv('DB_PORT', '5432'),
        }
    }
else:
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.sqlite3',
            'NAME': os.getenv('DB_NAME', str(BASE_DIR / 'db.sqlite3')),
        }
    }

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

AUTH_USER_MODEL = 'user_accounts.LocalUser'

AUTH_PASSWORD_VALIDATORS = []


# Internationalization

LANGUAGE_CODE = 'pt-br'

TIME_ZONE = os.getenv('TIME_ZONE', 'America/Sao_Paulo')

USE_I18N = True

USE_TZ = True


# Static and uploaded files

STATIC_URL = 'static/'

MEDIA_URL = '/uploads/'
MEDIA_ROOT = os.getenv('MEDIA_ROOT', str(BASE_DIR / 'uploads'))


# ============================================================================
# Django REST Framework
# ============================================================================

REST_FRAMEWORK = {
    'DEFAULT_AUTHENTICATION_CLASSES': (
        'rest_framework_simplejwt.authentication.JWTStatelessUserAuthentication',
    ),
    'DEFAULT_PERMISSION_CLASSES': (
        'rest_framework.permissions.IsAuthenticated',
    ),
    'DEFAULT_RENDERER_CLASSES': (
        'scse_project.response_formatter.StandardizedJSONRenderer',
    ),
    'DEFAULT_PARSER_CLASSES': (
        'rest_framework.parsers.JSONParser',
        'rest_framework.parsers.MultiPartParser',
        'rest_framework.parsers.FormParser',
    ),
    'EXCEPTION_HANDLER': 'scse_project.response_formatter.custom_exception_handler',
}

SIMPLE_JWT = {
    # Re-authentication is required once the access token expires
    'ACCESS_TOKEN_LIFETIME': timedelta(hours=8),
    'ALGORITHM': 'HS256',
    'AUTH_HEADER_TYPES': ('Bearer',),
    'USER_ID_FIELD': 'username',
    'USER_ID_CLAIM': 'username',
    'TOKEN_USER_CLASS': 'core.user_accounts.tokens.SessionUser',
    'UPDATE_LAST_LOGIN': False,
}


# ============================================================================
# Email
# ============================================================================

EMAIL_BACKEND = os.getenv('EMAIL_BACKEND', 'django.core.mail.backends.smtp.EmailBackend')
EMAIL_HOST = os.getenv('EMAIL_HOST', 'localhost')
EMAIL_PORT = int(os.getenv('EMAIL_PORT', '587'))
EMAIL_HOST_USER = os.getenv('EMAIL_HOST_USER', '')
EMAIL_HOST_PASSWORD = os.getenv('EMAIL_HOST_PASSWORD', '')
EMAIL_USE_TLS = env_bool('EMAIL_USE_TLS', False)
EMAIL_TIMEOUT = int(os.getenv('EMAIL_TIMEOUT', '10'))
DEFAULT_FROM_EMAIL = os.getenv('DEFAULT_FROM_EMAIL', 'SCSE <no-reply@scse.local>')


# ============================================================================
# SCSE
# ============================================================================

# Directory service (Active Directory). Every key can be overridden by an
# AppSetting row edited from the admin panel (see core.app_settings).
SCSE_DIRECTORY = {
    'URL': os.getenv('AD_URL', ''),
    'BASE_DN': os.getenv('AD_BASE_DN', ''),
    'BIND_DN': os.getenv('AD_BIND_DN', ''),
    'BIND_PASSWORD': os.getenv('AD_BIND_PASSWORD', ''),
    'ADMIN_GROUP': os.getenv('AD_ADMIN_GROUP', ''),
    'MANAGER_GROUP': os.getenv('AD_MANAGER_GROUP', ''),
    'GATE_GROUP': os.getenv('AD_GATE_GROUP', ''),
    'CONNECT_TIMEOUT': int(os.getenv('AD_CONNECT_TIMEOUT', '5')),
}

SCSE_FRONTEND_URL = os.getenv('FRONTEND_URL', 'http://localhost:5173')

# Approval e-mails are dispatched from a daemon thread after commit
SCSE_NOTIFICATIONS_ASYNC = env_bool('SCSE_NOTIFICATIONS_ASYNC', True)

SCSE_UPLOAD_MAX_BYTES = 10 * 1024 * 1024
SCSE_UPLOAD_SUBDIR = 'nfs'

# Audit details longer than this are truncated
SCSE_AUDIT_DETAILS_MAX_LENGTH = 500


# ============================================================================
# Logging
# ============================================================================

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '{asctime} [{levelname}] {name}: {message}',
            'style': '{',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'verbose',
        },
    },
    'root': {
        'handlers': ['console'],
        'level': 'WARNING',
    },
    'loggers': {
        'core': {
            'handlers': ['console'],
            'level': os.getenv('SCSE_LOG_LEVEL', 'INFO'),
            'propagate': False,
        },
        'movements': {
            'handlers': ['console'],
            'level': os.getenv('SCSE_LOG_LEVEL', 'INFO'),
            'propagate': False,
        },
    },
}
