"""
Domain exceptions shared by the SCSE apps.

Validation problems use django.core.exceptions.ValidationError and
authorization problems use django.core.exceptions.PermissionDenied, the same
way the rest of the code base does. The classes below cover the remaining
error kinds so the API layer can map each one to a distinct HTTP status
(see scse_project.response_formatter.custom_exception_handler).
"""


class StateConflict(Exception):
    """A transition was attempted against a process that is not in the expected status."""

    def __init__(self, message=None, current_status=None):
        self.current_status = current_status
        if message is None:
            message = f"Ação inválida. Status atual: {current_status}"
        super().__init__(message)


class ReferentialConflict(Exception):
    """A delete/deactivate would break a protected reference (manager, group link, last admin)."""


# ============================================================================
# Authentication errors
# ============================================================================

class AuthenticationError(Exception):
    """Base class for every login failure kind."""

    default_message = 'Falha na autenticação.'

    def __init__(self, message=None):
        super().__init__(message or self.default_message)


class InvalidCredentials(AuthenticationError):
    default_message = 'Usuário ou senha inválidos.'

    def __init__(self, message=None, source='local'):
        # 'local' or 'directory'
        self.source = source
        super().__init__(message)


class AccountDisabled(AuthenticationError):
    default_message = 'Usuário desativado. Contate o administrador.'


class ProfileNotFound(AuthenticationError):
    default_message = 'Autenticado no AD, mas o perfil do usuário não foi encontrado.'


class DirectoryConnectionError(AuthenticationError):
    default_message = 'Não foi possível conectar ao servidor de diretório.'


class DirectoryProfileError(AuthenticationError):
    """Bind succeeded but reading the directory profile failed."""

    default_message = 'Autenticado no AD, mas houve erro ao buscar o perfil do usuário.'


class DirectoryConfigurationError(AuthenticationError):
    default_message = 'Integração com o AD não configurada.'
