"""
Permission decorators for function-based views.
"""
import logging
from functools import wraps

from rest_framework import status

from scse_project.response_formatter import error_response

logger = logging.getLogger(__name__)


def require_capability(*capabilities):
    """
    Decorator that checks the session holds ANY of the given capabilities (OR logic).

    Capabilities are read from the token claims (no database round trip).

    Usage:
        @api_view(['GET'])
        @require_capability(Capability.VIEW_AUDIT_LOG, Capability.ACCESS_ADMIN_PANEL)
        def audit_event_list(request):
            ...
    """
    def decorator(view_func):
        @wraps(view_func)
        def wrapper(request, *args, **kwargs):
            user = request.user
            if not user or not user.is_authenticated:
                return error_response(
                    'Autenticação necessária.',
                    status_code=status.HTTP_401_UNAUTHORIZED
                )

            permissions = getattr(user, 'permissions', None)
            if permissions is not None and permissions.has_any(*capabilities):
                return view_func(request, *args, **kwargs)

            required = [getattr(capability, 'value', capability) for capability in capabilities]
            logger.warning(
                f"Access denied for '{user.username}' on {request.method} {request.path}: "
                f"requires any of {required}"
            )
            return error_response(
                'Acesso negado. Permissão insuficiente.',
                data={'required_permissions': required},
                status_code=status.HTTP_403_FORBIDDEN
            )

        return wrapper
    return decorator
