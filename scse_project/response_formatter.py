"""
Custom Response Formatter for Standardized API Responses

Ensures all API responses follow the format:
{
    "status": "success" | "error",
    "message": "string message or empty",
    "data": {...} | [] | null
}

Domain exceptions raised by the services are translated here, so views can
let them propagate:

    django ValidationError         -> 400
    AuthenticationError family     -> 401 / 403 / 502 / 503
    django PermissionDenied        -> 403
    ObjectDoesNotExist / Http404   -> 404
    StateConflict, ReferentialConflict -> 409
"""
import logging

from django.core.exceptions import ObjectDoesNotExist, ValidationError as DjangoValidationError
from rest_framework import status as http_status
from rest_framework.renderers import JSONRenderer
from rest_framework.response import Response
from rest_framework.views import exception_handler

from core.base.exceptions import (
    AccountDisabled,
    AuthenticationError,
    DirectoryConfigurationError,
    DirectoryConnectionError,
    DirectoryProfileError,
    InvalidCredentials,
    ProfileNotFound,
    ReferentialConflict,
    StateConflict,
)

logger = logging.getLogger(__name__)


AUTHENTICATION_STATUS = (
    (InvalidCredentials, http_status.HTTP_401_UNAUTHORIZED),
    (AccountDisabled, http_status.HTTP_403_FORBIDDEN),
    (ProfileNotFound, http_status.HTTP_502_BAD_GATEWAY),
    (DirectoryProfileError, http_status.HTTP_502_BAD_GATEWAY),
    (DirectoryConnectionError, http_status.HTTP_503_SERVICE_UNAVAILABLE),
    (DirectoryConfigurationError, http_status.HTTP_503_SERVICE_UNAVAILABLE),
)


def custom_exception_handler(exc, context):
    """
    Custom exception handler that formats all error responses consistently.

    Converts DRF's default error format (and the domain exceptions listed in
    the module docstring) into our standard format:
    {
        "status": "error",
        "message": "Error message",
        "data": null
    }
    """
    domain_response = handle_domain_exception(exc)
    if domain_response is not None:
        return domain_response

    # Call DRF's default exception handler first
    response = exception_handler(exc, context)

    if response is not None:
        response.data = format_error_response(response.data, response.status_code)

    return response


def handle_domain_exception(exc):
    """Build an error Response for exceptions DRF does not know about, or None."""
    if isinstance(exc, DjangoValidationError):
        return error_response(validation_message(exc), status_code=http_status.HTTP_400_BAD_REQUEST)

    if isinstance(exc, AuthenticationError):
        for exc_class, status_code in AUTHENTICATION_STATUS:
            if isinstance(exc, exc_class):
                return error_response(str(exc), status_code=status_code)
        return error_response(str(exc), status_code=http_status.HTTP_401_UNAUTHORIZED)

    if isinstance(exc, StateConflict):
        return error_response(
            str(exc),
            data={'current_status': exc.current_status},
            status_code=http_status.HTTP_409_CONFLICT
        )

    if isinstance(exc, ReferentialConflict):
        return error_response(str(exc), status_code=http_status.HTTP_409_CONFLICT)

    if isinstance(exc, ObjectDoesNotExist):
        return error_response(str(exc) or 'Registro não encontrado.', status_code=http_status.HTTP_404_NOT_FOUND)

    return None


def validation_message(exc):
    """Flatten a django ValidationError into one message string."""
    if hasattr(exc, 'error_dict'):
        return format_error_response(exc.message_dict, http_status.HTTP_400_BAD_REQUEST)['message']
    return ', '.join(str(message) for message in exc.messages)


def format_error_response(errors, status_code):
    """
    Format error responses into standard format.

    Handles various error formats:
    - {"field": ["error1", "error2"]} -> "field: error1, error2"
    - {"detail": "message"} -> "message"
    - ["error1", "error2"] -> "error1, error2"
    """
    message = ""

    if isinstance(errors, dict):
        error_messages = []
        for field, field_errors in errors.items():
            if field in ('detail', 'non_field_errors', '__all__'):
                if isinstance(field_errors, list):
                    error_messages.append(', '.join(str(e) for e in field_errors))
                else:
                    message = str(field_errors)
            elif isinstance(field_errors, list):
                error_messages.append(f"{field}: {', '.join(str(e) for e in field_errors)}")
            elif isinstance(field_errors, dict):
                error_messages.append(f"{field}: {format_nested_errors(field_errors)}")
            else:
                error_messages.append(f"{field}: {str(field_errors)}")

        if error_messages:
            message = "; ".join(error_messages)

    elif isinstance(errors, list):
        message = ", ".join(str(e) for e in errors)

    else:
        message = str(errors)

    return {
        "status": "error",
        "message": message,
        "data": None
    }


def format_nested_errors(errors_dict):
    """Format nested error dictionaries."""
    messages = []
    for key, value in errors_dict.items():
        if isinstance(value, list):
            messages.append(f"{key}: {', '.join(str(v) for v in value)}")
        elif isinstance(value, dict):
            messages.append(f"{key}: {format_nested_errors(value)}")
        else:
            messages.append(f"{key}: {str(value)}")
    return "; ".join(messages)


class StandardizedJSONRenderer(JSONRenderer):
    """
    Custom JSON renderer that wraps all successful responses in standard format.

    Automatically wraps responses that aren't already formatted.
    """

    def render(self, data, accepted_media_type=None, renderer_context=None):
        response = renderer_context.get('response') if renderer_context else None
        # 204 No Content keeps an empty body
        if response is not None and response.status_code == 204:
            return b''
        if response is not None and not self.is_already_formatted(data):
            if response.status_code >= 400:
                data = format_error_response(data, response.status_code)
            else:
                data = self.format_success_response(data)

        return super().render(data, accepted_media_type, renderer_context)

    def is_already_formatted(self, data):
        """Check if response is already in our standard format."""
        if isinstance(data, dict):
            return 'status' in data and 'message' in data and 'data' in data
        return False

    def format_success_response(self, data):
        if isinstance(data, dict) and 'detail' in data:
            message = str(data['detail'])
            response_data = None
        elif data is None or (isinstance(data, dict) and not data):
            message = ""
            response_data = None
        else:
            message = ""
            response_data = data

        return {
            "status": "success",
            "message": message,
            "data": response_data
        }


def success_response(data=None, message="", status_code=http_status.HTTP_200_OK):
    """
    Helper function to create standardized success responses.

    Usage:
        from scse_project.response_formatter import success_response

        return success_response(
            data=serializer.data,
            message="Saída registrada com sucesso",
            status_code=status.HTTP_201_CREATED
        )
    """
    return Response({
        "status": "success",
        "message": message,
        "data": data
    }, status=status_code)


def error_response(message, data=None, status_code=http_status.HTTP_400_BAD_REQUEST):
    """
    Helper function to create standardized error responses.

    Usage:
        from scse_project.response_formatter import error_response

        return error_response(
            message="Processo não encontrado",
            status_code=status.HTTP_404_NOT_FOUND
        )
    """
    return Response({
        "status": "error",
        "message": message,
        "data": data
    }, status=status_code)
