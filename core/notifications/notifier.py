"""
E-mail notifier.

Delivery is best-effort: failures are logged and reported through the
returned DeliveryResult, never raised to the caller. Approval requests are
dispatched after the surrounding transaction commits, from a daemon thread
unless settings.SCSE_NOTIFICATIONS_ASYNC is False.
"""
import logging
import re
import threading
from dataclasses import dataclass
from typing import Optional

from django.conf import settings
from django.core.mail import EmailMultiAlternatives
from django.db import transaction
from django.utils import timezone
from django.utils.html import escape

from core.app_settings.services import (
    EMAIL_APPROVAL_BODY,
    EMAIL_APPROVAL_SUBJECT,
    FRONTEND_URL,
    get_setting,
)
from core.audit.logger import EntityType, record_event

logger = logging.getLogger(__name__)


TAG_PATTERN = re.compile(r'\{\{([A-Z_]+)\}\}')
NOT_AVAILABLE = 'N/D'


@dataclass
class DeliveryResult:
    delivered: bool
    recipient: Optional[str] = None
    error: Optional[str] = None


def render_template(template, data) -> str:
    """Replace {{TAG}} placeholders; tags missing from data are left unchanged."""
    if not template:
        return ''

    def replace(match):
        tag = match.group(1)
        if tag in data:
            return str(data[tag])
        return match.group(0)

    return TAG_PATTERN.sub(replace, template)


def send(subject, body, recipient) -> DeliveryResult:
    """
    Send one message (plain text plus an HTML alternative).

    Returns:
        DeliveryResult with delivered=False and the error text on failure.
    """
    if not recipient:
        return DeliveryResult(delivered=False, error='Destinatário não informado.')

    html_body = escape(body).replace('\n', '<br>')
    message = EmailMultiAlternatives(
        subject=subject,
        body=body,
        from_email=settings.DEFAULT_FROM_EMAIL,
        to=[recipient],
    )
    message.attach_alternative(html_body, 'text/html')

    try:
        message.send(fail_silently=False)
    except Exception as e:
        logger.error(f"E-mail delivery to {recipient} failed: {e}")
        return DeliveryResult(delivered=False, recipient=recipient, error=str(e))

    logger.info(f"E-mail '{subject}' sent to {recipient}")
    return DeliveryResult(delivered=True, recipient=recipient)


def dispatch(subject, body, recipient):
    """Send now or from a daemon thread, depending on settings."""
    if getattr(settings, 'SCSE_NOTIFICATIONS_ASYNC', True):
        thread = threading.Thread(target=send, args=(subject, body, recipient), daemon=True)
        thread.start()
        return None
    return send(subject, body, recipient)


# ============================================================================
# Approval request
# ============================================================================

def _format_date(value):
    if not value:
        return None
    if hasattr(value, 'hour') and timezone.is_aware(value):
        value = timezone.localtime(value)
    return value.strftime('%d/%m/%Y')


def approval_context(process, recipient_email) -> dict:
    """Tag values for the approval e-mail of a machine exit process."""
    from core.user_accounts.models import LocalUser

    manager_name = recipient_email
    try:
        manager = LocalUser.objects.filter(email__iexact=recipient_email).only('display_name').first()
        if manager and manager.display_name:
            manager_name = manager.display_name
    except Exception:
        logger.exception(f"Could not look up the name of {recipient_email}; using the e-mail instead")

    base_url = (get_setting(FRONTEND_URL) or settings.SCSE_FRONTEND_URL).rstrip('/')
    return {
        'GESTOR_NOME': manager_name,
        'SOLICITANTE': process.requester_name or NOT_AVAILABLE,
        'AREA_RESPONSAVEL': process.responsible_area or NOT_AVAILABLE,
        'ID_SOLICITACAO': process.pk or NOT_AVAILABLE,
        'DESCRICAO_MATERIAL': process.material_description or NOT_AVAILABLE,
        'MOTIVO_SAIDA': process.reason or NOT_AVAILABLE,
        'DATA_ENVIO': _format_date(process.submitted_at) or NOT_AVAILABLE,
        'PRAZO_RETORNO': _format_date(process.expected_return_by) or 'N/A',
        'LINK_APROVACAO': f"{base_url}/aprovacoes",
    }


def notify_approval_request(process, recipient_email):
    """
    Queue the approval e-mail for delivery once the current transaction commits.

    Never raises: a template or lookup failure is logged and the caller's
    transition is unaffected.
    """
    try:
        data = approval_context(process, recipient_email)
        subject = render_template(get_setting(EMAIL_APPROVAL_SUBJECT), data)
        body = render_template(get_setting(EMAIL_APPROVAL_BODY), data)
    except Exception:
        logger.exception(f"Failed to prepare approval e-mail for process #{process.pk}")
        return

    logger.info(f"Approval e-mail for process #{process.pk} queued to {recipient_email}")
    transaction.on_commit(lambda: dispatch(subject, body, recipient_email))


# ============================================================================
# SMTP test
# ============================================================================

def send_test_email(recipient, actor_username) -> DeliveryResult:
    """Send a test message with the current SMTP settings and audit the outcome."""
    result = send(
        'SCSE - Teste de Configuração de E-mail',
        (
            'Olá,\n\n'
            'Este é um e-mail de teste enviado pelo Sistema de Controle de Saída de Equipamentos (SCSE).\n\n'
            'Se você recebeu esta mensagem, as configurações de SMTP estão funcionando corretamente.\n\n'
            f'Enviado por: {actor_username}'
        ),
        recipient,
    )
    if result.delivered:
        record_event(
            EntityType.CONFIG, 'EMAIL_SETTINGS', 'EMAIL_TEST_SENT', actor_username,
            f"Teste de e-mail enviado com sucesso para: {recipient}"
        )
    else:
        record_event(
            EntityType.CONFIG, 'EMAIL_SETTINGS', 'EMAIL_TEST_FAILED', actor_username,
            f"Falha ao testar e-mail para {recipient}. Erro: {result.error}"
        )
    return result
