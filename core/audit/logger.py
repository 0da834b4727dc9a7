"""
Audit logger.

record_event() is best-effort: a failure to write the event is logged and
swallowed so it can never block or roll back the business transition that
triggered it. When called inside a transaction, the insert runs in its own
savepoint.
"""
import json
import logging

from django.conf import settings
from django.db import transaction

from core.audit.models import AuditEvent, EntityType

logger = logging.getLogger(__name__)

TRUNCATION_MARKER = '...'

__all__ = ['EntityType', 'record_event', 'delete_entity_events', 'normalize_details']


def serialize_details(details):
    if details is None or details == '':
        return None
    return details if isinstance(details, str) else json.dumps(details, ensure_ascii=False, default=str)


def normalize_details(details, max_length=None):
    """Serialize details to text and cap the length, marking truncated text."""
    text = serialize_details(details)
    if text is None:
        return None
    if max_length is None:
        max_length = getattr(settings, 'SCSE_AUDIT_DETAILS_MAX_LENGTH', 500)

    if len(text) > max_length:
        text = text[:max_length - len(TRUNCATION_MARKER)] + TRUNCATION_MARKER
    return text


def record_event(entity_type, entity_identifier, action, actor_username, details=None):
    """
    Append an audit event.

    Args:
        entity_type: One of EntityType
        entity_identifier: Process UUID, record id or config key (stored as text)
        action: e.g. 'CREATED', 'APPROVED', 'USER_UPDATED'
        actor_username: Who performed the action
        details: Optional text or JSON-serializable object

    Returns:
        The AuditEvent, or None when it could not be written.
    """
    if not entity_type or entity_identifier in (None, '') or not action or not actor_username:
        logger.error(
            f"Audit event skipped, missing fields: type={entity_type} id={entity_identifier} "
            f"action={action} actor={actor_username}"
        )
        return None

    identifier = str(entity_identifier)
    raw = serialize_details(details)
    text = normalize_details(raw)
    if raw is not None and len(raw) != len(text):
        logger.warning(f"Audit details truncated for {action} on {entity_type}:{identifier}")

    try:
        with transaction.atomic():
            event = AuditEvent.objects.create(
                entity_type=entity_type,
                entity_identifier=identifier,
                action=action,
                actor_username=actor_username,
                details=text,
            )
    except Exception:
        logger.exception(f"Failed to record audit event {action} for {entity_type}:{identifier} by {actor_username}")
        return None

    logger.info(f"Audit: {actor_username} {action} {entity_type}:{identifier}")
    return event


def delete_entity_events(entity_type, entity_identifier):
    """Remove every event of one entity (used when the entity itself is deleted)."""
    deleted, _ = AuditEvent.objects.filter(
        entity_type=entity_type,
        entity_identifier=str(entity_identifier)
    ).delete()
    return deleted
