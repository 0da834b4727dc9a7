"""
Audit query service.
Read-only access to the audit trail for the admin panel.
"""
from datetime import datetime, time

from django.core.exceptions import ValidationError
from django.utils import timezone
from django.utils.dateparse import parse_date

from core.audit.models import AuditEvent


def _parse_day(value, field_name):
    parsed = parse_date(value) if value else None
    if value and parsed is None:
        raise ValidationError({field_name: 'Data inválida. Use o formato AAAA-MM-DD.'})
    return parsed


def query_events(start_date=None, end_date=None, username=None, action=None, entity_type=None):
    """
    Filter audit events, newest first.

    Args:
        start_date / end_date: 'YYYY-MM-DD', both days included entirely
        username: case-insensitive fragment of the actor username
        action: case-insensitive exact action
        entity_type: case-insensitive exact entity type

    Returns:
        QuerySet of AuditEvent
    """
    events = AuditEvent.objects.all()

    start = _parse_day(start_date, 'start_date')
    end = _parse_day(end_date, 'end_date')
    if start:
        events = events.filter(timestamp__gte=timezone.make_aware(datetime.combine(start, time.min)))
    if end:
        events = events.filter(timestamp__lte=timezone.make_aware(datetime.combine(end, time.max)))
    if username:
        events = events.filter(actor_username__icontains=username)
    if action:
        events = events.filter(action__iexact=action)
    if entity_type:
        events = events.filter(entity_type__iexact=entity_type)

    return events.order_by('-timestamp', '-id')


def entity_events(entity_type, entity_identifier):
    """Trail of a single entity, oldest first."""
    return AuditEvent.objects.filter(
        entity_type=entity_type,
        entity_identifier=str(entity_identifier)
    ).order_by('timestamp', 'id')


def distinct_actions():
    return list(AuditEvent.objects.order_by('action').values_list('action', flat=True).distinct())


def distinct_entity_types():
    return list(AuditEvent.objects.order_by('entity_type').values_list('entity_type', flat=True).distinct())
