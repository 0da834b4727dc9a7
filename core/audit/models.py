"""
Audit Log Models
Append-only record of every state-changing action.
"""
from django.db import models


class EntityType:
    """Values stored in AuditEvent.entity_type"""
    MACHINE_EXIT = 'MAQUINA'
    TRANSFER = 'TRANSFERENCIA'
    USER = 'USER'
    GROUP = 'GROUP'
    SUBSTITUTION = 'SUBSTITUTION'
    CONFIG = 'CONFIG'


class AuditEvent(models.Model):
    """
    One audited action.

    entity_identifier is a string: a process UUID, a numeric id or a config key.
    Events are never updated; they are only removed together with the process
    they describe.
    """
    entity_type = models.CharField(max_length=50, db_index=True)
    entity_identifier = models.CharField(max_length=100, db_index=True)
    action = models.CharField(max_length=100, db_index=True)
    actor_username = models.CharField(max_length=150)
    timestamp = models.DateTimeField(auto_now_add=True, db_index=True)
    details = models.TextField(null=True, blank=True)

    class Meta:
        db_table = 'audit_events'
        verbose_name = 'Audit Event'
        verbose_name_plural = 'Audit Events'
        ordering = ['-timestamp', '-id']
        indexes = [
            models.Index(fields=['entity_type', 'entity_identifier'], name='audit_entity_idx'),
        ]

    def __str__(self):
        return f"{self.timestamp:%Y-%m-%d %H:%M} {self.actor_username} {self.action} {self.entity_type}:{self.entity_identifier}"
