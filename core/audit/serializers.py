from rest_framework import serializers

from core.audit.models import AuditEvent


class AuditEventSerializer(serializers.ModelSerializer):
    class Meta:
        model = AuditEvent
        fields = [
            'id', 'entity_type', 'entity_identifier', 'action',
            'actor_username', 'timestamp', 'details',
        ]
        read_only_fields = fields
