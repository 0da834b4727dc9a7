from rest_framework import serializers

from .models import TransferProcess


class TransferSerializer(serializers.ModelSerializer):
    """Read serializer for TransferProcess"""
    status_label = serializers.CharField(source='get_status_display', read_only=True)

    class Meta:
        model = TransferProcess
        fields = [
            'id', 'process_id', 'status', 'status_label',
            'requester_name', 'sector', 'manager_name', 'requested_exit_at', 'invoice_ref', 'attachment_url',
            'transport_mode', 'vehicle_type', 'plate', 'carrier_name',
            'origin_gate', 'destination_gate',
            'exit_guard_username', 'actual_exit_at', 'exit_decision', 'exit_notes',
            'arrival_guard_username', 'actual_arrival_at', 'arrival_decision', 'arrival_notes',
            'created_by_username', 'created_at', 'updated_at',
        ]
        read_only_fields = fields


class TransferInputSerializer(serializers.Serializer):
    """
    Input for create and update.

    Required fields and the gate/vehicle rules are checked by TransferManager;
    only keys sent by the client end up in validated_data.
    """
    requested_exit_at = serializers.DateTimeField(required=False, allow_null=True)
    origin_gate = serializers.CharField(required=False, allow_blank=True)
    destination_gate = serializers.CharField(required=False, allow_blank=True)
    invoice_ref = serializers.CharField(required=False, allow_blank=True)
    requester_name = serializers.CharField(required=False, allow_blank=True)
    sector = serializers.CharField(required=False, allow_blank=True)
    manager_name = serializers.CharField(required=False, allow_blank=True)
    transport_mode = serializers.CharField(required=False, allow_blank=True)
    vehicle_type = serializers.CharField(required=False, allow_null=True, allow_blank=True)
    plate = serializers.CharField(required=False, allow_null=True, allow_blank=True)
    carrier_name = serializers.CharField(required=False, allow_null=True, allow_blank=True)
    attachment_url = serializers.CharField(required=False, allow_null=True, allow_blank=True)


class ExitDecisionSerializer(serializers.Serializer):
    exit_decision = serializers.ChoiceField(choices=TransferProcess.EXIT_DECISION_CHOICES)
    actual_exit_at = serializers.DateTimeField(required=False, allow_null=True)
    exit_notes = serializers.CharField(required=False, allow_null=True, allow_blank=True)


class ArrivalDecisionSerializer(serializers.Serializer):
    arrival_decision = serializers.ChoiceField(choices=TransferProcess.ARRIVAL_DECISION_CHOICES)
    actual_arrival_at = serializers.DateTimeField(required=False, allow_null=True)
    arrival_notes = serializers.CharField(required=False, allow_null=True, allow_blank=True)
