from rest_framework import serializers

from .models import MachineExitProcess


KIND_LABELS = {label.lower(): code for code, label in MachineExitProcess.KIND_CHOICES}


class MachineExitSerializer(serializers.ModelSerializer):
    """Read serializer for MachineExitProcess"""
    kind_label = serializers.CharField(source='get_kind_display', read_only=True)
    status_label = serializers.CharField(source='get_status_display', read_only=True)

    class Meta:
        model = MachineExitProcess
        fields = [
            'id', 'process_id', 'kind', 'kind_label', 'status', 'status_label',
            'requester_name', 'responsible_area', 'approver_manager_email',
            'material_description', 'quantity', 'reason', 'submitted_at', 'expected_return_by',
            'gate_name', 'invoice_ref', 'attachment_url',
            'approved_by_username', 'approved_at', 'rejection_reason',
            'actual_exit_at', 'exit_guard_username',
            'actual_return_at', 'return_invoice_ref', 'return_attachment_url', 'return_notes',
            'return_confirmed_by_username',
            'created_by_username', 'created_at', 'updated_at',
        ]
        read_only_fields = fields


class MachineExitInputSerializer(serializers.Serializer):
    """
    Input for create and update.

    Every field is optional here: business rules (required fields, quantity,
    return date for maintenance) are enforced by MachineExitManager so the
    same messages apply to every caller. Only keys sent by the client end up
    in validated_data, which is what update relies on.
    """
    kind = serializers.CharField(required=False)
    requester_name = serializers.CharField(required=False, allow_blank=True)
    responsible_area = serializers.CharField(required=False, allow_blank=True)
    approver_manager_email = serializers.EmailField(required=False, allow_blank=True)
    material_description = serializers.CharField(required=False, allow_blank=True)
    quantity = serializers.IntegerField(required=False)
    reason = serializers.CharField(required=False, allow_blank=True)
    submitted_at = serializers.DateField(required=False, allow_null=True)
    expected_return_by = serializers.DateField(required=False, allow_null=True)
    gate_name = serializers.CharField(required=False, allow_null=True, allow_blank=True)
    invoice_ref = serializers.CharField(required=False, allow_null=True, allow_blank=True)
    attachment_url = serializers.CharField(required=False, allow_null=True, allow_blank=True)

    def validate_kind(self, value):
        """Accept the code ('maintenance') or the label ('Manutenção')."""
        return KIND_LABELS.get(value.strip().lower(), value.strip())


class RejectSerializer(serializers.Serializer):
    rejection_reason = serializers.CharField(required=False, allow_blank=True, default='')


class GateExitSerializer(serializers.Serializer):
    actual_exit_at = serializers.DateTimeField(required=False, allow_null=True)


class ReturnSerializer(serializers.Serializer):
    actual_return_at = serializers.DateTimeField(required=False, allow_null=True)
    return_invoice_ref = serializers.CharField(required=False, allow_null=True, allow_blank=True)
    return_attachment_url = serializers.CharField(required=False, allow_null=True, allow_blank=True)
    return_notes = serializers.CharField(required=False, allow_null=True, allow_blank=True)
