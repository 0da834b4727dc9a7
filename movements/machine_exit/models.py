"""
Machine Exit Models
Equipment leaving the site for maintenance or loan.
"""
import uuid

from django.db import models

from core.base.exceptions import StateConflict
from core.base.models import TimestampMixin


class MachineExitProcess(TimestampMixin):
    """
    One equipment-exit request.

    The sequential id is the number shown to people; process_id identifies the
    process in the audit trail. approver_manager_email always holds the
    ORIGINAL approver, never the delegate who may end up deciding.

    Status flow:
        pending_approval -> pending_gate -> in_maintenance -> completed   (maintenance)
        pending_approval -> pending_gate -> completed                     (loan)
        pending_approval -> rejected
    """
    KIND_MAINTENANCE = 'maintenance'
    KIND_LOAN = 'loan'
    KIND_CHOICES = [
        (KIND_MAINTENANCE, 'Manutenção'),
        (KIND_LOAN, 'Empréstimo'),
    ]

    STATUS_PENDING_APPROVAL = 'pending_approval'
    STATUS_PENDING_GATE = 'pending_gate'
    STATUS_IN_MAINTENANCE = 'in_maintenance'
    STATUS_COMPLETED = 'completed'
    STATUS_REJECTED = 'rejected'
    STATUS_CHOICES = [
        (STATUS_PENDING_APPROVAL, 'Aguardando Aprovação'),
        (STATUS_PENDING_GATE, 'Aguardando Portaria'),
        (STATUS_IN_MAINTENANCE, 'Em Manutenção'),
        (STATUS_COMPLETED, 'Concluído'),
        (STATUS_REJECTED, 'Rejeitado'),
    ]

    EDITABLE_STATUSES = [STATUS_PENDING_APPROVAL]
    DELETABLE_STATUSES = [STATUS_PENDING_APPROVAL, STATUS_REJECTED]

    process_id = models.UUIDField(default=uuid.uuid4, unique=True, editable=False)
    kind = models.CharField(max_length=20, choices=KIND_CHOICES)
    status = models.CharField(
        max_length=20,
        choices=STATUS_CHOICES,
        default=STATUS_PENDING_APPROVAL,
        db_index=True
    )

    # Request
    requester_name = models.CharField(max_length=255)
    responsible_area = models.CharField(max_length=255)
    approver_manager_email = models.EmailField()
    material_description = models.TextField()
    quantity = models.PositiveIntegerField()
    reason = models.TextField()
    submitted_at = models.DateField()
    expected_return_by = models.DateField(null=True, blank=True)

    # Gate exit data supplied with the request
    gate_name = models.CharField(max_length=100, null=True, blank=True)
    invoice_ref = models.CharField(max_length=100, null=True, blank=True)
    attachment_url = models.CharField(max_length=500, null=True, blank=True)

    # Decision
    approved_by_username = models.CharField(max_length=150, null=True, blank=True)
    approved_at = models.DateTimeField(null=True, blank=True)
    rejection_reason = models.TextField(null=True, blank=True)

    # Gate transit
    actual_exit_at = models.DateTimeField(null=True, blank=True)
    exit_guard_username = models.CharField(max_length=150, null=True, blank=True)

    # Return from maintenance
    actual_return_at = models.DateTimeField(null=True, blank=True)
    return_invoice_ref = models.CharField(max_length=100, null=True, blank=True)
    return_attachment_url = models.CharField(max_length=500, null=True, blank=True)
    return_notes = models.TextField(null=True, blank=True)
    return_confirmed_by_username = models.CharField(max_length=150, null=True, blank=True)

    created_by_username = models.CharField(max_length=150, db_index=True)

    class Meta:
        db_table = 'machine_exit_processes'
        verbose_name = 'Machine Exit'
        verbose_name_plural = 'Machine Exits'
        ordering = ['-created_at', '-id']

    def __str__(self):
        return f"Saída #{self.pk} - {self.get_kind_display()} ({self.get_status_display()})"

    @property
    def is_maintenance(self):
        return self.kind == self.KIND_MAINTENANCE

    def require_status(self, *statuses):
        """Raise StateConflict unless the process is in one of statuses."""
        if self.status not in statuses:
            raise StateConflict(current_status=self.get_status_display())
