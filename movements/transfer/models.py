"""
Transfer Models
Goods moving between two factory gates.
"""
import uuid

from django.db import models

from core.base.exceptions import StateConflict
from core.base.models import TimestampMixin


# Transport modes that require vehicle type and plate (compared case-insensitively)
VEHICLE_TRANSPORT_MODES = ['TRANSPORTADORA', 'CARRO FROTA', 'UBER', 'CARRO PARTICULAR', 'MOTOBOY']


def requires_vehicle(transport_mode):
    return bool(transport_mode) and transport_mode.strip().upper() in VEHICLE_TRANSPORT_MODES


class TransferProcess(TimestampMixin):
    """
    One inter-factory transfer.

    Status flow:
        in_progress -> in_transit -> completed
        in_progress -> cancelled   (exit not authorized at the origin gate)

    manager_name is free text; manager delegation does not apply here.
    """
    STATUS_IN_PROGRESS = 'in_progress'
    STATUS_IN_TRANSIT = 'in_transit'
    STATUS_COMPLETED = 'completed'
    STATUS_CANCELLED = 'cancelled'
    STATUS_CHOICES = [
        (STATUS_IN_PROGRESS, 'Em andamento'),
        (STATUS_IN_TRANSIT, 'Em trânsito'),
        (STATUS_COMPLETED, 'Concluído'),
        (STATUS_CANCELLED, 'Cancelado'),
    ]

    EXIT_APPROVED = 'Aprovado'
    EXIT_NOT_AUTHORIZED = 'NaoAutorizado'
    EXIT_DECISION_CHOICES = [
        (EXIT_APPROVED, 'Aprovado'),
        (EXIT_NOT_AUTHORIZED, 'Não autorizado'),
    ]

    ARRIVAL_APPROVED = 'Aprovado'
    ARRIVAL_PROBLEM = 'Problema'
    ARRIVAL_DECISION_CHOICES = [
        (ARRIVAL_APPROVED, 'Aprovado'),
        (ARRIVAL_PROBLEM, 'Problema'),
    ]

    process_id = models.UUIDField(default=uuid.uuid4, unique=True, editable=False)
    status = models.CharField(
        max_length=20,
        choices=STATUS_CHOICES,
        default=STATUS_IN_PROGRESS,
        db_index=True
    )

    # Request
    requester_name = models.CharField(max_length=255)
    sector = models.CharField(max_length=255)
    manager_name = models.CharField(max_length=255)
    requested_exit_at = models.DateTimeField()
    invoice_ref = models.CharField(max_length=100)
    attachment_url = models.CharField(max_length=500, null=True, blank=True)

    # Transport
    transport_mode = models.CharField(max_length=100)
    vehicle_type = models.CharField(max_length=100, null=True, blank=True)
    plate = models.CharField(max_length=20, null=True, blank=True)
    carrier_name = models.CharField(max_length=255, null=True, blank=True)

    origin_gate = models.CharField(max_length=100, db_index=True)
    destination_gate = models.CharField(max_length=100, db_index=True)

    # Exit at the origin gate
    exit_guard_username = models.CharField(max_length=150, null=True, blank=True)
    actual_exit_at = models.DateTimeField(null=True, blank=True)
    exit_decision = models.CharField(max_length=20, choices=EXIT_DECISION_CHOICES, null=True, blank=True)
    exit_notes = models.TextField(null=True, blank=True)

    # Arrival at the destination gate
    arrival_guard_username = models.CharField(max_length=150, null=True, blank=True)
    actual_arrival_at = models.DateTimeField(null=True, blank=True)
    arrival_decision = models.CharField(max_length=20, choices=ARRIVAL_DECISION_CHOICES, null=True, blank=True)
    arrival_notes = models.TextField(null=True, blank=True)

    created_by_username = models.CharField(max_length=150, db_index=True)

    class Meta:
        db_table = 'transfer_processes'
        verbose_name = 'Transfer'
        verbose_name_plural = 'Transfers'
        ordering = ['-created_at', '-id']

    def __str__(self):
        return f"Transferência #{self.pk} {self.origin_gate} -> {self.destination_gate} ({self.get_status_display()})"

    @property
    def needs_vehicle(self):
        return requires_vehicle(self.transport_mode)

    def require_status(self, *statuses):
        """Raise StateConflict unless the transfer is in one of statuses."""
        if self.status not in statuses:
            raise StateConflict(current_status=self.get_status_display())
