"""Transfer workflow manager.

All status transitions of TransferProcess go through TransferManager.
Gate operators act on behalf of one gate at a time (the operating gate,
sent by the client with each request); non-admin operators can only act on
transfers leaving from or arriving at that gate. The guard who released a
transfer at the origin may not confirm its arrival.
"""
import logging

from django.core.exceptions import PermissionDenied, ValidationError
from django.db import transaction
from django.db.models import Count, Q
from django.utils import timezone

from core.audit.logger import EntityType, delete_entity_events, record_event
from core.base.exceptions import StateConflict
from core.base.utils import apply_changes, blank_to_none
from core.user_accounts.dtos import Actor
from core.user_accounts.permissions import Capability

from .models import TransferProcess, requires_vehicle

logger = logging.getLogger(__name__)


REQUIRED_FIELDS = {
    'requested_exit_at': 'Data',
    'origin_gate': 'Portaria de saída',
    'destination_gate': 'Portaria de destino',
    'invoice_ref': 'NF',
    'requester_name': 'Requisitante',
    'sector': 'Setor',
    'manager_name': 'Gestor',
    'transport_mode': 'Meio de transporte',
}

UPDATABLE_FIELDS = [
    'origin_gate', 'destination_gate', 'invoice_ref', 'transport_mode', 'vehicle_type',
    'plate', 'carrier_name', 'sector', 'manager_name', 'requested_exit_at', 'attachment_url',
]

SAME_GATES = 'As portarias não podem ser iguais: a portaria de saída e a de destino devem ser diferentes.'
VEHICLE_REQUIRED = 'Tipo e Placa do Veículo são obrigatórios para este meio de transporte.'


class TransferManager:
    """State machine for inter-factory transfers."""

    # ----------------------
    # Helper Methods
    # ----------------------

    @staticmethod
    def _lock(pk) -> TransferProcess:
        """Re-read the transfer with a row lock. Call inside transaction.atomic()."""
        return TransferProcess.objects.select_for_update().get(pk=pk)

    @staticmethod
    def _deny(actor: Actor, action, message, required=None):
        logger.warning(
            f"Transfer '{action}' denied for '{actor.username}'"
            + (f": requires {required}" if required else '')
        )
        raise PermissionDenied(message)

    @staticmethod
    def _validate_gates_and_vehicle(origin_gate, destination_gate, transport_mode, vehicle_type, plate):
        if origin_gate and destination_gate and origin_gate == destination_gate:
            raise ValidationError({'destination_gate': SAME_GATES})
        if requires_vehicle(transport_mode) and (not vehicle_type or not plate):
            raise ValidationError({'plate': VEHICLE_REQUIRED})

    @classmethod
    def _require_gate_operator(cls, actor: Actor, action):
        permissions = actor.effective_permissions()
        if not permissions.has_any(Capability.ACCESS_GATE_CONTROL, Capability.ACCESS_ADMIN_PANEL):
            cls._deny(
                actor, action,
                'Acesso negado. Apenas usuários com permissão de portaria ou administradores '
                'podem registrar esta etapa.',
                Capability.ACCESS_GATE_CONTROL.value
            )
        return permissions

    @classmethod
    def _require_operating_gate(cls, actor: Actor, action, expected_gate, operating_gate, stage):
        """Non-admin operators must be operating at expected_gate; a missing gate counts as a mismatch."""
        if operating_gate != expected_gate:
            cls._deny(
                actor, action,
                f'Ação não permitida. Esta {stage} pertence à portaria {expected_gate}, '
                f'mas você está operando na {operating_gate or "(nenhuma portaria selecionada)"}.'
            )

    @staticmethod
    def is_owner_or_admin(process: TransferProcess, actor: Actor, permissions=None) -> bool:
        permissions = permissions or actor.effective_permissions()
        return permissions.is_admin or process.created_by_username == actor.username

    # ----------------------
    # Queries
    # ----------------------

    @classmethod
    def visible_to(cls, actor: Actor, operating_gate=None):
        """
        Transfers listed for the actor, newest first.

        Gate operators see what waits for an exit at their gate, what is on
        its way to their gate, and their own requests.
        """
        permissions = actor.effective_permissions()
        queryset = TransferProcess.objects.all()

        if permissions.is_admin:
            pass
        elif permissions.can_access_gate_control and operating_gate:
            queryset = queryset.filter(
                Q(status=TransferProcess.STATUS_IN_PROGRESS, origin_gate=operating_gate)
                | Q(status=TransferProcess.STATUS_IN_TRANSIT, destination_gate=operating_gate)
                | Q(created_by_username=actor.username)
            )
        else:
            if permissions.can_access_gate_control:
                logger.warning(f"Gate operator '{actor.username}' listed transfers without an operating gate")
            queryset = queryset.filter(created_by_username=actor.username)

        return queryset.order_by('-created_at', '-id')

    @classmethod
    def counts_by_status(cls, actor: Actor, operating_gate=None) -> dict:
        """Number of transfers visible to the actor per status; every status is present."""
        counts = dict.fromkeys(dict(TransferProcess.STATUS_CHOICES), 0)
        rows = cls.visible_to(actor, operating_gate).order_by().values('status').annotate(total=Count('id'))
        for row in rows:
            counts[row['status']] = row['total']
        return counts

    # ----------------------
    # Transitions
    # ----------------------

    @classmethod
    def create(cls, data, actor: Actor) -> TransferProcess:
        """
        Register a new transfer (in_progress).

        Args:
            data: dict with requested_exit_at, origin_gate, destination_gate,
                  invoice_ref, requester_name, sector, manager_name,
                  transport_mode and the optional vehicle_type, plate,
                  carrier_name, attachment_url
            actor: creator; needs can_create_transfer (or admin)
        """
        permissions = actor.effective_permissions()
        if not permissions.has_any(Capability.CREATE_TRANSFER, Capability.ACCESS_ADMIN_PANEL):
            cls._deny(
                actor, 'create',
                'Acesso negado. Você não tem permissão para criar transferências.',
                Capability.CREATE_TRANSFER.value
            )

        values = {field: blank_to_none(data.get(field)) for field in REQUIRED_FIELDS}
        cls._validate_gates_and_vehicle(
            values['origin_gate'],
            values['destination_gate'],
            values['transport_mode'],
            blank_to_none(data.get('vehicle_type')),
            blank_to_none(data.get('plate')),
        )
        missing = [label for field, label in REQUIRED_FIELDS.items() if not values[field]]
        if missing:
            raise ValidationError(f"Campos obrigatórios estão faltando ({', '.join(missing)}).")

        needs_vehicle = requires_vehicle(values['transport_mode'])
        with transaction.atomic():
            process = TransferProcess.objects.create(
                status=TransferProcess.STATUS_IN_PROGRESS,
                vehicle_type=blank_to_none(data.get('vehicle_type')) if needs_vehicle else None,
                plate=blank_to_none(data.get('plate')) if needs_vehicle else None,
                carrier_name=blank_to_none(data.get('carrier_name')),
                attachment_url=blank_to_none(data.get('attachment_url')),
                created_by_username=actor.username,
                **values
            )
            record_event(
                EntityType.TRANSFER, process.process_id, 'CREATED', actor.username,
                f"ID Seq: {process.pk}, Origem: {process.origin_gate}, Destino: {process.destination_gate}, "
                f"NF: {process.invoice_ref}"
            )

        logger.info(f"Transfer #{process.pk} created by {actor.username}")
        return process

    @classmethod
    def register_exit(cls, pk, actor: Actor, decision, operating_gate=None, exit_at=None, notes=None) -> TransferProcess:
        """
        in_progress -> in_transit (Aprovado) or cancelled (NaoAutorizado).

        Approving clears any arrival data recorded earlier.
        """
        if decision not in dict(TransferProcess.EXIT_DECISION_CHOICES):
            raise ValidationError({'exit_decision': "Decisão deve ser 'Aprovado' ou 'NaoAutorizado'."})
        permissions = cls._require_gate_operator(actor, 'exit')

        with transaction.atomic():
            process = cls._lock(pk)
            process.require_status(TransferProcess.STATUS_IN_PROGRESS)
            if not permissions.is_admin:
                cls._require_operating_gate(actor, 'exit', process.origin_gate, operating_gate, 'saída')

            approved = decision == TransferProcess.EXIT_APPROVED
            process.status = TransferProcess.STATUS_IN_TRANSIT if approved else TransferProcess.STATUS_CANCELLED
            process.exit_guard_username = actor.username
            process.actual_exit_at = exit_at or timezone.now()
            process.exit_decision = decision
            process.exit_notes = blank_to_none(notes)
            if approved:
                process.arrival_guard_username = None
                process.actual_arrival_at = None
                process.arrival_decision = None
                process.arrival_notes = None
            process.save()

            record_event(
                EntityType.TRANSFER,
                process.process_id,
                'EXIT_CONFIRMED' if approved else 'EXIT_REJECTED',
                actor.username,
                f"ID Seq: {process.pk}, Vigilante: {actor.username}, Novo Status: {process.get_status_display()}"
                + (f", Obs: {process.exit_notes}" if process.exit_notes else '')
            )
        return process

    @classmethod
    def register_arrival(cls, pk, actor: Actor, decision, operating_gate=None, arrival_at=None,
                         notes=None) -> TransferProcess:
        """
        in_transit -> completed, whatever the decision ('Problema' still closes the transfer).

        The guard who registered the exit cannot register the arrival unless admin.
        """
        if decision not in dict(TransferProcess.ARRIVAL_DECISION_CHOICES):
            raise ValidationError({'arrival_decision': "Decisão deve ser 'Aprovado' ou 'Problema'."})
        permissions = cls._require_gate_operator(actor, 'arrival')

        with transaction.atomic():
            process = cls._lock(pk)
            process.require_status(TransferProcess.STATUS_IN_TRANSIT)
            if not permissions.is_admin:
                cls._require_operating_gate(actor, 'arrival', process.destination_gate, operating_gate, 'chegada')
                if process.exit_guard_username and process.exit_guard_username == actor.username:
                    cls._deny(
                        actor, 'arrival',
                        f'Ação não permitida. O mesmo vigilante ({actor.username}) que registrou a saída '
                        f'não pode registrar a chegada desta transferência.'
                    )

            process.status = TransferProcess.STATUS_COMPLETED
            process.arrival_guard_username = actor.username
            process.actual_arrival_at = arrival_at or timezone.now()
            process.arrival_decision = decision
            process.arrival_notes = blank_to_none(notes)
            process.save()

            record_event(
                EntityType.TRANSFER,
                process.process_id,
                'ARRIVAL_CONFIRMED' if decision == TransferProcess.ARRIVAL_APPROVED else 'ARRIVAL_PROBLEM',
                actor.username,
                f"ID Seq: {process.pk}, Vigilante: {actor.username}, Novo Status: {process.get_status_display()}"
                + (f", Obs: {process.arrival_notes}" if process.arrival_notes else '')
            )
        return process

    @classmethod
    def update(cls, pk, data, actor: Actor) -> TransferProcess:
        """
        Edit a transfer that has not left the origin gate.

        Vehicle fields are cleared when the resulting transport mode needs no
        vehicle. No audit event when nothing changes.
        """
        with transaction.atomic():
            process = cls._lock(pk)
            process.require_status(TransferProcess.STATUS_IN_PROGRESS)
            if not cls.is_owner_or_admin(process, actor):
                cls._deny(actor, 'update', 'Apenas o criador da solicitação ou um administrador podem editar.')

            changes = {field: blank_to_none(data[field]) for field in UPDATABLE_FIELDS if field in data}

            def final(field):
                return changes[field] if field in changes else getattr(process, field)

            cls._validate_gates_and_vehicle(
                final('origin_gate'), final('destination_gate'), final('transport_mode'),
                final('vehicle_type'), final('plate'),
            )
            if not requires_vehicle(final('transport_mode')):
                changes['vehicle_type'] = None
                changes['plate'] = None
            for field in REQUIRED_FIELDS:
                if field in changes and not changes[field]:
                    raise ValidationError({field: f'{REQUIRED_FIELDS[field]} é obrigatório.'})

            diff = apply_changes(process, changes)

            if not diff:
                logger.info(f"No changes detected for transfer #{process.pk}")
                return process

            process.save()
            record_event(
                EntityType.TRANSFER, process.process_id, 'UPDATED', actor.username,
                f"Alterações: {'; '.join(diff)}"
            )
        return process

    @classmethod
    def delete(cls, pk, actor: Actor):
        """Remove a transfer that has not left the origin gate, with its audit trail."""
        with transaction.atomic():
            process = cls._lock(pk)
            if process.status != TransferProcess.STATUS_IN_PROGRESS:
                raise StateConflict(
                    'Não é possível excluir uma transferência que já saiu da portaria de origem.',
                    current_status=process.get_status_display()
                )
            if not cls.is_owner_or_admin(process, actor):
                cls._deny(actor, 'delete', 'Apenas o criador da solicitação ou um administrador podem excluir.')

            delete_entity_events(EntityType.TRANSFER, process.process_id)
            record_event(
                EntityType.TRANSFER, process.process_id, 'DELETED', actor.username,
                f"ID Seq: {process.pk}, Requisitante: {process.requester_name}, NF: {process.invoice_ref}"
            )
            process.delete()

        logger.info(f"Transfer #{pk} deleted by {actor.username}")
