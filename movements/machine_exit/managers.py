"""Machine exit workflow manager.

All status transitions of MachineExitProcess go through MachineExitManager.
Each transition re-reads the process with a row lock inside the same
transaction that writes it, so a concurrent transition that already moved
the status makes the second one fail with StateConflict.
"""
import logging

from django.core.exceptions import PermissionDenied, ValidationError
from django.db import transaction
from django.db.models import Count, Q
from django.utils import timezone

from core.audit.logger import EntityType, delete_entity_events, record_event
from core.base.exceptions import StateConflict
from core.base.utils import apply_changes, blank_to_none, log_value
from core.notifications.notifier import notify_approval_request
from core.user_accounts.dtos import Actor
from core.user_accounts.permissions import Capability
from core.user_accounts.substitutions import find_active_delegate

from .models import MachineExitProcess

logger = logging.getLogger(__name__)


REQUIRED_FIELDS = {
    'kind': 'Tipo de saída',
    'requester_name': 'Solicitante',
    'responsible_area': 'Área responsável',
    'approver_manager_email': 'E-mail do Gestor Aprovador',
    'material_description': 'Descrição do material',
    'reason': 'Motivo da saída',
}

UPDATABLE_FIELDS = [
    'kind', 'responsible_area', 'approver_manager_email', 'material_description',
    'quantity', 'reason', 'submitted_at', 'expected_return_by', 'gate_name',
    'invoice_ref', 'attachment_url',
]

MISSING_RETURN_DATE = (
    'O prazo de retorno obrigatório não foi informado: '
    'a Data Prevista de Retorno é obrigatória para Manutenção.'
)


class MachineExitManager:
    """State machine for equipment exits (maintenance and loan)."""

    # ----------------------
    # Helper Methods
    # ----------------------

    @staticmethod
    def _lock(pk) -> MachineExitProcess:
        """Re-read the process with a row lock. Call inside transaction.atomic()."""
        return MachineExitProcess.objects.select_for_update().get(pk=pk)

    @staticmethod
    def _deny(actor: Actor, action, message, required=None):
        logger.warning(
            f"Machine exit '{action}' denied for '{actor.username}'"
            + (f": requires {required}" if required else '')
        )
        raise PermissionDenied(message)

    @staticmethod
    def _validate_quantity(value):
        try:
            quantity = int(value)
        except (TypeError, ValueError):
            raise ValidationError({'quantity': 'Quantidade inválida.'})
        if quantity < 1:
            raise ValidationError({'quantity': 'Quantidade inválida.'})
        return quantity

    @staticmethod
    def _validate_kind(kind):
        if kind not in dict(MachineExitProcess.KIND_CHOICES):
            raise ValidationError({'kind': 'Tipo de saída inválido. Use Manutenção ou Empréstimo.'})

    @staticmethod
    def _validate_return_date(kind, expected_return_by):
        if kind == MachineExitProcess.KIND_MAINTENANCE and not expected_return_by:
            raise ValidationError({'expected_return_by': MISSING_RETURN_DATE})

    @classmethod
    def is_decider(cls, process: MachineExitProcess, actor: Actor, permissions=None) -> bool:
        """Original approver (by e-mail), their active delegate, or an admin."""
        permissions = permissions or actor.effective_permissions()
        if permissions.is_admin:
            return True
        if actor.email_matches(process.approver_manager_email):
            return True
        delegate = find_active_delegate(process.approver_manager_email)
        return bool(delegate and actor.email_matches(delegate.email))

    @staticmethod
    def is_owner_or_admin(process: MachineExitProcess, actor: Actor, permissions=None) -> bool:
        permissions = permissions or actor.effective_permissions()
        return permissions.is_admin or process.created_by_username == actor.username

    # ----------------------
    # Queries
    # ----------------------

    @classmethod
    def visible_to(cls, actor: Actor):
        """
        Processes listed for the actor, newest first.

        Admins see everything; approvers see what they must decide plus their
        own requests; gate operators see what is waiting at the gate; everyone
        else sees their own requests.
        """
        permissions = actor.effective_permissions()
        queryset = MachineExitProcess.objects.all()

        if permissions.is_admin:
            pass
        elif permissions.can_perform_approvals and actor.email:
            queryset = queryset.filter(
                Q(approver_manager_email__iexact=actor.email) | Q(created_by_username=actor.username)
            )
        elif permissions.can_access_gate_control:
            queryset = queryset.filter(status=MachineExitProcess.STATUS_PENDING_GATE)
        else:
            queryset = queryset.filter(created_by_username=actor.username)

        return queryset.order_by('-created_at', '-id')

    @classmethod
    def counts_by_status(cls, actor: Actor) -> dict:
        """Number of processes visible to the actor per status; every status is present."""
        counts = dict.fromkeys(dict(MachineExitProcess.STATUS_CHOICES), 0)
        rows = cls.visible_to(actor).order_by().values('status').annotate(total=Count('id'))
        for row in rows:
            counts[row['status']] = row['total']
        return counts

    # ----------------------
    # Transitions
    # ----------------------

    @classmethod
    def create(cls, data, actor: Actor) -> MachineExitProcess:
        """
        Register a new exit request, waiting for approval.

        Args:
            data: dict with kind, requester_name, responsible_area,
                  approver_manager_email, material_description, quantity,
                  reason and the optional submitted_at, expected_return_by,
                  gate_name, invoice_ref, attachment_url
            actor: creator; needs can_create_machine_exit (or admin)

        Returns:
            MachineExitProcess

        The approval e-mail goes to the active delegate of the approver when
        there is one, otherwise to the approver. Delivery happens after
        commit and never fails the request.
        """
        permissions = actor.effective_permissions()
        if not permissions.has_any(Capability.CREATE_MACHINE_EXIT, Capability.ACCESS_ADMIN_PANEL):
            cls._deny(
                actor, 'create',
                'Acesso negado. Você não tem permissão para criar saídas de máquina.',
                Capability.CREATE_MACHINE_EXIT.value
            )

        kind = data.get('kind')
        expected_return_by = data.get('expected_return_by')
        cls._validate_kind(kind)
        cls._validate_return_date(kind, expected_return_by)
        quantity = cls._validate_quantity(data.get('quantity'))

        missing = [label for field, label in REQUIRED_FIELDS.items() if not blank_to_none(data.get(field))]
        if missing:
            raise ValidationError(f"Campos obrigatórios não informados: {', '.join(missing)}.")

        with transaction.atomic():
            process = MachineExitProcess.objects.create(
                kind=kind,
                status=MachineExitProcess.STATUS_PENDING_APPROVAL,
                requester_name=data['requester_name'].strip(),
                responsible_area=data['responsible_area'].strip(),
                approver_manager_email=data['approver_manager_email'].strip(),
                material_description=data['material_description'].strip(),
                quantity=quantity,
                reason=data['reason'].strip(),
                submitted_at=data.get('submitted_at') or timezone.localdate(),
                expected_return_by=expected_return_by if kind == MachineExitProcess.KIND_MAINTENANCE else None,
                gate_name=blank_to_none(data.get('gate_name')),
                invoice_ref=blank_to_none(data.get('invoice_ref')),
                attachment_url=blank_to_none(data.get('attachment_url')),
                created_by_username=actor.username,
            )

            record_event(
                EntityType.MACHINE_EXIT,
                process.process_id,
                'CREATED',
                actor.username,
                f"ID Seq: {process.pk}, Tipo: {process.get_kind_display()}, Qtd: {process.quantity}, "
                f"Desc: {log_value(process.material_description)}"
            )

            delegate = find_active_delegate(process.approver_manager_email)
            recipient = process.approver_manager_email
            if delegate and delegate.email:
                logger.info(f"Approval e-mail of #{process.pk} redirected to substitute {delegate.email}")
                recipient = delegate.email
            notify_approval_request(process, recipient)

        logger.info(f"Machine exit #{process.pk} created by {actor.username}")
        return process

    @classmethod
    def approve(cls, pk, actor: Actor) -> MachineExitProcess:
        """pending_approval -> pending_gate"""
        with transaction.atomic():
            process = cls._lock(pk)
            process.require_status(MachineExitProcess.STATUS_PENDING_APPROVAL)
            if not cls.is_decider(process, actor):
                cls._deny(
                    actor, 'approve',
                    'Acesso negado. Apenas o gestor original, seu substituto ativo ou um '
                    'administrador podem aprovar esta solicitação.'
                )

            process.status = MachineExitProcess.STATUS_PENDING_GATE
            process.approved_by_username = actor.username
            process.approved_at = timezone.now()
            process.rejection_reason = None
            process.save()

            record_event(
                EntityType.MACHINE_EXIT, process.process_id, 'APPROVED', actor.username,
                f"ID Seq: {process.pk}, Aprovador: {actor.username}"
            )
        return process

    @classmethod
    def reject(cls, pk, reason, actor: Actor) -> MachineExitProcess:
        """pending_approval -> rejected"""
        reason = blank_to_none(reason)
        if not reason:
            raise ValidationError({'rejection_reason': 'O motivo da rejeição é obrigatório.'})

        with transaction.atomic():
            process = cls._lock(pk)
            process.require_status(MachineExitProcess.STATUS_PENDING_APPROVAL)
            if not cls.is_decider(process, actor):
                cls._deny(
                    actor, 'reject',
                    'Acesso negado. Apenas o gestor original, seu substituto ativo ou um '
                    'administrador podem rejeitar esta solicitação.'
                )

            process.status = MachineExitProcess.STATUS_REJECTED
            process.approved_by_username = actor.username
            process.approved_at = timezone.now()
            process.rejection_reason = reason
            process.save()

            record_event(
                EntityType.MACHINE_EXIT, process.process_id, 'REJECTED', actor.username,
                f"ID Seq: {process.pk}, Rejeitador: {actor.username}, Motivo: {reason}"
            )
        return process

    @classmethod
    def register_gate_exit(cls, pk, actor: Actor, exit_at=None) -> MachineExitProcess:
        """pending_gate -> in_maintenance (maintenance) or completed (loan)"""
        permissions = actor.effective_permissions()
        if not permissions.has_any(Capability.ACCESS_GATE_CONTROL, Capability.ACCESS_ADMIN_PANEL):
            cls._deny(
                actor, 'gate_exit',
                'Acesso negado. Apenas usuários com permissão de portaria ou administradores '
                'podem registrar a saída.',
                Capability.ACCESS_GATE_CONTROL.value
            )

        with transaction.atomic():
            process = cls._lock(pk)
            process.require_status(MachineExitProcess.STATUS_PENDING_GATE)

            if process.is_maintenance:
                process.status = MachineExitProcess.STATUS_IN_MAINTENANCE
            else:
                process.status = MachineExitProcess.STATUS_COMPLETED
            process.exit_guard_username = actor.username
            process.actual_exit_at = exit_at or timezone.now()
            process.save()

            record_event(
                EntityType.MACHINE_EXIT, process.process_id, 'GATE_EXIT', actor.username,
                f"ID Seq: {process.pk}, Vigilante: {actor.username}, Novo Status: {process.get_status_display()}"
            )
        return process

    @classmethod
    def register_return(cls, pk, actor: Actor, returned_at=None, invoice_ref=None,
                        attachment_url=None, notes=None) -> MachineExitProcess:
        """in_maintenance -> completed. Creator, original approver or admin."""
        with transaction.atomic():
            process = cls._lock(pk)
            if not process.is_maintenance:
                raise ValidationError('Apenas saídas do tipo "Manutenção" podem ter retorno registrado.')
            process.require_status(MachineExitProcess.STATUS_IN_MAINTENANCE)

            permissions = actor.effective_permissions()
            allowed = (
                cls.is_owner_or_admin(process, actor, permissions)
                or actor.email_matches(process.approver_manager_email)
            )
            if not allowed:
                cls._deny(
                    actor, 'return',
                    'Apenas o solicitante, o gestor da área ou um administrador podem registrar o retorno.'
                )

            process.status = MachineExitProcess.STATUS_COMPLETED
            process.actual_return_at = returned_at or timezone.now()
            process.return_invoice_ref = blank_to_none(invoice_ref)
            process.return_attachment_url = blank_to_none(attachment_url)
            process.return_notes = blank_to_none(notes)
            process.return_confirmed_by_username = actor.username
            process.save()

            record_event(
                EntityType.MACHINE_EXIT, process.process_id, 'RETURN_CONFIRMED', actor.username,
                f"ID Seq: {process.pk}, Confirmado por: {actor.username}, "
                f"NF Ret: {process.return_invoice_ref or '-'}"
            )
        return process

    @classmethod
    def update(cls, pk, data, actor: Actor) -> MachineExitProcess:
        """
        Edit a request still waiting for approval.

        Only UPDATABLE_FIELDS are considered. When nothing actually changes
        the process is returned untouched and no audit event is written.
        """
        with transaction.atomic():
            process = cls._lock(pk)
            process.require_status(*MachineExitProcess.EDITABLE_STATUSES)
            if not cls.is_owner_or_admin(process, actor):
                cls._deny(actor, 'update', 'Apenas o criador da solicitação ou um administrador podem editar.')

            changes = {}
            for field in UPDATABLE_FIELDS:
                if field not in data:
                    continue
                value = data[field]
                if field == 'quantity':
                    value = cls._validate_quantity(value)
                elif field == 'kind':
                    cls._validate_kind(value)
                else:
                    value = blank_to_none(value)
                changes[field] = value

            kind = changes.get('kind', process.kind)
            if kind != MachineExitProcess.KIND_MAINTENANCE:
                changes['expected_return_by'] = None
            cls._validate_return_date(kind, changes.get('expected_return_by', process.expected_return_by))

            for field in ['responsible_area', 'approver_manager_email', 'material_description', 'reason']:
                if field in changes and not changes[field]:
                    raise ValidationError({field: f'{REQUIRED_FIELDS[field]} é obrigatório.'})
            if 'submitted_at' in changes and changes['submitted_at'] is None:
                changes.pop('submitted_at')

            diff = apply_changes(process, changes)

            if not diff:
                logger.info(f"No changes detected for machine exit #{process.pk}")
                return process

            process.save()
            record_event(
                EntityType.MACHINE_EXIT, process.process_id, 'UPDATED', actor.username,
                f"Alterações: {'; '.join(diff)}"
            )
        return process

    @classmethod
    def delete(cls, pk, actor: Actor):
        """
        Remove a pending or rejected request together with its audit trail.

        The DELETED event is written after the trail is cleared, so it is the
        only record left of the process.
        """
        with transaction.atomic():
            process = cls._lock(pk)
            if process.status not in MachineExitProcess.DELETABLE_STATUSES:
                raise StateConflict(
                    'Não é possível excluir uma solicitação que já foi aprovada ou processada pela portaria.',
                    current_status=process.get_status_display()
                )
            if not cls.is_owner_or_admin(process, actor):
                cls._deny(actor, 'delete', 'Apenas o criador da solicitação ou um administrador podem excluir.')

            delete_entity_events(EntityType.MACHINE_EXIT, process.process_id)
            record_event(
                EntityType.MACHINE_EXIT, process.process_id, 'DELETED', actor.username,
                f"ID Seq: {process.pk}, Solicitante: {process.requester_name}, "
                f"Desc: {log_value(process.material_description)}"
            )
            process.delete()

        logger.info(f"Machine exit #{pk} deleted by {actor.username}")
