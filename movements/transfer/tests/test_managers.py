"""
Tests for the transfer state machine (TransferManager).
"""
from django.core.exceptions import PermissionDenied, ValidationError
from django.test import TestCase
from django.utils import timezone

from core.audit.logger import EntityType
from core.audit.models import AuditEvent
from core.base.exceptions import StateConflict
from core.base.test_utils import (
    actor_for,
    make_admin_group,
    make_gate_group,
    make_requester_group,
    make_user,
)
from movements.transfer.managers import TransferManager
from movements.transfer.models import TransferProcess, requires_vehicle


ORIGIN = 'Portaria 1'
DESTINATION = 'Portaria 2'


def transfer_data(**overrides):
    data = {
        'requested_exit_at': timezone.now(),
        'origin_gate': ORIGIN,
        'destination_gate': DESTINATION,
        'invoice_ref': 'NF-1001',
        'requester_name': 'Ana Souza',
        'sector': 'Logística',
        'manager_name': 'Carlos Lima',
        'transport_mode': 'Transportadora',
        'vehicle_type': 'Caminhão',
        'plate': 'ABC1D23',
        'carrier_name': 'TransLog',
    }
    data.update(overrides)
    return data


def actions_of(process):
    return list(
        AuditEvent.objects
        .filter(entity_type=EntityType.TRANSFER, entity_identifier=str(process.process_id))
        .order_by('id')
        .values_list('action', flat=True)
    )


class TransferManagerTestCase(TestCase):

    def setUp(self):
        gate = make_gate_group()
        self.requester = make_user('ana', groups=[make_requester_group()])
        self.guard1 = make_user('vigia1', groups=[gate])
        self.guard2 = make_user('vigia2', groups=[gate])
        self.admin = make_user('admin', groups=[make_admin_group()])

    def create(self, **overrides):
        return TransferManager.create(transfer_data(**overrides), actor_for(self.requester))

    def released(self, **overrides):
        process = self.create(**overrides)
        return TransferManager.register_exit(
            process.pk, actor_for(self.guard1), TransferProcess.EXIT_APPROVED, operating_gate=ORIGIN
        )


class RequiresVehicleTest(TestCase):

    def test_modes(self):
        self.assertTrue(requires_vehicle('Uber'))
        self.assertTrue(requires_vehicle(' carro frota '))
        self.assertFalse(requires_vehicle('A pé'))
        self.assertFalse(requires_vehicle(None))


class CreateTest(TransferManagerTestCase):

    def test_create(self):
        process = self.create()

        self.assertEqual(process.status, TransferProcess.STATUS_IN_PROGRESS)
        self.assertEqual(process.created_by_username, 'ana')
        self.assertEqual(process.plate, 'ABC1D23')
        self.assertEqual(actions_of(process), ['CREATED'])

    def test_same_gates(self):
        with self.assertRaises(ValidationError) as ctx:
            self.create(destination_gate=ORIGIN)
        self.assertIn('não podem ser iguais', ' '.join(ctx.exception.messages))
        self.assertFalse(TransferProcess.objects.exists())

    def test_vehicle_mode_requires_type_and_plate(self):
        with self.assertRaises(ValidationError):
            self.create(plate='')
        with self.assertRaises(ValidationError):
            self.create(transport_mode='MOTOBOY', vehicle_type=None)

    def test_other_mode_drops_vehicle(self):
        process = self.create(transport_mode='Em mãos', vehicle_type='Carro', plate='XYZ9999')

        self.assertIsNone(process.vehicle_type)
        self.assertIsNone(process.plate)

    def test_missing_fields(self):
        with self.assertRaises(ValidationError) as ctx:
            self.create(invoice_ref='', sector='  ')
        message = ' '.join(ctx.exception.messages)
        self.assertIn('NF', message)
        self.assertIn('Setor', message)

    def test_requires_capability(self):
        with self.assertRaises(PermissionDenied):
            TransferManager.create(transfer_data(), actor_for(self.guard1))


class ExitTest(TransferManagerTestCase):

    def test_release(self):
        process = self.released()

        self.assertEqual(process.status, TransferProcess.STATUS_IN_TRANSIT)
        self.assertEqual(process.exit_guard_username, 'vigia1')
        self.assertEqual(process.exit_decision, TransferProcess.EXIT_APPROVED)
        self.assertIsNotNone(process.actual_exit_at)
        self.assertEqual(actions_of(process), ['CREATED', 'EXIT_CONFIRMED'])

    def test_not_authorized_cancels(self):
        process = self.create()

        process = TransferManager.register_exit(
            process.pk, actor_for(self.guard1), TransferProcess.EXIT_NOT_AUTHORIZED,
            operating_gate=ORIGIN, notes='NF divergente'
        )

        self.assertEqual(process.status, TransferProcess.STATUS_CANCELLED)
        self.assertEqual(process.exit_notes, 'NF divergente')
        self.assertEqual(actions_of(process), ['CREATED', 'EXIT_REJECTED'])
        with self.assertRaises(StateConflict):
            TransferManager.register_arrival(
                process.pk, actor_for(self.guard2), TransferProcess.ARRIVAL_APPROVED, operating_gate=DESTINATION
            )

    def test_wrong_operating_gate(self):
        process = self.create()
        with self.assertRaises(PermissionDenied):
            TransferManager.register_exit(
                process.pk, actor_for(self.guard1), TransferProcess.EXIT_APPROVED, operating_gate=DESTINATION
            )
        with self.assertRaises(PermissionDenied):
            TransferManager.register_exit(process.pk, actor_for(self.guard1), TransferProcess.EXIT_APPROVED)

        process.refresh_from_db()
        self.assertEqual(process.status, TransferProcess.STATUS_IN_PROGRESS)

    def test_admin_ignores_operating_gate(self):
        process = self.create()
        process = TransferManager.register_exit(process.pk, actor_for(self.admin), TransferProcess.EXIT_APPROVED)
        self.assertEqual(process.status, TransferProcess.STATUS_IN_TRANSIT)

    def test_requires_gate_capability(self):
        process = self.create()
        with self.assertRaises(PermissionDenied):
            TransferManager.register_exit(
                process.pk, actor_for(self.requester), TransferProcess.EXIT_APPROVED, operating_gate=ORIGIN
            )

    def test_invalid_decision(self):
        process = self.create()
        with self.assertRaises(ValidationError):
            TransferManager.register_exit(process.pk, actor_for(self.guard1), 'Talvez', operating_gate=ORIGIN)

    def test_exit_twice_is_state_conflict(self):
        process = self.released()
        with self.assertRaises(StateConflict):
            TransferManager.register_exit(
                process.pk, actor_for(self.guard2), TransferProcess.EXIT_APPROVED, operating_gate=ORIGIN
            )


class ArrivalTest(TransferManagerTestCase):

    def test_exit_guard_cannot_confirm_arrival(self):
        process = self.released()

        with self.assertRaises(PermissionDenied):
            TransferManager.register_arrival(
                process.pk, actor_for(self.guard1), TransferProcess.ARRIVAL_APPROVED, operating_gate=DESTINATION
            )

        process = TransferManager.register_arrival(
            process.pk, actor_for(self.guard2), TransferProcess.ARRIVAL_APPROVED, operating_gate=DESTINATION
        )
        self.assertEqual(process.status, TransferProcess.STATUS_COMPLETED)
        self.assertEqual(process.arrival_guard_username, 'vigia2')
        self.assertEqual(actions_of(process), ['CREATED', 'EXIT_CONFIRMED', 'ARRIVAL_CONFIRMED'])

    def test_arrival_at_origin_gate_denied(self):
        process = self.released()
        with self.assertRaises(PermissionDenied):
            TransferManager.register_arrival(
                process.pk, actor_for(self.guard2), TransferProcess.ARRIVAL_APPROVED, operating_gate=ORIGIN
            )

    def test_admin_may_confirm_own_exit(self):
        process = self.create()
        TransferManager.register_exit(process.pk, actor_for(self.admin), TransferProcess.EXIT_APPROVED)

        process = TransferManager.register_arrival(
            process.pk, actor_for(self.admin), TransferProcess.ARRIVAL_APPROVED
        )

        self.assertEqual(process.status, TransferProcess.STATUS_COMPLETED)

    def test_problem_still_completes(self):
        process = self.released()

        process = TransferManager.register_arrival(
            process.pk, actor_for(self.guard2), TransferProcess.ARRIVAL_PROBLEM,
            operating_gate=DESTINATION, notes='Volume avariado'
        )

        self.assertEqual(process.status, TransferProcess.STATUS_COMPLETED)
        self.assertEqual(process.arrival_decision, TransferProcess.ARRIVAL_PROBLEM)
        self.assertEqual(actions_of(process)[-1], 'ARRIVAL_PROBLEM')

    def test_arrival_before_exit_is_state_conflict(self):
        process = self.create()
        with self.assertRaises(StateConflict):
            TransferManager.register_arrival(
                process.pk, actor_for(self.guard2), TransferProcess.ARRIVAL_APPROVED, operating_gate=DESTINATION
            )


class EditDeleteTest(TransferManagerTestCase):

    def test_update_records_diff(self):
        process = self.create()

        process = TransferManager.update(process.pk, {'invoice_ref': 'NF-2002'}, actor_for(self.requester))

        self.assertEqual(process.invoice_ref, 'NF-2002')
        details = AuditEvent.objects.get(action='UPDATED').details
        self.assertEqual(details, "Alterações: invoice_ref: 'NF-1001' -> 'NF-2002'")

    def test_update_to_same_gates(self):
        process = self.create()
        with self.assertRaises(ValidationError):
            TransferManager.update(process.pk, {'origin_gate': DESTINATION}, actor_for(self.requester))

    def test_update_to_non_vehicle_mode_clears_vehicle(self):
        process = self.create()

        process = TransferManager.update(process.pk, {'transport_mode': 'Em mãos'}, actor_for(self.requester))

        self.assertIsNone(process.vehicle_type)
        self.assertIsNone(process.plate)

    def test_update_long_value_changed_near_the_end(self):
        prefix = 'Transportadora Rodoviária Nacional de Cargas Pesadas '
        process = self.create(carrier_name=prefix + 'A')

        TransferManager.update(process.pk, {'carrier_name': prefix + 'B'}, actor_for(self.requester))

        process.refresh_from_db()
        self.assertEqual(process.carrier_name, prefix + 'B')
        self.assertEqual(actions_of(process), ['CREATED', 'UPDATED'])

    def test_identical_update_is_noop(self):
        process = self.create()

        TransferManager.update(process.pk, {'sector': 'Logística', 'plate': 'ABC1D23'}, actor_for(self.requester))

        self.assertEqual(actions_of(process), ['CREATED'])

    def test_update_after_exit_is_state_conflict(self):
        process = self.released()
        with self.assertRaises(StateConflict):
            TransferManager.update(process.pk, {'sector': 'Compras'}, actor_for(self.admin))
        with self.assertRaises(StateConflict):
            TransferManager.delete(process.pk, actor_for(self.admin))

    def test_update_by_other_user_denied(self):
        process = self.create()
        with self.assertRaises(PermissionDenied):
            TransferManager.update(process.pk, {'sector': 'Compras'}, actor_for(self.guard1))

    def test_delete_leaves_only_deleted_event(self):
        process = self.create()
        TransferManager.update(process.pk, {'sector': 'Compras'}, actor_for(self.requester))

        TransferManager.delete(process.pk, actor_for(self.requester))

        self.assertFalse(TransferProcess.objects.filter(pk=process.pk).exists())
        self.assertEqual(actions_of(process), ['DELETED'])


class VisibilityTest(TransferManagerTestCase):

    def setUp(self):
        super().setUp()
        self.waiting = self.create()
        self.inbound = self.released(origin_gate='Portaria 3', destination_gate=ORIGIN)
        self.elsewhere = self.create(origin_gate='Portaria 3', destination_gate='Portaria 4')

    def released(self, **overrides):
        process = self.create(**overrides)
        return TransferManager.register_exit(process.pk, actor_for(self.admin), TransferProcess.EXIT_APPROVED)

    def visible(self, user, gate=None):
        return set(TransferManager.visible_to(actor_for(user), gate).values_list('pk', flat=True))

    def test_admin_sees_all(self):
        self.assertEqual(self.visible(self.admin), {self.waiting.pk, self.inbound.pk, self.elsewhere.pk})

    def test_gate_operator_sees_their_gate(self):
        self.assertEqual(self.visible(self.guard1, ORIGIN), {self.waiting.pk, self.inbound.pk})
        self.assertEqual(self.visible(self.guard1, 'Portaria 3'), {self.elsewhere.pk})

    def test_gate_operator_without_gate_sees_own(self):
        self.assertEqual(self.visible(self.guard1), set())

    def test_requester_sees_own(self):
        self.assertEqual(self.visible(self.requester), {self.waiting.pk, self.inbound.pk, self.elsewhere.pk})

    def test_counts_by_status(self):
        counts = TransferManager.counts_by_status(actor_for(self.guard1), ORIGIN)

        self.assertEqual(set(counts), {code for code, _ in TransferProcess.STATUS_CHOICES})
        self.assertEqual(counts[TransferProcess.STATUS_IN_PROGRESS], 1)
        self.assertEqual(counts[TransferProcess.STATUS_IN_TRANSIT], 1)
        self.assertEqual(counts[TransferProcess.STATUS_COMPLETED], 0)

        admin_counts = TransferManager.counts_by_status(actor_for(self.admin))
        self.assertEqual(admin_counts[TransferProcess.STATUS_IN_PROGRESS], 2)
