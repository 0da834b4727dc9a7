"""
Tests for the transfer API endpoints.
"""
from rest_framework import status
from rest_framework.test import APIClient, APITestCase

from core.base.test_utils import (
    authenticate_client,
    make_gate_group,
    make_requester_group,
    make_user,
)
from movements.transfer.models import TransferProcess


URL = '/api/transfers/'


def payload(**overrides):
    data = {
        'requested_exit_at': '2026-03-10T08:30:00-03:00',
        'origin_gate': 'Portaria 1',
        'destination_gate': 'Portaria 2',
        'invoice_ref': 'NF-77',
        'requester_name': 'Ana Souza',
        'sector': 'Logística',
        'manager_name': 'Carlos Lima',
        'transport_mode': 'UBER',
        'vehicle_type': 'Sedan',
        'plate': 'QWE1234',
    }
    data.update(overrides)
    return data


class TransferAPITest(APITestCase):

    def setUp(self):
        gate = make_gate_group()
        self.requester = make_user('ana', groups=[make_requester_group()])
        self.guard1 = make_user('vigia1', groups=[gate])
        self.guard2 = make_user('vigia2', groups=[gate])

    def as_user(self, user):
        return authenticate_client(APIClient(), user)

    def create_transfer(self, **overrides):
        response = self.as_user(self.requester).post(URL, payload(**overrides), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        return response.data['data']['id']

    def test_create_same_gates(self):
        response = self.as_user(self.requester).post(
            URL, payload(destination_gate='Portaria 1'), format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('não podem ser iguais', response.data['message'])

    def test_create_missing_plate(self):
        response = self.as_user(self.requester).post(URL, payload(plate=''), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_exit_then_arrival_by_another_guard(self):
        pk = self.create_transfer()

        response = self.as_user(self.guard1).post(
            f'{URL}{pk}/exit/', {'exit_decision': 'Aprovado'}, format='json',
            HTTP_X_SELECTED_PORTARIA='Portaria 1',
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['status'], 'in_transit')

        response = self.as_user(self.guard1).post(
            f'{URL}{pk}/arrival/', {'arrival_decision': 'Aprovado'}, format='json',
            HTTP_X_SELECTED_PORTARIA='Portaria 2',
        )
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        response = self.as_user(self.guard2).post(
            f'{URL}{pk}/arrival/', {'arrival_decision': 'Aprovado'}, format='json',
            HTTP_X_SELECTED_PORTARIA='Portaria 2',
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['status'], 'completed')

    def test_exit_without_operating_gate(self):
        pk = self.create_transfer()

        response = self.as_user(self.guard1).post(f'{URL}{pk}/exit/', {'exit_decision': 'Aprovado'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_exit_invalid_decision(self):
        pk = self.create_transfer()
        response = self.as_user(self.guard1).post(
            f'{URL}{pk}/exit/', {'exit_decision': 'Talvez'}, format='json',
            HTTP_X_SELECTED_PORTARIA='Portaria 1',
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_list_scoped_by_operating_gate(self):
        pk = self.create_transfer()

        response = self.as_user(self.guard1).get(URL, HTTP_X_SELECTED_PORTARIA='Portaria 1')
        self.assertEqual([item['id'] for item in response.data['data']['results']], [pk])

        response = self.as_user(self.guard1).get(URL, HTTP_X_SELECTED_PORTARIA='Portaria 2')
        self.assertEqual(response.data['data']['count'], 0)

    def test_summary_scoped_by_operating_gate(self):
        self.create_transfer()

        response = self.as_user(self.guard1).get(f'{URL}summary/', HTTP_X_SELECTED_PORTARIA='Portaria 1')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['counts']['in_progress'], 1)

        response = self.as_user(self.guard1).get(f'{URL}summary/', HTTP_X_SELECTED_PORTARIA='Portaria 2')
        self.assertEqual(response.data['data']['total'], 0)

    def test_detail_update_delete(self):
        pk = self.create_transfer()

        response = self.as_user(self.requester).get(f'{URL}{pk}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['events'][0]['action'], 'CREATED')

        response = self.as_user(self.requester).patch(f'{URL}{pk}/', {'carrier_name': 'Uber'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['carrier_name'], 'Uber')

        response = self.as_user(self.requester).delete(f'{URL}{pk}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(TransferProcess.objects.filter(pk=pk).exists())

    def test_delete_after_exit_conflicts(self):
        pk = self.create_transfer()
        self.as_user(self.guard1).post(
            f'{URL}{pk}/exit/', {'exit_decision': 'Aprovado'}, format='json',
            HTTP_X_SELECTED_PORTARIA='Portaria 1',
        )

        response = self.as_user(self.requester).delete(f'{URL}{pk}/')

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['data']['current_status'], 'Em trânsito')
