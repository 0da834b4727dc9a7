"""
Tests for the admin panel services: users, groups, substitutions and the
directory synchronization pass.
"""
from datetime import timedelta
from unittest import mock

from django.core.exceptions import ValidationError
from django.test import TestCase
from django.utils import timezone

from core.audit.models import AuditEvent, EntityType
from core.base.exceptions import DirectoryConnectionError, ReferentialConflict
from core.base.test_utils import (
    make_admin_group,
    make_gate_group,
    make_manager_group,
    make_user,
)
from core.user_accounts import services
from core.user_accounts.directory import DirectoryClient, DirectoryConfig
from core.user_accounts.dtos import DirectoryProfile
from core.user_accounts.models import LocalUser, ManagerSubstitution, PermissionGroup, UserGroupLink


class UserServiceTest(TestCase):

    def setUp(self):
        self.admin_group = make_admin_group()
        self.gate_group = make_gate_group()
        self.admin = make_user('admin', groups=[self.admin_group])
        self.other_admin = make_user('admin2', groups=[self.admin_group])

    def test_create_local_and_directory_only_users(self):
        local = services.create_user(
            {'username': 'local1', 'display_name': 'Local Um', 'password': 'x1', 'group_ids': [self.gate_group.pk]},
            'admin',
        )
        directory_only = services.create_user({'username': 'ad1', 'display_name': 'AD Um'}, 'admin')

        self.assertTrue(local.has_local_password)
        self.assertFalse(directory_only.has_local_password)
        self.assertEqual(list(local.permission_groups.all()), [self.gate_group])
        self.assertTrue(AuditEvent.objects.filter(action='USER_CREATED', entity_identifier=str(local.pk)).exists())

    def test_create_duplicate_username(self):
        with self.assertRaises(ValidationError):
            services.create_user({'username': 'admin', 'display_name': 'Dup'}, 'admin')

    def test_create_resolves_manager_by_display_name(self):
        boss = make_user('chefe', display_name='Maria Souza')
        user = services.create_user(
            {'username': 'sub', 'display_name': 'Sub', 'manager_name': 'maria souza'}, 'admin'
        )
        self.assertEqual(user.manager, boss)

    def test_update_replaces_groups_and_records_changes(self):
        user = make_user('joao', groups=[self.gate_group])
        requesters = PermissionGroup.objects.create(name='Solicitantes', can_create_transfer=True)

        services.update_user(user.pk, {'display_name': 'João Silva', 'group_ids': [requesters.pk]}, 'admin')

        user.refresh_from_db()
        self.assertEqual(user.display_name, 'João Silva')
        self.assertEqual(list(user.permission_groups.all()), [requesters])
        event = AuditEvent.objects.get(action='USER_UPDATED')
        self.assertIn("Nome: 'Joao' -> 'João Silva'", event.details)

    def test_update_without_changes_records_nothing(self):
        user = make_user('joao')
        services.update_user(user.pk, {'display_name': user.display_name}, 'admin')
        self.assertFalse(AuditEvent.objects.filter(action='USER_UPDATED').exists())

    def test_cannot_remove_last_admin_through_group_change(self):
        UserGroupLink.objects.filter(user=self.other_admin).delete()
        with self.assertRaises(ReferentialConflict):
            services.update_user(self.admin.pk, {'group_ids': [self.gate_group.pk]}, 'admin')
        self.assertTrue(UserGroupLink.objects.filter(user=self.admin, group=self.admin_group).exists())

    def test_cannot_deactivate_last_admin(self):
        services.update_user(self.other_admin.pk, {'is_active': False}, 'admin', actor_id=self.admin.pk)
        with self.assertRaises(ReferentialConflict):
            services.update_user(self.admin.pk, {'is_active': False}, 'admin2')

    def test_delete_protections(self):
        with self.assertRaises(ReferentialConflict):
            services.delete_user(self.other_admin.pk, 'admin2', actor_id=self.other_admin.pk)
        with self.assertRaises(ReferentialConflict):
            services.delete_user(self.admin.pk, 'admin2', actor_id=self.other_admin.pk)

        boss = make_user('chefe')
        make_user('subordinado', manager=boss)
        with self.assertRaises(ReferentialConflict):
            services.delete_user(boss.pk, 'admin', actor_id=self.admin.pk)

        linked = make_user('vigia', groups=[self.gate_group])
        with self.assertRaises(ReferentialConflict):
            services.delete_user(linked.pk, 'admin', actor_id=self.admin.pk)

    def test_delete_user(self):
        user = make_user('temporario')
        services.delete_user(user.pk, 'admin', actor_id=self.admin.pk)

        self.assertFalse(LocalUser.objects.filter(pk=user.pk).exists())
        self.assertTrue(AuditEvent.objects.filter(action='USER_DELETED', entity_identifier=str(user.pk)).exists())

    def test_bulk_deactivate_skips_actor_and_protected_account(self):
        users = [make_user(f'u{i}') for i in range(3)]
        ids = [user.pk for user in users] + [self.admin.pk, self.other_admin.pk]

        result = services.bulk_set_active(ids, False, 'admin2', actor_id=self.other_admin.pk)

        self.assertEqual(result['count'], 3)
        self.assertTrue(LocalUser.objects.get(pk=self.admin.pk).is_active)
        self.assertTrue(LocalUser.objects.get(pk=self.other_admin.pk).is_active)
        event = AuditEvent.objects.get(action='USER_BULK_DEACTIVATED')
        self.assertEqual(event.entity_identifier, 'BULK_ACTION')

    def test_bulk_deactivate_refuses_every_admin(self):
        LocalUser.objects.filter(pk=self.admin.pk).update(is_active=False)

        with self.assertRaises(ReferentialConflict):
            services.bulk_set_active([self.other_admin.pk], False, 'chefe')

    def test_list_managers(self):
        manager = make_user('gestor', groups=[make_manager_group()])
        inactive = make_user('gestor_inativo', groups=[make_manager_group()], is_active=False)
        plain = make_user('comum')

        managers = list(services.list_managers())
        self.assertIn(manager, managers)
        self.assertNotIn(inactive, managers)
        self.assertNotIn(plain, managers)


class GroupServiceTest(TestCase):

    def test_create_and_update_group(self):
        group = services.create_group({'name': 'Portaria Sul', 'can_access_gate_control': True}, 'admin')
        self.assertTrue(group.can_access_gate_control)

        services.update_group(group.pk, {'can_create_transfer': True}, 'admin')

        event = AuditEvent.objects.get(action='GROUP_UPDATED')
        self.assertIn('can_create_transfer: Não -> Sim', event.details)

    def test_duplicate_name(self):
        services.create_group({'name': 'Portaria'}, 'admin')
        with self.assertRaises(ValidationError):
            services.create_group({'name': 'portaria'}, 'admin')

    def test_admin_group_protections(self):
        group = make_admin_group()
        with self.assertRaises(ReferentialConflict):
            services.update_group(group.pk, {'name': 'Outro'}, 'admin')
        with self.assertRaises(ReferentialConflict):
            services.update_group(group.pk, {'can_access_admin_panel': False}, 'admin')
        with self.assertRaises(ReferentialConflict):
            services.delete_group(group.pk, 'admin')

    def test_group_with_members_cannot_be_deleted(self):
        group = make_gate_group()
        make_user('vigia', groups=[group])
        with self.assertRaises(ReferentialConflict):
            services.delete_group(group.pk, 'admin')

    def test_delete_group(self):
        group = services.create_group({'name': 'Temporário'}, 'admin')
        services.delete_group(group.pk, 'admin')
        self.assertFalse(PermissionGroup.objects.filter(pk=group.pk).exists())
        self.assertTrue(AuditEvent.objects.filter(action='GROUP_DELETED').exists())


class SubstitutionServiceTest(TestCase):

    def setUp(self):
        self.original = make_user('gestor', email='gestor@corp.com')
        self.substitute = make_user('substituto', email='sub@corp.com')
        self.today = timezone.localdate()

    def _data(self, **overrides):
        data = {
            'original_manager_id': self.original.pk,
            'substitute_manager_id': self.substitute.pk,
            'start_date': self.today.isoformat(),
            'end_date': (self.today + timedelta(days=7)).isoformat(),
        }
        data.update(overrides)
        return data

    def test_create_and_delete(self):
        substitution = services.create_substitution(self._data(), 'admin')
        self.assertEqual(substitution.created_by_username, 'admin')
        self.assertEqual(
            AuditEvent.objects.get(action='SUBSTITUTE_CREATED').entity_type, EntityType.SUBSTITUTION
        )

        services.delete_substitution(substitution.pk, 'admin')
        self.assertFalse(ManagerSubstitution.objects.exists())
        self.assertTrue(AuditEvent.objects.filter(action='SUBSTITUTE_DELETED').exists())

    def test_overlapping_windows_are_accepted(self):
        services.create_substitution(self._data(), 'admin')
        services.create_substitution(self._data(), 'admin')
        self.assertEqual(ManagerSubstitution.objects.count(), 2)

    def test_invalid_windows(self):
        with self.assertRaises(ValidationError):
            services.create_substitution(self._data(end_date=(self.today - timedelta(days=1)).isoformat()), 'admin')
        with self.assertRaises(ValidationError):
            services.create_substitution(self._data(substitute_manager_id=self.original.pk), 'admin')
        with self.assertRaises(ValidationError):
            services.create_substitution(self._data(start_date=''), 'admin')
        with self.assertRaises(ValidationError):
            services.create_substitution(self._data(start_date='31/12/2030'), 'admin')


class DirectorySyncTest(TestCase):

    def setUp(self):
        self.boss = make_user('chefe', display_name='Maria Souza')
        self.active = make_user('ativo', password=None, display_name='Nome Antigo', email='old@corp.com')
        self.gone = make_user('saiu', password=None)
        self.disabled = make_user('desligado', password=None, is_active=False, display_name='Desligado')
        self.local = make_user('localonly')

    def _client(self, profiles):
        client = mock.Mock()
        client.search_people.return_value = profiles
        return client

    def test_sync_pass(self):
        client = self._client([
            DirectoryProfile(username='ATIVO', display_name='Nome Novo', email='novo@corp.com',
                             department='TI', manager_name='maria souza'),
            DirectoryProfile(username='desligado', display_name='Mudou'),
        ])

        result = services.sync_directory_users('system', client=client)

        self.assertEqual(result['updated'], 2)
        self.assertEqual(result['failed'], 0)

        self.active.refresh_from_db()
        self.assertEqual(self.active.display_name, 'Nome Novo')
        self.assertEqual(self.active.email, 'novo@corp.com')
        self.assertEqual(self.active.manager, self.boss)

        self.gone.refresh_from_db()
        self.assertFalse(self.gone.is_active)

        # manual deactivation is never undone, and nothing else changes
        self.disabled.refresh_from_db()
        self.assertFalse(self.disabled.is_active)
        self.assertEqual(self.disabled.display_name, 'Desligado')

        # users with a local password are not touched
        self.local.refresh_from_db()
        self.assertTrue(self.local.is_active)

        self.assertTrue(AuditEvent.objects.filter(action='USER_SYNC_UPDATED').exists())
        self.assertTrue(AuditEvent.objects.filter(action='USER_SYNC_DEACTIVATED').exists())
        self.assertEqual(AuditEvent.objects.filter(action='LDAP_SYNC_COMPLETED').count(), 1)

    def test_sync_is_idempotent(self):
        profiles = [DirectoryProfile(username='ativo', display_name='Nome Novo', email='novo@corp.com')]
        services.sync_directory_users('system', client=self._client(profiles))

        result = services.sync_directory_users('system', client=self._client(profiles))

        self.assertEqual(result['updated'], 0)
        self.assertEqual(result['changes'], [])

    def test_nothing_to_sync(self):
        LocalUser.objects.exclude(pk__in=[self.boss.pk, self.local.pk]).delete()
        client = self._client([])

        result = services.sync_directory_users('system', client=client)

        self.assertEqual(result['updated'], 0)
        client.search_people.assert_not_called()

    @mock.patch('core.user_accounts.directory.Server')
    @mock.patch('core.user_accounts.directory.Connection')
    def test_failed_directory_search_deactivates_nobody(self, connection_class, server_class):
        connection = connection_class.return_value
        connection.bind.return_value = True
        connection.extend.standard.paged_search.return_value = []
        connection.result = {'result': 32, 'description': 'noSuchObject'}
        client = DirectoryClient(DirectoryConfig(
            url='ldap://dc.corp.local',
            base_dn='OU=Inexistente,DC=corp,DC=local',
            bind_dn='svc_scse@corp.local',
            bind_password='svc-secret',
        ))

        with self.assertRaises(DirectoryConnectionError):
            services.sync_directory_users('system', client=client)

        self.active.refresh_from_db()
        self.gone.refresh_from_db()
        self.assertTrue(self.active.is_active)
        self.assertTrue(self.gone.is_active)
        self.assertFalse(AuditEvent.objects.filter(action__startswith='USER_SYNC').exists())
        self.assertFalse(AuditEvent.objects.filter(action='LDAP_SYNC_COMPLETED').exists())
