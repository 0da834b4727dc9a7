"""
Tests for the authentication service and the directory client helpers.
The directory is never contacted: DirectoryClient is replaced by a mock or
ldap3's Connection is patched.
"""
from unittest import mock

from django.test import TestCase

from core.base.exceptions import (
    AccountDisabled,
    DirectoryConfigurationError,
    DirectoryConnectionError,
    DirectoryProfileError,
    InvalidCredentials,
    ProfileNotFound,
)
from core.base.test_utils import make_gate_group, make_group, make_user
from core.user_accounts.auth_service import authenticate, map_directory_groups
from core.user_accounts.directory import (
    DirectoryClient,
    DirectoryConfig,
    compute_principal,
    extract_group_names,
    profile_from_attributes,
)
from core.user_accounts.dtos import (
    AUTH_METHOD_LDAP_IMPORTED,
    AUTH_METHOD_LDAP_UNIMPORTED,
    AUTH_METHOD_LOCAL,
    DirectoryProfile,
)
from core.user_accounts.models import LocalUser


def directory_config(**overrides):
    values = {
        'url': 'ldap://dc.corp.local',
        'base_dn': 'DC=corp,DC=local',
        'bind_dn': 'svc_scse@corp.local',
        'bind_password': 'svc-secret',
        'admin_group': 'SCSE-Admins',
        'manager_group': 'SCSE-Gestores',
        'gate_group': 'SCSE-Portaria',
    }
    values.update(overrides)
    return DirectoryConfig(**values)


def fake_client(profile=None, error=None, config=None):
    client = mock.Mock()
    client.config = config or directory_config()
    if error is not None:
        client.authenticate.side_effect = error
    else:
        client.authenticate.return_value = profile
    return client


class LocalAuthenticationTest(TestCase):

    def setUp(self):
        self.group = make_group('Solicitantes', can_create_machine_exit=True)
        self.user = make_user('carlos', groups=[self.group], password='Segredo@1', email='carlos@corp.com')

    def test_local_login(self):
        claims = authenticate('carlos', 'Segredo@1')

        self.assertEqual(claims.auth_method, AUTH_METHOD_LOCAL)
        self.assertEqual(claims.id, self.user.pk)
        self.assertTrue(claims.permissions.can_create_machine_exit)
        self.assertFalse(claims.permissions.can_access_admin_panel)

    def test_wrong_password_does_not_try_directory(self):
        client = fake_client()
        with self.assertRaises(InvalidCredentials):
            authenticate('carlos', 'errada', directory_client=client)
        client.authenticate.assert_not_called()

    def test_disabled_account(self):
        self.user.is_active = False
        self.user.save()
        with self.assertRaises(AccountDisabled):
            authenticate('carlos', 'Segredo@1')

    def test_empty_credentials(self):
        with self.assertRaises(InvalidCredentials):
            authenticate('carlos', '')
        with self.assertRaises(InvalidCredentials):
            authenticate('', 'Segredo@1')

    def test_manager_in_claims(self):
        boss = make_user('chefe', email='chefe@corp.com', display_name='Chefe Geral')
        self.user.manager = boss
        self.user.save()

        claims = authenticate('carlos', 'Segredo@1')

        self.assertEqual(claims.manager_name, 'Chefe Geral')
        self.assertEqual(claims.manager_email, 'chefe@corp.com')


class DirectoryAuthenticationTest(TestCase):

    def test_imported_user_uses_local_groups_and_syncs_profile(self):
        gate = make_gate_group()
        user = make_user('vigia', groups=[gate], password=None, email='old@corp.com')
        profile = DirectoryProfile(
            username='vigia', display_name='Vigia Novo', email='vigia@corp.com', department='Segurança',
            groups=['SCSE-Admins'],
        )

        claims = authenticate('vigia', 'ad-pass', directory_client=fake_client(profile))

        self.assertEqual(claims.auth_method, AUTH_METHOD_LDAP_IMPORTED)
        self.assertEqual(claims.id, user.pk)
        # local groups decide, directory groups are ignored
        self.assertTrue(claims.permissions.can_access_gate_control)
        self.assertFalse(claims.permissions.can_access_admin_panel)
        user.refresh_from_db()
        self.assertEqual(user.display_name, 'Vigia Novo')
        self.assertEqual(user.email, 'vigia@corp.com')
        self.assertEqual(user.department, 'Segurança')

    def test_unimported_gate_member_gets_mapped_capabilities(self):
        profile = DirectoryProfile(
            username='porteiro', display_name='Porteiro AD', email='porteiro@corp.com',
            groups=['scse-portaria', 'Domain Users'],
        )

        claims = authenticate('porteiro', 'ad-pass', directory_client=fake_client(profile))

        self.assertEqual(claims.auth_method, AUTH_METHOD_LDAP_UNIMPORTED)
        self.assertIsNone(claims.id)
        self.assertNotIn('id', claims.to_dict())
        self.assertTrue(claims.permissions.can_access_gate_control)
        self.assertFalse(claims.permissions.can_access_admin_panel)
        self.assertFalse(claims.permissions.can_create_machine_exit)
        self.assertFalse(claims.permissions.can_create_transfer)
        self.assertFalse(LocalUser.objects.filter(username='porteiro').exists())

    def test_unimported_admin_member_gets_admin_panel(self):
        profile = DirectoryProfile(
            username='ti.admin', display_name='TI Admin', email='ti@corp.com', groups=['SCSE-Admins'],
        )

        claims = authenticate('ti.admin', 'ad-pass', directory_client=fake_client(profile))

        self.assertEqual(claims.auth_method, AUTH_METHOD_LDAP_UNIMPORTED)
        self.assertTrue(claims.permissions.can_access_admin_panel)
        self.assertTrue(claims.permissions.is_admin)

    def test_directory_rejection_is_invalid_credentials(self):
        client = fake_client(error=InvalidCredentials(source='directory'))
        with self.assertRaises(InvalidCredentials) as ctx:
            authenticate('ninguem', 'x', directory_client=client)
        self.assertEqual(ctx.exception.source, 'directory')

    def test_profile_not_found_propagates(self):
        with self.assertRaises(ProfileNotFound):
            authenticate('fantasma', 'x', directory_client=fake_client(error=ProfileNotFound()))

    def test_unconfigured_directory(self):
        client = fake_client(config=DirectoryConfig())
        with self.assertRaises(InvalidCredentials):
            authenticate('ninguem', 'x', directory_client=client)
        client.authenticate.assert_not_called()


class MapDirectoryGroupsTest(TestCase):

    def test_admin_member(self):
        permissions = map_directory_groups(['SCSE-Admins'], directory_config())
        self.assertTrue(permissions.is_admin)
        self.assertTrue(permissions.can_view_audit_log)
        self.assertTrue(permissions.can_create_transfer)
        self.assertFalse(permissions.can_perform_approvals)

    def test_manager_member(self):
        permissions = map_directory_groups(['SCSE-Gestores'], directory_config())
        self.assertTrue(permissions.can_perform_approvals)
        self.assertTrue(permissions.can_create_machine_exit)
        self.assertFalse(permissions.is_admin)

    def test_plain_member_can_create(self):
        permissions = map_directory_groups([], directory_config())
        self.assertTrue(permissions.can_create_machine_exit)
        self.assertFalse(permissions.can_access_gate_control)

    def test_empty_mapping_is_a_configuration_error(self):
        config = directory_config(admin_group='', manager_group='', gate_group='')
        with self.assertRaises(DirectoryConfigurationError):
            map_directory_groups(['SCSE-Admins'], config)


class DirectoryHelpersTest(TestCase):

    def test_compute_principal(self):
        config = directory_config()
        self.assertEqual(compute_principal('jsilva', config), 'jsilva@corp.local')
        self.assertEqual(compute_principal('jsilva@outro.com', config), 'jsilva@outro.com')
        self.assertEqual(compute_principal('CN=J Silva,OU=TI', config), 'CN=J Silva,OU=TI')

    def test_extract_group_names(self):
        names = extract_group_names([
            'CN=SCSE-Portaria,OU=Grupos,DC=corp,DC=local',
            'cn=Domain Users,CN=Users,DC=corp,DC=local',
        ])
        self.assertEqual(names, ['SCSE-Portaria', 'Domain Users'])
        self.assertEqual(extract_group_names(None), [])

    def test_profile_from_attributes(self):
        profile = profile_from_attributes({
            'sAMAccountName': ['jsilva'],
            'givenName': 'João',
            'sn': 'Silva',
            'mail': 'jsilva@corp.local',
            'department': 'Manutenção',
            'manager': 'CN=Maria Souza,OU=Pessoas,DC=corp,DC=local',
            'memberOf': ['CN=SCSE-Gestores,OU=Grupos,DC=corp,DC=local'],
        })
        self.assertEqual(profile.username, 'jsilva')
        self.assertEqual(profile.display_name, 'João Silva')
        self.assertEqual(profile.manager_name, 'Maria Souza')
        self.assertEqual(profile.groups, ['SCSE-Gestores'])


@mock.patch('core.user_accounts.directory.Server')
@mock.patch('core.user_accounts.directory.Connection')
class DirectoryClientTest(TestCase):

    def test_bind_rejected(self, connection_class, server_class):
        connection = connection_class.return_value
        connection.bind.return_value = False
        connection.result = {'result': 49, 'description': 'invalidCredentials'}

        with self.assertRaises(InvalidCredentials):
            DirectoryClient(directory_config()).authenticate('jsilva', 'errada')

    def test_other_bind_failure_is_connection_error(self, connection_class, server_class):
        connection = connection_class.return_value
        connection.bind.return_value = False
        connection.result = {'result': 52, 'message': 'unavailable'}

        with self.assertRaises(DirectoryConnectionError):
            DirectoryClient(directory_config()).authenticate('jsilva', 'senha')

    def test_empty_password_never_binds(self, connection_class, server_class):
        with self.assertRaises(InvalidCredentials):
            DirectoryClient(directory_config()).authenticate('jsilva', '')
        connection_class.assert_not_called()

    def test_bind_ok_but_no_entry(self, connection_class, server_class):
        connection = connection_class.return_value
        connection.bind.return_value = True
        connection.result = {'result': 0, 'description': 'success'}
        connection.response = []

        with self.assertRaises(ProfileNotFound):
            DirectoryClient(directory_config()).authenticate('jsilva', 'senha')
        connection.unbind.assert_called()

    def test_profile_returned(self, connection_class, server_class):
        connection = connection_class.return_value
        connection.bind.return_value = True
        connection.result = {'result': 0, 'description': 'success'}
        connection.response = [{
            'type': 'searchResEntry',
            'attributes': {'sAMAccountName': 'jsilva', 'displayName': 'João Silva', 'memberOf': []},
        }]

        profile = DirectoryClient(directory_config()).authenticate('jsilva', 'senha')

        self.assertEqual(profile.display_name, 'João Silva')
        self.assertEqual(connection_class.call_args.kwargs['user'], 'jsilva@corp.local')

    def test_missing_configuration(self, connection_class, server_class):
        with self.assertRaises(DirectoryConfigurationError):
            DirectoryClient(DirectoryConfig()).authenticate('jsilva', 'senha')

    def test_failed_profile_search_is_profile_error(self, connection_class, server_class):
        connection = connection_class.return_value
        connection.bind.return_value = True
        connection.search.return_value = False
        connection.result = {'result': 32, 'description': 'noSuchObject', 'message': 'base DN not found'}
        connection.response = []

        with self.assertRaises(DirectoryProfileError) as ctx:
            DirectoryClient(directory_config()).authenticate('jsilva', 'senha')
        self.assertIn('base DN not found', str(ctx.exception))
        connection.unbind.assert_called()

    def test_search_people_reads_pages(self, connection_class, server_class):
        connection = connection_class.return_value
        connection.bind.return_value = True
        connection.extend.standard.paged_search.return_value = [
            {'type': 'searchResEntry', 'attributes': {'sAMAccountName': 'jsilva', 'displayName': 'João Silva'}},
            {'type': 'searchResRef', 'uri': ['ldap://other.corp.local']},
        ]
        connection.result = {'result': 0, 'description': 'success'}

        profiles = DirectoryClient(directory_config()).search_people()

        self.assertEqual([profile.username for profile in profiles], ['jsilva'])
        self.assertTrue(connection.extend.standard.paged_search.call_args.kwargs['paged_size'])

    def test_unsuccessful_people_search_raises(self, connection_class, server_class):
        connection = connection_class.return_value
        connection.bind.return_value = True
        for code, description in ((32, 'noSuchObject'), (50, 'insufficientAccessRights'), (4, 'sizeLimitExceeded')):
            connection.extend.standard.paged_search.return_value = []
            connection.result = {'result': code, 'description': description}

            with self.assertRaises(DirectoryConnectionError):
                DirectoryClient(directory_config()).search_people()
