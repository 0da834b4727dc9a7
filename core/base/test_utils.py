from datetime import timedelta

from django.utils import timezone

from core.user_accounts.auth_service import claims_for_local_user
from core.user_accounts.dtos import AUTH_METHOD_LOCAL, Actor
from core.user_accounts.models import LocalUser, PermissionGroup, UserGroupLink
from core.user_accounts.permissions import Capability
from core.user_accounts.tokens import issue_session_token


DEFAULT_PASSWORD = 'Senha@123'


def make_group(name, **flags):
    """Permission group with the given capability flags (e.g. can_perform_approvals=True)"""
    group, _ = PermissionGroup.objects.get_or_create(name=name, defaults=flags)
    return group


def make_admin_group():
    return make_group('Administradores', **PermissionGroup.full_access_defaults())


def make_gate_group():
    return make_group('Portaria', can_access_gate_control=True)


def make_manager_group():
    return make_group(
        'Gestores',
        can_perform_approvals=True,
        can_create_machine_exit=True,
        can_create_transfer=True,
    )


def make_requester_group():
    return make_group('Solicitantes', can_create_machine_exit=True, can_create_transfer=True)


def make_user(username, groups=(), email=None, password=DEFAULT_PASSWORD, display_name=None, **extra):
    """
    Local user linked to the given groups.
    Pass password=None for a directory-only user.
    """
    user = LocalUser.objects.create_user(
        username,
        display_name or username.title(),
        password=password,
        email=email,
        **extra
    )
    for group in groups:
        UserGroupLink.objects.create(user=user, group=group)
    return user


def actor_for(user):
    return Actor.from_user(user)


def token_for(user):
    """Session token for a local user, as issued by the login endpoint"""
    return issue_session_token(claims_for_local_user(user, AUTH_METHOD_LOCAL))


def authenticate_client(client, user):
    client.credentials(HTTP_AUTHORIZATION=f'Bearer {token_for(user)}')
    return client


def days_from_today(days):
    return timezone.localdate() + timedelta(days=days)


ALL_CAPABILITIES = [capability.value for capability in Capability]
