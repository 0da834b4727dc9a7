"""
Authentication service.

Order of evaluation:
1. Local user found and inactive                -> AccountDisabled
2. Local user with a password                   -> local password check
3. Directory-only local user, or no local user  -> directory bind + profile search
4. Directory success with a local record        -> profile sync, local group permissions
5. Directory success without a local record     -> permissions mapped from directory groups
"""
import logging
from typing import Optional

from core.base.exceptions import DirectoryConfigurationError, InvalidCredentials, AccountDisabled
from core.user_accounts.directory import DirectoryClient, DirectoryConfig
from core.user_accounts.dtos import (
    AUTH_METHOD_LDAP_IMPORTED,
    AUTH_METHOD_LDAP_UNIMPORTED,
    AUTH_METHOD_LOCAL,
    DirectoryProfile,
    SessionClaims,
)
from core.user_accounts.models import LocalUser
from core.user_accounts.permissions import PermissionSet, resolve_permissions

logger = logging.getLogger(__name__)


def authenticate(username, password, directory_client: Optional[DirectoryClient] = None) -> SessionClaims:
    """
    Validate credentials and build the session claims.

    Args:
        username: Login name or directory principal
        password: Plain text password
        directory_client: Injected client (tests); built from configuration otherwise

    Returns:
        SessionClaims

    Raises:
        InvalidCredentials, AccountDisabled, ProfileNotFound,
        DirectoryConnectionError, DirectoryProfileError, DirectoryConfigurationError
    """
    username = (username or '').strip()
    if not username or not password:
        raise InvalidCredentials()

    user = (
        LocalUser.objects
        .select_related('manager')
        .filter(username=username)
        .first()
    )

    if user is not None and not user.is_active:
        logger.info(f"Login refused for disabled account '{username}'")
        raise AccountDisabled()

    if user is not None and user.has_local_password:
        if not user.check_password(password):
            logger.info(f"Local password mismatch for '{username}'")
            raise InvalidCredentials()
        logger.info(f"Local login succeeded for '{username}'")
        return claims_for_local_user(user, AUTH_METHOD_LOCAL)

    client = directory_client or DirectoryClient()
    if not client.config.is_configured:
        logger.warning(f"Directory login for '{username}' skipped: directory not configured")
        raise InvalidCredentials()

    profile = client.authenticate(username, password)

    if user is not None:
        sync_profile_on_login(user, profile)
        logger.info(f"Directory login succeeded for imported user '{username}'")
        return claims_for_local_user(user, AUTH_METHOD_LDAP_IMPORTED)

    logger.info(f"Directory login succeeded for unimported user '{profile.username}'")
    permissions = map_directory_groups(profile.groups, client.config)
    return SessionClaims(
        username=profile.username,
        display_name=profile.display_name,
        email=profile.email,
        department=profile.department,
        permissions=permissions,
        auth_method=AUTH_METHOD_LDAP_UNIMPORTED,
    )


def claims_for_local_user(user: LocalUser, auth_method) -> SessionClaims:
    manager = user.manager
    return SessionClaims(
        id=user.pk,
        username=user.username,
        display_name=user.display_name,
        email=user.email,
        department=user.department,
        manager_name=manager.display_name if manager else None,
        manager_email=manager.email if manager else None,
        permissions=resolve_permissions(user.pk),
        auth_method=auth_method,
    )


def sync_profile_on_login(user: LocalUser, profile: DirectoryProfile):
    """Copy display name, e-mail and department from the directory. Failures are logged only."""
    user.display_name = profile.display_name or user.display_name
    user.email = profile.email or user.email
    user.department = profile.department or user.department
    try:
        LocalUser.objects.filter(pk=user.pk).update(
            display_name=user.display_name,
            email=user.email,
            department=user.department,
        )
    except Exception:
        logger.exception(f"Failed to sync directory profile of '{user.username}' on login")


def map_directory_groups(group_names, config: DirectoryConfig) -> PermissionSet:
    """
    Capabilities of an identity with no local record, from its directory groups.

    Group names are compared case-insensitively with the configured mapping.
    """
    mapping = config.group_mapping()
    if not any(mapping.values()):
        raise DirectoryConfigurationError(
            'Mapeamento de grupos do AD não configurado (AD_ADMIN_GROUP, AD_MANAGER_GROUP, AD_GATE_GROUP).'
        )

    member_of = {name.lower() for name in group_names}

    def is_member(group_name):
        return bool(group_name) and group_name.lower() in member_of

    is_admin = is_member(config.admin_group)
    is_manager = is_member(config.manager_group)
    is_gate = is_member(config.gate_group)
    can_create = not (is_gate and not is_admin)

    return PermissionSet(
        can_access_admin_panel=is_admin,
        can_manage_users=is_admin,
        can_manage_groups=is_admin,
        can_manage_config=is_admin,
        can_perform_approvals=is_manager,
        can_access_gate_control=is_gate,
        can_create_machine_exit=can_create,
        can_create_transfer=can_create,
        can_view_audit_log=is_admin,
    )
