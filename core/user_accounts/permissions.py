"""
Permission resolution.

A user's effective capability set is the logical OR of the flags of every
permission group they belong to. Resolution is re-done from the database on
each authorization check; there is no cache.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional

logger = logging.getLogger(__name__)


class Capability(str, Enum):
    """Capability flags; values match the PermissionGroup field names and token claims."""
    ACCESS_ADMIN_PANEL = 'can_access_admin_panel'
    MANAGE_USERS = 'can_manage_users'
    MANAGE_GROUPS = 'can_manage_groups'
    MANAGE_CONFIG = 'can_manage_config'
    PERFORM_APPROVALS = 'can_perform_approvals'
    ACCESS_GATE_CONTROL = 'can_access_gate_control'
    CREATE_MACHINE_EXIT = 'can_create_machine_exit'
    CREATE_TRANSFER = 'can_create_transfer'
    VIEW_AUDIT_LOG = 'can_view_audit_log'


CAPABILITY_FIELDS = [capability.value for capability in Capability]


@dataclass(frozen=True)
class PermissionSet:
    """Effective capabilities of one identity, plus the identity fields used by callers."""
    can_access_admin_panel: bool = False
    can_manage_users: bool = False
    can_manage_groups: bool = False
    can_manage_config: bool = False
    can_perform_approvals: bool = False
    can_access_gate_control: bool = False
    can_create_machine_exit: bool = False
    can_create_transfer: bool = False
    can_view_audit_log: bool = False

    user_id: Optional[int] = None
    username: Optional[str] = None
    email: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.can_access_admin_panel

    def has(self, capability) -> bool:
        return bool(getattr(self, Capability(capability).value))

    def has_any(self, *capabilities) -> bool:
        return any(self.has(capability) for capability in capabilities)

    def as_claims(self) -> dict:
        return {name: getattr(self, name) for name in CAPABILITY_FIELDS}

    @classmethod
    def from_groups(cls, groups: Iterable, **identity) -> 'PermissionSet':
        """OR the capability flags of every group (model instances or dicts)."""
        flags = dict.fromkeys(CAPABILITY_FIELDS, False)
        for group in groups:
            for name in CAPABILITY_FIELDS:
                value = group.get(name) if isinstance(group, dict) else getattr(group, name)
                if value:
                    flags[name] = True
        return cls(**flags, **identity)

    @classmethod
    def from_claims(cls, claims) -> 'PermissionSet':
        """Rebuild the set carried by a session token."""
        flags = {name: bool(claims.get(name, False)) for name in CAPABILITY_FIELDS}
        return cls(
            **flags,
            user_id=claims.get('id'),
            username=claims.get('username'),
            email=claims.get('email'),
        )


NO_PERMISSIONS = PermissionSet()


def resolve_permissions(user_id) -> PermissionSet:
    """
    Compute the effective permission set of a local user.

    Returns an all-False set when user_id is empty, the user does not exist,
    the user is inactive, or the lookup fails. Never raises.
    """
    if not user_id:
        logger.warning("Permission lookup requested without a user id")
        return NO_PERMISSIONS

    from core.user_accounts.models import LocalUser, PermissionGroup

    try:
        user = LocalUser.objects.filter(pk=user_id).only('id', 'username', 'email', 'is_active').first()
        if user is None or not user.is_active:
            logger.warning(f"User id {user_id} not found or inactive; granting no permissions")
            return NO_PERMISSIONS

        groups = PermissionGroup.objects.filter(user_links__user_id=user.pk).values(*CAPABILITY_FIELDS)
        return PermissionSet.from_groups(
            groups,
            user_id=user.pk,
            username=user.username,
            email=user.email,
        )
    except Exception:
        logger.exception(f"Failed to resolve permissions for user id {user_id}")
        return NO_PERMISSIONS

