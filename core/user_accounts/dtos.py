"""
Data Transfer Objects for the User Accounts domain.
"""
from dataclasses import dataclass, field
from typing import List, Optional

from core.user_accounts.permissions import NO_PERMISSIONS, PermissionSet, resolve_permissions


AUTH_METHOD_LOCAL = 'local'
AUTH_METHOD_LDAP_IMPORTED = 'ldap_imported'
AUTH_METHOD_LDAP_UNIMPORTED = 'ldap_unimported'


@dataclass
class Delegate:
    """Active substitute manager for an approver"""
    email: Optional[str]
    display_name: str


@dataclass
class DirectoryProfile:
    """Attributes read from the directory for one person entry"""
    username: str
    display_name: str
    email: Optional[str] = None
    department: Optional[str] = None
    manager_name: Optional[str] = None
    principal_name: Optional[str] = None
    groups: List[str] = field(default_factory=list)


@dataclass
class SessionClaims:
    """Everything carried by the session token"""
    username: str
    display_name: str
    permissions: PermissionSet
    auth_method: str
    id: Optional[int] = None
    email: Optional[str] = None
    department: Optional[str] = None
    manager_name: Optional[str] = None
    manager_email: Optional[str] = None

    def to_dict(self) -> dict:
        data = {
            'username': self.username,
            'display_name': self.display_name,
            'email': self.email,
            'department': self.department,
            'manager_name': self.manager_name,
            'manager_email': self.manager_email,
            'auth_method': self.auth_method,
            **self.permissions.as_claims(),
        }
        # Ad-hoc directory identities have no local record to point at
        if self.id is not None:
            data['id'] = self.id
        return data


@dataclass
class Actor:
    """
    Identity invoking a workflow operation.

    Local identities (with user_id) are re-authorized from the database on
    every check. Ad-hoc directory identities have no record, so the
    capabilities carried by their session are used instead.
    """
    username: str
    user_id: Optional[int] = None
    email: Optional[str] = None
    display_name: Optional[str] = None
    session_permissions: Optional[PermissionSet] = None

    def effective_permissions(self) -> PermissionSet:
        if self.user_id:
            return resolve_permissions(self.user_id)
        return self.session_permissions or NO_PERMISSIONS

    def email_matches(self, email) -> bool:
        return bool(email and self.email and email.strip().lower() == self.email.strip().lower())

    @classmethod
    def from_user(cls, user) -> 'Actor':
        """Build from a LocalUser instance."""
        return cls(
            username=user.username,
            user_id=user.pk,
            email=user.email,
            display_name=user.display_name,
        )

    @classmethod
    def from_session(cls, session_user) -> 'Actor':
        """Build from the token user attached to an API request."""
        return cls(
            username=session_user.username,
            user_id=session_user.id,
            email=session_user.email,
            display_name=session_user.display_name,
            session_permissions=session_user.permissions,
        )
