"""
Session tokens.

A signed access token (djangorestframework-simplejwt) carries the full
session claims, capability flags included. There is no refresh token;
re-authentication is required after ACCESS_TOKEN_LIFETIME (8 hours).

Route-level checks read the capability flags straight from the token, so a
capability revoked mid-session stays effective until the token expires.
Workflow operations re-resolve permissions from the database for local users.
"""
from django.utils.functional import cached_property
from rest_framework_simplejwt.models import TokenUser
from rest_framework_simplejwt.tokens import AccessToken

from core.user_accounts.dtos import SessionClaims
from core.user_accounts.permissions import PermissionSet


def issue_session_token(claims: SessionClaims) -> str:
    """Sign the claims into an access token string."""
    token = AccessToken()
    for key, value in claims.to_dict().items():
        token[key] = value
    return str(token)


class SessionUser(TokenUser):
    """
    request.user for API calls: built from token claims, no database access.

    `id` is the local user id, or None for ad-hoc directory identities.
    """

    @cached_property
    def id(self):
        return self.token.get('id')

    @cached_property
    def pk(self):
        return self.id

    @cached_property
    def display_name(self):
        return self.token.get('display_name') or self.username

    @cached_property
    def email(self):
        return self.token.get('email')

    @cached_property
    def auth_method(self):
        return self.token.get('auth_method')

    @cached_property
    def permissions(self) -> PermissionSet:
        return PermissionSet.from_claims(self.token)

    def claims(self) -> dict:
        """Session claims without the token bookkeeping fields."""
        excluded = {'token_type', 'exp', 'iat', 'jti'}
        return {key: value for key, value in self.token.payload.items() if key not in excluded}

    def __str__(self):
        return f"SessionUser {self.username}"
