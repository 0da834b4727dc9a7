"""
Directory service (Active Directory) client.

Wraps ldap3 with the bind-and-search operations SCSE needs:
- authenticate a person by binding with their own credentials
- read that person's profile (display name, mail, department, groups)
- list/search enabled person entries with the service account (import, sync)

Configuration comes from settings.SCSE_DIRECTORY, overridden key by key by the
AD_* rows of core.app_settings.
"""
import logging
import re
from dataclasses import dataclass
from typing import List, Optional

from django.conf import settings
from ldap3 import NONE, SUBTREE, Connection, Server
from ldap3.core.exceptions import LDAPException
from ldap3.utils.conv import escape_filter_chars

from core.base.exceptions import (
    DirectoryConfigurationError,
    DirectoryConnectionError,
    DirectoryProfileError,
    InvalidCredentials,
    ProfileNotFound,
)
from core.user_accounts.dtos import DirectoryProfile

logger = logging.getLogger(__name__)


LDAP_SUCCESS = 0
LDAP_SIZE_LIMIT_EXCEEDED = 4
LDAP_INVALID_CREDENTIALS = 49

PEOPLE_PAGE_SIZE = 500

CN_PATTERN = re.compile(r'CN=([^,]+)', re.IGNORECASE)

PROFILE_ATTRIBUTES = [
    'sAMAccountName', 'userPrincipalName', 'displayName', 'mail', 'cn',
    'givenName', 'sn', 'department', 'manager', 'memberOf',
]

ENABLED_PEOPLE_FILTER = (
    '(&(objectCategory=person)(objectClass=user)'
    '(!(userAccountControl:1.2.840.113556.1.4.803:=2)))'
)

# Maps DirectoryConfig attributes to the AppSetting keys overriding them
SETTING_KEYS = {
    'url': ('URL', 'AD_URL'),
    'base_dn': ('BASE_DN', 'AD_BASE_DN'),
    'bind_dn': ('BIND_DN', 'AD_BIND_DN'),
    'bind_password': ('BIND_PASSWORD', 'AD_BIND_PASSWORD'),
    'admin_group': ('ADMIN_GROUP', 'AD_ADMIN_GROUP'),
    'manager_group': ('MANAGER_GROUP', 'AD_MANAGER_GROUP'),
    'gate_group': ('GATE_GROUP', 'AD_GATE_GROUP'),
}


@dataclass
class DirectoryConfig:
    url: str = ''
    base_dn: str = ''
    bind_dn: str = ''
    bind_password: str = ''
    admin_group: str = ''
    manager_group: str = ''
    gate_group: str = ''
    connect_timeout: int = 5

    @property
    def is_configured(self) -> bool:
        return bool(self.url and self.base_dn)

    @property
    def domain(self) -> str:
        """DC=corp,DC=example,DC=com -> corp.example.com"""
        return re.sub(r'DC=', '', self.base_dn, flags=re.IGNORECASE).replace(',', '.').replace(' ', '')

    def group_mapping(self) -> dict:
        return {
            'admin_group': self.admin_group,
            'manager_group': self.manager_group,
            'gate_group': self.gate_group,
        }

    def missing_group_keys(self) -> List[str]:
        return [key for key, value in self.group_mapping().items() if not value]


def load_directory_config() -> DirectoryConfig:
    """Build the effective configuration (settings first, AppSetting rows override)."""
    from core.app_settings.services import get_settings_map

    base = getattr(settings, 'SCSE_DIRECTORY', {})
    overrides = get_settings_map([setting_key for _, setting_key in SETTING_KEYS.values()])

    values = {}
    for attr, (settings_key, setting_key) in SETTING_KEYS.items():
        override = (overrides.get(setting_key) or '').strip()
        values[attr] = override or (base.get(settings_key) or '')
    values['connect_timeout'] = int(base.get('CONNECT_TIMEOUT', 5))
    return DirectoryConfig(**values)


def compute_principal(username, config: DirectoryConfig) -> str:
    """
    Principal used to bind.

    Input that already looks like a principal (contains '@', 'cn=' or 'ou=')
    is used as is; otherwise the domain derived from the base DN is appended.
    """
    lowered = username.lower()
    if '@' in username or 'cn=' in lowered or 'ou=' in lowered:
        return username
    return f"{username}@{config.domain}"


def extract_group_names(member_of) -> List[str]:
    """CN component of each memberOf DN."""
    if not member_of:
        return []
    if isinstance(member_of, str):
        member_of = [member_of]
    names = []
    for dn in member_of:
        match = CN_PATTERN.search(str(dn))
        if match:
            names.append(match.group(1))
    return names


def _first(attributes, name):
    value = attributes.get(name)
    if isinstance(value, (list, tuple)):
        value = value[0] if value else None
    if value in ('', None):
        return None
    return str(value)


def result_diagnostic(result) -> str:
    """Readable description of an ldap3 operation result."""
    result = result or {}
    return result.get('message') or result.get('description') or 'erro desconhecido'


def profile_from_attributes(attributes, fallback_username='') -> DirectoryProfile:
    """Turn a raw ldap3 attribute dict into a DirectoryProfile."""
    username = _first(attributes, 'sAMAccountName') or fallback_username.split('@')[0]
    given_name = _first(attributes, 'givenName')
    surname = _first(attributes, 'sn')
    display_name = (
        _first(attributes, 'displayName')
        or _first(attributes, 'cn')
        or (f"{given_name} {surname}" if given_name and surname else None)
        or username
    )
    manager_dn = _first(attributes, 'manager')
    manager_names = extract_group_names([manager_dn]) if manager_dn else []

    return DirectoryProfile(
        username=username,
        display_name=display_name,
        email=_first(attributes, 'mail'),
        department=_first(attributes, 'department'),
        manager_name=manager_names[0] if manager_names else None,
        principal_name=_first(attributes, 'userPrincipalName'),
        groups=extract_group_names(attributes.get('memberOf')),
    )


class DirectoryClient:
    """
    Bind-and-search client for the configured directory.

    Usage:
        client = DirectoryClient()
        profile = client.authenticate('jsilva', 'secret')
    """

    def __init__(self, config: Optional[DirectoryConfig] = None):
        self.config = config or load_directory_config()

    # ----------------------
    # Connection helpers
    # ----------------------

    def _require_configuration(self):
        if not self.config.is_configured:
            raise DirectoryConfigurationError(
                'Configuração AD_URL ou AD_BASE_DN não encontrada.'
            )

    def _bind(self, principal, password, invalid_message=None) -> Connection:
        """Open a connection bound as principal; map failures to domain errors."""
        server = Server(self.config.url, connect_timeout=self.config.connect_timeout, get_info=NONE)
        connection = Connection(
            server,
            user=principal,
            password=password,
            raise_exceptions=False,
            receive_timeout=self.config.connect_timeout,
        )
        try:
            bound = connection.bind()
        except LDAPException as e:
            logger.warning(f"Directory connection to {self.config.url} failed: {e}")
            raise DirectoryConnectionError(f'Erro de conexão com o servidor LDAP: {e}') from e

        if not bound:
            result = connection.result or {}
            code = result.get('result')
            connection.unbind()
            if code == LDAP_INVALID_CREDENTIALS:
                logger.info(f"Directory bind rejected for {principal}")
                raise InvalidCredentials(
                    invalid_message or 'Credenciais inválidas (LDAP).',
                    source='directory'
                )
            diagnostic = result_diagnostic(result)
            logger.warning(f"Directory bind for {principal} failed with code {code}: {diagnostic}")
            raise DirectoryConnectionError(f'Erro na autenticação LDAP: {diagnostic}')

        return connection

    def service_connection(self, username=None, password=None) -> Connection:
        """
        Bind with explicit admin credentials or, when omitted, with the
        configured service account.
        """
        self._require_configuration()
        if username and password:
            principal = compute_principal(username, self.config)
        else:
            if not self.config.bind_dn or not self.config.bind_password:
                raise DirectoryConfigurationError(
                    'AD_BIND_DN e AD_BIND_PASSWORD devem estar configurados para esta operação.'
                )
            principal, password = self.config.bind_dn, self.config.bind_password
        return self._bind(principal, password, invalid_message='Credenciais de bind inválidas.')

    # ----------------------
    # Operations
    # ----------------------

    def authenticate(self, username, password) -> DirectoryProfile:
        """
        Bind as the user, then read their profile with a single filtered search.

        Raises:
            InvalidCredentials: the directory rejected the credentials
            DirectoryConnectionError: network or server failure
            ProfileNotFound: bind worked but no entry matched
            DirectoryProfileError: bind worked but the search failed
        """
        self._require_configuration()
        if not password:
            # An empty password would be an anonymous bind
            raise InvalidCredentials(source='directory')

        principal = compute_principal(username, self.config)
        logger.info(f"Directory bind attempt for {principal}")
        connection = self._bind(principal, password)

        try:
            search_filter = f'(&(objectClass=user)(userPrincipalName={escape_filter_chars(principal)}))'
            connection.search(
                search_base=self.config.base_dn,
                search_filter=search_filter,
                search_scope=SUBTREE,
                attributes=PROFILE_ATTRIBUTES,
                size_limit=1,
            )
            result = connection.result or {}
            entries = [item for item in connection.response or [] if item.get('type') == 'searchResEntry']
        except Exception as e:
            logger.exception(f"Directory profile search failed for {principal}")
            raise DirectoryProfileError(
                f'Autenticado no AD, mas houve erro ao buscar o perfil do usuário: {e}'
            ) from e
        finally:
            connection.unbind()

        # With size_limit=1 a second match only reports sizeLimitExceeded
        if result.get('result') not in (LDAP_SUCCESS, LDAP_SIZE_LIMIT_EXCEEDED):
            diagnostic = result_diagnostic(result)
            logger.error(f"Directory profile search for {principal} ended with code {result.get('result')}: {diagnostic}")
            raise DirectoryProfileError(
                f'Autenticado no AD, mas houve erro ao buscar o perfil do usuário: {diagnostic}'
            )

        if not entries:
            logger.error(f"Bind succeeded for {principal} but no profile matched")
            raise ProfileNotFound()

        return profile_from_attributes(entries[0].get('attributes', {}), fallback_username=username)

    def test_connection(self) -> bool:
        """Bind with the service account and close."""
        if not self.config.url:
            raise DirectoryConfigurationError('A URL do AD (AD_URL) é obrigatória para o teste.')
        server_principal = self.config.bind_dn or ''
        connection = self._bind(server_principal, self.config.bind_password or '',
                                invalid_message='Falha na conexão: Credenciais de Bind inválidas.')
        connection.unbind()
        return True

    def search_people(self, term=None, username=None, password=None) -> List[DirectoryProfile]:
        """
        Enabled person entries, optionally filtered by a display name / account / cn fragment.

        Results are read in pages so the whole directory is returned. Any
        unsuccessful search result raises DirectoryConnectionError: a partial
        list must never be mistaken for the directory contents.
        """
        connection = self.service_connection(username, password)
        if term:
            escaped = escape_filter_chars(term)
            search_filter = (
                f'(&(|(displayName=*{escaped}*)(sAMAccountName=*{escaped}*)(cn=*{escaped}*))'
                f'{ENABLED_PEOPLE_FILTER[2:-1]})'
            )
        else:
            search_filter = ENABLED_PEOPLE_FILTER

        try:
            response = connection.extend.standard.paged_search(
                search_base=self.config.base_dn,
                search_filter=search_filter,
                search_scope=SUBTREE,
                attributes=PROFILE_ATTRIBUTES,
                paged_size=PEOPLE_PAGE_SIZE,
                generator=False,
            )
            result = connection.result or {}
            entries = [item for item in response or [] if item.get('type') == 'searchResEntry']
        except LDAPException as e:
            logger.exception("Directory people search failed")
            raise DirectoryConnectionError(f'Erro durante a busca no LDAP: {e}') from e
        finally:
            connection.unbind()

        if result.get('result') != LDAP_SUCCESS:
            diagnostic = result_diagnostic(result)
            logger.error(f"Directory people search ended with code {result.get('result')}: {diagnostic}")
            raise DirectoryConnectionError(f'Erro durante a busca no LDAP: {diagnostic}')

        profiles = [profile_from_attributes(entry.get('attributes', {})) for entry in entries]
        return [profile for profile in profiles if profile.username]
