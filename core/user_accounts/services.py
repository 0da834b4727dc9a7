"""
Admin panel services for users, permission groups, manager substitutions
and the directory (import, search, synchronization).

Every change is recorded in the audit log. Failures of business rules raise
ValidationError, PermissionDenied or ReferentialConflict and leave the
database untouched.
"""
import logging
from datetime import date
from typing import Iterable, List, Optional

from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils.dateparse import parse_date

from core.audit.logger import EntityType, record_event
from core.base.exceptions import ReferentialConflict
from core.user_accounts.directory import DirectoryClient
from core.user_accounts.models import (
    ADMIN_GROUP_NAME,
    PROTECTED_USERNAME,
    LocalUser,
    ManagerSubstitution,
    PermissionGroup,
    UserGroupLink,
)
from core.user_accounts.permissions import CAPABILITY_FIELDS

logger = logging.getLogger(__name__)


NONE_LABEL = 'Nenhum'


def _text(value):
    """Strip strings; blank becomes None."""
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _label(value):
    return value if value not in (None, '') else '-'


# ============================================================================
# Users
# ============================================================================

def list_users():
    return (
        LocalUser.objects
        .select_related('manager')
        .prefetch_related('permission_groups')
        .order_by('display_name')
    )


def active_admin_ids() -> set:
    """Ids of active users linked to a group with admin panel access."""
    return set(
        LocalUser.objects
        .filter(is_active=True, group_links__group__can_access_admin_panel=True)
        .values_list('id', flat=True)
        .distinct()
    )


def _resolve_manager(manager_id=None, manager_name=None) -> Optional[LocalUser]:
    """Manager by id or, for directory imports, by case-insensitive display name among active users."""
    if manager_id:
        try:
            return LocalUser.objects.get(pk=manager_id)
        except LocalUser.DoesNotExist:
            raise ValidationError({'manager_id': f'Gestor {manager_id} não encontrado.'})

    if manager_name:
        manager = LocalUser.objects.filter(display_name__iexact=manager_name, is_active=True).first()
        if manager is None:
            logger.warning(f"Manager '{manager_name}' not found among active users; user saved without manager")
        return manager

    return None


def _set_groups(user, group_ids):
    """Replace the user's group links."""
    group_ids = {int(group_id) for group_id in group_ids or []}
    groups = list(PermissionGroup.objects.filter(pk__in=group_ids))
    missing = group_ids - {group.pk for group in groups}
    if missing:
        raise ValidationError({'group_ids': f'Grupos não encontrados: {sorted(missing)}'})

    UserGroupLink.objects.filter(user=user).exclude(group_id__in=group_ids).delete()
    existing = set(UserGroupLink.objects.filter(user=user).values_list('group_id', flat=True))
    UserGroupLink.objects.bulk_create([
        UserGroupLink(user=user, group=group) for group in groups if group.pk not in existing
    ])


def _group_names(user) -> str:
    names = sorted(user.permission_groups.values_list('name', flat=True))
    return ', '.join(names) or NONE_LABEL


def create_user(data, actor_username) -> LocalUser:
    """
    Create a local user.

    Args:
        data: username, display_name, email, department, password (optional;
              omitted means directory-only), manager_id or manager_name,
              group_ids, is_active
        actor_username: who is creating

    Returns:
        The created LocalUser
    """
    username = _text(data.get('username'))
    display_name = _text(data.get('display_name'))
    if not username or not display_name:
        raise ValidationError('Usuário e nome são obrigatórios.')
    if LocalUser.objects.filter(username=username).exists():
        raise ValidationError({'username': f'O usuário "{username}" já existe.'})

    password = data.get('password') or None
    if not password:
        logger.info(f"Creating user '{username}' without local password (directory-only)")

    with transaction.atomic():
        manager = _resolve_manager(data.get('manager_id'), _text(data.get('manager_name')))
        user = LocalUser.objects.create_user(
            username=username,
            display_name=display_name,
            password=password,
            email=_text(data.get('email')),
            department=_text(data.get('department')),
            manager=manager,
            is_active=data.get('is_active', True),
        )
        _set_groups(user, data.get('group_ids'))

        record_event(
            EntityType.USER,
            user.pk,
            'USER_CREATED',
            actor_username,
            f"Usuário criado: {user.username}, Nome: {user.display_name}, "
            f"Depto: {_label(user.department)}, Gestor: {manager.display_name if manager else '-'}, "
            f"Grupos: [{_group_names(user)}]"
        )

    logger.info(f"User '{user.username}' created by {actor_username}")
    return user


def update_user(user_id, data, actor_username, actor_id=None) -> LocalUser:
    """
    Update a local user. Group links are replaced when group_ids is given.

    A blank password keeps the current credential.
    """
    with transaction.atomic():
        user = LocalUser.objects.select_for_update().select_related('manager').get(pk=user_id)
        had_admins = bool(active_admin_ids())
        before = {
            'Nome': user.display_name,
            'Email': user.email,
            'Depto': user.department,
            'Ativo': user.is_active,
            'Gestor': user.manager.display_name if user.manager else NONE_LABEL,
            'Grupos': _group_names(user),
        }

        if 'display_name' in data:
            display_name = _text(data.get('display_name'))
            if not display_name:
                raise ValidationError({'display_name': 'O nome é obrigatório.'})
            user.display_name = display_name
        if 'email' in data:
            user.email = _text(data.get('email'))
        if 'department' in data:
            user.department = _text(data.get('department'))
        if 'manager_id' in data:
            manager = _resolve_manager(data.get('manager_id'))
            if manager is not None and manager.pk == user.pk:
                raise ValidationError({'manager_id': 'Um usuário não pode ser gestor de si mesmo.'})
            user.manager = manager
        if 'is_active' in data and bool(data['is_active']) != user.is_active:
            if not data['is_active']:
                _check_can_deactivate([user.pk], actor_id)
            user.is_active = bool(data['is_active'])

        password_changed = bool(data.get('password'))
        if password_changed:
            user.set_password(data['password'])

        user.save()
        if 'group_ids' in data:
            _set_groups(user, data.get('group_ids'))
            if had_admins and not active_admin_ids():
                raise ReferentialConflict('Deve existir pelo menos um administrador ativo.')

        after = {
            'Nome': user.display_name,
            'Email': user.email,
            'Depto': user.department,
            'Ativo': user.is_active,
            'Gestor': user.manager.display_name if user.manager else NONE_LABEL,
            'Grupos': _group_names(user),
        }
        changes = [
            f"{label}: '{_label(before[label])}' -> '{_label(after[label])}'"
            for label in before
            if before[label] != after[label]
        ]
        if password_changed:
            changes.append('Senha alterada')

        if changes:
            record_event(
                EntityType.USER,
                user.pk,
                'USER_UPDATED',
                actor_username,
                f"Usuário {user.username} atualizado. Alterações: {'; '.join(changes)}"
            )
        else:
            logger.info(f"No changes to record for user '{user.username}'")

    return user


def _check_can_deactivate(user_ids, actor_id=None):
    admins = active_admin_ids()
    if admins and admins.issubset(set(user_ids)):
        raise ReferentialConflict('Não é possível desativar o último administrador ativo.')
    if actor_id is not None and actor_id in user_ids:
        raise ReferentialConflict('Não é possível desativar a si mesmo.')


def delete_user(user_id, actor_username, actor_id=None):
    """
    Delete a user.

    Blocked for the actor themself, the protected 'admin' account, the last
    active administrator, and (by the model) managers of other users and
    users still linked to groups.
    """
    with transaction.atomic():
        user = LocalUser.objects.select_for_update().get(pk=user_id)
        if actor_id is not None and user.pk == actor_id:
            raise ReferentialConflict('Não é possível excluir a si mesmo.')
        if user.username == PROTECTED_USERNAME:
            raise ReferentialConflict(f"Não é permitido excluir o usuário '{PROTECTED_USERNAME}'.")
        if active_admin_ids() == {user.pk}:
            raise ReferentialConflict('Não é possível excluir o último administrador ativo.')

        subordinates = user.subordinates.count()
        if subordinates:
            raise ReferentialConflict(
                f'Não é possível excluir o usuário "{user.display_name}" pois ele é gestor de '
                f'{subordinates} usuário(s). Reatribua esses usuários primeiro.'
            )

        username, display_name = user.username, user.display_name
        user.delete()

        record_event(
            EntityType.USER,
            user_id,
            'USER_DELETED',
            actor_username,
            f"Usuário deletado: {username} (Nome: {display_name})"
        )


def bulk_set_active(user_ids: Iterable[int], active: bool, actor_username, actor_id=None) -> dict:
    """
    Activate or deactivate many users at once.

    The actor and the protected 'admin' account are skipped. Deactivating
    every remaining active administrator is refused.
    """
    action_text = 'ativados' if active else 'desativados'
    safe_ids = [int(user_id) for user_id in user_ids if int(user_id) != actor_id]
    if not safe_ids:
        return {'message': 'Nenhum usuário foi atualizado (você não pode alterar a si mesmo).', 'count': 0}

    with transaction.atomic():
        queryset = LocalUser.objects.filter(pk__in=safe_ids).exclude(username=PROTECTED_USERNAME)
        if not active:
            _check_can_deactivate(list(queryset.values_list('id', flat=True)))
        count = queryset.update(is_active=active)

        summary = f"{count} usuários {action_text} com sucesso."
        record_event(
            EntityType.USER,
            'BULK_ACTION',
            'USER_BULK_ACTIVATED' if active else 'USER_BULK_DEACTIVATED',
            actor_username,
            f"Ação em massa: {count} usuários {action_text}. IDs: [{', '.join(str(i) for i in safe_ids)}]"
        )

    logger.info(f"{summary} by {actor_username}")
    return {'message': summary, 'count': count}


def list_managers():
    """Active users in at least one approval-capable group."""
    return (
        LocalUser.objects
        .filter(is_active=True, group_links__group__can_perform_approvals=True)
        .distinct()
        .order_by('display_name')
    )


# ============================================================================
# Permission groups
# ============================================================================

def _flags_label(group) -> str:
    granted = [name for name in CAPABILITY_FIELDS if getattr(group, name)]
    return ', '.join(granted) or 'Nenhuma'


def create_group(data, actor_username) -> PermissionGroup:
    name = _text(data.get('name'))
    if not name:
        raise ValidationError({'name': 'O nome do grupo é obrigatório.'})
    if PermissionGroup.objects.filter(name__iexact=name).exists():
        raise ValidationError({'name': f'O grupo "{name}" já existe.'})

    flags = {field: bool(data.get(field, False)) for field in CAPABILITY_FIELDS}
    with transaction.atomic():
        group = PermissionGroup.objects.create(
            name=name,
            description=data.get('description') or '',
            **flags
        )
        record_event(
            EntityType.GROUP,
            group.pk,
            'GROUP_CREATED',
            actor_username,
            f"Grupo criado: {group.name}, Descrição: {_label(group.description)}, "
            f"Permissões: [{_flags_label(group)}]"
        )
    return group


def update_group(group_id, data, actor_username) -> PermissionGroup:
    with transaction.atomic():
        group = PermissionGroup.objects.select_for_update().get(pk=group_id)
        before = {field: getattr(group, field) for field in ['name', 'description'] + CAPABILITY_FIELDS}

        if 'name' in data:
            name = _text(data.get('name'))
            if not name:
                raise ValidationError({'name': 'O nome do grupo é obrigatório.'})
            if group.name == ADMIN_GROUP_NAME and name != ADMIN_GROUP_NAME:
                raise ReferentialConflict(f'O grupo "{ADMIN_GROUP_NAME}" não pode ser renomeado.')
            group.name = name
        if 'description' in data:
            group.description = data.get('description') or ''
        for field in CAPABILITY_FIELDS:
            if field in data:
                setattr(group, field, bool(data[field]))

        if group.name == ADMIN_GROUP_NAME and not group.can_access_admin_panel:
            raise ReferentialConflict(
                f'O grupo "{ADMIN_GROUP_NAME}" deve manter o acesso ao painel administrativo.'
            )
        group.save()

        changes = []
        if before['name'] != group.name:
            changes.append(f"Nome: '{before['name']}' -> '{group.name}'")
        if (before['description'] or '') != (group.description or ''):
            changes.append(f"Descrição: '{_label(before['description'])}' -> '{_label(group.description)}'")
        flag_changes = [
            f"{field}: {'Sim' if before[field] else 'Não'} -> {'Sim' if getattr(group, field) else 'Não'}"
            for field in CAPABILITY_FIELDS
            if before[field] != getattr(group, field)
        ]
        if flag_changes:
            changes.append(f"Permissões alteradas: {'; '.join(flag_changes)}")

        if changes:
            record_event(
                EntityType.GROUP,
                group.pk,
                'GROUP_UPDATED',
                actor_username,
                f"Grupo {group.name} atualizado. Alterações: {' | '.join(changes)}"
            )
    return group


def delete_group(group_id, actor_username):
    with transaction.atomic():
        group = PermissionGroup.objects.get(pk=group_id)
        name = group.name
        group.delete()
        record_event(EntityType.GROUP, group_id, 'GROUP_DELETED', actor_username, f"Grupo deletado: {name}")


# ============================================================================
# Manager substitutions
# ============================================================================

def _as_date(value, field) -> date:
    if isinstance(value, date):
        return value
    parsed = parse_date(str(value)) if value else None
    if parsed is None:
        raise ValidationError({field: 'Data inválida. Use o formato AAAA-MM-DD.'})
    return parsed


def list_substitutions():
    return ManagerSubstitution.objects.select_related('original_manager', 'substitute_manager')


def create_substitution(data, actor_username) -> ManagerSubstitution:
    """
    Schedule a delegation window.

    Overlapping windows for the same manager are accepted; the substitution
    resolver picks the most recently created one.
    """
    required = ['original_manager_id', 'substitute_manager_id', 'start_date', 'end_date']
    if any(not data.get(field) for field in required):
        raise ValidationError('Todos os campos são obrigatórios.')

    try:
        original = LocalUser.objects.get(pk=data['original_manager_id'])
        substitute = LocalUser.objects.get(pk=data['substitute_manager_id'])
    except LocalUser.DoesNotExist:
        raise ValidationError('Gestor original ou substituto não encontrado.')

    substitution = ManagerSubstitution(
        original_manager=original,
        substitute_manager=substitute,
        start_date=_as_date(data['start_date'], 'start_date'),
        end_date=_as_date(data['end_date'], 'end_date'),
        created_by_username=actor_username,
    )
    substitution.full_clean()

    with transaction.atomic():
        substitution.save()
        record_event(
            EntityType.SUBSTITUTION,
            substitution.pk,
            'SUBSTITUTE_CREATED',
            actor_username,
            f"Substituição criada: {original.display_name} -> {substitute.display_name} "
            f"(De {substitution.start_date:%d/%m/%Y} a {substitution.end_date:%d/%m/%Y})"
        )
    return substitution


def delete_substitution(substitution_id, actor_username):
    with transaction.atomic():
        substitution = ManagerSubstitution.objects.select_related(
            'original_manager', 'substitute_manager'
        ).get(pk=substitution_id)
        label = f"{substitution.original_manager.display_name} -> {substitution.substitute_manager.display_name}"
        substitution.delete()
        record_event(
            EntityType.SUBSTITUTION,
            substitution_id,
            'SUBSTITUTE_DELETED',
            actor_username,
            f"Substituição deletada: {label} (ID: {substitution_id})"
        )


# ============================================================================
# Directory
# ============================================================================

def test_directory_connection(actor_username, client: Optional[DirectoryClient] = None) -> bool:
    client = client or DirectoryClient()
    client.test_connection()
    logger.info(f"Directory connection test succeeded for {actor_username}")
    return True


def search_directory_people(term=None, username=None, password=None, client: Optional[DirectoryClient] = None):
    """Directory entries, flagged with whether a local user already exists."""
    client = client or DirectoryClient()
    profiles = client.search_people(term=term, username=username, password=password)
    existing = {
        name.lower() for name in LocalUser.objects.values_list('username', flat=True)
    }
    return [
        {
            'username': profile.username,
            'display_name': profile.display_name,
            'email': profile.email,
            'department': profile.department,
            'manager_name': profile.manager_name,
            'already_imported': profile.username.lower() in existing,
        }
        for profile in profiles
    ]


def import_directory_users(entries, actor_username, group_ids=None) -> dict:
    """
    Create directory-only local users from selected directory entries.

    Entries whose username already exists are skipped.
    """
    created, skipped = [], []
    for entry in entries:
        username = _text(entry.get('username'))
        if not username or LocalUser.objects.filter(username__iexact=username).exists():
            skipped.append(username)
            continue
        user = create_user(
            {
                'username': username,
                'display_name': entry.get('display_name') or username,
                'email': entry.get('email'),
                'department': entry.get('department'),
                'manager_name': entry.get('manager_name'),
                'group_ids': group_ids or [],
            },
            actor_username,
        )
        created.append(user.username)

    logger.info(f"Directory import by {actor_username}: {len(created)} created, {len(skipped)} skipped")
    return {'created': created, 'skipped': skipped}


def sync_directory_users(actor_username='system', client: Optional[DirectoryClient] = None) -> dict:
    """
    Synchronize directory-only local users with the directory.

    - missing from the directory and active: deactivated
    - present but inactive locally: left alone (manual deactivation wins)
    - present and active: display name, e-mail, department and manager refreshed

    Safe to run repeatedly.
    """
    client = client or DirectoryClient()
    logger.info(f"Directory sync started by {actor_username}")

    local_users = [
        user for user in LocalUser.objects.exclude(username=PROTECTED_USERNAME).select_related('manager')
        if not user.has_local_password
    ]
    if not local_users:
        message = 'Nenhum usuário local (importado do AD) para sincronizar.'
        logger.info(message)
        return {'message': message, 'updated': 0, 'failed': 0, 'changes': []}

    managers_by_name = {
        name.lower(): pk
        for pk, name in LocalUser.objects.filter(is_active=True).values_list('id', 'display_name')
    }
    directory_people = {profile.username.lower(): profile for profile in client.search_people()}
    logger.info(f"Directory sync: {len(local_users)} local users, {len(directory_people)} directory entries")

    updated = failed = 0
    changes_log: List[str] = []

    for user in local_users:
        profile = directory_people.get(user.username.lower())

        if profile is None:
            if user.is_active:
                try:
                    LocalUser.objects.filter(pk=user.pk).update(is_active=False)
                except Exception:
                    logger.exception(f"Failed to deactivate '{user.username}' during sync")
                    failed += 1
                    continue
                details = f"Usuário '{user.username}' desativado (não encontrado no AD)."
                changes_log.append(details)
                record_event(EntityType.USER, user.pk, 'USER_SYNC_DEACTIVATED', actor_username, details)
                updated += 1
            continue

        if not user.is_active:
            logger.info(f"Directory sync skipped inactive user '{user.username}'")
            continue

        payload, user_changes = {}, []
        if user.display_name != profile.display_name:
            payload['display_name'] = profile.display_name
            user_changes.append(f"Nome: '{user.display_name}' -> '{profile.display_name}'")
        if user.email != profile.email:
            payload['email'] = profile.email
            user_changes.append(f"Email: '{_label(user.email)}' -> '{_label(profile.email)}'")
        if user.department != profile.department:
            payload['department'] = profile.department
            user_changes.append(f"Depto: '{_label(user.department)}' -> '{_label(profile.department)}'")

        manager_id = managers_by_name.get(profile.manager_name.lower()) if profile.manager_name else None
        if manager_id == user.pk:
            manager_id = None
        if user.manager_id != manager_id:
            payload['manager_id'] = manager_id
            old_name = user.manager.display_name if user.manager else NONE_LABEL
            new_name = profile.manager_name if manager_id else NONE_LABEL
            user_changes.append(f"Gestor: '{old_name}' -> '{new_name}'")

        if not payload:
            continue

        try:
            LocalUser.objects.filter(pk=user.pk).update(**payload)
        except Exception:
            logger.exception(f"Failed to update '{user.username}' during sync")
            failed += 1
            continue

        details = f"Usuário '{user.username}' sincronizado. Mudanças: {'; '.join(user_changes)}"
        changes_log.append(details)
        record_event(EntityType.USER, user.pk, 'USER_SYNC_UPDATED', actor_username, details)
        updated += 1

    summary = f"Sincronização concluída. {updated} usuários atualizados/desativados. {failed} falhas."
    logger.info(summary)
    record_event(EntityType.CONFIG, 'LDAP_SYNC', 'LDAP_SYNC_COMPLETED', actor_username, summary)
    return {'message': summary, 'updated': updated, 'failed': failed, 'changes': changes_log}
