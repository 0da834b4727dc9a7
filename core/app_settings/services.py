"""
Service layer for application settings.
"""
import logging
from typing import Dict, Iterable, List

from django.core.exceptions import ValidationError
from django.db import transaction

from core.app_settings.models import AppSetting, is_secret_key
from core.audit.logger import EntityType, record_event

logger = logging.getLogger(__name__)


EMAIL_APPROVAL_SUBJECT = 'EMAIL_APROVACAO_SUBJECT'
EMAIL_APPROVAL_BODY = 'EMAIL_APROVACAO_BODY'
FRONTEND_URL = 'FRONTEND_URL'

DEFAULT_SETTINGS = [
    {
        'key': EMAIL_APPROVAL_SUBJECT,
        'value': 'SCSE - Solicitação de saída #{{ID_SOLICITACAO}} aguardando sua aprovação',
        'description': 'Assunto do e-mail de aprovação',
    },
    {
        'key': EMAIL_APPROVAL_BODY,
        'value': (
            'Olá {{GESTOR_NOME}},\n\n'
            '{{SOLICITANTE}} ({{AREA_RESPONSAVEL}}) registrou a solicitação #{{ID_SOLICITACAO}}.\n'
            'Material: {{DESCRICAO_MATERIAL}}\n'
            'Motivo: {{MOTIVO_SAIDA}}\n'
            'Data de envio: {{DATA_ENVIO}}\n'
            'Prazo de retorno: {{PRAZO_RETORNO}}\n\n'
            'Acesse {{LINK_APROVACAO}} para aprovar ou rejeitar.'
        ),
        'description': 'Corpo do e-mail de aprovação',
    },
    {
        'key': FRONTEND_URL,
        'value': '',
        'description': 'URL do frontend usada nos links dos e-mails',
    },
    {'key': 'AD_URL', 'value': '', 'description': 'URL do servidor AD (ldap://host:389)'},
    {'key': 'AD_BASE_DN', 'value': '', 'description': 'Base DN (DC=empresa,DC=local)'},
    {'key': 'AD_BIND_DN', 'value': '', 'description': 'Conta de serviço usada na sincronização'},
    {'key': 'AD_BIND_PASSWORD', 'value': '', 'description': 'Senha da conta de serviço'},
    {'key': 'AD_ADMIN_GROUP', 'value': '', 'description': 'Grupo AD com acesso administrativo'},
    {'key': 'AD_MANAGER_GROUP', 'value': '', 'description': 'Grupo AD de gestores aprovadores'},
    {'key': 'AD_GATE_GROUP', 'value': '', 'description': 'Grupo AD da portaria'},
]

DEFAULT_VALUES = {item['key']: item['value'] for item in DEFAULT_SETTINGS}


def get_settings_map(keys: Iterable[str]) -> Dict[str, str]:
    """Values of the requested keys that exist in the database."""
    return dict(AppSetting.objects.filter(key__in=list(keys)).values_list('key', 'value'))


def get_setting(key, default=None):
    """Stored value, else the built-in default, else `default`."""
    value = AppSetting.objects.filter(key=key).values_list('value', flat=True).first()
    if value:
        return value
    return DEFAULT_VALUES.get(key) or default


def list_settings() -> List[AppSetting]:
    """Every setting except secrets."""
    return [setting for setting in AppSetting.objects.order_by('key') if not setting.is_secret]


def update_settings(updates, actor_username) -> List[AppSetting]:
    """
    Upsert settings and audit the changes.

    Args:
        updates: list of {"key", "value"} dicts (a single dict is accepted)
        actor_username: who is editing

    Blank values for secret keys are ignored so the stored secret is kept.
    Secret values are masked in the audit trail.
    """
    if isinstance(updates, dict):
        updates = [updates]

    valid = []
    for update in updates:
        key = (update.get('key') or '').strip()
        if not key:
            raise ValidationError({'key': 'A chave da configuração é obrigatória.'})
        value = update.get('value')
        value = '' if value is None else str(value)
        if is_secret_key(key) and value == '':
            continue
        valid.append((key, value))

    if not valid:
        logger.info("No valid configuration updates to apply")
        return []

    keys = [key for key, _ in valid]
    before = get_settings_map(keys)

    results = []
    with transaction.atomic():
        for key, value in valid:
            setting, _ = AppSetting.objects.update_or_create(
                key=key,
                defaults={'value': value},
            )
            if not setting.description:
                setting.description = key
                setting.save(update_fields=['description'])
            results.append(setting)

        changes = []
        for key, value in valid:
            old_value = before.get(key)
            if old_value == value:
                continue
            if is_secret_key(key):
                changes.append(f"{key}: '*****' -> '*****'")
            else:
                changes.append(f"{key}: '{old_value or ''}' -> '{value}'")

        if changes:
            record_event(
                EntityType.CONFIG,
                ','.join(keys),
                'CONFIG_UPDATED',
                actor_username,
                f"Alterações: {'; '.join(changes)}"
            )

    return results


def seed_default_settings():
    """Create missing default settings; existing values are left alone."""
    created = 0
    for item in DEFAULT_SETTINGS:
        _, was_created = AppSetting.objects.get_or_create(
            key=item['key'],
            defaults={'value': item['value'], 'description': item['description']},
        )
        created += int(was_created)
    return created
