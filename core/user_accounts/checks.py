"""
System checks for the directory integration.

When a directory URL is configured, every group-mapping key must be set;
otherwise ad-hoc directory logins would silently receive no capabilities.
Only settings.SCSE_DIRECTORY is inspected here (the database may not be
reachable when checks run); AppSetting overrides are validated at login.
"""
from django.conf import settings
from django.core.checks import Error, Tags, register


GROUP_KEYS = ['ADMIN_GROUP', 'MANAGER_GROUP', 'GATE_GROUP']


@register(Tags.security)
def check_directory_group_mapping(app_configs, **kwargs):
    directory = getattr(settings, 'SCSE_DIRECTORY', {}) or {}
    if not directory.get('URL'):
        return []

    missing = [key for key in GROUP_KEYS if not directory.get(key)]
    if not missing:
        return []

    return [
        Error(
            'Directory URL is configured but the group mapping is incomplete.',
            hint=f"Set {', '.join('AD_' + key for key in missing)} in the environment.",
            obj='SCSE_DIRECTORY',
            id='scse.E001',
        )
    ]
