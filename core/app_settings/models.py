"""
Admin-editable configuration stored as key/value rows.
"""
from django.db import models


SECRET_KEY_MARKER = 'PASS'


class AppSetting(models.Model):
    """
    One configuration entry (e-mail templates, frontend URL, directory overrides).
    Keys containing 'PASS' hold secrets and are never returned by the API.
    """
    key = models.CharField(max_length=100, unique=True)
    value = models.TextField(blank=True, default='')
    description = models.CharField(max_length=255, blank=True, default='')
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'app_settings'
        verbose_name = 'Application Setting'
        verbose_name_plural = 'Application Settings'
        ordering = ['key']

    def __str__(self):
        return self.key

    @property
    def is_secret(self):
        return is_secret_key(self.key)


def is_secret_key(key):
    return SECRET_KEY_MARKER in (key or '').upper()
