"""
Transfer App Configuration
"""

from django.apps import AppConfig


class TransferConfig(AppConfig):
    """Configuration for the Transfer app"""
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'movements.transfer'
    label = 'transfer'
    verbose_name = 'Transfers'
