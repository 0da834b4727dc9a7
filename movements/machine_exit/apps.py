"""
Machine Exit App Configuration
"""

from django.apps import AppConfig


class MachineExitConfig(AppConfig):
    """Configuration for the Machine Exit app"""
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'movements.machine_exit'
    label = 'machine_exit'
    verbose_name = 'Machine Exits'
