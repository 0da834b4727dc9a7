from django.apps import AppConfig


class AppSettingsConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'core.app_settings'
    verbose_name = 'Application Settings'
