"""
User Accounts App Configuration
"""

from django.apps import AppConfig


class UserAccountsConfig(AppConfig):
    """Configuration for the User Accounts app"""
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'core.user_accounts'
    label = 'user_accounts'
    verbose_name = 'User Accounts'

    def ready(self):
        """Register the directory configuration system check"""
        from core.user_accounts import checks  # noqa: F401
