"""
Initialize Core System Data

This management command populates the database with:
- The "Administradores" permission group (every capability)
- The default "admin" user, linked to that group
- Default application settings (e-mail templates, directory keys)

Usage:
    python manage.py seed_core_data --admin-password <senha>

This is idempotent - safe to run multiple times.
"""
import os

from django.core.management.base import BaseCommand, CommandError
from django.db import transaction

from core.app_settings.services import seed_default_settings
from core.user_accounts.models import (
    ADMIN_GROUP_NAME,
    PROTECTED_USERNAME,
    LocalUser,
    PermissionGroup,
    UserGroupLink,
)


class Command(BaseCommand):
    help = 'Initialize core system data (admin group, admin user, default settings)'

    def add_arguments(self, parser):
        parser.add_argument(
            '--admin-password',
            default=os.getenv('SCSE_ADMIN_PASSWORD'),
            help='Password for the default admin user (defaults to $SCSE_ADMIN_PASSWORD)',
        )

    def handle(self, *args, **options):
        self.stdout.write('Starting core data initialization...\n')

        with transaction.atomic():
            group, created = PermissionGroup.objects.get_or_create(
                name=ADMIN_GROUP_NAME,
                defaults={
                    'description': 'Acesso total ao sistema',
                    **PermissionGroup.full_access_defaults(),
                }
            )
            if created:
                self.stdout.write(f"  ✓ Created group: {group.name}")
            else:
                self.stdout.write(f"  - Group already exists: {group.name}")

            admin = LocalUser.objects.filter(username=PROTECTED_USERNAME).first()
            if admin is None:
                password = options['admin_password']
                if not password:
                    raise CommandError('Informe --admin-password (ou SCSE_ADMIN_PASSWORD) para criar o usuário admin.')
                admin = LocalUser.objects.create_user(
                    username=PROTECTED_USERNAME,
                    display_name='Administrador',
                    password=password,
                )
                self.stdout.write(f"  ✓ Created user: {admin.username}")
            else:
                self.stdout.write(f"  - User already exists: {admin.username}")

            UserGroupLink.objects.get_or_create(user=admin, group=group)

            settings_created = seed_default_settings()
            self.stdout.write(f"  ✓ Settings: {settings_created} created")

        self.stdout.write(self.style.SUCCESS('\n✓ Core data initialization complete'))
