"""
Synchronize directory-only users with Active Directory.

Meant to be triggered by cron, hourly during the working day:

    0 7-19 * * *  cd /srv/scse && python manage.py sync_directory_users

Usage:
    python manage.py sync_directory_users [--actor system]
"""
from django.core.management.base import BaseCommand, CommandError

from core.base.exceptions import AuthenticationError
from core.user_accounts.services import sync_directory_users


class Command(BaseCommand):
    help = 'Synchronize directory-only local users with the directory service'

    def add_arguments(self, parser):
        parser.add_argument('--actor', default='system', help='Username recorded in the audit log')

    def handle(self, *args, **options):
        try:
            result = sync_directory_users(options['actor'])
        except AuthenticationError as e:
            raise CommandError(str(e))

        for line in result.get('changes', []):
            self.stdout.write(f"  {line}")

        if result['failed']:
            self.stdout.write(self.style.WARNING(result['message']))
        else:
            self.stdout.write(self.style.SUCCESS(result['message']))
