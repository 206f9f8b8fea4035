"""
Management command for issuing a service credential.

The raw key is printed once and cannot be recovered afterwards.

Usage:
    python manage.py create_service_token --name frontend-ssr
    python manage.py create_service_token --name frontend-ssr --revoke
"""

from django.core.management.base import BaseCommand, CommandError

from apps.core.models import ServiceToken


class Command(BaseCommand):
    help = 'Create (or revoke) a service token for trusted automation'

    def add_arguments(self, parser):
        parser.add_argument(
            '--name',
            type=str,
            required=True,
            help='Name of the calling service (e.g., "frontend-ssr")'
        )
        parser.add_argument(
            '--revoke',
            action='store_true',
            help='Deactivate the named token instead of creating one'
        )

    def handle(self, *args, **options):
        name = options['name'].strip()
        if not name:
            raise CommandError('--name must not be empty')

        if options['revoke']:
            updated = ServiceToken.objects.filter(name=name, is_active=True).update(is_active=False)
            if not updated:
                raise CommandError(f'No active service token named "{name}"')
            self.stdout.write(self.style.SUCCESS(f'Revoked service token: {name}'))
            return

        if ServiceToken.objects.filter(name=name).exists():
            raise CommandError(f'A service token named "{name}" already exists')

        token, raw_key = ServiceToken.objects.create_token(name)
        self.stdout.write(self.style.SUCCESS(f'Created service token: {token.name}'))
        self.stdout.write('Send it as:  Authorization: Api-Key <key>')
        self.stdout.write(raw_key)
