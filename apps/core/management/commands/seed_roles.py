"""
Management command for seeding the editorial roles.

Safe to run repeatedly: existing roles are left alone unless --update is given.

Usage:
    python manage.py seed_roles
    python manage.py seed_roles --update
"""

from django.core.management.base import BaseCommand
from django.db import transaction

from apps.core.models import Role
from apps.policies.roles import Role as CanonicalRole


DEFAULT_ROLES = {
    CanonicalRole.READER: ('Reader', 'Reads published articles'),
    CanonicalRole.REPORTER: ('Reporter', 'Writes articles and submits them for review'),
    CanonicalRole.REVIEWER: ('Reviewer', 'Approves or rejects submitted articles'),
    CanonicalRole.EDITOR: ('Editor', 'Full editorial control, including publishing'),
    CanonicalRole.ADMIN: ('Administrator', 'Everything an editor can do'),
}


class Command(BaseCommand):
    help = 'Create the editorial roles (reader, reporter, reviewer, editor, admin)'

    def add_arguments(self, parser):
        parser.add_argument(
            '--update',
            action='store_true',
            help='Overwrite names and descriptions of existing roles'
        )

    @transaction.atomic
    def handle(self, *args, **options):
        created_count = 0

        for canonical, (name, description) in DEFAULT_ROLES.items():
            role, created = Role.objects.get_or_create(
                type=canonical.value,
                defaults={'name': name, 'description': description},
            )
            if created:
                created_count += 1
                self.stdout.write(self.style.SUCCESS(f'Created role: {role.type}'))
            elif options['update']:
                role.name = name
                role.description = description
                role.save(update_fields=['name', 'description', 'updated_at'])
                self.stdout.write(f'Updated role: {role.type}')
            else:
                self.stdout.write(f'Role exists: {role.type}')

        self.stdout.write(self.style.SUCCESS(f'Done. {created_count} role(s) created.'))
