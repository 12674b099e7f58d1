"""Management command to create the console's role groups."""

from django.contrib.auth.models import Group
from django.core.management.base import BaseCommand

from tooling.services.permissions import ROLE_PERMISSIONS, get_role_permissions


class Command(BaseCommand):
    help = "Create the four role groups with their tooling permissions"

    def handle(self, *args, **options):
        for role in ROLE_PERMISSIONS:
            group, _ = Group.objects.get_or_create(name=role)
            group.permissions.set(get_role_permissions(role))
            self.stdout.write(
                self.style.SUCCESS(f"Created/updated '{role}' group")
            )

        self.stdout.write(self.style.SUCCESS("All role groups configured."))
