"""Validate a family, holder or ROB file and optionally import it."""

from pathlib import Path

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand, CommandError

from tooling.services.imports import apply_import, validate_import
from tooling.services.inventory import Inventory


class Command(BaseCommand):
    help = (
        "Validate a CSV or XLSX import file. With --apply, create the "
        "accepted rows."
    )

    def add_arguments(self, parser):
        parser.add_argument("file", help="Path to a .csv or .xlsx file")
        parser.add_argument(
            "--apply",
            action="store_true",
            help="Create accepted rows after validation.",
        )
        parser.add_argument(
            "--user",
            help="Username to act as (permissions and audit). "
            "Defaults to a system import with no user.",
        )

    def handle(self, *args, **options):
        path = Path(options["file"])
        if not path.is_file():
            raise CommandError(f"File not found: {path}")

        actor = None
        if options["user"]:
            User = get_user_model()
            try:
                actor = User.objects.get(username=options["user"])
            except User.DoesNotExist:
                raise CommandError(f"User '{options['user']}' does not exist")
            if not actor.has_perm("tooling.import_data"):
                raise CommandError(
                    f"User '{actor.username}' may not import data"
                )

        result = validate_import(path.read_bytes(), filename=path.name)
        if result.failure is not None:
            raise CommandError(str(result.failure))

        for warning in result.warnings:
            self.stdout.write(self.style.WARNING(warning))
        for message in result.errors:
            self.stdout.write(self.style.ERROR(message))
        if result.error_rows > len(result.errors):
            self.stdout.write(
                f"... and more errors "
                f"({result.error_rows} rejected rows in total)"
            )
        self.stdout.write(
            f"{result.file_type}: {result.total_rows} rows, "
            f"{result.successful_rows} valid, {result.error_rows} invalid"
        )

        if not options["apply"]:
            return
        if not result.is_applicable:
            raise CommandError("This file cannot be applied.")

        report = apply_import(result, Inventory(actor=actor))
        for message in report.errors:
            self.stdout.write(self.style.ERROR(message))
        self.stdout.write(
            self.style.SUCCESS(
                f"Imported {report.created_count} {result.file_type}; "
                f"{report.error_count} failed."
            )
        )
