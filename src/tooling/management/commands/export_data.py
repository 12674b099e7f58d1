"""Export families, holders or ROBs as CSV, or write an import template."""

from pathlib import Path

from django.core.management.base import BaseCommand

from tooling.services.export import build_template, export_csv
from tooling.services.records import FAMILIES, HOLDERS, ROBS


class Command(BaseCommand):
    help = "Export a table as CSV, or print its import template"

    def add_arguments(self, parser):
        parser.add_argument("kind", choices=[FAMILIES, HOLDERS, ROBS])
        parser.add_argument(
            "--output",
            help="Write to this path instead of standard output.",
        )
        parser.add_argument(
            "--template",
            action="store_true",
            help="Write an import template with one sample row.",
        )

    def handle(self, *args, **options):
        kind = options["kind"]
        if options["template"]:
            content = build_template(kind)
        else:
            content = export_csv(kind)

        if options["output"]:
            path = Path(options["output"])
            path.write_text(content, encoding="utf-8")
            self.stdout.write(self.style.SUCCESS(f"Wrote {kind} to {path}"))
        else:
            self.stdout.write(content, ending="")
