import django.core.serializers.json
import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Family",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("name", models.CharField(max_length=200)),
                ("code", models.CharField(max_length=50, unique=True)),
                ("type", models.CharField(blank=True, max_length=100)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("draft", "Draft"),
                            ("active", "Active"),
                            ("maintenance", "Maintenance"),
                            ("archived", "Archived"),
                        ],
                        default="draft",
                        max_length=20,
                    ),
                ),
                ("description", models.TextField(blank=True)),
                ("kits", models.PositiveIntegerField(default=0)),
                ("led", models.PositiveIntegerField(default=0)),
                ("goullet", models.PositiveIntegerField(default=0)),
                ("bcc_optosoft", models.PositiveIntegerField(default=0)),
                ("bcc_main", models.PositiveIntegerField(default=0)),
                ("rob_main", models.PositiveIntegerField(default=0)),
                ("rob_suite", models.PositiveIntegerField(default=0)),
                ("torque", models.PositiveIntegerField(default=0)),
                ("rack_30", models.PositiveIntegerField(default=0)),
                ("machine_visio", models.PositiveIntegerField(default=0)),
                ("comment", models.TextField(blank=True)),
                ("total_holders", models.PositiveIntegerField(default=0)),
                ("rob_assignments", models.JSONField(blank=True, default=list)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "created_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="created_families",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name_plural": "families",
                "ordering": ["name"],
                "permissions": [
                    ("import_data", "Can import families, holders and ROBs"),
                    ("export_data", "Can export families, holders and ROBs"),
                ],
                "indexes": [
                    models.Index(fields=["status"], name="idx_family_status"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Rob",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("code", models.CharField(max_length=50, unique=True)),
                ("name", models.CharField(max_length=200)),
                (
                    "type",
                    models.CharField(
                        choices=[
                            ("SERIAL", "Serial"),
                            ("MPR", "MPR"),
                            ("MYC", "MYC"),
                        ],
                        max_length=10,
                    ),
                ),
                (
                    "capacity",
                    models.PositiveIntegerField(
                        default=50,
                        validators=[
                            django.core.validators.MinValueValidator(1)
                        ],
                    ),
                ),
                (
                    "current_load",
                    models.PositiveIntegerField(default=0, editable=False),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("active", "Active"),
                            ("inactive", "Inactive"),
                            ("maintenance", "Maintenance"),
                            ("stopped", "Stopped"),
                        ],
                        default="active",
                        max_length=20,
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "verbose_name": "ROB",
                "verbose_name_plural": "ROBs",
                "ordering": ["code"],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(capacity__gte=1),
                        name="rob_capacity_positive",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            current_load__lte=models.F("capacity")
                        ),
                        name="rob_load_within_capacity",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Holder",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("code", models.CharField(max_length=50, unique=True)),
                ("name", models.CharField(max_length=200)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("available", "Available"),
                            ("assigned", "Assigned"),
                            ("maintenance", "Maintenance"),
                            ("out_of_service", "Out of Service"),
                        ],
                        default="available",
                        max_length=20,
                    ),
                ),
                ("assigned_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "family",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="holders",
                        to="tooling.family",
                    ),
                ),
                (
                    "rob",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="holders",
                        to="tooling.rob",
                    ),
                ),
            ],
            options={
                "ordering": ["code"],
                "permissions": [
                    ("assign_holder", "Can assign holders to ROBs"),
                ],
                "indexes": [
                    models.Index(fields=["status"], name="idx_holder_status"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=(
                            models.Q(
                                status="assigned",
                                rob__isnull=False,
                                assigned_at__isnull=False,
                            )
                            | (
                                ~models.Q(status="assigned")
                                & models.Q(
                                    rob__isnull=True, assigned_at__isnull=True
                                )
                            )
                        ),
                        name="holder_assignment_consistent",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="AuditLog",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                (
                    "entity",
                    models.CharField(
                        choices=[
                            ("families", "Families"),
                            ("holders", "Holders"),
                            ("robs", "ROBs"),
                        ],
                        max_length=20,
                    ),
                ),
                ("entity_id", models.CharField(max_length=50)),
                (
                    "operation",
                    models.CharField(
                        choices=[
                            ("CREATE", "Create"),
                            ("UPDATE", "Update"),
                            ("DELETE", "Delete"),
                        ],
                        max_length=10,
                    ),
                ),
                (
                    "old_data",
                    models.JSONField(
                        blank=True,
                        encoder=django.core.serializers.json.DjangoJSONEncoder,
                        null=True,
                    ),
                ),
                (
                    "new_data",
                    models.JSONField(
                        blank=True,
                        encoder=django.core.serializers.json.DjangoJSONEncoder,
                        null=True,
                    ),
                ),
                (
                    "timestamp",
                    models.DateTimeField(default=django.utils.timezone.now),
                ),
                (
                    "user",
                    models.ForeignKey(
                        blank=True,
                        help_text="The user who performed the operation",
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="audit_logs",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-timestamp", "-pk"],
                "indexes": [
                    models.Index(
                        fields=["entity", "entity_id"],
                        name="idx_auditlog_entity",
                    ),
                    models.Index(
                        fields=["timestamp"], name="idx_auditlog_timestamp"
                    ),
                ],
            },
        ),
    ]
