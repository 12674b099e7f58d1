"""Models for ROBDESK families, holders and ROBs."""

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.serializers.json import DjangoJSONEncoder
from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone


class Family(models.Model):
    """Product configuration tracked by the console."""

    STATUS_CHOICES = [
        ("draft", "Draft"),
        ("active", "Active"),
        ("maintenance", "Maintenance"),
        ("archived", "Archived"),
    ]

    # Equipment counters, in export column order
    COUNTER_FIELDS = [
        "kits",
        "led",
        "goullet",
        "bcc_optosoft",
        "bcc_main",
        "rob_main",
        "rob_suite",
        "torque",
        "rack_30",
        "machine_visio",
    ]

    name = models.CharField(max_length=200)
    code = models.CharField(max_length=50, unique=True)
    type = models.CharField(max_length=100, blank=True)
    status = models.CharField(
        max_length=20, choices=STATUS_CHOICES, default="draft"
    )
    description = models.TextField(blank=True)
    kits = models.PositiveIntegerField(default=0)
    led = models.PositiveIntegerField(default=0)
    goullet = models.PositiveIntegerField(default=0)
    bcc_optosoft = models.PositiveIntegerField(default=0)
    bcc_main = models.PositiveIntegerField(default=0)
    rob_main = models.PositiveIntegerField(default=0)
    rob_suite = models.PositiveIntegerField(default=0)
    torque = models.PositiveIntegerField(default=0)
    rack_30 = models.PositiveIntegerField(default=0)
    machine_visio = models.PositiveIntegerField(default=0)
    comment = models.TextField(blank=True)
    total_holders = models.PositiveIntegerField(default=0)
    rob_assignments = models.JSONField(default=list, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="created_families",
    )

    class Meta:
        verbose_name_plural = "families"
        ordering = ["name"]
        indexes = [
            models.Index(fields=["status"], name="idx_family_status"),
        ]
        permissions = [
            ("import_data", "Can import families, holders and ROBs"),
            ("export_data", "Can export families, holders and ROBs"),
        ]

    def __str__(self):
        return f"{self.name} ({self.code})"


class Rob(models.Model):
    """Production cell with a fixed holder capacity."""

    TYPE_CHOICES = [
        ("SERIAL", "Serial"),
        ("MPR", "MPR"),
        ("MYC", "MYC"),
    ]

    STATUS_CHOICES = [
        ("active", "Active"),
        ("inactive", "Inactive"),
        ("maintenance", "Maintenance"),
        ("stopped", "Stopped"),
    ]

    code = models.CharField(max_length=50, unique=True)
    name = models.CharField(max_length=200)
    type = models.CharField(max_length=10, choices=TYPE_CHOICES)
    capacity = models.PositiveIntegerField(
        default=50, validators=[MinValueValidator(1)]
    )
    current_load = models.PositiveIntegerField(default=0, editable=False)
    status = models.CharField(
        max_length=20, choices=STATUS_CHOICES, default="active"
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "ROB"
        verbose_name_plural = "ROBs"
        ordering = ["code"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(capacity__gte=1),
                name="rob_capacity_positive",
            ),
            models.CheckConstraint(
                condition=models.Q(current_load__lte=models.F("capacity")),
                name="rob_load_within_capacity",
            ),
        ]

    def __str__(self):
        return f"{self.name} ({self.code})"

    @property
    def assigned_holder_ids(self):
        return list(
            self.holders.order_by("assigned_at", "pk").values_list(
                "pk", flat=True
            )
        )

    @property
    def available_capacity(self):
        return max(self.capacity - self.current_load, 0)

    @property
    def utilization(self):
        """Load as a percentage of capacity."""
        if not self.capacity:
            return 0.0
        return self.current_load / self.capacity * 100


class Holder(models.Model):
    """Physical fixture that can be assigned to one ROB at a time."""

    STATUS_CHOICES = [
        ("available", "Available"),
        ("assigned", "Assigned"),
        ("maintenance", "Maintenance"),
        ("out_of_service", "Out of Service"),
    ]

    # Valid state transitions: from_status -> [to_statuses].
    # "assigned" is only reachable through the assignment service.
    VALID_TRANSITIONS = {
        "available": ["assigned", "maintenance", "out_of_service"],
        "assigned": ["available", "maintenance", "out_of_service"],
        "maintenance": ["available", "out_of_service"],
        "out_of_service": ["maintenance"],
    }

    code = models.CharField(max_length=50, unique=True)
    name = models.CharField(max_length=200)
    family = models.ForeignKey(
        Family,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="holders",
    )
    status = models.CharField(
        max_length=20, choices=STATUS_CHOICES, default="available"
    )
    rob = models.ForeignKey(
        Rob,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="holders",
    )
    assigned_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["code"]
        indexes = [
            models.Index(fields=["status"], name="idx_holder_status"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=(
                    models.Q(
                        status="assigned",
                        rob__isnull=False,
                        assigned_at__isnull=False,
                    )
                    | (
                        ~models.Q(status="assigned")
                        & models.Q(rob__isnull=True, assigned_at__isnull=True)
                    )
                ),
                name="holder_assignment_consistent",
            ),
        ]
        permissions = [
            ("assign_holder", "Can assign holders to ROBs"),
        ]

    def __str__(self):
        return f"{self.name} ({self.code})"

    @property
    def is_assigned(self):
        return self.rob_id is not None

    def can_transition_to(self, new_status):
        return new_status in self.VALID_TRANSITIONS.get(self.status, [])


class AuditLog(models.Model):
    """Immutable record of every create, update and delete."""

    ENTITY_CHOICES = [
        ("families", "Families"),
        ("holders", "Holders"),
        ("robs", "ROBs"),
    ]

    OPERATION_CHOICES = [
        ("CREATE", "Create"),
        ("UPDATE", "Update"),
        ("DELETE", "Delete"),
    ]

    entity = models.CharField(max_length=20, choices=ENTITY_CHOICES)
    entity_id = models.CharField(max_length=50)
    operation = models.CharField(max_length=10, choices=OPERATION_CHOICES)
    old_data = models.JSONField(null=True, blank=True, encoder=DjangoJSONEncoder)
    new_data = models.JSONField(null=True, blank=True, encoder=DjangoJSONEncoder)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="audit_logs",
        help_text="The user who performed the operation",
    )
    timestamp = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["-timestamp", "-pk"]
        indexes = [
            models.Index(
                fields=["entity", "entity_id"], name="idx_auditlog_entity"
            ),
            models.Index(fields=["timestamp"], name="idx_auditlog_timestamp"),
        ]

    def __str__(self):
        return f"{self.operation} {self.entity}#{self.entity_id} by {self.user}"

    def save(self, *args, **kwargs):
        if self.pk is not None:
            raise ValidationError(
                "Audit log entries are immutable and cannot be modified."
            )
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError(
            "Audit log entries are immutable and cannot be deleted."
        )
