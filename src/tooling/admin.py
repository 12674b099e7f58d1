"""Admin configuration for the tooling app using django-unfold.

Adds, edits and deletes of families, holders and ROBs go through the
Inventory service so they are permission-checked, audited and keep
holder/ROB assignment consistent. Service errors are shown as admin
messages and the save is abandoned.
"""

from datetime import date

from unfold.admin import ModelAdmin
from unfold.contrib.filters.admin import (
    ChoicesDropdownFilter,
    RelatedDropdownFilter,
)
from unfold.decorators import action, display
from unfold.enums import ActionVariant

from django.contrib import admin, messages
from django.db import transaction
from django.http import HttpResponse, HttpResponseRedirect

from .models import AuditLog, Family, Holder, Rob
from .services.export import export_csv, export_table_xlsx
from .services.inventory import FAMILY_FIELDS, ROB_FIELDS, Inventory
from .services.records import FAMILIES, HOLDERS, ROBS

XLSX_CONTENT_TYPE = (
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
)


class InventoryAdminMixin:
    """Shared plumbing for admins that write through ``Inventory``."""

    export_kind = None

    def get_inventory(self, request):
        return Inventory(actor=request.user)

    def check_outcome(self, request, outcome):
        """Return True on success; otherwise flag the request and report."""
        if outcome.ok:
            return True
        request._inventory_failed = True
        messages.error(request, str(outcome.error))
        return False

    def _failed(self, request):
        return getattr(request, "_inventory_failed", False)

    def message_user(self, request, message, level=messages.INFO, *args, **kwargs):
        # Suppress Django's "saved successfully" after a rejected save
        if self._failed(request) and level == messages.SUCCESS:
            return
        super().message_user(request, message, level, *args, **kwargs)

    def log_addition(self, request, obj, message):
        if self._failed(request):
            return None
        return super().log_addition(request, obj, message)

    def log_change(self, request, obj, message):
        if self._failed(request):
            return None
        return super().log_change(request, obj, message)

    def response_add(self, request, obj, post_url_continue=None):
        if self._failed(request):
            return HttpResponseRedirect(request.path)
        return super().response_add(request, obj, post_url_continue)

    def response_change(self, request, obj):
        if self._failed(request):
            return HttpResponseRedirect(request.path)
        return super().response_change(request, obj)

    @staticmethod
    def form_data(form, allowed, change):
        names = form.changed_data if change else form.cleaned_data.keys()
        return {
            name: form.cleaned_data[name] for name in names if name in allowed
        }

    # --- Export actions ---

    def has_export_permission(self, request):
        return request.user.has_perm("tooling.export_data")

    @action(
        description="Export selected to CSV",
        icon="download",
        permissions=["export"],
    )
    def export_selected_csv(self, request, queryset):
        response = HttpResponse(
            export_csv(self.export_kind, queryset),
            content_type="text/csv; charset=utf-8",
        )
        filename = f"robdesk-{self.export_kind}-{date.today().isoformat()}.csv"
        response["Content-Disposition"] = f'attachment; filename="{filename}"'
        return response

    @action(
        description="Export selected to Excel",
        icon="download",
        variant=ActionVariant.PRIMARY,
        permissions=["export"],
    )
    def export_selected_xlsx(self, request, queryset):
        buffer = export_table_xlsx(self.export_kind, queryset)
        response = HttpResponse(buffer.getvalue(), content_type=XLSX_CONTENT_TYPE)
        filename = f"robdesk-{self.export_kind}-{date.today().isoformat()}.xlsx"
        response["Content-Disposition"] = f'attachment; filename="{filename}"'
        return response


@admin.register(Family)
class FamilyAdmin(InventoryAdminMixin, ModelAdmin):
    export_kind = FAMILIES
    list_display = [
        "display_header",
        "type",
        "display_status",
        "display_holder_count",
        "total_holders",
        "updated_at",
    ]
    list_filter = [("status", ChoicesDropdownFilter)]
    list_filter_submit = True
    search_fields = ["name", "code", "type"]
    readonly_fields = ["created_by", "created_at", "updated_at"]
    actions = ["export_selected_csv", "export_selected_xlsx"]

    fieldsets = (
        (
            None,
            {"fields": ("name", "code", "type", "status", "description")},
        ),
        (
            "Equipment",
            {"fields": tuple(Family.COUNTER_FIELDS), "classes": ["tab"]},
        ),
        (
            "Notes",
            {
                "fields": ("comment", "total_holders", "rob_assignments"),
                "classes": ["tab"],
            },
        ),
        (
            "Tracking",
            {
                "fields": ("created_by", "created_at", "updated_at"),
                "classes": ["tab"],
            },
        ),
    )

    @display(description="Family", header=True, ordering="name")
    def display_header(self, obj):
        return obj.name, obj.code

    @display(
        description="Status",
        label={
            "draft": "info",
            "active": "success",
            "maintenance": "warning",
            "archived": "default",
        },
    )
    def display_status(self, obj):
        return obj.status

    @display(description="Holders")
    def display_holder_count(self, obj):
        return obj.holders.count()

    def save_model(self, request, obj, form, change):
        inventory = self.get_inventory(request)
        data = self.form_data(form, FAMILY_FIELDS, change)
        if change:
            self.check_outcome(request, inventory.update_family(obj.pk, data))
            return
        outcome = inventory.create_family(data)
        if self.check_outcome(request, outcome):
            obj.pk = outcome.value.pk

    def delete_model(self, request, obj):
        self.check_outcome(request, self.get_inventory(request).delete_family(obj.pk))

    def delete_queryset(self, request, queryset):
        inventory = self.get_inventory(request)
        for family in queryset:
            self.check_outcome(request, inventory.delete_family(family.pk))


@admin.register(Rob)
class RobAdmin(InventoryAdminMixin, ModelAdmin):
    export_kind = ROBS
    list_display = [
        "display_header",
        "display_type",
        "display_status",
        "display_load",
        "display_utilization",
        "updated_at",
    ]
    list_filter = [
        ("type", ChoicesDropdownFilter),
        ("status", ChoicesDropdownFilter),
    ]
    list_filter_submit = True
    search_fields = ["code", "name"]
    fields = [
        "code",
        "name",
        "type",
        "capacity",
        "current_load",
        "status",
        "created_at",
        "updated_at",
    ]
    readonly_fields = ["current_load", "created_at", "updated_at"]
    actions = ["export_selected_csv", "export_selected_xlsx"]

    @display(description="ROB", header=True, ordering="code")
    def display_header(self, obj):
        return obj.name, obj.code

    @display(
        description="Type",
        label={"SERIAL": "success", "MPR": "default", "MYC": "info"},
    )
    def display_type(self, obj):
        return obj.type

    @display(
        description="Status",
        label={
            "active": "success",
            "inactive": "default",
            "maintenance": "warning",
            "stopped": "danger",
        },
    )
    def display_status(self, obj):
        return obj.status

    @display(description="Load", ordering="current_load")
    def display_load(self, obj):
        return f"{obj.current_load}/{obj.capacity}"

    @display(description="Utilisation")
    def display_utilization(self, obj):
        return f"{obj.utilization:.0f}%"

    def get_readonly_fields(self, request, obj=None):
        readonly = list(super().get_readonly_fields(request, obj))
        if obj is not None:
            readonly.append("type")
        return readonly

    def save_model(self, request, obj, form, change):
        inventory = self.get_inventory(request)
        data = self.form_data(form, ROB_FIELDS, change)
        if change:
            self.check_outcome(request, inventory.update_rob(obj.pk, data))
            return
        outcome = inventory.create_rob(data)
        if self.check_outcome(request, outcome):
            obj.pk = outcome.value.pk

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(Holder)
class HolderAdmin(InventoryAdminMixin, ModelAdmin):
    export_kind = HOLDERS
    list_display = [
        "display_header",
        "family",
        "display_status",
        "rob",
        "assigned_at",
    ]
    list_filter = [
        ("status", ChoicesDropdownFilter),
        ("family", RelatedDropdownFilter),
        ("rob", RelatedDropdownFilter),
    ]
    list_filter_submit = True
    search_fields = ["code", "name", "family__code", "rob__code"]
    autocomplete_fields = ["family", "rob"]
    fields = ["code", "name", "family", "status", "rob", "assigned_at", "created_at"]
    readonly_fields = ["assigned_at", "created_at"]
    actions = [
        "unassign_selected",
        "export_selected_csv",
        "export_selected_xlsx",
    ]

    @display(description="Holder", header=True, ordering="code")
    def display_header(self, obj):
        return obj.name, obj.code

    @display(
        description="Status",
        label={
            "available": "success",
            "assigned": "info",
            "maintenance": "warning",
            "out_of_service": "danger",
        },
    )
    def display_status(self, obj):
        return obj.status

    def save_model(self, request, obj, form, change):
        """Edit scalar fields, then move the holder between ROBs.

        The admin runs this inside one transaction; if any step fails the
        whole save is rolled back.
        """
        inventory = self.get_inventory(request)
        data = self.form_data(form, {"code", "name", "family", "status"}, change)
        new_rob = form.cleaned_data.get("rob")
        rob_changed = "rob" in form.changed_data

        # Assignment status comes from assign(), never from the form
        status = data.pop("status", None)
        if status == "assigned" or (new_rob is not None and rob_changed):
            status = None
        if status is not None:
            data["status"] = status

        if not change:
            outcome = inventory.create_holder(data)
            if outcome.ok:
                obj.pk = outcome.value.pk
                if new_rob is not None:
                    outcome = inventory.assign(obj.pk, new_rob.pk)
        else:
            outcome = None
            if data:
                outcome = inventory.update_holder(obj.pk, data)
            if (outcome is None or outcome.ok) and rob_changed:
                if new_rob is None:
                    outcome = inventory.unassign(obj.pk)
                else:
                    outcome = inventory.reassign(obj.pk, new_rob.pk)

        if outcome is not None and not self.check_outcome(request, outcome):
            transaction.set_rollback(True)

    def delete_model(self, request, obj):
        self.check_outcome(request, self.get_inventory(request).delete_holder(obj.pk))

    def delete_queryset(self, request, queryset):
        inventory = self.get_inventory(request)
        for holder in queryset:
            self.check_outcome(request, inventory.delete_holder(holder.pk))

    @action(description="Unassign selected from their ROB")
    def unassign_selected(self, request, queryset):
        inventory = self.get_inventory(request)
        count = 0
        for holder in queryset.filter(rob__isnull=False):
            if self.check_outcome(request, inventory.unassign(holder.pk)):
                count += 1
        if count:
            messages.success(request, f"{count} holder(s) unassigned.")


@admin.register(AuditLog)
class AuditLogAdmin(ModelAdmin):
    list_display = [
        "timestamp",
        "entity",
        "entity_id",
        "display_operation",
        "user",
    ]
    list_filter = [
        ("entity", ChoicesDropdownFilter),
        ("operation", ChoicesDropdownFilter),
    ]
    search_fields = ["entity_id", "user__username"]
    date_hierarchy = "timestamp"
    readonly_fields = [
        "entity",
        "entity_id",
        "operation",
        "old_data",
        "new_data",
        "user",
        "timestamp",
    ]

    @display(
        description="Operation",
        label={"CREATE": "success", "UPDATE": "info", "DELETE": "danger"},
    )
    def display_operation(self, obj):
        return obj.operation

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
