"""Console roles and the tooling permissions each one carries."""

from django.contrib.auth.models import Permission

APP_LABEL = "tooling"
MANAGED_MODELS = ["family", "holder", "rob"]


def _crud(*actions):
    return [f"{action}_{model}" for model in MANAGED_MODELS for action in actions]


# Role name -> permission codenames in the tooling app
ROLE_PERMISSIONS = {
    "Administrator": _crud("view", "add", "change", "delete")
    + ["view_auditlog", "assign_holder", "import_data", "export_data"],
    "Supervisor": _crud("view", "add", "change")
    + ["view_auditlog", "assign_holder", "import_data", "export_data"],
    "Manager": _crud("view", "add", "change")
    + ["view_auditlog", "import_data", "export_data"],
    "Operator": _crud("view") + ["assign_holder", "export_data"],
}


def get_role_permissions(role: str):
    """Return the Permission queryset for ``role``.

    Raises Permission.DoesNotExist if a codename is missing, which means
    migrations have not been run.
    """
    codenames = ROLE_PERMISSIONS[role]
    permissions = Permission.objects.filter(
        content_type__app_label=APP_LABEL, codename__in=codenames
    )
    found = set(permissions.values_list("codename", flat=True))
    missing = sorted(set(codenames) - found)
    if missing:
        raise Permission.DoesNotExist(
            f"Missing tooling permissions: {', '.join(missing)}"
        )
    return permissions
