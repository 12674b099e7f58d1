"""Tests for tooling management commands."""

from io import StringIO

import pytest

from django.contrib.auth.models import Group
from django.core.management import call_command
from django.core.management.base import CommandError

from tooling.factories import RobFactory, UserFactory
from tooling.models import AuditLog, Family, Holder, Rob


@pytest.mark.django_db
class TestSetupGroups:
    def test_creates_roles(self):
        out = StringIO()
        call_command("setup_groups", stdout=out)
        assert set(Group.objects.values_list("name", flat=True)) == {
            "Administrator",
            "Supervisor",
            "Manager",
            "Operator",
        }
        assert "All role groups configured." in out.getvalue()

    def test_role_permissions(self):
        call_command("setup_groups", stdout=StringIO())
        perms = {
            group.name: set(group.permissions.values_list("codename", flat=True))
            for group in Group.objects.all()
        }
        assert "delete_holder" in perms["Administrator"]
        assert "delete_holder" not in perms["Supervisor"]
        assert "assign_holder" in perms["Supervisor"]
        assert {"import_data", "export_data"} <= perms["Manager"]
        assert "assign_holder" not in perms["Manager"]
        assert perms["Operator"] == {
            "view_family",
            "view_holder",
            "view_rob",
            "assign_holder",
            "export_data",
        }

    def test_idempotent(self):
        call_command("setup_groups", stdout=StringIO())
        call_command("setup_groups", stdout=StringIO())
        assert Group.objects.count() == 4

    def test_role_grants_user_permissions(self):
        call_command("setup_groups", stdout=StringIO())
        user = UserFactory()
        user.groups.add(Group.objects.get(name="Operator"))
        assert user.has_perm("tooling.assign_holder")
        assert not user.has_perm("tooling.add_holder")


@pytest.mark.django_db
class TestImportData:
    def write(self, tmp_path, name, text):
        path = tmp_path / name
        path.write_text(text, encoding="utf-8")
        return path

    def test_validate_only(self, tmp_path, family):
        path = self.write(
            tmp_path,
            "families.csv",
            "Family Name,Family Code,Type,Status\n"
            "A,A-1,Body,active\n"
            "B,VW-FB-699,Body,active\n",
        )
        out = StringIO()
        call_command("import_data", str(path), stdout=out)
        output = out.getvalue()
        assert "Row 3: Family Code 'VW-FB-699' already exists" in output
        assert "families: 2 rows, 1 valid, 1 invalid" in output
        assert not Family.objects.filter(code="A-1").exists()

    def test_apply(self, tmp_path, admin_user):
        RobFactory(code="ROB-A")
        path = self.write(
            tmp_path,
            "holders.csv",
            "Holder ID,Holder Name,Family Code,Status,ROB Assignment\n"
            "H-1,Holder 1,,assigned,ROB-A\n",
        )
        out = StringIO()
        call_command(
            "import_data", str(path), "--apply", "--user", "admin", stdout=out
        )
        assert "Imported 1 holders; 0 failed." in out.getvalue()
        holder = Holder.objects.get(code="H-1")
        assert holder.rob.code == "ROB-A"
        assert AuditLog.objects.filter(user=admin_user).exists()

    def test_structure_error(self, tmp_path):
        path = self.write(tmp_path, "robs.csv", "ROB ID,ROB Name\nR,R\n")
        with pytest.raises(CommandError, match="Missing required fields"):
            call_command("import_data", str(path), stdout=StringIO())

    def test_missing_file(self, tmp_path):
        with pytest.raises(CommandError, match="File not found"):
            call_command("import_data", str(tmp_path / "nope.csv"))

    def test_unknown_user(self, tmp_path):
        path = self.write(tmp_path, "f.csv", "Family Name,Family Code\n")
        with pytest.raises(CommandError, match="does not exist"):
            call_command("import_data", str(path), "--user", "ghost")

    def test_user_without_import_permission(self, tmp_path, operator_user):
        path = self.write(tmp_path, "f.csv", "Family Name,Family Code\n")
        with pytest.raises(CommandError, match="may not import"):
            call_command("import_data", str(path), "--user", "operator")


@pytest.mark.django_db
class TestExportData:
    def test_export_to_stdout(self):
        RobFactory(code="R-1")
        out = StringIO()
        call_command("export_data", "robs", stdout=out)
        lines = out.getvalue().splitlines()
        assert lines[0].startswith("ROB ID,ROB Name,Type,Capacity")
        assert lines[1].startswith("R-1,")

    def test_export_to_file(self, tmp_path, family):
        target = tmp_path / "families.csv"
        call_command(
            "export_data", "families", "--output", str(target), stdout=StringIO()
        )
        assert "VW-FB-699" in target.read_text(encoding="utf-8")

    def test_template(self):
        out = StringIO()
        call_command("export_data", "holders", "--template", stdout=out)
        assert out.getvalue().startswith(
            "Holder ID,Holder Name,Family Code,Status,ROB Assignment\n"
        )
        assert not Rob.objects.exists()
