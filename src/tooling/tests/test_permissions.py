"""Tests for role permissions as enforced by Inventory."""

import pytest

from django.contrib.auth.models import Permission

from tooling.errors import PermissionDeniedError
from tooling.services.inventory import Inventory
from tooling.services.permissions import ROLE_PERMISSIONS, get_role_permissions


@pytest.mark.django_db
class TestRolePermissions:
    @pytest.mark.parametrize("role", sorted(ROLE_PERMISSIONS))
    def test_every_codename_exists(self, role):
        perms = get_role_permissions(role)
        assert perms.count() == len(set(ROLE_PERMISSIONS[role]))

    def test_unknown_codename_raises(self, monkeypatch):
        monkeypatch.setitem(ROLE_PERMISSIONS, "Ghost", ["fly_holder"])
        with pytest.raises(Permission.DoesNotExist):
            get_role_permissions("Ghost")


@pytest.mark.django_db
class TestManagerRole:
    def test_manager_can_create_but_not_assign(self, manager_user, rob, holder):
        inventory = Inventory(actor=manager_user)
        assert inventory.create_family({"name": "M", "code": "M-1"}).ok

        outcome = inventory.assign(holder.pk, rob.pk)
        assert isinstance(outcome.error, PermissionDeniedError)
        assert outcome.error.permission == "tooling.assign_holder"

    def test_manager_cannot_delete(self, manager_user, holder):
        outcome = Inventory(actor=manager_user).delete_holder(holder.pk)
        assert isinstance(outcome.error, PermissionDeniedError)
        assert manager_user.has_perm("tooling.import_data")


@pytest.mark.django_db
class TestOperatorRole:
    def test_operator_assigns_but_cannot_edit(self, operator_user, rob, holder):
        inventory = Inventory(actor=operator_user)
        assert inventory.assign(holder.pk, rob.pk).ok

        outcome = inventory.update_rob(rob.pk, {"name": "Renamed"})
        assert isinstance(outcome.error, PermissionDeniedError)
        assert not operator_user.has_perm("tooling.import_data")
