"""Tests for the tooling admin: pages render and writes go through Inventory."""

import pytest

from django.contrib.messages import get_messages
from django.urls import reverse

from tooling.factories import RobFactory
from tooling.models import AuditLog, Holder


def messages_of(response):
    return [str(m) for m in get_messages(response.wsgi_request)]


def holder_form(holder, **overrides):
    data = {
        "code": holder.code,
        "name": holder.name,
        "family": holder.family_id or "",
        "status": holder.status,
        "rob": holder.rob_id or "",
        "_save": "Save",
    }
    data.update(overrides)
    return data


@pytest.mark.django_db
class TestAdminPages:
    @pytest.mark.parametrize("model", ["family", "holder", "rob", "auditlog"])
    def test_changelist_loads(self, admin_client, family, rob, holder, model):
        response = admin_client.get(reverse(f"admin:tooling_{model}_changelist"))
        assert response.status_code == 200

    def test_holder_change_page_loads(self, admin_client, holder):
        url = reverse("admin:tooling_holder_change", args=[holder.pk])
        assert admin_client.get(url).status_code == 200

    def test_auditlog_cannot_be_added(self, admin_client):
        response = admin_client.get(reverse("admin:tooling_auditlog_add"))
        assert response.status_code == 403

    def test_rob_cannot_be_deleted(self, admin_client, rob):
        response = admin_client.get(
            reverse("admin:tooling_rob_delete", args=[rob.pk])
        )
        assert response.status_code == 403


@pytest.mark.django_db
class TestHolderAdminWrites:
    def test_add_with_rob_assigns(self, admin_client, family, rob):
        response = admin_client.post(
            reverse("admin:tooling_holder_add"),
            {
                "code": "H-NEW",
                "name": "New holder",
                "family": family.pk,
                "status": "available",
                "rob": rob.pk,
                "_save": "Save",
            },
        )
        assert response.status_code == 302
        holder = Holder.objects.get(code="H-NEW")
        assert holder.status == "assigned"
        assert holder.rob == rob
        rob.refresh_from_db()
        assert rob.current_load == 1

    def test_change_rob_assigns_through_service(self, admin_client, rob, holder):
        url = reverse("admin:tooling_holder_change", args=[holder.pk])
        response = admin_client.post(url, holder_form(holder, rob=rob.pk))
        assert response.status_code == 302
        holder.refresh_from_db()
        assert holder.status == "assigned"
        assert holder.assigned_at is not None
        rob.refresh_from_db()
        assert rob.current_load == 1
        assert AuditLog.objects.filter(entity="robs", operation="UPDATE").exists()

    def test_capacity_exceeded_is_reported(
        self, admin_client, inventory, rob, holder_factory
    ):
        for _ in range(rob.capacity):
            inventory.assign(holder_factory().pk, rob.pk).unwrap()
        spare = holder_factory()
        url = reverse("admin:tooling_holder_change", args=[spare.pk])

        response = admin_client.post(url, holder_form(spare, rob=rob.pk))

        assert response.status_code == 302
        assert response["Location"] == url
        assert any("full capacity" in m for m in messages_of(response))
        spare.refresh_from_db()
        assert spare.rob is None
        rob.refresh_from_db()
        assert rob.current_load == rob.capacity

    def test_move_to_full_rob_keeps_original_assignment(
        self, admin_client, inventory, rob, holder, holder_factory
    ):
        inventory.assign(holder.pk, rob.pk).unwrap()
        full = RobFactory(code="ROB-FULL", capacity=1)
        inventory.assign(holder_factory().pk, full.pk).unwrap()
        holder.refresh_from_db()
        url = reverse("admin:tooling_holder_change", args=[holder.pk])

        response = admin_client.post(
            url, holder_form(holder, rob=full.pk, name="Renamed")
        )

        assert response.status_code == 302
        assert response["Location"] == url
        assert any("full capacity" in m for m in messages_of(response))
        holder.refresh_from_db()
        assert holder.rob_id == rob.pk
        assert holder.status == "assigned"
        assert holder.name == "Holder 1"
        rob.refresh_from_db()
        full.refresh_from_db()
        assert rob.current_load == 1
        assert full.current_load == 1

    def test_move_between_robs(self, admin_client, inventory, rob, holder):
        inventory.assign(holder.pk, rob.pk).unwrap()
        other = RobFactory(code="ROB-B")
        holder.refresh_from_db()
        url = reverse("admin:tooling_holder_change", args=[holder.pk])

        response = admin_client.post(url, holder_form(holder, rob=other.pk))

        assert response.status_code == 302
        holder.refresh_from_db()
        assert holder.rob_id == other.pk
        rob.refresh_from_db()
        other.refresh_from_db()
        assert rob.current_load == 0
        assert other.current_load == 1

    def test_clearing_rob_unassigns(self, admin_client, inventory, rob, holder):
        inventory.assign(holder.pk, rob.pk).unwrap()
        holder.refresh_from_db()
        url = reverse("admin:tooling_holder_change", args=[holder.pk])

        response = admin_client.post(
            url, holder_form(holder, rob="", status="available")
        )

        assert response.status_code == 302
        holder.refresh_from_db()
        assert holder.status == "available"
        assert holder.rob is None
        rob.refresh_from_db()
        assert rob.current_load == 0

    def test_delete_releases_capacity(self, admin_client, inventory, rob, holder):
        inventory.assign(holder.pk, rob.pk).unwrap()
        url = reverse("admin:tooling_holder_delete", args=[holder.pk])

        response = admin_client.post(url, {"post": "yes"})

        assert response.status_code == 302
        assert not Holder.objects.filter(pk=holder.pk).exists()
        rob.refresh_from_db()
        assert rob.current_load == 0

    def test_unassign_selected_action(
        self, admin_client, inventory, rob, holder_factory
    ):
        first = inventory.assign(holder_factory().pk, rob.pk).unwrap()
        second = inventory.assign(holder_factory().pk, rob.pk).unwrap()

        response = admin_client.post(
            reverse("admin:tooling_holder_changelist"),
            {
                "action": "unassign_selected",
                "_selected_action": [first.pk, second.pk],
            },
        )

        assert response.status_code == 302
        assert "2 holder(s) unassigned." in messages_of(response)
        rob.refresh_from_db()
        assert rob.current_load == 0
        assert set(Holder.objects.values_list("status", flat=True)) == {
            "available"
        }


@pytest.mark.django_db
class TestExportActions:
    def test_export_selected_csv(self, admin_client, rob):
        response = admin_client.post(
            reverse("admin:tooling_rob_changelist"),
            {"action": "export_selected_csv", "_selected_action": [rob.pk]},
        )
        assert response.status_code == 200
        assert response["Content-Type"].startswith("text/csv")
        assert "attachment;" in response["Content-Disposition"]
        body = response.content.decode()
        assert body.startswith("ROB ID,ROB Name,Type,Capacity")
        assert "ROB-A,Cell A,SERIAL,2" in body

    def test_export_selected_xlsx(self, admin_client, family):
        response = admin_client.post(
            reverse("admin:tooling_family_changelist"),
            {"action": "export_selected_xlsx", "_selected_action": [family.pk]},
        )
        assert response.status_code == 200
        assert response["Content-Disposition"].endswith('.xlsx"')
        assert response.content[:2] == b"PK"
