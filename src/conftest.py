"""Shared pytest fixtures for ROBDESK tests."""

import pytest

from django.conf import settings

# Serve static files without a manifest in tests
settings.STORAGES["staticfiles"] = {
    "BACKEND": "django.contrib.staticfiles.storage.StaticFilesStorage",
}

# Run Celery tasks synchronously in tests
settings.CELERY_TASK_ALWAYS_EAGER = True
settings.CELERY_TASK_EAGER_PROPAGATES = True

# Use in-memory cache for tests (avoids Redis connection errors)
settings.CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
    }
}


@pytest.fixture(autouse=True)
def _clear_cache():
    """Clear the in-memory cache so import cancel flags never leak."""
    from django.core.cache import cache

    cache.clear()


def _ensure_group(role):
    """Create a role group with its permissions, as setup_groups does."""
    from django.contrib.auth.models import Group

    from tooling.services.permissions import get_role_permissions

    group, _ = Group.objects.get_or_create(name=role)
    group.permissions.set(get_role_permissions(role))
    return group


from tooling.factories import (  # noqa: E402
    FamilyFactory,
    HolderFactory,
    RobFactory,
    UserFactory,
)

# --- User fixtures ---


@pytest.fixture
def password():
    return "testpass123!"


@pytest.fixture
def admin_user(db, password):
    return UserFactory(
        username="admin",
        email="admin@example.com",
        password=password,
        is_staff=True,
        is_superuser=True,
    )


@pytest.fixture
def operator_user(db, password):
    u = UserFactory(username="operator", password=password, is_staff=True)
    u.groups.add(_ensure_group("Operator"))
    return u


@pytest.fixture
def manager_user(db, password):
    u = UserFactory(username="manager", password=password, is_staff=True)
    u.groups.add(_ensure_group("Manager"))
    return u


@pytest.fixture
def admin_client(client, admin_user, password):
    client.login(username=admin_user.username, password=password)
    return client


# --- Tooling fixtures ---


@pytest.fixture
def inventory(admin_user):
    from tooling.services.inventory import Inventory

    return Inventory(actor=admin_user)


@pytest.fixture
def family(db):
    return FamilyFactory(name="VW Front Bumper", code="VW-FB-699")


@pytest.fixture
def rob(db):
    return RobFactory(code="ROB-A", name="Cell A", capacity=2)


@pytest.fixture
def holder(db, family):
    return HolderFactory(code="HLD-1", name="Holder 1", family=family)


@pytest.fixture
def holder_factory(db, family):
    def make(**kwargs):
        kwargs.setdefault("family", family)
        return HolderFactory(**kwargs)

    return make
