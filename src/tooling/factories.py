"""Factory Boy factories for ROBDESK test data generation."""

import factory
from factory.django import DjangoModelFactory


class UserFactory(DjangoModelFactory):
    """Factory for the auth User model."""

    class Meta:
        model = "auth.User"
        django_get_or_create = ("username",)
        skip_postgeneration_save = True

    username = factory.Sequence(lambda n: f"user{n}")
    email = factory.LazyAttribute(lambda o: f"{o.username}@example.com")
    first_name = factory.Faker("first_name")
    is_active = True

    @factory.post_generation
    def password(self, create, extracted, **kwargs):
        pwd = extracted or "testpass123!"
        self.set_password(pwd)
        if create:
            self.save(update_fields=["password"])


class FamilyFactory(DjangoModelFactory):
    """Factory for Family model."""

    class Meta:
        model = "tooling.Family"

    name = factory.Sequence(lambda n: f"Family {n}")
    code = factory.Sequence(lambda n: f"FAM-{n:03d}")
    type = "Body"
    status = "active"


class RobFactory(DjangoModelFactory):
    """Factory for Rob model.

    Creates an empty ROB. Use ``Inventory.assign`` to load it so
    ``current_load`` stays in step with its holders.
    """

    class Meta:
        model = "tooling.Rob"

    code = factory.Sequence(lambda n: f"ROB-{n:03d}")
    name = factory.Sequence(lambda n: f"Cell {n}")
    type = "SERIAL"
    capacity = 10
    status = "active"


class HolderFactory(DjangoModelFactory):
    """Factory for an unassigned Holder."""

    class Meta:
        model = "tooling.Holder"

    code = factory.Sequence(lambda n: f"HLD-{n:04d}")
    name = factory.Sequence(lambda n: f"Holder {n}")
    family = factory.SubFactory(FamilyFactory)
    status = "available"
