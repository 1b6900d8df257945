"""
Test factories for the ledger models.

Factories build rows directly; tests exercising validation go through the
service layer instead.
"""

from datetime import date
from decimal import Decimal

import factory
from django.contrib.auth import get_user_model
from factory.django import DjangoModelFactory
from faker import Faker

from ledger.models import (
    Account,
    Business,
    Category,
    Client,
    Project,
    ProjectClient,
    SavingsGoal,
    Service,
    Transaction,
)

fake = Faker()
User = get_user_model()


class UserFactory(DjangoModelFactory):
    class Meta:
        model = User
        skip_postgeneration_save = True

    username = factory.Sequence(lambda n: f"user_{n}")
    email = factory.Sequence(lambda n: f"user_{n}@example.com")
    password = "testpass123"
    is_active = True
    first_name = factory.LazyAttribute(lambda _: fake.first_name())
    last_name = factory.LazyAttribute(lambda _: fake.last_name())

    @classmethod
    def _create(cls, model_class, *args, **kwargs):
        """Use create_user so the password is hashed."""
        manager = cls._get_manager(model_class)
        return manager.create_user(*args, **kwargs)


class BusinessFactory(DjangoModelFactory):
    class Meta:
        model = Business

    user = factory.SubFactory(UserFactory)
    name = factory.Sequence(lambda n: f"Studio {n}")
    currency = "EUR"
    is_active = True


class AccountFactory(DjangoModelFactory):
    class Meta:
        model = Account

    user = factory.SubFactory(UserFactory)
    business = None
    name = factory.Sequence(lambda n: f"Account {n}")
    type = "current"
    currency = "EUR"
    connection_type = "manual"


class CategoryFactory(DjangoModelFactory):
    class Meta:
        model = Category

    user = factory.SubFactory(UserFactory)
    business = None
    name = factory.LazyAttribute(lambda _: fake.unique.word().capitalize())
    kind = "expense"


class ClientFactory(DjangoModelFactory):
    class Meta:
        model = Client

    business = factory.SubFactory(BusinessFactory)
    name = factory.LazyAttribute(lambda _: fake.unique.company())
    email = factory.LazyAttribute(lambda _: fake.company_email())
    status = "active"


class ProjectClientFactory(DjangoModelFactory):
    class Meta:
        model = ProjectClient

    user = factory.SubFactory(UserFactory)
    business = None
    name = factory.LazyAttribute(lambda _: fake.unique.company())
    email = factory.LazyAttribute(lambda _: fake.company_email())


class ServiceFactory(DjangoModelFactory):
    class Meta:
        model = Service

    business = factory.SubFactory(BusinessFactory)
    name = factory.Sequence(lambda n: f"Service {n}")
    billing_mode = "fixed"
    default_price = Decimal("500.00")
    default_vat_rate = Decimal("20.00")


class ProjectFactory(DjangoModelFactory):
    class Meta:
        model = Project

    user = factory.SubFactory(UserFactory)
    business = None
    name = factory.Sequence(lambda n: f"Project {n}")
    status = "in_progress"
    currency = "EUR"


class TransactionFactory(DjangoModelFactory):
    class Meta:
        model = Transaction

    account = factory.SubFactory(AccountFactory)
    user = factory.LazyAttribute(lambda o: o.account.user)
    business = factory.LazyAttribute(lambda o: o.account.business)
    amount = Decimal("50.00")
    direction = "out"
    date = date(2025, 3, 10)
    label = factory.LazyAttribute(lambda _: fake.sentence(nb_words=3))
    type = "other"


class SavingsGoalFactory(DjangoModelFactory):
    class Meta:
        model = SavingsGoal

    user = factory.SubFactory(UserFactory)
    business = None
    name = factory.Sequence(lambda n: f"Goal {n}")
    target_amount = Decimal("1000.00")
    current_amount = Decimal("0.00")
    status = "active"
