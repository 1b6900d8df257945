# ledger/tests/conftest.py
from datetime import date
from decimal import Decimal

import pytest
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient

from ledger.services.account_service import AccountService
from ledger.services.business_service import BusinessService
from ledger.services.catalog_service import CatalogService

User = get_user_model()

# =============================================================================
# USER FIXTURES
# =============================================================================


@pytest.fixture
def test_user(db):
    """Owner of every fixture below."""
    return User.objects.create_user(
        username="testuser", email="test@example.com", password="testpass123"
    )


@pytest.fixture
def other_user(db):
    """Second user, owns nothing of test_user's."""
    return User.objects.create_user(
        username="otheruser", email="other@example.com", password="testpass123"
    )


@pytest.fixture
def reference_date():
    return date(2025, 3, 15)


# =============================================================================
# BUSINESS FIXTURES
# =============================================================================


@pytest.fixture
def business(test_user):
    return BusinessService.create_business(
        test_user,
        "Atelier Nord",
        currency="EUR",
        default_vat_rate=Decimal("20"),
        default_payment_terms_days=30,
        monthly_revenue_goal=Decimal("5000"),
    )


@pytest.fixture
def client_record(test_user, business):
    """Catalog client of ``business``."""
    return CatalogService.create_client(
        test_user, business.id, "Acme Corp", email="billing@acme.test"
    )


@pytest.fixture
def catalog_service(test_user, business):
    return CatalogService.create_service(
        test_user,
        business.id,
        "Website design",
        default_price=Decimal("1000"),
        default_vat_rate=Decimal("20"),
    )


# =============================================================================
# ACCOUNT FIXTURES
# =============================================================================


@pytest.fixture
def personal_account(test_user):
    return AccountService.create_account(test_user, "Main current", type="current")


@pytest.fixture
def savings_account(test_user):
    return AccountService.create_account(test_user, "Rainy day", type="savings")


@pytest.fixture
def business_account(test_user, business):
    return AccountService.create_account(
        test_user, "Business current", type="current", business_id=business.id
    )


@pytest.fixture
def expense_category(test_user):
    return CatalogService.create_category(test_user, "Groceries", kind="expense")


@pytest.fixture
def leisure_category(test_user):
    return CatalogService.create_category(test_user, "Leisure", kind="expense")


# =============================================================================
# API FIXTURES
# =============================================================================


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def authenticated_client(api_client, test_user):
    api_client.force_authenticate(user=test_user)
    return api_client
