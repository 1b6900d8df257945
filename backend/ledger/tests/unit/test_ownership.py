# ledger/tests/unit/test_ownership.py
import pytest

from ledger.exceptions import NotFound, OwnershipViolation
from ledger.managers import UNSET
from ledger.models import Account, Business, Category, Transaction
from ledger.services import ownership
from ledger.tests.factories import (
    AccountFactory,
    BusinessFactory,
    ClientFactory,
    TransactionFactory,
)


@pytest.mark.django_db
class TestAssertOwned:
    def test_returns_owned_instance(self, test_user):
        account = AccountFactory(user=test_user)
        assert ownership.assert_account_owned_by_user(account.id, test_user) == account

    def test_foreign_instance(self, test_user, other_user):
        account = AccountFactory(user=other_user)
        with pytest.raises(OwnershipViolation) as exc_info:
            ownership.assert_account_owned_by_user(account.id, test_user)
        assert exc_info.value.code == "account_ownership_violation"

    @pytest.mark.parametrize("bad_id", [987654, "abc", None])
    def test_missing_or_malformed_id(self, test_user, bad_id):
        with pytest.raises(NotFound) as exc_info:
            ownership.assert_account_owned_by_user(bad_id, test_user)
        assert exc_info.value.code == "account_not_found"

    def test_client_owned_through_business(self, test_user, other_user):
        mine = ClientFactory(business=BusinessFactory(user=test_user))
        theirs = ClientFactory(business=BusinessFactory(user=other_user))

        assert ownership.assert_client_owned_by_user(mine.id, test_user) == mine
        with pytest.raises(OwnershipViolation):
            ownership.assert_client_owned_by_user(theirs.id, test_user)


@pytest.mark.django_db
class TestScopeResolution:
    def test_none_is_personal(self, test_user):
        assert ownership.resolve_scope(test_user, None) is None

    def test_owned_business(self, test_user):
        business = BusinessFactory(user=test_user)
        assert ownership.resolve_scope(test_user, business.id) == business

    def test_unset_filter_means_every_scope(self, test_user):
        assert ownership.resolve_scope_filter(test_user, UNSET) is UNSET

    def test_foreign_business_filter(self, test_user, other_user):
        business = BusinessFactory(user=other_user)
        with pytest.raises(OwnershipViolation):
            ownership.resolve_scope_filter(test_user, business.id)


@pytest.mark.django_db
class TestScopedManagers:
    def test_for_user_scopes(self, test_user, other_user):
        business = BusinessFactory(user=test_user)
        personal = AccountFactory(user=test_user)
        professional = AccountFactory(user=test_user, business=business)
        AccountFactory(user=other_user)

        assert set(Account.objects.for_user(test_user)) == {personal, professional}
        assert list(Account.objects.for_user(test_user, None)) == [personal]
        assert list(Account.objects.for_user(test_user, business)) == [professional]

    def test_transactions_follow_user(self, test_user, other_user):
        mine = TransactionFactory(account=AccountFactory(user=test_user))
        TransactionFactory(account=AccountFactory(user=other_user))

        assert list(Transaction.objects.for_user(test_user)) == [mine]

    def test_business_settings_created_by_signal(self, test_user):
        business = Business.objects.create(user=test_user, name="Made directly")
        assert business.settings.invoice_next_number == 1

    def test_categories_by_scope(self, test_user):
        business = BusinessFactory(user=test_user)
        Category.objects.create(user=test_user, name="Personal")
        Category.objects.create(user=test_user, business=business, name="Business")

        assert [c.name for c in Category.objects.for_user(test_user, None)] == ["Personal"]
