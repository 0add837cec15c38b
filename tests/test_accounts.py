"""
Tests for accounts and first-launch data.
"""

import pytest

from expense_pwa.accounts import (
    create_account,
    delete_account,
    get_account,
    get_default_account,
    initialize_default_account,
    list_accounts,
    update_account,
    validate_account,
)
from expense_pwa.errors import IntegrityError, NotFoundError, ValidationError
from expense_pwa.initialization import (
    get_initialization_status,
    initialize_default_data,
    is_first_time_user,
)
from expense_pwa.transactions import add_transaction


class TestDefaults:
    """Tests for the seeded default account."""

    def test_cash_account_created_on_first_launch(self, store):
        """Test the app factory seeds a default Cash account."""
        default = get_default_account(store)
        assert default["name"] == "Cash"
        assert default["type"] == "cash"
        assert default["balance"] == 0

    def test_initialization_is_idempotent(self, store):
        """Test seeding again adds nothing."""
        assert initialize_default_account(store) is None
        initialize_default_data(store)
        assert len(list_accounts(store)) == 1
        status = get_initialization_status(store)
        assert status["isInitialized"] is True
        assert status["defaultAccountId"] == default_id(store)

    def test_first_time_user(self, store):
        """Test a fresh store is detected as first launch."""
        store.accounts.clear()
        assert is_first_time_user(store)
        initialize_default_data(store)
        assert not is_first_time_user(store)


def default_id(store):
    return get_default_account(store)["id"]


class TestAccountService:
    """Tests for account CRUD."""

    def test_create_records_opening_balance(self, store):
        """Test the opening balance is kept for reconciliation."""
        account = create_account(store, {"name": "Checking", "type": "bank", "balance": "150.25"})
        assert account["balance"] == 150.25
        assert account["openingBalance"] == 150.25
        assert account["isDefault"] is False

    def test_single_default(self, store):
        """Test making an account default clears the previous one."""
        old_default = default_id(store)
        savings = create_account(store, {"name": "Savings", "type": "savings", "isDefault": "on"})
        assert default_id(store) == savings["id"]
        assert get_account(store, old_default)["isDefault"] is False

        update_account(store, old_default, {"isDefault": True})
        assert default_id(store) == old_default

    @pytest.mark.parametrize(
        "data,field",
        [
            ({"name": "", "type": "cash"}, "name"),
            ({"name": "x" * 51, "type": "cash"}, "name"),
            ({"name": "Crypto", "type": "crypto"}, "type"),
            ({"name": "Bad", "type": "cash", "balance": "lots"}, "balance"),
            ({"name": "Bad", "type": "cash", "balance": "nan"}, "balance"),
            ({"name": "Bad", "type": "cash", "balance": "inf"}, "balance"),
            ({"name": "Bad", "type": "cash", "balance": float("-inf")}, "balance"),
        ],
    )
    def test_validation(self, data, field):
        """Test invalid account input."""
        _, errors = validate_account(data)
        assert field in errors

    def test_balance_not_editable(self, store):
        """Test balances only change through transactions."""
        with pytest.raises(ValidationError) as exc:
            update_account(store, default_id(store), {"balance": 500})
        assert "balance" in exc.value.errors

    def test_rename(self, store):
        """Test a partial update keeps untouched fields."""
        account = update_account(store, default_id(store), {"name": "Wallet"})
        assert account["name"] == "Wallet"
        assert account["type"] == "cash"

    def test_delete_account_in_use(self, store):
        """Test an account that owns transactions cannot be deleted."""
        add_transaction(store, {"amount": 5, "type": "expense", "category": "a", "accountId": default_id(store)})
        with pytest.raises(IntegrityError):
            delete_account(store, default_id(store))

    def test_delete_unused_account(self, store):
        """Test deleting an account with no transactions."""
        account = create_account(store, {"name": "Old", "type": "bank"})
        delete_account(store, account["id"])
        with pytest.raises(NotFoundError):
            get_account(store, account["id"])
