"""Account store: lifecycle, credentials and lock bookkeeping."""

import pytest

from timing_remote.auth.password import hash_password, verify_password
from timing_remote.core.exceptions import (
    AccountLockedError,
    AccountNotLockedError,
    DuplicateEmailError,
    NotFoundError,
    RowCountError,
    ValidationError,
)
from timing_remote.db.types import Account, AccountType, KeyScope


class TestAddAndGet:
    def test_add_assigns_id(self, store, account):
        assert account.id is not None
        fetched = store.get_account_by_email("director@example.com")
        assert fetched == account

    def test_get_by_id(self, store, account):
        assert store.get_account_by_id(account.id).email == account.email

    def test_unknown_email_is_none(self, store):
        assert store.get_account_by_email("nobody@example.com") is None

    def test_plain_password_refused(self, store):
        acc = Account(name="Plain", email="plain@example.com", password="hunter22")
        with pytest.raises(ValidationError):
            store.add_account(acc)
        assert store.get_account_by_email("plain@example.com") is None

    def test_duplicate_email(self, store, account):
        twin = Account(name="Twin", email=account.email, password=hash_password("x"))
        with pytest.raises(DuplicateEmailError):
            store.add_account(twin)

    def test_email_match_is_case_sensitive(self, store, account):
        assert store.get_account_by_email("Director@example.com") is None

    def test_list_and_count(self, store, account):
        other = Account(name="Other", email="other@example.com", password=hash_password("x"))
        store.add_account(other)
        assert [a.email for a in store.list_accounts()] == [account.email, other.email]
        assert store.count_accounts() == 2

    def test_get_by_key(self, store, account, make_key):
        make_key(account, "key-abc")
        assert store.get_account_by_key("key-abc").id == account.id
        assert store.get_account_by_key("missing") is None


class TestDeleteAndResurrect:
    def test_delete_cascades_to_keys(self, store, account, make_key):
        make_key(account, "k-write", scope=KeyScope.WRITE, reader_name="r1")
        make_key(account, "k-read", scope=KeyScope.READ, reader_name="r2")

        store.delete_account(account.id)

        assert store.get_account_by_email(account.email) is None
        assert store.get_deleted_account(account.email).id == account.id
        assert store.get_key("k-write") is None
        assert store.get_key("k-read") is None
        assert store.count_accounts() == 0

    def test_delete_twice_is_row_count_error(self, store, account):
        store.delete_account(account.id)
        with pytest.raises(RowCountError):
            store.delete_account(account.id)

    def test_resurrect(self, store, account, make_key):
        make_key(account, "k-write")
        store.delete_account(account.id)

        store.resurrect_account(account.email)

        assert store.get_account_by_email(account.email).id == account.id
        assert store.get_deleted_account(account.email) is None
        # keys stay deleted
        assert store.get_key("k-write") is None

    def test_resurrect_live_account_fails(self, store, account):
        with pytest.raises(RowCountError):
            store.resurrect_account(account.email)


class TestUpdates:
    def test_update_name_and_type(self, store, account):
        account.name = "Chief Timer"
        account.type = AccountType.ADMIN
        store.update_account(account)

        fetched = store.get_account_by_email(account.email)
        assert fetched.name == "Chief Timer"
        assert fetched.type == AccountType.ADMIN

    def test_update_unknown_account(self, store):
        ghost = Account(name="Ghost", email="ghost@example.com", password=hash_password("x"))
        with pytest.raises(RowCountError):
            store.update_account(ghost)

    def test_change_password_keeps_tokens_by_default(self, store, account):
        account.token, account.refresh_token = "tok", "ref"
        store.update_tokens(account)

        store.change_password(account.email, hash_password("N3w$ecret"))

        fetched = store.get_account_by_email(account.email)
        assert verify_password("N3w$ecret", fetched.password)
        assert (fetched.token, fetched.refresh_token) == ("tok", "ref")

    def test_change_password_with_logout_clears_tokens(self, store, account):
        account.token, account.refresh_token = "tok", "ref"
        store.update_tokens(account)

        store.change_password(account.email, hash_password("N3w$ecret"), force_logout=True)

        fetched = store.get_account_by_email(account.email)
        assert (fetched.token, fetched.refresh_token) == ("", "")

    def test_change_password_requires_digest(self, store, account):
        with pytest.raises(ValidationError):
            store.change_password(account.email, "plaintext")

    def test_change_email_clears_tokens(self, store, account):
        account.token, account.refresh_token = "tok", "ref"
        store.update_tokens(account)

        store.change_email(account.email, "new@example.com")

        assert store.get_account_by_email(account.email) is None
        fetched = store.get_account_by_email("new@example.com")
        assert fetched.id == account.id
        assert (fetched.token, fetched.refresh_token) == ("", "")

    def test_change_email_to_taken_address(self, store, account):
        other = Account(name="Other", email="other@example.com", password=hash_password("x"))
        store.add_account(other)
        with pytest.raises(DuplicateEmailError):
            store.change_email(account.email, other.email)

    def test_update_tokens(self, store, account):
        account.token, account.refresh_token = "access", "refresh"
        store.update_tokens(account)
        fetched = store.get_account_by_id(account.id)
        assert (fetched.token, fetched.refresh_token) == ("access", "refresh")


class TestLockout:
    def test_four_failures_lock_the_account(self, store, account):
        account.token, account.refresh_token = "tok", "ref"
        store.update_tokens(account)

        current = account
        for attempt in range(1, 4):
            current = store.record_invalid_password(current)
            assert current.wrong_pass == attempt
            assert not current.locked

        current = store.record_invalid_password(current)
        assert current.locked
        assert (current.token, current.refresh_token) == ("", "")

        with pytest.raises(AccountLockedError):
            store.record_valid_password(current)

    def test_unlock_restores_login(self, store, account):
        for _ in range(4):
            store.record_invalid_password(account)

        store.unlock_account(account)

        fetched = store.get_account_by_id(account.id)
        assert not fetched.locked
        assert fetched.wrong_pass == 0
        store.record_valid_password(fetched)

    def test_valid_password_resets_counter(self, store, account):
        store.record_invalid_password(account)
        store.record_invalid_password(account)

        store.record_valid_password(account)

        assert store.get_account_by_id(account.id).wrong_pass == 0

    def test_unlock_unlocked_account(self, store, account):
        with pytest.raises(AccountNotLockedError):
            store.unlock_account(account)

    def test_lock_calls_on_missing_account(self, store):
        ghost = Account(id=9999, name="Ghost", email="ghost@example.com", password="$argon2id$x")
        with pytest.raises(NotFoundError):
            store.record_invalid_password(ghost)
        with pytest.raises(NotFoundError):
            store.record_valid_password(ghost)
        with pytest.raises(NotFoundError):
            store.unlock_account(ghost)

    def test_limit_follows_settings(self, store, account):
        store.max_login_attempts = 2
        store.record_invalid_password(account)
        assert store.record_invalid_password(account).locked
