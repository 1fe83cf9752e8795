"""Bearer parsing and scope checks."""

from datetime import timedelta

import pytest

from timing_remote.auth.bearer import parse_bearer
from timing_remote.auth.resolver import ALLOWED_SCOPES, Access, Authorizer
from timing_remote.core.exceptions import UnauthorizedError
from timing_remote.db.types import KeyScope

pytestmark = pytest.mark.security


class TestParseBearer:
    @pytest.mark.parametrize("header", ["Bearer abc123", "bearer abc123", "BEARER abc123"])
    def test_accepts(self, header):
        assert parse_bearer(header) == "abc123"

    @pytest.mark.parametrize(
        "header",
        [
            None,
            "",
            "abc123",
            "Bearer",
            "Bearer ",
            "Bearer  abc123",
            "Bearer abc 123",
            "Basic abc123",
            "Token abc123",
        ],
    )
    def test_rejects(self, header):
        with pytest.raises(UnauthorizedError) as exc_info:
            parse_bearer(header)
        assert exc_info.value.message == "Invalid Authorization Header"
        assert exc_info.value.status_code == 401


class TestScopeMatrix:
    @pytest.mark.parametrize(
        "scope,access,allowed",
        [
            (KeyScope.READ, Access.QUERY, True),
            (KeyScope.READ, Access.INGEST, False),
            (KeyScope.READ, Access.DELETE, False),
            (KeyScope.WRITE, Access.QUERY, True),
            (KeyScope.WRITE, Access.INGEST, True),
            (KeyScope.WRITE, Access.DELETE, False),
            (KeyScope.DELETE, Access.QUERY, True),
            (KeyScope.DELETE, Access.INGEST, True),
            (KeyScope.DELETE, Access.DELETE, True),
        ],
    )
    def test_table(self, scope, access, allowed):
        assert (scope in ALLOWED_SCOPES[access]) is allowed


class TestAuthorize:
    @pytest.fixture
    def authorizer(self, store, clock):
        return Authorizer(store, clock=clock)

    def test_valid_key(self, authorizer, account, make_key):
        key = make_key(account, "good-key", scope=KeyScope.WRITE)
        resolved = authorizer.authorize("Bearer good-key", Access.INGEST)
        assert resolved.key == key
        assert resolved.account.id == account.id

    @pytest.mark.parametrize(
        "scope,access",
        [
            (KeyScope.READ, Access.INGEST),
            (KeyScope.READ, Access.DELETE),
            (KeyScope.WRITE, Access.DELETE),
        ],
    )
    def test_insufficient_scope(self, authorizer, account, make_key, scope, access):
        make_key(account, "scoped", scope=scope)
        with pytest.raises(UnauthorizedError) as exc_info:
            authorizer.authorize("Bearer scoped", access)
        assert exc_info.value.message == "Unauthorized"

    def test_unknown_key(self, authorizer):
        with pytest.raises(UnauthorizedError) as exc_info:
            authorizer.authorize("Bearer nope", Access.QUERY)
        assert exc_info.value.message == "Key/Account Not Found"

    def test_deleted_key(self, authorizer, store, account, make_key):
        make_key(account, "revoked")
        store.delete_key("revoked")
        with pytest.raises(UnauthorizedError) as exc_info:
            authorizer.authorize("Bearer revoked", Access.QUERY)
        assert exc_info.value.message == "Key/Account Not Found"

    def test_deleted_account(self, authorizer, store, account, make_key):
        make_key(account, "orphan")
        store.delete_account(account.id)
        with pytest.raises(UnauthorizedError) as exc_info:
            authorizer.authorize("Bearer orphan", Access.QUERY)
        assert exc_info.value.message == "Key/Account Not Found"

    def test_expired_key(self, authorizer, store, account, make_key, clock):
        make_key(account, "expired", valid_until=clock.now - timedelta(seconds=1))
        with pytest.raises(UnauthorizedError) as exc_info:
            authorizer.authorize("Bearer expired", Access.QUERY)
        assert exc_info.value.message == "Expired Key"
        # still visible to the store
        assert store.get_key("expired") is not None

    def test_key_expires_with_clock(self, authorizer, account, make_key, clock):
        make_key(account, "short-lived", valid_until=clock.now + timedelta(minutes=1))
        authorizer.authorize("Bearer short-lived", Access.QUERY)
        clock.advance(minutes=2)
        with pytest.raises(UnauthorizedError):
            authorizer.authorize("Bearer short-lived", Access.QUERY)

    def test_malformed_header_checked_first(self, authorizer, account, make_key):
        make_key(account, "good-key")
        with pytest.raises(UnauthorizedError) as exc_info:
            authorizer.authorize("good-key", Access.QUERY)
        assert exc_info.value.message == "Invalid Authorization Header"
