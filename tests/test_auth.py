"""
Unit tests for session tokens (sentry_mcp/auth.py).

These tests exercise validate_token() directly, verifying each step of the
authentication pipeline:

1. Header presence check
2. Bearer scheme extraction
3. JWT signature verification
4. Expiration check
5. Claims validation (sub, access_token, organization_slug)

and that issue_session_token() produces tokens the pipeline accepts.
"""

import pytest

from sentry_mcp.auth import AuthError, InvalidStateError, issue_session_token, validate_token


class TestValidateToken:
    """Tests for the validate_token() function."""

    # ----- Happy path -----

    def test_valid_token_decodes_correctly(self, make_auth_header):
        header = make_auth_header(sub="1234", access_token="sntrys_abc", organization_slug="acme")

        result = validate_token(header)

        assert result.subject == "1234"
        assert result.name == "Test User"
        assert result.context.access_token == "sntrys_abc"
        assert result.context.organization_slug == "acme"

    def test_null_organization_is_allowed(self, make_auth_header):
        """A session may have no default organization; tools then need one explicitly."""
        result = validate_token(make_auth_header(organization_slug=None))

        assert result.context.organization_slug is None

    # ----- Missing / malformed Authorization header -----

    def test_missing_header_raises_auth_error(self):
        with pytest.raises(AuthError, match="Missing Authorization header"):
            validate_token(None)

    def test_empty_header_raises_auth_error(self):
        with pytest.raises(AuthError, match="Missing Authorization header"):
            validate_token("")

    def test_non_bearer_scheme_raises_auth_error(self, make_token):
        with pytest.raises(AuthError, match="Invalid Authorization header format"):
            validate_token(f"Basic {make_token()}")

    def test_missing_token_after_bearer_raises_auth_error(self):
        with pytest.raises(AuthError, match="Invalid Authorization header format"):
            validate_token("Bearer")

    def test_auth_errors_are_401(self):
        with pytest.raises(AuthError) as exc_info:
            validate_token(None)

        assert exc_info.value.status_code == 401

    # ----- JWT signature and structure -----

    def test_malformed_token_raises_auth_error(self):
        with pytest.raises(AuthError, match="Invalid token"):
            validate_token("Bearer not-a-jwt-token")

    def test_wrong_signing_key_raises_auth_error(self, make_token):
        """A session token signed with another secret can't be forged into a session."""
        token = make_token(sub="attacker", secret="wrong-secret")

        with pytest.raises(AuthError, match="Invalid token"):
            validate_token(f"Bearer {token}")

    # ----- Expiration -----

    def test_expired_token_raises_auth_error(self, make_token):
        token = make_token(exp_hours=-1)

        with pytest.raises(AuthError, match="Token has expired"):
            validate_token(f"Bearer {token}")

    def test_token_without_exp_claim_raises_auth_error(self, make_token):
        token = make_token(include_exp=False)

        with pytest.raises(AuthError, match="Invalid token"):
            validate_token(f"Bearer {token}")

    # ----- Claims -----

    def test_token_without_sub_claim_raises_auth_error(self, make_token):
        token = make_token(include_sub=False)

        with pytest.raises(AuthError, match="Invalid token"):
            validate_token(f"Bearer {token}")

    def test_token_without_access_token_raises_auth_error(self, make_token):
        token = make_token(access_token=None)

        with pytest.raises(AuthError, match="missing access_token claim"):
            validate_token(f"Bearer {token}")

    def test_empty_access_token_raises_auth_error(self, make_token):
        token = make_token(access_token="")

        with pytest.raises(AuthError, match="missing access_token claim"):
            validate_token(f"Bearer {token}")

    def test_non_string_organization_raises_auth_error(self, make_token):
        token = make_token(extra_claims={"organization_slug": ["acme"]})

        with pytest.raises(AuthError, match="Invalid organization_slug claim: must be a string"):
            validate_token(f"Bearer {token}")

    # ----- Case sensitivity -----

    def test_bearer_scheme_case_insensitive(self, make_token):
        result = validate_token(f"bearer {make_token(sub='1234')}")

        assert result.subject == "1234"


class TestIssueSessionToken:
    def test_round_trip(self):
        token = issue_session_token(
            user_id="1234",
            name="Jane Doe",
            access_token="sntrys_abc",
            organization_slug="acme",
        )

        result = validate_token(f"Bearer {token}")

        assert result.subject == "1234"
        assert result.name == "Jane Doe"
        assert result.context.access_token == "sntrys_abc"
        assert result.context.organization_slug == "acme"

    def test_negative_lifetime_is_expired(self):
        token = issue_session_token("1234", "Jane", "sntrys_abc", None, exp_hours=-1)

        with pytest.raises(AuthError, match="Token has expired"):
            validate_token(f"Bearer {token}")

    def test_custom_secret_is_not_accepted_by_server(self):
        token = issue_session_token("1234", "Jane", "sntrys_abc", "acme", secret="other-secret")

        with pytest.raises(AuthError, match="Invalid token"):
            validate_token(f"Bearer {token}")


def test_invalid_state_error_is_400():
    error = InvalidStateError()

    assert error.status_code == 400
    assert error.message == "Invalid state"
