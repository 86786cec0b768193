"""
Tests for admin login and session tokens
"""

import pytest

from dispatch_admin.core.auth import SessionTokenService
from dispatch_admin.core.config_store import EnvelopeCipher
from dispatch_admin.core.errors import AuthenticationError, ConfigNotFound, ValidationError


class MutableClock:

    def __init__(self, now=1_710_497_700.0):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return MutableClock()


@pytest.fixture
def tokens(cipher, email_store, clock):
    return SessionTokenService(cipher, email_store, ttl_hours=24, clock=clock)


@pytest.mark.usefixtures("saved_configs")
class TestLogin:

    def test_valid_credentials_issue_a_token(self, tokens, clock):
        token = tokens.login("admin", "correct-horse")

        session = tokens.verify(token)
        assert session.username == "admin"
        assert session.issued_at_ms == int(clock.now * 1000)

    @pytest.mark.parametrize("username, password", [
        ("admin", "wrong"),
        ("root", "correct-horse"),
    ])
    def test_wrong_credentials(self, tokens, username, password):
        with pytest.raises(AuthenticationError, match="Invalid username or password"):
            tokens.login(username, password)

    def test_empty_credentials(self, tokens):
        with pytest.raises(ValidationError):
            tokens.login("admin", "")


def test_login_without_email_config(tokens):
    with pytest.raises(ConfigNotFound):
        tokens.login("admin", "correct-horse")


class TestVerify:

    def test_missing_token(self, tokens):
        with pytest.raises(AuthenticationError, match="No authorization token provided"):
            tokens.verify("")

    def test_garbage_token(self, tokens):
        with pytest.raises(AuthenticationError, match="Invalid token"):
            tokens.verify("definitely-not-fernet")

    def test_token_from_another_deployment(self, tokens, email_store):
        foreign = SessionTokenService(EnvelopeCipher("other-secret", iterations=1000), email_store)

        with pytest.raises(AuthenticationError, match="Invalid token"):
            tokens.verify(foreign.issue("admin"))

    def test_token_without_username(self, tokens, cipher, clock):
        token = cipher.encrypt({'timestamp': int(clock.now * 1000)})

        with pytest.raises(AuthenticationError, match="Invalid token"):
            tokens.verify(token)

    def test_token_expires_after_ttl(self, tokens, clock):
        token = tokens.issue("admin")

        clock.now += 23 * 3600
        assert tokens.verify(token).username == "admin"

        clock.now += 2 * 3600
        with pytest.raises(AuthenticationError, match="Token expired"):
            tokens.verify(token)
