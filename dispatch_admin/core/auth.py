"""
Admin login and session tokens
Credentials come from the email config; tokens are Fernet-encrypted {username, timestamp}
"""

import hmac
import logging
import time
from dataclasses import dataclass
from typing import Callable

from dispatch_admin.core.config_store import ConfigStore, EnvelopeCipher
from dispatch_admin.core.errors import AuthenticationError, DecryptionFailure, ValidationError
from dispatch_admin.core.models import ScheduleConfig


@dataclass
class Session:
    username: str
    issued_at_ms: int


class SessionTokenService:
    """Issues and verifies session tokens against the stored admin login"""

    def __init__(self, cipher: EnvelopeCipher, email_store: ConfigStore,
                 ttl_hours: int = 24, clock: Callable[[], float] = time.time):
        self.cipher = cipher
        self.email_store = email_store
        self.ttl_seconds = ttl_hours * 3600
        self.clock = clock
        self.logger = logging.getLogger(__name__)

    def login(self, username: str, password: str) -> str:
        """Check credentials and return a new token

        Raises ConfigNotFound when no email config has been saved yet.
        """
        if not username or not password:
            raise ValidationError("Username and password are required")

        stored: ScheduleConfig = self.email_store.load()

        user_ok = hmac.compare_digest(username.encode('utf-8'), stored.username.encode('utf-8'))
        password_ok = hmac.compare_digest(password.encode('utf-8'), stored.password.encode('utf-8'))
        if not (user_ok and password_ok):
            self.logger.warning(f"Failed login attempt for user '{username}'")
            raise AuthenticationError("Invalid username or password")

        self.logger.info(f"User '{username}' authenticated")
        return self.issue(username)

    def issue(self, username: str) -> str:
        return self.cipher.encrypt({
            'username': username,
            'timestamp': int(self.clock() * 1000),
        })

    def verify(self, token: str) -> Session:
        """Decode a token; expired or undecryptable tokens are rejected"""
        if not token:
            raise AuthenticationError("No authorization token provided")

        try:
            payload = self.cipher.decrypt(token, ttl=self.ttl_seconds)
        except DecryptionFailure:
            raise AuthenticationError("Invalid token")

        username = payload.get('username')
        issued = payload.get('timestamp')
        if not isinstance(username, str) or not isinstance(issued, int):
            raise AuthenticationError("Invalid token")

        age_ms = int(self.clock() * 1000) - issued
        if age_ms > self.ttl_seconds * 1000:
            raise AuthenticationError("Token expired")

        return Session(username=username, issued_at_ms=issued)
