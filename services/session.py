import hmac
import logging
import secrets
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Dict

from models import Token
from services.errors import InvalidCredentials, InvalidSession

logger = logging.getLogger(__name__)


class IdentityProvider(ABC):
    @abstractmethod
    def authenticate(self, username: str, password: str) -> bool:
        """Return True when the username and password are valid."""


class StaticCredentialProvider(IdentityProvider):
    """Single configured admin account. Stands in for a real identity provider."""

    def __init__(self, username: str, password: str):
        self._username = username.encode()
        self._password = password.encode()

    def authenticate(self, username: str, password: str) -> bool:
        user_ok = hmac.compare_digest(username.encode(), self._username)
        password_ok = hmac.compare_digest(password.encode(), self._password)
        return user_ok and password_ok


@dataclass(frozen=True)
class Session:
    token: str
    username: str
    expires_at: float


class SessionManager:
    def __init__(self, provider: IdentityProvider, ttl_seconds: int, clock: Callable[[], float] = time.time):
        self.provider = provider
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._sessions: Dict[str, Session] = {}
        self._lock = threading.Lock()

    def login(self, username: str, password: str) -> Token:
        if not self.provider.authenticate(username, password):
            logger.warning("Rejected login for %r", username)
            raise InvalidCredentials("Invalid username or password. Please try again.")
        session = Session(
            token=secrets.token_urlsafe(32),
            username=username,
            expires_at=self._clock() + self.ttl_seconds,
        )
        with self._lock:
            self._purge_expired()
            self._sessions[session.token] = session
        logger.info("Session opened for %s", username)
        return Token(access_token=session.token, expires_at=int(session.expires_at * 1000))

    def validate(self, token: str) -> Session:
        with self._lock:
            session = self._sessions.get(token)
            if session is not None and session.expires_at <= self._clock():
                del self._sessions[token]
                session = None
        if session is None:
            raise InvalidSession("Session expired or invalid. Please sign in again.")
        return session

    def logout(self, token: str) -> None:
        with self._lock:
            self._sessions.pop(token, None)

    def _purge_expired(self) -> None:
        now = self._clock()
        for token in [t for t, s in self._sessions.items() if s.expires_at <= now]:
            del self._sessions[token]
