import pytest

from services.errors import InvalidCredentials, InvalidSession
from services.session import SessionManager, StaticCredentialProvider


class Clock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def sessions(clock):
    return SessionManager(StaticCredentialProvider("admin", "admin123"), ttl_seconds=60, clock=clock)


def test_login_issues_token(sessions):
    token = sessions.login("admin", "admin123")
    assert token.token_type == "bearer"
    assert token.expires_at == 1060 * 1000
    assert sessions.validate(token.access_token).username == "admin"


@pytest.mark.parametrize("username, password", [("admin", "wrong"), ("root", "admin123"), ("", "")])
def test_bad_credentials(sessions, username, password):
    with pytest.raises(InvalidCredentials):
        sessions.login(username, password)


def test_sessions_expire(sessions, clock):
    token = sessions.login("admin", "admin123").access_token
    clock.now += 61
    with pytest.raises(InvalidSession):
        sessions.validate(token)


def test_logout_revokes(sessions):
    token = sessions.login("admin", "admin123").access_token
    sessions.logout(token)
    with pytest.raises(InvalidSession):
        sessions.validate(token)


def test_tokens_are_distinct(sessions):
    assert sessions.login("admin", "admin123").access_token != sessions.login("admin", "admin123").access_token


def test_login_purges_expired_sessions(sessions, clock):
    stale = [sessions.login("admin", "admin123").access_token for _ in range(3)]
    clock.now += 61
    fresh = sessions.login("admin", "admin123").access_token
    assert list(sessions._sessions) == [fresh]
    for token in stale:
        with pytest.raises(InvalidSession):
            sessions.validate(token)
