import pytest
from gridwatch.collectors.session import SessionHandle


@pytest.fixture
def authenticator(mocker):
    auth = mocker.Mock()
    auth.login = mocker.AsyncMock(side_effect=["token-1", "token-2"])
    return auth


@pytest.mark.asyncio
async def test_acquire_logs_in_lazily_once(authenticator):
    session = SessionHandle(authenticator)
    assert session.is_valid is False

    assert await session.acquire() == "token-1"
    assert await session.acquire() == "token-1"
    assert authenticator.login.await_count == 1


@pytest.mark.asyncio
async def test_stale_invalidate_keeps_renewed_token(authenticator):
    session = SessionHandle(authenticator)
    await session.acquire()
    session.invalidate("token-1")
    assert await session.acquire() == "token-2"

    # A late failure from a request that used token-1 must not drop token-2
    session.invalidate("token-1")
    assert session.token == "token-2"

    session.invalidate()
    assert session.is_valid is False


def test_cookie_header(authenticator):
    assert SessionHandle(authenticator).cookie_header("abc") == {"Cookie": "JSESSIONID=abc"}
