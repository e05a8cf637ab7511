"""Tests for the async database session helpers."""

import contextlib
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from skylift.db.session import get_session, session_scope


def _mock_factory(session: AsyncMock) -> MagicMock:
    factory = MagicMock()
    ctx = AsyncMock()
    ctx.__aenter__.return_value = session
    ctx.__aexit__.return_value = False
    factory.return_value = ctx
    return factory


class TestSessionScope:
    """Transactional session scope."""

    async def test_commits_on_success(self) -> None:
        """Session is committed after the block completes."""
        mock_session = AsyncMock()
        with patch(
            "skylift.db.session._get_session_factory",
            return_value=_mock_factory(mock_session),
        ):
            async with session_scope() as session:
                assert session is mock_session

        mock_session.commit.assert_awaited_once()
        mock_session.rollback.assert_not_awaited()

    async def test_rolls_back_on_error(self) -> None:
        """Errors inside the block roll back and propagate."""
        mock_session = AsyncMock()
        with (
            patch(
                "skylift.db.session._get_session_factory",
                return_value=_mock_factory(mock_session),
            ),
            pytest.raises(RuntimeError),
        ):
            async with session_scope():
                raise RuntimeError("boom")

        mock_session.rollback.assert_awaited_once()
        mock_session.commit.assert_not_awaited()


class TestGetSession:
    """Session dependency yields and commits."""

    async def test_commits_on_success(self) -> None:
        """Session is committed after successful use."""
        mock_session = AsyncMock()
        with patch(
            "skylift.db.session._get_session_factory",
            return_value=_mock_factory(mock_session),
        ):
            gen = get_session()
            session = await gen.__anext__()
            assert session is mock_session
            with contextlib.suppress(StopAsyncIteration):
                await gen.__anext__()

        mock_session.commit.assert_awaited_once()
