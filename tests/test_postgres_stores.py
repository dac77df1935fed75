"""Tests for PostgresStores critical behaviors.

Focused on URL handling and row conversion; database round-trips live in
tests/integration/test_swarm_postgres.py.
"""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, Mock, patch

import pytest

from core.storage.postgres.config import PostgresConfig, normalize_database_url
from core.storage.postgres.stores import PostgresStores, _entry_from_row, _record_from_row
from core.swarm.exceptions import PredictionAlreadySettledError
from core.swarm.leaderboard import apply_outcome
from core.swarm.types import Outcome, PredictionStatus, Verdict
from db.crud import swarm as swarm_crud


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("postgresql://u:p@db:5432/swarm", "postgresql+asyncpg://u:p@db:5432/swarm"),
        ("postgres://u:p@db:5432/swarm", "postgresql+asyncpg://u:p@db:5432/swarm"),
        ("postgresql+psycopg2://u:p@db/swarm", "postgresql+asyncpg://u:p@db/swarm"),
        ("postgresql+asyncpg://db/swarm", "postgresql+asyncpg://db/swarm"),
        ("u:p@localhost:5432/swarm", "postgresql+asyncpg://u:p@localhost:5432/swarm"),
    ],
)
def test_normalize_database_url(raw: str, expected: str) -> None:
    """Verify every supported DATABASE_URL form maps to the asyncpg driver."""
    assert normalize_database_url(raw) == expected
    assert PostgresConfig(database_url=raw).async_url == expected


def test_normalize_database_url_rejects_bare_host() -> None:
    """Verify a bare host without a database name is rejected."""
    with pytest.raises(ValueError):
        normalize_database_url("localhost:5432")


def test_stores_do_not_connect_on_construction() -> None:
    """Verify the engine is created lazily."""
    stores = PostgresStores(config=PostgresConfig(database_url="postgresql://fake"))
    assert stores._engine is None


def test_entry_from_row_defaults_nulls() -> None:
    """Verify NULL counters read back as a neutral entry."""
    row = Mock(
        agent_id="claude",
        wins=None,
        losses=None,
        pushes=None,
        total_predictions=None,
        win_rate=None,
        current_streak=None,
        best_streak=None,
        worst_streak=None,
        vote_weight=None,
    )

    entry = _entry_from_row(row)

    assert entry.agent_id == "claude"
    assert entry.wins == 0
    assert entry.win_rate == 0.5
    assert entry.vote_weight == 1.0


def _prediction_row(status: str = "pending") -> Mock:
    return Mock(
        id="abc",
        event_id="evt-1",
        event_name="Los Angeles Lakers @ Boston Celtics",
        consensus={
            "verdict": "SLIGHT EDGE",
            "score": "0.67",
            "betVotes": 2,
            "passVotes": 1,
            "confidence": "MEDIUM",
            "reasoning": "2/3 models favor betting.",
        },
        analyses=[
            {"agentId": "claude", "verdict": "STRONG BET", "confidence": "HIGH"},
            {"agentId": "grok", "verdict": "UNKNOWN", "confidence": "LOW", "error": "Timed out after 30s"},
        ],
        sport="NBA",
        league=None,
        home_team="Boston Celtics",
        away_team="Los Angeles Lakers",
        commence_time=datetime(2025, 1, 15, 0, 30, tzinfo=timezone.utc),
        bet_selection="Boston Celtics -6.5",
        bet_odds=1.91,
        status=status,
        created_at=datetime(2025, 1, 14, 18, 0, tzinfo=timezone.utc),
        settled_at=None,
    )


def _leaderboard_row(agent_id: str) -> Mock:
    return Mock(
        agent_id=agent_id,
        wins=0,
        losses=0,
        pushes=0,
        total_predictions=0,
        win_rate=0.5,
        current_streak=0,
        best_streak=0,
        worst_streak=0,
        vote_weight=1.0,
    )


def test_record_from_row_decodes_json_columns() -> None:
    """Verify JSONB consensus/analyses columns decode into domain types."""
    record = _record_from_row(_prediction_row())

    assert record.status == PredictionStatus.PENDING
    assert record.consensus.verdict == Verdict.SLIGHT_EDGE
    assert record.consensus.score == "0.67"
    assert [a.agent_id for a in record.analyses] == ["claude", "grok"]
    assert record.analyses[1].error == "Timed out after 30s"
    assert not record.analyses[1].is_valid


def _stores_with_session(db: AsyncMock) -> PostgresStores:
    session = MagicMock()
    session.__aenter__ = AsyncMock(return_value=db)
    session.__aexit__ = AsyncMock(return_value=False)
    stores = PostgresStores(config=PostgresConfig(database_url="postgresql://fake"))
    stores._session_factory = Mock(return_value=session)
    return stores


@pytest.mark.asyncio
async def test_settle_prediction_commits_status_and_rows_together() -> None:
    """Verify agent rows are written in id order inside the settle transaction."""
    db = AsyncMock()
    stores = _stores_with_session(db)

    with patch.object(swarm_crud, "settle_pending_prediction", AsyncMock(return_value=True)), patch.object(
        swarm_crud, "get_prediction", AsyncMock(return_value=_prediction_row(status="won"))
    ), patch.object(
        swarm_crud, "lock_leaderboard_row", AsyncMock(side_effect=lambda db, agent_id: _leaderboard_row(agent_id))
    ) as mock_lock, patch.object(
        swarm_crud, "write_leaderboard_row", AsyncMock()
    ) as mock_write:
        record = await stores.settle_prediction(
            prediction_id="abc",
            outcome=Outcome.WON,
            settled_at=datetime(2025, 1, 15, 3, 0, tzinfo=timezone.utc),
            updates=lambda r: {
                "grok": lambda e: apply_outcome(e, Outcome.LOST),
                "claude": lambda e: apply_outcome(e, Outcome.WON),
            },
        )

    assert record.status == PredictionStatus.WON
    assert [c.args[1] for c in mock_lock.await_args_list] == ["claude", "grok"]
    assert mock_write.await_args_list[0].args[2]["wins"] == 1
    assert mock_write.await_args_list[1].args[2]["losses"] == 1
    db.commit.assert_awaited_once()
    db.rollback.assert_not_awaited()


@pytest.mark.asyncio
async def test_settle_prediction_rolls_back_on_row_failure() -> None:
    """Verify a failing agent row update undoes the status change as well."""
    db = AsyncMock()
    stores = _stores_with_session(db)

    with patch.object(swarm_crud, "settle_pending_prediction", AsyncMock(return_value=True)), patch.object(
        swarm_crud, "get_prediction", AsyncMock(return_value=_prediction_row(status="won"))
    ), patch.object(
        swarm_crud,
        "lock_leaderboard_row",
        AsyncMock(side_effect=[_leaderboard_row("chatgpt"), ConnectionError("connection reset")]),
    ), patch.object(
        swarm_crud, "write_leaderboard_row", AsyncMock()
    ):
        with pytest.raises(ConnectionError):
            await stores.settle_prediction(
                prediction_id="abc",
                outcome=Outcome.WON,
                settled_at=datetime(2025, 1, 15, 3, 0, tzinfo=timezone.utc),
                updates=lambda r: {
                    "chatgpt": lambda e: apply_outcome(e, Outcome.WON),
                    "gemini": lambda e: apply_outcome(e, Outcome.WON),
                },
            )

    db.rollback.assert_awaited_once()
    db.commit.assert_not_awaited()


@pytest.mark.asyncio
async def test_settle_prediction_already_settled_writes_nothing() -> None:
    db = AsyncMock()
    stores = _stores_with_session(db)

    with patch.object(swarm_crud, "settle_pending_prediction", AsyncMock(return_value=False)), patch.object(
        swarm_crud, "get_prediction", AsyncMock(return_value=_prediction_row(status="lost"))
    ), patch.object(swarm_crud, "lock_leaderboard_row", AsyncMock()) as mock_lock:
        with pytest.raises(PredictionAlreadySettledError) as exc_info:
            await stores.settle_prediction(
                prediction_id="abc",
                outcome=Outcome.WON,
                settled_at=datetime(2025, 1, 15, 3, 0, tzinfo=timezone.utc),
                updates=lambda r: {"claude": lambda e: apply_outcome(e, Outcome.WON)},
            )

    assert exc_info.value.status == "lost"
    mock_lock.assert_not_awaited()
    db.rollback.assert_awaited_once()
