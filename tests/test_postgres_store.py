import datetime as dt

import pytest

from growthgarden.libs.schemas.models import ActionCreate, DailyHabitCreate, GoalCreate
from growthgarden.libs.storage.base import StorageUnavailableError
from growthgarden.libs.storage.postgres import PostgresStore, _build_update

USER = "11111111-1111-1111-1111-111111111111"
NOW = dt.datetime(2025, 1, 6, 9, tzinfo=dt.timezone.utc)


def _goal_row(**overrides):
    row = {
        "id": 7,
        "user_id": USER,
        "name": "Learn Piano",
        "description": None,
        "plant_type": "herb",
        "current_level": 1,
        "current_xp": 0,
        "max_xp": 100,
        "timeline_months": 6,
        "status": "active",
        "last_watered": NOW,
        "created_at": NOW,
    }
    row.update(overrides)
    return row


class RecordingConnection:
    def __init__(self, rows=None, status="DELETE 1"):
        self.rows = list(rows or [])
        self.status = status
        self.calls = []

    async def fetch(self, sql, *args):
        self.calls.append((sql, args))
        return self.rows

    async def fetchrow(self, sql, *args):
        self.calls.append((sql, args))
        return self.rows.pop(0) if self.rows else None

    async def execute(self, sql, *args):
        self.calls.append((sql, args))
        return self.status


class RecordingPool:
    def __init__(self, connection):
        self.connection = connection
        self.closed = False

    def acquire(self):
        pool = self

        class _Acquire:
            async def __aenter__(self):
                return pool.connection

            async def __aexit__(self, *exc):
                return False

        return _Acquire()

    async def close(self):
        self.closed = True


@pytest.mark.asyncio
async def test_store_without_pool_reports_unavailable():
    store = PostgresStore(None)
    with pytest.raises(StorageUnavailableError, match="database not available"):
        await store.list_goals(USER)


def test_build_update_ignores_unknown_columns():
    sql, args = _build_update(
        "goals",
        {"name": "Run", "user_id": "someone-else", "status": "completed"},
        {"name": "name", "status": "status"},
        ["id = $1", "user_id = $2"],
        [3, USER],
    )
    assert sql == "UPDATE goals SET name = $3, status = $4 WHERE id = $1 AND user_id = $2 RETURNING *"
    assert args == [3, USER, "Run", "completed"]
    assert _build_update("goals", {"id": 9}, {"name": "name"}, ["id = $1"], [1]) is None


@pytest.mark.asyncio
async def test_create_goal_maps_row_to_record():
    connection = RecordingConnection(rows=[_goal_row()])
    store = PostgresStore(RecordingPool(connection))

    goal = await store.create_goal(USER, GoalCreate(name="Learn Piano", plant_type="herb", timeline_months=6))

    assert goal.id == 7
    assert goal.max_xp == 100
    sql, args = connection.calls[0]
    assert "INSERT INTO goals" in sql
    assert args == (USER, "Learn Piano", None, "herb", 6)


@pytest.mark.asyncio
async def test_reward_is_a_single_update():
    connection = RecordingConnection(rows=[_goal_row(current_level=2, current_xp=10, last_watered=NOW)])
    store = PostgresStore(RecordingPool(connection))

    goal = await store.apply_goal_reward(USER, 7, 60, NOW)

    assert (goal.current_level, goal.current_xp) == (2, 10)
    sql, args = connection.calls[0]
    assert "GREATEST(current_level" in sql
    assert args == (7, USER, 60, NOW)


@pytest.mark.asyncio
async def test_completion_guards_against_double_completion():
    connection = RecordingConnection(rows=[])
    store = PostgresStore(RecordingPool(connection))

    assert await store.mark_action_completed(USER, 5, NOW) is None
    assert "AND NOT is_completed" in connection.calls[0][0]


@pytest.mark.asyncio
async def test_delete_reports_whether_a_row_matched():
    store = PostgresStore(RecordingPool(RecordingConnection(status="DELETE 0")))
    assert await store.delete_goal(USER, 1) is False

    store = PostgresStore(RecordingPool(RecordingConnection(status="DELETE 1")))
    assert await store.delete_action(USER, 1) is True

    connection = RecordingConnection(status="DELETE 1")
    assert await PostgresStore(RecordingPool(connection)).delete_daily_habit(USER, "2025-01-02") is True
    assert connection.calls[0][1] == (USER, "2025-01-02")


@pytest.mark.asyncio
async def test_daily_habit_create_uses_upsert():
    row = {
        "id": 1,
        "user_id": USER,
        "date": "2025-01-02",
        "eat_healthy": False,
        "exercise": True,
        "sleep_before_11pm": False,
        "notes": None,
        "created_at": NOW,
    }
    connection = RecordingConnection(rows=[row])
    store = PostgresStore(RecordingPool(connection))

    habit = await store.create_daily_habit(USER, DailyHabitCreate(date="2025-01-02", exercise=True))

    assert habit.exercise is True
    assert "ON CONFLICT (user_id, date) DO UPDATE" in connection.calls[0][0]


@pytest.mark.asyncio
async def test_update_without_known_columns_reads_current_row():
    connection = RecordingConnection(rows=[_goal_row()])
    store = PostgresStore(RecordingPool(connection))

    goal = await store.update_goal(USER, 7, {"created_at": NOW})

    assert goal.name == "Learn Piano"
    assert connection.calls[0][0].startswith("SELECT * FROM goals")


@pytest.mark.asyncio
async def test_create_action_passes_due_date():
    row = {
        "id": 3,
        "goal_id": 7,
        "user_id": USER,
        "title": "Scales",
        "description": None,
        "xp_reward": 50,
        "personal_reward": None,
        "is_completed": False,
        "due_date": NOW,
        "completed_at": None,
        "feeling": None,
        "reflection": None,
        "difficulty": None,
        "satisfaction": None,
        "reflected_at": None,
        "created_at": NOW,
    }
    connection = RecordingConnection(rows=[row])
    store = PostgresStore(RecordingPool(connection))

    action = await store.create_action(USER, ActionCreate(goal_id=7, title="Scales", xp_reward=50, due_date=NOW))

    assert action.due_date == NOW
    assert connection.calls[0][1][-1] == NOW


@pytest.mark.asyncio
async def test_close_releases_pool():
    pool = RecordingPool(RecordingConnection())
    store = PostgresStore(pool)
    await store.close()
    assert pool.closed is True
    with pytest.raises(StorageUnavailableError):
        await store.get_goal(USER, 1)


@pytest.mark.asyncio
async def test_ensure_user_releases_email_held_by_stale_identity():
    user_row = {
        "id": USER,
        "email": "ada@example.com",
        "name": "Ada",
        "avatar_url": None,
        "created_at": NOW,
    }
    # Insert conflicts on email, the id is unknown, then the retry succeeds.
    connection = RecordingConnection(rows=[None, None, user_row], status="UPDATE 1")
    store = PostgresStore(RecordingPool(connection))

    user = await store.ensure_user(USER, "ada@example.com", "Ada")

    assert user.email == "ada@example.com"
    statements = [" ".join(sql.split()) for sql, _ in connection.calls]
    assert statements[0].startswith("INSERT INTO users")
    assert statements[1] == "SELECT * FROM users WHERE id = $1"
    assert statements[2].startswith("UPDATE users SET email = email || '#' || id::text")
    assert connection.calls[2][1][0] == "ada@example.com"
    assert statements[3].startswith("INSERT INTO users")
    assert len(statements) == 4


@pytest.mark.asyncio
async def test_ensure_user_leaves_other_rows_alone_when_insert_succeeds():
    user_row = {"id": USER, "email": "ada@example.com", "name": None, "avatar_url": None, "created_at": NOW}
    connection = RecordingConnection(rows=[user_row])
    store = PostgresStore(RecordingPool(connection))

    await store.ensure_user(USER, "ada@example.com")

    assert len(connection.calls) == 1
