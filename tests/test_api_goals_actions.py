import datetime as dt

import pytest
from httpx import ASGITransport, AsyncClient

from growthgarden.libs.schemas.models import ActionCreate, GoalCreate

USER = "11111111-1111-1111-1111-111111111111"
OTHER = "22222222-2222-2222-2222-222222222222"


@pytest.mark.asyncio
async def test_goal_action_completion_flow(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        created = await client.post(
            "/api/goals", json={"name": "Learn Piano", "plantType": "herb", "timelineMonths": 6}
        )
        assert created.status_code == 201
        goal = created.json()
        assert goal["currentLevel"] == 1
        assert goal["currentXP"] == 0
        assert goal["maxXP"] == 100
        assert goal["status"] == "active"

        scales = await client.post(
            "/api/actions", json={"goalId": goal["id"], "title": "Scales", "xpReward": 50}
        )
        song = await client.post(
            "/api/actions", json={"goalId": goal["id"], "title": "First song", "xpReward": 60}
        )
        assert scales.status_code == 201
        assert scales.json()["isCompleted"] is False

        done = await client.patch(f"/api/actions/{scales.json()['id']}/complete")
        assert done.status_code == 200
        assert done.json()["isCompleted"] is True
        assert done.json()["completedAt"] is not None

        refreshed = (await client.get(f"/api/goals/{goal['id']}")).json()
        assert (refreshed["currentLevel"], refreshed["currentXP"]) == (1, 50)

        await client.patch(f"/api/actions/{song.json()['id']}/complete")
        again = await client.patch(f"/api/actions/{song.json()['id']}/complete")
        assert again.status_code == 200

        refreshed = (await client.get(f"/api/goals/{goal['id']}")).json()
        assert (refreshed["currentLevel"], refreshed["currentXP"]) == (2, 10)

        actions = (await client.get(f"/api/goals/{goal['id']}/actions")).json()
        assert [a["title"] for a in actions] == ["Scales", "First song"]

        achievements = (await client.get("/api/achievements")).json()
        titles = {a["title"] for a in achievements}
        assert {"Goal Setter", "First Step", "Level Up!"} <= titles


@pytest.mark.asyncio
async def test_reflection_defaults_timestamp_and_validates_scores(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        goal = (await client.post("/api/goals", json={"name": "Run"})).json()
        action = (await client.post("/api/actions", json={"goalId": goal["id"], "title": "5k"})).json()
        assert action["xpReward"] == 15

        reflected = await client.patch(
            f"/api/actions/{action['id']}/reflection",
            json={"feeling": "Proud", "reflection": "Felt strong", "difficulty": 3, "satisfaction": 5},
        )
        assert reflected.status_code == 200
        body = reflected.json()
        assert body["feeling"] == "Proud"
        assert body["reflectedAt"] is not None

        invalid = await client.patch(
            f"/api/actions/{action['id']}/reflection", json={"feeling": "Proud", "difficulty": 9}
        )
        assert invalid.status_code == 400
        assert invalid.json()["error"] == "Invalid request data"
        assert invalid.json()["details"]


@pytest.mark.asyncio
async def test_invalid_goal_payload_returns_400(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.post("/api/goals", json={"name": "", "plantType": "cactus"})

    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "Invalid request data"
    assert {detail["path"][-1] for detail in body["details"]} >= {"name", "plantType"}


@pytest.mark.asyncio
async def test_missing_records_return_404(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        assert (await client.get("/api/goals/999")).json() == {"error": "Goal not found"}
        assert (await client.patch("/api/goals/999", json={"name": "x"})).status_code == 404
        assert (await client.delete("/api/goals/999")).status_code == 404
        assert (await client.get("/api/actions/999")).json() == {"error": "Action not found"}
        assert (await client.patch("/api/actions/999", json={"title": "x"})).status_code == 404
        assert (await client.patch("/api/actions/999/complete")).status_code == 404
        assert (
            await client.patch("/api/actions/999/reflection", json={"feeling": "Happy"})
        ).status_code == 404
        assert (await client.delete("/api/actions/999")).status_code == 404
        assert (await client.post("/api/actions", json={"goalId": 999, "title": "x"})).status_code == 404


@pytest.mark.asyncio
async def test_other_users_goals_are_invisible(app, store):
    foreign = await store.create_goal(OTHER, GoalCreate(name="Theirs"))

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        assert (await client.get("/api/goals")).json() == []
        assert (await client.get(f"/api/goals/{foreign.id}")).status_code == 404
        response = await client.post("/api/actions", json={"goalId": foreign.id, "title": "Sneaky"})
        assert response.status_code == 404

    assert await store.list_actions(OTHER) == []


@pytest.mark.asyncio
async def test_update_and_delete_goal(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        goal = (await client.post("/api/goals", json={"name": "Run", "description": "daily"})).json()
        await client.post("/api/actions", json={"goalId": goal["id"], "title": "5k"})

        updated = await client.patch(
            f"/api/goals/{goal['id']}", json={"name": "Run more", "description": None}
        )
        assert updated.status_code == 200
        assert updated.json()["name"] == "Run more"
        assert updated.json()["description"] is None

        withered = await client.patch(f"/api/goals/{goal['id']}", json={"status": "withered"})
        assert withered.status_code == 400

        deleted = await client.delete(f"/api/goals/{goal['id']}")
        assert deleted.status_code == 204
        assert deleted.content == b""
        assert (await client.get("/api/actions")).json() == []


@pytest.mark.asyncio
async def test_get_and_update_action(app, store):
    foreign_goal = await store.create_goal(OTHER, GoalCreate(name="Theirs"))
    foreign = await store.create_action(OTHER, ActionCreate(goal_id=foreign_goal.id, title="Hidden"))

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        goal = (await client.post("/api/goals", json={"name": "Run"})).json()
        action = (
            await client.post(
                "/api/actions",
                json={"goalId": goal["id"], "title": "5k", "description": "easy pace", "personalReward": "tea"},
            )
        ).json()

        fetched = await client.get(f"/api/actions/{action['id']}")
        assert fetched.status_code == 200
        assert fetched.json()["title"] == "5k"

        updated = await client.patch(
            f"/api/actions/{action['id']}",
            json={"title": "10k", "xpReward": 40, "dueDate": "2024-06-01", "personalReward": None},
        )
        assert updated.status_code == 200
        body = updated.json()
        assert body["title"] == "10k"
        assert body["xpReward"] == 40
        assert body["dueDate"].startswith("2024-06-01T00:00:00")
        assert body["personalReward"] is None
        assert body["description"] == "easy pace"
        assert body["isCompleted"] is False

        invalid = await client.patch(f"/api/actions/{action['id']}", json={"xpReward": -5})
        assert invalid.status_code == 400

        assert (await client.get(f"/api/actions/{foreign.id}")).status_code == 404
        assert (await client.patch(f"/api/actions/{foreign.id}", json={"title": "Mine"})).status_code == 404

    assert (await store.get_action(OTHER, foreign.id)).title == "Hidden"


@pytest.mark.asyncio
async def test_delete_action(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        goal = (await client.post("/api/goals", json={"name": "Run"})).json()
        action = (await client.post("/api/actions", json={"goalId": goal["id"], "title": "5k"})).json()

        assert (await client.delete(f"/api/actions/{action['id']}")).status_code == 204
        assert (await client.get("/api/actions")).json() == []


@pytest.mark.asyncio
async def test_check_health_reports_updated_goals(app, store):
    goal = await store.create_goal(USER, GoalCreate(name="Dry"))
    await store.update_goal(
        USER,
        goal.id,
        {"last_watered": dt.datetime.now(dt.timezone.utc) - dt.timedelta(days=10)},
    )

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.post("/api/goals/check-health")

    assert response.status_code == 200
    [entry] = response.json()["updatedGoals"]
    assert entry["status"] == "withered"
    assert entry["treeHealth"]["status"] == "withered"


@pytest.mark.asyncio
async def test_achievement_check_endpoint(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        await client.post("/api/goals", json={"name": "Run"})
        response = await client.post("/api/achievements/check")
        manual = await client.post(
            "/api/achievements",
            json={"title": "Custom", "description": "Made by hand", "iconName": "⭐"},
        )

    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Achievements checked"
    assert body["unlocked"] == []
    assert [a["key"] for a in body["achievements"]] == ["goal-setter"]
    assert manual.status_code == 201
    assert manual.json()["iconName"] == "⭐"


@pytest.mark.asyncio
async def test_manual_achievement_cannot_take_catalogue_key(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        manual = await client.post(
            "/api/achievements",
            json={"key": "first-action", "title": "Shortcut", "description": "Made by hand", "iconName": "⭐"},
        )
        goal = (await client.post("/api/goals", json={"name": "Run"})).json()
        action = (await client.post("/api/actions", json={"goalId": goal["id"], "title": "5k"})).json()
        await client.patch(f"/api/actions/{action['id']}/complete")
        achievements = (await client.get("/api/achievements")).json()

    assert manual.status_code == 201
    assert manual.json()["key"] is None
    keyed = {a["key"]: a["title"] for a in achievements if a["key"]}
    assert keyed["first-action"] == "First Step"


@pytest.mark.asyncio
async def test_health_and_index(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        health = await client.get("/api/health")
        status = await client.get("/api/storage-status")
        index = await client.get("/api")

    assert health.status_code == 200
    body = health.json()
    assert body["status"] == "ok"
    assert body["storage"]["type"] == "memory"
    assert body["storage"]["persistent"] is False
    assert "will not persist" in body["storage"]["warning"]
    assert status.json()["connected"] is False
    assert index.json()["endpoints"]["goals"] == "/api/goals"


@pytest.mark.asyncio
async def test_profile_roundtrip(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        me = await client.get("/api/users/me")
        renamed = await client.patch("/api/users/me", json={"name": "Ada"})

    assert me.json()["email"] == "gardener@example.com"
    assert renamed.json()["name"] == "Ada"
