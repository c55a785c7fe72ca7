import pytest
from sqlalchemy import select

from learnify.api.v1.members.lifecycle import plan_transition
from learnify.auth.models import RefreshToken
from learnify.core.exceptions import InvalidTransition
from learnify.core.models import ActivityLog

from conftest import PASSWORD


@pytest.mark.parametrize(
    "status,action,expected",
    [
        ("pending_verification", "approve", "active"),
        ("pending_verification", "reject", "rejected"),
        ("active", "disable", "disabled"),
        ("disabled", "reenable", "active"),
        ("active", "approve", None),
        ("rejected", "reject", None),
        ("disabled", "disable", None),
        ("active", "reenable", None),
    ],
)
def test_plan_transition(status, action, expected) -> None:
    assert plan_transition(status, action) == expected


@pytest.mark.parametrize(
    "status,action",
    [
        ("rejected", "approve"),
        ("disabled", "approve"),
        ("active", "reject"),
        ("pending_verification", "disable"),
        ("rejected", "reenable"),
        ("pending_verification", "reenable"),
    ],
)
def test_invalid_transitions(status, action) -> None:
    with pytest.raises(InvalidTransition) as exc:
        plan_transition(status, action)
    assert exc.value.status_code == 409
    assert exc.value.from_status == status


@pytest.mark.asyncio
async def test_pending_user_approval_is_idempotent(api, session_factory) -> None:
    school = await api.setup_school()
    data, token = await api.register("teach@example.com", "teacher", invite_code=school["invite_code"])
    user_id = data["user"]["id"]
    assert await api.route(token) == "pending-verification"

    first = await api.post(school["token"], f"/api/v1/members/{user_id}/approve")
    assert first.status_code == 200
    assert first.json()["already_in_state"] is False
    assert first.json()["member"]["status"] == "active"
    assert await api.route(token) == "teacher:app"

    second = await api.post(school["token"], f"/api/v1/members/{user_id}/approve")
    assert second.status_code == 200
    assert second.json()["already_in_state"] is True
    assert second.json()["member"]["status"] == "active"

    async with session_factory() as session:
        entries = (
            await session.execute(select(ActivityLog).where(ActivityLog.action == "member_approve"))
        ).scalars().all()
        assert len(entries) == 1
        assert (entries[0].from_status, entries[0].to_status) == ("pending_verification", "active")

    response = await api.post(school["token"], f"/api/v1/members/{user_id}/reject")
    assert response.status_code == 409
    assert "cannot reject" in response.json()["detail"]


@pytest.mark.asyncio
async def test_rejected_user_is_blocked(api, client) -> None:
    school = await api.setup_school()
    data, token = await api.register("kid@example.com", "student", invite_code=school["invite_code"])
    user_id = data["user"]["id"]

    response = await api.post(school["token"], f"/api/v1/members/{user_id}/reject")
    assert response.status_code == 200
    assert response.json()["member"]["status"] == "rejected"

    again = await api.post(school["token"], f"/api/v1/members/{user_id}/reject")
    assert again.json()["already_in_state"] is True

    login = await client.post("/api/v1/auth/login", json={"email": "kid@example.com", "password": PASSWORD})
    assert login.status_code == 403
    # The session issued before rejection still resolves; the guard blocks the app
    me = await api.get(token, "/api/v1/auth/me")
    assert me.status_code == 200
    assert me.json()["status"] == "rejected"
    assert await api.route(token) == "account-blocked"

    assert (await api.post(school["token"], f"/api/v1/members/{user_id}/approve")).status_code == 409


@pytest.mark.asyncio
async def test_disable_and_reenable(api, client, session_factory) -> None:
    school = await api.setup_school()
    data, token = await api.approved_member(school["token"], school["invite_code"], "teach@example.com", role="teacher")
    user_id = data["user"]["id"]

    response = await api.post(school["token"], f"/api/v1/members/{user_id}/disable")
    assert response.status_code == 200
    assert response.json()["member"]["status"] == "disabled"

    # Sessions issued before the change are not revoked
    me = await api.get(token, "/api/v1/auth/me")
    assert me.status_code == 200
    assert me.json()["status"] == "disabled"
    assert await api.route(token) == "account-blocked"
    async with session_factory() as session:
        tokens = (await session.execute(select(RefreshToken))).scalars().all()
        assert any(str(t.user_id) == user_id for t in tokens)

    # New sessions are refused
    login = await client.post("/api/v1/auth/login", json={"email": "teach@example.com", "password": PASSWORD})
    assert login.status_code == 403

    response = await api.post(school["token"], f"/api/v1/members/{user_id}/reenable")
    assert response.status_code == 200
    assert response.json()["member"]["status"] == "active"
    assert await api.route(token) == "teacher:app"
    assert (await client.post("/api/v1/auth/login", json={"email": "teach@example.com", "password": PASSWORD})).status_code == 200

    again = await api.post(school["token"], f"/api/v1/members/{user_id}/reenable")
    assert again.json()["already_in_state"] is True


@pytest.mark.asyncio
async def test_disable_pending_is_invalid(api) -> None:
    school = await api.setup_school()
    data, _ = await api.register("kid@example.com", "student", invite_code=school["invite_code"])
    response = await api.post(school["token"], f"/api/v1/members/{data['user']['id']}/disable")
    assert response.status_code == 409
    assert response.json()["detail"] == (
        "Invalid status transition: cannot disable a user in status pending_verification"
    )


@pytest.mark.asyncio
async def test_admins_are_not_gated(api) -> None:
    school = await api.setup_school()
    data, token = await api.register("second.admin@example.com", "admin")
    joined = await api.post(token, "/api/v1/schools/join", {"code": school["invite_code"]})
    assert joined.status_code == 200

    response = await api.post(school["token"], f"/api/v1/members/{data['user']['id']}/disable")
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_member_of_other_school_not_found(api) -> None:
    school = await api.setup_school()
    other = await api.setup_school("other@example.com")
    data, _ = await api.register("kid@example.com", "student", invite_code=other["invite_code"])
    response = await api.post(school["token"], f"/api/v1/members/{data['user']['id']}/approve")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_teacher_cannot_approve(api) -> None:
    school = await api.setup_school()
    data, _ = await api.register("kid@example.com", "student", invite_code=school["invite_code"])
    _, teacher_token = await api.approved_member(school["token"], school["invite_code"], "t@example.com", role="teacher")
    response = await api.post(teacher_token, f"/api/v1/members/{data['user']['id']}/approve")
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_list_get_and_create_members(api) -> None:
    school = await api.setup_school()
    pending, _ = await api.register("kid@example.com", "student", invite_code=school["invite_code"])

    response = await api.get(school["token"], "/api/v1/members", params={"status": "pending_verification"})
    assert response.status_code == 200
    assert [m["email"] for m in response.json()] == ["kid@example.com"]

    response = await api.post(
        school["token"],
        "/api/v1/members",
        {"email": "added@example.com", "display_name": "Added Teacher", "role": "teacher", "password": PASSWORD},
    )
    assert response.status_code == 201
    created = response.json()
    assert created["status"] == "active"
    assert created["registered"] is True

    token = await api.login("added@example.com")
    assert await api.route(token) == "teacher:app"

    response = await api.get(school["token"], "/api/v1/members", params={"role": "teacher"})
    assert [m["email"] for m in response.json()] == ["added@example.com"]

    response = await api.get(school["token"], f"/api/v1/members/{pending['user']['id']}")
    assert response.status_code == 200
    assert response.json()["status"] == "pending_verification"

    dup = await api.post(
        school["token"],
        "/api/v1/members",
        {"email": "added@example.com", "display_name": "Again", "role": "student", "password": PASSWORD},
    )
    assert dup.status_code == 409


@pytest.mark.asyncio
async def test_edit_member_name_and_role(api, session_factory) -> None:
    school = await api.setup_school()
    data, token = await api.approved_member(school["token"], school["invite_code"], "teach@example.com", role="teacher")
    user_id = data["user"]["id"]

    response = await api.patch(
        school["token"], f"/api/v1/members/{user_id}", {"display_name": "Ms Wanjiru", "role": "student"}
    )
    assert response.status_code == 200, response.text
    member = response.json()
    assert member["display_name"] == "Ms Wanjiru"
    assert member["role"] == "student"
    assert member["status"] == "active"
    assert await api.route(token) == "student:enrollment"

    async with session_factory() as session:
        entry = (
            await session.execute(select(ActivityLog).where(ActivityLog.action == "member_updated"))
        ).scalar_one()
        assert str(entry.entity_id) == user_id
        assert "role teacher -> student" in entry.message


@pytest.mark.asyncio
async def test_edit_member_rules(api) -> None:
    school = await api.setup_school()
    other = await api.setup_school("other@example.com")
    kid, kid_token = await api.approved_member(school["token"], school["invite_code"], "kid@example.com")
    outsider, _ = await api.register("far@example.com", "student", invite_code=other["invite_code"])

    response = await api.patch(school["token"], f"/api/v1/members/{kid['user']['id']}", {"role": "parent"})
    assert response.status_code == 400

    response = await api.patch(school["token"], f"/api/v1/members/{outsider['user']['id']}", {"display_name": "Nope"})
    assert response.status_code == 404

    admin_id = (await api.get(school["token"], "/api/v1/auth/me")).json()["id"]
    response = await api.patch(school["token"], f"/api/v1/members/{admin_id}", {"display_name": "Boss"})
    assert response.status_code == 403

    # Enrolled students keep their role until removed from classes
    await api.post(kid_token, "/api/v1/enrollment/complete", {"class_id": school["class"]["id"], "subject_ids": []})
    response = await api.patch(school["token"], f"/api/v1/members/{kid['user']['id']}", {"role": "teacher"})
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_teacher_cannot_edit_members(api) -> None:
    school = await api.setup_school()
    kid, _ = await api.register("kid@example.com", "student", invite_code=school["invite_code"])
    _, teacher_token = await api.approved_member(school["token"], school["invite_code"], "teach@example.com", role="teacher")
    response = await api.patch(teacher_token, f"/api/v1/members/{kid['user']['id']}", {"display_name": "Changed"})
    assert response.status_code == 403
