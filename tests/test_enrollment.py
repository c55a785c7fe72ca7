import uuid

import pytest

from learnify.api.v1.enrollment import service as enrollment_service
from learnify.api.v1.enrollment.selection import start_selection, toggle_subject


async def _me(api, token: str) -> dict:
    response = await api.get(token, "/api/v1/auth/me")
    assert response.status_code == 200
    return response.json()


def test_toggle_flips_optional_subject() -> None:
    class_id, math, art = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()
    selection = start_selection(class_id, [math])
    assert selection.selected == frozenset({math})

    with_art = toggle_subject(selection, art)
    assert with_art.selected == frozenset({math, art})
    assert toggle_subject(with_art, art).selected == frozenset({math})
    # Original value untouched
    assert selection.selected == frozenset({math})


def test_toggle_never_removes_compulsory() -> None:
    class_id, math = uuid.uuid4(), uuid.uuid4()
    selection = start_selection(class_id, [math])
    assert toggle_subject(selection, math) == selection
    assert toggle_subject(toggle_subject(selection, math), math).selected == frozenset({math})


def test_final_subjects_include_compulsory() -> None:
    class_id, math, art = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()
    selection = start_selection(class_id, [math], [art])
    assert selection.final_subject_ids == frozenset({math, art})


@pytest.mark.asyncio
async def test_student_enrollment_adds_compulsory(api) -> None:
    school = await api.setup_school()
    _, token = await api.approved_member(school["token"], school["invite_code"], "kid@example.com")
    assert await api.route(token) == "student:enrollment"
    class_id = school["class"]["id"]

    response = await api.post(token, "/api/v1/enrollment/select-class", {"class_id": class_id})
    assert response.status_code == 200
    data = response.json()
    assert data["class_type"] == "main"
    assert data["compulsory_subject_ids"] == [school["math_id"]]
    assert set(data["available_subject_ids"]) == {school["math_id"], school["art_id"]}

    response = await api.post(
        token,
        "/api/v1/enrollment/complete",
        {"class_id": class_id, "subject_ids": [school["art_id"]]},
    )
    assert response.status_code == 200, response.text
    data = response.json()
    assert data["class_ids"] == [class_id]
    assert set(data["subject_ids"]) == {school["math_id"], school["art_id"]}

    me = await _me(api, token)
    assert me["class_ids"] == [class_id]
    assert set(me["subject_ids"]) == {school["math_id"], school["art_id"]}
    assert await api.route(token) == "student:app"

    cls = (await api.get(school["token"], f"/api/v1/classes/{class_id}")).json()
    assert cls["student_ids"] == [me["id"]]


@pytest.mark.asyncio
async def test_enrollment_with_no_choices_still_gets_compulsory(api) -> None:
    school = await api.setup_school()
    _, token = await api.approved_member(school["token"], school["invite_code"], "kid@example.com")
    response = await api.post(
        token, "/api/v1/enrollment/complete", {"class_id": school["class"]["id"], "subject_ids": []}
    )
    assert response.status_code == 200
    assert response.json()["subject_ids"] == [school["math_id"]]


@pytest.mark.asyncio
async def test_empty_final_subject_set_is_invalid(api) -> None:
    school = await api.setup_school()
    response = await api.post(
        school["token"],
        "/api/v1/classes",
        {"name": "Open Class", "class_type": "main", "compulsory_subject_ids": []},
    )
    assert response.status_code == 201
    open_class = response.json()

    _, token = await api.approved_member(school["token"], school["invite_code"], "kid@example.com")
    response = await api.post(token, "/api/v1/enrollment/complete", {"class_id": open_class["id"], "subject_ids": []})
    assert response.status_code == 400
    assert (await _me(api, token))["class_ids"] == []


@pytest.mark.asyncio
async def test_pending_student_cannot_complete(api) -> None:
    school = await api.setup_school()
    _, token = await api.register("kid@example.com", "student", invite_code=school["invite_code"])
    response = await api.post(
        token, "/api/v1/enrollment/complete", {"class_id": school["class"]["id"], "subject_ids": []}
    )
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_second_completion_is_refused(api) -> None:
    school = await api.setup_school()
    _, token = await api.approved_member(school["token"], school["invite_code"], "kid@example.com")
    body = {"class_id": school["class"]["id"], "subject_ids": []}
    assert (await api.post(token, "/api/v1/enrollment/complete", body)).status_code == 200
    assert (await api.post(token, "/api/v1/enrollment/complete", body)).status_code == 409


@pytest.mark.asyncio
async def test_subject_from_other_school_is_invalid(api) -> None:
    school = await api.setup_school()
    other = await api.setup_school("other@example.com")
    _, token = await api.approved_member(school["token"], school["invite_code"], "kid@example.com")
    response = await api.post(
        token,
        "/api/v1/enrollment/complete",
        {"class_id": school["class"]["id"], "subject_ids": [other["art_id"]]},
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_class_from_other_school_not_found(api) -> None:
    school = await api.setup_school()
    other = await api.setup_school("other@example.com")
    _, token = await api.approved_member(school["token"], school["invite_code"], "kid@example.com")
    response = await api.post(token, "/api/v1/enrollment/select-class", {"class_id": other["class"]["id"]})
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_toggle_endpoint_keeps_compulsory(api) -> None:
    school = await api.setup_school()
    _, token = await api.approved_member(school["token"], school["invite_code"], "kid@example.com")
    body = {"class_id": school["class"]["id"], "selected_subject_ids": [], "subject_id": school["math_id"]}

    response = await api.post(token, "/api/v1/enrollment/toggle-subject", body)
    assert response.status_code == 200
    data = response.json()
    assert data["changed"] is False
    assert data["selected_subject_ids"] == [school["math_id"]]

    body["subject_id"] = school["art_id"]
    data = (await api.post(token, "/api/v1/enrollment/toggle-subject", body)).json()
    assert data["changed"] is True
    assert set(data["selected_subject_ids"]) == {school["math_id"], school["art_id"]}


async def _stale_class_ids(db, student_id):
    # A second device read the profile before the first completion committed
    return []


@pytest.mark.asyncio
async def test_concurrent_completion_same_class_does_not_duplicate(api, monkeypatch) -> None:
    school = await api.setup_school()
    _, token = await api.approved_member(school["token"], school["invite_code"], "kid@example.com")
    body = {"class_id": school["class"]["id"], "subject_ids": [school["art_id"]]}
    assert (await api.post(token, "/api/v1/enrollment/complete", body)).status_code == 200

    monkeypatch.setattr(enrollment_service, "get_class_ids", _stale_class_ids)
    response = await api.post(token, "/api/v1/enrollment/complete", {**body, "subject_ids": []})
    assert response.status_code == 200, response.text

    me = await _me(api, token)
    assert me["class_ids"] == [school["class"]["id"]]
    assert me["subject_ids"] == [school["math_id"]]
    cls = (await api.get(school["token"], f"/api/v1/classes/{school['class']['id']}")).json()
    assert cls["student_ids"] == [me["id"]]


@pytest.mark.asyncio
async def test_concurrent_completion_last_write_wins(api, monkeypatch) -> None:
    school = await api.setup_school()
    response = await api.post(school["token"], "/api/v1/classes", {"name": "Grade 2", "class_type": "main"})
    assert response.status_code == 201
    second_class = response.json()

    _, token = await api.approved_member(school["token"], school["invite_code"], "kid@example.com")
    first = {"class_id": school["class"]["id"], "subject_ids": []}
    assert (await api.post(token, "/api/v1/enrollment/complete", first)).status_code == 200

    monkeypatch.setattr(enrollment_service, "get_class_ids", _stale_class_ids)
    second = {"class_id": second_class["id"], "subject_ids": [school["art_id"]]}
    response = await api.post(token, "/api/v1/enrollment/complete", second)
    assert response.status_code == 200, response.text

    me = await _me(api, token)
    assert me["class_ids"] == [second_class["id"]]
    assert set(me["subject_ids"]) == {school["math_id"], school["art_id"]}
    old = (await api.get(school["token"], f"/api/v1/classes/{school['class']['id']}")).json()
    assert old["student_ids"] == []


@pytest.mark.asyncio
async def test_join_class_with_code_is_idempotent(api) -> None:
    school = await api.setup_school()
    _, token = await api.approved_member(school["token"], school["invite_code"], "kid@example.com")
    code = school["class"]["invite_code"]

    first = await api.post(token, "/api/v1/enrollment/join-class", {"code": code.lower()})
    assert first.status_code == 200
    assert first.json()["already_in_state"] is False
    assert first.json()["class_ids"] == [school["class"]["id"]]
    assert first.json()["subject_ids"] == [school["math_id"]]

    second = await api.post(token, "/api/v1/enrollment/join-class", {"code": code})
    assert second.status_code == 200
    assert second.json()["already_in_state"] is True
    assert second.json()["class_ids"] == first.json()["class_ids"]
    assert second.json()["subject_ids"] == first.json()["subject_ids"]


@pytest.mark.asyncio
async def test_join_class_of_other_school_forbidden(api) -> None:
    school = await api.setup_school()
    other = await api.setup_school("other@example.com")
    _, token = await api.approved_member(school["token"], school["invite_code"], "kid@example.com")
    response = await api.post(token, "/api/v1/enrollment/join-class", {"code": other["class"]["invite_code"]})
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_join_class_unknown_code(api) -> None:
    school = await api.setup_school()
    _, token = await api.approved_member(school["token"], school["invite_code"], "kid@example.com")
    response = await api.post(token, "/api/v1/enrollment/join-class", {"code": "CLS-00000"})
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_teacher_cannot_enroll(api) -> None:
    school = await api.setup_school()
    _, token = await api.approved_member(school["token"], school["invite_code"], "t@example.com", role="teacher")
    response = await api.post(token, "/api/v1/enrollment/select-class", {"class_id": school["class"]["id"]})
    assert response.status_code == 403
