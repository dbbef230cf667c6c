from fastapi.testclient import TestClient

from orilla.main import app

client = TestClient(app)


def _headers(user_id: str) -> dict:
    resp = client.post("/auth/token", json={"user_id": user_id})
    assert resp.status_code == 200, f"token request failed: {resp.status_code} {resp.text}"
    data = resp.json()
    assert isinstance(data, dict), f"token response not a JSON object: {data}"
    assert "access_token" in data, f"token response missing access_token: {data}"
    return {"Authorization": f"Bearer {data['access_token']}"}


def test_sheet_review_flow_over_http(factory):
    project = factory.project(budget_hours="10")
    author = factory.user()
    owner = factory.user()
    factory.member(project, author, "expert")
    factory.member(project, owner, "owner")
    e1 = factory.entry(project=project, hours="2", created_by=author)
    e2 = factory.entry(project=project, hours="3", created_by=author)
    author_h = _headers(author.id)
    owner_h = _headers(owner.id)

    create = client.post(
        "/time_sheets",
        headers=author_h,
        json={"title": "September", "project_id": project.id},
    )
    assert create.status_code == 200, create.text
    sheet = create.json()
    assert sheet["status"] == "draft"
    assert sheet["status_label"] == "Draft"
    sheet_id = sheet["id"]

    available = client.get(
        "/time_sheets/available_entries", headers=author_h, params={"project_id": project.id}
    )
    assert {row["id"] for row in available.json()} == {e1.id, e2.id}

    added = client.post(
        f"/time_sheets/{sheet_id}/entries",
        headers=author_h,
        json={"entry_ids": [e1.id, e2.id]},
    )
    assert added.status_code == 200, added.text
    assert float(added.json()["total_hours"]) == 5.0

    submitted = client.post(f"/time_sheets/{sheet_id}/submit", headers=author_h)
    assert submitted.status_code == 200
    assert submitted.json()["status"] == "submitted"
    assert submitted.json()["status_category"] == "attention"

    approve_e1 = client.post(f"/time_sheets/{sheet_id}/entries/{e1.id}/approve", headers=owner_h)
    assert approve_e1.status_code == 200
    assert approve_e1.json()["status"] == "approved"

    question_e2 = client.post(
        f"/time_sheets/{sheet_id}/entries/{e2.id}/question",
        headers=owner_h,
        json={"message": "clarify description"},
    )
    assert question_e2.status_code == 200
    assert question_e2.json()["status_label"] == "Questioned"

    blocked = client.post(f"/time_sheets/{sheet_id}/approve", headers=owner_h)
    assert blocked.status_code == 409
    assert blocked.json()["code"] == "INVALID_STATE_TRANSITION"
    assert blocked.json()["reason"] == "entries questioned"

    readiness = client.get(f"/time_sheets/{sheet_id}/can_approve", headers=owner_h)
    assert readiness.json() == {"can_approve": False, "reason": "entries questioned"}

    resolved = client.post(f"/time_sheets/{sheet_id}/entries/{e2.id}/resolve", headers=owner_h)
    assert resolved.json()["status"] == "pending"
    client.post(f"/time_sheets/{sheet_id}/entries/{e2.id}/approve", headers=owner_h)

    twice = client.post(f"/time_sheets/{sheet_id}/entries/{e2.id}/approve", headers=owner_h)
    assert twice.status_code == 409
    assert twice.json()["code"] == "CONFLICT"

    detail = client.get(f"/time_sheets/{sheet_id}", headers=owner_h)
    body = detail.json()
    assert body["can_approve"] == {"can_approve": True, "reason": None}
    assert body["summary"]["progress_message"] == "All entries approved"
    assert body["actions"]["approve"]["allowed"] is True
    assert body["project"]["id"] == project.id

    approved = client.post(f"/time_sheets/{sheet_id}/approve", headers=owner_h)
    assert approved.status_code == 200
    assert approved.json()["status"] == "approved"
    assert approved.json()["approved_by"] == owner.id

    messages = client.get(f"/time_entries/{e2.id}/messages", headers=owner_h)
    assert [m["content"] for m in messages.json()] == ["clarify description"]
    assert messages.json()[0]["status_change"] == "questioned"


def test_reject_by_non_member_is_403(factory):
    project = factory.project()
    outsider = factory.user()
    sheet = factory.sheet(project=project, status="submitted", entries=[factory.entry(project=project)])

    r = client.post(
        f"/time_sheets/{sheet.id}/reject",
        headers=_headers(outsider.id),
        json={"reason": "no"},
    )
    assert r.status_code == 403
    assert r.json()["reason"] == "not a project member"


def test_reject_and_revert(factory):
    project = factory.project()
    owner = factory.user()
    factory.member(project, owner, "owner")
    entry = factory.entry(project=project)
    sheet = factory.sheet(project=project, status="submitted", entries=[entry])
    h = _headers(owner.id)

    rejected = client.post(f"/time_sheets/{sheet.id}/reject", headers=h, json={"reason": "too many hours"})
    assert rejected.status_code == 200
    assert rejected.json()["rejection_reason"] == "too many hours"
    assert rejected.json()["status_category"] == "negative"

    again = client.post(f"/time_sheets/{sheet.id}/reject", headers=h)
    assert again.status_code == 409

    reverted = client.post(f"/time_sheets/{sheet.id}/revert", headers=h)
    assert reverted.status_code == 200
    assert reverted.json()["status"] == "draft"
    assert reverted.json()["rejection_reason"] is None


def test_submit_empty_sheet_is_422(factory):
    user = factory.user()
    h = _headers(user.id)
    sheet_id = client.post("/time_sheets", headers=h, json={"title": "Empty"}).json()["id"]

    r = client.post(f"/time_sheets/{sheet_id}/submit", headers=h)
    assert r.status_code == 422
    assert r.json()["code"] == "VALIDATION_ERROR"


def test_remove_approved_entry_is_rejected(factory):
    user = factory.user()
    approved_entry = factory.entry(status="approved")
    sheet = factory.sheet(entries=[approved_entry])

    r = client.delete(f"/time_sheets/{sheet.id}/entries/{approved_entry.id}", headers=_headers(user.id))
    assert r.status_code == 409
    assert r.json()["code"] == "INVALID_STATE_TRANSITION"


def test_update_list_and_delete_sheet(factory):
    user = factory.user()
    h = _headers(user.id)
    sheet_id = client.post("/time_sheets", headers=h, json={"title": "Week 36"}).json()["id"]
    org = factory.organisation()
    account = factory.account(org)

    patched = client.patch(
        f"/time_sheets/{sheet_id}",
        headers=h,
        json={
            "title": "Week 37",
            "start_date": "2026-09-07",
            "end_date": "2026-09-13",
            "organisation_id": org.id,
            "account_id": account.id,
        },
    )
    assert patched.status_code == 200
    assert patched.json()["title"] == "Week 37"

    detail = client.get(f"/time_sheets/{sheet_id}", headers=h).json()
    assert detail["account"] == {"id": account.id, "name": "Finance"}
    assert detail["organisation"]["name"] == "Acme"

    bad_range = client.patch(
        f"/time_sheets/{sheet_id}",
        headers=h,
        json={"start_date": "2026-09-13", "end_date": "2026-09-07"},
    )
    assert bad_range.status_code == 422

    listing = client.get("/time_sheets", headers=h, params={"status": "draft"})
    assert [row["id"] for row in listing.json()] == [sheet_id]

    deleted = client.delete(f"/time_sheets/{sheet_id}", headers=h)
    assert deleted.status_code == 204
    assert client.get(f"/time_sheets/{sheet_id}", headers=h).status_code == 404


def test_entry_review_requires_membership_of_sheet(factory):
    admin = factory.user(role="admin")
    entry = factory.entry()
    sheet = factory.sheet(status="submitted", entries=[factory.entry()])

    r = client.post(f"/time_sheets/{sheet.id}/entries/{entry.id}/approve", headers=_headers(admin.id))
    assert r.status_code == 404
    assert r.json()["code"] == "NOT_FOUND"


def test_sheet_reads_are_limited_to_members_and_creators(factory):
    project = factory.project()
    member = factory.user()
    outsider = factory.user()
    factory.member(project, member, "client")
    sheet = factory.sheet(project=project, status="submitted", entries=[factory.entry(project=project)])
    own_sheet = factory.sheet(created_by=outsider, title="Mine")
    loose_entry = factory.entry(project=project)

    assert client.get("/time_sheets").status_code == 401
    assert client.get(f"/time_sheets/{sheet.id}").status_code == 401
    assert client.get(f"/time_sheets/{sheet.id}/can_approve").status_code == 401
    assert client.get("/time_sheets/available_entries").status_code == 401

    outsider_h = _headers(outsider.id)
    assert [row["id"] for row in client.get("/time_sheets", headers=outsider_h).json()] == [own_sheet.id]
    denied = client.get(f"/time_sheets/{sheet.id}", headers=outsider_h)
    assert denied.status_code == 403
    assert denied.json()["reason"] == "not a project member"
    assert client.get(f"/time_sheets/{sheet.id}/can_approve", headers=outsider_h).status_code == 403
    assert client.get("/time_sheets/available_entries", headers=outsider_h).json() == []

    member_h = _headers(member.id)
    assert [row["id"] for row in client.get("/time_sheets", headers=member_h).json()] == [sheet.id]
    assert client.get(f"/time_sheets/{sheet.id}", headers=member_h).status_code == 200
    available = client.get("/time_sheets/available_entries", headers=member_h).json()
    assert [row["id"] for row in available] == [loose_entry.id]


def test_patching_sheet_into_foreign_project_is_403(factory):
    project = factory.project()
    outsider = factory.user()
    h = _headers(outsider.id)
    sheet_id = client.post("/time_sheets", headers=h, json={"title": "Unscoped"}).json()["id"]

    r = client.patch(f"/time_sheets/{sheet_id}", headers=h, json={"project_id": project.id})
    assert r.status_code == 403
    assert r.json()["reason"] == "not a project member"


def test_adding_someone_elses_entry_is_403(factory):
    owner_of_entry = factory.user()
    stranger = factory.user()
    entry = factory.entry(created_by=owner_of_entry)
    h = _headers(stranger.id)
    sheet_id = client.post("/time_sheets", headers=h, json={"title": "Grab"}).json()["id"]

    r = client.post(f"/time_sheets/{sheet_id}/entries", headers=h, json={"entry_ids": [entry.id]})
    assert r.status_code == 403
    assert r.json()["code"] == "PERMISSION_DENIED"
