from starlette.requests import Request

from tests.conftest import ANALYST, OUTSIDER, OWNER, csv_row, manual_row

BASE = "/api/v1/workspaces/acme/ugc"


def _headers(user_id=OWNER):
    return {"X-User-Id": user_id}


async def test_manual_import_returns_created_post(client, workspace):
    response = await client.post(BASE, json=manual_row(creatorHandle="@mia"), headers=_headers())

    assert response.status_code == 201
    data = response.json()
    assert data["status"] == "completed"
    assert data["duplicate"] is False
    assert data["import_log_id"]
    post = data["post"]
    assert post["creator_handle"] == "mia"
    assert post["hashtags"] == ["deal", "summer23"]
    assert post["rights_status"] == "pending"
    assert post["import_source"] == "manual"


async def test_manual_import_duplicate_returns_existing_post(client, workspace):
    first = await client.post(BASE, json=manual_row(), headers=_headers())
    second = await client.post(BASE, json=manual_row(), headers=_headers())

    assert second.status_code == 200
    data = second.json()
    assert data["duplicate"] is True
    assert data["existing_post_id"] == first.json()["post"]["id"]
    assert data["post"] is None


async def test_manual_import_validation_error(client, workspace):
    response = await client.post(BASE, json=manual_row(postUrl="nope"), headers=_headers())

    assert response.status_code == 400
    detail = response.json()["detail"]
    assert detail["code"] == "VALIDATION_ERROR"
    assert detail["details"] == {"postUrl": ["Invalid url"]}

    log = await client.get(f"{BASE}/import-logs/{detail['import_log_id']}", headers=_headers())
    assert log.json()["status"] == "failed"


async def test_manual_import_requires_write_permission(client, workspace):
    response = await client.post(BASE, json=manual_row(), headers=_headers(ANALYST))
    assert response.status_code == 403


async def test_manual_import_outside_workspace_is_not_found(client, workspace):
    response = await client.post(BASE, json=manual_row(), headers=_headers(OUTSIDER))
    assert response.status_code == 404


async def test_manual_import_unknown_workspace_is_not_found(client, workspace):
    response = await client.post(
        "/api/v1/workspaces/nope/ugc", json=manual_row(), headers=_headers()
    )
    assert response.status_code == 404


async def test_missing_user_header_is_unauthorized(client, workspace):
    response = await client.post(BASE, json=manual_row())
    assert response.status_code == 401


async def test_csv_rows_import(client, workspace):
    rows = [csv_row(), csv_row(post_url="bad", creator_handle="u2")]

    response = await client.post(f"{BASE}/import/csv", json={"rows": rows}, headers=_headers())

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "partial"
    assert data["message"] == "Imported 1 posts, skipped 0 duplicates, 1 failed"
    assert (data["total"], data["imported"], data["skipped"], data["failed"]) == (2, 1, 0, 1)
    assert data["cancelled"] is False
    assert data["errors"] == [{"row": 2, "error": "Invalid url", "post_url": "bad"}]
    assert len(data["post_ids"]) == 1


async def test_csv_rows_import_non_object_row_fails_alone(client, workspace):
    rows = [csv_row(), None, csv_row(post_url="https://x.com/b")]

    response = await client.post(f"{BASE}/import/csv", json={"rows": rows}, headers=_headers())

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "partial"
    assert (data["total"], data["imported"], data["failed"]) == (3, 2, 1)
    assert data["errors"] == [{"row": 2, "error": "Row must be an object", "post_url": None}]

    log = await client.get(f"{BASE}/import-logs/{data['import_log_id']}", headers=_headers())
    invalid = next(e for e in log.json()["entries"] if e["status"] == "error")
    assert invalid["details"]["errors"] == {"_row": ["Row must be an object"]}


async def test_csv_rows_import_stops_when_client_disconnects(client, workspace, monkeypatch):
    checks = 0

    async def disconnected_after_first_row(self):
        nonlocal checks
        checks += 1
        return checks > 1

    monkeypatch.setattr(Request, "is_disconnected", disconnected_after_first_row)
    rows = [csv_row(post_url=f"https://x.com/{i}") for i in range(3)]

    response = await client.post(f"{BASE}/import/csv", json={"rows": rows}, headers=_headers())

    assert response.status_code == 200
    data = response.json()
    assert data["cancelled"] is True
    assert (data["total"], data["processed"], data["imported"]) == (3, 1, 1)
    assert data["status"] == "completed"

    log = await client.get(f"{BASE}/import-logs/{data['import_log_id']}", headers=_headers())
    last = log.json()["entries"][-1]
    assert last["message"].startswith("Import cancelled after 1 of 3 rows.")
    assert last["details"]["cancelled"] is True


async def test_csv_rows_import_counts_duplicates(client, workspace):
    rows = [csv_row()]
    await client.post(f"{BASE}/import/csv", json={"rows": rows}, headers=_headers())

    response = await client.post(f"{BASE}/import/csv", json={"rows": rows}, headers=_headers())

    data = response.json()
    assert data["status"] == "completed"
    assert (data["imported"], data["skipped"]) == (0, 1)


async def test_csv_rows_import_rejects_empty_batch(client, workspace):
    response = await client.post(f"{BASE}/import/csv", json={"rows": []}, headers=_headers())

    assert response.status_code == 400
    assert response.json()["detail"]["message"] == "No rows provided"

    logs = await client.get(f"{BASE}/import-logs", headers=_headers())
    assert logs.json()["logs"] == []


async def test_csv_upload(client, workspace):
    content = (
        b"Post URL,Platform,Handle,Tags\n"
        b"https://x.com/a,TikTok,u1,\"#one, two\"\n"
        b"https://x.com/b,YOUTUBE,u2,\n"
    )

    response = await client.post(
        f"{BASE}/import/csv/upload",
        files={"file": ("posts.csv", content, "text/csv")},
        headers=_headers(),
    )

    assert response.status_code == 200
    data = response.json()
    assert data["imported"] == 2

    log = await client.get(f"{BASE}/import-logs/{data['import_log_id']}", headers=_headers())
    metadata = log.json()["metadata"]
    assert metadata["file_name"] == "posts.csv"
    assert len(metadata["file_hash"]) == 64
    assert metadata["total_rows"] == 2


async def test_csv_upload_bad_file(client, workspace):
    response = await client.post(
        f"{BASE}/import/csv/upload",
        files={"file": ("posts.csv", b"platform\nTIKTOK\n", "text/csv")},
        headers=_headers(),
    )
    assert response.status_code == 400
    assert "Missing required column" in response.json()["detail"]["message"]
