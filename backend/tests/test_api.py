"""HTTP routes: auth, main and category document trees, downloads, preferences."""

from conftest import PDF_BYTES, TEXT_BYTES, auth_headers
from facility_docs.config import settings
from facility_docs.services import storage


def _main(facility_id: int, suffix: str = "") -> str:
    return f"/facilities/{facility_id}/documents{suffix}"


def _category(facility_id: int, category: str, suffix: str = "") -> str:
    return f"/facilities/{facility_id}/categories/{category}/documents{suffix}"


class TestHealthAndAuth:
    async def test_health(self, client):
        resp = await client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}

    async def test_register_login_me(self, client):
        resp = await client.post(
            "/auth/register", json={"email": "new@example.com", "password": "password123", "name": "New"}
        )
        assert resp.status_code == 200

        resp = await client.post("/auth/login", json={"email": "new@example.com", "password": "password123"})
        assert resp.status_code == 200
        token = resp.json()["access_token"]

        resp = await client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 200
        assert resp.json()["role"] == "viewer"

    async def test_wrong_password(self, client, editor):
        resp = await client.post("/auth/login", json={"email": editor.email, "password": "nope-nope"})
        assert resp.status_code == 401

    async def test_registration_can_be_disabled(self, client, monkeypatch):
        monkeypatch.setattr(settings, "allow_registration", False)
        resp = await client.get("/auth/config")
        assert resp.json() == {"allow_registration": False}
        resp = await client.post("/auth/register", json={"email": "x@example.com", "password": "password123"})
        assert resp.status_code == 403

    async def test_documents_require_token(self, client, facility):
        resp = await client.get(_main(facility.id))
        assert resp.status_code in (401, 403)

    async def test_invalid_token(self, client, facility):
        resp = await client.get(_main(facility.id), headers={"Authorization": "Bearer garbage"})
        assert resp.status_code == 401


class TestMainTreeRoutes:
    async def test_folder_lifecycle(self, client, facility, editor):
        headers = auth_headers(editor)

        resp = await client.post(_main(facility.id, "/folders"), json={"name": "Reports"}, headers=headers)
        assert resp.status_code == 201
        reports = resp.json()
        assert reports["path"] == "Reports"

        resp = await client.post(
            _main(facility.id, "/folders"), json={"name": "2024", "parent_id": reports["id"]}, headers=headers
        )
        child = resp.json()
        assert child["path"] == "Reports/2024"

        resp = await client.patch(
            _main(facility.id, f"/folders/{reports['id']}"), json={"name": "Archive"}, headers=headers
        )
        assert resp.status_code == 200

        resp = await client.get(_main(facility.id), params={"folder_id": reports["id"]}, headers=headers)
        assert resp.status_code == 200
        body = resp.json()
        assert [f["path"] for f in body["folders"]] == ["Archive/2024"]
        assert [b["name"] for b in body["breadcrumbs"]] == ["Root", "Archive"]

        resp = await client.get(_main(facility.id, f"/folders/{reports['id']}"), headers=headers)
        assert resp.json()["direct_folder_count"] == 1

        resp = await client.delete(_main(facility.id, f"/folders/{child['id']}"), headers=headers)
        assert resp.status_code == 204

    async def test_cyclic_move_returns_conflict(self, client, facility, editor):
        headers = auth_headers(editor)
        parent = (await client.post(_main(facility.id, "/folders"), json={"name": "A"}, headers=headers)).json()
        child = (
            await client.post(_main(facility.id, "/folders"), json={"name": "B", "parent_id": parent["id"]}, headers=headers)
        ).json()

        resp = await client.post(
            _main(facility.id, f"/folders/{parent['id']}/move"),
            json={"target_folder_id": child["id"]},
            headers=headers,
        )

        assert resp.status_code == 409
        assert resp.json() == {
            "success": False,
            "code": "CYCLIC_MOVE",
            "detail": "A folder cannot be moved into itself or its subfolders",
        }

    async def test_delete_non_empty_folder_returns_conflict(self, client, facility, editor):
        headers = auth_headers(editor)
        parent = (await client.post(_main(facility.id, "/folders"), json={"name": "A"}, headers=headers)).json()
        await client.post(_main(facility.id, "/folders"), json={"name": "B", "parent_id": parent["id"]}, headers=headers)

        resp = await client.delete(_main(facility.id, f"/folders/{parent['id']}"), headers=headers)

        assert resp.status_code == 409
        assert resp.json()["code"] == "FOLDER_NOT_EMPTY"

    async def test_invalid_folder_name(self, client, facility, editor):
        resp = await client.post(
            _main(facility.id, "/folders"), json={"name": "a/b"}, headers=auth_headers(editor)
        )
        assert resp.status_code == 422
        assert resp.json()["code"] == "INVALID_NAME"
        assert resp.json()["field"] == "name"

    async def test_unknown_facility(self, client, editor):
        resp = await client.get(_main(9999), headers=auth_headers(editor))
        assert resp.status_code == 404
        assert resp.json()["code"] == "FACILITY_NOT_FOUND"

    async def test_unknown_folder(self, client, facility, editor):
        resp = await client.get(_main(facility.id, "/folders/9999"), headers=auth_headers(editor))
        assert resp.status_code == 404
        assert resp.json()["code"] == "FOLDER_NOT_FOUND"

    async def test_viewer_cannot_edit(self, client, facility, viewer):
        resp = await client.post(_main(facility.id, "/folders"), json={"name": "A"}, headers=auth_headers(viewer))
        assert resp.status_code == 403
        assert resp.json()["code"] == "PERMISSION_DENIED"

    async def test_outsider_cannot_list(self, client, facility, outsider):
        resp = await client.get(_main(facility.id), headers=auth_headers(outsider))
        assert resp.status_code == 403

    async def test_upload_list_download_delete(self, client, facility, editor, storage_dir):
        headers = auth_headers(editor)

        resp = await client.post(
            _main(facility.id, "/files"),
            files=[
                ("files", ("report.pdf", PDF_BYTES, "application/pdf")),
                ("files", ("notes.txt", TEXT_BYTES, "text/plain")),
            ],
            headers=headers,
        )
        assert resp.status_code == 201
        uploaded = resp.json()["files"]
        assert [f["name"] for f in uploaded] == ["report.pdf", "notes.txt"]
        pdf = uploaded[0]
        assert pdf["formatted_size"].endswith("B")
        assert pdf["can_preview"] is True

        resp = await client.get(_main(facility.id), params={"sort_by": "name"}, headers=headers)
        assert [f["name"] for f in resp.json()["files"]] == ["notes.txt", "report.pdf"]

        resp = await client.get(_main(facility.id, f"/files/{pdf['id']}/download"), headers=headers)
        assert resp.status_code == 200
        assert resp.content == PDF_BYTES
        assert resp.headers["content-type"] == "application/pdf"
        assert resp.headers["content-disposition"] == 'attachment; filename="report.pdf"'
        assert resp.headers["x-content-type-options"] == "nosniff"

        resp = await client.get(_main(facility.id, f"/files/{pdf['id']}/preview"), headers=headers)
        assert resp.status_code == 200
        assert resp.headers["content-disposition"].startswith("inline;")

        resp = await client.delete(_main(facility.id, f"/files/{pdf['id']}"), headers=headers)
        assert resp.status_code == 204
        resp = await client.get(_main(facility.id, f"/files/{pdf['id']}"), headers=headers)
        assert resp.status_code == 404

    async def test_upload_without_files(self, client, facility, editor):
        resp = await client.post(_main(facility.id, "/files"), data={"folder_id": ""}, headers=auth_headers(editor))
        assert resp.status_code == 422

    async def test_upload_too_many_files(self, client, facility, editor):
        files = [("files", (f"n{i}.txt", TEXT_BYTES, "text/plain")) for i in range(11)]
        resp = await client.post(_main(facility.id, "/files"), files=files, headers=auth_headers(editor))
        assert resp.status_code == 422
        assert resp.json()["code"] == "TOO_MANY_FILES"

    async def test_rename_and_move_file(self, client, facility, editor):
        headers = auth_headers(editor)
        folder = (await client.post(_main(facility.id, "/folders"), json={"name": "Target"}, headers=headers)).json()
        resp = await client.post(
            _main(facility.id, "/files"), files=[("files", ("a.pdf", PDF_BYTES, "application/pdf"))], headers=headers
        )
        file_id = resp.json()["files"][0]["id"]

        resp = await client.patch(_main(facility.id, f"/files/{file_id}"), json={"name": "b.pdf"}, headers=headers)
        assert resp.json()["name"] == "b.pdf"

        resp = await client.post(
            _main(facility.id, f"/files/{file_id}/move"), json={"target_folder_id": folder["id"]}, headers=headers
        )
        assert resp.json()["folder_id"] == folder["id"]

    async def test_corrupted_download_has_no_body(self, client, facility, editor):
        headers = auth_headers(editor)
        resp = await client.post(
            _main(facility.id, "/files"), files=[("files", ("a.pdf", PDF_BYTES, "application/pdf"))], headers=headers
        )
        uploaded = resp.json()["files"][0]
        key = f"documents/main/facility_{facility.id}"
        for path in (storage.storage_root() / key).iterdir():
            path.write_bytes(b"tampered")

        resp = await client.get(_main(facility.id, f"/files/{uploaded['id']}/download"), headers=headers)

        assert resp.status_code == 404
        assert resp.content == b""

    async def test_preview_not_supported(self, client, facility, editor, db):
        from facility_docs.models import DocumentFile

        headers = auth_headers(editor)
        resp = await client.post(
            _main(facility.id, "/files"), files=[("files", ("a.txt", TEXT_BYTES, "text/plain"))], headers=headers
        )
        file_id = resp.json()["files"][0]["id"]
        record = await db.get(DocumentFile, file_id)
        record.mime_type = "application/msword"
        await db.commit()

        resp = await client.get(_main(facility.id, f"/files/{file_id}/preview"), headers=headers)

        assert resp.status_code == 400
        assert resp.content == b""

    async def test_download_of_other_facility_file_has_no_body(self, client, facility, other_facility, editor, caplog):
        headers = auth_headers(editor)
        resp = await client.post(
            _main(other_facility.id, "/files"),
            files=[("files", ("a.pdf", PDF_BYTES, "application/pdf"))],
            headers=headers,
        )
        foreign_id = resp.json()["files"][0]["id"]

        resp = await client.get(_main(facility.id, f"/files/{foreign_id}/download"), headers=headers)

        assert resp.status_code == 404
        assert resp.content == b""
        [refusal] = [r for r in caplog.records if r.getMessage() == "Document download refused"]
        assert refusal.file_id == foreign_id
        assert refusal.facility_id == facility.id
        assert refusal.user_id == editor.id
        assert refusal.ip_address == "127.0.0.1"
        assert refusal.code == "FILE_NOT_FOUND"

    async def test_unassigned_viewer_download_has_no_body(self, client, facility, editor, outsider, caplog):
        resp = await client.post(
            _main(facility.id, "/files"),
            files=[("files", ("a.pdf", PDF_BYTES, "application/pdf"))],
            headers=auth_headers(editor),
        )
        file_id = resp.json()["files"][0]["id"]

        for action in ("download", "preview"):
            resp = await client.get(_main(facility.id, f"/files/{file_id}/{action}"), headers=auth_headers(outsider))
            assert resp.status_code == 403
            assert resp.content == b""

        refusals = [r for r in caplog.records if r.getMessage() == "Document download refused"]
        assert [(r.file_id, r.user_id, r.code) for r in refusals] == [(file_id, outsider.id, "PERMISSION_DENIED")] * 2
        assert all(r.ip_address == "127.0.0.1" for r in refusals)

    async def test_window_and_file_types(self, client, facility, editor):
        headers = auth_headers(editor)
        await client.post(_main(facility.id, "/folders"), json={"name": "Folder"}, headers=headers)
        await client.post(
            _main(facility.id, "/files"), files=[("files", ("a.pdf", PDF_BYTES, "application/pdf"))], headers=headers
        )

        resp = await client.get(_main(facility.id, "/window"), params={"limit": 1}, headers=headers)
        assert resp.json()["total_count"] == 2
        assert resp.json()["has_more"] is True

        resp = await client.get(_main(facility.id, "/file-types"), headers=headers)
        assert resp.json()[0]["extension"] == "pdf"

        resp = await client.get(_main(facility.id, "/tree"), headers=headers)
        assert [n["name"] for n in resp.json()] == ["Folder"]


class TestCategoryRoutes:
    async def test_contracts_upload_creates_root(self, client, facility, editor):
        headers = auth_headers(editor)

        resp = await client.post(
            _category(facility.id, "contracts", "/files"),
            files=[("files", ("lease.pdf", PDF_BYTES, "application/pdf"))],
            headers=headers,
        )
        assert resp.status_code == 201
        assert resp.json()["files"][0]["category"] == "contracts"

        resp = await client.get(_category(facility.id, "contracts"), headers=headers)
        body = resp.json()
        assert body["category"] == "contracts"
        assert body["current_folder"]["name"] == "Contracts"
        assert [f["name"] for f in body["files"]] == ["lease.pdf"]

        resp = await client.get(_main(facility.id), headers=headers)
        assert resp.json()["files"] == []

    async def test_lifeline_rejects_text(self, client, facility, editor):
        resp = await client.post(
            _category(facility.id, "lifeline_gas", "/files"),
            files=[("files", ("notes.txt", TEXT_BYTES, "text/plain"))],
            headers=auth_headers(editor),
        )
        assert resp.status_code == 422
        assert resp.json()["code"] == "INVALID_FILE_TYPE"

    async def test_unknown_category(self, client, facility, editor):
        resp = await client.get(_category(facility.id, "plumbing"), headers=auth_headers(editor))
        assert resp.status_code == 422

    async def test_category_folder_not_visible_in_main_tree(self, client, facility, editor):
        headers = auth_headers(editor)
        folder = (
            await client.post(_category(facility.id, "maintenance_exterior", "/folders"), json={"name": "Roof"}, headers=headers)
        ).json()
        assert folder["path"] == "Exterior/Roof"

        resp = await client.get(_main(facility.id, f"/folders/{folder['id']}"), headers=headers)
        assert resp.status_code == 404

    async def test_stats_and_search(self, client, facility, editor, viewer):
        headers = auth_headers(editor)
        folder = (
            await client.post(
                _category(facility.id, "lifeline_water", "/folders"), json={"name": "Pumps"}, headers=headers
            )
        ).json()
        await client.post(
            _category(facility.id, "lifeline_water", "/files"),
            files=[("files", ("pump-check.pdf", PDF_BYTES, "application/pdf"))],
            data={"folder_id": str(folder["id"])},
            headers=headers,
        )

        resp = await client.get(_category(facility.id, "lifeline_water", "/stats"), headers=auth_headers(viewer))
        assert resp.status_code == 200
        stats = resp.json()
        assert stats["file_count"] == 1
        assert stats["total_size"] == len(PDF_BYTES)
        assert [f["name"] for f in stats["recent_files"]] == ["pump-check.pdf"]

        resp = await client.get(
            _category(facility.id, "lifeline_water", "/search"), params={"query": "pump"}, headers=headers
        )
        assert resp.status_code == 200
        body = resp.json()
        assert [f["name"] for f in body["files"]] == ["pump-check.pdf"]
        assert [f["name"] for f in body["folders"]] == ["Pumps"]
        assert body["total_count"] == 2

    async def test_search_requires_query(self, client, facility, editor):
        resp = await client.get(_category(facility.id, "contracts", "/search"), headers=auth_headers(editor))
        assert resp.status_code == 422

    async def test_stats_denied_to_outsider(self, client, facility, outsider):
        resp = await client.get(_category(facility.id, "contracts", "/stats"), headers=auth_headers(outsider))
        assert resp.status_code == 403

    async def test_main_tree_has_no_category_stats(self, client, facility, editor):
        resp = await client.get(_main(facility.id, "/stats"), headers=auth_headers(editor))
        assert resp.status_code in (404, 405)

    async def test_list_categories(self, client, editor):
        resp = await client.get("/categories", headers=auth_headers(editor))
        assert resp.status_code == 200
        assert len(resp.json()) == 10

        resp = await client.get("/categories", params={"area": "maintenance"}, headers=auth_headers(editor))
        assert [c["key"] for c in resp.json()] == ["maintenance_exterior", "maintenance_interior", "maintenance_other"]
        assert resp.json()[0]["name"] == "Exterior"

    async def test_categories_require_token(self, client):
        resp = await client.get("/categories")
        assert resp.status_code in (401, 403)


class TestPreferenceRoutes:
    async def test_preferences_drive_listing(self, client, facility, editor):
        headers = auth_headers(editor)
        url = f"/facilities/{facility.id}/document-preferences"

        resp = await client.put(url, json={"per_page": 1, "sort_by": "name"}, headers=headers)
        assert resp.status_code == 200
        assert resp.json()["per_page"] == 1

        await client.post(
            _main(facility.id, "/files"),
            files=[("files", ("a.txt", TEXT_BYTES, "text/plain")), ("files", ("b.txt", TEXT_BYTES, "text/plain"))],
            headers=headers,
        )
        resp = await client.get(_main(facility.id), headers=headers)
        assert resp.json()["pagination"]["per_page"] == 1
        assert resp.json()["pagination"]["last_page"] == 2

        resp = await client.get(_main(facility.id), params={"per_page": 5}, headers=headers)
        assert resp.json()["pagination"]["per_page"] == 5

        resp = await client.delete(url, headers=headers)
        assert resp.status_code == 204
        resp = await client.get(url, headers=headers)
        assert resp.json()["per_page"] is None
