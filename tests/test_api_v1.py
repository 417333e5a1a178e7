from __future__ import annotations

from pathlib import Path

from fastapi.testclient import TestClient

from app.api import deps
from app.core.config import get_settings
from app.ingest.process import ProcessResult
from app.main import create_app
from tests.conftest import CDN_BASE, auth_headers, staged_files
from tests.fakes import FakeProcessRunner

MP4_BYTES = b"\x00\x00\x00\x18ftypmp42" + b"\x00" * 128


def _create_video(client: TestClient, headers: dict[str, str], title: str = "Boots") -> dict:
    resp = client.post("/v1/videos", json={"title": title, "description": "demo"}, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()


def test_v1_health_ok(client):
    resp = client.get("/v1/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


def test_v1_ready_checks_database(client):
    resp = client.get("/v1/ready")
    assert resp.status_code == 200


def test_videos_require_bearer_token(client):
    resp = client.post("/v1/videos", json={"title": "x"})
    assert resp.status_code == 401
    assert resp.json()["detail"] == "missing_authorization"


def test_create_get_and_list_videos(client, owner_headers, intruder_headers):
    created = _create_video(client, owner_headers)
    assert created["user_id"] == "user-owner"
    assert created["video_url"] is None
    assert created["thumbnail_url"] is None

    fetched = client.get(f"/v1/videos/{created['id']}", headers=owner_headers)
    assert fetched.status_code == 200
    assert fetched.json()["title"] == "Boots"

    listed = client.get("/v1/videos", headers=owner_headers)
    assert [item["id"] for item in listed.json()] == [created["id"]]
    assert client.get("/v1/videos", headers=intruder_headers).json() == []

    forbidden = client.get(f"/v1/videos/{created['id']}", headers=intruder_headers)
    assert forbidden.status_code == 403
    assert forbidden.json()["detail"] == "forbidden"


def test_upload_video_publishes_and_updates_record(client, owner_headers, fake_runner, settings):
    video = _create_video(client, owner_headers)

    resp = client.post(
        f"/v1/videos/{video['id']}/upload",
        files={"video": ("clip.mp4", MP4_BYTES, "video/mp4")},
        headers=owner_headers,
    )

    assert resp.status_code == 200, resp.text
    payload = resp.json()
    assert payload["video_url"].startswith(f"{CDN_BASE}/landscape/")
    key = payload["video_url"][len(CDN_BASE) + 1 :]
    stored = Path(settings.local_storage_base_path) / key
    assert stored.read_bytes() == b"faststart:" + MP4_BYTES
    assert fake_runner.tools == ["ffprobe", "ffmpeg"]
    assert staged_files(settings) == []

    fetched = client.get(f"/v1/videos/{video['id']}", headers=owner_headers).json()
    assert fetched["video_url"] == payload["video_url"]


def test_upload_video_rejects_wrong_type_without_running_tools(client, owner_headers, fake_runner, settings):
    video = _create_video(client, owner_headers)

    resp = client.post(
        f"/v1/videos/{video['id']}/upload",
        files={"video": ("clip.avi", b"RIFF....AVI ", "video/avi")},
        headers=owner_headers,
    )

    assert resp.status_code == 415
    assert resp.json()["detail"] == "unsupported_media_type"
    assert fake_runner.calls == []
    assert staged_files(settings) == []


def test_upload_video_missing_field_is_bad_request(client, owner_headers):
    video = _create_video(client, owner_headers)

    resp = client.post(
        f"/v1/videos/{video['id']}/upload",
        files={"other": ("clip.mp4", MP4_BYTES, "video/mp4")},
        headers=owner_headers,
    )

    assert resp.status_code == 400
    assert resp.json()["message"] == "video_file_missing"


def test_upload_video_by_non_owner_is_forbidden(client, owner_headers, intruder_headers, fake_runner, settings):
    video = _create_video(client, owner_headers)

    resp = client.post(
        f"/v1/videos/{video['id']}/upload",
        files={"video": ("clip.mp4", MP4_BYTES, "video/mp4")},
        headers=intruder_headers,
    )

    assert resp.status_code == 403
    assert fake_runner.calls == []
    assert not Path(settings.temp_dir).exists()


def test_upload_video_unknown_and_malformed_ids(client, owner_headers):
    missing = client.post(
        "/v1/videos/00000000-0000-4000-8000-000000000000/upload",
        files={"video": ("clip.mp4", MP4_BYTES, "video/mp4")},
        headers=owner_headers,
    )
    assert missing.status_code == 404

    malformed = client.post(
        "/v1/videos/not-a-uuid/upload",
        files={"video": ("clip.mp4", MP4_BYTES, "video/mp4")},
        headers=owner_headers,
    )
    assert malformed.status_code == 400


def test_upload_video_probe_failure_is_reported(client, owner_headers, fake_runner, settings):
    fake_runner.probe_result = ProcessResult(exit_code=1, stdout="", stderr="Invalid data found when processing input")
    video = _create_video(client, owner_headers)

    resp = client.post(
        f"/v1/videos/{video['id']}/upload",
        files={"video": ("tiny.mp4", b"hello", "video/mp4")},
        headers=owner_headers,
    )

    assert resp.status_code == 422
    assert resp.json() == {"detail": "probe_failed", "message": "Invalid data found when processing input"}
    assert client.get(f"/v1/videos/{video['id']}", headers=owner_headers).json()["video_url"] is None
    assert staged_files(settings) == []


def test_upload_video_over_limit_is_rejected(monkeypatch, configure_environment):
    monkeypatch.setenv("TUBELY_MAX_VIDEO_UPLOAD_BYTES", "16")
    get_settings.cache_clear()
    runner = FakeProcessRunner()
    app = create_app()
    app.dependency_overrides[deps.get_process_runner] = lambda: runner
    headers = auth_headers("user-owner")

    with TestClient(app) as client:
        video = _create_video(client, headers)
        at_limit = client.post(
            f"/v1/videos/{video['id']}/upload",
            files={"video": ("clip.mp4", b"x" * 16, "video/mp4")},
            headers=headers,
        )
        over_limit = client.post(
            f"/v1/videos/{video['id']}/upload",
            files={"video": ("clip.mp4", b"x" * 17, "video/mp4")},
            headers=headers,
        )

    assert at_limit.status_code == 200
    assert over_limit.status_code == 413
    assert over_limit.json()["detail"] == "payload_too_large"


def test_thumbnail_upload_and_read_back(client, owner_headers, intruder_headers):
    video = _create_video(client, owner_headers)
    png = b"\x89PNG\r\n\x1a\nfake"

    forbidden = client.post(
        f"/v1/thumbnail_upload/{video['id']}",
        files={"thumbnail": ("thumb.png", png, "image/png")},
        headers=intruder_headers,
    )
    assert forbidden.status_code == 403
    assert client.get(f"/v1/thumbnails/{video['id']}").status_code == 404

    resp = client.post(
        f"/v1/thumbnail_upload/{video['id']}",
        files={"thumbnail": ("thumb.png", png, "image/png")},
        headers=owner_headers,
    )
    assert resp.status_code == 200, resp.text
    assert resp.json()["thumbnail_url"] == f"http://testserver/assets/{video['id']}.png"

    served = client.get(f"/v1/thumbnails/{video['id']}")
    assert served.status_code == 200
    assert served.content == png
    assert served.headers["content-type"] == "image/png"
    assert served.headers["cache-control"] == "no-store"

    static = client.get(f"/assets/{video['id']}.png")
    assert static.status_code == 200
    assert static.content == png


def test_thumbnail_rejects_unsupported_type(client, owner_headers):
    video = _create_video(client, owner_headers)

    resp = client.post(
        f"/v1/thumbnail_upload/{video['id']}",
        files={"thumbnail": ("thumb.gif", b"GIF89a", "image/gif")},
        headers=owner_headers,
    )

    assert resp.status_code == 415


def test_admin_env_check_requires_scope(client, owner_headers):
    resp = client.get("/v1/admin/env-check", headers=owner_headers)
    assert resp.status_code == 403


def test_openapi_lists_ingestion_routes(client):
    resp = client.get("/openapi.json")
    assert resp.status_code == 200
    paths = resp.json()["paths"]
    assert "/v1/videos/{video_id}/upload" in paths
    assert "/v1/thumbnail_upload/{video_id}" in paths
    assert "/v1/thumbnails/{video_id}" in paths


def test_admin_env_check_reports_toolchain(client, fake_runner):
    resp = client.get("/v1/admin/env-check", headers=auth_headers("ops", scopes=["admin"]))
    assert resp.status_code == 200
    assert resp.json() == {"ffmpeg": True, "ffprobe": True}
    assert fake_runner.calls == [["ffmpeg", "-version"], ["ffprobe", "-version"]]


def test_request_id_is_echoed(client):
    resp = client.get("/v1/health", headers={"X-Request-ID": "req-123"})
    assert resp.headers["x-request-id"] == "req-123"
    assert client.get("/v1/health").headers["x-request-id"]


def test_spooled_upload_from_non_owner_never_reaches_staging(client, owner_headers, intruder_headers, fake_runner, settings):
    video = _create_video(client, owner_headers)
    body = MP4_BYTES + b"\x00" * (2 * 1024 * 1024)

    resp = client.post(
        f"/v1/videos/{video['id']}/upload",
        files={"video": ("clip.mp4", body, "video/mp4")},
        headers=intruder_headers,
    )

    assert resp.status_code == 403
    assert fake_runner.calls == []
    assert not Path(settings.temp_dir).exists()
