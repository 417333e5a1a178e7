import asyncio
import os
from pathlib import Path

import jwt
import pytest
from fastapi.testclient import TestClient

from app.api import deps
from app.core.config import get_settings
from app.main import create_app
from tests.fakes import FakeProcessRunner

JWT_SECRET = "test-secret"
JWT_ISSUER = "tubely-test"
JWT_AUDIENCE = "tubely"
CDN_BASE = "https://cdn.example.test"


def pytest_configure(config):
    config.addinivalue_line(
        "markers",
        "no_default_env: disable the default Tubely environment bootstrap fixture for tests that manage their own .env",
    )


@pytest.fixture(autouse=True)
def configure_environment(request, monkeypatch, tmp_path):
    # get_settings loads .env and aliases straight into os.environ.
    saved_environ = os.environ.copy()
    # Undo monkeypatch first so its teardown cannot re-set values captured from a loaded .env.
    request.addfinalizer(lambda: (monkeypatch.undo(), os.environ.clear(), os.environ.update(saved_environ)))

    if request.node.get_closest_marker("no_default_env"):
        get_settings.cache_clear()
        yield
        get_settings.cache_clear()
        return

    monkeypatch.setenv("TUBELY_ENV", "test")
    monkeypatch.setenv("TUBELY_LOG_LEVEL", "debug")
    monkeypatch.setenv("TUBELY_DB_URL", f"sqlite+aiosqlite:///{tmp_path / 'tubely_test.db'}")
    monkeypatch.setenv("TUBELY_ASSETS_ROOT", str(tmp_path / "assets"))
    monkeypatch.setenv("TUBELY_TEMP_DIR", str(tmp_path / "staging"))
    monkeypatch.setenv("TUBELY_STORAGE_BACKEND", "local")
    monkeypatch.setenv("TUBELY_LOCAL_STORAGE_BASE_PATH", str(tmp_path / "objects"))
    monkeypatch.setenv("TUBELY_STORAGE_PUBLIC_BASE", CDN_BASE)
    monkeypatch.setenv("TUBELY_PUBLIC_BASE_URL", "http://testserver")
    monkeypatch.setenv("TUBELY_JWT_SECRET", JWT_SECRET)
    monkeypatch.setenv("TUBELY_JWT_ISSUER", JWT_ISSUER)
    monkeypatch.setenv("TUBELY_JWT_AUDIENCE", JWT_AUDIENCE)

    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture()
def settings(configure_environment):
    return get_settings()


@pytest.fixture()
def fake_runner() -> FakeProcessRunner:
    return FakeProcessRunner()


@pytest.fixture()
def client(configure_environment, fake_runner):
    app = create_app()
    app.dependency_overrides[deps.get_process_runner] = lambda: fake_runner
    with TestClient(app) as client:
        yield client


def build_token(user_id: str, *, scopes: list[str] | None = None) -> str:
    payload: dict[str, object] = {"sub": user_id, "iss": JWT_ISSUER, "aud": JWT_AUDIENCE}
    if scopes:
        payload["scopes"] = scopes
    return jwt.encode(payload, JWT_SECRET, algorithm="HS256")


def auth_headers(user_id: str, *, scopes: list[str] | None = None) -> dict[str, str]:
    return {"Authorization": f"Bearer {build_token(user_id, scopes=scopes)}"}


@pytest.fixture()
def owner_headers() -> dict[str, str]:
    return auth_headers("user-owner")


@pytest.fixture()
def intruder_headers() -> dict[str, str]:
    return auth_headers("user-intruder")


def staged_files(settings) -> list[Path]:
    root = Path(settings.temp_dir)
    if not root.exists():
        return []
    return sorted(p for p in root.iterdir() if p.is_file())


def run(coro):
    return asyncio.run(coro)
