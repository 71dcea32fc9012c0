from __future__ import annotations

import asyncio
import importlib.util
import threading
from collections.abc import Iterator
from http.server import ThreadingHTTPServer
from pathlib import Path

import pytest
from fastapi import HTTPException

import portal_admin.core.security as security

SCRIPT_PATH = Path(__file__).resolve().parents[2] / "scripts" / "mock_identity_provider.py"


def _load_mock_module():
    spec = importlib.util.spec_from_file_location("mock_identity_provider", SCRIPT_PATH)
    assert spec is not None and spec.loader is not None
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


@pytest.fixture
def identity_url() -> Iterator[str]:
    module = _load_mock_module()
    server = ThreadingHTTPServer(("127.0.0.1", 0), module.MockIdentityHandler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        yield f"http://127.0.0.1:{server.server_address[1]}/"
    finally:
        server.shutdown()
        server.server_close()


def test_fetch_identity_user_returns_provider_payload(identity_url: str) -> None:
    user = asyncio.run(
        security._fetch_identity_user(
            auth_url=identity_url,
            auth_api_key="anon-key",
            token="admin-token",
            timeout_seconds=2.0,
        )
    )

    assert user["id"] == "11111111-1111-1111-1111-111111111111"
    assert security._resolve_role(user) == "admin"


def test_fetch_identity_user_maps_rejected_token_to_401(identity_url: str) -> None:
    with pytest.raises(HTTPException) as exc_info:
        asyncio.run(
            security._fetch_identity_user(
                auth_url=identity_url,
                auth_api_key="anon-key",
                token="forged-token",
                timeout_seconds=2.0,
            )
        )
    assert exc_info.value.status_code == 401


def test_fetch_identity_user_maps_unexpected_status_to_503(identity_url: str) -> None:
    with pytest.raises(HTTPException) as exc_info:
        asyncio.run(
            security._fetch_identity_user(
                auth_url=f"{identity_url}missing",
                auth_api_key="anon-key",
                token="admin-token",
                timeout_seconds=2.0,
            )
        )
    assert exc_info.value.status_code == 503
