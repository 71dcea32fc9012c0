#!/usr/bin/env python3
"""Local stand-in for the identity provider's /auth/v1/user endpoint."""

from __future__ import annotations

import argparse
import json
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

# token -> (user id, role)
MOCK_USERS: dict[str, tuple[str, str]] = {
    "admin-token": ("11111111-1111-1111-1111-111111111111", "admin"),
    "hr-token": ("22222222-2222-2222-2222-222222222222", "hr"),
    "employer-token": ("33333333-3333-3333-3333-333333333333", "employer"),
    "job-seeker-token": ("44444444-4444-4444-4444-444444444444", "job-seeker"),
}


def user_payload_for_token(token: str) -> dict[str, object] | None:
    match = MOCK_USERS.get(token)
    if match is None:
        return None
    user_id, role = match
    return {
        "id": user_id,
        "email": f"{role}@portal.test",
        "app_metadata": {"role": role},
        "user_metadata": {},
    }


class MockIdentityHandler(BaseHTTPRequestHandler):
    server_version = "MockIdentity/1.0"

    def do_GET(self) -> None:  # noqa: N802 - stdlib handler signature
        if self.path == "/healthz":
            self._write_json(HTTPStatus.OK, {"status": "ok"})
            return

        if self.path != "/auth/v1/user":
            self._write_json(HTTPStatus.NOT_FOUND, {"detail": "not found"})
            return

        if not self.headers.get("apikey"):
            self._write_json(HTTPStatus.UNAUTHORIZED, {"detail": "missing apikey header"})
            return

        authorization = self.headers.get("Authorization", "")
        if not authorization.lower().startswith("bearer "):
            self._write_json(HTTPStatus.UNAUTHORIZED, {"detail": "missing bearer token"})
            return

        user = user_payload_for_token(authorization.split(" ", maxsplit=1)[1].strip())
        if user is None:
            self._write_json(HTTPStatus.UNAUTHORIZED, {"detail": "invalid token"})
            return

        self._write_json(HTTPStatus.OK, user)

    def log_message(self, _: str, *args: object) -> None:
        if args:
            print("mock-identity:", *args)

    def _write_json(self, status: HTTPStatus, payload: dict[str, object]) -> None:
        raw = json.dumps(payload).encode("utf-8")
        self.send_response(status.value)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(raw)))
        self.end_headers()
        self.wfile.write(raw)


def main() -> None:
    parser = argparse.ArgumentParser(description="Serve a mock identity provider /auth/v1/user endpoint.")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=54321)
    args = parser.parse_args()

    server = ThreadingHTTPServer((args.host, args.port), MockIdentityHandler)
    print(f"mock-identity listening on http://{args.host}:{args.port}", flush=True)
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        pass
    finally:
        server.server_close()


if __name__ == "__main__":
    main()
