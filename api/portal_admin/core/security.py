from typing import Any

import httpx
from fastapi import Depends, Header, HTTPException, status

from portal_admin.core.auth import ADMIN_READ_SCOPE, ADMIN_WRITE_SCOPE, Principal
from portal_admin.core.config import Settings, get_settings

DEFAULT_ROLE = "job-seeker"

ROLE_SCOPES: dict[str, set[str]] = {
    "job-seeker": set(),
    "employer": set(),
    "hr": set(),
    "admin": {ADMIN_READ_SCOPE, ADMIN_WRITE_SCOPE},
}


async def get_admin_principal(
    settings: Settings = Depends(get_settings),
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> Principal:
    if not authorization or not authorization.lower().startswith("bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="admin auth requires bearer token",
        )

    token = authorization.split(" ", maxsplit=1)[1].strip()
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="empty bearer token")

    if not settings.auth_url or not settings.auth_api_key:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="identity provider is not configured",
        )

    user = await _fetch_identity_user(
        auth_url=settings.auth_url,
        auth_api_key=settings.auth_api_key,
        token=token,
        timeout_seconds=settings.auth_timeout_seconds,
    )
    user_id = user.get("id")
    if not isinstance(user_id, str) or not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid bearer token")

    role = _resolve_role(user)
    email = user.get("email")

    return Principal(
        subject=user_id,
        role=role,
        email=email if isinstance(email, str) else None,
        scopes=set(ROLE_SCOPES.get(role, ROLE_SCOPES[DEFAULT_ROLE])),
    )


async def _fetch_identity_user(
    *,
    auth_url: str,
    auth_api_key: str,
    token: str,
    timeout_seconds: float,
) -> dict[str, Any]:
    headers = {
        "Authorization": f"Bearer {token}",
        "apikey": auth_api_key,
    }
    url = f"{auth_url.rstrip('/')}/auth/v1/user"

    try:
        async with httpx.AsyncClient(timeout=timeout_seconds) as client:
            response = await client.get(url, headers=headers)
    except httpx.HTTPError as exc:  # pragma: no cover - network dependent
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="identity verification unavailable",
        ) from exc

    if response.status_code in {401, 403}:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid bearer token")
    if response.status_code != 200:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="identity verification failed",
        )

    return response.json()


def _resolve_role(user: dict[str, Any]) -> str:
    # app_metadata takes precedence over user_metadata.
    for key in ("app_metadata", "user_metadata"):
        metadata = user.get(key)
        if isinstance(metadata, dict):
            role = metadata.get("role")
            if isinstance(role, str) and role:
                return role
    return DEFAULT_ROLE
