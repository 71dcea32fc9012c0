#!/usr/bin/env python3
"""Emit deterministic SQL that grants a portal role to an existing user."""

from __future__ import annotations

import argparse

ROLES = ("job-seeker", "employer", "hr", "admin")


def _quote_sql(value: str) -> str:
    escaped = value.replace("'", "''")
    return f"'{escaped}'"


def render_sql(*, role: str, user_id: str | None, email: str | None, actor: str) -> str:
    role_value = _quote_sql(role)
    actor_value = _quote_sql(actor)

    if user_id:
        target_where = f"id = {_quote_sql(user_id)}::uuid"
        target_payload = f"jsonb_build_object('user_id', {_quote_sql(user_id)}, 'role', {role_value})"
    elif email:
        target_where = f"lower(email) = lower({_quote_sql(email)})"
        target_payload = f"jsonb_build_object('email', {_quote_sql(email)}, 'role', {role_value})"
    else:
        raise ValueError("either user_id or email is required")

    return f"""-- Portal role bootstrap SQL
-- Run this in a privileged session on the database shared with the identity provider.

update users
set role = {role_value}, updated_at = now()
where {target_where} and deleted_at is null;

update auth.users
set raw_app_meta_data = coalesce(raw_app_meta_data, '{{}}'::jsonb) || jsonb_build_object('role', {role_value})
where {target_where};

insert into moderation_events (entity_type, entity_id, event_type, actor_id, payload)
select 'user', id, 'role_bootstrap', {actor_value}, {target_payload}
from users
where {target_where} and deleted_at is null;
"""


def main() -> None:
    parser = argparse.ArgumentParser(description="Emit SQL to grant a portal role to an existing user.")
    parser.add_argument(
        "--role",
        choices=ROLES,
        default="admin",
        help="Role to assign in users.role and auth.users.raw_app_meta_data.role",
    )
    identity_group = parser.add_mutually_exclusive_group(required=True)
    identity_group.add_argument("--user-id", help="Portal user id (UUID)")
    identity_group.add_argument("--email", help="Portal user email")
    parser.add_argument(
        "--actor",
        default="system",
        help="Actor recorded on the moderation event",
    )
    args = parser.parse_args()

    print(
        render_sql(
            role=args.role,
            user_id=args.user_id,
            email=args.email,
            actor=args.actor,
        )
    )


if __name__ == "__main__":
    main()
