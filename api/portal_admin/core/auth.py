from dataclasses import dataclass, field

ADMIN_READ_SCOPE = "admin:read"
ADMIN_WRITE_SCOPE = "admin:write"


@dataclass(slots=True)
class Principal:
    subject: str
    scopes: set[str] = field(default_factory=set)
    role: str | None = None
    email: str | None = None

    @property
    def actor_id(self) -> str:
        return self.subject

    def require_scopes(self, required: set[str]) -> None:
        missing = required - self.scopes
        if missing:
            raise PermissionError(f"missing required scopes: {sorted(missing)}")
