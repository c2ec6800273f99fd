"""
Request-scoped context.

A RequestContext is created once per HTTP request by the audit middleware,
stored in the ASGI scope state, and handed to dependencies and handlers
explicitly. It carries who is calling (once authenticated) and what the
audit middleware should record when the response is finished.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional
from school_backend.app.core.config import settings


def client_ip(scope: dict) -> str:
    """Client address for rate limiting and auditing."""
    if settings.trust_proxy:
        for name, value in scope.get("headers", []):
            if name == b"x-forwarded-for":
                # One trusted hop: the proxy appends the real client last
                return value.decode("latin-1").split(",")[-1].strip()
    client = scope.get("client")
    return client[0] if client else "unknown"


def _header(scope: dict, wanted: bytes) -> Optional[str]:
    for name, value in scope.get("headers", []):
        if name == wanted:
            return value.decode("latin-1")
    return None


@dataclass
class RequestContext:
    ip: str
    user_agent: str
    method: str
    path: str
    user: Optional[Dict[str, Any]] = None
    audit_action: Optional[str] = None
    audit_details: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_scope(cls, scope: dict) -> "RequestContext":
        return cls(
            ip=client_ip(scope),
            user_agent=_header(scope, b"user-agent") or "unknown",
            method=scope.get("method", ""),
            path=scope.get("path", ""),
        )

    @property
    def user_id(self) -> Optional[int]:
        return self.user.get("id") if self.user else None

    @property
    def username(self) -> str:
        return self.user.get("username", "anonymous") if self.user else "anonymous"

    @property
    def role(self) -> Optional[str]:
        return self.user.get("role") if self.user else None
