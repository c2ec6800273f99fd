"""
Audit middleware.

Pure ASGI middleware that wraps the response ``send`` channel, so the status
recorded is the one actually sent to the client. Routes opt in by declaring
an action with the ``audit_action`` dependency; the entry is scheduled only
after the handler has finished sending.
"""

from typing import Any
from fastapi import Depends
from starlette.types import ASGIApp, Message, Receive, Scope, Send
from school_backend.app.core.context import RequestContext
from school_backend.app.core.dependencies import get_request_context
from school_backend.app.services.audit import AuditTrail, build_entry


class AuditMiddleware:
    def __init__(self, app: ASGIApp, audit_trail: AuditTrail):
        self.app = app
        self.audit_trail = audit_trail

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        context = RequestContext.from_scope(scope)
        scope.setdefault("state", {})["context"] = context
        status_code = None

        async def send_wrapper(message: Message) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message["status"]
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            if context.audit_action:
                # An exception escaping the app means the error middleware answers 500
                entry = build_entry(
                    context,
                    context.audit_action,
                    status_code if status_code is not None else 500,
                    context.audit_details,
                )
                self.audit_trail.submit(entry)


def audit_action(action: str, **details: Any):
    """
    Mark the current request for auditing.

    Usage:
        @router.get("/stats", dependencies=[Depends(audit_action(AuditAction.VIEW_STATS))])
    """
    async def mark(context: RequestContext = Depends(get_request_context)) -> RequestContext:
        context.audit_action = action
        context.audit_details.update(details)
        return context

    return mark
