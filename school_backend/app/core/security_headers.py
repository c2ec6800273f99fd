"""
Security headers added to every response.

The set mirrors what helmet sends by default, with a content security policy
that lets the frontend load uploaded images and call back into this server.
"""

from typing import Callable, Dict, Optional
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from school_backend.app.core.config import settings

# Interactive docs pull their assets from a CDN
DOCS_PATHS = ("/docs", "/redoc", "/openapi.json")


def content_security_policy(public_url: str) -> str:
    directives = {
        "default-src": ["'self'"],
        "style-src": ["'self'", "'unsafe-inline'"],
        "script-src": ["'self'"],
        "img-src": ["'self'", "data:", public_url],
        "connect-src": ["'self'", public_url],
        "base-uri": ["'self'"],
        "font-src": ["'self'", "https:", "data:"],
        "form-action": ["'self'"],
        "frame-ancestors": ["'self'"],
        "object-src": ["'none'"],
        "script-src-attr": ["'none'"],
    }
    return "; ".join(f"{name} {' '.join(sources)}" for name, sources in directives.items())


def security_headers(public_url: str) -> Dict[str, str]:
    return {
        "Content-Security-Policy": content_security_policy(public_url),
        "Cross-Origin-Opener-Policy": "same-origin",
        "Origin-Agent-Cluster": "?1",
        "Referrer-Policy": "no-referrer",
        "Strict-Transport-Security": "max-age=15552000; includeSubDomains",
        "X-Content-Type-Options": "nosniff",
        "X-DNS-Prefetch-Control": "off",
        "X-Download-Options": "noopen",
        "X-Frame-Options": "SAMEORIGIN",
        "X-Permitted-Cross-Domain-Policies": "none",
        "X-XSS-Protection": "0",
    }


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, public_url: Optional[str] = None):
        super().__init__(app)
        self.headers = security_headers(public_url or settings.public_url)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)

        for name, value in self.headers.items():
            if name == "Content-Security-Policy" and request.url.path.startswith(DOCS_PATHS):
                continue
            response.headers[name] = value

        return response
