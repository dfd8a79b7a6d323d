"""
Greeting handler.
"""

from fastapi import Request, Response
from fastapi.responses import PlainTextResponse

from ..auth import Claims
from .base import Behavior


class HelloBehavior(Behavior):
    """Greets the caller by the email claim of their verified token."""

    async def respond(self, request: Request, claims: Claims) -> Response:
        # Tokens without an email claim are greeted by subject.
        identity = claims.email or claims.subject or ""
        self.logger.info("Greeting caller", subject=claims.subject)
        return PlainTextResponse(f"Hello, {identity}!")
