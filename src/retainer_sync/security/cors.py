"""
CORS policy for the browser-facing handlers.

Two policies exist:

- strict: ``Access-Control-Allow-Origin`` echoes the request Origin only when it
  is on the allow-list.
- permissive: the Origin is echoed when the allow-list is empty or contains it,
  and ``*`` is answered when the request carries no Origin.

Both policies set ``Vary: Origin``.
"""

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from aws_lambda_powertools.event_handler import APIGatewayRestResolver, Response
from aws_lambda_powertools.event_handler.middlewares import NextMiddleware

from retainer_sync.handlers.models.env_vars import get_handler_env_vars

DEFAULT_ALLOWED_HEADERS = 'Content-Type'


@dataclass(frozen=True)
class CorsPolicy:
    allowed_origins: List[str] = field(default_factory=list)
    methods: str = 'POST, OPTIONS'
    headers: str = DEFAULT_ALLOWED_HEADERS
    permissive: bool = False
    max_age: Optional[int] = None

    def allow_origin(self, origin: Optional[str]) -> Optional[str]:
        """Value of ``Access-Control-Allow-Origin`` for ``origin``, or None to omit the header."""
        if self.permissive:
            if not origin:
                return '*'
            if not self.allowed_origins or origin in self.allowed_origins:
                return origin
            return None
        if origin and origin in self.allowed_origins:
            return origin
        return None

    def headers_for(self, origin: Optional[str]) -> Dict[str, str]:
        headers = {
            'Access-Control-Allow-Methods': self.methods,
            'Access-Control-Allow-Headers': self.headers,
        }
        allowed = self.allow_origin(origin)
        if allowed:
            headers['Access-Control-Allow-Origin'] = allowed
        headers['Vary'] = 'Origin'
        if self.max_age is not None:
            headers['Access-Control-Max-Age'] = str(self.max_age)
        return headers


def cors_middleware(
    methods: str,
    permissive: bool = False,
    max_age: Optional[int] = None,
) -> Callable[[APIGatewayRestResolver, NextMiddleware], Response]:
    """
    Build a resolver middleware that decorates every response with CORS headers.

    The allow-list comes from ``ALLOWED_ORIGINS``; the environment model is
    cached, so changes take effect on the next cold start.
    """

    def middleware(app: APIGatewayRestResolver, next_middleware: NextMiddleware) -> Response:
        policy = CorsPolicy(
            allowed_origins=get_handler_env_vars().allowed_origins,
            methods=methods,
            permissive=permissive,
            max_age=max_age,
        )
        response = next_middleware(app)
        response.headers.update(policy.headers_for(app.current_event.get_header_value('Origin')))
        return response

    return middleware
