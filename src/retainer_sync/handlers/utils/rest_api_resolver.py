"""
REST API resolver utilities for the retainer handlers.

Every handler owns one resolver serving a single path. Besides its business
routes it answers CORS preflights with 204 and any other method with 405.
"""

from typing import Optional, Sequence

from aws_lambda_powertools.event_handler import APIGatewayRestResolver, Response

from retainer_sync.handlers.utils.http import empty_response
from retainer_sync.security.cors import cors_middleware

# API path constants
INTAKE_UPSERT_PATH = '/api/retainer/intake-upsert'
PROFILE_UPDATE_PATH = '/api/retainer/profile-update'
CUSTOMER_CREATE_PATH = '/api/retainer/customer-create'
RECORD_PATH = '/api/retainer/record'
ORDER_WEBHOOK_PATH = '/api/retainer/order-webhook'

ALL_METHODS = ('GET', 'POST', 'PUT', 'PATCH', 'DELETE', 'OPTIONS')


def create_resolver(
    cors_methods: Optional[str] = None,
    permissive: bool = False,
    max_age: Optional[int] = None,
) -> APIGatewayRestResolver:
    """
    Create a resolver, optionally decorated with the CORS middleware.

    Args:
        cors_methods: Value of ``Access-Control-Allow-Methods``; None disables CORS
        permissive: Use the permissive origin policy
        max_age: Value of ``Access-Control-Max-Age`` in seconds
    """
    app = APIGatewayRestResolver()
    if cors_methods:
        app.use(middlewares=[cors_middleware(cors_methods, permissive=permissive, max_age=max_age)])
    return app


def register_method_guards(
    app: APIGatewayRestResolver,
    path: str,
    allowed_methods: Sequence[str],
    preflight: bool = True,
) -> None:
    """Answer preflights with 204 and methods outside ``allowed_methods`` with 405."""
    handled = set(allowed_methods)

    if preflight:
        handled.add('OPTIONS')

        def preflight_route() -> Response:
            return empty_response(204)

        app.route(path, method='OPTIONS')(preflight_route)

    rejected = [method for method in ALL_METHODS if method not in handled]

    def method_not_allowed() -> Response:
        return empty_response(405)

    app.route(path, method=rejected)(method_not_allowed)
