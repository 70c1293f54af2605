"""
Customer Create Handler - storefront account creation with a chosen password.
"""

from typing import Any, Dict

from aws_lambda_powertools.event_handler import Response
from aws_lambda_powertools.logging import correlation_paths
from aws_lambda_powertools.utilities.typing import LambdaContext

from retainer_sync.dal.shopify_client import ShopifyClient
from retainer_sync.handlers.models.env_vars import get_handler_env_vars
from retainer_sync.handlers.utils.errors import handle_service_errors
from retainer_sync.handlers.utils.http import envelope_response, parse_request_payload
from retainer_sync.handlers.utils.observability import logger, metrics, tracer
from retainer_sync.handlers.utils.rest_api_resolver import CUSTOMER_CREATE_PATH, create_resolver, register_method_guards
from retainer_sync.logic.customer_service import CustomerService
from retainer_sync.models.input import CustomerCreateRequest

app = create_resolver(cors_methods='POST, OPTIONS')
register_method_guards(app, CUSTOMER_CREATE_PATH, allowed_methods=['POST'])


@app.post(CUSTOMER_CREATE_PATH)
@tracer.capture_method
@handle_service_errors()
def customer_create() -> Response:
    request = CustomerCreateRequest.model_validate(parse_request_payload(app.current_event))

    with ShopifyClient.from_env(get_handler_env_vars()) as client:
        customer = CustomerService(client).create(request)

    return envelope_response(status_code=200, ok=True, customer=customer)


@tracer.capture_lambda_handler
@logger.inject_lambda_context(correlation_id_path=correlation_paths.API_GATEWAY_REST)
@metrics.log_metrics(capture_cold_start_metric=True)
def lambda_handler(event: Dict[str, Any], context: LambdaContext) -> Dict[str, Any]:
    return app.resolve(event, context)
