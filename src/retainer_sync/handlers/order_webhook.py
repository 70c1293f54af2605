"""
Order Webhook Handler - reconciles new orders with the intake data.

GET is a health check answering ``ok``. POST must carry a valid
``X-Shopify-Hmac-Sha256`` signature over the raw body (401 ``invalid hmac``
otherwise); after that every delivery is acknowledged with HTTP 200, ``ok`` or
``error``, so the platform does not keep retrying a failing order.
"""

import json
from typing import Any, Dict

from aws_lambda_powertools.event_handler import Response
from aws_lambda_powertools.logging import correlation_paths
from aws_lambda_powertools.metrics import MetricUnit
from aws_lambda_powertools.utilities.typing import LambdaContext

from retainer_sync.dal.shopify_client import ShopifyClient
from retainer_sync.handlers.models.env_vars import get_handler_env_vars
from retainer_sync.handlers.utils.errors import SignatureVerificationError, log_error_metrics
from retainer_sync.handlers.utils.http import raw_body, text_response
from retainer_sync.handlers.utils.observability import logger, metrics, tracer
from retainer_sync.handlers.utils.rest_api_resolver import ORDER_WEBHOOK_PATH, create_resolver, register_method_guards
from retainer_sync.logic.field_mapping import get_field_mapping
from retainer_sync.logic.webhook_service import WebhookService
from retainer_sync.models.webhook import OrderWebhookPayload
from retainer_sync.security.webhook_signature import SIGNATURE_HEADER, verify_webhook_signature

app = create_resolver()
register_method_guards(app, ORDER_WEBHOOK_PATH, allowed_methods=['GET', 'POST'], preflight=False)


@app.get(ORDER_WEBHOOK_PATH)
def health() -> Response:
    return text_response(200, 'ok')


@app.post(ORDER_WEBHOOK_PATH)
@tracer.capture_method
def order_webhook() -> Response:
    env = get_handler_env_vars()
    body = raw_body(app.current_event)
    signature = app.current_event.get_header_value(SIGNATURE_HEADER)

    if not verify_webhook_signature(body, signature, env.SHOPIFY_WEBHOOK_SECRET):
        error = SignatureVerificationError()
        log_error_metrics(error)
        metrics.add_metric(name='WebhookSignatureRejected', unit=MetricUnit.Count, value=1)
        return text_response(401, error.message)

    try:
        order = OrderWebhookPayload.model_validate(json.loads(body))
        with ShopifyClient.from_env(env) as client:
            WebhookService(
                client=client,
                mapping=get_field_mapping(env.FIELD_MAPPING_VERSION),
                namespace=env.METAFIELD_NAMESPACE,
            ).reconcile(order)
    except Exception as e:
        logger.exception('Order webhook failed', extra={'error': str(e)})
        metrics.add_metric(name='WebhookFailed', unit=MetricUnit.Count, value=1)
        return text_response(200, 'error')

    return text_response(200, 'ok')


@tracer.capture_lambda_handler
@logger.inject_lambda_context(correlation_id_path=correlation_paths.API_GATEWAY_REST)
@metrics.log_metrics(capture_cold_start_metric=True)
def lambda_handler(event: Dict[str, Any], context: LambdaContext) -> Dict[str, Any]:
    return app.resolve(event, context)
