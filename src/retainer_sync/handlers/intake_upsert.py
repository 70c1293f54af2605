"""
Intake Upsert Handler - Lambda function behind the intake form.

POST /api/retainer/intake-upsert creates or updates the customer, uploads the
attached documents and writes the intake metafields. Remote failures answer
HTTP 200 with ``ok: false`` so the platform never retries a submission.
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
from retainer_sync.handlers.utils.rest_api_resolver import INTAKE_UPSERT_PATH, create_resolver, register_method_guards
from retainer_sync.logic.field_mapping import get_field_mapping
from retainer_sync.logic.intake_service import IntakeService
from retainer_sync.models.input import IntakeRequest

app = create_resolver(cors_methods='POST, OPTIONS')
register_method_guards(app, INTAKE_UPSERT_PATH, allowed_methods=['POST'])


@app.post(INTAKE_UPSERT_PATH)
@tracer.capture_method
@handle_service_errors()
def intake_upsert() -> Response:
    env = get_handler_env_vars()
    request = IntakeRequest.model_validate(parse_request_payload(app.current_event))
    logger.info('Intake upsert request received', extra={'mapping_version': env.FIELD_MAPPING_VERSION})

    with ShopifyClient.from_env(env) as client:
        service = IntakeService(
            client=client,
            mapping=get_field_mapping(env.FIELD_MAPPING_VERSION),
            namespace=env.METAFIELD_NAMESPACE,
            send_invite=env.invite_enabled,
        )
        result = service.upsert(request)

    return envelope_response(status_code=200, ok=True, **result)


@tracer.capture_lambda_handler
@logger.inject_lambda_context(correlation_id_path=correlation_paths.API_GATEWAY_REST)
@metrics.log_metrics(capture_cold_start_metric=True)
def lambda_handler(event: Dict[str, Any], context: LambdaContext) -> Dict[str, Any]:
    return app.resolve(event, context)
