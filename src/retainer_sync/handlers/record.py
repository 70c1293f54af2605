"""
Record Handler - alternate intake store on DynamoDB and S3.

GET /api/retainer/record?email=... returns the stored record (or null) and PUT
upserts one, storing a PNG signature in S3 first when one is attached. Unlike
the platform handlers, unexpected failures answer HTTP 500.
"""

from typing import Any, Dict

from aws_lambda_powertools.event_handler import Response
from aws_lambda_powertools.logging import correlation_paths
from aws_lambda_powertools.utilities.typing import LambdaContext

from retainer_sync.dal.record_store import RecordStore, SignatureStore
from retainer_sync.handlers.models.env_vars import RetainerEnvVars, get_handler_env_vars
from retainer_sync.handlers.utils.errors import handle_service_errors
from retainer_sync.handlers.utils.http import envelope_response, parse_request_payload
from retainer_sync.handlers.utils.observability import logger, metrics, tracer
from retainer_sync.handlers.utils.rest_api_resolver import RECORD_PATH, create_resolver, register_method_guards
from retainer_sync.logic.record_service import RecordService

PREFLIGHT_MAX_AGE_SECONDS = 86400

app = create_resolver(cors_methods='GET, PUT, OPTIONS', permissive=True, max_age=PREFLIGHT_MAX_AGE_SECONDS)
register_method_guards(app, RECORD_PATH, allowed_methods=['GET', 'PUT'])


def build_record_service(env: RetainerEnvVars) -> RecordService:
    return RecordService(
        records=RecordStore(env.RECORDS_TABLE_NAME, region_name=env.AWS_REGION),
        signatures=SignatureStore(
            env.SIGNATURE_BUCKET_NAME,
            public_base_url=env.signature_public_base_url,
            region_name=env.AWS_REGION,
        ),
    )


@app.get(RECORD_PATH)
@tracer.capture_method
@handle_service_errors(unexpected_status=500)
def get_record() -> Response:
    email = app.current_event.get_query_string_value(name='email', default_value='')
    record = build_record_service(get_handler_env_vars()).get(email)
    return envelope_response(status_code=200, ok=True, record=record)


@app.put(RECORD_PATH)
@tracer.capture_method
@handle_service_errors(unexpected_status=500)
def put_record() -> Response:
    payload = parse_request_payload(app.current_event)
    record = build_record_service(get_handler_env_vars()).put(payload)
    logger.info('Record upserted', extra={'has_signature': bool(record.get('signature_url'))})
    return envelope_response(status_code=200, ok=True, record=record)


@tracer.capture_lambda_handler
@logger.inject_lambda_context(correlation_id_path=correlation_paths.API_GATEWAY_REST)
@metrics.log_metrics(capture_cold_start_metric=True)
def lambda_handler(event: Dict[str, Any], context: LambdaContext) -> Dict[str, Any]:
    return app.resolve(event, context)
