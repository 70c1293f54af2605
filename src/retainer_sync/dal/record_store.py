"""
DynamoDB record table and S3 signature bucket for the record handler.

Records are keyed by normalized email; ``put_item`` replaces the whole item, so
the last write wins. Signature images are stored under
``signatures/<safe-email>/<epoch-ms>.png`` and addressed by their public URL.
"""

import json
import re
import time
from decimal import Decimal
from typing import Any, Dict, Optional, Tuple

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from retainer_sync.handlers.utils.errors import ExternalServiceError
from retainer_sync.handlers.utils.observability import logger, tracer
from retainer_sync.logic.validators import parse_data_url
from retainer_sync.models.record import IntakeRecord

SIGNATURE_PREFIX = 'data:image/png'
SIGNATURE_CONTENT_TYPE = 'image/png'
UNSAFE_KEY_CHARS = re.compile(r'[^a-z0-9._-]+')


def _to_dynamodb(value: Dict[str, Any]) -> Dict[str, Any]:
    # boto3 rejects float, so every number goes through Decimal
    return json.loads(json.dumps(value), parse_float=Decimal)


def _from_dynamodb(value: Any) -> Any:
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, list):
        return [_from_dynamodb(item) for item in value]
    if isinstance(value, dict):
        return {key: _from_dynamodb(item) for key, item in value.items()}
    return value


def safe_key_segment(email: str) -> str:
    return UNSAFE_KEY_CHARS.sub('-', email.strip().lower())


class RecordStore:
    """DynamoDB table of intake records."""

    def __init__(self, table_name: str, region_name: Optional[str] = None) -> None:
        """
        Initialize the record store.

        Args:
            table_name: Name of the DynamoDB table (partition key ``email``)
            region_name: AWS region, defaults to the boto3 session region
        """
        self.table_name = table_name
        self.table = boto3.resource('dynamodb', region_name=region_name).Table(table_name)
        logger.debug('Record store initialized', extra={'table_name': table_name})

    @tracer.capture_method
    def get_record(self, email: str) -> Optional[IntakeRecord]:
        """
        Fetch the record stored for ``email``.

        Raises:
            ExternalServiceError: If DynamoDB rejects the read
        """
        try:
            response = self.table.get_item(Key={'email': email})
        except (ClientError, BotoCoreError) as exc:
            logger.error('DynamoDB error reading record', extra={'table_name': self.table_name, 'error': str(exc)})
            raise ExternalServiceError(str(exc), service_name='dynamodb') from exc

        item = response.get('Item')
        if not item:
            logger.info('Record not found')
            return None
        return IntakeRecord(**_from_dynamodb(item))

    @tracer.capture_method
    def upsert_record(self, record: IntakeRecord) -> IntakeRecord:
        """
        Insert or replace the record keyed by its email.

        Raises:
            ExternalServiceError: If DynamoDB rejects the write
        """
        try:
            self.table.put_item(Item=_to_dynamodb(record.model_dump()))
        except (ClientError, BotoCoreError) as exc:
            logger.error('DynamoDB error writing record', extra={'table_name': self.table_name, 'error': str(exc)})
            raise ExternalServiceError(str(exc), service_name='dynamodb') from exc

        tracer.put_annotation('record_written', True)
        return record


class SignatureStore:
    """S3 bucket of signature PNGs."""

    def __init__(self, bucket_name: str, public_base_url: str, region_name: Optional[str] = None) -> None:
        self.bucket_name = bucket_name
        self.public_base_url = public_base_url.rstrip('/')
        self.s3 = boto3.client('s3', region_name=region_name)

    @tracer.capture_method
    def save_signature(self, data_url: Any, email: str) -> Tuple[Optional[str], Optional[str]]:
        """
        Store a PNG signature data-URL.

        Returns:
            ``(public_url, None)`` on success, ``(None, reason)`` otherwise
        """
        try:
            _, content = parse_data_url(data_url, required_prefix=SIGNATURE_PREFIX)
        except ValueError as exc:
            return None, str(exc)

        key = f'signatures/{safe_key_segment(email)}/{int(time.time() * 1000)}.png'
        try:
            self.s3.put_object(
                Bucket=self.bucket_name,
                Key=key,
                Body=content,
                ContentType=SIGNATURE_CONTENT_TYPE,
            )
        except (ClientError, BotoCoreError) as exc:
            logger.warning('Signature upload failed', extra={'bucket': self.bucket_name, 'error': str(exc)})
            return None, str(exc)

        logger.info('Signature stored', extra={'bucket': self.bucket_name, 'key': key})
        return f'{self.public_base_url}/{key}', None
