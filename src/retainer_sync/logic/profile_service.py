"""
Partial profile updates for an existing customer.

Only values present in the request are written; everything else on the
customer is left untouched.
"""

import math
from typing import Any, Dict

from aws_lambda_powertools.metrics import MetricUnit

from retainer_sync.dal.shopify_client import ShopifyClient
from retainer_sync.handlers.utils.errors import RemoteBusinessError, ValidationError
from retainer_sync.handlers.utils.observability import logger, metrics, tracer
from retainer_sync.logic.field_mapping import FieldMapping, build_metafields
from retainer_sync.logic.intake_service import DOCUMENT_UPLOADS, upload_document_results, user_errors_message
from retainer_sync.logic.validators import is_email
from retainer_sync.models.input import ProfileUpdateRequest

PROFILE_FIELDS = (
    'insurer', 'bi_limits', 'has_bi', 'dob', 'intake_notes',
    'household_list', 'vehicles_list', 'household', 'vehicles',
)
DOCUMENT_NAMES = {payload_key: name for _, payload_key, _, name in DOCUMENT_UPLOADS}


def _is_finite_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


class ProfileService:
    def __init__(self, client: ShopifyClient, mapping: FieldMapping, namespace: str):
        self.client = client
        self.mapping = mapping
        self.namespace = namespace

    def mapping_payload(self, request: ProfileUpdateRequest, file_ids: Dict[str, str]) -> Dict[str, Any]:
        """Supplied values only; ``cars_count`` must already be a finite number."""
        payload = {name: getattr(request, name) for name in PROFILE_FIELDS if getattr(request, name) is not None}
        if _is_finite_number(request.cars_count):
            payload['cars_count'] = request.cars_count
        payload.update(file_ids)
        return payload

    @tracer.capture_method
    def update(self, request: ProfileUpdateRequest) -> Dict[str, str]:
        """
        Apply a partial profile update.

        Returns:
            Public URLs of the replaced documents keyed by document name; a URL
            the file store has not published yet is omitted

        Raises:
            ValidationError: If the email is missing or malformed
            RemoteBusinessError: If the customer does not exist or the write is rejected
        """
        if not is_email(request.email):
            raise ValidationError('invalid or missing email', field='email', operation='profile_update')

        customer = self.client.find_customer_by_email(request.email)
        if not customer:
            raise RemoteBusinessError('customer not found', error_code='CUSTOMER_NOT_FOUND', operation='profile_update')
        customer_id = customer['id']

        uploads = upload_document_results(self.client, request, resolve_urls=True)
        file_ids = {payload_key: result.file_id for payload_key, result in uploads.items()}
        metafields = build_metafields(
            self.mapping_payload(request, file_ids),
            self.mapping.profile_rules,
            namespace=self.namespace,
            owner_id=customer_id,
        )
        if metafields:
            user_errors = self.client.set_metafields(metafields)
            if user_errors:
                raise RemoteBusinessError(user_errors_message('metafieldsSet', user_errors), operation='metafields_set')

        metrics.add_metric(name='ProfileUpdated', unit=MetricUnit.Count, value=1)
        logger.info('Profile updated', extra={'customer_id': customer_id, 'metafield_count': len(metafields)})
        return {
            DOCUMENT_NAMES[payload_key]: result.file_url
            for payload_key, result in uploads.items()
            if result.file_url
        }
