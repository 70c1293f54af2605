"""
Business logic for the intake upsert workflow.

An intake submission finds or creates the customer by email, refreshes the
customer's name, phone and address, uploads any attached documents and writes
the intake metafields selected by the active field mapping.
"""

import json
from typing import Any, Dict, List, Optional, Tuple

from aws_lambda_powertools.metrics import MetricUnit

from retainer_sync.dal.file_uploader import UploadResult, upload_data_url
from retainer_sync.dal.shopify_client import ShopifyClient, ShopifyGraphQLError
from retainer_sync.handlers.utils.errors import ExternalServiceError, RemoteBusinessError, ValidationError
from retainer_sync.handlers.utils.observability import logger, metrics, tracer
from retainer_sync.logic.field_mapping import FieldMapping, build_metafields
from retainer_sync.logic.validators import derive_password, is_email, is_phone_loose
from retainer_sync.models.input import IntakeRequest

ENABLED_STATE = 'ENABLED'

# (request attribute, payload key consumed by the mapping, alt text, response name)
DOCUMENT_UPLOADS: Tuple[Tuple[str, str, str, str], ...] = (
    ('signature_data_url', 'signature_file_id', 'Retainer signature', 'signature'),
    ('license_data_url', 'license_file_id', 'Driver license', 'license'),
    ('insurance_card_data_url', 'insurance_card_file_id', 'Insurance card', 'insurance_card'),
)


def upload_document_results(client: ShopifyClient, request: Any, resolve_urls: bool = False) -> Dict[str, UploadResult]:
    """Upload every attached document; results of successful uploads keyed by payload key."""
    results: Dict[str, UploadResult] = {}
    for attribute, payload_key, alt, _ in DOCUMENT_UPLOADS:
        data_url = getattr(request, attribute, '')
        if not data_url:
            continue
        result = upload_data_url(client, data_url, alt=alt, resolve_url=resolve_urls)
        if result.ok:
            results[payload_key] = result
    return results


def upload_documents(client: ShopifyClient, request: Any) -> Dict[str, str]:
    """Upload every attached document; failed uploads are skipped."""
    return {payload_key: result.file_id for payload_key, result in upload_document_results(client, request).items()}


def user_errors_message(operation: str, user_errors: List[Dict[str, Any]]) -> str:
    return f'{operation}: {json.dumps(user_errors)}'


class IntakeService:
    """Customer upsert driven by an intake form submission."""

    def __init__(
        self,
        client: ShopifyClient,
        mapping: FieldMapping,
        namespace: str,
        send_invite: bool = False,
    ):
        """
        Initialize the intake service.

        Args:
            client: Platform API client
            mapping: Active metafield mapping table
            namespace: Metafield namespace
            send_invite: Send an activation invite to customers whose account is not enabled
        """
        self.client = client
        self.mapping = mapping
        self.namespace = namespace
        self.send_invite = send_invite

    def _validated_phone(self, request: IntakeRequest) -> Optional[str]:
        if is_phone_loose(request.phone):
            return request.phone
        if self.mapping.phone_required:
            raise ValidationError('invalid or missing phone', field='phone', operation='intake_upsert')
        if request.phone:
            logger.info('Dropping invalid optional phone from customer input')
        return None

    def _find_customer(self, email: str) -> Optional[Dict[str, Any]]:
        try:
            return self.client.find_customer_by_email(email)
        except ShopifyGraphQLError as exc:
            if 'ACCESS_DENIED' in exc.message:
                raise RemoteBusinessError('ACCESS_DENIED', operation='customer_lookup') from exc
            raise

    @staticmethod
    def _customer_input(request: IntakeRequest, phone: Optional[str]) -> Dict[str, Any]:
        customer_input: Dict[str, Any] = {'email': request.email}
        if request.first_name:
            customer_input['firstName'] = request.first_name
        if request.last_name:
            customer_input['lastName'] = request.last_name
        if phone:
            customer_input['phone'] = phone
        if request.home_address:
            address: Dict[str, Any] = {'address1': request.home_address}
            if request.first_name:
                address['firstName'] = request.first_name
            if request.last_name:
                address['lastName'] = request.last_name
            customer_input['addresses'] = [address]
        return customer_input

    @tracer.capture_method
    def _create_customer(self, request: IntakeRequest) -> Dict[str, Any]:
        names = {key: value for key, value in (('firstName', request.first_name), ('lastName', request.last_name)) if value}

        if self.client.has_storefront_access:
            password = request.password or derive_password(request.last_name, request.dob)
            _, user_errors = self.client.storefront_create_customer({'email': request.email, 'password': password, **names})
            if user_errors:
                raise RemoteBusinessError(user_errors_message('customerCreate(Storefront)', user_errors), operation='customer_create')
        else:
            _, user_errors = self.client.admin_create_customer({'email': request.email, **names})
            if user_errors:
                raise RemoteBusinessError(user_errors_message('customerCreate', user_errors), operation='customer_create')

        customer = self.client.find_customer_by_email(request.email)
        if not customer or not customer.get('id'):
            raise RemoteBusinessError('customer not visible in Admin after creation', operation='customer_create')

        metrics.add_metric(name='CustomerCreated', unit=MetricUnit.Count, value=1)
        logger.info('Customer created', extra={'customer_id': customer['id']})
        return customer

    def _maybe_send_invite(self, customer_id: str, state: Optional[str]) -> None:
        if not self.send_invite or state == ENABLED_STATE:
            return
        try:
            self.client.send_account_invite(customer_id)
            logger.info('Account invite sent', extra={'customer_id': customer_id})
        except ExternalServiceError as exc:
            logger.warning('Account invite failed', extra={'customer_id': customer_id, 'error': exc.message})

    def mapping_payload(self, request: IntakeRequest, file_ids: Dict[str, str]) -> Dict[str, Any]:
        """Flatten the request into the keys read by the intake mapping rules."""
        payload = request.model_dump(exclude={'password', 'signature_data_url', 'license_data_url', 'insurance_card_data_url'})
        payload['vehicles_list'] = request.vehicles_list
        payload['household_list'] = request.household_list
        payload.update(file_ids)
        return payload

    @tracer.capture_method
    def upsert(self, request: IntakeRequest) -> Dict[str, Any]:
        """
        Create or update the customer behind an intake submission.

        Returns:
            ``{customer_id, customer_email}`` of the upserted customer

        Raises:
            ValidationError: If the email, or a required phone, is missing or malformed
            RemoteBusinessError: If the platform rejects the customer or metafield writes
            ExternalServiceError: If a platform call fails
        """
        if not is_email(request.email):
            raise ValidationError('invalid or missing email', field='email', operation='intake_upsert')
        phone = self._validated_phone(request)

        customer = self._find_customer(request.email)
        if customer is None:
            customer = self._create_customer(request)
        customer_id = customer['id']
        tracer.put_annotation('customer_id', customer_id)

        update = self.client.update_customer_soft({'id': customer_id, **self._customer_input(request, phone)})
        if not update.ok:
            raise RemoteBusinessError(user_errors_message('customerUpdate', update.user_errors), operation='customer_update')

        file_ids = upload_documents(self.client, request)

        metafields = build_metafields(
            self.mapping_payload(request, file_ids),
            self.mapping.intake_rules,
            namespace=self.namespace,
            owner_id=customer_id,
        )
        if metafields:
            user_errors = self.client.set_metafields(metafields)
            if user_errors:
                raise RemoteBusinessError(user_errors_message('metafieldsSet', user_errors), operation='metafields_set')

        self._maybe_send_invite(customer_id, customer.get('state'))

        metrics.add_metric(name='IntakeUpserted', unit=MetricUnit.Count, value=1)
        logger.info('Intake upserted', extra={
            'customer_id': customer_id,
            'metafield_count': len(metafields),
            'uploaded_files': sorted(file_ids),
            'mapping_version': self.mapping.version,
        })
        return {'customer_id': customer_id, 'customer_email': request.email}
