"""
Direct account creation with a user supplied password.
"""

from typing import Any, Dict

from aws_lambda_powertools.metrics import MetricUnit

from retainer_sync.dal.shopify_client import ShopifyClient
from retainer_sync.handlers.utils.errors import ConfigurationError, RemoteBusinessError, ValidationError
from retainer_sync.handlers.utils.observability import logger, metrics, tracer
from retainer_sync.logic.intake_service import user_errors_message
from retainer_sync.logic.validators import is_email
from retainer_sync.models.input import CustomerCreateRequest


class CustomerService:
    def __init__(self, client: ShopifyClient):
        self.client = client

    @tracer.capture_method
    def create(self, request: CustomerCreateRequest) -> Dict[str, Any]:
        """
        Create an active storefront account; the password makes it usable immediately.

        Returns:
            The created customer as ``{id, email}``

        Raises:
            ValidationError: If the email or password is missing
            ConfigurationError: If no Storefront token is configured
            RemoteBusinessError: If the platform rejects the account
        """
        if not is_email(request.email):
            raise ValidationError('invalid or missing email', field='email', operation='customer_create')
        if not request.password:
            raise ValidationError('missing password', field='password', operation='customer_create')
        if not self.client.has_storefront_access:
            raise ConfigurationError('Storefront token not configured')

        customer_input: Dict[str, Any] = {
            'email': request.email,
            'password': request.password,
            'firstName': request.first_name or None,
            'lastName': request.last_name or None,
            'phone': request.phone or None,
            'acceptsMarketing': False,
        }
        customer, user_errors = self.client.storefront_create_customer(customer_input)
        if user_errors:
            raise RemoteBusinessError(user_errors_message('customerCreate errors', user_errors), operation='customer_create')

        metrics.add_metric(name='CustomerCreated', unit=MetricUnit.Count, value=1)
        logger.info('Storefront customer created', extra={'customer_id': (customer or {}).get('id')})
        return customer or {}
