"""
Environment variable models for type-safe configuration.

This module defines the Pydantic model for the environment variables shared by the
retainer handlers. Every variable has a safe default so that a handler whose
integration is not configured still imports and answers with an error envelope.
"""

from typing import Annotated, List

from aws_lambda_env_modeler import BaseModel, get_environment_variables
from pydantic import Field


class RetainerEnvVars(BaseModel):
    """Environment variables for the retainer handlers."""

    # Shopify shop host, e.g. example.myshopify.com
    SHOPIFY_SHOP: Annotated[str, Field(
        default='',
        description='Shopify shop host name'
    )] = ''

    SHOPIFY_ADMIN_TOKEN: Annotated[str, Field(
        default='',
        description='Admin API access token'
    )] = ''

    SHOPIFY_STOREFRONT_TOKEN: Annotated[str, Field(
        default='',
        description='Storefront API access token'
    )] = ''

    SHOPIFY_API_VERSION: Annotated[str, Field(
        default='2024-07',
        description='Shopify API version used in request paths',
        pattern=r'^\d{4}-\d{2}$'
    )] = '2024-07'

    SHOPIFY_WEBHOOK_SECRET: Annotated[str, Field(
        default='',
        description='Shared secret used to sign order webhooks'
    )] = ''

    # CORS allow-list, comma separated
    ALLOWED_ORIGINS: Annotated[str, Field(
        default='',
        description='Comma separated list of origins allowed by CORS'
    )] = ''

    METAFIELD_NAMESPACE: Annotated[str, Field(
        default='retainer',
        description='Namespace of every metafield written by the handlers',
        min_length=1
    )] = 'retainer'

    FIELD_MAPPING_VERSION: Annotated[str, Field(
        default='v2',
        description='Active metafield mapping table',
        pattern=r'^v[12]$'
    )] = 'v2'

    SEND_ACCOUNT_INVITE: Annotated[str, Field(
        default='false',
        description='Send an account activation invite after an intake upsert (true/false)',
        pattern=r'^(true|false)$'
    )] = 'false'

    HTTP_TIMEOUT_SECONDS: Annotated[float, Field(
        default=30.0,
        description='Timeout for outbound HTTP calls in seconds',
        gt=0,
        le=900
    )] = 30.0

    # Alternate record backend
    RECORDS_TABLE_NAME: Annotated[str, Field(
        default='customer-intakes',
        description='DynamoDB table holding intake records',
        min_length=1
    )] = 'customer-intakes'

    SIGNATURE_BUCKET_NAME: Annotated[str, Field(
        default='retainer-signatures',
        description='S3 bucket receiving signature images',
        min_length=1
    )] = 'retainer-signatures'

    SIGNATURE_PUBLIC_BASE_URL: Annotated[str, Field(
        default='',
        description='Public URL prefix of the signature bucket (defaults to the S3 virtual host URL)'
    )] = ''

    AWS_REGION: Annotated[str, Field(
        default='us-east-1',
        description='AWS region for service deployment'
    )] = 'us-east-1'

    ENVIRONMENT: Annotated[str, Field(
        default='dev',
        description='Deployment environment name'
    )] = 'dev'

    LOG_LEVEL: Annotated[str, Field(
        default='INFO',
        description='Log level for application logging',
        pattern=r'^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$'
    )] = 'INFO'

    @property
    def allowed_origins(self) -> List[str]:
        """Parsed CORS allow-list."""
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(',') if origin.strip()]

    @property
    def invite_enabled(self) -> bool:
        return self.SEND_ACCOUNT_INVITE.lower() == 'true'

    @property
    def signature_public_base_url(self) -> str:
        if self.SIGNATURE_PUBLIC_BASE_URL:
            return self.SIGNATURE_PUBLIC_BASE_URL.rstrip('/')
        return f'https://{self.SIGNATURE_BUCKET_NAME}.s3.{self.AWS_REGION}.amazonaws.com'


def get_handler_env_vars() -> RetainerEnvVars:
    """
    Get typed environment variables for the retainer handlers.

    Returns:
        Validated environment variables model instance
    """
    return get_environment_variables(model=RetainerEnvVars)
