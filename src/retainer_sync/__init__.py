"""
Retainer intake synchronization service.

Serverless handlers that synchronize customer intake data (personal details,
signatures, documents, vehicle and household lists, retainer plan selections)
between a storefront and the e-commerce platform's Customer, Order, Metafield
and Files APIs, with an alternate record backend on DynamoDB and S3.

- handlers: API Gateway entry points
- logic: validation, field mapping and workflows
- dal: platform client, file uploads and record persistence
- models: request, webhook and record schemas
- security: CORS policy and webhook signature verification
"""

__version__ = "1.0.0"
