"""
AWS Lambda Handlers Module.

One module per endpoint, each owning an API Gateway REST resolver and a
``lambda_handler`` entry point:

- intake_upsert: create or update a customer with metafields and files
- profile_update: partial metafield and file updates
- customer_create: direct account creation with a password
- record: read and write intake records on the alternate backend
- order_webhook: signed order webhook reconciliation
"""
