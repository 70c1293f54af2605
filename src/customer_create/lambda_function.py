"""
Customer Create Lambda Function - Entry point for the customer create API.

Delegates to `retainer_sync.handlers.customer_create`; the function zip ships the
`retainer_sync` package at its root.
"""

import os
import sys
from typing import Any, Dict

# Add the package root to the Python path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from aws_lambda_powertools.utilities.typing import LambdaContext
from retainer_sync.handlers.customer_create import lambda_handler as customer_create_handler


def lambda_handler(event: Dict[str, Any], context: LambdaContext) -> Dict[str, Any]:
    """
    Lambda function entry point for the customer create API.

    Args:
        event: Lambda event payload (API Gateway event)
        context: Lambda context object

    Returns:
        API Gateway response dictionary
    """
    return customer_create_handler(event, context)
