"""
Service Models Package

This package contains the Pydantic models used throughout the service:
request models, the order webhook payload, the intake record and metafields.
"""

from .input import CustomerCreateRequest, IntakeRequest, ProfileUpdateRequest
from .metafield import MetafieldInput, MetafieldType
from .record import IntakeRecord
from .webhook import OrderWebhookPayload

__all__ = [
    # Input models
    "IntakeRequest",
    "ProfileUpdateRequest",
    "CustomerCreateRequest",

    # Webhook payload
    "OrderWebhookPayload",

    # Domain models
    "IntakeRecord",
    "MetafieldInput",
    "MetafieldType",
]
