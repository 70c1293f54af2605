"""
Order webhook reconciliation.

Cart attributes and line-item properties of a new order are merged (line items
win), re-typed through the order rules of the active field mapping and written
as Order metafields together with the file references and list fields already
stored on the matched Customer. The customer then receives a last plan/term
snapshot.
"""

from typing import Any, Dict, List, Optional

from aws_lambda_powertools.metrics import MetricUnit

from retainer_sync.dal.shopify_client import ShopifyClient, customer_gid, order_gid
from retainer_sync.handlers.utils.errors import RemoteBusinessError
from retainer_sync.handlers.utils.observability import logger, metrics, tracer
from retainer_sync.logic.field_mapping import FieldMapping, build_metafields
from retainer_sync.logic.intake_service import user_errors_message
from retainer_sync.logic.validators import non_blank
from retainer_sync.models.metafield import MetafieldInput, MetafieldType
from retainer_sync.models.webhook import OrderWebhookPayload


class WebhookService:
    def __init__(self, client: ShopifyClient, mapping: FieldMapping, namespace: str):
        self.client = client
        self.mapping = mapping
        self.namespace = namespace

    def resolve_customer_id(self, order: OrderWebhookPayload) -> Optional[str]:
        """Customer GID from the embedded customer id, falling back to an email lookup."""
        if order.customer and order.customer.id:
            return customer_gid(order.customer.id)
        email = order.email or (order.customer.email if order.customer else None)
        if not non_blank(email):
            return None
        customer = self.client.find_customer_by_email(email.strip().lower())
        return customer['id'] if customer else None

    def mirrored_metafields(self, customer_id: str, owner_id: str, written_keys: List[str]) -> List[MetafieldInput]:
        """Copies of the customer's stored file references and lists, re-owned by the order."""
        mirrored: List[MetafieldInput] = []
        for node in self.client.get_customer_metafields(customer_id, self.namespace):
            key = node.get('key')
            if key not in self.mapping.mirrored_customer_keys or key in written_keys:
                continue
            if not non_blank(node.get('value')):
                continue
            try:
                metafield_type = MetafieldType(node.get('type'))
            except ValueError:
                logger.warning('Skipping mirrored metafield with unknown type', extra={'key': key, 'type': node.get('type')})
                continue
            mirrored.append(MetafieldInput(
                owner_id=owner_id,
                namespace=self.namespace,
                key=key,
                type=metafield_type,
                value=str(node['value']),
            ))
        return mirrored

    def _write(self, metafields: List[MetafieldInput]) -> None:
        if not metafields:
            return
        user_errors = self.client.set_metafields(metafields)
        if user_errors:
            raise RemoteBusinessError(user_errors_message('metafieldsSet', user_errors), operation='order_webhook')

    @tracer.capture_method
    def reconcile(self, order: OrderWebhookPayload) -> Dict[str, Any]:
        """
        Write order metafields and the customer snapshot for one order.

        Returns:
            Summary with the order GID, the matched customer GID and the written keys

        Raises:
            RemoteBusinessError: If a metafield write is rejected
            ExternalServiceError: If a platform call fails
        """
        fields = order.reconciled_fields()
        owner_id = order_gid(order.id)
        tracer.put_annotation('order_id', owner_id)

        order_metafields = build_metafields(fields, self.mapping.order_rules, namespace=self.namespace, owner_id=owner_id)

        customer_id = self.resolve_customer_id(order)
        if customer_id:
            written_keys = [metafield.key for metafield in order_metafields]
            order_metafields.extend(self.mirrored_metafields(customer_id, owner_id, written_keys))
        else:
            logger.info('No customer matched for order', extra={'order_id': owner_id})

        self._write(order_metafields)

        snapshot: List[MetafieldInput] = []
        if customer_id:
            snapshot = build_metafields(
                fields, self.mapping.customer_snapshot_rules, namespace=self.namespace, owner_id=customer_id
            )
            self._write(snapshot)

        metrics.add_metric(name='WebhookProcessed', unit=MetricUnit.Count, value=1)
        logger.info('Order webhook reconciled', extra={
            'order_id': owner_id,
            'customer_id': customer_id,
            'order_metafield_count': len(order_metafields),
            'snapshot_metafield_count': len(snapshot),
        })
        return {
            'order_id': owner_id,
            'customer_id': customer_id,
            'order_keys': [metafield.key for metafield in order_metafields],
            'customer_keys': [metafield.key for metafield in snapshot],
        }
