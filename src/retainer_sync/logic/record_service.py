"""
Read and upsert of intake records in the alternate backend.
"""

from typing import Any, Dict, Optional

from aws_lambda_powertools.metrics import MetricUnit

from retainer_sync.dal.record_store import RecordStore, SignatureStore
from retainer_sync.handlers.utils.errors import ValidationError
from retainer_sync.handlers.utils.observability import logger, metrics, tracer
from retainer_sync.logic.validators import normalize_email
from retainer_sync.models.record import IntakeRecord


class RecordService:
    def __init__(self, records: RecordStore, signatures: SignatureStore):
        self.records = records
        self.signatures = signatures

    @tracer.capture_method
    def get(self, email: Any) -> Optional[Dict[str, Any]]:
        """Stored record for ``email`` or None; the email is required."""
        normalized = normalize_email(email)
        if not normalized:
            raise ValidationError('missing email', field='email', operation='record_get')

        record = self.records.get_record(normalized)
        metrics.add_metric(name='RecordRead', unit=MetricUnit.Count, value=1)
        return record.model_dump() if record else None

    @tracer.capture_method
    def put(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        Upsert a record; the last write wins.

        A ``signature_url`` in the payload is stored as is. Otherwise a PNG
        ``signature_data_url`` is uploaded first; a failed upload is logged and
        the record is written without a signature.
        """
        email = normalize_email(payload.get('email'))
        if not email:
            raise ValidationError('missing email', field='email', operation='record_put')

        signature_url = payload.get('signature_url') or None
        if not signature_url and payload.get('signature_data_url'):
            signature_url, error = self.signatures.save_signature(payload['signature_data_url'], email)
            if error:
                logger.warning('Signature upload failed', extra={'reason': error})

        record = IntakeRecord.from_payload({**payload, 'email': email}, signature_url=signature_url)
        stored = self.records.upsert_record(record)
        metrics.add_metric(name='RecordWritten', unit=MetricUnit.Count, value=1)
        return stored.model_dump()
