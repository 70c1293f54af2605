"""
Data-URL uploads to the platform file store.

Implements the staged upload handshake: request an upload target, POST the
binary to it, then commit a File record that references the uploaded object.
Failures are reported in the result rather than raised so a rejected document
never aborts the surrounding request.
"""

import time
from dataclasses import dataclass
from typing import Optional

from aws_lambda_powertools.metrics import MetricUnit

from retainer_sync.dal.shopify_client import ShopifyClient
from retainer_sync.handlers.utils.errors import ExternalServiceError
from retainer_sync.handlers.utils.observability import logger, metrics, tracer
from retainer_sync.logic.validators import parse_data_url


@dataclass(frozen=True)
class UploadResult:
    file_id: Optional[str] = None
    file_url: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.file_id is not None


def _failed(error: str, alt: str) -> UploadResult:
    logger.warning('File upload skipped', extra={'alt': alt, 'reason': error})
    metrics.add_metric(name='FileUploadFailed', unit=MetricUnit.Count, value=1)
    return UploadResult(error=error)


@tracer.capture_method
def upload_data_url(client: ShopifyClient, data_url: str, alt: str = 'Upload', resolve_url: bool = False) -> UploadResult:
    """
    Upload a base64 data-URL to the file store.

    Args:
        client: Platform client
        data_url: ``data:<mime>;base64,<payload>`` string
        alt: Alt text stored on the File record
        resolve_url: Look up the public URL when the create answer does not carry one

    Returns:
        UploadResult with the file GID on success, or the failure reason
    """
    try:
        mime_type, content = parse_data_url(data_url)
    except ValueError as exc:
        return _failed(str(exc), alt)

    filename = f'upload-{int(time.time() * 1000)}'

    try:
        target, user_errors = client.create_staged_upload(filename, mime_type)
        if user_errors:
            return _failed(f'stagedUploadsCreate: {user_errors}', alt)
        if not target or not target.get('url'):
            return _failed('staged upload target missing', alt)

        response = client.post_staged_file(
            url=target['url'],
            parameters=target.get('parameters') or [],
            filename='upload',
            content=content,
            mime_type=mime_type,
        )
        if response.is_error:
            return _failed(f'staged upload {response.status_code}: {response.text}', alt)

        content_type = 'IMAGE' if mime_type.startswith('image/') else 'FILE'
        file_node, user_errors = client.create_file(target.get('resourceUrl') or '', alt, content_type)
        if user_errors:
            return _failed(f'fileCreate: {user_errors}', alt)
        if not file_node or not file_node.get('id'):
            return _failed('fileCreate returned no id', alt)

        file_id = file_node['id']
        if file_node.get('__typename') == 'MediaImage':
            file_url = (file_node.get('image') or {}).get('url')
        else:
            file_url = file_node.get('url')
        if not file_url and resolve_url:
            file_url = client.get_file_url(file_id)
    except ExternalServiceError as exc:
        return _failed(exc.message, alt)

    logger.info('File uploaded', extra={'alt': alt, 'file_id': file_id, 'mime_type': mime_type, 'size_bytes': len(content)})
    return UploadResult(file_id=file_id, file_url=file_url)
