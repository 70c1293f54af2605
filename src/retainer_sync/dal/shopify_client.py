"""
Shopify API client for the retainer handlers.

Wraps one ``httpx.Client`` and exposes the handful of Admin GraphQL, Storefront
GraphQL and Admin REST calls the handlers need. Transport failures, non-2xx
answers and GraphQL ``errors`` arrays raise ``ShopifyGraphQLError``; mutation
``userErrors`` are returned to the caller, which decides how to report them.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

import httpx

from retainer_sync.handlers.models.env_vars import RetainerEnvVars
from retainer_sync.handlers.utils.errors import ExternalServiceError
from retainer_sync.handlers.utils.observability import logger, tracer
from retainer_sync.models.metafield import MetafieldInput

UserErrors = List[Dict[str, Any]]

CUSTOMER_GID_PREFIX = 'gid://shopify/Customer/'
ORDER_GID_PREFIX = 'gid://shopify/Order/'

CUSTOMERS_BY_EMAIL = """
query CustomersByEmail($q: String!) {
  customers(first: 1, query: $q) { nodes { id email state } }
}"""

CUSTOMER_CREATE = """
mutation CustomerCreate($input: CustomerInput!) {
  customerCreate(input: $input) {
    customer { id email state }
    userErrors { field message }
  }
}"""

CUSTOMER_UPDATE = """
mutation CustomerUpdate($input: CustomerInput!) {
  customerUpdate(input: $input) {
    customer { id email state }
    userErrors { field message }
  }
}"""

STOREFRONT_CUSTOMER_CREATE = """
mutation StorefrontCustomerCreate($input: CustomerCreateInput!) {
  customerCreate(input: $input) {
    customer { id email }
    customerUserErrors { field message code }
  }
}"""

METAFIELDS_SET = """
mutation MetafieldsSet($metafields: [MetafieldsSetInput!]!) {
  metafieldsSet(metafields: $metafields) {
    metafields { namespace key type }
    userErrors { field message }
  }
}"""

CUSTOMER_METAFIELDS = """
query CustomerMetafields($id: ID!, $namespace: String!) {
  customer(id: $id) {
    id
    metafields(first: 50, namespace: $namespace) { nodes { key type value } }
  }
}"""

STAGED_UPLOADS_CREATE = """
mutation StagedUploadsCreate($input: [StagedUploadInput!]!) {
  stagedUploadsCreate(input: $input) {
    stagedTargets { url resourceUrl parameters { name value } }
    userErrors { field message }
  }
}"""

FILE_CREATE = """
mutation FileCreate($files: [FileCreateInput!]!) {
  fileCreate(files: $files) {
    files {
      id
      __typename
      ... on MediaImage { image { url } }
      ... on GenericFile { url }
    }
    userErrors { field message }
  }
}"""

FILE_URL = """
query FileUrl($id: ID!) {
  node(id: $id) {
    ... on MediaImage { image { url } }
    ... on GenericFile { url }
  }
}"""


class ShopifyGraphQLError(ExternalServiceError):
    """Raised when a Shopify API call fails at the HTTP or GraphQL level."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message=message, service_name='shopify', status_code=status_code)


@dataclass
class SoftUpdateResult:
    """Outcome of ``update_customer_soft``."""

    ok: bool
    dropped_phone: bool = False
    user_errors: UserErrors = field(default_factory=list)


def customer_gid(customer_id: Any) -> str:
    text = str(customer_id)
    return text if text.startswith('gid://') else f'{CUSTOMER_GID_PREFIX}{text}'


def order_gid(order_id: Any) -> str:
    text = str(order_id)
    return text if text.startswith('gid://') else f'{ORDER_GID_PREFIX}{text}'


def is_phone_error(user_error: Dict[str, Any]) -> bool:
    field_path = '.'.join(str(part) for part in (user_error.get('field') or [])).lower()
    return 'phone' in field_path or 'phone' in str(user_error.get('message') or '').lower()


def email_search_query(email: str) -> str:
    return f'email:{json.dumps(email)}'


class ShopifyClient:
    """Admin + Storefront API client bound to one shop."""

    def __init__(
        self,
        shop: str,
        admin_token: str,
        storefront_token: str = '',
        api_version: str = '2024-07',
        timeout: float = 30.0,
        http_client: Optional[httpx.Client] = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            shop: Shop host name, e.g. example.myshopify.com
            admin_token: Admin API access token
            storefront_token: Storefront API access token (optional)
            api_version: API version path segment
            timeout: Timeout for every outbound call in seconds
            http_client: Preconfigured httpx client (tests inject a mock transport)
        """
        self.shop = shop
        self.admin_token = admin_token
        self.storefront_token = storefront_token
        self.api_version = api_version
        self._http = http_client or httpx.Client(timeout=timeout)

    @classmethod
    def from_env(cls, env: RetainerEnvVars, http_client: Optional[httpx.Client] = None) -> 'ShopifyClient':
        return cls(
            shop=env.SHOPIFY_SHOP,
            admin_token=env.SHOPIFY_ADMIN_TOKEN,
            storefront_token=env.SHOPIFY_STOREFRONT_TOKEN,
            api_version=env.SHOPIFY_API_VERSION,
            timeout=env.HTTP_TIMEOUT_SECONDS,
            http_client=http_client,
        )

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> 'ShopifyClient':
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    @property
    def admin_graphql_url(self) -> str:
        return f'https://{self.shop}/admin/api/{self.api_version}/graphql.json'

    @property
    def storefront_graphql_url(self) -> str:
        return f'https://{self.shop}/api/{self.api_version}/graphql.json'

    @property
    def rest_base_url(self) -> str:
        return f'https://{self.shop}/admin/api/{self.api_version}'

    @property
    def has_storefront_access(self) -> bool:
        return bool(self.storefront_token)

    def _post_graphql(self, label: str, url: str, headers: Dict[str, str], query: str, variables: Dict[str, Any]) -> Dict[str, Any]:
        try:
            response = self._http.post(url, headers=headers, json={'query': query, 'variables': variables})
        except httpx.HTTPError as exc:
            raise ShopifyGraphQLError(f'GraphQL({label}) request failed: {exc}') from exc

        try:
            body = response.json()
        except ValueError:
            body = None

        if response.is_error or not isinstance(body, dict) or body.get('errors'):
            detail = json.dumps(body['errors']) if isinstance(body, dict) and body.get('errors') else response.text
            logger.error('GraphQL call failed', extra={'api': label, 'status_code': response.status_code})
            raise ShopifyGraphQLError(f'GraphQL({label}) {response.status_code}: {detail}', status_code=response.status_code)

        return body.get('data') or {}

    @tracer.capture_method
    def admin_graphql(self, query: str, variables: Dict[str, Any]) -> Dict[str, Any]:
        headers = {'X-Shopify-Access-Token': self.admin_token, 'Content-Type': 'application/json'}
        return self._post_graphql('Admin', self.admin_graphql_url, headers, query, variables)

    @tracer.capture_method
    def storefront_graphql(self, query: str, variables: Dict[str, Any]) -> Dict[str, Any]:
        headers = {'X-Shopify-Storefront-Access-Token': self.storefront_token, 'Content-Type': 'application/json'}
        return self._post_graphql('Storefront', self.storefront_graphql_url, headers, query, variables)

    def find_customer_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        """First customer whose email matches, as ``{id, email, state}``, or None."""
        data = self.admin_graphql(CUSTOMERS_BY_EMAIL, {'q': email_search_query(email)})
        nodes = (data.get('customers') or {}).get('nodes') or []
        return nodes[0] if nodes else None

    def admin_create_customer(self, customer_input: Dict[str, Any]) -> Tuple[Optional[Dict[str, Any]], UserErrors]:
        data = self.admin_graphql(CUSTOMER_CREATE, {'input': customer_input})
        payload = data.get('customerCreate') or {}
        return payload.get('customer'), payload.get('userErrors') or []

    def storefront_create_customer(self, customer_input: Dict[str, Any]) -> Tuple[Optional[Dict[str, Any]], UserErrors]:
        data = self.storefront_graphql(STOREFRONT_CUSTOMER_CREATE, {'input': customer_input})
        payload = data.get('customerCreate') or {}
        return payload.get('customer'), payload.get('customerUserErrors') or []

    def update_customer(self, customer_input: Dict[str, Any]) -> UserErrors:
        data = self.admin_graphql(CUSTOMER_UPDATE, {'input': customer_input})
        return (data.get('customerUpdate') or {}).get('userErrors') or []

    @tracer.capture_method
    def update_customer_soft(self, customer_input: Dict[str, Any]) -> SoftUpdateResult:
        """
        Update a customer, retrying once without the phone when every userError concerns the phone.

        The platform validates phone numbers more strictly than the intake form does,
        so a rejected phone must not block the rest of the update.
        """
        user_errors = self.update_customer(customer_input)
        if not user_errors:
            return SoftUpdateResult(ok=True)

        if customer_input.get('phone') and all(is_phone_error(error) for error in user_errors):
            logger.warning('Phone rejected by platform, retrying customer update without phone')
            retry_input = {key: value for key, value in customer_input.items() if key != 'phone'}
            retry_errors = self.update_customer(retry_input)
            if not retry_errors:
                return SoftUpdateResult(ok=True, dropped_phone=True)
            return SoftUpdateResult(ok=False, user_errors=retry_errors)

        return SoftUpdateResult(ok=False, user_errors=user_errors)

    @tracer.capture_method
    def set_metafields(self, metafields: Sequence[MetafieldInput]) -> UserErrors:
        data = self.admin_graphql(METAFIELDS_SET, {'metafields': [metafield.to_graphql() for metafield in metafields]})
        return (data.get('metafieldsSet') or {}).get('userErrors') or []

    def get_customer_metafields(self, customer_id: str, namespace: str) -> List[Dict[str, Any]]:
        """Metafields of a customer in ``namespace`` as ``{key, type, value}`` dicts."""
        data = self.admin_graphql(CUSTOMER_METAFIELDS, {'id': customer_id, 'namespace': namespace})
        customer = data.get('customer') or {}
        return (customer.get('metafields') or {}).get('nodes') or []

    def create_staged_upload(self, filename: str, mime_type: str) -> Tuple[Optional[Dict[str, Any]], UserErrors]:
        data = self.admin_graphql(STAGED_UPLOADS_CREATE, {
            'input': [{'resource': 'FILE', 'filename': filename, 'mimeType': mime_type, 'httpMethod': 'POST'}],
        })
        payload = data.get('stagedUploadsCreate') or {}
        targets = payload.get('stagedTargets') or []
        return (targets[0] if targets else None), payload.get('userErrors') or []

    def post_staged_file(
        self,
        url: str,
        parameters: Sequence[Dict[str, str]],
        filename: str,
        content: bytes,
        mime_type: str,
    ) -> httpx.Response:
        """
        POST the binary to a staged upload target; form parameters precede the file part.

        Raises:
            ShopifyGraphQLError: If the upload host cannot be reached
        """
        form = {parameter['name']: parameter['value'] for parameter in parameters}
        try:
            return self._http.post(url, data=form, files={'file': (filename, content, mime_type)})
        except httpx.HTTPError as exc:
            raise ShopifyGraphQLError(f'staged upload request failed: {exc}') from exc

    def create_file(self, original_source: str, alt: str, content_type: str) -> Tuple[Optional[Dict[str, Any]], UserErrors]:
        data = self.admin_graphql(FILE_CREATE, {
            'files': [{'contentType': content_type, 'originalSource': original_source, 'alt': alt}],
        })
        payload = data.get('fileCreate') or {}
        files = payload.get('files') or []
        return (files[0] if files else None), payload.get('userErrors') or []

    def get_file_url(self, file_id: str) -> Optional[str]:
        data = self.admin_graphql(FILE_URL, {'id': file_id})
        node = data.get('node') or {}
        return (node.get('image') or {}).get('url') or node.get('url')

    @tracer.capture_method
    def send_account_invite(self, customer_id: str) -> None:
        """
        Send the account activation invite email through the Admin REST API.

        Raises:
            ShopifyGraphQLError: If the platform rejects the request
        """
        numeric_id = str(customer_id).rsplit('/', 1)[-1]
        url = f'{self.rest_base_url}/customers/{numeric_id}/send_invite.json'
        try:
            response = self._http.post(
                url,
                headers={'X-Shopify-Access-Token': self.admin_token, 'Content-Type': 'application/json'},
                json={'customer_invite': {}},
            )
        except httpx.HTTPError as exc:
            raise ShopifyGraphQLError(f'send_invite request failed: {exc}') from exc
        if response.is_error:
            raise ShopifyGraphQLError(f'send_invite {response.status_code}: {response.text}', status_code=response.status_code)
