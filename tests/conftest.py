"""
Pytest configuration and shared fixtures for the retainer handlers.

The platform API is replaced by ``FakeShopify``, a stateful in-memory double
served through ``httpx.MockTransport``; AWS resources are provided by moto.
"""

import base64
import json
import os
import re
from typing import Any, Dict, List, Optional
from unittest.mock import Mock

import pytest

# Test environment configuration, set before any handler module is imported
os.environ.update({
    "AWS_DEFAULT_REGION": "us-east-1",
    "AWS_REGION": "us-east-1",
    "AWS_ACCESS_KEY_ID": "test",
    "AWS_SECRET_ACCESS_KEY": "test",
    "AWS_SECURITY_TOKEN": "test",
    "AWS_SESSION_TOKEN": "test",
    "ENVIRONMENT": "test",
    "LOG_LEVEL": "DEBUG",
    "POWERTOOLS_SERVICE_NAME": "test-retainer-sync",
    "POWERTOOLS_METRICS_NAMESPACE": "TestRetainerSync",
    "POWERTOOLS_TRACE_DISABLED": "true",  # Disable X-Ray in tests
    "SHOPIFY_SHOP": "test-shop.myshopify.com",
    "SHOPIFY_ADMIN_TOKEN": "shpat_test",
    "SHOPIFY_STOREFRONT_TOKEN": "storefront_test",
    "SHOPIFY_API_VERSION": "2024-07",
    "SHOPIFY_WEBHOOK_SECRET": "whsec_test",
    "ALLOWED_ORIGINS": "https://shop.example.com, https://www.example.com",
    "METAFIELD_NAMESPACE": "retainer",
    "FIELD_MAPPING_VERSION": "v2",
    "SEND_ACCOUNT_INVITE": "false",
    "RECORDS_TABLE_NAME": "customer-intakes",
    "SIGNATURE_BUCKET_NAME": "retainer-signatures",
    "SIGNATURE_PUBLIC_BASE_URL": "https://cdn.example.com",
})

import boto3  # noqa: E402
import httpx  # noqa: E402
from moto import mock_aws  # noqa: E402

from retainer_sync.dal.shopify_client import ShopifyClient  # noqa: E402
from retainer_sync.handlers.models.env_vars import get_handler_env_vars  # noqa: E402

ALLOWED_ORIGIN = "https://shop.example.com"
STAGED_UPLOAD_HOST = "uploads.example.com"

PNG_BYTES = b"\x89PNG\r\n\x1a\nfake-png-payload"
PNG_DATA_URL = "data:image/png;base64," + base64.b64encode(PNG_BYTES).decode()
PDF_DATA_URL = "data:application/pdf;base64," + base64.b64encode(b"%PDF-1.4 fake").decode()

OPERATION_PATTERN = re.compile(r"\b(?:query|mutation)\s+(\w+)")

# Modules that read configuration through get_handler_env_vars
ENV_CONSUMERS = (
    "retainer_sync.handlers.intake_upsert",
    "retainer_sync.handlers.profile_update",
    "retainer_sync.handlers.customer_create",
    "retainer_sync.handlers.record",
    "retainer_sync.handlers.order_webhook",
    "retainer_sync.security.cors",
)


class FakeShopify:
    """In-memory Admin/Storefront API double keyed by GraphQL operation name."""

    def __init__(self):
        self.customers: Dict[str, Dict[str, Any]] = {}
        self.hidden_customers: Dict[str, Dict[str, Any]] = {}
        self.metafields: Dict[tuple, Dict[str, str]] = {}
        self.passwords: Dict[str, str] = {}
        self.operations: List[str] = []
        self.variables: List[Dict[str, Any]] = []
        self.invites: List[str] = []
        self.files: Dict[str, Dict[str, Any]] = {}

        # failure switches
        self.access_denied = False
        self.reject_phone = False
        self.hide_created_customers = False
        self.metafield_errors: List[Dict[str, Any]] = []
        self.storefront_errors: List[Dict[str, Any]] = []
        self.graphql_errors: Optional[List[Dict[str, Any]]] = None
        self.admin_status = 200
        self.staged_upload_status = 204
        self.staged_upload_unreachable = False
        self.invite_status = 201

        self._next_id = 1000

    # state helpers

    def _new_id(self) -> int:
        self._next_id += 1
        return self._next_id

    def add_customer(self, email: str, state: str = "DISABLED", **fields: Any) -> str:
        gid = f"gid://shopify/Customer/{self._new_id()}"
        self.customers[email] = {"id": gid, "email": email, "state": state, **fields}
        return gid

    def set_metafield(self, owner_id: str, key: str, type_: str, value: str, namespace: str = "retainer") -> None:
        self.metafields[(owner_id, namespace, key)] = {"type": type_, "value": value}

    def metafields_of(self, owner_id: str, namespace: str = "retainer") -> Dict[str, Dict[str, str]]:
        return {key: data for (owner, ns, key), data in self.metafields.items() if owner == owner_id and ns == namespace}

    def customer_by_id(self, customer_id: str) -> Optional[Dict[str, Any]]:
        for customer in self.customers.values():
            if customer["id"] == customer_id:
                return customer
        return None

    def count(self, operation: str) -> int:
        return self.operations.count(operation)

    # transport

    def handle(self, request: httpx.Request) -> httpx.Response:
        if request.url.host == STAGED_UPLOAD_HOST:
            self.operations.append("StagedUploadPost")
            if self.staged_upload_unreachable:
                raise httpx.ConnectError("upload host unreachable", request=request)
            return httpx.Response(self.staged_upload_status, text="" if self.staged_upload_status < 400 else "denied")

        if request.url.path.endswith("/send_invite.json"):
            self.operations.append("SendInvite")
            self.invites.append(request.url.path.split("/")[-2])
            if self.invite_status >= 400:
                return httpx.Response(self.invite_status, json={"errors": "invite failed"})
            return httpx.Response(self.invite_status, json={"customer_invite": {}})

        payload = json.loads(request.content)
        operation = OPERATION_PATTERN.search(payload["query"]).group(1)
        variables = payload.get("variables") or {}
        self.operations.append(operation)
        self.variables.append(variables)

        if self.admin_status != 200:
            return httpx.Response(self.admin_status, text="upstream failure")
        if self.graphql_errors is not None:
            return httpx.Response(200, json={"errors": self.graphql_errors})

        data = getattr(self, f"_op_{operation}")(variables)
        if isinstance(data, httpx.Response):
            return data
        return httpx.Response(200, json={"data": data})

    # operations

    def _op_CustomersByEmail(self, variables):
        if self.access_denied:
            return httpx.Response(200, json={"errors": [
                {"message": "Access denied for customers field.", "extensions": {"code": "ACCESS_DENIED"}},
            ]})
        email = json.loads(variables["q"].split(":", 1)[1])
        customer = self.customers.get(email)
        nodes = [{key: customer[key] for key in ("id", "email", "state")}] if customer else []
        return {"customers": {"nodes": nodes}}

    def _op_StorefrontCustomerCreate(self, variables):
        if self.storefront_errors:
            return {"customerCreate": {"customer": None, "customerUserErrors": self.storefront_errors}}
        data = variables["input"]
        self.passwords[data["email"]] = data["password"]
        gid = f"gid://shopify/Customer/{self._new_id()}"
        customer = {"id": gid, "email": data["email"], "state": "ENABLED"}
        if self.hide_created_customers:
            self.hidden_customers[data["email"]] = customer
        else:
            self.customers[data["email"]] = customer
        return {"customerCreate": {"customer": {"id": gid, "email": data["email"]}, "customerUserErrors": []}}

    def _op_CustomerCreate(self, variables):
        data = variables["input"]
        gid = self.add_customer(data["email"], firstName=data.get("firstName"), lastName=data.get("lastName"))
        return {"customerCreate": {"customer": {"id": gid, "email": data["email"], "state": "DISABLED"}, "userErrors": []}}

    def _op_CustomerUpdate(self, variables):
        data = dict(variables["input"])
        if self.reject_phone and data.get("phone"):
            return {"customerUpdate": {"customer": None, "userErrors": [
                {"field": ["phone"], "message": "Phone is invalid"},
            ]}}
        customer = self.customer_by_id(data.pop("id"))
        if customer is None:
            return {"customerUpdate": {"customer": None, "userErrors": [{"field": ["id"], "message": "Customer does not exist"}]}}
        customer.update(data)
        return {"customerUpdate": {"customer": {key: customer[key] for key in ("id", "email", "state")}, "userErrors": []}}

    def _op_MetafieldsSet(self, variables):
        if self.metafield_errors:
            return {"metafieldsSet": {"metafields": [], "userErrors": self.metafield_errors}}
        written = []
        for metafield in variables["metafields"]:
            self.set_metafield(metafield["ownerId"], metafield["key"], metafield["type"], metafield["value"], metafield["namespace"])
            written.append({"namespace": metafield["namespace"], "key": metafield["key"], "type": metafield["type"]})
        return {"metafieldsSet": {"metafields": written, "userErrors": []}}

    def _op_CustomerMetafields(self, variables):
        nodes = [
            {"key": key, "type": data["type"], "value": data["value"]}
            for key, data in self.metafields_of(variables["id"], variables["namespace"]).items()
        ]
        return {"customer": {"id": variables["id"], "metafields": {"nodes": nodes}}}

    def _op_StagedUploadsCreate(self, variables):
        filename = variables["input"][0]["filename"]
        return {"stagedUploadsCreate": {
            "stagedTargets": [{
                "url": f"https://{STAGED_UPLOAD_HOST}/staged",
                "resourceUrl": f"https://{STAGED_UPLOAD_HOST}/staged/{filename}",
                "parameters": [{"name": "key", "value": f"tmp/{filename}"}],
            }],
            "userErrors": [],
        }}

    def _op_FileCreate(self, variables):
        spec = variables["files"][0]
        number = self._new_id()
        if spec["contentType"] == "IMAGE":
            node = {"id": f"gid://shopify/MediaImage/{number}", "__typename": "MediaImage", "image": None}
        else:
            node = {"id": f"gid://shopify/GenericFile/{number}", "__typename": "GenericFile", "url": f"https://cdn.example.com/{number}.pdf"}
        self.files[node["id"]] = {**spec, **node}
        return {"fileCreate": {"files": [node], "userErrors": []}}

    def _op_FileUrl(self, variables):
        node = self.files.get(variables["id"]) or {}
        return {"node": {"image": {"url": f"https://cdn.example.com/{variables['id'].rsplit('/', 1)[-1]}.png"}} if node else None}


@pytest.fixture
def shopify(monkeypatch) -> FakeShopify:
    """Route every ShopifyClient built from configuration to a fresh FakeShopify."""
    fake = FakeShopify()
    original_from_env = ShopifyClient.from_env.__func__

    def from_env(cls, env, http_client=None):
        return original_from_env(cls, env, http_client=httpx.Client(transport=httpx.MockTransport(fake.handle)))

    monkeypatch.setattr(ShopifyClient, "from_env", classmethod(from_env))
    return fake


@pytest.fixture
def shopify_client(shopify) -> ShopifyClient:
    """A client bound directly to the fake, for tests below the handler layer."""
    client = ShopifyClient(
        shop="test-shop.myshopify.com",
        admin_token="shpat_test",
        storefront_token="storefront_test",
        http_client=httpx.Client(transport=httpx.MockTransport(shopify.handle)),
    )
    yield client
    client.close()


@pytest.fixture
def override_env(monkeypatch):
    """Replace selected configuration values for the duration of a test."""
    import importlib

    def _override(**overrides: Any):
        env = get_handler_env_vars().model_copy(update=overrides)
        for module_name in ENV_CONSUMERS:
            monkeypatch.setattr(importlib.import_module(module_name), "get_handler_env_vars", lambda: env)
        return env

    return _override


# AWS fixtures
@pytest.fixture
def aws_resources():
    """Create the mock DynamoDB record table and S3 signature bucket."""
    with mock_aws():
        dynamodb = boto3.resource("dynamodb", region_name="us-east-1")
        table = dynamodb.create_table(
            TableName="customer-intakes",
            KeySchema=[{"AttributeName": "email", "KeyType": "HASH"}],
            AttributeDefinitions=[{"AttributeName": "email", "AttributeType": "S"}],
            BillingMode="PAY_PER_REQUEST",
        )
        table.wait_until_exists()

        s3 = boto3.client("s3", region_name="us-east-1")
        s3.create_bucket(Bucket="retainer-signatures")

        yield {"table": table, "s3": s3}


# API Gateway helpers
def build_api_event(
    method: str,
    path: str,
    body: Any = None,
    headers: Optional[Dict[str, str]] = None,
    query: Optional[Dict[str, str]] = None,
    is_base64: bool = False,
) -> Dict[str, Any]:
    """Create an API Gateway REST (v1) proxy event."""
    request_headers = {"User-Agent": "test-agent/1.0"}
    if isinstance(body, (dict, list)):
        body = json.dumps(body)
        request_headers["Content-Type"] = "application/json"
    request_headers.update(headers or {})

    return {
        "resource": path,
        "httpMethod": method,
        "path": path,
        "headers": request_headers,
        "multiValueHeaders": {key: [value] for key, value in request_headers.items()},
        "body": body,
        "requestContext": {
            "requestId": "test-request-id-123",
            "accountId": "123456789012",
            "stage": "test",
            "httpMethod": method,
            "path": path,
            "resourcePath": path,
            "protocol": "HTTP/1.1",
            "identity": {"sourceIp": "127.0.0.1", "userAgent": "test-agent/1.0"},
        },
        "pathParameters": None,
        "queryStringParameters": query,
        "multiValueQueryStringParameters": {key: [value] for key, value in query.items()} if query else None,
        "stageVariables": None,
        "isBase64Encoded": is_base64,
    }


def response_headers(response: Dict[str, Any]) -> Dict[str, str]:
    """Single and multi-value response headers merged into one case-insensitive map."""
    merged: Dict[str, str] = {}
    for key, value in (response.get("headers") or {}).items():
        merged[key.lower()] = value
    for key, values in (response.get("multiValueHeaders") or {}).items():
        merged[key.lower()] = ", ".join(values) if isinstance(values, list) else values
    return merged


def response_json(response: Dict[str, Any]) -> Dict[str, Any]:
    return json.loads(response["body"])


@pytest.fixture
def api_event():
    return build_api_event


@pytest.fixture
def lambda_context():
    """Create a mock Lambda context for testing."""
    context = Mock()
    context.function_name = "test-lambda-function"
    context.function_version = "1"
    context.invoked_function_arn = "arn:aws:lambda:us-east-1:123456789012:function:test-lambda-function"
    context.memory_limit_in_mb = 512
    context.get_remaining_time_in_millis = lambda: 30000
    context.aws_request_id = "test-request-id-123"
    context.log_group_name = "/aws/lambda/test-lambda-function"
    context.log_stream_name = "2024/01/01/[$LATEST]test123"
    return context


# Sample data fixtures
@pytest.fixture
def intake_payload() -> Dict[str, Any]:
    return {
        "email": "  Jane.Doe@Example.COM ",
        "first_name": "Jane",
        "last_name": "Doe",
        "phone": "+1 (555) 010-2030",
        "phone_digits": "5550102030",
        "home_address": "1 Main St, Springfield",
        "dob": "1985-04-12",
        "insurer": "Acme Mutual",
        "has_bi": "yes",
        "cars_count": 2,
        "intake_notes": "Prefers email contact",
        "retainer_plan": "Gold",
        "retainer_term": "12 months",
        "vehicles": [
            {"year": 2019, "make": "Honda", "model": "Civic"},
            {"year": "", "make": "", "model": ""},
        ],
        "household": [
            {"name": "John Doe", "dob": "1984-01-01", "relationship": "Spouse"},
        ],
    }


# Pytest configuration
def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
