"""
Unit tests for the intake upsert handler.
"""

import base64
import json
from urllib.parse import urlencode

from conftest import ALLOWED_ORIGIN, PDF_DATA_URL, PNG_DATA_URL, build_api_event, response_headers, response_json

from retainer_sync.handlers.intake_upsert import lambda_handler
from retainer_sync.handlers.utils.rest_api_resolver import INTAKE_UPSERT_PATH


def invoke(lambda_context, body=None, method="POST", headers=None, **kwargs):
    event = build_api_event(method, INTAKE_UPSERT_PATH, body=body, headers={"Origin": ALLOWED_ORIGIN, **(headers or {})}, **kwargs)
    return lambda_handler(event, lambda_context)


class TestMethods:
    def test_preflight(self, lambda_context):
        response = invoke(lambda_context, method="OPTIONS")

        headers = response_headers(response)
        assert response["statusCode"] == 204
        assert headers["access-control-allow-origin"] == ALLOWED_ORIGIN
        assert headers["access-control-allow-methods"] == "POST, OPTIONS"
        assert headers["vary"] == "Origin"

    def test_other_methods_are_rejected(self, lambda_context):
        assert invoke(lambda_context, method="GET")["statusCode"] == 405
        assert invoke(lambda_context, method="PUT")["statusCode"] == 405

    def test_unknown_origin_gets_no_allow_origin(self, lambda_context, shopify, intake_payload):
        response = invoke(lambda_context, body=intake_payload, headers={"Origin": "https://evil.example.com"})

        assert "access-control-allow-origin" not in response_headers(response)


class TestValidation:
    def test_invalid_email(self, lambda_context, shopify, intake_payload):
        intake_payload["email"] = "not-an-email"

        response = invoke(lambda_context, body=intake_payload)

        assert response["statusCode"] == 400
        assert response_json(response) == {"ok": False, "error": "Email address is required and must be valid."}
        assert shopify.operations == []

    def test_phone_is_required_in_v2(self, lambda_context, shopify, intake_payload):
        intake_payload["phone"] = "555-0102"

        response = invoke(lambda_context, body=intake_payload)

        assert response["statusCode"] == 400
        assert response_json(response)["error"] == "Phone number is required and must have at least 10 digits."

    def test_invalid_phone_is_dropped_in_v1(self, lambda_context, shopify, intake_payload, override_env):
        override_env(FIELD_MAPPING_VERSION="v1")
        intake_payload["phone"] = "555"

        response = invoke(lambda_context, body=intake_payload)

        assert response_json(response)["ok"] is True
        assert "phone" not in shopify.customers["jane.doe@example.com"]

    def test_malformed_json(self, lambda_context, shopify):
        response = invoke(lambda_context, body="{not json", headers={"Content-Type": "application/json"})

        assert response["statusCode"] == 400
        assert response_json(response)["ok"] is False


class TestUpsert:
    def test_new_customer_is_created_through_storefront(self, lambda_context, shopify, intake_payload):
        response = invoke(lambda_context, body=intake_payload)

        body = response_json(response)
        customer = shopify.customers["jane.doe@example.com"]
        assert response["statusCode"] == 200
        assert body == {"ok": True, "customer_id": customer["id"], "customer_email": "jane.doe@example.com"}
        assert shopify.count("StorefrontCustomerCreate") == 1
        assert shopify.passwords["jane.doe@example.com"] == "Doe1985!"
        assert customer["firstName"] == "Jane"
        assert customer["phone"] == "+1 (555) 010-2030"
        assert customer["addresses"] == [{"address1": "1 Main St, Springfield", "firstName": "Jane", "lastName": "Doe"}]

    def test_supplied_password_is_used(self, lambda_context, shopify, intake_payload):
        intake_payload["password"] = "Chosen-Passw0rd"

        invoke(lambda_context, body=intake_payload)

        assert shopify.passwords["jane.doe@example.com"] == "Chosen-Passw0rd"

    def test_metafields_follow_v2_mapping(self, lambda_context, shopify, intake_payload):
        invoke(lambda_context, body=intake_payload)

        metafields = shopify.metafields_of(shopify.customers["jane.doe@example.com"]["id"])
        assert metafields["dob"] == {"type": "date", "value": "1985-04-12"}
        assert metafields["has_bi"]["value"] == "true"
        assert metafields["cars_count"] == {"type": "number_integer", "value": "2"}
        assert json.loads(metafields["vehicles_list"]["value"]) == ["2019 Honda Civic"]
        assert json.loads(metafields["household_list"]["value"]) == ["John Doe — 1984-01-01 — Spouse"]
        assert metafields["phone_digits"]["value"] == "5550102030"
        assert metafields["current_retainer_term"]["value"] == "12 months"
        assert "bi_limits" not in metafields
        assert "vehicles_json" not in metafields

    def test_v1_mapping_writes_json_arrays(self, lambda_context, shopify, intake_payload, override_env):
        override_env(FIELD_MAPPING_VERSION="v1")
        intake_payload["bi_limits"] = "100/300"

        invoke(lambda_context, body=intake_payload)

        metafields = shopify.metafields_of(shopify.customers["jane.doe@example.com"]["id"])
        assert metafields["bi_limits"]["value"] == "100/300"
        assert json.loads(metafields["household_json"]["value"])[0]["relationship"] == "Spouse"
        assert "vehicles_list" not in metafields

    def test_double_submit_creates_one_customer(self, lambda_context, shopify, intake_payload):
        first = response_json(invoke(lambda_context, body=intake_payload))
        second = response_json(invoke(lambda_context, body=intake_payload))

        assert first["customer_id"] == second["customer_id"]
        assert shopify.count("StorefrontCustomerCreate") == 1
        assert len(shopify.customers) == 1

    def test_existing_customer_is_updated(self, lambda_context, shopify, intake_payload):
        gid = shopify.add_customer("jane.doe@example.com", state="ENABLED")

        body = response_json(invoke(lambda_context, body=intake_payload))

        assert body["customer_id"] == gid
        assert shopify.count("StorefrontCustomerCreate") == 0
        assert shopify.customers["jane.doe@example.com"]["lastName"] == "Doe"

    def test_invalid_values_are_dropped(self, lambda_context, shopify, intake_payload):
        intake_payload.update({"dob": "04/12/1985", "cars_count": 3.7, "insurer": "   "})

        invoke(lambda_context, body=intake_payload)

        metafields = shopify.metafields_of(shopify.customers["jane.doe@example.com"]["id"])
        assert "dob" not in metafields
        assert "cars_count" not in metafields
        assert "insurer" not in metafields

    def test_non_numeric_cars_count_is_zero(self, lambda_context, shopify, intake_payload):
        intake_payload["cars_count"] = "abc"

        invoke(lambda_context, body=intake_payload)

        metafields = shopify.metafields_of(shopify.customers["jane.doe@example.com"]["id"])
        assert metafields["cars_count"]["value"] == "0"

    def test_rejected_phone_is_dropped_and_update_retried(self, lambda_context, shopify, intake_payload):
        shopify.reject_phone = True

        response = invoke(lambda_context, body=intake_payload)

        assert response_json(response)["ok"] is True
        assert "phone" not in shopify.customers["jane.doe@example.com"]

    def test_admin_create_without_storefront_token(self, lambda_context, shopify, intake_payload, override_env):
        override_env(SHOPIFY_STOREFRONT_TOKEN="")

        body = response_json(invoke(lambda_context, body=intake_payload))

        assert body["ok"] is True
        assert shopify.count("CustomerCreate") == 1
        assert shopify.count("StorefrontCustomerCreate") == 0


class TestUploads:
    def test_documents_become_file_references(self, lambda_context, shopify, intake_payload):
        intake_payload["signature_data_url"] = PNG_DATA_URL
        intake_payload["license_data_url"] = "not-a-data-url"

        response = invoke(lambda_context, body=intake_payload)

        metafields = shopify.metafields_of(shopify.customers["jane.doe@example.com"]["id"])
        assert response_json(response)["ok"] is True
        assert metafields["signature"]["type"] == "file_reference"
        assert metafields["signature"]["value"].startswith("gid://shopify/MediaImage/")
        assert "drivers_license" not in metafields

    def test_failed_upload_is_skipped(self, lambda_context, shopify, intake_payload):
        shopify.staged_upload_status = 500
        intake_payload["signature_data_url"] = PNG_DATA_URL

        response = invoke(lambda_context, body=intake_payload)

        metafields = shopify.metafields_of(shopify.customers["jane.doe@example.com"]["id"])
        assert response_json(response)["ok"] is True
        assert "signature" not in metafields

    def test_unreachable_upload_host_is_skipped(self, lambda_context, shopify, intake_payload):
        shopify.staged_upload_unreachable = True
        intake_payload["signature_data_url"] = PNG_DATA_URL
        intake_payload["license_data_url"] = PDF_DATA_URL

        response = invoke(lambda_context, body=intake_payload)

        metafields = shopify.metafields_of(shopify.customers["jane.doe@example.com"]["id"])
        assert response["statusCode"] == 200
        assert response_json(response)["ok"] is True
        assert "signature" not in metafields
        assert "drivers_license" not in metafields
        assert metafields["insurer"]["value"] == "Acme Mutual"


class TestRemoteFailures:
    def test_access_denied(self, lambda_context, shopify, intake_payload):
        shopify.access_denied = True

        response = invoke(lambda_context, body=intake_payload)

        assert response["statusCode"] == 200
        assert response_json(response) == {
            "ok": False,
            "error": "Shopify permissions are missing (protected customer data scope).",
        }

    def test_customer_not_visible_after_creation(self, lambda_context, shopify, intake_payload):
        shopify.hide_created_customers = True

        response = invoke(lambda_context, body=intake_payload)

        assert response["statusCode"] == 200
        assert response_json(response)["error"] == "Customer created but not yet visible in Admin. Please try again."

    def test_storefront_user_errors(self, lambda_context, shopify, intake_payload):
        shopify.storefront_errors = [{"field": ["input", "password"], "message": "Password is too short", "code": "TOO_SHORT"}]

        response = invoke(lambda_context, body=intake_payload)

        assert response["statusCode"] == 200
        assert response_json(response) == {"ok": False, "error": "Password doesn’t meet requirements."}

    def test_metafield_user_errors(self, lambda_context, shopify, intake_payload):
        shopify.metafield_errors = [{"field": ["metafields", "0", "value"], "message": "Value is invalid"}]

        response = invoke(lambda_context, body=intake_payload)

        assert response["statusCode"] == 200
        assert response_json(response) == {"ok": False, "error": "Value is invalid"}

    def test_platform_outage(self, lambda_context, shopify, intake_payload):
        shopify.admin_status = 503

        response = invoke(lambda_context, body=intake_payload)

        assert response["statusCode"] == 200
        assert response_json(response)["ok"] is False

    def test_unexpected_error(self, lambda_context, shopify, intake_payload, monkeypatch):
        from retainer_sync.logic.intake_service import IntakeService

        def boom(self, request):
            raise RuntimeError("boom")

        monkeypatch.setattr(IntakeService, "upsert", boom)

        response = invoke(lambda_context, body=intake_payload)

        assert response["statusCode"] == 200
        assert response_json(response) == {"ok": False, "error": "boom"}


class TestInvite:
    def test_invite_sent_when_enabled_and_account_disabled(self, lambda_context, shopify, intake_payload, override_env):
        override_env(SEND_ACCOUNT_INVITE="true")
        gid = shopify.add_customer("jane.doe@example.com", state="DISABLED")

        invoke(lambda_context, body=intake_payload)

        assert shopify.invites == [gid.rsplit("/", 1)[-1]]

    def test_no_invite_for_enabled_account(self, lambda_context, shopify, intake_payload, override_env):
        override_env(SEND_ACCOUNT_INVITE="true")
        shopify.add_customer("jane.doe@example.com", state="ENABLED")

        invoke(lambda_context, body=intake_payload)

        assert shopify.invites == []

    def test_no_invite_by_default(self, lambda_context, shopify, intake_payload):
        shopify.add_customer("jane.doe@example.com", state="DISABLED")

        invoke(lambda_context, body=intake_payload)

        assert shopify.invites == []

    def test_invite_failure_is_not_fatal(self, lambda_context, shopify, intake_payload, override_env):
        override_env(SEND_ACCOUNT_INVITE="true")
        shopify.add_customer("jane.doe@example.com", state="INVITED")
        shopify.invite_status = 422

        response = invoke(lambda_context, body=intake_payload)

        assert response_json(response)["ok"] is True


class TestBodyFormats:
    def test_form_encoded_body(self, lambda_context, shopify):
        form = urlencode({"email": "Form@Example.com", "phone": "5550102030", "cars_count": "1"})

        response = invoke(lambda_context, body=form, headers={"Content-Type": "application/x-www-form-urlencoded"})

        assert response_json(response)["customer_email"] == "form@example.com"

    def test_base64_encoded_body(self, lambda_context, shopify, intake_payload):
        encoded = base64.b64encode(json.dumps(intake_payload).encode()).decode()

        response = invoke(lambda_context, body=encoded, headers={"Content-Type": "application/json"}, is_base64=True)

        assert response_json(response)["ok"] is True

    def test_non_object_body_is_treated_as_empty(self, lambda_context, shopify):
        response = invoke(lambda_context, body="[1, 2]", headers={"Content-Type": "application/json"})

        assert response["statusCode"] == 400
        assert response_json(response)["error"] == "Email address is required and must be valid."
