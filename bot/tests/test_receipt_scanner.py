"""
Tests for the OpenAI-backed receipt scanner.
The OpenAI client is always mocked; no network calls are made.
"""
import json
from unittest.mock import Mock, patch

import pytest

from core.ai import ReceiptScanner, strip_code_fence

RECEIPT_JSON = {
    "metadata": {"storeName": "Kopi Corner", "date": "2024-05-01"},
    "items": [{"name": "Teh Tarik", "quantity": 2, "unitPrice": 3.5, "totalPrice": 7}],
    "summary": {"subtotal": 7, "serviceCharge": 0.7, "total": 7.7},
    "additionalNotes": [],
}


def completion(content):
    response = Mock()
    response.choices = [Mock(message=Mock(content=content))]
    return response


class TestReceiptScanner:
    @pytest.fixture
    def scanner(self):
        with patch("core.ai.OpenAI") as mock_openai:
            scanner = ReceiptScanner(api_key="test-key", model="gpt-4o-mini")
            scanner.client = mock_openai.return_value
            yield scanner

    def test_scan_parses_receipt(self, scanner):
        scanner.client.chat.completions.create.return_value = completion(json.dumps(RECEIPT_JSON))

        result = scanner.scan(b"fake-image")

        assert result.ok
        assert result.data.metadata.store_name == "Kopi Corner"
        assert result.data.items[0].total_price == 7
        assert result.data.summary.service_charge == 0.7

    def test_scan_sends_image_as_data_url(self, scanner):
        scanner.client.chat.completions.create.return_value = completion(json.dumps(RECEIPT_JSON))

        scanner.scan(b"abc", mime_type="image/png")

        kwargs = scanner.client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["response_format"] == {"type": "json_object"}
        image_part = kwargs["messages"][0]["content"][1]
        assert image_part["image_url"]["url"] == "data:image/png;base64,YWJj"

    def test_scan_never_raises_on_api_error(self, scanner):
        scanner.client.chat.completions.create.side_effect = RuntimeError("connection reset")

        result = scanner.scan(b"fake-image")

        assert not result.ok
        assert "connection reset" in result.error

    def test_invalid_json(self, scanner):
        result = scanner.parse("this is not json")
        assert not result.ok
        assert result.error == "Failed to parse response as JSON"
        assert result.text == "this is not json"

    def test_schema_mismatch(self, scanner):
        result = scanner.parse(json.dumps({"items": [{"name": "no price"}]}))
        assert not result.ok
        assert result.error == "Receipt data did not match the expected format"

    def test_fenced_json_is_accepted(self, scanner):
        result = scanner.parse("```json\n" + json.dumps(RECEIPT_JSON) + "\n```")
        assert result.ok

    def test_get_current_model(self, scanner):
        assert scanner.get_current_model() == "gpt-4o-mini"


@pytest.mark.parametrize("text, expected", [
    ('```json\n{"a": 1}\n```', '{"a": 1}'),
    ('```\n{"a": 1}\n```', '{"a": 1}'),
    ('  {"a": 1}  ', '{"a": 1}'),
])
def test_strip_code_fence(text, expected):
    assert strip_code_fence(text) == expected
