"""Receipt scanning through an OpenAI vision model."""
import base64
import json
import logging
from typing import Optional

from openai import OpenAI
from pydantic import BaseModel, ValidationError

from core.receipts import ReceiptData

logger = logging.getLogger(__name__)

RECEIPT_PROMPT = """Extract the receipt information and return it in JSON format. Follow these rules:
1. Extract all items with their quantities and prices
2. Verify all calculations are correct
3. Include any uncertainties in additionalNotes
4. Format dates as YYYY-MM-DD
5. Format times as HH:MM
6. Extract service charge and service tax into summary.serviceCharge and summary.serviceTax
7. Return ONLY valid JSON, no other text

The JSON object must have this shape:
{
  "metadata": {"storeName": str, "storeAddress": str?, "date": str, "time": str?, "receiptNumber": str?},
  "items": [{"name": str, "quantity": number, "unitPrice": number, "totalPrice": number}],
  "summary": {"subtotal": number, "serviceCharge": number?, "serviceTax": number?, "total": number, "paymentMethod": str?},
  "additionalNotes": [str]
}"""


class ReceiptScanResult(BaseModel):
    text: str = ""
    data: Optional[ReceiptData] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.data is not None and self.error is None


def strip_code_fence(text: str) -> str:
    text = text.strip()
    if text.startswith("```json"):
        return text[7:-3].strip()
    if text.startswith("```"):
        return text[3:-3].strip()
    return text


class ReceiptScanner:
    def __init__(self, api_key: str | None, model: str = "gpt-4o-mini"):
        self.model = model
        self.client = OpenAI(api_key=api_key)

    def scan(self, image_bytes: bytes, mime_type: str = "image/jpeg", prompt: str = RECEIPT_PROMPT) -> ReceiptScanResult:
        """Never raises: failures come back as a result with ``error`` set."""
        encoded = base64.b64encode(image_bytes).decode("ascii")
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[{
                    "role": "user",
                    "content": [
                        {"type": "text", "text": prompt},
                        {"type": "image_url", "image_url": {"url": f"data:{mime_type};base64,{encoded}"}},
                    ],
                }],
                response_format={"type": "json_object"},
                temperature=0.1,
                max_tokens=2048,
            )
        except Exception as e:
            logger.error(f"Receipt scan request failed: {e}")
            return ReceiptScanResult(error=str(e))

        text = response.choices[0].message.content or ""
        return self.parse(text)

    def parse(self, text: str) -> ReceiptScanResult:
        try:
            payload = json.loads(strip_code_fence(text))
        except json.JSONDecodeError as e:
            logger.error(f"Receipt scan returned invalid JSON: {e}")
            return ReceiptScanResult(text=text, error="Failed to parse response as JSON")

        try:
            data = ReceiptData.model_validate(payload)
        except ValidationError as e:
            logger.error(f"Receipt scan returned unexpected data: {e}")
            return ReceiptScanResult(text=text, error="Receipt data did not match the expected format")

        logger.info(f"Parsed receipt from {data.metadata.store_name or 'unknown store'} with {len(data.items)} item(s)")
        return ReceiptScanResult(text=text, data=data)

    def get_current_model(self) -> str:
        return self.model
