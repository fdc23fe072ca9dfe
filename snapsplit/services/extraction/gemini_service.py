"""
Receipt Extraction using Gemini

DESIGN DECISION: We use a Gemini vision model because:
1. It reads itemised receipts directly from a photo (no separate OCR step)
2. It can be constrained to return JSON matching a schema
3. It copes with the varied layouts of restaurant receipts

This service handles:
1. Sending the prepared image to Gemini with the extraction prompt
2. Parsing the JSON response
3. Normalising malformed records instead of failing the whole batch
4. Classifying failures so the caller can show a retryable message

The API key comes from the GeminiSettings object handed to the constructor.
"""

import json
from typing import Any, Optional
from uuid import UUID, uuid4

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from snapsplit.config import GeminiSettings, get_settings
from snapsplit.models.split import (
    UNKNOWN_ITEM,
    ZERO,
    ExtractedReceipt,
    NonFiniteAmountError,
    ReceiptItem,
    to_amount,
)


EXTRACTION_PROMPT = (
    "Extract all line items from this receipt. Return a JSON array of objects "
    "with 'description' and 'price'. Ignore subtotal, tax, and total lines, "
    "just get the purchased items. If a price is not clear, estimate or "
    "default to 0."
)

RECEIPT_ITEMS_SCHEMA = {
    "type": "ARRAY",
    "items": {
        "type": "OBJECT",
        "properties": {
            "description": {
                "type": "STRING",
                "description": "The name of the item purchased",
            },
            "price": {
                "type": "NUMBER",
                "description": "The price of the item",
            },
        },
        "required": ["description", "price"],
    },
}


class ExtractionError(Exception):
    """Base exception for receipt extraction errors."""

    user_message = "Something went wrong analyzing the receipt. Please try again."
    retryable = True

    def __init__(self, message: str, user_message: Optional[str] = None):
        super().__init__(message)
        if user_message:
            self.user_message = user_message


class MissingCredentialsError(ExtractionError):
    """No usable Gemini API key was configured."""

    user_message = (
        "The receipt scanner is not configured. "
        "Please set GEMINI_API_KEY and try again."
    )
    retryable = False


class ExtractionAuthError(ExtractionError):
    """Gemini rejected the API key."""

    user_message = (
        "API key invalid or restricted. "
        "Check your Google AI Studio API key permissions."
    )
    retryable = False


class ExtractionTimeoutError(ExtractionError):
    """Gemini timed out, was unavailable, or rate limited the request."""

    user_message = "The receipt scanner is busy right now. Please try again in a moment."


class MalformedResponseError(ExtractionError):
    """Gemini answered, but not with a list of items."""
    pass


class ExtractionFailedError(ExtractionError):
    """Any other failure talking to Gemini."""
    pass


def _safe_price(value: Any):
    try:
        return to_amount(value)
    except NonFiniteAmountError:
        return ZERO


def normalize_records(raw: Any, extraction_id: UUID) -> list[ReceiptItem]:
    """
    Turn the model's JSON into ReceiptItems.

    A bad record never fails the batch: missing descriptions become
    "Unknown Item", and missing, non-numeric or negative prices become 0.

    Raises:
        MalformedResponseError: If the payload is not a list of records
    """
    if isinstance(raw, dict) and isinstance(raw.get("items"), list):
        raw = raw["items"]

    if not isinstance(raw, list):
        raise MalformedResponseError(
            f"Expected a JSON array of items, got {type(raw).__name__}"
        )

    items = []
    for index, record in enumerate(raw):
        if not isinstance(record, dict):
            record = {}

        description = record.get("description") or record.get("name")
        if not isinstance(description, str) or not description.strip():
            description = UNKNOWN_ITEM

        items.append(ReceiptItem(
            id=f"item-{extraction_id.hex[:8]}-{index}",
            description=description,
            price=_safe_price(record.get("price")),
        ))

    return items


def _parse_json(text: str) -> Any:
    """Parse the response body, tolerating markdown code fences around it."""
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass

    start = text.find("[")
    end = text.rfind("]") + 1
    if start >= 0 and end > start:
        try:
            return json.loads(text[start:end])
        except json.JSONDecodeError:
            pass

    raise MalformedResponseError("Response is not valid JSON")


def _looks_like_auth_failure(error: Exception) -> bool:
    text = str(error)
    return "403" in text or "API key" in text or "API_KEY" in text


class GeminiReceiptExtractor:
    """
    Extracts priced line items from a receipt photo using Gemini.

    IMPORTANT BOUNDARIES:
    1. This service ONLY extracts items - it never assigns or splits them
    2. An empty result is returned as-is; the caller decides what to tell the user
    3. Every failure surfaces as an ExtractionError subclass
    """

    def __init__(self, settings: Optional[GeminiSettings] = None):
        self._settings = settings or get_settings().gemini
        self._model = None

    @property
    def model_name(self) -> str:
        return self._settings.model_name

    def _get_model(self):
        """Get or create the Gemini model."""
        if not self._settings.has_usable_key:
            raise MissingCredentialsError("GEMINI_API_KEY is missing or a placeholder")

        if self._model is None:
            genai.configure(api_key=self._settings.api_key)
            self._model = genai.GenerativeModel(
                model_name=self._settings.model_name,
                generation_config={
                    "temperature": self._settings.temperature,
                    "max_output_tokens": self._settings.max_tokens,
                    "response_mime_type": "application/json",
                    "response_schema": RECEIPT_ITEMS_SCHEMA,
                },
            )
        return self._model

    @retry(
        retry=retry_if_exception_type(ExtractionTimeoutError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def _generate(self, image_bytes: bytes, mime_type: str) -> str:
        """Send one image to Gemini and return the raw response text."""
        model = self._get_model()

        try:
            response = await model.generate_content_async(
                [
                    {"mime_type": mime_type, "data": image_bytes},
                    EXTRACTION_PROMPT,
                ],
                request_options={"timeout": self._settings.timeout_seconds},
            )
        except (
            google_exceptions.PermissionDenied,
            google_exceptions.Unauthenticated,
        ) as e:
            raise ExtractionAuthError(f"Gemini rejected the API key: {e}") from e
        except (
            google_exceptions.DeadlineExceeded,
            google_exceptions.ServiceUnavailable,
            google_exceptions.ResourceExhausted,
            google_exceptions.InternalServerError,
            TimeoutError,
        ) as e:
            raise ExtractionTimeoutError(f"Gemini did not respond in time: {e}") from e
        except Exception as e:
            if _looks_like_auth_failure(e):
                raise ExtractionAuthError(f"Gemini rejected the API key: {e}") from e
            raise ExtractionFailedError(f"Gemini request failed: {e}") from e

        try:
            text = response.text
        except ValueError as e:
            # Raised when the candidate was blocked or has no text parts
            raise MalformedResponseError(f"No response text from Gemini: {e}") from e

        if not text or not text.strip():
            raise MalformedResponseError("No response text from Gemini.")

        return text

    async def extract_items(
        self,
        image_bytes: bytes,
        mime_type: str = "image/jpeg",
    ) -> ExtractedReceipt:
        """
        Extract line items from a receipt image.

        Args:
            image_bytes: Encoded image (already compressed by the caller)
            mime_type: MIME type of image_bytes

        Returns:
            ExtractedReceipt; items may be empty if nothing was found

        Raises:
            MissingCredentialsError: No usable API key
            ExtractionAuthError: API key rejected
            ExtractionTimeoutError: Still failing after retries
            MalformedResponseError: Response was not a list of items
            ExtractionFailedError: Anything else
        """
        extraction_id = uuid4()
        text = await self._generate(image_bytes, mime_type)
        items = normalize_records(_parse_json(text), extraction_id)

        return ExtractedReceipt(
            extraction_id=extraction_id,
            source_model=self._settings.model_name,
            items=items,
        )

    def should_proceed_with_extraction(
        self,
        extracted: ExtractedReceipt,
    ) -> tuple[bool, str]:
        """
        Decide whether the user can move on to assigning items.

        Returns: (should_proceed, message_for_user)
        """
        if extracted.is_empty:
            return False, (
                "We couldn't find any items in that receipt. "
                "Please try a clearer photo."
            )

        count = len(extracted.items)
        return True, f"Found {count} item{'s' if count != 1 else ''}. Assign them to people below."
