import base64
import binascii
import logging
import os
import re
from typing import Any, Callable, Optional, Tuple

import google.generativeai as genai
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

DEFAULT_MODEL_NAME = "gemini-2.5-flash-image"
DEFAULT_MIME_TYPE = "image/png"
GENERIC_FAILURE_MESSAGE = "Failed to transform image."
NO_IMAGE_MESSAGE = "No image data returned from the model."

_MIME_PREFIX = re.compile(r"^data:(image/[a-zA-Z]+);base64,")
_URLSAFE_TO_STANDARD = str.maketrans("-_", "+/")


# --- 1. Errors ---
class PersonaError(Exception):
    """Base class for every failure reported back to the caller as a message."""


class ConfigurationError(PersonaError):
    pass


class TransportError(PersonaError):
    pass


class EmptyResultError(PersonaError):
    pass


class ImageValidationError(PersonaError):
    pass


# --- 2. Data URIs ---
def split_data_uri(data_uri: str) -> Tuple[str, str]:
    """
    Return (base64_payload, mime_type) for an image data URI.

    Strings without a recognisable "data:<mime>;base64," prefix are still
    accepted: the whole string is treated as the payload and the mime type
    defaults to image/png.
    """
    fields = data_uri.split(",")
    payload = fields[1] if len(fields) > 1 and fields[1] else data_uri
    match = _MIME_PREFIX.match(data_uri)
    mime_type = match.group(1) if match else DEFAULT_MIME_TYPE
    return payload, mime_type


def to_data_uri(mime_type: str, data: Any) -> str:
    if isinstance(data, (bytes, bytearray)):
        data = base64.b64encode(data).decode("ascii")
    return f"data:{mime_type};base64,{data}"


def decode_base64(payload: str) -> bytes:
    """
    Decode standard or URL-safe base64, with or without padding or embedded
    whitespace. Raises ImageValidationError when the payload is not base64.
    """
    normalized = "".join(payload.split()).translate(_URLSAFE_TO_STANDARD)
    normalized += "=" * (-len(normalized) % 4)
    try:
        return base64.b64decode(normalized, validate=True)
    except binascii.Error as e:
        raise ImageValidationError("The source image is not valid base64 data.") from e


def decode_data_uri(data_uri: str) -> Tuple[bytes, str]:
    payload, mime_type = split_data_uri(data_uri)
    return decode_base64(payload), mime_type


class TransformationResult(BaseModel):
    success: bool
    image: Optional[str] = Field(None, description="The transformed image as a data URI.")
    error: Optional[str] = None
    error_type: Optional[str] = None

    @classmethod
    def ok(cls, image: str) -> "TransformationResult":
        return cls(success=True, image=image)

    @classmethod
    def failed(cls, exc: PersonaError) -> "TransformationResult":
        return cls(success=False, error=str(exc), error_type=type(exc).__name__)


# --- 3. Gemini Client ---
def default_model_factory(api_key: str, model_name: str):
    genai.configure(api_key=api_key)
    return genai.GenerativeModel(model_name=model_name)


def find_inline_image(response) -> Optional[str]:
    """Data URI of the first inline-data part of the first candidate, if any."""
    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        return None
    content = getattr(candidates[0], "content", None)
    for part in getattr(content, "parts", None) or []:
        inline_data = getattr(part, "inline_data", None)
        if inline_data and getattr(inline_data, "data", None):
            return to_data_uri(inline_data.mime_type or DEFAULT_MIME_TYPE, inline_data.data)
    return None


def _timeout_from_env() -> Optional[float]:
    value = os.getenv("GEMINI_TIMEOUT")
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        logger.warning("Ignoring GEMINI_TIMEOUT=%r, not a number of seconds", value)
        return None


def _block_reason(response) -> Optional[str]:
    feedback = getattr(response, "prompt_feedback", None)
    reason = getattr(feedback, "block_reason", None) if feedback else None
    if not reason:
        return None
    return getattr(reason, "name", None) or str(reason)


class TransformationClient:
    """
    Sends a source portrait and a prompt to the Gemini image model and returns
    the generated portrait as a data URI.

    The API key is resolved on every call (explicit key, then GEMINI_API_KEY,
    then API_KEY) so a missing credential is reported before any model is
    built. Exactly one attempt is made per call.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model_name: Optional[str] = None,
        timeout: Optional[float] = None,
        model_factory: Callable[[str, str], Any] = default_model_factory,
    ):
        self.api_key = api_key
        self.model_name = model_name or os.getenv("GEMINI_IMAGE_MODEL", DEFAULT_MODEL_NAME)
        self.timeout = timeout if timeout is not None else _timeout_from_env()
        self.model_factory = model_factory

    def ensure_configured(self) -> str:
        api_key = self.api_key or os.getenv("GEMINI_API_KEY") or os.getenv("API_KEY")
        if not api_key:
            raise ConfigurationError("API Key not found in environment.")
        return api_key

    async def generate(self, source_image: str, prompt: str) -> str:
        """Raising variant of transform(): returns the data URI or raises a PersonaError."""
        api_key = self.ensure_configured()

        payload, mime_type = split_data_uri(source_image)
        image_bytes = decode_base64(payload)
        contents = [{"mime_type": mime_type, "data": image_bytes}, prompt]
        request_options = {"timeout": self.timeout} if self.timeout else None

        logger.info("Requesting %s: mime=%s payload_len=%d prompt_len=%d",
                    self.model_name, mime_type, len(payload), len(prompt))
        try:
            model = self.model_factory(api_key, self.model_name)
            response = await model.generate_content_async(
                contents,
                generation_config={"candidate_count": 1},
                request_options=request_options,
            )
        except Exception as e:
            logger.exception("Gemini image transformation failed")
            raise TransportError(str(e) or GENERIC_FAILURE_MESSAGE) from e

        image = find_inline_image(response)
        if not image:
            reason = _block_reason(response)
            logger.warning("Gemini returned no inline image (block_reason=%s)", reason)
            message = f"{NO_IMAGE_MESSAGE} Reason: {reason}" if reason else NO_IMAGE_MESSAGE
            raise EmptyResultError(message)
        return image

    async def transform(self, source_image: str, prompt: str) -> TransformationResult:
        try:
            return TransformationResult.ok(await self.generate(source_image, prompt))
        except PersonaError as e:
            return TransformationResult.failed(e)
