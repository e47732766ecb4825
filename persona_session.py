import asyncio
import logging
import uuid
from collections import OrderedDict
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict

from gemini_service import (
    ConfigurationError,
    ImageValidationError,
    PersonaError,
    TransformationClient,
    TransformationResult,
    decode_data_uri,
)
from persona_prompts import TransformationConfig, compose_prompt, download_filename

logger = logging.getLogger(__name__)

INVALID_IMAGE_MESSAGE = "Please upload a valid image file."

_AXIS_FIELDS = {"cameraAngle": "camera_angle", "colorPalette": "color_palette"}


class RenderConflictError(PersonaError):
    pass


class SessionState(BaseModel):
    """One snapshot of a session. Every transition replaces it wholesale."""

    model_config = ConfigDict(frozen=True)

    original: Optional[str] = None
    transformed: Optional[str] = None
    is_loading: bool = False
    error: Optional[str] = None

    @property
    def phase(self) -> str:
        if self.is_loading:
            return "loading"
        if self.error:
            return "error"
        if self.transformed:
            return "success"
        return "idle"


class PersonaSession:
    """
    Selections, source image and render result for a single user.

    The prompt is recomputed synchronously whenever the selections change.
    Each render, upload and reset advances a request id; a render that
    completes after its id has been superseded is discarded.
    """

    def __init__(self, session_id: Optional[str] = None):
        self.id = session_id or uuid.uuid4().hex
        self.config = TransformationConfig()
        self.prompt = compose_prompt(self.config)
        self.state = SessionState()
        self._request_id = 0

    @property
    def request_id(self) -> int:
        return self._request_id

    @property
    def filename(self) -> str:
        return download_filename(self.config.background, self.config.expression)

    def update_config(self, **selections) -> str:
        """Apply new selections (snake_case or camelCase axis names) and return the new prompt."""
        data = self.config.model_dump()
        data.update({_AXIS_FIELDS.get(axis, axis): value for axis, value in selections.items()})
        self.config = TransformationConfig.model_validate(data)
        self.prompt = compose_prompt(self.config)
        return self.prompt

    def upload(self, data_uri: str, content_type: str) -> SessionState:
        if not content_type or not content_type.startswith("image/"):
            self.state = self.state.model_copy(update={"error": INVALID_IMAGE_MESSAGE})
            raise ImageValidationError(INVALID_IMAGE_MESSAGE)
        self._request_id += 1
        self.state = SessionState(original=data_uri)
        return self.state

    def reset(self) -> SessionState:
        self._request_id += 1
        self.config = TransformationConfig()
        self.prompt = compose_prompt(self.config)
        self.state = SessionState()
        return self.state

    async def render(self, client: TransformationClient) -> Optional[TransformationResult]:
        """
        Run one transformation for the current image and prompt.

        Returns the result that was applied to the session, or None when the
        render was superseded while in flight. A missing credential fails
        before the session enters the loading state.
        """
        if not self.state.original:
            raise RenderConflictError("Upload a portrait before rendering.")
        if self.state.is_loading:
            raise RenderConflictError("A render is already in progress.")

        try:
            client.ensure_configured()
        except ConfigurationError as e:
            self.state = self.state.model_copy(update={"error": str(e)})
            return TransformationResult.failed(e)

        self._request_id += 1
        request_id = self._request_id
        source, prompt = self.state.original, self.prompt
        self.state = self.state.model_copy(update={"is_loading": True, "error": None})
        logger.info("Session %s render #%d started", self.id, request_id)

        try:
            result = await client.transform(source, prompt)
        except asyncio.CancelledError:
            if request_id == self._request_id:
                self.state = self.state.model_copy(update={"is_loading": False})
            raise

        if request_id != self._request_id:
            logger.info("Session %s render #%d discarded, superseded by #%d",
                        self.id, request_id, self._request_id)
            return None

        if result.success:
            self.state = self.state.model_copy(update={"transformed": result.image, "is_loading": False})
        else:
            self.state = self.state.model_copy(update={"is_loading": False, "error": result.error})
        logger.info("Session %s render #%d finished: %s", self.id, request_id, self.state.phase)
        return result

    def download(self) -> Optional[Tuple[bytes, str, str]]:
        """(bytes, mime_type, filename) of the transformed image, or None before a successful render."""
        if not self.state.transformed:
            return None
        data, mime_type = decode_data_uri(self.state.transformed)
        return data, mime_type, download_filename(self.config.background, self.config.expression, mime_type)


class SessionStore:
    """In-memory sessions, least recently used evicted once max_sessions is exceeded."""

    def __init__(self, max_sessions: int = 256):
        self.max_sessions = max_sessions
        self._sessions: "OrderedDict[str, PersonaSession]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions

    def add(self, session: PersonaSession) -> PersonaSession:
        self._sessions[session.id] = session
        self._sessions.move_to_end(session.id)
        while len(self._sessions) > self.max_sessions:
            evicted_id, _ = self._sessions.popitem(last=False)
            logger.info("Evicted session %s (limit %d)", evicted_id, self.max_sessions)
        return session

    def get(self, session_id: str) -> Optional[PersonaSession]:
        session = self._sessions.get(session_id)
        if session is not None:
            self._sessions.move_to_end(session_id)
        return session

    def pop(self, session_id: str) -> Optional[PersonaSession]:
        return self._sessions.pop(session_id, None)

    def clear(self):
        self._sessions.clear()
