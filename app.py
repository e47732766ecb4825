import logging
import os
from typing import Optional

import uvicorn
from dotenv import load_dotenv
from fastapi import Depends, FastAPI, File, HTTPException, Response, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict, Field

from gemini_service import (
    ConfigurationError,
    EmptyResultError,
    ImageValidationError,
    PersonaError,
    TransformationClient,
    TransportError,
    decode_data_uri,
    to_data_uri,
)
from persona_prompts import (
    APP_SUBTITLE,
    APP_TITLE,
    BackgroundType,
    CameraAngleType,
    ColorPaletteType,
    ExpressionType,
    HairstyleType,
    OutfitType,
    TransformationConfig,
    compose_prompt,
    download_filename,
    list_options,
)
from persona_session import PersonaSession, RenderConflictError, SessionState, SessionStore

logger = logging.getLogger(__name__)

# --- 1. Configuration ---
# The API key itself is read per call, so a missing key surfaces as a 500 on render.
load_dotenv()

MAX_SESSIONS = int(os.getenv("MAX_SESSIONS", "256"))
MAX_UPLOAD_BYTES = int(os.getenv("MAX_UPLOAD_BYTES", str(10 * 1024 * 1024)))

ERROR_STATUS = {
    ImageValidationError.__name__: 400,
    RenderConflictError.__name__: 409,
    ConfigurationError.__name__: 500,
    TransportError.__name__: 502,
    EmptyResultError.__name__: 502,
}


# --- 2. Pydantic Models ---
class PromptResponse(BaseModel):
    prompt: str
    filename: str


class GeneratePayload(BaseModel):
    personImage: str = Field(..., description="The source portrait as a data URI or bare base64 string.")
    config: TransformationConfig = Field(default_factory=TransformationConfig)


class ConfigUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    outfit: Optional[OutfitType] = None
    hairstyle: Optional[HairstyleType] = None
    background: Optional[BackgroundType] = None
    camera_angle: Optional[CameraAngleType] = Field(None, alias="cameraAngle")
    color_palette: Optional[ColorPaletteType] = Field(None, alias="colorPalette")
    expression: Optional[ExpressionType] = None


class SessionResponse(BaseModel):
    id: str
    phase: str
    state: SessionState
    config: TransformationConfig
    prompt: str
    filename: str

    @classmethod
    def of(cls, session: PersonaSession) -> "SessionResponse":
        return cls(
            id=session.id,
            phase=session.state.phase,
            state=session.state,
            config=session.config,
            prompt=session.prompt,
            filename=session.filename,
        )


# --- 3. FastAPI Application Setup ---
app = FastAPI(
    title=APP_TITLE,
    description=APP_SUBTITLE,
    version="3.0.0"
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# In-memory only; sessions are lost on restart.
sessions = SessionStore(max_sessions=MAX_SESSIONS)
transformation_client = TransformationClient()


def get_transformation_client() -> TransformationClient:
    return transformation_client


def get_session(session_id: str) -> PersonaSession:
    session = sessions.get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail=f"Unknown session: {session_id}")
    return session


def raise_for_error(error_type: Optional[str], message: str):
    raise HTTPException(status_code=ERROR_STATUS.get(error_type, 500), detail=message)


# --- 4. Stateless Endpoints ---
@app.get("/options")
def get_options():
    return {"options": list_options(), "defaults": TransformationConfig().model_dump(by_alias=True)}


@app.post("/prompt", response_model=PromptResponse)
def preview_prompt(config: TransformationConfig):
    return PromptResponse(
        prompt=compose_prompt(config),
        filename=download_filename(config.background, config.expression),
    )


@app.post("/generate",
    response_class=Response,
    responses={
        200: {
            "content": {"image/png": {}, "image/jpeg": {}},
            "description": "The generated persona portrait."
        }
    }
)
async def generate_persona(
    payload: GeneratePayload,
    client: TransformationClient = Depends(get_transformation_client),
):
    prompt = compose_prompt(payload.config)
    try:
        image = await client.generate(payload.personImage, prompt)
    except PersonaError as e:
        raise_for_error(type(e).__name__, str(e))

    data, mime_type = decode_data_uri(image)
    filename = download_filename(payload.config.background, payload.config.expression, mime_type)
    return Response(
        content=data,
        media_type=mime_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# --- 5. Session Endpoints ---
@app.post("/sessions", response_model=SessionResponse, status_code=201)
def create_session():
    session = PersonaSession()
    sessions.add(session)
    logger.info("Created session %s", session.id)
    return SessionResponse.of(session)


@app.get("/sessions/{session_id}", response_model=SessionResponse)
def read_session(session: PersonaSession = Depends(get_session)):
    return SessionResponse.of(session)


@app.delete("/sessions/{session_id}", status_code=204)
def delete_session(session: PersonaSession = Depends(get_session)):
    sessions.pop(session.id)
    return Response(status_code=204)


@app.patch("/sessions/{session_id}/config", response_model=SessionResponse)
def update_session_config(update: ConfigUpdate, session: PersonaSession = Depends(get_session)):
    session.update_config(**update.model_dump(exclude_none=True))
    return SessionResponse.of(session)


@app.post("/sessions/{session_id}/image", response_model=SessionResponse)
async def upload_image(
    file: UploadFile = File(...),
    session: PersonaSession = Depends(get_session),
):
    content_type = file.content_type or ""
    data = await file.read(MAX_UPLOAD_BYTES + 1) if content_type.startswith("image/") else b""
    if len(data) > MAX_UPLOAD_BYTES:
        raise HTTPException(status_code=413, detail=f"Image exceeds the {MAX_UPLOAD_BYTES} byte upload limit.")
    try:
        session.upload(to_data_uri(content_type, data), content_type)
    except ImageValidationError as e:
        raise_for_error(type(e).__name__, str(e))
    logger.info("Session %s received %s (%d bytes)", session.id, content_type, len(data))
    return SessionResponse.of(session)


@app.post("/sessions/{session_id}/render", response_model=SessionResponse)
async def render_session(
    session: PersonaSession = Depends(get_session),
    client: TransformationClient = Depends(get_transformation_client),
):
    try:
        result = await session.render(client)
    except RenderConflictError as e:
        raise_for_error(type(e).__name__, str(e))

    if result is None:
        raise HTTPException(status_code=409, detail="Render was superseded by a newer request.")
    if not result.success:
        raise_for_error(result.error_type, result.error)
    return SessionResponse.of(session)


@app.post("/sessions/{session_id}/reset", response_model=SessionResponse)
def reset_session(session: PersonaSession = Depends(get_session)):
    session.reset()
    return SessionResponse.of(session)


@app.get("/sessions/{session_id}/download", response_class=Response)
def download_image(session: PersonaSession = Depends(get_session)):
    download = session.download()
    if download is None:
        raise HTTPException(status_code=404, detail="No transformed image to download.")
    data, mime_type, filename = download
    return Response(
        content=data,
        media_type=mime_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# --- 6. Run the Application ---
if __name__ == "__main__":
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(app, host=os.getenv("HOST", "127.0.0.1"), port=int(os.getenv("PORT", "8000")))
