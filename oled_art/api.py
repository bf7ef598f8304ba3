"""
Video to OLED API - REST endpoints

Provides the upload -> process -> download flow:
- POST /videos uploads a clip
- POST /videos/{id}/process runs the pipeline with a display configuration
- GET  /videos/{id}/code downloads the generated Arduino sketch
- GET  /videos/{id}/preview.gif renders the extracted frames
"""

import logging
import shutil
import time
import uuid
from dataclasses import asdict
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, Request, UploadFile
from fastapi.responses import PlainTextResponse, Response
from pydantic import BaseModel, Field

from .code_generator import (
    CodeGenerationError,
    Library,
    PROGRAM_MEDIA_TYPE,
    generate_arduino_code,
    program_filename,
)
from .config import CUSTOM_DISPLAY_SIZE, DISPLAY_SIZES, DEFAULT_DISPLAY_SIZE
from .preview import render_gif_bytes
from .processor import VideoProcessingError
from .result_store import StaleResultError, UploadRecord
from .validation import ValidationError, validate_video_file

logger = logging.getLogger(__name__)

# API Router for REST endpoints
router = APIRouter()


# Dependency provider for DI
def get_server(request: Request):
    # The lifespan attaches the ServerApp to app.state.server; return 503 if a
    # request arrives before that happened.
    server = getattr(request.app.state, "server", None)
    if server is None or server.store is None:
        raise HTTPException(status_code=503, detail="Server not ready")
    return server


# Pydantic models for API requests/responses
class ProcessRequest(BaseModel):
    display_size: str = DEFAULT_DISPLAY_SIZE
    orientation: str = "horizontal"
    library: str = Library.ADAFRUIT_GFX_SSD1306.value
    target_fps: Optional[float] = Field(default=None, gt=0)
    target_frames: Optional[int] = Field(default=None, ge=0)
    max_frames: Optional[int] = Field(default=None, ge=1)
    threshold: Optional[int] = Field(default=None, ge=0, le=255)


class UploadResponse(BaseModel):
    upload_id: str
    filename: str
    size: int
    duration: float
    status: str


class ProcessResponse(BaseModel):
    upload_id: str
    status: str
    frame_count: int
    width: int
    height: int
    fps: float
    duration: float
    bytes_per_frame: int
    skipped_frames: int
    library: str


class ProcessedOptions(BaseModel):
    width: int
    height: int
    orientation: str
    target_fps: float
    max_frames: int
    target_frames: Optional[int] = None
    threshold: int


class VideoStatus(BaseModel):
    upload_id: str
    filename: str
    status: str
    duration: float
    frame_count: int
    library: str
    options: Optional[ProcessedOptions] = None
    error: Optional[str] = None


def _get_record(server, upload_id: str) -> UploadRecord:
    record = server.store.get(upload_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Video upload not found")
    return record


def _require_result(record: UploadRecord):
    if record.result is None:
        raise HTTPException(
            status_code=409, detail=f"Video has not been processed (status '{record.status}')"
        )
    return record.result


# REST API Endpoints


@router.get("/health")
async def health_check():
    return {"status": "healthy", "timestamp": time.time()}


@router.get("/display-sizes")
async def get_display_sizes():
    """Display size presets; 'custom' resolves to 128x64."""
    sizes = {name: {"width": s.w, "height": s.h} for name, s in DISPLAY_SIZES.items()}
    sizes[CUSTOM_DISPLAY_SIZE] = dict(sizes[DEFAULT_DISPLAY_SIZE])
    return sizes


@router.get("/libraries")
async def get_libraries():
    return {"libraries": [lib.value for lib in Library], "default": Library.ADAFRUIT_GFX_SSD1306.value}


@router.post("/videos", response_model=UploadResponse, status_code=201)
async def upload_video(file: UploadFile = File(...), server=Depends(get_server)):
    """Store an uploaded clip and read its duration."""
    if not file.filename:
        raise HTTPException(status_code=400, detail="No video file provided")

    upload_id = uuid.uuid4().hex
    ext = Path(file.filename).suffix.lower()
    stored_path = server.upload_dir / f"{upload_id}{ext}"

    with stored_path.open("wb") as handle:
        shutil.copyfileobj(file.file, handle)
    await file.close()

    try:
        validate_video_file(
            stored_path,
            server.config.pipeline.max_file_size,
            server.config.pipeline.supported_formats,
        )
        duration = await server.probe_duration(stored_path)
    except (ValidationError, VideoProcessingError) as e:
        stored_path.unlink(missing_ok=True)
        raise HTTPException(status_code=400, detail=str(e))

    record = await server.store.add(
        UploadRecord(
            upload_id=upload_id,
            path=stored_path,
            original_filename=Path(file.filename).name,
            size=stored_path.stat().st_size,
            duration=duration,
        )
    )
    return UploadResponse(
        upload_id=record.upload_id,
        filename=record.original_filename,
        size=record.size,
        duration=record.duration,
        status=record.status,
    )


@router.get("/videos/{upload_id}", response_model=VideoStatus)
async def get_video(upload_id: str, server=Depends(get_server)):
    record = _get_record(server, upload_id)
    return VideoStatus(
        upload_id=record.upload_id,
        filename=record.original_filename,
        status=record.status,
        duration=record.duration,
        frame_count=record.result.frame_count if record.result else 0,
        library=record.library.value,
        options=ProcessedOptions(**asdict(record.options)) if record.options else None,
        error=record.error,
    )


@router.post("/videos/{upload_id}/process", response_model=ProcessResponse)
async def process_video(upload_id: str, body: ProcessRequest, server=Depends(get_server)):
    """Run the pipeline; a newer request for the same upload supersedes this one."""
    _get_record(server, upload_id)

    try:
        opts = server.config.pipeline.options(
            display_size=body.display_size,
            orientation=body.orientation,
            target_fps=body.target_fps,
            max_frames=body.max_frames,
            target_frames=body.target_frames,
            threshold=body.threshold,
        )
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    library = Library.parse(body.library)

    try:
        record = await server.process(upload_id, opts, library)
    except KeyError:
        raise HTTPException(status_code=404, detail="Video upload not found")
    except StaleResultError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except VideoProcessingError as e:
        raise HTTPException(status_code=422, detail=str(e))

    result = record.result
    return ProcessResponse(
        upload_id=upload_id,
        status=record.status,
        frame_count=result.frame_count,
        width=result.width,
        height=result.height,
        fps=result.fps,
        duration=result.duration,
        bytes_per_frame=result.bytes_per_frame,
        skipped_frames=len(result.skipped_timestamps),
        library=library.value,
    )


@router.get("/videos/{upload_id}/code")
async def download_code(
    upload_id: str, library: Optional[str] = None, server=Depends(get_server)
):
    """Generated sketch as a text/plain attachment named video_to_oled_<id>.ino."""
    record = _get_record(server, upload_id)
    result = _require_result(record)
    lib = Library.parse(library) if library else record.library

    try:
        code = generate_arduino_code(
            result.frames_packed, result.width, result.height, result.fps, lib
        )
    except CodeGenerationError as e:
        logger.error(f"Code generation failed for {upload_id}: {e}")
        raise HTTPException(status_code=500, detail=str(e))

    filename = program_filename(upload_id)
    return PlainTextResponse(
        content=code,
        media_type=PROGRAM_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/videos/{upload_id}/preview.gif")
async def get_preview(upload_id: str, server=Depends(get_server)):
    record = _get_record(server, upload_id)
    result = _require_result(record)
    data = render_gif_bytes(result.frames_mono, result.width, result.height, result.fps)
    return Response(content=data, media_type="image/gif")


@router.delete("/videos/{upload_id}")
async def delete_video(upload_id: str, server=Depends(get_server)):
    record = await server.store.remove(upload_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Video upload not found")
    record.path.unlink(missing_ok=True)
    return {"success": True, "message": f"Video {upload_id} deleted"}
