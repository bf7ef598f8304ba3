"""
ServerApp - Composition Root

This module contains the ServerApp class, which is responsible for:
- FastAPI application setup and configuration
- Dependency wiring (config, processor, result store, video source factory)
- Application lifecycle management (startup/shutdown)

Composition root - wires up all components with dependency injection.
"""

import logging
import math
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Callable, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .code_generator import Library
from .config import AppConfig, ProcessOptions, default_config, load_from_toml
from .processor import InvalidVideoError, VideoProcessingError, VideoProcessor
from .result_store import ResultStore, UploadRecord
from .video_source import VideoSource, VideoSourceError, create_video_source


logger = logging.getLogger(__name__)

SourceFactory = Callable[[Path], VideoSource]


class ServerApp:
    """
    Application composition root for the video to OLED service.

    Handles FastAPI setup, dependency injection and lifecycle management.
    ``source_factory`` builds the VideoSource for a stored upload; tests swap
    in synthetic sources here.
    """

    def __init__(
        self,
        config_path: Optional[Path] = None,
        config: Optional[AppConfig] = None,
        source_factory: SourceFactory = create_video_source,
    ):
        self.config_path = config_path or Path("config.toml")
        self.config: AppConfig = config or default_config()
        self._explicit_config = config is not None
        self.source_factory = source_factory

        # Core components - initialized during startup
        self.processor: Optional[VideoProcessor] = None
        self.store: Optional[ResultStore] = None
        self.upload_dir: Path = self.config.server.upload_dir

        self.app: Optional[FastAPI] = None
        self._started = False

        logger.info(f"ServerApp initialized with config: {self.config_path}")

    async def startup(self) -> None:
        """Initialize all application components."""
        logger.info("Starting up server application...")

        try:
            self.load_configuration()

            self.upload_dir = self.config.server.upload_dir
            self.upload_dir.mkdir(parents=True, exist_ok=True)

            self.processor = VideoProcessor(self.config.pipeline)
            self.store = ResultStore()

            logger.info("Server application startup completed successfully")
            self._started = True

        except Exception as e:
            logger.error(f"Server application startup failed: {e}")
            await self.shutdown()  # Cleanup on failure
            raise

    def load_configuration(self) -> None:
        if self._explicit_config:
            return
        if self.config_path.exists():
            self.config = load_from_toml(self.config_path)
        else:
            logger.warning(
                f"Config file {self.config_path} not found, using defaults"
            )
            self.config = default_config()

    async def shutdown(self) -> None:
        """Drop results and remove stored uploads."""
        logger.info("Shutting down server application...")

        try:
            if self.store:
                for record in await self.store.clear():
                    record.path.unlink(missing_ok=True)
            logger.info("Server application shutdown completed")
            self._started = False

        except OSError as e:
            logger.error(f"Error during shutdown: {e}")

    async def probe_duration(self, path: Path) -> float:
        """
        Open a stored upload just long enough to read its duration.

        Raises:
            VideoProcessingError: If the video can't be opened or has no
                usable duration
        """
        try:
            async with self.source_factory(path) as source:
                duration = source.duration
        except VideoSourceError as e:
            raise VideoProcessingError(f"Failed to get video metadata: {e}") from e

        if not duration or math.isnan(duration) or duration < 0:
            raise InvalidVideoError("Invalid video duration")
        return duration

    async def process(
        self, upload_id: str, opts: ProcessOptions, library: Library
    ) -> UploadRecord:
        """
        Process an upload; only the newest concurrent request keeps its result.

        Raises:
            KeyError: Unknown upload
            StaleResultError: A newer request superseded this one
            VideoProcessingError: The pipeline failed
        """
        assert self.store is not None and self.processor is not None
        record = self.store.get(upload_id)
        if record is None:
            raise KeyError(upload_id)

        generation = await self.store.begin_processing(upload_id)
        try:
            result = await self.processor.process_video(
                self.source_factory(record.path), opts
            )
        except VideoProcessingError as e:
            await self.store.fail(upload_id, generation, str(e))
            raise

        return await self.store.complete(upload_id, generation, result, opts, library)

    def get_fastapi_app(self) -> FastAPI:
        if self.app is None:
            self.app = self._create_fastapi_app()
        return self.app

    def _create_fastapi_app(self) -> FastAPI:
        from .api import router

        @asynccontextmanager
        async def lifespan(_: FastAPI):
            try:
                logger.info("Application starting...")
                await self.startup()
                yield
            finally:
                logger.info("Application shutting down...")
                await self.shutdown()

        app = FastAPI(
            title="Video to OLED Art",
            description="Convert short videos into Arduino sketches for small OLED displays",
            version="0.1.0",
            lifespan=lifespan,
        )
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )
        app.state.server = self
        app.include_router(router, prefix="/api")
        return app
