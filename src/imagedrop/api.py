"""
imagedrop HTTP API.

Routes (base path ``/api``):
- POST   /upload        store an image (multipart field ``image``)
- GET    /images        list stored images
- DELETE /images/{id}   delete an image and its file
- GET    /health        database reachability

Uploaded files are served under ``/uploads``; every other GET path serves
the frontend build with ``index.html`` as fallback.
"""

import logging
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import APIRouter, Depends, FastAPI, File, HTTPException, Request, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy.engine import Engine

from . import __version__
from .config import UPLOADS_URL_PREFIX, ServiceConfig, Settings
from .database import check_connection
from .errors import DatabaseError, ImageDropError
from .files import ImageFileStore
from .models.schemas import (
    ErrorResponse,
    HealthResponse,
    ImageDeleteResponse,
    ImageRecord,
    ImageUploadResponse,
)
from .pipelines import DeletionPipeline, IncomingImage, UploadPipeline
from .storage import StorageService

logger = logging.getLogger(__name__)

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


def create_app(settings: Settings, config: ServiceConfig, engine: Engine) -> FastAPI:
    """
    Create the imagedrop FastAPI application.

    Args:
        settings: Application settings
        config: Resolved service configuration
        engine: Pooled database engine; disposed when the app shuts down
    """
    assert settings is not None, "Settings must be provided"
    assert config is not None, "Service configuration must be provided"
    assert engine is not None, "Database engine must be provided"

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        engine.dispose()
        logger.info("Database connection pool closed")

    app = FastAPI(
        title="imagedrop API",
        description="Image upload, listing and deletion",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.config = config

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_url],
        allow_methods=["GET", "POST", "OPTIONS", "PUT", "DELETE"],
        allow_headers=["Content-Type"],
    )

    # Core components
    storage = StorageService(engine)
    files = ImageFileStore(settings)
    upload_pipeline = UploadPipeline(storage, files, settings)
    deletion_pipeline = DeletionPipeline(storage, files)

    # Dependency providers
    def get_storage() -> StorageService:
        return storage

    def get_upload_pipeline() -> UploadPipeline:
        return upload_pipeline

    def get_deletion_pipeline() -> DeletionPipeline:
        return deletion_pipeline

    # ========================================
    # ERROR HANDLERS
    # ========================================

    @app.exception_handler(ImageDropError)
    async def handle_imagedrop_error(request: Request, exc: ImageDropError):
        if exc.status_code >= 500:
            logger.error(
                f"{request.method} {request.url.path} failed: "
                f"{exc.message} ({exc.details})",
                exc_info=exc,
            )
        else:
            logger.info(f"{request.method} {request.url.path} rejected: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_payload())

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        logger.info(f"{request.method} {request.url.path} malformed: {exc.errors()}")
        return JSONResponse(
            status_code=400,
            content={"error": "Invalid request", "details": str(exc.errors())},
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.error(
            f"{request.method} {request.url.path} failed unexpectedly: {exc}",
            exc_info=exc,
        )
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    # ========================================
    # IMAGES
    # ========================================

    router = APIRouter(prefix="/api")

    @router.post(
        "/upload",
        response_model=ImageUploadResponse,
        responses=ERROR_RESPONSES,
        tags=["Images"],
        summary="Upload image",
        description="Store a JPEG, PNG or GIF image of at most 5MB.",
    )
    async def upload_image(
        image: Optional[UploadFile] = File(None),
        pipeline: UploadPipeline = Depends(get_upload_pipeline),
    ) -> ImageUploadResponse:
        """Store an uploaded image and record it."""
        incoming = None
        if image is not None:
            # One byte past the limit is enough to reject oversize files
            data = await image.read(pipeline.max_size + 1)
            incoming = IncomingImage(
                original_filename=image.filename,
                content_type=image.content_type,
                data=data,
            )

        result = await run_in_threadpool(pipeline.run, incoming)

        return ImageUploadResponse(
            message="Image uploaded successfully",
            path=result.path,
            filename=result.filename,
        )

    @router.get(
        "/images",
        response_model=List[ImageRecord],
        responses={500: {"model": ErrorResponse}},
        tags=["Images"],
        summary="List images",
        description="Get every stored image in store order.",
    )
    async def list_images(
        storage: StorageService = Depends(get_storage),
    ) -> List[ImageRecord]:
        """List stored images."""
        return await run_in_threadpool(storage.list_all)

    @router.delete(
        "/images/{image_id}",
        response_model=ImageDeleteResponse,
        responses=ERROR_RESPONSES,
        tags=["Images"],
        summary="Delete image",
        description="Delete an image file and its record.",
    )
    async def delete_image(
        image_id: str,
        pipeline: DeletionPipeline = Depends(get_deletion_pipeline),
    ) -> ImageDeleteResponse:
        """Delete an image by id."""
        await run_in_threadpool(pipeline.run, image_id)
        return ImageDeleteResponse(message="Image deleted")

    # ========================================
    # SYSTEM
    # ========================================

    @router.get(
        "/health",
        response_model=HealthResponse,
        responses={503: {"model": ErrorResponse}},
        tags=["System"],
        summary="Health check",
    )
    async def health_check():
        """Report whether the database is reachable."""
        try:
            await run_in_threadpool(check_connection, engine)
        except DatabaseError as e:
            return JSONResponse(status_code=503, content=e.to_payload())
        return HealthResponse(status="ok", database="ok")

    app.include_router(router)

    # ========================================
    # STATIC FILES
    # ========================================

    app.mount(
        UPLOADS_URL_PREFIX,
        StaticFiles(directory=settings.uploads_root, check_dir=False),
        name="uploads",
    )

    public_path = settings.public_path

    @app.get("/{full_path:path}", include_in_schema=False)
    async def serve_frontend(full_path: str):
        """Serve the frontend build, falling back to index.html."""
        if full_path:
            candidate = (public_path / full_path).resolve()
            if candidate.is_file() and candidate.is_relative_to(public_path):
                return FileResponse(candidate)

        index_file = public_path / "index.html"
        if index_file.is_file():
            return FileResponse(index_file)
        raise HTTPException(status_code=404, detail="Not found")

    return app
