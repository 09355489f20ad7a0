"""
HTTP API for chest X-ray classification.
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, File, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from .. import __version__
from ..exceptions import (
    ConfigurationError,
    DecodeError,
    DetectionError,
    InferenceError,
    NetworkError,
    NotReadyError,
    UnsupportedMediaError,
    UploadTooLargeError
)
from ..inference import PneumoniaDetectionService
from ..utils import Config


ERROR_STATUS = (
    (DecodeError, 400),
    (UploadTooLargeError, 413),
    (UnsupportedMediaError, 415),
    (NotReadyError, 503),
    (NetworkError, 502),
    (ConfigurationError, 500),
    (InferenceError, 500),
)


def status_for(error: DetectionError) -> int:
    for error_type, status_code in ERROR_STATUS:
        if isinstance(error, error_type):
            return status_code
    return 500


async def read_upload(file: UploadFile, max_bytes: int) -> bytes:
    """Read at most ``max_bytes + 1`` bytes of an upload; raises UploadTooLargeError past the limit."""
    contents = await file.read(max_bytes + 1)
    if len(contents) > max_bytes:
        logger.warning(f"Upload rejected: {file.filename} exceeds limit of {max_bytes} bytes")
        raise UploadTooLargeError(f"File size must be less than {max_bytes // (1024 * 1024)}MB")
    return contents


def create_app(
    config: Optional[Config] = None,
    service: Optional[PneumoniaDetectionService] = None
) -> FastAPI:
    """
    Build the API around one detection service.

    The service is initialized on startup and disposed on shutdown.
    """
    service = service or PneumoniaDetectionService(config or Config())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await service.initialize()
        yield
        await service.dispose()

    app = FastAPI(title="Pneumo Detect API", version=__version__, lifespan=lifespan)
    app.state.service = service

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(DetectionError)
    async def handle_detection_error(request: Request, exc: DetectionError):
        status_code = status_for(exc)
        logger.warning(f"{request.url.path} failed with {type(exc).__name__}: {exc}")
        return JSONResponse(
            status_code=status_code,
            content={"error": type(exc).__name__, "detail": str(exc)}
        )

    @app.get("/")
    async def root():
        return {"message": "Pneumo Detect API is running", "version": __version__}

    @app.get("/health")
    async def health():
        return {
            "state": service.state.value,
            "ready": service.is_ready(),
            "modelVersion": service.model_version,
            "diagnostic": service.descriptor.diagnostic,
        }

    @app.post("/predict")
    async def predict(file: UploadFile = File(...)):
        contents = await read_upload(file, service.max_upload_bytes)
        result = await service.analyze_upload(contents, content_type=file.content_type)
        return result.to_dict()

    return app


def main():
    """Serve the API with uvicorn."""
    import argparse
    import uvicorn

    from ..utils import setup_logging

    parser = argparse.ArgumentParser(description='Serve the pneumonia detection API')
    parser.add_argument('--config', type=str, default=None,
                        help='Path to configuration file')
    parser.add_argument('--host', type=str, default='127.0.0.1')
    parser.add_argument('--port', type=int, default=8000)
    args = parser.parse_args()

    config = Config(args.config)
    setup_logging(config)
    uvicorn.run(create_app(config), host=args.host, port=args.port)
