"""FastAPI application entry point."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from cad_showcase import __version__
from cad_showcase.api.routes import router
from cad_showcase.config import CORS_ORIGINS, logger as config_logger
from cad_showcase.conversion.service import get_conversion_service

logging.getLogger("uvicorn").setLevel(logging.INFO)


@asynccontextmanager
async def lifespan(app: FastAPI):
    service = get_conversion_service()
    config_logger.info("CAD converter API started")
    yield
    service.shutdown()
    config_logger.info("CAD converter API shutting down")


app = FastAPI(
    title="CAD Showcase Converter API",
    description="Convert STEP and IGES uploads to STL for the web viewer.",
    version=__version__,
    lifespan=lifespan,
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS if CORS_ORIGINS else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(router)


if __name__ == "__main__":
    import uvicorn
    from cad_showcase.config import HOST, PORT
    uvicorn.run("cad_showcase.main:app", host=HOST, port=PORT, reload=True)
