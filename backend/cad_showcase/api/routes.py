"""API routes for CAD upload conversion."""
import asyncio
import logging
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile
from fastapi.responses import JSONResponse, Response

from cad_showcase.config import (
    ALLOWED_CAD_EXTENSIONS,
    MAX_UPLOAD_SIZE_BYTES,
    MAX_UPLOAD_SIZE_MB,
    TARGET_EXTENSION,
)
from cad_showcase.conversion.errors import (
    ConfigurationError,
    ConversionExhaustedError,
    WorkspaceError,
)
from cad_showcase.conversion.models import MeshSettings
from cad_showcase.conversion.service import ConversionService, get_conversion_service

logger = logging.getLogger("cad_showcase.api")
router = APIRouter(prefix="/api", tags=["converter"])


async def _read_upload(file: UploadFile) -> bytes:
    chunks: list[bytes] = []
    total = 0
    while chunk := await file.read(1024 * 1024):
        total += len(chunk)
        if total > MAX_UPLOAD_SIZE_BYTES:
            raise HTTPException(413, f"File too large (max {MAX_UPLOAD_SIZE_MB} MB)")
        chunks.append(chunk)
    return b"".join(chunks)


def _mesh_settings(
    service: ConversionService,
    linear_deflection: Optional[float],
    angular_deflection: Optional[float],
) -> Optional[MeshSettings]:
    if linear_deflection is None and angular_deflection is None:
        return None
    defaults = service.settings.mesh
    return MeshSettings(
        linear_deflection=linear_deflection if linear_deflection is not None else defaults.linear_deflection,
        angular_deflection=angular_deflection if angular_deflection is not None else defaults.angular_deflection,
    )


@router.get("/health")
def health():
    return {"status": "ok"}


@router.get("/formats")
def get_formats():
    return {
        "input": sorted(ALLOWED_CAD_EXTENSIONS),
        "output": TARGET_EXTENSION,
        "max_upload_size_mb": MAX_UPLOAD_SIZE_MB,
    }


@router.get("/backends")
def get_backends(service: ConversionService = Depends(get_conversion_service)):
    """Configured conversion backends in priority order."""
    return {"backends": service.describe_backends()}


@router.post("/convert")
async def convert_file(
    file: UploadFile = File(...),
    name: str = Query("", description="Fallback base name when the filename has none"),
    linear_deflection: Optional[float] = Query(None, gt=0),
    angular_deflection: Optional[float] = Query(None, gt=0),
    service: ConversionService = Depends(get_conversion_service),
):
    """Upload a CAD file and get the STL back."""
    filename = file.filename or ""
    ext = Path(filename).suffix.lower()
    if ext not in ALLOWED_CAD_EXTENSIONS:
        raise HTTPException(400, f"Unsupported file type: {ext or filename}")
    data = await _read_upload(file)
    if not data:
        raise HTTPException(400, "A CAD file is required")

    mesh = _mesh_settings(service, linear_deflection, angular_deflection)
    try:
        result = await asyncio.to_thread(service.convert_to_stl, data, filename, name, mesh)
    except ConfigurationError as e:
        return JSONResponse(
            status_code=503,
            content={
                "message": str(e),
                "code": "conversion_not_configured",
                "missing": list(e.missing_settings),
            },
        )
    except ConversionExhaustedError as e:
        return JSONResponse(
            status_code=500,
            content={"message": str(e), "details": e.details},
        )
    except WorkspaceError as e:
        logger.exception("Conversion workspace failed for %s: %s", filename, e)
        raise HTTPException(500, "Conversion workspace unavailable")

    return Response(
        content=result.data,
        media_type=result.content_type,
        headers={
            "Content-Disposition": f'attachment; filename="{result.filename}"',
            "X-Conversion-Skipped": "true" if result.skipped else "false",
            "X-Conversion-Backend": result.backend or "",
        },
    )
