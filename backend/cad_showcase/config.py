"""Application configuration. Loads from environment and .env file."""
import logging
import os
import tempfile
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent
# Load .env from cwd, then backend/.env, then project root .env
load_dotenv()
load_dotenv(BASE_DIR / ".env")
load_dotenv(BASE_DIR.parent / ".env")


def _optional(name: str) -> Optional[str]:
    value = os.getenv(name, "").strip()
    return value or None


# Conversion backends. A backend is available only when its setting is present.
FREECAD_CMD = _optional("FREECAD_CMD")
CADQUERY_DOCKER_IMAGE = _optional("CADQUERY_DOCKER_IMAGE")
CONTAINER_RUNTIME = os.getenv("CONTAINER_RUNTIME", "docker")
CADQUERY_PYTHON = os.getenv("CADQUERY_PYTHON", "python")

# Per-attempt timeout, milliseconds
CAD_CONVERSION_TIMEOUT_MS = int(os.getenv("CAD_CONVERSION_TIMEOUT_MS", str(2 * 60 * 1000)))

# Mesh fidelity defaults (length units / radians, 0.3490658504 rad = 20 deg)
LINEAR_DEFLECTION = float(os.getenv("LINEAR_DEFLECTION", "0.1"))
ANGULAR_DEFLECTION = float(os.getenv("ANGULAR_DEFLECTION", "0.3490658504"))

# Retained stdout/stderr per stream; the rest is drained and dropped
MAX_CAPTURED_OUTPUT_CHARS = int(os.getenv("MAX_CAPTURED_OUTPUT_CHARS", "65536"))

# Parent directory for per-request workspaces
CAD_WORKSPACE_DIR = Path(os.getenv("CAD_WORKSPACE_DIR", tempfile.gettempdir()))

# Supported formats
TARGET_EXTENSION = ".stl"
STL_CONTENT_TYPE = "model/stl"
ALLOWED_CAD_EXTENSIONS = {".stl", ".step", ".stp", ".iges", ".igs", ".f3z"}

# Limits (env)
MAX_UPLOAD_SIZE_MB = int(os.getenv("MAX_UPLOAD_SIZE_MB", "100"))
MAX_UPLOAD_SIZE_BYTES = MAX_UPLOAD_SIZE_MB * 1024 * 1024

# Concurrency
MAX_WORKERS = int(os.getenv("MAX_WORKERS", str(min(32, (os.cpu_count() or 4) + 4))))

# Server (for uvicorn)
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "4000"))
# CORS: comma-separated origins, e.g. "http://localhost:5173,http://127.0.0.1:5173"
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173").split(",") if o.strip()]

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("cad_showcase")
