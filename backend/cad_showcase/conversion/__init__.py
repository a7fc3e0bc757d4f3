from .errors import (
    BackendExecutionError,
    ConfigurationError,
    ConversionError,
    ConversionExhaustedError,
    WorkspaceError,
)
from .models import ConversionRequest, ConversionResult, ConversionSettings, MeshSettings
from .service import ConversionService, get_conversion_service

__all__ = [
    "BackendExecutionError",
    "ConfigurationError",
    "ConversionError",
    "ConversionExhaustedError",
    "ConversionRequest",
    "ConversionResult",
    "ConversionService",
    "ConversionSettings",
    "MeshSettings",
    "WorkspaceError",
    "get_conversion_service",
]
