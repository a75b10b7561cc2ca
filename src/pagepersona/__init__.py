"""PagePersona package exposing the persona transformation pipeline."""

from .config import PipelineConfig
from .errors import ContentFetchError, ErrorCode
from .models import TransformationResult, TransformationServiceResult

__all__ = [
    "ContentFetchError",
    "ErrorCode",
    "PipelineConfig",
    "TransformationResult",
    "TransformationServiceResult",
]
