from ndconv.errors import ConversionError, NdconvError
from ndconv.pipeline import convert_ndjson
from ndconv.types import ConvertResult, ProgressEvent

__version__ = "0.1.0"

__all__ = [
    "ConversionError",
    "ConvertResult",
    "NdconvError",
    "ProgressEvent",
    "__version__",
    "convert_ndjson",
]
