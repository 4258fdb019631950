from ndconv.config.loader import converter_config_to_dict, load_converter_config
from ndconv.config.models import (
    ConverterConfig,
    DownloadConfig,
    InputConfig,
    MonitoringConfig,
    OutputConfig,
)

__all__ = [
    "ConverterConfig",
    "DownloadConfig",
    "InputConfig",
    "MonitoringConfig",
    "OutputConfig",
    "converter_config_to_dict",
    "load_converter_config",
]
