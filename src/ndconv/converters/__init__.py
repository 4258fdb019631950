from ndconv.converters.base import Converter, class_list, class_names
from ndconv.converters.selector import FORMATS, available_formats, get_converter

__all__ = [
    "Converter",
    "FORMATS",
    "available_formats",
    "class_list",
    "class_names",
    "get_converter",
]
