from ndconv.dataset.inspect import find_duplicate_files, inspect_dataset
from ndconv.dataset.names import resolve_output_names
from ndconv.dataset.parser import parse_ndjson, read_ndjson

__all__ = [
    "find_duplicate_files",
    "inspect_dataset",
    "parse_ndjson",
    "read_ndjson",
    "resolve_output_names",
]
