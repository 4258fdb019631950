from ndconv.io.progress import (
    FanoutProgressSink,
    JsonProgressSink,
    LoggingProgressSink,
    ProgressSink,
    emit_progress,
)

__all__ = [
    "FanoutProgressSink",
    "JsonProgressSink",
    "LoggingProgressSink",
    "ProgressSink",
    "emit_progress",
]
