"""Audio capture."""

from .capture import AudioRecorder, CaptureError, has_input_device

__all__ = ["AudioRecorder", "CaptureError", "has_input_device"]
