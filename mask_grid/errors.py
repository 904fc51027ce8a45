"""Error kinds raised inside the mask pipeline."""

from __future__ import annotations


class MaskGridError(Exception):
    """Base class for every error the pipeline raises on purpose."""


class DecodeError(MaskGridError, ValueError):
    """Raw frame buffer does not match its declared dimensions."""


class ShapeError(MaskGridError, ValueError):
    """Tensor rank or shape does not match what a stage expects."""


class InvalidCropError(MaskGridError, ValueError):
    """Crop size is degenerate or larger than the frame."""


class InferenceError(MaskGridError, RuntimeError):
    """The model is missing, rejected its input, or produced unusable output."""


class ResourceError(MaskGridError, RuntimeError):
    """A native-backed resource (canvas, frame, mask) is unavailable or released."""


class ModelNotReadyError(InferenceError):
    """A pass was requested before the model finished loading."""


class CanvasUnavailableError(ResourceError):
    """No render surface is attached to the pipeline."""
