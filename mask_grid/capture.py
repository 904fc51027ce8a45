"""
Frame sources for local runs: image files and OpenCV camera devices.

Both return a `RawImage` in RGB order; OpenCV hands out BGR.
"""

from __future__ import annotations

import logging
from pathlib import Path

import cv2

from .codec import RawImage
from .errors import DecodeError, ResourceError

logger = logging.getLogger(__name__)


def load_frame(path: Path) -> RawImage:
    """Read an image file as a frame."""
    bgr = cv2.imread(str(path), cv2.IMREAD_COLOR)
    if bgr is None:
        raise DecodeError(f"Could not read image at {path}")
    return RawImage.from_array(cv2.cvtColor(bgr, cv2.COLOR_BGR2RGB))


def capture_frame(device: int = 0) -> RawImage:
    """Grab a single frame from camera `device` (one shutter action)."""
    cap = cv2.VideoCapture(device)
    try:
        if not cap.isOpened():
            raise ResourceError(f"Camera {device} is not available")
        ok, bgr = cap.read()
        if not ok or bgr is None:
            raise ResourceError(f"Camera {device} returned no frame")
    finally:
        cap.release()
    logger.debug("capture: grabbed %dx%d frame from camera %d", bgr.shape[1], bgr.shape[0], device)
    return RawImage.from_array(cv2.cvtColor(bgr, cv2.COLOR_BGR2RGB))
