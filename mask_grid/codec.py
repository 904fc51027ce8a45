"""
Conversions between raw frames, float tensors and displayable masks.

`encode` turns an interleaved RGB byte buffer into a `[H, W, 3]` float tensor
in [0, 1]. `decode` turns one `[1, H, W]` model output channel into an RGB
`uint8` mask image. Both frames and masks are treated as native-backed
resources: they must be released explicitly, and reading one after release
is an error.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

import numpy as np
from PIL import Image
import torch

from .errors import DecodeError, ResourceError, ShapeError

logger = logging.getLogger(__name__)

CHANNELS = 3


class RawImage:
    """A captured frame: `height` x `width` pixels, RGB bytes in HWC order."""

    def __init__(
        self,
        data: bytes,
        height: int,
        width: int,
        on_release: Optional[Callable[[], None]] = None,
    ) -> None:
        self._data: Optional[bytes] = bytes(data)
        self.height = int(height)
        self.width = int(width)
        self._on_release = on_release

    @classmethod
    def from_array(cls, array: np.ndarray, on_release: Optional[Callable[[], None]] = None) -> "RawImage":
        """Wrap an `(H, W, 3)` uint8 RGB array."""
        if array.ndim != 3 or array.shape[2] != CHANNELS:
            raise DecodeError(f"Expected an (H, W, 3) array, got shape {array.shape}")
        height, width = array.shape[:2]
        data = np.ascontiguousarray(array, dtype=np.uint8).tobytes()
        return cls(data, height, width, on_release=on_release)

    @classmethod
    def from_pil(cls, image: Image.Image, on_release: Optional[Callable[[], None]] = None) -> "RawImage":
        return cls.from_array(np.asarray(image.convert("RGB")), on_release=on_release)

    @property
    def released(self) -> bool:
        return self._data is None

    @property
    def buffer(self) -> bytes:
        if self._data is None:
            raise ResourceError("Frame has already been released")
        return self._data

    def release(self) -> None:
        """Free the frame buffer. Releasing twice is a no-op."""
        if self._data is None:
            return
        self._data = None
        if self._on_release is not None:
            self._on_release()

    def __repr__(self) -> str:
        state = "released" if self.released else "live"
        return f"RawImage({self.width}x{self.height}, {state})"


class RenderedMask:
    """An RGB `[3, H, W]` uint8 mask image handed to a render surface."""

    def __init__(self, tensor: torch.Tensor) -> None:
        self._tensor: Optional[torch.Tensor] = tensor

    @property
    def released(self) -> bool:
        return self._tensor is None

    @property
    def tensor(self) -> torch.Tensor:
        if self._tensor is None:
            raise ResourceError("Mask has already been released")
        return self._tensor

    @property
    def height(self) -> int:
        return int(self.tensor.shape[1])

    @property
    def width(self) -> int:
        return int(self.tensor.shape[2])

    def to_pil(self) -> Image.Image:
        """Return the mask as a PIL RGB image (HWC)."""
        return Image.fromarray(self.tensor.permute(1, 2, 0).contiguous().numpy())

    def release(self) -> None:
        self._tensor = None

    def __enter__(self) -> "RenderedMask":
        return self

    def __exit__(self, *exc_info) -> None:
        self.release()

    def __repr__(self) -> str:
        if self.released:
            return "RenderedMask(released)"
        return f"RenderedMask({self.width}x{self.height})"


def encode(image: RawImage) -> torch.Tensor:
    """
    Read the frame's HWC bytes into a `[H, W, 3]` float32 tensor in [0, 1].

    This is the only place pixel values are divided by 255.
    """
    data = image.buffer
    expected = image.height * image.width * CHANNELS
    if image.height < 1 or image.width < 1 or len(data) != expected:
        raise DecodeError(
            f"Frame buffer holds {len(data)} bytes, expected {expected} "
            f"for {image.width}x{image.height}x{CHANNELS}"
        )
    im_np = np.frombuffer(data, dtype=np.uint8).reshape(image.height, image.width, CHANNELS)
    im_np = im_np.astype("float32") / 255.0
    return torch.from_numpy(im_np)


def decode(channel: torch.Tensor) -> RenderedMask:
    """
    Convert one `[1, H, W]` probability channel into an RGB mask.

    Values are scaled by 255, rounded and saturated to [0, 255]; the single
    grayscale channel is repeated three times.
    """
    if channel.dim() != 3 or channel.shape[0] != 1 or channel.shape[1] < 1 or channel.shape[2] < 1:
        raise ShapeError(f"Expected a [1, H, W] mask channel, got {list(channel.shape)}")
    grayscale = channel.detach().to("cpu", torch.float32).squeeze(0)
    grayscale = torch.nan_to_num(grayscale.mul(255.0), nan=0.0)
    grayscale = grayscale.round().clamp(0, 255).to(torch.uint8)
    rgb = grayscale.unsqueeze(0).repeat(CHANNELS, 1, 1)
    return RenderedMask(rgb)
