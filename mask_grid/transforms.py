"""
Deterministic preprocessing stages that turn an encoded frame into model input.

The default chain mirrors the lite-interpreter demo preprocessing:
HWC -> CHW, float in [0, 1], square center crop, bilinear resize to the
model's input size, then a leading batch dimension. Every stage is a pure
callable: it never mutates its input and keeps no state between frames.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Callable, List, Sequence

import torch
import torch.nn.functional as F

from .errors import InvalidCropError, ShapeError

logger = logging.getLogger(__name__)

Stage = Callable[[torch.Tensor], torch.Tensor]


def _require_rank(tensor: torch.Tensor, rank: int, stage: str) -> None:
    if tensor.dim() != rank:
        raise ShapeError(f"{stage}: expected a rank-{rank} tensor, got shape {list(tensor.shape)}")


@dataclass(frozen=True)
class Permute:
    """Reorder axes; the default turns HWC into CHW."""

    dims: Sequence[int] = (2, 0, 1)

    def __call__(self, tensor: torch.Tensor) -> torch.Tensor:
        _require_rank(tensor, len(self.dims), "permute")
        return tensor.permute(*self.dims).contiguous()


@dataclass(frozen=True)
class Scale:
    """
    Bring pixel values into [0, 1] float32.

    Only integer input is divided; float input is assumed to be scaled
    already (by `codec.encode`) and only has its dtype normalized.
    """

    divisor: float = 255.0

    def __call__(self, tensor: torch.Tensor) -> torch.Tensor:
        if tensor.is_floating_point():
            return tensor.to(torch.float32)
        return tensor.to(torch.float32).div(self.divisor)


@dataclass(frozen=True)
class CenterCrop:
    """Crop a `size` x `size` square from the middle of a `[C, H, W]` tensor."""

    size: int

    def __call__(self, tensor: torch.Tensor) -> torch.Tensor:
        _require_rank(tensor, 3, "center_crop")
        height, width = int(tensor.shape[1]), int(tensor.shape[2])
        if self.size <= 0 or self.size > height or self.size > width:
            raise InvalidCropError(
                f"Cannot crop {self.size}x{self.size} out of a {width}x{height} frame"
            )
        top = int(round((height - self.size) / 2.0))
        left = int(round((width - self.size) / 2.0))
        return tensor[:, top : top + self.size, left : left + self.size].clone()


@dataclass(frozen=True)
class Resize:
    """Bilinearly resample a `[C, H, W]` tensor to `[C, size, size]`."""

    size: int

    def __call__(self, tensor: torch.Tensor) -> torch.Tensor:
        _require_rank(tensor, 3, "resize")
        if tensor.shape[1] < 1 or tensor.shape[2] < 1:
            raise ShapeError(f"resize: empty spatial extent {list(tensor.shape)}")
        resized = F.interpolate(
            tensor.unsqueeze(0),
            size=(self.size, self.size),
            mode="bilinear",
            align_corners=False,
        )
        return resized.squeeze(0)


@dataclass(frozen=True)
class Unsqueeze:
    """Insert a singleton dimension (the batch axis by default)."""

    dim: int = 0

    def __call__(self, tensor: torch.Tensor) -> torch.Tensor:
        return tensor.unsqueeze(self.dim)


class TransformPipeline:
    """Apply a fixed sequence of stages in order."""

    def __init__(self, stages: Sequence[Stage]) -> None:
        self.stages: List[Stage] = list(stages)

    @classmethod
    def for_frame(cls, width: int, height: int, input_size: int) -> "TransformPipeline":
        """
        Build the standard chain for a `width` x `height` frame.

        The crop size depends on the frame, so a pipeline is built per frame;
        the stages themselves hold only these fixed parameters.
        """
        return cls(
            [
                Permute((2, 0, 1)),
                Scale(),
                CenterCrop(min(width, height)),
                Resize(input_size),
                Unsqueeze(0),
            ]
        )

    def apply(self, tensor: torch.Tensor) -> torch.Tensor:
        for stage in self.stages:
            tensor = stage(tensor)
        logger.debug("transform: output shape %s", list(tensor.shape))
        return tensor

    __call__ = apply
