from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Optional, Sequence, Tuple

import numpy as np
import pytest
import torch

from mask_grid.codec import RawImage, RenderedMask
from mask_grid.config import Settings
from mask_grid.pipeline import Notice

INPUT_SIZE = 16


class ConstantMaskModel(torch.nn.Module):
    """Returns `count` single-channel masks filled with `value`, U^2-Net style."""

    def __init__(self, count: int = 3, value: float = 1.0) -> None:
        super().__init__()
        self.count = count
        self.value = value
        self.calls = 0

    def forward(self, x: torch.Tensor) -> Tuple[torch.Tensor, ...]:
        self.calls += 1
        _, _, height, width = x.shape
        return tuple(torch.full((1, 1, height, width), self.value) for _ in range(self.count))


class FailingModel(torch.nn.Module):
    def forward(self, x: torch.Tensor) -> torch.Tensor:
        raise RuntimeError("boom")


@dataclass
class DummyModelSource:
    model: Any = None
    is_ready: bool = True


class DummySurface:
    def __init__(self) -> None:
        self.calls: List[Tuple[Any, ...]] = []

    def clear(self) -> None:
        self.calls.append(("clear",))

    def draw_image(self, image: RenderedMask, x: int, y: int, width: int, height: int) -> None:
        assert not image.released, "masks must be live while drawing"
        self.calls.append(("draw", x, y, width, height))

    async def invalidate(self) -> None:
        self.calls.append(("invalidate",))

    @property
    def draws(self) -> List[Tuple[Any, ...]]:
        return [call for call in self.calls if call[0] == "draw"]


class DummyNotifier:
    def __init__(self) -> None:
        self.notices: List[Notice] = []

    def notify(self, notice: Notice) -> None:
        self.notices.append(notice)


class ReleaseCounter:
    def __init__(self) -> None:
        self.count = 0

    def __call__(self) -> None:
        self.count += 1


def make_frame(height: int, width: int, on_release: Optional[ReleaseCounter] = None) -> RawImage:
    rng = np.random.default_rng(height * 1000 + width)
    array = rng.integers(0, 256, size=(height, width, 3), dtype=np.uint8)
    return RawImage.from_array(array, on_release=on_release)


def channels(values: Sequence[float], height: int = 4, width: int = 4) -> List[torch.Tensor]:
    return [torch.full((1, height, width), value) for value in values]


@pytest.fixture
def settings() -> Settings:
    return Settings(input_size=INPUT_SIZE, cell_size=100, gap=10, columns=3)
