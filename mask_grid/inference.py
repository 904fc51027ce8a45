"""
Model invocation with shape contracts and phase timing.

The model is a black box: a `[1, 3, S, S]` float tensor goes in and one or
more mask tensors come out. `InferenceInvoker.run` normalizes whatever the
model returns into an ordered list of `[1, H, W]` channels.
"""

from __future__ import annotations

import asyncio
from contextlib import contextmanager
from dataclasses import dataclass
import logging
import time
from typing import Any, Iterator, List, Optional

import torch

from .errors import InferenceError

logger = logging.getLogger(__name__)


@dataclass
class PassTimings:
    """Wall-clock durations (ms) of the three phases of one pass. Advisory only."""

    preprocess_ms: float = 0.0
    inference_ms: float = 0.0
    postprocess_ms: float = 0.0

    @contextmanager
    def measure(self, phase: str) -> Iterator[None]:
        start = time.perf_counter()
        try:
            yield
        finally:
            setattr(self, f"{phase}_ms", (time.perf_counter() - start) * 1000.0)

    def log(self) -> None:
        logger.info("pack time %.3f ms", self.preprocess_ms)
        logger.info("inference time %.3f ms", self.inference_ms)
        logger.info("unpack time %.3f ms", self.postprocess_ms)


def _split_output(output: Any) -> List[torch.Tensor]:
    """Flatten a model result into `[1, H, W]` channels, keeping order."""
    if isinstance(output, torch.Tensor):
        outputs = [output]
    elif isinstance(output, (list, tuple)):
        outputs = list(output)
    else:
        raise InferenceError(f"Unsupported model output type: {type(output).__name__}")

    channels: List[torch.Tensor] = []
    for index, tensor in enumerate(outputs):
        if not isinstance(tensor, torch.Tensor):
            raise InferenceError(f"Model output {index} is not a tensor")
        if tensor.dim() == 4:
            if tensor.shape[0] != 1:
                raise InferenceError(f"Model output {index} has batch size {tensor.shape[0]}, expected 1")
            tensor = tensor.squeeze(0)
        if tensor.dim() == 2:
            tensor = tensor.unsqueeze(0)
        if tensor.dim() != 3:
            raise InferenceError(f"Model output {index} has unusable shape {list(tensor.shape)}")
        # A [C, H, W] output carries C masks.
        channels.extend(tensor.split(1, dim=0))
    return channels


def _model_device(model: Any) -> torch.device:
    """Device of the model's first parameter; lite and plain callables run on CPU."""
    parameters = getattr(model, "parameters", None)
    if parameters is None:
        return torch.device("cpu")
    first = next(iter(parameters()), None)
    return first.device if first is not None else torch.device("cpu")


class InferenceInvoker:
    """Runs a loaded model on one preprocessed frame."""

    def __init__(self, input_size: int) -> None:
        self.input_size = input_size

    def check_input(self, tensor: torch.Tensor) -> None:
        expected = [1, 3, self.input_size, self.input_size]
        if list(tensor.shape) != expected:
            raise InferenceError(f"Model input must be {expected}, got {list(tensor.shape)}")

    def _forward(self, model: Any, tensor: torch.Tensor) -> List[torch.Tensor]:
        with torch.no_grad():
            output = model(tensor.to(_model_device(model)))
        return _split_output(output)

    async def run(
        self,
        model: Any,
        tensor: torch.Tensor,
        timings: Optional[PassTimings] = None,
    ) -> List[torch.Tensor]:
        """
        Forward `tensor` through `model` and return its mask channels.

        Raises:
            InferenceError: model missing, bad input shape, runtime fault,
                or output that cannot be read as mask channels.
        """
        if model is None:
            raise InferenceError("The model has not been loaded yet")
        self.check_input(tensor)
        timings = timings or PassTimings()
        try:
            with timings.measure("inference"):
                channels = await asyncio.to_thread(self._forward, model, tensor)
        except InferenceError:
            raise
        except Exception as exc:  # noqa: BLE001
            raise InferenceError(f"Model forward failed: {exc}") from exc
        logger.debug("inference: model returned %d mask channel(s)", len(channels))
        return channels
