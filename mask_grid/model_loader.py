"""
Model loading utilities for the salient-object segmentation model.

The loader:
 - resolves the model from a local path or downloads it once into a cache dir,
 - loads it as TorchScript, falling back to the lite interpreter for `.ptl`,
 - keeps a single shared read-only instance,
 - exposes `is_ready` / `model` for the pipeline.
"""

from __future__ import annotations

from functools import lru_cache
import logging
from pathlib import Path
from threading import Lock
from typing import Any, Optional
from urllib.parse import urlparse

import requests
import torch

from . import config

logger = logging.getLogger(__name__)

# Prefer CUDA -> Apple MPS -> CPU to support both GPU servers and local macOS dev.
if torch.cuda.is_available():
    _DEVICE = torch.device("cuda")
elif torch.backends.mps.is_available():  # type: ignore[attr-defined]
    _DEVICE = torch.device("mps")
else:
    _DEVICE = torch.device("cpu")


def _is_url(location: str) -> bool:
    return urlparse(location).scheme in {"http", "https"}


def _download(url: str, cache_dir: Path, timeout: int) -> Path:
    """Fetch `url` into `cache_dir` unless a copy is already there."""
    target = cache_dir / Path(urlparse(url).path).name
    if target.exists():
        logger.info("Using cached model at %s", target)
        return target

    cache_dir.mkdir(parents=True, exist_ok=True)
    partial = target.with_suffix(target.suffix + ".part")
    logger.info("Downloading model from %s", url)
    with requests.get(url, stream=True, timeout=(5, timeout)) as resp:
        resp.raise_for_status()
        with partial.open("wb") as fh:
            for chunk in resp.iter_content(chunk_size=1 << 16):
                fh.write(chunk)
    partial.replace(target)
    return target


def _load_torchscript(model_path: Path) -> Any:
    model = torch.jit.load(str(model_path), map_location=_DEVICE)
    model.eval()
    return model


def _load_lite(model_path: Path) -> Any:
    """Load a mobile lite-interpreter module. These run on CPU only."""
    from torch.jit.mobile import _load_for_lite_interpreter

    return _load_for_lite_interpreter(str(model_path))


class ModelLoader:
    """Lazily loads one model and hands out the shared instance."""

    def __init__(self, location: str, cache_dir: Path, timeout: int = 30) -> None:
        self.location = location
        self.cache_dir = cache_dir
        self.timeout = timeout
        self._model: Optional[Any] = None
        self._lock = Lock()

    @property
    def is_ready(self) -> bool:
        return self._model is not None

    @property
    def model(self) -> Optional[Any]:
        return self._model

    def _resolve(self) -> Path:
        if _is_url(self.location):
            return _download(self.location, self.cache_dir, self.timeout)
        model_path = Path(self.location)
        if not model_path.exists():
            raise FileNotFoundError(f"Model file not found at {model_path}")
        return model_path

    def load(self) -> Any:
        """Load the model on first call; later calls return the same instance."""
        if self._model is not None:
            return self._model

        with self._lock:
            if self._model is None:
                model_path = self._resolve()
                try:
                    logger.info("Attempting to load TorchScript model from %s", model_path)
                    model = _load_torchscript(model_path)
                    logger.info("Model loaded on device: %s", _DEVICE)
                except Exception as script_error:  # noqa: BLE001
                    logger.info(
                        "TorchScript load failed, falling back to lite interpreter. Error: %s",
                        script_error,
                    )
                    model = _load_lite(model_path)
                    logger.info("Lite interpreter model loaded on cpu")
                self._model = model
        return self._model


@lru_cache()
def get_model_loader() -> ModelLoader:
    """Return the process-wide loader built from settings."""
    settings = config.get_settings()
    return ModelLoader(
        config.model_location(settings),
        cache_dir=settings.model_cache_dir,
        timeout=settings.request_timeout_seconds,
    )
