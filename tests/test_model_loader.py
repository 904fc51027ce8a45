from __future__ import annotations

from pathlib import Path

import pytest
import torch

from mask_grid import model_loader
from mask_grid.model_loader import ModelLoader


class _Sigmoid(torch.nn.Module):
    def forward(self, x: torch.Tensor) -> torch.Tensor:
        return torch.sigmoid(x[:, :1])


def _save_scripted(path: Path) -> Path:
    torch.jit.script(_Sigmoid()).save(str(path))
    return path


def test_loads_local_torchscript_once(tmp_path: Path) -> None:
    loader = ModelLoader(str(_save_scripted(tmp_path / "mask.pt")), cache_dir=tmp_path / "cache")

    assert not loader.is_ready
    assert loader.model is None
    model = loader.load()

    assert loader.is_ready
    assert loader.load() is model
    assert list(model(torch.zeros(1, 3, 4, 4)).shape) == [1, 1, 4, 4]


def test_missing_local_file(tmp_path: Path) -> None:
    loader = ModelLoader(str(tmp_path / "missing.ptl"), cache_dir=tmp_path)

    with pytest.raises(FileNotFoundError):
        loader.load()
    assert not loader.is_ready


def test_url_uses_cached_download(tmp_path: Path, monkeypatch) -> None:
    cache = tmp_path / "cache"
    cache.mkdir()
    _save_scripted(cache / "u2netp.ptl")

    def _no_network(*args, **kwargs):
        raise AssertionError("cached model must not be downloaded again")

    monkeypatch.setattr(model_loader.requests, "get", _no_network)
    loader = ModelLoader("https://example.com/models/u2netp.ptl", cache_dir=cache)

    assert loader.load() is not None
    assert loader.is_ready
