from __future__ import annotations

import numpy as np
import pytest
import torch

from mask_grid.codec import RawImage, RenderedMask, decode, encode
from mask_grid.errors import DecodeError, ResourceError, ShapeError

from .conftest import ReleaseCounter, make_frame


@pytest.mark.parametrize("height,width", [(1, 1), (2, 3), (7, 5), (48, 64)])
def test_encode_returns_hwc_float_in_unit_range(height: int, width: int) -> None:
    tensor = encode(make_frame(height, width))

    assert list(tensor.shape) == [height, width, 3]
    assert tensor.dtype == torch.float32
    assert float(tensor.min()) >= 0.0
    assert float(tensor.max()) <= 1.0


def test_encode_divides_by_255_once() -> None:
    array = np.zeros((1, 2, 3), dtype=np.uint8)
    array[0, 0] = [255, 0, 51]
    tensor = encode(RawImage.from_array(array))

    assert tensor[0, 0].tolist() == pytest.approx([1.0, 0.0, 0.2])
    assert tensor[0, 1].tolist() == [0.0, 0.0, 0.0]


def test_encode_rejects_buffer_length_mismatch() -> None:
    frame = RawImage(b"\x00" * 10, height=2, width=2)

    with pytest.raises(DecodeError):
        encode(frame)


def test_encode_rejects_released_frame() -> None:
    frame = make_frame(2, 2)
    frame.release()

    with pytest.raises(ResourceError):
        encode(frame)


def test_raw_image_release_is_idempotent() -> None:
    counter = ReleaseCounter()
    frame = make_frame(2, 2, on_release=counter)

    frame.release()
    frame.release()

    assert frame.released
    assert counter.count == 1


def test_from_array_rejects_non_rgb() -> None:
    with pytest.raises(DecodeError):
        RawImage.from_array(np.zeros((4, 4), dtype=np.uint8))


@pytest.mark.parametrize(
    "value,expected",
    [(0.0, 0), (1.0, 255), (0.4, 102), (1.7, 255), (-0.5, 0)],
)
def test_decode_constant_channel(value: float, expected: int) -> None:
    mask = decode(torch.full((1, 3, 5), value))

    assert list(mask.tensor.shape) == [3, 3, 5]
    assert mask.tensor.dtype == torch.uint8
    assert torch.all(mask.tensor == expected)


def test_decode_replicates_grayscale_into_rgb() -> None:
    channel = torch.linspace(0, 1, 12).reshape(1, 3, 4)
    mask = decode(channel)

    assert torch.equal(mask.tensor[0], mask.tensor[1])
    assert torch.equal(mask.tensor[1], mask.tensor[2])
    assert int(mask.tensor[0, 0, 0]) == 0
    assert int(mask.tensor[0, 2, 3]) == 255


@pytest.mark.parametrize("shape", [(4, 4), (2, 4, 4), (1, 1, 4, 4), (1, 0, 4)])
def test_decode_rejects_bad_shapes(shape) -> None:
    with pytest.raises(ShapeError):
        decode(torch.zeros(shape))


def test_rendered_mask_release_and_context_manager() -> None:
    with decode(torch.ones(1, 2, 2)) as mask:
        assert mask.to_pil().size == (2, 2)
        assert mask.width == 2 and mask.height == 2

    assert mask.released
    with pytest.raises(ResourceError):
        _ = mask.tensor


def test_rendered_mask_to_pil_is_rgb() -> None:
    mask = RenderedMask(torch.full((3, 4, 6), 7, dtype=torch.uint8))
    image = mask.to_pil()

    assert image.mode == "RGB"
    assert image.size == (6, 4)
    assert image.getpixel((0, 0)) == (7, 7, 7)
