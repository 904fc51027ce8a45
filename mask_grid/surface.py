"""
Render surfaces the pipeline paints mask thumbnails onto.

`RenderSurface` is the contract the orchestrator relies on; `ImageCanvas`
is a Pillow-backed implementation used by the HTTP API and the local
script to produce a PNG of the grid.
"""

from __future__ import annotations

from io import BytesIO
import logging
from typing import Optional, Protocol, Tuple

from PIL import Image

from .codec import RenderedMask

logger = logging.getLogger(__name__)


class RenderSurface(Protocol):
    def clear(self) -> None:
        ...

    def draw_image(self, image: RenderedMask, x: int, y: int, width: int, height: int) -> None:
        ...

    async def invalidate(self) -> None:
        """Flush pending draws; returns once the paint is committed."""
        ...


class ImageCanvas:
    """
    An in-memory RGB canvas. Draws land in a back buffer until `invalidate`.

    With `grow=True` the back buffer is extended downward/rightward (plus
    `padding`) whenever a draw falls outside it; otherwise Pillow clips.
    """

    def __init__(
        self,
        width: int,
        height: int,
        background: Tuple[int, int, int] = (0, 0, 0),
        grow: bool = False,
        padding: int = 0,
    ) -> None:
        self.size = (width, height)
        self.background = background
        self.grow = grow
        self.padding = padding
        self._pending = Image.new("RGB", self.size, background)
        self._committed = self._pending.copy()
        self.commits = 0

    def clear(self) -> None:
        self._pending = Image.new("RGB", self.size, self.background)

    def _ensure_fits(self, right: int, bottom: int) -> None:
        width, height = self._pending.size
        if right <= width and bottom <= height:
            return
        grown = Image.new("RGB", (max(width, right), max(height, bottom)), self.background)
        grown.paste(self._pending, (0, 0))
        self._pending = grown

    def draw_image(self, image: RenderedMask, x: int, y: int, width: int, height: int) -> None:
        thumb = image.to_pil()
        if thumb.size != (width, height):
            thumb = thumb.resize((width, height), Image.BILINEAR)
        if self.grow:
            self._ensure_fits(x + width + self.padding, y + height + self.padding)
        self._pending.paste(thumb, (x, y))

    async def invalidate(self) -> None:
        self._committed = self._pending.copy()
        self.commits += 1
        logger.debug("canvas: committed paint #%d", self.commits)

    @property
    def image(self) -> Image.Image:
        """The last committed paint."""
        return self._committed

    def to_png_bytes(self, image: Optional[Image.Image] = None) -> bytes:
        buf = BytesIO()
        (image or self._committed).save(buf, format="PNG")
        return buf.getvalue()
