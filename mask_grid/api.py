"""
FastAPI layer exposing the mask grid pipeline.

Endpoints:
 - GET /health
 - POST /masks
"""

from __future__ import annotations

import asyncio
from io import BytesIO
import logging

from fastapi import FastAPI, HTTPException, Response
from pydantic import BaseModel, HttpUrl
import requests
from PIL import Image

from . import config
from .codec import RawImage
from .layout import canvas_extent
from .model_loader import ModelLoader, get_model_loader
from .pipeline import MaskPipeline, PassState
from .surface import ImageCanvas

settings = config.get_settings()
logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))
logger = logging.getLogger(__name__)

app = FastAPI(title="Salient Mask Grid Service", version="0.1.0")
app.state.pipeline = None


class MasksRequest(BaseModel):
    imageUrl: HttpUrl


def _build_canvas() -> ImageCanvas:
    if settings.canvas_width and settings.canvas_height:
        return ImageCanvas(settings.canvas_width, settings.canvas_height)
    width, height = canvas_extent(0, settings.cell_size, settings.gap, settings.columns)
    return ImageCanvas(width, height, grow=True, padding=settings.gap)


def _get_pipeline() -> MaskPipeline:
    if app.state.pipeline is None:
        app.state.pipeline = MaskPipeline(get_model_loader(), _build_canvas(), settings=settings)
    return app.state.pipeline


def _download_image(url: str) -> bytes:
    resp = requests.get(url, timeout=(5, settings.request_timeout_seconds))
    resp.raise_for_status()
    return resp.content


@app.get("/health")
def health():
    pipeline = app.state.pipeline
    source = pipeline.model_source if pipeline is not None else get_model_loader()
    return {"status": "ok", "modelReady": bool(source.is_ready)}


@app.post("/masks")
async def masks(body: MasksRequest):
    try:
        image_bytes = await asyncio.to_thread(_download_image, str(body.imageUrl))
    except Exception as exc:  # noqa: BLE001
        logger.exception("Failed to download image: %s", exc)
        raise HTTPException(status_code=400, detail="Could not download image") from exc

    try:
        frame = RawImage.from_pil(Image.open(BytesIO(image_bytes)))
    except Exception as exc:  # noqa: BLE001
        raise HTTPException(status_code=400, detail="Invalid image data") from exc

    pipeline = _get_pipeline()
    source = pipeline.model_source
    if isinstance(source, ModelLoader) and not source.is_ready:
        try:
            await asyncio.to_thread(source.load)
        except Exception as exc:  # noqa: BLE001
            # The pass below reports the model as not loaded.
            logger.exception("Model load failed: %s", exc)

    result = await pipeline.handle_image(frame)
    if result.state is PassState.DROPPED:
        raise HTTPException(status_code=429, detail="A mask pass is already in progress")
    if result.state is PassState.ERROR:
        notice = result.notice
        status = 503 if notice is not None and notice.title == "Model not loaded" else 500
        raise HTTPException(status_code=status, detail=notice.message if notice else "Mask pass failed")

    headers = {"X-Mask-Count": str(len(result.placements))}
    return Response(content=pipeline.surface.to_png_bytes(), media_type="image/png", headers=headers)
