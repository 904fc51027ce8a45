"""
High-level mask pipeline.

`MaskPipeline.handle_image` is the entry point used by the camera callback,
the HTTP API and the local script. It keeps orchestration simple:
frame in -> encode -> transforms -> model -> decode -> grid layout -> paint.

One pass runs at a time per pipeline instance. Frames that arrive while a
pass is in flight are released and dropped. Every error raised inside a pass
is caught here, turned into a user notice, and the frame plus any masks
decoded so far are released before returning.
"""

from __future__ import annotations

from contextlib import ExitStack
from dataclasses import dataclass, field
from enum import Enum
import logging
from typing import Any, List, Optional, Protocol

from . import config
from .codec import RawImage, RenderedMask, decode, encode
from .errors import CanvasUnavailableError, ModelNotReadyError
from .inference import InferenceInvoker, PassTimings
from .layout import GridPlacement, place
from .surface import RenderSurface
from .transforms import TransformPipeline

logger = logging.getLogger(__name__)


class PassState(str, Enum):
    IDLE = "idle"
    ENCODING = "encoding"
    TRANSFORMING = "transforming"
    INFERRING = "inferring"
    DECODING = "decoding"
    PLACING = "placing"
    DONE = "done"
    ERROR = "error"
    # Reported for frames rejected by the admission gate; never the pipeline's own state.
    DROPPED = "dropped"


IN_FLIGHT = frozenset(
    {
        PassState.ENCODING,
        PassState.TRANSFORMING,
        PassState.INFERRING,
        PassState.DECODING,
        PassState.PLACING,
    }
)


class ModelSource(Protocol):
    @property
    def is_ready(self) -> bool:
        ...

    @property
    def model(self) -> Any:
        ...


@dataclass(frozen=True)
class Notice:
    title: str
    message: str


class Notifier(Protocol):
    def notify(self, notice: Notice) -> None:
        ...


class LoggingNotifier:
    """Surface user notices through the log when no UI is attached."""

    def notify(self, notice: Notice) -> None:
        logger.warning("%s: %s", notice.title, notice.message)


@dataclass
class PassResult:
    """
    Outcome of one pass.

    Placements describe what was painted; their masks are already released
    by the time the result is returned.
    """

    state: PassState
    placements: List[GridPlacement] = field(default_factory=list)
    notice: Optional[Notice] = None
    timings: PassTimings = field(default_factory=PassTimings)


def _notice_for(exc: Exception) -> Notice:
    if isinstance(exc, ModelNotReadyError):
        return Notice("Model not loaded", "The model has not been loaded yet")
    if isinstance(exc, CanvasUnavailableError):
        return Notice("Canvas", "The canvas is not initialized")
    return Notice("Error", str(exc) or type(exc).__name__)


class MaskPipeline:
    def __init__(
        self,
        model_source: ModelSource,
        surface: Optional[RenderSurface],
        notifier: Optional[Notifier] = None,
        settings: Optional[config.Settings] = None,
        invoker: Optional[InferenceInvoker] = None,
    ) -> None:
        self.settings = settings or config.get_settings()
        self.model_source = model_source
        self.surface = surface
        self.notifier = notifier or LoggingNotifier()
        self.invoker = invoker or InferenceInvoker(self.settings.input_size)
        self._state = PassState.IDLE

    @property
    def state(self) -> PassState:
        return self._state

    @property
    def is_processing(self) -> bool:
        return self._state in IN_FLIGHT

    def _release_frame(self, image: RawImage) -> None:
        """Release a frame that never entered a pass; a failing release is only logged."""
        try:
            image.release()
        except Exception as exc:  # noqa: BLE001
            logger.exception("Failed to release frame %r: %s", image, exc)

    def _fail(self, exc: Exception, timings: PassTimings) -> PassResult:
        logger.error("Mask pass failed during %s: %s", self._state.value, exc, exc_info=exc)
        self._state = PassState.ERROR
        notice = _notice_for(exc)
        self.notifier.notify(notice)
        return PassResult(state=PassState.ERROR, notice=notice, timings=timings)

    async def handle_image(self, image: RawImage) -> PassResult:
        """Run one pass over `image`. Never raises an error; the frame is always released."""
        if self.is_processing:
            logger.warning("Dropping frame %r: a pass is already %s", image, self._state.value)
            self._release_frame(image)
            return PassResult(state=PassState.DROPPED)

        timings = PassTimings()
        unavailable: Optional[Exception] = None
        if not self.model_source.is_ready or self.model_source.model is None:
            unavailable = ModelNotReadyError("The model has not been loaded yet")
        elif self.surface is None:
            unavailable = CanvasUnavailableError("The canvas is not initialized")
        if unavailable is not None:
            self._release_frame(image)
            return self._fail(unavailable, timings)

        # Claim the slot before the first suspension point.
        self._state = PassState.ENCODING
        try:
            try:
                with ExitStack() as owned:
                    owned.callback(image.release)
                    placements = await self._run_pass(image, owned, timings)
            except Exception as exc:  # noqa: BLE001
                # Also covers release callbacks that fail while the stack unwinds.
                return self._fail(exc, timings)

            self._state = PassState.DONE
            timings.log()
            return PassResult(state=PassState.DONE, placements=placements, timings=timings)
        finally:
            # Cancellation and other BaseExceptions must not leave the slot claimed.
            if self._state in IN_FLIGHT:
                logger.warning("Mask pass interrupted during %s", self._state.value)
                self._state = PassState.ERROR

    async def _run_pass(self, image: RawImage, owned: ExitStack, timings: PassTimings) -> List[GridPlacement]:
        surface = self.surface
        if surface is None:
            raise CanvasUnavailableError("The canvas is not initialized")
        model = self.model_source.model

        # Clear previous result
        surface.clear()
        await surface.invalidate()

        with timings.measure("preprocess"):
            self._state = PassState.ENCODING
            tensor = encode(image)
            self._state = PassState.TRANSFORMING
            transforms = TransformPipeline.for_frame(image.width, image.height, self.settings.input_size)
            tensor = transforms.apply(tensor)

        self._state = PassState.INFERRING
        channels = await self.invoker.run(model, tensor, timings)

        self._state = PassState.DECODING
        masks: List[RenderedMask] = []
        with timings.measure("postprocess"):
            for channel in channels:
                masks.append(owned.enter_context(decode(channel)))

        self._state = PassState.PLACING
        placements = place(masks, self.settings.cell_size, self.settings.gap, self.settings.columns)
        for placement in placements:
            surface.draw_image(placement.image, placement.x, placement.y, placement.width, placement.height)
        # Paint canvas and wait for completion
        await surface.invalidate()
        return placements
