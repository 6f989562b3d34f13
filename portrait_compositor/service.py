"""
HTTP API for portrait compositing.

Endpoints:
  GET  /api/portraits/composite        one portrait as image/png
  POST /api/portraits/batch-composite  JSON array of selections in,
                                       text/event-stream out: one
                                       "data: {...}\\n\\n" event per portrait,
                                       sent as soon as it is rendered
"""

from __future__ import annotations

import json
import logging

from fastapi import APIRouter, FastAPI, Query, Request
from fastapi.responses import JSONResponse, Response, StreamingResponse

from portrait_compositor.batch import generate_batch
from portrait_compositor.image_processor import EncodingError, encode_png
from portrait_compositor.part_resolver import UnresolvedPartError
from portrait_compositor.renderers import PortraitRenderer
from portrait_compositor.selection import (
    DEFAULT_HAIR_COLOR,
    DEFAULT_SKIN_COLOR,
    PortraitSelection,
    SelectionError,
)

logger = logging.getLogger(__name__)

_NO_STORE = {"Cache-Control": "no-store"}


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


def _sse_events(results):
    try:
        for result in results:
            yield f"data: {json.dumps(result.to_dict(), separators=(',', ':'))}\n\n"
    finally:
        # A disconnected client stops the batch and its render threads
        results.close()


def create_app(
    renderer: PortraitRenderer,
    *,
    output_size: int | None = None,
    thumbnail_size: int | None = None,
    workers: int = 1,
) -> FastAPI:
    """Build the API around an already-loaded renderer."""
    router = APIRouter(prefix="/api/portraits")

    @router.get(
        "/composite",
        summary="Composite a single portrait",
        response_class=Response,
    )
    def composite(
        hair: str = "",
        brow: str = "",
        facial: str = "",
        hair_back: str = Query("", alias="hairBack"),
        head: str = "",
        ears: str = "",
        hair_color: str = Query("", alias="hairColor"),
        skin_color: str = Query("", alias="skinColor"),
    ) -> Response:
        selection = PortraitSelection(
            hair=hair, brow=brow, facial=facial, hair_back=hair_back,
            head=head, ears=ears,
            hair_color=hair_color or DEFAULT_HAIR_COLOR,
            skin_color=skin_color or DEFAULT_SKIN_COLOR,
        )
        try:
            png = encode_png(renderer.render(selection, output_size))
        except (SelectionError, UnresolvedPartError) as exc:
            return _error(400, str(exc))
        except (EncodingError, OSError, ValueError) as exc:
            logger.error("Composite error: %s", exc)
            return _error(500, "Failed to composite portrait")

        return Response(content=png, media_type="image/png", headers=_NO_STORE)

    @router.post(
        "/batch-composite",
        summary="Composite many portraits, streamed as server-sent events",
    )
    async def batch_composite(request: Request) -> Response:
        body = await request.body()
        if not body:
            return _error(400, "No body")
        try:
            payload = json.loads(body)
        except (json.JSONDecodeError, UnicodeDecodeError):
            return _error(400, "Invalid JSON")
        if not isinstance(payload, list):
            return _error(400, "Expected array of configs")

        try:
            configs = [PortraitSelection.from_dict(raw) for raw in payload]
            names = [str(raw["name"]) if raw.get("name") else None for raw in payload]
            results = generate_batch(
                renderer, configs,
                names=names,
                size=output_size,
                thumbnail_size=thumbnail_size,
                workers=workers,
            )
        except SelectionError as exc:
            return _error(400, str(exc))

        logger.info("Streaming batch of %d portraits", len(configs))
        return StreamingResponse(
            _sse_events(results),
            media_type="text/event-stream",
            headers=_NO_STORE,
        )

    app = FastAPI(
        title="Portrait Compositor",
        description="Layered sprite portrait rendering.",
        version="0.1.0",
    )
    app.include_router(router)
    return app
