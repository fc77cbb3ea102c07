"""
X4A Protocol Simulator - Request Proxy Service

This service:
1. Accepts {id, type, query} on POST /api/grok
2. Forwards a templated "{id} Agent" prompt to the xAI chat-completion API
3. Normalizes the reply into {result}
4. Serves the static front-end (single-page-app fallback to index.html)
5. Hosts the mock x402 facilitator used by local agent servers
"""
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import click
import uvicorn
from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from pydantic import BaseModel

from .completion import (
    CompletionClient,
    PROXY_MAX_TOKENS,
    PROXY_TEMPERATURE,
    build_proxy_messages,
)
from .config import API_HOST, LOG_FORMAT, PROXY_PORT, get_proxy_settings
from .errors import BadRequestError, ConfigurationError, UpstreamError, X4AError
from .payment.facilitator import router as facilitator_router

logger = logging.getLogger(__name__)

MISSING_KEY_MESSAGE = "X4A Protocol key not configured. Check your .env file."
MISSING_FIELDS_MESSAGE = "Missing id or query in request body"
DEFAULT_QUERY_TYPE = "general"


class GrokQueryRequest(BaseModel):
    """Proxy query. Fields are optional here so missing ones get a 400, not a 422."""
    id: Optional[str] = None
    type: Optional[str] = None
    query: Optional[str] = None


class GrokQueryResponse(BaseModel):
    result: str
    model: Optional[str] = None


def get_completion_client() -> CompletionClient:
    """
    Dependency returning the xAI completion client for this request.

    Tests override it through `app.dependency_overrides`.
    """
    settings = get_proxy_settings()
    return CompletionClient(
        api_key=settings.xai_api_key,
        base_url=settings.xai_base_url,
        model=settings.xai_model,
        timeout=settings.completion_timeout,
        missing_key_message=MISSING_KEY_MESSAGE,
    )


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _resolve_static(public_dir: Path, path: str) -> Optional[Path]:
    """Find the file for `path` inside public_dir (also trying `.html`); None if absent."""
    if not path or "\x00" in path:
        return None
    root = public_dir.resolve()
    for candidate in (root / path, root / f"{path}.html"):
        try:
            candidate = candidate.resolve()
            if candidate.is_file() and candidate.is_relative_to(root):
                return candidate
        except (ValueError, OSError):
            # e.g. embedded NUL bytes or over-long names
            continue
    return None


def create_proxy_app() -> FastAPI:
    app = FastAPI(
        title="X4A Protocol Simulator",
        description="Proxy that simulates X4A swarm agents through the xAI completion API",
        version="0.1.0",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(facilitator_router)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        # A bad `type` (or any other field) is not a missing id/query
        other_fields = {
            err["loc"][1]
            for err in exc.errors()
            if len(err.get("loc", ())) > 1 and isinstance(err["loc"][1], str)
        } - {"id", "query"}
        if request.url.path == "/api/grok" and not other_fields:
            message = MISSING_FIELDS_MESSAGE
        else:
            message = "Invalid request body"
        return JSONResponse(status_code=400, content={"error": message})

    @app.exception_handler(BadRequestError)
    async def bad_request_handler(request: Request, exc: BadRequestError):
        return JSONResponse(status_code=400, content={"error": exc.message})

    @app.get("/health")
    async def health():
        """Health check"""
        return {"status": "OK", "timestamp": _utc_timestamp()}

    @app.post("/api/grok")
    async def grok_query(
        request: GrokQueryRequest,
        completion: CompletionClient = Depends(get_completion_client),
    ):
        """
        Simulate an X4A agent.

        Upstream failures are classified into a readable message but always
        surface as HTTP 500; the upstream status is not passed through.
        """
        if not request.id or not request.query:
            raise BadRequestError(MISSING_FIELDS_MESSAGE)

        query_type = request.type or DEFAULT_QUERY_TYPE
        try:
            logger.info(f"Simulating X4A Agent: {request.id} - {query_type} - {request.query}")
            reply = await completion.complete(
                build_proxy_messages(request.id, query_type, request.query),
                temperature=PROXY_TEMPERATURE,
                max_tokens=PROXY_MAX_TOKENS,
            )
        except ConfigurationError as e:
            logger.error(f"XAI_API_KEY not set: {e.message}")
            return JSONResponse(status_code=500, content={"error": e.message})
        except UpstreamError as e:
            logger.error(f"X4A Agent Sim Error: {e}")
            return JSONResponse(status_code=500, content={"error": f"Agent simulation failed: {e}"})
        except X4AError as e:
            logger.error(f"X4A Agent Sim Error: {e.message}")
            return JSONResponse(status_code=500, content={"error": f"Agent simulation failed: {e.message}"})
        except Exception as e:
            logger.exception(f"X4A Agent Sim Error: {e!r}")
            return JSONResponse(status_code=500, content={"error": f"Agent simulation failed: {e}"})

        logger.info(f"X4A Agent sim for {request.id}: {reply.result[:100]}...")
        body = GrokQueryResponse(result=reply.result, model=reply.model)
        return JSONResponse(content=body.model_dump(exclude_none=True))

    @app.get("/{full_path:path}", include_in_schema=False)
    async def static_files(full_path: str):
        """Serve files from the public directory, falling back to index.html for SPA routing."""
        public_dir = get_proxy_settings().public_dir
        target = _resolve_static(public_dir, full_path)
        if target is not None:
            return FileResponse(target)
        index = public_dir / "index.html"
        if index.is_file():
            return FileResponse(index)
        return JSONResponse(status_code=404, content={"error": "Not Found"})

    return app


app = create_proxy_app()


@click.command()
@click.option("--host", default=API_HOST, help="API host")
@click.option("--port", default=PROXY_PORT, type=int, help="API port")
def main(host: str, port: int):
    """Run the X4A Protocol Simulator proxy"""
    logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
    if not get_proxy_settings().xai_api_key:
        logger.warning("XAI_API_KEY not set; /api/grok will answer 500 until it is configured")
    logger.info(f"X4A Protocol Simulator running on port {port} | Health: http://localhost:{port}/health")
    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    main()
