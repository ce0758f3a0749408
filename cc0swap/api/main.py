"""FastAPI application for the swap service.

Rate limiting is left to the reverse proxy in front of the service.
"""

import structlog
import uvicorn
from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse

from cc0swap import __version__
from cc0swap.api.endpoints import get_settings, router
from cc0swap.config import Settings

# Maximum request body size (1 MB)
MAX_REQUEST_SIZE = 1024 * 1024

app = FastAPI(
    title="cc0swap",
    description="Uniswap v4 quotes, swap calldata and a read-only RPC proxy",
    version=__version__,
)


@app.middleware("http")
async def limit_request_size(request: Request, call_next):  # type: ignore[no-untyped-def]
    """Reject requests with body larger than MAX_REQUEST_SIZE."""
    content_length = request.headers.get("content-length")
    if content_length and int(content_length) > MAX_REQUEST_SIZE:
        return JSONResponse(status_code=413, content={"detail": "Request too large"})
    return await call_next(request)


app.include_router(router)


@app.get("/health")
async def health(settings: Settings = Depends(get_settings)) -> dict[str, object]:
    """Health check endpoint."""
    return {
        "status": "ok",
        "chain_id": settings.chain_id,
        "rpc_configured": settings.rpc_url is not None,
    }


def run() -> None:
    """Run the API server.

    Configuration via environment variables:
    - CC0_HOST: Host to bind to (default: 0.0.0.0)
    - CC0_PORT: Port to bind to (default: 8000)
    - CC0_DEBUG: Enable debug/reload mode (default: false)
    """
    settings = Settings.from_env()

    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ]
    )

    uvicorn.run(
        "cc0swap.api.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )


if __name__ == "__main__":
    run()
