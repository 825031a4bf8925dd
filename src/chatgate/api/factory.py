"""FastAPI application factory for the dashboard-facing gateway routes."""

from fastapi import FastAPI, Request, Response

from chatgate.observability.correlation import CORRELATION_ID_HEADER, correlation_scope

from .routes import gateway


def create_app() -> FastAPI:
    """Create the app with correlation middleware and gateway routes mounted."""
    app = FastAPI(
        title="chatgate",
        docs_url=None,
        redoc_url=None,
    )

    @app.middleware("http")
    async def correlation_id_middleware(request: Request, call_next) -> Response:
        with correlation_scope(request.headers.get(CORRELATION_ID_HEADER)) as cid:
            response = await call_next(request)
            response.headers[CORRELATION_ID_HEADER] = cid
            return response

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok"}

    app.include_router(gateway.router)

    return app
