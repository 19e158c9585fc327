from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from orderflow.config import settings


def configure_cors(app: FastAPI) -> None:
    origins = [o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()]
    if not origins:
        origins = ["http://localhost:3000"]

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
        max_age=86400,
    )


def add_security_headers(app: FastAPI) -> None:
    @app.middleware("http")
    async def security_headers_mw(request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        # order state changes under the client; never serve it from a cache
        response.headers["Cache-Control"] = "no-store"
        return response
