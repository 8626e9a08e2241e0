"""
Middlewares de aplicación: request id, log de acceso y CORS.

El log de acceso nunca incluye headers ni cuerpo (tokens, contraseñas, códigos);
solo método, ruta, status, latencia, request id y el usuario si el guard lo resolvió.
"""
import logging
import time
import uuid

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from uncaged.core.config import Settings

REQUEST_ID_HEADER = "X-Request-Id"


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Reusa el X-Request-Id del cliente o genera uno; lo devuelve en la respuesta."""

    async def dispatch(self, request: Request, call_next):
        incoming = (request.headers.get(REQUEST_ID_HEADER) or "").strip()
        request.state.request_id = incoming[:64] or uuid.uuid4().hex
        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request.state.request_id
        return response


class AccessLogMiddleware(BaseHTTPMiddleware):
    def __init__(self, app: FastAPI) -> None:
        super().__init__(app)
        self.log = logging.getLogger("uncaged.request")

    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()
        status = 500
        try:
            response = await call_next(request)
            status = response.status_code
            return response
        finally:
            identity = getattr(request.state, "identity", None)
            level = logging.ERROR if status >= 500 else logging.INFO
            self.log.log(
                level,
                "method=%s path=%s status=%s latency_ms=%s request_id=%s user_id=%s",
                request.method,
                request.url.path,
                status,
                int((time.perf_counter() - start) * 1000),
                getattr(request.state, "request_id", None),
                identity.principal_id if identity else "-",
            )


def add_middlewares(app: FastAPI, settings: Settings) -> None:
    if settings.cors_allow_any:
        # Orígenes dinámicos: sin credentials (los tokens viajan en Authorization, no en cookies)
        app.add_middleware(
            CORSMiddleware,
            allow_origin_regex=".*",
            allow_methods=["*"],
            allow_headers=["*"],
            allow_credentials=False,
        )
    else:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_origins,
            allow_methods=["*"],
            allow_headers=["*"],
            allow_credentials=True,
        )
    # El último en agregarse es el más externo: el request id queda listo antes del log
    app.add_middleware(AccessLogMiddleware)
    app.add_middleware(RequestIdMiddleware)
