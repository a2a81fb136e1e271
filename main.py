import logging
import uuid
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from app.routers import auth, products, payments, settings as settings_router, popup, admin
from app.config import settings
from app.errors import register_exception_handlers
from app.geolocation import GeolocationMiddleware, get_geo
from app.auth.dependencies import NEW_TOKEN_HEADER
from app.redis_client import close_redis


# Configure logging
if settings.log_format == "json":
    import json as json_mod

    class JsonFormatter(logging.Formatter):
        def format(self, record):
            log_data = {
                "timestamp": self.formatTime(record),
                "level": record.levelname,
                "message": record.getMessage(),
                "module": record.module,
                "request_id": getattr(record, "request_id", None),
            }
            if record.exc_info:
                log_data["exception"] = self.formatException(record.exc_info)
            return json_mod.dumps(log_data)

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    logging.root.handlers = [handler]

logging.basicConfig(level=getattr(logging, settings.log_level, logging.INFO))
logger = logging.getLogger("storefront")


class RequestIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4())[:8])
        request.state.request_id = request_id
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response


# Create FastAPI application
app = FastAPI(
    title="Telegram Secrets API",
    description="Storefront API with geolocated catalog, PIX payments and admin back-office",
    version="1.0.0",
    debug=settings.debug,
)

register_exception_handlers(app)

app.add_middleware(GeolocationMiddleware)
app.add_middleware(RequestIdMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=[NEW_TOKEN_HEADER, "X-Request-ID"],
)

# Include routers
app.include_router(auth.router)
app.include_router(products.router)
app.include_router(payments.router)
app.include_router(settings_router.router)
app.include_router(popup.router)
app.include_router(admin.router)


@app.on_event("shutdown")
def shutdown():
    close_redis()


@app.get("/health")
def health_check(request: Request):
    """Health check endpoint"""
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "environment": settings.environment,
        "geo": get_geo(request).as_dict(),
    }


@app.exception_handler(404)
async def not_found_handler(request: Request, exc):
    detail = getattr(exc, "detail", None)
    if detail and detail != "Not Found":
        return JSONResponse(status_code=404, content={"error": detail})
    return JSONResponse(status_code=404, content={"error": "Route not found"})


if __name__ == "__main__":
    import uvicorn
    logger.info("Starting on port %s (%s), frontend %s", settings.port, settings.environment, settings.frontend_url)
    uvicorn.run(app, host="0.0.0.0", port=settings.port, reload=settings.debug)
