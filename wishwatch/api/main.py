"""FastAPI application for monitoring the wishlist scheduler."""
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from wishwatch.core.config import settings
import logging
import time
import sys

from wishwatch.api.routes import health

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(sys.stdout)
    ]
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Wishwatch Monitoring API", version="1.0.0")


# Request logging middleware
@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all incoming requests and responses."""
    start_time = time.time()

    logger.info(f"→ {request.method} {request.url.path}")
    logger.debug(f"  Query params: {dict(request.query_params)}")

    try:
        response = await call_next(request)
        process_time = time.time() - start_time

        logger.info(f"← {request.method} {request.url.path} - Status: {response.status_code} - Time: {process_time:.3f}s")

        return response
    except Exception as e:
        process_time = time.time() - start_time
        logger.error(f"← {request.method} {request.url.path} - ERROR after {process_time:.3f}s: {str(e)}")
        raise


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle all unhandled exceptions."""
    logger.error(f"Unhandled exception in {request.method} {request.url.path}")
    logger.error(f"Exception message: {str(exc)}", exc_info=True)

    return JSONResponse(
        status_code=500,
        content={
            "detail": "Internal server error",
            "error": str(exc) if settings.log_level == "DEBUG" else "Internal server error"
        }
    )


app.include_router(health.router)


@app.get("/")
async def root():
    """Service banner."""
    return {"status": "ok", "service": "wishwatch-api"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=settings.api_port)
