"""Number Analyzer API.

Reports whether a non-negative integer is even, prime and a perfect
square, plus its parity label. The four checks run concurrently on a
worker pool owned by the app; see src.analysis.orchestrator.

Key endpoints:
- `GET /api/number/analyze/{number}` - Analyze one number
- `GET /health` - Health check
"""

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from src import __version__
from src.analysis.orchestrator import NumberAnalysisService
from src.analysis.schemas import ErrorResponse
from src.api.routes import number

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

HOST = os.environ.get("ANALYZER_HOST", "0.0.0.0")
PORT = int(os.environ.get("ANALYZER_PORT", "8080"))


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup: own the worker pool for the app's lifetime
    service = NumberAnalysisService()
    app.state.analysis_service = service
    logger.info(f"Number Analyzer API ready (workers={service.max_workers})")
    logger.info(f"API endpoint example: http://localhost:{PORT}/api/number/analyze/16")
    yield
    # Shutdown
    logger.info("Shutting down Number Analyzer API")
    service.shutdown()


# Create FastAPI app
app = FastAPI(
    title="Number Analyzer API",
    description=__doc__,
    version=__version__,
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(number.router, prefix="/api")


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Reject unparseable input with 400 before it reaches the analysis core."""
    raw = request.path_params.get("number", "")
    errors = exc.errors()
    details = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
    logger.warning(f"Invalid request {request.url.path}: {details}")
    body = ErrorResponse(error="Invalid request", details=details, input=str(raw))
    return JSONResponse(status_code=400, content=body.model_dump())


@app.get("/")
async def root():
    """Root endpoint with API info."""
    return {
        "service": "Number Analyzer API",
        "version": __version__,
        "docs": "/docs",
        "endpoints": {
            "analyze": "/api/number/analyze/{number}",
            "health": "/health",
        },
    }


@app.get("/health")
async def health(request: Request):
    """Health check endpoint."""
    service: NumberAnalysisService = request.app.state.analysis_service
    return {
        "status": "healthy",
        "max_workers": service.max_workers,
        "join_timeout_seconds": service.join_timeout,
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "src.api.main:app",
        host=HOST,
        port=PORT,
    )
