"""Number analysis API routes.

Endpoints:
    GET /api/number/analyze/{number}    Even/prime/perfect-square/parity report

Status mapping:
    200  NumberProperties
    400  InvalidInputError, or a path value that is not a 64-bit integer
    500  any other AnalysisError (cancelled, check failed, timed out)

Known limit: primality is plain trial division, and each check gets
ANALYZER_JOIN_TIMEOUT_SECONDS (default 1.0s) of running time. Primes
(and semiprimes with two large factors) above roughly 1e15 cannot be
decided in that budget and return 500 "Analysis timed out for number: N".

A client disconnect while the checks are running stops them; the request
ends as a cancelled analysis.
"""

import asyncio
import logging
import threading

from fastapi import APIRouter, Depends, Path, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from src.analysis.errors import AnalysisError, InvalidInputError
from src.analysis.orchestrator import NumberAnalysisService
from src.analysis.schemas import INT64_MAX, INT64_MIN, ErrorResponse, NumberProperties

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/number", tags=["number"])

# How often a running request checks whether its client went away
DISCONNECT_POLL_INTERVAL_SECONDS = 0.01


def get_analysis_service(request: Request) -> NumberAnalysisService:
    """The service instance created by the app lifespan handler."""
    return request.app.state.analysis_service


async def watch_disconnect(request: Request, disconnected: threading.Event) -> None:
    """Set `disconnected` once the client goes away."""
    while not disconnected.is_set():
        if await request.is_disconnected():
            logger.warning(f"Client disconnected: {request.url.path}")
            disconnected.set()
            return
        await asyncio.sleep(DISCONNECT_POLL_INTERVAL_SECONDS)


@router.get(
    "/analyze/{number}",
    response_model=NumberProperties,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def analyze_number(
    request: Request,
    number: int = Path(..., ge=INT64_MIN, le=INT64_MAX, description="Number to analyze"),
    service: NumberAnalysisService = Depends(get_analysis_service),
):
    """Analyze a number: parity, primality, perfect square.

    Negative values reach the service on purpose so that its validation
    produces the 400 response. Large primes (above roughly 1e15) exceed the
    per-check time budget and return 500.
    """
    disconnected = threading.Event()
    watcher = asyncio.create_task(watch_disconnect(request, disconnected))
    try:
        properties = await run_in_threadpool(
            service.analyze, number, cancellation_check=disconnected.is_set
        )
    except asyncio.CancelledError:
        # Server cancelled the handler: stop the checks as well
        disconnected.set()
        raise
    except AnalysisError as e:
        status_code = 400 if isinstance(e, InvalidInputError) else 500
        if status_code == 400:
            logger.warning(f"Rejected input {number}: {e.message}")
        else:
            logger.error(f"Analysis failed for {number}: {e.message}")
        body = ErrorResponse(details=e.message, input=str(number))
        return JSONResponse(status_code=status_code, content=body.model_dump())
    finally:
        watcher.cancel()

    logger.info(f"Successfully analyzed: {number}")
    return properties
