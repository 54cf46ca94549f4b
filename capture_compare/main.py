import logging
import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, File, Form, Request, UploadFile
from fastapi.responses import JSONResponse

from capture_compare.config import get_settings
from capture_compare.core.comparison import render_report
from capture_compare.core.errors import CompareError
from capture_compare.core.session import ComparisonSession
from capture_compare.logging_setup import setup_logging
from capture_compare.providers.text_provider import create_recognition_engine
from capture_compare.schemas import AnalyzeResponse, ComparisonOut, ErrorResponse, HealthResponse
from capture_compare.utils.image_io import load_image_from_bytes

settings = get_settings()
setup_logging(settings.log_level)
logger = logging.getLogger('capture_compare')

started_at = time.time()


@asynccontextmanager
async def lifespan(app: FastAPI):
    engine = create_recognition_engine(settings)
    session = ComparisonSession(
        engine,
        primary_source=settings.primary_source,
        secondary_source=settings.secondary_source,
    )
    app.state.session = session
    status = engine.status()
    logger.info(
        'Recognition engine initialized provider=%s model=%s available=%s message=%s',
        settings.text_provider,
        engine.model_id,
        status.get('available'),
        status.get('message'),
    )
    async with session:
        yield
    logger.info('Comparison session closed model=%s', engine.model_id)


app = FastAPI(title='Capture Compare', version=settings.version, lifespan=lifespan)


def _request_id(request: Request) -> str:
    return request.headers.get('x-request-id') or str(uuid.uuid4())


@app.exception_handler(CompareError)
async def compare_error_handler(request: Request, exc: CompareError):
    payload = ErrorResponse(
        error=exc.code,
        message=exc.message,
        request_id=_request_id(request),
        details=exc.details or None,
    )
    return JSONResponse(status_code=exc.status_code, content=payload.model_dump())


@app.exception_handler(Exception)
async def generic_error_handler(request: Request, exc: Exception):
    request_id = _request_id(request)
    logger.exception('Unhandled exception request_id=%s', request_id)
    payload = ErrorResponse(
        error='UNEXPECTED_SERVER_ERROR',
        message='Unexpected server error.',
        request_id=request_id,
    )
    return JSONResponse(status_code=500, content=payload.model_dump())


@app.get('/health', response_model=HealthResponse)
def health():
    session: ComparisonSession = app.state.session
    status = session.engine.status()
    return HealthResponse(
        ok=True,
        version=settings.version,
        provider=settings.text_provider,
        model=session.engine.model_id,
        recognizer_available=bool(status.get('available')),
        recognizer_message=status.get('message'),
        uptime_s=round(time.time() - started_at, 3),
    )


@app.post('/analyze', response_model=AnalyzeResponse)
async def analyze(
    request: Request,
    image: UploadFile = File(...),
    source: str | None = Form(default=None),
):
    request_id = _request_id(request)
    image_bytes = await image.read()
    img = load_image_from_bytes(image_bytes, settings.max_image_bytes, field='image')

    session: ComparisonSession = app.state.session
    result = await session.analyze(img, source or settings.primary_source)
    logger.info(
        'analyze request_id=%s bytes=%s source=%s chars=%s readability=%.4f failed=%s',
        request_id,
        len(image_bytes),
        result.source,
        result.total_characters,
        result.readability_score,
        result.failed,
    )
    return AnalyzeResponse(ok=True, model=session.engine.model_id, result=result.to_dict())


@app.post('/compare', response_model=ComparisonOut)
async def compare_captures(
    request: Request,
    primary: UploadFile = File(...),
    secondary: UploadFile = File(...),
):
    request_id = _request_id(request)
    primary_bytes = await primary.read()
    secondary_bytes = await secondary.read()
    primary_image = load_image_from_bytes(primary_bytes, settings.max_image_bytes, field='primary')
    secondary_image = load_image_from_bytes(secondary_bytes, settings.max_image_bytes, field='secondary')

    session: ComparisonSession = app.state.session
    report = await session.run(primary_image, secondary_image)
    logger.info(
        'compare request_id=%s winner=%s gap=%.4f failed_sources=%s',
        request_id,
        report.winner,
        report.score_gap,
        [result.source for result in report.results if result.failed],
    )
    return ComparisonOut(
        ok=True,
        model=session.engine.model_id,
        report_text=render_report(report),
        **report.to_dict(),
    )
