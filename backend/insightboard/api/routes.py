import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, Request, UploadFile
from slowapi import Limiter
from slowapi.util import get_remote_address
from starlette.concurrency import run_in_threadpool

from insightboard.core.config import get_settings
from insightboard.core.errors import (
    AnalysisNotFound,
    ErrorCodes,
    ParseError,
    QuestionAnsweringFailed,
    UnsupportedFormat,
    get_error_response,
)
from insightboard.core.sanitization import sanitize_filename, sanitize_for_logging
from insightboard.core.schemas import AnalysisResult, ChatRequest, ChatResponse, UploadResponse
from insightboard.core.storage import AnalysisStore, get_analysis_store
from insightboard.services.ai_insights import (
    QuestionAnswerer,
    Summarizer,
    get_question_answerer,
    get_summarizer,
)
from insightboard.services.analysis import analyze_upload, answer_question

logger = logging.getLogger(__name__)

router = APIRouter()

limiter = Limiter(key_func=get_remote_address)

READ_CHUNK_SIZE = 1024 * 1024  # 1MB


def _upload_rate_limit() -> str:
    return f"{get_settings().rate_limit_per_minute}/minute"


def _http_error(request: Request, status_code: int, code: str, detail: Optional[str] = None) -> HTTPException:
    error_info = get_error_response(code, detail)
    error_info['correlation_id'] = getattr(request.state, 'correlation_id', 'unknown')
    return HTTPException(status_code=status_code, detail=error_info)


async def read_upload(file: UploadFile, max_bytes: int) -> Optional[bytes]:
    """
    Read an upload in chunks, stopping early once it exceeds `max_bytes`.

    Returns None when the file is too large.
    """
    chunks = []
    size = 0
    await file.seek(0)
    while True:
        chunk = await file.read(READ_CHUNK_SIZE)
        if not chunk:
            break
        size += len(chunk)
        if size > max_bytes:
            return None
        chunks.append(chunk)
    return b"".join(chunks)


@router.get("/health")
async def health_check():
    return {"status": "ok"}


@router.post("/upload", response_model=UploadResponse)
@limiter.limit(_upload_rate_limit)
async def upload_file(
    request: Request,
    file: UploadFile = File(...),
    store: AnalysisStore = Depends(get_analysis_store),
    summarizer: Summarizer = Depends(get_summarizer),
):
    """
    Upload a CSV, Excel or JSON file and analyze it.

    Returns the id under which the analysis can be fetched.
    Rate limited per client IP (RATE_LIMIT_PER_MINUTE).
    """
    settings = get_settings()
    safe_filename = sanitize_filename(file.filename or "")

    contents = await read_upload(file, settings.max_file_size_bytes)
    if contents is None:
        raise _http_error(
            request, 413, ErrorCodes.FILE_TOO_LARGE,
            f"Maximum size is {settings.max_file_size_mb}MB."
        )
    if not contents:
        raise _http_error(request, 400, ErrorCodes.FILE_EMPTY)

    logger.info(f"Processing upload: {sanitize_for_logging(safe_filename)}, size: {len(contents) / 1024:.2f}KB")

    try:
        result = await run_in_threadpool(analyze_upload, contents, safe_filename, summarizer, store)
    except UnsupportedFormat as e:
        raise _http_error(request, 400, ErrorCodes.UNSUPPORTED_FORMAT, e.message)
    except ParseError as e:
        logger.info(f"Failed to parse {sanitize_for_logging(safe_filename)}: {e.message}")
        raise _http_error(request, 400, ErrorCodes.PARSE_ERROR, e.message)

    return UploadResponse(id=result.file.id)


@router.get("/analysis/{analysis_id}", response_model=AnalysisResult)
async def get_analysis(
    analysis_id: str,
    request: Request,
    store: AnalysisStore = Depends(get_analysis_store),
):
    analysis = store.load(analysis_id)
    if analysis is None:
        raise _http_error(request, 404, ErrorCodes.ANALYSIS_NOT_FOUND)
    return analysis


@router.post("/data-chat/{analysis_id}", response_model=ChatResponse)
async def data_chat(
    analysis_id: str,
    body: ChatRequest,
    request: Request,
    store: AnalysisStore = Depends(get_analysis_store),
    answerer: QuestionAnswerer = Depends(get_question_answerer),
):
    """Answer a natural-language question about a stored analysis."""
    question = body.question.strip()
    if not question:
        raise _http_error(request, 400, ErrorCodes.QUESTION_REQUIRED)

    try:
        answer = await run_in_threadpool(answer_question, analysis_id, question, answerer, store)
    except AnalysisNotFound:
        raise _http_error(request, 404, ErrorCodes.ANALYSIS_NOT_FOUND)
    except QuestionAnsweringFailed as e:
        logger.warning(f"Data chat failed for analysis {analysis_id}: {e.message}")
        raise _http_error(request, 502, ErrorCodes.QUESTION_FAILED, e.message)

    return ChatResponse(answer=answer)
