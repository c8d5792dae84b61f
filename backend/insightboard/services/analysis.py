"""
Upload analysis pipeline: parse, chart, summarize, store.
"""
import logging
from datetime import datetime, timezone

from insightboard.core.errors import AnalysisNotFound, QuestionAnsweringFailed
from insightboard.core.sanitization import sanitize_filename, sanitize_for_logging
from insightboard.core.schemas import AnalysisResult, FileMetadata
from insightboard.core.storage import AnalysisStore
from insightboard.services.ai_insights import (
    QuestionAnswerer,
    Summarizer,
    build_question_digest,
    build_summary_digest,
    generate_insights,
)
from insightboard.services.generator import select_visualizations
from insightboard.services.parser import detect_file_type, parse

logger = logging.getLogger(__name__)


def analyze_upload(
    contents: bytes,
    filename: str,
    summarizer: Summarizer,
    store: AnalysisStore,
) -> AnalysisResult:
    """
    Run the full analysis for one uploaded file and store the result.

    The result is only saved once every step has succeeded; its id is written
    into `result.file.id`.

    Raises:
        UnsupportedFormat: unknown file extension
        ParseError: malformed or empty file
    """
    safe_filename = sanitize_filename(filename)
    file_type = detect_file_type(safe_filename)

    data = parse(contents, file_type)
    visualizations = select_visualizations(data)
    insights = generate_insights(summarizer, build_summary_digest(data, safe_filename))

    result = AnalysisResult(
        file=FileMetadata(
            filename=safe_filename,
            file_type=file_type,
            uploaded_at=datetime.now(timezone.utc),
            row_count=data.row_count,
            column_count=data.column_count,
        ),
        parsed_data=data,
        visualizations=visualizations,
        ai_insights=insights,
    )
    analysis_id = store.save(result)
    logger.info(
        f"Analysis {analysis_id} created for {sanitize_for_logging(safe_filename)}: "
        f"{data.row_count} rows, {len(visualizations)} charts"
    )
    return result


def answer_question(
    analysis_id: str,
    question: str,
    answerer: QuestionAnswerer,
    store: AnalysisStore,
) -> str:
    """
    Answer a natural-language question about a stored analysis.

    Raises:
        AnalysisNotFound: unknown or expired id
        QuestionAnsweringFailed: the AI collaborator failed
    """
    analysis = store.load(analysis_id)
    if analysis is None:
        raise AnalysisNotFound(f"No analysis with id {analysis_id}")

    try:
        return answerer.answer(build_question_digest(analysis.parsed_data), question)
    except QuestionAnsweringFailed:
        raise
    except Exception as e:
        logger.error(f"Question answering failed for analysis {analysis_id}: {e}", exc_info=True)
        raise QuestionAnsweringFailed(f"Question answering failed: {e}") from e
