"""
AI-powered insights and data Q&A using Groq (primary) and Gemini (fallback).

The pipeline talks to two strategy interfaces, `Summarizer` and
`QuestionAnswerer`. The LLM-backed implementations call whichever provider
is configured; tests substitute their own strategies.

Summaries degrade gracefully: if no provider answers with usable JSON the
caller gets deterministic fallback insights. Questions fail loudly, since a
fabricated answer is worse than an error.
"""
import os
import re
import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Mapping, Optional

from groq import Groq
from pydantic import ValidationError

from insightboard.core.cache import generate_digest_cache_key, get_insight_cache
from insightboard.core.config import get_settings
from insightboard.core.errors import QuestionAnsweringFailed, SummarizationUnavailable
from insightboard.core.performance import track_performance
from insightboard.core.sanitization import sanitize_for_prompt
from insightboard.core.schemas import AIInsights, DataQuality, TabularData

logger = logging.getLogger(__name__)

SUMMARY_SAMPLE_ROWS = 10
QUESTION_SAMPLE_ROWS = 20

# Provider clients (singletons)
_groq_client: Optional[Groq] = None
_gemini_model = None  # Lazy loaded to avoid import if not needed

CompletionFn = Callable[..., Optional[str]]


def get_groq_client() -> Optional[Groq]:
    """Get or create Groq client singleton."""
    global _groq_client
    if _groq_client is None:
        api_key = os.getenv("GROQ_API_KEY")
        if api_key:
            _groq_client = Groq(api_key=api_key)
            logger.info("Groq AI client initialized")
    return _groq_client


def get_gemini_model():
    """Get or create Gemini model singleton."""
    global _gemini_model
    if _gemini_model is None:
        api_key = os.getenv("GEMINI_API_KEY")
        if api_key:
            import google.generativeai as genai
            genai.configure(api_key=api_key)
            model_name = get_settings().gemini_model
            _gemini_model = genai.GenerativeModel(model_name)
            logger.info(f"Gemini AI initialized with model: {model_name}")
    return _gemini_model


def ai_available() -> bool:
    return bool(os.getenv("GROQ_API_KEY") or os.getenv("GEMINI_API_KEY"))


def _call_groq(prompt: str, system_prompt: str, max_tokens: int, json_mode: bool) -> Optional[str]:
    client = get_groq_client()
    if not client:
        return None

    settings = get_settings()
    kwargs: Dict[str, Any] = {}
    if json_mode:
        kwargs["response_format"] = {"type": "json_object"}
    response = client.chat.completions.create(
        model=settings.groq_model,
        messages=[
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": prompt}
        ],
        max_tokens=max_tokens,
        temperature=0.3,
        timeout=settings.ai_timeout_seconds,
        **kwargs
    )
    return response.choices[0].message.content


def _call_gemini(prompt: str, system_prompt: str, max_tokens: int, json_mode: bool) -> Optional[str]:
    model = get_gemini_model()
    if not model:
        return None

    generation_config: Dict[str, Any] = {"max_output_tokens": max_tokens}
    if json_mode:
        generation_config["response_mime_type"] = "application/json"
    response = model.generate_content(
        f"{system_prompt}\n\n{prompt}",
        generation_config=generation_config,
        request_options={"timeout": get_settings().ai_timeout_seconds}
    )
    return response.text


def call_ai_with_fallback(
    prompt: str,
    system_prompt: str,
    max_tokens: int = 800,
    json_mode: bool = False
) -> Optional[str]:
    """
    Call the configured providers in order Groq -> Gemini.

    Returns the first non-empty completion, or None when every provider is
    missing or failed.
    """
    for name, call in (("Groq", _call_groq), ("Gemini", _call_gemini)):
        try:
            result = call(prompt, system_prompt, max_tokens, json_mode)
        except Exception as e:
            error_str = str(e).lower()
            if "rate" in error_str or "429" in error_str:
                logger.warning(f"{name} rate limited, trying next provider: {e}")
            else:
                logger.warning(f"{name} error, trying next provider: {e}")
            continue
        if result and result.strip():
            logger.debug(f"AI response from {name}")
            return result
    return None


def build_summary_digest(data: TabularData, filename: str) -> Dict[str, Any]:
    """Digest handed to the summarizer: shape, schema and the first rows."""
    return {
        "filename": filename,
        "rowCount": data.row_count,
        "columnCount": data.column_count,
        "columns": list(data.columns),
        "columnTypes": dict(data.column_types),
        "sampleRows": data.rows[:SUMMARY_SAMPLE_ROWS],
    }


def build_question_digest(data: TabularData) -> Dict[str, Any]:
    """Digest handed to the question answerer."""
    return {
        "columns": list(data.columns),
        "columnTypes": dict(data.column_types),
        "rowCount": data.row_count,
        "sampleRows": data.rows[:QUESTION_SAMPLE_ROWS],
    }


def fallback_insights(row_count: int, column_count: int, column_types: Mapping[str, str]) -> AIInsights:
    """Deterministic insights built without any external call."""
    distinct_types = list(dict.fromkeys(column_types.values())) or ["none"]
    return AIInsights(
        summary=f"Dataset contains {row_count} rows and {column_count} columns with various data types.",
        key_insights=[
            f"The dataset includes {column_count} different data fields",
            f"Total of {row_count} records available for analysis",
            "Data types include: " + ", ".join(distinct_types),
        ],
        recommendations=[
            "Review data for missing or null values",
            "Consider data normalization for better analysis",
            "Explore correlations between numerical columns",
        ],
        data_quality=DataQuality(completeness=85, accuracy="Medium"),
        trends=[
            "Data analysis in progress",
            "Further exploration recommended",
        ],
    )


_FENCE = re.compile(r'^```(?:json)?\s*|\s*```$', re.IGNORECASE)


def parse_insights_json(text: str) -> AIInsights:
    """Validate a model's JSON reply, tolerating a surrounding code fence."""
    cleaned = _FENCE.sub('', text.strip())
    try:
        return AIInsights.model_validate(json.loads(cleaned))
    except (json.JSONDecodeError, ValidationError) as e:
        raise SummarizationUnavailable(f"Unusable summary from AI: {e}") from e


class Summarizer(ABC):
    @abstractmethod
    def summarize(self, digest: Dict[str, Any]) -> AIInsights:
        """Return insights for a digest, or raise SummarizationUnavailable."""


class QuestionAnswerer(ABC):
    @abstractmethod
    def answer(self, digest: Dict[str, Any], question: str) -> str:
        """Answer a question about a digest, or raise QuestionAnsweringFailed."""


SUMMARY_SYSTEM_PROMPT = "You are a data analyst. Reply with a single JSON object and nothing else."

SUMMARY_PROMPT = """Analyze the following dataset and provide comprehensive insights.

Dataset Information:
- Filename: {filename}
- Rows: {row_count}
- Columns: {column_count}
- Column Names and Types: {column_types}

Sample Data (first {sample_size} rows):
{sample_rows}

Respond with JSON in exactly this shape:
{{
  "summary": "A 2-3 sentence executive summary of the data",
  "keyInsights": ["insight 1", "insight 2", "insight 3", "insight 4"],
  "recommendations": ["recommendation 1", "recommendation 2", "recommendation 3"],
  "dataQuality": {{"completeness": <number 0-100>, "accuracy": "<High/Medium/Low>"}},
  "trends": ["trend 1", "trend 2", "trend 3"]
}}

Focus on what the data represents, notable patterns or outliers, data quality
(missing values, consistency), actionable recommendations and key trends."""


class LLMSummarizer(Summarizer):
    """Summarizer backed by the Groq/Gemini providers, caching by digest."""

    def __init__(self, complete: CompletionFn = call_ai_with_fallback, available: Callable[[], bool] = ai_available):
        self._complete = complete
        self._available = available

    def summarize(self, digest: Dict[str, Any]) -> AIInsights:
        if not self._available():
            raise SummarizationUnavailable("No AI providers configured (set GROQ_API_KEY or GEMINI_API_KEY)")

        cache = get_insight_cache()
        cache_key = generate_digest_cache_key(digest)
        cached = cache.get(cache_key)
        if cached is not None:
            logger.debug("Returning cached AI summary")
            return cached

        prompt = SUMMARY_PROMPT.format(
            filename=sanitize_for_prompt(digest.get("filename", ""), 100),
            row_count=digest["rowCount"],
            column_count=digest["columnCount"],
            column_types=json.dumps(digest["columnTypes"], indent=2),
            sample_size=SUMMARY_SAMPLE_ROWS,
            sample_rows=json.dumps(digest["sampleRows"], indent=2, default=str),
        )
        text = self._complete(prompt, SUMMARY_SYSTEM_PROMPT, max_tokens=1200, json_mode=True)
        if not text:
            raise SummarizationUnavailable("Empty response from AI providers")

        insights = parse_insights_json(text)
        cache.set(cache_key, insights)
        logger.info("AI summary generated successfully")
        return insights


QUESTION_SYSTEM_PROMPT = "You are a data analysis assistant. Answer using ONLY the data provided."

QUESTION_PROMPT = """Dataset Information:
- Total Rows: {row_count}
- Columns: {columns}
- Column Types: {column_types}

Sample Data (first {sample_size} rows):
{sample_rows}

User Question: {question}

Instructions:
1. Provide a clear, concise answer based ONLY on the data shown
2. If you need to calculate something (sum, average, count), do the calculation
3. If the question cannot be answered with the available data, explain what data would be needed
4. Include specific numbers and examples from the data when relevant"""


class LLMQuestionAnswerer(QuestionAnswerer):
    """Question answerer backed by the Groq/Gemini providers."""

    def __init__(self, complete: CompletionFn = call_ai_with_fallback, available: Callable[[], bool] = ai_available):
        self._complete = complete
        self._available = available

    def answer(self, digest: Dict[str, Any], question: str) -> str:
        if not self._available():
            raise QuestionAnsweringFailed(
                "No AI providers configured. Set GROQ_API_KEY or GEMINI_API_KEY to enable data chat."
            )

        prompt = QUESTION_PROMPT.format(
            row_count=digest["rowCount"],
            columns=", ".join(digest["columns"]),
            column_types=json.dumps(digest["columnTypes"], indent=2),
            sample_size=QUESTION_SAMPLE_ROWS,
            sample_rows=json.dumps(digest["sampleRows"], indent=2, default=str),
            question=sanitize_for_prompt(question, 500),
        )
        text = self._complete(prompt, QUESTION_SYSTEM_PROMPT, max_tokens=800)
        if not text or not text.strip():
            raise QuestionAnsweringFailed("The AI providers returned no answer")
        return text.strip()


@track_performance("summarize")
def generate_insights(summarizer: Summarizer, digest: Dict[str, Any]) -> AIInsights:
    """
    Summarize a digest, falling back to deterministic insights on failure.

    Any summarizer error is treated as SummarizationUnavailable, so this never
    raises for collaborator failures.
    """
    try:
        return summarizer.summarize(digest)
    except SummarizationUnavailable as e:
        logger.warning(f"AI summary unavailable, using fallback insights: {e}")
    except Exception as e:
        logger.error(f"Summarizer failed unexpectedly, using fallback insights: {e}", exc_info=True)
    return fallback_insights(digest["rowCount"], digest["columnCount"], digest["columnTypes"])


_summarizer: Optional[Summarizer] = None
_question_answerer: Optional[QuestionAnswerer] = None


def get_summarizer() -> Summarizer:
    global _summarizer
    if _summarizer is None:
        _summarizer = LLMSummarizer()
    return _summarizer


def get_question_answerer() -> QuestionAnswerer:
    global _question_answerer
    if _question_answerer is None:
        _question_answerer = LLMQuestionAnswerer()
    return _question_answerer
