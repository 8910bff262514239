# core_matcher.py

import logging
import math
import re
from dataclasses import dataclass, field
from typing import List, Optional

from langchain_core.embeddings import Embeddings

from chat_memory_strategy import AnalysisRecord, AnalysisStore
from document_processor import DEFAULT_CHUNK_SIZE, build_chunks, extract_text
from system_prompt import (
    GAP_TEMPLATE,
    MODERATE_FIT_ASSESSMENT,
    POOR_FIT_ASSESSMENT,
    STRENGTH_TEMPLATE,
    STRONG_FIT_ASSESSMENT,
)

logger = logging.getLogger(__name__)

MIN_KEYWORD_LENGTH = 6
MIN_KEYWORD_FREQUENCY = 2
MAX_KEYWORDS = 15
MAX_STRENGTHS = 5
MAX_GAPS = 3

STRONG_FIT_THRESHOLD = 75
MODERATE_FIT_THRESHOLD = 50

NON_KEYWORD_CHARS = re.compile(r"[^a-z0-9+]")


@dataclass
class MatchResult:
    score: int
    strengths: List[str] = field(default_factory=list)
    gaps: List[str] = field(default_factory=list)
    assessment: str = ""


# ------------------------------------------------------------------------------
# 1. KEYWORD EXTRACTION (Job Description)
# ------------------------------------------------------------------------------

def extract_keywords(text: str) -> List[str]:
    """
    Extract long words that appear at least twice in the job description.

    Words are counted before punctuation is stripped, so "python," and
    "python." are counted separately and may both survive as "python".
    Order is the order in which each word was first seen.
    """
    frequency = {}
    for word in text.lower().split():
        if len(word) >= MIN_KEYWORD_LENGTH:
            frequency[word] = frequency.get(word, 0) + 1

    keywords = []
    for word, count in frequency.items():
        if count < MIN_KEYWORD_FREQUENCY:
            continue
        cleaned = NON_KEYWORD_CHARS.sub("", word)
        if len(cleaned) >= MIN_KEYWORD_LENGTH:
            keywords.append(cleaned)

    return keywords[:MAX_KEYWORDS]


# ------------------------------------------------------------------------------
# 2. MATCH SCORING
# ------------------------------------------------------------------------------

def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def assess(score: int) -> str:
    if score >= STRONG_FIT_THRESHOLD:
        return STRONG_FIT_ASSESSMENT
    if score >= MODERATE_FIT_THRESHOLD:
        return MODERATE_FIT_ASSESSMENT
    return POOR_FIT_ASSESSMENT


def calculate_match(resume_text: str, job_description: str) -> MatchResult:
    """
    Score a resume by the share of job description keywords it mentions.

    A job description without any keywords scores 0.
    """
    resume_lower = resume_text.lower()
    job_keywords = extract_keywords(job_description)
    logger.debug(f"Job keywords: {job_keywords}")

    strengths = []
    gaps = []
    match_count = 0
    for keyword in job_keywords:
        if keyword.lower() in resume_lower:
            match_count += 1
            if len(strengths) < MAX_STRENGTHS:
                strengths.append(STRENGTH_TEMPLATE.format(keyword=keyword))
        elif len(gaps) < MAX_GAPS:
            gaps.append(GAP_TEMPLATE.format(keyword=keyword))

    if job_keywords:
        score = _round_half_up(100 * match_count / len(job_keywords))
    else:
        logger.warning("No keywords found in job description, match score defaults to 0")
        score = 0

    return MatchResult(
        score=score,
        strengths=strengths,
        gaps=gaps,
        assessment=assess(score),
    )


# ------------------------------------------------------------------------------
# 3. ANALYSIS (Extract -> Chunk -> Embed -> Score -> Store)
# ------------------------------------------------------------------------------

def analyze_documents(
    store: AnalysisStore,
    resume_content: bytes,
    resume_format,
    job_description_content: bytes,
    job_description_format,
    embeddings: Optional[Embeddings] = None,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> AnalysisRecord:
    """
    Core function to analyze a resume against a job description:
      - Extract text from both documents
      - Chunk and embed the resume for later questions
      - Score the resume against job description keywords
      - Store the result as a new analysis

    Raises:
        UnsupportedFormat: if either declared format is not accepted
        ExtractionFailed: if either document cannot be parsed
    """
    resume_text = extract_text(resume_content, resume_format)
    job_description_text = extract_text(job_description_content, job_description_format)

    chunks = build_chunks(resume_text, embeddings, chunk_size)
    match = calculate_match(resume_text, job_description_text)

    record = store.create(
        resume_text=resume_text,
        job_description_text=job_description_text,
        match_score=match.score,
        strengths=match.strengths,
        gaps=match.gaps,
        assessment=match.assessment,
        chunks=chunks,
    )
    logger.info(
        f"Analysis {record.id} created: score={record.match_score}%, "
        f"{len(chunks)} resume chunks"
    )
    return record
