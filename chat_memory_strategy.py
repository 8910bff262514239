# chat_memory_strategy.py

import logging
import re
import secrets
import string
import threading
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from langchain_core.embeddings import Embeddings

from document_processor import DocumentChunk, retrieve
from exceptions import InvalidQuestion, NotFound
from system_prompt import (
    ANSWER_CONTEXT_PREVIEW,
    CONTEXT_ANSWER,
    DEGREE_FOUND_ANSWER,
    EXPERIENCE_FOUND_ANSWER,
    EXPERIENCE_GENERIC_ANSWER,
    EXPERIENCE_YEARS_ANSWER,
    NO_CONTEXT_ANSWER,
    NO_DEGREE_ANSWER,
)

logger = logging.getLogger(__name__)

ID_ALPHABET = string.digits + string.ascii_lowercase
ID_LENGTH = 9

DEGREE_PATTERN = re.compile(
    r"\b(?:bs|ba|ms|ma|phd|bachelor|master|degree)\s+(?:(?:in|of)\s+)?[^.\n]+",
    re.IGNORECASE,
)
EXPERIENCE_PATTERN = re.compile(r"(\d+)\s+years?\s+of\s+([^.\n]+)", re.IGNORECASE)
EXPERIENCE_PREFIX = re.compile(r"^experience\s+(?:with|in)\s+", re.IGNORECASE)


@dataclass(frozen=True)
class ChatMessage:
    role: str  # "user" or "assistant"
    content: str

    def to_dict(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True)
class AnalysisSummary:
    id: str
    match_score: int
    strengths: Tuple[str, ...]
    gaps: Tuple[str, ...]
    assessment: str


@dataclass(eq=False)
class AnalysisRecord:
    id: str
    resume_text: str
    job_description_text: str
    match_score: int
    strengths: Tuple[str, ...]
    gaps: Tuple[str, ...]
    assessment: str
    chunks: Tuple[DocumentChunk, ...]
    _history: List[ChatMessage] = field(default_factory=list, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    @property
    def conversation_history(self) -> Tuple[ChatMessage, ...]:
        """Snapshot of the conversation; the live history only grows through append_turn."""
        with self._lock:
            return tuple(self._history)

    def append_turn(self, question: str, answer: str):
        with self._lock:
            self._history.append(ChatMessage("user", question))
            self._history.append(ChatMessage("assistant", answer))

    def summary(self) -> AnalysisSummary:
        return AnalysisSummary(
            id=self.id,
            match_score=self.match_score,
            strengths=self.strengths,
            gaps=self.gaps,
            assessment=self.assessment,
        )


class AnalysisStore:
    """In-memory analyses keyed by a short random id, kept for the life of the process."""

    def __init__(self):
        self._records: Dict[str, AnalysisRecord] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __contains__(self, analysis_id) -> bool:
        with self._lock:
            return analysis_id in self._records

    @staticmethod
    def _generate_id() -> str:
        return "".join(secrets.choice(ID_ALPHABET) for _ in range(ID_LENGTH))

    def create(
        self,
        resume_text: str,
        job_description_text: str,
        match_score: int,
        strengths: Sequence[str],
        gaps: Sequence[str],
        assessment: str,
        chunks: Sequence[DocumentChunk],
    ) -> AnalysisRecord:
        with self._lock:
            analysis_id = self._generate_id()
            while analysis_id in self._records:
                analysis_id = self._generate_id()
            record = AnalysisRecord(
                id=analysis_id,
                resume_text=resume_text,
                job_description_text=job_description_text,
                match_score=match_score,
                strengths=tuple(strengths),
                gaps=tuple(gaps),
                assessment=assessment,
                chunks=tuple(chunks),
            )
            self._records[analysis_id] = record
        return record

    def get(self, analysis_id: str) -> AnalysisRecord:
        with self._lock:
            record = self._records.get(analysis_id)
        if record is None:
            raise NotFound(analysis_id)
        return record

    def append_turn(self, analysis_id: str, question: str, answer: str):
        self.get(analysis_id).append_turn(question, answer)


# ------------------------------------------------------------------------------
# ANSWER RULES (first matching rule wins)
# ------------------------------------------------------------------------------

def _asks_about_education(question: str) -> bool:
    return any(word in question for word in ("degree", "education", "university"))


def _asks_about_experience(question: str) -> bool:
    return "experience" in question


def _answer_education(question, context, resume_text, job_description_text) -> str:
    if "degree" in resume_text.lower():
        degree_match = DEGREE_PATTERN.search(resume_text)
        if degree_match:
            return DEGREE_FOUND_ANSWER.format(degree=degree_match.group(0).strip())
    return NO_DEGREE_ANSWER


def _answer_experience(question, context, resume_text, job_description_text) -> str:
    if "years" in resume_text.lower():
        exp_match = EXPERIENCE_PATTERN.search(resume_text)
        if exp_match:
            field_of_work = EXPERIENCE_PREFIX.sub("", exp_match.group(2).strip())
            if field_of_work.lower() == "experience":
                return EXPERIENCE_YEARS_ANSWER.format(years=exp_match.group(1))
            return EXPERIENCE_FOUND_ANSWER.format(years=exp_match.group(1), field=field_of_work)
    return EXPERIENCE_GENERIC_ANSWER


def _answer_from_context(question, context, resume_text, job_description_text) -> str:
    if context.strip():
        return CONTEXT_ANSWER.format(context=context[:ANSWER_CONTEXT_PREVIEW])
    return NO_CONTEXT_ANSWER


AnswerRule = Tuple[Callable[[str], bool], Callable[[str, str, str, str], str]]

ANSWER_RULES: List[AnswerRule] = [
    (_asks_about_education, _answer_education),
    (_asks_about_experience, _answer_experience),
]


def generate_answer(
    question: str,
    relevant_chunks: Sequence[str],
    resume_text: str,
    job_description_text: str,
) -> str:
    """Answer a question from the retrieved resume chunks and both source texts."""
    context = "\n".join(relevant_chunks)
    lower_question = question.lower()
    for matches, handler in ANSWER_RULES:
        if matches(lower_question):
            return handler(lower_question, context, resume_text, job_description_text)
    return _answer_from_context(lower_question, context, resume_text, job_description_text)


# ------------------------------------------------------------------------------
# CHAT
# ------------------------------------------------------------------------------

def ask_question(
    store: AnalysisStore,
    analysis_id: str,
    question,
    embeddings: Optional[Embeddings] = None,
    k: int = 3,
) -> Dict[str, str]:
    """
    Answer a follow-up question about an analysed resume and record the turn.

    Raises:
        InvalidQuestion: if the question is not a non-empty string
        NotFound: if no analysis has this id
    """
    if not isinstance(question, str) or not question.strip():
        logger.warning(f"Rejected question for analysis {analysis_id}: {question!r}")
        raise InvalidQuestion("Missing or invalid question")

    record = store.get(analysis_id)
    relevant_chunks = retrieve(question, record.chunks, embeddings, k)
    answer = generate_answer(
        question,
        relevant_chunks,
        record.resume_text,
        record.job_description_text,
    )
    record.append_turn(question, answer)
    logger.info(f"Answered question for analysis {analysis_id} ({len(relevant_chunks)} chunks)")

    return {"answer": answer, "question": question}


def get_history(store: AnalysisStore, analysis_id: str) -> List[Dict[str, str]]:
    return [message.to_dict() for message in store.get(analysis_id).conversation_history]
