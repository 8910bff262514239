# document_processor.py

import logging
import math
import os
import re
import tempfile
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence, Tuple

from langchain_community.document_loaders import PyPDFLoader
from langchain_core.documents import Document
from langchain_core.embeddings import Embeddings

from exceptions import ExtractionFailed, UnsupportedFormat

logger = logging.getLogger(__name__)

EMBEDDING_DIMENSION = 100
DEFAULT_CHUNK_SIZE = 500

# A sentence is everything up to a run of terminal punctuation, or the
# unpunctuated remainder of the text.
SENTENCE_PATTERN = re.compile(r"[^.!?]*[.!?]+|[^.!?]+")


# ------------------------------------------------------------------------------
# 1. TEXT EXTRACTION
# ------------------------------------------------------------------------------

class DocumentFormat(str, Enum):
    PDF = "pdf"
    PLAIN_TEXT = "plainText"

    @classmethod
    def from_declared(cls, declared) -> "DocumentFormat":
        """Resolve an enum value, enum name or upload MIME type to a format."""
        if isinstance(declared, cls):
            return declared
        if isinstance(declared, str):
            value = declared.split(";", 1)[0].strip()
            if value in _MIME_TYPES:
                return _MIME_TYPES[value]
            for member in cls:
                if value in (member.value, member.name):
                    return member
        raise UnsupportedFormat(declared)


_MIME_TYPES = {
    "application/pdf": DocumentFormat.PDF,
    "text/plain": DocumentFormat.PLAIN_TEXT,
}


def _save_temp_file(file_content: bytes, suffix: str = ".pdf") -> str:
    """Save uploaded content bytes to a temporary file and return the path."""
    fd, path = tempfile.mkstemp(suffix=suffix)
    with os.fdopen(fd, "wb") as tmp:
        tmp.write(file_content)
    return path


def extract_text_from_pdf(file_content: bytes) -> str:
    temp_file_path = _save_temp_file(file_content, suffix=".pdf")
    try:
        loader = PyPDFLoader(temp_file_path)
        docs = loader.load()
    except Exception as e:
        logger.exception("PDF parsing failed")
        raise ExtractionFailed(f"Could not parse PDF: {e}") from e
    finally:
        os.remove(temp_file_path)
    return "\n\n".join(d.page_content for d in docs)


def extract_text_from_txt(file_content: bytes) -> str:
    try:
        return file_content.decode("utf-8")
    except UnicodeDecodeError as e:
        raise ExtractionFailed(f"Text document is not valid UTF-8: {e}") from e


def extract_text(file_content: bytes, declared_format) -> str:
    """
    Convert a raw document into plain text.

    Raises:
        UnsupportedFormat: if the declared format is neither PDF nor plain text
        ExtractionFailed: if the document content cannot be parsed
    """
    doc_format = DocumentFormat.from_declared(declared_format)
    if doc_format is DocumentFormat.PDF:
        text = extract_text_from_pdf(file_content)
    else:
        text = extract_text_from_txt(file_content)
    logger.debug(f"Extracted {len(text)} characters from {doc_format.value} document")
    return text


# ------------------------------------------------------------------------------
# 2. CHUNKING
# ------------------------------------------------------------------------------

def split_sentences(text: str) -> List[str]:
    return SENTENCE_PATTERN.findall(text)


def chunk_text(text: str, chunk_size: int = DEFAULT_CHUNK_SIZE) -> List[str]:
    """
    Greedily pack sentences into chunks of at most chunk_size characters.

    A single sentence longer than chunk_size becomes its own chunk; it is
    never split mid-sentence.
    """
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")

    chunks = []
    current_chunk = ""
    for sentence in split_sentences(text):
        if len(current_chunk) + len(sentence) > chunk_size and current_chunk.strip():
            chunks.append(current_chunk.strip())
            current_chunk = sentence
        else:
            current_chunk += sentence

    if current_chunk.strip():
        chunks.append(current_chunk.strip())

    logger.debug(f"Split {len(text)} characters into {len(chunks)} chunks")
    return chunks


# ------------------------------------------------------------------------------
# 3. EMBEDDING
# ------------------------------------------------------------------------------

def string_hash(token: str) -> int:
    """31-multiplier polynomial hash over UTF-16 code units, as a signed 32-bit int."""
    h = 0
    units = token.encode("utf-16-le", "surrogatepass")
    for i in range(0, len(units), 2):
        code = units[i] | (units[i + 1] << 8)
        h = (h * 31 + code) & 0xFFFFFFFF
    if h & 0x80000000:
        h -= 0x100000000
    return h


def simple_embedding(text: str, dimension: int = EMBEDDING_DIMENSION) -> List[float]:
    """
    Hash each lowercase token into one of `dimension` buckets.

    Every token adds 1/token_count to its bucket, so a non-empty text sums
    to 1. This is a lexical placeholder, not a semantic embedding.
    """
    words = text.lower().split()
    embedding = [0.0] * dimension
    for word in words:
        index = abs(string_hash(word)) % dimension
        embedding[index] += 1 / len(words)
    return embedding


class HashEmbeddings(Embeddings):
    """Langchain embeddings adapter over simple_embedding."""

    def __init__(self, dimension: int = EMBEDDING_DIMENSION):
        self.dimension = dimension

    def embed_documents(self, texts: List[str]) -> List[List[float]]:
        return [simple_embedding(text, self.dimension) for text in texts]

    def embed_query(self, text: str) -> List[float]:
        return simple_embedding(text, self.dimension)


@dataclass(frozen=True)
class DocumentChunk:
    text: str
    embedding: Tuple[float, ...]
    section: Optional[str] = None

    def to_document(self) -> Document:
        return Document(page_content=self.text, metadata={"section": self.section})


def build_chunks(
    text: str,
    embeddings: Optional[Embeddings] = None,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> Tuple[DocumentChunk, ...]:
    """Chunk a document and embed every chunk."""
    embeddings = embeddings or HashEmbeddings()
    texts = chunk_text(text, chunk_size)
    if not texts:
        return ()
    vectors = embeddings.embed_documents(texts)
    return tuple(
        DocumentChunk(text=chunk, embedding=tuple(vector))
        for chunk, vector in zip(texts, vectors)
    )


# ------------------------------------------------------------------------------
# 4. SIMILARITY SEARCH
# ------------------------------------------------------------------------------

def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    dot_product = 0.0
    norm_a = 0.0
    norm_b = 0.0
    for x, y in zip(a, b):
        dot_product += x * y
        norm_a += x * x
        norm_b += y * y

    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot_product / (math.sqrt(norm_a) * math.sqrt(norm_b))


def rank_chunks(
    query_vector: Sequence[float],
    chunks: Sequence[DocumentChunk],
    k: int = 3,
) -> List[str]:
    """Return the texts of the k chunks most similar to the query, best first."""
    if k <= 0 or not chunks:
        return []
    scored = [(cosine_similarity(query_vector, chunk.embedding), chunk) for chunk in chunks]
    # sorted() is stable, so equal scores keep document order
    scored = sorted(scored, key=lambda item: item[0], reverse=True)
    for similarity, chunk in scored[:k]:
        logger.debug(f"Retrieved chunk (similarity={similarity:.3f}): {chunk.text[:60]!r}")
    return [chunk.text for _, chunk in scored[:k]]


def retrieve(
    question: str,
    chunks: Sequence[DocumentChunk],
    embeddings: Optional[Embeddings] = None,
    k: int = 3,
) -> List[str]:
    embeddings = embeddings or HashEmbeddings()
    return rank_chunks(embeddings.embed_query(question), chunks, k)
