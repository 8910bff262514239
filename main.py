# main.py
import logging
import os
from dataclasses import dataclass
from typing import Any, List, Optional

import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI, File, HTTPException, UploadFile
from pydantic import BaseModel, ConfigDict, Field
from fastapi.concurrency import run_in_threadpool

from chat_memory_strategy import AnalysisRecord, AnalysisStore, ask_question, get_history
from core_matcher import analyze_documents
from document_processor import DEFAULT_CHUNK_SIZE, HashEmbeddings
from exceptions import ExtractionFailed, InvalidQuestion, NotFound, UnsupportedFormat


load_dotenv()

logger = logging.getLogger(__name__)


@dataclass
class Settings:
    chunk_size: int = DEFAULT_CHUNK_SIZE
    retrieval_k: int = 3
    max_upload_bytes: int = 5 * 1024 * 1024
    ping_message: str = "ping"
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            chunk_size=int(os.getenv("CHUNK_SIZE", DEFAULT_CHUNK_SIZE)),
            retrieval_k=int(os.getenv("RETRIEVAL_K", "3")),
            max_upload_bytes=int(os.getenv("MAX_UPLOAD_BYTES", 5 * 1024 * 1024)),
            ping_message=os.getenv("PING_MESSAGE", "ping"),
            host=os.getenv("HOST", "0.0.0.0"),
            port=int(os.getenv("PORT", "8000")),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )


# Define request/response models
class AnalysisResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    match_score: int = Field(alias="matchScore")
    strengths: List[str]
    gaps: List[str]
    assessment: str

    @classmethod
    def from_record(cls, record: AnalysisRecord) -> "AnalysisResponse":
        summary = record.summary()
        return cls(
            id=summary.id,
            match_score=summary.match_score,
            strengths=list(summary.strengths),
            gaps=list(summary.gaps),
            assessment=summary.assessment,
        )


class ChatRequest(BaseModel):
    # Any type: a non-string question is rejected by the core as InvalidQuestion
    question: Any = None


class ChatResponse(BaseModel):
    answer: str
    question: str


class ChatMessageModel(BaseModel):
    role: str
    content: str


class HistoryResponse(BaseModel):
    id: str
    history: List[ChatMessageModel]


class PingResponse(BaseModel):
    message: str


def create_app(store: Optional[AnalysisStore] = None, settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or Settings.from_env()
    store = store if store is not None else AnalysisStore()
    embeddings = HashEmbeddings()

    app = FastAPI(title="Resume Screening API", description="Resume/job match scoring and resume Q&A")
    app.state.store = store
    app.state.settings = settings

    async def _read_upload(upload: Optional[UploadFile]) -> bytes:
        try:
            content = await upload.read(settings.max_upload_bytes + 1)
        except Exception:
            raise HTTPException(status_code=400, detail="Could not read the uploaded file.")
        if len(content) > settings.max_upload_bytes:
            raise HTTPException(
                status_code=413,
                detail=f"{upload.filename or 'Upload'} exceeds {settings.max_upload_bytes} bytes.",
            )
        return content

    @app.get("/api/ping", response_model=PingResponse)
    async def ping():
        return PingResponse(message=settings.ping_message)

    @app.post("/api/analyze", response_model=AnalysisResponse)
    async def analyze(
        resume: Optional[UploadFile] = File(None),
        job_description: Optional[UploadFile] = File(None, alias="jobDescription"),
    ):
        if resume is None or job_description is None:
            raise HTTPException(status_code=400, detail="Missing resume or job description")

        resume_content = await _read_upload(resume)
        job_description_content = await _read_upload(job_description)

        try:
            record = await run_in_threadpool(
                analyze_documents,
                store,
                resume_content,
                resume.content_type,
                job_description_content,
                job_description.content_type,
                embeddings=embeddings,
                chunk_size=settings.chunk_size,
            )
        except UnsupportedFormat as e:
            logger.warning(f"Rejected upload: {e}")
            raise HTTPException(status_code=400, detail=str(e))
        except ExtractionFailed as e:
            raise HTTPException(status_code=422, detail=str(e))

        return AnalysisResponse.from_record(record)

    @app.get("/api/analysis/{analysis_id}", response_model=AnalysisResponse)
    async def get_analysis(analysis_id: str):
        try:
            record = store.get(analysis_id)
        except NotFound:
            raise HTTPException(status_code=404, detail="Analysis not found")
        return AnalysisResponse.from_record(record)

    @app.post("/api/chat/{analysis_id}", response_model=ChatResponse)
    def chat(analysis_id: str, request: ChatRequest):
        try:
            result = ask_question(
                store,
                analysis_id,
                request.question,
                embeddings=embeddings,
                k=settings.retrieval_k,
            )
        except InvalidQuestion as e:
            raise HTTPException(status_code=400, detail=str(e))
        except NotFound:
            raise HTTPException(status_code=404, detail="Analysis not found")
        return ChatResponse(**result)

    @app.get("/api/chat/{analysis_id}/history", response_model=HistoryResponse)
    async def chat_history(analysis_id: str):
        try:
            history = get_history(store, analysis_id)
        except NotFound:
            raise HTTPException(status_code=404, detail="Analysis not found")
        return HistoryResponse(id=analysis_id, history=history)

    return app


app = create_app()


def run():
    settings = Settings.from_env()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
