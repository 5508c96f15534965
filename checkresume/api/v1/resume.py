from fastapi import APIRouter, File, Form, Header, HTTPException, Request, UploadFile, status

from checkresume.analysis.schema import AnalysisType
from checkresume.core.config import settings
from checkresume.core.rate_limit import rate_limit
from checkresume.extraction.models import RawDocument
from checkresume.schemas.resume import AnalyzeTextRequest, error_responses

router = APIRouter()

_READ_CHUNK_BYTES = 1024 * 64


async def _read_upload(file: UploadFile) -> bytes:
    chunks: list[bytes] = []
    total = 0
    while True:
        chunk = await file.read(_READ_CHUNK_BYTES)
        if not chunk:
            break
        total += len(chunk)
        if total > settings.max_upload_bytes:
            raise HTTPException(
                status_code=413,
                detail=f"File too large. Maximum allowed size is {settings.max_upload_bytes // (1024 * 1024)} MB.",
            )
        chunks.append(chunk)
    return b"".join(chunks)


@router.post("/resume/analyze", responses=error_responses(415, 422, 502))
@rate_limit()
async def analyze_resume(
    request: Request,
    file: UploadFile = File(...),
    job_role: str = Form(default="general"),
    analysis_type: AnalysisType = Form(default=AnalysisType.STANDARD),
    recommend: bool = Form(default=True),
    x_user_id: str | None = Header(default=None, alias="X-User-Id"),
):
    payload = await _read_upload(file)
    if not payload:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Uploaded file is empty.")

    raw = RawDocument(
        content=payload,
        mime_type=file.content_type or "application/octet-stream",
        filename=file.filename or "resume",
    )
    report = await request.app.state.pipeline.run(
        x_user_id,
        raw,
        job_role,
        analysis_type=analysis_type,
        recommend=recommend,
    )
    return report.to_response()


@router.post("/resume/analyze-text", responses=error_responses(422, 502))
@rate_limit()
async def analyze_resume_text(
    request: Request,
    payload: AnalyzeTextRequest,
    x_user_id: str | None = Header(default=None, alias="X-User-Id"),
):
    report = await request.app.state.pipeline.run_text(
        x_user_id,
        payload.resume_text,
        payload.job_role,
        analysis_type=payload.analysis_type,
        recommend=payload.recommend,
    )
    return report.to_response()
