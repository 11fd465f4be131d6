"""CSV import endpoints: upload → preview → confirm → apply."""
import logging
import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, File, HTTPException, Request, Response, UploadFile, status

from app.core.config import settings
from app.core.deps import get_import_sessions, get_taxonomy_repository
from app.core.limiter import limiter
from app.schemas.imports import ImportApplyRequest, ImportApplyResult, ImportPreview
from app.services.csv_codec import CSVParseError
from app.services.import_session import (
    DeletionNotConfirmedError,
    ImportBlockedError,
    ImportInProgressError,
    ImportSessionStore,
    apply_import,
    prepare_import,
)
from app.services.taxonomy_repo import BulkImportError, TaxonomyRepository

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_or_404(sessions: ImportSessionStore, session_id: uuid.UUID):
    session = sessions.get(session_id)
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Import session not found or expired. Upload the file again.",
        )
    return session


# ─── POST /import/preview ───

@router.post("/preview", response_model=ImportPreview, summary="Parse, validate and diff an ATOL CSV export")
@limiter.limit(settings.IMPORT_RATE_LIMIT)
async def preview_import(
    request: Request,
    repository: Annotated[TaxonomyRepository, Depends(get_taxonomy_repository)],
    sessions: Annotated[ImportSessionStore, Depends(get_import_sessions)],
    file: UploadFile = File(...),
):
    if not (file.filename or "").lower().endswith(".csv"):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Please select a CSV file",
        )

    content = await file.read()
    if len(content) > settings.IMPORT_MAX_BYTES:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"CSV file exceeds {settings.IMPORT_MAX_BYTES} bytes",
        )

    try:
        text = content.decode("utf-8-sig")
    except UnicodeDecodeError:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="CSV file must be UTF-8 encoded",
        )

    try:
        session = await prepare_import(text, repository, filename=file.filename)
    except CSVParseError as exc:
        logger.info("CSV import rejected (%s): %s", file.filename, exc)
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))

    sessions.add(session)
    return session.to_preview()


# ─── GET /import/{session_id} ───

@router.get("/{session_id}", response_model=ImportPreview, summary="Re-read a pending import preview")
async def get_import_preview(
    session_id: uuid.UUID,
    sessions: Annotated[ImportSessionStore, Depends(get_import_sessions)],
):
    return _get_or_404(sessions, session_id).to_preview()


# ─── POST /import/{session_id}/apply ───

@router.post("/{session_id}/apply", response_model=ImportApplyResult, summary="Apply a validated import")
@limiter.limit(settings.IMPORT_RATE_LIMIT)
async def apply_pending_import(
    request: Request,
    session_id: uuid.UUID,
    body: ImportApplyRequest,
    repository: Annotated[TaxonomyRepository, Depends(get_taxonomy_repository)],
    sessions: Annotated[ImportSessionStore, Depends(get_import_sessions)],
):
    session = _get_or_404(sessions, session_id)

    try:
        result = await apply_import(session, repository, confirm_deletion=body.confirm_deletion)
    except ImportBlockedError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))
    except (DeletionNotConfirmedError, ImportInProgressError) as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    except BulkImportError as exc:
        # Session stays open so the user can retry without re-uploading.
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc))

    sessions.discard(session_id)
    return result


# ─── DELETE /import/{session_id} ───

@router.delete("/{session_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Cancel a pending import")
async def cancel_import(
    session_id: uuid.UUID,
    sessions: Annotated[ImportSessionStore, Depends(get_import_sessions)],
):
    try:
        found = sessions.cancel(session_id)
    except ImportInProgressError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    if not found:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Import session not found.")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
