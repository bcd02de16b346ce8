"""Document upload, corpus statistics, clearing and diagnostics."""

from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status

from rag_service.dependencies import get_rag_service
from rag_service.models.collection import CollectionStats
from rag_service.models.qa import ClearResult, UploadResult
from rag_service.services.parser_service import detect_file_type
from rag_service.services.rag_service import RagService
from rag_service.utils.logging import get_logger

logger = get_logger("documents")

router = APIRouter(tags=["documents"])


@router.post("/upload", response_model=UploadResult, status_code=status.HTTP_200_OK)
async def upload_document(
    file: Optional[UploadFile] = File(None),
    rag: RagService = Depends(get_rag_service),
):
    """
    Upload a PDF or TXT file and ingest it into the corpus.

    Processing failures are reported with `success: false`; only a missing
    file or an unsupported type is rejected with 400.
    """
    if file is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No file provided")

    if detect_file_type(file.filename, file.content_type) is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Only PDF and TXT files are supported",
        )

    logger.info(f"Processing file: {file.filename} ({file.content_type})")
    content = await file.read()
    return await rag.upload(content, file.filename, file.content_type)


@router.get("/stats", response_model=CollectionStats, status_code=status.HTTP_200_OK)
async def get_stats(rag: RagService = Depends(get_rag_service)):
    """Collection statistics; never fails."""
    return await rag.stats()


@router.post("/clear", response_model=ClearResult, status_code=status.HTTP_200_OK)
async def clear_documents(rag: RagService = Depends(get_rag_service)):
    """Delete the collection and reset the pipeline."""
    await rag.clear()
    return ClearResult(success=True, message="Documents cleared successfully")


@router.get("/diagnose", status_code=status.HTTP_200_OK)
async def diagnose(rag: RagService = Depends(get_rag_service)):
    """Compare the embedding width with the collection width."""
    report = await rag.diagnose()
    return {
        "success": True,
        **report.model_dump(by_alias=True),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.post("/diagnose", status_code=status.HTTP_200_OK)
async def force_delete(rag: RagService = Depends(get_rag_service)):
    """Force delete the collection."""
    await rag.force_delete()
    return {"success": True, "message": "Collection force deleted"}
