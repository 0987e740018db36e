"""
aceops/api/files.py

Purpose: File library endpoints (any authenticated user, role-gated per file)
"""

from typing import Literal, Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from fastapi.responses import FileResponse, HTMLResponse

from aceops.core.security import get_current_user
from aceops.schemas.files import DocumentCreate, DocumentUpdate
from aceops.services import file_service
from aceops.services.audit import to_json

router = APIRouter(prefix="/files")

NO_DOWNLOAD_HEADERS = {
    "Content-Disposition": "inline",
    "X-Content-Type-Options": "nosniff",
    "Cache-Control": "no-store, no-cache, must-revalidate, private",
}


@router.post("/upload", status_code=201)
async def upload(
    file: Optional[UploadFile] = File(None),
    accessibleRoles: str = Form("[]"),
    description: Optional[str] = Form(None),
    fileName: Optional[str] = Form(None),
    user: dict = Depends(get_current_user),
):
    """
    Stores a file on disk. ``accessibleRoles`` is a JSON array string.
    """
    return to_json(await file_service.upload_file(user, file, accessibleRoles, description, fileName))


@router.post("/documents", status_code=201)
async def create_document(body: DocumentCreate, user: dict = Depends(get_current_user)):
    return to_json(await file_service.create_document(user, body.model_dump()))


@router.put("/documents/{file_id}")
async def update_document(file_id: str, body: DocumentUpdate, user: dict = Depends(get_current_user)):
    return to_json(await file_service.update_document(user, file_id, body.model_dump(exclude_unset=True)))


@router.get("")
async def list_files(
    search: Optional[str] = None,
    sortBy: str = "uploadedOn",
    sortOrder: Literal["asc", "desc"] = "desc",
    user: dict = Depends(get_current_user),
):
    return to_json(await file_service.list_files(user, search, sortBy, sortOrder))


@router.get("/stats")
async def stats(user: dict = Depends(get_current_user)):
    return await file_service.file_stats()


@router.get("/view/{file_id}")
async def view(file_id: str, user: dict = Depends(get_current_user)):
    doc = await file_service.get_viewable(user, file_id)
    if doc.get("isDocument"):
        return HTMLResponse(doc.get("documentContent") or "", headers=NO_DOWNLOAD_HEADERS)
    return FileResponse(doc["filePath"], media_type=doc.get("fileType"), headers=NO_DOWNLOAD_HEADERS)


@router.get("/url/{file_id}")
async def view_url(file_id: str, user: dict = Depends(get_current_user)):
    return to_json(await file_service.file_url(user, file_id))


@router.delete("/{file_id}")
async def delete(file_id: str, user: dict = Depends(get_current_user)):
    return await file_service.delete_file(user, file_id)
