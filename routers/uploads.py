import logging
import os
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile

import config
from auth import find_owned, get_current_user
from database import get_db, now, oid
from errors import ValidationError
from querying import Pagination, exact_filter, pagination_params
from schemas import FileUpload
from shaping import ok
from storage import remove_file, server_filename, store_stream, upload_dir

logger = logging.getLogger("uploads")

router = APIRouter()

MAX_FILES = 5


def check_type(upload: UploadFile):
    if upload.content_type not in config.ALLOWED_FILE_TYPES:
        raise ValidationError("Invalid file type. Only images, PDFs, and Word documents are allowed.")


def file_view(doc: dict) -> dict:
    return {
        "id": str(doc["_id"]),
        "fileName": doc.get("fileName"),
        "originalName": doc.get("originalName"),
        "fileType": doc.get("fileType"),
        "fileSize": doc.get("fileSize"),
        "fileUrl": doc.get("fileUrl"),
        "uploadPurpose": doc.get("uploadPurpose"),
        "createdAt": doc.get("createdAt"),
    }


def save_all(db, user: dict, uploads: List[UploadFile], field: str, purpose: Optional[str],
             related_id: Optional[str]) -> List[dict]:
    """Validate, write to disk, then record metadata. Any failure removes the written files."""
    for upload in uploads:
        check_type(upload)
    related = oid(related_id, "related ID") if related_id else None

    directory = upload_dir()
    written = []
    try:
        docs = []
        stamp = now()
        for upload in uploads:
            name = server_filename(field, upload.filename)
            path, size = store_stream(upload.file, directory, name, config.MAX_FILE_SIZE)
            written.append(path)
            doc = FileUpload(
                user_id=user["_id"],
                file_name=name,
                original_name=upload.filename or name,
                file_type=upload.content_type,
                file_size=size,
                file_url=f"/uploads/{name}",
                upload_purpose=purpose or "general",
                related_id=related,
            ).model_dump(by_alias=True)
            doc.update({"createdAt": stamp, "updatedAt": stamp})
            docs.append(doc)
        db["fileUploads"].insert_many(docs)
    except Exception:
        for path in written:
            remove_file(path)
        raise
    return docs


@router.post("/single")
def upload_single(
    file: UploadFile = File(...),
    purpose: Optional[str] = Form(None),
    related_id: Optional[str] = Form(None, alias="relatedId"),
    user: dict = Depends(get_current_user),
    db=Depends(get_db),
):
    doc = save_all(db, user, [file], "file", purpose, related_id)[0]
    logger.info("User %s uploaded file: %s", user["_id"], doc["originalName"])
    return ok(file_view(doc), message="File uploaded successfully")


@router.post("/multiple")
def upload_multiple(
    files: List[UploadFile] = File(...),
    purpose: Optional[str] = Form(None),
    related_id: Optional[str] = Form(None, alias="relatedId"),
    user: dict = Depends(get_current_user),
    db=Depends(get_db),
):
    if not files:
        raise ValidationError("No files uploaded")
    if len(files) > MAX_FILES:
        raise ValidationError(f"Too many files. Maximum {MAX_FILES} files allowed.")
    docs = save_all(db, user, files, "files", purpose, related_id)
    logger.info("User %s uploaded %d files", user["_id"], len(docs))
    return ok([file_view(d) for d in docs], message=f"{len(docs)} files uploaded successfully")


@router.get("/files")
def list_files(
    purpose: Optional[str] = Query(None),
    page: Pagination = Depends(pagination_params),
    user: dict = Depends(get_current_user),
    db=Depends(get_db),
):
    match = {"userId": user["_id"]}
    wanted = exact_filter(purpose)
    if wanted:
        match["uploadPurpose"] = wanted
    total = db["fileUploads"].count_documents(match)
    files = db["fileUploads"].find(match).sort("createdAt", -1).skip(page.skip).limit(page.limit)
    return ok({"files": [file_view(f) for f in files]}, pagination=page.meta(total))


@router.delete("/files/{file_id}")
def delete_file(file_id: str, user: dict = Depends(get_current_user), db=Depends(get_db)):
    fid = oid(file_id, "file ID")
    doc = find_owned(db["fileUploads"], fid, user["_id"], "File")
    db["fileUploads"].delete_one({"_id": fid, "userId": user["_id"]})
    remove_file(os.path.join(config.UPLOAD_DIR, os.path.basename(doc["fileName"])))
    logger.info("User %s deleted file: %s", user["_id"], doc.get("originalName"))
    return ok(message="File deleted successfully")
