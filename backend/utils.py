import os
import uuid
import logging
from pathlib import Path
from typing import Optional, List
from urllib.parse import unquote, urlparse
from fastapi import HTTPException, Request, status, UploadFile
from sqlalchemy.orm import Session
from models import TransactionLog, User
import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

logger = logging.getLogger(__name__)

AWS_REGION = os.environ.get("AWS_REGION")
S3_BUCKET_NAME = os.environ.get("S3_BUCKET_NAME")
S3_ACCESS_KEY = os.environ.get("S3_ACCESS_KEY") or os.environ.get("AWS_ACCESS_KEY_ID")
S3_SECRET_KEY = os.environ.get("S3_SECRET_KEY") or os.environ.get("AWS_SECRET_ACCESS_KEY")

IMAGE_CONTENT_TYPES = ["image/png", "image/jpeg", "image/webp", "image/svg+xml"]

S3_CLIENT = None
if AWS_REGION and S3_BUCKET_NAME and S3_ACCESS_KEY and S3_SECRET_KEY:
    s3_config = Config(signature_version="s3v4", s3={"addressing_style": "virtual"})
    S3_CLIENT = boto3.client(
        "s3",
        region_name=AWS_REGION,
        aws_access_key_id=S3_ACCESS_KEY,
        aws_secret_access_key=S3_SECRET_KEY,
        endpoint_url=f"https://s3.{AWS_REGION}.amazonaws.com",
        config=s3_config,
    )


def log_transaction(
    db: Session,
    user: Optional[User],
    action: str,
    details: Optional[dict] = None,
    request: Optional[Request] = None,
    commit: bool = True,
):
    db.add(TransactionLog(
        user_id=user.id if user else None,
        action=action,
        method=request.method if request else None,
        path=request.url.path if request else None,
        details=details
    ))
    if commit:
        db.commit()


def _build_s3_url(key: str) -> str:
    if not S3_BUCKET_NAME or not AWS_REGION:
        raise RuntimeError("S3 configuration missing")
    return f"https://{S3_BUCKET_NAME}.s3.{AWS_REGION}.amazonaws.com/{key}"


def _extract_s3_key_from_url(url: Optional[str]) -> Optional[str]:
    if not url:
        return None
    try:
        parsed = urlparse(url)
        host = (parsed.netloc or "").lower()
        path = (parsed.path or "").lstrip("/")
        if not host or not path or not S3_BUCKET_NAME:
            return None

        bucket = S3_BUCKET_NAME.lower()
        if host == f"{bucket}.s3.amazonaws.com" or host.startswith(f"{bucket}.s3."):
            return unquote(path)
        return None
    except ValueError:
        return None


def _upload_to_s3(file: UploadFile, key_prefix: str, allowed_types: Optional[List[str]] = None) -> str:
    if not S3_CLIENT or not S3_BUCKET_NAME or not AWS_REGION:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="S3 not configured")
    if not file.content_type:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing file content type")
    if allowed_types and file.content_type not in allowed_types:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid file type")

    extension = Path(file.filename or "").suffix.lower()
    unique_name = f"{uuid.uuid4().hex}{extension}"
    key = f"{key_prefix.rstrip('/')}/{unique_name}"

    try:
        S3_CLIENT.upload_fileobj(
            file.file,
            S3_BUCKET_NAME,
            key,
            ExtraArgs={"ContentType": file.content_type}
        )
    except (BotoCoreError, ClientError) as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Upload failed") from exc

    return _build_s3_url(key)


def _delete_s3_object(url: Optional[str]) -> None:
    key = _extract_s3_key_from_url(url)
    if not key or not S3_CLIENT:
        return
    try:
        S3_CLIENT.delete_object(Bucket=S3_BUCKET_NAME, Key=key)
    except (BotoCoreError, ClientError) as exc:
        logger.warning("Could not delete S3 object %s: %s", key, exc)


def paginate(query, page: int, limit: int):
    total = query.order_by(None).count()
    pages = max(1, (total + limit - 1) // limit)
    rows = query.offset((page - 1) * limit).limit(limit).all()
    return rows, {"page": page, "limit": limit, "total": total, "pages": pages}
