"""
forms.py — Request payload helpers shared by the routers

Write endpoints accept either a JSON body or a multipart form carrying one
optional file (proof image, receiver QR). Both arrive here as a flat dict of
fields plus an optional Upload, so services never see the transport.
"""

from typing import Any, Dict, List, Optional, Tuple

from fastapi import Request
from starlette.datastructures import UploadFile

from campuspay.core.errors import PayloadTooLarge, ValidationError
from campuspay.stores.objects import Upload

FORM_CONTENT_TYPES = ("multipart/form-data", "application/x-www-form-urlencoded")


async def read_payload(
    request: Request,
    file_field: Optional[str] = None,
    max_bytes: Optional[int] = None,
) -> Tuple[Dict[str, Any], Optional[Upload]]:
    content_type = (request.headers.get("content-type") or "").lower()

    if content_type.startswith(FORM_CONTENT_TYPES):
        form = await request.form()
        fields: Dict[str, Any] = {}
        upload: Optional[Upload] = None
        for key, value in form.multi_items():
            if isinstance(value, UploadFile):
                if key != file_field:
                    continue
                data = await value.read()
                if max_bytes is not None and len(data) > max_bytes:
                    raise PayloadTooLarge()
                if data:
                    upload = Upload(data=data, filename=value.filename or "", content_type=value.content_type)
            else:
                fields[key] = value
        return fields, upload

    raw = await request.body()
    if not raw.strip():
        return {}, None
    try:
        body = await request.json()
    except ValueError:
        raise ValidationError("request body must be JSON or a form")
    if not isinstance(body, dict):
        raise ValidationError("request body must be a JSON object")
    return body, None


def query_list(request: Request, *names: str) -> Optional[List[str]]:
    """
    Values of every query key among `names`, comma-split and combined.

    None when no key is present at all, so callers can tell "not supplied"
    from "supplied but empty".
    """
    present = False
    values: List[str] = []
    for name in names:
        if name not in request.query_params:
            continue
        present = True
        for raw in request.query_params.getlist(name):
            values.extend(part.strip() for part in str(raw).split(",") if part.strip())
    return values if present else None


def query_value(request: Request, *names: str) -> Optional[str]:
    for name in names:
        value = request.query_params.get(name)
        if value is not None and value.strip():
            return value.strip()
    return None
