"""
HTTP routes for the eQSL backend API.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile
from fastapi.responses import JSONResponse, Response

from card_pipeline.composer import CompositionError
from eqsl_backend.catalog import Catalog, CardNotFoundError, CardValidationError
from eqsl_backend.dependencies import get_catalog
from eqsl_backend.schemas import (
    CardResponse,
    HealthResponse,
    StoredObjectResponse,
    UploadResponse,
)
from eqsl_backend.storage import IMAGE_CONTENT_TYPE, StorageError
from qsl_shared.types import Card

logger = logging.getLogger(__name__)

router = APIRouter()


def _card_response(card: Card) -> CardResponse:
    return CardResponse.model_validate(card.as_dict())


def _upload_failure(status_code: int, message: str) -> JSONResponse:
    payload = UploadResponse(success=False, error=message)
    return JSONResponse(status_code=status_code, content=payload.model_dump())


def _list_or_fail(catalog: Catalog, callsign: str | None = None) -> list[CardResponse]:
    try:
        cards = catalog.list_cards() if callsign is None else catalog.search(callsign)
    except StorageError as e:
        logger.exception("Listing cards failed")
        raise HTTPException(status_code=502, detail=str(e))
    return [_card_response(card) for card in cards]


def _attachment(catalog: Catalog, public_id: str) -> Response:
    try:
        download = catalog.download(public_id)
    except CardNotFoundError:
        raise HTTPException(status_code=404, detail="QSL not found")
    except StorageError as e:
        logger.exception("Fetching card %s failed", public_id)
        raise HTTPException(status_code=502, detail=str(e))
    return Response(
        content=download.content,
        media_type=IMAGE_CONTENT_TYPE,
        headers={
            "Content-Disposition": f'attachment; filename="{download.filename}"'
        },
    )


@router.get("/health", response_model=HealthResponse)
def health():
    """Liveness probe; does not touch storage."""
    return HealthResponse(ok=True)


@router.get("/qsl", response_model=list[CardResponse])
def list_qsl(catalog: Catalog = Depends(get_catalog)):
    return _list_or_fail(catalog)


@router.get("/debug/qsl", response_model=list[StoredObjectResponse])
def debug_list_qsl(catalog: Catalog = Depends(get_catalog)):
    """Raw storage listing, undecoded, for checking stored metadata."""
    try:
        objects = catalog.storage.list_objects(catalog.folder, catalog.max_results)
    except StorageError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return [StoredObjectResponse(**obj.as_dict()) for obj in objects]


@router.post("/upload", response_model=UploadResponse)
def upload_qsl(
    qsl: UploadFile | None = File(None),
    indicatif: str = Form(""),
    date: str = Form(""),
    time: str = Form(""),
    band: str = Form(""),
    mode: str = Form(""),
    report: str = Form(""),
    note: str = Form(""),
    catalog: Catalog = Depends(get_catalog),
):
    """
    Compose a QSL card from the uploaded photo and store it.
    """
    image_bytes = qsl.file.read() if qsl is not None else b""
    fields = {
        "indicatif": indicatif,
        "date": date,
        "time": time,
        "band": band,
        "mode": mode,
        "report": report,
        "note": note,
    }
    try:
        card = catalog.create_card(image_bytes, fields)
    except CardValidationError as e:
        return _upload_failure(400, str(e))
    except CompositionError as e:
        logger.exception("Composing card for %s failed", indicatif)
        return _upload_failure(500, str(e))
    except StorageError as e:
        logger.exception("Storing card for %s failed", indicatif)
        return _upload_failure(500, str(e))
    return UploadResponse(success=True, qsl=_card_response(card))


@router.get("/download/{call}", response_model=list[CardResponse])
def download_by_call(call: str, catalog: Catalog = Depends(get_catalog)):
    return _list_or_fail(catalog, call)


@router.get("/download", response_model=list[CardResponse])
def download_by_query(
    call: str = Query("", description="Callsign to look up"),
    catalog: Catalog = Depends(get_catalog),
):
    return _list_or_fail(catalog, call)


@router.get("/file")
def file_by_query(
    pid: str = Query(..., min_length=1, description="Card public id"),
    catalog: Catalog = Depends(get_catalog),
):
    return _attachment(catalog, pid)


@router.get("/file/{public_id:path}")
def file_by_path(public_id: str, catalog: Catalog = Depends(get_catalog)):
    return _attachment(catalog, public_id)
