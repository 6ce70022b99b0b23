import logging
import time
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, FastAPI, File, HTTPException, Request, Response, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError as PydanticValidationError
from pymongo.errors import PyMongoError

import database
from errors import DeletionNotRequested, PreviewError, StagingError, TooLarge
from ingestion import (
    Clock,
    HeroController,
    IngestionController,
    OrderController,
    ProductController,
    Status,
)
from logging_config import setup_logging
from media_store import MediaAsset, MediaStoreClient
from previews import PreviewPool
from repository import Repository, build_repository
from settings import Settings, get_settings
from uploads import PendingUpload, UploadOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter()

# Submission failures by cause -> HTTP status
FAILURE_STATUS = {"validation": 400, "upload": 502, "persistence": 502, "deletion": 502}


# -------
# Helpers
# -------

def _pending_out(pending: PendingUpload) -> dict:
    return {
        "preview_url": pending.preview_url,
        "filename": pending.asset.filename,
        "content_type": pending.asset.content_type,
        "size": pending.asset.size,
        "uploaded": pending.uploaded,
    }


def _status_out(status: Optional[Status]) -> Optional[dict]:
    return status.as_dict() if status else None


def _raise_on_failure(status: Status) -> None:
    if not status.ok:
        raise HTTPException(status_code=FAILURE_STATUS.get(status.cause, 400), detail=status.as_dict())


def _confirm(controller) -> dict:
    try:
        status = controller.confirm_delete()
    except DeletionNotRequested as e:
        raise HTTPException(status_code=409, detail=str(e))
    _raise_on_failure(status)
    return {"status": status.as_dict()}


def _stage(controller: IngestionController, file: UploadFile, max_bytes: int) -> dict:
    # One byte past the limit is enough for the size check to reject it
    data = file.file.read(max_bytes + 1)
    asset = MediaAsset(filename=file.filename or "upload", content_type=file.content_type, data=data)
    try:
        pending = controller.stage_asset(asset)
    except StagingError as e:
        code = "too_large" if isinstance(e, TooLarge) else "unsupported_type"
        raise HTTPException(status_code=400, detail={"message": str(e), "code": code, "filename": e.filename})
    return _pending_out(pending)


def _edit(controller: IngestionController, fields: Optional[Dict[str, Any]]) -> None:
    if not fields:
        return
    try:
        controller.edit(**fields)
    except PydanticValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors(include_url=False))


def _submit(controller: IngestionController, fields: Optional[Dict[str, Any]]) -> dict:
    _edit(controller, fields)
    status = controller.submit()
    _raise_on_failure(status)
    return {"id": status.record_id, "status": status.as_dict()}


# ---------
# Root/Test
# ---------

@router.get("/")
def read_root():
    return {"message": "Storefront Admin API is running"}


@router.get("/test")
def test_database(request: Request):
    settings: Settings = request.app.state.settings
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": "✅ Set" if settings.database_url else "❌ Not Set",
        "database_name": "✅ Set" if settings.database_name else "❌ Not Set",
        "connection_status": "Not Connected",
        "collections": [],
        "media_store": "✅ Configured" if settings.media_store_configured else "⚠️ Missing CLOUDINARY_CLOUD_NAME/CLOUDINARY_UPLOAD_PRESET",
    }

    if database.db is None:
        response["database"] = "⚠️  In-memory store (not persisted)"
        return response

    response["connection_status"] = "Connected"
    try:
        response["collections"] = database.db.list_collection_names()[:10]
        response["database"] = "✅ Connected & Working"
    except PyMongoError as e:
        response["database"] = f"⚠️  Connected but Error: {str(e)[:50]}"
    return response


@router.get("/previews/{token}")
def get_preview(token: str, request: Request):
    try:
        asset = request.app.state.previews.get(token)
    except PreviewError:
        raise HTTPException(status_code=404, detail="Preview not found")
    return Response(content=asset.data, media_type=asset.content_type)


# ---------------
# Product Screen
# ---------------

def _products(request: Request) -> ProductController:
    return request.app.state.products


@router.get("/api/products")
def list_products(request: Request, q: Optional[str] = None, grouped: bool = False, include_other: bool = False):
    controller = _products(request)
    if grouped:
        return {"groups": controller.grouped(q, include_other=include_other)}
    return {"items": controller.filtered(q)}


@router.get("/api/products/draft")
def get_product_draft(request: Request):
    controller = _products(request)
    return {"draft": controller.draft.model_dump(), "images": [_pending_out(p) for p in controller.staged]}


@router.patch("/api/products/draft")
def edit_product_draft(request: Request, fields: Dict[str, Any] = Body(...)):
    controller = _products(request)
    _edit(controller, fields)
    return {"draft": controller.draft.model_dump()}


@router.post("/api/products/draft/sizes/{size}")
def toggle_product_size(size: str, request: Request):
    return {"sizes": _products(request).toggle_size(size)}


@router.get("/api/products/images")
def list_product_images(request: Request):
    return [_pending_out(p) for p in _products(request).staged]


@router.post("/api/products/images", status_code=201)
def stage_product_image(request: Request, file: UploadFile = File(...)):
    return _stage(_products(request), file, request.app.state.settings.max_upload_bytes)


@router.delete("/api/products/images/{token}")
def remove_product_image(token: str, request: Request):
    if not _products(request).remove_asset(token):
        raise HTTPException(status_code=404, detail="Image is not staged")
    return {"removed": token}


@router.post("/api/products", status_code=201)
def create_product(request: Request, fields: Optional[Dict[str, Any]] = Body(None)):
    return _submit(_products(request), fields)


@router.get("/api/products/status")
def product_status(request: Request):
    controller = _products(request)
    return {"state": controller.state.value, "status": _status_out(controller.status.current())}


@router.post("/api/products/delete-all")
def request_delete_all_products(request: Request):
    status = _products(request).request_delete_all()
    return {"pending": status is None, "status": _status_out(status)}


@router.post("/api/products/delete/confirm")
def confirm_product_delete(request: Request):
    return _confirm(_products(request))


@router.post("/api/products/delete/cancel")
def cancel_product_delete(request: Request):
    _products(request).cancel_delete()
    return {"pending": False}


@router.post("/api/products/{product_id}/delete")
def request_product_delete(product_id: str, request: Request):
    _products(request).request_delete(product_id)
    return {"pending": True, "id": product_id}


# ------------
# Hero Screen
# ------------

def _heroes(request: Request) -> HeroController:
    return request.app.state.heroes


@router.get("/api/heroes")
def list_heroes(request: Request, q: Optional[str] = None):
    return {"items": _heroes(request).filtered(q)}


@router.get("/api/heroes/draft")
def get_hero_draft(request: Request):
    controller = _heroes(request)
    return {"draft": controller.draft.model_dump(), "images": [_pending_out(p) for p in controller.staged]}


@router.patch("/api/heroes/draft")
def edit_hero_draft(request: Request, fields: Dict[str, Any] = Body(...)):
    controller = _heroes(request)
    _edit(controller, fields)
    return {"draft": controller.draft.model_dump()}


@router.post("/api/heroes/images", status_code=201)
def stage_hero_image(request: Request, file: UploadFile = File(...)):
    return _stage(_heroes(request), file, request.app.state.settings.max_upload_bytes)


@router.delete("/api/heroes/images/{token}")
def remove_hero_image(token: str, request: Request):
    if not _heroes(request).remove_asset(token):
        raise HTTPException(status_code=404, detail="Image is not staged")
    return {"removed": token}


@router.post("/api/heroes", status_code=201)
def create_hero(request: Request, fields: Optional[Dict[str, Any]] = Body(None)):
    return _submit(_heroes(request), fields)


@router.get("/api/heroes/status")
def hero_status(request: Request):
    controller = _heroes(request)
    return {"state": controller.state.value, "status": _status_out(controller.status.current())}


@router.post("/api/heroes/delete/confirm")
def confirm_hero_delete(request: Request):
    return _confirm(_heroes(request))


@router.post("/api/heroes/delete/cancel")
def cancel_hero_delete(request: Request):
    _heroes(request).cancel_delete()
    return {"pending": False}


@router.post("/api/heroes/{hero_id}/delete")
def request_hero_delete(hero_id: str, request: Request):
    _heroes(request).request_delete(hero_id)
    return {"pending": True, "id": hero_id}


# -------------
# Order Screen
# -------------

def _orders(request: Request) -> OrderController:
    return request.app.state.orders


@router.get("/api/orders")
def list_orders(request: Request):
    controller = _orders(request)
    controller.refresh()
    return {"items": controller.projected()}


@router.get("/api/orders/status")
def order_status(request: Request):
    return {"status": _status_out(_orders(request).status.current())}


@router.post("/api/orders/delete/confirm")
def confirm_order_delete(request: Request):
    return _confirm(_orders(request))


@router.post("/api/orders/delete/cancel")
def cancel_order_delete(request: Request):
    _orders(request).cancel_delete()
    return {"pending": False}


@router.post("/api/orders/{order_id}/delete")
def request_order_delete(order_id: str, request: Request):
    _orders(request).request_delete(order_id)
    return {"pending": True, "id": order_id}


# ---------
# App setup
# ---------

def create_app(
    settings: Optional[Settings] = None,
    repository: Optional[Repository] = None,
    media_store: Optional[MediaStoreClient] = None,
    clock: Clock = time.monotonic,
) -> FastAPI:
    settings = settings or get_settings()
    setup_logging(settings)

    if repository is None:
        repository = build_repository(database.db)
    if media_store is None:
        media_store = MediaStoreClient.from_settings(settings)
    previews = PreviewPool("/previews")

    def orchestrator() -> UploadOrchestrator:
        return UploadOrchestrator(media_store, previews, max_bytes=settings.max_upload_bytes)

    products = ProductController(repository, orchestrator(), settings.status_timeout_seconds, clock)
    heroes = HeroController(repository, orchestrator(), settings.status_timeout_seconds, clock)
    orders = OrderController(repository, settings.status_timeout_seconds, clock)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        for controller in (products, heroes, orders):
            controller.mount()
        logger.info("Storefront admin ready")
        yield
        for controller in (products, heroes, orders):
            controller.unmount()

    app = FastAPI(title="Storefront Admin API", version="1.0.0", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.settings = settings
    app.state.repository = repository
    app.state.previews = previews
    app.state.products = products
    app.state.heroes = heroes
    app.state.orders = orders

    app.include_router(router)
    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=get_settings().port)
