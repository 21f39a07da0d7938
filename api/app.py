"""
Asset Registry: FastAPI backend.

JSON endpoints for Purchase Orders, Property Acknowledgement Receipts and
the inventory register.  Every response is a JSON envelope
``{"success": bool, "message"|"data": ...}``; the only exception is PO
details, which returns the raw record on success.

Endpoints
---------
  POST   /api/purchase-orders              → save PO
  PUT    /api/purchase-orders              → update PO (id / po_id in body)
  GET    /api/purchase-orders              → list POs (supports ?search=)
  GET    /api/purchase-orders/details      → raw PO record (?po_id= or ?id=)
  DELETE /api/purchase-orders/{po_id}      → delete PO and its items
  POST   /api/pars                         → save PAR
  PUT    /api/pars                         → update PAR (par_id in body)
  GET    /api/pars                         → PAR register
  GET    /api/pars/{par_id}                → one PAR with items
  DELETE /api/pars/{par_id}                → delete PAR and its items
  GET    /api/inventory                    → list items (supports ?search=)
  POST   /api/inventory                    → add item
  PUT    /api/inventory                    → update item
  GET    /api/inventory/{item_id}          → one item
  DELETE /api/inventory/{item_id}          → delete item
  GET    /api/inventory/{item_id}/history  → location history
  GET    /api/predictions                  → forecast hook (no-op by default)
  GET    /api/health                       → liveness probe

Write endpoints read the raw body so that malformed JSON is reported in
the envelope instead of as a framework 422.

Run with:
  uvicorn api.app:create_app --factory
"""
import logging
import sqlite3
from typing import Optional

from fastapi import APIRouter, FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from config import Config
from registry.database import Database
from registry.documents import PROPERTY_RECEIPT, PURCHASE_ORDER
from registry.errors import PersistenceError, RegistryError
from registry.formatter import FormattedResponse, format_data, format_failure, format_message
from registry.inventory import InventoryRepository
from registry.predictions import NullPredictionProvider, PredictionProvider
from registry.service import DocumentService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


def _respond(response: FormattedResponse) -> JSONResponse:
    return JSONResponse(response.body, status_code=response.status_code)


def _service(request: Request) -> DocumentService:
    return request.app.state.service


def _inventory(request: Request) -> InventoryRepository:
    return request.app.state.inventory


# ── Health ───────────────────────────────────────────────────────────────────

@router.get("/health")
def health(request: Request):
    db: Database = request.app.state.db
    return {
        "status": "ok",
        "db_path": str(db.db_path),
        "db_exists": db.db_path.exists(),
        "schema_version": db.schema_version(),
    }


# ── Purchase orders ──────────────────────────────────────────────────────────

@router.post("/purchase-orders")
async def save_purchase_order(request: Request):
    body = await request.body()
    return _respond(await run_in_threadpool(_service(request).save, PURCHASE_ORDER, body))


@router.put("/purchase-orders")
async def update_purchase_order(request: Request):
    body = await request.body()
    return _respond(await run_in_threadpool(_service(request).update, PURCHASE_ORDER, body))


@router.get("/purchase-orders")
def list_purchase_orders(request: Request, search: Optional[str] = Query(default=None)):
    return _respond(_service(request).list_pos(search=search))


@router.get("/purchase-orders/details")
def purchase_order_details(
    request: Request,
    po_id: Optional[str] = Query(default=None),
    id: Optional[str] = Query(default=None),
):
    return _respond(_service(request).get_po_details(po_id or id))


@router.delete("/purchase-orders/{po_id}")
def delete_purchase_order(request: Request, po_id: str):
    return _respond(_service(request).delete(PURCHASE_ORDER, po_id))


# ── Property acknowledgement receipts ────────────────────────────────────────

@router.post("/pars")
async def save_par(request: Request):
    body = await request.body()
    return _respond(await run_in_threadpool(_service(request).save, PROPERTY_RECEIPT, body))


@router.put("/pars")
async def update_par(request: Request):
    body = await request.body()
    return _respond(await run_in_threadpool(_service(request).update, PROPERTY_RECEIPT, body))


@router.get("/pars")
def list_pars(request: Request):
    return _respond(_service(request).list_pars())


@router.get("/pars/{par_id}")
def get_par(request: Request, par_id: str):
    return _respond(_service(request).get_par(par_id))


@router.delete("/pars/{par_id}")
def delete_par(request: Request, par_id: str):
    return _respond(_service(request).delete(PROPERTY_RECEIPT, par_id))


# ── Inventory ────────────────────────────────────────────────────────────────
# InventoryRepository raises RegistryError; the app-level handler formats it.

@router.get("/inventory")
def list_inventory(request: Request, search: Optional[str] = Query(default=None)):
    return _respond(format_data(_inventory(request).list_items(search=search or None)))


@router.post("/inventory")
async def add_inventory_item(request: Request):
    body = await request.body()
    await run_in_threadpool(_inventory(request).add, body)
    return _respond(format_message("Item added successfully"))


@router.put("/inventory")
async def update_inventory_item(request: Request):
    body = await request.body()
    await run_in_threadpool(_inventory(request).update, body)
    return _respond(format_message("Item updated successfully"))


@router.get("/inventory/{item_id}")
def get_inventory_item(request: Request, item_id: str):
    return _respond(format_data(_inventory(request).get(item_id)))


@router.delete("/inventory/{item_id}")
def delete_inventory_item(request: Request, item_id: str):
    _inventory(request).delete(item_id)
    return _respond(format_message("Item deleted successfully"))


@router.get("/inventory/{item_id}/history")
def inventory_history(request: Request, item_id: str):
    return _respond(format_data(_inventory(request).history(item_id)))


# ── Predictions ──────────────────────────────────────────────────────────────

@router.get("/predictions")
def predictions(request: Request):
    provider: PredictionProvider = request.app.state.predictions
    return {"success": True, **provider.forecast()}


# ---------------------------------------------------------------------------
# App factory
# ---------------------------------------------------------------------------

def create_app(
    config: Optional[Config] = None,
    predictions: Optional[PredictionProvider] = None,
) -> FastAPI:
    """
    Build the API for *config*.

    Pending schema migrations are applied here, before the first request,
    so no handler ever alters the schema.
    """
    config = config or Config()
    db = Database(config.db_path, timeout=config.db_timeout)
    applied = db.migrate()
    if applied:
        logger.info("Applied migrations %s to %s", applied, config.db_path)

    app = FastAPI(title="Asset Registry", docs_url=None, redoc_url=None)
    app.state.config = config
    app.state.db = db
    app.state.service = DocumentService(db, expose_errors=config.expose_errors)
    app.state.inventory = InventoryRepository(db)
    app.state.predictions = predictions or NullPredictionProvider()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RegistryError)
    async def registry_error_handler(request: Request, exc: RegistryError):
        if exc.http_status >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return _respond(format_failure(exc, expose_errors=config.expose_errors))

    @app.exception_handler(sqlite3.Error)
    async def storage_error_handler(request: Request, exc: sqlite3.Error):
        logger.error("%s %s storage error: %s", request.method, request.url.path, exc)
        return _respond(format_failure(PersistenceError(str(exc)), expose_errors=config.expose_errors))

    app.include_router(router)
    return app
