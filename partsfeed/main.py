# --- Imports ---
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from fastapi import FastAPI, File, UploadFile
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from partsfeed.config import settings
import logging
from partsfeed.services import db
from partsfeed.services.ingest import ingest_aces, ingest_fitment_records, ingest_pies
from partsfeed.services.normalizer import FeedParseError
from partsfeed.services.shopify import ShopifyClient, ShopifyError
from partsfeed.services.sync_service import delete_all_remote_products, sync_unsynced
from partsfeed.utils import MAX_OFFSET, paginate, to_int

app = FastAPI(title="Parts Feed Backend")

# Module logger
logger = logging.getLogger(__name__)
if settings.DEBUG:
    logger.setLevel(logging.DEBUG)
else:
    logger.setLevel(logging.INFO)


# Validated in the handler so a bad "aces" value gets the JSON error shape instead of a 422
class FitmentUpload(BaseModel):
    aces: Any = None


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


# Keep a timestamped copy of an uploaded feed under UPLOADS_DIR
def _archive_upload(prefix: str, filename: Optional[str], content: bytes) -> str:
    if not settings.KEEP_UPLOADS:
        return ""
    ext = Path(filename or "").suffix or ".xml"
    stored_name = f"{prefix}_{datetime.now().strftime('%Y%m%d_%H%M%S_%f')}{ext}"
    try:
        (settings.UPLOADS_DIR / stored_name).write_bytes(content)
    except OSError:
        logger.exception("Failed to archive upload %s", stored_name)
        return ""
    return stored_name


def _page(page: Any, limit: Any, default_limit: Optional[int] = None) -> tuple[int, int, int]:
    return paginate(page, limit, default_limit or settings.DEFAULT_PAGE_SIZE, settings.MAX_PAGE_SIZE)


@app.on_event("startup")
# Initialize DB schema
async def _startup() -> None:
    try:
        db.init_db()
        logger.info("Database ready at %s", settings.DB_PATH)
    except Exception as e:
        logger.exception("DB init failed: %s", e)


@app.get("/health")
def health():
    return {"status": "ok", "products": db.count_products()}


# --- PIES upload ---
@app.post("/upload")
# Parse a PIES feed (form field "pies"), upsert by sku, optionally sync to Shopify
def upload_pies(pies: Optional[UploadFile] = File(None)):
    if pies is None:
        return _error(400, "No PIES file uploaded")
    content = pies.file.read()
    stored_name = _archive_upload("pies", pies.filename, content)
    try:
        summary = ingest_pies(content)
    except FeedParseError as e:
        logger.warning("Rejected PIES upload %s: %s", pies.filename, e)
        return _error(400, f"Invalid PIES XML: {e}")
    return {
        "status": "ok",
        **summary.as_dict(),
        "storedFile": stored_name,
        "message": f"Upload completed ({summary.uploaded}/{summary.parsed})",
    }


# --- ACES upload ---
@app.post("/upload-aces-xml")
# Parse an ACES feed (form field "file") and store unique fitments
def upload_aces_xml(file: Optional[UploadFile] = File(None)):
    if file is None:
        return _error(400, "No file uploaded.")
    content = file.file.read()
    stored_name = _archive_upload("aces", file.filename, content)
    try:
        summary = ingest_aces(content)
    except FeedParseError as e:
        logger.warning("Rejected ACES upload %s: %s", file.filename, e)
        return _error(400, f"Invalid ACES XML: {e}")
    return {
        **summary.as_dict(),
        "storedFile": stored_name,
        "message": f"Parsed {summary.parsed} apps. Inserted {summary.inserted}, skipped {summary.skipped}.",
    }


@app.post("/upload-aces")
# Store fitments posted as JSON: {"aces": [{sku, yearFrom, yearTo, makeId, modelId, ...}]}
def upload_aces_json(body: FitmentUpload):
    if not isinstance(body.aces, list):
        return _error(400, 'Invalid or missing "aces" array')
    summary = ingest_fitment_records(body.aces)
    return {
        **summary.as_dict(),
        "message": f"Uploaded {summary.inserted}. Skipped {summary.skipped}.",
    }


@app.get("/upload-aces")
# Filter & paginate stored fitments
def list_fitments(
    sku: str = "",
    makeId: str = "",
    modelId: str = "",
    yearFrom: str = "",
    yearTo: str = "",
    page: str = "1",
    limit: str = "50",
):
    p, size, offset = _page(page, limit)
    rows, total = db.search_fitments(sku=sku, make=makeId, model=modelId, year_from=yearFrom, year_to=yearTo, offset=offset, limit=size)
    return {"total": total, "page": p, "limit": size, "results": rows}


# --- Product search ---
@app.get("/products")
# List stored products, newest first, filtered by vendor and/or title keyword
def list_products(vendor: str = "", keyword: str = "", page: str = "1", limit: str = "50"):
    p, size, offset = _page(page, limit)
    rows, total = db.list_products(vendor=vendor, keyword=keyword, offset=offset, limit=size)
    return {"total": total, "page": p, "limit": size, "results": rows}


@app.get("/products/{sku}")
def get_product(sku: str):
    product = db.get_product(sku)
    if not product:
        return _error(404, f"Product not found: {sku}")
    return product


@app.get("/search-ace")
# e.g. /search-ace?brand=acme&part=BP&make=TOYOTA&model=CAMRY&year=2012&page=1&limit=20
def search_ace(
    brand: str = "",
    part: str = "",
    make: str = "",
    model: str = "",
    year: str = "",
    page: str = "1",
    limit: str = "10",
):
    p, size, offset = _page(page, limit, default_limit=10)
    year_num = min(to_int(year, -1), MAX_OFFSET) if year else -1
    rows, total = db.search_products(
        brand=brand,
        part=part,
        make=make,
        model=model,
        year=year_num if year_num >= 0 else None,
        offset=offset,
        limit=size,
    )
    return {
        "total": total,
        "page": p,
        "limit": size,
        "filters": {"brand": brand, "part": part, "make": make, "model": model, "year": year},
        "products": [
            {
                "id": r["id"],
                "title": r["title"],
                "sku": r["sku"],
                "vendor": r["vendor"],
                "description": r["shortDesc"],
                "weight": r["weight"],
                "attributes": r["attributes"],
                "dimensions": r["dimensions"],
                "pricing": r["pricing"],
                "image": (r["images"] or [None])[0],
            }
            for r in rows
        ],
    }


# --- Shopify ---
@app.post("/sync-shopify")
# Push every stored product not yet synced to Shopify
def sync_shopify():
    client = ShopifyClient()
    if not client.is_configured():
        return _error(400, "Missing Shopify credentials")
    summary = sync_unsynced(client)
    if not summary.results:
        return {"message": "No unsynced products found.", "syncedCount": 0, "failedCount": 0, "results": []}
    return {
        "success": True,
        "syncedCount": summary.synced_count,
        "failedCount": summary.failed_count,
        "results": [r.as_dict() for r in summary.results],
    }


@app.delete("/delete-all-products")
# Delete all products from the connected Shopify store
def delete_all_products():
    client = ShopifyClient()
    if not client.is_configured():
        return _error(400, "Missing Shopify credentials")
    try:
        deleted = delete_all_remote_products(client)
    except ShopifyError as e:
        logger.exception("Bulk delete aborted")
        return _error(502, str(e))
    return {"success": True, "deleted": deleted, "message": f"Deleted {deleted} products successfully."}


# --- Admin ---
@app.post("/admin/clear")
# Clear stored products and fitments (guarded by confirm=yes)
def admin_clear(confirm: str = ""):
    if confirm != "yes":
        return _error(400, "Pass confirm=yes to clear all tables")
    cleared = db.clear_all_tables()
    logger.info("All data cleared by admin request")
    return {"cleared": cleared}
