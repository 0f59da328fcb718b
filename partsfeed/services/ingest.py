from __future__ import annotations

import logging
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, Iterable, List, Mapping, Optional

from partsfeed.config import settings
from partsfeed.services import db
from partsfeed.services.normalizer import parse_aces, parse_pies
from partsfeed.services.ratelimit import RateLimiter
from partsfeed.services.shopify import ShopifyClient
from partsfeed.services.sync_service import sync_products

logger = logging.getLogger(__name__)


@dataclass
class PiesIngestSummary:
    parsed: int = 0
    stored: int = 0
    skipped_no_sku: int = 0
    uploaded: int = 0
    failed: int = 0
    skus: List[str] = field(default_factory=list)

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class FitmentIngestSummary:
    parsed: int = 0
    inserted: int = 0
    skipped: int = 0

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


def ingest_pies(
    content: bytes,
    sync: Optional[bool] = None,
    client: Optional[ShopifyClient] = None,
    limiter: Optional[RateLimiter] = None,
) -> PiesIngestSummary:
    """Parse a PIES feed, upsert every item that has a sku, then optionally push the stored items to Shopify.
    FeedParseError propagates before anything is written.
    """
    items = parse_pies(content)
    logger.info("Parsed %d products from PIES feed", len(items))
    summary = PiesIngestSummary(parsed=len(items))
    stored: List[Dict[str, Any]] = []
    for item in items:
        if not item.sku:
            summary.skipped_no_sku += 1
            continue
        record = item.to_record()
        db.upsert_product(record)
        stored.append(record)
        summary.skus.append(item.sku)
    summary.stored = len(stored)
    if summary.skipped_no_sku:
        logger.warning("Skipped %d PIES items without a part number", summary.skipped_no_sku)

    if sync is None:
        sync = settings.SYNC_TO_SHOPIFY
    if sync and stored:
        client = client or ShopifyClient()
        if not client.is_configured():
            logger.warning("SYNC_TO_SHOPIFY is on but Shopify credentials are missing; skipping sync")
        else:
            # products already pushed by an earlier upload are not created twice
            rows = (db.get_product(sku) for sku in dict.fromkeys(summary.skus))
            pending = [row for row in rows if row and not row["synced"]]
            result = sync_products(client, pending, limiter)
            summary.uploaded = result.synced_count
            summary.failed = result.failed_count
    logger.info("PIES ingest done: stored=%d uploaded=%d failed=%d", summary.stored, summary.uploaded, summary.failed)
    return summary


def _store_fitments(records: Iterable[Mapping[str, Any]], summary: FitmentIngestSummary) -> FitmentIngestSummary:
    for record in records:
        if db.upsert_fitment(record):
            summary.inserted += 1
        else:
            summary.skipped += 1
    return summary


def ingest_aces(content: bytes) -> FitmentIngestSummary:
    entries = parse_aces(content)
    logger.info("Parsed %d complete applications from ACES feed", len(entries))
    summary = FitmentIngestSummary(parsed=len(entries))
    return _store_fitments((e.to_record() for e in entries), summary)


# JSON uploads use the stored-record key names: sku, yearFrom, yearTo, makeId, modelId, partTypeId, positionId
def fitment_record_from_json(raw: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
    def _s(key: str) -> str:
        return str(raw.get(key) or "").strip()

    record = {
        "partNumber": _s("sku"),
        "yearFrom": _s("yearFrom"),
        "yearTo": _s("yearTo"),
        "make": _s("makeId"),
        "model": _s("modelId"),
        "partType": _s("partTypeId"),
        "position": _s("positionId"),
    }
    if not all(record[k] for k in ("partNumber", "yearFrom", "yearTo", "make", "model")):
        return None
    return record


def ingest_fitment_records(raw_records: Iterable[Mapping[str, Any]]) -> FitmentIngestSummary:
    records = []
    for raw in raw_records:
        rec = fitment_record_from_json(raw) if isinstance(raw, Mapping) else None
        if rec is not None:
            records.append(rec)
    summary = FitmentIngestSummary(parsed=len(records))
    return _store_fitments(records, summary)
