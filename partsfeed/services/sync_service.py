from __future__ import annotations

import html
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from partsfeed.config import settings
from partsfeed.services import db
from partsfeed.services.ratelimit import RateLimiter, shopify_limiter
from partsfeed.services.shopify import ShopifyClient, ShopifyError

logger = logging.getLogger(__name__)

DEFAULT_INVENTORY = 10


@dataclass
class SyncResult:
    sku: str
    title: str = ""
    shopify_id: Optional[str] = None
    handle: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.shopify_id is not None and self.error is None

    def as_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"sku": self.sku, "title": self.title}
        if self.shopify_id is not None:
            out["shopifyId"] = self.shopify_id
            out["handle"] = self.handle
        if not self.ok:
            out["error"] = self.error
        return out


@dataclass
class SyncSummary:
    results: List[SyncResult] = field(default_factory=list)

    @property
    def synced_count(self) -> int:
        return sum(1 for r in self.results if r.ok)

    @property
    def failed_count(self) -> int:
        return sum(1 for r in self.results if not r.ok)


def _price_types() -> List[str]:
    return [t.strip() for t in settings.SHOPIFY_PRICE_TYPES.split(",") if t.strip()]


# Pick the variant price: first configured price type present in the product's pricing, else the default.
def select_price(pricing: Optional[Mapping[str, Any]]) -> str:
    pricing = pricing or {}
    for code in _price_types():
        if code in pricing and pricing[code] is not None:
            return f"{float(pricing[code]):.2f}"
    return settings.SHOPIFY_DEFAULT_PRICE


def _attributes_text(attributes: Any) -> str:
    if isinstance(attributes, Mapping):
        return ", ".join(f"{k}: {v}" for k, v in attributes.items())
    return str(attributes or "")


def build_description_html(product: Mapping[str, Any]) -> str:
    vendor = html.escape(str(product.get("vendor") or ""))
    parts = [f"<p><strong>{vendor}</strong></p>"]
    parts.append(product.get("longDesc") or "<p>No description available.</p>")
    attrs = _attributes_text(product.get("attributes"))
    if attrs:
        parts.append(f"<p><b>Attributes:</b> {html.escape(attrs)}</p>")
    dims = str(product.get("dimensions") or "")
    # "xx" means no axis was present in the feed
    if dims.strip("x"):
        parts.append(f"<p><b>Dimensions:</b> {html.escape(dims)}</p>")
    if product.get("weight"):
        parts.append(f"<p><b>Weight:</b> {html.escape(str(product['weight']))}</p>")
    return "\n".join(parts)


def build_product_input(product: Mapping[str, Any]) -> Dict[str, Any]:
    vendor = product.get("vendor") or "Unknown"
    tags = ["PIES", vendor]
    category = product.get("category")
    if category and category != "Uncategorized":
        tags.append(category)
    return {
        "title": product.get("title") or "Untitled Product",
        "descriptionHtml": build_description_html(product),
        "vendor": vendor,
        "productType": settings.SHOPIFY_PRODUCT_TYPE,
        "tags": tags,
        "status": "ACTIVE",
        "images": [{"src": uri} for uri in (product.get("images") or [])],
    }


def build_variant_input(product: Mapping[str, Any]) -> Dict[str, Any]:
    qty = product.get("qtyAvailable")
    return {
        "price": select_price(product.get("pricing")),
        "inventoryQuantity": int(qty) if qty else DEFAULT_INVENTORY,
        "inventoryItem": {"sku": product.get("sku") or "", "tracked": True},
    }


def sync_product(client: ShopifyClient, product: Mapping[str, Any]) -> SyncResult:
    """Create one product with its default variant; failures are returned, not raised."""
    sku = str(product.get("sku") or "")
    result = SyncResult(sku=sku, title=str(product.get("title") or ""))
    try:
        created = client.create_product(build_product_input(product))
        result.shopify_id = str(created["id"])
        result.handle = created.get("handle")
        client.create_variants(created["id"], [build_variant_input(product)])
        logger.info("Synced %s -> %s (%s)", sku, result.shopify_id, result.handle)
    except (ShopifyError, KeyError) as e:
        result.error = str(e)
        logger.warning("Shopify sync failed for SKU %s: %s", sku, e)
    return result


def sync_products(client: ShopifyClient, products: List[Mapping[str, Any]], limiter: Optional[RateLimiter] = None) -> SyncSummary:
    limiter = limiter or shopify_limiter()
    summary = SyncSummary()
    total = len(products)
    for i, product in enumerate(products, start=1):
        limiter.acquire()
        logger.info("Uploading to Shopify: %d / %d -> %s", i, total, product.get("sku"))
        result = sync_product(client, product)
        # a product that exists remotely is recorded even if its variant failed, so it is never created twice
        if result.shopify_id:
            db.mark_product_synced(result.sku, result.shopify_id)
        summary.results.append(result)
    return summary


def sync_unsynced(client: ShopifyClient, limiter: Optional[RateLimiter] = None) -> SyncSummary:
    products = db.list_unsynced_products()
    logger.info("Found %d products to sync", len(products))
    return sync_products(client, products, limiter)


def delete_all_remote_products(client: ShopifyClient, limiter: Optional[RateLimiter] = None) -> int:
    """Delete every product in the remote store, page by page. Returns the number deleted.
    A failed listing aborts with ShopifyError; a failed single delete is logged and skipped.
    """
    limiter = limiter or shopify_limiter()
    deleted = 0
    page_info: Optional[str] = None
    while True:
        limiter.acquire()
        products, next_page = client.list_products(page_info=page_info)
        if not products:
            break
        logger.info("Found %d products in this batch", len(products))
        for product in products:
            limiter.acquire()
            try:
                client.delete_product(product.get("id"))
                deleted += 1
                logger.info("Deleted %s (ID: %s)", product.get("title"), product.get("id"))
            except ShopifyError as e:
                logger.warning("Failed to delete product ID %s: %s", product.get("id"), e)
        if not next_page:
            break
        page_info = next_page
    logger.info("Completed deletion: %d products removed", deleted)
    return deleted
