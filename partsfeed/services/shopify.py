from __future__ import annotations

import re
from typing import Any, Dict, List, Optional, Tuple
import json

import requests

from partsfeed.config import settings


PRODUCT_CREATE_MUTATION = """
mutation productCreate($input: ProductInput!) {
  productCreate(input: $input) {
    product { id title handle status }
    userErrors { field message }
  }
}
"""

VARIANTS_CREATE_MUTATION = """
mutation productVariantsBulkCreate($productId: ID!, $variants: [ProductVariantsBulkInput!]!) {
  productVariantsBulkCreate(productId: $productId, variants: $variants) {
    productVariants { id price inventoryItem { sku tracked } }
    userErrors { field message }
  }
}
"""

_NEXT_PAGE_RE = re.compile(r'<[^>]*[?&]page_info=([^&>]+)[^>]*>;\s*rel="next"')


class ShopifyError(RuntimeError):
    pass


class ShopifyClient:
    # Minimal Shopify Admin API client: GraphQL for product creation, REST for listing/deleting.
    def __init__(
        self,
        store_domain: Optional[str] = None,
        token: Optional[str] = None,
        api_version: Optional[str] = None,
        timeout: Optional[int] = None,
    ):
        self.store = (store_domain or settings.SHOPIFY_STORE_DOMAIN or "").strip().rstrip("/")
        self.token = token or settings.SHOPIFY_ADMIN_TOKEN or ""
        self.api_version = api_version or settings.SHOPIFY_API_VERSION
        self.timeout = timeout or settings.SHOPIFY_TIMEOUT
        self.base = f"https://{self.store}/admin/api/{self.api_version}"

    # Standard auth/content headers for Admin API requests.
    def _headers(self) -> Dict[str, str]:
        return {
            "X-Shopify-Access-Token": self.token,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    # True if store and token are present and API calls can be attempted.
    def is_configured(self) -> bool:
        return bool(self.store and self.token)

    def graphql(self, query: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """POST a GraphQL document and return its `data`; HTTP and GraphQL errors raise ShopifyError."""
        try:
            r = requests.post(
                f"{self.base}/graphql.json",
                json={"query": query, "variables": variables or {}},
                headers=self._headers(),
                timeout=self.timeout,
            )
            r.raise_for_status()
            body = r.json()
        except (requests.RequestException, ValueError) as e:
            raise ShopifyError(f"GraphQL request failed: {e}") from e
        if body.get("errors"):
            raise ShopifyError("GraphQL errors: " + json.dumps(body["errors"]))
        return body.get("data") or {}

    # Create a product; returns {id, title, handle, status}.
    def create_product(self, product_input: Dict[str, Any]) -> Dict[str, Any]:
        data = self.graphql(PRODUCT_CREATE_MUTATION, {"input": product_input})
        payload = data.get("productCreate") or {}
        product = payload.get("product")
        errors = payload.get("userErrors") or []
        if not product or errors:
            raise ShopifyError("productCreate failed: " + json.dumps(errors))
        return product

    # Attach variants to an existing product; returns the created variants.
    def create_variants(self, product_id: str, variants: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        data = self.graphql(VARIANTS_CREATE_MUTATION, {"productId": product_id, "variants": variants})
        payload = data.get("productVariantsBulkCreate") or {}
        errors = payload.get("userErrors") or []
        if errors:
            raise ShopifyError("productVariantsBulkCreate failed: " + json.dumps(errors))
        return payload.get("productVariants") or []

    def list_products(self, limit: int = 250, page_info: Optional[str] = None) -> Tuple[List[Dict[str, Any]], Optional[str]]:
        """Return one page of products and the page_info cursor of the next page (None on the last)."""
        params: Dict[str, Any] = {"limit": limit}
        if page_info:
            params["page_info"] = page_info
        try:
            r = requests.get(f"{self.base}/products.json", params=params, headers=self._headers(), timeout=self.timeout)
            r.raise_for_status()
            products = r.json().get("products", []) or []
        except (requests.RequestException, ValueError) as e:
            raise ShopifyError(f"Listing products failed: {e}") from e
        m = _NEXT_PAGE_RE.search(r.headers.get("Link", "") or "")
        return products, (m.group(1) if m else None)

    def delete_product(self, product_id: Any) -> None:
        try:
            r = requests.delete(f"{self.base}/products/{product_id}.json", headers=self._headers(), timeout=self.timeout)
            r.raise_for_status()
        except requests.RequestException as e:
            raise ShopifyError(f"Deleting product {product_id} failed: {e}") from e
