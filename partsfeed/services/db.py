from __future__ import annotations

import json
import sqlite3
import time
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

from partsfeed.config import settings


SCHEMA_SQL = """
PRAGMA journal_mode=WAL;
PRAGMA synchronous=NORMAL;

CREATE TABLE IF NOT EXISTS products (
  id INTEGER PRIMARY KEY,
  sku TEXT NOT NULL UNIQUE,
  title TEXT,
  vendor TEXT,
  short_desc TEXT,
  long_desc TEXT,
  attributes TEXT,               -- JSON object: attribute id -> value
  pricing TEXT,                  -- JSON object: price type -> amount
  qty_available INTEGER,
  weight TEXT,
  dimensions TEXT,               -- LxWxH
  category TEXT,
  pies_segment TEXT,
  pies_base TEXT,
  pies_sub TEXT,
  images TEXT,                   -- JSON array of absolute URLs
  synced INTEGER NOT NULL DEFAULT 0,
  shopify_id TEXT,
  created_at INTEGER NOT NULL,
  updated_at INTEGER
);

CREATE TABLE IF NOT EXISTS fitments (
  id INTEGER PRIMARY KEY,
  part_number TEXT NOT NULL,
  year_from TEXT NOT NULL,
  year_to TEXT NOT NULL,
  make TEXT NOT NULL,
  model TEXT NOT NULL,
  part_type TEXT,
  position TEXT,
  created_at INTEGER NOT NULL,
  updated_at INTEGER,
  UNIQUE (part_number, year_from, year_to, make, model)
);

CREATE INDEX IF NOT EXISTS idx_products_vendor ON products(vendor);
CREATE INDEX IF NOT EXISTS idx_products_synced ON products(synced);
CREATE INDEX IF NOT EXISTS idx_fitments_part ON fitments(part_number);
CREATE INDEX IF NOT EXISTS idx_fitments_vehicle ON fitments(make, model);
"""

# Columns written from a CatalogItem record (camelCase key -> column)
PRODUCT_FIELDS: Tuple[Tuple[str, str], ...] = (
    ("title", "title"),
    ("vendor", "vendor"),
    ("shortDesc", "short_desc"),
    ("longDesc", "long_desc"),
    ("attributes", "attributes"),
    ("pricing", "pricing"),
    ("qtyAvailable", "qty_available"),
    ("weight", "weight"),
    ("dimensions", "dimensions"),
    ("category", "category"),
    ("piesSegment", "pies_segment"),
    ("piesBase", "pies_base"),
    ("piesSub", "pies_sub"),
    ("images", "images"),
)
JSON_COLUMNS = {"attributes": {}, "pricing": {}, "images": []}


def _connect() -> sqlite3.Connection:
    Path(settings.DB_PATH).parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(settings.DB_PATH))
    conn.row_factory = sqlite3.Row
    return conn


def init_db() -> None:
    with _connect() as conn:
        conn.executescript(SCHEMA_SQL)
        conn.commit()


def _rows(cur: sqlite3.Cursor) -> List[Dict[str, Any]]:
    cols = [c[0] for c in cur.description or []]
    return [{k: row[idx] for idx, k in enumerate(cols)} for row in cur.fetchall()]


# Decode JSON columns and expose the record under its camelCase names
def _product_out(row: Dict[str, Any]) -> Dict[str, Any]:
    out: Dict[str, Any] = {"id": row.get("id"), "sku": row.get("sku")}
    for key, col in PRODUCT_FIELDS:
        val = row.get(col)
        if col in JSON_COLUMNS:
            try:
                val = json.loads(val) if val else JSON_COLUMNS[col]
            except ValueError:
                val = JSON_COLUMNS[col]
        out[key] = val
    out["synced"] = bool(row.get("synced"))
    out["shopifyId"] = row.get("shopify_id")
    out["createdAt"] = row.get("created_at")
    out["updatedAt"] = row.get("updated_at")
    return out


def _fitment_out(row: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": row.get("id"),
        "partNumber": row.get("part_number"),
        "yearFrom": row.get("year_from"),
        "yearTo": row.get("year_to"),
        "make": row.get("make"),
        "model": row.get("model"),
        "partType": row.get("part_type") or "",
        "position": row.get("position") or "",
    }


def _where(clauses: List[str]) -> str:
    return f"WHERE {' AND '.join(clauses)}" if clauses else ""


def _like(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


# ---- Products ----
def upsert_product(record: Mapping[str, Any]) -> int:
    """Insert or overwrite the catalog fields of the product keyed by record['sku'].
    Sync bookkeeping (synced, shopify_id) is left untouched on update.
    """
    sku = str(record.get("sku") or "").strip()
    if not sku:
        return 0
    now = int(time.time())
    values = []
    for key, col in PRODUCT_FIELDS:
        val = record.get(key)
        if col in JSON_COLUMNS:
            val = json.dumps(val if val is not None else JSON_COLUMNS[col])
        values.append(val)
    cols = [col for _, col in PRODUCT_FIELDS]
    updates = ",\n              ".join(f"{c}=excluded.{c}" for c in cols)
    with _connect() as conn:
        conn.execute(
            f"""
            INSERT INTO products(sku, {', '.join(cols)}, created_at)
            VALUES({', '.join('?' for _ in range(len(cols) + 2))})
            ON CONFLICT(sku) DO UPDATE SET
              {updates},
              updated_at=?
            """,
            (sku, *values, now, now),
        )
        row = conn.execute("SELECT id FROM products WHERE sku=?", (sku,)).fetchone()
        conn.commit()
        return int(row["id"]) if row else 0


def get_product(sku: str) -> Optional[Dict[str, Any]]:
    if not sku:
        return None
    with _connect() as conn:
        cur = conn.execute("SELECT * FROM products WHERE sku=?", (sku,))
        rows = _rows(cur)
        return _product_out(rows[0]) if rows else None


def count_products() -> int:
    with _connect() as conn:
        row = conn.execute("SELECT COUNT(1) FROM products").fetchone()
        return int(row[0]) if row else 0


def _page_products(clauses: List[str], params: List[Any], offset: int, limit: int) -> Tuple[List[Dict[str, Any]], int]:
    where = _where(clauses)
    with _connect() as conn:
        total_row = conn.execute(f"SELECT COUNT(1) FROM products p {where}", params).fetchone()
        cur = conn.execute(
            f"""
            SELECT p.*
            FROM products p
            {where}
            ORDER BY COALESCE(p.updated_at, p.created_at) DESC, p.id DESC
            LIMIT ? OFFSET ?
            """,
            (*params, int(limit), int(offset)),
        )
        return [_product_out(r) for r in _rows(cur)], int(total_row[0]) if total_row else 0


def list_products(vendor: str = "", keyword: str = "", offset: int = 0, limit: int = 50) -> Tuple[List[Dict[str, Any]], int]:
    """Newest-first product listing; vendor and keyword (title) are case-insensitive substring filters."""
    clauses: List[str] = []
    params: List[Any] = []
    if vendor:
        clauses.append("p.vendor LIKE ? ESCAPE '\\'")
        params.append(_like(vendor))
    if keyword:
        clauses.append("p.title LIKE ? ESCAPE '\\'")
        params.append(_like(keyword))
    return _page_products(clauses, params, offset, limit)


def search_products(
    brand: str = "",
    part: str = "",
    make: str = "",
    model: str = "",
    year: Optional[int] = None,
    offset: int = 0,
    limit: int = 10,
) -> Tuple[List[Dict[str, Any]], int]:
    """Search products by brand/part and, through stored fitments, by vehicle.
    make/model match fitment ids case-insensitively; year must fall inside the fitment's range.
    """
    clauses: List[str] = []
    params: List[Any] = []
    if brand:
        clauses.append("p.vendor LIKE ? ESCAPE '\\'")
        params.append(_like(brand))
    if part:
        clauses.append("p.sku LIKE ? ESCAPE '\\'")
        params.append(_like(part))
    vehicle: List[str] = []
    if make:
        vehicle.append("f.make = ? COLLATE NOCASE")
        params.append(make)
    if model:
        vehicle.append("f.model = ? COLLATE NOCASE")
        params.append(model)
    if year is not None:
        vehicle.append("CAST(f.year_from AS INTEGER) <= ? AND CAST(f.year_to AS INTEGER) >= ?")
        params.extend([int(year), int(year)])
    if vehicle:
        clauses.append(
            f"EXISTS (SELECT 1 FROM fitments f WHERE f.part_number = p.sku AND {' AND '.join(vehicle)})"
        )
    return _page_products(clauses, params, offset, limit)


def list_unsynced_products() -> List[Dict[str, Any]]:
    with _connect() as conn:
        cur = conn.execute("SELECT * FROM products WHERE synced=0 ORDER BY id ASC")
        return [_product_out(r) for r in _rows(cur)]


def mark_product_synced(sku: str, shopify_id: str) -> None:
    now = int(time.time())
    with _connect() as conn:
        conn.execute(
            "UPDATE products SET synced=1, shopify_id=?, updated_at=? WHERE sku=?",
            (str(shopify_id or ""), now, sku),
        )
        conn.commit()


# ---- Fitments ----
def upsert_fitment(record: Mapping[str, Any]) -> bool:
    """Store a fitment keyed by (partNumber, yearFrom, yearTo, make, model).
    Returns True when a new row was inserted; an existing row only gets its qualifiers refreshed.
    """
    key = (
        str(record.get("partNumber") or ""),
        str(record.get("yearFrom") or ""),
        str(record.get("yearTo") or ""),
        str(record.get("make") or ""),
        str(record.get("model") or ""),
    )
    if not all(key):
        return False
    part_type = record.get("partType") or None
    position = record.get("position") or None
    now = int(time.time())
    with _connect() as conn:
        cur = conn.execute(
            """
            INSERT OR IGNORE INTO fitments(part_number, year_from, year_to, make, model, part_type, position, created_at)
            VALUES(?,?,?,?,?,?,?,?)
            """,
            (*key, part_type, position, now),
        )
        inserted = cur.rowcount > 0
        if not inserted:
            conn.execute(
                """
                UPDATE fitments SET part_type=COALESCE(?, part_type), position=COALESCE(?, position), updated_at=?
                WHERE part_number=? AND year_from=? AND year_to=? AND make=? AND model=?
                """,
                (part_type, position, now, *key),
            )
        conn.commit()
        return inserted


def search_fitments(
    sku: str = "",
    make: str = "",
    model: str = "",
    year_from: str = "",
    year_to: str = "",
    offset: int = 0,
    limit: int = 50,
) -> Tuple[List[Dict[str, Any]], int]:
    clauses: List[str] = []
    params: List[Any] = []
    if sku:
        clauses.append("part_number LIKE ? ESCAPE '\\'")
        params.append(_like(sku))
    for col, val in (("make", make), ("model", model), ("year_from", year_from), ("year_to", year_to)):
        if val:
            clauses.append(f"{col} = ?")
            params.append(val)
    where = _where(clauses)
    with _connect() as conn:
        total_row = conn.execute(f"SELECT COUNT(1) FROM fitments {where}", params).fetchone()
        cur = conn.execute(
            f"SELECT * FROM fitments {where} ORDER BY id ASC LIMIT ? OFFSET ?",
            (*params, int(limit), int(offset)),
        )
        return [_fitment_out(r) for r in _rows(cur)], int(total_row[0]) if total_row else 0


def clear_all_tables() -> List[str]:
    cleared = []
    with _connect() as conn:
        for table in ("fitments", "products"):
            conn.execute(f"DELETE FROM {table}")
            cleared.append(table)
        conn.commit()
    return cleared
