import os
from pathlib import Path


# Load env vars from local files without overriding existing variables
def _load_env_from_files() -> None:
    """Load key=value lines from optional local files into os.environ if not already set.
    Priority: repo/.env, ENV_FILE path, data/secrets.env.
    Comments (#) and blank lines are ignored. Does not override existing env vars.
    """
    repo_root = Path(__file__).resolve().parents[1]
    candidates = [
        repo_root / ".env",
        Path(os.getenv("ENV_FILE", "")) if os.getenv("ENV_FILE") else None,
        repo_root / "data" / "secrets.env",
    ]
    for p in [c for c in candidates if c]:
        if not (p.exists() and p.is_file()):
            continue
        try:
            lines = p.read_text().splitlines()
        except OSError:
            continue
        for line in lines:
            line = line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue
            k, v = line.split("=", 1)
            k = k.strip()
            v = v.strip().strip('"').strip("'")
            if k and (k not in os.environ):
                os.environ[k] = v


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in {"1", "true", "yes"}


# Load local env before reading values into Settings
_load_env_from_files()


class Settings:
    # Networking
    APP_HOST: str = os.getenv("APP_HOST", "0.0.0.0")
    APP_PORT: int = int(os.getenv("APP_PORT", "3000"))

    # Paths
    _REPO_ROOT: Path = Path(__file__).resolve().parents[1]  # Anchor default to repo root: <repo>/data
    DATA_DIR: Path = Path(os.getenv("DATA_DIR", str(_REPO_ROOT / "data")))
    UPLOADS_DIR: Path = DATA_DIR / "uploads"

    # Database path (SQLite)
    # - absolute DB_PATH is used as-is
    # - relative DB_PATH resolves under DATA_DIR
    # - unset defaults to DATA_DIR/catalog.db
    _DB_ENV: str | None = os.getenv("DB_PATH")
    if _DB_ENV:
        _db_path = Path(_DB_ENV)
        DB_PATH: Path = _db_path if _db_path.is_absolute() else DATA_DIR / _db_path
    else:
        DB_PATH: Path = DATA_DIR / "catalog.db"

    # Debugging
    DEBUG: bool = _flag("DEBUG", "false")

    # Keep a copy of every uploaded feed under UPLOADS_DIR
    KEEP_UPLOADS: bool = _flag("KEEP_UPLOADS", "true")

    # Search pagination
    DEFAULT_PAGE_SIZE: int = int(os.getenv("DEFAULT_PAGE_SIZE", "50"))
    MAX_PAGE_SIZE: int = int(os.getenv("MAX_PAGE_SIZE", "500"))

    # Push parsed PIES products to Shopify right after they are stored
    SYNC_TO_SHOPIFY: bool = _flag("SYNC_TO_SHOPIFY", "false")

    # Shopify Admin API
    SHOPIFY_STORE_DOMAIN: str | None = os.getenv("SHOPIFY_STORE_DOMAIN")
    SHOPIFY_ADMIN_TOKEN: str | None = os.getenv("SHOPIFY_ADMIN_TOKEN")
    SHOPIFY_API_VERSION: str = os.getenv("SHOPIFY_API_VERSION", "2024-07")
    SHOPIFY_TIMEOUT: int = int(os.getenv("SHOPIFY_TIMEOUT", "30"))  # seconds
    # Shopify tolerates ~2 requests/sec on the REST admin API
    SHOPIFY_RATE_LIMIT_PER_MIN: int = int(os.getenv("SHOPIFY_RATE_LIMIT_PER_MIN", "120"))
    # Calls allowed back to back before spacing kicks in
    SHOPIFY_BURST: int = int(os.getenv("SHOPIFY_BURST", "2"))
    # Comma-separated PIES price types, first one present becomes the variant price
    SHOPIFY_PRICE_TYPES: str = os.getenv("SHOPIFY_PRICE_TYPES", "MSRP,RMP,RET,MAP,JBR")
    SHOPIFY_DEFAULT_PRICE: str = os.getenv("SHOPIFY_DEFAULT_PRICE", "99.99")
    SHOPIFY_PRODUCT_TYPE: str = os.getenv("SHOPIFY_PRODUCT_TYPE", "Auto Parts")


settings = Settings()

# Ensure directories exist at import time
for p in (settings.DATA_DIR, settings.UPLOADS_DIR):
    p.mkdir(parents=True, exist_ok=True)
