import argparse
import json
import logging
import logging.config
from pathlib import Path
from partsfeed.config import settings


def build_log_config(level_name: str, log_file: str) -> dict:
    """Return a logging config aligned with Uvicorn that also formats app logs and writes to a rotating file."""
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "()": "uvicorn.logging.DefaultFormatter",
                "fmt": "%(asctime)s | %(levelname)s | %(name)s | %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
            "access": {
                "()": "uvicorn.logging.AccessFormatter",
                "fmt": "%(asctime)s | %(levelname)s | %(client_addr)s - \"%(request_line)s\" %(status_code)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
        },
        "handlers": {
            "default": {
                "class": "logging.StreamHandler",
                "formatter": "default",
                "stream": "ext://sys.stdout",
            },
            "access": {
                "class": "logging.StreamHandler",
                "formatter": "access",
                "stream": "ext://sys.stdout",
            },
            "file": {
                "class": "logging.handlers.RotatingFileHandler",
                "formatter": "default",
                "filename": log_file,
                "maxBytes": 5_000_000,
                "backupCount": 5,
                "encoding": "utf-8",
            },
        },
        "loggers": {
            "uvicorn": {"level": level_name, "handlers": ["default", "file"], "propagate": False},
            "uvicorn.error": {"level": level_name, "handlers": ["default", "file"], "propagate": False},
            "uvicorn.access": {"level": "INFO", "handlers": ["access", "file"], "propagate": False},
            # per-request connection chatter from the Shopify client
            "urllib3": {"level": "WARNING"},
        },
        "root": {"level": level_name, "handlers": ["default", "file"]},
    }


def _serve(log_config: dict, level_name: str) -> None:
    import uvicorn

    # Use import string so the app is imported after logging is configured.
    uvicorn.run(
        "partsfeed.main:app",
        host=settings.APP_HOST,
        port=settings.APP_PORT,
        log_config=log_config,
        log_level=level_name.lower(),
    )


# Batch mode: ingest feeds from disk without starting the server
def _ingest(kind: str, paths: list, sync: bool) -> None:
    from partsfeed.services.db import init_db
    from partsfeed.services.ingest import ingest_aces, ingest_pies

    init_db()
    for path in paths:
        content = Path(path).read_bytes()
        if kind == "pies":
            summary = ingest_pies(content, sync=sync)
        else:
            summary = ingest_aces(content)
        print(json.dumps({"file": str(path), **summary.as_dict()}, indent=2))


def _sync() -> None:
    from partsfeed.services.db import init_db
    from partsfeed.services.shopify import ShopifyClient
    from partsfeed.services.sync_service import sync_unsynced

    init_db()
    client = ShopifyClient()
    if not client.is_configured():
        raise SystemExit("Missing Shopify credentials (SHOPIFY_STORE_DOMAIN / SHOPIFY_ADMIN_TOKEN)")
    summary = sync_unsynced(client)
    print(json.dumps({"synced": summary.synced_count, "failed": summary.failed_count}, indent=2))


def main() -> None:
    parser = argparse.ArgumentParser(description="PIES/ACES catalog backend")
    sub = parser.add_subparsers(dest="command")
    sub.add_parser("serve", help="Run the HTTP API (default)")
    p_pies = sub.add_parser("ingest-pies", help="Parse and store PIES feed files")
    p_pies.add_argument("files", nargs="+")
    p_pies.add_argument("--sync", action="store_true", help="Push stored products to Shopify")
    p_aces = sub.add_parser("ingest-aces", help="Parse and store ACES feed files")
    p_aces.add_argument("files", nargs="+")
    sub.add_parser("sync", help="Push all unsynced products to Shopify")
    args = parser.parse_args()

    level_name = "DEBUG" if settings.DEBUG else "INFO"
    # Ensure logs directory exists under data
    logs_dir: Path = Path(settings.DATA_DIR) / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    log_config = build_log_config(level_name, str(logs_dir / "partsfeed.log"))
    # Configure now to ensure any early logs use our formatter.
    logging.config.dictConfig(log_config)

    if args.command == "ingest-pies":
        _ingest("pies", args.files, args.sync)
    elif args.command == "ingest-aces":
        _ingest("aces", args.files, False)
    elif args.command == "sync":
        _sync()
    else:
        _serve(log_config, level_name)


if __name__ == "__main__":
    main()
