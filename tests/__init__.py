import os
import tempfile

# Point the app at a throwaway data dir before partsfeed.config is imported.
os.environ["DATA_DIR"] = tempfile.mkdtemp(prefix="partsfeed-tests-")
os.environ["SYNC_TO_SHOPIFY"] = "false"
os.environ["KEEP_UPLOADS"] = "false"
os.environ.pop("SHOPIFY_STORE_DOMAIN", None)
os.environ.pop("SHOPIFY_ADMIN_TOKEN", None)
