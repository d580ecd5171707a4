import os

# Keep app imports from requiring a real Redis; must run before config is imported
os.environ["APP_ENV"] = "test"
os.environ.pop("REDIS_URL", None)
os.environ.setdefault("LOG_LEVEL", "WARNING")
