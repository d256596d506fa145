import os

# Default settings for tests; individual tests build their own databases.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test_tablepoints.db")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/0")
os.environ.setdefault("SUPER_ADMIN_KEY", "test-admin-key")
os.environ.setdefault("DEFAULT_LANGUAGE", "zh")
os.environ.setdefault("TXN_RETRY_BACKOFF_MS", "5")
