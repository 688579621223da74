import os


def _flag(name, default):
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() not in {"0", "false", "no", "off", ""}


class Config:
    # DATABASE_URL set -> hosted PostgreSQL, otherwise a local SQLite file
    DATABASE_URL = os.getenv("DATABASE_URL")
    DATABASE_SSLMODE = os.getenv("DATABASE_SSLMODE", "require")
    DATABASE_POOL_SIZE = int(os.getenv("DATABASE_POOL_SIZE", 5))

    # Serverless hosts only allow writes under /tmp
    SQLITE_PATH = os.getenv("SQLITE_PATH") or (
        "/tmp/stock.db" if os.getenv("VERCEL") else "stock.db"
    )
    SQLITE_TIMEOUT = float(os.getenv("SQLITE_TIMEOUT", 20))

    SEED_CATALOG = _flag("SEED_CATALOG", True)

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    LOG_DIR = os.getenv("LOG_DIR")

    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")
    PORT = int(os.getenv("PORT", 3000))
