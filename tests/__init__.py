import os
import tempfile
from pathlib import Path

_TMP = Path(tempfile.mkdtemp(prefix="flexbase-tests-"))

os.environ.setdefault("DATABASE_URL", f"sqlite+aiosqlite:///{_TMP / 'unused.sqlite'}")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("STORAGE_PATH", str(_TMP / "uploads"))
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("LOG_LEVEL", "WARNING")
