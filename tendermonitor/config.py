import os
from pathlib import Path
from dotenv import load_dotenv

class Settings:
    # Paths
    ROOT_DIR: Path = Path(__file__).parent.parent.resolve()

    # Remote analysis service
    ANALYSIS_API_BASE_URL: str = "http://127.0.0.1:8000"
    ANALYSIS_USER_ID: str = "123"
    ANALYSIS_ORG_NAME: str = ""

    # Polling
    POLL_INTERVAL_SECONDS: float = 7.0  # Fixed cadence, no backoff or jitter
    FETCH_TIMEOUT_SECONDS: float = 30.0

    # Section detail cache
    CACHE_BACKEND: str = "memory"  # "memory" or "redis"
    CACHE_STALE_SECONDS: float = 5 * 60
    CACHE_RETENTION_SECONDS: float = 30 * 60

    # Settled monitors nobody streams from are released after this long unused
    MONITOR_IDLE_SECONDS: float = 30 * 60

    # Redis for the shared section cache
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0

    # Logging
    LOG_LEVEL: str = "INFO"

    # Environment
    ENV: str = "development"

    def __init__(self):
        self._load_env()

    def _load_env(self):
        """Load environment variables, falling back to the class defaults"""
        env_path = self.ROOT_DIR / '.env'
        if env_path.exists():
            load_dotenv(dotenv_path=env_path)
        else:
            load_dotenv()

        self.ANALYSIS_API_BASE_URL = os.getenv("ANALYSIS_API_BASE_URL", self.ANALYSIS_API_BASE_URL).rstrip("/")
        self.ANALYSIS_USER_ID = os.getenv("ANALYSIS_USER_ID", self.ANALYSIS_USER_ID)
        self.ANALYSIS_ORG_NAME = os.getenv("ANALYSIS_ORG_NAME", self.ANALYSIS_ORG_NAME)

        self.POLL_INTERVAL_SECONDS = float(os.getenv("POLL_INTERVAL_SECONDS", self.POLL_INTERVAL_SECONDS))
        self.FETCH_TIMEOUT_SECONDS = float(os.getenv("FETCH_TIMEOUT_SECONDS", self.FETCH_TIMEOUT_SECONDS))

        self.CACHE_BACKEND = os.getenv("CACHE_BACKEND", self.CACHE_BACKEND).lower()
        self.CACHE_STALE_SECONDS = float(os.getenv("CACHE_STALE_SECONDS", self.CACHE_STALE_SECONDS))
        self.CACHE_RETENTION_SECONDS = float(os.getenv("CACHE_RETENTION_SECONDS", self.CACHE_RETENTION_SECONDS))
        self.MONITOR_IDLE_SECONDS = float(os.getenv("MONITOR_IDLE_SECONDS", self.MONITOR_IDLE_SECONDS))
        if self.CACHE_BACKEND not in ("memory", "redis"):
            raise Exception(f"❌ Unsupported CACHE_BACKEND: {self.CACHE_BACKEND}")

        self.REDIS_HOST = os.getenv("REDIS_HOST", self.REDIS_HOST)
        self.REDIS_PORT = int(os.getenv("REDIS_PORT", self.REDIS_PORT))
        self.REDIS_DB = int(os.getenv("REDIS_DB", self.REDIS_DB))

        self.LOG_LEVEL = os.getenv("LOG_LEVEL", self.LOG_LEVEL).upper()
        self.ENV = os.getenv("ENV", self.ENV)

# Singleton instance
settings = Settings()
