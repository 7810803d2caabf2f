from pydantic import BaseModel
import os


def _status_api_default() -> str:
    trigger = os.getenv("TASK_SYNC_TRIGGER_API", "").strip().rstrip("/")
    return f"{trigger}/status" if trigger else ""


class Settings(BaseModel):
    api_token: str = os.getenv("API_TOKEN", "change-me")
    task_sync_trigger_api: str = os.getenv("TASK_SYNC_TRIGGER_API", "").strip()
    task_sync_status_api: str = os.getenv("TASK_SYNC_STATUS_API", "").strip() or _status_api_default()
    # Static override; when empty the URL is read from the lookup table (first cell of the primary column)
    task_sync_webhook_url: str = os.getenv("TASK_SYNC_WEBHOOK_URL", "").strip()
    task_sync_webhook_table: str = os.getenv("TASK_SYNC_WEBHOOK_TABLE", "集成流URL")
    records_api_url: str = os.getenv("RECORDS_API_URL", "").strip()
    http_timeout_seconds: float = float(os.getenv("HTTP_TIMEOUT_SECONDS", 30))
    poll_interval_ms: int = int(os.getenv("POLL_INTERVAL_MS", 5000))
    poll_min_attempts: int = int(os.getenv("POLL_MIN_ATTEMPTS", 12))

settings = Settings()
