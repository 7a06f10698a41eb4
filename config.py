import os
from functools import lru_cache
from pathlib import Path


class Settings:
    def __init__(
        self,
        database_url: str,
        timezone: str,
        jwt_secret: str,
        jwt_algorithm: str,
        jwt_ttl_hours: int,
        hf_api_token: str,
        hf_model: str,
        classifier_timeout_secs: float,
        summary_workers: int,
    ) -> None:
        self.database_url = database_url
        self.timezone = timezone
        self.jwt_secret = jwt_secret
        self.jwt_algorithm = jwt_algorithm
        self.jwt_ttl_hours = jwt_ttl_hours
        self.hf_api_token = hf_api_token
        self.hf_model = hf_model
        self.classifier_timeout_secs = classifier_timeout_secs
        self.summary_workers = summary_workers


def _ensure_data_dir() -> Path:
    root = Path(os.getenv("EXPENSES_DATA_DIR", "./data")).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    data_dir = _ensure_data_dir()
    default_db = data_dir / "expenses.db"
    database_url = os.getenv("EXPENSES_DATABASE_URL", f"sqlite:///{default_db}")
    timezone = os.getenv("EXPENSES_TIMEZONE", "Europe/Berlin")
    jwt_secret = os.getenv(
        "EXPENSES_JWT_SECRET",
        "3f0c9a6e52b14d7c8e21a9b0d4f6c3e18a7b5d2c9e0f4a1b6c8d3e5f7a9b1c2d",
    )
    jwt_algorithm = os.getenv("EXPENSES_JWT_ALGORITHM", "HS256")
    jwt_ttl_hours = int(os.getenv("EXPENSES_JWT_TTL_HOURS", "1"))
    hf_api_token = os.getenv("EXPENSES_HF_API_TOKEN", "")
    hf_model = os.getenv("EXPENSES_HF_MODEL", "typeform/distilbert-base-uncased-mnli")
    classifier_timeout_secs = float(
        os.getenv("EXPENSES_CLASSIFIER_TIMEOUT_SECS", "5")
    )
    summary_workers = max(1, int(os.getenv("EXPENSES_SUMMARY_WORKERS", "6")))
    return Settings(
        database_url=database_url,
        timezone=timezone,
        jwt_secret=jwt_secret,
        jwt_algorithm=jwt_algorithm,
        jwt_ttl_hours=jwt_ttl_hours,
        hf_api_token=hf_api_token,
        hf_model=hf_model,
        classifier_timeout_secs=classifier_timeout_secs,
        summary_workers=summary_workers,
    )
