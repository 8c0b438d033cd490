# lifegroups/config.py
from pathlib import Path
from dotenv import load_dotenv
from pydantic_settings import BaseSettings
from pydantic import Field
from typing import List
from zoneinfo import ZoneInfo

from lifegroups.analytics import constants

# Load local .env for development
load_dotenv(dotenv_path=Path(__file__).parent.parent / ".env")


class Settings(BaseSettings):
    # ─── Planning Center ───────────────────────────────────────────────────────
    PLANNING_CENTER_APP_ID: str = ""
    PLANNING_CENTER_SECRET: str = ""
    PLANNING_CENTER_BASE_URL: str = "https://api.planningcenteronline.com"
    PCO_GROUP_TYPE_ID: int = 429361
    FAMILY_GROUP_TAG_ID: str = "1252160"

    # ─── Database ───────────────────────────────────────────────────────────────
    DATABASE_URL: str = "postgresql+psycopg2://localhost:5432/lifegroups"

    # ─── Reporting ──────────────────────────────────────────────────────────────
    LOCAL_TIMEZONE: str = constants.DEFAULT_TIMEZONE
    CACHE_TTL_MINUTES: int = 60

    # Raw CSV string from env; normalized below to a list of tag names.
    GROUP_TYPE_TAGS: str = Field(default="Family,Stage of Life,Location Based")
    MEETING_DAY_TAGS: str = Field(default="Wednesday,Thursday")

    QUORUM_UNFILTERED: int = constants.QUORUM_UNFILTERED
    QUORUM_FILTERED: int = constants.QUORUM_FILTERED
    MEMBERSHIP_FALLBACK_MONTHS: int = constants.MEMBERSHIP_FALLBACK_MONTHS
    ATTENTION_LOOKBACK_DAYS: int = constants.ATTENTION_LOOKBACK_DAYS
    ATTENTION_BUFFER_HOURS: int = constants.ATTENTION_BUFFER_HOURS
    ASSUMED_EVENT_DURATION_HOURS: int = constants.ASSUMED_EVENT_DURATION_HOURS
    MEMBERSHIP_CHANGES_DAYS_BACK: int = 30

    # ─── Scheduler ──────────────────────────────────────────────────────────────
    API_BASE_URL: str = "http://127.0.0.1:8000"
    NIGHTLY_REFRESH_TIME: str = "02:00"

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


# single settings instance for the whole app
settings = Settings()


# ─── Normalization helpers (outside the class) ─────────────────────────────────
def _normalize_names(csv_value: str) -> List[str]:
    """
    Accepts a CSV of tag names; returns them trimmed, empties dropped.
    Example: "Family, Stage of Life," -> ["Family", "Stage of Life"]
    """
    out: List[str] = []
    for raw in csv_value.split(","):
        name = raw.strip()
        if name:
            out.append(name)
    return out


# ─── Public, module-level config your app can import ───────────────────────────
LOCAL_TZ: ZoneInfo = ZoneInfo(settings.LOCAL_TIMEZONE)
GROUP_TYPE_TAGS: List[str] = _normalize_names(settings.GROUP_TYPE_TAGS)
MEETING_DAY_TAGS: List[str] = _normalize_names(settings.MEETING_DAY_TAGS)
