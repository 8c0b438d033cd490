# scheduler.py

import time
import logging

import schedule
import requests

from lifegroups.config import settings

# Base URL for the FastAPI app (override via .env if needed)
BASE_URL = settings.API_BASE_URL.rstrip("/")

# Configure structured logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)


# ─── Generic API Caller ──────────────────────────────────────────────────────
def call_api(method: str, endpoint: str, label: str, timeout: int = 1800):
    """
    Calls BASE_URL + endpoint and logs success / failure.
    """
    url = f"{BASE_URL}{endpoint}"
    try:
        resp = requests.request(method, url, timeout=timeout)
        if resp.ok:
            logging.info("%s succeeded (status %s)", label, resp.status_code)
        else:
            logging.warning("%s returned %s: %s", label, resp.status_code, resp.text)
    except requests.RequestException as e:
        logging.error("Exception during %s: %s", label, e, exc_info=True)


# ─── Job Schedule Definitions ────────────────────────────────────────────────
# method, endpoint, label; all run daily at NIGHTLY_REFRESH_TIME (HH:MM, 24-hour)
JOBS = [
    ("POST", "/api/refresh",              "Groups + membership snapshot refresh"),
    ("GET",  "/api/aggregate-attendance", "Aggregate attendance cache warm-up"),
]


def schedule_jobs(at: str = settings.NIGHTLY_REFRESH_TIME):
    for method, endpoint, label in JOBS:
        schedule.every().day.at(at).do(call_api, method, endpoint, label)
        logging.info("Scheduled '%s' daily at %s", label, at)


# ─── Entrypoint ─────────────────────────────────────────────────────────────
def main():
    schedule_jobs()
    logging.info("Scheduler started. Waiting for jobs…")
    while True:
        schedule.run_pending()
        time.sleep(60)  # wake up every minute and check


if __name__ == "__main__":
    main()
