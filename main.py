# main.py
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from lifegroups.db import create_tables
from lifegroups.routes import router as lifegroups_router

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    # snapshot table must exist before the first nightly refresh
    create_tables()
    yield


app = FastAPI(title="Life Groups Health Report", version="1.0.0", lifespan=lifespan)

# Healthcheck
@app.get("/healthz")
def healthcheck():
    return {"ok": True}

# ── Routers ───────────────────────────────────────────────────────────────────
app.include_router(lifegroups_router)
