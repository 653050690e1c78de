"""
Staff Cab API: staff taxi bookings for Derriford Hospital.

HTTP layer over the application use cases. Run with:
    uvicorn staffcab.api.main:app --reload
"""

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from staffcab.api.budget_router import router as budget_router
from staffcab.api.dependencies import get_settings, get_zone_clusters
from staffcab.api.router import router

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # An ambiguous zone cluster file must stop the server, not the first Smart Pack request
    clusters = get_zone_clusters()
    logger.info("Loaded %d zone clusters", len(clusters.clusters))
    yield


app = FastAPI(
    title="Staff Cab API",
    description="Staff taxi bookings, budget approvals and Smart Pack shared routes",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(get_settings().allowed_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router)
app.include_router(budget_router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("staffcab.api.main:app", host="0.0.0.0", port=int(os.getenv("PORT", "3001")))
