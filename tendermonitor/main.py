from contextlib import asynccontextmanager

from fastapi import FastAPI

from tendermonitor.api.v1.router import api_v1_router
from tendermonitor.core.logging_config import setup_logger
from tendermonitor.modules.analysis_monitor.registry import get_monitor_registry


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logger()
    yield
    # Stop every poller before the event loop goes away
    await get_monitor_registry().shutdown()


app = FastAPI(title="Tender Analysis Monitor", lifespan=lifespan)
app.include_router(api_v1_router, prefix="/api/v1")
