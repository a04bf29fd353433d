from fastapi import APIRouter
from tendermonitor.modules.analysis_monitor.router import router as analysis_monitor_router

api_v1_router = APIRouter()

# Feature module routers
api_v1_router.include_router(analysis_monitor_router, prefix="/monitor", tags=["Analysis Monitor"])
