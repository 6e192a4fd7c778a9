import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.config import API_TITLE, LOG_LEVEL
from app.routers import kpi_entries, members
from app.services.errors import KpiError
from app.services.supabase_client import get_supabase

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title=API_TITLE, version="0.1.0")


@app.on_event("startup")
def _log_startup():
    store = "supabase" if get_supabase() else "in-memory"
    logger.info("%s starting (store: %s), docs at /docs", API_TITLE, store)


@app.exception_handler(KpiError)
async def _kpi_error_handler(request: Request, exc: KpiError):
    logger.info("%s %s -> %d %s: %s", request.method, request.url.path, exc.status_code, exc.kind, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(kpi_entries.router, prefix="/api/kpi-entries", tags=["KPI Entries"])
app.include_router(members.router, prefix="/api/members", tags=["Members"])


@app.get("/")
async def root():
    return {"app": API_TITLE, "docs": "/docs"}
