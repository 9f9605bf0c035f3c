import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from outreach_flow.database import init_db
from outreach_flow.errors import ConfigurationError, NotFoundError
from outreach_flow.scheduler.jobs import start_scheduler, stop_scheduler
from outreach_flow.web.routes.campaigns import router as campaigns_router
from outreach_flow.web.routes.sequences import router as sequences_router
from outreach_flow.web.routes.ticks import router as ticks_router

logger = logging.getLogger(__name__)

app = FastAPI(title="Outreach Flow")

app.include_router(campaigns_router, prefix="/campaigns")
app.include_router(sequences_router, prefix="/sequences")
app.include_router(ticks_router, prefix="/ticks")


@app.exception_handler(ConfigurationError)
def configuration_error_handler(request: Request, exc: ConfigurationError):
    return JSONResponse(status_code=422, content={"detail": str(exc), "problems": exc.problems})


@app.exception_handler(NotFoundError)
def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.on_event("startup")
def on_startup():
    init_db()
    start_scheduler()


@app.on_event("shutdown")
def on_shutdown():
    stop_scheduler()
