import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from msrc_reporting.core.config import settings
from msrc_reporting.rtp import routes as rtp_routes
from msrc_reporting.statistics import routes as statistics_routes
from msrc_reporting.trackers import routes as tracker_routes

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="mSRC Reporting API",
    description="Dashboards and statistics for enrolment, attendance, trackers and Right to Play.",
    version="1.0.0",
    debug=settings.DEBUG,
)

# CORS for the dashboard front end
frontend_urls = [url.strip() for url in settings.FRONTEND_URL.split(",") if url.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=frontend_urls,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Dict details are the response body; plain strings get the error envelope."""
    if isinstance(exc.detail, dict):
        body = exc.detail
    else:
        body = {"success": False, "error": str(exc.detail)}
    return JSONResponse(status_code=exc.status_code, content=body, headers=getattr(exc, "headers", None))


app.include_router(statistics_routes.router, tags=["Dashboard & Statistics"])
app.include_router(tracker_routes.router, tags=["Trackers"])
app.include_router(rtp_routes.router, tags=["Right to Play"])


@app.get("/health")
def health_check():
    return {"status": "ok"}


@app.get("/")
def root():
    return {"message": "API running successfully"}


if __name__ == "__main__":
    import os
    import uvicorn

    port = int(os.getenv("PORT", 8080))
    uvicorn.run(app, host="0.0.0.0", port=port)
