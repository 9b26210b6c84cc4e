# app.py
import logging
import os
from pathlib import Path
from typing import Dict, Any
from dotenv import load_dotenv

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.templating import Jinja2Templates

import meeting_api
import oauth_google
from date_utils import format_datetime
from errors import InvalidInput, MeetingError

load_dotenv(override=True)

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


app = FastAPI(title="Meeting Scheduler")

templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))
templates.env.filters["display_datetime"] = format_datetime

# demo: in-memory sessions (use Redis in prod)
SESSIONS: Dict[str, Dict[str, Any]] = {}

meeting_api.init(templates=templates)
oauth_google.init(sessions=SESSIONS)

app.include_router(oauth_google.router)
app.include_router(meeting_api.router)


@app.exception_handler(MeetingError)
async def meeting_error_handler(request: Request, exc: MeetingError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(exc.to_dict(), status_code=exc.status_code)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    fields = sorted({str(err["loc"][-1]) for err in exc.errors() if err.get("loc")})
    return await meeting_error_handler(
        request, InvalidInput(f"Invalid or missing parameter: {', '.join(fields) or 'request'}")
    )


@app.get("/health")
def health():
    return {
        "ok": True,
        "routes": {
            "home": "/",
            "instant_meeting": "/api/instant-meeting",
            "schedule_meeting": "/api/schedule-meeting",
            "time_slots": "/api/time-slots",
            "oauth_start": "/auth/google",
            "oauth_callback": "/google/callback",
        },
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "app:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "7860")),
        reload=os.getenv("RELOAD", "0") == "1",
    )
