import logging

import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

load_dotenv()

from routers import auth, calendar  # noqa: E402
from services.config import get_settings  # noqa: E402
from services.errors import CalendarConnectError  # noqa: E402

logger = logging.getLogger("calendar_connect")


def create_app() -> FastAPI:
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(title="Calendar Integration API")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(CalendarConnectError)
    async def _calendar_connect_error(request: Request, exc: CalendarConnectError):
        if exc.status_code >= 500:
            logger.error("%s %s -> %s: %s (%s)", request.method, request.url.path, exc.status_code, exc.message, exc.details)
        else:
            logger.info("%s %s -> %s: %s", request.method, request.url.path, exc.status_code, exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_payload())

    @app.exception_handler(RequestValidationError)
    async def _request_validation_error(request: Request, exc: RequestValidationError):
        details = [{"loc": list(e.get("loc", ())), "msg": e.get("msg"), "type": e.get("type")} for e in exc.errors()]
        logger.info("%s %s -> 400: invalid request %s", request.method, request.url.path, details)
        return JSONResponse(status_code=400, content={"error": "Invalid request body", "details": details})

    app.include_router(auth.router)
    app.include_router(calendar.router)

    @app.get("/", response_class=PlainTextResponse)
    async def root():
        return "Calendar Integration API is running!"

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run("server:app", host="0.0.0.0", port=get_settings().port)
