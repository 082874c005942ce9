# pathway/main.py
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from pathway.config import get_settings
from pathway.errors import TransientStorageError
from pathway.storage import init_db
from pathway.services.container import get_services
from pathway.api.routes import router as api_router


logging.basicConfig(
    level=get_settings().log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Pathway API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # for dev; tighten in prod
    allow_methods=["*"],
    allow_headers=["*"],
    allow_credentials=True,
)


@app.on_event("startup")
def on_startup() -> None:
    init_db()
    get_services().dispatcher.start()


@app.on_event("shutdown")
def on_shutdown() -> None:
    get_services().dispatcher.stop()


@app.exception_handler(TransientStorageError)
def storage_unavailable(request: Request, exc: TransientStorageError) -> JSONResponse:
    logger.error("Storage unavailable for %s: %s", request.url.path, exc)
    return JSONResponse(
        status_code=503,
        content={"detail": "We're having trouble reaching our records. Please try again shortly."},
    )


@app.get("/")
def root():
    return {"message": "Pathway API is running"}


app.include_router(api_router, prefix="/api")
