import contextlib
import logging

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from flexbase.config import config
from flexbase.db.session import create_tables
from flexbase.errors import register_error_handlers
from flexbase.routers import register_routers
from flexbase.services.notification_service import NotificationService
from flexbase.services.upload_service import MEDIA_URL_PREFIX

logging.basicConfig(
    level=config.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("flexbase")


@contextlib.asynccontextmanager
async def lifespan(_app: FastAPI):
    await create_tables()
    logger.info("FlexBase started (%s)", config.ENVIRONMENT)
    yield


app = FastAPI(title="FlexBase", lifespan=lifespan)
app.state.notifier = NotificationService()

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

config.STORAGE_PATH.mkdir(parents=True, exist_ok=True)
app.mount(MEDIA_URL_PREFIX, StaticFiles(directory=config.STORAGE_PATH), name="uploads")

register_error_handlers(app)
register_routers(app)


@app.get("/api/health")
async def health():
    return {"success": True, "status": "ok"}


if __name__ == "__main__":
    uvicorn.run(app, host=config.FASTAPI_HOST, port=config.FASTAPI_PORT)
