import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from dotenv import load_dotenv

# Environment must be loaded before the database engine reads DATABASE_URL
load_dotenv()

from fastapi import FastAPI  # noqa: E402
from fastapi.middleware.cors import CORSMiddleware  # noqa: E402
from fastapi.responses import PlainTextResponse  # noqa: E402
from fastapi.staticfiles import StaticFiles  # noqa: E402

from photo_gallery.database import engine, init_db  # noqa: E402
from photo_gallery.routers.maintenance import router as maintenance_router  # noqa: E402
from photo_gallery.routers.photos import router as photos_router  # noqa: E402

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"
logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO").upper(), format=LOG_FORMAT)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    # A metadata store that cannot be reached is fatal at startup
    await init_db()
    yield
    await engine.dispose()


app = FastAPI(title="Photo Gallery", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST", "DELETE"],
    allow_headers=["*"],
)

app.include_router(photos_router)
app.include_router(maintenance_router)

# Locally stored images are served by the app itself
if os.getenv("STORAGE_BACKEND", "filesystem").lower() in ("filesystem", ""):
    app.mount(
        "/media",
        StaticFiles(directory=os.getenv("STORAGE_ROOT", "./media"), check_dir=False),
        name="media",
    )


@app.get("/", response_class=PlainTextResponse)
async def health() -> str:
    return "API is running."


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "4000")))  # noqa: S104
