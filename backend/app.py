import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.responses import FileResponse
from fastapi.staticfiles import StaticFiles

from backend import registry
from backend.routes import router
from where_are_we import config

load_dotenv(Path(__file__).parent.parent / ".env")

logger = logging.getLogger(__name__)

STATIC_DIR = Path(__file__).parent / "static"
DEFAULT_DATA_DIR = Path(__file__).parent.parent / "data"


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    # Round timers are tasks on this loop; stop them before it closes
    registry.clear()
    logger.info("all sessions closed")


def create_app(data_dir: Path | None = None) -> FastAPI:
    resolved = data_dir or Path(os.getenv("DATA_DIR", str(DEFAULT_DATA_DIR)))
    config.init_config(resolved)
    logger.info("config directory: %s", resolved)

    app = FastAPI(title="Where Are We?", lifespan=lifespan)
    app.include_router(router, prefix="/api")

    # Built frontend, if one was copied next to the backend
    if STATIC_DIR.exists() and not os.getenv("VITE_DEV", ""):
        app.mount("/assets", StaticFiles(directory=STATIC_DIR / "assets"), name="assets")

        @app.get("/{path:path}")
        async def spa_fallback(path: str):
            return FileResponse(STATIC_DIR / "index.html")

    return app


# Default app instance for uvicorn (uses DATA_DIR env var or default)
app = create_app()
