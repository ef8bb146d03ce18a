import os
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from rpg_chat.llm import LLM
from rpg_chat.routes import router
from rpg_chat.storage import PersistenceError, Storage

load_dotenv(Path(__file__).parent.parent / ".env")

DEFAULT_DATA_DIR = Path(__file__).parent.parent / "data"


def create_app(data_dir: Path | None = None, llm: LLM | None = None) -> FastAPI:
    """Build the API app.

    Args:
        data_dir: Storage directory. Defaults to $DATA_DIR, then ./data.
        llm:      LLM to use for every request. None builds a gateway client
                  from the current settings per request.
    """
    resolved = data_dir or Path(os.getenv("DATA_DIR", str(DEFAULT_DATA_DIR)))

    app = FastAPI(title="RPG Chat")
    app.state.storage = Storage(resolved)
    app.state.llm = llm
    app.state.controllers = {}  # session id -> controller with a turn in flight
    app.include_router(router, prefix="/api")

    @app.exception_handler(PersistenceError)
    async def persistence_error(request: Request, exc: PersistenceError):
        return JSONResponse({"error": str(exc)}, status_code=500)

    return app


# Default app instance for uvicorn (uses DATA_DIR env var or default)
app = create_app()
