import logging
import time
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from .config import FRONTEND_URL, LOG_LEVEL, MIGRATIONS_DIR, UPLOADS_DIR
from .database import SessionLocal
from .errors import FaithBlissError
from .routes import include_modular_routers
from .services.notifications import ConnectionRegistry

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s %(message)s")
logger = logging.getLogger(__name__)

app = FastAPI(title="FaithBliss API")
app.state.push = ConnectionRegistry()
include_modular_routers(app)

UPLOADS_DIR.mkdir(parents=True, exist_ok=True)
app.mount("/uploads", StaticFiles(directory=str(UPLOADS_DIR)), name="uploads")

# Credentialed CORS needs explicit origins, never "*".
ALLOWED_ORIGINS = sorted(
    {
        FRONTEND_URL.rstrip("/"),
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    }
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(FaithBlissError)
def handle_domain_error(request: Request, exc: FaithBlissError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"[api] {request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.info(f"[api] {request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


def run_migrations() -> None:
    docker_dir = Path("/app/migrations")
    local_dir = Path(__file__).resolve().parents[1] / "migrations"

    if MIGRATIONS_DIR:
        migrations_dir = Path(MIGRATIONS_DIR)
    elif docker_dir.exists():
        migrations_dir = docker_dir
    else:
        migrations_dir = local_dir

    if not migrations_dir.exists() or not migrations_dir.is_dir():
        raise FileNotFoundError(
            "Migrations directory not found. Checked: "
            f"MIGRATIONS_DIR={MIGRATIONS_DIR or '<unset>'}, {docker_dir}, {local_dir}"
        )

    files = sorted([f.name for f in migrations_dir.iterdir() if f.is_file() and f.suffix == ".sql"])
    with SessionLocal() as db:
        for fname in files:
            sql = (migrations_dir / fname).read_text(encoding="utf-8")
            db.execute(text(sql))
        db.commit()
    logger.info(f"[db] applied {len(files)} migration file(s) from {migrations_dir}")


def wait_for_db(max_attempts: int = 20, delay_seconds: float = 1.5) -> None:
    last_err: Exception | None = None
    for _ in range(max_attempts):
        try:
            with SessionLocal() as db:
                db.execute(text("SELECT 1"))
                db.commit()
            return
        except OperationalError as exc:
            last_err = exc
            logger.warning("[db] database not ready, retrying")
            time.sleep(delay_seconds)
    if last_err:
        raise last_err


@app.on_event("startup")
def on_startup() -> None:
    wait_for_db()
    run_migrations()


@app.get("/api")
def api_info() -> dict[str, str]:
    return {"name": "FaithBliss API", "status": "running"}


@app.get("/api/health")
def health() -> dict[str, str]:
    return {"status": "ok"}
