import sys
import logging
from pathlib import Path
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from config.database import init_db
from config.logging_config import setup_logging
from config.settings import settings
from middlewares.maintenance_middleware import MaintenanceMiddleware
from utils.exceptions import CheckpointError
from utils.lock_utils import build_lock_manager

# registers the blinker listeners
import api.audit.audit_service  # noqa: F401

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(settings.LOG_LEVEL)
    if settings.AUTO_CREATE_TABLES:
        init_db()
    app.state.locks = build_lock_manager(settings)

    scheduler = None
    if settings.RECONCILE_WORKER_ENABLED:
        from api.tasks.reconcile_worker import start_reconcile_scheduler
        scheduler = start_reconcile_scheduler(app.state.locks)

    logger.info(f"✅ {settings.APP_NAME} started ({settings.ENVIRONMENT})")
    yield

    if scheduler is not None:
        scheduler.shutdown(wait=False)


app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)

# CORS: use our parsed list
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["Content-Type"],
)
#middlewares
app.add_middleware(MaintenanceMiddleware)


@app.exception_handler(CheckpointError)
async def checkpoint_error_handler(request: Request, exc: CheckpointError):
    if exc.status_code >= 500:
        logger.error(f"❌ {request.method} {request.url.path}: {exc.code} {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.to_dict()})


#load all routes
def load_routes(directory: Path):
    import importlib.util
    routers = []
    for item in sorted(directory.rglob("*_routes.py")):
        spec = importlib.util.spec_from_file_location(item.stem, str(item))
        module = importlib.util.module_from_spec(spec)
        sys.modules[item.stem] = module
        spec.loader.exec_module(module)
        if hasattr(module, "router"):
            routers.append(module.router)
    return routers

for router in load_routes(Path(__file__).parent / "api"):
    app.include_router(router, prefix="/api")


@app.get("/health")
def health_check():
    return {"status": "ok"}


# ✅ Add this block to run locally
if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=settings.PORT or 8000, reload=settings.DEBUG)
