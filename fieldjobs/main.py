import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# ✅ Import All API Routes
from fieldjobs.api.routes import (
    application,
    billing,
    credits,
    cron,
    health,
    jobs,
    profile,
    resume,
    subscriptions,
    upgrade_prompts,
)

# ✅ Import Core Services
from fieldjobs.core import config
from fieldjobs.core.error_handlers import attach_error_handlers
from fieldjobs.core.logging_config import setup_logging
from fieldjobs.db.init_db import init_db
from fieldjobs.db.migrate import run_migrations

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(config.LOG_LEVEL, config.LOG_DIR)
    if config.RUN_MIGRATIONS:
        run_migrations()
    else:
        init_db()
    logger.info("FieldJobs API started")
    yield


# ============================================
# ✅ FASTAPI APP INIT
# ============================================

app = FastAPI(title="FieldJobs API", lifespan=lifespan)

# ✅ CORS: only the configured frontends
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
    allow_headers=["Authorization", "Content-Type", "X-Cron-Secret"],
)

attach_error_handlers(app)


# ============================================
# ✅ REGISTER ALL ROUTERS
# ============================================

app.include_router(health.router)
app.include_router(profile.router)
app.include_router(jobs.router)
app.include_router(application.router)
app.include_router(upgrade_prompts.router)
app.include_router(subscriptions.router)
app.include_router(credits.router)
app.include_router(resume.router)
app.include_router(billing.router)
app.include_router(cron.router)


# ============================================
# ✅ ROOT ENDPOINT
# ============================================

@app.get("/")
def root():
    return {"status": "FieldJobs API running"}
