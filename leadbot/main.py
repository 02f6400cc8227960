import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import PlainTextResponse

from leadbot.config import settings
from leadbot.dependencies import get_services
from leadbot.logging_config import get_logger, setup_logging
from leadbot.migrate import run_migrations
from leadbot.routers import webhook

setup_logging(settings.log_level)

logger = get_logger("main")


def _should_migrate() -> bool:
    if os.environ.get("PYTEST_CURRENT_TEST"):
        return False
    return settings.auto_migrate and settings.store_backend.strip().lower() == "postgres"


@asynccontextmanager
async def lifespan(_app: FastAPI):
    if _should_migrate():
        run_migrations()
    # Fail at startup on a malformed tenant file rather than on the first message.
    services = get_services()
    logger.info(
        "Lead bot started",
        extra={"context": {"tenants": len(services.registry), "pipeline": services.pipeline.order}},
    )
    yield


app = FastAPI(
    title="Lead Bot API",
    description="Multi-tenant WhatsApp webhook: handoff, FAQ, lead capture and AI replies",
    version="0.1.0",
    debug=settings.debug,
    lifespan=lifespan,
)

app.include_router(webhook.router)


@app.get("/", response_class=PlainTextResponse)
async def root():
    return "OK"


@app.get("/health")
async def health():
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn

    port = int(os.environ.get("PORT", "3000"))
    logger.info(f"Webhook listening on http://localhost:{port}")
    uvicorn.run("leadbot.main:app", host="0.0.0.0", port=port)
