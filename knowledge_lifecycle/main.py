# knowledge_lifecycle/main.py

from dotenv import load_dotenv
from fastapi import FastAPI

from knowledge_lifecycle.config import get_settings
from knowledge_lifecycle.logging_config import configure_logging
from knowledge_lifecycle.routers import admin_lifecycle_router

load_dotenv()

_settings = get_settings()
configure_logging(json_format=_settings.LOG_FORMAT == "json", level=_settings.LOG_LEVEL)

app = FastAPI(title="Knowledge Lifecycle Engine")

# /v1/admin/lifecycle/* admin operations
app.include_router(admin_lifecycle_router)


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------

@app.get("/health")
def health() -> dict:
    return {"status": "ok", "service": "knowledge-lifecycle", "environment": _settings.ENVIRONMENT}
