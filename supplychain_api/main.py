from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging

from supplychain_api.config import settings
from supplychain_api.middleware import setup_production_middleware
from supplychain_api.routers import contracts, feishu, insights

# Configure logging - ensure output is flushed immediately
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler()],
    force=True,
)
logging.getLogger("uvicorn").setLevel(logging.INFO)
logging.getLogger("uvicorn.access").setLevel(logging.INFO)
logging.getLogger("uvicorn.error").setLevel(logging.INFO)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Supply Chain Dashboard API",
    description="Feishu Bitable mirror, dashboard analytics and contract PDF generation",
    version="1.0.0",
)

cors_origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

logger.info(f"CORS origins configured: {cors_origins}")

if not settings.webhook_token:
    logger.warning("WEBHOOK_TOKEN is not set; /api/feishu/print-contract accepts unauthenticated calls")

setup_production_middleware(app, config={"enable_logging": True})

app.include_router(contracts.router)
app.include_router(feishu.router)
app.include_router(insights.router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8787)
