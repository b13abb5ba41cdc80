"""Dashboard summary and AI supply-chain narrative endpoints."""

import logging
from typing import Dict, List

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from starlette.concurrency import run_in_threadpool

from supplychain_api.analytics import build_risk_context, build_risk_prompt, summarize_dashboard
from supplychain_api.clients.feishu import FeishuClient, get_feishu_client
from supplychain_api.config import Settings, get_settings
from supplychain_api.llm_provider import generate_text, has_llm_credentials

router = APIRouter(tags=["Insights"])
logger = logging.getLogger(__name__)


class GenerateRequest(BaseModel):
    prompt: str = ""


def _table_ids(config: Settings) -> Dict[str, str]:
    tables = {
        "skus": config.feishu_sku_table_id,
        "suppliers": config.feishu_supplier_table_id,
        "quotations": config.feishu_quotation_table_id,
        "contracts": config.feishu_contract_table_id,
    }
    missing = [name for name, table_id in tables.items() if not table_id]
    if not config.base_id or missing:
        raise HTTPException(
            status_code=500,
            detail=f"Server missing base or table ids: {', '.join(missing) or 'FEISHU_BASE_ID'}",
        )
    return tables


def _load_tables(client: FeishuClient, config: Settings) -> Dict[str, List[dict]]:
    return {
        name: client.list_records(config.base_id, table_id)
        for name, table_id in _table_ids(config).items()
    }


def _require_llm():
    if not has_llm_credentials():
        raise HTTPException(status_code=400, detail="Missing GEMINI_API_KEY in server env")


@router.post("/api/ai/generate")
async def ai_generate(request: GenerateRequest):
    """Free-form completion for the AI advisor page."""
    _require_llm()
    if not request.prompt.strip():
        raise HTTPException(status_code=400, detail="Missing prompt")

    text = await run_in_threadpool(generate_text, request.prompt)
    return {"text": text}


@router.get("/api/dashboard/summary")
async def dashboard_summary(
    config: Settings = Depends(get_settings),
    client: FeishuClient = Depends(get_feishu_client),
):
    """Headline figures for the overview page."""
    _table_ids(config)
    tables = await run_in_threadpool(_load_tables, client, config)
    return summarize_dashboard(
        tables["skus"], tables["suppliers"], tables["quotations"], tables["contracts"]
    )


@router.post("/api/ai/risk-report")
async def risk_report(
    config: Settings = Depends(get_settings),
    client: FeishuClient = Depends(get_feishu_client),
):
    """AI narrative over low stock, expiring contracts and suppliers."""
    _require_llm()
    _table_ids(config)
    tables = await run_in_threadpool(_load_tables, client, config)

    context = build_risk_context(tables["skus"], tables["suppliers"], tables["contracts"])
    logger.info(
        f"Risk report: {len(context['lowStock'])} low-stock SKUs, "
        f"{len(context['expiringContracts'])} expiring contracts"
    )
    text = await run_in_threadpool(generate_text, build_risk_prompt(context))
    return {"text": text, "context": context}
