"""Contract printing webhook, triggered by a Bitable automation button."""

import json
import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from supplychain_api.clients.feishu import FeishuClient, get_feishu_client
from supplychain_api.config import Settings, get_settings
from supplychain_api.contract_pipeline import generate_contract_pdf
from supplychain_api.pdf_generator import RendererFactory, make_renderer_factory

router = APIRouter(prefix="/api/feishu", tags=["Contracts"])
logger = logging.getLogger(__name__)

WEBHOOK_TOKEN_HEADER = "x-webhook-token"


def get_renderer_factory(config: Settings = Depends(get_settings)) -> RendererFactory:
    return make_renderer_factory(config)


async def _read_json(request: Request) -> Dict[str, Any]:
    """Request body as a dict; empty or malformed bodies read as {}."""
    raw = (await request.body()).decode("utf-8", errors="replace").strip()
    if not raw:
        return {}
    try:
        body = json.loads(raw)
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def _fail(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"ok": False, "error": message})


@router.post("/print-contract")
async def print_contract(
    request: Request,
    config: Settings = Depends(get_settings),
    client: FeishuClient = Depends(get_feishu_client),
    renderer_factory: RendererFactory = Depends(get_renderer_factory),
):
    """Generate the contract PDF for a record and attach it to the record."""
    if config.webhook_token and request.headers.get(WEBHOOK_TOKEN_HEADER) != config.webhook_token:
        logger.warning("Rejected print-contract call with a bad webhook token")
        return _fail(401, "Unauthorized")

    body = await _read_json(request)
    record_id = body.get("record_id") or body.get("recordId")
    if not record_id:
        return _fail(400, "Missing record_id")

    try:
        artifact = await run_in_threadpool(
            generate_contract_pdf, str(record_id), client, config, renderer_factory
        )
    except Exception as e:
        logger.exception(f"Contract generation failed for record {record_id}")
        return _fail(500, str(e))

    return {
        "ok": True,
        "record_id": record_id,
        "file_token": artifact["file_token"],
        "file_name": artifact["file_name"],
    }
