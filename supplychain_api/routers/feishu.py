from fastapi import APIRouter, Depends, HTTPException, Query
from starlette.concurrency import run_in_threadpool

from supplychain_api.clients.feishu import FeishuClient, get_feishu_client
from supplychain_api.config import Settings, get_settings

router = APIRouter(prefix="/api/feishu", tags=["Feishu"])


def _require_base(config: Settings) -> str:
    # The base is fixed server-side so callers cannot walk other bases
    if not config.base_id:
        raise HTTPException(status_code=500, detail="Server missing FEISHU_BASE_ID")
    return config.base_id


@router.get("/records")
async def list_records(
    table_id: str = Query("", alias="tableId"),
    config: Settings = Depends(get_settings),
    client: FeishuClient = Depends(get_feishu_client),
):
    """All records of a table in the configured base."""
    base_id = _require_base(config)
    if not table_id:
        raise HTTPException(status_code=400, detail="Missing tableId")

    items = await run_in_threadpool(client.list_records, base_id, table_id)
    return {"items": items}


@router.get("/fields")
async def list_fields(
    table_id: str = Query("", alias="tableId"),
    config: Settings = Depends(get_settings),
    client: FeishuClient = Depends(get_feishu_client),
):
    """Field metadata of a table, used for automatic column headers."""
    base_id = _require_base(config)
    if not table_id:
        raise HTTPException(status_code=400, detail="Missing tableId")

    return await run_in_threadpool(client.list_fields, base_id, table_id)
