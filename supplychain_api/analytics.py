"""Dashboard analytics over the four mirrored Bitable tables.

Records are the raw ``{"record_id": ..., "fields": {...}}`` items returned by
the records endpoint. Field names follow the SKU master, supplier,
quotation and contract ledgers.
"""

import json
import re
import time
from datetime import datetime
from typing import Any, Dict, List, Optional

from supplychain_api.tools.normalize import MS_EPOCH_THRESHOLD, SHANGHAI, num, to_text

EXPIRY_WINDOW_MS = 30 * 24 * 60 * 60 * 1000
CHART_SKU_LIMIT = 8

ACTIVE_SUPPLIER_STATUS = "合作中"
PERFORMING_CONTRACT_STATUS = "履行中"

_YMD = re.compile(r"^(\d{4})[-/](\d{1,2})[-/](\d{1,2})")


def _fields(record: Dict[str, Any]) -> Dict[str, Any]:
    return record.get("fields") or {}


def _to_epoch_ms(value: Any) -> Optional[float]:
    """Epoch milliseconds for a date field value, or None if it is not a date."""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value if value > MS_EPOCH_THRESHOLD else value * 1000

    s = re.sub(r"\.0+$", "", to_text(value))
    if re.fullmatch(r"\d{13}", s):
        return float(s)
    if re.fullmatch(r"\d{10}", s):
        return float(s) * 1000

    m = _YMD.match(s)
    if not m:
        return None
    try:
        d = datetime(int(m.group(1)), int(m.group(2)), int(m.group(3)), tzinfo=SHANGHAI)
    except ValueError:
        return None
    return d.timestamp() * 1000


def is_low_stock(sku: Dict[str, Any]) -> bool:
    fields = _fields(sku)
    return num(fields.get("当前库存")) < num(fields.get("安全库存"))


def total_stock_value(skus: List[Dict[str, Any]], quotations: List[Dict[str, Any]]) -> float:
    """Sum of current stock x quoted tax-inclusive unit price, matched by SKU number."""
    quote_by_sku: Dict[str, Dict[str, Any]] = {}
    for quote in quotations:
        sku_no = to_text(_fields(quote).get("SKU编号"))
        if sku_no and sku_no not in quote_by_sku:
            quote_by_sku[sku_no] = _fields(quote)

    total = 0.0
    for sku in skus:
        fields = _fields(sku)
        quote = quote_by_sku.get(to_text(fields.get("SKU编号")), {})
        price = num(quote.get("含税单价") or quote.get("含税价格/台"))
        total += price * num(fields.get("当前库存"))
    return total


def summarize_dashboard(
    skus: List[Dict[str, Any]],
    suppliers: List[Dict[str, Any]],
    quotations: List[Dict[str, Any]],
    contracts: List[Dict[str, Any]],
) -> Dict[str, Any]:
    """Headline figures and the stock chart series for the overview page."""
    stock_value = total_stock_value(skus, quotations)
    chart = []
    for sku in skus[:CHART_SKU_LIMIT]:
        fields = _fields(sku)
        chart.append(
            {
                "name": to_text(fields.get("品名")) or to_text(fields.get("产品名称")) or "未知",
                "current": num(fields.get("当前库存")),
                "safety": num(fields.get("安全库存")),
            }
        )

    return {
        "total_stock_value": round(stock_value, 2),
        "total_stock_value_wan": f"¥{stock_value / 10000:.2f}w",
        "risk_sku_count": sum(1 for s in skus if is_low_stock(s)),
        "active_supplier_count": sum(
            1 for s in suppliers if to_text(_fields(s).get("状态")) == ACTIVE_SUPPLIER_STATUS
        ),
        "supplier_count": len(suppliers),
        "pending_contract_count": sum(
            1 for c in contracts if to_text(_fields(c).get("合同状态")) != PERFORMING_CONTRACT_STATUS
        ),
        "record_counts": {
            "skus": len(skus),
            "suppliers": len(suppliers),
            "quotations": len(quotations),
            "contracts": len(contracts),
        },
        "stock_chart": chart,
    }


def build_risk_context(
    skus: List[Dict[str, Any]],
    suppliers: List[Dict[str, Any]],
    contracts: List[Dict[str, Any]],
    now_ms: Optional[float] = None,
) -> Dict[str, Any]:
    """Low-stock SKUs, contracts expiring within 30 days (or already expired), suppliers."""
    now_ms = time.time() * 1000 if now_ms is None else now_ms

    expiring = []
    for contract in contracts:
        expiry = _to_epoch_ms(_fields(contract).get("到期日期"))
        if expiry is not None and expiry - now_ms < EXPIRY_WINDOW_MS:
            expiring.append(_fields(contract))

    return {
        "lowStock": [_fields(s) for s in skus if is_low_stock(s)],
        "expiringContracts": expiring,
        "suppliers": [_fields(s) for s in suppliers],
    }


RISK_REPORT_PROMPT = """你是一名资深供应链风险分析师。以下是来自飞书多维表格的供应链数据（JSON）：

{context}

请用中文输出一份简明的风险分析报告，包含：
1. 库存预警：列出低于安全库存的SKU及建议补货动作；
2. 合同风险：列出30天内到期或已到期的合同及处理建议；
3. 供应商风险：指出需要关注的供应商及原因；
4. 总体建议：三条以内的优先行动项。
只依据给定数据，不要编造数据中不存在的信息。"""


def build_risk_prompt(context: Dict[str, Any]) -> str:
    return RISK_REPORT_PROMPT.format(context=json.dumps(context, ensure_ascii=False, default=str))
