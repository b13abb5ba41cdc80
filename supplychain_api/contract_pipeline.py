"""Contract PDF pipeline: record -> resolved values -> HTML -> PDF -> Drive -> record.

Every stage either returns a usable value or raises; nothing is written back
unless the upload succeeded. The product image is the one optional input and
its resolution errors are logged and skipped.
"""

import logging
import time
from typing import Any, Callable, Dict, Optional

import httpx

from supplychain_api.clients.feishu import FeishuClient
from supplychain_api.config import Settings
from supplychain_api.errors import ConfigurationError, FeishuAPIError, MediaDownloadError
from supplychain_api.models.contract import ContractContext, PublishedArtifact
from supplychain_api.pdf_generator import RendererFactory, build_contract_html, embedded_font_css
from supplychain_api.publisher import build_file_name, upload_pdf, write_back
from supplychain_api.tools.links import (
    download_media_to_data_url,
    extract_link_items,
    resolve_attachment_from_linked_records,
    resolve_text_from_linked_records,
)
from supplychain_api.tools.normalize import (
    fmt_date_cn,
    fmt_money_with_comma,
    pick_field,
    pick_file_token,
    to_text,
)

logger = logging.getLogger(__name__)

# Candidate column names on the contract ledger, most specific first
CONTRACT_NO_KEYS = ["合同号", "合同编号"]
SKU_KEYS = ["产品SKU", "SKU", "型号/规格"]
PRODUCT_NAME_KEYS = ["产品名称", "品名"]
SUPPLIER_NAME_KEYS = ["供应商名称", "供方"]
SUPPLIER_CONTACT_KEYS = ["供应商联系人", "联系人"]
SUPPLIER_PHONE_KEYS = ["供应商联系电话", "联系电话"]
BUYER_NAME_KEYS = ["采购方", "需方"]
BUYER_CONTACT_KEYS = ["采购方联系人"]
BUYER_PHONE_KEYS = ["采购方联系方式", "采购方联系电话"]
QTY_KEYS = ["数量", "采购数量"]
UNIT_PRICE_KEYS = ["出厂含税单价（元/台）", "出厂含税单价", "含税出厂单价", "含税单价"]
TOTAL_PRICE_KEYS = ["采购总价", "合同总价", "金额（元）", "金额"]
PLANNED_DELIVERY_KEYS = ["预计交货日期"]
REMARK_KEYS = ["产品备注", "备注", "产品说明"]
PAYMENT_TERMS_KEYS = ["付款条件", "付款方式", "账期"]
SIGN_DATE_KEYS = ["签订日期"]
QTY_UNIT_KEYS = ["数量单位"]
IMAGE_FALLBACK_KEYS = ["产品图片", "产品主图", "参考图", "图片"]
SKU_IMAGE_FALLBACK_KEYS = ["产品图片", "主图", "图片", "参考图"]

DEFAULT_QTY_UNIT = "台"


def _text(fields: Dict[str, Any], keys) -> str:
    return to_text(pick_field(fields, keys))


def require_contract_table(config: Settings):
    if not config.feishu_app_token or not config.feishu_contract_table_id:
        raise ConfigurationError("Missing FEISHU_APP_TOKEN / FEISHU_CONTRACT_TABLE_ID")


def resolve_payment_terms(
    client: FeishuClient, config: Settings, fields: Dict[str, Any], sku_value: Any = None
) -> str:
    """Direct text if present, otherwise follow the field's own link, otherwise the SKU link."""
    raw = pick_field(fields, PAYMENT_TERMS_KEYS)
    terms = to_text(raw)
    if terms:
        return terms
    links = extract_link_items(raw) or extract_link_items(sku_value)
    if not links:
        return ""
    return resolve_text_from_linked_records(client, config.feishu_app_token, links, PAYMENT_TERMS_KEYS)


def resolve_qty_unit(client: FeishuClient, config: Settings, sku_value: Any) -> str:
    links = extract_link_items(sku_value)
    unit = ""
    if links:
        unit = resolve_text_from_linked_records(client, config.feishu_app_token, links, QTY_UNIT_KEYS)
    return unit or DEFAULT_QTY_UNIT


def resolve_product_image(
    client: FeishuClient, config: Settings, fields: Dict[str, Any], sku_value: Any
) -> Optional[str]:
    """Data URL of the product image, or None when absent or unresolvable."""
    try:
        image_value = pick_field(fields, [config.feishu_product_image_field, *IMAGE_FALLBACK_KEYS])
        token = pick_file_token(image_value)

        if not token:
            links = extract_link_items(sku_value)
            if links:
                token = resolve_attachment_from_linked_records(
                    client,
                    config.feishu_app_token,
                    links,
                    [config.feishu_sku_image_field, *SKU_IMAGE_FALLBACK_KEYS],
                )
        if not token:
            return None
        return download_media_to_data_url(client, token)
    except (FeishuAPIError, MediaDownloadError, httpx.HTTPError) as e:
        logger.warning(f"Product image skipped: {e}")
        return None


def resolve_contract_context(
    client: FeishuClient,
    config: Settings,
    fields: Dict[str, Any],
    now: Callable[[], float] = time.time,
) -> ContractContext:
    """Map a contract ledger record onto the formatted template values."""
    planned_raw = pick_field(fields, PLANNED_DELIVERY_KEYS)
    sign_raw = pick_field(fields, SIGN_DATE_KEYS)
    sku_value = pick_field(fields, [config.feishu_sku_link_field, "产品SKU", "产品SKU/规格"])

    # Linked lookups run one after another: payment terms, then the SKU master
    payment_terms = resolve_payment_terms(client, config, fields, sku_value)
    qty_unit = resolve_qty_unit(client, config, sku_value)
    product_img = resolve_product_image(client, config, fields, sku_value)

    return ContractContext(
        contract_no=_text(fields, CONTRACT_NO_KEYS),
        sign_date=fmt_date_cn(sign_raw) if sign_raw else fmt_date_cn(now() * 1000),
        sign_place=config.sign_place,
        supplier_name=_text(fields, SUPPLIER_NAME_KEYS),
        supplier_contact=_text(fields, SUPPLIER_CONTACT_KEYS),
        supplier_phone=_text(fields, SUPPLIER_PHONE_KEYS),
        buyer_name=_text(fields, BUYER_NAME_KEYS),
        buyer_contact=_text(fields, BUYER_CONTACT_KEYS) or config.buyer_contact_name,
        buyer_phone=_text(fields, BUYER_PHONE_KEYS) or config.buyer_contact_phone,
        product_name=_text(fields, PRODUCT_NAME_KEYS),
        sku=_text(fields, SKU_KEYS),
        qty=_text(fields, QTY_KEYS),
        qty_unit=qty_unit,
        unit_price=fmt_money_with_comma(pick_field(fields, UNIT_PRICE_KEYS)),
        total_price=fmt_money_with_comma(pick_field(fields, TOTAL_PRICE_KEYS)),
        planned_delivery=fmt_date_cn(planned_raw) if planned_raw else "",
        product_remark=_text(fields, REMARK_KEYS),
        payment_terms=payment_terms,
        product_img_data_url=product_img,
        font_css=embedded_font_css(config.font_dir),
    )


def generate_contract_pdf(
    record_id: str,
    client: FeishuClient,
    config: Settings,
    renderer_factory: RendererFactory,
    now: Callable[[], float] = time.time,
) -> PublishedArtifact:
    """Generate, upload and attach the contract PDF for one ledger record."""
    require_contract_table(config)

    fields = client.get_record(config.feishu_app_token, config.feishu_contract_table_id, record_id)
    ctx = resolve_contract_context(client, config, fields, now=now)
    html = build_contract_html(ctx)

    with renderer_factory() as renderer:
        pdf = renderer.render(html)

    file_name = build_file_name(ctx.contract_no, ctx.sku)
    file_token = upload_pdf(client, config, pdf, file_name)
    write_back(client, config, record_id, file_token, file_name)

    logger.info(f"Contract {ctx.contract_no or record_id} published as {file_name}")
    return {"file_token": file_token, "file_name": file_name}
