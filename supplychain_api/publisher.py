"""Upload of generated contracts to Feishu Drive and write-back to the record."""

import json
import logging
import re
from typing import Optional

from supplychain_api.clients.feishu import FeishuClient
from supplychain_api.config import Settings
from supplychain_api.errors import UploadError

logger = logging.getLogger(__name__)

_UNSAFE_FILENAME_CHARS = re.compile(r'[\\/:*?"<>|]')


def build_file_name(contract_no: str, sku: str) -> str:
    """``<contract no>[_<sku>].pdf`` with path-unsafe characters replaced."""
    safe_contract_no = _UNSAFE_FILENAME_CHARS.sub("_", contract_no or "合同")
    safe_sku = _UNSAFE_FILENAME_CHARS.sub("_", sku or "")
    return f"{safe_contract_no}{'_' + safe_sku if safe_sku else ''}.pdf"


def upload_pdf(client: FeishuClient, config: Settings, pdf: bytes, file_name: str) -> str:
    """Upload the PDF as Bitable media and return its file token.

    The parent node defaults to the base itself; set FEISHU_UPLOAD_PARENT_NODE
    and FEISHU_UPLOAD_PARENT_TYPE when the app lacks edit rights there
    (Feishu error 1061004).
    """
    parent_type = config.feishu_upload_parent_type
    parent_node = config.upload_parent_node

    response = client.upload_media(pdf, file_name, parent_type, parent_node)
    try:
        data = response.json() if response.text else None
    except ValueError:
        data = {"raw": response.text}

    body = data if isinstance(data, dict) else {}
    file_token: Optional[str] = (body.get("data") or {}).get("file_token")
    if not response.is_success or not file_token:
        raise UploadError(
            f"Upload PDF failed: {response.status_code} code={body.get('code', '?')} "
            f"msg={body.get('msg', '')} parent_type={parent_type} "
            f"parent_node~={parent_node[:10]} data={json.dumps(data, ensure_ascii=False)}"
        )

    logger.info(f"Uploaded {file_name} ({len(pdf)} bytes) -> {file_token}")
    return file_token


def write_back(
    client: FeishuClient, config: Settings, record_id: str, file_token: str, file_name: str
) -> None:
    """Replace the record's attachment field with the uploaded contract."""
    client.update_record(
        config.feishu_app_token,
        config.feishu_contract_table_id,
        record_id,
        {config.feishu_contract_attachment_field: [{"file_token": file_token, "name": file_name}]},
    )
    logger.info(f"Wrote {file_name} back to record {record_id}")
