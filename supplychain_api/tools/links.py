"""Resolution of linked-record fields and attachment media.

A linked field value looks like ``[{"table_id": "tbl...", "record_ids": ["rec..."]}]``.
Linked rows are fetched one at a time in listed order. Each row is searched
by candidate field names first and then, because upstream column names are
not stable, by scanning every field.
"""

import base64
import logging
from typing import Any, Callable, Dict, Iterable, List, Optional

from supplychain_api.clients.feishu import FeishuClient
from supplychain_api.errors import MediaDownloadError
from supplychain_api.models.contract import LinkItem
from supplychain_api.tools.normalize import pick_file_token, to_text

logger = logging.getLogger(__name__)

DEFAULT_IMAGE_FIELDS = ["产品图", "产品图片", "主图", "图片", "参考图"]


def extract_link_items(value: Any) -> List[LinkItem]:
    """Return the link references in a value (a single link dict or a list of them)."""
    items: List[LinkItem] = []

    def push_if_link(obj: Any):
        if not isinstance(obj, dict):
            return
        table_id = obj.get("table_id")
        record_ids = obj.get("record_ids")
        if isinstance(table_id, str) and isinstance(record_ids, list) and record_ids:
            items.append({"table_id": table_id, "record_ids": [str(r) for r in record_ids]})

    if isinstance(value, list):
        for item in value:
            push_if_link(item)
    else:
        push_if_link(value)
    return items


def _first_in_linked_records(
    client: FeishuClient,
    app_token: str,
    links: List[LinkItem],
    candidate_keys: Iterable[str],
    extract: Callable[[Any], Optional[str]],
) -> Optional[str]:
    candidate_keys = list(candidate_keys)
    for link in links:
        for record_id in link["record_ids"]:
            fields: Dict[str, Any] = client.get_record(app_token, link["table_id"], record_id)

            for key in candidate_keys:
                if key in fields:
                    found = extract(fields[key])
                    if found:
                        return found

            for value in fields.values():
                found = extract(value)
                if found:
                    return found
    return None


def resolve_text_from_linked_records(
    client: FeishuClient, app_token: str, links: List[LinkItem], candidate_keys: Iterable[str]
) -> str:
    """First non-empty text found in the linked records, or ""."""
    return _first_in_linked_records(client, app_token, links, candidate_keys, to_text) or ""


def resolve_attachment_from_linked_records(
    client: FeishuClient,
    app_token: str,
    links: List[LinkItem],
    candidate_keys: Iterable[str] = DEFAULT_IMAGE_FIELDS,
) -> Optional[str]:
    """First attachment file token found in the linked records, or None."""
    return _first_in_linked_records(client, app_token, links, candidate_keys, pick_file_token)


def download_media_to_data_url(client: FeishuClient, file_token: str) -> str:
    """Download an attachment and return it as a base64 ``data:`` URL."""
    response = client.download_media(file_token)
    if not response.is_success:
        raise MediaDownloadError(response.status_code, response.text)

    content_type = response.headers.get("content-type") or "application/octet-stream"
    encoded = base64.b64encode(response.content).decode("ascii")
    logger.info(f"Downloaded media {file_token} ({len(response.content)} bytes, {content_type})")
    return f"data:{content_type};base64,{encoded}"
