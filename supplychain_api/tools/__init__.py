"""Value normalization, currency spelling and linked-record resolution."""

from supplychain_api.tools.normalize import (
    to_text,
    pick_field,
    num,
    fmt_money_with_comma,
    fmt_date_cn,
    pick_file_token,
)

from supplychain_api.tools.rmb import rmb_uppercase

from supplychain_api.tools.links import (
    extract_link_items,
    resolve_text_from_linked_records,
    resolve_attachment_from_linked_records,
    download_media_to_data_url,
)

__all__ = [
    # Normalization
    "to_text",
    "pick_field",
    "num",
    "fmt_money_with_comma",
    "fmt_date_cn",
    "pick_file_token",
    # Currency
    "rmb_uppercase",
    # Linked records and media
    "extract_link_items",
    "resolve_text_from_linked_records",
    "resolve_attachment_from_linked_records",
    "download_media_to_data_url",
]
