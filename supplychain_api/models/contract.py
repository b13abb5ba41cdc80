"""Schemas for the contract PDF pipeline."""

from typing import List, Optional, TypedDict

from pydantic import BaseModel


class LinkItem(TypedDict):
    """Reference from a linked field to rows of another table."""

    table_id: str
    record_ids: List[str]


class PublishedArtifact(TypedDict):
    """The uploaded PDF as written back onto the contract record."""

    file_token: str
    file_name: str


class ContractContext(BaseModel):
    """Already-formatted values interpolated into the contract template."""

    contract_no: str = ""
    sign_date: str = ""
    sign_place: str = ""

    supplier_name: str = ""
    supplier_contact: str = ""
    supplier_phone: str = ""

    buyer_name: str = ""
    buyer_contact: str = ""
    buyer_phone: str = ""

    product_name: str = ""
    sku: str = ""

    qty: str = ""
    qty_unit: str = ""

    unit_price: str = ""
    total_price: str = ""

    planned_delivery: str = ""
    product_remark: str = ""
    payment_terms: str = ""

    product_img_data_url: Optional[str] = None
    font_css: str = ""
