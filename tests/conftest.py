"""Pytest configuration and shared fixtures for the contract service tests."""

import json
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import unquote

import httpx
import pytest

from supplychain_api.clients.feishu import FeishuClient
from supplychain_api.config import Settings

APP_TOKEN = "bascnTestBase001"
CONTRACT_TABLE = "tblContract"
SKU_TABLE = "tblSku"
QUOTE_TABLE = "tblQuote"
SUPPLIER_TABLE = "tblSupplier"
WEBHOOK_SECRET = "hook-secret"

# 2025-12-24 00:00 Asia/Shanghai
SIGN_DATE_MS = 1766505600000

SAMPLE_CONTRACT_FIELDS = {
    "合同编号": "HT-2025-001",
    "产品SKU": "TB-100",
    "SKU": [{"table_id": SKU_TABLE, "record_ids": ["recSku1"]}],
    "产品名称": "折叠餐桌",
    "供应商名称": "杭州临安木业有限公司",
    "供应商联系人": "王经理",
    "供应商联系电话": "13800000000",
    "采购方": "浙江远航贸易有限公司",
    "采购方联系人": [{"name": "李采购"}],
    "采购方联系方式": [{"text": "0571-88888888"}],
    "数量": 500,
    "出厂含税单价": 24.69,
    "采购总价": 12345.67,
    "产品备注": "黑色款，带防滑脚垫",
    "付款条件": [{"table_id": QUOTE_TABLE, "record_ids": ["recQuote1"]}],
    "签订日期": SIGN_DATE_MS,
}

SAMPLE_SKU_FIELDS = {
    "SKU编号": "TB-100",
    "数量单位": "张",
    "产品图": [{"file_token": "imgToken1", "name": "tb100.png"}],
}

SAMPLE_QUOTE_FIELDS = {
    "SKU编号": "TB-100",
    "付款条件": "月结30天",
}


class FakeFeishu:
    """In-memory stand-in for the Feishu open API, served through httpx.MockTransport."""

    def __init__(self):
        self.records: Dict[Tuple[str, str], Dict[str, Any]] = {}
        self.tables: Dict[str, List[Dict[str, Any]]] = {}
        self.fields_meta: Dict[str, List[Dict[str, Any]]] = {}
        self.media: Dict[str, Tuple[int, bytes, str]] = {}
        self.upload_response: Tuple[int, Any] = (
            200,
            {"code": 0, "msg": "success", "data": {"file_token": "boxFileToken123"}},
        )
        self.calls: List[Tuple[str, str]] = []
        self.updates: List[Dict[str, Any]] = []
        self.uploads: List[bytes] = []
        self.token_requests = 0

    def add_record(self, table_id: str, record_id: str, fields: Dict[str, Any]):
        self.records[(table_id, record_id)] = dict(fields)

    def add_media(self, file_token: str, content: bytes, content_type: str = "image/png", status: int = 200):
        self.media[file_token] = (status, content, content_type)

    def client(self, **kwargs) -> FeishuClient:
        http = httpx.Client(transport=httpx.MockTransport(self.handler))
        return FeishuClient(
            app_id="cli_test",
            app_secret="secret",
            base_url="https://open.feishu.cn/open-apis",
            http_client=http,
            **kwargs,
        )

    def methods(self, method: str) -> List[str]:
        return [path for m, path in self.calls if m == method]

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = unquote(request.url.path).replace("/open-apis", "", 1)
        self.calls.append((request.method, path))
        parts = path.strip("/").split("/")

        if path == "/auth/v3/tenant_access_token/internal":
            self.token_requests += 1
            return httpx.Response(
                200, json={"code": 0, "tenant_access_token": "t-test", "expire": 7200}
            )

        if path == "/drive/v1/medias/upload_all":
            self.uploads.append(request.read())
            status, payload = self.upload_response
            return httpx.Response(status, json=payload)

        if parts[:3] == ["drive", "v1", "medias"] and parts[-1] == "download":
            status, content, content_type = self.media.get(parts[3], (404, b"not found", "text/plain"))
            return httpx.Response(status, content=content, headers={"content-type": content_type})

        if parts[:3] == ["bitable", "v1", "apps"]:
            table_id = parts[5]
            if parts[-1] == "fields":
                return httpx.Response(
                    200, json={"code": 0, "data": {"items": self.fields_meta.get(table_id, [])}}
                )
            if parts[-1] == "records":
                return self._list(table_id, request)

            record_id = parts[7]
            if request.method == "PUT":
                body = json.loads(request.read())
                self.updates.append({"table_id": table_id, "record_id": record_id, **body})
                return httpx.Response(200, json={"code": 0, "data": {"record": body}})

            fields = self.records.get((table_id, record_id))
            if fields is None:
                return httpx.Response(200, json={"code": 1254043, "msg": "RecordIdNotFound"})
            return httpx.Response(
                200,
                json={"code": 0, "data": {"record": {"record_id": record_id, "fields": fields}}},
            )

        return httpx.Response(404, json={"code": 404, "msg": "unknown path"})

    def _list(self, table_id: str, request: httpx.Request) -> httpx.Response:
        items = self.tables.get(table_id, [])
        page_size = int(request.url.params.get("page_size", "100"))
        start = int(request.url.params.get("page_token") or 0)
        page = items[start:start + page_size]
        has_more = start + page_size < len(items)
        data = {"items": page, "has_more": has_more, "total": len(items)}
        if has_more:
            data["page_token"] = str(start + page_size)
        return httpx.Response(200, json={"code": 0, "data": data})


class FakeRenderer:
    """Renderer double that records the HTML it was given."""

    def __init__(self, pdf: bytes = b"%PDF-1.4 fake contract", error: Optional[Exception] = None):
        self.pdf = pdf
        self.error = error
        self.html: Optional[str] = None
        self.entered = 0
        self.closed = 0

    def __call__(self):
        return self

    def __enter__(self):
        self.entered += 1
        return self

    def __exit__(self, exc_type, exc, tb):
        self.closed += 1
        return False

    def render(self, html: str) -> bytes:
        self.html = html
        if self.error:
            raise self.error
        return self.pdf


def build_settings(**overrides) -> Settings:
    values = dict(
        _env_file=None,
        feishu_app_id="cli_test",
        feishu_app_secret="secret",
        feishu_app_token=APP_TOKEN,
        feishu_contract_table_id=CONTRACT_TABLE,
        feishu_sku_table_id=SKU_TABLE,
        feishu_supplier_table_id=SUPPLIER_TABLE,
        feishu_quotation_table_id=QUOTE_TABLE,
        webhook_token=WEBHOOK_SECRET,
        font_dir="/nonexistent/fonts",
        gemini_api_key="",
    )
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def test_settings() -> Settings:
    return build_settings()


@pytest.fixture
def fake_feishu() -> FakeFeishu:
    """Backend seeded with one contract, its SKU master row and its quotation."""
    fake = FakeFeishu()
    fake.add_record(CONTRACT_TABLE, "recContract1", SAMPLE_CONTRACT_FIELDS)
    fake.add_record(SKU_TABLE, "recSku1", SAMPLE_SKU_FIELDS)
    fake.add_record(QUOTE_TABLE, "recQuote1", SAMPLE_QUOTE_FIELDS)
    fake.add_media("imgToken1", b"\x89PNG\r\n\x1a\nfake-image", "image/png")
    return fake


@pytest.fixture
def fake_renderer() -> FakeRenderer:
    return FakeRenderer()


@pytest.fixture
def contract_fields() -> Dict[str, Any]:
    return dict(SAMPLE_CONTRACT_FIELDS)
