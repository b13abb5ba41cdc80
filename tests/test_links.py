"""Tests for linked-record and media resolution."""

import base64
from unittest.mock import MagicMock

import pytest

from supplychain_api.clients.feishu import FeishuClient
from supplychain_api.errors import MediaDownloadError
from supplychain_api.tools.links import (
    download_media_to_data_url,
    extract_link_items,
    resolve_attachment_from_linked_records,
    resolve_text_from_linked_records,
)


def make_client(records):
    """MagicMock client whose get_record serves ``records[(table_id, record_id)]``."""
    client = MagicMock(spec=FeishuClient)
    client.get_record.side_effect = lambda app, table_id, record_id: records[(table_id, record_id)]
    return client


class TestExtractLinkItems:
    """Tests for extract_link_items."""

    def test_single_link_object(self):
        value = {"table_id": "tblSku", "record_ids": ["rec1", "rec2"]}
        assert extract_link_items(value) == [{"table_id": "tblSku", "record_ids": ["rec1", "rec2"]}]

    def test_array_of_links_skips_other_elements(self):
        value = [
            {"table_id": "tblA", "record_ids": ["r1"]},
            "plain text",
            {"text": "no link"},
            {"table_id": "tblB", "record_ids": [2]},
        ]
        assert extract_link_items(value) == [
            {"table_id": "tblA", "record_ids": ["r1"]},
            {"table_id": "tblB", "record_ids": ["2"]},
        ]

    @pytest.mark.parametrize(
        "value",
        [
            None,
            "tblSku",
            {"table_id": "tblSku"},
            {"record_ids": ["rec1"]},
            {"table_id": "tblSku", "record_ids": []},
            {"table_id": 123, "record_ids": ["rec1"]},
            [],
        ],
    )
    def test_non_links_yield_empty_list(self, value):
        assert extract_link_items(value) == []


class TestResolveText:
    """Tests for resolve_text_from_linked_records."""

    def test_candidate_field_wins(self):
        client = make_client({("tblQ", "r1"): {"备注": "其它", "付款条件": "月结30天"}})
        links = [{"table_id": "tblQ", "record_ids": ["r1"]}]

        assert resolve_text_from_linked_records(client, "app", links, ["付款条件"]) == "月结30天"

    def test_falls_back_to_scanning_all_fields(self):
        client = make_client({("tblQ", "r1"): {"空": "", "账期说明": [{"text": "预付30%"}]}})
        links = [{"table_id": "tblQ", "record_ids": ["r1"]}]

        assert resolve_text_from_linked_records(client, "app", links, ["付款条件"]) == "预付30%"

    def test_stops_at_first_record_with_text(self):
        client = make_client(
            {
                ("tblQ", "r1"): {},
                ("tblQ", "r2"): {"付款条件": "月结60天"},
                ("tblQ", "r3"): {"付款条件": "never read"},
            }
        )
        links = [{"table_id": "tblQ", "record_ids": ["r1", "r2", "r3"]}]

        assert resolve_text_from_linked_records(client, "app", links, ["付款条件"]) == "月结60天"
        assert [c.args[2] for c in client.get_record.call_args_list] == ["r1", "r2"]

    def test_link_order_then_record_order(self):
        client = make_client(
            {("tblA", "a1"): {}, ("tblB", "b1"): {"数量单位": "套"}}
        )
        links = [
            {"table_id": "tblA", "record_ids": ["a1"]},
            {"table_id": "tblB", "record_ids": ["b1"]},
        ]

        assert resolve_text_from_linked_records(client, "app", links, ["数量单位"]) == "套"
        assert client.get_record.call_count == 2

    def test_empty_when_nothing_found(self):
        client = make_client({("tblA", "a1"): {"x": None}})
        links = [{"table_id": "tblA", "record_ids": ["a1"]}]

        assert resolve_text_from_linked_records(client, "app", links, ["数量单位"]) == ""
        assert resolve_text_from_linked_records(client, "app", [], ["数量单位"]) == ""


class TestResolveAttachment:
    """Tests for resolve_attachment_from_linked_records."""

    def test_candidate_then_scan(self):
        client = make_client(
            {
                ("tblSku", "s1"): {"产品图": [], "其它附件": [{"file_token": "scanTok"}]},
            }
        )
        links = [{"table_id": "tblSku", "record_ids": ["s1"]}]

        assert resolve_attachment_from_linked_records(client, "app", links, ["产品图"]) == "scanTok"

    def test_candidate_preferred(self):
        client = make_client(
            {
                ("tblSku", "s1"): {
                    "说明书": [{"file_token": "docTok"}],
                    "主图": [{"file_token": "imgTok"}],
                },
            }
        )
        links = [{"table_id": "tblSku", "record_ids": ["s1"]}]

        assert resolve_attachment_from_linked_records(client, "app", links, ["主图"]) == "imgTok"

    def test_none_when_no_token(self):
        client = make_client({("tblSku", "s1"): {"品名": "折叠桌"}})
        links = [{"table_id": "tblSku", "record_ids": ["s1"]}]

        assert resolve_attachment_from_linked_records(client, "app", links) is None


class TestDownloadMedia:
    """Tests for download_media_to_data_url."""

    def test_data_url(self, fake_feishu):
        client = fake_feishu.client()

        url = download_media_to_data_url(client, "imgToken1")

        prefix = "data:image/png;base64,"
        assert url.startswith(prefix)
        assert base64.b64decode(url[len(prefix):]) == b"\x89PNG\r\n\x1a\nfake-image"

    def test_failure_carries_status_and_body(self, fake_feishu):
        fake_feishu.add_media("denied", b"no permission", "text/plain", status=403)
        client = fake_feishu.client()

        with pytest.raises(MediaDownloadError) as exc_info:
            download_media_to_data_url(client, "denied")

        assert exc_info.value.status == 403
        assert "403" in str(exc_info.value)
        assert "no permission" in str(exc_info.value)
