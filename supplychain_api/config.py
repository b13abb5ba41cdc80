"""Configuration settings loaded from environment variables."""

from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Feishu open platform (self-built app credentials)
    feishu_app_id: str = ""
    feishu_app_secret: str = ""
    feishu_base_url: str = "https://open.feishu.cn/open-apis"
    feishu_timeout_seconds: float = 60.0

    # Bitable base (app token) and the four mirrored tables
    feishu_app_token: str = ""
    feishu_base_id: str = ""
    feishu_contract_table_id: str = ""
    feishu_sku_table_id: str = ""
    feishu_supplier_table_id: str = ""
    feishu_quotation_table_id: str = ""

    # Contract table field names
    feishu_contract_attachment_field: str = "合同附件"
    feishu_product_image_field: str = "产品图"
    feishu_sku_link_field: str = "SKU"
    feishu_sku_image_field: str = "产品图"

    # Upload destination; parent node defaults to the app token
    feishu_upload_parent_type: str = "bitable_file"
    feishu_upload_parent_node: str = ""

    # Fallbacks when lookup fields have not been filled in
    buyer_contact_name: str = ""
    buyer_contact_phone: str = ""
    sign_place: str = "临安"

    # Shared secret expected in the x-webhook-token header (disabled when empty)
    webhook_token: str = ""

    # PDF rendering
    font_dir: str = "public/fonts"
    wkhtmltopdf_path: Optional[str] = None
    pdf_settle_delay_ms: int = 200

    # Google Gemini (primary)
    gemini_api_key: str = ""
    gemini_model: str = "gemini-2.5-flash"

    # AWS Bedrock (fallback when Gemini rate limited)
    aws_access_key_id: Optional[str] = None
    aws_secret_access_key: Optional[str] = None
    aws_region: str = "us-east-1"
    bedrock_model_id: str = "anthropic.claude-3-sonnet-20240229-v1:0"

    # LLM Provider: "gemini", "bedrock", or "auto" (tries gemini first, falls back to bedrock)
    llm_provider: str = "auto"

    cors_origins: str = "http://localhost:3000,http://localhost:5173"

    def has_feishu_credentials(self) -> bool:
        """Check if Feishu app credentials are configured."""
        return bool(self.feishu_app_id and self.feishu_app_secret)

    def has_bedrock_credentials(self) -> bool:
        """Check if AWS Bedrock credentials are configured."""
        return bool(self.aws_access_key_id and self.aws_secret_access_key)

    def has_gemini_credentials(self) -> bool:
        """Check if Google Gemini credentials are configured."""
        return bool(self.gemini_api_key)

    @property
    def base_id(self) -> str:
        """Base used by the record/field mirror endpoints."""
        return self.feishu_base_id or self.feishu_app_token

    @property
    def upload_parent_node(self) -> str:
        return self.feishu_upload_parent_node or self.feishu_app_token


settings = Settings()


def get_settings() -> Settings:
    """FastAPI dependency returning the process-wide settings."""
    return settings
