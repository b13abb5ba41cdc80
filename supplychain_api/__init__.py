"""Supply-chain dashboard backend: Feishu Bitable mirror, analytics and contract PDFs."""
