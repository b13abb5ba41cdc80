"""PDF Generator for export purchase contracts.

Renders the contract HTML with Jinja2 and prints it to an A4 PDF through
wkhtmltopdf (headless WebKit) via pdfkit. CJK text needs an embedded font,
so Noto Sans SC is inlined as ``@font-face`` data URLs.
"""

import base64
import logging
import os
import tempfile
from functools import lru_cache
from pathlib import Path
from typing import Callable, Optional

import pdfkit
from jinja2 import Environment, FileSystemLoader, select_autoescape

from supplychain_api.config import Settings
from supplychain_api.errors import RenderError
from supplychain_api.models.contract import ContractContext
from supplychain_api.tools.normalize import num
from supplychain_api.tools.rmb import rmb_uppercase

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).parent / "templates"
CONTRACT_TEMPLATE = "contract.html"

DEFAULT_QTY_UNIT = "台"
FONTS_READY_STATUS = "fonts-ready"

REGULAR_FONT = "NotoSansSC-Regular.ttf"
BOLD_FONT = "NotoSansSC-Bold.ttf"

PAGE_MARGIN = "12mm"

_env = Environment(
    loader=FileSystemLoader(str(TEMPLATE_DIR)),
    autoescape=select_autoescape(["html"]),
)


def _file_to_data_url(path: Path, mime: str) -> str:
    encoded = base64.b64encode(path.read_bytes()).decode("ascii")
    return f"data:{mime};base64,{encoded}"


@lru_cache(maxsize=None)
def embedded_font_css(font_dir: str) -> str:
    """@font-face rules for Noto Sans SC regular/bold, cached per font directory.

    Returns "" when the font files are not present.
    """
    regular = Path(font_dir) / REGULAR_FONT
    bold = Path(font_dir) / BOLD_FONT
    if not regular.is_file() or not bold.is_file():
        logger.warning(f"Contract fonts not found in {font_dir}; CJK text may not render")
        return ""

    faces = []
    for path, weight in ((regular, 400), (bold, 700)):
        faces.append(
            "@font-face{"
            'font-family:"NotoSansSC";'
            f'src:url("{_file_to_data_url(path, "font/ttf")}") format("truetype");'
            f"font-weight:{weight};"
            "font-style:normal;"
            "font-display:swap;"
            "}"
        )
    return "\n".join(faces)


def build_contract_html(ctx: ContractContext) -> str:
    """Render the six-section export purchase contract as a standalone HTML page.

    Every value is escaped by the template. The uppercase total is derived
    from ``total_price``; a missing quantity unit falls back to 台.
    """
    total = num(ctx.total_price)
    values = ctx.model_dump()
    values.update(
        total_upper=rmb_uppercase(total) if total else "",
        model_spec=f"{ctx.sku}（详见附件技术要求）" if ctx.sku else "（详见附件技术要求）",
        qty_unit=ctx.qty_unit.strip() or DEFAULT_QTY_UNIT,
        fonts_ready_status=FONTS_READY_STATUS,
    )
    return _env.get_template(CONTRACT_TEMPLATE).render(**values)


class PdfRenderer:
    """Headless HTML -> PDF rendering scoped to one request.

    Use as a context manager; the scratch directory holding the engine output
    is removed on exit whether or not rendering succeeded.
    """

    def __init__(self, wkhtmltopdf_path: Optional[str] = None, settle_delay_ms: int = 200):
        self.wkhtmltopdf_path = wkhtmltopdf_path
        self.settle_delay_ms = settle_delay_ms
        self._workdir: Optional[tempfile.TemporaryDirectory] = None

    def __enter__(self) -> "PdfRenderer":
        self._workdir = tempfile.TemporaryDirectory(prefix="contract-pdf-")
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    @property
    def options(self) -> dict:
        return {
            "page-size": "A4",
            "margin-top": PAGE_MARGIN,
            "margin-right": PAGE_MARGIN,
            "margin-bottom": PAGE_MARGIN,
            "margin-left": PAGE_MARGIN,
            "encoding": "UTF-8",
            "background": None,
            "enable-local-file-access": None,
            # Wait for document.fonts to settle, then a fixed delay for CJK rasterization
            "window-status": FONTS_READY_STATUS,
            "javascript-delay": str(self.settle_delay_ms),
            "quiet": "",
        }

    def render(self, html: str) -> bytes:
        if self._workdir is None:
            raise RenderError("PdfRenderer used outside of its context")

        output_path = os.path.join(self._workdir.name, "contract.pdf")
        try:
            configuration = (
                pdfkit.configuration(wkhtmltopdf=self.wkhtmltopdf_path)
                if self.wkhtmltopdf_path
                else None
            )
            pdfkit.from_string(html, output_path, options=self.options, configuration=configuration)
            with open(output_path, "rb") as f:
                pdf = f.read()
        except (OSError, ValueError) as e:
            raise RenderError(f"PDF rendering failed: {e}") from e

        logger.info(f"Rendered contract PDF ({len(pdf)} bytes)")
        return pdf

    def close(self):
        if self._workdir is not None:
            self._workdir.cleanup()
            self._workdir = None


RendererFactory = Callable[[], PdfRenderer]


def make_renderer_factory(config: Settings) -> RendererFactory:
    def factory() -> PdfRenderer:
        return PdfRenderer(
            wkhtmltopdf_path=config.wkhtmltopdf_path,
            settle_delay_ms=config.pdf_settle_delay_ms,
        )

    return factory
