"""
Turn a RenderDocument into PDF bytes: paginate, then replay the plan onto a
reportlab surface page by page. Uses the disk cache when the same document and
settings were rendered before.
"""
from __future__ import annotations

import logging
import time

from cache.disk_cache import get_cached_list_pdf, set_cached_list_pdf
from models import Audience, LayoutSettings, RenderDocument

from .fonts import FontMetrics
from .layout import PagePlan, paginate
from .pdf_surface import PdfSurface

logger = logging.getLogger(__name__)


def list_filename(audience: Audience) -> str:
    return f"{audience.value}-list.pdf"


def plan_document(document: RenderDocument, settings: LayoutSettings) -> PagePlan:
    metrics = FontMetrics(settings.font, settings.text_size)
    return paginate(document, metrics, settings.columns)


def render_plan(plan: PagePlan, surface: PdfSurface) -> None:
    """Replay placements in order; one surface page per plan page."""
    for index, page in enumerate(plan.pages):
        if index > 0:
            surface.new_page()
        for placement in page:
            surface.draw_text(placement.x, placement.y, placement.text, placement.style, placement.align)


def build_list_pdf(document: RenderDocument, settings: LayoutSettings, use_cache: bool = True) -> bytes:
    """
    Build PDF bytes for one audience document. Raises RenderLimitError before
    anything is drawn when the document exceeds the line or page caps.
    """
    document_dict = document.model_dump(mode="json")
    settings_dict = settings.model_dump(mode="json")
    if use_cache:
        cached = get_cached_list_pdf(document_dict, settings_dict)
        if cached is not None:
            logger.info("[pdf] cache hit title=%r", document.title)
            return cached

    t0 = time.perf_counter()
    plan = plan_document(document, settings)
    surface = PdfSurface(settings.font, settings.text_size, plan.page_width, plan.page_height, title=document.title)
    render_plan(plan, surface)
    pdf_bytes = surface.save()
    elapsed = time.perf_counter() - t0
    logger.info(
        "[pdf] render duration=%.2fs pages=%d lines=%d bytes=%d",
        elapsed, surface.page_count, plan.line_count, len(pdf_bytes),
    )

    if use_cache:
        set_cached_list_pdf(document_dict, settings_dict, pdf_bytes)
    return pdf_bytes
