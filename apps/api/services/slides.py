"""Viewer slide assembly from a proposal's stored slide order."""

from __future__ import annotations

from typing import Any, Dict, List, Optional
from urllib.parse import quote

from config import settings
from models.proposal import Proposal


def public_storage_url(bucket: str, path: str) -> str:
    base = settings.STORAGE_PUBLIC_URL.rstrip("/")
    return f"{base}/{bucket}/{quote(path.lstrip('/'))}"


def slide_image_url(image_path: str) -> str:
    return public_storage_url(settings.SLIDE_BUCKET, image_path)


def assemble_slides(proposal: Proposal) -> List[Dict[str, Any]]:
    """Ordered, enabled slides with resolved image URLs."""
    disabled = set(proposal.disabled_slides or [])
    slides: List[Dict[str, Any]] = []
    for entry in proposal.slide_order or []:
        if not isinstance(entry, dict):
            continue
        slide_id = str(entry.get("id") or "").strip()
        image_path = str(entry.get("image_path") or "").strip()
        if not slide_id or not image_path or slide_id in disabled:
            continue
        slides.append(
            {
                "id": slide_id,
                "label": entry.get("label") or f"Slide {len(slides) + 1}",
                "image_url": slide_image_url(image_path),
            }
        )
    return slides


def proposal_pdf_url(proposal: Proposal, allow_download: bool) -> Optional[str]:
    if not allow_download or not proposal.pdf_path:
        return None
    return public_storage_url(settings.PROPOSAL_BUCKET, proposal.pdf_path)
