"""
Canonical tender model.

Provides a clean interface between the remote tender payload and the
discovery engine. Tenders are immutable once parsed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from tenderdesk.core.urgency import URGENT_WINDOW, is_urgent

from .parsing import coerce_str_list, normalize_whitespace, parse_timestamp


class TenderPayloadError(ValueError):
    """Remote payload cannot be turned into a Tender."""
    pass


@dataclass(frozen=True)
class Tender:
    """A published procurement opportunity, as sent by the tender service."""

    id: str
    title: str
    published_date: datetime
    closing_date: datetime

    description: str = ""
    buyer: str = ""

    # Classification
    industry_category: str = ""
    province: str | None = None

    # Attachments and provenance
    document_links: tuple[str, ...] = field(default_factory=tuple)
    source: str = ""
    source_url: str = ""

    created_at: datetime | None = None

    def is_urgent(self, now: datetime, window: timedelta = URGENT_WINDOW) -> bool:
        """Closing within ``window`` of ``now`` (or already closed)."""
        return is_urgent(self.closing_date, now, window)

    def is_expired(self, now: datetime) -> bool:
        return self.closing_date < now

    def days_until_close(self, now: datetime) -> int:
        """Days left until closing, a partial day counting as one; negative once closed."""
        return -((now - self.closing_date) // timedelta(days=1))

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Tender":
        """Build a Tender from a service payload.

        Accepts ``tender_id`` or ``id`` as the identifier and snake_case
        or camelCase field names.

        Raises:
            TenderPayloadError: If the id or either date is missing/unparseable
        """
        if not isinstance(data, dict):
            raise TenderPayloadError(f"Tender payload must be an object, got {type(data).__name__}")

        def pick(*keys: str) -> Any:
            for key in keys:
                if data.get(key) is not None:
                    return data[key]
            return None

        tender_id = pick("tender_id", "id", "tenderId")
        if tender_id is None or str(tender_id).strip() == "":
            raise TenderPayloadError("Tender payload has no id")

        published = parse_timestamp(pick("published_date", "publishedDate"))
        closing = parse_timestamp(pick("closing_date", "closingDate"))
        if published is None or closing is None:
            raise TenderPayloadError(f"Tender {tender_id} has missing or invalid dates")

        province = normalize_whitespace(pick("province")) or None

        return cls(
            id=str(tender_id).strip(),
            title=normalize_whitespace(pick("title")),
            description=str(pick("description") or "").strip(),
            buyer=normalize_whitespace(pick("buyer")),
            industry_category=normalize_whitespace(pick("industry_category", "industryCategory")),
            province=province,
            published_date=published,
            closing_date=closing,
            document_links=tuple(coerce_str_list(pick("document_links", "documentLinks"))),
            source=normalize_whitespace(pick("source")),
            source_url=str(pick("source_url", "sourceUrl") or "").strip(),
            created_at=parse_timestamp(pick("created_at", "createdAt")),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to the service's wire shape (ISO timestamps)."""
        return {
            "tender_id": self.id,
            "title": self.title,
            "description": self.description,
            "buyer": self.buyer,
            "industry_category": self.industry_category,
            "province": self.province,
            "published_date": self.published_date.isoformat(),
            "closing_date": self.closing_date.isoformat(),
            "document_links": list(self.document_links),
            "source": self.source,
            "source_url": self.source_url,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
