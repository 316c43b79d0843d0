"""Link acceptance: manual links and bulk-applied suggestions."""

from src.links.service import ALREADY_LINKED, AcceptResult, AcceptSummary, LinkService

__all__ = ["ALREADY_LINKED", "AcceptResult", "AcceptSummary", "LinkService"]
