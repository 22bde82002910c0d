"""Dashboard component models."""

from __future__ import annotations

from pydantic import BaseModel, Field


class ComponentItemRef(BaseModel):
    """Reference from a dashboard component to a collector item."""

    id: str
    collector_id: str


class DashboardComponent(BaseModel):
    """Dashboard composition entry with references keyed by kind slot."""

    id: str
    name: str = ""
    collector_items: dict[str, list[ComponentItemRef]] = Field(default_factory=dict)

    def remove_item(self, slot: str, item_id: str) -> bool:
        """Drop ``item_id`` from ``slot``; remove the slot when it empties."""
        refs = self.collector_items.get(slot)
        if refs is None:
            return False
        kept = [ref for ref in refs if ref.id != item_id]
        removed = len(kept) != len(refs)
        if kept:
            self.collector_items[slot] = kept
        else:
            del self.collector_items[slot]
        return removed
