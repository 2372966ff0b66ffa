"""
Routing contract shared by the host stages.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict

REL_SUCCESS = "success"
REL_FAILURE = "failure"


@dataclass(frozen=True)
class RoutedItem:
    """
    One output item and the relationship it is routed to.

    Attributes:
        relationship: REL_SUCCESS or REL_FAILURE.
        payload: Encoded image bytes.
        attributes: Item metadata (e.g. face index, rectangle).
    """
    relationship: str
    payload: bytes
    attributes: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_success(self) -> bool:
        return self.relationship == REL_SUCCESS


# Receives each routed item, e.g. to hand it to the next stage.
ItemSink = Callable[[RoutedItem], None]
