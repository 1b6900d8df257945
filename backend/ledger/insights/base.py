"""
Insight building blocks.

Rules are small read-only strategies: each receives an ``InsightContext``
and returns one ``Insight``, a list of them, or ``None``. Insights are
computed on demand and never stored.
"""

from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field
from datetime import date
from typing import Any, Optional

SEVERITY_ORDER = {"critical": 0, "warning": 1, "info": 2}


@dataclass(frozen=True)
class Insight:
    id: str
    category: str
    severity: str
    title: str
    message: str
    data: dict = field(default_factory=dict)

    def to_dict(self):
        return asdict(self)


@dataclass(frozen=True)
class InsightContext:
    user: Any
    reference_date: date
    business: Optional[Any] = None

    @property
    def business_id(self):
        return self.business.id if self.business is not None else None


class InsightRule(ABC):
    """
    Base class for insight rules.

    Subclasses set ``id`` and ``scopes`` (``"personal"`` and/or
    ``"business"``) and implement ``evaluate``. Rules must not write.
    """

    id = None
    scopes = ("personal",)

    @abstractmethod
    def evaluate(self, context: InsightContext):
        """Return an ``Insight``, a list of insights, or ``None``."""

    def __repr__(self):
        return f"<{type(self).__name__} {self.id}>"
