"""
Record Sources Module

Provides a unified paging interface over the ATS endpoints that hold
contacts to import:
- Vincere distribution lists (slice endpoint, zero-based slice index)
- Vincere talent pools (candidate search, offset pagination)

Each source implements the RecordSource abstract base class so the slice
walker can drive any of them the same way.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class SlicePage:
    """One page of raw upstream records."""
    records: List[Dict[str, Any]] = field(default_factory=list)
    last: bool = False
    total: Optional[int] = None  # Pool size hint, when the upstream reports one


class RecordSource(ABC):
    """Abstract base class for paginated record sources."""

    @abstractmethod
    async def fetch_page(self, index: int) -> SlicePage:
        """
        Fetch one page by zero-based index.

        Raises:
            UpstreamFetchError: on a non-2xx response or transport failure
        """
        pass

    @abstractmethod
    def get_source_name(self) -> str:
        """Source kind identifier (e.g., "distribution-list")."""
        pass


# Import concrete implementations for convenience
from .vincere import VincereSource, vincere_api_base
from .distribution_list_source import DistributionListSource
from .talent_pool_source import TalentPoolSource

__all__ = [
    "SlicePage",
    "RecordSource",
    "VincereSource",
    "vincere_api_base",
    "DistributionListSource",
    "TalentPoolSource",
]
