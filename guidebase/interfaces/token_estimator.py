"""Abstract base class for token-count estimation strategies.

The chunker sizes chunks through this interface so a real tokenizer can
replace the default character heuristic without touching the splitting
logic.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementation: HeuristicTokenEstimator (guidebase/services/ingestion/chunker.py)
class ITokenEstimator(ABC):
    """Contract for estimating how many model tokens a text occupies."""

    @abstractmethod
    def estimate_tokens(self, text: str) -> int:
        """Return an estimated token count for *text* (``>= 0``)."""

    @abstractmethod
    def get_estimator_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"chars_div_4"``."""
