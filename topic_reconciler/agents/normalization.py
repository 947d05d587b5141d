"""
Text Normalizer.

Cleans raw topic strings (web search results, document extractions, model
drafts) into a canonical comparable form and rejects strings that cannot be
topics.
"""

import logging
import re
from typing import Any, List, Optional, Tuple

logger = logging.getLogger(__name__)


# Leading list markers: "1.", "2)", "1.2.", "1.2 ", bullets, dashes, "a)", "(b)"
_LIST_MARKER = re.compile(
    r"^\s*(?:"
    r"\d+(?:\.\d+)*[.)](?!\d)"  # 1.  2)  1.2.
    r"|\d+(?:\.\d+)+(?=\s)"     # 1.2 Title
    r"|[-•*–—·▪►>]+"            # bullets and dashes
    r"|\(?[A-Za-z]\)"           # a)  (b)
    r")\s*"
)
_MARKDOWN_HEADER = re.compile(r"^\s*#+\s*")
_MARKDOWN_BOLD = re.compile(r"\*\*|__")
_CITATION = re.compile(r"\[\d+(?:\s*[,\-]\s*\d+)*\]")
_WHITESPACE = re.compile(r"\s+")
_URL = re.compile(r"(?:https?://|ftp://|www\.)\S+", re.IGNORECASE)

REJECT_NOT_A_STRING = "not_a_string"
REJECT_TOO_SHORT = "too_short"
REJECT_TOO_LONG = "too_long"
REJECT_CONTAINS_URL = "contains_url"
REJECT_NO_ALPHABETIC = "no_alphabetic"


class TextNormalizer:
    """
    Rule-based topic cleaner.

    Pure and idempotent: normalize(normalize(x)) == normalize(x).
    """

    def __init__(self, min_length: int = 5, max_length: int = 200):
        """
        Initialize normalizer.

        Args:
            min_length: Shortest accepted topic (characters, after cleaning)
            max_length: Longest accepted topic (characters, after cleaning)
        """
        self.min_length = min_length
        self.max_length = max_length

    def normalize(self, raw: List[Any]) -> List[str]:
        """
        Clean a list of raw topic strings, dropping rejected ones.

        Args:
            raw: Raw topic strings

        Returns:
            Cleaned topics, input order preserved
        """
        kept, _ = self.normalize_with_rejections(raw)
        return kept

    def normalize_with_rejections(self, raw: List[Any]) -> Tuple[List[str], List[Tuple[Any, str]]]:
        """
        Clean a list of raw topics and report what was rejected and why.

        Returns:
            (kept, rejected) where rejected holds (raw_item, reason) tuples
        """
        kept = []
        rejected = []

        for item in raw:
            reason = self.rejection_reason(item)
            if reason:
                rejected.append((item, reason))
                logger.debug(f"Rejected topic {item!r}: {reason}")
            else:
                kept.append(self.clean(item))

        if rejected:
            logger.info(f"Normalized {len(raw)} topics: kept {len(kept)}, rejected {len(rejected)}")

        return kept, rejected

    def normalize_one(self, raw: Any) -> Optional[str]:
        """Clean a single topic. Returns None if it is rejected."""
        if self.rejection_reason(raw):
            return None
        return self.clean(raw)

    def rejection_reason(self, raw: Any) -> Optional[str]:
        """Return why a raw item would be rejected, or None if it is accepted."""
        if not isinstance(raw, str):
            return REJECT_NOT_A_STRING

        cleaned = self.clean(raw)

        if _URL.search(cleaned):
            return REJECT_CONTAINS_URL
        if not any(ch.isalpha() for ch in cleaned):
            return REJECT_NO_ALPHABETIC
        if len(cleaned) < self.min_length:
            return REJECT_TOO_SHORT
        if len(cleaned) > self.max_length:
            return REJECT_TOO_LONG

        return None

    @staticmethod
    def clean(text: str) -> str:
        """
        Strip markers and collapse whitespace until the text stops changing.
        Running to a fixpoint is what makes normalize() idempotent.
        """
        current = text
        while True:
            cleaned = _clean_once(current)
            if cleaned == current:
                return cleaned
            current = cleaned


def _clean_once(text: str) -> str:
    text = _CITATION.sub("", text)
    text = _MARKDOWN_BOLD.sub("", text)
    text = _MARKDOWN_HEADER.sub("", text)
    text = _LIST_MARKER.sub("", text)
    return _WHITESPACE.sub(" ", text).strip()


# Design Rationale and Trade-offs:
#
# 1. Why clean to a fixpoint?
#    - Stripping one marker can expose another ("1. - Limits")
#    - Running to a fixpoint makes clean(clean(x)) == clean(x)
#    - Trade-off: A few extra regex passes per topic
#
# 2. Why reject instead of truncate over-long topics?
#    - A 200+ character "topic" is usually a pasted paragraph
#    - Trade-off: A genuinely long title is dropped and reported
#
# 3. Why regexes instead of an LLM cleanup pass?
#    - Deterministic and free
#    - Trade-off: Unusual list markers survive
