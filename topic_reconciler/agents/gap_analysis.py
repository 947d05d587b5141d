"""
Gap Analyzer.

Asks the generative-text collaborator what a weakly matching target topic
fails to cover of a source topic. Best-effort: never raises.
"""

import json
import logging
import re
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Sequence, Tuple

from topic_reconciler.models.topic import Topic
from topic_reconciler.utils.llm import TextGenerationClient

logger = logging.getLogger(__name__)


GENERIC_GAP_PLACEHOLDER = "Detailed review needed to identify content gaps"

MAX_PROMPT_FIELD_CHARS = 300

_LINE_PREFIX = re.compile(r"^\s*(?:\d+[.)]|[-•*])\s*")


def _truncate(text: Optional[str], limit: int = MAX_PROMPT_FIELD_CHARS) -> str:
    text = " ".join((text or "").split())
    if len(text) <= limit:
        return text
    return text[:limit].rstrip() + "..."


def _construct_prompt(source: Topic, target: Topic, max_gaps: int) -> str:
    """Construct bounded gap-analysis prompt."""
    return f"""Compare these two educational topics.

COURSE TOPIC:
Title: {_truncate(source.text)}
Description: {_truncate(source.description) or "Not specified"}
Objectives: {_truncate(", ".join(source.learning_objectives or ())) or "Not specified"}

DOCUMENT TOPIC:
Title: {_truncate(target.text)}
Description: {_truncate(target.description) or "Not specified"}

Identify which aspects of the course topic are NOT covered by the document topic.
List at most {max_gaps} specific gaps, each under 20 words.

Respond in JSON:
{{
  "gaps": ["...", "..."]
}}"""


class GapAnalyzer:
    """
    Describes what a weak match is missing.

    On collaborator failure or a malformed answer it returns a single generic
    placeholder instead of raising, so gap analysis never fails a run.
    """

    def __init__(self, client: TextGenerationClient, max_gaps: int = 3):
        """
        Initialize gap analyzer.

        Args:
            client: Generative-text collaborator
            max_gaps: Maximum gaps returned per pair
        """
        self.client = client
        self.max_gaps = max_gaps

    def identify_gaps(self, source: Topic, target: Topic) -> List[str]:
        """
        Describe what target lacks relative to source.

        Returns:
            0 to max_gaps short strings, or [GENERIC_GAP_PLACEHOLDER] on failure
        """
        try:
            prompt = _construct_prompt(source, target, self.max_gaps)
            response_text = self.client.complete(prompt)
            gaps = self._parse_response(response_text)
        except Exception as e:
            logger.warning(f"Gap analysis failed for '{source.text}' vs '{target.text}': {e}")
            return [GENERIC_GAP_PLACEHOLDER]

        logger.debug(f"Identified {len(gaps)} gaps for '{source.text}'")
        return gaps

    def identify_gaps_many(
        self,
        pairs: Sequence[Tuple[Topic, Topic]],
        max_workers: int = 4
    ) -> List[List[str]]:
        """
        Run independent gap analyses concurrently.

        Returns:
            One gap list per pair, in input order
        """
        if not pairs:
            return []

        workers = max(1, min(max_workers, len(pairs)))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            results = list(executor.map(lambda pair: self.identify_gaps(*pair), pairs))

        logger.info(f"Gap analysis complete for {len(pairs)} weak matches")
        return results

    def _parse_response(self, response_text: str) -> List[str]:
        """
        Parse the collaborator's answer.

        Accepts {"gaps": [...]}, a bare JSON list, or plain text with one gap
        per line.

        Raises:
            ValueError: If the response is empty or structurally malformed
        """
        if response_text is None or not response_text.strip():
            raise ValueError("Empty gap analysis response")

        text = response_text.strip()

        if text.startswith("{") or text.startswith("["):
            data = json.loads(text)
            if isinstance(data, dict):
                data = data.get("gaps")
            if not isinstance(data, list):
                raise ValueError("Gap analysis response missing 'gaps' list")
            if not all(isinstance(item, str) for item in data):
                raise ValueError("Gap analysis response has non-string gaps")
            items = data
        else:
            items = [_LINE_PREFIX.sub("", line) for line in text.splitlines()]

        gaps = [item.strip() for item in items if item and item.strip()]
        return gaps[:self.max_gaps]


# Design Rationale and Trade-offs:
#
# 1. Why a placeholder instead of raising?
#    - Gaps annotate a weak match; losing them must not lose the report
#    - Trade-off: A broken collaborator shows up only in logs and placeholders
#
# 2. Why reject a gaps list with non-string items?
#    - A list of numbers or objects means the answer format broke
#    - Returning [] would claim "no gaps", which is a different statement
#    - Trade-off: One bad item discards the good ones next to it
#
# 3. Why truncate every prompt field?
#    - Descriptions come from extracted documents and can be huge
#    - Trade-off: The collaborator sees at most 300 characters per field
