"""
Code Extractor
==============
Pulls a single fenced block (```java ... ```, ```xml ... ```) out of
free-form generator text.

Contract:
    - Only the FIRST opening fence for the tag is considered.
    - The tag must be followed by whitespace: ```java does not open a
      ```javascript block.
    - The block ends at the first closing fence after the opening fence.
    - The interior is stripped; a blank interior counts as "no block".
    - Later fenced regions in the same response are ignored.
"""
import re
from typing import Optional

from tdd_agent.core.constants import FENCE, SOURCE_FENCE_TAG, MANIFEST_FENCE_TAG


def extract_fenced_block(response: Optional[str], fence_tag: str) -> Optional[str]:
    """
    Return the trimmed interior of the first ```<fence_tag> block, or None.

    Parameters
    ----------
    response : str | None
        Raw generator output.
    fence_tag : str
        Info string after the opening backticks (e.g. "java", "xml").
    """
    if not response:
        return None

    opening = re.search(re.escape(FENCE + fence_tag) + r"(?=\s)", response)
    if opening is None:
        return None
    start = opening.end()

    end = response.find(FENCE, start)
    if end == -1:
        return None

    block = response[start:end].strip()
    return block or None


def extract_java(response: Optional[str]) -> Optional[str]:
    return extract_fenced_block(response, SOURCE_FENCE_TAG)


def extract_xml(response: Optional[str]) -> Optional[str]:
    return extract_fenced_block(response, MANIFEST_FENCE_TAG)
