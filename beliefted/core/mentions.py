"""
@username mention extraction.

A mention is ``@`` followed by 1-30 letters, digits, underscores or periods.
Whether a candidate counts depends on what precedes the ``@``, and that rule
is a named policy:

  WORD_CHAR   reject the match when the previous character is a letter,
              digit or underscore. ``foo@bar.com`` is not a mention, but
              ``first.-@host.org`` yields ``host.org`` and ``@anna.`` keeps
              its trailing period.
  WHITESPACE  accept the match only at the start of the text or after
              whitespace or an opening bracket/quote, and drop trailing
              periods from the name.

WORD_CHAR is the default.
"""

import enum
import re
from typing import Set

MENTION_PATTERN = re.compile(r"@([A-Za-z0-9_.]{1,30})")
WORD_CHAR = re.compile(r"[A-Za-z0-9_]")
OPENERS = "([{\"'"


class MentionBoundary(str, enum.Enum):
    WORD_CHAR = "word_char"
    WHITESPACE = "whitespace"


def _accepts(before: str, boundary: MentionBoundary) -> bool:
    if not before:
        return True
    if boundary is MentionBoundary.WHITESPACE:
        return before.isspace() or before in OPENERS
    return not WORD_CHAR.match(before)


def extract_mentions(text: str, boundary: MentionBoundary = MentionBoundary.WORD_CHAR) -> Set[str]:
    """Return the distinct usernames mentioned in text, case as typed"""
    if not text:
        return set()

    mentions = set()
    for match in MENTION_PATTERN.finditer(text):
        start = match.start()
        before = text[start - 1] if start > 0 else ""
        if not _accepts(before, boundary):
            continue
        username = match.group(1)
        if boundary is MentionBoundary.WHITESPACE:
            username = username.rstrip(".")
        if username:
            mentions.add(username)
    return mentions
