"""Quick-reply button markup.

A response may end with a block of list items whose text is a bracketed
label, e.g.::

    Pick one:
    - [Yes]
    - [No]

Those trailing lines are rendered by clients as buttons instead of text.
This module holds the single-line grammar plus the two block-level
operations built on it: extracting the buttons and stripping the markup
from the persisted text. Both must agree on what the trailing block is.
"""

from __future__ import annotations

import re

from relay.streaming.events import Button

BUTTON_LINE_RE = re.compile(r"^[-*]\s*\[(.+?)\]\s*$")

# An incomplete line that may still turn into a button line once more
# text arrives: a list marker, optionally followed by an opening bracket.
BUTTON_PREFIX_RE = re.compile(r"^[-*]\s*(?:\[.*)?$")


def match_button_line(line: str) -> re.Match[str] | None:
    """Match one line against the button grammar, ignoring trailing whitespace."""
    return BUTTON_LINE_RE.match(line.rstrip())


def is_button_line(line: str) -> bool:
    return match_button_line(line) is not None


def could_start_button_line(partial: str) -> bool:
    """Whether an incomplete line might still become a button line."""
    return BUTTON_PREFIX_RE.match(partial) is not None


def extract_buttons(text: str) -> list[Button]:
    """Parse the trailing run of button lines in ``text``.

    Scans from the last line upward and stops at the first line that is not
    a button line. Returns an empty list when the last line does not match.
    """
    buttons: list[Button] = []
    for line in reversed(text.strip().split("\n")):
        match = match_button_line(line)
        if match is None:
            break
        label = match.group(1)
        buttons.insert(0, Button(label=label, value=label))
    return buttons


def strip_buttons(text: str) -> str:
    """Remove the trailing button block from a complete response.

    Trailing blank lines, then the run of button lines, then any blank lines
    before it are dropped. Text that does not end in button lines is returned
    unchanged.
    """
    lines = text.split("\n")
    end = len(lines)

    while end > 0 and not lines[end - 1].strip():
        end -= 1

    start = end
    while start > 0 and is_button_line(lines[start - 1]):
        start -= 1

    if start == end:
        return text

    while start > 0 and not lines[start - 1].strip():
        start -= 1

    return "\n".join(lines[:start])
