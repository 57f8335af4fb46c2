"""Contributors ledger parsing and editing.

The ledger is the CONTRIBUTORS.md file of the upstream repository. Every
learner who finishes the course gets one line:

    - [@octocat](https://github.com/octocat) - Mona Lisa - 2024-05-01

Lines that do not match that shape (headings, prose, blank lines) are kept
verbatim by append() and ignored by parse().
"""

import re
from typing import List, Optional

from pydantic import BaseModel, Field


PROFILE_URL = "https://github.com/{identity}"
FIELD_SEPARATOR = " - "

_ENTRY_PATTERN = re.compile(
    r"^- \[@(?P<identity>[^\]]+)\]\((?P<url>[^)]*)\)(?P<rest>.*)$"
)


class ContributorEntry(BaseModel):
    """One completion record in the ledger.

    Attributes:
        identity: GitHub login of the learner, unique across the ledger.
        display_name: Free-text name the learner chose.
        date: Completion date as written in the ledger.
    """

    identity: str = Field(..., min_length=1)
    display_name: str = ""
    date: str = ""

    def to_line(self) -> str:
        """Render the entry as a ledger line (without newline)."""
        link = f"- [@{self.identity}]({PROFILE_URL.format(identity=self.identity)})"
        return FIELD_SEPARATOR.join([link, self.display_name, self.date])


def parse_line(line: str) -> Optional[ContributorEntry]:
    """Parse a single ledger line, returning None for non-entry lines."""
    match = _ENTRY_PATTERN.match(line.rstrip("\r\n"))
    if match is None:
        return None

    rest = match.group("rest")
    if rest.startswith(FIELD_SEPARATOR):
        rest = rest[len(FIELD_SEPARATOR):]
    # The date is always the last field; names may contain the separator.
    display_name, separator, date = rest.rpartition(FIELD_SEPARATOR)
    if not separator:
        display_name, date = rest, ""

    return ContributorEntry(
        identity=match.group("identity"),
        display_name=display_name,
        date=date,
    )


def parse(raw_text: str) -> List[ContributorEntry]:
    """Parse all entries from the ledger text, in file order."""
    entries = []
    for line in raw_text.splitlines():
        entry = parse_line(line)
        if entry is not None:
            entries.append(entry)
    return entries


def serialize(entries: List[ContributorEntry]) -> str:
    """Render entries as ledger text, one line each."""
    return "".join(entry.to_line() + "\n" for entry in entries)


class ContributorLedger:
    """Domain view over the raw ledger text.

    Example:
        >>> ledger = ContributorLedger("# Contributors\\n")
        >>> ledger.contains("octocat")
        False
        >>> text = ledger.append(ContributorEntry(identity="octocat"))
    """

    def __init__(self, raw_text: str = ""):
        self.raw_text = raw_text
        self.entries = parse(raw_text)

    def contains(self, identity: str) -> bool:
        """Check whether an entry exists for the exact identity marker."""
        return any(entry.identity == identity for entry in self.entries)

    def append(self, entry: ContributorEntry) -> str:
        """Return the ledger text with one more entry line at the end.

        Trailing whitespace of the existing text is collapsed so the new
        line directly follows the last non-blank line. No reordering or
        deduplication happens here.
        """
        existing = self.raw_text.rstrip()
        line = entry.to_line()
        if not existing:
            return line + "\n"
        return f"{existing}\n{line}\n"


def contains(ledger: ContributorLedger, identity: str) -> bool:
    """Check whether the ledger already lists the identity."""
    return ledger.contains(identity)


def append(ledger: ContributorLedger, entry: ContributorEntry) -> str:
    """Return the updated ledger text with the entry appended."""
    return ledger.append(entry)
