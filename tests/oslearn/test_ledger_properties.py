"""Property-based tests for the contributors ledger.

Testing Configuration:
- Library: Hypothesis (Python)
- Minimum iterations: 100 per property test
"""

import string

from hypothesis import given, settings, strategies as st

from oslearn.ledger import ContributorEntry, ContributorLedger, parse, serialize


identities = st.text(
    alphabet=string.ascii_letters + string.digits + "-",
    min_size=1,
    max_size=39,
)
display_names = st.text(alphabet=string.ascii_letters + " -'.", max_size=40)
dates = st.dates().map(lambda d: d.isoformat())

entries = st.builds(
    ContributorEntry,
    identity=identities,
    display_name=display_names,
    date=dates,
)

prose_lines = st.text(alphabet=string.ascii_letters + " #*:!", max_size=60)


class TestLedgerRoundTrip:
    """Parsing a serialized ledger yields the same entries."""

    @settings(max_examples=100)
    @given(st.lists(entries, max_size=10))
    def test_parse_serialize_round_trip(self, items):
        assert parse(serialize(items)) == items

    @settings(max_examples=100)
    @given(st.lists(entries, max_size=10), entries)
    def test_append_then_contains(self, items, new_entry):
        ledger = ContributorLedger("# Contributors\n\n" + serialize(items))

        updated = ContributorLedger(ledger.append(new_entry))

        assert updated.contains(new_entry.identity)
        assert updated.entries[-1] == new_entry
        assert updated.entries[:-1] == ledger.entries


class TestAppendPreservesText:
    """Appending never rewrites what was already there."""

    @settings(max_examples=100)
    @given(st.lists(prose_lines, max_size=8), entries)
    def test_existing_lines_kept_in_order(self, lines, new_entry):
        raw = "\n".join(lines)

        updated = ContributorLedger(raw).append(new_entry)

        assert updated.startswith(raw.rstrip())
        assert updated.endswith(new_entry.to_line() + "\n")
