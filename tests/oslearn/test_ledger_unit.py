"""Unit tests for contributors ledger parsing and editing."""

import pytest

from oslearn.ledger import (
    ContributorEntry,
    ContributorLedger,
    append,
    contains,
    parse,
    parse_line,
    serialize,
)


LEDGER_TEXT = (
    "# Contributors\n"
    "\n"
    "Everyone who finished the course:\n"
    "\n"
    "- [@alice](https://github.com/alice) - Alice - 2024-01-01\n"
    "- [@bob-smith](https://github.com/bob-smith) - Bob Smith - 2024-02-14\n"
)


class TestParseLine:
    def test_parses_full_entry(self):
        entry = parse_line("- [@alice](https://github.com/alice) - Alice - 2024-01-01")

        assert entry == ContributorEntry(
            identity="alice", display_name="Alice", date="2024-01-01"
        )

    def test_name_containing_separator_keeps_date_last(self):
        entry = parse_line(
            "- [@carol](https://github.com/carol) - Carol - The Coder - 2024-03-01"
        )

        assert entry.display_name == "Carol - The Coder"
        assert entry.date == "2024-03-01"

    def test_entry_without_date(self):
        entry = parse_line("- [@dave](https://github.com/dave) - Dave")

        assert entry.identity == "dave"
        assert entry.display_name == "Dave"
        assert entry.date == ""

    @pytest.mark.parametrize(
        "line",
        [
            "# Contributors",
            "",
            "Everyone who finished the course:",
            "* [@alice](https://github.com/alice) - Alice - 2024-01-01",
            "- alice - 2024-01-01",
        ],
    )
    def test_non_entry_lines_return_none(self, line):
        assert parse_line(line) is None


class TestParse:
    def test_skips_headings_and_prose(self):
        entries = parse(LEDGER_TEXT)

        assert [e.identity for e in entries] == ["alice", "bob-smith"]

    def test_empty_text(self):
        assert parse("") == []

    def test_serialize_renders_one_line_per_entry(self):
        entries = [
            ContributorEntry(identity="alice", display_name="Alice", date="2024-01-01"),
            ContributorEntry(identity="bob", display_name="Bob", date="2024-01-02"),
        ]

        assert serialize(entries) == (
            "- [@alice](https://github.com/alice) - Alice - 2024-01-01\n"
            "- [@bob](https://github.com/bob) - Bob - 2024-01-02\n"
        )


class TestContains:
    def test_minimal_entry_line(self):
        ledger = ContributorLedger("- [@alice](...)")

        assert contains(ledger, "alice")
        assert not contains(ledger, "bob")

    def test_listed_identity_is_found(self):
        ledger = ContributorLedger(LEDGER_TEXT)

        assert ledger.contains("alice")
        assert contains(ledger, "bob-smith")

    def test_absent_identity(self):
        assert not ContributorLedger(LEDGER_TEXT).contains("zoe")

    def test_match_is_exact(self):
        ledger = ContributorLedger(LEDGER_TEXT)

        assert not ledger.contains("bob")
        assert not ledger.contains("Alice")

    def test_identity_in_prose_does_not_count(self):
        ledger = ContributorLedger("Thanks to @alice for the idea!\n")

        assert not ledger.contains("alice")


class TestAppend:
    def test_appends_after_last_line(self):
        ledger = ContributorLedger(LEDGER_TEXT)
        entry = ContributorEntry(identity="zoe", display_name="Zoe", date="2024-05-01")

        updated = ledger.append(entry)

        assert updated == LEDGER_TEXT + (
            "- [@zoe](https://github.com/zoe) - Zoe - 2024-05-01\n"
        )

    def test_preserves_all_existing_text_in_order(self):
        ledger = ContributorLedger(LEDGER_TEXT)

        updated = append(ledger, ContributorEntry(identity="zoe", display_name="Zoe"))

        assert updated.startswith(LEDGER_TEXT.rstrip())
        assert ContributorLedger(updated).contains("zoe")
        assert [e.identity for e in parse(updated)] == ["alice", "bob-smith", "zoe"]

    def test_trailing_blank_lines_are_collapsed(self):
        ledger = ContributorLedger("# Contributors\n\n\n")

        updated = ledger.append(ContributorEntry(identity="zoe", display_name="Zoe"))

        assert updated == "# Contributors\n- [@zoe](https://github.com/zoe) - Zoe - \n"

    def test_empty_ledger(self):
        entry = ContributorEntry(identity="zoe", display_name="Zoe", date="2024-05-01")

        assert ContributorLedger("").append(entry) == entry.to_line() + "\n"

    def test_append_does_not_deduplicate(self):
        ledger = ContributorLedger(LEDGER_TEXT)

        updated = ledger.append(
            ContributorEntry(identity="alice", display_name="Alice", date="2024-06-01")
        )

        assert [e.identity for e in parse(updated)].count("alice") == 2
