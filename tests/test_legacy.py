"""Tests for the legacy flat-file line codec.

Covers: 3.0 and 4.0 parsing, percent-decoding, VCS triple, field count and
numeric validation, encoding of fallback lines.
"""

from __future__ import annotations

import pytest

from activity_tracker import legacy
from activity_tracker.errors import ValidationError


class TestParseVersion3:
    def test_parses_seven_fields(self) -> None:
        record = legacy.parse_line(
            "1 1700000000000 3000 python /src/app.py /src laptop", "3.0"
        )
        assert record["kind"] == 1
        assert record["timestamp"] == 1_700_000_000_000
        assert record["duration"] == 3000
        assert record["language"] == "python"
        assert record["file"] == "/src/app.py"
        assert record["project"] == "/src"
        assert record["computer_id"] == "laptop"
        assert record["vcs_type"] == ""
        assert record["line"] == 0

    def test_percent_decodes_text_fields(self) -> None:
        record = legacy.parse_line(
            "0 1700000000000 10 c%2B%2B /my%20files/a.cpp /my%20files pc%3A1", "3.0"
        )
        assert record["language"] == "c++"
        assert record["file"] == "/my files/a.cpp"
        assert record["computer_id"] == "pc:1"

    def test_six_fields_rejected(self) -> None:
        with pytest.raises(ValidationError):
            legacy.parse_line("1 1700000000000 3000 python /src/app.py /src", "3.0")

    def test_unknown_kind_number_normalizes_to_open(self) -> None:
        record = legacy.parse_line("9 1700000000000 10 go a.go proj pc", "3.0")
        assert record["kind"] == 0


class TestParseVersion4:
    LINE = "2 1700000000000 5000 python /r/main.py /r laptop git:repo:main 10 5 0 0"

    def test_vcs_triple_and_position(self) -> None:
        record = legacy.parse_line(self.LINE, "4.0")
        assert record["vcs_type"] == "git"
        assert record["vcs_repo"] == "repo"
        assert record["vcs_branch"] == "main"
        assert record["line"] == 10
        assert record["char"] == 5

    def test_empty_vcs_triple(self) -> None:
        record = legacy.parse_line(
            "2 1700000000000 5000 python a.py p pc :: 1 2 0 0", "4.0"
        )
        assert (record["vcs_type"], record["vcs_repo"], record["vcs_branch"]) == ("", "", "")

    def test_vcs_parts_are_percent_decoded(self) -> None:
        record = legacy.parse_line(
            "2 1700000000000 5000 python a.py p pc "
            "git:https%3A%2F%2Fexample.com%2Frepo:feature%2Fx 1 2 0 0",
            "4.0",
        )
        assert record["vcs_repo"] == "https://example.com/repo"
        assert record["vcs_branch"] == "feature/x"

    def test_seven_fields_not_enough_for_version_4(self) -> None:
        with pytest.raises(ValidationError):
            legacy.parse_line("1 1700000000000 3000 python a.py p pc", "4.0")


class TestParseErrors:
    @pytest.mark.parametrize(
        "line",
        [
            "x 1700000000000 3000 python a.py p pc",
            "1 yesterday 3000 python a.py p pc",
            "1 1700000000000 long python a.py p pc",
            # Decimal or suffixed numbers are not truncated to their leading digits
            "2 1700000000000.0 3000 python a.py p pc",
            "2 1700000000000 3000ms python a.py p pc",
        ],
    )
    def test_non_numeric_fields_rejected(self, line: str) -> None:
        with pytest.raises(ValidationError):
            legacy.parse_line(line, "3.0")

    def test_out_of_range_duration_rejected(self) -> None:
        with pytest.raises(ValidationError, match="out of range"):
            legacy.parse_line(f"2 1700000000000 {2**70} python a.py p pc", "3.0")

    def test_unsupported_version_rejected(self) -> None:
        with pytest.raises(ValidationError):
            legacy.parse_line("1 1700000000000 3000 python a.py p pc", "2.0")


class TestEncodeLine:
    def test_encoded_line_parses_back(self, make_record) -> None:
        record = make_record(
            file="/my files/a b.py",
            vcs_type="git",
            vcs_repo="git@host:team/repo.git",
            vcs_branch="main",
            line=3,
            char=4,
        )
        line = legacy.encode_line(record)
        assert len(line.split(" ")) == legacy.REQUIRED_FIELDS["4.0"]
        assert legacy.parse_line(line, "4.0") == record

    def test_empty_text_fields_keep_field_positions(self, make_record) -> None:
        record = make_record(language="", project="", computer_id="")
        line = legacy.encode_line(record)
        assert legacy.parse_line(line, "4.0") == record
