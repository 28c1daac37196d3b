"""
Tests for fundtrack.data.normalize — attachment detection, SharePoint links,
amounts, dates and names.
"""
import pytest

from fundtrack.data.normalize import (
    canonicalize_sharepoint_link,
    first_name,
    is_file_like,
    looks_like_filename,
    looks_like_url,
    parse_amount,
    split_names,
    to_ymd,
)


class TestFileLike:
    @pytest.mark.parametrize("value,expected", [
        ("https://example.org/x", True),
        ("www.example.org", True),
        ("/sites/Fund/doc.pdf", True),
        ("tenant.sharepoint.com/x", True),
        ("Campus Garden", False),
        ("", False),
        (None, False),
    ])
    def test_url(self, value, expected):
        assert looks_like_url(value) is expected

    @pytest.mark.parametrize("value,expected", [
        ("budget.PDF", True),
        ("plan.docx", True),
        ("slides.pptx", True),
        ("C:\\files\\plan", True),
        ("folder/plan", True),
        ("Garden v2.0", False),
        ("ana@example.edu", False),
    ])
    def test_filename(self, value, expected):
        assert looks_like_filename(value) is expected

    def test_either(self):
        assert is_file_like("a.zip")
        assert is_file_like("https://x.org")
        assert not is_file_like("Bike Repair Hub")


class TestSharepoint:
    def test_site_path(self):
        assert canonicalize_sharepoint_link("/sites/Fund/Shared Documents/a.pdf") == (
            "https://o365coloradoedu.sharepoint.com/sites/Fund/Shared Documents/a.pdf?web=1"
        )

    def test_site_path_with_query(self):
        assert canonicalize_sharepoint_link("/sites/Fund/a.pdf?csf=1").endswith("?csf=1&web=1")

    def test_doc_id_query(self):
        url = "https://tenant.sharepoint.com/sites/Fund/Forms/AllItems.aspx?id=%2Fsites%2FFund%2Fa.pdf"
        assert canonicalize_sharepoint_link(url) == "https://o365coloradoedu.sharepoint.com/sites/Fund/a.pdf?web=1"

    def test_non_sharepoint_untouched(self):
        assert canonicalize_sharepoint_link("https://example.org/a.pdf") == "https://example.org/a.pdf"

    def test_scheme_added(self):
        assert canonicalize_sharepoint_link("example.org/a.pdf") == "https://example.org/a.pdf"

    @pytest.mark.parametrize("raw", ["", None])
    def test_empty_passthrough(self, raw):
        assert canonicalize_sharepoint_link(raw) == raw


class TestAmounts:
    @pytest.mark.parametrize("value,expected", [
        ("$12,500", 12500.0),
        ("7250.50", 7250.5),
        (" -20 ", -20.0),
        (300, 300.0),
        (2.5, 2.5),
        ("", None),
        ("tbd", None),
        ("$", None),
        (None, None),
        (float("nan"), None),
    ])
    def test_parse_amount(self, value, expected):
        assert parse_amount(value) == expected


class TestDates:
    @pytest.mark.parametrize("value,expected", [
        ("2025-03-01", "2025-03-01"),
        ("03/20/2025", "2025-03-20"),
        ("March 5, 2025", "2025-03-05"),
        ("2025-03-01 14:30:00", "2025-03-01"),
        ("soon", ""),
        ("", ""),
        (None, ""),
    ])
    def test_to_ymd(self, value, expected):
        assert to_ymd(value) == expected


class TestNames:
    @pytest.mark.parametrize("value,expected", [
        ("Ana Lopez", "ana"),
        ("  BEN ", "ben"),
        ("", ""),
        (None, ""),
    ])
    def test_first_name(self, value, expected):
        assert first_name(value) == expected

    def test_split_names(self):
        assert split_names("Ana, Ben\nAna,,Cam") == ["Ana", "Ben", "Cam"]
        assert split_names("") == []
