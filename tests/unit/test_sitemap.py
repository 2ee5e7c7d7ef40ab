"""Match sitemap rendering."""

from datetime import datetime, timezone

from tipster.seo.service import build_entries, render_urlset

UPDATED = datetime(2026, 2, 1, 10, 30, tzinfo=timezone.utc)


class TestBuildEntries:
    def test_skips_missing_and_duplicate_ids(self):
        rows = [("101", UPDATED), (None, UPDATED), ("", UPDATED), ("101", UPDATED), ("102", UPDATED)]
        entries = build_entries(rows, "https://example.com/")
        assert [e.loc for e in entries] == ["https://example.com/match/101", "https://example.com/match/102"]

    def test_keeps_first_lastmod(self):
        newer = datetime(2026, 2, 2, tzinfo=timezone.utc)
        entries = build_entries([("7", newer), ("7", UPDATED)], "https://example.com")
        assert entries[0].lastmod == newer


class TestRenderUrlset:
    def test_empty_urlset_is_valid(self):
        xml = render_urlset([])
        assert xml.startswith('<?xml version="1.0" encoding="UTF-8"?>')
        assert "<url>" not in xml
        assert xml.rstrip().endswith("</urlset>")

    def test_entry_fields(self):
        xml = render_urlset(build_entries([("9", UPDATED)], "https://example.com"))
        assert "<loc>https://example.com/match/9</loc>" in xml
        assert f"<lastmod>{UPDATED.isoformat()}</lastmod>" in xml
        assert "<changefreq>weekly</changefreq>" in xml
        assert "<priority>0.6</priority>" in xml

    def test_loc_is_escaped(self):
        xml = render_urlset(build_entries([("a&b", UPDATED)], "https://example.com"))
        assert "match/a&amp;b" in xml
