"""
Tests for the page fact extractors.
"""

from sitecrawl.extractors import (
    ISSUE_RULES,
    extract_issues,
    extract_links,
    extract_page,
    extract_resources,
    run_extractors,
)
from sitecrawl.models import IssueRecord, Table


# ====================================================================
# Page metadata
# ====================================================================

class TestExtractPage:

    def test_full_metadata(self):
        html = """
        <html><head>
          <title> Home </title>
          <meta name="description" content="Welcome home">
          <link rel="canonical" href="https://x.test/">
          <link rel="alternate" hreflang="de" href="https://x.test/de/">
          <link rel="alternate" hreflang="fr" href="https://x.test/fr/">
        </head><body></body></html>
        """
        record = extract_page(html, "https://x.test/")
        assert record.url == "https://x.test/"
        assert record.meta_title == "Home"
        assert record.meta_description == "Welcome home"
        assert record.canonical_url == "https://x.test/"
        assert record.hreflang_links == "https://x.test/de/, https://x.test/fr/"

    def test_missing_fields_are_empty_strings(self):
        record = extract_page("<html><body><p>hi</p></body></html>", "https://x.test/")
        assert record.meta_title == ""
        assert record.meta_description == ""
        assert record.canonical_url == ""
        assert record.hreflang_links == ""

    def test_alternate_without_hreflang_ignored(self):
        html = '<html><head><link rel="alternate" type="application/rss+xml" href="/feed"></head></html>'
        assert extract_page(html, "https://x.test/").hreflang_links == ""

    def test_row_shape(self):
        row = extract_page("<title>T</title>", "https://x.test/").to_row()
        assert set(row) == {"url", "meta_title", "meta_description", "canonical_url", "hreflang_links"}


# ====================================================================
# Resources
# ====================================================================

class TestExtractResources:

    def test_stylesheets_scripts_images(self):
        html = """
        <html><head>
          <link rel="stylesheet" href="/main.css">
          <link rel="icon" href="/favicon.ico">
          <script src="/app.js"></script>
          <script>inline()</script>
        </head><body>
          <img src="/logo.png"><img alt="no source">
        </body></html>
        """
        resources = extract_resources(html, "https://x.test/")
        assert [(r.resource_type, r.resource_url) for r in resources] == [
            ("css", "/main.css"),
            ("javascript", "/app.js"),
            ("image", "/logo.png"),
        ]
        assert all(r.page_url == "https://x.test/" for r in resources)
        assert all(r.TABLE is Table.RESOURCES for r in resources)

    def test_no_resources(self):
        assert extract_resources("<html><body>text</body></html>", "https://x.test/") == []


# ====================================================================
# Issues
# ====================================================================

class TestExtractIssues:

    def test_missing_title_and_description(self):
        """A bare page yields exactly the two metadata issues."""
        issues = extract_issues("<html><body><p>hello</p></body></html>", "https://x.test/")
        assert [i.issue_type for i in issues] == ["missing_title", "missing_meta_description"]
        assert issues[0].issue_description == "Page is missing a title tag"
        assert issues[1].issue_description == "Page is missing a meta description"

    def test_clean_page_has_no_issues(self):
        html = '<html><head><title>T</title><meta name="description" content="d"></head></html>'
        assert extract_issues(html, "https://x.test/") == []

    def test_image_without_src(self):
        html = (
            '<html><head><title>T</title><meta name="description" content="d"></head>'
            '<body><img alt="a"><img src=""><img src="/ok.png"></body></html>'
        )
        issues = extract_issues(html, "https://x.test/")
        assert [i.issue_type for i in issues] == ["broken_image", "broken_image"]

    def test_rules_are_independent(self, monkeypatch):
        """A new rule appends records without touching the others."""
        def no_h1(soup, url):
            return [] if soup.find("h1") else [IssueRecord(url, "missing_h1", "No h1")]

        monkeypatch.setattr("sitecrawl.extractors.ISSUE_RULES", ISSUE_RULES + [no_h1])
        issues = extract_issues("<html><body></body></html>", "https://x.test/")
        assert [i.issue_type for i in issues] == [
            "missing_title", "missing_meta_description", "missing_h1",
        ]


# ====================================================================
# Links
# ====================================================================

class TestExtractLinks:

    def test_internal_and_external(self):
        """Relative link is internal, other host is external."""
        html = '<a href="/a">A</a><a href="http://other.test/b">B</a>'
        result = extract_links(html, "http://x.test/")
        assert result.internal_urls == ["http://x.test/a"]
        assert len(result.records) == 2
        internal, external = result.records
        assert internal.target_url == "http://x.test/a"
        assert internal.is_internal is True
        assert internal.link_text == "A"
        assert external.target_url == "http://other.test/b"
        assert external.is_internal is False
        assert all(r.source_url == "http://x.test/" for r in result.records)

    def test_duplicates_recorded_but_internal_set_distinct(self):
        html = '<a href="/a">one</a><a href="/a">two</a><a href="/a#frag">three</a>'
        result = extract_links(html, "http://x.test/")
        assert len(result.records) == 3
        assert result.records[2].target_url == "http://x.test/a#frag"
        assert result.internal_urls == ["http://x.test/a"]

    def test_resolved_against_page_not_seed(self):
        """Relative hrefs resolve against the page they appear on."""
        result = extract_links('<a href="c">C</a>', "http://x.test/docs/b")
        assert result.internal_urls == ["http://x.test/docs/c"]

    def test_internal_means_same_host_as_page(self):
        """Classification uses the page's host, even on a different subdomain."""
        html = '<a href="http://blog.x.test/post">p</a><a href="http://x.test/">home</a>'
        result = extract_links(html, "http://blog.x.test/")
        assert [r.is_internal for r in result.records] == [True, False]
        assert result.internal_urls == ["http://blog.x.test/post"]

    def test_unresolvable_links_dropped(self):
        html = (
            '<a href="mailto:a@x.test">m</a>'
            '<a href="javascript:void(0)">j</a>'
            '<a href="http://[bad">b</a>'
            '<a>no href</a>'
        )
        result = extract_links(html, "http://x.test/")
        assert result.records == []
        assert result.internal_urls == []

    def test_other_schemes_with_host_recorded_not_followed(self):
        """An ftp: link still yields a record but never reaches the frontier."""
        html = '<a href="ftp://x.test/file">f</a><a href="/a">a</a>'
        result = extract_links(html, "http://x.test/")
        assert [r.target_url for r in result.records] == ["ftp://x.test/file", "http://x.test/a"]
        assert result.records[0].is_internal is True
        assert result.internal_urls == ["http://x.test/a"]

    def test_host_comparison_ignores_case_and_port(self):
        html = '<a href="http://X.TEST:8080/a">a</a>'
        result = extract_links(html, "http://x.test/")
        assert result.records[0].is_internal is True


# ====================================================================
# Pipeline
# ====================================================================

class TestRunExtractors:

    def test_records_order_and_counts(self):
        html = '<html><body><img src="/i.png"><a href="/a">a</a></body></html>'
        facts = run_extractors(html, "http://x.test/")
        tables = [r.TABLE for r in facts.records()]
        assert tables == [
            Table.PAGES, Table.RESOURCES, Table.ISSUES, Table.ISSUES, Table.LINKS,
        ]
        assert facts.internal_urls == ["http://x.test/a"]
