"""Tests for site_mirror.urls."""

import pytest

from site_mirror.urls import (
    CrawlScope,
    is_resource_url,
    origin_of,
    strip_query_and_fragment,
    with_index_file,
)

PAGE = "https://site.test/blog/post-1"


@pytest.fixture
def scope():
    return CrawlScope("https://site.test/", ["https://old.site.test"])


class TestNormalize:
    @pytest.mark.parametrize(
        "raw",
        [
            None,
            "",
            "   ",
            "#top",
            "mailto:me@site.test",
            "tel:+123",
            "data:image/png;base64,AAAA",
            "javascript:void(0)",
            "ftp://site.test/file",
            "sms:+123",
        ],
    )
    def test_rejected(self, scope, raw):
        assert scope.normalize(raw, PAGE) is None

    def test_root_relative(self, scope):
        assert scope.normalize("/about", PAGE) == "https://site.test/about"

    def test_relative_to_page(self, scope):
        assert scope.normalize("post-2", PAGE) == "https://site.test/blog/post-2"
        assert scope.normalize("./img/a.png", PAGE) == "https://site.test/blog/img/a.png"

    def test_query_only_replaces_page_query(self, scope):
        assert (
            scope.normalize("?page=2", "https://site.test/list?page=1")
            == "https://site.test/list?page=2"
        )

    def test_protocol_relative_same_host(self, scope):
        assert scope.normalize("//site.test/x.css", PAGE) == "https://site.test/x.css"

    def test_protocol_relative_other_host(self, scope):
        assert scope.normalize("//cdn.other.test/x.css", PAGE) is None

    def test_other_origin_rejected(self, scope):
        assert scope.normalize("https://evil.test/about", PAGE) is None
        assert scope.normalize("http://site.test/about", PAGE) is None

    def test_foreign_origin_rewritten(self, scope):
        assert (
            scope.normalize("https://old.site.test/a/b.png", PAGE)
            == "https://site.test/a/b.png"
        )

    def test_bare_origin(self, scope):
        assert scope.normalize("https://site.test", PAGE) == "https://site.test/"

    def test_origin_spelling_canonical(self, scope):
        assert scope.normalize("HTTPS://SITE.test/A.png", PAGE) == "https://site.test/A.png"
        assert scope.normalize("//Site.Test/x.css", PAGE) == "https://site.test/x.css"

    def test_fragment_dropped(self, scope):
        assert scope.normalize("/about#team", PAGE) == "https://site.test/about"

    def test_css_relative_to_stylesheet(self, scope):
        css_url = "https://site.test/theme/main.css"
        assert scope.normalize("../img/bg.png", css_url) == "https://site.test/img/bg.png"


class TestRelocatablePath:
    def test_from_nested_page(self, scope):
        assert (
            scope.to_relocatable_path("https://site.test/assets/style.css", "https://site.test/about")
            == "../assets/style.css"
        )

    def test_from_directory_page(self, scope):
        assert (
            scope.to_relocatable_path("https://site.test/assets/style.css", "https://site.test/blog/")
            == "../assets/style.css"
        )

    def test_from_two_levels(self, scope):
        # /blog/post-1 is written to blog/post-1/index.html
        assert (
            scope.to_relocatable_path("https://site.test/assets/style.css", PAGE)
            == "../../assets/style.css"
        )

    def test_from_root(self, scope):
        assert (
            scope.to_relocatable_path("https://site.test/assets/style.css", "https://site.test/")
            == "assets/style.css"
        )

    def test_page_target_gets_index(self, scope):
        assert (
            scope.to_relocatable_path("https://site.test/docs?x=1#y", "https://site.test/")
            == "docs/index.html"
        )

    def test_self_reference(self, scope):
        assert scope.to_relocatable_path(PAGE, PAGE) == "index.html"

    def test_from_stylesheet(self, scope):
        assert (
            scope.to_relocatable_path(
                "https://site.test/img/bg.png", "https://site.test/theme/main.css"
            )
            == "../img/bg.png"
        )

    def test_disabled(self):
        scope = CrawlScope("https://site.test", relocatable=False)
        url = "https://site.test/assets/style.css"
        assert scope.to_relocatable_path(url, PAGE) == url


class TestHelpers:
    @pytest.mark.parametrize(
        "url,expected",
        [
            ("/docs/", "/docs/index.html"),
            ("/docs", "/docs/index.html"),
            ("/docs/readme.txt", "/docs/readme.txt"),
            ("https://site.test/", "https://site.test/index.html"),
        ],
    )
    def test_with_index_file(self, url, expected):
        assert with_index_file(url) == expected

    @pytest.mark.parametrize(
        "url,expected",
        [
            ("https://s.test/a/style.css", True),
            ("https://s.test/a/LOGO.PNG", True),
            ("https://s.test/font.woff2?v=3", True),
            ("https://s.test/about", False),
            ("https://s.test/page.html", False),
            ("https://s.test/v1.2/about", False),
        ],
    )
    def test_is_resource(self, url, expected):
        assert is_resource_url(url) is expected

    def test_strip_query_and_fragment(self):
        assert strip_query_and_fragment("https://s.test/a?b=1#c") == "https://s.test/a"

    def test_origin_of(self):
        assert origin_of("HTTPS://Site.Test:8080/a") == "https://site.test:8080"

    def test_invalid_target(self):
        with pytest.raises(ValueError):
            CrawlScope("ftp://site.test")
