"""Test listing page extraction."""
import pytest

from ingestion.cleaner import sanitize_html, sanitize_text, sanitize_url
from ingestion.extractor import DocumentParseError, NovelExtractor, normalize_url, truncate_after_extension

ORIGIN = "https://novels.example"


def entry(name=None, link=None, img=None, holder="figure"):
    name_html = f'<h3 class="novel-title"> {name} </h3>' if name is not None else ""
    link_html = f'<a class="pdf-link" href=" {link} ">Download</a>' if link is not None else ""
    container = f'<div class="novel-entry">{name_html}{link_html}</div>'
    if img is None:
        return container
    return container + f'<{holder}><img src="{img}"></{holder}>'


def page(*entries):
    return "<html><body><main>" + "".join(entries) + "</main></body></html>"


@pytest.fixture
def extractor():
    return NovelExtractor(site_origin=ORIGIN)


def test_skips_malformed_container(extractor):
    """Test 3 well-formed containers and 1 missing its link."""
    html = page(
        entry("Alpha", "/pdf/alpha.pdf", "/covers/alpha.jpg"),
        entry("Beta", "https://cdn.example/beta.pdf"),
        entry("Broken"),
        entry("Gamma", "gamma.pdf", "//img.example/gamma.png"),
    )

    records = extractor.extract(html)

    assert [r.name for r in records] == ["Alpha", "Beta", "Gamma"]
    assert records[0].pdf_url == "https://novels.example/pdf/alpha.pdf"
    assert records[0].cover_url == "https://novels.example/covers/alpha.jpg"
    assert records[1].cover_url == ""
    assert records[2].pdf_url == "https://novels.example/gamma.pdf"
    assert records[2].cover_url == "https://img.example/gamma.png"


def test_cover_query_suffix_is_dropped(extractor):
    """Test that tracking parameters after the extension are removed."""
    html = page(entry("Alpha", "/a.pdf", "https://img.example/covers/cover.jpg?w=300"))

    records = extractor.extract(html)

    assert records[0].cover_url == "https://img.example/covers/cover.jpg"


def test_cover_without_known_extension_is_absent(extractor):
    html = page(entry("Alpha", "/a.pdf", "https://img.example/covers/cover.svg"))

    assert extractor.extract(html)[0].cover_url == ""


def test_image_must_be_in_adjacent_holder(extractor):
    """Test that only the immediately following image holder counts."""
    html = page(entry("Alpha", "/a.pdf", "/covers/alpha.jpg", holder="div"))

    assert extractor.extract(html)[0].cover_url == ""


def test_lazy_loaded_image_source(extractor):
    html = page(
        '<div class="novel-entry"><h3 class="novel-title">Alpha</h3><a class="pdf-link" href="/a.pdf">x</a></div>'
        '<figure><img data-src="/covers/alpha.webp?v=2"></figure>'
    )

    assert extractor.extract(html)[0].cover_url == "https://novels.example/covers/alpha.webp"


def test_empty_name_or_link_is_skipped(extractor):
    html = page(entry("", "/a.pdf"), entry("Named", ""), entry("Kept", "/k.pdf"))

    assert [r.name for r in extractor.extract(html)] == ["Kept"]


def test_document_without_containers_yields_nothing(extractor):
    assert extractor.extract("<html><body><p>Maintenance</p></body></html>") == []
    assert extractor.extract("not html at all") == []


def test_scripts_are_removed_before_parsing(extractor):
    """Test that containers injected by script tags are not extracted."""
    html = page(
        entry("Alpha", "/a.pdf"),
        '<script>document.write(\'<div class="novel-entry">x</div>\')</script>',
    )

    records = extractor.extract(html)

    assert [r.name for r in records] == ["Alpha"]


def test_unparseable_document_raises(extractor):
    with pytest.raises(DocumentParseError):
        extractor.extract(None)


def test_truncate_after_extension():
    assert truncate_after_extension("/img/a.JPEG?x=1") == "/img/a.JPEG"
    assert truncate_after_extension("/img/a.gif#frag") == "/img/a.gif"
    assert truncate_after_extension("/img/a.png.webp") == "/img/a.png"
    assert truncate_after_extension("") == ""
    assert truncate_after_extension("/img/photo") == ""


def test_normalize_url():
    assert normalize_url("//cdn.example/a.jpg", ORIGIN) == "https://cdn.example/a.jpg"
    assert normalize_url("/a.jpg", ORIGIN) == "https://novels.example/a.jpg"
    assert normalize_url("img/a.jpg", ORIGIN + "/") == "https://novels.example/img/a.jpg"
    assert normalize_url("http://other.example/a.jpg", ORIGIN) == "http://other.example/a.jpg"
    assert normalize_url("", ORIGIN) == ""


def test_sanitize_html_strips_handlers_and_scripts():
    soup = sanitize_html('<a href="javascript:alert(1)" onclick="x()">hi</a><style>a{}</style>')

    link = soup.find("a")
    assert "href" not in link.attrs
    assert "onclick" not in link.attrs
    assert soup.find("style") is None


def test_sanitize_fields():
    assert sanitize_text("  <b>The</b>\n  Novel ") == "The Novel"
    assert sanitize_url("javascript:alert(1)") == ""
    assert sanitize_url(" https://a.example/my book.pdf ") == "https://a.example/my%20book.pdf"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
