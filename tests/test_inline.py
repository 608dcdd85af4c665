import pytest
from bs4 import BeautifulSoup

from wasmtrunk.pipelines.asset import AssetError
from wasmtrunk.pipelines.inline import ContentType, Inline, InlineOutput


def _dom():
    return BeautifulSoup(
        '<html><head><link data-trunk rel="inline" data-trunk-id="0"/></head></html>',
        "html.parser",
    )


def test_parse_known_types():
    assert ContentType.parse("html") is ContentType.HTML
    assert ContentType.parse("css") is ContentType.CSS
    assert ContentType.parse("js") is ContentType.JS


def test_parse_rejects_uppercase():
    with pytest.raises(AssetError):
        ContentType.parse("CSS")


def test_attr_overrides_extension():
    assert ContentType.from_attr_or_ext("js", "css") is ContentType.JS
    assert ContentType.from_attr_or_ext(None, "css") is ContentType.CSS


def test_no_attr_no_ext():
    with pytest.raises(AssetError):
        ContentType.from_attr_or_ext(None, None)


def test_missing_href(tmp_path):
    with pytest.raises(AssetError):
        Inline(tmp_path, {"rel": "inline"}, 0)


def test_unknown_extension(tmp_path):
    (tmp_path / "data.txt").write_text("x")
    with pytest.raises(AssetError):
        Inline(tmp_path, {"href": "data.txt"}, 0)


def test_css_inlined(tmp_path):
    (tmp_path / "style.css").write_text("body{}")
    output = Inline(tmp_path, {"href": "style.css"}, 0).run()
    assert output.content == "body{}"
    dom = _dom()
    output.finalize(dom)
    style = dom.select_one("head style")
    assert style.get_text() == "body{}"
    assert style["type"] == "text/css"
    assert dom.select("link") == []


def test_js_inlined_with_type_attr(tmp_path):
    (tmp_path / "code.txt").write_text("let a = 1;")
    output = Inline(tmp_path, {"href": "code.txt", "type": "js"}, 0).run()
    assert output.content_type is ContentType.JS
    dom = _dom()
    output.finalize(dom)
    assert dom.select_one("head script").get_text() == "let a = 1;"


def test_html_pasted_as_is():
    dom = _dom()
    InlineOutput(id=0, content="<meta name=\"x\"/>", content_type=ContentType.HTML).finalize(dom)
    assert dom.select_one("head meta")["name"] == "x"
    assert dom.select("link") == []