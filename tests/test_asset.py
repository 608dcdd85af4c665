from pathlib import Path

import pytest
from bs4 import BeautifulSoup

from wasmtrunk.pipelines.asset import (
    AssetError,
    AssetFile,
    PipelineStage,
    append_html,
    href_to_path,
    remove_selected,
    replace_with_html,
    seahash,
    trunk_id_selector,
    trunk_script_id_selector,
)


def test_seahash_known_value():
    assert seahash(b"to be or not to be") == 1988685042348123509


def test_seahash_is_deterministic_and_sensitive():
    assert seahash(b"abcdefghij") == seahash(b"abcdefghij")
    assert seahash(b"abcdefghij") != seahash(b"abcdefghik")
    assert 0 <= seahash(b"") < 2**64


def test_href_to_path():
    assert href_to_path("a/b/c.css") == Path("a", "b", "c.css")


def test_selectors():
    assert trunk_id_selector(3) == 'link[data-trunk-id="3"]'
    assert trunk_script_id_selector(3) == 'script[data-trunk-id="3"]'


def test_pipeline_stage_values():
    assert PipelineStage("pre_build") is PipelineStage.PRE_BUILD
    assert PipelineStage("post_build") is PipelineStage.POST_BUILD


def test_from_path_relative(tmp_path):
    (tmp_path / "style.css").write_text("body {}")
    asset = AssetFile.from_path(tmp_path, Path("style.css"))
    assert asset.path == (tmp_path / "style.css").resolve()
    assert asset.file_name == "style.css"
    assert asset.file_stem == "style"
    assert asset.ext == "css"


def test_from_path_without_extension(tmp_path):
    (tmp_path / "LICENSE").write_text("text")
    asset = AssetFile.from_path(tmp_path, "LICENSE")
    assert asset.ext is None
    assert asset.file_stem == "LICENSE"


def test_from_path_missing(tmp_path):
    with pytest.raises(AssetError):
        AssetFile.from_path(tmp_path, "missing.css")


def test_copy_without_hash(tmp_path):
    src = tmp_path / "src"
    out = tmp_path / "out"
    src.mkdir()
    out.mkdir()
    (src / "app.js").write_bytes(b"console.log(1)")
    asset = AssetFile.from_path(src, "app.js")
    name = asset.copy(out, False)
    assert name == "app.js"
    assert (out / name).read_bytes() == b"console.log(1)"


def test_copy_with_hash(tmp_path):
    src = tmp_path / "src"
    out = tmp_path / "out"
    src.mkdir()
    out.mkdir()
    data = b"body { color: red; }"
    (src / "main.css").write_bytes(data)
    name = AssetFile.from_path(src, "main.css").copy(out, True)
    assert name == f"main-{seahash(data):x}.css"
    assert (out / name).read_bytes() == data


def test_read_to_string(tmp_path):
    (tmp_path / "a.html").write_text("<p>hi</p>", encoding="utf-8")
    assert AssetFile.from_path(tmp_path, "a.html").read_to_string() == "<p>hi</p>"


def test_replace_with_html():
    dom = BeautifulSoup('<div><link data-trunk-id="0"/><span>keep</span></div>', "html.parser")
    replace_with_html(dom, trunk_id_selector(0), "<p>x</p><p>y</p>")
    assert dom.select("link") == []
    assert [p.get_text() for p in dom.select("div > p")] == ["x", "y"]
    assert dom.select_one("span").get_text() == "keep"


def test_remove_selected():
    dom = BeautifulSoup('<link data-trunk-id="1"/><link data-trunk-id="2"/>', "html.parser")
    remove_selected(dom, trunk_id_selector(1))
    remaining = dom.select("link")
    assert len(remaining) == 1
    assert remaining[0]["data-trunk-id"] == "2"


def test_append_html():
    dom = BeautifulSoup("<html><body><p>a</p></body></html>", "html.parser")
    append_html(dom, "body", "<p>b</p>")
    assert [p.get_text() for p in dom.select("body p")] == ["a", "b"]