import pytest
from bs4 import BeautifulSoup

from wasmtrunk.pipelines.asset import AssetError, BuildConfig, seahash
from wasmtrunk.pipelines.icon import Icon, IconOutput

ICON_BYTES = b"\x00\x00\x01\x00fake-icon"


def _setup(tmp_path, **cfg_args):
    src = tmp_path / "src"
    stage = tmp_path / "stage"
    (src / "assets").mkdir(parents=True)
    stage.mkdir()
    (src / "assets" / "favicon.ico").write_bytes(ICON_BYTES)
    return src, stage, BuildConfig(staging_dist=stage, **cfg_args)


def test_missing_href(tmp_path):
    with pytest.raises(AssetError):
        Icon(BuildConfig(staging_dist=tmp_path), tmp_path, {"rel": "icon"}, 0)


def test_missing_file(tmp_path):
    with pytest.raises(AssetError):
        Icon(BuildConfig(staging_dist=tmp_path), tmp_path, {"href": "nope.ico"}, 0)


def test_copy_nested_href_without_hash(tmp_path):
    src, stage, cfg = _setup(tmp_path, filehash=False)
    output = Icon(cfg, src, {"href": "assets/favicon.ico"}, 1).run()
    assert output.file == "favicon.ico"
    assert (stage / "favicon.ico").read_bytes() == ICON_BYTES


def test_copy_with_hash(tmp_path):
    src, stage, cfg = _setup(tmp_path)
    output = Icon(cfg, src, {"href": "assets/favicon.ico"}, 1).run()
    assert output.file == f"favicon-{seahash(ICON_BYTES):x}.ico"
    assert (stage / output.file).read_bytes() == ICON_BYTES


def test_finalize(tmp_path):
    _, _, cfg = _setup(tmp_path)
    dom = BeautifulSoup('<head><link data-trunk rel="icon" data-trunk-id="5"/></head>', "html.parser")
    IconOutput(cfg=cfg, id=5, file="favicon.ico").finalize(dom)
    links = dom.select("link")
    assert len(links) == 1
    assert links[0]["rel"] == ["icon"]
    assert links[0]["href"] == "/favicon.ico"