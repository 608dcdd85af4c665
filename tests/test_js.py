import pytest
from bs4 import BeautifulSoup

from wasmtrunk.pipelines.asset import AssetError, BuildConfig
from wasmtrunk.pipelines.js import Js, JsOutput

CONTENT = b"console.log('hi');\n"


@pytest.fixture
def layout(tmp_path):
    html_dir = tmp_path / "site"
    html_dir.mkdir()
    (html_dir / "app.js").write_bytes(CONTENT)
    stage = tmp_path / "stage"
    stage.mkdir()
    return html_dir, stage


def test_copy_without_hash(layout):
    html_dir, stage = layout
    cfg = BuildConfig(staging_dist=stage, filehash=False)
    out = Js(cfg, html_dir, "app.js", 2).run()
    assert out.file == "app.js"
    assert out.id == 2
    assert (stage / "app.js").read_bytes() == CONTENT


def test_copy_with_hash_is_stable(layout):
    html_dir, stage = layout
    cfg = BuildConfig(staging_dist=stage, filehash=True)
    first = Js(cfg, html_dir, "app.js", 0).run()
    second = Js(cfg, html_dir, "app.js", 1).run()
    assert first.file == second.file
    assert first.file.startswith("app-") and first.file.endswith(".js")
    assert (stage / first.file).read_bytes() == CONTENT


def test_missing_src(layout):
    html_dir, stage = layout
    with pytest.raises(AssetError, match="src"):
        Js(BuildConfig(staging_dist=stage), html_dir, None, 0)


def test_missing_file(layout):
    html_dir, stage = layout
    with pytest.raises(AssetError):
        Js(BuildConfig(staging_dist=stage), html_dir, "missing.js", 0)


def test_finalize_replaces_script():
    dom = BeautifulSoup(
        '<html><body><script data-trunk data-trunk-id="4" src="app.js"></script>'
        '<link data-trunk-id="4"/></body></html>',
        "html.parser",
    )
    JsOutput(BuildConfig(public_url="/base/"), 4, "app-1.js").finalize(dom)
    scripts = dom.find_all("script")
    assert [s.get("src") for s in scripts] == ["/base/app-1.js"]
    assert scripts[0].get("data-trunk-id") is None
    assert len(dom.select('link[data-trunk-id="4"]')) == 1