"""Shared pieces of the asset pipelines: build configuration, asset files and DOM helpers."""

from __future__ import annotations

import enum
import os
from dataclasses import dataclass, field
from pathlib import Path

from bs4 import BeautifulSoup

ATTR_INLINE = "data-inline"
ATTR_HREF = "href"
ATTR_SRC = "src"
ATTR_TYPE = "type"
ATTR_REL = "rel"
SNIPPETS_DIR = "snippets"
TRUNK_ID = "data-trunk-id"

_MASK64 = (1 << 64) - 1
_SEAHASH_PRIME = 0x6EED0E9DA4D94A4F
_SEAHASH_SEEDS = (
    0x16F11FE89B0D677C,
    0xB480A793D8E6C86C,
    0x6FE2E5AAF078EBC9,
    0x14F994A4C5259381,
)


class AssetError(Exception):
    """Raised when an asset cannot be located, read or processed."""


@dataclass(frozen=True)
class ToolsConfig:
    """Pinned versions of the external tools, if any."""

    sass: str | None = None
    wasm_bindgen: str | None = None
    wasm_opt: str | None = None


@dataclass(frozen=True)
class Features:
    """Cargo feature selection: either all features, or a custom set."""

    all_features: bool = False
    features: str | None = None
    no_default_features: bool = False


@dataclass
class BuildConfig:
    """Runtime configuration shared by all build pipelines."""

    target: Path = Path("index.html")
    staging_dist: Path = Path("dist") / ".stage"
    public_url: str = "/"
    release: bool = False
    filehash: bool = True
    inject_autoloader: bool = True
    tools: ToolsConfig = field(default_factory=ToolsConfig)
    cargo_features: Features = field(default_factory=Features)
    pattern_script: str | None = None
    pattern_preload: str | None = None
    pattern_params: dict[str, str] | None = None


class PipelineStage(enum.Enum):
    """A stage of the build, used to decide when a hook runs."""

    PRE_BUILD = "pre_build"
    BUILD = "build"
    POST_BUILD = "post_build"


def _diffuse(x: int) -> int:
    x = (x * _SEAHASH_PRIME) & _MASK64
    x ^= (x >> 32) >> (x >> 60)
    return (x * _SEAHASH_PRIME) & _MASK64


def seahash(data: bytes) -> int:
    """The 64-bit SeaHash of ``data`` with the standard seeds."""
    a, b, c, d = _SEAHASH_SEEDS
    view = memoryview(bytes(data))
    for start in range(0, len(view), 8):
        word = int.from_bytes(view[start : start + 8], "little")
        a, b, c, d = b, c, d, _diffuse(a ^ word)
    return _diffuse(a ^ b ^ c ^ d ^ len(view))


def href_to_path(href: str) -> Path:
    """Turn a ``/``-separated href into a platform path."""
    return Path(*(part for part in href.split("/") if part))


def trunk_id_selector(id: int) -> str:
    """CSS selector of the trunk link element with the given id."""
    return f'link[{TRUNK_ID}="{id}"]'


def trunk_script_id_selector(id: int) -> str:
    """CSS selector of the trunk script element with the given id."""
    return f'script[{TRUNK_ID}="{id}"]'


def _fragment(html: str) -> list:
    return list(BeautifulSoup(html, "html.parser").contents)


def replace_with_html(dom: BeautifulSoup, selector: str, html: str) -> None:
    """Replace every element matching ``selector`` with the parsed ``html``."""
    for element in dom.select(selector):
        for node in _fragment(html):
            element.insert_before(node)
        element.decompose()


def remove_selected(dom: BeautifulSoup, selector: str) -> None:
    """Remove every element matching ``selector``."""
    for element in dom.select(selector):
        element.decompose()


def append_html(dom: BeautifulSoup, selector: str, html: str) -> None:
    """Append the parsed ``html`` to every element matching ``selector``."""
    for element in dom.select(selector):
        for node in _fragment(html):
            element.append(node)


@dataclass(frozen=True)
class AssetFile:
    """A file on disk processed by some build pipeline."""

    path: Path
    file_name: str
    file_stem: str
    ext: str | None

    @classmethod
    def from_path(cls, rel_dir: str | os.PathLike, path: str | os.PathLike) -> AssetFile:
        """Resolve ``path`` (relative to ``rel_dir`` if needed) to an existing file."""
        path = Path(path)
        if not path.is_absolute():
            path = Path(rel_dir) / path
        try:
            resolved = path.resolve(strict=True)
        except OSError as err:
            raise AssetError(f"error getting canonical path for {path}") from err
        if not resolved.exists():
            raise AssetError(f"target file does not appear to exist on disk {resolved}")
        if not resolved.name:
            raise AssetError(f"asset has no file name {resolved}")
        if not resolved.stem:
            raise AssetError(f"asset has no file name stem {resolved}")
        ext = resolved.suffix[1:] if resolved.suffix else None
        return cls(path=resolved, file_name=resolved.name, file_stem=resolved.stem, ext=ext)

    def copy(self, to_dir: str | os.PathLike, with_hash: bool) -> str:
        """Copy into ``to_dir``, optionally with a content hash in the name; return the name."""
        try:
            data = self.path.read_bytes()
        except OSError as err:
            raise AssetError(f"error reading file for copying {self.path}") from err
        if with_hash:
            file_name = f"{self.file_stem}-{seahash(data):x}.{self.ext or ''}"
        else:
            file_name = self.file_name
        file_path = Path(to_dir) / file_name
        try:
            file_path.write_bytes(data)
        except OSError as err:
            raise AssetError(f"error copying file {self.path} to {file_path}") from err
        return file_name

    def read_to_string(self) -> str:
        """Read the file as UTF-8 text."""
        try:
            return self.path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as err:
            raise AssetError(f"error reading file {self.path} to string") from err