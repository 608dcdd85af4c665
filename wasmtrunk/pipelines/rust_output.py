"""Output side of the Rust application pipeline: app types, wasm-opt levels and HTML injection."""

from __future__ import annotations

import enum
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from bs4 import BeautifulSoup

from .asset import (
    AssetError,
    BuildConfig,
    append_html,
    remove_selected,
    replace_with_html,
    trunk_id_selector,
)


class RustAppType(enum.Enum):
    """How the Rust application is used."""

    MAIN = "main"
    WORKER = "worker"

    @classmethod
    def parse(cls, value: str) -> RustAppType:
        """Parse a lowercase ``data-type`` value."""
        try:
            return cls(value)
        except ValueError:
            raise AssetError(
                f'unknown `data-type="{value}"` value for <link data-trunk rel="rust" .../> attr; '
                "please ensure the value is lowercase and is a supported type"
            ) from None


class WasmOptLevel(enum.Enum):
    """Optimization levels for wasm-opt; the value is the ``-O`` suffix."""

    DEFAULT = ""
    OFF = "0"
    ONE = "1"
    TWO = "2"
    THREE = "3"
    FOUR = "4"
    S = "s"
    Z = "z"

    @classmethod
    def parse(cls, value: str) -> WasmOptLevel:
        """Parse a ``data-wasm-opt`` value; ``s`` and ``z`` may be upper case."""
        normalized = value.lower() if value in ("S", "Z") else value
        try:
            return cls(normalized)
        except ValueError:
            raise AssetError(f"unknown wasm-opt level `{value}`") from None


def pattern_evaluate(template: str, params: Mapping[str, str]) -> str:
    """Substitute ``{key}`` placeholders; values starting with ``@`` name a file to insert."""
    result = template
    for key, value in params.items():
        pattern = f"{{{key}}}"
        if value.startswith("@"):
            try:
                contents = Path(value[1:]).read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError):
                continue
            result = result.replace(pattern, contents)
        else:
            result = result.replace(pattern, value)
    return result


@dataclass(frozen=True)
class RustAppOutput:
    """Files produced for a Rust application, ready to be linked into the page."""

    cfg: BuildConfig
    id: int | None
    js_output: str
    wasm_output: str
    ts_output: str | None
    type_: RustAppType

    def finalize(self, dom: BeautifulSoup) -> None:
        """Inject preload links and the loader script, or drop the link for workers."""
        if self.type_ is RustAppType.WORKER:
            if self.id is not None:
                remove_selected(dom, trunk_id_selector(self.id))
            return

        base, js, wasm = self.cfg.public_url, self.js_output, self.wasm_output
        params = dict(self.cfg.pattern_params or {})
        params.update(base=base, js=js, wasm=wasm)

        if self.cfg.pattern_preload is not None:
            preload = pattern_evaluate(self.cfg.pattern_preload, params)
        else:
            preload = (
                f'\n<link rel="preload" href="{base}{wasm}" as="fetch" '
                f'type="application/wasm" crossorigin>\n'
                f'<link rel="modulepreload" href="{base}{js}">'
            )
        append_html(dom, "html head", preload)

        if self.cfg.pattern_script is not None:
            script = pattern_evaluate(self.cfg.pattern_script, params)
        else:
            script = (
                f"<script type=\"module\">import init from '{base}{js}';"
                f"init('{base}{wasm}');</script>"
            )
        if self.id is not None:
            replace_with_html(dom, trunk_id_selector(self.id), script)
        else:
            append_html(dom, "html body", script)