"""Sass/Scss asset pipeline: compile with the sass tool and link or inline the result."""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from bs4 import BeautifulSoup

from .. import tools
from ..tools import Application
from .asset import (
    ATTR_HREF,
    ATTR_INLINE,
    AssetError,
    AssetFile,
    BuildConfig,
    href_to_path,
    replace_with_html,
    seahash,
    trunk_id_selector,
)

logger = logging.getLogger(__name__)

TYPE_SASS = "sass"
TYPE_SCSS = "scss"


@dataclass(frozen=True)
class CssRef:
    """Compiled CSS: either the CSS itself to inline, or the name of the written file."""

    value: str
    inline: bool = False


@dataclass(frozen=True)
class SassOutput:
    """The CSS produced by a Sass pipeline."""

    cfg: BuildConfig
    id: int
    css_ref: CssRef

    def finalize(self, dom: BeautifulSoup) -> None:
        """Replace the source link element with a style element or a stylesheet link."""
        if self.css_ref.inline:
            html = f'<style type="text/css">{self.css_ref.value}</style>'
        else:
            html = f'<link rel="stylesheet" href="{self.cfg.public_url}{self.css_ref.value}"/>'
        replace_with_html(dom, trunk_id_selector(self.id), html)


class Sass:
    """Pipeline compiling a sass/scss file to CSS."""

    def __init__(
        self,
        cfg: BuildConfig,
        html_dir: str | os.PathLike,
        attrs: Mapping[str, str],
        id: int,
    ) -> None:
        href = attrs.get(ATTR_HREF)
        if href is None:
            raise AssetError(
                'required attr `href` missing for <link data-trunk rel="sass|scss" .../> element'
            )
        self.id = id
        self.cfg = cfg
        self.asset = AssetFile.from_path(html_dir, href_to_path(href))
        self.use_inline = ATTR_INLINE in attrs

    def run(self) -> SassOutput:
        """Compile the stylesheet and either keep it for inlining or write it to the dist dir."""
        sass = tools.get(Application.SASS, self.cfg.tools.sass)
        style = "compressed" if self.cfg.release else "expanded"
        staging = Path(self.cfg.staging_dist)
        file_name = f"{self.asset.file_stem}.css"
        file_path = staging / file_name
        args = ["--no-source-map", "-s", style, os.fspath(self.asset.path), os.fspath(file_path)]

        logger.info("compiling sass/scss %s", self.asset.path)
        tools.run_command(Application.SASS.value, sass, args)

        try:
            css = file_path.read_text(encoding="utf-8")
            file_path.unlink()
        except (OSError, UnicodeDecodeError) as err:
            raise AssetError(f"error reading compiled CSS {file_path}") from err

        if self.use_inline:
            css_ref = CssRef(value=css, inline=True)
        else:
            if self.cfg.filehash:
                file_name = f"{self.asset.file_stem}-{seahash(css.encode('utf-8')):x}.css"
            out_path = staging / file_name
            try:
                out_path.write_text(css, encoding="utf-8")
            except OSError as err:
                raise AssetError("error writing SASS pipeline output") from err
            css_ref = CssRef(value=file_name)

        logger.info("finished compiling sass/scss %s", self.asset.path)
        return SassOutput(cfg=self.cfg, id=self.id, css_ref=css_ref)