"""JS asset pipeline."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

from bs4 import BeautifulSoup

from .asset import (
    AssetError,
    AssetFile,
    BuildConfig,
    href_to_path,
    replace_with_html,
    trunk_script_id_selector,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class JsOutput:
    """The script written by a Js pipeline."""

    cfg: BuildConfig
    id: int
    file: str

    def finalize(self, dom: BeautifulSoup) -> None:
        """Replace the source script element with one pointing at the output file."""
        replace_with_html(
            dom,
            trunk_script_id_selector(self.id),
            f'<script src="{self.cfg.public_url}{self.file}"/>',
        )


class Js:
    """Pipeline copying (and optionally hashing) a script."""

    def __init__(
        self,
        cfg: BuildConfig,
        html_dir: str | os.PathLike,
        src: str | None,
        id: int,
    ) -> None:
        if src is None:
            raise AssetError("required attr `src` missing for <script data-trunk .../> element")
        self.id = id
        self.cfg = cfg
        self.asset = AssetFile.from_path(html_dir, href_to_path(src))

    def run(self) -> JsOutput:
        """Copy the script into the staging dist dir."""
        logger.info("copying & hashing js %s", self.asset.path)
        file = self.asset.copy(self.cfg.staging_dist, self.cfg.filehash)
        logger.info("finished copying & hashing js %s", self.asset.path)
        return JsOutput(cfg=self.cfg, id=self.id, file=file)