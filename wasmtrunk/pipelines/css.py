"""CSS asset pipeline."""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass

from bs4 import BeautifulSoup

from .asset import (
    ATTR_HREF,
    AssetError,
    AssetFile,
    BuildConfig,
    href_to_path,
    replace_with_html,
    trunk_id_selector,
)

logger = logging.getLogger(__name__)

TYPE_CSS = "css"


@dataclass(frozen=True)
class CssOutput:
    """The stylesheet written by a Css pipeline."""

    cfg: BuildConfig
    id: int
    file: str

    def finalize(self, dom: BeautifulSoup) -> None:
        """Replace the source link element with a stylesheet link."""
        replace_with_html(
            dom,
            trunk_id_selector(self.id),
            f'<link rel="stylesheet" href="{self.cfg.public_url}{self.file}"/>',
        )


class Css:
    """Pipeline copying (and optionally hashing) a stylesheet."""

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
                'required attr `href` missing for <link data-trunk rel="css" .../> element'
            )
        self.id = id
        self.cfg = cfg
        self.asset = AssetFile.from_path(html_dir, href_to_path(href))

    def run(self) -> CssOutput:
        """Copy the stylesheet into the staging dist dir."""
        logger.info("copying & hashing css %s", self.asset.path)
        file = self.asset.copy(self.cfg.staging_dist, self.cfg.filehash)
        logger.info("finished copying & hashing css %s", self.asset.path)
        return CssOutput(cfg=self.cfg, id=self.id, file=file)