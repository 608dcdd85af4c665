"""Copy-file asset pipeline: copy a single file into the dist dir."""

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
    remove_selected,
    trunk_id_selector,
)

logger = logging.getLogger(__name__)

TYPE_COPY_FILE = "copy-file"


@dataclass(frozen=True)
class CopyFileOutput:
    """The result of a CopyFile pipeline."""

    id: int

    def finalize(self, dom: BeautifulSoup) -> None:
        """Remove the source link element."""
        remove_selected(dom, trunk_id_selector(self.id))


class CopyFile:
    """Pipeline copying a file unchanged into the staging dist dir."""

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
                'required attr `href` missing for <link data-trunk rel="copyfile" .../> element'
            )
        self.id = id
        self.cfg = cfg
        self.asset = AssetFile.from_path(html_dir, href_to_path(href))

    def run(self) -> CopyFileOutput:
        """Copy the file, keeping its name."""
        logger.info("copying file %s", self.asset.path)
        self.asset.copy(self.cfg.staging_dist, False)
        logger.info("finished copying file %s", self.asset.path)
        return CopyFileOutput(id=self.id)