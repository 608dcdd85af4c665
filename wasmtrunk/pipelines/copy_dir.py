"""Copy-dir asset pipeline: copy a whole directory into the dist dir."""

from __future__ import annotations

import logging
import os
import shutil
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from bs4 import BeautifulSoup

from .asset import (
    ATTR_HREF,
    AssetError,
    BuildConfig,
    href_to_path,
    remove_selected,
    trunk_id_selector,
)

logger = logging.getLogger(__name__)

TYPE_COPY_DIR = "copy-dir"
ATTR_TARGET_PATH = "data-target-path"


@dataclass(frozen=True)
class CopyDirOutput:
    """The result of a CopyDir pipeline."""

    id: int

    def finalize(self, dom: BeautifulSoup) -> None:
        """Remove the source link element."""
        remove_selected(dom, trunk_id_selector(self.id))


class CopyDir:
    """Pipeline copying a directory recursively into the staging dist dir."""

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
                'required attr `href` missing for <link data-trunk rel="copydir" .../> element'
            )
        path = href_to_path(href)
        if not path.is_absolute():
            path = Path(html_dir) / path
        target = attrs.get(ATTR_TARGET_PATH)
        self.id = id
        self.cfg = cfg
        self.path = path
        self.target_path = Path(target) if target is not None else None

    def run(self) -> CopyDirOutput:
        """Copy the directory into the staging dist dir."""
        logger.info("copying directory %s", self.path)
        try:
            canonical = self.path.resolve(strict=True)
        except OSError as err:
            raise AssetError(f"error taking canonical path of directory {self.path}") from err
        if not canonical.name:
            raise AssetError(f"could not get directory name of dir {canonical}")

        staging = Path(self.cfg.staging_dist)
        if self.target_path is not None:
            target = self.target_path
            if target.is_absolute() or ".." in target.parts:
                raise AssetError(
                    f"Invalid data-target-path '{target}'. Must be a relative path without '..'."
                )
            dir_out = staging / target
            try:
                dir_out.mkdir(parents=True, exist_ok=True)
            except OSError as err:
                raise AssetError(f"error creating directory {dir_out}") from err
        else:
            dir_out = staging / canonical.name

        try:
            shutil.copytree(canonical, dir_out, dirs_exist_ok=True)
        except (OSError, shutil.Error) as err:
            raise AssetError(f"error copying directory {canonical} to {dir_out}") from err

        logger.info("finished copying directory %s", self.path)
        return CopyDirOutput(id=self.id)