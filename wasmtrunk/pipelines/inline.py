"""Inline asset pipeline: paste a file's content straight into the HTML."""

from __future__ import annotations

import enum
import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass

from bs4 import BeautifulSoup

from .asset import (
    ATTR_HREF,
    ATTR_TYPE,
    AssetError,
    AssetFile,
    href_to_path,
    replace_with_html,
    trunk_id_selector,
)

logger = logging.getLogger(__name__)

TYPE_INLINE = "inline"

_UNKNOWN_TYPE = (
    'unknown type value for <link data-trunk rel="inline" .../> attr; '
    "please ensure the value is lowercase and is a supported content type"
)


class ContentType(enum.Enum):
    """How inlined content is placed into the page."""

    HTML = "html"
    CSS = "css"
    JS = "js"

    @classmethod
    def parse(cls, value: str) -> ContentType:
        """Parse a lowercase content type name."""
        try:
            return cls(value)
        except ValueError:
            raise AssetError(
                f'unknown `type="{value}"` value for <link data-trunk rel="inline" .../> attr; '
                "please ensure the value is lowercase and is a supported content type"
            ) from None

    @classmethod
    def from_attr_or_ext(cls, attr: str | None, ext: str | None) -> ContentType:
        """Use the ``type`` attribute if given, else infer from the file extension."""
        if attr is not None:
            return cls.parse(attr)
        if ext is not None:
            return cls.parse(ext)
        raise AssetError(_UNKNOWN_TYPE)


@dataclass(frozen=True)
class InlineOutput:
    """The content read by an Inline pipeline."""

    id: int
    content: str
    content_type: ContentType

    def finalize(self, dom: BeautifulSoup) -> None:
        """Replace the source link element with the inlined content."""
        if self.content_type is ContentType.CSS:
            html = f'<style type="text/css">{self.content}</style>'
        elif self.content_type is ContentType.JS:
            html = f"<script>{self.content}</script>"
        else:
            html = self.content
        replace_with_html(dom, trunk_id_selector(self.id), html)


class Inline:
    """Pipeline reading a file whose content is inlined into the page."""

    def __init__(self, html_dir: str | os.PathLike, attrs: Mapping[str, str], id: int) -> None:
        href = attrs.get(ATTR_HREF)
        if href is None:
            raise AssetError(
                'required attr `href` missing for <link data-trunk rel="inline" .../> element'
            )
        self.id = id
        self.asset = AssetFile.from_path(html_dir, href_to_path(href))
        self.content_type = ContentType.from_attr_or_ext(attrs.get(ATTR_TYPE), self.asset.ext)

    def run(self) -> InlineOutput:
        """Read the file content."""
        logger.info("reading file content %s", self.asset.path)
        content = self.asset.read_to_string()
        logger.info("finished reading file content %s", self.asset.path)
        return InlineOutput(id=self.id, content=content, content_type=self.content_type)