"""
Site lookup glue.

A PLMXML export names the PLM site it came from (<Site siteId="...">). The
host keeps a site-settings store mapping site ids to the base URL of that
site's web client; with it, any revision / product / dataset / form carrying
an external-system uid can be turned into a deep link. This module only
matches sites and builds link strings; it never opens a connection.
"""

import json
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Protocol, Tuple, Union

from pydantic import BaseModel, Field, TypeAdapter

from .core.constants import EXTERNAL_LINK_ROUTE
from .core.types import Site
from .utils.logging import get_logger

logger = get_logger(__name__)


class SiteSettingsProvider(Protocol):
    def lookup(self, site_id: str) -> Optional[str]:
        """Return the external system base URL for a site id, if configured."""


class SiteSetting(BaseModel):
    """One row of the site settings file."""

    site_id: str = Field(alias="siteId")
    url: str

    model_config = {"populate_by_name": True}


_SITE_SETTINGS_ADAPTER = TypeAdapter(List[SiteSetting])


class StaticSiteSettings:
    """
    In-memory site settings.

    The JSON file format is a list of records:

        [{"siteId": "-1234567", "url": "https://plm.example.com/awc"}]

    Rows with an empty site id or URL are skipped.
    """

    def __init__(self, settings: Optional[Iterable[SiteSetting]] = None):
        self._urls: Dict[str, str] = {}
        for setting in settings or ():
            if setting.site_id and setting.url:
                self._urls[setting.site_id] = setting.url

    @classmethod
    def from_mapping(cls, mapping: Dict[str, str]) -> "StaticSiteSettings":
        return cls(SiteSetting(site_id=k, url=v) for k, v in mapping.items())

    @classmethod
    def from_json_file(cls, path: Union[str, Path]) -> "StaticSiteSettings":
        """
        Load settings from a JSON file.

        Raises:
            FileNotFoundError: If the file does not exist
            pydantic.ValidationError: If a row is missing siteId or url
        """
        with open(path, "r", encoding="utf-8") as f:
            rows = json.load(f)
        settings = _SITE_SETTINGS_ADAPTER.validate_python(rows)
        logger.info(f"Loaded {len(settings)} site setting(s) from {path}")
        return cls(settings)

    def lookup(self, site_id: str) -> Optional[str]:
        return self._urls.get(site_id)

    def has_site(self, site_id: Optional[str]) -> bool:
        return site_id is not None and site_id in self._urls

    def __len__(self) -> int:
        return len(self._urls)


def find_matching_site(
    sites: Dict[str, Site],
    provider: SiteSettingsProvider,
) -> Optional[Tuple[str, str]]:
    """
    Find the first document site that has a configured URL.

    Sites are tried in document order.

    Returns:
        (site_id, base_url), or None when no site is configured
    """
    for site in sites.values():
        if not site.site_id:
            continue
        url = provider.lookup(site.site_id)
        if url:
            return site.site_id, url
    logger.debug(f"No configured site among {[s.site_id for s in sites.values()]}")
    return None


def external_link(base_url: str, uid: Optional[str]) -> Optional[str]:
    """
    Build a deep link to an object in the external PLM web client.

    Examples:
        >>> external_link("https://plm.example.com/awc/", "QWERTY123")
        'https://plm.example.com/awc/#/com.siemens.splm.clientfx.tcui.xrt.showObject?uid=QWERTY123'
        >>> external_link("https://plm.example.com/awc", None) is None
        True
    """
    if not uid or not base_url:
        return None
    return f"{base_url.rstrip('/')}/{EXTERNAL_LINK_ROUTE}{uid}"
