import locale
import platform
from typing import Dict

from pydantic import BaseModel

from .config import Settings


class SiteInfo(BaseModel):
    """Host installation details reported with every update server request."""

    url: str = ""
    locale: str = "en_US"
    platform_version: str = ""

    def as_query(self) -> Dict[str, str]:
        return {
            "wp_url": self.url,
            "wp_locale": self.locale,
            "wp_version": self.platform_version,
        }


def detect_locale() -> str:
    """
    Best-effort locale of the running process, e.g. "en_US".
    """
    try:
        lang = locale.getlocale()[0]
    except ValueError:
        lang = None

    if not lang or lang in ("C", "POSIX"):
        return "en_US"

    return lang.split(".")[0]


def get_site_info(config: Settings) -> SiteInfo:
    """
    Collect site information from settings, filling gaps from the environment.
    """
    return SiteInfo(
        url=config.SITE_URL,
        locale=config.SITE_LOCALE or detect_locale(),
        platform_version=config.PLATFORM_VERSION or platform.python_version(),
    )
