"""자격 증명(쿠키 파일) 관리."""

from .cookie_jar import CookieRecord, parse_cookies, serialize_cookies, write_cookie_file
from .harvester import PlaywrightSessionHarvester, SessionHarvester
from .manager import CredentialManager

__all__ = [
    "CookieRecord",
    "CredentialManager",
    "PlaywrightSessionHarvester",
    "SessionHarvester",
    "parse_cookies",
    "serialize_cookies",
    "write_cookie_file",
]
