"""Netscape 쿠키 파일 직렬화/파싱

yt-dlp `--cookies` 가 읽는 형식입니다.
각 줄: domain, include_subdomains, path, secure, expires, name, value (탭 구분)
"""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional

NETSCAPE_HEADER = "# Netscape HTTP Cookie File"
HTTPONLY_PREFIX = "#HttpOnly_"


@dataclass(frozen=True)
class CookieRecord:
    name: str
    value: str
    domain: str
    path: str = "/"
    secure: bool = False
    expires: int = 0
    http_only: bool = False

    @classmethod
    def from_playwright(cls, cookie: Mapping[str, Any]) -> "CookieRecord":
        """Playwright context.cookies() 항목 변환 (세션 쿠키 expires=-1 → 0)"""
        expires = cookie.get("expires") or 0
        try:
            expires_int = int(expires)
        except (TypeError, ValueError):
            expires_int = 0
        return cls(
            name=str(cookie.get("name", "")),
            value=str(cookie.get("value", "")),
            domain=str(cookie.get("domain", "")),
            path=str(cookie.get("path") or "/"),
            secure=bool(cookie.get("secure", False)),
            expires=max(0, expires_int),
            http_only=bool(cookie.get("httpOnly", False)),
        )

    def to_line(self) -> str:
        domain = f"{HTTPONLY_PREFIX}{self.domain}" if self.http_only else self.domain
        include_subdomains = "TRUE" if self.domain.startswith(".") else "FALSE"
        return "\t".join(
            [
                domain,
                include_subdomains,
                self.path,
                "TRUE" if self.secure else "FALSE",
                str(self.expires),
                self.name,
                self.value,
            ]
        )


def serialize_cookies(cookies: Iterable[CookieRecord]) -> str:
    lines = [
        NETSCAPE_HEADER,
        "# This file is generated by mediafetch. Do not edit.",
        "",
    ]
    lines.extend(c.to_line() for c in cookies if c.name)
    return "\n".join(lines) + "\n"


def parse_cookies(text: str) -> list[CookieRecord]:
    """Netscape 쿠키 텍스트 파싱 (잘못된 줄은 무시)"""
    records: list[CookieRecord] = []
    for raw in (text or "").splitlines():
        line = raw.strip()
        http_only = False
        if line.startswith(HTTPONLY_PREFIX):
            http_only = True
            line = line[len(HTTPONLY_PREFIX):]
        elif not line or line.startswith("#"):
            continue

        parts = line.split("\t")
        if len(parts) != 7:
            continue
        domain, _include, path, secure, expires, name, value = parts
        try:
            expires_int = int(expires)
        except ValueError:
            expires_int = 0
        records.append(
            CookieRecord(
                name=name,
                value=value,
                domain=domain,
                path=path or "/",
                secure=secure.upper() == "TRUE",
                expires=expires_int,
                http_only=http_only,
            )
        )
    return records


def write_cookie_file(path: Path, cookies: Iterable[CookieRecord]) -> int:
    """같은 디렉토리의 임시 파일에 쓴 뒤 os.replace로 교체

    Returns:
        int: 기록된 쿠키 수
    """
    records = [c for c in cookies if c.name]
    path.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent))
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(serialize_cookies(records))
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except OSError:
            pass
        raise
    return len(records)


def read_cookie_file(path: Path) -> Optional[list[CookieRecord]]:
    try:
        return parse_cookies(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return None
