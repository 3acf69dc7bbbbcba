"""Netscape 쿠키 파일 직렬화/파싱 테스트"""

from pathlib import Path

from mediafetch.credentials.cookie_jar import (
    NETSCAPE_HEADER,
    CookieRecord,
    parse_cookies,
    read_cookie_file,
    serialize_cookies,
    write_cookie_file,
)


def test_from_playwright_session_cookie() -> None:
    record = CookieRecord.from_playwright(
        {
            "name": "VISITOR_INFO1_LIVE",
            "value": "abc",
            "domain": ".youtube.com",
            "path": "/",
            "expires": -1,
            "httpOnly": True,
            "secure": True,
        }
    )
    assert record.expires == 0
    assert record.http_only is True
    assert record.secure is True


def test_to_line_fields() -> None:
    line = CookieRecord(name="PREF", value="f6=8", domain=".youtube.com", secure=True, expires=1700000000).to_line()
    assert line.split("\t") == [".youtube.com", "TRUE", "/", "TRUE", "1700000000", "PREF", "f6=8"]


def test_host_only_domain_has_false_subdomain_flag() -> None:
    line = CookieRecord(name="a", value="b", domain="www.youtube.com").to_line()
    assert line.split("\t")[1] == "FALSE"


def test_serialize_header_and_httponly_prefix() -> None:
    text = serialize_cookies(
        [
            CookieRecord(name="SID", value="x", domain=".youtube.com", http_only=True),
            CookieRecord(name="", value="ignored", domain=".youtube.com"),
        ]
    )
    lines = text.splitlines()
    assert lines[0] == NETSCAPE_HEADER
    assert any(line.startswith("#HttpOnly_.youtube.com\t") for line in lines)
    assert "ignored" not in text


def test_parse_keeps_httponly_and_skips_garbage() -> None:
    text = "\n".join(
        [
            NETSCAPE_HEADER,
            "# comment",
            "#HttpOnly_.youtube.com\tTRUE\t/\tTRUE\t0\tSID\tsecret",
            ".youtube.com\tTRUE\t/\tFALSE\tnotanumber\tPREF\tv",
            "broken line without tabs",
            "",
        ]
    )
    records = parse_cookies(text)

    assert [r.name for r in records] == ["SID", "PREF"]
    assert records[0].http_only is True
    assert records[0].secure is True
    assert records[1].expires == 0


def test_write_replaces_atomically(tmp_path: Path) -> None:
    target = tmp_path / "auth" / "cookies.txt"
    first = [CookieRecord(name="A", value="1", domain=".youtube.com")]
    second = [
        CookieRecord(name="B", value="2", domain=".youtube.com"),
        CookieRecord(name="C", value="3", domain=".youtube.com"),
    ]

    assert write_cookie_file(target, first) == 1
    assert write_cookie_file(target, second) == 2

    assert [r.name for r in read_cookie_file(target)] == ["B", "C"]
    # 임시 파일이 남지 않아야 함
    assert [p.name for p in target.parent.iterdir()] == ["cookies.txt"]


def test_read_missing_file_returns_none(tmp_path: Path) -> None:
    assert read_cookie_file(tmp_path / "missing.txt") is None
