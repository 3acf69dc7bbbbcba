"""IdentityPool 단위 테스트 (로테이션 / 밴 / 헬스)"""

from __future__ import annotations

import threading
from unittest.mock import MagicMock

import pytest

from conftest import FakeClock
from mediafetch.identity import HealthState, Identity, IdentityPool


def _identities(n: int) -> list[Identity]:
    return [Identity(host=f"10.0.0.{i}", port=8000 + i) for i in range(1, n + 1)]


@pytest.fixture
def pool(fake_clock: FakeClock) -> IdentityPool:
    return IdentityPool(_identities(3), default_ban_seconds=1800, fail_threshold=3, clock=fake_clock)


class TestIdentityParse:
    def test_host_port(self) -> None:
        identity = Identity.parse("1.2.3.4:8080")
        assert identity.host == "1.2.3.4"
        assert identity.port == 8080
        assert identity.proxy_url == "http://1.2.3.4:8080"

    def test_with_auth_and_scheme(self) -> None:
        identity = Identity.parse("socks5://user:pa:ss@proxy.local:1080")
        assert identity.scheme == "socks5"
        assert identity.username == "user"
        assert identity.password == "pa:ss"
        assert identity.proxy_url == "socks5://user:pa:ss@proxy.local:1080"
        assert identity.server_url == "socks5://proxy.local:1080"

    def test_repr_hides_credentials(self) -> None:
        identity = Identity.parse("user:secret@1.2.3.4:8080")
        assert "secret" not in repr(identity)

    @pytest.mark.parametrize("raw", ["", "host-only", "1.2.3.4:notaport", "1.2.3.4:70000"])
    def test_invalid_entries(self, raw: str) -> None:
        with pytest.raises(ValueError):
            Identity.parse(raw)


class TestRotation:
    def test_round_robin(self, pool: IdentityPool) -> None:
        keys = [pool.next().key for _ in range(6)]
        assert keys[:3] == ["http://10.0.0.1:8001", "http://10.0.0.2:8002", "http://10.0.0.3:8003"]
        assert keys[3:] == keys[:3]

    def test_empty_pool_returns_none(self) -> None:
        assert IdentityPool([]).next() is None

    def test_duplicates_are_collapsed(self) -> None:
        pool = IdentityPool([Identity("a", 1), Identity("a", 1), Identity("b", 2)])
        assert len(pool) == 2

    def test_same_endpoint_with_different_auth_or_scheme_is_distinct(self, fake_clock: FakeClock) -> None:
        alice = Identity.parse("alice:pw@proxy.local:8080")
        bob = Identity.parse("bob:pw@proxy.local:8080")
        socks = Identity.parse("socks5://proxy.local:8080")
        pool = IdentityPool([alice, bob, socks], clock=fake_clock)

        assert len(pool) == 3
        assert "pw" not in alice.key

        pool.ban(alice)
        assert pool.is_banned(alice)
        assert not pool.is_banned(bob)
        assert not pool.is_banned(socks)


class TestBan:
    def test_banned_identity_not_returned_until_expiry(self, pool: IdentityPool, fake_clock: FakeClock) -> None:
        banned = _identities(3)[0]
        pool.ban(banned)

        for _ in range(10):
            assert pool.next() != banned

        fake_clock.advance(1799)
        assert all(pool.next() != banned for _ in range(4))

        fake_clock.advance(2)
        seen = {pool.next() for _ in range(3)}
        assert banned in seen

    def test_all_banned_resets_and_still_returns(self, pool: IdentityPool) -> None:
        for identity in _identities(3):
            pool.ban(identity)

        assert pool.next() is not None
        assert pool.stats()["banned"] == 0

    def test_reban_refreshes_expiry(self, pool: IdentityPool, fake_clock: FakeClock) -> None:
        target = _identities(3)[1]
        pool.ban(target, duration_s=100)
        fake_clock.advance(90)
        pool.ban(target, duration_s=100)
        fake_clock.advance(20)
        assert pool.is_banned(target)

    def test_unban_never_banned_is_noop(self, pool: IdentityPool) -> None:
        pool.unban(_identities(3)[0])
        assert pool.stats()["banned"] == 0

    def test_unban(self, pool: IdentityPool) -> None:
        target = _identities(3)[0]
        pool.ban(target)
        pool.unban(target)
        assert not pool.is_banned(target)
        assert pool.health_of(target) == HealthState.UNKNOWN


class TestHealth:
    def test_consecutive_failures_trigger_ban(self, pool: IdentityPool) -> None:
        target = _identities(3)[2]
        pool.report_health(target, ok=False)
        pool.report_health(target, ok=False)
        assert not pool.is_banned(target)
        pool.report_health(target, ok=False)
        assert pool.is_banned(target)
        assert pool.health_of(target) == HealthState.BANNED

    def test_success_resets_failure_counter(self, pool: IdentityPool) -> None:
        target = _identities(3)[0]
        pool.report_health(target, ok=False)
        pool.report_health(target, ok=False)
        pool.report_health(target, ok=True)
        pool.report_health(target, ok=False)
        assert not pool.is_banned(target)
        assert pool.health_of(target) == HealthState.HEALTHY

    def test_stats(self, pool: IdentityPool) -> None:
        target = _identities(3)[0]
        pool.report_health(_identities(3)[1], ok=True)
        pool.ban(target)
        stats = pool.stats()
        assert stats["total"] == 3
        assert stats["banned"] == 1
        assert stats["available"] == 2
        assert stats["healthy"] == 1


def test_concurrent_next_is_thread_safe() -> None:
    pool = IdentityPool(_identities(5))
    results: list[Identity] = []
    lock = threading.Lock()

    def worker() -> None:
        for _ in range(200):
            identity = pool.next()
            with lock:
                results.append(identity)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(results) == 1600
    assert all(r is not None for r in results)


def test_from_settings_parses_list_and_file(tmp_path, monkeypatch) -> None:
    from mediafetch.core.config import settings

    proxy_file = tmp_path / "proxies.txt"
    proxy_file.write_text("# comment\n5.5.5.5:3128\nbroken-entry\n", encoding="utf-8")
    monkeypatch.setattr(settings, "proxy_list", "1.1.1.1:80, user:pw@2.2.2.2:8080")
    monkeypatch.setattr(settings, "proxy_file", str(proxy_file))

    pool = IdentityPool.from_settings()

    assert len(pool) == 3
    assert pool.stats()["total"] == 3


class TestConnectivityCheck:
    @staticmethod
    def _client(dead: set[str]) -> MagicMock:
        async def check_proxy(url, *, proxy_url, timeout_s):
            return proxy_url not in dead

        client = MagicMock()
        client.check_proxy = MagicMock(side_effect=check_proxy)
        return client

    @pytest.mark.asyncio
    async def test_check_records_results(self, fake_clock: FakeClock) -> None:
        identities = _identities(3)
        pool = IdentityPool(identities, fail_threshold=3, clock=fake_clock)
        client = self._client({identities[1].proxy_url})

        summary = await pool.check_connectivity(client, url="https://example.test/generate_204", timeout_s=2)

        assert summary == {"working": 2, "failed": 1, "last_tested": fake_clock.now}
        assert pool.stats()["connectivity"] == summary
        assert pool.health_of(identities[0]) == HealthState.HEALTHY
        assert pool.health_of(identities[1]) == HealthState.UNKNOWN
        kwargs = client.check_proxy.call_args.kwargs
        assert kwargs["timeout_s"] == 2

    @pytest.mark.asyncio
    async def test_repeated_check_failures_ban(self, fake_clock: FakeClock) -> None:
        identities = _identities(2)
        pool = IdentityPool(identities, fail_threshold=2, clock=fake_clock)
        client = self._client({identities[0].proxy_url})

        await pool.check_connectivity(client, timeout_s=1)
        assert not pool.is_banned(identities[0])
        await pool.check_connectivity(client, timeout_s=1)

        assert pool.is_banned(identities[0])
        assert all(pool.next() == identities[1] for _ in range(3))

    def test_no_check_yet(self) -> None:
        assert IdentityPool(_identities(1)).stats()["connectivity"] == {"working": 0, "failed": 0, "last_tested": None}
