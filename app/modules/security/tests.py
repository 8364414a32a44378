"""
Testes de sessão do usuário e do monitor de segurança
"""

from uuid import uuid4

from app.core.config import settings
from app.modules.security.monitor import RateLimit, SecurityMonitor
from app.modules.security.session import SessionRegistry, UserSession


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class TestUserSession:
    """Testes do timer de inatividade e das flags de operação"""

    def test_session_expires_after_idle_timeout(self):
        clock = FakeClock()
        session = UserSession(uuid4(), idle_timeout=600, clock=clock)

        clock.advance(600)
        assert not session.is_expired()

        clock.advance(1)
        assert session.is_expired()

    def test_activity_resets_timer(self):
        clock = FakeClock()
        session = UserSession(uuid4(), idle_timeout=600, clock=clock)

        clock.advance(500)
        session.reset_idle_timer()
        clock.advance(500)

        assert not session.is_expired()
        assert session.idle_seconds() == 500

    def test_operation_flag_rejects_second_call(self):
        session = UserSession(uuid4(), idle_timeout=600)

        assert session.try_begin("bill_status_update")
        assert not session.try_begin("bill_status_update")
        assert session.try_begin("other_operation")

        session.end("bill_status_update")
        assert not session.is_busy("bill_status_update")
        assert session.try_begin("bill_status_update")


class TestSessionRegistry:
    def test_get_or_create_reuses_session(self):
        registry = SessionRegistry(idle_timeout=600)
        user_id = uuid4()

        first = registry.get_or_create(user_id)

        assert registry.get_or_create(user_id) is first
        registry.discard(user_id)
        assert registry.get(user_id) is None


class TestSecurityMonitor:
    """Testes do rate limit e do buffer de eventos"""

    def test_rate_limit_blocks_after_max_attempts(self):
        clock = FakeClock()
        monitor = SecurityMonitor(limits={"operations": RateLimit(3, 60)}, clock=clock)

        results = [monitor.check_rate_limit("user:operations") for _ in range(4)]

        assert results == [False, False, False, True]
        events = monitor.get_events()
        assert [e.event_type for e in events] == ["rate_limit_exceeded"]

    def test_event_recorded_once_per_block(self):
        monitor = SecurityMonitor(limits={"operations": RateLimit(2, 60)})
        for _ in range(5):
            monitor.check_rate_limit("k")

        assert len(monitor.get_events()) == 1
        assert monitor.check_rate_limit("outra-chave") is False

    def test_reset_clears_counters(self):
        monitor = SecurityMonitor(limits={"operations": RateLimit(1, 60)})
        monitor.check_rate_limit("k")
        assert monitor.check_rate_limit("k") is True

        monitor.reset()

        assert monitor.check_rate_limit("k") is False
        assert monitor.get_events() == []

    def test_event_buffer_is_bounded(self):
        monitor = SecurityMonitor(buffer_size=settings.SECURITY_EVENT_BUFFER_SIZE)

        for i in range(settings.SECURITY_EVENT_BUFFER_SIZE + 5):
            monitor.record_event("suspicious_activity", metadata={"n": i})

        events = monitor.get_events()
        assert len(events) == settings.SECURITY_EVENT_BUFFER_SIZE
        assert events[0].metadata == {"n": 5}


class TestAuthentication:
    """Testes da autenticação nos endpoints"""

    def test_invalid_token_is_recorded(self, client):
        from app.modules.security.monitor import security_monitor

        response = client.get("/banks/", headers={"Authorization": "Bearer invalido"})

        assert response.status_code == 401
        assert security_monitor.get_events()[-1].event_type == "suspicious_activity"

    def test_operation_quota_returns_429(self, client, auth_headers, monkeypatch):
        from app.modules.security.monitor import security_monitor

        monkeypatch.setitem(security_monitor.limits, "operations", RateLimit(2, 60))

        statuses = [
            client.post("/banks/", json={"name": f"Banco {i}"}, headers=auth_headers).status_code
            for i in range(3)
        ]

        assert statuses == [201, 201, 429]
