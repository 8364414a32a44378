from app.modules.security.monitor import SecurityMonitor, security_monitor
from app.modules.security.session import SessionRegistry, session_registry


def get_session_registry() -> SessionRegistry:
    return session_registry


def get_security_monitor() -> SecurityMonitor:
    return security_monitor
