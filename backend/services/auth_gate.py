# backend/services/auth_gate.py
import enum
from dataclasses import dataclass
from typing import Callable, Optional

from services.auth import SessionContext

LOGIN_PATH = "/login"
DEFAULT_PATH = "/dashboard"


class GateState(str, enum.Enum):
    LOADING = "loading"
    REDIRECT = "redirect"
    RENDER = "render"


@dataclass
class GateDecision:
    state: GateState
    location: Optional[str] = None
    # Where the visitor was headed, kept so login can send them back
    came_from: Optional[str] = None


def post_login_redirect(came_from: Optional[str]) -> str:
    # Only same-site paths, and never back to the login page itself
    if not came_from or not came_from.startswith("/") or came_from.startswith("//"):
        return DEFAULT_PATH
    if came_from.split("?", 1)[0] == LOGIN_PATH:
        return DEFAULT_PATH
    return came_from


class AuthGate:
    def __init__(self, context: SessionContext):
        self.context = context
        self.decision: Optional[GateDecision] = None

    def evaluate(self, path: str, required_role: Optional[str] = None) -> GateDecision:
        if not self.context.resolved:
            return GateDecision(GateState.LOADING)
        if not self.context.is_authenticated():
            return GateDecision(GateState.REDIRECT, location=LOGIN_PATH, came_from=path)
        if required_role and self.context.current_role() != required_role:
            return GateDecision(GateState.REDIRECT, location=DEFAULT_PATH)
        return GateDecision(GateState.RENDER)

    def watch(
        self,
        path: str,
        required_role: Optional[str] = None,
        on_change: Optional[Callable[[GateDecision], None]] = None,
    ) -> Callable[[], None]:
        """Evaluate now and again after every session change; returns unsubscribe."""
        def _reevaluate(*_):
            self.decision = self.evaluate(path, required_role)
            if on_change is not None:
                on_change(self.decision)

        _reevaluate()
        return self.context.subscribe(_reevaluate)
