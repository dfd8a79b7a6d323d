"""
Closed mapping from configured handler names to behaviors.
"""

from enum import Enum
from typing import Dict, List, Optional, Type

from shared.errors import HandlerNotFoundError
from shared.metrics import MetricsCollector

from ..auth import VerifierCache
from ..models import AuthConfig
from .base import Behavior
from .hello import HelloBehavior


class HandlerName(str, Enum):
    """Handler names accepted in endpoint configuration."""

    HELLO = "handleHello"


_BEHAVIORS: Dict[HandlerName, Type[Behavior]] = {
    HandlerName.HELLO: HelloBehavior,
}


class HandlerRegistry:
    """Resolves handler names into behaviors bound to an AuthConfig."""

    def __init__(
        self,
        verifiers: VerifierCache,
        *,
        verification_timeout: float = 5.0,
        metrics: Optional[MetricsCollector] = None,
    ) -> None:
        self.verifiers = verifiers
        self.verification_timeout = verification_timeout
        self.metrics = metrics

    @staticmethod
    def known_handlers() -> List[str]:
        return [name.value for name in HandlerName]

    def resolve(self, name: str, auth: AuthConfig) -> Behavior:
        """Build the behavior for ``name``.

        Raises ``HandlerNotFoundError`` for names outside ``HandlerName``.
        """
        try:
            handler = HandlerName(name)
        except ValueError:
            raise HandlerNotFoundError(name, details={"known_handlers": self.known_handlers()}) from None

        behavior_cls = _BEHAVIORS[handler]
        return behavior_cls(
            auth,
            self.verifiers,
            verification_timeout=self.verification_timeout,
            metrics=self.metrics,
        )
