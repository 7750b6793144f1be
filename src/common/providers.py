"""
Capability Providers with Graceful Degradation

Many checks can be answered by more than one tool (yay or paru, ufw or
firewalld). A ProviderChain tries them in priority order; when none is
available the outcome is simply None.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, List, Optional

from .commands import command_exists

logger = logging.getLogger(__name__)


@dataclass
class Provider:
    """
    One way of providing a capability.

    Attributes:
        name: Provider name (usually the binary)
        check: Returns True when the provider can be used
        run: Implementation, called with the chain's arguments
    """
    name: str
    check: Callable[[], bool]
    run: Callable[..., Any]

    def is_available(self) -> bool:
        try:
            return bool(self.check())
        except Exception as e:
            logger.debug(f"Provider check failed for {self.name}: {e}")
            return False


def binary_provider(name: str, run: Callable[..., Any]) -> Provider:
    """Provider that is available when the binary of the same name exists."""
    return Provider(name=name, check=lambda: command_exists(name), run=run)


class ProviderChain:
    """
    Ordered list of providers for one capability.

    Example:
        chain = ProviderChain("aur", [
            binary_provider("yay", lambda: update_with("yay")),
            binary_provider("paru", lambda: update_with("paru")),
        ])
        chain.run()  # None when neither helper is installed
    """

    def __init__(self, capability: str, providers: Optional[List[Provider]] = None):
        self.capability = capability
        self.providers: List[Provider] = list(providers or [])

    def first_available(self) -> Optional[Provider]:
        """Return the first usable provider, or None."""
        for provider in self.providers:
            if provider.is_available():
                return provider
        logger.debug(f"No provider available for {self.capability}")
        return None

    def run(self, *args, **kwargs) -> Any:
        """Run the first usable provider; None when there is none."""
        provider = self.first_available()
        if provider is None:
            return None
        return provider.run(*args, **kwargs)
