"""Shared helpers for composing CLI command contexts.

Commands build their services through :class:`CLIContext` so a test can
hand in a context whose factory returns fakes instead of network clients.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, replace
from pathlib import Path
from typing import TypeVar

from bidscreen.app.config import Settings, load_settings
from bidscreen.app.dependencies import ServiceContainer, build_container

T = TypeVar("T")

ContainerFactory = Callable[..., ServiceContainer]


@dataclass(frozen=True)
class CLIContext:
    """Container for CLI settings and the factory that wires services."""

    settings: Settings
    container_factory: ContainerFactory = build_container

    @property
    def db_path(self) -> Path:
        return self.settings.db_path

    def run(
        self,
        fn: Callable[[ServiceContainer], Awaitable[T]],
        *,
        service_role: bool = False,
    ) -> T:
        """Build the services, run ``fn`` on a fresh event loop, then close them."""

        async def _runner() -> T:
            container = self.container_factory(self.settings, service_role=service_role)
            try:
                return await fn(container)
            finally:
                await container.close()

        return asyncio.run(_runner())


def build_cli_context(
    db_path: str | Path | None = None,
    *,
    config_path: str | Path | None = None,
) -> CLIContext:
    settings = load_settings(config_path)
    if db_path is not None:
        settings = replace(settings, db_path=Path(db_path))
    return CLIContext(settings=settings)


__all__ = ["CLIContext", "build_cli_context"]
