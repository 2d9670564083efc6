"""Token registry mapping DSL names to step factories."""

from __future__ import annotations

from typing import Awaitable, Callable, Iterable

from .state import PipelineState

Step = Callable[[PipelineState], Awaitable[PipelineState]]
StepFactory = Callable[[str | None], Step]


class TokenRegistry:
    """Static, case-insensitive map from token names to step factories.

    Several names may map to the same factory. Registering an alias again for
    the same factory is a no-op; rebinding it to another factory is an error.

    Example:
        registry = TokenRegistry()

        @registry.token("SetPrompt", "Set")
        def set_prompt(args: str | None = None) -> Step:
            async def step(s: PipelineState) -> PipelineState:
                s.prompt = args or ""
                return s
            return step

        factory, found = registry.resolve("set")
    """

    def __init__(self) -> None:
        self._factories: dict[str, StepFactory] = {}
        self._canonical: dict[StepFactory, str] = {}
        self._aliases: dict[StepFactory, list[str]] = {}

    def register(self, names: Iterable[str], factory: StepFactory) -> None:
        names = [name.strip() for name in names if name and name.strip()]
        if not names:
            raise ValueError("At least one token name is required")

        for name in names:
            key = name.lower()
            existing = self._factories.get(key)
            if existing is not None and existing is not factory:
                raise ValueError(
                    f"Duplicate token name: {name} (already bound to "
                    f"{self._canonical.get(existing, existing)!r})"
                )

        self._canonical.setdefault(factory, names[0])
        aliases = self._aliases.setdefault(factory, [])
        for name in names:
            self._factories[name.lower()] = factory
            if name not in aliases:
                aliases.append(name)

    def token(self, *names: str) -> Callable[[StepFactory], StepFactory]:
        """Decorator registering a step factory under one or more names."""

        def wrapper(factory: StepFactory) -> StepFactory:
            self.register(names, factory)
            setattr(factory, "__token_name__", names[0])
            return factory

        return wrapper

    def resolve(self, name: str) -> tuple[StepFactory | None, bool]:
        factory = self._factories.get(name.strip().lower())
        return factory, factory is not None

    def canonical_name(self, factory: StepFactory) -> str:
        return self._canonical.get(factory, getattr(factory, "__name__", "step"))

    def aliases(self, factory: StepFactory) -> list[str]:
        return list(self._aliases.get(factory, []))

    def names(self) -> list[str]:
        """Canonical names, one per factory, in registration order."""
        return list(self._canonical.values())

    def groups(self) -> list[list[str]]:
        """Alias groups, one per factory, in registration order."""
        return [list(aliases) for aliases in self._aliases.values()]

    def __contains__(self, name: str) -> bool:
        return name.strip().lower() in self._factories

    def __len__(self) -> int:
        return len(self._canonical)


default_registry = TokenRegistry()


def token(*names: str) -> Callable[[StepFactory], StepFactory]:
    """Register a step factory in the default registry."""
    return default_registry.token(*names)
