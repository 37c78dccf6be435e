from typing import Iterable

__all__ = [
    "DependencyError",
    "DefinitionNotFound",
    "ValueNotResolved",
    "ResolutionFailed",
    "CircularDependencyError",
]


class DependencyError(Exception):
    """Raised when a component or one of its requirements cannot be resolved."""

    pass


class DefinitionNotFound(DependencyError, KeyError):
    """Raised when no component definition is registered under a name."""

    def __init__(self, name: str, available: Iterable[str]):
        self.name = name
        self.available = sorted(available)
        super().__init__(
            f"Component not found: `{name}'.\n"
            f"Available components are: {', '.join(self.available)}"
        )

    # KeyError would otherwise repr() the message
    def __str__(self) -> str:
        return self.args[0]


class ValueNotResolved(DependencyError, KeyError):
    """Raised when the value of a component is requested before it has been resolved."""

    def __init__(self, name: str, resolved: Iterable[str]):
        self.name = name
        self.resolved = sorted(resolved)
        super().__init__(
            f"Component not resolved: `{name}'.\n"
            f"Resolved components are: {', '.join(self.resolved)}"
        )

    def __str__(self) -> str:
        return self.args[0]


class ResolutionFailed(DependencyError):
    """Raised in a thread that waited for another thread's resolution of a component to fail.

    The original error is available as ``__cause__``.
    """

    def __init__(self, name: str, error: BaseException):
        self.name = name
        super().__init__(
            f"Component `{name}' failed to resolve on another thread: {error!r}"
        )


class CircularDependencyError(DependencyError):
    """Raised when a component requires itself, directly or transitively, on one thread."""

    def __init__(self, chain: list[str]):
        self.chain = chain
        super().__init__(f"Circular dependency: {' -> '.join(chain)}")
