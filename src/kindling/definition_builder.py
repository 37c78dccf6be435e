"""Utilities for constructing ComponentDefinition objects."""

from typing import Any, Callable, Optional, TYPE_CHECKING

from kindling.domain import ComponentDefinition, Hook, NameArg, flatten_names

if TYPE_CHECKING:
    from kindling.registry import ComponentRegistry

__all__ = ["DefinitionBuilder", "make_definition"]


class DefinitionBuilder:
    """
    Collects the declarations of a component and builds its definition.

    Every declaration method returns the builder, so declarations can be
    chained. Declaring the same thing twice replaces the earlier declaration.

    Example:
        >>> def database(component: DefinitionBuilder):
        ...     component.requires("db.config").resolve(
        ...         lambda cfg: connect(component.value("db.config"))
        ...     )
        >>>
        >>> registry.register("db.connection", database)
    """

    def __init__(self, name: str, registry: "ComponentRegistry"):
        self.name = name
        self._registry = registry
        self._requirements: tuple[str, ...] = ()
        self._prepare: Optional[Hook] = None
        self._resolve: Optional[Hook] = None
        self._run: Optional[Hook] = None

    def requires(self, *names: NameArg) -> "DefinitionBuilder":
        """Declare the components to resolve before this one.

        Args:
            names: Component names, or iterables of names, in resolution order.
        """
        self._requirements = tuple(flatten_names(names))
        return self

    def prepare(self, hook: Hook) -> "DefinitionBuilder":
        self._prepare = hook
        return self

    def resolve(self, hook: Hook) -> "DefinitionBuilder":
        self._resolve = hook
        return self

    def run(self, hook: Hook) -> "DefinitionBuilder":
        self._run = hook
        return self

    def component(self, name: str) -> ComponentDefinition:
        """Return another registered definition by name."""
        return self._registry.lookup_definition(name)

    def resolved(
        self,
        name: str,
        value: Any = None,
        compute: Optional[Callable[[], Any]] = None,
    ) -> Any:
        """Mark a component as resolved with a value, or with the result of ``compute``.

        See :meth:`kindling.registry.ComponentRegistry.mark_resolved`.
        """
        return self._registry.mark_resolved(name, value, compute)

    def value(self, name: str) -> Any:
        """Return the value of an already resolved component."""
        return self._registry.lookup_value(name)

    def build(self) -> ComponentDefinition:
        hooks = {
            "prepare_hook": self._prepare,
            "resolve_hook": self._resolve,
        }
        return ComponentDefinition(
            self.name,
            self._requirements,
            run_hook=self._run,
            **{field: hook for field, hook in hooks.items() if hook is not None},
        )


def make_definition(
    name: str,
    block: Optional[Callable[[DefinitionBuilder], Any]],
    registry: "ComponentRegistry",
) -> ComponentDefinition:
    """
    Build a component definition by running ``block`` against a fresh builder.

    Args:
        name: The name of the component.
        block: Called once with the builder; its return value is ignored.
            ``None`` produces a definition with no requirements or hooks.
        registry: The registry the builder's escape hatches delegate to.

    Returns:
        The finished, immutable definition.
    """
    builder = DefinitionBuilder(name, registry)
    if block is not None:
        block(builder)
    return builder.build()
