"""Domain models used throughout the framework."""

from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional, TYPE_CHECKING, Union

if TYPE_CHECKING:
    from kindling.registry import ComponentRegistry

__all__ = ["Hook", "NameArg", "ComponentDefinition", "flatten_names"]


Hook = Callable[[Any], Any]
NameArg = Union[str, Iterable["NameArg"]]


def _no_op(_configuration: Any) -> None:
    pass


def flatten_names(names: Iterable[NameArg]) -> list[str]:
    """Flatten nested iterables of component names, preserving order.

    Example:
        >>> flatten_names(["a", ["b", ("c",)]])
        ['a', 'b', 'c']
    """
    flattened = []
    for name in names:
        if isinstance(name, str):
            flattened.append(name)
        else:
            flattened.extend(flatten_names(name))
    return flattened


@dataclass(frozen=True)
class ComponentDefinition:
    """
    A named unit of boot logic with declared requirements.

    Definitions are built once, at registration time, by a
    :class:`~kindling.definition_builder.DefinitionBuilder` and are not
    changed afterwards.

    Attributes:
        name: The unique name of the component.
        requirements: Names of the components that must be resolved before
            this component's lifecycle runs, in resolution order.
        prepare_hook: Setup step invoked with the configuration before the
            component is resolved or run.
        resolve_hook: Produces the value stored under the component's name.
        run_hook: Side-effecting alternative to ``resolve_hook``. When set,
            the resolve hook is never invoked and ``None`` is stored.
    """

    name: str
    requirements: tuple[str, ...] = ()
    prepare_hook: Hook = _no_op
    resolve_hook: Hook = _no_op
    run_hook: Optional[Hook] = None

    def execute(self, registry: "ComponentRegistry", configuration: Any) -> Any:
        """Resolve the requirements, then prepare and run or resolve the component.

        Args:
            registry: The registry holding this definition and its requirements.
            configuration: Passed unchanged to every hook.

        Returns:
            The value of the resolve hook, or ``None`` if the component has a run hook.
        """
        registry.resolve_requirements(self.requirements, configuration)
        self.prepare_hook(configuration)

        if self.run_hook is not None:
            self.run_hook(configuration)
            return None

        return self.resolve_hook(configuration)
