"""Registration and lazy, memoized resolution of boot components."""

import threading
import time
from typing import Any, Callable, Iterable, Optional

import structlog

from kindling.definition_builder import DefinitionBuilder, make_definition
from kindling.domain import ComponentDefinition, Hook, NameArg, flatten_names
from kindling.errors import DefinitionNotFound, ValueNotResolved
from kindling.resolved_values import ResolvedValues

__all__ = ["ComponentRegistry"]

logger = structlog.get_logger(__name__)


class ComponentRegistry:
    """
    Registry of named boot components, resolved lazily on first demand.

    Components are declared with :meth:`register` (or the :meth:`component`
    decorator) and resolved with :meth:`resolve`. Resolving a component first
    resolves its requirements, depth first and in declaration order, then runs
    its prepare hook followed by its run or resolve hook. The outcome is cached
    under the component's name: each component runs at most once successfully,
    however many threads ask for it.

    Args:
        configuration: Opaque value passed unchanged to every hook.
        configuration_provider: Zero-argument callable returning the
            configuration. When given it takes precedence over
            ``configuration`` and is called once per :meth:`resolve` call.

    Example:
        >>> registry = ComponentRegistry(configuration={"env": "test"})
        >>> registry.register("greeting", lambda c: c.resolve(lambda cfg: "hello"))
        >>> registry.resolve("greeting")
        'hello'
        >>> registry["greeting"]
        'hello'
    """

    def __init__(
        self,
        configuration: Any = None,
        configuration_provider: Optional[Callable[[], Any]] = None,
    ):
        self._configuration = configuration
        self._configuration_provider = configuration_provider
        self._definitions: dict[str, ComponentDefinition] = {}
        self._definitions_lock = threading.Lock()
        self._resolved = ResolvedValues()

    @property
    def configuration(self) -> Any:
        if self._configuration_provider is not None:
            return self._configuration_provider()
        return self._configuration

    def register(
        self, name: str, block: Optional[Callable[[DefinitionBuilder], Any]] = None
    ) -> ComponentDefinition:
        """Register a component, replacing any component already registered under ``name``.

        Nothing is resolved at registration time.

        Args:
            name: The unique component name.
            block: Called once with a :class:`DefinitionBuilder` to declare the
                component's requirements and hooks.

        Returns:
            The registered definition.
        """
        definition = make_definition(name, block, self)
        with self._definitions_lock:
            redefined = name in self._definitions
            self._definitions[name] = definition

        if redefined:
            logger.info("component_redefined", component=name)
        else:
            logger.debug(
                "component_registered",
                component=name,
                requirements=list(definition.requirements),
            )
        return definition

    def component(
        self,
        name: str,
        requires: Iterable[NameArg] = (),
        prepare: Optional[Hook] = None,
        run: bool = False,
    ) -> Callable:
        """Decorator to register a function as a component's resolve (or run) hook.

        Args:
            name: The unique component name.
            requires: Names of the components to resolve first.
            prepare: Optional prepare hook.
            run: Register the function as a run hook rather than a resolve hook.

        Returns:
            A decorator that registers the function and returns it unchanged.

        Example:
            @registry.component("db.connection", requires=["db.config"])
            def connect_to_db(configuration):
                return connect(registry["db.config"])
        """

        def decorator(func: Hook) -> Hook:
            def declare(builder: DefinitionBuilder):
                builder.requires(requires)
                if prepare is not None:
                    builder.prepare(prepare)
                if run:
                    builder.run(func)
                else:
                    builder.resolve(func)

            self.register(name, declare)
            return func

        return decorator

    def lookup_definition(self, name: str) -> ComponentDefinition:
        """Return a registered definition.

        Raises:
            DefinitionNotFound: If no component is registered under ``name``.
        """
        with self._definitions_lock:
            try:
                return self._definitions[name]
            except KeyError:
                raise DefinitionNotFound(name, self._definitions.keys()) from None

    def resolve(self, *names: NameArg) -> Any:
        """Resolve one or more components, and their requirements, if not resolved already.

        Names are resolved in the order given; the first failure aborts the
        remaining names.

        Args:
            names: Component names, or iterables of names.

        Returns:
            The value of the component when a single name is given, otherwise a
            list with the value of each name in order. Values already resolved
            are returned from the cache.

        Raises:
            DefinitionNotFound: If a name, or one of its requirements, is not registered.
            CircularDependencyError: If a component transitively requires itself.
            ResolutionFailed: If another thread failed to resolve a component
                this call was waiting for.
        """
        flattened = flatten_names(names)
        try:
            values = self.resolve_requirements(flattened, self.configuration)
        except Exception:
            logger.warning("resolution_failed", components=flattened, exc_info=True)
            raise
        if len(names) == 1 and isinstance(names[0], str):
            return values[0]
        return values

    def resolve_requirements(self, names: Iterable[str], configuration: Any) -> list:
        """Resolve components with an explicit configuration.

        This is how a definition resolves its requirements, so that the
        configuration read by the outermost :meth:`resolve` reaches every hook.

        Returns:
            The value of each name, in order.
        """
        return [
            self._resolved.fetch_or_store(
                name, lambda name=name: self._execute(name, configuration)
            )
            for name in names
        ]

    def mark_resolved(
        self,
        name: str,
        value: Any = None,
        compute: Optional[Callable[[], Any]] = None,
    ) -> Any:
        """Mark a component as resolved with a value, or with the result of ``compute``.

        The name does not need a registered definition. If the name is already
        resolved nothing changes; if another thread is resolving it, this
        waits for that thread. A hook may mark its own component resolved, in
        which case the marked value is kept in preference to the hook's result.

        Returns:
            The value stored under ``name``.
        """
        if compute is None:

            def compute() -> Any:
                return value

        return self._resolved.fetch_or_store(name, compute, reentrant=True)

    def lookup_value(self, name: str) -> Any:
        """Return the value of an already resolved component.

        Raises:
            ValueNotResolved: If ``name`` has not been resolved.
        """
        try:
            return self._resolved[name]
        except KeyError:
            raise ValueNotResolved(name, self._resolved.names()) from None

    def __getitem__(self, name: str) -> Any:
        return self.lookup_value(name)

    def is_registered(self, name: str) -> bool:
        with self._definitions_lock:
            return name in self._definitions

    def is_resolved(self, name: str) -> bool:
        return name in self._resolved

    def registered_names(self) -> list[str]:
        with self._definitions_lock:
            return list(self._definitions)

    def resolved_names(self) -> list[str]:
        return self._resolved.names()

    def reset(self):
        """Forget every resolved value so that components are resolved again on demand.

        Definitions are kept. Intended for code reloading during development:
        a resolution running concurrently with a reset may store its value after
        the reset, so this MUST NOT be used while other threads are resolving.
        """
        forgotten = self._resolved.names()
        self._resolved.clear()
        logger.warning("resolved_components_reset", components=forgotten)

    def _execute(self, name: str, configuration: Any) -> Any:
        definition = self.lookup_definition(name)
        logger.debug("resolving_component", component=name)
        started = time.perf_counter()
        try:
            value = definition.execute(self, configuration)
        except Exception as error:
            # the traceback is logged once, by resolve
            logger.warning("component_failed", component=name, error=repr(error))
            raise
        logger.debug(
            "component_resolved",
            component=name,
            elapsed=time.perf_counter() - started,
        )
        return value
