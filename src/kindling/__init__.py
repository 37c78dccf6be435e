"""Kindling lazy component registry.

Kindling boots an application from named components. Each component declares
the components it requires and up to three hooks: ``prepare``, then either
``resolve`` (which produces the component's value) or ``run`` (for side
effects only). Nothing runs at registration time; a component is resolved on
first demand, after its requirements, and its value is cached so that it runs
at most once, even when many threads ask for it at the same moment.

Key Features:
    - Explicit registry instances, no process-wide globals
    - Builder-based component declaration, or a decorator for simple cases
    - Depth-first, memoized resolution of requirements
    - Single-flight resolution across threads
    - Failed resolutions are not cached and can be retried

Basic Usage:
    >>> from kindling.registry import ComponentRegistry
    >>>
    >>> registry = ComponentRegistry(configuration=settings)
    >>>
    >>> registry.register("db.config", lambda c: c.resolve(lambda cfg: cfg.database))
    >>>
    >>> @registry.component("db.connection", requires=["db.config"])
    ... def connect_to_db(configuration):
    ...     return connect(registry["db.config"])
    >>>
    >>> connection = registry.resolve("db.connection")
    >>> connection is registry["db.connection"]
    True

The framework consists of several core modules:
    - registry: Component registration, resolution and lookup
    - definition_builder: The builder used to declare a component
    - domain: Core domain models (ComponentDefinition)
    - resolved_values: Thread-safe compute-once storage of resolved values
    - errors: Framework-specific exceptions
"""
