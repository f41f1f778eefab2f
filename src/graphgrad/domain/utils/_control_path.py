"""
State-based method dispatch (a.k.a. "control-path" templating) via decorators.

This module provides a small mechanism for routing a single method call to
one of several registered implementations based on the runtime value of an
attribute of the receiving object.

Core idea
---------
- You define a *base* method on a class (its signature becomes the canonical
  one).
- You then register multiple "control paths" for that method, each keyed by:
    (ClassName, MethodName, StateVal)
- At runtime, the wrapper reads the configured state attribute of `self`
  and dispatches to the implementation registered for that value.

In graphgrad the state attribute is the node's `kind` (an `OpKind`), so every
graph node and backward node class exposes one `compute`/`vjp` entry point
while the per-operation rules live in separate modules.

Important notes
---------------
- The first registration for a method replaces the class attribute with a
  dispatching wrapper; later registrations only extend the mapping.
- Registered implementations are stored in a closure-local mapping owned by
  `create_path_builder()`. Different builders do not share mappings.
- Implementations are called like bound methods: `sub_method(self, ...)`.
- `registered_states` / `missing_states` let callers verify that a closed
  set of states is fully covered.
"""

from typing import (
    Callable,
    Dict,
    Hashable,
    Iterable,
    Set,
    Type,
    Any,
)
from typing_extensions import ParamSpec, TypeVar
from collections import namedtuple
from functools import wraps

P = ParamSpec("P")
R = TypeVar("R")

MethodKey = namedtuple(
    "MethodKey",
    [
        "ClassName",
        "MethodName",
        "StateVal",
    ],
)
"""
Tuple-like key used to uniquely identify a control path.

Fields
------
ClassName : str
    The owning class name.
MethodName : str
    The base method name being templated.
StateVal : Hashable
    The state value that selects this implementation.
"""


def create_path_builder(state_attribute: str = "_state") -> Callable[..., Any]:
    """
    Create and return a "path builder" used to register stateful control
    paths for methods.

    The returned function (`templator`) is used like this:

        rule = create_path_builder("kind")

        class Node:
            kind: str
            def compute(self, x): ...

        @rule(Node, Node.compute, "double")
        def compute_double(self, x):
            return 2 * x

    When `Node.compute(...)` is called, it dispatches to `compute_double`
    whenever `node.kind == "double"`.

    Parameters
    ----------
    state_attribute : str, optional
        Name of the attribute read on `self` to select the implementation.
        Defaults to "_state".

    Returns
    -------
    Callable
        A function with signature:

            (cls, method, state) -> decorator

        carrying two helper attributes, `registered_states(cls, method)` and
        `missing_states(cls, method, states)`.
    """

    methods_map: Dict[MethodKey, Callable] = {}
    """Mapping from (class, method, state) keys to registered implementations."""

    def templator(
        cls: Type,
        method: Callable[P, R],
        state: Hashable,
    ) -> Callable[[Callable[P, R]], Callable[P, R]]:
        """
        Build a decorator that registers a control path implementation.

        Parameters
        ----------
        cls : Type
            The class whose method should be wrapped for state-based dispatch.
        method : Callable[P, R]
            The base method being templated. Its metadata is copied onto the
            installed wrapper via `functools.wraps(method)`.
        state : Hashable
            The state value that selects the decorated implementation.

        Returns
        -------
        Callable[[Callable[P, R]], Callable[P, R]]
            A decorator registering `sub_method` for `(cls, method, state)`.

        Raises
        ------
        TypeError
            If `state` is not hashable.
        """
        try:
            hash(state)
        except TypeError:
            raise TypeError(f"The argument for 'state' must be hashable. Got {state!r}")

        method_name = method.__name__
        smk: MethodKey = MethodKey(cls.__name__, method_name, state)

        def decorator(sub_method: Callable[P, R]) -> Callable[P, R]:
            """
            Register `sub_method` as the implementation for the configured
            state and make sure `cls.<method>` dispatches through the map.
            """
            methods_map[smk] = sub_method

            installed = cls.__dict__.get(method_name)
            if getattr(installed, "__control_path__", False):
                return sub_method

            @wraps(method)
            def wrapper(self: Any, *args: P.args, **kwargs: P.kwargs) -> Any:
                """
                Dispatch to a registered implementation based on the state
                attribute of `self`.
                """
                if not hasattr(self, state_attribute):
                    raise NotImplementedError(
                        "{} is missing attribute {}".format(
                            type(self), repr(state_attribute)
                        )
                    )
                current = getattr(self, state_attribute)
                key = MethodKey(cls.__name__, method_name, current)
                if sm := methods_map.get(key):
                    return sm(self, *args, **kwargs)
                raise NotImplementedError(
                    "Missing control path (state={}) for {}.{}".format(
                        repr(current), cls.__name__, method_name
                    )
                )

            wrapper.__control_path__ = True
            setattr(cls, method_name, wrapper)
            return sub_method

        return decorator

    def registered_states(cls: Type, method: Callable[..., Any]) -> Set[Hashable]:
        """
        Return every state registered for `cls.method`.
        """
        return {
            key.StateVal
            for key in methods_map
            if key.ClassName == cls.__name__ and key.MethodName == method.__name__
        }

    def missing_states(
        cls: Type, method: Callable[..., Any], states: Iterable[Hashable]
    ) -> Set[Hashable]:
        """
        Return the subset of `states` that has no registered implementation.
        """
        return set(states) - registered_states(cls, method)

    templator.registered_states = registered_states
    templator.missing_states = missing_states
    return templator
