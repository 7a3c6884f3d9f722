"""
Runner — resolve a target node with injected values.

Dependencies are discovered from the target; injected values are keyed by
their runtime type unless given explicitly with `inject_as`.
"""

from __future__ import annotations

from collections.abc import Callable, Coroutine
from dataclasses import dataclass
from typing import Any, cast

from nodnod import EventLoopAgent, Node, Scope, Value


type Injection = tuple[type[Any], Any]


@dataclass(frozen=True, slots=True)
class Run[T]:
    """
    Awaitable, immutable run description.

    Example:
        node = await run(BillingNode).inject(context)
        node = await run(BillingNode).inject_as(Catalog, catalog).inject(request)
    """

    target: type[T]
    injections: tuple[Injection, ...] = ()

    def inject(self, value: object) -> Run[T]:
        return self.inject_as(cast(type[Any], type(value)), value)

    def inject_as[V](self, typ: type[V], value: V) -> Run[T]:
        return Run(self.target, (*self.injections, (typ, value)))

    def given(self, *values: object) -> Run[T]:
        run_ = self
        for value in values:
            run_ = run_.inject(value)
        return run_

    def __await__(self) -> Any:
        return self._execute().__await__()

    async def _execute(self) -> T:
        agent = EventLoopAgent.build({cast(type[Node[Any, Any]], self.target)})

        async with Scope(detail=self.target.__name__) as scope:
            for typ, value in self.injections:
                scope.push(Value(typ, value))

            execute = cast(
                Callable[[Scope, dict[type[Any], Scope]], Coroutine[Any, Any, None]],
                getattr(agent, "run"),
            )
            await execute(scope, {})

            resolved = scope.get(self.target)
            if resolved is None:
                raise KeyError(f"{self.target.__name__} was not resolved")
            return cast(T, resolved.value)


def run[T](target: type[T]) -> Run[T]:
    return Run(target)


async def compose[T](target: type[T], *inputs: object) -> T:
    """One-shot: inject every input by its runtime type and resolve target."""
    return await run(target).given(*inputs)


__all__ = ("Run", "run", "compose")
