"""Dependency resolution over the feature graph.

`resolve()` turns a requested set of feature names into one flat, dependency-first execution order.
It is a depth-first, post-order walk with two marks per node:

- *in progress*: the node is on the current DFS path. Reaching it again means the graph has a cycle,
  and `CircularDependencyError` is raised naming the full cycle (`a -> b -> a`). A feature that lists
  itself as a dependency is a one-node cycle and fails the same way.
- *done*: the node and its whole dependency closure are already in the output; it is skipped.

Ordering guarantees
- Every dependency appears strictly before every feature that declares it.
- Each name appears exactly once, even when several requested features share dependencies.
- Independent branches keep discovery order: requested names are walked in the order given, and each
  feature's dependencies in their declared order.

Unknown names
- Dependencies (and requested names) that are not in `features` are skipped without error: they do
  not exist, so there is nothing to provision. This is deliberately permissive; callers that want a
  hard failure run `validate_dependencies()` first (the CLI does this as a pre-flight check).

`resolve()` performs no side effects, so a cycle is always detected before anything is created.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from .errors import CircularDependencyError
from .models import FeatureSpec


def resolve(requested: Iterable[str], features: Mapping[str, FeatureSpec]) -> list[str]:
    order: list[str] = []
    done: set[str] = set()
    in_progress: list[str] = []

    def visit(name: str) -> None:
        if name in done:
            return
        if name in in_progress:
            start = in_progress.index(name)
            raise CircularDependencyError([*in_progress[start:], name])
        feature = features.get(name)
        if feature is None:
            return

        in_progress.append(name)
        for dep in feature.dependencies:
            visit(dep)
        in_progress.pop()

        done.add(name)
        order.append(name)

    for name in requested:
        visit(name)
    return order


def topological_order(features: Mapping[str, FeatureSpec]) -> list[str]:
    """Order every feature of the plan, walking them in declaration order."""
    return resolve(features.keys(), features)


def unknown_dependencies(features: Mapping[str, FeatureSpec]) -> list[tuple[str, str]]:
    """(feature, dependency) pairs whose dependency is not a feature of the plan."""
    return [(f.name, dep) for f in features.values() for dep in f.dependencies if dep not in features]


def validate_dependencies(features: Mapping[str, FeatureSpec]) -> list[str]:
    """Return human-readable problems with the dependency graph (empty when it is clean).

    Unlike `resolve()`, unknown dependency names are reported here.
    """
    errors = [f"Feature {name!r} depends on unknown feature {dep!r}" for name, dep in unknown_dependencies(features)]
    try:
        topological_order(features)
    except CircularDependencyError as exc:
        errors.append(str(exc))
    return errors
