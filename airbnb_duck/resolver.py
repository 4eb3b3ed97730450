"""Dependency resolution for registered models.

Builds the reference graph from each model's declared upstream names and
orders it with Kahn's algorithm. Models with no ordering constraint between
them run in registration order, so the same registry always yields the same
plan.

Raw tables are graph sources: they are checked as valid references but never
appear in the execution order.
"""

from __future__ import annotations

import heapq
from collections import defaultdict

from airbnb_duck.exceptions import CycleError, UnknownReferenceError
from airbnb_duck.registry import ModelRegistry


class DependencyResolver:
    """Order models so every model runs after all of its upstream models."""

    def __init__(self, registry: ModelRegistry):
        self.registry = registry
        self._position = {name: i for i, name in enumerate(registry.names())}

    def _model_edges(self) -> dict[str, list[str]]:
        """Map each model to the models that depend on it.

        Raises:
            UnknownReferenceError: If a reference is neither a model nor a raw table
        """
        dependents: dict[str, list[str]] = defaultdict(list)
        for m in self.registry:
            for ref in m.upstream:
                if ref in self.registry:
                    dependents[ref].append(m.name)
                elif not self.registry.is_raw(ref):
                    raise UnknownReferenceError(m.name, ref)
        return dependents

    def resolve(self) -> list[str]:
        """Return model names in a valid execution order.

        Raises:
            UnknownReferenceError: If a model references an undeclared name
            CycleError: If the references contain a cycle
        """
        dependents = self._model_edges()
        in_degree = {name: 0 for name in self.registry.names()}
        for targets in dependents.values():
            for target in targets:
                in_degree[target] += 1

        ready = [(self._position[n], n) for n, d in in_degree.items() if d == 0]
        heapq.heapify(ready)

        order: list[str] = []
        while ready:
            _, current = heapq.heappop(ready)
            order.append(current)
            for neighbor in dependents[current]:
                in_degree[neighbor] -= 1
                if in_degree[neighbor] == 0:
                    heapq.heappush(ready, (self._position[neighbor], neighbor))

        if len(order) != len(in_degree):
            remaining = set(in_degree) - set(order)
            raise CycleError(self._cycle_members(remaining, dependents))

        return order

    def _cycle_members(
        self, remaining: set[str], dependents: dict[str, list[str]]
    ) -> set[str]:
        """Keep only the unresolved models that can reach themselves.

        Models that are merely downstream of a cycle are left out of the error.
        """
        members = set()
        for start in remaining:
            stack = list(dependents[start])
            seen: set[str] = set()
            while stack:
                node = stack.pop()
                if node == start:
                    members.add(start)
                    break
                if node in seen or node not in remaining:
                    continue
                seen.add(node)
                stack.extend(dependents[node])
        return members

    def upstream_of(self, name: str) -> set[str]:
        """All models the given model transitively depends on."""
        found: set[str] = set()
        stack = [ref for ref in self.registry.get(name).upstream if ref in self.registry]
        while stack:
            node = stack.pop()
            if node in found:
                continue
            found.add(node)
            stack.extend(ref for ref in self.registry.get(node).upstream if ref in self.registry)
        return found

    def downstream_of(self, name: str) -> set[str]:
        """All models that transitively depend on the given model."""
        dependents = self._model_edges()
        found: set[str] = set()
        stack = list(dependents[name])
        while stack:
            node = stack.pop()
            if node in found:
                continue
            found.add(node)
            stack.extend(dependents[node])
        return found

    def tiers(self) -> list[list[str]]:
        """Group the execution order into dependency levels.

        Models in the same tier have no dependency on one another.
        """
        level: dict[str, int] = {}
        for name in self.resolve():
            refs = [r for r in self.registry.get(name).upstream if r in self.registry]
            level[name] = 1 + max((level[r] for r in refs), default=-1)

        grouped: list[list[str]] = []
        for name, lvl in level.items():
            while len(grouped) <= lvl:
                grouped.append([])
            grouped[lvl].append(name)
        return grouped
