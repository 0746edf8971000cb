# src/flatlink/order.py
"""Validate the fixed unit order and render the flattened script."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from graphlib import CycleError, TopologicalSorter

from .constants import GI_ACCESSOR, UNIT_SEPARATOR
from .errors import OrderViolation
from .logs import get_logger
from .units import NativeBinding, Unit, normalize_unit_name


@dataclass(frozen=True)
class OrderingPolicy:
    """Explicit total order of unit names; `entry` (if set) must come last."""

    units: tuple[str, ...]
    entry: str | None = None

    @classmethod
    def from_names(
        cls,
        names: Iterable[str],
        entry: str | None = None,
    ) -> OrderingPolicy:
        normalized: list[str] = []
        for raw in names:
            name = normalize_unit_name(raw)
            if name in normalized:
                xmsg = f"'{name}' is listed more than once in the ordering policy"
                raise OrderViolation(name, None, xmsg)
            normalized.append(name)
        return cls(tuple(normalized), normalize_unit_name(entry) if entry else None)

    def positions(self) -> dict[str, int]:
        return {name: i for i, name in enumerate(self.units)}


def suggest_order(policy: OrderingPolicy, units: list[Unit]) -> list[str] | None:
    """A dependency-respecting order that stays close to the policy.

    Returns None when the dependencies form a cycle.
    """
    positions = policy.positions()
    graph = {u.name: [d for d in u.dependencies if d in positions] for u in units}
    sorter: TopologicalSorter[str] = TopologicalSorter(graph)
    try:
        sorter.prepare()
    except CycleError:
        return None

    order: list[str] = []
    while sorter.is_active():
        ready = sorted(sorter.get_ready(), key=lambda n: positions.get(n, len(positions)))
        order.extend(ready)
        sorter.done(*ready)
    if policy.entry in order and not any(
        policy.entry in u.dependencies for u in units
    ):
        order.remove(policy.entry)
        order.append(policy.entry)
    return order


def validate_order(policy: OrderingPolicy, units: list[Unit]) -> None:
    """Check that every unit comes after everything it depends on.

    The policy is never reordered: the first violation (in policy order)
    is raised as OrderViolation(unit, dependency).
    """
    logger = get_logger()
    positions = policy.positions()

    for unit in units:
        here = positions.get(unit.name)
        if here is None:
            xmsg = f"'{unit.name}' is not in the ordering policy"
            raise OrderViolation(unit.name, None, xmsg)
        for dep in unit.dependencies:
            there = positions.get(dep)
            if there is None:
                xmsg = (
                    f"'{unit.name}' depends on '{dep}',"
                    " which is not in the ordering policy"
                )
                raise OrderViolation(unit.name, dep, xmsg)
            if there > here:
                suggestion = suggest_order(policy, units)
                xmsg = f"'{unit.name}' is scheduled before its dependency '{dep}'"
                if suggestion is None:
                    xmsg += "; the dependencies form a cycle, so no order satisfies them"
                raise OrderViolation(unit.name, dep, xmsg, suggestion=suggestion)

    if policy.entry is not None:
        if policy.entry not in positions:
            xmsg = f"Entry unit '{policy.entry}' is not in the ordering policy"
            raise OrderViolation(policy.entry, None, xmsg)
        if policy.units[-1] != policy.entry:
            xmsg = f"Entry unit '{policy.entry}' must be scheduled last"
            raise OrderViolation(policy.entry, None, xmsg)

    logger.debug(f"Order OK: {' → '.join(policy.units)}")


# --- rendering ---------------------------------------------------------------


def render_bindings(bindings: list[NativeBinding]) -> list[str]:
    """Declaration lines for native bindings, one destructure per accessor."""
    lines: list[str] = []
    grouped: dict[str, list[NativeBinding]] = {}
    for binding in bindings:
        if binding.member is None:
            lines.append(f"const {binding.local} = {binding.accessor};")
        else:
            grouped.setdefault(binding.accessor, []).append(binding)

    for accessor, members in grouped.items():
        parts = [
            b.local if b.member == b.local else f"{b.member}: {b.local}"
            for b in members
        ]
        lines.append(f"const {{ {', '.join(parts)} }} = {accessor};")
    return lines


def render_pin(namespace: str, version: str) -> str:
    return f'{GI_ACCESSOR}.versions.{namespace} = "{version}";'


def _trim_blank_lines(text: str) -> str:
    lines = text.splitlines()
    while lines and not lines[0].strip():
        lines.pop(0)
    while lines and not lines[-1].strip():
        lines.pop()
    return "\n".join(lines)


def render_artifact(
    units: list[Unit],
    *,
    banner: str | None = None,
    entry_call: str | None = None,
) -> str:
    """Concatenate units in order into one script.

    Each unit section is headed by its separator, then any version pins
    and native bindings not already emitted by an earlier section, so
    every pin precedes its first use and nothing is declared twice.
    """
    sections: list[str] = []
    if banner:
        sections.append(banner.rstrip())

    pinned: set[str] = set()
    declared: set[str] = set()
    for unit in units:
        section = [UNIT_SEPARATOR.format(name=unit.name)]
        for namespace, version in unit.pins.items():
            if namespace not in pinned:
                section.append(render_pin(namespace, version))
                pinned.add(namespace)

        fresh = [b for b in unit.bindings if b.local not in declared]
        declared.update(b.local for b in fresh)
        section.extend(render_bindings(fresh))

        body = _trim_blank_lines(unit.body)
        if body:
            section.append(body)
        sections.append("\n".join(section))

    if entry_call:
        call = entry_call.strip()
        sections.append(call if call.endswith(";") else f"{call};")
    return "\n\n".join(sections) + "\n"
