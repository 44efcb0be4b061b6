"""
Canonical workflow types (``exit_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects for status state machines.  Guard, Transition and
Workflow are defined once here and instantiated by each module that owns
a lifecycle (exit requests, settlements).

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports
from ``db/``, ``services/``, or outer layers.

Invariants enforced
-------------------
* Transitions reference only states in ``Workflow.states``.
* ``initial_state`` is a member of ``states``.
* Terminal states have no outgoing transitions.
* All transitions sharing an action share one guard, so authorization
  can be decided before the current state is consulted.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Guard:
    """A condition that must be satisfied before a transition fires.

    Contract: frozen, descriptive only.
    Non-goals: does not evaluate the condition -- the owning module maps
    guard names to evaluators.
    """
    name: str
    description: str


@dataclass(frozen=True)
class Transition:
    """A valid state transition in a workflow.

    ``stamp_field`` names the write-once timestamp column set when the
    transition fires (None when the transition stamps nothing).
    """
    from_state: str
    to_state: str
    action: str
    guard: Guard | None = None
    stamp_field: str | None = None


@dataclass(frozen=True)
class Workflow:
    """A state machine definition for a record lifecycle."""
    name: str
    description: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]
    terminal_states: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.initial_state not in self.states:
            raise ValueError(f"{self.name}: initial state {self.initial_state!r} not in states")
        guards_by_action: dict[str, Guard | None] = {}
        for t in self.transitions:
            for state in (t.from_state, t.to_state):
                if state not in self.states:
                    raise ValueError(f"{self.name}: unknown state {state!r} in {t.action}")
            if t.from_state in self.terminal_states:
                raise ValueError(f"{self.name}: terminal state {t.from_state!r} has outgoing {t.action}")
            if t.action in guards_by_action and guards_by_action[t.action] != t.guard:
                raise ValueError(f"{self.name}: action {t.action!r} has inconsistent guards")
            guards_by_action[t.action] = t.guard

    @property
    def actions(self) -> frozenset[str]:
        return frozenset(t.action for t in self.transitions)

    def transitions_for(self, action: str) -> tuple[Transition, ...]:
        return tuple(t for t in self.transitions if t.action == action)

    def find(self, action: str, from_state: str) -> Transition | None:
        for t in self.transitions:
            if t.action == action and t.from_state == from_state:
                return t
        return None

    def allowed_from(self, action: str) -> frozenset[str]:
        return frozenset(t.from_state for t in self.transitions_for(action))
