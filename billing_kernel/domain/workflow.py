"""
Canonical workflow types (``billing_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects for document state machines, plus the single lookup
that decides whether an action is legal from a given state.  Used by the
invoicing module for both submissions and invoices.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* Transitions reference only states in ``Workflow.states``.
* ``initial_state`` is a member of ``states``.
* Terminal states have no outgoing transitions.
"""

from __future__ import annotations

from dataclasses import dataclass

from billing_kernel.exceptions import InvalidTransitionError


@dataclass(frozen=True)
class Guard:
    """A condition that must be satisfied before a transition fires.

    Descriptive only; the service that fires the transition evaluates it.
    """
    name: str
    description: str


@dataclass(frozen=True)
class Transition:
    """A valid state transition in a workflow."""
    from_state: str
    to_state: str
    action: str
    guard: Guard | None = None


@dataclass(frozen=True)
class Workflow:
    """A state machine definition for a document lifecycle."""
    name: str
    description: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]
    terminal_states: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.initial_state not in self.states:
            raise ValueError(
                f"{self.name}: initial state {self.initial_state!r} not in states"
            )
        for t in self.transitions:
            if t.from_state not in self.states or t.to_state not in self.states:
                raise ValueError(
                    f"{self.name}: transition {t.action!r} references unknown state"
                )
            if t.from_state in self.terminal_states:
                raise ValueError(
                    f"{self.name}: terminal state {t.from_state!r} has an outgoing transition"
                )

    def transition_for(self, from_state: str, action: str) -> Transition:
        """
        Return the transition for ``action`` out of ``from_state``.

        Raises:
            InvalidTransitionError: No such transition is declared.
        """
        for t in self.transitions:
            if t.from_state == from_state and t.action == action:
                return t
        raise InvalidTransitionError(self.name, from_state, action)

    def allows(self, from_state: str, action: str) -> bool:
        return any(
            t.from_state == from_state and t.action == action
            for t in self.transitions
        )
