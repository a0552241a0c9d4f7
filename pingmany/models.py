from __future__ import annotations
from dataclasses import dataclass, field
from typing import List, Set


@dataclass(frozen=True)
class Target:
    """One IP address under test; `address` is its canonical string form."""
    address: str
    family: int


@dataclass
class SweepResult:
    """Outcome of a sweep: the full target list and the addresses that never replied in time."""
    targets: List[Target]
    unreachable: Set[str] = field(default_factory=set)

    def is_reachable(self, target: Target) -> bool:
        return target.address not in self.unreachable

    def reachable(self) -> List[Target]:
        return [t for t in self.targets if self.is_reachable(t)]

    def unreachable_targets(self) -> List[Target]:
        return [t for t in self.targets if not self.is_reachable(t)]
