"""
Formats sweep results for output.
"""
from typing import Iterator

from .models import SweepResult


def format_report(result: SweepResult, show_reachable: bool = False, show_unreachable: bool = False) -> Iterator[str]:
    """
    Yields one line per reported target, in input order.

    With both or neither filter set, every target is listed with an
    "ok"/"failed" status. With one filter set, only matching addresses are
    listed, without a status.
    """
    both = show_reachable == show_unreachable
    for target in result.targets:
        reachable = result.is_reachable(target)
        if both:
            yield f"{target.address}\t{'ok' if reachable else 'failed'}"
        elif (show_reachable and reachable) or (show_unreachable and not reachable):
            yield target.address
