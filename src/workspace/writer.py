"""Planning of lock and vendor writes after a solve."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from constants import Constants
from solver.lock import Lock, LockDiff, diff_locks
from solver.manifest import CascadingPruneOptions
from solver.solution import Solution


class VendorMode(Enum):
    """When the vendor tree is rewritten."""
    ALWAYS = "always"
    ON_CHANGED = "on_changed"
    NEVER = "never"


@dataclass(frozen=True)
class PreparedWrite:
    """What a write would change; computed without touching the disk."""

    old_lock: Optional[Lock]
    new_lock: Lock
    lock_diff: LockDiff
    write_lock: bool
    write_vendor: bool
    prune: CascadingPruneOptions

    def describe(self) -> List[str]:
        """Human-readable list of the actions a write would take."""
        lines: List[str] = []
        if self.write_lock:
            lines.append(f"Would have written the following changes to {Constants.LOCK_FILE}:")
            lines.extend(f"  {line}" for line in self.lock_diff.describe())
        if self.write_vendor:
            total = len(self.new_lock)
            lines.append(f"Would have written the following {total} projects to the {Constants.VENDOR_DIR} directory:")
            for i, project in enumerate(self.new_lock, 1):
                lines.append(f"({i}/{total}) {project.root}@{project.version}")
        if not lines:
            lines.append("No changes to write")
        return lines


def plan_write(
    previous: Optional[Lock],
    solution: Solution,
    vendor_mode: VendorMode = VendorMode.ON_CHANGED,
    prune: Optional[CascadingPruneOptions] = None,
) -> PreparedWrite:
    """Diff the solution against the previous lock and decide what to write.

    The lock is written when there was none or when it changed; the vendor
    tree follows ``vendor_mode``.
    """
    new_lock = Lock.from_solution(solution)
    diff = diff_locks(previous, new_lock)
    write_lock = previous is None or not diff.is_empty
    if vendor_mode is VendorMode.ALWAYS:
        write_vendor = True
    elif vendor_mode is VendorMode.ON_CHANGED:
        write_vendor = write_lock
    else:
        write_vendor = False
    return PreparedWrite(previous, new_lock, diff, write_lock, write_vendor, prune or CascadingPruneOptions())
