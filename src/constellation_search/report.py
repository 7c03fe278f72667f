"""
Run records and report persistence.

RunContext is the explicit accumulator of one sweep: the chronological
log entries, the accepted solutions in discovery order and the per-level
discard counters. The save functions persist the solution table as CSV
and the entries as a plain-text log, named from the run timestamp.
"""

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union
import logging

import pandas as pd
from tabulate import tabulate

from .devices import DeviceSample
from .orbit import SatelliteOrbit
from .utils import current_stamp, ensure_directory_exists, stamp_to_filename

logger = logging.getLogger(__name__)

COMPLEXITY_LEVELS = 5

SOLUTION_COLUMNS = [
    "Planes", "SatsPerPlane", "inclination", "MCG",
    "Rejected0", "Rejected1", "Rejected2", "Rejected3", "Rejected4",
]

CSV_EXTENSION = ".csv"
LOG_EXTENSION = ".log"

SECTION_WIDTH = 70


def section_banner(title: str) -> str:
    """Separator line used between run log sections."""
    rule = "=" * SECTION_WIDTH
    return f"{rule} {title} {rule}"


@dataclass(frozen=True)
class Solution:
    """An accepted constellation shape with its final coverage gap."""

    plane_count: int
    sats_per_plane: int
    inclination_deg: float
    mcg_minutes: float
    devices: Tuple[DeviceSample, ...]
    satellites: Tuple[SatelliteOrbit, ...]
    discarded_per_level: Tuple[int, ...]

    def to_row(self) -> List[Any]:
        """Row of the solution table, ordered as SOLUTION_COLUMNS."""
        return [
            self.plane_count,
            self.sats_per_plane,
            self.inclination_deg,
            self.mcg_minutes,
            *self.discarded_per_level,
        ]

    def to_dict(self) -> Dict[str, Any]:
        return dict(zip(SOLUTION_COLUMNS, self.to_row()))

    def __str__(self) -> str:
        return ",".join(str(value) for value in self.to_row())


@dataclass
class RunContext:
    """
    Accumulator for one sweep run.

    Entries, solutions and counters only ever grow during a run.
    """

    entries: List[str] = field(default_factory=list)
    solutions: List[Solution] = field(default_factory=list)
    discarded: List[int] = field(default_factory=lambda: [0] * COMPLEXITY_LEVELS)
    evaluations: int = 0

    def add_header(self, line: str) -> None:
        """Append an unstamped line (run parameters, section banners)."""
        self.entries.append(line)
        logger.info(line)

    def log(self, entry: str) -> None:
        """Append a timestamped progress entry."""
        self.entries.append(f"{current_stamp()} >> {entry}")
        logger.info(entry)

    def record_solution(self, solution: Solution) -> None:
        self.solutions.append(solution)
        self.evaluations += 1

    def record_discard(self, level: int) -> None:
        self.discarded[level] += 1
        self.evaluations += 1

    def discard_snapshot(self) -> Tuple[int, ...]:
        return tuple(self.discarded)

    def merge(self, other: "RunContext") -> None:
        """
        Append another context's records after this one's.

        Discard snapshots of the merged solutions are offset by this
        context's counters, as if both had been recorded in one run.
        """
        self.entries.extend(other.entries)
        for solution in other.solutions:
            snapshot = tuple(
                mine + theirs
                for mine, theirs in zip(self.discarded, solution.discarded_per_level)
            )
            self.solutions.append(replace(solution, discarded_per_level=snapshot))
        for level, count in enumerate(other.discarded):
            self.discarded[level] += count
        self.evaluations += other.evaluations


def save_solution_report(solutions: Sequence[Solution], output_file: Union[str, Path]) -> Path:
    """
    Save the solution table as CSV.

    Args:
        solutions: Accepted solutions in discovery order
        output_file: CSV file path

    Returns:
        Path of the written file
    """
    output_path = Path(output_file)
    ensure_directory_exists(output_path.parent)

    df = pd.DataFrame([s.to_row() for s in solutions], columns=SOLUTION_COLUMNS)
    df.to_csv(output_path, index=False)

    logger.info(f"Saved {len(solutions)} solutions to {output_path}")
    return output_path


def save_log(entries: Sequence[str], output_file: Union[str, Path]) -> Path:
    """Save run log entries as plain text, one per line."""
    output_path = Path(output_file)
    ensure_directory_exists(output_path.parent)

    with open(output_path, 'w') as f:
        for entry in entries:
            f.write(f"{entry}\n")

    logger.info(f"Saved run log ({len(entries)} entries) to {output_path}")
    return output_path


def write_reports(
    context: RunContext,
    output_path: Union[str, Path],
    stamp: Optional[str] = None
) -> Tuple[Path, Path]:
    """
    Persist the solution table and the run log of a sweep.

    Both files are named from the run timestamp.

    Returns:
        (csv_path, log_path)
    """
    file_name = stamp_to_filename(stamp or current_stamp())
    directory = Path(output_path)
    csv_path = save_solution_report(context.solutions, directory / f"{file_name}{CSV_EXTENSION}")
    log_path = save_log(context.entries, directory / f"{file_name}{LOG_EXTENSION}")
    return csv_path, log_path


def format_solution_table(solutions: Sequence[Solution]) -> str:
    """Grid table of solutions for terminal display."""
    return tabulate(
        [s.to_row() for s in solutions],
        headers=SOLUTION_COLUMNS,
        tablefmt="grid",
        floatfmt=".2f",
    )
