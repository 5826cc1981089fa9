"""
CSV logging utility for recording per-iteration losses.

Defines the LossCSVLogger class, which appends one row per outer
L-BFGS-B iteration with the total loss and its weighted parts.
"""


import csv
from pathlib import Path
from types import TracebackType

from lbfgs_style_transfer.optimization import IterationResult

CSV_HEADER = [
    "iteration",
    "total_loss",
    "content_loss",
    "style_loss",
    "tv_loss",
    "steps",
    "evaluations",
    "warnflag",
]


class LossCSVLogger:
    """
    Handles CSV logging of style transfer loss metrics.

    Opens the CSV file, writes the header row, and appends one row per
    iteration result. Rows are flushed immediately so a partial log
    survives an aborted run.

    Supports use as a context manager for deterministic cleanup.

    Attributes:
        path: Path to the CSV file.
        file: File handle for the open CSV file.
        writer: CSV writer object used for writing rows.

    """

    def __init__(self, path: str | Path) -> None:
        """
        Initialize the CSV logger.

        Raises:
            OSError: If the file cannot be created.

        """
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)

        self.file = self.path.open("w", newline="", encoding="utf-8")
        self.writer = csv.writer(self.file)
        self.writer.writerow(CSV_HEADER)
        self.file.flush()

    def log(self, result: IterationResult) -> None:
        """Write one row for a finished iteration."""
        breakdown = result.breakdown
        self.writer.writerow([
            result.iteration,
            result.loss,
            breakdown.content if breakdown else "",
            breakdown.style if breakdown else "",
            breakdown.total_variation if breakdown else "",
            result.steps,
            result.evaluations,
            result.warnflag,
        ])
        self.file.flush()

    def close(self) -> None:
        """Close the CSV file if it is still open."""
        if self.file and not self.file.closed:
            self.file.close()

    def __enter__(self) -> "LossCSVLogger":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> bool | None:
        self.close()
        return None
