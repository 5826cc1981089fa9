"""Unit tests for LossCSVLogger."""

import csv
from pathlib import Path
from typing import TextIO
from unittest import mock

import pytest
from pytest_mock import MockerFixture

from lbfgs_style_transfer.loss_logger import CSV_HEADER, LossCSVLogger
from lbfgs_style_transfer.losses import LossBreakdown
from lbfgs_style_transfer.optimization import IterationResult


def make_result(
    iteration: int,
    *,
    with_breakdown: bool = True,
    warnflag: int = 0,
) -> IterationResult:
    breakdown = LossBreakdown(
        total=6.0, content=1.0, style=2.0, total_variation=3.0,
    ) if with_breakdown else None
    return IterationResult(
        iteration=iteration,
        loss=6.0,
        evaluations=15,
        steps=12,
        warnflag=warnflag,
        message="",
        elapsed=0.1,
        breakdown=breakdown,
    )


def read_rows(path: Path) -> list[list[str]]:
    with path.open("r", newline="", encoding="utf-8") as f:
        return list(csv.reader(f))


def test_csv_file_creation(tmp_path: Path) -> None:
    """The CSV file is created and the header row is written."""
    csv_path = tmp_path / "nested" / "losses.csv"
    logger = LossCSVLogger(csv_path)
    logger.close()

    assert csv_path.exists()
    assert read_rows(csv_path) == [CSV_HEADER]
    assert CSV_HEADER == [
        "iteration", "total_loss", "content_loss", "style_loss",
        "tv_loss", "steps", "evaluations", "warnflag",
    ]


def test_log_writes_rows(tmp_path: Path) -> None:
    """Every iteration result becomes one row."""
    csv_path = tmp_path / "losses.csv"
    with LossCSVLogger(csv_path) as logger:
        logger.log(make_result(1))
        logger.log(make_result(2, warnflag=2))

    rows = read_rows(csv_path)
    assert rows[1] == ["1", "6.0", "1.0", "2.0", "3.0", "12", "15", "0"]
    assert rows[2] == ["2", "6.0", "1.0", "2.0", "3.0", "12", "15", "2"]
    assert len(rows) == 3  # noqa: PLR2004


def test_missing_breakdown_leaves_parts_blank(tmp_path: Path) -> None:
    csv_path = tmp_path / "losses.csv"
    with LossCSVLogger(csv_path) as logger:
        logger.log(make_result(1, with_breakdown=False))
    assert read_rows(csv_path)[1] == ["1", "6.0", "", "", "", "12", "15", "0"]


def test_rows_visible_before_close(tmp_path: Path) -> None:
    """Rows are flushed so a partial log survives an aborted run."""
    csv_path = tmp_path / "losses.csv"
    logger = LossCSVLogger(csv_path)
    logger.log(make_result(1))
    assert len(read_rows(csv_path)) == 2  # noqa: PLR2004
    logger.close()


def test_context_manager_closes_file(tmp_path: Path) -> None:
    csv_path = tmp_path / "losses.csv"
    with LossCSVLogger(csv_path) as logger:
        logger.log(make_result(1))
    assert logger.file.closed


def test_invalid_path_raises(tmp_path: Path, mocker: MockerFixture) -> None:
    """Simulate OSError when creating parent directory."""
    mocker.patch("pathlib.Path.mkdir", side_effect=OSError("Mocked error"))
    with pytest.raises(OSError, match="Mocked error"):
        LossCSVLogger(tmp_path / "losses.csv")


def test_close_noop_when_already_closed(tmp_path: Path) -> None:
    logger = LossCSVLogger(tmp_path / "losses.csv")
    mock_file = mock.MagicMock(spec=TextIO)
    mock_file.closed = True
    real_file = logger.file
    object.__setattr__(logger, "file", mock_file)

    logger.close()

    mock_file.close.assert_not_called()
    real_file.close()
