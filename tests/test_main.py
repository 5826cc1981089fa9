"""
Tests for the top-level style transfer pipeline.

Covers:
- Candidate initialization methods
- End-to-end runs on the tiny feature network
- Artifacts written per iteration and at the end of a run
- Input validation before any work is done
"""
import csv
from collections.abc import Callable
from pathlib import Path

import numpy as np
import pytest
import torch
from PIL import Image
from pytest_mock import MockerFixture
from torch import nn

import lbfgs_style_transfer.main as lst_main
from lbfgs_style_transfer.config import StyleTransferConfig
from lbfgs_style_transfer.constants import CAFFE_BGR_MEAN
from lbfgs_style_transfer.loss_logger import CSV_HEADER
from lbfgs_style_transfer.type_defs import InputPaths

ConfigFactory = Callable[..., StyleTransferConfig]

pytestmark = pytest.mark.slow


class TestInitializeCandidate:
    """Starting points for the optimizer."""

    @pytest.fixture
    def content(self) -> torch.Tensor:
        return torch.randn(1, 3, 6, 8) * 40

    def test_content_is_copy(self, content: torch.Tensor) -> None:
        candidate = lst_main.initialize_candidate(content, "content")
        assert torch.equal(candidate, content)
        candidate += 1
        assert not torch.equal(candidate, content)

    def test_white(self, content: torch.Tensor) -> None:
        candidate = lst_main.initialize_candidate(content, "white")
        for channel, mean in enumerate(CAFFE_BGR_MEAN):
            assert torch.allclose(
                candidate[0, channel],
                torch.full((6, 8), 255.0 - mean),
            )

    def test_random_in_pixel_range(self, content: torch.Tensor) -> None:
        rng = np.random.default_rng(1)
        candidate = lst_main.initialize_candidate(content, "random", rng)
        assert candidate.shape == content.shape
        assert candidate.dtype == content.dtype
        for channel, mean in enumerate(CAFFE_BGR_MEAN):
            pixels = candidate[0, channel] + mean
            assert pixels.min() >= -1e-4
            assert pixels.max() <= 255.0 + 1e-4  # noqa: PLR2004

    def test_random_reproducible(self, content: torch.Tensor) -> None:
        first = lst_main.initialize_candidate(
            content, "random", np.random.default_rng(5),
        )
        second = lst_main.initialize_candidate(
            content, "random", np.random.default_rng(5),
        )
        assert torch.equal(first, second)

    def test_unknown_method(self, content: torch.Tensor) -> None:
        with pytest.raises(ValueError, match="Unsupported initialization"):
            lst_main.initialize_candidate(content, "noise")  # type: ignore[arg-type]


class TestStyleTransfer:
    """End-to-end runs on the tiny network."""

    def test_outputs_written(
        self,
        input_paths: InputPaths,
        tiny_features: nn.Module,
        make_style_transfer_config: ConfigFactory,
    ) -> None:
        cfg = make_style_transfer_config()
        result = lst_main.style_transfer(
            input_paths, cfg, features=tiny_features,
        )

        out_dir = Path(cfg.output.output)
        assert result.shape == (1, 3, 16, 24)
        assert torch.all(torch.isfinite(result))

        final = out_dir / "stylized_content_x_style.png"
        assert final.is_file()
        with Image.open(final) as img:
            assert img.size == (24, 16)

        for iteration in (1, 2):
            frame = out_dir / (
                f"content_x_style_at_iteration_{iteration:03d}.png"
            )
            assert frame.is_file()
        assert not (out_dir / "loss_plot.png").exists()

    def test_no_frames_when_disabled(
        self,
        input_paths: InputPaths,
        tiny_features: nn.Module,
        make_style_transfer_config: ConfigFactory,
    ) -> None:
        cfg = make_style_transfer_config(output={"save_every": 0})
        lst_main.style_transfer(input_paths, cfg, features=tiny_features)
        out_dir = Path(cfg.output.output)
        assert not list(out_dir.glob("*_at_iteration_*.png"))
        assert (out_dir / "stylized_content_x_style.png").is_file()

    def test_csv_gif_and_plot(
        self,
        input_paths: InputPaths,
        tiny_features: nn.Module,
        make_style_transfer_config: ConfigFactory,
        tmp_path: Path,
    ) -> None:
        csv_path = tmp_path / "logs" / "loss.csv"
        cfg = make_style_transfer_config(
            output={
                "create_gif": True,
                "log_loss": str(csv_path),
                "plot_losses": True,
            },
        )
        lst_main.style_transfer(input_paths, cfg, features=tiny_features)
        out_dir = Path(cfg.output.output)

        gif_path = out_dir / "timelapse_content_x_style.gif"
        assert gif_path.is_file()
        with Image.open(gif_path) as gif:
            assert gif.n_frames >= 1

        with csv_path.open(newline="", encoding="utf-8") as handle:
            rows = list(csv.reader(handle))
        assert rows[0] == CSV_HEADER
        assert [row[0] for row in rows[1:]] == ["1", "2"]

        assert (out_dir / "loss_plot.png").is_file()

    def test_deterministic(
        self,
        input_paths: InputPaths,
        tiny_features_factory: Callable[..., nn.Module],
        make_style_transfer_config: ConfigFactory,
    ) -> None:
        """Identical inputs and settings give identical results."""
        cfg = make_style_transfer_config(
            optimization={"init_method": "random", "seed": 11},
        )
        first = lst_main.style_transfer(
            input_paths, cfg, features=tiny_features_factory(),
        )
        second = lst_main.style_transfer(
            input_paths, cfg, features=tiny_features_factory(),
        )
        assert torch.equal(first, second)

    def test_missing_content_rejected(
        self,
        style_image: Path,
        tmp_path: Path,
        make_style_transfer_config: ConfigFactory,
        mocker: MockerFixture,
    ) -> None:
        build_loss = mocker.spy(lst_main, "build_loss")
        paths = InputPaths(
            content_path=str(tmp_path / "nope.png"),
            style_path=str(style_image),
        )
        with pytest.raises(FileNotFoundError, match="Content image"):
            lst_main.style_transfer(paths, make_style_transfer_config())
        build_loss.assert_not_called()

    def test_resources_closed_on_failure(
        self,
        input_paths: InputPaths,
        tiny_features: nn.Module,
        make_style_transfer_config: ConfigFactory,
        mocker: MockerFixture,
        tmp_path: Path,
    ) -> None:
        """The CSV log is closed even if optimization fails."""
        mocker.patch.object(
            lst_main.lst_optimization.OptimizationRunner,
            "run",
            side_effect=RuntimeError("boom"),
        )
        close_logger = mocker.spy(lst_main.LossCSVLogger, "close")
        cfg = make_style_transfer_config(
            output={"log_loss": str(tmp_path / "loss.csv")},
        )
        with pytest.raises(RuntimeError, match="boom"):
            lst_main.style_transfer(input_paths, cfg, features=tiny_features)
        close_logger.assert_called_once()
