"""Outer iteration loop around SciPy's L-BFGS-B optimizer."""
from __future__ import annotations

import math
import time
from collections.abc import Callable, Mapping  # noqa: TC003
from dataclasses import dataclass
from typing import Any, Protocol

import numpy as np
import torch
from scipy.optimize import fmin_l_bfgs_b
from tqdm import tqdm

import lbfgs_style_transfer.image_io as lst_image_io
from lbfgs_style_transfer.config import StyleTransferConfig  # noqa: TC001
from lbfgs_style_transfer.constants import LBFGS_WARNFLAG_ABNORMAL
from lbfgs_style_transfer.evaluator import Evaluator  # noqa: TC001
from lbfgs_style_transfer.logging_utils import logger
from lbfgs_style_transfer.losses import LossBreakdown  # noqa: TC001
from lbfgs_style_transfer.type_defs import LossHistory  # noqa: TC001

OptimizerFn = Callable[..., tuple[np.ndarray, float, dict[str, Any]]]


class ProgressReporter(Protocol):
    """Protocol capturing the subset of tqdm's interface we rely on."""

    def update(self, n: float | None = 1) -> bool | None:
        """Advance the progress display by ``n`` units."""

    def set_postfix(
        self,
        ordered_dict: Mapping[str, object] | None = None,
        refresh: bool | None = True,  # noqa: FBT001,FBT002
        **kwargs: object,
    ) -> None:
        """Update the supplementary values shown beside the progress bar."""

    def close(self) -> None:
        """Release any resources associated with the display."""


@dataclass(slots=True)
class IterationResult:
    """Outcome of one outer iteration (one L-BFGS-B call)."""

    iteration: int
    loss: float
    evaluations: int
    steps: int
    warnflag: int
    message: str
    elapsed: float
    breakdown: LossBreakdown | None = None

    @property
    def failed(self) -> bool:
        """True when L-BFGS-B stopped abnormally."""
        return self.warnflag == LBFGS_WARNFLAG_ABNORMAL


@dataclass(slots=True)
class OptimizationCallbacks:
    """Optional hooks invoked around optimization events."""

    on_iteration_start: Callable[[int], None] | None = None
    on_iteration_end: Callable[[IterationResult], None] | None = None
    on_frame: Callable[[np.ndarray, int], None] | None = None


def _task_message(info: Mapping[str, Any]) -> str:
    task = info.get("task", "")
    if isinstance(task, bytes):
        return task.decode("ascii", errors="replace").strip()
    return str(task).strip()


class OptimizationRunner:
    """
    Run a fixed number of L-BFGS-B calls on the flattened candidate.

    Each outer iteration restarts L-BFGS-B from the previous result with
    at most ``max_iter`` L-BFGS-B steps, optionally also capped at
    ``max_fun`` loss evaluations. There is no convergence check: the
    loop always runs ``iterations`` times. After every iteration the
    candidate is decoded to an image and handed to the frame callback.
    """

    def __init__(
        self,
        evaluator: Evaluator,
        initial: torch.Tensor,
        config: StyleTransferConfig,
        *,
        optimizer: OptimizerFn = fmin_l_bfgs_b,
        progress_bar: ProgressReporter | None = None,
        callbacks: OptimizationCallbacks | None = None,
    ) -> None:
        if tuple(initial.shape) != evaluator.shape:
            msg = (f"Initial candidate shape {tuple(initial.shape)} does not "
                   f"match evaluator shape {evaluator.shape}")
            raise ValueError(msg)

        self.evaluator = evaluator
        self.config = config
        self.optimizer = optimizer
        self.callbacks = callbacks or OptimizationCallbacks()

        self._shape = initial.shape
        self._device = initial.device
        self._dtype = initial.dtype
        self._x = (
            initial.detach().cpu().numpy().reshape(-1).astype(np.float64)
        )

        self._progress_bar: ProgressReporter | None = progress_bar
        self._owns_progress_bar = False
        self.results: list[IterationResult] = []

    @property
    def progress_bar(self) -> ProgressReporter:
        """Return the active progress reporter."""
        if self._progress_bar is None:
            msg = "Progress bar not initialized. Call run() before use."
            raise RuntimeError(msg)
        return self._progress_bar

    @property
    def total_iterations(self) -> int:
        """Outer iterations configured for this run."""
        return self.config.optimization.iterations

    @property
    def candidate(self) -> torch.Tensor:
        """Current candidate reshaped to image form."""
        return torch.from_numpy(self._x.reshape(self._shape)).to(
            device=self._device,
            dtype=self._dtype,
        )

    def run(self) -> tuple[torch.Tensor, LossHistory, float]:
        """Execute the optimization loop and return metrics."""
        self._ensure_progress_bar()
        start_time = time.time()
        try:
            for iteration in range(1, self.total_iterations + 1):
                self._emit_iteration_start(iteration)
                result = self._run_iteration(iteration)
                self.results.append(result)
                self._finalize_iteration(result)
        finally:
            self._cleanup()

        elapsed = time.time() - start_time
        self._log_optimization_summary(elapsed)
        return self.candidate, self.history(), elapsed

    def _run_iteration(self, iteration: int) -> IterationResult:
        """Run one bounded L-BFGS-B call starting from the current vector."""
        opt_cfg = self.config.optimization
        started = time.time()
        evaluations_before = self.evaluator.evaluations

        limits: dict[str, int] = {"maxiter": opt_cfg.max_iter}
        if opt_cfg.max_fun is not None:
            limits["maxfun"] = opt_cfg.max_fun

        if opt_cfg.fused_callbacks:
            x, loss, info = self.optimizer(
                self.evaluator.value_and_gradient,
                self._x,
                **limits,
            )
        else:
            x, loss, info = self.optimizer(
                self.evaluator.value,
                self._x,
                fprime=self.evaluator.gradient,
                **limits,
            )
        self._x = np.asarray(x, dtype=np.float64)

        result = IterationResult(
            iteration=iteration,
            loss=float(loss),
            evaluations=self.evaluator.evaluations - evaluations_before,
            steps=int(info.get("nit", 0)),
            warnflag=int(info.get("warnflag", 0)),
            message=_task_message(info),
            elapsed=time.time() - started,
            breakdown=self.evaluator.last_breakdown,
        )
        self._check_result(result)
        return result

    def _check_result(self, result: IterationResult) -> None:
        """Log abnormal optimizer exits and non-finite losses."""
        if result.failed:
            logger.warning(
                "L-BFGS-B failed at iteration %d: %s",
                result.iteration,
                result.message,
            )
        if not math.isfinite(result.loss):
            logger.warning(
                "Non-finite loss at iteration %d",
                result.iteration,
            )
        logger.info(
            "Iteration %d: loss %.4e (%d steps, %d evaluations, %.2fs)",
            result.iteration,
            result.loss,
            result.steps,
            result.evaluations,
            result.elapsed,
        )

    def _finalize_iteration(self, result: IterationResult) -> None:
        """Decode the candidate and fire post-iteration hooks."""
        self._maybe_emit_frame(result.iteration)
        self.progress_bar.update(1)
        self.progress_bar.set_postfix({"loss": f"{result.loss:.4e}"})
        if self.callbacks.on_iteration_end is not None:
            self.callbacks.on_iteration_end(result)

    def _maybe_emit_frame(self, iteration: int) -> None:
        save_every = self.config.output.save_every
        if (
            self.callbacks.on_frame is None
            or not save_every
            or iteration % save_every != 0
        ):
            return
        frame = lst_image_io.postprocess_for_display(self.candidate)
        self.callbacks.on_frame(frame, iteration)

    def history(self) -> LossHistory:
        """Per-iteration loss series for plotting and CSV export."""
        history: LossHistory = {
            "total": [r.loss for r in self.results],
            "content": [],
            "style": [],
            "total_variation": [],
        }
        for r in self.results:
            if r.breakdown is None:
                continue
            history["content"].append(r.breakdown.content)
            history["style"].append(r.breakdown.style)
            history["total_variation"].append(r.breakdown.total_variation)
        return history

    def _ensure_progress_bar(self) -> None:
        """Initialise the progress bar if one was not provided."""
        if self._progress_bar is None:
            self._progress_bar = tqdm(
                total=self.total_iterations,
                desc="Style Transfer",
            )
            self._owns_progress_bar = True

    def _emit_iteration_start(self, iteration: int) -> None:
        """Fire the on_iteration_start callback if registered."""
        if self.callbacks.on_iteration_start is not None:
            self.callbacks.on_iteration_start(iteration)

    def _log_optimization_summary(self, elapsed: float) -> None:
        """Log how many loss evaluations each outer iteration consumed."""
        if not self.results:
            return
        avg_evals = self.evaluator.evaluations / len(self.results)
        logger.info(
            (
                "Optimization finished: %d iterations, %d evaluations "
                "(%.2f evaluations/iteration) in %.2fs."
            ),
            len(self.results),
            self.evaluator.evaluations,
            avg_evals,
            elapsed,
        )

    def _cleanup(self) -> None:
        """Release any resources acquired during the run."""
        if self._owns_progress_bar and self._progress_bar is not None:
            self._progress_bar.close()
