"""
Bridge between SciPy's two-callback optimizer API and a fused
loss/gradient computation.

``fmin_l_bfgs_b`` asks for the loss and the gradient through separate
callbacks, always at the same point and in that order, while one
forward/backward pass through the network yields both. The Evaluator
computes both on ``value`` and hands the stored gradient out on the
following ``gradient`` call.

The call order is enforced: ``gradient`` must directly follow a
``value`` call with an identical argument. Anything else raises
EvaluatorProtocolError rather than returning a stale gradient.
"""
from __future__ import annotations

import enum
import logging
from collections.abc import Callable
from typing import TYPE_CHECKING

import numpy as np
import torch

from lbfgs_style_transfer.logging_utils import logger

if TYPE_CHECKING:  # pragma: no cover
    from lbfgs_style_transfer.losses import LossBreakdown

LossAndGradFn = Callable[
    [torch.Tensor],
    tuple[float, torch.Tensor, "LossBreakdown"],
]


class EvaluatorProtocolError(RuntimeError):
    """Raised when gradient() is not paired with a preceding value()."""


class EvaluatorState(enum.Enum):
    """Which callback the Evaluator expects next."""

    AWAITING_VALUE = "awaiting_value"
    AWAITING_GRADIENT = "awaiting_gradient"


class Evaluator:
    """
    Single-slot loss/gradient cache for one optimizer and one candidate.

    Not thread-safe; each optimization run owns exactly one instance.

    Attributes:
        loss_fn: Returns (loss, gradient, breakdown) for an image tensor.
        shape: Image shape the flat optimizer vectors are reshaped to.
        device: Device the image tensor is evaluated on.
        evaluations: Number of forward/backward passes performed.
        last_breakdown: Loss parts from the most recent evaluation.

    """

    def __init__(
        self,
        loss_fn: LossAndGradFn,
        shape: tuple[int, ...] | torch.Size,
        device: torch.device,
        dtype: torch.dtype = torch.float32,
    ) -> None:
        self.loss_fn = loss_fn
        self.shape = tuple(shape)
        self.device = device
        self.dtype = dtype
        self.evaluations = 0
        self.last_breakdown: LossBreakdown | None = None

        self._state = EvaluatorState.AWAITING_VALUE
        self._cached_x: np.ndarray | None = None
        self._cached_grad: np.ndarray | None = None

    @property
    def state(self) -> EvaluatorState:
        """Current position in the value/gradient call sequence."""
        return self._state

    @property
    def size(self) -> int:
        """Number of elements in the candidate image."""
        return int(np.prod(self.shape))

    def _evaluate(self, x_flat: np.ndarray) -> tuple[float, np.ndarray]:
        """Run one fused forward/backward pass on a flat candidate."""
        x_flat = np.asarray(x_flat)
        if x_flat.size != self.size:
            msg = (f"Candidate vector has {x_flat.size} elements, "
                   f"expected {self.size} for shape {self.shape}")
            raise ValueError(msg)

        image = torch.from_numpy(
            x_flat.reshape(self.shape),
        ).to(device=self.device, dtype=self.dtype)
        loss, grad, breakdown = self.loss_fn(image)
        self.evaluations += 1
        self.last_breakdown = breakdown

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "Evaluation %d: Content %.4e, Style %.4e, TV %.4e, "
                "Total %.4e",
                self.evaluations,
                breakdown.content,
                breakdown.style,
                breakdown.total_variation,
                breakdown.total,
            )

        grad_flat = grad.detach().cpu().numpy().reshape(-1).astype(np.float64)
        return float(loss), grad_flat

    def value(self, x_flat: np.ndarray) -> float:
        """
        Evaluate the loss at ``x_flat`` and cache the gradient.

        Calling value again before gradient is allowed; the newer
        evaluation replaces the cached one.
        """
        loss, grad = self._evaluate(x_flat)
        self._cached_x = np.array(x_flat, copy=True)
        self._cached_grad = grad
        self._state = EvaluatorState.AWAITING_GRADIENT
        return loss

    def gradient(self, x_flat: np.ndarray) -> np.ndarray:
        """
        Return and clear the gradient cached by the preceding value call.

        Raises:
            EvaluatorProtocolError: If no value call is pending, or if
                ``x_flat`` differs from the argument of that call.

        """
        if (
            self._state is not EvaluatorState.AWAITING_GRADIENT
            or self._cached_grad is None
        ):
            msg = "gradient() called without a preceding value() call"
            raise EvaluatorProtocolError(msg)
        if not np.array_equal(np.asarray(x_flat), self._cached_x):
            msg = ("gradient() called with a different argument than the "
                   "preceding value() call")
            raise EvaluatorProtocolError(msg)

        grad = self._cached_grad
        self._cached_grad = None
        self._cached_x = None
        self._state = EvaluatorState.AWAITING_VALUE
        return grad

    def value_and_gradient(
        self,
        x_flat: np.ndarray,
    ) -> tuple[float, np.ndarray]:
        """Return loss and gradient together, bypassing the cache."""
        return self._evaluate(x_flat)
