"""Public package exports for L-BFGS style transfer."""

from __future__ import annotations

from .evaluator import Evaluator, EvaluatorProtocolError, EvaluatorState
from .losses import (
    StyleTransferLoss,
    content_loss,
    gram_matrix,
    style_loss,
    total_variation_loss,
)
from .main import style_transfer

__all__ = [
    "Evaluator",
    "EvaluatorProtocolError",
    "EvaluatorState",
    "StyleTransferLoss",
    "content_loss",
    "gram_matrix",
    "style_loss",
    "style_transfer",
    "total_variation_loss",
]
