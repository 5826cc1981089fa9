"""Plotting helpers for optimization metrics."""
