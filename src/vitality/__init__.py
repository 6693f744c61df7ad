"""Vitality: background sampler for macOS system vitals."""

__version__ = "0.1.0"
