"""Span hierarchy reconstruction and Gantt timeline layout for trace hits."""

__version__ = "0.1.0"
