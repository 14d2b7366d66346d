"""Report assembly."""

from __future__ import annotations

from .assembler import assemble_report

__all__ = ["assemble_report"]
