"""Routers module - FastAPI route handlers"""

from . import ai, config, diff, prompts, recycle_bin, transfer

__all__ = ["ai", "config", "diff", "prompts", "recycle_bin", "transfer"]
