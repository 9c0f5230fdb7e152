"""Shared utilities for linscore."""

from linscore.utils.config import load_config, load_eval_config, save_config
from linscore.utils.logging import setup_logging

__all__ = ["load_config", "load_eval_config", "save_config", "setup_logging"]
