"""Core utilities shared by the evaluators and the CLI."""

from linscore.core.configs import EvalConfig, config_from_dict, config_to_dict
from linscore.core.utils import get_device, synchronize

__all__ = ["EvalConfig", "config_from_dict", "config_to_dict", "get_device", "synchronize"]
