"""linscore: on-device accuracy and log-loss for linear classifiers.

The evaluation core lives in `linscore.torch`:
- `from linscore.torch import evaluate_accuracy, evaluate_logloss, DeviceMatrix`

Shared utilities are in `linscore.core` and `linscore.utils`:
- `from linscore.utils import setup_logging, load_eval_config`
"""

__version__ = "0.1.0"

# Re-export common utilities for convenience
from linscore.core import EvalConfig
from linscore.utils import load_config, load_eval_config, save_config, setup_logging

__all__ = [
    "EvalConfig",
    "__version__",
    "load_config",
    "load_eval_config",
    "save_config",
    "setup_logging",
]
