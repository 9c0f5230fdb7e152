"""Configuration loading utilities."""

from pathlib import Path
from typing import Any

from omegaconf import DictConfig, OmegaConf

from linscore.core.configs.schema import EvalConfig, config_from_dict, config_to_dict


def load_config(config_path: str | Path, overrides: list[str] | None = None) -> DictConfig:
    """Load a YAML configuration file with optional overrides.

    Args:
        config_path: Path to the YAML configuration file.
        overrides: Optional list of CLI-style overrides (e.g., ["reduction.strategy=tree"]).

    Returns:
        Merged configuration as a DictConfig.
    """
    config_path = Path(config_path)
    if not config_path.exists():
        msg = f"Config file not found: {config_path}"
        raise FileNotFoundError(msg)

    config = OmegaConf.load(config_path)

    if overrides:
        config = OmegaConf.merge(config, OmegaConf.from_dotlist(overrides))

    return config


def load_eval_config(
    config_path: str | Path | None = None,
    overrides: list[str] | None = None,
) -> EvalConfig:
    """Load an EvalConfig, validating keys and types against the schema.

    Unknown keys and wrongly typed values are rejected by OmegaConf; value
    constraints are checked by the dataclasses themselves.

    Args:
        config_path: Optional YAML file; schema defaults are used when None.
        overrides: Optional CLI-style dotlist overrides applied last.

    Returns:
        Validated EvalConfig.
    """
    merged = OmegaConf.structured(EvalConfig)

    if config_path is not None:
        merged = OmegaConf.merge(merged, load_config(config_path))
    if overrides:
        merged = OmegaConf.merge(merged, OmegaConf.from_dotlist(overrides))

    return config_from_dict(OmegaConf.to_container(merged, resolve=True))


def save_config(config: EvalConfig | DictConfig | dict[str, Any], path: str | Path) -> None:
    """Save a configuration to a YAML file.

    Args:
        config: Configuration to save.
        path: Path to save the configuration to.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    if isinstance(config, EvalConfig):
        config = config_to_dict(config)
    if isinstance(config, dict):
        config = OmegaConf.create(config)

    OmegaConf.save(config, path)
