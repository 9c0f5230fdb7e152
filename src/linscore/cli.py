"""Command-line interface for linscore."""

from pathlib import Path
from typing import Optional

import numpy as np
import torch
import typer
from loguru import logger
from rich.console import Console
from rich.table import Table

from linscore import __version__
from linscore.torch import LinearClassifierEvaluator
from linscore.utils.config import load_eval_config
from linscore.utils.logging import setup_logging

app = typer.Typer(
    name="linscore",
    help="linscore: on-device accuracy and log-loss for linear classifiers",
    add_completion=False,
)
console = Console()


@app.command()
def version() -> None:
    """Print version information."""
    console.print(f"[bold blue]linscore[/bold blue] v{__version__}")


def _probabilities(weights: np.ndarray, features: np.ndarray) -> np.ndarray:
    """Softmax over classes of ``W^T X``, shaped classes x batch."""
    scores = torch.from_numpy(weights).double().T @ torch.from_numpy(features).double()
    return torch.softmax(scores, dim=0).numpy()


@app.command()
def score(
    data: Path = typer.Argument(..., help="Path to an .npz file with arrays W, X, Y and optionally P"),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="YAML config file"),
    override: Optional[list[str]] = typer.Option(
        None, "--override", "-o", help="Config override, e.g. reduction.strategy=tree"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log shapes and raw counts"),
) -> None:
    """Score weights W on features X against labels Y.

    Arrays are given in logical shape: W is features x classes, X is
    features x batch, Y and P are classes x batch. When P is missing it is the
    softmax of W^T X.
    """
    eval_config = load_eval_config(config, override)
    eval_config.verbose = eval_config.verbose or verbose
    setup_logging(level=eval_config.log_level)

    if not data.exists():
        logger.error(f"Data file not found: {data}")
        raise typer.Exit(1)

    with np.load(data) as arrays:
        missing = [name for name in ("W", "X", "Y") if name not in arrays]
        if missing:
            logger.error(f"{data} is missing arrays: {', '.join(missing)}")
            raise typer.Exit(1)
        weights, features, labels = arrays["W"], arrays["X"], arrays["Y"]
        probs = arrays["P"] if "P" in arrays else _probabilities(weights, features)

    evaluator = LinearClassifierEvaluator(eval_config)
    W = evaluator.to_device(weights)
    X = evaluator.to_device(features)
    Y = evaluator.to_device(labels)
    P = evaluator.to_device(probs)

    try:
        accuracy = evaluator.accuracy(W, X, Y, batch_size=X.cols)
        total = evaluator.logloss(P, Y)
    finally:
        evaluator.release()
    mean = total / Y.cols if Y.cols else 0.0

    table = Table(title=f"{data.name} ({Y.cols} samples, {Y.rows} classes)")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("accuracy", f"{accuracy:.4f}")
    table.add_row("log-loss (total)", f"{total:.6f}")
    table.add_row("log-loss (mean)", f"{mean:.6f}")
    console.print(table)


if __name__ == "__main__":
    app()
