"""Main CLI application."""

from pathlib import Path
from typing import Any, Dict, Optional
import sys

import pandas as pd
import structlog
import typer
from rich.console import Console
from rich.table import Table

from .. import app_api
from ..contracts.errors import PKCovError

app = typer.Typer(
    name="pkcov",
    help="Covariate effects on PK exposure in a virtual population",
    no_args_is_help=True
)
console = Console()


def configure_logging(verbose: bool = False) -> None:
    """Structured logs to stderr; INFO by default, DEBUG when verbose."""
    structlog.configure(
        processors=[
            structlog.processors.TimeStamper(fmt="ISO"),
            structlog.processors.add_log_level,
            structlog.processors.JSONRenderer()
        ],
        wrapper_class=structlog.make_filtering_bound_logger(10 if verbose else 20),
        logger_factory=lambda *args: structlog.PrintLogger(sys.stderr),
        cache_logger_on_first_use=False,
    )


def _load(config: Optional[Path]):
    if config:
        cfg = app_api.load_config_from_file(config)
        console.print(f"✓ Loaded configuration from {config}")
    else:
        cfg = app_api.get_default_config()
        console.print("✓ Using default configuration")
    return cfg


@app.command()
def run(
    config: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Configuration file path"
    ),
    growth_chart: Optional[Path] = typer.Option(
        None, "--growth-chart", "-g", help="Growth-chart CSV (ageMonths|Agemos, sex|Sex, M, S, L)"
    ),
    run_id: Optional[str] = typer.Option(
        None, "--run-id", help="Custom run identifier"
    ),
    output_dir: Optional[Path] = typer.Option(
        None, "--output", "-o", help="Output directory for tables"
    ),
    seed: Optional[int] = typer.Option(
        None, "--seed", help="Override the sampling seed"
    ),
    threads: Optional[int] = typer.Option(
        None, "--threads", help="Worker threads for simulation"
    ),
    dry_run: bool = typer.Option(
        False, "--dry-run", help="Validate configuration without running"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
):
    """Sample, simulate and summarize covariate effects."""
    configure_logging(verbose)

    try:
        cfg = _load(config)

        overrides: Dict[str, Dict[str, Any]] = {}
        if seed is not None:
            overrides.setdefault("sampling", {})["seed"] = seed
            console.print(f"✓ Seed override: {seed}")
        if threads is not None:
            overrides.setdefault("run", {})["threads"] = threads
            console.print(f"✓ Threads override: {threads}")
        if output_dir:
            overrides.setdefault("run", {})["artifact_dir"] = str(output_dir)
            console.print(f"✓ Output directory: {output_dir}")
        if overrides:
            cfg = app_api.apply_config_overrides(cfg, overrides)

        app_api.validate_configuration(cfg)
        console.print("✓ Configuration validated")

        if dry_run:
            console.print("✓ Dry run completed successfully", style="green")
            return

        with console.status("Running simulation..."):
            result = app_api.run_analysis(cfg, growth_chart=growth_chart, run_id=run_id)

        paths = app_api.save_results(result)
        run_dir = result.metadata["run_dir"]

        console.print(f"✅ Analysis completed: {result.metadata['run_id']}", style="green")
        console.print(
            f"Subjects: {result.metadata['n_succeeded']} simulated, "
            f"{result.metadata['n_failed']} failed"
        )
        console.print(f"Runtime: {result.metadata['total_runtime_s']:.2f}s")

        table = Table(title="Effect Summary")
        for column in ("Param", "Covariate", "Stratum", "Median", "Lower", "Upper"):
            table.add_column(column)
        for s in result.summaries:
            table.add_row(
                s.metric.value, s.covariate.value, s.stratum_label,
                f"{s.median:.4g}", f"{s.lower:.4g}", f"{s.upper:.4g}",
            )
        console.print(table)
        console.print(f"✓ Tables written to {run_dir} ({len(paths)} files)")

    except PKCovError as e:
        console.print(f"❌ {e.message}", style="red")
        if e.details:
            console.print(f"Details: {e.details}")
        raise typer.Exit(1)


@app.command()
def validate(
    config: Path = typer.Argument(..., help="Configuration file to validate")
):
    """Validate a configuration file."""
    configure_logging()

    try:
        cfg = app_api.load_config_from_file(config)
        app_api.validate_configuration(cfg)
        console.print(f"✅ Configuration {config} is valid", style="green")

    except PKCovError as e:
        console.print(f"❌ {e.message}", style="red")
        raise typer.Exit(1)


@app.command()
def sample(
    growth_chart: Path = typer.Argument(..., help="Growth-chart CSV"),
    config: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Configuration file path"
    ),
    output: Optional[Path] = typer.Option(
        None, "--output", "-o", help="Write sampled subjects to CSV"
    ),
):
    """Sample a virtual population from a growth chart."""
    configure_logging()

    try:
        cfg = _load(config)
        subjects = app_api.sample_population(cfg, growth_chart)
        console.print(f"✓ Sampled {len(subjects)} subjects")

        frame = pd.DataFrame([s.to_dict() for s in subjects]).drop(columns=["eta_cl", "eta_v"])
        if output:
            output.parent.mkdir(parents=True, exist_ok=True)
            frame.to_csv(output, index=False)
            console.print(f"✓ Subjects saved to {output}")
        else:
            console.print("\nSubjects Preview:")
            console.print(frame.head(10).to_string(index=False))
            if len(frame) > 10:
                console.print(f"... ({len(frame) - 10} more rows)")

    except PKCovError as e:
        console.print(f"❌ {e.message}", style="red")
        raise typer.Exit(1)


@app.command()
def info():
    """Display package information and reference settings."""

    from .. import __version__
    from ..analysis.quantiles import QUANTILE_METHOD

    console.print(f"pkcov v{__version__}")
    console.print()

    cfg = app_api.get_default_config()
    table = Table(title="Reference Scenario")
    table.add_column("Setting")
    table.add_column("Value")
    table.add_row("Ka [1/h]", f"{cfg.pk.ka:g}")
    table.add_row("CL [L/h]", f"{cfg.pk.cl:g}")
    table.add_row("V [L]", f"{cfg.pk.v:g}")
    table.add_row("CL / V weight exponents", f"{cfg.pk.clwt:g} / {cfg.pk.vwt:g}")
    table.add_row("Reference weight [kg]", f"{cfg.pk.wt_ref:g}")
    table.add_row("Dose", f"{cfg.dose.amount:g} into {cfg.dose.compartment} at {cfg.dose.time_h:g} h")
    table.add_row("Seed", str(cfg.sampling.seed))
    table.add_row("Strata per covariate", str(cfg.analysis.n_strata))
    table.add_row("Interval", f"{cfg.analysis.ci_probs[0]:g} - {cfg.analysis.ci_probs[1]:g}")
    table.add_row("Quantile rule", f"numpy method={QUANTILE_METHOD!r} (type 7)")
    console.print(table)


if __name__ == "__main__":
    app()
