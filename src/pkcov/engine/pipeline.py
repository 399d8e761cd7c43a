"""Pipeline execution: sampling, simulation and covariate-effect analysis."""

from __future__ import annotations
from typing import Any, Dict, List, Optional, Sequence
from dataclasses import dataclass, field
import threading

from ..config.model import AppConfig
from ..contracts.errors import ModelError, PKCovError
from ..contracts.types import (
    BatchResult,
    CovariateName,
    CovariateParams,
    EffectSummary,
    ExposureRecord,
    Stratum,
    Subject,
)
from ..domain.covariates import CovariateSampler, select_grid
from ..models.pk import OneCompartmentOralModel
from ..simulation.trial import TrialSimulator
from ..analysis.exposure import compute_exposures
from ..analysis.standardize import standardize
from ..analysis.stratify import build_strata
from ..analysis.effects import summarize, summarize_bsv
from .context import RunContext


@dataclass
class PipelineResult:
    """Every intermediate of one pipeline run."""

    subjects: List[Subject]
    batch: BatchResult
    exposures: List[ExposureRecord]
    standardized: List[ExposureRecord]
    strata: Dict[CovariateName, List[Stratum]]
    summaries: List[EffectSummary]
    bsv_batch: Optional[BatchResult] = None
    bsv_standardized: List[ExposureRecord] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)


class Pipeline:
    """Run the covariate-effect workflow for one configuration.

    Stages run in a fixed order: sampling, simulation, exposure,
    standardization, stratification, summary and, when enabled, a second
    simulation with random effects for the BSV reference rows.
    """

    def __init__(self, config: AppConfig):
        self.config = config

    def build_model(self) -> OneCompartmentOralModel:
        run = self.config.run
        solver = self.config.solver
        return OneCompartmentOralModel(
            self.config.pk.to_population(),
            integrator=run.integrator,
            rk4_max_step=run.rk4_max_step,
            solver_method=solver.method,
            rtol=solver.rtol,
            atol=solver.atol,
        )

    def build_simulator(self, zeroed: bool, context: RunContext) -> TrialSimulator:
        return TrialSimulator(
            model=self.build_model(),
            dose=self.config.dose.to_event(),
            times=self.config.grid.times(),
            omega=self.config.variability.covariance(),
            zeroed=zeroed,
            master_seed=self.config.sampling.seed,
            threads=self.config.run.threads,
            fail_fast=self.config.run.fail_fast,
            logger=context.logger,
        )

    def sample(self, grid: Sequence[CovariateParams], context: RunContext) -> List[Subject]:
        sampling = self.config.sampling
        cells = select_grid(
            grid,
            age_min_months=sampling.age_min_months,
            age_max_months=sampling.age_max_months,
            sexes=sampling.sex_filter(),
        )
        if not cells:
            raise ModelError("No growth-chart cells match the sampling filters")
        sampler = CovariateSampler(context.sampler_rng(), on_invalid=sampling.on_invalid)
        return sampler.sample_population(cells, sampling.n_per_cell)

    def run(
        self,
        grid: Sequence[CovariateParams],
        context: RunContext,
        cancel_event: Optional[threading.Event] = None,
    ) -> PipelineResult:
        """Run all stages.

        Args:
            grid: Growth-chart cells, already loaded.
            context: Run context for logging and timing.
            cancel_event: Set to stop submitting further subjects.

        Returns:
            All intermediate and final tables.

        Raises:
            PKCovError: Typed errors from any stage propagate unchanged.
            ModelError: Wraps unexpected failures.
        """
        analysis = self.config.analysis
        metrics = analysis.metric_names()
        group_by = CovariateName(analysis.standardize_by) if analysis.standardize_by else None
        probs = analysis.ci_probs

        context.start_run()
        try:
            with context.time_stage("sampling"):
                subjects = self.sample(grid, context)
                context.logger.info("Population sampled", n_subjects=len(subjects))

            with context.time_stage("simulation"):
                simulator = self.build_simulator(self.config.variability.zeroed, context)
                batch = simulator.run(subjects, cancel_event=cancel_event)
                if batch.n_succeeded == 0:
                    raise ModelError(
                        "No subject was simulated successfully",
                        {"failed": batch.n_failed, "skipped": len(batch.skipped_ids)},
                    )

            with context.time_stage("exposure"):
                exposures = compute_exposures(batch.subjects, batch.trajectories, metrics)

            with context.time_stage("standardization"):
                standardized = standardize(exposures, group_by=group_by)

            with context.time_stage("stratification"):
                strata = build_strata(batch.subjects, analysis.covariate_names(), analysis.n_strata)

            with context.time_stage("summary"):
                summaries: List[EffectSummary] = []
                for covariate_strata in strata.values():
                    summaries.extend(summarize(standardized, covariate_strata, probs))

            bsv_batch: Optional[BatchResult] = None
            bsv_standardized: List[ExposureRecord] = []
            if analysis.include_bsv:
                with context.time_stage("bsv"):
                    bsv_batch = self.build_simulator(False, context).run(subjects, cancel_event=cancel_event)
                    bsv_exposures = compute_exposures(bsv_batch.subjects, bsv_batch.trajectories, metrics)
                    bsv_standardized = standardize(bsv_exposures, group_by=group_by)
                    summaries.extend(summarize_bsv(bsv_standardized, probs))

            total_runtime = context.end_run()
            context.logger.info(
                "Pipeline completed successfully",
                n_summaries=len(summaries),
                total_runtime_s=total_runtime,
            )

        except PKCovError as e:
            context.end_run()
            context.logger.error("Pipeline failed", error=e.message, error_type=type(e).__name__)
            raise
        except Exception as e:
            context.end_run()
            context.logger.error("Pipeline failed", error=str(e))
            raise ModelError(f"Pipeline execution failed: {e}") from e

        metadata = context.get_runtime_metadata()
        metadata.update({
            "n_subjects": len(subjects),
            "n_succeeded": batch.n_succeeded,
            "n_failed": batch.n_failed,
            "n_skipped": len(batch.skipped_ids),
            "cancelled": batch.cancelled,
        })
        return PipelineResult(
            subjects=subjects,
            batch=batch,
            exposures=exposures,
            standardized=standardized,
            strata=strata,
            summaries=summaries,
            bsv_batch=bsv_batch,
            bsv_standardized=bsv_standardized,
            metadata=metadata,
        )
