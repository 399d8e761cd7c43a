"""Per-run state: bound logger, stage timings, seeds and the output directory."""

from __future__ import annotations
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

import numpy as np
import structlog


class RunContext:
    """State shared by the pipeline stages of a single run.

    Args:
        run_id: Identifier bound to every log event and used as the output
            subdirectory name.
        seed: Master seed. Covariates draw from ``sampler_rng()``; random
            effects derive per-subject streams from the same value.
        threads: Worker threads for subject simulation.
        artifact_dir: Parent directory of run outputs (default ``results``).
        logger: Logger to bind ``run_id`` to; defaults to structlog's.
    """

    def __init__(
        self,
        run_id: str,
        seed: int,
        threads: int = 1,
        artifact_dir: Optional[Path] = None,
        logger: Optional[structlog.BoundLogger] = None
    ):
        self.run_id = run_id
        self.seed = seed
        self.threads = threads
        self.artifact_dir = Path("results") if artifact_dir is None else Path(artifact_dir)
        self.logger = (logger or structlog.get_logger()).bind(run_id=run_id)

        self._started_at: Optional[float] = None
        self._stage_times: Dict[str, float] = {}
        self._failed_stages: List[str] = []

    def start_run(self) -> None:
        self._started_at = time.perf_counter()
        self.logger.info("Run started", seed=self.seed, threads=self.threads)

    def end_run(self) -> float:
        """Log the end of the run and return its wall time in seconds."""
        if self._started_at is None:
            return 0.0
        elapsed = time.perf_counter() - self._started_at
        self.logger.info("Run finished", runtime_s=elapsed, failed_stages=list(self._failed_stages))
        return elapsed

    @contextmanager
    def time_stage(self, stage: str) -> Iterator[None]:
        """Time a pipeline stage and log its start, completion or failure.

        The runtime is recorded even when the stage raises; the exception
        propagates unchanged.
        """
        self.logger.info("Stage started", stage=stage)
        t0 = time.perf_counter()
        try:
            yield
        except Exception as exc:
            runtime = time.perf_counter() - t0
            self._stage_times[stage] = runtime
            self._failed_stages.append(stage)
            self.logger.error(
                "Stage failed",
                stage=stage,
                runtime_s=runtime,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            raise
        runtime = time.perf_counter() - t0
        self._stage_times[stage] = runtime
        self.logger.info("Stage completed", stage=stage, runtime_s=runtime)

    def sampler_rng(self) -> np.random.Generator:
        """Sequential covariate stream, a function of the seed only."""
        return np.random.default_rng(self.seed)

    def run_dir(self) -> Path:
        return self.artifact_dir / self.run_id

    def get_runtime_metadata(self) -> Dict[str, Any]:
        """Identifiers, directories and per-stage runtimes of this run."""
        return {
            "run_id": self.run_id,
            "seed": self.seed,
            "threads": self.threads,
            "artifact_dir": str(self.artifact_dir),
            "run_dir": str(self.run_dir()),
            "stage_times": dict(self._stage_times),
            "failed_stages": list(self._failed_stages),
            "total_runtime_s": sum(self._stage_times.values()),
        }
