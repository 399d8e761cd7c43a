"""Population simulation: dosing, per-subject parameters, trajectories."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
import threading
from typing import List, Optional, Sequence, Tuple

import numpy as np
import structlog

from ..contracts.errors import PKCovError
from ..contracts.types import BatchResult, DoseEvent, Subject, SubjectFailure, Trajectory
from ..models.pk import OneCompartmentOralModel
from .subject_tasks import SubjectTask, build_tasks, prepare_subject


@dataclass(frozen=True)
class _TaskOutcome:
    subject_id: int
    subject: Optional[Subject] = None
    trajectory: Optional[Trajectory] = None
    failure: Optional[SubjectFailure] = None
    skipped: bool = False


class TrialSimulator:
    """Simulate a population of subjects with one shared model and dose.

    Subjects are independent; with ``threads > 1`` they are distributed over a
    thread pool.  Random effects come from per-subject streams, so results do
    not depend on the thread count.

    Args:
        model: PK model shared read-only by all workers.
        dose: Dose given to every subject.
        times: Output grid [h].
        omega: 2x2 random-effect covariance, used when ``zeroed`` is False.
        zeroed: Suppress between-subject variability.
        master_seed: Seed from which per-subject streams are derived.
        threads: Worker threads.
        fail_fast: Propagate the first subject failure instead of recording it.
    """

    def __init__(
        self,
        model: OneCompartmentOralModel,
        dose: DoseEvent,
        times: np.ndarray,
        omega: Optional[np.ndarray],
        zeroed: bool,
        master_seed: int,
        threads: int = 1,
        fail_fast: bool = False,
        logger: Optional[structlog.BoundLogger] = None,
    ) -> None:
        self.model = model
        self.dose = dose
        self.times = np.asarray(times, dtype=float)
        self.omega = None if omega is None else np.asarray(omega, dtype=float)
        self.zeroed = zeroed
        self.master_seed = master_seed
        self.threads = max(1, int(threads))
        self.fail_fast = fail_fast
        self.logger = logger or structlog.get_logger()

    def run(
        self,
        subjects: Sequence[Subject],
        cancel_event: Optional[threading.Event] = None,
    ) -> BatchResult:
        """Simulate all subjects and return trajectories plus failures.

        ``cancel_event`` is checked before each subject starts; subjects not
        started once it is set are reported in ``skipped_ids``.
        """
        tasks = build_tasks(subjects, self.master_seed, apply_variability=not self.zeroed)
        cancel = cancel_event or threading.Event()
        self.logger.info(
            "Simulating population",
            n_subjects=len(tasks),
            threads=self.threads,
            zeroed_variability=self.zeroed,
        )

        if self.threads == 1:
            outcomes = [self._run_task(task, cancel) for task in tasks]
        else:
            outcomes = self._run_threaded(tasks, cancel)

        result = BatchResult()
        for outcome in sorted(outcomes, key=lambda o: o.subject_id):
            if outcome.skipped:
                result.skipped_ids.append(outcome.subject_id)
            elif outcome.failure is not None:
                result.failures.append(outcome.failure)
            else:
                result.subjects.append(outcome.subject)
                result.trajectories.append(outcome.trajectory)
        result.cancelled = bool(result.skipped_ids)

        self.logger.info(
            "Population simulated",
            succeeded=result.n_succeeded,
            failed=result.n_failed,
            skipped=len(result.skipped_ids),
        )
        return result

    def simulate_subject(self, task: SubjectTask) -> Tuple[Subject, Trajectory]:
        subject = prepare_subject(task, self.omega)
        trajectory = self.model.simulate(subject, self.dose, self.times)
        return subject, trajectory

    def _run_task(self, task: SubjectTask, cancel: threading.Event) -> _TaskOutcome:
        subject_id = task.subject.id
        if cancel.is_set():
            return _TaskOutcome(subject_id=subject_id, skipped=True)
        try:
            subject, trajectory = self.simulate_subject(task)
        except PKCovError as e:
            if self.fail_fast:
                cancel.set()
                raise
            self.logger.warning("Subject simulation failed", subject_id=subject_id, error=e.message)
            return _TaskOutcome(
                subject_id=subject_id,
                failure=SubjectFailure(
                    subject_id=subject_id,
                    reason=e.message,
                    error_type=type(e).__name__,
                ),
            )
        return _TaskOutcome(subject_id=subject_id, subject=subject, trajectory=trajectory)

    def _run_threaded(self, tasks: List[SubjectTask], cancel: threading.Event) -> List[_TaskOutcome]:
        with ThreadPoolExecutor(max_workers=self.threads) as executor:
            futures = [executor.submit(self._run_task, task, cancel) for task in tasks]
            return [future.result() for future in futures]
