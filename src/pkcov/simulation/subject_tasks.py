"""Helpers for preparing subject-level simulation tasks.

Each task carries the master seed; the random effects of a subject are drawn
from a sub-stream derived from ``(master_seed, subject_id)``.  A subject's
draw therefore does not depend on which worker runs it, on the number of
workers, or on the order in which tasks complete.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Iterable, List, Optional

import numpy as np

from ..contracts.errors import InvalidConfigurationError
from ..contracts.types import Subject
from ..models.pk import sample_eta


@dataclass(frozen=True)
class SubjectTask:
    """Descriptor for a single subject simulation run."""

    subject: Subject
    seed: int
    apply_variability: bool = False


def subject_rng(master_seed: int, subject_id: int) -> np.random.Generator:
    """Create the independent random stream for one subject."""
    if master_seed < 0 or subject_id < 0:
        raise InvalidConfigurationError(
            "Seeds and subject ids must be non-negative",
            {"master_seed": master_seed, "subject_id": subject_id},
        )
    return np.random.default_rng(np.random.SeedSequence([master_seed, subject_id]))


def build_tasks(
    subjects: Iterable[Subject],
    master_seed: int,
    apply_variability: bool = False,
) -> List[SubjectTask]:
    """Create deterministic subject tasks.

    Args:
        subjects: Subjects to simulate; ids must be unique.
        master_seed: Seed from which per-subject streams are derived.
        apply_variability: Whether to draw random effects for each subject.
            False reproduces the zeroed-variability scenario.

    Returns:
        List of tasks ordered by subject id.
    """
    tasks: List[SubjectTask] = []
    seen = set()
    for subject in sorted(subjects, key=lambda s: s.id):
        if subject.id in seen:
            raise InvalidConfigurationError(f"Duplicate subject id: {subject.id}")
        seen.add(subject.id)
        tasks.append(SubjectTask(subject=subject, seed=master_seed, apply_variability=apply_variability))
    return tasks


def prepare_subject(task: SubjectTask, omega: Optional[np.ndarray]) -> Subject:
    """Return the task's subject carrying its random effects (or none)."""
    if not task.apply_variability:
        return replace(task.subject, eta=None)
    if omega is None:
        raise InvalidConfigurationError("Variability requested without a covariance matrix")
    eta = sample_eta(subject_rng(task.seed, task.subject.id), omega)
    return replace(task.subject, eta=eta)
