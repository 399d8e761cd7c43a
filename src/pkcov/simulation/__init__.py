"""Population simulation helpers."""

from .subject_tasks import SubjectTask, build_tasks, prepare_subject, subject_rng
from .trial import TrialSimulator

__all__ = [
    "SubjectTask",
    "build_tasks",
    "prepare_subject",
    "subject_rng",
    "TrialSimulator",
]
