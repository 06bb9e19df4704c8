"""
Training job ledger - status history of adapter training runs.

A job is created when a dataset is exported for training and then moves
through preparing -> training -> complete | failed as the external trainer
reports back. The trainer itself runs outside this package.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from loguru import logger

from uiforge.db.repositories import FeedbackRepository, TrainingJobRepository
from uiforge.domain import JobStatus, TrainingJob
from uiforge.exceptions import UnknownJobError
from uiforge.ml.training_exporter import (
    DEFAULT_EXPORT_LIMIT,
    DEFAULT_MIN_ABS_SCORE,
    AdapterType,
    ExportResult,
    TrainingReadiness,
    export_for_adapter,
    has_enough_data,
    parse_adapter,
)

NO_DATA_ERROR = "No training data available"


@dataclass(frozen=True)
class TrainingSummary:
    jobs: list[TrainingJob]
    readiness: dict[AdapterType, TrainingReadiness]

    def job_for(self, adapter: AdapterType) -> TrainingJob:
        return next(j for j in self.jobs if j.adapter == adapter.value)


class TrainingJobLedger:
    """
    Example:
        >>> jobs = TrainingJobLedger(SqlTrainingJobRepository(factory))
        >>> job = jobs.create_job("quality-scorer", examples_count=120)
        >>> jobs.update_status(job.id, JobStatus.TRAINING, 10)
        >>> jobs.latest_status("quality-scorer").status
        <JobStatus.TRAINING: 'training'>
    """

    def __init__(self, repository: TrainingJobRepository):
        self.repository = repository

    def create_job(self, adapter: AdapterType | str, examples_count: int) -> TrainingJob:
        adapter = parse_adapter(adapter)
        job = self.repository.create(adapter.value, examples_count)
        logger.info(f"Training job #{job.id} created for {adapter.value} ({examples_count} examples)")
        return job

    def update_status(
        self,
        job_id: int,
        status: JobStatus | str,
        progress: float,
        error: str | None = None,
    ) -> TrainingJob:
        """
        Move a job to `status`. completed_at is stamped the first time the job
        reaches complete or failed.
        """
        status = JobStatus(status)
        if status == JobStatus.IDLE:
            raise ValueError("idle is reported for adapters without jobs and cannot be set")
        if not 0 <= progress <= 100:
            raise ValueError(f"progress must be within 0-100, got {progress}")

        job = self.repository.update_status(job_id, status, progress, error)
        if job is None:
            raise UnknownJobError(f"Training job #{job_id} not found")

        if status == JobStatus.FAILED:
            logger.error(f"Training job #{job_id} ({job.adapter}) failed: {error or 'no error given'}")
        else:
            logger.info(f"Training job #{job_id} ({job.adapter}): {status.value} {progress:.0f}%")
        return job

    def latest_status(self, adapter: AdapterType | str) -> TrainingJob | None:
        return self.repository.latest(parse_adapter(adapter).value)

    def all_statuses(self) -> list[TrainingJob]:
        """Latest job per adapter, with an idle placeholder for adapters never trained."""
        return [
            self.latest_status(adapter) or TrainingJob(adapter=adapter.value, status=JobStatus.IDLE)
            for adapter in AdapterType
        ]


def start_training_job(
    adapter: AdapterType | str,
    jobs: TrainingJobLedger,
    repository: FeedbackRepository,
    output_dir: str | Path,
    min_abs_score: float = DEFAULT_MIN_ABS_SCORE,
    limit: int = DEFAULT_EXPORT_LIMIT,
) -> tuple[TrainingJob, ExportResult]:
    """
    Export an adapter's dataset and open a job for it.

    An empty export still records a job, already failed, so the attempt shows
    up in the adapter's history.
    """
    export = export_for_adapter(adapter, repository, output_dir, min_abs_score=min_abs_score, limit=limit)
    job = jobs.create_job(adapter, export.count)
    if export.count == 0:
        job = jobs.update_status(job.id, JobStatus.FAILED, 0, NO_DATA_ERROR)
    return job, export


def training_summary(
    jobs: TrainingJobLedger,
    repository: FeedbackRepository,
    min_abs_score: float = DEFAULT_MIN_ABS_SCORE,
) -> TrainingSummary:
    """Latest job status and data readiness for every adapter."""
    return TrainingSummary(
        jobs=jobs.all_statuses(),
        readiness={adapter: has_enough_data(adapter, repository, min_abs_score) for adapter in AdapterType},
    )
