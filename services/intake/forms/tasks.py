"""Background tasks for the intake form service."""
from __future__ import annotations

import logging

from celery import shared_task
from django.db import transaction

from .background import SELECTION_FIELDS, BackgroundSelectionService
from .constants import has_value
from .models import IntakeSubmission

logger = logging.getLogger(__name__)


@shared_task(bind=True, max_retries=3, default_retry_delay=5)
def process_intake_submission(self, submission_id: str) -> None:
    """Record a student's background answers from a queued submission."""

    submission: IntakeSubmission | None = None
    try:
        with transaction.atomic():
            submission = IntakeSubmission.objects.select_for_update().get(id=submission_id)
            if submission.status == IntakeSubmission.COMPLETED:
                logger.info("Submission %s already completed", submission_id)
                return
            if submission.status == IntakeSubmission.PROCESSING:
                logger.info("Submission %s already processing", submission_id)
                return
            submission.mark_processing()

        answers = dict(submission.answers)
        selection = None
        if all(has_value(answers.get(field)) for field in SELECTION_FIELDS):
            with transaction.atomic():
                selection = BackgroundSelectionService().save(submission.user_id, answers)
        submission.mark_completed(selection)
        logger.info("Intake submission %s completed for %s", submission_id, submission.user_id)
    except IntakeSubmission.DoesNotExist:
        logger.warning("Submission %s does not exist", submission_id)
    except Exception as exc:  # pragma: no cover - retries exercised in production
        logger.exception("Processing submission %s failed", submission_id)
        if submission is not None:
            if self.request.retries >= self.max_retries:
                submission.mark_failed(str(exc))
                return
            submission.status = IntakeSubmission.PENDING
            submission.save(update_fields=["status", "updated_at"])
        raise self.retry(exc=exc, countdown=min(60, 2 ** self.request.retries))
