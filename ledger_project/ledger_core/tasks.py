from celery import shared_task
from celery.utils.log import get_task_logger
from django.conf import settings

from .exceptions import TransientPostingError

logger = get_task_logger(__name__)


# acks_late: a worker that dies mid-posting gets the job redelivered,
# the posting_status claim turns the redelivery into a no-op once posted
@shared_task(bind=True, acks_late=True, name="ledger_core.post_document_journal")
def post_document_journal(self, job_name, payload):
    # import services lazily to avoid circular imports at module import time
    from .services.pipeline import (process_posting_job,
                                    requeue_after_transient_failure)

    try:
        return process_posting_job(job_name, payload)
    except TransientPostingError as exc:
        max_retries = settings.LEDGER_POSTING_MAX_RETRIES
        document_id = payload.get("document_id")
        if self.request.retries >= max_retries:
            logger.error(
                "Giving up on %s for document %s after %s retries: %s",
                job_name, document_id, self.request.retries, exc,
            )
            raise
        # Failed -> Pending, so the next attempt can claim it
        requeue_after_transient_failure(job_name, document_id)
        logger.warning(
            "Retrying %s for document %s (attempt %s of %s): %s",
            job_name, document_id, self.request.retries + 1, max_retries, exc,
        )
        raise self.retry(
            exc=exc,
            countdown=settings.LEDGER_POSTING_RETRY_DELAY,
            max_retries=max_retries,
        )


@shared_task(name="ledger_core.verify_account_balances")
def verify_account_balances(entity_id=None):
    """Recompute balances from transactions; returns the number of mismatches"""
    from .models import Entity
    from .services.ledger import verify_entity_balances

    entities = Entity.objects.all()
    if entity_id is not None:
        entities = entities.filter(pk=entity_id)

    mismatches = 0
    for entity in entities:
        mismatches += len(verify_entity_balances(entity))
    if mismatches:
        logger.warning("Ledger verification found %s mismatches", mismatches)
    else:
        logger.info("Ledger verification clean")
    return mismatches
