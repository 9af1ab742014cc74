"""Dedup/merge engine: folds candidate postings into the job catalog.

Per batch:
  1. Dedup within the batch by external id (first sighting wins)
  2. One bulk lookup of existing jobs by (site_id, external_id)
  3. Unseen key  -> create with status 'new'
     Seen key    -> diff scraped fields; write only if something changed
  4. Status and labels are never touched here

Each create/update is a single store write, so a candidate is either fully
applied or reported in ``failed``. Re-running a batch that already merged is
a no-op (everything lands in ``unchanged``).
"""

import logging
from collections.abc import Iterable
from datetime import datetime
from typing import Protocol

from jobscan.core.errors import StoreUnavailable
from jobscan.core.schemas import CandidatePosting, Job, JobDetail, MergeResult, Source

logger = logging.getLogger(__name__)

# candidate attribute -> job attribute
CANDIDATE_FIELDS: dict[str, str] = {
    "title": "title",
    "company": "company",
    "location": "location",
    "salary": "salary",
    "job_type": "job_type",
    "external_url": "external_url",
    "description": "description",
    "listed_at": "listed_at",
    "updated_at": "source_updated_at",
}

DETAIL_FIELDS: tuple[str, ...] = ("description", "company", "location", "salary", "job_type")


class CatalogStore(Protocol):
    """The slice of the catalog the merge engine needs."""

    def lookup_jobs_by_keys(self, keys: Iterable[tuple[int, str]]) -> list[Job]: ...
    def create_job(self, job: Job) -> Job | None: ...
    def update_job(self, job: Job) -> Job: ...


def diff_candidate(job: Job, candidate: CandidatePosting) -> dict[str, object]:
    """Scraped fields that differ. None on the candidate means "not shown", not "cleared"."""
    changes: dict[str, object] = {}
    for candidate_field, job_field in CANDIDATE_FIELDS.items():
        value = getattr(candidate, candidate_field)
        if value is None:
            continue
        if value != getattr(job, job_field):
            changes[job_field] = value
    return changes


def diff_detail(job: Job, detail: JobDetail) -> dict[str, object]:
    changes: dict[str, object] = {}
    for name in DETAIL_FIELDS:
        value = getattr(detail, name)
        if value and value != getattr(job, name):
            changes[name] = value
    return changes


class MergeEngine:
    """Applies candidate batches to a catalog store."""

    def __init__(self, store: CatalogStore) -> None:
        self._store = store

    def merge(self, candidates: Iterable[CandidatePosting], source: Source) -> MergeResult:
        """Merge one page worth of candidates found under ``source``.

        A StoreUnavailable stops the batch: the failing candidate and every one
        after it are listed in ``failed`` and ``error`` is set.
        """
        batch: dict[str, CandidatePosting] = {}
        for candidate in candidates:
            if candidate.external_id in batch:
                logger.debug("Duplicate %s within batch — keeping first", candidate.external_id)
                continue
            batch[candidate.external_id] = candidate

        result = MergeResult()
        if not batch:
            return result

        try:
            found = self._store.lookup_jobs_by_keys(
                [(source.site_id, external_id) for external_id in batch],
            )
        except StoreUnavailable as e:
            result.failed = list(batch)
            result.error = str(e)
            return result
        existing = {job.external_id: job for job in found}

        pending = list(batch.values())
        for i, candidate in enumerate(pending):
            try:
                self._merge_one(candidate, existing.get(candidate.external_id), source, result)
            except StoreUnavailable as e:
                result.failed.extend(c.external_id for c in pending[i:])
                result.error = str(e)
                logger.error(
                    "Merge for link %d stopped after %d/%d candidates: %s",
                    source.id, i, len(pending), e,
                )
                break

        logger.debug(
            "Merge link %d: %d created, %d updated, %d unchanged, %d failed",
            source.id, len(result.created), len(result.updated),
            result.unchanged, len(result.failed),
        )
        return result

    def apply_detail(self, job: Job, detail: JobDetail) -> Job:
        """Update-only merge of detail-page fields into an existing job."""
        changes = diff_detail(job, detail)
        if not changes:
            return job
        changes["updated_at"] = datetime.now()
        return self._store.update_job(job.model_copy(update=changes))

    def _merge_one(
        self,
        candidate: CandidatePosting,
        job: Job | None,
        source: Source,
        result: MergeResult,
    ) -> None:
        if job is None:
            created = self._store.create_job(Job.from_candidate(candidate, source))
            if created is not None:
                result.created.append(created)
                return
            # Another writer created the key between lookup and insert.
            matches = self._store.lookup_jobs_by_keys([(source.site_id, candidate.external_id)])
            if not matches:
                msg = f"Job {candidate.external_id} neither created nor found"
                raise StoreUnavailable(msg)
            job = matches[0]

        changes = diff_candidate(job, candidate)
        if not changes:
            result.unchanged += 1
            return
        changes["updated_at"] = datetime.now()
        result.updated.append(self._store.update_job(job.model_copy(update=changes)))
