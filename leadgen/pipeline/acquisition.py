"""
Acquisition — search pages → eligibility filter → dedup → owner lookup → insert.

One sequential pass over [start_page, start_page + page_count). Per-repo
failures land in the result's error list and never stop the run; only a
non-transient source failure before the first page counts as a total failure.
"""
import logging
from datetime import datetime, timezone
from typing import Optional

from leadgen.config import AcquisitionSettings
from leadgen.errors import AcquisitionFailed, TransientSourceError
from leadgen.pipeline.base import AcquisitionResult, CancellationToken, RepoSummary
from leadgen.pipeline.eligibility import is_active, is_valid_candidate, normalize_email
from leadgen.pipeline.pacing import Pacer, fixed_or_noop

logger = logging.getLogger('pipeline.acquisition')


def build_lead_fields(repo: RepoSummary, owner) -> dict:
    """Column values for a new Lead from a repo and its (possibly missing) owner profile."""
    fields = {
        'github_username': repo.owner,
        'repo_name': repo.name,
        'repo_url': repo.html_url,
        'repo_description': repo.description or '',
        'repo_stars': repo.stars,
        'repo_forks': repo.forks,
        'repo_language': repo.language,
        'repo_created_at': repo.created_at,
        'repo_updated_at': repo.updated_at,
        'last_activity': repo.pushed_at,
        'email': None,
        'status': 'new',
    }
    if owner is not None:
        fields.update({
            'email': normalize_email(owner.email),
            'owner_name': owner.name,
            'owner_company': owner.company,
            'owner_blog': owner.blog,
            'owner_location': owner.location,
            'owner_bio': owner.bio,
            'owner_twitter_username': owner.twitter_username,
        })
    return fields


class AcquisitionPipeline:

    def __init__(self, source, store, settings: AcquisitionSettings = None,
                 item_pacer: Pacer = None, page_pacer: Pacer = None,
                 now: Optional[datetime] = None):
        self.source = source
        self.store = store
        self.settings = settings or AcquisitionSettings()
        self.item_pacer = item_pacer or fixed_or_noop(self.settings.item_delay)
        self.page_pacer = page_pacer or fixed_or_noop(self.settings.page_delay)
        self.now = now

    def run(self, start_page: int = None, page_count: int = None,
            cancel: CancellationToken = None) -> AcquisitionResult:
        start_page = self.settings.default_start_page if start_page is None else start_page
        page_count = self.settings.default_page_count if page_count is None else page_count
        if start_page < 1:
            raise ValueError("start_page must be >= 1")
        if page_count < 0:
            raise ValueError("page_count must be >= 0")

        now = self.now or datetime.now(timezone.utc)
        result = AcquisitionResult()
        last_page = start_page + page_count - 1
        logger.info("Starting acquisition, pages %d-%d", start_page, last_page)

        for page in range(start_page, start_page + page_count):
            if cancel is not None and cancel.cancelled:
                result.cancelled = True
                logger.info("Acquisition cancelled before page %d", page)
                break

            try:
                repos = self.source.search(page)
            except TransientSourceError as e:
                logger.warning("Page %d failed: %s", page, e)
                result.errors.append(f"error fetching page {page}: {e}")
                if page < last_page:
                    self.page_pacer.pace()
                continue
            except Exception as e:
                if result.pages_fetched == 0:
                    logger.error("Acquisition failed on page %d: %s", page, e, exc_info=True)
                    raise AcquisitionFailed(f"search failed on page {page}: {e}") from e
                logger.error("Stopping pagination at page %d: %s", page, e)
                result.errors.append(f"error fetching page {page}: {e}")
                break

            result.pages_fetched += 1
            if not repos:
                logger.info("No more repositories on page %d", page)
                break
            result.leads_found += len(repos)

            for repo in repos:
                if cancel is not None and cancel.cancelled:
                    result.cancelled = True
                    break
                self._process(repo, now, result)

            if result.cancelled:
                logger.info("Acquisition cancelled during page %d", page)
                break
            if page < last_page:
                self.page_pacer.pace()

        logger.info("Acquisition finished: %d found, %d added, %d errors",
                    result.leads_found, result.leads_added, len(result.errors))
        return result

    def _process(self, repo: RepoSummary, now: datetime, result: AcquisitionResult):
        full_name = repo.full_name
        try:
            if not is_valid_candidate(repo, self.settings.keywords):
                return
            if not is_active(repo, now=now, max_stale_days=self.settings.max_stale_days):
                logger.debug("Skipping inactive repo: %s", full_name)
                return
            if self.store.exists(repo.owner, repo.name):
                logger.debug("Lead already exists: %s", full_name)
                return

            owner = self.source.fetch_owner_detail(repo.owner)
            inserted = self.store.insert(build_lead_fields(repo, owner))
            if inserted is not None:
                result.leads_added += 1
                logger.info("Added lead: %s", full_name)
            else:
                result.errors.append(f"failed to insert lead: {full_name}")
        except Exception as e:
            logger.error("Error processing %s: %s", full_name, e)
            result.errors.append(f"error processing {full_name}: {e}")
            return

        self.item_pacer.pace()
