# © 2024–2025 Harnisch LLC. All Rights Reserved.
# Licensed exclusively for use by St. Edward Church & School (Nashville, TN).
# Unauthorized use, distribution, or modification is prohibited.

"""
Sync Engine - Five-stage webinar synchronization pipeline

Stages run strictly in order:
    1. webinar snapshot      full list, no ledger
    2. lead ingestion        inbox files, consumed regardless of upload outcome
    3. lead upload           leads become registrants of their target webinar
    4. registrant download   webinars that have not ended yet
    5. attendee download     webinars that have ended

Every stage returns a StageResult. A failed stage stops the run and the
remaining stages are reported as skipped; ledger state committed before the
failure stays committed, so the next run resumes from there.
"""
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from threading import Event, Lock
from typing import Callable, Dict, List, Optional

from models import Lead, NewRegistrant, Webinar
from sync.history import SyncHistory
from sync.ledger import LedgerSet, attendee_key, lead_key, registrant_key
from sync.matcher import EntityMatcher
from sync.windows import (
    SNAPSHOT_MONTHS_BACKWARD,
    SNAPSHOT_MONTHS_FORWARD,
    UPLOAD_MONTHS_BACKWARD,
    UPLOAD_MONTHS_FORWARD,
    select_ended,
    select_upcoming,
)
from utils.errors import AuthenticationError, DataIntegrityWarning, InvalidArgumentError, RemoteApiError, SyncError
from utils.logger import StructuredLogger
from utils.timezone import DateWindow, get_utc_time
from webinar_ops.pagination import PaginatedFetcher

logger = logging.getLogger(__name__)

STAGE_SNAPSHOT = 'webinar_snapshot'
STAGE_INGEST = 'lead_ingestion'
STAGE_UPLOAD = 'lead_upload'
STAGE_REGISTRANTS = 'registrant_download'
STAGE_ATTENDEES = 'attendee_download'
STAGES = (STAGE_SNAPSHOT, STAGE_INGEST, STAGE_UPLOAD, STAGE_REGISTRANTS, STAGE_ATTENDEES)

# Errors that end a stage; anything else reaches the run boundary
STAGE_ERRORS = (RemoteApiError, InvalidArgumentError, OSError)


class LedgerPolicy(Enum):
    """What the lead upload commits to its ledger"""
    BY_IDENTITY = 'by_identity'  # every filtered lead, whatever happened to it
    BY_OUTCOME = 'by_outcome'    # only leads that were created or already registered


class StageStatus(Enum):
    OK = 'ok'
    FAILED = 'failed'
    SKIPPED = 'skipped'
    CANCELLED = 'cancelled'


@dataclass
class StageResult:
    stage: str
    status: StageStatus
    counters: Dict[str, int] = field(default_factory=dict)
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.status is StageStatus.OK

    @classmethod
    def success(cls, stage: str, **counters) -> 'StageResult':
        return cls(stage, StageStatus.OK, counters)

    @classmethod
    def failure(cls, stage: str, error: Exception, **counters) -> 'StageResult':
        return cls(stage, StageStatus.FAILED, counters, error=error)

    @classmethod
    def skipped(cls, stage: str) -> 'StageResult':
        return cls(stage, StageStatus.SKIPPED)

    @classmethod
    def cancelled(cls, stage: str, **counters) -> 'StageResult':
        return cls(stage, StageStatus.CANCELLED, counters)


@dataclass
class RunReport:
    started_at: datetime
    finished_at: Optional[datetime] = None
    stages: List[StageResult] = field(default_factory=list)
    error: Optional[Exception] = None
    # Rotated refresh token held only in memory
    credential_persist_failed: bool = False

    @property
    def success(self) -> bool:
        return self.error is None and len(self.stages) == len(STAGES) and all(s.ok for s in self.stages)

    @property
    def failed_stage(self) -> Optional[str]:
        return next((s.stage for s in self.stages if s.status is StageStatus.FAILED), None)

    @property
    def error_message(self) -> Optional[str]:
        if self.error is not None:
            return str(self.error)
        failed = next((s for s in self.stages if s.status is StageStatus.FAILED), None)
        return str(failed.error) if failed else None

    @property
    def duration_seconds(self) -> float:
        if not self.finished_at:
            return 0.0
        return (self.finished_at - self.started_at).total_seconds()

    def stage(self, name: str) -> Optional[StageResult]:
        return next((s for s in self.stages if s.stage == name), None)

    def totals(self) -> Dict[str, int]:
        totals: Dict[str, int] = {}
        for result in self.stages:
            for name, count in result.counters.items():
                key = f"{result.stage}.{name}"
                totals[key] = totals.get(key, 0) + count
        return totals


@dataclass
class RunContext:
    access_token: str
    now: datetime
    leads: List[Lead] = field(default_factory=list)


class SyncPipelineOrchestrator:
    """Core engine for webinar synchronization"""

    def __init__(self, token_manager, reader, writer, ledgers: LedgerSet, lead_inbox, output_store,
                 months_backward: int, months_forward: int, dummy_phone: str,
                 ledger_policy=LedgerPolicy.BY_IDENTITY, fetcher: Optional[PaginatedFetcher] = None,
                 matcher: Optional[EntityMatcher] = None, page_size: int = 200,
                 clock: Callable[[], datetime] = get_utc_time, stop_event: Optional[Event] = None,
                 history: Optional[SyncHistory] = None):
        self.token_manager = token_manager
        self.reader = reader
        self.writer = writer
        self.ledgers = ledgers
        self.lead_inbox = lead_inbox
        self.output_store = output_store
        self.months_backward = months_backward
        self.months_forward = months_forward
        self.dummy_phone = dummy_phone
        self.ledger_policy = LedgerPolicy(ledger_policy)
        self.fetcher = fetcher or PaginatedFetcher()
        self.matcher = matcher or EntityMatcher()
        self.page_size = page_size
        self.clock = clock
        self.stop_event = stop_event or Event()
        self.history = history or SyncHistory()

        # Sync state
        self.sync_lock = Lock()
        self.sync_in_progress = False
        self.last_report: Optional[RunReport] = None

        self.structured_logger = StructuredLogger(__name__)

    # =========================================================================
    # RUN
    # =========================================================================

    def run(self) -> RunReport:
        """Run all stages once. Never raises; inspect the report and the logs."""
        with self.sync_lock:
            if self.sync_in_progress:
                logger.warning("Sync already in progress - run refused")
                report = RunReport(started_at=self.clock(), finished_at=self.clock(),
                                   error=SyncError("Sync already in progress"))
                return report
            self.sync_in_progress = True

        report = RunReport(started_at=self.clock())
        logger.info("🚀 Starting webinar sync")
        self.structured_logger.log_sync_event('sync_started', {'ledger_policy': self.ledger_policy.value})

        try:
            self._run_stages(report)
        except Exception as e:
            # Top-level boundary: log and end the run
            logger.exception(f"❌ Webinar sync terminated unexpectedly: {e}")
            report.error = e
        finally:
            report.finished_at = self.clock()
            self.history.add_entry(report)
            self.last_report = report
            with self.sync_lock:
                self.sync_in_progress = False

        self._log_summary(report)
        return report

    def _run_stages(self, report: RunReport):
        try:
            access_token = self.token_manager.refresh()
        except AuthenticationError as e:
            logger.error(f"❌ Authentication failed - no stage can run: {e}")
            self.structured_logger.log_sync_event('authentication_failed', {'error': str(e)})
            report.error = e
            report.stages = [StageResult.skipped(name) for name in STAGES]
            return

        report.credential_persist_failed = self.token_manager.persistence_failed

        context = RunContext(access_token=access_token, now=self.clock())
        steps = [
            (STAGE_SNAPSHOT, self.snapshot_webinars),
            (STAGE_INGEST, self.ingest_leads),
            (STAGE_UPLOAD, self.upload_leads),
            (STAGE_REGISTRANTS, self.download_registrants),
            (STAGE_ATTENDEES, self.download_attendees),
        ]

        blocked = False
        for name, step in steps:
            if blocked:
                report.stages.append(StageResult.skipped(name))
                continue
            if self.stop_event.is_set():
                logger.warning(f"🛑 Sync cancelled before {name}")
                report.stages.append(StageResult.cancelled(name))
                blocked = True
                continue

            started = time.monotonic()
            result = step(context)
            report.stages.append(result)
            self._log_stage(result, time.monotonic() - started)

            if not result.ok:
                blocked = True

    # =========================================================================
    # STAGES
    # =========================================================================

    def snapshot_webinars(self, context: RunContext) -> StageResult:
        """Stage 1: persist the full webinar list of the last ten years and next quarter"""
        window = DateWindow.from_offsets(context.now, SNAPSHOT_MONTHS_BACKWARD, SNAPSHOT_MONTHS_FORWARD)
        try:
            webinars = self._fetch_webinars(context.access_token, window)
            self.output_store.save_webinar_snapshot(webinars)
        except STAGE_ERRORS as e:
            return StageResult.failure(STAGE_SNAPSHOT, e)
        return StageResult.success(STAGE_SNAPSHOT, webinars=len(webinars))

    def ingest_leads(self, context: RunContext) -> StageResult:
        """Stage 2: read the inbox; files are consumed even if the upload later fails"""
        try:
            context.leads = self.lead_inbox.collect()
        except STAGE_ERRORS as e:
            return StageResult.failure(STAGE_INGEST, e)
        return StageResult.success(STAGE_INGEST, leads=len(context.leads))

    def upload_leads(self, context: RunContext) -> StageResult:
        """Stage 3: register new leads for their destination webinar"""
        if not context.leads:
            logger.info("No leads to upload")
            return StageResult.success(STAGE_UPLOAD, leads=0)

        ledger = self.ledgers.uploaded_leads
        counters = {'leads': len(context.leads), 'pending': 0, 'created': 0, 'existing': 0,
                    'unmatched': 0, 'invalid': 0, 'committed': 0}
        pending: List[Lead] = []
        succeeded: List[Lead] = []

        try:
            window = DateWindow.from_offsets(context.now, UPLOAD_MONTHS_BACKWARD, UPLOAD_MONTHS_FORWARD)
            webinars = self._fetch_webinars(context.access_token, window)

            pending = ledger.filter_unprocessed(context.leads, lead_key)
            counters['pending'] = len(pending)

            for lead in pending:
                outcome = self._upload_lead(context.access_token, lead, webinars)
                counters[outcome] += 1
                if outcome in ('created', 'existing'):
                    succeeded.append(lead)

            to_commit = pending if self.ledger_policy is LedgerPolicy.BY_IDENTITY else succeeded
            counters['committed'] = ledger.commit(to_commit, lead_key)
        except STAGE_ERRORS as e:
            if self.ledger_policy is LedgerPolicy.BY_OUTCOME and succeeded:
                counters['committed'] = self._commit_after_failure(ledger, succeeded, lead_key)
            return StageResult.failure(STAGE_UPLOAD, e, **counters)

        return StageResult.success(STAGE_UPLOAD, **counters)

    def _upload_lead(self, access_token: str, lead: Lead, webinars: List[Webinar]) -> str:
        webinar = self.matcher.find_target_webinar(lead, webinars)
        if webinar is None:
            logger.info(f"Lead {lead.contact_id}: no webinar {lead.destination_webinar_key} in window - skipped")
            return 'unmatched'

        registrant = NewRegistrant.from_lead(lead, self.dummy_phone)
        if not (registrant.first_name and registrant.last_name and registrant.email):
            warning = DataIntegrityWarning(f"Lead {lead.contact_id} lacks first name, last name or email")
            logger.warning(f"⚠️ {warning} - skipped")
            return 'invalid'

        existing = self.fetcher.fetch_all(
            lambda page, size: self.reader.get_registrants_page(
                access_token, webinar.organizer_key, webinar.webinar_key, page, size),
            self.page_size
        )
        if self.matcher.registrant_exists(existing, lead.email):
            logger.info(f"Lead {lead.contact_id} already registered for webinar {webinar.webinar_key}")
            return 'existing'

        self.writer.create_registrant(access_token, webinar, registrant)
        return 'created'

    def download_registrants(self, context: RunContext) -> StageResult:
        """Stage 4: registrant details of webinars that have not ended yet"""
        ledger = self.ledgers.downloaded_registrants
        counters = {'webinars': 0, 'registrants': 0, 'committed': 0}

        try:
            window = DateWindow.from_offsets(context.now, self.months_backward, self.months_forward)
            webinars = select_upcoming(self._fetch_webinars(context.access_token, window), context.now)
            counters['webinars'] = len(webinars)

            for webinar in webinars:
                if self.stop_event.is_set():
                    logger.warning("🛑 Registrant download cancelled")
                    return StageResult.cancelled(STAGE_REGISTRANTS, **counters)

                registrants = self.fetcher.fetch_all(
                    lambda page, size: self.reader.get_registrants_page(
                        context.access_token, webinar.organizer_key, webinar.webinar_key, page, size),
                    self.page_size
                )
                pending = ledger.filter_unprocessed(registrants, registrant_key)
                if not pending:
                    continue

                details = []
                seen = set()
                for registrant in pending:
                    if not registrant.registrant_key:
                        logger.warning(f"⚠️ Registrant without key in webinar {webinar.webinar_key} - skipped")
                        continue
                    if registrant.registrant_key in seen:
                        continue
                    seen.add(registrant.registrant_key)
                    details.append(self.reader.get_registrant(
                        context.access_token, webinar.organizer_key, webinar.webinar_key,
                        registrant.registrant_key))

                self.output_store.save_registrant_details(details, webinar.webinar_key)
                counters['registrants'] += len(details)
                counters['committed'] += ledger.commit(pending, registrant_key)
        except STAGE_ERRORS as e:
            return StageResult.failure(STAGE_REGISTRANTS, e, **counters)

        return StageResult.success(STAGE_REGISTRANTS, **counters)

    def download_attendees(self, context: RunContext) -> StageResult:
        """Stage 5: attendee details of webinars that have ended"""
        ledger = self.ledgers.downloaded_attendees
        counters = {'webinars': 0, 'attendees': 0, 'committed': 0}

        try:
            window = DateWindow.from_offsets(context.now, self.months_backward, self.months_forward)
            webinars = select_ended(self._fetch_webinars(context.access_token, window), context.now)
            counters['webinars'] = len(webinars)

            for webinar in webinars:
                if self.stop_event.is_set():
                    logger.warning("🛑 Attendee download cancelled")
                    return StageResult.cancelled(STAGE_ATTENDEES, **counters)

                def key_fn(participation, webinar_key=webinar.webinar_key):
                    return attendee_key(webinar_key, participation.registrant_key)

                participations = self.fetcher.fetch_all(
                    lambda page, size: self.reader.get_attendees_page(
                        context.access_token, webinar.organizer_key, webinar.webinar_key, page, size),
                    self.page_size
                )
                pending = ledger.filter_unprocessed(participations, key_fn)
                if not pending:
                    continue

                details = []
                fetched = []
                seen = set()
                for participation in pending:
                    if not participation.registrant_key:
                        logger.warning(f"⚠️ Attendee without registrant key in webinar {webinar.webinar_key} "
                                       f"- skipped")
                        continue
                    if not participation.session_key:
                        logger.warning(f"⚠️ Attendee {participation.registrant_key} of webinar "
                                       f"{webinar.webinar_key} has no session key - skipped")
                        continue
                    fetched.append(participation)
                    if (participation.registrant_key, participation.session_key) in seen:
                        continue
                    seen.add((participation.registrant_key, participation.session_key))
                    details.append(self.reader.get_attendee(
                        context.access_token, webinar.organizer_key, webinar.webinar_key,
                        participation.session_key, participation.registrant_key))

                self.output_store.save_attendee_details(details, webinar.webinar_key)
                counters['attendees'] += len(details)
                counters['committed'] += ledger.commit(fetched, key_fn)
        except STAGE_ERRORS as e:
            return StageResult.failure(STAGE_ATTENDEES, e, **counters)

        return StageResult.success(STAGE_ATTENDEES, **counters)

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _fetch_webinars(self, access_token: str, window: DateWindow) -> List[Webinar]:
        logger.info(f"Fetching webinars {window}")
        return self.fetcher.fetch_all(
            lambda page, size: self.reader.get_webinars_page(access_token, window, page, size),
            self.page_size
        )

    def _commit_after_failure(self, ledger, items, key_fn) -> int:
        try:
            return ledger.commit(items, key_fn)
        except OSError as e:
            logger.error(f"Could not commit {len(items)} keys to {ledger.name} after stage failure: {e}")
            return 0

    def _log_stage(self, result: StageResult, duration_seconds: float):
        details = {'stage': result.stage, 'status': result.status.value, **result.counters}
        if result.status is StageStatus.FAILED:
            logger.error(f"❌ Stage {result.stage} failed: {result.error}")
            details['error'] = str(result.error)
            self.structured_logger.log_sync_event('stage_failed', details)
        elif result.status is StageStatus.CANCELLED:
            self.structured_logger.log_sync_event('stage_skipped', details)
        else:
            logger.info(f"✅ Stage {result.stage} completed: {result.counters}")
            self.structured_logger.log_sync_event('stage_completed', details)
        self.structured_logger.log_performance(result.stage, duration_seconds, success=result.ok)

    def _log_summary(self, report: RunReport):
        if report.credential_persist_failed:
            logger.critical("🔑 Rotated refresh token is held only in memory - fix TOKEN_STORE_FILE before the next restart")

        if report.success:
            logger.info(f"✅ Webinar sync completed in {report.duration_seconds:.1f}s")
            self.structured_logger.log_sync_event('sync_completed', report.totals())
        else:
            skipped = [s.stage for s in report.stages if s.status is StageStatus.SKIPPED]
            logger.error(f"⚠️ Webinar sync ended early: {report.error_message or 'cancelled'}"
                         f"{' - skipped ' + ', '.join(skipped) if skipped else ''}")
            self.structured_logger.log_sync_event('sync_failed', {
                'failed_stage': report.failed_stage,
                'error': report.error_message,
                'skipped': skipped
            })
