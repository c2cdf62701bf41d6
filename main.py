# © 2024–2025 Harnisch LLC. All Rights Reserved.
# Licensed exclusively for use by St. Edward Church & School (Nashville, TN).
# Unauthorized use, distribution, or modification is prohibited.

#!/usr/bin/env python3
"""
Webinar Sync - command line entry point

    python main.py run                       one pipeline run
    python main.py schedule                  run every SYNC_INTERVAL_MIN minutes
    python main.py auth-url [--state S]      print the authorization URL
    python main.py exchange-code CODE        trade an authorization code for tokens
"""
import argparse
import logging
import signal
import sys
import threading

import requests

import config
from auth.credential_store import FileCredentialStore
from auth.token_manager import TokenLifecycleManager
from sync.engine import SyncPipelineOrchestrator
from sync.lead_inbox import LeadInbox
from sync.ledger import LedgerSet
from sync.output_store import OutputStore
from sync.scheduler import SyncScheduler
from utils.errors import AuthenticationError, ConfigurationError, CredentialPersistenceError
from utils.logger import setup_logging
from webinar_ops.pagination import PaginatedFetcher
from webinar_ops.reader import WebinarReader
from webinar_ops.writer import WebinarWriter

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFIG = 2


def build_token_manager(session=None) -> TokenLifecycleManager:
    store = FileCredentialStore(config.TOKEN_STORE_FILE, bootstrap_token=config.INITIAL_REFRESH_TOKEN or None)
    return TokenLifecycleManager(
        token_endpoint=config.TOKEN_ENDPOINT,
        client_id=config.CLIENT_ID,
        client_secret=config.CLIENT_SECRET,
        credential_store=store,
        redirect_uri=config.REDIRECT_URI or None,
        authorize_endpoint=config.AUTHORIZE_ENDPOINT or None,
        timeout=config.HTTP_TIMEOUT,
        session=session
    )


def build_orchestrator(stop_event=None) -> SyncPipelineOrchestrator:
    """Wire every component from the configuration module"""
    session = requests.Session()
    return SyncPipelineOrchestrator(
        token_manager=build_token_manager(session),
        reader=WebinarReader(config.BASE_API_URL, config.ACCOUNT_KEY, config.HTTP_TIMEOUT, session),
        writer=WebinarWriter(config.BASE_API_URL, config.HTTP_TIMEOUT, session),
        ledgers=LedgerSet(config.OUTPUT_DIR, config.UPLOADED_KEY_FILE,
                          config.REGISTRANT_KEY_FILE, config.ATTENDEE_KEY_FILE),
        lead_inbox=LeadInbox(config.INPUT_DIR),
        output_store=OutputStore(config.OUTPUT_DIR, config.DUMMY_PHONE, config.WEBINAR_SNAPSHOT_FILE),
        months_backward=config.FROM_DATE_BACKWARD,
        months_forward=config.TO_DATE_FORWARD,
        dummy_phone=config.DUMMY_PHONE,
        ledger_policy=config.LEDGER_POLICY,
        fetcher=PaginatedFetcher(max_pages=config.MAX_PAGES),
        stop_event=stop_event
    )


def cmd_run(args) -> int:
    stop_event = threading.Event()
    _install_signal_handlers(stop_event.set)

    report = build_orchestrator(stop_event).run()
    if not report.success:
        logger.warning(f"Run ended early: {report.error_message or 'cancelled'}")
    # Partial failures are retried by the next run
    return EXIT_OK


def cmd_schedule(args) -> int:
    scheduler = SyncScheduler(build_orchestrator(), interval_minutes=config.SYNC_INTERVAL_MIN)
    stopped = threading.Event()

    def shutdown():
        scheduler.stop()
        stopped.set()

    _install_signal_handlers(shutdown)
    scheduler.start(run_immediately=not args.no_initial_run)

    stopped.wait()
    logger.info("Scheduler shut down")
    return EXIT_OK


def cmd_auth_url(args) -> int:
    try:
        print(build_token_manager().get_authorization_url(args.state))
    except AuthenticationError as e:
        logger.error(f"❌ {e}")
        return EXIT_FAILURE
    return EXIT_OK


def cmd_exchange_code(args) -> int:
    manager = build_token_manager()
    try:
        tokens = manager.exchange_authorization_code(args.code)
    except AuthenticationError as e:
        logger.error(f"❌ Authorization code exchange failed: {e}")
        return EXIT_FAILURE

    if not tokens.refresh_token:
        logger.error("❌ Token endpoint returned no refresh token")
        return EXIT_FAILURE

    if args.persist:
        try:
            manager.credential_store.save(tokens.refresh_token)
        except CredentialPersistenceError as e:
            logger.error(f"❌ {e}")
            return EXIT_FAILURE
        logger.info(f"✅ Refresh token stored in {config.TOKEN_STORE_FILE}")
    else:
        print(tokens.refresh_token)
    return EXIT_OK


def _install_signal_handlers(callback):
    def signal_handler(sig, frame):
        logger.warning(f"Received signal {sig}, initiating graceful shutdown...")
        callback()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Synchronize leads, registrants and attendees with the webinar platform')
    parser.add_argument('--verbose', action='store_true', help='Show detailed logging')
    commands = parser.add_subparsers(dest='command', required=True)

    commands.add_parser('run', help='Run the pipeline once').set_defaults(func=cmd_run)

    schedule_parser = commands.add_parser('schedule', help='Run the pipeline periodically')
    schedule_parser.add_argument('--no-initial-run', action='store_true',
                                 help='Wait one interval before the first run')
    schedule_parser.set_defaults(func=cmd_schedule)

    url_parser = commands.add_parser('auth-url', help='Print the authorization URL')
    url_parser.add_argument('--state', help='Opaque state echoed back by the authorization server')
    url_parser.set_defaults(func=cmd_auth_url)

    code_parser = commands.add_parser('exchange-code', help='Exchange an authorization code for a refresh token')
    code_parser.add_argument('code')
    code_parser.add_argument('--persist', action='store_true',
                             help='Write the refresh token to TOKEN_STORE_FILE instead of printing it')
    code_parser.set_defaults(func=cmd_exchange_code)

    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    setup_logging(level='DEBUG' if args.verbose else config.LOG_LEVEL,
                  structured=config.STRUCTURED_LOGGING, log_dir=config.LOG_DIR)

    if args.command in ('run', 'schedule'):
        try:
            config.validate_config()
        except ConfigurationError as e:
            logger.error(f"❌ {e}")
            return EXIT_CONFIG

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
