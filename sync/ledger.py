# © 2024–2025 Harnisch LLC. All Rights Reserved.
# Licensed exclusively for use by St. Edward Church & School (Nashville, TN).
# Unauthorized use, distribution, or modification is prohibited.

"""
Deduplication Ledger - Append-only record of processed entity keys
"""
import logging
import os
from typing import Callable, Iterable, List, Optional, Set, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar('T')

ATTENDEE_KEY_DELIMITER = ':'


def lead_key(lead) -> Optional[str]:
    return lead.contact_id


def registrant_key(registrant) -> Optional[str]:
    return registrant.registrant_key


def attendee_key(webinar_key: str, registrant_key_value: str) -> str:
    """Attendee keys are scoped per webinar; numeric keys never contain the delimiter"""
    return f"{webinar_key}{ATTENDEE_KEY_DELIMITER}{registrant_key_value}"


class DeduplicationLedger:
    """Newline-delimited key file for one (entity type, direction) pair.

    Reads load the whole file on every call. Writes only ever append, so the
    file grows monotonically and is never rewritten. Single writer only.
    """

    def __init__(self, path: str, name: Optional[str] = None):
        self.path = path
        self.name = name or os.path.basename(path)

    def keys(self) -> Set[str]:
        if not os.path.exists(self.path):
            return set()
        with open(self.path, 'r', encoding='utf-8') as f:
            return {line.strip() for line in f if line.strip()}

    def contains(self, key: str) -> bool:
        return key in self.keys()

    def filter_unprocessed(self, items: Iterable[T], key_fn: Callable[[T], Optional[str]]) -> List[T]:
        """Return the items whose key has not been ledgered yet"""
        processed = self.keys()
        items = list(items)
        unprocessed = [item for item in items if key_fn(item) not in processed]

        logger.debug(f"Ledger {self.name}: {len(unprocessed)} of {len(items)} items unprocessed")
        return unprocessed

    def commit(self, items: Iterable[T], key_fn: Callable[[T], Optional[str]]) -> int:
        """Append the distinct keys of items.

        Only pass items that were fetched and persisted successfully;
        committed keys are skipped on every later run.

        Returns:
            Number of keys written
        """
        new_keys = []
        seen = set()
        for item in items:
            key = key_fn(item)
            if not key or key in seen:
                continue
            seen.add(key)
            new_keys.append(key)

        if not new_keys:
            return 0

        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)

        with open(self.path, 'a+b') as f:
            f.seek(0, os.SEEK_END)
            prefix = b''
            if f.tell() > 0:
                f.seek(-1, os.SEEK_END)
                if f.read(1) != b'\n':
                    prefix = b'\n'
                f.seek(0, os.SEEK_END)
            f.write(prefix + ''.join(f"{key}\n" for key in new_keys).encode('utf-8'))
            f.flush()
            os.fsync(f.fileno())

        logger.info(f"📒 Ledger {self.name}: committed {len(new_keys)} keys")
        return len(new_keys)


class LedgerSet:
    """The three independent ledgers of a deployment"""

    def __init__(self, output_dir: str, uploaded_key_file: str,
                 registrant_key_file: str, attendee_key_file: str):
        self.uploaded_leads = DeduplicationLedger(
            os.path.join(output_dir, uploaded_key_file), 'uploaded-leads')
        self.downloaded_registrants = DeduplicationLedger(
            os.path.join(output_dir, registrant_key_file), 'downloaded-registrants')
        self.downloaded_attendees = DeduplicationLedger(
            os.path.join(output_dir, attendee_key_file), 'downloaded-attendees')

    def sizes(self):
        return {
            'uploaded_leads': len(self.uploaded_leads.keys()),
            'downloaded_registrants': len(self.downloaded_registrants.keys()),
            'downloaded_attendees': len(self.downloaded_attendees.keys()),
        }
