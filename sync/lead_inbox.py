# © 2024–2025 Harnisch LLC. All Rights Reserved.
# Licensed exclusively for use by St. Edward Church & School (Nashville, TN).
# Unauthorized use, distribution, or modification is prohibited.

"""
Lead Inbox - Picks up lead files dropped by the external export
"""
import glob
import json
import logging
import os
from typing import List

from models import Lead
from utils.errors import DataIntegrityWarning
from utils.timezone import file_timestamp

logger = logging.getLogger(__name__)

CONSUMED_EXTENSION = '.txt'


class LeadInbox:
    """Reads *.json lead files and renames each one so it is never read twice"""

    def __init__(self, input_dir: str):
        self.input_dir = input_dir

    def collect(self) -> List[Lead]:
        if not os.path.isdir(self.input_dir):
            logger.info(f"Lead inbox {self.input_dir} does not exist - no leads")
            return []

        leads: List[Lead] = []
        files = sorted(glob.glob(os.path.join(self.input_dir, '*.json')))

        for path in files:
            try:
                leads.extend(self._read_file(path))
            except DataIntegrityWarning as e:
                logger.warning(f"⚠️ Skipping lead file {os.path.basename(path)}: {e}")
            finally:
                self._mark_consumed(path)

        logger.info(f"📥 Collected {len(leads)} leads from {len(files)} files")
        return leads

    def _read_file(self, path: str) -> List[Lead]:
        try:
            with open(path, 'r', encoding='utf-8-sig') as f:
                records = json.load(f)
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise DataIntegrityWarning(f"unreadable ({e})") from e

        if records is None:
            return []
        if not isinstance(records, list):
            raise DataIntegrityWarning("expected a list of lead records")

        leads = []
        for index, record in enumerate(records):
            try:
                leads.append(Lead.from_dict(record))
            except DataIntegrityWarning as e:
                logger.warning(f"⚠️ {os.path.basename(path)} record {index}: {e}")
        return leads

    def _mark_consumed(self, path: str):
        """Rename file.json to file.txt, adding a timestamp if that name is taken"""
        directory = os.path.dirname(path)
        stem = os.path.splitext(os.path.basename(path))[0]
        target = os.path.join(directory, stem + CONSUMED_EXTENSION)
        if os.path.exists(target):
            target = os.path.join(directory, f"{stem}_{file_timestamp()}{CONSUMED_EXTENSION}")

        try:
            os.rename(path, target)
        except OSError as e:
            logger.error(f"Could not mark lead file {path} as consumed: {e}")
