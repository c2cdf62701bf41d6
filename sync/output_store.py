# © 2024–2025 Harnisch LLC. All Rights Reserved.
# Licensed exclusively for use by St. Edward Church & School (Nashville, TN).
# Unauthorized use, distribution, or modification is prohibited.

"""
Output Store - Snapshot and detail files written by the download stages
"""
import json
import logging
import os
import tempfile
from typing import List, Optional

from models import AttendeeDetail, RegistrantDetail, Webinar
from utils.timezone import file_timestamp

logger = logging.getLogger(__name__)


class OutputStore:
    """Writes JSON files below the output directory"""

    def __init__(self, output_dir: str, dummy_phone: Optional[str] = None,
                 snapshot_file: str = 'webinarResponse.json'):
        self.output_dir = output_dir
        self.dummy_phone = dummy_phone
        self.snapshot_file = snapshot_file

    def save_webinar_snapshot(self, webinars: List[Webinar]) -> str:
        """Overwrite the full webinar list snapshot"""
        snapshot = {
            '_embedded': {'webinars': [webinar.raw for webinar in webinars]},
            'page': {
                'size': len(webinars),
                'totalElements': len(webinars),
                'totalPages': 1 if webinars else 0,
                'number': 0
            }
        }
        path = os.path.join(self.output_dir, self.snapshot_file)
        self._write_json(path, snapshot)
        logger.info(f"💾 Saved snapshot of {len(webinars)} webinars to {path}")
        return path

    def save_registrant_details(self, details: List[RegistrantDetail], webinar_key: str) -> Optional[str]:
        """Write one timestamped file; placeholder phones are blanked"""
        if not details:
            return None

        records = []
        for detail in details:
            record = dict(detail.raw)
            if self.dummy_phone and record.get('phone') == self.dummy_phone:
                record['phone'] = ''
            records.append(record)

        path = os.path.join(self.output_dir, f"registrant_{webinar_key}_{file_timestamp()}.json")
        self._write_json(path, records)
        logger.info(f"💾 Saved {len(records)} registrants of webinar {webinar_key}")
        return path

    def save_attendee_details(self, details: List[AttendeeDetail], webinar_key: str) -> Optional[str]:
        if not details:
            return None

        path = os.path.join(self.output_dir, f"attendee_{webinar_key}_{file_timestamp()}.json")
        self._write_json(path, [detail.raw for detail in details])
        logger.info(f"💾 Saved {len(details)} attendees of webinar {webinar_key}")
        return path

    def _write_json(self, path: str, data):
        directory = os.path.dirname(os.path.abspath(path))
        os.makedirs(directory, exist_ok=True)

        fd, tmp_path = tempfile.mkstemp(dir=directory, prefix='.out-', suffix='.tmp')
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            os.replace(tmp_path, path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise
