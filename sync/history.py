# © 2024–2025 Harnisch LLC. All Rights Reserved.
# Licensed exclusively for use by St. Edward Church & School (Nashville, TN).
# Unauthorized use, distribution, or modification is prohibited.

"""
Sync History - Track and analyze pipeline runs over time
"""
from datetime import timedelta
from typing import Dict, List
from collections import defaultdict
import statistics
from utils.timezone import get_utc_time


class SyncHistory:
    """Manages historical run data and statistics"""

    def __init__(self, max_entries: int = 100):
        self.history: List[Dict] = []
        self.max_entries = max_entries

    def add_entry(self, report):
        """Add a run report to history"""
        entry = {
            'timestamp': report.finished_at or get_utc_time(),
            'duration': report.duration_seconds,
            'success': report.success,
            'counters': report.totals(),
            'failed_stage': report.failed_stage,
            'error': report.error_message
        }

        self.history.append(entry)

        # Trim history if it exceeds max entries
        if len(self.history) > self.max_entries:
            self.history.pop(0)

    def get_statistics(self, hours: int = 24) -> Dict:
        """Calculate statistics for the given time period"""
        cutoff_time = get_utc_time() - timedelta(hours=hours)
        recent_entries = [
            entry for entry in self.history
            if entry['timestamp'] > cutoff_time
        ]

        if not recent_entries:
            return {
                'period_hours': hours,
                'total_runs': 0,
                'successful_runs': 0,
                'failed_runs': 0,
                'success_rate': 0,
                'average_duration': 0,
                'median_duration': 0,
                'totals': {},
                'last_run': None,
                'last_successful_run': None
            }

        successful = [e for e in recent_entries if e['success']]
        durations = [e['duration'] for e in recent_entries if e['duration']]

        totals = defaultdict(int)
        for entry in recent_entries:
            for name, count in entry['counters'].items():
                totals[name] += count

        last_successful = next((e for e in reversed(recent_entries) if e['success']), None)

        return {
            'period_hours': hours,
            'total_runs': len(recent_entries),
            'successful_runs': len(successful),
            'failed_runs': len(recent_entries) - len(successful),
            'success_rate': len(successful) / len(recent_entries) * 100,
            'average_duration': statistics.mean(durations) if durations else 0,
            'median_duration': statistics.median(durations) if durations else 0,
            'totals': dict(totals),
            'last_run': recent_entries[-1]['timestamp'].isoformat(),
            'last_successful_run': last_successful['timestamp'].isoformat() if last_successful else None
        }
