"""
Manifest utilities for recording what a run did to the mirror.
Stores an append-only JSON Lines file with one record per page or file action.
"""

import json
import os
import time
from dataclasses import dataclass, asdict, field
from typing import Optional, Dict, Any, Iterable


@dataclass
class ManifestRecord:
    pass_name: str  # clean|prune|verify
    path: str
    status: str  # rewritten|unchanged|failed|audit_warning|candidate|deleted|delete_failed|broken
    links_rewritten: int = 0
    detail: Optional[str] = None
    recorded_at: float = field(default_factory=time.time)


class Manifest:
    def __init__(self, path: str):
        self.path = path
        parent = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(parent, exist_ok=True)

    def append(self, rec: ManifestRecord) -> None:
        with open(self.path, 'a', encoding='utf-8') as f:
            f.write(json.dumps(asdict(rec), ensure_ascii=False) + "\n")

    def iter_records(self) -> Iterable[Dict[str, Any]]:
        if not os.path.exists(self.path):
            return
        with open(self.path, 'r', encoding='utf-8') as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                try:
                    yield json.loads(line)
                except json.JSONDecodeError:
                    continue

    def count_by_status(self, pass_name: Optional[str] = None) -> Dict[str, int]:
        """
        Count records per status, optionally restricted to one pass.
        """
        counts: Dict[str, int] = {}
        for rec in self.iter_records():
            if pass_name and rec.get('pass_name') != pass_name:
                continue
            status = rec.get('status', '')
            counts[status] = counts.get(status, 0) + 1
        return counts
