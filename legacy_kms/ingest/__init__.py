"""
Ingestion — typed uploads, the orchestrator that routes them to the
extractors, and the inbox watcher.
"""

from .kinds import KINDS, Upload, detect_kind, load_upload
from .orchestrator import IngestReport, add_manual_flow, ingest

__all__ = [
    "KINDS",
    "Upload",
    "IngestReport",
    "add_manual_flow",
    "detect_kind",
    "ingest",
    "load_upload",
]
