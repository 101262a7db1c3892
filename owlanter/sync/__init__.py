"""Sync operations and the file watcher."""

from owlanter.sync.orchestrator import (
    PullResult,
    PushResult,
    SyncOrchestrator,
    UploadResult,
)

__all__ = ["PullResult", "PushResult", "SyncOrchestrator", "UploadResult"]
