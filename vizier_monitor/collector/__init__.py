"""Cluster list-watch ingestion."""

from vizier_monitor.collector.pod_watcher import PodWatcher
from vizier_monitor.collector.watcher import BaseWatcher, WatcherError

__all__ = ["BaseWatcher", "PodWatcher", "WatcherError"]
