"""Shared pytest fixtures for replica-sync tests."""

import logging

import pytest

from replica_sync.reconciler import TreeReconciler

MUTATING_ACTIONS = {"MKDIR", "COPY", "UPDATE", "DELETE", "RMDIR"}


class RecordingHandler(logging.Handler):
    def __init__(self):
        super().__init__(level=logging.DEBUG)
        self.records = []

    def emit(self, record):
        self.records.append(record)

    def actions(self):
        """(action, message) for every replica mutation logged so far."""
        return [
            (r.action, r.getMessage())
            for r in self.records
            if getattr(r, "action", None) in MUTATING_ACTIONS
        ]

    def clear(self):
        self.records = []


@pytest.fixture
def recorder():
    logger = logging.getLogger("replica_sync.test")
    logger.setLevel(logging.DEBUG)
    logger.propagate = False
    handler = RecordingHandler()
    logger.addHandler(handler)
    yield handler
    logger.removeHandler(handler)


@pytest.fixture
def logger(recorder):
    return logging.getLogger("replica_sync.test")


@pytest.fixture
def source(tmp_path):
    path = tmp_path / "source"
    path.mkdir()
    return path


@pytest.fixture
def replica(tmp_path):
    return tmp_path / "replica"


@pytest.fixture
def reconciler(source, replica, logger):
    return TreeReconciler(source, replica, logger)


def write(path, content=b""):
    path.parent.mkdir(parents=True, exist_ok=True)
    if isinstance(content, str):
        content = content.encode()
    path.write_bytes(content)
    return path


def snapshot(root):
    """Map of relative posix path -> bytes (files) or None (directories)."""
    result = {}
    for p in sorted(root.rglob("*")):
        rel = p.relative_to(root).as_posix()
        result[rel] = None if p.is_dir() else p.read_bytes()
    return result
