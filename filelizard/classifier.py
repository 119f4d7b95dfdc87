"""
Translation of filesystem changes into log lines and email notifications.
"""

import enum
from dataclasses import dataclass
from typing import Optional, Tuple


class ChangeKind(enum.Enum):
    CREATED = "created"
    DELETED = "deleted"
    CHANGED = "changed"
    RENAMED = "renamed"


@dataclass(frozen=True)
class FileChangeEvent:
    """One detected change. old_name and old_full_path are set for renames only."""

    kind: ChangeKind
    name: str
    full_path: str
    old_name: Optional[str] = None
    old_full_path: Optional[str] = None


@dataclass(frozen=True)
class NotificationMessage:
    subject: str
    body: str


def classify(event: FileChangeEvent) -> Tuple[str, NotificationMessage]:
    """
    Describe a change as a log line and a notification.

    Args:
        event: The change to describe.

    Returns:
        Tuple of (log_line, message)
    """
    kind = event.kind
    if kind is ChangeKind.CREATED:
        return (
            f'New file "{event.name}" detected. Full path is "{event.full_path}".',
            NotificationMessage(
                f'File "{event.name}" has been created.',
                f'New file detected at "{event.full_path}".',
            ),
        )
    if kind is ChangeKind.DELETED:
        return (
            f'Existing file "{event.name}" deleted. Full path is "{event.full_path}".',
            NotificationMessage(
                f'File "{event.name}" has been deleted.',
                f'File deleted from "{event.full_path}".',
            ),
        )
    if kind is ChangeKind.CHANGED:
        return (
            f'File "{event.name}" has changed. Full path is "{event.full_path}".',
            NotificationMessage(
                f'File "{event.name}" has been changed.',
                f'File at "{event.full_path}" has been changed.',
            ),
        )
    if kind is ChangeKind.RENAMED:
        return (
            f'File "{event.old_name}" has been renamed to "{event.name}".',
            NotificationMessage(
                f'File "{event.old_name}" has been renamed.',
                f'File "{event.old_full_path}" has been renamed to "{event.full_path}".',
            ),
        )
    raise ValueError(f"Unknown change kind: {kind!r}")
