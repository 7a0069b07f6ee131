"""
Attachment validation.

Attachment files are opened up front so that a missing file aborts the send
before any network activity, and every handle is closed when the send ends.
"""

from __future__ import annotations

import logging
import mimetypes
import os
from collections.abc import Iterator, Sequence
from contextlib import ExitStack, contextmanager

from .errors import AttachmentNotFoundError

logger = logging.getLogger(__name__)


class AttachmentHandle:
    """An open attachment file owned by a single send call."""

    def __init__(self, path: str, resolved_path: str, opener=open):
        self.path = path
        self.resolved_path = resolved_path
        self._file = opener(resolved_path, "rb")

    @property
    def filename(self) -> str:
        return os.path.basename(self.resolved_path)

    @property
    def content_type(self) -> str:
        mime_type, _ = mimetypes.guess_type(self.resolved_path)
        return mime_type or "application/octet-stream"

    @property
    def closed(self) -> bool:
        return self._file.closed

    def read(self) -> bytes:
        self._file.seek(0)
        return self._file.read()

    def close(self) -> None:
        if not self._file.closed:
            self._file.close()

    def __repr__(self) -> str:
        return f"AttachmentHandle({self.path!r})"


def resolve_path(path: str) -> str:
    return os.path.abspath(os.path.expanduser(path))


@contextmanager
def validate_attachments(
    paths: Sequence[str], opener=open
) -> Iterator[list[AttachmentHandle]]:
    """
    Open every attachment in order and yield the handles.

    Stops at the first path that is not an existing regular file and raises
    AttachmentNotFoundError for it; paths after it are not inspected. Handles
    opened so far are closed on that failure and, otherwise, when the context
    exits.

    Args:
        paths: Attachment file paths, in the order they should be attached
        opener: Callable used to open files (same signature as open)

    Yields:
        List of AttachmentHandle, one per path, in input order
    """
    with ExitStack() as stack:
        handles: list[AttachmentHandle] = []
        for path in paths:
            resolved = resolve_path(path)
            if not os.path.isfile(resolved):
                logger.error("Attachment not found: %s", path)
                raise AttachmentNotFoundError(path)
            try:
                handle = AttachmentHandle(path, resolved, opener=opener)
            except OSError as e:
                logger.error("Cannot open attachment %s: %s", path, str(e))
                raise AttachmentNotFoundError(path) from e
            stack.callback(handle.close)
            handles.append(handle)
            logger.debug("Attachment accepted: %s", resolved)
        yield handles
