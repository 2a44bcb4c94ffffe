"""
Template Store Module

In-memory store of tagged face templates for one registry.

The store owns an ordered list of TaggedFaceTemplate objects behind a single
lock. Reads return copies, so callers can never mutate the backing list. The
lock is exposed through ``locked()`` so the owning registry can guard its own
state (the closed flag) with the same mutex.

Usage:
    store = TemplateStore(initial_templates)
    store.append(TaggedFaceTemplate(template, "Alice"))
    snapshot = store.snapshot()
"""

import threading
from contextlib import contextmanager
from typing import Iterable, Iterator, List, Optional, Set

from template_registry.face_template import FaceTemplate, TaggedFaceTemplate


class TemplateStore:
    """
    Lock-guarded list of tagged face templates.

    Methods without the ``_unlocked`` suffix acquire the lock themselves.
    The ``_unlocked`` variants must only be called inside ``locked()``.
    """

    def __init__(self, tagged_templates: Optional[Iterable[TaggedFaceTemplate]] = None):
        self._templates: List[TaggedFaceTemplate] = list(tagged_templates or [])
        self._lock = threading.Lock()

    @contextmanager
    def locked(self) -> Iterator["TemplateStore"]:
        """Hold the store lock for the duration of the block."""
        with self._lock:
            yield self

    def snapshot(self) -> List[TaggedFaceTemplate]:
        """Return a copy of all tagged templates, in registration order."""
        with self._lock:
            return list(self._templates)

    def identifiers(self) -> Set[str]:
        """Return the set of identifiers that own at least one template."""
        with self._lock:
            return {t.identifier for t in self._templates}

    def by_identifier(self, identifier: str) -> List[FaceTemplate]:
        """Return the templates registered under ``identifier``."""
        with self._lock:
            return [t.face_template for t in self._templates if t.identifier == identifier]

    def append(self, tagged_template: TaggedFaceTemplate) -> None:
        with self._lock:
            self.append_unlocked(tagged_template)

    def append_unlocked(self, tagged_template: TaggedFaceTemplate) -> None:
        self._templates.append(tagged_template)

    def clear(self) -> None:
        with self._lock:
            self.clear_unlocked()

    def clear_unlocked(self) -> None:
        self._templates.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._templates)
