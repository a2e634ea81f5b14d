"""Debounced autosave for editor content and grades."""
import json
import logging
from typing import Any, Callable, Dict, Optional, Tuple

from .api import CoursewareClient
from .debounce import Debouncer
from .errors import describe_error

logger = logging.getLogger(__name__)

CONTENT_SAVE_DELAY = 2.0
GRADE_SAVE_DELAY = 0.5

ErrorCallback = Callable[[str, str], None]


def _serialize(content: Any) -> str:
    if isinstance(content, str):
        return content
    return json.dumps(content, ensure_ascii=False, sort_keys=True)


class ContentAutosave:
    """Saves the editor document two seconds after the last change.

    A save is skipped when the document equals the last saved one. Failures
    are reported through ``on_error`` as ``(title, message)``.
    """

    def __init__(self, client: CoursewareClient, assignment_id: str, initial_content: Any = None,
                 on_error: Optional[ErrorCallback] = None, delay: float = CONTENT_SAVE_DELAY):
        self.client = client
        self.assignment_id = assignment_id
        self.on_error = on_error
        self.last_saved: Optional[str] = _serialize(initial_content) if initial_content is not None else None
        self.last_response: Optional[Dict[str, Any]] = None
        self.saving = False
        self._debouncer = Debouncer(self._save, delay)

    def changed(self, content: Any) -> None:
        """Record an edit; the save fires once edits pause."""
        self._debouncer.trigger(_serialize(content))

    async def _save(self, serialized: str) -> bool:
        if serialized == self.last_saved:
            logger.debug(f"Skipping save for {self.assignment_id}, content unchanged")
            return False

        self.saving = True
        try:
            self.last_response = await self.client.save_content(self.assignment_id, serialized)
        except Exception as e:
            title, message = describe_error(e)
            logger.warning(f"Autosave of {self.assignment_id} failed: {title}")
            if self.on_error is not None:
                self.on_error(title, message)
            return False
        finally:
            self.saving = False

        self.last_saved = serialized
        for warning in self.last_response.get("warnings") or []:
            logger.warning(f"Saved content of {self.assignment_id} was sanitized: {warning}")
        return True

    async def flush(self) -> Any:
        """Save a pending edit immediately, e.g. before navigating away."""
        return await self._debouncer.flush()

    async def join(self) -> None:
        await self._debouncer.join()

    def cancel(self) -> None:
        self._debouncer.cancel()


class GradeAutosave:
    """Optimistic grader edits, saved half a second after the last change.

    Local state updates immediately. When the save fails the fields revert to
    the last confirmed values.
    """

    def __init__(self, client: CoursewareClient, submission_id: str, grader: Dict[str, Any],
                 on_error: Optional[ErrorCallback] = None, delay: float = GRADE_SAVE_DELAY):
        self.client = client
        self.submission_id = submission_id
        self.on_error = on_error
        self.state: Dict[str, Any] = dict(grader)
        self.confirmed: Dict[str, Any] = dict(grader)
        self._changes: Dict[str, Any] = {}
        self._debouncer = Debouncer(self._save, delay)

    def update(self, **changes) -> None:
        self.state.update(changes)
        self._changes.update(changes)
        self._debouncer.trigger()

    def _take_changes(self) -> Tuple[Dict[str, Any], Dict[str, Any]]:
        changes, self._changes = self._changes, {}
        previous = {key: self.confirmed.get(key) for key in changes}
        return changes, previous

    async def _save(self) -> bool:
        changes, previous = self._take_changes()
        if not changes:
            return False
        try:
            saved = await self.client.update_grader(self.submission_id, **changes)
        except Exception as e:
            for key, value in previous.items():
                # Only roll back fields nobody has edited again since
                if self.state.get(key) == changes[key]:
                    self.state[key] = value
            title, message = describe_error(e)
            logger.warning(f"Grade autosave for submission {self.submission_id} failed: {title}")
            if self.on_error is not None:
                self.on_error(title, message)
            return False

        self.confirmed.update(saved)
        for key in changes:
            if key not in self._changes:
                self.state[key] = saved.get(key, self.state[key])
        return True

    async def flush(self) -> Any:
        return await self._debouncer.flush()

    async def join(self) -> None:
        await self._debouncer.join()

    def cancel(self) -> None:
        self._debouncer.cancel()
