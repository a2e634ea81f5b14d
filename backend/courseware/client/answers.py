"""Local storage of in-progress answer selections, keyed by assignment id."""
import json
import logging
from pathlib import Path
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)

Answers = Dict[str, List[str]]


class AnswerStore:
    """Keeps selections in one JSON file so a reload does not lose them.

    A missing or unreadable file is treated as empty.
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    def _read(self) -> Dict[str, Answers]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable answer store {self.path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: Dict[str, Answers]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False)
        tmp.replace(self.path)

    def load(self, assignment_id: str) -> Answers:
        return dict(self._read().get(assignment_id) or {})

    def save(self, assignment_id: str, answers: Answers) -> None:
        data = self._read()
        data[assignment_id] = answers
        self._write(data)

    def select(self, assignment_id: str, block_id: str, option_id: str, allow_multiple: bool = False) -> Answers:
        """Toggle an option for multi-select blocks, replace it otherwise."""
        answers = self.load(assignment_id)
        selected = list(answers.get(block_id) or [])
        if allow_multiple:
            if option_id in selected:
                selected.remove(option_id)
            else:
                selected.append(option_id)
        else:
            selected = [option_id]
        answers[block_id] = selected
        self.save(assignment_id, answers)
        return answers

    def clear(self, assignment_id: Optional[str] = None) -> None:
        if assignment_id is None:
            self._write({})
            return
        data = self._read()
        if data.pop(assignment_id, None) is not None:
            self._write(data)
