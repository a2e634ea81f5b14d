"""Float ordering for assignments and the folder tree built from module paths.

Assignments carry a float ``order``. New items go ``ORDER_STEP`` after the
last one and a moved item takes the midpoint of its new neighbours, so a
reorder only ever rewrites the moved row.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

from ..config import ORDER_STEP


def next_order(orders: Iterable[float], step: float = ORDER_STEP) -> float:
    """Order value for an item appended after ``orders``."""
    orders = list(orders)
    return max(orders) + step if orders else step


def order_between(before: Optional[float], after: Optional[float], step: float = ORDER_STEP) -> float:
    """Order value between two neighbours; either side may be missing."""
    if before is None and after is None:
        return step
    if before is None:
        return after - step
    if after is None:
        return before + step
    return (before + after) / 2


def order_for_index(orders: Sequence[float], index: int, step: float = ORDER_STEP) -> float:
    """Order value that places an item at ``index`` of the sorted ``orders``.

    ``orders`` must not include the item being moved.
    """
    orders = sorted(orders)
    if not orders:
        return step
    if index <= 0:
        return orders[0] - step
    if index >= len(orders):
        return orders[-1] + step
    return order_between(orders[index - 1], orders[index], step)


@dataclass
class TreeAssignment:
    id: str
    name: str
    order: float
    published: bool = False
    type: str = "assignment"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "id": self.id,
            "name": self.name,
            "order": self.order,
            "published": self.published,
        }


@dataclass
class TreeFolder:
    name: str
    path: List[str]
    children: List[Union["TreeFolder", TreeAssignment]] = field(default_factory=list)
    type: str = "folder"

    def folder(self, name: str) -> "TreeFolder":
        for child in self.children:
            if isinstance(child, TreeFolder) and child.name == name:
                return child
        created = TreeFolder(name=name, path=self.path + [name])
        self.children.append(created)
        return created

    def sort(self) -> None:
        """Folders first by name, then assignments by order, recursively."""
        folders = sorted((c for c in self.children if isinstance(c, TreeFolder)), key=lambda f: f.name)
        items = sorted((c for c in self.children if isinstance(c, TreeAssignment)), key=lambda a: a.order)
        for folder in folders:
            folder.sort()
        self.children = [*folders, *items]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "name": self.name,
            "path": self.path,
            "children": [child.to_dict() for child in self.children],
        }


def build_module_tree(assignments: Iterable[Any]) -> TreeFolder:
    """Group assignments into folders derived from their ``module_path``.

    Accepts any objects with ``id``, ``name``, ``order``, ``module_path`` and
    ``published`` attributes. Returns the unnamed root folder.
    """
    root = TreeFolder(name="", path=[])
    for assignment in sorted(assignments, key=lambda a: a.order or 0):
        parent = root
        for segment in assignment.module_path or []:
            if segment:
                parent = parent.folder(str(segment))
        parent.children.append(TreeAssignment(
            id=assignment.id,
            name=assignment.name,
            order=assignment.order or 0,
            published=bool(assignment.published),
        ))
    root.sort()
    return root
