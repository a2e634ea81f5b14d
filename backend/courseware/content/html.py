"""Legacy HTML format for block documents.

Older assignments were stored as editor HTML. MCQ blocks in that format are
``<div data-type="mcq-block" data-mcq="{json}">`` wrappers whose body is a
readable rendering of the question; only the ``data-mcq`` attribute is read
back. Other custom blocks are kept whole in a ``data-node`` attribute.
"""

import json
import logging
import re
from html import escape
from html.parser import HTMLParser
from typing import Any, Dict, List, Optional

from .document import Node, empty_document, normalize_document, strip_html
from .mcq import MCQ_BLOCK_TYPE, regenerate_ids, sanitize_mcq_data

logger = logging.getLogger(__name__)

_HEADING_TAGS = {f"h{level}": level for level in range(1, 7)}
_TEXT_BLOCKS = ("paragraph", "heading", "codeBlock")
_CONTAINER_TAGS = {
    "p": "paragraph",
    "pre": "codeBlock",
    "blockquote": "blockquote",
    "ul": "bulletList",
    "ol": "orderedList",
    "li": "listItem",
}
_MARK_TAGS = {
    "strong": "bold",
    "b": "bold",
    "em": "italic",
    "i": "italic",
    "u": "underline",
    "s": "strike",
    "strike": "strike",
    "del": "strike",
    "code": "code",
    "a": "link",
}
_MARK_RENDER = {"bold": "strong", "italic": "em", "underline": "u", "strike": "s", "code": "code"}
_BLOCK_RENDER = {
    "paragraph": "p",
    "blockquote": "blockquote",
    "bulletList": "ul",
    "orderedList": "ol",
    "listItem": "li",
}
_SPACE_RE = re.compile(r"\s+")


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------

def _render_text(node: Node) -> str:
    out = escape(node.get("text", ""), quote=False)
    for mark in reversed(node.get("marks") or []):
        mark_type = mark.get("type")
        if mark_type == "link":
            href = escape((mark.get("attrs") or {}).get("href", ""))
            out = f'<a href="{href}">{out}</a>'
        elif mark_type in _MARK_RENDER:
            tag = _MARK_RENDER[mark_type]
            out = f"<{tag}>{out}</{tag}>"
    return out


def _render_mcq(node: Node) -> str:
    data = sanitize_mcq_data((node.get("attrs") or {}).get("mcqData"))
    payload = escape(json.dumps(data.to_attrs(), ensure_ascii=False))
    parts = [
        f'<div data-type="mcq-block" data-mcq="{payload}" class="mcq-block-container">',
        f'<div class="mcq-question">{escape(strip_html(data.question), quote=False)}</div>',
        '<div class="mcq-options">',
    ]
    for index, option in enumerate(data.options, start=1):
        label = strip_html(option.text) or f"Option {index}"
        parts.append(f'<div class="mcq-option"><label>{escape(label, quote=False)}</label></div>')
    parts.append("</div>")
    if data.explanation:
        parts.append(f'<div class="mcq-explanation">{escape(strip_html(data.explanation), quote=False)}</div>')
    parts.append("</div>")
    return "".join(parts)


def _render_node(node: Node) -> str:
    node_type = node.get("type")
    attrs = node.get("attrs") or {}
    inner = "".join(_render_node(child) for child in node.get("content") or [])

    if node_type == "doc":
        return inner
    if node_type == "text":
        return _render_text(node)
    if node_type == "hardBreak":
        return "<br>"
    if node_type == "horizontalRule":
        return "<hr>"
    if node_type == "heading":
        level = attrs.get("level") or 1
        return f"<h{level}>{inner}</h{level}>"
    if node_type == "codeBlock":
        language = attrs.get("language")
        code = escape("".join(child.get("text", "") for child in node.get("content") or []), quote=False)
        cls = f' class="language-{escape(language)}"' if language else ""
        return f"<pre><code{cls}>{code}</code></pre>"
    if node_type == MCQ_BLOCK_TYPE:
        return _render_mcq(node)
    if node_type in _BLOCK_RENDER:
        tag = _BLOCK_RENDER[node_type]
        return f"<{tag}>{inner}</{tag}>"
    payload = escape(json.dumps(node, ensure_ascii=False))
    return f'<div data-type="{escape(str(node_type))}" data-node="{payload}"></div>'


def render_html(doc: Node) -> str:
    """Render a document in the legacy HTML format."""
    return _render_node(doc)


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

class _DocumentBuilder(HTMLParser):
    """Streams HTML into a document tree using an open-node stack."""

    def __init__(self, fresh_ids: bool = False):
        super().__init__(convert_charrefs=True)
        self.doc = empty_document()
        self.stack: List[Node] = [self.doc]
        self.marks: List[Dict[str, Any]] = []
        self.skip_depth = 0
        self.fresh_ids = fresh_ids

    @property
    def current(self) -> Node:
        return self.stack[-1]

    def _close_text_block(self):
        if self.current.get("type") in _TEXT_BLOCKS:
            self.stack.pop()

    def _append(self, node: Node):
        self.current.setdefault("content", []).append(node)

    def _open(self, node: Node):
        self._close_text_block()
        self._append(node)
        self.stack.append(node)

    def _ensure_text_block(self):
        if self.current.get("type") not in _TEXT_BLOCKS:
            self._open({"type": "paragraph", "content": []})

    def _skip_custom_block(self, attrs: Dict[str, Optional[str]]) -> bool:
        if attrs.get("data-type") == "mcq-block":
            try:
                raw = json.loads(attrs.get("data-mcq") or "")
            except json.JSONDecodeError:
                logger.warning("Invalid data-mcq attribute, using a default MCQ block")
                raw = None
            data = sanitize_mcq_data(raw)
            if self.fresh_ids:
                data = regenerate_ids(data)
            self._close_text_block()
            self._append({"type": MCQ_BLOCK_TYPE, "attrs": {"mcqData": data.to_attrs()}})
            return True
        if attrs.get("data-node"):
            try:
                node = json.loads(attrs["data-node"])
            except json.JSONDecodeError:
                logger.warning(f"Dropping {attrs.get('data-type')} block with invalid data-node attribute")
                return True
            if isinstance(node, dict):
                self._close_text_block()
                self._append(node)
            return True
        return False

    def handle_starttag(self, tag, attrs):
        if self.skip_depth:
            if tag == "div":
                self.skip_depth += 1
            return
        attrs = dict(attrs)

        if tag == "div" and self._skip_custom_block(attrs):
            self.skip_depth = 1
        elif tag in _HEADING_TAGS:
            self._open({"type": "heading", "attrs": {"level": _HEADING_TAGS[tag]}, "content": []})
        elif tag == "pre":
            self._open({"type": "codeBlock", "attrs": {}, "content": []})
        elif tag in _CONTAINER_TAGS:
            self._open({"type": _CONTAINER_TAGS[tag], "content": []})
        elif tag == "hr":
            self._close_text_block()
            self._append({"type": "horizontalRule"})
        elif tag == "br":
            self._ensure_text_block()
            self._append({"type": "hardBreak"})
        elif tag == "code" and self.current.get("type") == "codeBlock":
            cls = attrs.get("class") or ""
            if cls.startswith("language-"):
                self.current["attrs"]["language"] = cls[len("language-"):]
        elif tag in _MARK_TAGS:
            mark = {"type": _MARK_TAGS[tag]}
            if tag == "a":
                mark["attrs"] = {"href": attrs.get("href") or ""}
            self.marks.append(mark)

    def handle_startendtag(self, tag, attrs):
        if self.skip_depth:
            return
        self.handle_starttag(tag, attrs)
        if tag == "div":
            # a self-closed custom block has no body to skip
            self.skip_depth = 0

    def handle_endtag(self, tag):
        if self.skip_depth:
            if tag == "div":
                self.skip_depth -= 1
            return

        if tag in _HEADING_TAGS or tag in _CONTAINER_TAGS:
            node_type = "heading" if tag in _HEADING_TAGS else _CONTAINER_TAGS[tag]
            for depth in range(len(self.stack) - 1, 0, -1):
                if self.stack[depth].get("type") == node_type:
                    del self.stack[depth:]
                    break
        elif tag in _MARK_TAGS and not (tag == "code" and self.current.get("type") == "codeBlock"):
            mark_type = _MARK_TAGS[tag]
            for index in range(len(self.marks) - 1, -1, -1):
                if self.marks[index]["type"] == mark_type:
                    del self.marks[index]
                    break

    def handle_data(self, data):
        if self.skip_depth:
            return
        current_type = self.current.get("type")

        if current_type == "codeBlock":
            self._append({"type": "text", "text": data})
            return
        if current_type in ("bulletList", "orderedList"):
            return

        text = _SPACE_RE.sub(" ", data)
        if current_type not in _TEXT_BLOCKS:
            if not text.strip():
                return
            text = text.lstrip()
            self._ensure_text_block()
        elif text == " " and not self.current.get("content"):
            return

        node: Node = {"type": "text", "text": text}
        if self.marks:
            node["marks"] = [dict(mark) for mark in self.marks]
        self._append(node)


def parse_html(html: str, fresh_ids: bool = False) -> Node:
    """Parse legacy HTML into a normalized document.

    Stored MCQ ids are kept so saved answers still match their blocks. Pass
    ``fresh_ids=True`` for pasted HTML, where the ids would collide with the
    blocks they were copied from.
    """
    builder = _DocumentBuilder(fresh_ids=fresh_ids)
    builder.feed(html or "")
    builder.close()
    return normalize_document(builder.doc)
