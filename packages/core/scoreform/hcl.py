"""HCL document builder and serializer.

Modules are assembled as a tree of blocks and attributes and rendered here,
so quoting, escaping and indentation are handled in one place. Output
follows ``terraform fmt`` layout: two-space indent, ``=`` aligned across
consecutive single-line attributes, a blank line around nested blocks.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Union

_INDENT = "  "
_IDENT = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
# Bare object keys that HCL would parse as something else
_RESERVED_KEYS = {"true", "false", "null", "for", "in", "if", "endfor", "endif"}


@dataclass(frozen=True)
class Expr:
    """A raw HCL expression: references, conditionals, for-expressions."""

    text: str


@dataclass(frozen=True)
class Template:
    """A quoted string whose ``${...}`` interpolations are kept."""

    text: str


@dataclass(frozen=True)
class Call:
    """A function call such as ``jsonencode({...})``."""

    name: str
    args: tuple[Any, ...] = ()

    def __init__(self, name: str, *args: Any):
        object.__setattr__(self, "name", name)
        object.__setattr__(self, "args", args)


@dataclass
class Attribute:
    name: str
    value: Any


@dataclass
class Comment:
    text: str


@dataclass
class Blank:
    """Explicit empty line; also ends an alignment group."""


@dataclass
class Block:
    type: str
    labels: tuple[str, ...] = ()
    body: list[BodyItem] = field(default_factory=list)

    def __init__(self, type: str, *labels: str, body: list[BodyItem] | None = None):
        self.type = type
        self.labels = labels
        self.body = list(body or [])

    def add(self, *items: BodyItem) -> Block:
        self.body.extend(items)
        return self

    def set(self, name: str, value: Any) -> Block:
        self.body.append(Attribute(name, value))
        return self


BodyItem = Union[Attribute, Block, Comment, Blank]


@dataclass
class Document:
    items: list[BodyItem] = field(default_factory=list)

    def add(self, *items: BodyItem) -> Document:
        self.items.extend(items)
        return self

    def blocks(self, type: str | None = None) -> list[Block]:
        return [i for i in self.items if isinstance(i, Block) and (type is None or i.type == type)]

    def render(self) -> str:
        return render(self)


def escape(s: str, interpolate: bool = False) -> str:
    out = s.replace("\\", "\\\\").replace('"', '\\"')
    out = out.replace("\n", "\\n").replace("\r", "\\r").replace("\t", "\\t")
    if not interpolate:
        out = out.replace("${", "$${").replace("%{", "%%{")
    return out


def quote(s: str) -> str:
    return f'"{escape(s)}"'


def _key(k: Any) -> str:
    k = str(k)
    if _IDENT.match(k) and k not in _RESERVED_KEYS:
        return k
    return quote(k)


def _is_simple(value: Any) -> bool:
    return not isinstance(value, (dict, list, tuple, Call))


def render_value(value: Any, level: int = 0) -> str:
    """Render a value; nested lines are indented for ``level``."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    if isinstance(value, (int, float)):
        return repr(value)
    if isinstance(value, str):
        return quote(value)
    if isinstance(value, Template):
        return f'"{escape(value.text, interpolate=True)}"'
    if isinstance(value, Expr):
        return value.text
    if isinstance(value, Call):
        return f"{value.name}({', '.join(render_value(a, level) for a in value.args)})"
    if isinstance(value, (list, tuple)):
        if not value:
            return "[]"
        if all(_is_simple(v) for v in value):
            return "[" + ", ".join(render_value(v, level) for v in value) + "]"
        pad = _INDENT * (level + 1)
        lines = ["["]
        lines += [f"{pad}{render_value(v, level + 1)}," for v in value]
        lines.append(f"{_INDENT * level}]")
        return "\n".join(lines)
    if isinstance(value, dict):
        if not value:
            return "{}"
        entries = [Attribute(_key(k), v) for k, v in value.items()]
        lines = ["{"]
        lines += _render_attributes(entries, level + 1)
        lines.append(f"{_INDENT * level}}}")
        return "\n".join(lines)
    raise TypeError(f"Cannot render {type(value).__name__} as HCL")


def _render_attributes(attrs: list[Attribute], level: int) -> list[str]:
    """Render a run of attributes, aligning ``=`` across single-line ones."""
    pad = _INDENT * level
    rendered = [(a.name, render_value(a.value, level)) for a in attrs]
    lines: list[str] = []
    group: list[tuple[str, str]] = []

    def flush() -> None:
        if group:
            width = max(len(n) for n, _ in group)
            lines.extend(f"{pad}{n.ljust(width)} = {v}" for n, v in group)
            group.clear()

    for name, text in rendered:
        if "\n" in text:
            flush()
            lines.append(f"{pad}{name} = {text}")
        else:
            group.append((name, text))
    flush()
    return lines


def _render_body(items: list[BodyItem], level: int) -> list[str]:
    pad = _INDENT * level
    lines: list[str] = []
    run: list[Attribute] = []
    prev: BodyItem | None = None

    def flush() -> None:
        if run:
            lines.extend(_render_attributes(run, level))
            run.clear()

    for item in items:
        needs_gap = prev is not None and not isinstance(prev, (Comment, Blank)) and (
            isinstance(item, Block) or isinstance(prev, Block)
        )
        if isinstance(item, Attribute) and not needs_gap:
            run.append(item)
            prev = item
            continue
        flush()
        if needs_gap:
            lines.append("")
        if isinstance(item, Attribute):
            run.append(item)
        elif isinstance(item, Block):
            lines.extend(_render_block(item, level))
        elif isinstance(item, Comment):
            lines.extend(f"{pad}# {line}".rstrip() for line in item.text.splitlines())
        elif isinstance(item, Blank):
            lines.append("")
        prev = item
    flush()
    return lines


def _render_block(b: Block, level: int) -> list[str]:
    pad = _INDENT * level
    head = " ".join([b.type, *(quote(label) for label in b.labels)])
    if not b.body:
        return [f"{pad}{head} {{}}"]
    return [f"{pad}{head} {{", *_render_body(b.body, level + 1), f"{pad}}}"]


def render(doc: Document) -> str:
    lines: list[str] = []
    prev: BodyItem | None = None
    for item in doc.items:
        if prev is not None and not isinstance(prev, Comment):
            lines.append("")
        if isinstance(item, Comment):
            lines.extend(f"# {line}".rstrip() for line in item.text.splitlines())
        elif isinstance(item, Block):
            lines.extend(_render_block(item, 0))
        elif isinstance(item, Attribute):
            lines.extend(_render_attributes([item], 0))
        prev = item
    return "\n".join(lines) + "\n"
