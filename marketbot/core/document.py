from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Iterator, Sequence

from marketbot.core.errors import DocumentError
from marketbot.core.pricing import RotationEntry

# Layout of the rotation section written under "trades:".
BASELINE_INDENT = 4
ENTRY_INDENT = 6
FIELD_INDENT = 10
PRICE_INDENT = 14

_LIST_SCOPE = "-"
_BLOCK_SCALAR_STARTS = ("|", ">")
_RESERVED_WORDS = {
    "true", "false", "null", "yes", "no", "on", "off", "y", "n", "~",
    ".inf", "-.inf", "+.inf", ".nan",
}
_INDICATOR_CHARS = "-?[]!&*|>'\"%@`,"


@dataclass(frozen=True)
class DocumentPosition:
    line_index: int
    indent: int


@dataclass(frozen=True)
class KeyLine:
    line_index: int
    indent: int
    key: str
    key_text: str
    value: str
    suffix: str


def _indent_of(line: str) -> int:
    return len(line) - len(line.lstrip(" "))


def _split_key(content: str) -> tuple[str, str] | None:
    # "key: rest" with an optionally quoted key; None when the line is not a mapping entry.
    quote = ""
    i = 0
    n = len(content)
    while i < n:
        ch = content[i]
        if quote:
            if quote == '"' and ch == "\\":
                i += 2
                continue
            if ch == quote:
                if quote == "'" and i + 1 < n and content[i + 1] == "'":
                    i += 2
                    continue
                quote = ""
        elif i == 0 and ch in "\"'":
            quote = ch
        elif ch == ":" and (i + 1 == n or content[i + 1] in " \t"):
            key_text = content[:i].rstrip()
            return (key_text, content[i + 1:]) if key_text else None
        elif ch == "#" and i > 0 and content[i - 1] in " \t":
            return None
        i += 1
    return None


def _unquote_key(key_text: str) -> str:
    text = key_text.strip()
    if len(text) >= 2 and text[0] == text[-1] == '"':
        try:
            return str(json.loads(text))
        except json.JSONDecodeError:
            return text[1:-1]
    if len(text) >= 2 and text[0] == text[-1] == "'":
        return text[1:-1].replace("''", "'")
    return text


def _split_value(rest: str) -> tuple[str, str]:
    # (value, suffix) where suffix keeps the inline comment and the spacing before it.
    quote = ""
    stripped = rest.lstrip()
    offset = len(rest) - len(stripped)
    for i, ch in enumerate(stripped):
        if quote:
            if ch == quote:
                quote = ""
            continue
        if i == 0 and ch in "\"'":
            quote = ch
        elif ch == "#" and (i == 0 or stripped[i - 1] in " \t"):
            value = stripped[:i].rstrip()
            return value, rest[offset + len(value):]
    value = stripped.rstrip()
    return value, rest[offset + len(value):]


def scan_key_lines(lines: Sequence[str]) -> Iterator[tuple[KeyLine | None, int]]:
    """Walk lines once, yielding ``(key_line, indent)`` for every structural line.

    ``key_line`` is None for list items, which open an anonymous scope. Blank
    lines, comments and the bodies of ``|``/``>`` block scalars are skipped.
    """
    block_parent: int | None = None
    for idx, raw in enumerate(lines):
        line = raw[:-1] if raw.endswith("\r") else raw
        stripped = line.strip()
        indent = _indent_of(line)
        if block_parent is not None:
            if not stripped or indent > block_parent:
                continue
            block_parent = None
        if not stripped or stripped.startswith("#"):
            continue

        content = stripped
        key_indent = indent
        if content == _LIST_SCOPE or content.startswith(_LIST_SCOPE + " "):
            yield None, indent
            content = content[1:].lstrip()
            key_indent = _indent_of(line[indent + 1:]) + indent + 1
            if not content or content.startswith("#"):
                continue

        split = _split_key(content)
        if split is None:
            continue
        key_text, rest = split
        value, suffix = _split_value(rest)
        if value.startswith(_BLOCK_SCALAR_STARTS):
            block_parent = key_indent
        yield KeyLine(
            line_index=idx,
            indent=key_indent,
            key=_unquote_key(key_text),
            key_text=key_text,
            value=value,
            suffix=suffix,
        ), key_indent


def find_key_lines(lines: Sequence[str], path: Sequence[str]) -> list[KeyLine]:
    target = tuple(str(p) for p in path)
    if not target:
        raise DocumentError("Empty key path.")
    stack: list[tuple[str, int]] = []
    found: list[KeyLine] = []
    for key_line, indent in scan_key_lines(lines):
        while stack and stack[-1][1] >= indent:
            stack.pop()
        if key_line is None:
            stack.append((_LIST_SCOPE, indent))
            continue
        stack.append((key_line.key, indent))
        if len(stack) == len(target) and all(
            scope_key == segment for (scope_key, _), segment in zip(stack, target)
        ):
            found.append(key_line)
    return found


def _resolve(lines: Sequence[str], path: Sequence[str]) -> KeyLine:
    matches = find_key_lines(lines, path)
    dotted = ".".join(str(p) for p in path)
    if not matches:
        raise DocumentError(f"Key path not found: {dotted}")
    if len(matches) > 1:
        where = ", ".join(str(m.line_index + 1) for m in matches)
        raise DocumentError(f"Key path {dotted} is ambiguous (lines {where}).")
    key_line = matches[0]
    if key_line.value.startswith(_BLOCK_SCALAR_STARTS) or _has_children(lines, key_line):
        raise DocumentError(f"Key path {dotted} does not hold a single-line value.")
    return key_line


def _has_children(lines: Sequence[str], key_line: KeyLine) -> bool:
    if key_line.value:
        return False
    for line in lines[key_line.line_index + 1:]:
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        indent = _indent_of(line)
        return indent > key_line.indent or (
            indent == key_line.indent and (stripped == _LIST_SCOPE or stripped.startswith(_LIST_SCOPE + " "))
        )
    return False


def find_path(lines: Sequence[str], path: Sequence[str]) -> DocumentPosition:
    key_line = _resolve(lines, path)
    return DocumentPosition(line_index=key_line.line_index, indent=key_line.indent)


def _needs_quotes(text: str) -> bool:
    if not text or text != text.strip():
        return True
    if any(ch in text for ch in ":#{}\n\r"):
        return True
    if text[0] in _INDICATOR_CHARS:
        return True
    if text.lower() in _RESERVED_WORDS:
        return True
    try:
        float(text)
        return True
    except ValueError:
        pass
    try:
        int(text, 0)
        return True
    except ValueError:
        return False


def format_value(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, (list, tuple)):
        if not value:
            return "[]"
        if all(isinstance(v, (str, int, float)) and not isinstance(v, bool) for v in value):
            parts = [json.dumps(v, ensure_ascii=False) if isinstance(v, str) else str(v) for v in value]
            return "[" + ", ".join(parts) + "]"
        return json.dumps(list(value), ensure_ascii=False)
    if isinstance(value, dict):
        if not value:
            return "{}"
        return json.dumps(value, ensure_ascii=False)
    text = str(value)
    return json.dumps(text, ensure_ascii=False) if _needs_quotes(text) else text


def _rewrite_line(line: str, key_line: KeyLine, value: Any) -> str:
    eol = "\r" if line.endswith("\r") else ""
    body = line[:-1] if eol else line
    prefix = body[: key_line.indent]
    suffix = key_line.suffix if key_line.suffix.strip() else ""
    return f"{prefix}{key_line.key_text}: {format_value(value)}{suffix}{eol}"


def scalar_patch(text: str, path: Sequence[str], value: Any) -> str:
    """Rewrite the single ``key: value`` line addressed by ``path``."""
    lines = text.split("\n")
    key_line = _resolve(lines, path)
    lines[key_line.line_index] = _rewrite_line(lines[key_line.line_index], key_line, value)
    return "\n".join(lines)


def flatten_values(data: dict, prefix: Sequence[str] = ()) -> list[tuple[tuple[str, ...], Any]]:
    out: list[tuple[tuple[str, ...], Any]] = []
    for key, value in data.items():
        path = (*prefix, str(key))
        if isinstance(value, dict) and value:
            out.extend(flatten_values(value, path))
        elif not isinstance(value, dict):
            out.append((path, value))
    return out


def update_values(text: str, domain_path: Sequence[str], data: dict) -> str:
    lines = text.split("\n")
    updates: list[tuple[KeyLine, Any]] = []
    for path, value in flatten_values(data, tuple(domain_path)):
        updates.append((_resolve(lines, path), value))
    for key_line, value in updates:
        idx = key_line.line_index
        lines[idx] = _rewrite_line(lines[idx], key_line, value)
    return "\n".join(lines)


def render_trade_lines(entries: Iterable[RotationEntry]) -> list[str]:
    entry_pad = " " * ENTRY_INDENT
    field_pad = " " * FIELD_INDENT
    price_pad = " " * PRICE_INDENT
    out: list[str] = []
    for entry in entries:
        out.append(f"{entry_pad}- {entry.item}:")
        out.append(f"{field_pad}- {entry.quantity}")
        out.append(f"{field_pad}- {entry.currency}:")
        out.append(f"{price_pad}{entry.price}")
    return out


def _find_block(lines: Sequence[str], start_marker: str, child_marker: str) -> tuple[int, int]:
    start = next((i for i, line in enumerate(lines) if start_marker in line), None)
    if start is None:
        raise DocumentError(f"Section {start_marker} not found.")
    start_indent = _indent_of(lines[start])

    child = None
    for i in range(start + 1, len(lines)):
        stripped = lines[i].strip()
        if not stripped or stripped.startswith("#"):
            continue
        if _indent_of(lines[i]) <= start_indent:
            break
        if stripped.startswith(child_marker):
            child = i
            break
    if child is None:
        raise DocumentError(f"{child_marker} section not found under {start_marker}.")
    trailing = lines[child].strip()[len(child_marker):].strip()
    if trailing and not trailing.startswith("#"):
        raise DocumentError(f"{child_marker} under {start_marker} has an inline value: {trailing}")

    insertion = child + 1
    end = insertion
    for i in range(insertion, len(lines)):
        stripped = lines[i].strip()
        if not stripped:
            continue
        if _indent_of(lines[i]) <= BASELINE_INDENT:
            break
        end = i + 1
    return insertion, end


def block_replace(text: str, start_marker: str, child_marker: str, new_lines: Sequence[str]) -> str:
    """Swap the nested block under ``child_marker`` (inside ``start_marker``) for ``new_lines``."""
    lines = text.split("\n")
    insertion, end = _find_block(lines, start_marker, child_marker)
    eol = "\r" if lines[insertion - 1].endswith("\r") else ""
    replacement = [f"{line}{eol}" for line in new_lines]
    return "\n".join([*lines[:insertion], *replacement, *lines[end:]])


def read_document(path: str | Path) -> str:
    return Path(path).read_bytes().decode("utf-8")


def _write_document(path: str | Path, text: str) -> None:
    Path(path).write_bytes(text.encode("utf-8"))


def patch_file_block(path: str | Path, start_marker: str, child_marker: str, new_lines: Sequence[str]) -> str:
    text = read_document(path)
    patched = block_replace(text, start_marker, child_marker, new_lines)
    if patched != text:
        _write_document(path, patched)
    return patched


def patch_file_values(path: str | Path, domain_path: Sequence[str], data: dict) -> str:
    text = read_document(path)
    patched = update_values(text, domain_path, data)
    if patched != text:
        _write_document(path, patched)
    return patched
