from __future__ import annotations

import re
from collections.abc import Iterable

"""Label identity normalization.

normalize_label() の結果を option ラベルの重複判定 / 既存 option との照合 /
attribute set 名の照合キーとして使う。表示用の文字列はそのまま保持する。
"""

__all__ = [
    "normalize_label",
    "dedupe_labels",
    "duplicate_labels",
    "is_digits",
]

_WHITESPACE_RE = re.compile(r"\s+")


def normalize_label(text: str | None) -> str:
    """trim → 連続空白を1つに → casefold (Unicode 対応)."""
    if text is None:
        return ""
    return _WHITESPACE_RE.sub(" ", str(text).strip()).casefold()


def dedupe_labels(labels: Iterable[str]) -> list[str]:
    """Keep the first literal occurrence of every normalized label, dropping empties."""
    seen: set[str] = set()
    out: list[str] = []
    for label in labels:
        key = normalize_label(label)
        if key == "" or key in seen:
            continue
        seen.add(key)
        out.append(label)
    return out


def duplicate_labels(labels: Iterable[str]) -> list[str]:
    """Normalized identities that occur more than once (first-seen order)."""
    seen: set[str] = set()
    duplicates: list[str] = []
    for label in labels:
        key = normalize_label(label)
        if key == "":
            continue
        if key in seen:
            if key not in duplicates:
                duplicates.append(key)
        else:
            seen.add(key)
    return duplicates


def is_digits(value: str) -> bool:
    """ASCII digits only (no sign, no whitespace)."""
    return value != "" and value.isascii() and value.isdigit()
