"""
文字列正規化ユーティリティ。

規格に従わない配信サイトが JSON の前後や途中に混入させる制御文字を除去する。
改行・復帰・タブは JSON の空白として意味を持つため残す。
"""

from __future__ import annotations

import unicodedata


_KEEP_CHARS = frozenset("\n\r\t")


def sanitize_text(s: str) -> str:
    """
    文字列から制御文字(Unicodeカテゴリ Cc)を除去して返す。

    除去対象外:
    - 改行 (\\n)
    - 復帰 (\\r)
    - タブ (\\t)

    Args:
        s: 入力文字列。

    Returns:
        制御文字を除去した文字列。
    """
    return "".join(
        ch for ch in s
        if ch in _KEEP_CHARS or unicodedata.category(ch) != "Cc"
    )
