"""寛容なJSONデコード。生テキストで失敗した場合のみサニタイズして再試行する。"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional, Tuple, Type, Union

from bms_table.errors import MalformedDocumentError
from bms_table.normalize import sanitize_text

logger = logging.getLogger(__name__)

Expected = Union[Type[Any], Tuple[Type[Any], ...]]


def _decode(text: str, expected: Optional[Expected]) -> Any:
    """JSONをデコードし、expected 指定時は型も検査する。"""
    value = json.loads(text)
    if expected is not None and not isinstance(value, expected):
        raise ValueError(f"unexpected JSON type: {type(value).__name__}")
    return value


def loads_lenient(text: str, expected: Optional[Expected] = None) -> Tuple[Any, str]:
    """
    テキストをJSONとしてデコードする。

    まず生テキストのままデコードし、失敗した場合は制御文字を除去したテキストで
    再試行する。先頭のBOMも再試行時に除去する。

    Args:
        text: デコード対象の文字列。
        expected: 期待するトップレベルの型(dict, list 等)。None なら検査しない。

    Returns:
        (デコード結果, デコードに成功したテキスト) のタプル。

    Raises:
        MalformedDocumentError: 生テキスト・サニタイズ後の両方で失敗した場合。
    """
    try:
        return _decode(text, expected), text
    except ValueError as raw_exc:
        sanitized = sanitize_text(text)
        if sanitized.startswith("\ufeff"):
            sanitized = sanitized[1:]
        if sanitized == text:
            raise MalformedDocumentError(raw_exc, raw_exc) from raw_exc
        try:
            value = _decode(sanitized, expected)
        except ValueError as sanitized_exc:
            raise MalformedDocumentError(raw_exc, sanitized_exc) from sanitized_exc
        logger.debug("JSON decoded after removing %d control or BOM characters",
                     len(text) - len(sanitized))
        return value, sanitized
