"""
HTMLパーサ。

難易度表の入口ページから、ヘッダJSONへの参照(相対URLの場合あり)を探し出す責務と、
取得したテキストがヘッダJSONそのものか、ヘッダを指すHTMLかを判定する責務を持つ。

参照の探索順(最初に見つかったものを採用し、以降の段階は評価しない):
1. <meta name|property="bmstable" content="...">
2. <link rel="bmstable" href="...">
3. <a href> のうち "header" を含み ".json" で終わるもの
4. <link href> 同上
5. <script src> 同上
6. <meta content> 同上
7. タグとして解釈できない壊れたHTML向けに、生テキストから同条件の文字列を探す
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Union

from bs4 import BeautifulSoup

from bms_table.errors import (
    HeaderNotResolvableError,
    MalformedDocumentError,
    PointerNotFoundError,
)
from bms_table.json_loader import loads_lenient

logger = logging.getLogger(__name__)

BMSTABLE = "bmstable"

# 引用符・空白の直後から始まり、"header" を含み ".json" で終わる区間
_RAW_HEADER_RE = re.compile(r"""[^\s"']*header[^\s"']*?\.json""", re.IGNORECASE)


def _attr_text(tag: Any, name: str) -> str:
    """
    属性値を文字列で返す。

    rel 等の複数値属性は空白区切りで連結する。属性が無い場合は空文字。
    """
    value = tag.get(name)
    if value is None:
        return ""
    if isinstance(value, list):
        return " ".join(value)
    return str(value)


def _looks_like_header_json(value: str) -> bool:
    v = value.strip().lower()
    return "header" in v and v.endswith(".json")


def _meta_bmstable(soup: BeautifulSoup) -> Optional[str]:
    for meta in soup.find_all("meta"):
        name = _attr_text(meta, "name").strip().lower()
        prop = _attr_text(meta, "property").strip().lower()
        if BMSTABLE not in (name, prop):
            continue
        content = _attr_text(meta, "content").strip()
        if content:
            return content
    return None


def _link_bmstable(soup: BeautifulSoup) -> Optional[str]:
    for link in soup.find_all("link"):
        rels = [r.lower() for r in _attr_text(link, "rel").split()]
        if BMSTABLE not in rels:
            continue
        href = _attr_text(link, "href").strip()
        if href:
            return href
    return None


def _attr_heuristic(tag_name: str, attr: str) -> Callable[[BeautifulSoup], Optional[str]]:
    """指定タグ・属性のうち、ヘッダJSONらしい値を最初に見つけて返す関数を作る。"""

    def _find(soup: BeautifulSoup) -> Optional[str]:
        for tag in soup.find_all(tag_name):
            value = _attr_text(tag, attr)
            if value and _looks_like_header_json(value):
                return value.strip()
        return None

    _find.__name__ = f"{tag_name}[{attr}]"
    return _find


_TAG_STAGES: List[Callable[[BeautifulSoup], Optional[str]]] = [
    _meta_bmstable,
    _link_bmstable,
    _attr_heuristic("a", "href"),
    _attr_heuristic("link", "href"),
    _attr_heuristic("script", "src"),
    _attr_heuristic("meta", "content"),
]


def _raw_text_heuristic(html: str) -> Optional[str]:
    """
    生テキストから "header" の後に ".json" が続く区間を探す。

    区間は直前の引用符または空白の次の文字から ".json" の末尾までとする。
    """
    m = _RAW_HEADER_RE.search(html)
    if m is None:
        return None
    return m.group(0)


def extract_bmstable_url(html: str) -> str:
    """
    HTML文字列からヘッダJSONへの参照を抽出する。

    Args:
        html: 入口ページのHTML文字列。

    Returns:
        ヘッダJSONのURL文字列(相対URLのことがある)。

    Raises:
        PointerNotFoundError: どの段階でも参照が見つからない場合。
    """
    soup = BeautifulSoup(html, "html.parser")
    for stage in _TAG_STAGES:
        found = stage(soup)
        if found:
            logger.debug("header pointer found by %s: %s", stage.__name__, found)
            return found

    found = _raw_text_heuristic(html)
    if found:
        logger.debug("header pointer found by raw text scan: %s", found)
        return found

    raise PointerNotFoundError("bmstable header pointer not found in HTML")


@dataclass(frozen=True)
class HeaderPointer:
    """ヘッダJSONを指す参照。"""

    url: str


@dataclass(frozen=True)
class HeaderDocument:
    """
    ヘッダJSONそのもの。

    Attributes:
        value: デコード済みのJSONオブジェクト。
        text: デコードに成功したテキスト(サニタイズ後の場合あり)。
    """

    value: Dict[str, Any]
    text: str


HeaderQuery = Union[HeaderPointer, HeaderDocument]


def resolve_header_query(text: str) -> HeaderQuery:
    """
    レスポンステキストがヘッダJSONか、ヘッダを指すHTMLかを判定する。

    JSONオブジェクトとしてのデコードを先に試し、失敗した場合にHTMLとして参照を探す。

    Args:
        text: 取得したレスポンス本文。

    Returns:
        HeaderDocument または HeaderPointer。

    Raises:
        HeaderNotResolvableError: どちらとしても解釈できない場合。
            __cause__ にJSONデコードの失敗原因を持つ。
    """
    try:
        value, used_text = loads_lenient(text, expected=dict)
        return HeaderDocument(value=value, text=used_text)
    except MalformedDocumentError as json_exc:
        try:
            return HeaderPointer(url=extract_bmstable_url(text))
        except PointerNotFoundError:
            raise HeaderNotResolvableError(
                f"response is neither header JSON nor HTML with a header pointer ({json_exc})"
            ) from json_exc
