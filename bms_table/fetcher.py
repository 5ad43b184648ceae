"""
難易度表の取得・組み立て処理。

入口URL → ヘッダJSON → 譜面データJSON の順に取得し、正規化済みの Table を返す。

処理の流れ:
1. 入口URLを取得し、ヘッダJSONそのものか、ヘッダを指すHTMLかを判定する
2. HTMLの場合は参照を入口URL基準で解決して再取得する
   (再取得結果が再びHTMLなら CyclicHeaderReferenceError)
3. ヘッダを正規化し、data_url をヘッダ自身のURL基準で解決する
4. 譜面データを取得・正規化して Table を組み立てる

各段階で発生した BmsTableError には stage / url を付与して上位へ伝播する。
リトライ・キャッシュは行わない。
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional, Tuple
from urllib.parse import urljoin, urlsplit

from bms_table.config import FetchSettings
from bms_table.errors import (
    BmsTableError,
    CyclicHeaderReferenceError,
    UrlResolutionError,
)
from bms_table.json_loader import loads_lenient
from bms_table.models import Table, TableInfo, TableRaw
from bms_table.parser import HeaderDocument, HeaderPointer, resolve_header_query
from bms_table.schema import decode_data, decode_header, decode_table_list
from bms_table.scraper import HttpTransport, Transport

logger = logging.getLogger(__name__)

STAGE_FETCH_ENTRY = "fetching entry"
STAGE_FETCH_HEADER = "fetching header"
STAGE_FETCH_DATA = "fetching data"
STAGE_DECODE_HEADER = "decoding header"
STAGE_DECODE_DATA = "decoding data"
STAGE_FETCH_LIST = "fetching list"
STAGE_DECODE_LIST = "decoding list"


@contextmanager
def _stage(stage: str, url: str) -> Iterator[None]:
    """ブロック内で発生した BmsTableError に段階名とURLを付与する。"""
    try:
        yield
    except BmsTableError as e:
        e.annotate(stage, url)
        raise


def resolve_url(base: str, reference: str) -> str:
    """
    基準URLに対して相対URLを解決する。

    Args:
        base: 基準となる完全なURL。
        reference: 相対または絶対のURL文字列。

    Returns:
        解決済みの完全なURL。

    Raises:
        UrlResolutionError: 基準URLが完全なURLでない、または解決結果が不正な場合。
    """
    try:
        base_parts = urlsplit(base)
        if not base_parts.scheme or not base_parts.netloc:
            raise UrlResolutionError(base, reference, "base is not an absolute URL")
        joined = urljoin(base, reference.strip())
        joined_parts = urlsplit(joined)
    except ValueError as e:
        raise UrlResolutionError(base, reference, str(e)) from e
    if not joined_parts.scheme or not joined_parts.netloc:
        raise UrlResolutionError(base, reference, "result is not an absolute URL")
    return joined


@dataclass(frozen=True)
class FetchResult:
    """
    複数表の並行取得における1表分の結果。

    table と error のどちらか一方のみが設定される。
    """

    url: str
    table: Optional[Table] = None
    error: Optional[BmsTableError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class TableFetcher:
    """
    Transport を用いて難易度表・難易度表一覧を取得する。

    Transport は get_text(url) -> str を持つ任意のオブジェクトでよい。
    """

    def __init__(self, transport: Transport) -> None:
        self.transport = transport

    def _resolve_header(self, entry_url: str) -> Tuple[str, HeaderDocument]:
        """入口URLからヘッダJSONとそのURLを得る。"""
        with _stage(STAGE_FETCH_ENTRY, entry_url):
            # 入口URL自体が完全なURLであること
            resolve_url(entry_url, "")
            entry_text = self.transport.get_text(entry_url)
            query = resolve_header_query(entry_text)

        if isinstance(query, HeaderDocument):
            logger.debug("entry is the header document itself: %s", entry_url)
            return entry_url, query

        with _stage(STAGE_FETCH_HEADER, entry_url):
            header_url = resolve_url(entry_url, query.url)
        logger.info("header pointer %s -> %s", query.url, header_url)

        with _stage(STAGE_FETCH_HEADER, header_url):
            header_text = self.transport.get_text(header_url)
            second = resolve_header_query(header_text)
            if isinstance(second, HeaderPointer):
                raise CyclicHeaderReferenceError(entry_url, header_url)
        return header_url, second

    def fetch_table_full(self, url: str) -> Tuple[Table, TableRaw]:
        """
        難易度表を取得し、実際に使った生テキストも合わせて返す。

        Args:
            url: 入口URL(HTMLページまたはヘッダJSONのURL)。

        Returns:
            (Table, TableRaw) のタプル。

        Raises:
            BmsTableError: いずれかの段階で失敗した場合(stage / url 付き)。
        """
        header_url, document = self._resolve_header(url)

        with _stage(STAGE_DECODE_HEADER, header_url):
            header = decode_header(document.value)

        with _stage(STAGE_FETCH_DATA, header_url):
            data_url = resolve_url(header_url, header.data_url)

        with _stage(STAGE_FETCH_DATA, data_url):
            data_text = self.transport.get_text(data_url)

        with _stage(STAGE_DECODE_DATA, data_url):
            data_value, data_raw = loads_lenient(data_text, expected=(list, dict))
            data = decode_data(data_value)

        logger.info("fetched table %s (%d charts)", header.name, len(data.charts))
        raw = TableRaw(
            header_url=header_url,
            header_raw=document.text,
            data_url=data_url,
            data_raw=data_raw,
        )
        return Table(header=header, data=data), raw

    def fetch_table(self, url: str) -> Table:
        """難易度表を取得して Table を返す。"""
        table, _ = self.fetch_table_full(url)
        return table

    def fetch_table_list_full(self, url: str) -> Tuple[List[TableInfo], str]:
        """
        難易度表一覧を取得し、デコードに使ったテキストも合わせて返す。

        Args:
            url: 一覧JSONのURL。

        Returns:
            (TableInfoのリスト, 生テキスト) のタプル。

        Raises:
            BmsTableError: 取得・デコードに失敗した場合(stage / url 付き)。
        """
        with _stage(STAGE_FETCH_LIST, url):
            text = self.transport.get_text(url)

        with _stage(STAGE_DECODE_LIST, url):
            value, raw = loads_lenient(text, expected=list)
            tables = decode_table_list(value)

        logger.info("fetched table list %s (%d tables)", url, len(tables))
        return tables, raw

    def fetch_table_list(self, url: str) -> List[TableInfo]:
        """難易度表一覧を取得して TableInfo のリストを返す。"""
        tables, _ = self.fetch_table_list_full(url)
        return tables

    def _fetch_one(self, url: str) -> FetchResult:
        try:
            return FetchResult(url=url, table=self.fetch_table(url))
        except BmsTableError as e:
            logger.warning("failed to fetch %s: %s", url, e)
            return FetchResult(url=url, error=e)

    def fetch_tables(self, urls: Iterable[str], max_workers: int = 4) -> Iterator[FetchResult]:
        """
        複数の難易度表を並行して取得する。

        1表につき1タスクを投入し、完了した順に結果を返す。
        1表の失敗は FetchResult.error に格納され、他の表の取得は継続する。

        Args:
            urls: 入口URLの並び。
            max_workers: スレッド数。

        Yields:
            FetchResult(完了順)。
        """
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            futures = [executor.submit(self._fetch_one, url) for url in urls]
            for future in as_completed(futures):
                yield future.result()


def fetch_table(url: str, settings: Optional[FetchSettings] = None) -> Table:
    """HttpTransport で難易度表を取得する。"""
    with HttpTransport(settings) as transport:
        return TableFetcher(transport).fetch_table(url)


def fetch_table_list(url: str, settings: Optional[FetchSettings] = None) -> List[TableInfo]:
    """HttpTransport で難易度表一覧を取得する。"""
    with HttpTransport(settings) as transport:
        return TableFetcher(transport).fetch_table_list(url)
