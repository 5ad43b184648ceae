"""
アプリケーション固有の例外定義モジュール。

難易度表の取得・HTML解析・JSONデコード・スキーマ正規化で発生する例外を
分類して扱うために、基底例外および派生例外を定義する。

取得処理(fetcher.py)の各段階で発生した例外には stage / url が付与され、
どの段階・どのURLで失敗したかを再実行せずに特定できる。
"""

from __future__ import annotations

from typing import Optional


class BmsTableError(Exception):
    """難易度表取得システム全体の基底例外。"""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message
        self.stage: Optional[str] = None
        self.url: Optional[str] = None

    def annotate(self, stage: str, url: str) -> None:
        """
        失敗した段階とURLを付与する。

        既に付与済みの場合は内側の情報を優先して上書きしない。
        """
        if self.stage is None:
            self.stage = stage
            self.url = url

    def __str__(self) -> str:
        if self.stage is None:
            return self.message
        return f"When {self.stage} ({self.url}): {self.message}"


class FetchError(BmsTableError):
    """HTTP通信失敗や非2xxレスポンスに起因する例外。"""

    def __init__(self, message: str, url: str) -> None:
        super().__init__(message)
        self.request_url = url


class MalformedDocumentError(BmsTableError):
    """
    生テキスト・サニタイズ後テキストのどちらもJSONとしてデコードできない場合の例外。

    Attributes:
        raw_error: 生テキストでの失敗原因。
        sanitized_error: サニタイズ後テキストでの失敗原因。
    """

    def __init__(self, raw_error: Exception, sanitized_error: Exception) -> None:
        super().__init__(
            f"JSON decode failed (raw: {raw_error}; sanitized: {sanitized_error})"
        )
        self.raw_error = raw_error
        self.sanitized_error = sanitized_error


class SchemaViolationError(BmsTableError):
    """デコード済みの値が期待する型・形を満たさない場合の例外。"""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"{path or '<root>'}: {reason}")
        self.path = path
        self.reason = reason


class MissingFieldError(SchemaViolationError):
    """必須フィールドが存在しない場合の例外。"""

    def __init__(self, path: str) -> None:
        super().__init__(path, "missing required field")


class PointerNotFoundError(BmsTableError):
    """HTML内にヘッダJSONへの参照が見つからない場合の例外。"""


class HeaderNotResolvableError(BmsTableError):
    """レスポンスがヘッダJSONでも、ヘッダを指すHTMLでもない場合の例外。"""


class CyclicHeaderReferenceError(BmsTableError):
    """
    ヘッダURLの取得結果が再びHTML(参照)だった場合の例外。

    Attributes:
        entry_url: 入口ページのURL。
        header_url: 入口ページから辿ったヘッダURL。
    """

    def __init__(self, entry_url: str, header_url: str) -> None:
        super().__init__(
            f"Cycled header found. web_url: {entry_url}, header_url: {header_url}"
        )
        self.entry_url = entry_url
        self.header_url = header_url


class UrlResolutionError(BmsTableError):
    """基準URLに対する相対URLの解決に失敗した場合の例外。"""

    def __init__(self, base: str, reference: str, reason: str) -> None:
        super().__init__(f"cannot resolve {reference!r} against {base!r}: {reason}")
        self.base = base
        self.reference = reference
