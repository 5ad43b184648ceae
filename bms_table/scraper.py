"""
HTTP取得処理。

指定されたURLから本文テキストを取得する責務を持つ。
HTMLの解析やJSONのデコードは parser.py / json_loader.py 側で行い、
本モジュールは通信のみを担当する。

例外方針:
- requests 由来の例外および非2xxレスポンスは FetchError に変換して上位へ伝播する。
- リトライは行わない。
"""

from __future__ import annotations

import logging
import threading
from typing import List, Optional, Protocol

import requests

from bms_table.config import FetchSettings, lenient_settings
from bms_table.errors import FetchError

logger = logging.getLogger(__name__)


class Transport(Protocol):
    """URLを受け取り本文テキストを返す取得処理のインターフェース。"""

    def get_text(self, url: str) -> str:
        ...


def _decode_body(r: requests.Response) -> str:
    """
    レスポンス本文を文字列化する。

    サーバが charset を宣言していない場合は推定した文字コードを使う。
    先頭のBOMは除去する。
    """
    if "charset" in r.headers.get("Content-Type", "").lower():
        r.encoding = requests.utils.get_encoding_from_headers(r.headers)
    else:
        r.encoding = r.apparent_encoding
    text = r.text
    if text.startswith("\ufeff"):
        text = text[1:]
    return text


class HttpTransport:
    """
    requests.Session を用いた Transport 実装。

    User-Agent・追加ヘッダ・タイムアウト・リダイレクト上限・Cookie保持・
    証明書検証の有無を FetchSettings で切り替えられる。

    Session とCookieはスレッドごとに分けて持つため、複数表の並行取得でも
    各スレッドの取得は互いに状態を共有しない。
    """

    def __init__(self, settings: Optional[FetchSettings] = None) -> None:
        self.settings = settings or FetchSettings()
        self._local = threading.local()
        self._sessions: List[requests.Session] = []
        self._lock = threading.Lock()

    @classmethod
    def lenient(cls) -> "HttpTransport":
        """証明書不正なサイトにも接続する寛容な設定で生成する。"""
        return cls(lenient_settings())

    def _new_session(self) -> requests.Session:
        session = requests.Session()
        session.headers.update({"User-Agent": self.settings.user_agent})
        session.headers.update(self.settings.headers)
        session.max_redirects = self.settings.max_redirects
        session.verify = not self.settings.accept_invalid_certs
        return session

    @property
    def _session(self) -> requests.Session:
        """呼び出し元スレッド専用の Session。"""
        session = getattr(self._local, "session", None)
        if session is None:
            session = self._new_session()
            self._local.session = session
            with self._lock:
                self._sessions.append(session)
        return session

    def get_text(self, url: str) -> str:
        """
        指定URLへHTTP GETを行い、レスポンス本文を返す。

        Args:
            url: 取得対象URL。

        Returns:
            本文文字列。

        Raises:
            FetchError: HTTPエラーや通信失敗が発生した場合。
        """
        logger.debug("GET %s", url)
        session = self._session
        try:
            r = session.get(url, timeout=self.settings.timeout)
            r.raise_for_status()
            return _decode_body(r)
        except requests.RequestException as e:
            raise FetchError(f"HTTP fetch failed: {url} ({e})", url) from e
        finally:
            if not self.settings.keep_cookies:
                session.cookies.clear()

    def close(self) -> None:
        with self._lock:
            sessions, self._sessions = self._sessions, []
        for session in sessions:
            session.close()
        self._local = threading.local()

    def __enter__(self) -> "HttpTransport":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
