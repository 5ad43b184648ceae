"""
設定ファイル(settings.yaml)の読み込み処理を提供するモジュール。

settings.yaml から難易度表取得に必要な通信設定を読み込み、
アプリ内で扱いやすい dataclass に変換する。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict

import yaml

DEFAULT_USER_AGENT = "bms-table-resolver/0.1"
BROWSER_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
)


@dataclass(frozen=True)
class FetchSettings:
    """
    HTTP取得設定。

    Attributes:
        user_agent: User-Agent ヘッダ。
        timeout: requests に渡すタイムアウト秒。
        max_redirects: 追従するリダイレクトの上限。
        keep_cookies: リクエスト間でCookieを保持するかどうか。
        accept_invalid_certs: 証明書・ホスト名の検証に失敗しても接続するかどうか。
        headers: 追加のリクエストヘッダ。
        max_workers: 複数表を並行取得する際のスレッド数。
    """

    user_agent: str = DEFAULT_USER_AGENT
    timeout: float = 30.0
    max_redirects: int = 10
    keep_cookies: bool = True
    accept_invalid_certs: bool = False
    headers: Dict[str, str] = field(default_factory=dict)
    max_workers: int = 4


def lenient_settings() -> FetchSettings:
    """設定の壊れた配信サイトにも接続できる寛容な設定を返す。"""
    return FetchSettings(
        user_agent=BROWSER_USER_AGENT,
        accept_invalid_certs=True,
        headers={"Accept": "text/html,application/json;q=0.9,*/*;q=0.8"},
    )


def load_settings(path: str) -> FetchSettings:
    """
    settings.yaml を読み込み FetchSettings に変換する。

    fetch セクションが無い場合や項目が欠けている場合は既定値を使う。

    Args:
        path: settings.yaml のファイルパス。

    Returns:
        FetchSettingsオブジェクト。

    Raises:
        FileNotFoundError: 設定ファイルが存在しない場合。
        yaml.YAMLError: YAMLのパースに失敗した場合。
        ValueError: 数値項目の変換に失敗した場合。
    """
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    fetch_data = data.get("fetch") or {}
    defaults = FetchSettings()

    return FetchSettings(
        user_agent=str(fetch_data.get("user_agent", defaults.user_agent)).strip(),
        timeout=float(fetch_data.get("timeout", defaults.timeout)),
        max_redirects=int(fetch_data.get("max_redirects", defaults.max_redirects)),
        keep_cookies=bool(fetch_data.get("keep_cookies", defaults.keep_cookies)),
        accept_invalid_certs=bool(
            fetch_data.get("accept_invalid_certs", defaults.accept_invalid_certs)
        ),
        headers={str(k): str(v) for k, v in (fetch_data.get("headers") or {}).items()},
        max_workers=int(fetch_data.get("max_workers", defaults.max_workers)),
    )
