from __future__ import annotations

import sys
from pathlib import Path
from typing import Dict, List

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from bms_table.errors import FetchError


class FakeTransport:
    """URL→本文の辞書を返すだけの Transport。未登録URLは FetchError とする。"""

    def __init__(self, pages: Dict[str, str]) -> None:
        self.pages = dict(pages)
        self.requested: List[str] = []

    def get_text(self, url: str) -> str:
        self.requested.append(url)
        if url not in self.pages:
            raise FetchError(f"HTTP fetch failed: {url} (404)", url)
        return self.pages[url]


@pytest.fixture
def fake_transport():
    return FakeTransport


@pytest.fixture
def header_json() -> str:
    return """{
        "name": "Test Table",
        "symbol": "t",
        "data_url": "score.json",
        "course": [
            {
                "name": "Course 1",
                "constraint": ["grade_mirror", "gauge_lr2"],
                "trophy": [{"name": "goldmedal", "missrate": 1.0, "scorerate": 90.0}],
                "md5": ["aaa", "bbb"]
            }
        ],
        "level_order": [0, 1, 2, "!i"],
        "tag": "SP"
    }"""


@pytest.fixture
def data_json() -> str:
    return """[
        {"level": "1", "md5": "aaa", "title": "Song A", "artist": "", "comment": "x"},
        {"level": 2, "sha256": "ccc", "title": "Song B"}
    ]"""
