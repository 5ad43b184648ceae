"""
データモデル定義モジュール。

難易度表のヘッダ・コース・トロフィー・譜面・表一覧の各要素を、
正規化済みの不変オブジェクトとして定義する。

各モデルは to_dict() で正規形のJSON互換値へ戻せる。
extra に保持した未知フィールドはトップレベルへ展開して出力するため、
出力を再度デコードすると元と等しい値になる。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

CHART_OPTIONAL_FIELDS = (
    "md5",
    "sha256",
    "title",
    "subtitle",
    "artist",
    "subartist",
    "url",
    "url_diff",
)


@dataclass(frozen=True)
class Trophy:
    """
    トロフィー(段位の達成条件)。

    Attributes:
        name: トロフィー名。例: "goldmedal"
        missrate: 許容する最大ミス率(%)。
        scorerate: 必要な最小スコア率(%)。
    """

    name: str
    missrate: float
    scorerate: float

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "missrate": self.missrate, "scorerate": self.scorerate}


@dataclass(frozen=True)
class Chart:
    """
    1譜面分の情報。

    level 以外は全て任意項目で、空文字は None に正規化済み。
    既知以外のフィールドは extra に保持する。
    """

    level: str
    md5: Optional[str] = None
    sha256: Optional[str] = None
    title: Optional[str] = None
    subtitle: Optional[str] = None
    artist: Optional[str] = None
    subartist: Optional[str] = None
    url: Optional[str] = None
    url_diff: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict, hash=False)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"level": self.level}
        for name in CHART_OPTIONAL_FIELDS:
            value = getattr(self, name)
            if value is not None:
                out[name] = value
        out.update(self.extra)
        return out


@dataclass(frozen=True)
class Course:
    """
    コース(段位)情報。

    charts は charts 配列・md5 配列・sha256 配列をこの順に連結したもの。
    コース単位の未知フィールドは保持しない。
    """

    name: str
    constraint: Tuple[str, ...] = ()
    trophy: Tuple[Trophy, ...] = ()
    charts: Tuple[Chart, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "constraint": list(self.constraint),
            "trophy": [t.to_dict() for t in self.trophy],
            "charts": [c.to_dict() for c in self.charts],
        }


@dataclass(frozen=True)
class Header:
    """
    難易度表ヘッダ。

    Attributes:
        name: 表名。
        symbol: 表記号。例: "sl"
        data_url: 譜面データJSONへの参照(ヘッダ内の文字列のまま。未解決)。
        course: コースグループの並び。空入力でも空グループ1つを持つ。
        level_order: レベル表記の並び順(文字列化済み)。
        extra: 上記以外のトップレベルフィールド。
    """

    name: str
    symbol: str
    data_url: str
    course: Tuple[Tuple[Course, ...], ...] = ((),)
    level_order: Tuple[str, ...] = ()
    extra: Dict[str, Any] = field(default_factory=dict, hash=False)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "name": self.name,
            "symbol": self.symbol,
            "data_url": self.data_url,
            "course": [[c.to_dict() for c in group] for group in self.course],
            "level_order": list(self.level_order),
        }
        out.update(self.extra)
        return out


@dataclass(frozen=True)
class Data:
    """譜面データ。入力が配列でも {"charts": [...]} でも同じ形になる。"""

    charts: Tuple[Chart, ...] = ()

    def to_list(self) -> List[Dict[str, Any]]:
        return [c.to_dict() for c in self.charts]


@dataclass(frozen=True)
class Table:
    """ヘッダと譜面データをまとめた難易度表。"""

    header: Header
    data: Data

    def to_dict(self) -> Dict[str, Any]:
        return {"header": self.header.to_dict(), "data": self.data.to_list()}


@dataclass(frozen=True)
class TableRaw:
    """
    難易度表取得時に実際に使った生テキストと解決済みURL。

    header_raw / data_raw はデコードに成功したテキスト
    (必要であればサニタイズ後のもの)。
    """

    header_url: str
    header_raw: str
    data_url: str
    data_raw: str


@dataclass(frozen=True)
class TableInfo:
    """
    難易度表一覧の1要素。

    name / symbol / url 以外(tag1, tag2, comment 等)は extra に保持する。
    """

    name: str
    symbol: str
    url: str
    extra: Dict[str, Any] = field(default_factory=dict, hash=False)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"name": self.name, "symbol": self.symbol, "url": self.url}
        out.update(self.extra)
        return out
