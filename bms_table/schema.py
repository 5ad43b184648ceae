"""
スキーマ正規化。

配信サイトごとに揺れのあるヘッダ・コース・譜面・表一覧のJSONを受け取り、
models.py の正規形へ変換する責務を持つ。

想定している揺れ:
- course が コース配列 / コース配列の配列 / 空配列 / 欠落
- level や level_order の要素が数値 / 文字列
- 任意項目が空文字で埋められている
- コースが charts 配列の代わりに md5 / sha256 のハッシュ配列を持つ
- 譜面データが裸の配列 / {"charts": [...]}

未知の形の組み合わせは推測で補わず SchemaViolationError とする。
"""

from __future__ import annotations

import copy
import json
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urlsplit

from bms_table.errors import MissingFieldError, SchemaViolationError
from bms_table.models import (
    CHART_OPTIONAL_FIELDS,
    Chart,
    Course,
    Data,
    Header,
    Table,
    TableInfo,
    Trophy,
)

HEADER_FIELDS = ("name", "symbol", "data_url", "course", "level_order")
TABLE_INFO_FIELDS = ("name", "symbol", "url")
DEFAULT_LEVEL = "0"


def _join(path: str, key: str) -> str:
    return f"{path}.{key}" if path else key


def _type_name(value: Any) -> str:
    """JSON上の型名を返す。"""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__


def _expect_object(value: Any, path: str) -> Dict[str, Any]:
    if not isinstance(value, dict):
        raise SchemaViolationError(path, f"expected object, got {_type_name(value)}")
    return value


def _expect_array(value: Any, path: str) -> List[Any]:
    if not isinstance(value, list):
        raise SchemaViolationError(path, f"expected array, got {_type_name(value)}")
    return value


def _require_str(obj: Dict[str, Any], key: str, path: str) -> str:
    """必須の文字列フィールドを取り出す。"""
    field_path = _join(path, key)
    if key not in obj:
        raise MissingFieldError(field_path)
    value = obj[key]
    if not isinstance(value, str):
        raise SchemaViolationError(field_path, f"expected string, got {_type_name(value)}")
    return value


def _optional_str(obj: Dict[str, Any], key: str, path: str) -> Optional[str]:
    """
    任意の文字列フィールドを取り出す。

    欠落・null・空文字はいずれも None として扱う。
    """
    value = obj.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise SchemaViolationError(
            _join(path, key), f"expected string, got {_type_name(value)}"
        )
    return value or None


def _number_to_str(value: Any) -> str:
    """JSON数値を文字列化する。int は整数表記、float はJSON表記。"""
    return json.dumps(value)


def _numstring(value: Any, path: str) -> str:
    """文字列または数値を文字列として受け取る。"""
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return _number_to_str(value)
    raise SchemaViolationError(
        path, f"expected string or number, got {_type_name(value)}"
    )


def _float(obj: Dict[str, Any], key: str, path: str) -> float:
    field_path = _join(path, key)
    if key not in obj:
        raise MissingFieldError(field_path)
    value = obj[key]
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise SchemaViolationError(field_path, f"expected number, got {_type_name(value)}")
    return float(value)


def _str_list(obj: Dict[str, Any], key: str, path: str) -> Tuple[str, ...]:
    """文字列配列フィールドを取り出す。欠落・null は空とする。"""
    field_path = _join(path, key)
    value = obj.get(key)
    if value is None:
        return ()
    items = _expect_array(value, field_path)
    for i, item in enumerate(items):
        if not isinstance(item, str):
            raise SchemaViolationError(
                f"{field_path}[{i}]", f"expected string, got {_type_name(item)}"
            )
    return tuple(items)


def decode_chart(obj: Any, path: str = "") -> Chart:
    """
    譜面1件を正規化する。

    Args:
        obj: デコード済みJSONオブジェクト。
        path: エラー表示用のフィールドパス。

    Returns:
        Chart。

    Raises:
        MissingFieldError: level が存在しない場合。
        SchemaViolationError: 型が不正な場合。
    """
    obj = _expect_object(obj, path)
    if "level" not in obj:
        raise MissingFieldError(_join(path, "level"))
    level = _numstring(obj["level"], _join(path, "level"))

    named = {name: _optional_str(obj, name, path) for name in CHART_OPTIONAL_FIELDS}
    known = set(CHART_OPTIONAL_FIELDS) | {"level"}
    extra = copy.deepcopy({k: v for k, v in obj.items() if k not in known})
    return Chart(level=level, extra=extra, **named)


def decode_trophy(obj: Any, path: str = "") -> Trophy:
    obj = _expect_object(obj, path)
    return Trophy(
        name=_require_str(obj, "name", path),
        missrate=_float(obj, "missrate", path),
        scorerate=_float(obj, "scorerate", path),
    )


def _hash_chart(hash_name: str, value: str) -> Chart:
    """ハッシュ1つだけを持つ譜面を作る。"""
    return Chart(level=DEFAULT_LEVEL, **{hash_name: value or None})


def decode_course(obj: Any, path: str = "") -> Course:
    """
    コース1件を正規化する。

    charts は以下をこの順に連結して組み立てる(重複除去はしない)。
    1. charts 配列(level が無い要素には "0" を補う)
    2. md5 配列の各ハッシュから作った譜面
    3. sha256 配列の各ハッシュから作った譜面

    Args:
        obj: デコード済みJSONオブジェクト。
        path: エラー表示用のフィールドパス。

    Returns:
        Course。

    Raises:
        MissingFieldError: name が存在しない場合。
        SchemaViolationError: 型が不正な場合。
    """
    obj = _expect_object(obj, path)
    name = _require_str(obj, "name", path)
    constraint = _str_list(obj, "constraint", path)

    trophy_path = _join(path, "trophy")
    raw_trophies = obj.get("trophy")
    trophies: Tuple[Trophy, ...] = ()
    if raw_trophies is not None:
        trophies = tuple(
            decode_trophy(t, f"{trophy_path}[{i}]")
            for i, t in enumerate(_expect_array(raw_trophies, trophy_path))
        )

    charts: List[Chart] = []
    charts_path = _join(path, "charts")
    raw_charts = obj.get("charts")
    if raw_charts is not None:
        for i, item in enumerate(_expect_array(raw_charts, charts_path)):
            item_path = f"{charts_path}[{i}]"
            item = _expect_object(item, item_path)
            if "level" not in item:
                item = dict(item, level=DEFAULT_LEVEL)
            charts.append(decode_chart(item, item_path))

    for hash_name in ("md5", "sha256"):
        for value in _str_list(obj, hash_name, path):
            charts.append(_hash_chart(hash_name, value))

    return Course(name=name, constraint=constraint, trophy=trophies, charts=tuple(charts))


def _decode_course_groups(value: Any, path: str) -> Tuple[Tuple[Course, ...], ...]:
    """
    course フィールドをコースグループの並びへ正規化する。

    - 欠落 / null / 空配列: 空グループ1つ
    - コース配列: 1グループとして包む
    - コース配列の配列: そのまま
    """
    if value is None:
        return ((),)
    items = _expect_array(value, path)
    if not items:
        return ((),)

    if isinstance(items[0], list):
        groups = []
        for i, group in enumerate(items):
            group_path = f"{path}[{i}]"
            group = _expect_array(group, group_path)
            groups.append(
                tuple(decode_course(c, f"{group_path}[{j}]") for j, c in enumerate(group))
            )
        return tuple(groups)

    return (tuple(decode_course(c, f"{path}[{j}]") for j, c in enumerate(items)),)


def _level_order_item(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return _number_to_str(value)
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"))


def decode_header(obj: Any) -> Header:
    """
    ヘッダJSONを正規化する。

    Args:
        obj: デコード済みJSONオブジェクト。

    Returns:
        Header。既知5項目以外は extra に保持する。

    Raises:
        MissingFieldError: name / symbol / data_url が存在しない場合。
        SchemaViolationError: 型が不正な場合。
    """
    obj = _expect_object(obj, "")
    name = _require_str(obj, "name", "")
    symbol = _require_str(obj, "symbol", "")
    data_url = _require_str(obj, "data_url", "")
    course = _decode_course_groups(obj.get("course"), "course")

    raw_order = obj.get("level_order")
    level_order: Tuple[str, ...] = ()
    if raw_order is not None:
        level_order = tuple(
            _level_order_item(v) for v in _expect_array(raw_order, "level_order")
        )

    extra = copy.deepcopy({k: v for k, v in obj.items() if k not in HEADER_FIELDS})
    return Header(
        name=name,
        symbol=symbol,
        data_url=data_url,
        course=course,
        level_order=level_order,
        extra=extra,
    )


def decode_data(value: Any) -> Data:
    """
    譜面データJSONを正規化する。

    裸の配列と {"charts": [...]} のどちらも受け付ける。

    Raises:
        MissingFieldError: オブジェクトに charts が無い場合。
        SchemaViolationError: 配列でもオブジェクトでもない場合や、要素が不正な場合。
    """
    path = ""
    if isinstance(value, dict):
        if "charts" not in value:
            raise MissingFieldError("charts")
        value = value["charts"]
        path = "charts"
    elif not isinstance(value, list):
        raise SchemaViolationError(
            "", f"expected array or object, got {_type_name(value)}"
        )
    items = _expect_array(value, path)
    return Data(charts=tuple(decode_chart(c, f"{path}[{i}]") for i, c in enumerate(items)))


def decode_table(header_obj: Any, data_value: Any) -> Table:
    """デコード済みのヘッダ・譜面データから Table を組み立てる(オフライン用途)。"""
    return Table(header=decode_header(header_obj), data=decode_data(data_value))


def is_absolute_url(url: str) -> bool:
    """スキームとホストを持つ完全なURLかどうか判定する。"""
    try:
        parts = urlsplit(url)
    except ValueError:
        return False
    return bool(parts.scheme) and bool(parts.netloc) and not any(c.isspace() for c in url)


def decode_table_info(obj: Any, path: str = "") -> TableInfo:
    obj = _expect_object(obj, path)
    name = _require_str(obj, "name", path)
    symbol = _require_str(obj, "symbol", path)
    url = _require_str(obj, "url", path)
    if not is_absolute_url(url):
        raise SchemaViolationError(_join(path, "url"), f"invalid URL: {url!r}")
    extra = copy.deepcopy({k: v for k, v in obj.items() if k not in TABLE_INFO_FIELDS})
    return TableInfo(name=name, symbol=symbol, url=url, extra=extra)


def decode_table_list(value: Any) -> List[TableInfo]:
    """
    難易度表一覧JSON(裸の配列)を正規化する。

    Raises:
        MissingFieldError: 要素に name / symbol / url が無い場合(パスに添字を含む)。
        SchemaViolationError: 型不正、または url が完全なURLでない場合。
    """
    items = _expect_array(value, "")
    return [decode_table_info(item, f"[{i}]") for i, item in enumerate(items)]
