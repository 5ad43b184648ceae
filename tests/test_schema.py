"""ヘッダ・コース・譜面・表一覧の正規化テスト。"""

from __future__ import annotations

import json

import pytest

from bms_table.errors import MissingFieldError, SchemaViolationError
from bms_table.models import Chart, Course, Trophy
from bms_table.schema import (
    decode_chart,
    decode_course,
    decode_data,
    decode_header,
    decode_table,
    decode_table_list,
)


def _header(**fields) -> dict:
    base = {"name": "Test Table", "symbol": "t", "data_url": "score.json"}
    base.update(fields)
    return base


# --- header -----------------------------------------------------------------


@pytest.mark.light
def test_header_flat_course_list_becomes_single_group():
    header = decode_header(_header(course=[{"name": "A"}, {"name": "B"}]))
    assert header.course == ((Course(name="A"), Course(name="B")),)


@pytest.mark.light
def test_header_nested_course_groups_are_kept():
    header = decode_header(
        _header(course=[[{"name": "A"}], [{"name": "B"}, {"name": "C"}]])
    )
    assert [[c.name for c in g] for g in header.course] == [["A"], ["B", "C"]]


@pytest.mark.light
@pytest.mark.parametrize("course", [[], None])
def test_header_empty_or_null_course_becomes_one_empty_group(course):
    header = decode_header(_header(course=course))
    assert header.course == ((),)


@pytest.mark.light
def test_header_missing_course_becomes_one_empty_group():
    assert decode_header(_header()).course == ((),)


@pytest.mark.light
def test_header_mixed_course_shapes_fail():
    with pytest.raises(SchemaViolationError) as exc_info:
        decode_header(_header(course=[[{"name": "A"}], {"name": "B"}]))
    assert exc_info.value.path == "course[1]"


@pytest.mark.light
def test_header_level_order_is_stringified():
    header = decode_header(_header(level_order=[0, 1, 12, "!i", 1.5, True, None]))
    assert header.level_order == ("0", "1", "12", "!i", "1.5", "true", "null")


@pytest.mark.light
def test_header_extra_fields_are_kept_and_named_fields_excluded():
    header = decode_header(
        _header(course=[], level_order=["1"], tag="SP", mode={"keys": 7})
    )
    assert header.extra == {"tag": "SP", "mode": {"keys": 7}}
    for key in ("name", "symbol", "data_url", "course", "level_order"):
        assert key not in header.extra


@pytest.mark.light
@pytest.mark.parametrize("field", ["name", "symbol", "data_url"])
def test_header_required_fields(field):
    obj = _header()
    del obj[field]
    with pytest.raises(MissingFieldError) as exc_info:
        decode_header(obj)
    assert exc_info.value.path == field


@pytest.mark.light
def test_header_data_url_must_be_string():
    with pytest.raises(SchemaViolationError):
        decode_header(_header(data_url=3))


@pytest.mark.light
def test_header_from_fixture(header_json: str):
    header = decode_header(json.loads(header_json))
    course = header.course[0][0]
    assert course.constraint == ("grade_mirror", "gauge_lr2")
    assert course.trophy == (Trophy(name="goldmedal", missrate=1.0, scorerate=90.0),)
    assert [c.md5 for c in course.charts] == ["aaa", "bbb"]
    assert header.level_order == ("0", "1", "2", "!i")
    assert header.extra == {"tag": "SP"}


# --- course -----------------------------------------------------------------


@pytest.mark.light
def test_course_md5_list_becomes_charts():
    course = decode_course({"name": "C", "md5": ["h1", "h2"]})
    assert course.charts == (
        Chart(level="0", md5="h1"),
        Chart(level="0", md5="h2"),
    )


@pytest.mark.light
def test_course_sha256_list_becomes_charts():
    course = decode_course({"name": "C", "sha256": ["s1", "s2"]})
    assert [c.sha256 for c in course.charts] == ["s1", "s2"]
    assert all(c.md5 is None and c.level == "0" for c in course.charts)


@pytest.mark.light
def test_course_charts_then_md5_then_sha256():
    """charts → md5 → sha256 の順で連結され、重複除去されないことを確認する。"""
    course = decode_course(
        {
            "name": "C",
            "sha256": ["s1"],
            "md5": ["m1", "m1"],
            "charts": [{"level": "2", "title": "Existing", "md5": "m1"}],
        }
    )
    assert [(c.level, c.md5, c.sha256) for c in course.charts] == [
        ("2", "m1", None),
        ("0", "m1", None),
        ("0", "m1", None),
        ("0", None, "s1"),
    ]
    assert course.charts[0].title == "Existing"


@pytest.mark.light
def test_course_chart_without_level_gets_zero():
    course = decode_course(
        {"name": "C", "charts": [{"title": "No Level"}, {"level": 3, "title": "L3"}]}
    )
    assert [c.level for c in course.charts] == ["0", "3"]
    assert course.charts[0].title == "No Level"


@pytest.mark.light
def test_course_defaults():
    course = decode_course({"name": "C"})
    assert course == Course(name="C", constraint=(), trophy=(), charts=())


@pytest.mark.light
def test_course_requires_name():
    with pytest.raises(MissingFieldError):
        decode_course({"md5": ["x"]})


@pytest.mark.light
def test_course_trophy_missing_field_reports_path():
    with pytest.raises(MissingFieldError) as exc_info:
        decode_header(
            _header(course=[{"name": "C", "trophy": [{"name": "g", "missrate": 1}]}])
        )
    assert exc_info.value.path == "course[0].trophy[0].scorerate"


@pytest.mark.light
def test_course_chart_element_must_be_object():
    with pytest.raises(SchemaViolationError) as exc_info:
        decode_course({"name": "C", "charts": ["abc"]})
    assert exc_info.value.path == "charts[0]"


# --- chart ------------------------------------------------------------------


@pytest.mark.light
def test_chart_numeric_level_is_stringified():
    assert decode_chart({"level": 7}).level == "7"


@pytest.mark.light
def test_chart_missing_level_fails():
    with pytest.raises(SchemaViolationError):
        decode_chart({"md5": "abc"})


@pytest.mark.light
def test_chart_null_level_fails():
    with pytest.raises(SchemaViolationError):
        decode_chart({"level": None})


@pytest.mark.light
def test_chart_empty_strings_become_none():
    chart = decode_chart(
        {
            "level": "1",
            "md5": "",
            "sha256": "",
            "title": "",
            "subtitle": "",
            "artist": "",
            "subartist": "",
            "url": "",
            "url_diff": "",
        }
    )
    assert chart == Chart(level="1")


@pytest.mark.light
def test_chart_extra_fields_are_kept():
    chart = decode_chart(
        {"level": "1", "title": "T", "rating": 5.0, "comment": "", "id": 12}
    )
    assert chart.title == "T"
    assert chart.extra == {"rating": 5.0, "comment": "", "id": 12}


@pytest.mark.light
def test_chart_named_field_wrong_type_fails():
    with pytest.raises(SchemaViolationError) as exc_info:
        decode_chart({"level": "1", "title": 3}, "[4]")
    assert exc_info.value.path == "[4].title"


# --- data / table -----------------------------------------------------------


@pytest.mark.light
def test_data_accepts_bare_array_and_wrapped_object():
    charts = [{"level": "1", "md5": "a"}, {"level": 2}]
    assert decode_data(charts) == decode_data({"charts": charts})
    assert [c.level for c in decode_data(charts).charts] == ["1", "2"]


@pytest.mark.light
def test_data_object_without_charts_fails():
    with pytest.raises(MissingFieldError):
        decode_data({"songs": []})


@pytest.mark.light
def test_data_reports_chart_index():
    with pytest.raises(MissingFieldError) as exc_info:
        decode_data([{"level": "1"}, {"title": "no level"}])
    assert exc_info.value.path == "[1].level"


@pytest.mark.light
def test_decode_table_offline(header_json: str, data_json: str):
    table = decode_table(json.loads(header_json), json.loads(data_json))
    assert table.header.name == "Test Table"
    first, second = table.data.charts
    assert first.artist is None
    assert first.extra == {"comment": "x"}
    assert second.level == "2"
    assert second.sha256 == "ccc"


# --- table list -------------------------------------------------------------


@pytest.mark.light
def test_table_list_decodes_entries_with_extra():
    tables = decode_table_list(
        [
            {
                "name": ".WAS難易度表",
                "symbol": "．",
                "url": "https://darksabun.club/table/archive/was/",
                "tag1": "SP",
                "comment": "",
            }
        ]
    )
    assert len(tables) == 1
    assert tables[0].name == ".WAS難易度表"
    assert tables[0].url == "https://darksabun.club/table/archive/was/"
    assert tables[0].extra == {"tag1": "SP", "comment": ""}


@pytest.mark.light
def test_table_list_missing_field_reports_index():
    with pytest.raises(MissingFieldError) as exc_info:
        decode_table_list(
            [
                {"name": "a", "symbol": "a", "url": "https://a.example/"},
                {"name": "b", "url": "https://b.example/"},
            ]
        )
    assert exc_info.value.path == "[1].symbol"


@pytest.mark.light
@pytest.mark.parametrize("url", ["table.html", "/table/", "https://", "not a url"])
def test_table_list_rejects_invalid_url(url):
    with pytest.raises(SchemaViolationError):
        decode_table_list([{"name": "a", "symbol": "a", "url": url}])


@pytest.mark.light
def test_table_list_requires_array():
    with pytest.raises(SchemaViolationError):
        decode_table_list({"name": "a"})


# --- extra の独立性 ------------------------------------------------------------


@pytest.mark.light
def test_extra_does_not_share_nested_values_with_input():
    """デコード後に入力を変更しても extra が影響を受けないことを確認する。"""
    chart_obj = {"level": "1", "tags": ["a"]}
    header_obj = {"name": "T", "symbol": "t", "data_url": "d.json", "mode": {"keys": 7}}
    list_obj = [{"name": "T", "symbol": "t", "url": "https://t.example/", "tags": ["SP"]}]

    chart = decode_chart(chart_obj)
    header = decode_header(header_obj)
    info = decode_table_list(list_obj)[0]
    chart_obj["tags"].append("b")
    header_obj["mode"]["keys"] = 14
    list_obj[0]["tags"].append("DP")

    assert chart.extra == {"tags": ["a"]}
    assert header.extra == {"mode": {"keys": 7}}
    assert info.extra == {"tags": ["SP"]}


@pytest.mark.light
def test_decoded_records_are_hashable():
    """extra を持つ Chart / Header / TableInfo も hash でき、等価なら同じ値になることを確認する。"""
    a = decode_chart({"level": "1", "md5": "m", "comment": "x"})
    b = decode_chart({"level": 1, "md5": "m", "comment": "x"})
    assert a == b
    assert hash(a) == hash(b)
    assert len({a, b}) == 1

    header = decode_header(
        {"name": "T", "symbol": "t", "data_url": "d.json", "tag": "SP",
         "course": [{"name": "C", "md5": ["m"]}]}
    )
    assert isinstance(hash(header), int)
    info = decode_table_list([{"name": "T", "symbol": "t", "url": "https://t.example/", "tag1": "SP"}])[0]
    assert isinstance(hash(info), int)
