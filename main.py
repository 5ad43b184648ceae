import argparse
import dataclasses
import json
import logging
import sys
import traceback
from typing import List, Optional

from bms_table.config import FetchSettings, lenient_settings, load_settings
from bms_table.fetcher import TableFetcher
from bms_table.scraper import HttpTransport

DEFAULT_TABLE_URL = "https://stellabms.xyz/sl/table.html"


def _dump(value) -> None:
    print(json.dumps(value, ensure_ascii=False, indent=2))


def cmd_table(fetcher: TableFetcher, args: argparse.Namespace) -> int:
    """難易度表を1つ取得して正規形JSONを出力する。"""
    table, raw = fetcher.fetch_table_full(args.url)
    out = table.to_dict()
    if args.raw:
        out = {
            "table": out,
            "raw": {
                "header_url": raw.header_url,
                "header_raw": raw.header_raw,
                "data_url": raw.data_url,
                "data_raw": raw.data_raw,
            },
        }
    _dump(out)
    return 0


def cmd_list(fetcher: TableFetcher, args: argparse.Namespace) -> int:
    """難易度表一覧を取得して出力する。"""
    _dump([t.to_dict() for t in fetcher.fetch_table_list(args.url)])
    return 0


def cmd_many(fetcher: TableFetcher, args: argparse.Namespace) -> int:
    """
    複数の難易度表を並行取得し、完了した順に1行ずつ結果を出力する。

    一部の表で失敗しても処理を継続し、失敗があった場合は終了コード1とする。
    """
    failed = 0
    for result in fetcher.fetch_tables(args.urls, max_workers=args.workers):
        if result.ok:
            table = result.table
            n_courses = sum(len(group) for group in table.header.course)
            print(
                f"OK   {table.header.name}: {len(table.data.charts)} charts, "
                f"{len(table.header.course)} course groups, {n_courses} courses ({result.url})"
            )
        else:
            failed += 1
            print(f"FAIL {result.url}: {result.error}")
    return 1 if failed else 0


def _settings(args: argparse.Namespace) -> FetchSettings:
    """--settings の内容に --lenient 指定時は証明書検証の無効化を上乗せする。"""
    if not args.settings:
        return lenient_settings() if args.lenient else FetchSettings()
    settings = load_settings(args.settings)
    if args.lenient:
        settings = dataclasses.replace(settings, accept_invalid_certs=True)
    return settings


def main(argv: Optional[List[str]] = None) -> int:
    """
    難易度表取得CLIのメイン処理。

    サブコマンド:
    - table URL [--raw]: 1表を取得して正規形JSONを出力
    - list URL: 難易度表一覧を取得して出力
    - many URL...: 複数表を並行取得して要約を出力

    失敗時はトレースバックを標準エラーへ出力し、終了コード1を返す。
    """
    parser = argparse.ArgumentParser(description="BMS difficulty table resolver")
    parser.add_argument("--settings", help="settings.yaml path")
    parser.add_argument("--lenient", action="store_true", help="Accept invalid TLS certificates")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    table_cmd = subparsers.add_parser("table", help="Fetch one difficulty table")
    table_cmd.add_argument("url", nargs="?", default=DEFAULT_TABLE_URL)
    table_cmd.add_argument("--raw", action="store_true", help="Include raw header/data text")
    table_cmd.set_defaults(func=cmd_table)

    list_cmd = subparsers.add_parser("list", help="Fetch a difficulty table list")
    list_cmd.add_argument("url")
    list_cmd.set_defaults(func=cmd_list)

    many_cmd = subparsers.add_parser("many", help="Fetch several difficulty tables concurrently")
    many_cmd.add_argument("urls", nargs="+")
    many_cmd.add_argument("--workers", type=int, default=None, help="Number of worker threads")
    many_cmd.set_defaults(func=cmd_many)

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="[%(levelname)s] %(name)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        settings = _settings(args)
        if args.command == "many" and args.workers is None:
            args.workers = settings.max_workers
        with HttpTransport(settings) as transport:
            return args.func(TableFetcher(transport), args)
    except Exception:
        print(traceback.format_exc(), file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
