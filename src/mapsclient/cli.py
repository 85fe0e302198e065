"""CLIエントリポイント。"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from mapsclient.config import DEFAULT_BASE_URL, RateBudget
from mapsclient.enums import ApiCategory, normalize_api


def _require_typer() -> Any:
    try:
        import typer
    except ImportError as exc:
        raise RuntimeError(
            "CLIには typer が必要です。pip install 'mapsclient[cli]' を実行してください。"
        ) from exc
    return typer


def parse_param(text: str) -> tuple[str, str]:
    """`key=value` 形式のクエリ指定を分解する。"""

    key, sep, value = text.partition("=")
    if not sep or not key.strip():
        raise ValueError(f"--param は key=value 形式で指定してください: {text!r}")
    return key.strip(), value


def parse_rate(text: str) -> tuple[ApiCategory, RateBudget]:
    """`api=calls/seconds` 形式のレート指定を分解する。

    例: ``places=2/10`` は10秒あたり2回。
    """

    api_text, sep, budget_text = text.partition("=")
    calls_text, slash, seconds_text = budget_text.partition("/")
    if not sep or not slash:
        raise ValueError(f"--rate は api=calls/seconds 形式で指定してください: {text!r}")
    try:
        budget = RateBudget(max_calls=int(calls_text), per_interval=float(seconds_text))
    except ValueError as exc:
        raise ValueError(f"--rate の値を解釈できません: {text!r}") from exc
    return normalize_api(api_text), budget


def _dump_result(result: Any, out: Path | None) -> str:
    text = json.dumps(result, ensure_ascii=False, indent=2, default=str)
    if out is not None:
        out.write_text(text, encoding="utf-8")
    return text


def app_entry() -> None:
    """CLIアプリを起動する。"""

    typer = _require_typer()
    from mapsclient import CallContext, MapsClient, MapsError

    app = typer.Typer(no_args_is_help=True)

    @app.command("get")
    def get_command(
        api: str = typer.Argument(...),
        path: str = typer.Argument(...),
        param: list[str] | None = typer.Option(None, "--param", "-p"),
        rate: list[str] | None = typer.Option(None, "--rate"),
        base_url: str = typer.Option(DEFAULT_BASE_URL, "--base-url"),
        max_retries: int = typer.Option(20, "--max-retries"),
        timeout: float | None = typer.Option(None, "--timeout"),
        out: Path | None = typer.Option(None, "--out"),
        verbose: bool = typer.Option(False, "--verbose"),
    ) -> None:
        """エンドポイントへGET要求を送り、JSONを出力する。"""

        if verbose:
            logging.basicConfig(level=logging.DEBUG)
        try:
            params = dict(parse_param(item) for item in param or [])
            rate_limits = dict(parse_rate(item) for item in rate or [])
        except ValueError as exc:
            raise typer.BadParameter(str(exc)) from exc

        context = CallContext(timeout=timeout) if timeout is not None else None
        with MapsClient(
            base_url=base_url,
            rate_limits=rate_limits,
            retry_max_retries=max_retries,
        ) as client:
            try:
                result = client.request(api, path, params, context=context)
            except MapsError as exc:
                typer.echo(f"error: {exc}", err=True)
                raise typer.Exit(code=1) from exc
        text = _dump_result(result, out)
        if out is None:
            typer.echo(text)

    app()


if __name__ == "__main__":
    app_entry()
