"""Typer CLI entrypoint for market-digest."""

from __future__ import annotations

import json
import time
from dataclasses import dataclass
from typing import Any, Iterable, Optional

import typer
from rich import box
from rich.console import Console
from rich.table import Table

from .config import ConfigRepository, ScheduleConfig, ScheduleType
from .infra import SQLiteManager
from .logging_conf import available_job_logs, configure_logging, job_log_path, log_dir, tail_log
from .orchestrator import JobRunSummary, Orchestrator
from .scheduler import APSchedulerAdapter

app = typer.Typer(
    help="market-digest 命令行工具",
    no_args_is_help=True,
    rich_markup_mode=None,
)
job_app = typer.Typer(
    name="job",
    help="批处理任务命令",
    no_args_is_help=True,
    rich_markup_mode=None,
)
history_app = typer.Typer(
    name="history",
    help="历史与失败记录查看命令",
    no_args_is_help=True,
    rich_markup_mode=None,
)
log_app = typer.Typer(
    name="log",
    help="日志查看命令",
    no_args_is_help=True,
    rich_markup_mode=None,
)

console = Console()


@dataclass
class AppState:
    repository: ConfigRepository
    scheduler: APSchedulerAdapter
    orchestrator: Orchestrator
    storage: SQLiteManager


def build_state(verbose: bool) -> AppState:
    configure_logging(verbose=verbose)
    repository = ConfigRepository()
    scheduler = APSchedulerAdapter()
    storage = SQLiteManager()
    orchestrator = Orchestrator(
        config_repository=repository,
        scheduler=scheduler,
        storage=storage,
    )
    return AppState(
        repository=repository,
        scheduler=scheduler,
        orchestrator=orchestrator,
        storage=storage,
    )


def _get_state(ctx: typer.Context) -> AppState:
    state = ctx.obj
    if state is None:
        state = build_state(verbose=False)
        ctx.obj = state
    return state


def _format_schedule(schedule: ScheduleConfig | dict[str, Any]) -> str:
    if isinstance(schedule, dict):
        schedule = ScheduleConfig.model_validate(schedule)
    data = schedule.value
    label = schedule.type.value
    if data in (None, "", [], {}):
        return label
    if schedule.type is ScheduleType.CRON:
        return f"cron ({data}, {schedule.timezone})"
    return f"{label} ({data})"


def _render_job_config_table(rows: Iterable[dict[str, Any]]) -> Table:
    rows = list(rows)
    table = Table(title=f"批处理任务 · 共 {len(rows)} 个", box=box.SIMPLE_HEAD)
    table.add_column("任务", style="cyan", no_wrap=True)
    table.add_column("启用", style="green")
    table.add_column("调度策略", style="yellow", overflow="fold")
    table.add_column("超时 (ms)", style="magenta", justify="right")
    for row in rows:
        table.add_row(
            str(row["job"]),
            "是" if row.get("enabled") else "否",
            _format_schedule(row["schedule"]),
            str(row.get("timeout_ms", "-")),
        )
    return table


def _render_jobs_table(jobs: Iterable[dict[str, str]]) -> Table:
    table = Table(title="调度队列", box=box.SIMPLE_HEAD)
    table.add_column("任务 ID", style="cyan", no_wrap=True)
    table.add_column("下次执行", style="green")
    table.add_column("触发器", style="magenta", overflow="fold")
    for job in jobs:
        table.add_row(
            str(job.get("id", "-")),
            str(job.get("next_run_time", "-")),
            str(job.get("trigger", "-")),
        )
    return table


def _render_summary_table(summaries: Iterable[JobRunSummary]) -> Table:
    table = Table(title="运行结果", box=box.SIMPLE_HEAD)
    table.add_column("任务", style="cyan", no_wrap=True)
    table.add_column("状态码", justify="right")
    table.add_column("尝试次数", justify="right")
    table.add_column("成功", style="green")
    table.add_column("部分成功", style="yellow")
    table.add_column("错误数", style="red", justify="right")
    for summary in summaries:
        result = summary.result or {}
        table.add_row(
            summary.job,
            str(summary.http_status),
            str(summary.attempts),
            "是" if result.get("success") else "否",
            "是" if result.get("partial_success") else "否",
            str(len(result.get("errors", []))),
        )
    return table


def _run_or_exit(state: AppState, name: str) -> JobRunSummary:
    try:
        return state.orchestrator.run_job(name)
    except KeyError:
        known = ", ".join(state.orchestrator.job_names())
        console.print(f"未知任务 `{name}`，可选：{known}", style="red")
        raise typer.Exit(code=1)
    except ValueError as exc:
        console.print(f"任务 `{name}` 无法启动：{exc}", style="red")
        raise typer.Exit(code=1)


app.add_typer(job_app, name="job", help="查看与执行批处理任务（list/run/run-all）")
app.add_typer(history_app, name="history", help="查看术语历史与失败日志")
app.add_typer(log_app, name="log", help="查看或跟踪日志文件")


@app.callback()
def main(
    ctx: typer.Context, verbose: bool = typer.Option(False, "--verbose", help="开启调试日志", is_flag=True)
) -> None:
    ctx.obj = build_state(verbose)


@job_app.command("list", help="查看任务配置与调度队列。")
def job_list(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    console.print(_render_job_config_table(state.orchestrator.list_jobs()))
    jobs = state.scheduler.list_jobs()
    if jobs:
        console.print(_render_jobs_table(jobs))
    else:
        console.print("调度器中暂无任务，使用 `market-digest serve` 启动定时运行。", style="dim")


@job_app.command("run", help="立即执行指定任务（news 或 terms）。")
def job_run(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="任务名称：news / terms。"),
    as_json: bool = typer.Option(False, "--json", help="以 JSON 输出完整结果。", is_flag=True),
) -> None:
    state = _get_state(ctx)
    summary = _run_or_exit(state, name)
    console.print(_render_summary_table([summary]))
    if as_json:
        console.print_json(json.dumps(summary.as_dict(), ensure_ascii=False, default=str))
    if summary.error:
        console.print(f"任务失败：{summary.error}", style="red")
    if not summary.ok:
        raise typer.Exit(code=1)


@job_app.command("run-all", help="依次执行全部任务。")
def job_run_all(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    summaries = [_run_or_exit(state, name) for name in state.orchestrator.job_names()]
    console.print(_render_summary_table(summaries))
    failed = [summary.job for summary in summaries if not summary.ok]
    if failed:
        console.print("以下任务失败：" + ", ".join(failed), style="red")
        raise typer.Exit(code=1)


@app.command("serve", help="注册定时任务并常驻运行，Ctrl+C 退出。")
def serve(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    registered = state.orchestrator.register_schedules()
    if not registered:
        console.print("没有启用的任务，调度器未注册任何任务。", style="yellow")
    else:
        console.print("已注册任务：" + ", ".join(registered), style="green")
        console.print(_render_jobs_table(state.scheduler.list_jobs()))
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        console.print("正在停止调度器……", style="dim")
    finally:
        state.orchestrator.shutdown()


@history_app.command("terms", help="查看最近下发的术语。")
def history_terms(
    ctx: typer.Context,
    days: int = typer.Option(30, "--days", help="回溯天数。"),
) -> None:
    state = _get_state(ctx)
    rows = state.orchestrator.store.recent_history(days)
    if not rows:
        console.print("没有术语历史记录。", style="dim")
        return
    table = Table(title=f"最近 {days} 天下发的术语 · 共 {len(rows)} 条", box=box.SIMPLE_HEAD)
    table.add_column("下发时间", style="green")
    table.add_column("难度", style="magenta")
    table.add_column("术语", style="cyan", overflow="fold")
    for row in rows:
        table.add_row(str(row["delivered_at"]), str(row["difficulty"]), str(row["term_name"]))
    console.print(table)


@history_app.command("failures", help="查看最近的任务最终失败记录。")
def history_failures(
    ctx: typer.Context,
    limit: int = typer.Option(20, "--limit", help="显示记录数量。"),
) -> None:
    state = _get_state(ctx)
    rows = state.orchestrator.store.failure_logs(limit)
    if not rows:
        console.print("没有失败记录。", style="dim")
        return
    table = Table(title=f"最近 {len(rows)} 条失败记录", box=box.SIMPLE_HEAD)
    table.add_column("ID", justify="right")
    table.add_column("任务", style="cyan")
    table.add_column("日期", style="green")
    table.add_column("尝试次数", justify="right")
    table.add_column("首个错误", style="red", overflow="fold")
    for row in rows:
        payload = row["payload"]
        errors = payload.get("errors") or []
        first = errors[0].get("message", "-") if errors else "-"
        table.add_row(
            str(row["id"]),
            str(row["batch_type"]),
            str(row["date"]),
            str(payload.get("attempt_count", "-")),
            first,
        )
    console.print(table)


@history_app.command("failure", help="以 JSON 查看单条失败记录。")
def history_failure(
    ctx: typer.Context,
    log_id: int = typer.Argument(..., help="失败记录 ID。"),
) -> None:
    state = _get_state(ctx)
    row = state.orchestrator.store.failure_log(log_id)
    if row is None:
        console.print(f"失败记录 {log_id} 不存在。", style="red")
        raise typer.Exit(code=1)
    console.print_json(json.dumps(row, ensure_ascii=False, default=str))


@log_app.command("list", help="列出可用的日志文件。")
def log_list() -> None:
    logs = list(available_job_logs())
    console.print("日志文件：", style="cyan")
    if not logs:
        console.print("暂未生成任何任务日志。", style="dim")
        return
    table = Table(box=box.SIMPLE_HEAD)
    table.add_column("文件名", style="green")
    for path in logs:
        table.add_row(path.name)
    console.print(table)


@log_app.command("show", help="查看指定日志的最近内容。")
def log_show(
    name: Optional[str] = typer.Option(
        None,
        "--job",
        help="任务名称（为空则展示全局日志）。",
    ),
    tail: int = typer.Option(100, "--tail", help="显示最近 N 行内容。"),
    failures: bool = typer.Option(
        False, "--failures", help="只查看终态失败事件（failures.log）。", is_flag=True
    ),
) -> None:
    if failures:
        path, label = log_dir() / "failures.log", "失败事件"
    elif name:
        path, label = job_log_path(name), "任务日志"
    else:
        path, label = log_dir() / "digest.log", "全局日志"
    lines = tail_log(path, tail)
    if not lines:
        console.print("暂无日志信息，请稍后再试。", style="dim")
        return
    header = f"{label} · 最近 {len(lines)} 行"
    console.print(header, style="cyan")
    console.print("".join(lines))


def cli() -> None:
    app()


__all__ = ["AppState", "app", "build_state", "cli"]
