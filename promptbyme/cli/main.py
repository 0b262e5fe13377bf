"""promptbyme CLI — pbm command."""

from __future__ import annotations

import json
import sys
from typing import Any, NoReturn

import click

from promptbyme.cli.client import PromptByMeClient
from promptbyme.core.differ import LineDiffer


def _format_table(rows: list[dict], columns: list[str]) -> str:
    """Simple table formatter."""
    if not rows:
        return "No results."
    widths = {c: len(c) for c in columns}
    for row in rows:
        for c in columns:
            widths[c] = max(widths[c], len(str(row.get(c, ""))))

    header = "  ".join(c.upper().ljust(widths[c]) for c in columns)
    separator = "  ".join("-" * widths[c] for c in columns)
    lines = [header, separator]
    for row in rows:
        lines.append("  ".join(str(row.get(c, "")).ljust(widths[c]) for c in columns))
    return "\n".join(lines)


def _output(ctx: click.Context, data: Any, columns: list[str] | None = None) -> None:
    fmt = ctx.meta.get("output_format", "table")
    if fmt == "table" and isinstance(data, list) and columns:
        click.echo(_format_table(data, columns))
    else:
        click.echo(json.dumps(data, indent=2, default=str))


def _parse_vars(pairs: tuple[str, ...]) -> dict[str, str]:
    """``--var name=value`` pairs to a dict; the value may itself contain '='."""
    variables: dict[str, str] = {}
    for pair in pairs:
        name, sep, value = pair.partition("=")
        if not sep or not name:
            raise click.BadParameter(f"Expected NAME=VALUE, got '{pair}'", param_hint="--var")
        variables[name] = value
    return variables


def _fail(e: RuntimeError) -> NoReturn:
    click.echo(str(e), err=True)
    sys.exit(1)


def _read_content(file_path: str | None) -> str:
    """Prompt content from --file, or stdin when no file is given."""
    if file_path:
        with open(file_path) as f:
            return f.read()
    return sys.stdin.read()


@click.group()
@click.option("--api", default="http://localhost:8400", envvar="PBM_API", help="API base URL")
@click.option("--format", "output_format", type=click.Choice(["table", "json"]), default="table")
@click.option("--key", default=None, envvar="PBM_API_KEY", help="promptbyme API key (pbm_...)")
@click.pass_context
def cli(ctx: click.Context, api: str, output_format: str, key: str | None) -> None:
    """promptbyme CLI — run prompts and flows, browse versions and logs."""
    ctx.obj = PromptByMeClient(base_url=api, api_key=key)
    ctx.meta["output_format"] = output_format


def _provider_options(func):
    func = click.option("--provider-key", envvar="PBM_PROVIDER_KEY", required=True,
                        help="AI provider API key")(func)
    func = click.option("--provider", default=None, help="openai, anthropic, google, llama, groq")(func)
    func = click.option("--model", default=None)(func)
    func = click.option("--temperature", type=float, default=None)(func)
    func = click.option("--max-tokens", type=int, default=None)(func)
    func = click.option("--var", "variables", multiple=True, help="NAME=VALUE (repeatable)")(func)
    return func


def _execution_body(
    provider_key: str,
    provider: str | None,
    model: str | None,
    temperature: float | None,
    max_tokens: int | None,
    variables: tuple[str, ...],
) -> dict[str, Any]:
    body: dict[str, Any] = {"api_key": provider_key, "variables": _parse_vars(variables)}
    for field, value in (
        ("provider", provider),
        ("model", model),
        ("temperature", temperature),
        ("max_tokens", max_tokens),
    ):
        if value is not None:
            body[field] = value
    return body


@cli.command("run")
@click.argument("prompt_id")
@click.option("--password", default=None)
@_provider_options
@click.pass_context
def run(ctx: click.Context, prompt_id: str, password: str | None, **options: Any) -> None:
    """Execute a stored prompt."""
    client: PromptByMeClient = ctx.obj
    body = _execution_body(**options)
    body["prompt_id"] = prompt_id
    if password:
        body["password"] = password
    try:
        result = client.run_prompt(body)
    except RuntimeError as e:
        _fail(e)
    if ctx.meta.get("output_format") == "json":
        _output(ctx, result)
    else:
        click.echo(result["output"])


# --- Flow commands ---


@cli.group()
def flow() -> None:
    """Run and inspect flows."""


@flow.command("run")
@click.argument("flow_id")
@_provider_options
@click.pass_context
def flow_run(ctx: click.Context, flow_id: str, **options: Any) -> None:
    """Execute every step of a flow in order."""
    client: PromptByMeClient = ctx.obj
    body = _execution_body(**options)
    body["flow_id"] = flow_id
    try:
        result = client.run_flow(body)
    except RuntimeError as e:
        _fail(e)
    if ctx.meta.get("output_format") == "json":
        _output(ctx, result)
        return
    for step in result["flow"]["steps"]:
        click.echo(f"=== {step['order_index'] + 1}. {step['title']} ===")
        click.echo(result["step_outputs"][str(step["id"])])
        click.echo()


@flow.command("list")
@click.pass_context
def flow_list(ctx: click.Context) -> None:
    """List your flows."""
    client: PromptByMeClient = ctx.obj
    _output(ctx, client.list_flows(), ["id", "name", "description"])


@flow.command("show")
@click.argument("flow_id")
@click.pass_context
def flow_show(ctx: click.Context, flow_id: str) -> None:
    """Show a flow and its steps."""
    client: PromptByMeClient = ctx.obj
    _output(ctx, client.get_flow(flow_id))


# --- Prompt commands ---


@cli.group()
def prompt() -> None:
    """Browse and manage prompts."""


@prompt.command("list")
@click.option("--tag", default=None)
@click.option("--search", default=None)
@click.pass_context
def prompt_list(ctx: click.Context, tag: str | None, search: str | None) -> None:
    """List your prompts."""
    client: PromptByMeClient = ctx.obj
    params = {k: v for k, v in (("tag", tag), ("search", search)) if v}
    _output(ctx, client.list_prompts(**params), ["id", "title", "access", "current_version"])


@prompt.command("show")
@click.argument("prompt_id")
@click.option("--password", default=None, help="Password of a protected prompt you do not own")
@click.pass_context
def prompt_show(ctx: click.Context, prompt_id: str, password: str | None) -> None:
    """Show prompt details."""
    client: PromptByMeClient = ctx.obj
    _output(ctx, client.get_prompt(prompt_id, password))


@prompt.command("create")
@click.option("--title", default=None)
@click.option("--file", "-f", "file_path", default=None, help="Read content from file")
@click.option("--public", is_flag=True, default=False)
@click.option("--tags", default="")
@click.pass_context
def prompt_create(
    ctx: click.Context, title: str | None, file_path: str | None, public: bool, tags: str
) -> None:
    """Create a prompt from a file or stdin."""
    client: PromptByMeClient = ctx.obj
    content = _read_content(file_path)
    data = {
        "title": title,
        "content": content,
        "access": "public" if public else "private",
        "tags": [t.strip() for t in tags.split(",") if t.strip()],
    }
    _output(ctx, client.create_prompt(data))


@prompt.command("commit")
@click.argument("prompt_id")
@click.option("--message", "-m", default=None)
@click.option("--title", default=None)
@click.option("--file", "-f", "file_path", default=None, help="Read content from file")
@click.pass_context
def prompt_commit(
    ctx: click.Context,
    prompt_id: str,
    message: str | None,
    title: str | None,
    file_path: str | None,
) -> None:
    """Save new content as the next version."""
    client: PromptByMeClient = ctx.obj
    content = _read_content(file_path)
    result = client.commit_version(
        prompt_id, {"content": content, "title": title, "commit_message": message}
    )
    click.echo(f"Committed version {result['version_number']}")


@prompt.command("versions")
@click.argument("prompt_id")
@click.pass_context
def prompt_versions(ctx: click.Context, prompt_id: str) -> None:
    """List version history, newest first."""
    client: PromptByMeClient = ctx.obj
    _output(
        ctx,
        client.list_versions(prompt_id),
        ["version_number", "commit_message", "is_current", "created_at"],
    )


@prompt.command("diff")
@click.argument("prompt_id")
@click.argument("v1", type=int)
@click.argument("v2", type=int)
@click.pass_context
def prompt_diff(ctx: click.Context, prompt_id: str, v1: int, v2: int) -> None:
    """Line diff between two versions."""
    client: PromptByMeClient = ctx.obj
    data = client.diff_versions(prompt_id, v1, v2)
    if ctx.meta.get("output_format") == "json":
        _output(ctx, data)
    else:
        click.echo(LineDiffer().human_readable(data))


@prompt.command("revert")
@click.argument("prompt_id")
@click.argument("version", type=int)
@click.pass_context
def prompt_revert(ctx: click.Context, prompt_id: str, version: int) -> None:
    """Restore an earlier version as a new version."""
    client: PromptByMeClient = ctx.obj
    result = client.revert(prompt_id, version)
    click.echo(f"Reverted to version {version} (now version {result['version_number']})")


@prompt.command("fork")
@click.argument("prompt_id")
@click.option("--title", default=None)
@click.option("--password", default=None, help="Password of a protected prompt you do not own")
@click.pass_context
def prompt_fork(
    ctx: click.Context, prompt_id: str, title: str | None, password: str | None
) -> None:
    """Fork a prompt into your library."""
    client: PromptByMeClient = ctx.obj
    try:
        result = client.fork_prompt(prompt_id, title, password)
    except RuntimeError as e:
        _fail(e)
    click.echo(f"Forked as {result['id']} ({result['title']})")


# --- Logs / keys ---


@cli.command("logs")
@click.option("--endpoint", default=None, help="e.g. /run-prompt-api")
@click.option("--status", type=int, default=None)
@click.option("--limit", type=int, default=20)
@click.pass_context
def logs(ctx: click.Context, endpoint: str | None, status: int | None, limit: int) -> None:
    """Show recent execution calls."""
    client: PromptByMeClient = ctx.obj
    params: dict[str, Any] = {"limit": limit}
    if endpoint:
        params["endpoint"] = endpoint
    if status is not None:
        params["status"] = status
    _output(
        ctx,
        client.list_logs(**params),
        ["created_at", "method", "endpoint", "status", "duration_ms"],
    )


@cli.command("rotate-key")
@click.pass_context
def rotate_key(ctx: click.Context) -> None:
    """Issue a new API key, invalidating the current one."""
    client: PromptByMeClient = ctx.obj
    click.echo(client.rotate_key()["api_key"])


if __name__ == "__main__":
    cli()
