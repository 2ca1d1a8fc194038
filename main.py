#!/usr/bin/env python3
"""Site360 Control Engine - CLI Entry Point."""
import sys
import json
import time
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent))

import click
from rich.console import Console
from rich.table import Table

from __version__ import __version__

console = Console()


def _init_components(config_path=None, verbose=False):
    """Lazy initialization of all components."""
    from utils.logger import setup_logging
    from config import load_config, rules_path
    from models.database import Database
    from scoring import ScoringEngine
    from alerts.rules_manager import RulesManager
    from alerts.engine import AlertDispatcher
    from alerts.channels import build_channels
    from pipeline import ControlPipeline

    config = load_config(config_path)
    log_cfg = config.get("logging", {})
    setup_logging("DEBUG" if verbose else log_cfg.get("level", "INFO"), log_cfg.get("file"))

    db = Database(config["database"]["path"])
    db.connect()

    scoring = ScoringEngine.from_config(config)
    rules = RulesManager(rules_path(config))

    # Console only if running interactively
    channels = build_channels(config, interactive=sys.stdout.isatty())
    dispatcher = AlertDispatcher(channels)

    pipeline = ControlPipeline(db, scoring, dispatcher, rules, config)

    return {
        "config": config, "db": db, "scoring": scoring, "rules": rules,
        "dispatcher": dispatcher, "pipeline": pipeline,
    }


@click.group()
@click.option("--config", "config_path", default=None, help="Path to config YAML")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.version_option(__version__, prog_name="site360")
@click.pass_context
def cli(ctx, config_path, verbose):
    """Site360 Control Engine - control scores, threshold alerts & dashboards."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["verbose"] = verbose


def _get_components(ctx):
    if "_components" not in ctx.obj:
        ctx.obj["_components"] = _init_components(ctx.obj.get("config_path"), ctx.obj.get("verbose"))
    return ctx.obj["_components"]


def _print_errors(errors, limit=20):
    for err in errors[:limit]:
        console.print(f"  [yellow]![/yellow] {err}")
    if len(errors) > limit:
        console.print(f"  [dim]... and {len(errors) - limit} more[/dim]")


def _print_run(result):
    s = result.summary()
    prefix = "[dim](dry run)[/dim] " if result.dry_run else ""
    console.print(f"{prefix}[green]✓[/green] {s['records']} records → {s['observations']} observations "
                  f"→ {s['scores']} scores")
    console.print(f"  Alerts: {s['alerts_created']} created, {s['alerts_updated']} updated, "
                  f"{s['alerts_resolved']} resolved, {s['alerts_unchanged']} unchanged")
    if result.dry_run and result.mutations:
        for m in result.mutations:
            console.print(f"  [dim]{m.kind}[/dim] {_describe_mutation(m)}")
    if s["conflicts"]:
        console.print(f"  [yellow]{s['conflicts']} alert write(s) skipped: changed concurrently[/yellow]")
    if result.errors:
        console.print(f"[yellow]{len(result.errors)} record(s) skipped:[/yellow]")
        _print_errors(result.errors)


def _describe_mutation(m):
    if m.kind == "create":
        a = m.alert
        return f"{a.severity.value.upper()} {a.site_id}/{a.dimension.value if a.dimension else '-'}: {a.title}"
    return f"alert #{m.alert_id}"


def _score_table(scores, title="Control Scores", show_site=True):
    from utils.constants import dimension_label
    from utils.formatters import format_score, format_trend

    table = Table(title=title, show_header=True)
    if show_site:
        table.add_column("Site", style="dim")
    table.add_column("Dimension")
    table.add_column("Score", justify="right")
    table.add_column("Trend", justify="center")
    table.add_column("Date", style="dim")
    table.add_column("Top factor", style="dim")
    for s in scores:
        worst = min(s.factors.items(), key=lambda kv: kv[1]["contribution"], default=None)
        factor = f"{worst[0]} ({worst[1]['contribution']:+.1f})" if worst else ""
        row = [dimension_label(s.dimension), format_score(s.score, with_color=True),
               format_trend(s.trend, with_color=True), s.date.isoformat(), factor]
        if show_site:
            row.insert(0, s.site_id)
        table.add_row(*row)
    return table


# ──────────────────────────────────────────────────────
# INGEST / RUN
# ──────────────────────────────────────────────────────
@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def ingest(ctx, file, as_json):
    """Ingest a JSON-lines record file and store its observations."""
    c = _get_components(ctx)
    result = c["pipeline"].ingest_file(file)
    if as_json:
        click.echo(json.dumps({
            "records": result.records,
            "observations": result.observations,
            "errors": [e.to_dict() for e in result.errors],
        }, indent=2))
        return
    console.print(f"[green]✓[/green] {result.records} records → {result.observations} observations stored")
    if result.errors:
        console.print(f"[yellow]{len(result.errors)} record(s) skipped:[/yellow]")
        _print_errors(result.errors)


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--date", "day", default=None, help="Score every record as of this date (YYYY-MM-DD)")
@click.option("--dry-run", is_flag=True, help="Compute scores and alert changes without writing")
@click.pass_context
def run(ctx, file, day, dry_run):
    """Run the full pipeline over a record file."""
    c = _get_components(ctx)
    result = c["pipeline"].run_file(file, day=day, dry_run=dry_run)
    _print_run(result)
    if dry_run and result.scores:
        console.print(_score_table(result.scores, title="Computed Scores (not saved)"))


# ──────────────────────────────────────────────────────
# SCORES
# ──────────────────────────────────────────────────────
@cli.command()
@click.argument("site")
@click.option("--date", "day", default=None, help="Date to score (default: latest observed day)")
@click.option("--dimension", default=None, help="Show only this dimension")
@click.option("--dry-run", is_flag=True, help="Compute without writing")
@click.pass_context
def score(ctx, site, day, dimension, dry_run):
    """Recompute a site's scores from stored observations."""
    c = _get_components(ctx)
    if day is None:
        days = c["db"].get_observation_days(site)
        if not days:
            console.print(f"[dim]No observations for site {site}[/dim]")
            return
        day = days[-1]

    result = c["pipeline"].rescore(site, day, dry_run=dry_run)
    scores = result.scores
    if dimension:
        scores = [s for s in scores if s.dimension.value == dimension]
    if not scores:
        console.print(f"[dim]No scores for {site} on {day}[/dim]")
        return
    console.print(_score_table(scores, title=f"{site} - {day}", show_site=False))
    for s in scores:
        if s.recommendations and (dimension or s.score < 80):
            console.print(f"[bold]{s.dimension.value}[/bold]: {s.recommendations.replace(chr(10), '; ')}")
    _print_run(result)


@cli.command()
@click.option("--site", default=None, help="Filter by site")
@click.pass_context
def scores(ctx, site):
    """Show the latest score per site and dimension."""
    c = _get_components(ctx)
    latest = c["db"].get_latest_scores(site)
    if not latest:
        console.print("[dim]No scores yet. Run: python main.py run <file>[/dim]")
        return
    console.print(_score_table(latest, title="Latest Control Scores", show_site=site is None))


# ──────────────────────────────────────────────────────
# ALERTS
# ──────────────────────────────────────────────────────
@cli.group()
def alerts():
    """Alert management."""
    pass


@alerts.command("list")
@click.option("--status", default=None,
              type=click.Choice(["active", "acknowledged", "resolved", "dismissed", "open"]))
@click.option("--site", default=None, help="Filter by site")
@click.option("--limit", default=50, type=int)
@click.pass_context
def alerts_list(ctx, status, site, limit):
    """List alerts (newest first)."""
    c = _get_components(ctx)
    from utils.formatters import format_severity, time_ago
    from utils.constants import dimension_label

    if status == "open":
        items = c["db"].get_open_alerts(site)[:limit]
    else:
        items = c["db"].get_alerts(status=status, site_id=site, limit=limit)
    if not items:
        console.print("[dim]No alerts[/dim]")
        return
    table = Table(title="Alerts", show_header=True)
    table.add_column("ID", style="dim")
    table.add_column("Severity")
    table.add_column("Site")
    table.add_column("Dimension")
    table.add_column("Title")
    table.add_column("Status")
    table.add_column("Raised", style="dim")
    for a in items:
        table.add_row(str(a.id), format_severity(a.severity, with_color=True), a.site_id,
                      dimension_label(a.dimension), a.title, a.status.value, time_ago(a.created_at))
    console.print(table)


@alerts.command("rules")
@click.pass_context
def alerts_rules(ctx):
    """List all configured threshold rules."""
    c = _get_components(ctx)
    rules = c["rules"].get_all_rules()
    table = Table(title="Threshold Rules", show_header=True)
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("Dimension")
    table.add_column("Condition")
    table.add_column("Severity")
    table.add_column("Enabled")
    for r in rules:
        table.add_row(r.id, r.dimension.value, f"{r.metric_key} {r.comparator} {r.bound:g}",
                      r.severity.value, "[green]✓[/green]" if r.enabled else "[red]✗[/red]")
    console.print(table)


def _transition(ctx, alert_id, action, by, action_taken=None):
    from alerts.lifecycle import TRANSITIONS, InvalidTransition

    c = _get_components(ctx)
    alert = c["db"].get_alert(alert_id)
    if alert is None:
        console.print(f"[red]Alert {alert_id} not found[/red]")
        ctx.exit(1)

    kwargs = {"action_taken": action_taken} if action != "acknowledge" else {}
    try:
        updated = TRANSITIONS[action](alert, by, **kwargs)
    except InvalidTransition as e:
        console.print(f"[red]{e}[/red]")
        ctx.exit(1)

    if not c["db"].save_alert_transition(alert, updated):
        console.print(f"[red]Alert {alert_id} changed while updating; try again[/red]")
        ctx.exit(1)
    console.print(f"[green]✓[/green] Alert {alert_id} {updated.status.value} by {by}")


@alerts.command("ack")
@click.argument("alert_id", type=int)
@click.option("--by", required=True, help="Who is acknowledging")
@click.pass_context
def alerts_ack(ctx, alert_id, by):
    """Acknowledge an active alert."""
    _transition(ctx, alert_id, "acknowledge", by)


@alerts.command("resolve")
@click.argument("alert_id", type=int)
@click.option("--by", required=True, help="Who resolved it")
@click.option("--action", "action_taken", default=None, help="Action taken")
@click.pass_context
def alerts_resolve(ctx, alert_id, by, action_taken):
    """Resolve an open alert."""
    _transition(ctx, alert_id, "resolve", by, action_taken)


@alerts.command("dismiss")
@click.argument("alert_id", type=int)
@click.option("--by", required=True, help="Who dismissed it")
@click.option("--action", "action_taken", default=None, help="Reason or action taken")
@click.pass_context
def alerts_dismiss(ctx, alert_id, by, action_taken):
    """Dismiss an open alert without resolving it."""
    _transition(ctx, alert_id, "dismiss", by, action_taken)


# ──────────────────────────────────────────────────────
# DASHBOARD
# ──────────────────────────────────────────────────────
@cli.command()
@click.pass_context
def quick(ctx):
    """Print single-line status summary."""
    c = _get_components(ctx)
    from dashboard.app import Dashboard
    console.print(Dashboard(c["db"], c["config"]).quick_status())


@cli.command()
@click.option("--site", default=None, help="Focus on one site")
@click.option("--refresh", default=None, type=int, help="Refresh interval in seconds")
@click.pass_context
def dashboard(ctx, site, refresh):
    """Launch the terminal dashboard."""
    c = _get_components(ctx)
    if refresh:
        c["config"].setdefault("dashboard", {})["refresh_interval"] = refresh

    from dashboard.app import Dashboard
    Dashboard(c["db"], c["config"], site_id=site).run()


@cli.command()
@click.option("--port", default=None, type=int, help="Port to bind to")
@click.option("--host", default=None, type=str, help="Host to bind to")
@click.pass_context
def web(ctx, port, host):
    """Launch the read-only web dashboard."""
    from web.app import create_app

    c = _get_components(ctx)
    web_cfg = c["config"].get("web", {})
    host = host or web_cfg.get("host", "127.0.0.1")
    port = port or web_cfg.get("port", 5000)

    app = create_app(c["config"], {"db": c["db"]})

    console.print(f"\n[bold #FFB300]Site360 -- Web Dashboard[/bold #FFB300]\n")
    console.print(f"  Local:    http://{host}:{port}")
    console.print(f"  API:      http://{host}:{port}/api/scores")
    console.print(f"\n  Press Ctrl+C to stop.\n")

    app.run(host=host, port=port, debug=False)


# ──────────────────────────────────────────────────────
# WATCH
# ──────────────────────────────────────────────────────
@cli.command()
@click.argument("directory", type=click.Path(file_okay=False))
@click.option("--interval", default=None, type=int, help="Seconds between polls (min 10)")
@click.pass_context
def watch(ctx, directory, interval):
    """Watch a directory for *.jsonl record files and run each through the pipeline."""
    from config import MIN_WATCH_INTERVAL
    from pipeline.scheduler import InboxWatcher

    c = _get_components(ctx)
    pipeline_cfg = c["config"]["pipeline"]
    interval = interval or pipeline_cfg.get("watch_interval", 60)
    if interval < MIN_WATCH_INTERVAL:
        raise click.BadParameter(f"must be >= {MIN_WATCH_INTERVAL}", param_hint="--interval")

    Path(directory).mkdir(parents=True, exist_ok=True)
    watcher = InboxWatcher(c["pipeline"], directory, interval,
                           processed_dir=pipeline_cfg.get("inbox_processed_dir", "processed"))
    watcher.on_run(lambda path, result: _print_run(result))

    console.print(f"[bold #FFB300]Watching {directory}[/bold #FFB300] every {interval}s. Ctrl+C to stop.")
    watcher.start()
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        pass
    finally:
        watcher.stop()


if __name__ == "__main__":
    cli()
