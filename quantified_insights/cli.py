"""Command-line interface for Quantified Insights."""

import json
import logging

import click
from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from rich import box

from .config import config
from .analysis.metric_catalog import AVAILABLE_METRICS

console = Console()


def _escape(text: str) -> str:
    return str(text).replace('[', r'\[').replace(']', r'\]')


def _format_r(r: float) -> str:
    """Color-code a correlation coefficient by magnitude."""
    if abs(r) >= 0.7:
        return f"[bold green]{r:+.3f}[/bold green]"
    elif abs(r) >= 0.5:
        return f"[yellow]{r:+.3f}[/yellow]"
    return f"{r:+.3f}"


def _format_confidence(confidence: str) -> str:
    if confidence == 'strong':
        return "[bold green]Strong[/bold green]"
    elif confidence == 'moderate':
        return "[yellow]Moderate[/yellow]"
    elif confidence == 'exploratory':
        return "[dim]Exploratory[/dim]"
    return "[dim]None[/dim]"


@click.group()
@click.option('--database-url', default=None, help='Override DATABASE_URL')
@click.pass_context
def cli(ctx, database_url):
    """Discover relationships between daily personal metrics."""
    logging.basicConfig(
        level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj['database_url'] = database_url


def _build_engine(ctx):
    from .db import Database
    from .db.source import MetricSource
    from .analysis.data_aggregator import DailyMetricAggregator
    from .analysis.correlation_discovery import CorrelationDiscoveryEngine

    db = Database(ctx.obj.get('database_url'))
    db.create_tables()
    return CorrelationDiscoveryEngine(aggregator=DailyMetricAggregator(source=MetricSource(db)))


@cli.command(name='init-db')
@click.pass_context
def init_db(ctx):
    """Create the daily source tables."""
    from .db import Database

    db = Database(ctx.obj.get('database_url'))
    db.create_tables()
    console.print(f"[green]✅ Tables ready at {_escape(db.database_url)}[/green]")


@cli.command()
def metrics():
    """List the metrics available for correlation analysis."""
    table = Table(show_header=True, header_style="bold magenta", box=box.ROUNDED)
    table.add_column("Key", style="cyan")
    table.add_column("Label")
    table.add_column("Unit", justify="center")
    table.add_column("Type", justify="center", style="dim")

    for metric in AVAILABLE_METRICS:
        kind = "binary" if metric.is_boolean else "continuous"
        if metric.is_lagged:
            kind += ", lagged"
        table.add_row(metric.key, metric.label, metric.unit, kind)

    console.print(table)


@cli.group()
def insights():
    """Correlation discovery between daily metrics."""
    pass


@insights.command(name='correlations')
@click.option('--days', default=config.CORRELATION_DAYS, type=click.IntRange(7, 365),
              help='Days of historical data to analyze')
@click.option('--p-value', 'p_value_threshold', default=config.CORRELATION_P_VALUE_THRESHOLD,
              type=click.FloatRange(0, 1), help='Maximum p-value for a finding')
@click.option('--min-r', 'min_abs_r', default=config.CORRELATION_MIN_ABS_R,
              type=click.FloatRange(0, 1), help='Minimum absolute correlation coefficient')
@click.option('--metric', 'metric_keys', multiple=True, help='Restrict analysis to these metrics')
@click.option('--workers', default=config.CORRELATION_MAX_WORKERS, type=click.IntRange(1, 64),
              help='Threads used to evaluate metric pairs')
@click.option('--export', help='Export results to JSON file')
@click.pass_context
def correlations(ctx, days, p_value_threshold, min_abs_r, metric_keys, workers, export):
    """
    Discover significant correlations across all metric pairs.

    Pairs are ranked by p-value, then by correlation strength.
    """
    from .analysis.correlation_discovery import DiscoveryOptions

    console.print(Panel.fit("📊 Correlation Discovery", style="bold black"))

    engine = _build_engine(ctx)
    engine.max_workers = workers
    options = DiscoveryOptions(
        days=days,
        p_value_threshold=p_value_threshold,
        min_abs_r=min_abs_r,
        metrics_to_analyze=tuple(metric_keys) if metric_keys else None,
    )

    unknown = [key for key in metric_keys if key not in engine.metrics_by_key]
    if unknown:
        console.print(f"[yellow]⚠️  Ignoring unknown metrics: {_escape(', '.join(unknown))}[/yellow]")

    try:
        findings = engine.discover_correlations(options)
    except ValueError as e:
        console.print(f"[red]❌ {_escape(e)}[/red]")
        ctx.exit(1)

    # Findings carry the window they were computed over
    date_range = findings[0].date_range if findings else engine.date_range_for(days)
    console.print(f"Period: {date_range.start} to {date_range.end}")

    if not findings:
        console.print("[yellow]⚠️  No significant correlations found.[/yellow]")
    else:
        console.print(f"\n[green]✅ {len(findings)} correlations found[/green]\n")

        table = Table(show_header=True, header_style="bold magenta", box=box.ROUNDED)
        table.add_column("#", justify="right", style="dim")
        table.add_column("Finding", width=60)
        table.add_column("r", justify="right")
        table.add_column("p", justify="right")
        table.add_column("Confidence", justify="center")
        table.add_column("n", justify="right", style="dim")

        for i, finding in enumerate(findings, 1):
            result = finding.correlation
            table.add_row(
                str(i),
                _escape(finding.interpretation),
                _format_r(result.r),
                f"{result.p_value:.4f}",
                _format_confidence(result.confidence),
                str(result.n),
            )

        console.print(table)

    if export:
        payload = {
            'correlations': [finding.to_dict() for finding in findings],
            'count': len(findings),
            'parameters': {
                'days': days,
                'p_value_threshold': p_value_threshold,
                'min_abs_r': min_abs_r,
            },
        }
        with open(export, 'w') as f:
            json.dump(payload, f, indent=2)
        console.print(f"\n[green]✅ Results exported to {_escape(export)}[/green]")


@insights.command(name='pair')
@click.argument('metric_a')
@click.argument('metric_b')
@click.option('--days', default=config.CORRELATION_DAYS, type=click.IntRange(7, 365),
              help='Days of historical data to analyze')
@click.pass_context
def pair(ctx, metric_a, metric_b, days):
    """Show the correlation between two specific metrics."""
    engine = _build_engine(ctx)
    finding = engine.get_correlation_between(metric_a, metric_b, days=days)

    if finding is None:
        console.print(
            f"[yellow]⚠️  No correlation available for {_escape(metric_a)} and {_escape(metric_b)} "
            f"(unknown metric or fewer than {engine.min_sample_size} shared days).[/yellow]"
        )
        return

    result = finding.correlation
    console.print(Panel.fit(
        f"{finding.metric_a.label} × {finding.metric_b.label}",
        style="bold black"
    ))
    console.print(f"  r: {_format_r(result.r)} ({result.strength})")
    console.print(f"  p: {result.p_value:.4f} ({_format_confidence(result.confidence)})")
    console.print(f"  n: {result.n}")
    console.print(f"\n💡 {_escape(finding.interpretation)}")


@insights.command(name='summary')
@click.argument('metric_key')
@click.option('--days', default=config.CORRELATION_DAYS, type=click.IntRange(7, 365),
              help='Days of historical data to analyze')
@click.pass_context
def summary(ctx, metric_key, days):
    """Summarize one metric over the window."""
    engine = _build_engine(ctx)
    stats = engine.summarize_metric(metric_key, days=days)

    if stats is None:
        console.print(f"[yellow]⚠️  No numeric data for {_escape(metric_key)}.[/yellow]")
        return

    metric = stats['metric']
    console.print(Panel.fit(f"{metric['label']} ({metric['unit']})", style="bold black"))
    console.print(f"  Days with data: {stats['n']} ({stats['first_date']} to {stats['last_date']})")
    console.print(f"  Mean: {stats['mean']:.2f} ± {stats['std']:.2f}")
    console.print(f"  Range: {stats['min']:.2f} – {stats['max']:.2f}")


def main():
    """Main entry point."""
    try:
        config.validate()
        cli()
    except KeyboardInterrupt:
        console.print("\n[yellow]Operation cancelled by user.[/yellow]")
    except Exception as e:
        console.print(f"[red]❌ Unexpected error: {_escape(e)}[/red]")


if __name__ == "__main__":
    main()
