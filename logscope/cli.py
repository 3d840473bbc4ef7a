"""
logscope Command Line Interface
Record listing, metric export and chart rendering for RocksDB and Pika logs.
"""

import logging
import sys
from datetime import datetime, timedelta
from typing import Optional, Tuple

import click

from logscope import __version__
from logscope.analytics.aggregate import BucketAggregator
from logscope.analytics.derived import standard_derived_series
from logscope.core.schema import AggregateMode, StreamKind, format_time
from logscope.core.utils import parse_duration, parse_time_flexible, setup_logging
from logscope.report.charts import ChartConfigError, ChartOrchestrator, load_charts_config, pick_agg_mode
from logscope.report.csv_export import MetricCSVWriter
from logscope.runner.collector import MetricCollector, expand_paths
from logscope.stream import LogOpenError

DEFAULT_BUCKET = timedelta(minutes=10)

logger = logging.getLogger("logscope.cli")


def _time_option(ctx: click.Context, param: click.Parameter, value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    try:
        return parse_time_flexible(value)
    except ValueError as e:
        raise click.BadParameter(str(e)) from None


def _duration_option(ctx: click.Context, param: click.Parameter, value: Optional[str]) -> Optional[timedelta]:
    if value is None:
        return None
    try:
        return parse_duration(value)
    except ValueError as e:
        raise click.BadParameter(str(e)) from None


def _fail(message: str) -> None:
    click.echo(click.style(f"✗ Error: {message}", fg="red"), err=True)
    sys.exit(1)


start_option = click.option(
    "--start", "-s", required=True, callback=_time_option,
    help="Window start (e.g. 2025/11/30-03:16:58.152255, 2025/11/30-03:16 or ISO-8601)",
)
end_option = click.option(
    "--end", "-e", required=True, callback=_time_option,
    help="Window end, inclusive",
)
type_option = click.option(
    "--type", "-t", "log_type", default="rocksdb",
    type=click.Choice(["rocksdb", "slowlog"], case_sensitive=False),
    help="Log framing",
)


@click.group()
@click.version_option(__version__, prog_name="logscope")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """
    logscope

    Turns RocksDB LOG files and Pika slow logs into time series:
    record segmentation, metric extraction, bucketing and charts.
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    setup_logging(verbose)


@cli.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@type_option
@start_option
@end_option
def items(path: str, log_type: str, start: datetime, end: datetime) -> None:
    """Print every record of PATH that starts within the window."""
    collector = MetricCollector(start, end)
    count = 0
    try:
        for record in collector.iter_records(StreamKind.from_name(log_type), path):
            click.echo(f"Type: {record.category.value}")
            click.echo(f"Time: {format_time(record.start_time)}")
            click.echo("Content:")
            for line in record.lines:
                click.echo(line)
            count += 1
    except LogOpenError as e:
        _fail(str(e))

    logger.info(f"{count} records in window")


@cli.command()
@click.argument("paths", nargs=-1, required=True)
@type_option
@start_option
@end_option
@click.option("--output", "-o", required=True, type=click.Path(dir_okay=False), help="CSV output path")
@click.option("--append", is_flag=True, help="Append to the output instead of overwriting it")
@click.option("--bucket", "-b", default=None, callback=_duration_option, help="Bucket width, e.g. 10m")
@click.option("--agg", "-a", default="sum", help="Aggregation: count, sum, first, avg, delta")
@click.option("--derived", is_flag=True, help="Append compaction efficiency and block cache hit ratio")
def metrics(
    paths: Tuple[str, ...],
    log_type: str,
    start: datetime,
    end: datetime,
    output: str,
    append: bool,
    bucket: Optional[timedelta],
    agg: str,
    derived: bool,
) -> None:
    """
    Extract metrics from PATHS (files or glob patterns) and write them as CSV.

    With --bucket, points are aggregated per bucket with --agg. With
    --derived, the standard derived series are appended.
    """
    kind = StreamKind.from_name(log_type)
    collector = MetricCollector(start, end)

    files = []
    for pattern in paths:
        matched = expand_paths(pattern)
        if not matched:
            logger.warning(f"No files match {pattern}")
        files.extend(matched)
    if not files:
        _fail("no input files")

    raw = []
    try:
        for path in files:
            raw.extend(collector.collect_file(kind, path))
    except LogOpenError as e:
        _fail(str(e))

    result = raw
    if bucket is not None and bucket > timedelta(0):
        mode = pick_agg_mode(agg, AggregateMode.SUM)
        result = BucketAggregator(bucket, mode).aggregate(raw)
        result.sort(key=lambda m: (m.time, m.name))

    if derived:
        result = result + standard_derived_series(raw, bucket or DEFAULT_BUCKET)

    out = MetricCSVWriter(append=append).write_file(result, output)
    click.echo(click.style(f"✓ {len(result)} metrics written to {out}", fg="green"))


@cli.command()
@click.option("--config", "-c", "config_path", required=True, type=click.Path(exists=True, dir_okay=False),
              help="Chart config (JSON or YAML)")
@start_option
@end_option
@click.option("--out-one", default=None, type=click.Path(dir_okay=False),
              help="Compose all groups into this single file")
@click.option("--bucket", "-b", default=None, callback=_duration_option,
              help="Bucket width; overrides the config")
@click.option("--group-by-category", is_flag=True, help="Keep record categories apart when bucketing")
def chart(
    config_path: str,
    start: datetime,
    end: datetime,
    out_one: Optional[str],
    bucket: Optional[timedelta],
    group_by_category: bool,
) -> None:
    """Collect metrics from the config's fileTypes and render its chart groups."""
    try:
        config = load_charts_config(config_path)
    except ChartConfigError as e:
        _fail(str(e))

    if not config.file_types:
        logger.warning(f"{config_path} defines no fileTypes, charts will be empty")

    try:
        all_metrics = MetricCollector(start, end).collect(config.file_types)
    except LogOpenError as e:
        _fail(str(e))

    step = bucket if bucket is not None else (config.bucket or DEFAULT_BUCKET)
    orchestrator = ChartOrchestrator(config.groups)

    try:
        if out_one:
            written = [orchestrator.render_single(all_metrics, out_one, step, AggregateMode.SUM, group_by_category)]
        else:
            written = orchestrator.render_all(all_metrics, step, AggregateMode.SUM, group_by_category)
    except (ChartConfigError, ValueError) as e:
        _fail(f"render charts: {e}")

    for path in written:
        click.echo(click.style(f"✓ Chart saved: {path}", fg="green"))


def main() -> None:
    """Main entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
