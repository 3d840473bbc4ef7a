"""
Chart Configuration and Orchestration
Loads chart group definitions and turns one metric set into per-group charts.

A chart config is JSON or YAML, either a bare list of groups, an object with a
"groups" list, or the full form:

    fileTypes:
      LOG: /data/db/LOG*
      SLOWLOG: /data/pika/pika.slow*
    bucket: 10m
    groups:
      - out: charts/compaction.svg
        title: Compaction efficiency
        agg: expr
        names: [Compaction_Eff_*]
        exprs:
          - name: Compaction_Eff_default
            formula: Compaction_Write_GB_default_Sum / (Flush_GB_default_Sum + Add_GB_default_Sum)
"""

import fnmatch
import json
import logging
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from logscope.analytics.aggregate import BucketAggregator
from logscope.analytics.expression import ExpressionError, ExpressionEngine
from logscope.core.schema import AggregateMode, Metric
from logscope.core.utils import parse_duration
from logscope.report.plots import ChartRenderer

logger = logging.getLogger(__name__)

GLOB_CHARS = "*?[]"

_AGG_ALIASES = {
    "count": AggregateMode.COUNT,
    "sum": AggregateMode.SUM,
    # expressions run on SUM buckets
    "expr": AggregateMode.SUM,
    "expression": AggregateMode.SUM,
    "first": AggregateMode.FIRST,
    "avg": AggregateMode.AVG,
    "average": AggregateMode.AVG,
    "delta": AggregateMode.DELTA,
    "diff": AggregateMode.DELTA,
    "incr": AggregateMode.DELTA,
    "increment": AggregateMode.DELTA,
    "incremental": AggregateMode.DELTA,
}


class ChartConfigError(ValueError):
    """Chart configuration is unreadable, unrecognized or incomplete."""


@dataclass
class ExprSpec:
    """Computed series: name = formula."""

    name: str
    formula: str


@dataclass
class ChartGroup:
    """One chart: output path, optional title, metric names and optional expressions."""

    out: str
    title: str = ""
    names: List[str] = field(default_factory=list)
    type: str = ""
    agg: str = ""
    exprs: List[ExprSpec] = field(default_factory=list)

    @property
    def is_expr_mode(self) -> bool:
        return self.agg.strip().lower() in ("expr", "expression")

    @property
    def display_title(self) -> str:
        return self.title or f"Metrics: {', '.join(self.names)}"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChartGroup":
        if not isinstance(data, dict):
            raise ChartConfigError(f"Chart group must be a mapping, got {type(data).__name__}")
        d = {str(k).lower(): v for k, v in data.items()}
        names = d.get("names") or []
        if not isinstance(names, list):
            raise ChartConfigError(f"Chart group names must be a list, got {type(names).__name__}")
        raw_exprs = d.get("exprs") or []
        if not isinstance(raw_exprs, list):
            raise ChartConfigError(f"Chart group exprs must be a list, got {type(raw_exprs).__name__}")

        exprs = []
        for e in raw_exprs:
            if not isinstance(e, dict):
                raise ChartConfigError(f"Expression entry must be a mapping, got {type(e).__name__}")
            e = {str(k).lower(): v for k, v in e.items()}
            exprs.append(ExprSpec(name=str(e.get("name") or ""), formula=str(e.get("formula") or "")))
        return cls(
            out=str(d.get("out") or ""),
            title=str(d.get("title") or ""),
            names=[str(n) for n in names],
            type=str(d.get("type") or ""),
            agg=str(d.get("agg") or ""),
            exprs=exprs,
        )


@dataclass
class ChartsConfig:
    """Parsed chart config."""

    groups: List[ChartGroup] = field(default_factory=list)
    file_types: Dict[str, str] = field(default_factory=dict)
    bucket: Optional[timedelta] = None


def _read_config_data(path: Path) -> Any:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ChartConfigError(f"Cannot read chart config {path}: {e}") from e

    try:
        if path.suffix.lower() in (".yaml", ".yml"):
            return yaml.safe_load(text)
        return json.loads(text)
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise ChartConfigError(f"Cannot parse chart config {path}: {e}") from e


def load_charts_config(path: Union[str, Path]) -> ChartsConfig:
    """
    Load a chart config from JSON or YAML.

    Raises:
        ChartConfigError: if the file cannot be read, parsed or recognized,
            or the bucket is not a valid duration.
    """
    path = Path(path)
    data = _read_config_data(path)

    if isinstance(data, list):
        return ChartsConfig(groups=[ChartGroup.from_dict(g) for g in data])

    if not isinstance(data, dict):
        raise ChartConfigError(f"Unrecognized chart config format: {path}")

    keys = {str(k).lower(): v for k, v in data.items()}
    if "groups" not in keys and "filetypes" not in keys:
        raise ChartConfigError(f"Unrecognized chart config format: {path}")

    raw_groups = keys.get("groups") or []
    if not isinstance(raw_groups, list):
        raise ChartConfigError(f"groups in {path} must be a list, got {type(raw_groups).__name__}")
    raw_file_types = keys.get("filetypes") or {}
    if not isinstance(raw_file_types, dict):
        raise ChartConfigError(f"fileTypes in {path} must be a mapping, got {type(raw_file_types).__name__}")

    groups = [ChartGroup.from_dict(g) for g in raw_groups]
    file_types = {str(k): str(v) for k, v in raw_file_types.items()}

    bucket = None
    raw_bucket = str(keys.get("bucket") or "").strip()
    if raw_bucket:
        try:
            bucket = parse_duration(raw_bucket)
        except ValueError as e:
            raise ChartConfigError(f"Invalid bucket in {path}: {e}") from e

    logger.debug(f"Loaded {len(groups)} chart groups, {len(file_types)} file types from {path}")
    return ChartsConfig(groups=groups, file_types=file_types, bucket=bucket)


def _split_names(text: str) -> List[str]:
    return [n.strip() for n in text.split(",") if n.strip()]


def parse_charts_spec(spec: str) -> List[ChartGroup]:
    """
    Parse the inline form "out1.svg:Title A:N1,N2; out2.svg:N3".

    Raises:
        ChartConfigError: on a segment without an output path and names.
    """
    groups: List[ChartGroup] = []
    for segment in spec.split(";"):
        segment = segment.strip()
        if not segment:
            continue
        parts = segment.split(":", 2)
        if len(parts) == 3:
            groups.append(ChartGroup(out=parts[0].strip(), title=parts[1].strip(), names=_split_names(parts[2])))
        elif len(parts) == 2:
            groups.append(ChartGroup(out=parts[0].strip(), names=_split_names(parts[1])))
        else:
            raise ChartConfigError(f"Bad charts spec segment: {segment!r}")
    return groups


def pick_agg_mode(name: str, default: AggregateMode = AggregateMode.SUM) -> AggregateMode:
    """Map a user-facing aggregation name to a mode; unknown names give the default."""
    return _AGG_ALIASES.get((name or "").strip().lower(), default)


def select_metrics(metrics: List[Metric], names: List[str]) -> List[Metric]:
    """Keep metrics named exactly, or matching a glob pattern case-insensitively."""
    exact = set()
    patterns = []
    for n in names:
        n = n.strip()
        if not n:
            continue
        if any(c in n for c in GLOB_CHARS):
            patterns.append(n.lower())
        else:
            exact.add(n)

    selected = []
    for m in metrics:
        if m.name in exact:
            selected.append(m)
            continue
        lowered = m.name.lower()
        if any(fnmatch.fnmatchcase(lowered, p) for p in patterns):
            selected.append(m)
    return selected


def compute_expressions(metrics: List[Metric], exprs: List[ExprSpec]) -> List[Metric]:
    """Evaluate each expression; blank entries are ignored and failing formulas skipped."""
    engine = ExpressionEngine()
    out: List[Metric] = []
    for spec in exprs:
        name = spec.name.strip()
        formula = spec.formula.strip()
        if not name or not formula:
            continue
        try:
            out.extend(engine.compute(metrics, formula, name))
        except ExpressionError as e:
            logger.warning(f"Skipping expression {name} = {formula}: {e}")
    return out


class ChartOrchestrator:
    """
    Renders chart groups from one metric set.

    Each group aggregates with its own mode (or the default), evaluates its
    expressions on the aggregated set and then selects its names.
    """

    def __init__(self, groups: List[ChartGroup], renderer: Optional[ChartRenderer] = None):
        self.groups = groups
        self.renderer = renderer or ChartRenderer()

    def prepare_group(
        self,
        metrics: List[Metric],
        group: ChartGroup,
        bucket_step: timedelta = timedelta(0),
        default_mode: AggregateMode = AggregateMode.SUM,
        group_by_category: bool = False,
    ) -> List[Metric]:
        """Metrics a group will draw."""
        selected = metrics
        if bucket_step > timedelta(0):
            mode = pick_agg_mode(group.agg, default_mode)
            selected = BucketAggregator(bucket_step, mode, group_by_category).aggregate(selected)

        if group.exprs:
            computed = compute_expressions(selected, group.exprs)
            if group.is_expr_mode:
                if computed:
                    selected = computed
            else:
                selected = selected + computed

        return select_metrics(selected, group.names)

    def render_all(
        self,
        metrics: List[Metric],
        bucket_step: timedelta = timedelta(0),
        default_mode: AggregateMode = AggregateMode.SUM,
        group_by_category: bool = False,
    ) -> List[Path]:
        """
        Render each group to its own output file.

        Groups that select nothing are skipped with a warning.

        Raises:
            ChartConfigError: if a group has no output path.
        """
        written: List[Path] = []
        for group in self.groups:
            if not group.out:
                raise ChartConfigError("Chart group missing out path")

            selected = self.prepare_group(metrics, group, bucket_step, default_mode, group_by_category)
            if not any(m.time is not None for m in selected):
                logger.warning(f"No metrics for chart {group.out}, skipping")
                continue

            self.renderer.title = group.display_title
            written.append(self.renderer.render(selected, group.out))
        return written

    def render_single(
        self,
        metrics: List[Metric],
        out: Union[str, Path],
        bucket_step: timedelta = timedelta(0),
        default_mode: AggregateMode = AggregateMode.SUM,
        group_by_category: bool = False,
    ) -> Path:
        """
        Compose all non-empty groups into one figure.

        Raises:
            ChartConfigError: if there are no groups or none selects anything.
        """
        if not self.groups:
            raise ChartConfigError("No chart groups")

        panels = []
        for group in self.groups:
            selected = self.prepare_group(metrics, group, bucket_step, default_mode, group_by_category)
            if any(m.time is not None for m in selected):
                panels.append((group.display_title, selected))
            else:
                logger.warning(f"No metrics for panel {group.display_title!r}, leaving it out")

        if not panels:
            raise ChartConfigError("No chart group selected any metrics")

        self.renderer.title = ""
        return self.renderer.render_grid(panels, out)
