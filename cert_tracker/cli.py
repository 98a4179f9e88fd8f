from __future__ import annotations

import argparse
import calendar
import json
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Optional, Sequence

from cert_tracker import __version__ as TOOL_VERSION
from cert_tracker.config import (
    CLASSIFICATION_TIERS,
    DATE_FALLBACKS,
    MIGRATION_POLICIES,
    REVENUE_BANDS,
    ImportSettings,
    load_tables,
)
from cert_tracker.contracts import build_run_summary, cycle_payload, import_payload, simulation_payload
from cert_tracker.errors import ConfigurationError, FileReadError, SheetImportError
from cert_tracker.importer import batch_stamp, import_file, merge_imports
from cert_tracker.scoring import cycle_result, default_cycle
from cert_tracker.shared import (
    CATEGORY_LABELS,
    PARTNER_LABELS,
    PARTNERS,
    SOURCES,
    TIER_LABELS,
    ClassificationTier,
    CycleResult,
    ImportResult,
)
from cert_tracker.simulator import simulate_from_cycle, target_for_tier

EXIT_SUCCESS = 0
EXIT_COMMAND_ERROR = 1
EXIT_IMPORT_FAILED = 2

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class CliError(Exception):
    def __init__(self, message: str, code: int = EXIT_COMMAND_ERROR) -> None:
        super().__init__(message)
        self.code = code


class CertTrackerArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> None:
        raise CliError(message, EXIT_COMMAND_ERROR)


def eprint(message: str) -> None:
    print(message, file=sys.stderr)


def emit_human(message: str, *, quiet: bool = False) -> None:
    if not quiet:
        eprint(message)


def json_dumps(payload: Any) -> str:
    return json.dumps(payload, indent=2, ensure_ascii=False, sort_keys=True)


def write_json(path: Path, payload: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json_dumps(payload), encoding="utf-8")


def configure_logging(args: argparse.Namespace) -> None:
    level = logging.WARNING
    if getattr(args, "verbose", False):
        level = logging.DEBUG
    elif getattr(args, "quiet", False):
        level = logging.ERROR
    logging.basicConfig(level=level, format=LOG_FORMAT, stream=sys.stderr)


def classify_exception(exc: Exception) -> int:
    if isinstance(exc, CliError):
        return exc.code
    if isinstance(exc, (FileReadError, SheetImportError)):
        return EXIT_IMPORT_FAILED
    return EXIT_COMMAND_ERROR


# ── Argument helpers ───────────────────────────────────────────────────────────

def parse_month(text: str, *, end: bool = False) -> datetime:
    try:
        month_start = datetime.strptime(text.strip(), "%Y-%m")
    except ValueError as exc:
        raise CliError(f"Expected YYYY-MM, got '{text}'", EXIT_COMMAND_ERROR) from exc
    if not end:
        return month_start
    last_day = calendar.monthrange(month_start.year, month_start.month)[1]
    return month_start.replace(day=last_day)


def parse_target(text: str, tiers: Optional[Sequence[ClassificationTier]] = None) -> float:
    try:
        return float(text.replace(",", "."))
    except ValueError:
        pass
    try:
        return target_for_tier(text, tiers)
    except ConfigurationError as exc:
        names = [tier.name for tier in (tiers or CLASSIFICATION_TIERS)]
        raise CliError(f"Target must be a score or a tier name ({', '.join(names)}): {text}") from exc


def settings_from_args(args: argparse.Namespace) -> ImportSettings:
    base = ImportSettings.from_env()
    return ImportSettings(
        migration_policy=args.migrations or base.migration_policy,
        date_fallback=args.date_fallback or base.date_fallback,
        numeric_scale=base.numeric_scale,
    )


def sources_for(inputs: list[str], sources: list[str]) -> list[str]:
    if len(sources) == 1:
        return sources * len(inputs)
    if len(sources) != len(inputs):
        raise CliError("Give one --source for all files or one --source per file.", EXIT_COMMAND_ERROR)
    return sources


def import_inputs(args: argparse.Namespace) -> list[ImportResult]:
    settings = settings_from_args(args)
    paths = [Path(item) for item in args.inputs]
    for path in paths:
        if not path.exists():
            raise CliError(f"File not found: {path}", EXIT_COMMAND_ERROR)

    base_stamp = batch_stamp(datetime.now())
    results = []
    for index, (path, source) in enumerate(zip(paths, sources_for(args.inputs, args.source)), start=1):
        stamp = base_stamp if len(paths) == 1 else f"{base_stamp}.{index}"
        results.append(
            import_file(path, source, sheet_name=args.sheet_name, settings=settings, stamp=stamp)
        )
    return results


def tables_from_args(args: argparse.Namespace) -> dict[str, Any]:
    if args.tables:
        return load_tables(args.tables)
    return {"bands": REVENUE_BANDS, "tiers": CLASSIFICATION_TIERS}


def score_inputs(
    args: argparse.Namespace,
    results: list[ImportResult],
    tables: Optional[dict[str, Any]] = None,
) -> CycleResult:
    tables = tables or tables_from_args(args)
    default_start, default_end = default_cycle()
    start = parse_month(args.start) if args.start else default_start
    end = parse_month(args.end, end=True) if args.end else default_end
    return cycle_result(
        merge_imports(*results),
        start,
        end,
        bands=tables["bands"],
        tiers=tables["tiers"],
        partner=args.partner,
    )


# ── Rendering ──────────────────────────────────────────────────────────────────

def render_import_text(result: ImportResult, input_path: str) -> str:
    lines = [
        "cert-tracker import",
        f"File: {input_path}",
        f"Source: {result.source}",
        f"Rows read: {result.rows_total}",
        f"Records: {len(result.records)} ({len(result.sales)} sales, {len(result.migrations)} migrations)",
        f"Bundles: {len(result.bundles)}",
        f"Skipped rows: {len(result.skipped)}",
    ]
    reasons: dict[str, int] = {}
    for row in result.skipped:
        reasons[row.reason] = reasons.get(row.reason, 0) + 1
    lines.extend(f"- {reason}: {count}" for reason, count in sorted(reasons.items()))
    if result.missing_columns:
        lines.append(f"Missing columns: {', '.join(result.missing_columns)}")
    if result.warnings:
        lines.append(f"Warnings: {len(result.warnings)}")
    return "\n".join(lines) + "\n"


def render_cycle_text(cycle: CycleResult, partner: Optional[str] = None) -> str:
    lines = [
        "cert-tracker score",
        f"Cycle: {cycle.start:%Y-%m} .. {cycle.end:%Y-%m}",
        f"Partner: {PARTNER_LABELS[partner] if partner else 'all'}",
        f"Records scored: {len(cycle.records)}",
        "Months:",
    ]
    for month in cycle.months:
        marker = "" if month.has_revenue else " (no revenue)"
        lines.append(f"- {month.key}: {month.points_total} pts, R$ {month.total_revenue:,.2f}{marker}")
        for category, points in month.points.items():
            if month.revenue[category] > 0:
                lines.append(f"    {CATEGORY_LABELS[category]}: {points} pts")
    lines.extend(
        [
            f"Average score: {cycle.average_score:.2f} ({cycle.active_months} active month(s))",
            f"Tier: {TIER_LABELS.get(cycle.tier, cycle.tier)}",
            f"Bonus: {cycle.bonus_percent:g}%",
        ]
    )
    return "\n".join(lines) + "\n"


def render_simulation_text(payload: dict[str, Any]) -> str:
    return (
        "cert-tracker simulate\n"
        f"Target score: {payload['target_score']}\n"
        f"Current score: {payload['current_score']}\n"
        f"Points needed: {payload['points_needed']}\n"
        f"Points per month: {payload['points_per_month']}\n"
        f"Revenue needed per month: R$ {payload['revenue_needed_per_month']:,.2f}\n"
        f"Success probability: {payload['success_probability']:.0f}%\n"
        f"Projected tier: {payload['projected_tier_label']}\n"
    )


# ── Parser ─────────────────────────────────────────────────────────────────────

def _add_import_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--source",
        action="append",
        required=True,
        type=str.upper,
        choices=SOURCES,
        help="Source tag; once for all files or once per file",
    )
    parser.add_argument("--sheet", dest="sheet_name", help="Workbook sheet name (first sheet by default)")
    parser.add_argument("--migrations", choices=MIGRATION_POLICIES, help="Skip or retain migration rows")
    parser.add_argument("--date-fallback", dest="date_fallback", choices=DATE_FALLBACKS, help="Invalid date policy")
    parser.add_argument("--json", action="store_true", help="Write machine JSON to stdout")
    parser.add_argument("-o", "--output", help="Write the JSON payload to this path")
    parser.add_argument("-q", "--quiet", action="store_true", help="Minimal human logs")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")


def _add_cycle_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--start", help="First cycle month, YYYY-MM")
    parser.add_argument("--end", help="Last cycle month, YYYY-MM")
    parser.add_argument("--partner", type=str.upper, choices=PARTNERS, help="Score a single partner")
    parser.add_argument("--tables", help="JSON file overriding the band and tier tables")


def build_parser() -> argparse.ArgumentParser:
    parser = CertTrackerArgumentParser(prog="cert-tracker", description="Sales certification tracker")
    subparsers = parser.add_subparsers(dest="command", required=True)

    import_cmd = subparsers.add_parser("import", help="Import one sales export and list its records.")
    import_cmd.add_argument("inputs", nargs=1, metavar="input", help="Input file path")
    _add_import_options(import_cmd)

    score = subparsers.add_parser("score", help="Score a certification cycle from sales exports.")
    score.add_argument("inputs", nargs="+", metavar="input", help="Input file paths")
    _add_import_options(score)
    _add_cycle_options(score)

    simulate = subparsers.add_parser("simulate", help="Project what it takes to reach a target score.")
    simulate.add_argument("inputs", nargs="+", metavar="input", help="Input file paths")
    simulate.add_argument("--target", required=True, help="Target score or tier name (e.g. 3500, PRATA)")
    simulate.add_argument("--months", required=True, type=int, help="Months remaining in the cycle")
    _add_import_options(simulate)
    _add_cycle_options(simulate)

    subparsers.add_parser("version", help="Print version")
    return parser


# ── Commands ───────────────────────────────────────────────────────────────────

def emit_payload(args: argparse.Namespace, payload: dict[str, Any]) -> None:
    if args.output:
        write_json(Path(args.output), payload)
        emit_human(f"Output written: {args.output}", quiet=args.quiet)
    if args.json:
        print(json_dumps(payload))


def run_import(args: argparse.Namespace) -> int:
    try:
        (result,) = import_inputs(args)
        payload = import_payload(result)
        payload["run_summary"] = build_run_summary(
            tool="cert-tracker",
            command="import",
            input_paths=[Path(args.inputs[0])],
            output_path=Path(args.output) if args.output else None,
            metrics={"records": len(result.records), "skipped": len(result.skipped)},
            warnings=result.warnings,
        )
        emit_payload(args, payload)
        if not args.json:
            emit_human(render_import_text(result, args.inputs[0]).rstrip(), quiet=args.quiet)
        return EXIT_SUCCESS
    except Exception as exc:
        eprint(str(exc))
        return classify_exception(exc)


def run_score(args: argparse.Namespace) -> int:
    try:
        results = import_inputs(args)
        cycle = score_inputs(args, results)
        warnings = [warning for result in results for warning in result.warnings]
        payload = cycle_payload(cycle)
        payload["run_summary"] = build_run_summary(
            tool="cert-tracker",
            command="score",
            input_paths=[Path(item) for item in args.inputs],
            output_path=Path(args.output) if args.output else None,
            metrics={"average_score": cycle.average_score, "records_scored": len(cycle.records)},
            warnings=warnings,
        )
        emit_payload(args, payload)
        if not args.json:
            emit_human(render_cycle_text(cycle, args.partner).rstrip(), quiet=args.quiet)
        return EXIT_SUCCESS
    except Exception as exc:
        eprint(str(exc))
        return classify_exception(exc)


def run_simulate(args: argparse.Namespace) -> int:
    try:
        tables = tables_from_args(args)
        target = parse_target(args.target, tables["tiers"])
        if args.months < 0:
            raise CliError("--months cannot be negative", EXIT_COMMAND_ERROR)
        cycle = score_inputs(args, import_inputs(args), tables)
        result = simulate_from_cycle(cycle, target, args.months, tables["tiers"])
        payload = simulation_payload(result)
        emit_payload(args, payload)
        if not args.json:
            emit_human(render_simulation_text(payload).rstrip(), quiet=args.quiet)
        return EXIT_SUCCESS
    except Exception as exc:
        eprint(str(exc))
        return classify_exception(exc)


def run_version() -> int:
    print(TOOL_VERSION)
    return EXIT_SUCCESS


def main(argv: list[str] | None = None) -> int:
    try:
        parser = build_parser()
        args = parser.parse_args(argv)
        configure_logging(args)
        if args.command == "import":
            return run_import(args)
        if args.command == "score":
            return run_score(args)
        if args.command == "simulate":
            return run_simulate(args)
        if args.command == "version":
            return run_version()
        raise CliError(f"Unknown command: {args.command}", EXIT_COMMAND_ERROR)
    except CliError as exc:
        eprint(str(exc))
        return exc.code


if __name__ == "__main__":
    raise SystemExit(main())
