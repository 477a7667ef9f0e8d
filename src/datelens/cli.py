"""CLI entrypoint for datelens."""

import argparse
import os
import sys
import time
from pathlib import Path

import httpx

from datelens import __version__
from datelens.config import Settings
from datelens.costs import CostTracker
from datelens.io import (
    ConversationDatasetError,
    load_dataset_jsonl,
    save_json,
    save_text,
    validate_dataset_jsonl,
)
from datelens.mock_data import generate_mock_dataset
from datelens.models import LLMJsonClient, OpenAIJsonClient
from datelens.observability import configure_logging, tracing_status
from datelens.pipeline import (
    StageError,
    analyze_metadata,
    detect_significant_conversations,
    run_two_stage_analysis,
)
from datelens.reports import render_report_markdown
from datelens.schemas import Dataset


def _format_duration(seconds: float) -> str:
    if seconds < 0 or not (seconds < float("inf")):
        return "--:--"
    total = int(seconds)
    minutes, secs = divmod(total, 60)
    hours, minutes = divmod(minutes, 60)
    if hours > 0:
        return f"{hours:02d}:{minutes:02d}:{secs:02d}"
    return f"{minutes:02d}:{secs:02d}"


class _EtaProgressPrinter:
    """Print progress updates with elapsed time and ETA."""

    def __init__(self, label: str) -> None:
        self._label = label
        self._started_at = time.perf_counter()

    def __call__(self, done: int, total: int) -> None:
        capped_total = max(total, 1)
        capped_done = max(0, min(done, capped_total))
        elapsed = max(0.0, time.perf_counter() - self._started_at)
        eta = float("inf")
        if capped_done > 0 and elapsed > 0:
            eta = (capped_total - capped_done) / (capped_done / elapsed)
        print(
            "    "
            f"{self._label}: {capped_done}/{capped_total} ({capped_done / capped_total:.0%}) "
            f"| elapsed {_format_duration(elapsed)} | ETA {_format_duration(eta)}"
        )


def _add_dataset_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--input",
        type=str,
        default=None,
        help="Path to message JSONL. Defaults to configured input_path.",
    )
    parser.add_argument(
        "--mock",
        action="store_true",
        help="Analyze the built-in synthetic dataset instead of an input file.",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=7,
        help="Seed for the synthetic dataset (with --mock).",
    )
    parser.add_argument(
        "--user-id",
        type=str,
        default=None,
        help="Id of the analyzed user. Inferred from 'user' direction messages when omitted.",
    )
    parser.add_argument(
        "--platform",
        type=str,
        default="unknown",
        help="Source platform name, used in reports.",
    )
    parser.add_argument(
        "--output-json",
        type=str,
        default=None,
        help="Path for the JSON result. Defaults to a file under the configured output_dir.",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="datelens",
        description="Layered safety and insight analysis for dating conversation history",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--config",
        type=str,
        default="configs/default.yaml",
        help="Path to YAML config file (default: configs/default.yaml)",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default="WARNING",
        help="Logging level for pipeline diagnostics (default: WARNING)",
    )

    sub = parser.add_subparsers(dest="command")

    sub.add_parser("info", help="Show current configuration")
    doctor_parser = sub.add_parser(
        "doctor",
        help="Run environment and filesystem diagnostics before first run.",
    )
    doctor_parser.add_argument(
        "--network-check",
        action="store_true",
        help="Perform a lightweight completion endpoint reachability check.",
    )

    validate_parser = sub.add_parser(
        "validate-input",
        help="Validate message JSONL against the input contract.",
    )
    validate_parser.add_argument(
        "--input",
        type=str,
        default=None,
        help="Path to message JSONL. Defaults to configured input_path.",
    )
    validate_parser.add_argument(
        "--max-errors",
        type=int,
        default=100,
        help="Maximum detailed line-level errors to retain in report output.",
    )
    validate_parser.add_argument(
        "--report-json",
        type=str,
        default=None,
        help="Optional path to write full validation report as JSON.",
    )

    analyze_parser = sub.add_parser(
        "analyze",
        help="Run safety screening followed by deep analysis.",
    )
    _add_dataset_arguments(analyze_parser)
    analyze_parser.add_argument(
        "--output-markdown",
        type=str,
        default=None,
        help="Optional path to also write the combined report as markdown.",
    )

    significance_parser = sub.add_parser(
        "significance",
        help="Find conversations that led somewhere meaningful.",
    )
    _add_dataset_arguments(significance_parser)

    metadata_parser = sub.add_parser(
        "metadata",
        help="Summarize activity volume and timeline without any completion calls.",
    )
    _add_dataset_arguments(metadata_parser)

    return parser


def cmd_info(settings: Settings) -> None:
    tracing = tracing_status()

    print(f"datelens v{__version__}")
    print(f"  Base URL:         {settings.resolved_base_url() or '(default OpenAI)'}")
    print(f"  Key source:       {settings.resolved_key_source()}")
    print(f"  Safety model:     {settings.safety_model}")
    print(f"  Pattern model:    {settings.pattern_model}")
    print(f"  Chronology model: {settings.chronology_model}")
    print(f"  Risk model:       {settings.risk_model}")
    print(f"  Attachment model: {settings.attachment_model}")
    print(f"  Growth model:     {settings.growth_model}")
    print(f"  Crisis model:     {settings.crisis_model}")
    print(f"  Significance model: {settings.significance_model}")
    print(f"  Client retries:   {settings.client_max_retries}")
    print(f"  Backoff seconds:  {settings.client_backoff_seconds}")
    print(f"  Recency window:   {settings.recency_window_days} days")
    print(f"  Safety sample:    {settings.safety_max_messages} messages")
    print(f"  Chunk budget:     {settings.max_tokens_per_chunk} tokens")
    print(f"  Risk threshold:   {settings.risk_escalation_level}")
    print(f"  Complexity threshold: {settings.complexity_threshold}")
    print(f"  Growth min months: {settings.min_months_for_growth}")
    print(f"  Significance batch: {settings.significance_batch_size}")
    print(f"  Batch delay:      {settings.significance_batch_delay_seconds}s")
    print(f"  Budget limit:     ${settings.budget_limit_usd:.2f}")
    print(f"  LangSmith tracing: {tracing['enabled']}")
    print(f"  LangSmith project: {tracing['project'] or '(not set)'}")
    print(f"  LangSmith key set: {tracing['api_key_present']}")
    print(f"  Input file:       {settings.input_path}")
    print(f"  Output dir:       {settings.output_dir}")


def _check_write_access(directory: Path) -> tuple[bool, str]:
    """Verify write permission for one directory via a temp file."""

    try:
        directory.mkdir(parents=True, exist_ok=True)
        marker = directory / f".doctor_write_check_{os.getpid()}"
        marker.write_text("ok", encoding="utf-8")
        marker.unlink()
    except OSError as exc:
        return False, str(exc)
    return True, "writable"


def _check_endpoint(url: str, *, timeout_seconds: float = 5.0) -> tuple[bool, str]:
    """Best-effort network reachability check for one URL."""

    try:
        response = httpx.get(url, timeout=timeout_seconds, follow_redirects=True)
    except httpx.HTTPError as exc:
        return False, str(exc)
    return True, f"http_status={response.status_code}"


def cmd_doctor(settings: Settings, args: argparse.Namespace) -> None:
    """Run readiness diagnostics for the local environment."""

    checks: list[dict[str, str]] = []

    input_path = settings.input_path
    checks.append(
        {
            "name": "input_dataset_exists",
            "status": "pass" if input_path.exists() else "warn",
            "detail": str(input_path),
        }
    )

    write_ok, write_detail = _check_write_access(settings.output_dir)
    checks.append(
        {
            "name": "output_dir_writable",
            "status": "pass" if write_ok else "fail",
            "detail": f"{settings.output_dir} ({write_detail})",
        }
    )

    api_key = settings.resolved_api_key()
    checks.append(
        {
            "name": "api_key_present",
            "status": "pass" if api_key else "fail",
            "detail": settings.resolved_key_source(),
        }
    )

    tracing = tracing_status()
    tracing_enabled = bool(tracing["enabled"])
    checks.append(
        {
            "name": "langsmith_config",
            "status": (
                "pass" if (not tracing_enabled or bool(tracing["api_key_present"])) else "warn"
            ),
            "detail": (
                "enabled+key_set"
                if tracing_enabled and tracing["api_key_present"]
                else ("enabled_no_key" if tracing_enabled else "disabled")
            ),
        }
    )

    if args.network_check:
        endpoint_url = (settings.resolved_base_url() or "https://api.openai.com/v1/") + "models"
        endpoint_ok, endpoint_detail = _check_endpoint(endpoint_url)
        checks.append(
            {
                "name": "completion_endpoint_reachable",
                "status": "pass" if endpoint_ok else "warn",
                "detail": f"{endpoint_url} ({endpoint_detail})",
            }
        )

    print("datelens doctor")
    for item in checks:
        print(f"  - {item['name']}: {item['status']} ({item['detail']})")

    fail_count = sum(1 for item in checks if item["status"] == "fail")
    warn_count = sum(1 for item in checks if item["status"] == "warn")
    print("")
    print(f"Doctor result: {fail_count} fail, {warn_count} warn")
    if fail_count > 0:
        sys.exit(1)


def cmd_validate_input(settings: Settings, args: argparse.Namespace) -> None:
    """Validate message input format and print a report."""

    input_path = args.input or str(settings.input_path)
    try:
        report = validate_dataset_jsonl(input_path, max_errors=args.max_errors)
    except ConversationDatasetError as exc:
        print(f"Input validation failed: {exc}")
        sys.exit(1)
    except ValueError as exc:
        print(f"Input validation configuration error: {exc}")
        sys.exit(1)

    print("Input validation complete.")
    print(f"  Schema version:    {report.schema_version}")
    print(f"  Input path:        {report.input_path}")
    print(f"  Total lines:       {report.total_lines}")
    print(f"  Non-empty lines:   {report.non_empty_lines}")
    print(f"  Valid messages:    {report.valid_message_count}")
    print(f"  Invalid lines:     {report.invalid_line_count}")
    print(f"  Duplicate IDs:     {report.duplicate_message_id_count}")
    print(f"  Matches:           {report.summary.match_count}")
    print(f"  Avg per match:     {report.summary.avg_messages_per_match:.2f}")

    if args.report_json:
        report_path = save_json(args.report_json, report.to_dict())
        print(f"  Report JSON:       {report_path}")

    if report.is_valid:
        print("Validation passed: input JSONL matches the message contract.")
        return

    print("Validation failed: fix input errors before running an analysis.")
    if report.errors:
        print("  Sample errors:")
        for item in report.errors[:5]:
            print(f"    - line {item.line_number} [{item.code}] {item.message}")
        if report.dropped_error_count > 0:
            print(
                "    - "
                f"... {report.dropped_error_count} additional errors omitted "
                f"(max-errors={args.max_errors})."
            )
    sys.exit(1)


def _load_dataset(settings: Settings, args: argparse.Namespace) -> Dataset:
    if args.mock:
        dataset = generate_mock_dataset(seed=args.seed)
        print(f"Using mock dataset: {len(dataset.messages)} messages")
        return dataset

    input_path = args.input or str(settings.input_path)
    try:
        dataset = load_dataset_jsonl(input_path, user_id=args.user_id, platform=args.platform)
    except ConversationDatasetError as exc:
        print(f"Dataset load failed: {exc}")
        sys.exit(1)
    print(f"Loaded {len(dataset.messages)} messages from {input_path}")
    return dataset


def _build_client(settings: Settings) -> LLMJsonClient:
    if not settings.resolved_api_key():
        print(f"Missing API key: set {settings.resolved_key_source().split()[0]}.")
        sys.exit(1)
    return OpenAIJsonClient.from_settings(settings)


def _output_path(settings: Settings, args: argparse.Namespace, default_name: str) -> Path:
    if args.output_json:
        return Path(args.output_json)
    return settings.output_dir / default_name


def cmd_analyze(settings: Settings, args: argparse.Namespace) -> None:
    """Run the two-stage analysis and write its reports."""

    dataset = _load_dataset(settings, args)
    client = _build_client(settings)
    tracker = CostTracker(settings.budget_limit_usd)

    print("Running safety screening and deep analysis...")
    try:
        result = run_two_stage_analysis(dataset, client, settings, cost_tracker=tracker)
    except StageError as exc:
        print(f"Analysis failed: {exc}")
        sys.exit(1)

    safety = result.safety
    processing = result.processing
    print(f"  Risk level:       {safety.risk_level.upper()}")
    print(f"  Red flags:        {len(safety.red_flags)}")
    print(f"  Escalated:        {processing.escalated}")
    if processing.escalation_reason:
        print(f"  Escalation reason: {processing.escalation_reason}")
    evaluators = result.deep_analysis.triggered_evaluators
    print(f"  Evaluators run:   {', '.join(evaluators) or 'none'}")
    print(f"  Total cost:       ${processing.total_cost_usd:.4f}")
    print(f"  Duration:         {_format_duration(processing.total_duration_ms / 1000.0)}")

    json_path = save_json(_output_path(settings, args, "analysis.json"), result)
    print(f"  Report JSON:      {json_path}")
    if args.output_markdown:
        markdown = render_report_markdown(result.stage1_report, result.stage2_report)
        markdown_path = save_text(args.output_markdown, markdown)
        print(f"  Report markdown:  {markdown_path}")


def cmd_significance(settings: Settings, args: argparse.Namespace) -> None:
    """Score every conversation for significance and write the result."""

    dataset = _load_dataset(settings, args)
    client = _build_client(settings)
    tracker = CostTracker(settings.budget_limit_usd)

    print("Scoring conversations for significance...")
    result = detect_significant_conversations(
        dataset,
        client,
        settings,
        cost_tracker=tracker,
        progress_callback=_EtaProgressPrinter("Significance batches"),
    )
    statistics = result.statistics
    print(
        f"  Significant:      {statistics.total_significant}/{statistics.total_conversations} "
        f"({statistics.percentage_significant:.1f}%)"
    )
    breakdown = statistics.breakdown
    print(f"  Led to date:      {breakdown.led_to_date}")
    print(f"  Contact exchange: {breakdown.contact_exchange}")
    print(f"  Unusual length:   {breakdown.unusual_length}")
    print(f"  Emotional depth:  {breakdown.emotional_depth}")
    print(f"  Total cost:       ${result.cost_usd:.4f}")

    json_path = save_json(_output_path(settings, args, "significance.json"), result)
    print(f"  Result JSON:      {json_path}")


def cmd_metadata(settings: Settings, args: argparse.Namespace) -> None:
    """Print and save the activity summary."""

    dataset = _load_dataset(settings, args)
    result = analyze_metadata(dataset)
    print(result.summary)
    print(result.assessment)
    print(f"  Matches:          {result.volume.total_matches}")
    print(f"  Messages:         {result.volume.total_messages}")
    print(f"  Active conversations: {result.volume.active_conversations}")
    if result.timeline.peak_activity_period:
        print(f"  Peak period:      {result.timeline.peak_activity_period}")

    json_path = save_json(_output_path(settings, args, "metadata.json"), result)
    print(f"  Result JSON:      {json_path}")


def main() -> None:
    parser = build_parser()
    args = parser.parse_args()

    try:
        configure_logging(args.log_level)
    except ValueError as exc:
        print(f"Invalid --log-level: {exc}")
        sys.exit(2)

    settings = Settings.from_yaml(args.config)

    if args.command == "info":
        cmd_info(settings)
    elif args.command == "doctor":
        cmd_doctor(settings, args)
    elif args.command == "validate-input":
        cmd_validate_input(settings, args)
    elif args.command == "analyze":
        cmd_analyze(settings, args)
    elif args.command == "significance":
        cmd_significance(settings, args)
    elif args.command == "metadata":
        cmd_metadata(settings, args)
    else:
        parser.print_help()
        sys.exit(0)


if __name__ == "__main__":
    main()
