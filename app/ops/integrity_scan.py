"""Command line scan of the stock ledger for invariant violations.

Exit codes: 0 clean (or only warnings), 1 critical findings with
``--fail-on-critical``, 2 scan disabled by configuration.
"""

from __future__ import annotations

import argparse
import json
import sys
from collections import Counter
from dataclasses import asdict

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.ops.integrity_checks import INTEGRITY_CHECKS, IntegrityFinding, SEVERITY_CRITICAL, SEVERITY_WARN, run_integrity_checks
from app.teatrade.core.config import settings


def summarize_findings(findings: list[IntegrityFinding]) -> dict:
    severities = Counter(finding.severity for finding in findings)
    return {
        "total": len(findings),
        "critical": severities.get(SEVERITY_CRITICAL, 0),
        "warn": severities.get(SEVERITY_WARN, 0),
        "by_check": dict(Counter(finding.check_id for finding in findings)),
    }


def render_text_report(summary: dict, findings: list[IntegrityFinding]) -> str:
    lines = [
        "Ledger Integrity Scan",
        f"Findings: {summary['total']} (critical={summary['critical']} warn={summary['warn']})",
    ]
    for check_id, count in sorted(summary["by_check"].items()):
        lines.append(f"  {check_id}: {count}")
    lines.append("")
    for finding in findings:
        lines.append(f"[{finding.severity}] {finding.check_id} {finding.entity}#{finding.entity_id or '-'} {finding.message}")
        if finding.details:
            lines.append(f"  details={json.dumps(finding.details, default=str, sort_keys=True)}")
    return "\n".join(lines)


def run_scan(
    output_format: str,
    fail_on_critical: bool,
    *,
    database_url: str | None = None,
    check_ids: list[str] | None = None,
) -> int:
    if not settings.OPS_ENABLE_INTEGRITY_SCAN:
        print("Integrity scan disabled by OPS_ENABLE_INTEGRITY_SCAN.", file=sys.stderr)
        return 2
    engine = create_engine(database_url or settings.DATABASE_URL, future=True)
    try:
        with sessionmaker(bind=engine, future=True)() as db:
            findings = run_integrity_checks(db, check_ids)
    finally:
        engine.dispose()

    summary = summarize_findings(findings)
    if output_format == "json":
        report = {"summary": summary, "findings": [asdict(finding) for finding in findings]}
        print(json.dumps(report, indent=2, default=str))
    else:
        print(render_text_report(summary, findings))
    return 1 if fail_on_critical and summary["critical"] else 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Stock ledger integrity scan")
    parser.add_argument("--format", choices=["json", "text"], default="text")
    parser.add_argument("--fail-on-critical", action="store_true")
    parser.add_argument(
        "--check",
        dest="checks",
        action="append",
        choices=sorted(INTEGRITY_CHECKS),
        help="Run only the named check (repeatable).",
    )
    args = parser.parse_args(argv)
    return run_scan(args.format, args.fail_on_critical, check_ids=args.checks)


if __name__ == "__main__":
    raise SystemExit(main())
