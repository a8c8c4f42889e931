"""
Prompt construction for trust-insight synthesis.

SYSTEM_PROMPT fixes the analyst role and the JSON output schema;
build_analysis_prompt() renders one EvaluationContext plus the security
report into the user prompt.
"""

from __future__ import annotations

import json
from typing import Any

from backend_veriai.analysis_engine.aggregator import EvaluationContext
from backend_veriai.sources.models import SecurityReport

MAX_PROMPT_RATINGS = 10
MAX_FAILURES_PER_TEST = 3

SYSTEM_PROMPT = """You are a trust analyst for machine-learning models that are rated on-chain.

Your job is to judge whether a model deserves the trust its community rating
suggests. Compare what the model card claims with what independent benchmarks
measured, look for manipulation in the on-chain rating pattern, and weigh the
results of adversarial security probes.

Data you receive:
- aggregate on-chain stats and recent individual ratings (stake, score, time)
- the model card published by the model's author
- independent benchmark results
- heuristic anomaly flags with a risk score
- previous assessments and trust-score snapshots
- red-team security test results

Rules:
- cite concrete evidence: addresses, timestamps, transaction hashes, numbers
- say so explicitly when data is missing or uncertain
- stay factual; do not speculate beyond the data

Reply with a single JSON object of this shape and nothing else:
{
  "veracity": "MATCH" | "MISMATCH" | "PARTIAL_MATCH" | "UNKNOWN",
  "risk_level": "LOW" | "MEDIUM" | "HIGH" | "CRITICAL",
  "confidence": number between 0 and 1,
  "summary": "short explanation of the assessment",
  "evidence": [
    {"type": "claim_mismatch" | "anomaly_detected" | "benchmark_verification" | "rating_pattern" | "security_finding",
     "detail": "specific finding", "tx_hash": "0x... when relevant",
     "timestamp": "ISO 8601 when relevant", "severity": "low" | "medium" | "high"}
  ],
  "recommended_actions": ["flag_model" | "request_review" | "notify_users" | "investigate_further" | "continue_monitoring"],
  "trust_indicators": {
    "claimed_accuracy": number between 0 and 1,
    "measured_accuracy": number between 0 and 1,
    "rating_authenticity": number between 0 and 1,
    "community_consensus": number between 0 and 1
  }
}"""


def _json_block(value: Any, empty: str) -> str:
    if value is None:
        return empty
    return json.dumps(value, indent=2, default=str)


def _short_address(address: str) -> str:
    return f"{address[:8]}..." if len(address) > 8 else address


def render_ratings(context: EvaluationContext) -> str:
    if not context.ratings:
        return "No ratings recorded"
    lines = []
    for r in context.ratings[:MAX_PROMPT_RATINGS]:
        line = f"- {_short_address(r.user)}: {r.score}/5, stake {r.stake}, at {r.timestamp_iso}"
        if r.slashed:
            line += ", SLASHED"
        if r.tx_hash:
            line += f", tx {r.tx_hash}"
        lines.append(line)
    return "\n".join(lines)


def render_security_section(report: SecurityReport | None) -> str:
    """Human-readable red-team results: risk, counts, each test, failures, verdict."""
    if report is None:
        return ""
    lines = [
        "SECURITY TESTING (red team):",
        f"Risk Level: {report.risk_level}",
        f"Tests Run: {report.metadata.tests_run}",
        f"Tests Failed: {report.metadata.tests_failed}",
    ]
    for test in report.tests:
        lines.append(f"### {test.name}: {test.status}")
        if test.detail:
            lines.append(test.detail)
        for failure in test.failures[:MAX_FAILURES_PER_TEST]:
            text = failure.get("detail") or failure.get("vulnerability") or failure.get("risk") or ""
            if text:
                lines.append(f"  - {text}")
    if report.verdict_summary:
        lines.append(f"Verdict: {report.verdict_summary}")
    lines.append("Take these security findings into account in the trust assessment.")
    return "\n".join(lines)


def build_analysis_prompt(context: EvaluationContext, security: SecurityReport | None = None) -> str:
    stats = context.stats
    comparison = context.accuracy_comparison
    parts = [
        "Assess the trustworthiness of this model.",
        "",
        f"MODEL: {context.subject}",
        "",
        "ON-CHAIN STATS:",
        f"- Total ratings: {stats.total_ratings}",
        f"- Active ratings: {stats.active_ratings}",
        f"- Trust score: {stats.trust_score}/100",
        f"- Average score: {stats.average_score}/5",
        f"- Total staked: {stats.total_staked}",
        "",
        f"RECENT RATINGS (up to {MAX_PROMPT_RATINGS}):",
        render_ratings(context),
        "",
        "MODEL CARD:",
        _json_block(context.model_card.to_dict() if context.model_card else None, "No model card available"),
        "",
        "BENCHMARK:",
        _json_block(context.benchmark.to_dict() if context.benchmark else None, "No benchmark available"),
        "",
        "ANOMALY DETECTION:",
        _json_block(context.anomalies.to_dict(), "No anomaly data"),
        "",
        "ACCURACY COMPARISON:",
        _json_block(comparison.to_dict() if comparison else None, "Not enough accuracy data to compare"),
        "",
        "HISTORY:",
        _json_block(context.historical.to_dict() if context.historical else None, "No previous assessments"),
    ]
    security_text = render_security_section(security)
    if security_text:
        parts.extend(["", security_text])
    parts.extend(["", "Return the JSON assessment now."])
    return "\n".join(parts)
