"""
Command-line runner for the community matching system.

Usage:
    python -m community_match.run submit --responses responses.csv --store store.json
    python -m community_match.run review --store store.json
    python -m community_match.run match --store store.json [--subject ID]
    python -m community_match.run poll --store store.json --subject ID
    python -m community_match.run audit --store store.json [--report report.json]

All commands accept --config to layer a YAML file over the packaged defaults.
The record store is a JSON document created on first use.
"""

import argparse
import json
import logging
import sys
from typing import Dict, Any, List, Optional

import pandas as pd

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def setup_logging(log_level: str) -> None:
    """Configure logging level from config."""
    level = getattr(logging, log_level.upper(), logging.INFO)
    logging.getLogger().setLevel(level)


def load_runtime_config(config_path: Optional[str]) -> Dict[str, Any]:
    """Load and validate configuration, logging any issues."""
    from .configs import load_config_with_defaults, validate_config

    config = load_config_with_defaults(config_path)
    for issue in validate_config(config):
        logger.warning(f"Config issue: {issue}")

    setup_logging(config.get("global", {}).get("log_level", "INFO"))
    return config


def envelope_table(envelope) -> pd.DataFrame:
    """Tabular view of a match envelope, rounded for display."""
    from .survey.schema import dimension_labels

    rows = []
    for rank, match in enumerate(envelope.matches, start=1):
        d = match.details
        rows.append({
            "rank": rank,
            "name": match.name,
            "email": match.email,
            "score": round(match.score, 1),
            "base": round(d.base_similarity, 1),
            "bonus": round(d.alignment_bonus, 1),
            "penalties": round(d.alignment_penalty + d.opposition_penalty + d.age_penalty, 1),
            "age_diff": d.age_difference,
            "shared": ", ".join(dimension_labels(match.shared_interests)),
        })
    return pd.DataFrame(rows, columns=[
        "rank", "name", "email", "score", "base", "bonus", "penalties", "age_diff", "shared"
    ])


def cmd_submit(args: argparse.Namespace, config: Dict[str, Any]) -> int:
    from .data_loading import load_survey_responses
    from .delivery import submit_response
    from .persistence import JsonFileRecordStore
    from .survey import QualityConfig

    store = JsonFileRecordStore(args.store)
    quality_config = QualityConfig.from_config(config)
    quality_config.validate()

    responses, rejected = load_survey_responses(args.responses, delimiter=args.delimiter)
    record_ids = [submit_response(store, r, quality_config).record_id for r in responses]

    logger.info(f"Submitted {len(record_ids)} responses, {len(rejected)} rows rejected")
    for row_idx, error in rejected:
        logger.warning(f"  row {row_idx}: {error}")
    print(json.dumps({"submitted": record_ids, "rejected": len(rejected)}, indent=2))
    return 0 if record_ids or not rejected else 1


def cmd_review(args: argparse.Namespace, config: Dict[str, Any]) -> int:
    from .matching import review_pending
    from .persistence import JsonFileRecordStore
    from .survey import QualityConfig

    store = JsonFileRecordStore(args.store)
    counts = review_pending(store, QualityConfig.from_config(config))
    print(json.dumps(counts, indent=2))
    return 0


def cmd_match(args: argparse.Namespace, config: Dict[str, Any]) -> int:
    from .matching import MatchingJob
    from .persistence import JsonFileRecordStore

    if args.threshold is not None:
        config["ranking"]["threshold"] = args.threshold
    if args.limit is not None:
        config["ranking"]["limit"] = args.limit

    store = JsonFileRecordStore(args.store)
    job = MatchingJob.from_config(store, config)

    if args.subject:
        envelope = job.run_for_subject(args.subject)
        print(envelope_table(envelope).to_string(index=False))
        print(f"\n{envelope.above_threshold} above threshold of {envelope.total_evaluated} evaluated "
              f"({envelope.algorithm_version})")
    else:
        envelopes = job.run_for_pool()
        summary = pd.DataFrame([
            {"subject": sid, "matches": len(e.matches),
             "above_threshold": e.above_threshold, "total_evaluated": e.total_evaluated}
            for sid, e in envelopes.items()
        ])
        print(summary.to_string(index=False) if not summary.empty else "No matchable records")
    return 0


def cmd_poll(args: argparse.Namespace, config: Dict[str, Any]) -> int:
    from .delivery import PollPolicy, DeliveryState, poll_for_matches
    from .persistence import JsonFileRecordStore

    policy = PollPolicy.from_config(config)
    if args.interval is not None:
        policy.interval_seconds = args.interval
    if args.max_attempts is not None:
        policy.max_attempts = args.max_attempts

    store = JsonFileRecordStore(args.store)
    outcome = poll_for_matches(store, args.subject, policy)

    print(outcome.user_message)
    if outcome.state == DeliveryState.MATCHED:
        print(envelope_table(outcome.envelope).to_string(index=False))
    return 1 if outcome.state == DeliveryState.FAILED else 0


def cmd_audit(args: argparse.Namespace, config: Dict[str, Any]) -> int:
    from .evaluation import create_evaluation_report
    from .matching import build_candidate_pool
    from .persistence import JsonFileRecordStore
    from .ranking import RankingConfig
    from .scoring import ScoringConfig

    store = JsonFileRecordStore(args.store)
    scoring_config = ScoringConfig.from_config(config)
    pool = build_candidate_pool(store)

    report = create_evaluation_report(
        pool,
        scoring_config,
        threshold=RankingConfig.from_config(config).threshold,
        max_pairs=args.max_pairs,
    )
    print(report.summary())
    if args.report:
        report.save(args.report)
    return 0 if report.audit.passed else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Survey vectorization and collaborator matching"
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to a YAML file layered over the packaged defaults"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    submit = subparsers.add_parser("submit", help="Submit survey responses from CSV")
    submit.add_argument("--responses", required=True, help="CSV file of survey responses")
    submit.add_argument("--store", required=True, help="JSON record store")
    submit.add_argument("--delimiter", default=",", help="CSV field delimiter")
    submit.set_defaults(handler=cmd_submit)

    review = subparsers.add_parser("review", help="Apply the quality gate to pending records")
    review.add_argument("--store", required=True, help="JSON record store")
    review.set_defaults(handler=cmd_review)

    match = subparsers.add_parser("match", help="Compute and store match envelopes")
    match.add_argument("--store", required=True, help="JSON record store")
    match.add_argument("--subject", default=None, help="Match one subject (default: whole pool)")
    match.add_argument("--threshold", type=float, default=None, help="Override ranking threshold")
    match.add_argument("--limit", type=int, default=None, help="Override ranking limit")
    match.set_defaults(handler=cmd_match)

    poll = subparsers.add_parser("poll", help="Poll for a subject's match envelope")
    poll.add_argument("--store", required=True, help="JSON record store")
    poll.add_argument("--subject", required=True, help="Subject record id")
    poll.add_argument("--interval", type=float, default=None, help="Seconds between polls")
    poll.add_argument("--max-attempts", type=int, default=None, help="Attempt ceiling")
    poll.set_defaults(handler=cmd_poll)

    audit = subparsers.add_parser("audit", help="Check scoring invariants over the pool")
    audit.add_argument("--store", required=True, help="JSON record store")
    audit.add_argument("--max-pairs", type=int, default=5000, help="Cap on pairs scored")
    audit.add_argument("--report", default=None, help="Write the JSON report here")
    audit.set_defaults(handler=cmd_audit)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    try:
        config = load_runtime_config(args.config)
        return args.handler(args, config)
    except Exception as e:
        logger.exception(f"Command {args.command} failed with error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
