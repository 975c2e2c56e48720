"""
Entry point for the Market Research Synthesis Pipeline.

Usage:
  # Run a demo against the offline stub ports (no API keys needed):
  python main.py demo ["app for music streaming"]

  # Run one query against the live ports and print the report JSON:
  python main.py run "restaurant for Nepali cuisine in London" [--user-id U] [--thread-id T]

  # Start the FastAPI server:
  python main.py api

  # Run tests:
  python main.py test
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys

from config.settings import settings

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    datefmt="%H:%M:%S",
)

logger = logging.getLogger("main")

DEMO_QUERY = "app for music streaming"


def print_report(report) -> None:
    print("\n" + "=" * 70)
    print("  MARKET RESEARCH REPORT")
    print("=" * 70)
    print(f"  Report ID  : {report.report_id}")
    print(f"  Thread ID  : {report.query.thread_id}")
    print(f"  Query      : {report.query.text}")
    print(f"  Category   : {report.competitors.category}")
    print(f"  Timestamp  : {report.created_at.isoformat()}")
    print("=" * 70)

    print("\n🏢 COMPETITORS")
    print("-" * 70)
    for c in report.competitors.competitors:
        print(f"  {c.name}")
        if c.app_store_url:
            print(f"       App Store  : {c.app_store_url}")
        if c.google_play_url:
            print(f"       Google Play: {c.google_play_url}")

    print("\n⭐ SYNTHESIZED REVIEWS")
    print("-" * 70)
    for bundle in report.reviews:
        print(f"  {bundle.competitor_name}: {bundle.review_count} reviews")
        for r in (bundle.app_store_reviews + bundle.google_play_reviews)[:2]:
            print(f"       [{r.rating}/5] {r.text}")

    print("\n📈 SEARCH TRENDS")
    print("-" * 70)
    print(f"  Top    : {', '.join(report.trends.top) or '-'}")
    print(f"  Rising : {', '.join(report.trends.rising) or '-'}")
    for err in report.trends.errors:
        print(f"  ⚠️  {err}")

    print("\n📰 WEBPAGE INSIGHTS")
    print("-" * 70)
    for insight in report.page_insights:
        mark = "✅" if insight.success else "❌"
        print(f"  {mark} {insight.url}")
        if insight.success:
            print(f"       {insight.relevance}: {insight.insight}")
        else:
            print(f"       {insight.error}")

    print("\n📊 CHART DATA")
    print("-" * 70)
    for row in report.chart_data.bar_chart_data:
        print(f"  {row.name:<24} reviews={row.review_count}  rating={row.rating}")
    for row in report.chart_data.gap_matrix_data:
        print(f"  gap: {row.feature:<22} need={row.unmet_need}  {dict(row.competitor_status)}")

    print("\n📝 SUMMARY")
    print("-" * 70)
    print(report.summary or "  (no summary)")

    print("\n🧾 STEP LEDGER")
    print("-" * 70)
    for step in report.steps:
        detail = f" - {step.detail}" if step.detail else ""
        print(f"  {step.name:<22} {step.status.value}{detail}")
    print("=" * 70)


def demo(query: str = DEMO_QUERY):
    """End-to-end demo run with the offline stub ports."""
    from utils.pipeline import build_ports, run_pipeline_sync

    logger.info("=== Market Research Pipeline: Demo Run ===")
    report = run_pipeline_sync(query, ports=build_ports(mock=True))
    print_report(report)
    return report


def run_query(query: str, thread_id=None, user_id=None):
    """One live run; prints the report as JSON."""
    from utils.pipeline import run_pipeline_sync

    report = run_pipeline_sync(query, thread_id=thread_id, user_id=user_id)
    print(json.dumps(report.model_dump(mode="json"), indent=2))
    return report


def start_api():
    """Start the FastAPI server."""
    import uvicorn
    uvicorn.run("api.main:app", host=settings.API_HOST, port=settings.API_PORT, reload=settings.DEBUG)


def run_tests():
    """Run pytest."""
    import subprocess
    result = subprocess.run(
        ["pytest", "tests/", "-v", "--tb=short"],
        cwd=os.path.dirname(os.path.abspath(__file__)),
    )
    sys.exit(result.returncode)


def main(argv=None):
    parser = argparse.ArgumentParser(description=settings.APP_NAME)
    sub = parser.add_subparsers(dest="command")

    demo_cmd = sub.add_parser("demo", help="run the pipeline against offline stub ports")
    demo_cmd.add_argument("query", nargs="?", default=DEMO_QUERY)

    run_cmd = sub.add_parser("run", help="run one query against the live ports")
    run_cmd.add_argument("query")
    run_cmd.add_argument("--thread-id")
    run_cmd.add_argument("--user-id")

    sub.add_parser("api", help="start the FastAPI server")
    sub.add_parser("test", help="run the test suite")

    args = parser.parse_args(argv)
    command = args.command or "demo"

    if command == "demo":
        demo(getattr(args, "query", DEMO_QUERY))
    elif command == "run":
        from agents.errors import AggregationError, InvalidQueryError
        try:
            run_query(args.query, thread_id=args.thread_id, user_id=args.user_id)
        except InvalidQueryError as e:
            parser.error(str(e))
        except AggregationError as e:
            logger.error(str(e))
            sys.exit(1)
    elif command == "api":
        start_api()
    elif command == "test":
        run_tests()


if __name__ == "__main__":
    main()
