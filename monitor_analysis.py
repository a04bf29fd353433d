#!/usr/bin/env python3
"""
Real-time monitoring script for one tender's analysis pipeline.
Run this to watch the stages and sections settle, polling the analysis service.

Usage: python monitor_analysis.py <tender_id>
"""
import asyncio
import sys

from tendermonitor.config import settings
from tendermonitor.core.logging_config import setup_logger
from tendermonitor.modules.analysis_monitor.models.status import AnalysisStatus
from tendermonitor.modules.analysis_monitor.monitor import TenderAnalysisMonitor

COLORS = {
    AnalysisStatus.succeeded: '\033[92m',  # Green
    AnalysisStatus.failed: '\033[91m',     # Red
    AnalysisStatus.analyzing: '\033[93m',  # Yellow
    AnalysisStatus.unstarted: '\033[0m',   # Default
}
RESET = '\033[0m'


def clear_screen():
    print("\033[2J\033[H", end="")


def render(monitor: TenderAnalysisMonitor):
    clear_screen()
    view = monitor.progress_view()
    snapshot = monitor.state.snapshot

    print("=" * 80)
    print(f"TENDER ANALYSIS MONITORING - {snapshot.tender_name or monitor.tender_id}")
    print("=" * 80)

    for step in view.steps:
        marker = ">" if step.current else " "
        print(f"{marker} {COLORS[step.status]}{step.label:30} | {step.status.value}{RESET}")

    if view.sections:
        print("\n" + "=" * 80)
        print(f"{'Section':25} | {'Status':12} | {'Badge':10} | Enterable")
        print("=" * 80)
        for access in view.sections:
            print(
                f"{COLORS[access.status]}{access.section_id.display_name:25} | {access.status.value:12} | "
                f"{access.badge.value:10} | {'yes' if access.enterable else 'no'}{RESET}"
            )

    progress = view.progress
    print("=" * 80)
    print(f"{progress.succeeded} of {progress.total} sections completed ({progress.completion_percent:.1f}%)"
          + (f" ({progress.failed} failed)" if progress.failed else ""))
    print(f"Press Ctrl+C to exit | Refreshing every {settings.POLL_INTERVAL_SECONDS:g} seconds...")


async def monitor_analysis(tender_id: str):
    """Monitor one tender until its pipeline settles."""
    monitor = TenderAnalysisMonitor(tender_id)
    settled = asyncio.Event()

    def on_change(snapshot, transitions):
        render(monitor)
        if monitor.state.is_settled():
            settled.set()

    unsubscribe = monitor.subscribe(on_change)
    try:
        await settled.wait()
        print("\nAnalysis settled.")
    finally:
        unsubscribe()
        await monitor.aclose()


def main():
    if len(sys.argv) < 2:
        print("Usage: python monitor_analysis.py <tender_id>")
        sys.exit(1)
    setup_logger(level="WARNING")
    try:
        asyncio.run(monitor_analysis(sys.argv[1]))
    except KeyboardInterrupt:
        print("\n\nMonitoring stopped by user.")
        sys.exit(0)


if __name__ == "__main__":
    main()
