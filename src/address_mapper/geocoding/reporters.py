"""Progress observers for the resolution pipeline."""

from __future__ import annotations

import logging
from typing import List, Optional, Tuple

from colorama import Fore, Style
from tqdm import tqdm

from .base import ProgressReporter
from .models import PipelineRun

logger = logging.getLogger(__name__)


def format_progress(done: int, total: int) -> str:
    pct = round(done / total * 100) if total else 0
    return f"{done}/{total} geocoded ({pct}%)"


class LoggingProgressReporter(ProgressReporter):
    """Logs progress every `every` rows and prints a coloured summary line."""

    def __init__(self, every: int = 10):
        self.every = max(1, every)

    def update(self, done: int, total: int) -> None:
        if done == total or done % self.every == 0:
            logger.info(format_progress(done, total))

    def complete(self, run: PipelineRun) -> None:
        colour = Fore.GREEN if not run.failed else Fore.YELLOW
        print(
            f"Batch {run.generation} -- {run.geocoded}/{run.total} geocoded, "
            f"{run.failed} failed, {run.skipped} skipped "
            f"---> {colour}{'Cancelled' if run.cancelled else 'Complete'}{Style.RESET_ALL}"
        )

    def celebrate(self, geocoded: int) -> None:
        print(f"{Fore.CYAN}*** {geocoded} addresses on the map ***{Style.RESET_ALL}")


class TqdmProgressReporter(ProgressReporter):
    """tqdm progress bar; the bar is created lazily on the first update."""

    def __init__(self, desc: str = "Geocoding", unit: str = "row"):
        self.desc = desc
        self.unit = unit
        self.pbar: Optional[tqdm] = None

    def update(self, done: int, total: int) -> None:
        if self.pbar is None:
            self.pbar = tqdm(total=total, desc=self.desc, unit=self.unit)
        self.pbar.update(done - self.pbar.n)

    def complete(self, run: PipelineRun) -> None:
        if self.pbar is not None:
            self.pbar.set_postfix({"geocoded": run.geocoded, "failed": run.failed})
            self.pbar.close()
            self.pbar = None


class CollectingProgressReporter(ProgressReporter):
    """Records every event; handy for tests and for UI adapters that poll."""

    def __init__(self) -> None:
        self.updates: List[Tuple[int, int]] = []
        self.runs: List[PipelineRun] = []
        self.celebrations: List[int] = []

    def update(self, done: int, total: int) -> None:
        self.updates.append((done, total))

    def complete(self, run: PipelineRun) -> None:
        self.runs.append(run)

    def celebrate(self, geocoded: int) -> None:
        self.celebrations.append(geocoded)


class CompositeProgressReporter(ProgressReporter):
    """Fans events out to several reporters."""

    def __init__(self, reporters: List[ProgressReporter]):
        self.reporters = reporters

    def update(self, done: int, total: int) -> None:
        for reporter in self.reporters:
            reporter.update(done, total)

    def complete(self, run: PipelineRun) -> None:
        for reporter in self.reporters:
            reporter.complete(run)

    def celebrate(self, geocoded: int) -> None:
        for reporter in self.reporters:
            reporter.celebrate(geocoded)
