"""Background watcher that feeds record files from an inbox directory through the pipeline."""
import logging
import shutil
import threading
import schedule
import time
from pathlib import Path

logger = logging.getLogger("site360.scheduler")


class InboxWatcher:
    def __init__(self, pipeline, inbox, interval_seconds=60, processed_dir="processed"):
        self.pipeline = pipeline
        self.inbox = Path(inbox)
        self.processed = self.inbox / processed_dir
        self.interval = interval_seconds
        self._scheduler = schedule.Scheduler()
        self._thread = None
        self._running = False
        self._callbacks = []
        self._consecutive_failures = 0

    def on_run(self, callback):
        """Register callback called with (path, RunResult) after each processed file."""
        self._callbacks.append(callback)

    def start(self):
        """Start background polling."""
        if self._running:
            return
        self._running = True

        self._scheduler.every(self.interval).seconds.do(self.poll)

        self._thread = threading.Thread(target=self._run_loop, daemon=True)
        self._thread.start()
        logger.info(f"Watching {self.inbox} (every {self.interval}s)")

    def stop(self):
        """Stop background polling."""
        self._running = False
        self._scheduler.clear()
        if self._thread:
            self._thread.join(timeout=5)
            self._thread = None
        logger.info("Watcher stopped")

    def pending_files(self):
        if not self.inbox.is_dir():
            return []
        return sorted(p for p in self.inbox.glob("*.jsonl") if p.is_file())

    def _run_loop(self):
        # Drain the inbox immediately
        self.poll()
        while self._running:
            self._scheduler.run_pending()
            time.sleep(1)

    def poll(self):
        """Process every pending file once. Returns the number processed."""
        processed = 0
        for path in self.pending_files():
            try:
                result = self.pipeline.run_file(path)
            except Exception as e:
                self._consecutive_failures += 1
                logger.error(f"Run failed for {path.name} ({self._consecutive_failures} consecutive): {e}")
                if self._consecutive_failures >= 5:
                    logger.critical("5+ consecutive inbox failures!")
                continue

            self._consecutive_failures = 0
            self._archive(path)
            processed += 1
            for cb in self._callbacks:
                try:
                    cb(path, result)
                except Exception as e:
                    logger.warning(f"Callback error: {e}")
        return processed

    def _archive(self, path):
        self.processed.mkdir(parents=True, exist_ok=True)
        target = self.processed / path.name
        if target.exists():
            target = self.processed / f"{path.stem}.{int(time.time())}{path.suffix}"
        shutil.move(str(path), str(target))
