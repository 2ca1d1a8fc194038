"""ControlPipeline - batch orchestration from domain records to stored scores and alerts."""
import json
import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

from ingest import EventIngestor, IngestError
from models.alerts import Create, UpdateExisting, AutoResolve
from models.enums import ControlDimension
from utils.timeutil import parse_date

logger = logging.getLogger("site360.pipeline")


class RecordFileError(IngestError):
    def __init__(self, path, line_no, message):
        super().__init__(str(path), f"line {line_no}", message)


def load_records(path):
    """Read a JSON-lines record file. Returns (records, errors); bad lines are not fatal."""
    records, errors = [], []
    with open(path) as f:
        for line_no, line in enumerate(f, start=1):
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            try:
                data = json.loads(line)
            except json.JSONDecodeError as e:
                errors.append(RecordFileError(path, line_no, f"invalid JSON: {e.msg}"))
                continue
            if not isinstance(data, dict):
                errors.append(RecordFileError(path, line_no, "record must be a JSON object"))
                continue
            records.append(data)
    return records, errors


@dataclass
class SiteResult:
    site_id: str
    scores: list = field(default_factory=list)
    mutations: list = field(default_factory=list)


@dataclass
class RunResult:
    records: int = 0
    observations: int = 0
    errors: list = field(default_factory=list)
    scores: list = field(default_factory=list)
    mutations: list = field(default_factory=list)
    created: list = field(default_factory=list)
    updated: list = field(default_factory=list)
    resolved: list = field(default_factory=list)
    unchanged: int = 0
    conflicts: int = 0
    dry_run: bool = False

    def summary(self):
        return {
            "records": self.records,
            "observations": self.observations,
            "errors": len(self.errors),
            "scores": len(self.scores),
            "alerts_created": len(self.created),
            "alerts_updated": len(self.updated),
            "alerts_resolved": len(self.resolved),
            "alerts_unchanged": self.unchanged,
            "conflicts": self.conflicts,
            "dry_run": self.dry_run,
        }


class ControlPipeline:
    def __init__(self, db, scoring_engine, dispatcher, rules_manager, config=None, ingestor=None):
        self.db = db
        self.scoring = scoring_engine
        self.dispatcher = dispatcher
        self.rules_manager = rules_manager
        self.config = config or {}
        self.ingestor = ingestor or EventIngestor()

        pipeline_cfg = self.config.get("pipeline", {})
        self.max_workers = pipeline_cfg.get("max_workers", 4)
        self.calculated_by = pipeline_cfg.get("calculated_by", "system")

    # --- Entry points ---

    def ingest(self, records):
        """Ingest and store observations only."""
        observations, errors = self.ingestor.ingest_batch(records)
        if observations:
            self.db.save_observations(observations)
        return RunResult(records=len(records), observations=len(observations), errors=list(errors))

    def ingest_file(self, path):
        records, file_errors = load_records(path)
        result = self.ingest(records)
        result.errors = file_errors + result.errors
        return result

    def run(self, records, day=None, dry_run=False, evaluated_at=None):
        """Full batch: ingest, score each affected (site, day), dispatch, write."""
        evaluated_at = evaluated_at or datetime.now(timezone.utc)
        observations, errors = self.ingestor.ingest_batch(records)
        if observations and not dry_run:
            self.db.save_observations(observations)

        day = parse_date(day)
        slots = {}
        for obs in observations:
            slots.setdefault(obs.site_id, set()).add(day or obs.observed_at.date())

        # a forced day scores only this batch, whatever its observed dates
        batch = observations if (dry_run or day) else None
        result = self._process(slots, batch, dry_run, evaluated_at, forced_day=day is not None)
        result.records = len(records)
        result.observations = len(observations)
        result.errors = list(errors)
        return result

    def run_file(self, path, day=None, dry_run=False, evaluated_at=None):
        records, file_errors = load_records(path)
        result = self.run(records, day=day, dry_run=dry_run, evaluated_at=evaluated_at)
        result.errors = file_errors + result.errors
        logger.info(f"Processed {path}: {result.summary()}")
        return result

    def rescore(self, site_id, day, dry_run=False, evaluated_at=None):
        """Recompute one site's scores for a day from stored observations."""
        evaluated_at = evaluated_at or datetime.now(timezone.utc)
        return self._process({site_id: {parse_date(day)}}, None, dry_run, evaluated_at)

    # --- Stages ---

    def _process(self, slots, batch_observations, dry_run, evaluated_at, forced_day=False):
        rules = self.rules_manager.get_enabled_rules()
        inputs = {site_id: self._load_inputs(site_id, days, batch_observations, forced_day)
                  for site_id, days in slots.items()}

        site_results = []
        if inputs:
            workers = max(1, min(self.max_workers, len(inputs)))
            with ThreadPoolExecutor(max_workers=workers) as executor:
                futures = [
                    executor.submit(self._score_site, site_id, site_inputs, rules, evaluated_at)
                    for site_id, site_inputs in inputs.items()
                ]
                for future in as_completed(futures):
                    site_results.append(future.result())
        site_results.sort(key=lambda r: r.site_id)

        result = RunResult(dry_run=dry_run)
        for site_result in site_results:
            result.scores.extend(site_result.scores)
            result.mutations.extend(site_result.mutations)

        if not dry_run:
            self._write(result)
        return result

    def _load_inputs(self, site_id, days, batch_observations, forced_day=False):
        """Read everything one site's worker needs; runs on the calling thread."""
        days = sorted(days)
        by_day = {}
        for d in days:
            if batch_observations is not None:
                by_day[d] = [o for o in batch_observations
                             if o.site_id == site_id and (forced_day or o.observed_at.date() == d)]
            else:
                by_day[d] = self.db.get_observations(site_id, day=d)

        previous = {dim: self.db.get_previous_score(site_id, dim, days[0]) for dim in ControlDimension}
        return {
            "days": days,
            "observations": by_day,
            "previous": {dim: s for dim, s in previous.items() if s is not None},
            "open_alerts": self.db.get_open_alerts(site_id),
        }

    def _score_site(self, site_id, inputs, rules, evaluated_at):
        """Pure worker: score each day in order, then evaluate the latest scores and all anomalies."""
        previous = dict(inputs["previous"])
        latest = {}
        anomalies = []
        all_scores = []
        for d in inputs["days"]:
            observations = inputs["observations"][d]
            anomalies.extend(observations)
            scores = self.scoring.score_site(site_id, d, observations, previous, self.calculated_by)
            for s in scores:
                previous[s.dimension] = s
                latest[s.dimension] = s
            all_scores.extend(scores)

        mutations = self.dispatcher.evaluate(
            list(latest.values()), anomalies, rules,
            open_alerts=inputs["open_alerts"], evaluated_at=evaluated_at,
        )
        return SiteResult(site_id=site_id, scores=all_scores, mutations=mutations)

    def _write(self, result):
        """Apply scores and mutations on the calling thread, then notify channels."""
        for score in result.scores:
            score.id = self.db.upsert_score(score)

        to_notify = []
        for mutation in result.mutations:
            if isinstance(mutation, UpdateExisting) and mutation.changes.is_empty():
                result.unchanged += 1
                continue
            alert_id = self.db.apply_mutation(mutation)
            if alert_id is None:
                result.conflicts += 1
                continue
            if isinstance(mutation, Create):
                result.created.append(alert_id)
                to_notify.append(alert_id)
            elif isinstance(mutation, UpdateExisting):
                result.updated.append(alert_id)
                if mutation.escalated:
                    to_notify.append(alert_id)
            elif isinstance(mutation, AutoResolve):
                result.resolved.append(alert_id)

        for alert_id in to_notify:
            alert = self.db.get_alert(alert_id)
            if alert is not None:
                self.dispatcher.notify(alert)

        logger.info(
            f"Wrote {len(result.scores)} scores; alerts: {len(result.created)} created, "
            f"{len(result.updated)} updated, {len(result.resolved)} resolved"
        )
