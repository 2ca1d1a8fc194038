"""Event ingestor: tagged domain records in, dimension-tagged observations out."""
import logging

from ingest.errors import IngestError, MissingField, UnrecognizedSource
from ingest.mappings import TABLE_MAPPINGS
from models.observations import DomainRecord, Observation
from utils.timeutil import parse_datetime

logger = logging.getLogger("site360.ingest")


class EventIngestor:
    """Applies the table mappings. Holds no state beyond the mapping table."""

    def __init__(self, mappings=None):
        self.mappings = mappings if mappings is not None else TABLE_MAPPINGS

    @property
    def tables(self):
        return sorted(self.mappings)

    def ingest(self, record):
        """Normalize one record. Raises IngestError subclasses, never partial output."""
        if isinstance(record, dict):
            try:
                record = DomainRecord.from_dict(record)
            except (TypeError, ValueError):
                raise MissingField(record.get("table", ""), record.get("id"), "observed_at",
                                   f"not a timestamp: {record.get('observed_at')!r}")

        mapping = self.mappings.get(record.table)
        if mapping is None:
            raise UnrecognizedSource(record.table, record.id)
        if not record.id:
            raise MissingField(record.table, record.id, "id")

        site_id = record.site_id or record.fields.get("site_id")
        if not site_id:
            raise MissingField(record.table, record.id, "site_id")
        observed_at = self._resolve_observed_at(record, mapping)

        observations = []
        for rule in mapping.metrics:
            for name in rule.requires:
                if record.fields.get(name) in (None, ""):
                    raise MissingField(record.table, record.id, name)
            value = rule.extract(record, observed_at)
            if value is None:
                continue
            observations.append(Observation(
                site_id=str(site_id),
                dimension=mapping.dimension,
                metric_key=rule.metric_key,
                value=float(value),
                unit=rule.unit,
                observed_at=observed_at,
                source_table=record.table,
                source_id=record.id,
            ))
        return observations

    def ingest_batch(self, records):
        """Ingest many records; per-record errors are collected, not raised.

        Returns:
            (observations, errors) where errors is a list of IngestError.
        """
        observations, errors = [], []
        for record in records:
            try:
                observations.extend(self.ingest(record))
            except IngestError as e:
                logger.warning(f"Skipping record: {e}")
                errors.append(e)
        logger.debug(f"Ingested {len(observations)} observations, {len(errors)} errors")
        return observations, errors

    @staticmethod
    def _resolve_observed_at(record, mapping):
        if record.observed_at is not None:
            return record.observed_at
        for name in mapping.observed_at_fields:
            raw = record.fields.get(name)
            if raw in (None, ""):
                continue
            try:
                return parse_datetime(raw)
            except (TypeError, ValueError):
                raise MissingField(record.table, record.id, name, f"not a timestamp: {raw!r}")
        raise MissingField(record.table, record.id, "observed_at")


_default = EventIngestor()


def ingest(record):
    return _default.ingest(record)


def ingest_batch(records):
    return _default.ingest_batch(records)
