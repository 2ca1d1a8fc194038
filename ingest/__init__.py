"""Event ingestion: domain records to observations."""
from ingest.errors import IngestError, UnrecognizedSource, MissingField
from ingest.ingestor import EventIngestor, ingest, ingest_batch
from ingest.mappings import TABLE_MAPPINGS
