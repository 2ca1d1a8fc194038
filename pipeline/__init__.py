"""Batch pipeline: records to scores and alerts."""
from pipeline.runner import ControlPipeline, RunResult, SiteResult, load_records, RecordFileError
from pipeline.scheduler import InboxWatcher
