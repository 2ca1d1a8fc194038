"""Per-record ingestion errors. Batch callers log these and move on."""


class IngestError(Exception):
    def __init__(self, table, record_id, message):
        self.table = table
        self.record_id = record_id
        super().__init__(f"{table}/{record_id or '?'}: {message}")

    def to_dict(self):
        return {
            "error": type(self).__name__,
            "table": self.table,
            "record_id": self.record_id,
            "message": str(self),
        }


class UnrecognizedSource(IngestError):
    def __init__(self, table, record_id=None):
        super().__init__(table, record_id, "no mapping for source table")


class MissingField(IngestError):
    def __init__(self, table, record_id, field, reason="required field absent"):
        self.field = field
        super().__init__(table, record_id, f"{field}: {reason}")
