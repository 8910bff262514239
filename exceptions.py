# exceptions.py


class AnalysisError(Exception):
    """Base class for every error the screening core reports to its caller."""


class UnsupportedFormat(AnalysisError):
    def __init__(self, declared_format):
        self.declared_format = declared_format
        super().__init__(f"Unsupported document format: {declared_format!r}")


class ExtractionFailed(AnalysisError):
    """Raised when a document cannot be turned into text."""


class NotFound(AnalysisError):
    def __init__(self, analysis_id: str):
        self.analysis_id = analysis_id
        super().__init__(f"Analysis not found: {analysis_id}")


class InvalidQuestion(AnalysisError):
    """Raised for an empty or non-string chat question."""
