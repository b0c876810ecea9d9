"""
Exception types raised by the sol-flow analysis pipeline

Only conditions that fail a whole invocation are exceptions. Per-file and
per-import problems are reported as warnings on the analysis result.
"""


class SolFlowError(Exception):
    """Base exception for sol-flow errors."""


class ConfigurationError(SolFlowError):
    """Remapping table or library registry is malformed or incomplete."""


class NoFilesProvidedError(SolFlowError):
    """The caller passed no source files at all."""


class InputLimitError(SolFlowError):
    """The input exceeds a configured file count or file size limit."""


class NoContractsFoundError(SolFlowError):
    """Parsing succeeded but the batch produced zero contracts."""

    def __init__(self, file_count: int, warnings=None):
        self.file_count = file_count
        self.warnings = list(warnings or [])
        super().__init__(f"No contracts found in {file_count} uploaded file(s)")


class SolidityTokenizeError(SolFlowError):
    """Source text cannot be split into tokens (unterminated string or comment)."""

    def __init__(self, message: str, line: int):
        self.line = line
        super().__init__(f"{message} at line {line}")
