"""
Pydantic models for pipeline data.

This module defines the data passed into and out of the analysis pipeline:
raw source files on the way in, warnings and the final result on the way out.
"""

from typing import List, Optional

from pydantic import BaseModel, Field

from .call_graph import CallGraph


class SourceFile(BaseModel):
    """A raw Solidity source file as uploaded or read from disk."""
    path: str = Field(..., description="Path of the file, '/'-separated")
    content: str = Field(..., description="UTF-8 text of the file")

    @property
    def size(self) -> int:
        return len(self.content)


class PipelineWarning(BaseModel):
    """A non-fatal problem recorded while processing."""
    stage: str = Field(..., description="Pipeline stage that recorded the warning")
    message: str = Field(..., description="Human readable description")
    file_path: Optional[str] = Field(None, description="Source file the warning refers to")
    line: Optional[int] = Field(None, description="Line in the source file, if known")

    def __str__(self) -> str:
        location = self.file_path or "<pipeline>"
        if self.line:
            location = f"{location}:{self.line}"
        return f"[{self.stage}] {location}: {self.message}"


class AnalysisResult(BaseModel):
    """A successful pipeline run; warnings do not make it a failure."""
    call_graph: CallGraph
    warnings: List[PipelineWarning] = Field(default_factory=list)

    @property
    def has_warnings(self) -> bool:
        return bool(self.warnings)
