"""
Analysis context for passing warnings and metrics between pipeline stages
"""

import time
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from loguru import logger

from ..models.pipeline_data import PipelineWarning


class AnalysisContext:
    """
    Per-invocation state shared by the pipeline stages

    Stages record non-fatal problems here instead of raising, so a run that
    hits unparseable files or unresolvable imports still produces a graph.
    """

    def __init__(self, project_name: Optional[str] = None):
        """
        Initialize an analysis context

        Args:
            project_name: Name of the analysed project
        """
        self.project_name = project_name or f"project_{uuid.uuid4().hex[:8]}"
        self.warnings: List[PipelineWarning] = []
        self.metrics: Dict[str, Any] = {
            "file_count": 0,
            "contract_count": 0,
            "library_contract_count": 0,
            "warning_count": 0,
            "stage_timings": {},
            "start_time": time.time(),
        }
        self.created_at = datetime.now().isoformat()

    def add_warning(
        self,
        stage: str,
        message: str,
        file_path: Optional[str] = None,
        line: Optional[int] = None,
    ) -> PipelineWarning:
        """
        Add a warning to the context

        Args:
            stage: Pipeline stage recording the warning
            message: Description of the problem
            file_path: Source file the problem refers to
            line: Line number, if known
        """
        warning = PipelineWarning(stage=stage, message=message, file_path=file_path, line=line)
        self.warnings.append(warning)
        self.metrics["warning_count"] += 1
        logger.warning(str(warning))
        return warning

    def extend(self, warnings: List[PipelineWarning]) -> None:
        """Adopt warnings recorded elsewhere (e.g. by a worker thread)"""
        for warning in warnings:
            self.warnings.append(warning)
            self.metrics["warning_count"] += 1
            logger.warning(str(warning))

    def record_timing(self, stage: str, duration: float) -> None:
        self.metrics["stage_timings"][stage] = round(duration, 6)
        logger.debug(f"Stage {stage} finished in {duration:.3f}s")

    def warnings_for(self, stage: str) -> List[PipelineWarning]:
        return [w for w in self.warnings if w.stage == stage]
