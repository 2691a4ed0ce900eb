"""
Transform chaining with a per-step log.
"""

import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

import pandas as pd
from pyspark.sql import DataFrame

from chargepoint_pipeline.errors import ChargePointPipelineError, TransformationError
from chargepoint_pipeline.utils.logging_utils import get_logger


logger = get_logger("transformations")


@dataclass
class TransformationStep:
    """A named DataFrame -> DataFrame function plus its keyword arguments"""
    name: str
    func: Callable[..., DataFrame]
    kwargs: Dict[str, Any] = field(default_factory=dict)

    def apply(self, df: DataFrame) -> DataFrame:
        return df.transform(self.func, **self.kwargs)


class TransformationPipeline:
    """
    Ordered chain of single-purpose transformations.

    Each step goes through ``DataFrame.transform``. With row count tracking
    enabled every step triggers a count, which is useful in tests and small
    batches but costs a Spark job per step on large inputs.
    """

    def __init__(self, name: str, track_row_counts: bool = True):
        self.name = name
        self.track_row_counts = track_row_counts
        self.steps: List[TransformationStep] = []
        self.transformation_log: List[Dict[str, Any]] = []

    def add_step(self, name: str, func: Callable[..., DataFrame], **kwargs) -> 'TransformationPipeline':
        """Append a step and return the pipeline for chaining."""
        self.steps.append(TransformationStep(name=name, func=func, kwargs=kwargs))
        return self

    def log_transformation(self, name: str, input_rows: Optional[int],
                           output_rows: Optional[int], duration_seconds: float):
        """Log transformation details"""
        rows_removed = None
        if input_rows is not None and output_rows is not None:
            rows_removed = input_rows - output_rows

        self.transformation_log.append({
            'pipeline': self.name,
            'transformation': name,
            'input_rows': input_rows,
            'output_rows': output_rows,
            'rows_removed': rows_removed,
            'duration_seconds': round(duration_seconds, 3),
            'timestamp': datetime.now().isoformat()
        })

    def run(self, df: DataFrame) -> DataFrame:
        """
        Apply every step in order.

        Args:
            df: Input DataFrame

        Returns:
            Output of the last step (the input itself when there are no steps)

        Raises:
            TransformationError: a step raised; the original error is the cause
        """
        logger.info(f"Running pipeline '{self.name}' with {len(self.steps)} steps")
        result = df
        input_rows = result.count() if self.track_row_counts else None

        for step in self.steps:
            start_time = time.time()
            try:
                result = step.apply(result)
                output_rows = result.count() if self.track_row_counts else None
            except ChargePointPipelineError as e:
                logger.error(f"Step '{step.name}' of pipeline '{self.name}' failed: {e.message}")
                raise TransformationError(
                    f"Step '{step.name}' failed: {e.message}",
                    step_name=step.name,
                    context={'pipeline': self.name},
                    cause=e
                ) from e
            except Exception as e:
                logger.error(f"Step '{step.name}' of pipeline '{self.name}' failed: {e}")
                raise TransformationError(
                    f"Step '{step.name}' failed",
                    step_name=step.name,
                    context={'pipeline': self.name},
                    cause=e
                ) from e

            duration = time.time() - start_time
            self.log_transformation(step.name, input_rows, output_rows, duration)

            if self.track_row_counts:
                logger.debug(f"[{self.name}] {step.name}: {input_rows} -> {output_rows} rows")
            input_rows = output_rows

        logger.info(f"Pipeline '{self.name}' complete")
        return result

    def get_transformation_summary(self) -> pd.DataFrame:
        """Get summary of all transformations"""
        return pd.DataFrame(
            self.transformation_log,
            columns=['pipeline', 'transformation', 'input_rows', 'output_rows',
                     'rows_removed', 'duration_seconds', 'timestamp']
        )
