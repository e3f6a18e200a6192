"""Reading ingestion pipeline."""

from vitalwatch.pipeline.ingestion import IngestionResult, MetricIngestionPipeline

__all__ = ["IngestionResult", "MetricIngestionPipeline"]
