"""herdsafe ingest pipeline — PDF extraction, segmentation, knowledge-base bootstrap."""

from herdsafe.ingest.bootstrap import BootstrapResult, KnowledgeBaseBootstrapper
from herdsafe.ingest.pipeline import IngestResult, ingest_text, ingest_upload, remove_document
from herdsafe.ingest.segmenter import Segment, TextSegmenter

__all__ = [
    "BootstrapResult",
    "IngestResult",
    "KnowledgeBaseBootstrapper",
    "Segment",
    "TextSegmenter",
    "ingest_text",
    "ingest_upload",
    "remove_document",
]
