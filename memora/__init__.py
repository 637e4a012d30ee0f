"""
Memora

Ask questions about your own history and get short answers grounded in
your Moments and the files attached to them.

Philosophy:
- Answers use only retrieved facts; when they are not enough, say so
- Every answer links back to its evidence with short-lived signed URLs
- Best-effort steps degrade; they never invent results

Usage:
    from memora.common import load_config
    from memora.retriever import RecallPipeline
    from memora.ingest import MomentWriter, FileIngestor
"""

__version__ = "0.1.0"
