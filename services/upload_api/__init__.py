"""Policy Ingest - Upload API service.

FastAPI upload layer: file filtering, temp-file lifecycle, and hand-off to
the isolated ingestion job.
"""

__all__: list[str] = []
