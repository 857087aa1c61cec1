"""Batch tracking backend: FEFO lot allocation and recall traceability."""
