"""Incident Statistics Engine.

Turns a raw, row-per-unit incident export into response-time and workload
statistics with:
- Strict normalization of ESO CSV reports and NERIS-style JSON incidents
- Dispatch-ordered incident grouping
- Per-unit timeline reconciliation tolerant of dirty data
- Configurable region and incident-type classification
- A JSON stats document for the public website
"""

__version__ = "0.1.0"
