"""Policy Ingest - Core application modules.

Provides:
- Format reader and field parsing for CSV / Excel policy exports
- Natural-key upserts for agents, users, accounts, lines of business,
  carriers and policies
- Per-job coordinator running in an isolated process
"""

__version__ = "0.1.0"
