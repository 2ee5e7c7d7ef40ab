"""arq worker settings module.

Import path for arq CLI: arq tipster.workers.settings.WorkerSettings
"""

from __future__ import annotations

from tipster.workers.jobs import WorkerSettings

__all__ = ["WorkerSettings"]
