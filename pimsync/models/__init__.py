from pimsync.models.base import Base  # noqa: F401

from pimsync.models.import_run import ImportRun  # noqa: F401
