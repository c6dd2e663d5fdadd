from __future__ import annotations

from typing import Optional

from resizer.config import ResizerConfig
from resizer.controllers.app_controller import AppController
from resizer.services.record_service import JsonlRecordStore
from resizer.services.storage_service import DirectoryBlobStorage


class ImageResizerApp:
    def __init__(self, config: Optional[ResizerConfig] = None) -> None:
        self.config = config or ResizerConfig.from_env()

        # files and the record manifest share one storage root
        self._storage = DirectoryBlobStorage(self.config.storage_root)
        self._records = JsonlRecordStore(self.config.records_path)

        self.controller = AppController(storage=self._storage, records=self._records, config=self.config)
