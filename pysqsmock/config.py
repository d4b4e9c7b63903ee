import shutil
import tempfile
import threading
from pathlib import Path
from typing import Dict, Optional

from pysqsmock.engine.service import QueueService

MODES = ("memory", "snapshot")


class MockConfig:
    def __init__(self):
        self.active = False
        self.mode = None
        self.base_path: Optional[Path] = None
        self._owns_base_path = False
        self._services: Dict[str, QueueService] = {}
        self._lock = threading.Lock()

    def init(self, mode: str = "memory", path=None):
        if mode not in MODES:
            raise ValueError(f"Unsupported mock mode: {mode}. Expected one of {', '.join(MODES)}")
        self.cleanup()
        with self._lock:
            self.mode = mode
            if mode == "snapshot":
                if path is None:
                    self.base_path = Path(tempfile.mkdtemp(prefix="pysqsmock-"))
                    self._owns_base_path = True
                else:
                    self.base_path = Path(path)
                    self.base_path.mkdir(parents=True, exist_ok=True)
            self.active = True

    def service_for(self, region_name: str) -> QueueService:
        with self._lock:
            if not self.active:
                raise RuntimeError("Mock not configured")
            service = self._services.get(region_name)
            if service is None:
                service = QueueService(region_name)
                self._services[region_name] = service
            return service

    def cleanup(self):
        with self._lock:
            services = list(self._services.values())
            self._services.clear()
            if self._owns_base_path and self.base_path is not None:
                shutil.rmtree(self.base_path, ignore_errors=True)
            self.active = False
            self.mode = None
            self.base_path = None
            self._owns_base_path = False
        for service in services:
            for name in service.list_queues():
                service.delete_queue(name)


config = MockConfig()
