import gzip
import json
import os

from filelock import FileLock


class StoreUtils:
    @staticmethod
    def read_json_gzip(path, lock_path=None):
        lock = FileLock(lock_path or f"{path}.lock")
        try:
            with lock:
                with gzip.open(path, "rb") as f:
                    return json.loads(f.read().decode("utf-8"))
        except FileNotFoundError:
            return {}

    @staticmethod
    def write_json_gzip(path, data, lock_path=None):
        os.makedirs(os.path.dirname(os.fspath(path)) or ".", exist_ok=True)
        lock = FileLock(lock_path or f"{path}.lock")
        with lock:
            with gzip.open(path, "wb") as f:
                f.write(json.dumps(data, indent=4, default=str).encode("utf-8"))
