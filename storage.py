"""
storage.py
Registry layout, input readers, and dataset persistence.
"""

import os
from typing import Any, List, Optional
import ujson as json

from models import AFI4, AFI6

FILTER_FILES = {AFI4: "filter.txt", AFI6: "filter6.txt"}
ROUTE_DIRS = {AFI4: "route", AFI6: "route6"}


def ensure_dir(path: str):
    if path:
        os.makedirs(path, exist_ok=True)


def data_dir(registry: str) -> str:
    return os.path.join(registry, "data")


def filter_path(registry: str, afi: str) -> str:
    return os.path.join(data_dir(registry), FILTER_FILES[afi])


def route_dir(registry: str, afi: str) -> str:
    return os.path.join(data_dir(registry), ROUTE_DIRS[afi])


def read_lines(path: str) -> List[str]:
    with open(path, encoding="utf-8") as f:
        return f.read().split("\n")


def iter_record_paths(path: str) -> List[str]:
    """
    All entries of a route directory, sorted by name so runs are reproducible.
    Raises OSError if the directory cannot be listed.
    """
    with os.scandir(path) as it:
        names = sorted(e.name for e in it)
    return [os.path.join(path, n) for n in names]


def read_record(path: str) -> str:
    with open(path, encoding="utf-8") as f:
        return f.read()


def write_dataset(path: str, data: Any, indent: Optional[int] = None):
    ensure_dir(os.path.dirname(path))
    tmp = path + ".tmp"
    try:
        with open(tmp, "w", encoding="utf-8") as f:
            if indent:
                json.dump(data, f, indent=indent, escape_forward_slashes=False)
            else:
                json.dump(data, f, escape_forward_slashes=False)
        os.replace(tmp, path)
    except Exception:
        if os.path.exists(tmp):
            os.remove(tmp)
        raise
