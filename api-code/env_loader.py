from __future__ import annotations

import logging
import os
from pathlib import Path


logger = logging.getLogger("federalist.env")


def load_local_env(env_path: Path | str = Path(".env"), *, override: bool = False) -> int:
    """Copy KEY=value lines from a local .env file into os.environ.

    Variables already present in the environment win unless ``override`` is set.
    Returns the number of variables applied.
    """
    path = Path(env_path)
    if not path.is_file():
        return 0

    applied = 0
    for number, raw_line in enumerate(path.read_text().splitlines(), start=1):
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("export "):
            line = line[len("export "):].lstrip()
        if "=" not in line:
            logger.warning("Skipping malformed .env line %d in %s", number, path)
            continue

        key, value = line.split("=", 1)
        name = key.strip()
        if not name:
            continue
        if not override and name in os.environ:
            continue
        os.environ[name] = value.strip().strip('"').strip("'")
        applied += 1
    return applied
