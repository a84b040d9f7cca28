"""Parse many structure files in parallel with progress.

Each file is an independent ``load_structure`` call; a failure is recorded
against its path and never stops the rest of the batch.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional

import pandas as pd
from tqdm import tqdm

from labviz.config import MAX_FILE_BYTES
from labviz.parsers.base import MolecularStructure
from labviz.parsers.dataset import load_structure
from labviz.parsers.errors import StructureError

logger = logging.getLogger(__name__)


@dataclass
class BatchOptions:
    max_workers: int = 8
    max_bytes: int = MAX_FILE_BYTES
    progress: bool = True


@dataclass
class BatchFailure:
    path: str
    kind: str
    message: str


@dataclass
class BatchResult:
    structures: dict[str, MolecularStructure] = field(default_factory=dict)
    failures: list[BatchFailure] = field(default_factory=list)

    @property
    def ok(self) -> int:
        return len(self.structures)

    @property
    def failed(self) -> int:
        return len(self.failures)

    def to_frame(self) -> pd.DataFrame:
        """One row per input path: summary columns, or the failure kind."""
        rows = [{"path": p, "status": "ok", **s.summary()} for p, s in self.structures.items()]
        rows += [
            {"path": f.path, "status": f.kind, "error": f.message}
            for f in self.failures
        ]
        return pd.DataFrame(rows)


def _parse_one(path: Path, max_bytes: int) -> tuple[str, Optional[MolecularStructure], Optional[BatchFailure]]:
    try:
        return (str(path), load_structure(path, max_bytes=max_bytes), None)
    except StructureError as e:
        return (str(path), None, BatchFailure(str(path), e.kind, str(e)))
    except OSError as e:
        return (str(path), None, BatchFailure(str(path), "io-error", f"{type(e).__name__}: {e}"))
    except Exception as e:
        logger.exception("Unexpected error parsing %s", path)
        return (str(path), None, BatchFailure(str(path), "internal-error", f"{type(e).__name__}: {e}"))


def parallel_parse(
    paths: Iterable[str | Path],
    options: Optional[BatchOptions] = None,
    prefix_label: str = "parse",
) -> BatchResult:
    """Parse files concurrently; returns structures and per-path failures."""
    options = options or BatchOptions()
    path_list = [Path(p) for p in paths]
    result = BatchResult()
    if not path_list:
        return result

    pbar = tqdm(total=len(path_list), unit="file", desc=prefix_label, disable=not options.progress)
    with ThreadPoolExecutor(max_workers=options.max_workers) as ex:
        futures = {ex.submit(_parse_one, p, options.max_bytes): p for p in path_list}
        for fut in as_completed(futures):
            key, structure, failure = fut.result()
            if failure is not None:
                logger.warning("Failed to parse %s: %s", key, failure.message)
                result.failures.append(failure)
            else:
                result.structures[key] = structure
            pbar.update(1)
    pbar.close()

    if result.failures:
        logger.warning("Parse finished with %d failures (ok=%d)", result.failed, result.ok)
    return result
