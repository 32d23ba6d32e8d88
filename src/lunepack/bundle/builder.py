"""Writes standalone executables: runtime bytes, module table, trailer."""

from __future__ import annotations

import logging
import os
import shutil
import stat
from dataclasses import dataclass
from pathlib import Path

from lunepack.bundle.format import Bundle, encode_table, encode_trailer
from lunepack.exceptions import BundleError
from lunepack.graph.graph import ModuleGraph

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BuildResult:
    output: Path
    runtime: Path
    module_count: int
    table_size: int
    total_size: int


class BundleBuilder:
    """Assembles a module graph and a runtime binary into one executable."""

    def build(self, graph: ModuleGraph, runtime: Path, output: Path) -> BuildResult:
        """Write the executable to *output*.

        On any failure the partially written output is removed.

        Raises:
            BundleError: If the graph does not form a closed bundle, or the
                runtime cannot be read, or the output cannot be written.
        """
        runtime = Path(runtime)
        output = Path(output)
        if runtime.resolve() == output.resolve():
            raise BundleError(f"Output {output} would overwrite the runtime binary")

        bundle = Bundle.from_graph(graph)
        table = encode_table(bundle)

        output.parent.mkdir(parents=True, exist_ok=True)
        try:
            with runtime.open("rb") as src, output.open("wb") as out:
                shutil.copyfileobj(src, out)
                offset = out.tell()
                out.write(table)
                out.write(encode_trailer(offset, table))
                total = out.tell()
            if os.name != "nt":
                mode = output.stat().st_mode
                output.chmod(mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        except OSError as exc:
            output.unlink(missing_ok=True)
            raise BundleError(f"Cannot build {output}: {exc}") from exc
        except BaseException:
            output.unlink(missing_ok=True)
            raise

        logger.info(
            "Bundled %d module(s) (%d bytes) into %s", len(bundle.records), len(table), output
        )
        return BuildResult(
            output=output,
            runtime=runtime,
            module_count=len(bundle.records),
            table_size=len(table),
            total_size=total,
        )
