from __future__ import annotations

import json
import logging
import subprocess
from pathlib import Path
from typing import Any, Callable, List, Optional

from lecture_render.errors import BundleError

# Prints the bundle's compositions as a JSON array; argv[1] is the bundle directory.
LIST_COMPOSITIONS_SCRIPT = """
const {getCompositions} = require('@remotion/renderer');
getCompositions(process.argv[1]).then((items) => {
  process.stdout.write(JSON.stringify(items.map((c) => ({
    id: c.id, width: c.width, height: c.height, durationInFrames: c.durationInFrames, fps: c.fps,
  }))));
}).catch((err) => {
  process.stderr.write(String(err && err.message ? err.message : err));
  process.exit(1);
});
"""

Runner = Callable[..., subprocess.CompletedProcess]


class RemotionBundler:
    def __init__(
        self,
        project_root: str | Path,
        entry_point: str,
        out_dir: str | Path,
        npx_binary: str = "npx",
        node_binary: str = "node",
        runner: Runner | None = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.project_root = Path(project_root)
        self.entry_point = entry_point
        self.out_dir = Path(out_dir)
        if not self.out_dir.is_absolute():
            self.out_dir = self.project_root / self.out_dir
        self.npx_binary = npx_binary
        self.node_binary = node_binary
        self._run = runner or subprocess.run
        self.log = logger or logging.getLogger(__name__)

    def bundle(self) -> str:
        cmd = [
            self.npx_binary,
            "remotion",
            "bundle",
            self.entry_point,
            "--out-dir",
            str(self.out_dir),
        ]
        self._execute(cmd, "bundle")
        self.log.info("remotion bundle built", extra={"bundle_location": str(self.out_dir)})
        return str(self.out_dir)

    def list_compositions(self, bundle_location: str) -> List[dict[str, Any]]:
        cmd = [self.node_binary, "-e", LIST_COMPOSITIONS_SCRIPT, bundle_location]
        result = self._execute(cmd, "composition listing")
        try:
            items = json.loads(result.stdout or "")
        except ValueError as exc:
            raise BundleError(f"composition listing returned malformed JSON: {exc}") from exc
        if not isinstance(items, list):
            raise BundleError("composition listing did not return a list")
        return items

    def _execute(self, cmd: List[str], label: str) -> subprocess.CompletedProcess:
        try:
            result = self._run(
                cmd,
                cwd=str(self.project_root),
                capture_output=True,
                text=True,
                check=False,
            )
        except OSError as exc:
            raise BundleError(f"{label} could not start: {exc}") from exc
        if result.returncode != 0:
            stderr = (result.stderr or "").strip()
            message = stderr.splitlines()[-1] if stderr else f"exit code {result.returncode}"
            self.log.error(
                "remotion %s failed",
                label,
                extra={"returncode": result.returncode, "stderr": stderr[-2000:]},
            )
            raise BundleError(f"{label} failed: {message}")
        return result
