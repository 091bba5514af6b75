"""Build service: rebuild the release binary when sources changed."""

import subprocess
from pathlib import Path
from typing import Iterable, Optional

from deploycheck.constants import BUILD_SOURCE_GLOBS
from deploycheck.exceptions import BuildFailure
from deploycheck.logger import DeployLogger, run_with_progress
from deploycheck.models.run import BuildArtifact, RunConfig


def tracked_sources(build_dir: Path, patterns: Iterable[str] = BUILD_SOURCE_GLOBS) -> list[Path]:
    """All regular files under the tracked source trees."""
    files = set()
    for pattern in patterns:
        files.update(p for p in build_dir.glob(pattern) if p.is_file())
    return sorted(files)


def is_stale(artifact: Path, sources: Iterable[Path]) -> bool:
    """An artifact is stale if it is missing or any source is newer."""
    if not artifact.is_file():
        return True
    built_at = artifact.stat().st_mtime
    return any(source.stat().st_mtime > built_at for source in sources)


class BuildService:
    """Produces the artifact shipped to the host."""

    def __init__(self, config: RunConfig, logger: Optional[DeployLogger] = None):
        self.config = config
        self.logger = logger

    def ensure_artifact(self) -> BuildArtifact:
        """
        Rebuild if stale and return the artifact.

        Raises:
            BuildFailure: Build tool missing, failed, or produced no artifact
        """
        path = self.config.resolved_artifact_path
        sources = tracked_sources(self.config.build_dir)

        if not is_stale(path, sources):
            if self.logger:
                self.logger.log(f"Artifact up to date: {path}")
            return BuildArtifact(path=path, profile=self.config.profile)

        self._build()

        if not path.is_file():
            raise BuildFailure(
                f"Build finished but {path} does not exist",
                context=" ".join(self.config.resolved_build_command),
            )
        return BuildArtifact(path=path, profile=self.config.profile, rebuilt=True)

    def _build(self) -> None:
        command = self.config.resolved_build_command
        description = f"Building {self.config.binary} ({self.config.profile})"

        try:
            if self.logger:
                result = run_with_progress(
                    self.logger, command, description, cwd=self.config.build_dir
                )
                returncode, output = result.returncode, result.output
            else:
                completed = subprocess.run(
                    list(command),
                    cwd=self.config.build_dir,
                    capture_output=True,
                    text=True,
                )
                returncode = completed.returncode
                output = f"{completed.stdout}\n{completed.stderr}".strip()
        except OSError as e:
            raise BuildFailure(f"Could not run build tool: {e}", context=" ".join(command))

        if returncode != 0:
            tail = "\n".join(output.splitlines()[-20:])
            raise BuildFailure(
                f"Build failed with exit code {returncode}", context=tail or None
            )
