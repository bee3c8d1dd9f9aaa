"""Fast strategy: sync static content and compile sources in place."""

import asyncio
import os
import tempfile
from pathlib import Path

from tomcat_pilot.builders.base import BaseBuilder
from tomcat_pilot.builders.process import filter_error_lines, output_tail, run_command
from tomcat_pilot.builders.sync import brutal_sync, copy_tree, find_files, reset_dir
from tomcat_pilot.core.exceptions import BuildError
from tomcat_pilot.models.deployment import BuildStrategy, DeploymentTarget
from tomcat_pilot.models.server import ServerInstallation


class DirectCopyBuilder(BaseBuilder):
    """Copies ``src/main/webapp`` into Tomcat and runs javac directly.

    No build tool is involved, so redeploys take a fraction of a Maven or
    Gradle cycle. ``WEB-INF/classes`` and ``WEB-INF/lib`` are owned by this
    builder and are excluded from the webapp sync.
    """

    @property
    def strategy(self) -> BuildStrategy:
        return BuildStrategy.FAST

    @property
    def marker(self) -> str:
        return "src/main/webapp"

    async def build(self, target: DeploymentTarget) -> None:
        project = target.source_dir
        installation = await self.resolver.resolve()

        web_inf = target.target_dir / "WEB-INF"
        classes_dir = web_inf / "classes"

        await asyncio.to_thread(brutal_sync, project / self.marker, target.target_dir, True)
        await asyncio.to_thread(reset_dir, classes_dir)

        sources = await asyncio.to_thread(find_files, project / "src" / "main" / "java", "*.java")
        if sources:
            await self._compile(sources, installation, classes_dir, project)

        lib_dir = project / "lib"
        if lib_dir.is_dir():
            await asyncio.to_thread(copy_tree, lib_dir, web_inf / "lib")

    async def _compile(
        self,
        sources: list[Path],
        installation: ServerInstallation,
        classes_dir: Path,
        project: Path,
    ) -> None:
        # An argument file keeps large projects under the command-line limit
        fd, argfile = tempfile.mkstemp(prefix="tomcat-pilot-", suffix=".txt")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write("\n".join(_quote(str(s)) for s in sources))
            result = await run_command(
                [
                    str(installation.javac_executable),
                    "-d",
                    str(classes_dir),
                    "-cp",
                    str(installation.tomcat_home / "lib" / "*"),
                    f"@{argfile}",
                ],
                project,
                self.strategy.value,
                encoding=self.settings.log_encoding,
            )
        finally:
            Path(argfile).unlink(missing_ok=True)

        if not result.ok:
            errors = filter_error_lines(result.output, ("error:",), ())
            message = "\n".join(errors) or output_tail(result.output)
            raise BuildError(self.strategy.value, message, output_tail(result.output, 50))
        self.logger.info("builder.compiled", sources=len(sources))


def _quote(path: str) -> str:
    return '"' + path.replace("\\", "\\\\").replace('"', '\\"') + '"'
