"""Builder registry for the available build strategies."""

from tomcat_pilot.builders.base import BaseBuilder
from tomcat_pilot.models.deployment import BuildStrategy
from tomcat_pilot.utils.logging import get_logger

logger = get_logger(__name__)


class BuilderRegistry:
    """Registry mapping each BuildStrategy to its builder."""

    def __init__(self):
        self._builders: dict[BuildStrategy, BaseBuilder] = {}

    def register(self, builder: BaseBuilder) -> None:
        if builder.strategy in self._builders:
            logger.warning(f"Overwriting existing builder: {builder.strategy.value}")
        self._builders[builder.strategy] = builder
        logger.info(f"Registered builder: {builder.strategy.value}")

    def get(self, strategy: BuildStrategy) -> BaseBuilder | None:
        return self._builders.get(strategy)

    def list_strategies(self) -> list[BuildStrategy]:
        return list(self._builders)
