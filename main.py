"""
Station Simulation Main Entry Point

Ticks every life-support and power subsystem in the background engine and
periodically logs a status summary. Transport and storage layers consume
StationEngine.get_status(); none are started here.
"""
__version__ = "0.1.0"

import asyncio
import logging
import os

from subsystems import StationEngine, load_profiles

# Configure Logging
logging.basicConfig(
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    level=logging.INFO
)
logger = logging.getLogger("Main")


class StationSimulator:
    """
    Main orchestrator (only coordinates components).
    The engine is injected so tests and other hosts can supply their own.
    """

    def __init__(self, engine: StationEngine, max_ticks: int = 0, report_interval: float = 5.0):
        self._engine = engine
        self._max_ticks = max_ticks
        self._report_interval = report_interval

    async def initialize(self) -> None:
        """Initialize all components."""
        logger.info("Initializing Station Simulator...")
        self._engine.start()
        logger.info(f"Station Simulator initialized: {', '.join(self._engine.subsystem_names)}")

    async def run(self) -> None:
        """Run the main reporting loop."""
        logger.info("Entering Main Report Loop")
        await self._report_loop()

    async def _report_loop(self) -> None:
        while True:
            await asyncio.sleep(self._report_interval)
            status = self._engine.get_status()
            for name, info in status['subsystems'].items():
                logger.info(f"{name}: {info['status']} ({info['mode']}), {len(info['alerts'])} active alerts")

            if self._max_ticks and status['tick_count'] >= self._max_ticks:
                logger.info(f"Reached {self._max_ticks} ticks")
                break

    def stop(self) -> None:
        """Stop all components."""
        logger.info("Stopping Station Simulator...")
        self._engine.stop()
        logger.info("Station Simulator stopped")


async def main():
    """Application entry point."""
    load_profiles()
    engine = StationEngine()
    simulator = StationSimulator(
        engine,
        max_ticks=int(os.environ.get("MAX_TICKS", "0")),
        report_interval=float(os.environ.get("REPORT_INTERVAL", "5.0")),
    )

    try:
        await simulator.initialize()
        await simulator.run()
    finally:
        simulator.stop()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
