"""Background tasks for seat-hold expiry and idle session cleanup."""

import asyncio
import logging

from venservice.config import settings
from venservice.services.reservation_service import ReservationSessionRegistry, get_registry

logger = logging.getLogger(__name__)

# Flag to stop the background task
_stop_hold_sweeper = False


async def run_hold_sweep(registry: ReservationSessionRegistry | None = None) -> int:
    """Release lapsed seat holds and drop idle sessions once.

    Returns:
        int: Number of seats released
    """
    registry = registry or get_registry()
    released = await registry.expire_holds()
    if released:
        logger.info(f"Hold sweep released {released} seat(s)")
    registry.discard_idle()
    return released


async def start_hold_sweeper(registry: ReservationSessionRegistry | None = None) -> None:
    """Background task that sweeps seat holds every few seconds."""
    global _stop_hold_sweeper
    _stop_hold_sweeper = False
    interval = max(settings.hold_sweep_interval_seconds, 1)

    logger.info(f"Seat hold sweeper started (every {interval}s)")

    while not _stop_hold_sweeper:
        try:
            await run_hold_sweep(registry)
        except Exception as e:
            logger.error(f"Seat hold sweep error: {e}")

        # Wait for next interval (check stop flag every second)
        for _ in range(interval):
            if _stop_hold_sweeper:
                break
            await asyncio.sleep(1)

    logger.info("Seat hold sweeper stopped")


def stop_hold_sweeper() -> None:
    """Signal the hold sweeper to stop."""
    global _stop_hold_sweeper
    _stop_hold_sweeper = True
