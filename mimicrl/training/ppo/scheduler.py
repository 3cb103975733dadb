"""Cooperative scheduling helpers for the training loop."""

import asyncio


async def yield_now() -> None:
    """Hand control back to the event loop without any delay.

    Every long-running phase of training awaits this periodically so that
    other tasks on the same loop (UI, I/O, pause/stop requests) keep running.
    """
    await asyncio.sleep(0)
