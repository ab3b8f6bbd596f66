"""Simulator control. Async routes: timers need the running event loop."""

from fastapi import APIRouter, Depends

from ...simulator import LogSimulator
from ..dependencies import get_simulator

router = APIRouter(prefix="/api/simulator", tags=["simulator"])


@router.get("/status")
async def simulator_status(simulator: LogSimulator = Depends(get_simulator)):
    return simulator.status()


@router.post("/enable")
async def enable_simulator(simulator: LogSimulator = Depends(get_simulator)):
    simulator.start()
    return {"enabled": True}


@router.post("/disable")
async def disable_simulator(simulator: LogSimulator = Depends(get_simulator)):
    simulator.stop()
    return {"enabled": False}
