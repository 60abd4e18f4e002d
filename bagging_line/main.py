import asyncio
import logging
import threading
import time
from typing import Any, Dict, Literal, Optional

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
import uvicorn

from .settings import load_config
from .simulation.factory import build_plant
from .simulation.controller import LineController
from .simulation.profiles import LineProfile, ProfileConfigError
from .scada.store import ScadaStore
from .middleware.bridge import ConnectionManager, EventBridge

logging.basicConfig(level=logging.INFO, format='[LINE] %(asctime)s | %(message)s', datefmt='%H:%M:%S')
logger = logging.getLogger("LineAPI")

CONFIG = load_config()

app = FastAPI(title="Bagging Line Digital Twin API")

# Allow CORS for the canvas renderer
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Global Simulation Engine
sim_engine = build_plant(CONFIG)
simulation_thread = None
running = False

manager = ConnectionManager()
bridge = EventBridge(manager)
swap_tasks: Dict[str, asyncio.Task] = {}


def publish_snapshot():
    """Push tags and verdict feeds to the SCADA store."""
    ScadaStore.update(sim_engine.get_all_tags())
    for line_id in sim_engine.lines:
        ScadaStore.set_feed(line_id, sim_engine.flow_engine.feed(line_id).to_list())


def simulation_loop():
    global running
    logger.info(">>> Simulation Started")
    while running:
        start_time = time.time()

        try:
            # 1. Step Simulation
            sim_engine.step()

            # 2. Update SCADA Store
            publish_snapshot()
        except Exception:
            logger.error("Simulation step failed, continuing", exc_info=True)

        # 3. Sleep remainder of tick
        elapsed = time.time() - start_time
        sleep_time = max(0, sim_engine.time_step - elapsed)
        time.sleep(sleep_time)
    logger.info(">>> Simulation Stopped")


@app.on_event("startup")
async def startup_event():
    global simulation_thread, running
    bridge.bind_loop(asyncio.get_running_loop())
    sim_engine.event_dispatcher.subscribe(None, bridge.on_event)
    publish_snapshot()
    running = True
    simulation_thread = threading.Thread(target=simulation_loop, daemon=True)
    simulation_thread.start()


@app.on_event("shutdown")
async def shutdown_event():
    global running
    pending = [task for task in swap_tasks.values() if not task.done()]
    for task in pending:
        task.cancel()
    await asyncio.gather(*pending, return_exceptions=True)
    running = False
    sim_engine.event_dispatcher.unsubscribe(None, bridge.on_event)
    if simulation_thread:
        simulation_thread.join(timeout=2.0)


# --- Request Models ---
class SpeedRequest(BaseModel):
    speed: Any = None


class ProfileSwitchRequest(BaseModel):
    profile: Optional[str] = None  # preset name
    custom: Optional[Dict[str, Any]] = None  # ad-hoc profile fields
    mode: Literal["safe", "immediate"] = "safe"


def get_line_or_404(line_id: str) -> LineController:
    line = sim_engine.get_line(line_id)
    if line is None:
        raise HTTPException(status_code=404, detail=f"Unknown line '{line_id}'")
    return line


def resolve_profile(request: ProfileSwitchRequest) -> LineProfile:
    if request.custom is not None:
        name = request.profile or request.custom.get("name") or "custom"
        return LineProfile.from_mapping(name, request.custom)
    if request.profile is None:
        raise ProfileConfigError("Either 'profile' or 'custom' is required")
    if request.profile not in sim_engine.profiles:
        raise ProfileConfigError(f"Unknown profile '{request.profile}'")
    return sim_engine.profiles[request.profile]


# --- Read Endpoints ---
@app.get("/")
def read_root():
    return {"status": "ok", "service": "Bagging Line Twin"}


@app.get("/api/state")
def get_state():
    """Returns the full SCADA state snapshot."""
    return ScadaStore.get_all()


@app.get("/api/profiles")
def get_profiles():
    return {name: profile.to_dict() for name, profile in sim_engine.profiles.items()}


@app.get("/api/lines")
def get_lines():
    return sim_engine.list_lines()


@app.get("/api/lines/{line_id}")
def get_line(line_id: str):
    line = get_line_or_404(line_id)
    snapshot = line.snapshot()
    snapshot.pop("items")
    snapshot["metrics"] = sim_engine.flow_engine.get_metrics(line_id, line.sim_time, line.profile.final_nominal)
    return snapshot


@app.get("/api/lines/{line_id}/items")
def get_items(line_id: str):
    """Active items for the renderer."""
    return get_line_or_404(line_id).snapshot()["items"]


@app.get("/api/lines/{line_id}/feed")
def get_feed(line_id: str):
    get_line_or_404(line_id)
    return ScadaStore.get_feed(line_id)


@app.get("/api/lines/{line_id}/order")
def get_order(line_id: str):
    line = get_line_or_404(line_id)
    tracker = sim_engine.flow_engine.get_order(line_id)
    if tracker is None:
        raise HTTPException(status_code=404, detail=f"No order attached to '{line_id}'")
    rate = line.profile.throughput_rate
    return tracker.to_dict(rate_kg_per_hour=rate)


# --- Control Endpoints ---
@app.post("/api/lines/{line_id}/pause")
def pause_line(line_id: str):
    line = get_line_or_404(line_id)
    line.pause()
    return {"line_id": line_id, "paused": line.paused}


@app.post("/api/lines/{line_id}/resume")
def resume_line(line_id: str):
    line = get_line_or_404(line_id)
    line.resume()
    return {"line_id": line_id, "paused": line.paused}


@app.post("/api/lines/{line_id}/speed")
def set_speed(line_id: str, request: SpeedRequest):
    line = get_line_or_404(line_id)
    speed = line.set_speed(request.speed)
    return {"line_id": line_id, "speed": speed}


@app.delete("/api/lines/{line_id}/items/{item_id}")
def remove_item(line_id: str, item_id: int):
    line = get_line_or_404(line_id)
    if not line.remove_item(item_id):
        raise HTTPException(status_code=404, detail=f"Item {item_id} not on line '{line_id}'")
    return {"line_id": line_id, "removed": item_id}


@app.post("/api/lines/{line_id}/profile")
async def switch_profile(line_id: str, request: ProfileSwitchRequest):
    line = get_line_or_404(line_id)
    try:
        profile = resolve_profile(request)
    except ProfileConfigError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if request.mode == "immediate":
        line.switch_profile(profile)
        return {"line_id": line_id, "status": "switched", "profile": profile.name}

    if line.swap_in_progress:
        raise HTTPException(status_code=409, detail=f"Profile swap already running on '{line_id}'")

    settings = sim_engine.swap_settings
    swap_tasks[line_id] = asyncio.create_task(line.swap_profile_safely(
        profile,
        timeout=settings.get("timeout_sec", 30.0),
        poll_interval=settings.get("poll_interval_sec", 0.25),
        prepare_delay=settings.get("prepare_delay_sec", 0.0),
    ))
    return {"line_id": line_id, "status": "swap_scheduled", "profile": profile.name}


# --- Event Stream ---
@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    await manager.connect(websocket)
    try:
        while True:
            # Keep connection open; events are pushed by the bridge
            await websocket.receive_text()
    except WebSocketDisconnect:
        manager.disconnect(websocket)


def main():
    api = CONFIG.get("api", {})
    uvicorn.run("bagging_line.main:app", host=api.get("host", "0.0.0.0"), port=api.get("port", 8000))


if __name__ == "__main__":
    main()
