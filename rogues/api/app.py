import logging
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from rogues.config import get_settings
from rogues.engine.engine import Engine
from rogues.engine.save import SaveState
from rogues.runtime.eventlog import event_to_dict
from rogues.runtime.runner import TurnRunner
from .schemas import (ActionResponse, ArmyIn, EventsResponse, PlaceIn, RewardIn, SpellIn,
                      StartRequest, TileIn, UnitIn)

settings = get_settings()
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Rogues Battle API")
runner: TurnRunner | None = None

# Enable CORS for development (front end runs on a different port)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173", "http://localhost:5174", "http://localhost:5175"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

def _runner() -> TurnRunner:
    if not runner:
        raise HTTPException(400, "Battle not started")
    return runner

async def _act(op: str, *args) -> ActionResponse:
    accepted, n = await _runner().execute(op, *args)
    return ActionResponse(accepted=accepted, events=n)

@app.get("/")
async def root():
    """API root endpoint."""
    return {
        "message": "Rogues Battle API",
        "docs": "/docs",
        "version": "1.0"
    }

@app.on_event("shutdown")
async def shutdown():
    """Stop the presentation loop on app shutdown."""
    global runner
    if runner:
        await runner.stop()

@app.post("/battle/start")
async def start_battle(req: StartRequest):
    """Start a new campaign (army selection phase) with the given seed."""
    await shutdown()
    global runner
    eng = Engine(seed=req.seed, settings=settings)
    runner = TurnRunner(eng, time_compression=settings.time_compression)
    await runner.start()
    logger.info(f"New campaign, seed {req.seed if req.seed is not None else settings.seed}")
    return {"battle_id": "local"}

@app.post("/battle/local/army", response_model=ActionResponse)
async def confirm_army(req: ArmyIn):
    return await _act("confirm_army_selection", req.counts)

@app.post("/battle/local/place", response_model=ActionResponse)
async def place_unit(req: PlaceIn):
    return await _act("place_unit", req.type, req.x, req.y)

@app.post("/battle/local/tile", response_model=ActionResponse)
async def activate_tile(req: TileIn):
    """Click on a board tile."""
    return await _act("handle_tile_activated", req.x, req.y)

@app.post("/battle/local/unit", response_model=ActionResponse)
async def activate_unit(req: UnitIn):
    """Click on a unit."""
    return await _act("handle_unit_activated", req.unit_id)

@app.post("/battle/local/end-turn", response_model=ActionResponse)
async def end_turn():
    return await _act("end_current_turn")

@app.post("/battle/local/spell", response_model=ActionResponse)
async def cast_spell(req: SpellIn):
    """Arm a spell; the next tile/unit activation targets it."""
    return await _act("cast_spell", req.spell_id)

@app.post("/battle/local/spell/cancel", response_model=ActionResponse)
async def cancel_spell():
    return await _act("cancel_active_spell")

@app.post("/battle/local/reward", response_model=ActionResponse)
async def select_reward(req: RewardIn):
    return await _act("select_reward", req.category, req.option_id, req.unit_id)

@app.post("/battle/local/reward/confirm", response_model=ActionResponse)
async def confirm_rewards():
    return await _act("confirm_reward_selections")

@app.get("/battle/local/state")
async def get_state():
    """Get current battle state snapshot."""
    return await _runner().snapshot()

@app.get("/battle/local/events")
async def get_events(since: int = 0, limit: int = 500):
    """Get events since offset."""
    evts, next_offset = _runner().events.since(since, limit)
    return EventsResponse(
        next_offset=next_offset,
        events=[event_to_dict(e) for e in evts]
    )

@app.get("/battle/local/save", response_model=SaveState)
async def save_campaign():
    return await _runner().save()

@app.post("/battle/local/load")
async def load_campaign(save: SaveState):
    """Resume a saved campaign at the start of its battle."""
    n = await _runner().load(save)
    return {"battle_number": save.battle_number, "events": n}

@app.post("/battle/local/time-control")
async def set_time_control(time_compression: float):
    """Set presentation time compression (1.0 = real-time, higher = faster)."""
    _runner().set_time_compression(time_compression)
    return {"time_compression": runner.time_compression}

@app.get("/battle/local/time-control")
async def get_time_control():
    """Get current time compression setting."""
    return {"time_compression": _runner().time_compression}
