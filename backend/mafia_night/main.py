import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# import python-socketio ASGI
import socketio

from .broadcaster import ERROR, SocketIOBroadcaster
from .config import Settings, configure_logging
from .errors import GameError, RuleViolation
from .game import GameController
from .registry import RoomRegistry

settings = Settings.from_env()
configure_logging(settings.log_level)
logger = logging.getLogger(__name__)


async def _reap_idle_rooms():
    while True:
        await asyncio.sleep(settings.reap_interval)
        registry.reclaim_idle(settings.room_idle_seconds)


@asynccontextmanager
async def lifespan(app):
    reaper = asyncio.create_task(_reap_idle_rooms())
    logger.info("Mafia night server ready")
    try:
        yield
    finally:
        reaper.cancel()
        for room_id in list(registry.rooms):
            registry.destroy_room(room_id)


app = FastAPI(lifespan=lifespan)

# Allow CORS for the client bundle
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
async def read_root():
    return {"message": "Mafia night server is running!"}


@app.get('/rooms/{room_id}')
async def room_summary(room_id: str):
    room = registry.get_room(room_id)
    if room is None:
        return JSONResponse({'error': 'room not found'}, status_code=404)
    return room.to_dict()


# ----------------- Socket.IO server -----------------
sio = socketio.AsyncServer(
    async_mode='asgi',
    cors_allowed_origins='*' if settings.cors_origins == ['*'] else settings.cors_origins,
    logger=settings.socketio_logger,
    engineio_logger=settings.socketio_logger,
)
socket_app = socketio.ASGIApp(sio, other_asgi_app=app)

registry = RoomRegistry(code_length=settings.room_code_length)
controller = GameController(registry, SocketIOBroadcaster(sio), settings)


def _field(data, key):
    value = data.get(key) if isinstance(data, dict) else None
    if value is None:
        raise RuleViolation(f"Missing {key}")
    return value


async def _dispatch(sid, make_call):
    """Run one intent; game rejections go back to the sender only."""
    try:
        return await make_call()
    except GameError as e:
        logger.info("Rejected intent from %s: %s", sid, e.message)
        await sio.emit(ERROR, {'message': e.message}, to=sid)


@sio.event
async def connect(sid, environ, auth=None):
    logger.info("User connected: %s", sid)


@sio.event
async def disconnect(sid, *args):
    await controller.disconnect(sid)


@sio.on('create_room')
async def handle_create_room(sid, data=None):
    await _dispatch(sid, lambda: controller.create_room(sid))


@sio.on('join_room')
async def handle_join_room(sid, data=None):
    await _dispatch(sid, lambda: controller.join_room(sid, _field(data, 'roomId'), _field(data, 'name')))


@sio.on('start_game')
async def handle_start_game(sid, data=None):
    await _dispatch(sid, lambda: controller.start_game(sid, _field(data, 'roomId')))


@sio.on('next_phase')
async def handle_next_phase(sid, data=None):
    await _dispatch(sid, lambda: controller.next_phase(sid, _field(data, 'roomId')))


@sio.on('mafia_vote')
async def handle_mafia_vote(sid, data=None):
    await _dispatch(sid, lambda: controller.mafia_vote(sid, _field(data, 'roomId'), _field(data, 'targetId')))


@sio.on('nurse_action')
async def handle_nurse_action(sid, data=None):
    await _dispatch(sid, lambda: controller.nurse_action(sid, _field(data, 'roomId'), _field(data, 'targetId')))


@sio.on('detective_action')
async def handle_detective_action(sid, data=None):
    await _dispatch(sid, lambda: controller.detective_action(sid, _field(data, 'roomId'), _field(data, 'targetId')))


@sio.on('host_kill')
async def handle_host_kill(sid, data=None):
    await _dispatch(sid, lambda: controller.host_kill(sid, _field(data, 'roomId'), _field(data, 'targetId')))


@sio.on('host_skip')
async def handle_host_skip(sid, data=None):
    await _dispatch(sid, lambda: controller.host_skip(sid, _field(data, 'roomId')))


@sio.on('get_game_state')
async def handle_get_game_state(sid, data=None):
    await _dispatch(sid, lambda: controller.get_game_state(sid, _field(data, 'roomId')))


def run():
    import uvicorn

    logger.info("Mafia night server starting on %s:%d", settings.host, settings.port)
    uvicorn.run(socket_app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == '__main__':
    run()
