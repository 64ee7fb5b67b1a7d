import asyncio
import json
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware

from client.audio import ClientAudio
from client.channel import ClientChannel
from client.confetti import ClientConfetti
from config import CAPTURE_DIR, FRONTEND_URL
from models.loader import load_all_models
from processing.frame_source import WebSocketFrameSource
from processing.orchestrator import CelebrationOrchestrator, CelebrationTimings
from processing.photo import PhotoBooth
from schemas.messages import ErrorEvent
from state.celebration import CelebrationStage

logger = logging.getLogger("uvicorn.error")


@asynccontextmanager
async def lifespan(app: FastAPI):
    print("Loading models...")
    app.state.registry = load_all_models()
    app.state.timings = CelebrationTimings()
    app.state.capture_dir = CAPTURE_DIR
    print("Server ready.")
    yield


app = FastAPI(lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[FRONTEND_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
async def health():
    return {"status": "ok", "landmarker_loaded": app.state.registry.landmarker_loaded}


def _handle_command(data, orchestrator: CelebrationOrchestrator,
                    frame_source: WebSocketFrameSource, channel: ClientChannel):
    kind = data.get("type") if isinstance(data, dict) else None

    if kind == "start":
        if orchestrator.stage == CelebrationStage.IDLE:
            frame_source.camera_enabled = bool(data.get("camera", True))
        orchestrator.start()
    elif kind == "manual_blow":
        orchestrator.manual_gesture_confirm()
    elif kind == "skip_capture":
        orchestrator.skip_capture()
    elif kind == "save":
        orchestrator.save_photo()
    else:
        channel.send(ErrorEvent(message=f"Unknown command: {kind}"))


@app.websocket("/ws/celebration")
async def celebration(websocket: WebSocket):
    await websocket.accept()
    state = websocket.app.state
    channel = ClientChannel()
    frame_source = WebSocketFrameSource(state.registry.landmarker_model)
    frame_source.on_error = lambda message: channel.send(ErrorEvent(message=message))

    orchestrator = CelebrationOrchestrator(
        frame_source=frame_source,
        audio=ClientAudio(channel),
        particles=ClientConfetti(channel),
        photo=PhotoBooth(frame_source, state.capture_dir),
        emit=channel.send,
        timings=state.timings,
    )

    logger.info("WS celebration session started")

    async def reader():
        """Read commands and camera frames until the client disconnects."""
        try:
            while True:
                message = await websocket.receive()

                if message.get("type") == "websocket.disconnect":
                    break

                if message.get("text") is not None:
                    try:
                        data = json.loads(message["text"])
                    except json.JSONDecodeError:
                        continue
                    _handle_command(data, orchestrator, frame_source, channel)

                if message.get("bytes") is not None:
                    frame_source.push(message["bytes"])

        except (WebSocketDisconnect, RuntimeError):
            pass

    writer_task = asyncio.create_task(channel.writer(websocket))
    run_task = asyncio.create_task(orchestrator.run())

    try:
        await reader()
    except (WebSocketDisconnect, RuntimeError) as e:
        logger.info(f"WS celebration ended: {type(e).__name__}: {e}")
    finally:
        await orchestrator.close()
        run_task.cancel()
        writer_task.cancel()
        await asyncio.gather(run_task, writer_task, return_exceptions=True)
        logger.info(
            f"WS cleanup: stage={orchestrator.stage.value}, "
            f"processed {frame_source.frame_count} frames"
        )
