"""
WebSocket server for the cyber attack interception map.

Streams generated attacks, interceptor launches and per-tick positions to
every connected map client, and serves the defense center list over HTTP.
"""

import json
import time
import asyncio
import argparse
import logging
from typing import Optional

import websockets
from websockets.datastructures import Headers
from websockets.http11 import Response

from simulator import (
    SimConfig, ConfigurationError, SimulationRegistry, EventGenerator,
    AttackDescriptor, load_config, load_env, build_generator,
)
from simulator.events import CENTER_INFO, SERVER_STATUS

logger = logging.getLogger(__name__)


def encode_message(event: str, payload: dict) -> str:
    """Wire format: one JSON object per event, tagged with its type."""
    return json.dumps({"type": event, **payload}, default=str)


class Broadcaster:
    """Fans every published event out to all connected clients."""

    def __init__(self):
        self.clients: set = set()
        self.messages_sent = 0

    def publish(self, event: str, payload: dict):
        if not self.clients:
            return
        # broadcast() skips clients whose connection is already closing
        websockets.broadcast(self.clients, encode_message(event, payload))
        self.messages_sent += 1


class SimulationService:
    """Wires the generator and registry to the transport for one process."""

    def __init__(
        self,
        config: SimConfig,
        broadcaster: Optional[Broadcaster] = None,
        generator: Optional[EventGenerator] = None,
    ):
        self.config = config
        self.broadcaster = broadcaster or Broadcaster()
        self.registry = SimulationRegistry(config, publish=self.broadcaster.publish)
        self.generator = generator or build_generator(config, publish=self.broadcaster.publish)

    @staticmethod
    def now_ms() -> float:
        return time.monotonic() * 1000

    def status(self) -> dict:
        return {
            "ok": True,
            "message": "Threat map simulation server online",
            "mode": type(self.generator.source).__name__,
            "activeAttacks": len(self.registry),
            "stats": dict(self.registry.stats),
        }

    def generate_once(self, now_ms: float) -> Optional[AttackDescriptor]:
        """Generate one attack, if the source has one, and start simulating it."""
        attack = self.generator.next_attack(now_ms)
        if attack is None:
            return None
        self.registry.register(attack, now_ms)
        self.registry.defend(attack.id, now_ms)
        return attack

    async def run_generation(self):
        interval = self.config.generation_interval_ms / 1000
        while True:
            try:
                self.generate_once(self.now_ms())
            except Exception as e:
                logger.error(f"Attack generation failed: {e}")
            await asyncio.sleep(interval)

    async def run_ticks(self):
        interval = self.config.tick_interval_ms / 1000
        while True:
            self.registry.tick(self.now_ms())
            await asyncio.sleep(interval)

    # ── WebSocket handling ──

    async def handle_websocket(self, websocket):
        """One map client: bootstrap it, then keep it subscribed until it leaves."""
        peer = getattr(websocket, "remote_address", None)
        logger.info(f"Client connected: {peer}")

        async def send_json(msg_type: str, data: dict):
            await websocket.send(encode_message(msg_type, data))

        self.broadcaster.clients.add(websocket)
        try:
            await send_json(CENTER_INFO, self.config.center_info())
            await send_json(SERVER_STATUS, self.status())

            async for raw in websocket:
                try:
                    msg = json.loads(raw)
                except json.JSONDecodeError:
                    await send_json("error", {"message": "Invalid JSON"})
                    continue

                msg_type = msg.get("type", "") if isinstance(msg, dict) else ""
                if msg_type == "get_centers":
                    await send_json(CENTER_INFO, self.config.center_info())
                elif msg_type == "get_status":
                    await send_json(SERVER_STATUS, self.status())
                elif msg_type == "ping":
                    await send_json("pong", {})
                else:
                    await send_json("error", {"message": f"Unknown message type: {msg_type}"})

        except websockets.exceptions.ConnectionClosed:
            pass
        finally:
            self.broadcaster.clients.discard(websocket)
            logger.info(f"Client disconnected: {peer}")

    def http_handler(self, connection, request):
        """Plain HTTP routes; anything else is upgraded to a WebSocket."""
        path = request.path.split("?", 1)[0]
        if path == "/centers":
            body = json.dumps({"centers": self.config.center_info()["centers"]}).encode()
            return Response(
                200,
                "OK",
                Headers([
                    ("Content-Type", "application/json"),
                    ("Content-Length", str(len(body))),
                    ("Access-Control-Allow-Origin", "*"),
                ]),
                body,
            )
        if path in ("", "/", "/health"):
            body = b"Threat map simulation server online\n"
            return Response(
                200,
                "OK",
                Headers([
                    ("Content-Type", "text/plain; charset=utf-8"),
                    ("Content-Length", str(len(body))),
                ]),
                body,
            )
        return None

    async def serve(self, host: str, port: int):
        logger.info(f"Starting server on ws://{host}:{port}")
        async with websockets.serve(
            self.handle_websocket,
            host,
            port,
            process_request=self.http_handler,
        ):
            tasks = [
                asyncio.create_task(self.run_generation()),
                asyncio.create_task(self.run_ticks()),
            ]
            try:
                await asyncio.gather(*tasks)
            finally:
                for task in tasks:
                    task.cancel()
                self.registry.shutdown()


def main() -> int:
    env = load_env()

    parser = argparse.ArgumentParser(description="Cyber attack interception map server")
    parser.add_argument("--config", default=env["config"], help="Simulation config YAML")
    parser.add_argument("--host", default=env["host"], help="Bind address")
    parser.add_argument("--port", type=int, default=env["port"], help="Bind port")
    parser.add_argument("--mode", choices=["synthetic", "replay"], default=None,
                        help="Override the configured generation mode")
    args = parser.parse_args()

    logging.basicConfig(level=getattr(logging, env["log_level"].upper(), logging.INFO))

    try:
        config = load_config(args.config)
        if args.mode:
            config.mode = args.mode
        service = SimulationService(config)
    except ConfigurationError as e:
        logger.error(f"Cannot start simulator: {e}")
        return 1

    try:
        asyncio.run(service.serve(args.host, args.port))
    except KeyboardInterrupt:
        logger.info("Server stopped")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
