import asyncio
import time
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple, Union

from aiohttp import web
from loguru import logger


class PingServer:
    """Local stand-in for the Cronbeats ping API.

    Known job keys get the service's success payload, unknown ones a 404.
    `fail_next` and `reply_next` queue (status, body) pairs that are answered,
    in order, before any regular handling. `delay_s` stalls every response.
    """

    def __init__(self, job_keys: Tuple[str, ...] = ("abc123de",), interval_s: int = 3600):
        self.job_keys = set(job_keys)
        self.interval_s = interval_s
        self.failures: List[Tuple[int, Union[str, bytes]]] = []
        self.delay_s = 0.0
        self.requests: List[Dict[str, object]] = []
        self.app = web.Application()
        self.app.router.add_post("/ping/{job_key}", self.handle_ping)
        self.app.router.add_post("/ping/{job_key}/start", self.handle_ping)
        self.app.router.add_post("/ping/{job_key}/end/{status}", self.handle_ping)
        self.app.router.add_post("/ping/{job_key}/progress", self.handle_ping)
        self.app.router.add_post("/ping/{job_key}/progress/{seq}", self.handle_ping)
        self.logger = logger
        self.runner: Optional[web.AppRunner] = None

    def fail_next(self, status: int, body: Union[str, bytes] = '{"status":"error","message":"Server error"}', times: int = 1):
        self.failures.extend([(status, body)] * times)

    def reply_next(self, status: int, body: Union[str, bytes]):
        self.failures.append((status, body))

    @staticmethod
    def _action(request: web.Request) -> str:
        parts = request.path.strip("/").split("/")
        return parts[2] if len(parts) > 2 else "ping"

    async def handle_ping(self, request: web.Request) -> web.Response:
        started = time.perf_counter()
        job_key = request.match_info["job_key"]
        raw_body = await request.text()
        self.requests.append(
            {
                "method": request.method,
                "path": request.path,
                "headers": {key.lower(): value for key, value in request.headers.items()},
                "body": raw_body,
            }
        )

        if self.delay_s:
            await asyncio.sleep(self.delay_s)

        if self.failures:
            status, body = self.failures.pop(0)
            self.logger.info(f"Returning scripted {status} for {request.path}")
            if isinstance(body, bytes):
                return web.Response(status=status, body=body, content_type="application/json")
            return web.Response(status=status, text=body, content_type="application/json")

        if job_key not in self.job_keys:
            self.logger.info(f"Unknown job key {job_key}")
            return web.json_response({"status": "error", "message": "Job not found"}, status=404)

        status = request.match_info.get("status")
        if status is not None and status not in ("success", "fail"):
            return web.json_response({"status": "error", "message": "Invalid status"}, status=400)

        now = datetime.now()
        payload = {
            "status": "success",
            "message": "OK",
            "action": self._action(request),
            "job_key": job_key,
            "timestamp": now.strftime("%Y-%m-%d %H:%M:%S"),
            "processing_time_ms": round((time.perf_counter() - started) * 1000, 2),
            "next_expected": (now + timedelta(seconds=self.interval_s)).strftime("%Y-%m-%d %H:%M:%S"),
        }
        self.logger.info(f"Accepted {payload['action']} for {job_key}")
        return web.json_response(payload)

    async def start(self, port: int = 8080):
        self.runner = web.AppRunner(self.app)
        await self.runner.setup()
        site = web.TCPSite(self.runner, "localhost", port)
        await site.start()
        self.logger.info(f"Server started on port {port}")
        return site

    async def stop(self):
        if self.runner is not None:
            await self.runner.cleanup()
            self.runner = None
