import asyncio

from cronbeats_client.cronbeats_client import PingClient
from cronbeats_client.errors import ApiError
from cronbeats_client.models import ClientConfig, ProgressOptions
from loguru import logger
from ping_server import PingServer


def report(result):
    print(f"{result.action:<8} ok={result.ok} job={result.job_key} at {result.timestamp}")
    print(f"         processing time: {result.processing_time_ms:.2f}ms")


async def main():
    PORT = 8000
    JOB_KEY = "YCrXzYbV"
    server = PingServer(job_keys=(JOB_KEY,), interval_s=600)
    await server.start(port=PORT)
    print(f"Server started on http://localhost:{PORT}")

    logger.enable("cronbeats_client")
    server.fail_next(429, '{"status":"error","message":"Too many requests"}')

    config = ClientConfig(base_url=f"http://localhost:{PORT}", max_retries=3)
    client = PingClient(JOB_KEY, config)

    try:
        report(await client.start())
        for step in range(1, 4):
            report(await client.progress(ProgressOptions(seq=step * 33, message=f"batch {step} of 3")))
        final = await client.success()
        report(final)
        print(f"Next run expected at: {final.next_expected}")
    except ApiError as e:
        print(f"Ping failed ({e.code.value}, status {e.http_status}): {e.message}")
    finally:
        await server.stop()


if __name__ == "__main__":
    asyncio.run(main())
