# scripts/check_redis_lock.py

import sys
from pathlib import Path

# Ensure project root is on the path when running this script directly
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import asyncio
from redis_mutex import RedisClient, configure_logging, get_settings, lock, try_lock

async def check():
    configure_logging(get_settings().log_level)
    r = RedisClient()

    acquired, release = await try_lock(r, "smoke", timeout=5)
    second, _ = await try_lock(r, "smoke", timeout=5)

    print("First acquire:", acquired, "token:", release.fencing_token)
    print("Second acquire:", second)

    waiting = asyncio.create_task(lock(r, "smoke", polling_interval=60))
    await asyncio.sleep(0.1)
    await release()
    handle = await waiting
    print("Woken waiter token:", handle.fencing_token)
    await handle()

    await r.aclose()

asyncio.run(check())
