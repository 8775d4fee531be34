# scripts/run_cleanup_once.py
import asyncio
from app.services.ledger_cleanup import run_cleanup_job

async def main():
    deleted = await run_cleanup_job()
    print({"deleted": deleted})

if __name__ == "__main__":
    asyncio.run(main())
