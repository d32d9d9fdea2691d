import argparse
import asyncio
import json
import os
import sys
from datetime import date

# Add the project root to the Python path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from dotenv import load_dotenv
load_dotenv()

from labcrm.core.db import SessionLocal
from labcrm.core.logging import setup_logging
from labcrm.modules.reminders.repository import ReminderRepository
from labcrm.modules.reminders.service import ReminderDispatchService
from labcrm.platform.provider_registry import registry

async def main(target: date | None):
    """
    Sends WhatsApp reminders for appointments on ``target`` (default: tomorrow).
    Meant to be run once a day by cron.
    """
    async with SessionLocal() as db:
        service = ReminderDispatchService(ReminderRepository(db), registry.messaging())
        result = await service.dispatch(target)
    print(json.dumps(result.model_dump(exclude_none=True), ensure_ascii=False, indent=2))
    return 1 if any(r.status == "failed" for r in result.results) else 0

if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Send appointment reminders over WhatsApp")
    parser.add_argument("--date", type=date.fromisoformat, default=None,
                        help="appointment date YYYY-MM-DD (default: tomorrow)")
    args = parser.parse_args()
    setup_logging()
    sys.exit(asyncio.run(main(args.date)))
