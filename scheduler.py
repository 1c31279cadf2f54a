# scheduler.py
import asyncio
import logging

from config import settings
from vouchers import deactivate_expired_vouchers

logger = logging.getLogger(__name__)


async def expire_vouchers_job():
    """
    Run periodically to deactivate vouchers past their expiry date
    """
    interval_seconds = settings.VOUCHER_EXPIRY_INTERVAL_MINUTES * 60

    while True:
        try:
            expired_count = await deactivate_expired_vouchers()
            if expired_count > 0:
                logger.info(f"Deactivated {expired_count} expired vouchers")
        except Exception as e:
            logger.error(f"Error in voucher expiry job: {e}")

        await asyncio.sleep(interval_seconds)
