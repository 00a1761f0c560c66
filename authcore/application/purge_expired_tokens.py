import logging
from datetime import datetime

from authcore.domain.ports.unit_of_work import UnitOfWorkPort
from authcore.domain.services import utcnow

logger = logging.getLogger(__name__)


async def purge_expired_tokens(uow: UnitOfWorkPort, now: datetime | None = None) -> int:
    async with uow as transaction:
        removed = await transaction.accounts.delete_expired_tokens(now or utcnow())
        await transaction.commit()
    if removed:
        logger.info("purged expired account tokens", extra={"count": removed})
    return removed
