"""
Short human-readable order codes, e.g. 'K7MX2Q'
"""
import secrets

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ordering.config import get_settings
from ordering.models.order import Order
from ordering.services.errors import PersistenceError

# No 0/O, 1/I/L: codes get read out loud at the counter
CODE_ALPHABET = "ABCDEFGHJKMNPQRSTUVWXYZ23456789"
MAX_ATTEMPTS = 5


def random_code(length: int) -> str:
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))


async def generate_order_code(db: AsyncSession) -> str:
    """
    Pick a code not used by any stored order. The unique index on
    orders.code still guards the rare race between two submissions.
    """
    length = get_settings().ORDER_CODE_LENGTH
    for _ in range(MAX_ATTEMPTS):
        code = random_code(length)
        result = await db.execute(select(Order.id).where(Order.code == code))
        if result.first() is None:
            return code
    raise PersistenceError("Could not generate a unique order code")
