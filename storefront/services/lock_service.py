# storefront/services/lock_service.py
import uuid

import redis
from redis.exceptions import RedisError

from storefront.domain.errors import StoreUnavailable
from storefront.utils.logging import get_logger
from storefront.utils.retry import redis_retry
from storefront.utils.settings import TRANSFER_LOCK_TTL_SECONDS

logger = get_logger(__name__)

#LUA porownaj i usun, atomicity
_RELEASE_LUA = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
    return redis.call('DEL', KEYS[1])
else
    return 0
end
"""

#redis wykonuje skrypt lua atomowo, nie mozna wcisnac sie miedzy GET a DEL
#wiec lock zwalnia tylko ten kto go trzyma (token)


class LockService:
    """
    -lock na sesje goscia na czas przenoszenia koszyka do konta
    -dwa rownolegle logowania z tym samym session id nie zmerguja koszyka dwa razy
    -lock wygasa sam po ttl gdy proces padnie
    """

    def __init__(self, client: redis.Redis, ttl: int = TRANSFER_LOCK_TTL_SECONDS):
        self.redis = client
        self.ttl = ttl

    @staticmethod
    def transfer_key(session_id: str) -> str:
        return f"session:{session_id}:transfer_lock"

    def acquire_transfer_lock(self, session_id: str) -> str | None:
        """Returns the lock token, or None when another transfer holds the lock."""
        key = self.transfer_key(session_id)
        token = uuid.uuid4().hex
        logger.info(f"Acquire lock {key}")
        try:
            #SET session:x:transfer_lock <token> NX EX 30
            acquired = self.redis.set(name=key, value=token, nx=True, ex=self.ttl)
        except RedisError as e:
            raise StoreUnavailable("Guest session store is unavailable") from e
        return token if acquired else None

    @redis_retry()
    def release_transfer_lock(self, session_id: str, token: str) -> bool:
        key = self.transfer_key(session_id)
        logger.info(f"Release lock {key}")
        res = self.redis.eval(_RELEASE_LUA, 1, key, token)
        return bool(res)
