from typing import Callable

from authcore.domain.ports.otp_store import OtpStorePort
from authcore.domain.ports.unit_of_work import UnitOfWorkPort
from authcore.infrastructure.db.pool import get_pool
from authcore.infrastructure.db.uow import PgUnitOfWork
from authcore.infrastructure.redis_cache.otp_store import RedisLoginOtpStore
from authcore.infrastructure.redis_cache.pool import get_redis
from authcore.infrastructure.security.password import hash_password, verify_password
from authcore.infrastructure.security.tokens import JwtTokenIssuer
from authcore.settings import get_settings


def get_uow() -> UnitOfWorkPort:
    return PgUnitOfWork(get_pool())


def get_otp_store() -> OtpStorePort:
    return RedisLoginOtpStore(get_redis(), max_misses=get_settings().otp_max_misses)


def get_hash_password() -> Callable[..., tuple[str, str | None]]:
    return hash_password


def get_verify_password() -> Callable[[str, str, str | None], bool]:
    return verify_password


def get_token_issuer() -> JwtTokenIssuer:
    return JwtTokenIssuer.from_settings(get_settings())


def get_otp_ttl_seconds() -> int:
    return get_settings().otp_code_ttl_seconds
