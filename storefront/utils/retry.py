# storefront/utils/retry.py
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type
import redis

from storefront.domain.errors import DuplicateOrderNumber


def redis_retry():
    return retry(
        reraise=True,
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.2, min=0.2, max=2),
        retry=retry_if_exception_type(redis.RedisError),
    )


def order_number_retry():
    #one retry with a fresh number, after that the error goes up
    return retry(
        reraise=True,
        stop=stop_after_attempt(2),
        retry=retry_if_exception_type(DuplicateOrderNumber),
    )
