"""
RQ (Redis Queue) configuration for background illustration jobs.
"""

import os
from typing import Optional
from redis import Redis
from redis.exceptions import RedisError
from rq import Queue
from rq.exceptions import NoSuchJobError
from rq.job import Job

from src.yorkiebook.services.job_service import ILLUSTRATION_QUEUE

DEFAULT_REDIS_URL = 'redis://localhost:6379/0'


def get_redis_connection() -> Redis:
    """
    Get Redis connection from REDIS_URL.

    ``memory://`` (the rate limiter's development storage) is replaced with
    the default local Redis URL, since RQ needs a real Redis server.

    Raises:
        redis.ConnectionError: If unable to connect to Redis server.
    """
    redis_url = os.getenv('REDIS_URL', DEFAULT_REDIS_URL)
    if redis_url.startswith('memory://'):
        redis_url = DEFAULT_REDIS_URL
    return Redis.from_url(redis_url)


def get_queue(name: str = ILLUSTRATION_QUEUE) -> Queue:
    """
    Get an RQ queue by name.

    Args:
        name: Queue name. Defaults to the illustration queue.

    Raises:
        redis.ConnectionError: If unable to connect to Redis server.
    """
    return Queue(name, connection=get_redis_connection())


def get_job(job_id: str) -> Optional[Job]:
    """
    Get a job by ID, or None if it does not exist or Redis is unreachable.
    """
    try:
        return Job.fetch(job_id, connection=get_redis_connection())
    except (NoSuchJobError, RedisError):
        return None
