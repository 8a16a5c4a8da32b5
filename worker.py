#!/usr/bin/env python3
"""
RQ Worker for background job processing.

This worker completes queued illustrations (see src/yorkiebook/jobs.py).
"""

import os
import sys
import argparse
import logging
from typing import List

import redis.exceptions
from dotenv import load_dotenv  # type: ignore[import-untyped]
from rq import Worker

from rq_config import ILLUSTRATION_QUEUE, get_redis_connection

load_dotenv()

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def main() -> int:
    """
    Main entry point for the RQ worker script.

    Returns:
        int: The exit code for the script (0 for success, 1 for error).
    """
    parser = argparse.ArgumentParser(description='RQ worker for Yorkie Storybook illustrations')
    parser.add_argument(
        '--queue',
        type=str,
        default=ILLUSTRATION_QUEUE,
        help=f'Comma-separated list of queue names to listen on (default: {ILLUSTRATION_QUEUE})'
    )
    parser.add_argument(
        '--burst',
        action='store_true',
        help='Run in burst mode (exit after processing all jobs)'
    )

    args = parser.parse_args()

    queue_names: List[str] = [q.strip() for q in args.queue.split(',') if q.strip()]

    logger.info(f"Starting RQ worker for queues: {queue_names}")
    logger.info(f"Redis URL: {os.getenv('REDIS_URL', 'redis://localhost:6379/0')}")

    try:
        redis_conn = get_redis_connection()
        worker = Worker(queue_names, connection=redis_conn, name='yorkiebook-worker')
        worker.work(burst=args.burst, logging_level='INFO')
    except KeyboardInterrupt:
        logger.info("Worker stopped by user")
        return 0
    except redis.exceptions.ConnectionError as ce:
        logger.critical(f"Redis connection error: {ce}. Worker cannot connect.", exc_info=True)
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
