"""Protean Engine runner for the delivery domain.

Starts the Engine that processes events asynchronously when the
production overlay is active:
- OutboxProcessor: polls the outbox table and publishes order events
- StreamSubscriptions: feed the order board projector

Usage:
    PROTEAN_ENV=production python src/server.py
"""

import argparse
import asyncio

from protean.server.engine import Engine


def _get_domain():
    from delivery.domain import delivery
    from delivery.utils.logging import configure_logging

    configure_logging()
    delivery.init()
    return delivery


async def run(test_mode: bool = False):
    engine = Engine(_get_domain(), test_mode=test_mode)
    await asyncio.gather(engine.run())


def main():
    parser = argparse.ArgumentParser(description="LinenLoop Engine runner")
    parser.add_argument(
        "--test-mode",
        action="store_true",
        help="Process pending messages once and exit",
    )
    args = parser.parse_args()

    asyncio.run(run(args.test_mode))


if __name__ == "__main__":
    main()
