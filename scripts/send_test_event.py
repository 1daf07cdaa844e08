"""Publish a ``notification.test`` event to check the pipeline end to end."""

from __future__ import annotations

import argparse
import asyncio
import logging

from notification_service.config import get_settings
from notification_service.domain.entities import DomainEvent
from notification_service.infrastructure.messaging import EventProducer

TOPIC = "notification-events"


def parse_args() -> argparse.Namespace:
    """Parse command line arguments for the test event."""

    parser = argparse.ArgumentParser(
        description="Send a test notification through the event bus.",
    )
    parser.add_argument("recipient", help="Identifier of the user who should receive it")
    parser.add_argument("--sender", default=None, help="Identifier of the sending user")
    parser.add_argument(
        "--content",
        default=None,
        help="Notification text (defaults to the service's test message)",
    )
    parser.add_argument(
        "--relevance-score",
        type=int,
        default=None,
        help="Relevance score between 0 and 100",
    )
    parser.add_argument(
        "--retries",
        type=int,
        default=3,
        help="Send retries while the event bus is unreachable (default: 3)",
    )
    return parser.parse_args()


async def send(args: argparse.Namespace) -> bool:
    payload = {"recipient": args.recipient}
    if args.sender:
        payload["sender"] = args.sender
    if args.content:
        payload["content"] = args.content
    if args.relevance_score is not None:
        payload["relevanceScore"] = args.relevance_score

    producer = EventProducer(get_settings())
    try:
        return await producer.send_event(
            TOPIC,
            DomainEvent(
                event_type="notification.test",
                actor_id=args.sender,
                target_id=args.recipient,
                target_type="User",
                payload=payload,
            ),
            retries=args.retries,
        )
    finally:
        await producer.stop()


def main() -> None:
    """Send the event described by the command line arguments."""

    args = parse_args()
    logging.basicConfig(level=get_settings().log_level.upper())
    if not asyncio.run(send(args)):
        raise SystemExit("The test event could not be delivered to the event bus.")
    print(f"Test event sent to {TOPIC} for recipient {args.recipient}")


if __name__ == "__main__":
    main()
