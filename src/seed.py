"""Command-line tool for seeding the ledger with random game rounds.

Each round is one wager followed by one payout from the same user in the
same currency, up to five minutes later. Amounts are between 0.01 and 100
with two decimals; USD values use fixed exchange rates.

Usage:
    python -m src.seed --rounds 10000 --users 50 --drop
"""

import argparse
import asyncio
import random
import sys
import time
import uuid
from collections.abc import Iterator
from datetime import UTC, datetime, timedelta
from decimal import Decimal

import structlog
from pymongo import ASCENDING, AsyncMongoClient
from pymongo.errors import PyMongoError

from src.config import Settings
from src.data.models import Currency, Transaction, TransactionType
from src.observability.logging import configure_logging

logger = structlog.get_logger(__name__)

DEFAULT_ROUNDS = 2_000_000
DEFAULT_USERS = 500
BATCH_SIZE = 1000
PROGRESS_INTERVAL_SECONDS = 5.0

# Exchange rates to USD (simplified)
USD_RATES: dict[Currency, Decimal] = {
    Currency.ETH: Decimal("2000"),
    Currency.BTC: Decimal("50000"),
    Currency.USDT: Decimal("1"),
}

INDEXES: list[list[tuple[str, int]]] = [
    [("createdAt", ASCENDING)],
    [("userId", ASCENDING)],
    [("roundId", ASCENDING)],
    [("type", ASCENDING)],
    [("currency", ASCENDING)],
    [("createdAt", ASCENDING), ("type", ASCENDING)],
    [("userId", ASCENDING), ("createdAt", ASCENDING)],
]

CENTS = Decimal("0.01")


def new_id(rng: random.Random) -> str:
    """Random hex identifier drawn from rng."""
    return uuid.UUID(int=rng.getrandbits(128), version=4).hex


def random_amount(rng: random.Random) -> Decimal:
    """Random amount between 0.01 and 100.00, rounded to cents."""
    return Decimal(str(0.01 + rng.random() * 99.99)).quantize(CENTS)


def to_usd(amount: Decimal, currency: Currency) -> Decimal:
    """Convert an amount to USD at the fixed rate."""
    return (amount * USD_RATES[currency]).quantize(CENTS)


def random_time_in_past_year(rng: random.Random, now: datetime) -> datetime:
    """Random moment within the year before now."""
    return now - timedelta(seconds=rng.random() * timedelta(days=365).total_seconds())


def generate_round(
    round_number: int,
    user_ids: list[str],
    rng: random.Random,
    now: datetime,
) -> tuple[Transaction, Transaction]:
    """Generate the wager and payout of one game round.

    Args:
        round_number: 1-based round number, used in the round id.
        user_ids: Pool of users to pick from.
        rng: Random source.
        now: Upper bound for generated timestamps.

    Returns:
        Tuple of (wager, payout).
    """
    round_id = f"round-{round_number}"
    user_id = rng.choice(user_ids)
    currency = rng.choice(list(Currency))
    created_at = random_time_in_past_year(rng, now)

    wager_amount = random_amount(rng)
    wager = Transaction(
        id=new_id(rng),
        created_at=created_at,
        user_id=user_id,
        round_id=round_id,
        type=TransactionType.WAGER,
        amount=wager_amount,
        currency=currency,
        usd_amount=to_usd(wager_amount, currency),
    )

    payout_amount = random_amount(rng)
    payout = Transaction(
        id=new_id(rng),
        created_at=created_at + timedelta(seconds=rng.randrange(300)),
        user_id=user_id,
        round_id=round_id,
        type=TransactionType.PAYOUT,
        amount=payout_amount,
        currency=currency,
        usd_amount=to_usd(payout_amount, currency),
    )
    return wager, payout


def generate_transactions(
    rounds: int,
    users: int,
    rng: random.Random | None = None,
    now: datetime | None = None,
) -> Iterator[Transaction]:
    """Yield the transactions of the requested number of rounds."""
    rng = rng or random.Random()
    now = now or datetime.now(UTC)
    user_ids = [new_id(rng) for _ in range(users)]
    for i in range(rounds):
        yield from generate_round(i + 1, user_ids, rng, now)


async def seed(
    settings: Settings,
    rounds: int,
    users: int,
    drop: bool = False,
    seed_value: int | None = None,
) -> int:
    """Insert generated rounds into MongoDB and create indexes.

    Returns:
        Number of transactions inserted.
    """
    client: AsyncMongoClient = AsyncMongoClient(settings.MONGODB_URI)
    try:
        await client.admin.command("ping")
        logger.info("mongodb_connected", database=settings.MONGODB_DATABASE)

        collection = client[settings.MONGODB_DATABASE][settings.MONGODB_COLLECTION]
        if drop:
            await collection.drop()
            logger.info("collection_dropped", collection=settings.MONGODB_COLLECTION)

        started = time.monotonic()
        last_progress = started
        inserted = 0
        batch: list[dict] = []
        total = rounds * 2

        for tx in generate_transactions(rounds, users, rng=random.Random(seed_value)):
            batch.append(tx.to_document())
            if len(batch) >= BATCH_SIZE:
                await collection.insert_many(batch)
                inserted += len(batch)
                batch = []

                now = time.monotonic()
                if now - last_progress > PROGRESS_INTERVAL_SECONDS:
                    elapsed = now - started
                    logger.info(
                        "seed_progress",
                        percent=round(inserted / total * 100, 2),
                        per_second=round(inserted / elapsed),
                        remaining_seconds=round(elapsed / inserted * (total - inserted)),
                    )
                    last_progress = now

        if batch:
            await collection.insert_many(batch)
            inserted += len(batch)

        logger.info("creating_indexes", count=len(INDEXES))
        for keys in INDEXES:
            try:
                await collection.create_index(keys)
            except PyMongoError as e:
                logger.warning("index_creation_failed", keys=keys, error=str(e))

        logger.info(
            "seed_completed",
            transactions=inserted,
            rounds=rounds,
            duration_seconds=round(time.monotonic() - started, 2),
        )
        return inserted
    finally:
        await client.close()


def main() -> int:
    """Main entry point for CLI.

    Returns:
        Exit code.
    """
    parser = argparse.ArgumentParser(
        description="Seed the ledger with random game rounds",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--rounds",
        type=int,
        default=DEFAULT_ROUNDS,
        help="Number of game rounds to generate",
    )
    parser.add_argument(
        "--users",
        type=int,
        default=DEFAULT_USERS,
        help="Number of distinct users",
    )
    parser.add_argument(
        "--drop",
        action="store_true",
        help="Drop the collection before inserting",
    )
    parser.add_argument(
        "--seed",
        type=int,
        help="Random seed for reproducible data",
    )

    args = parser.parse_args()
    if args.rounds < 1 or args.users < 1:
        parser.error("--rounds and --users must be positive")

    settings = Settings.from_env()
    configure_logging(settings.LOG_LEVEL, json_logs=settings.LOG_JSON)

    try:
        asyncio.run(seed(settings, args.rounds, args.users, drop=args.drop, seed_value=args.seed))
    except PyMongoError as e:
        logger.error("seed_failed", error=str(e))
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
