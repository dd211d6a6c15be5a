"""CLI entry point for the synthetic transaction generator.

Usage:
    python -m generators --count 100
    python -m generators --config configs/transaction.yaml --output file --output-file out.jsonl
    python -m generators --count 500 --output kafka --bootstrap-servers localhost:9092
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any

import yaml

from .transaction_generator import TransactionGenerator


async def produce(events: list[dict[str, Any]], bootstrap_servers: str, topic: str) -> None:
    from src.shared.kafka_utils import create_producer

    producer = await create_producer(bootstrap_servers)
    try:
        for event in events:
            key = event["transaction"]["transactionId"].encode("utf-8")
            await producer.send_and_wait(topic, value=event, key=key)
    finally:
        await producer.stop()


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Fraud monitor synthetic transaction generator")
    parser.add_argument("--config", type=str, default=None, help="Path to YAML config file")
    parser.add_argument("--seed", type=int, default=42, help="Random seed for reproducibility")
    parser.add_argument("--count", type=int, default=100, help="Number of transactions")
    parser.add_argument(
        "--output",
        type=str,
        default="stdout",
        choices=["stdout", "file", "kafka"],
        help="Output destination",
    )
    parser.add_argument("--output-file", type=str, default=None, help="Output file path")
    parser.add_argument("--bootstrap-servers", type=str, default="localhost:9092")
    parser.add_argument("--topic", type=str, default="fraud.transactions")

    args = parser.parse_args(argv)

    config: dict[str, Any] = {}
    if args.config:
        with open(args.config) as f:
            config = yaml.safe_load(f) or {}

    gen = TransactionGenerator(config=config, seed=args.seed)
    events = gen.generate(num_transactions=args.count)

    if args.output == "stdout":
        for event in events:
            print(json.dumps(event, default=str))
    elif args.output == "file":
        output_path = args.output_file or "output/transaction_events.jsonl"
        Path(output_path).parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, "w") as f:
            for event in events:
                f.write(json.dumps(event, default=str) + "\n")
        print(f"Wrote {len(events)} events to {output_path}", file=sys.stderr)
    elif args.output == "kafka":
        asyncio.run(produce(events, args.bootstrap_servers, args.topic))
        print(f"Produced {len(events)} events to {args.topic}", file=sys.stderr)

    print(f"Generated {len(events)} events", file=sys.stderr)
