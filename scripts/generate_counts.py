# scripts/generate_counts.py
# Writes the per-agent counts served by /api/zoho-assignees-with-ticket-counts to a JSON file
import argparse
import json
import logging
import os
import sys

ROOT = os.path.dirname(os.path.abspath(__file__))
sys.path.insert(0, os.path.join(ROOT, ".."))

from app import collect_counts  # noqa: E402
from settings import configure_logging, load_settings  # noqa: E402
from zoho_desk import DeskError, ZohoDeskClient  # noqa: E402

logger = logging.getLogger("generate_counts")

DEFAULT_OUTPUT = "assignee_ticket_counts.json"


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Write per-agent Zoho Desk ticket counts to a JSON file")
    parser.add_argument("--department-id", default=None)
    parser.add_argument("--agent-id", default=None)
    parser.add_argument("--output", default=DEFAULT_OUTPUT)
    return parser.parse_args(argv)


def main(argv=None, client=None):
    args = parse_args(argv)
    settings = load_settings()
    configure_logging(settings.log_level)
    client = client or ZohoDeskClient.from_settings(settings)

    try:
        payload = collect_counts(client, args.department_id, args.agent_id)
    except DeskError as err:
        logger.error("Could not build ticket counts: %s", err)
        return 1

    with open(args.output, "w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2, ensure_ascii=False)

    logger.info("%s members written to %s", len(payload["members"]), args.output)
    return 0


if __name__ == "__main__":
    sys.exit(main())
