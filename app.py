import logging

from flask import Flask, jsonify, request
from flask_cors import CORS

from aggregator import summarize
from settings import configure_logging, load_settings
from zoho_desk import DeskError, ZohoDeskClient, missing_assignee_ids

logger = logging.getLogger(__name__)

FAILURE_MESSAGE = "Failed to fetch assignee ticket counts"


def collect_counts(client, department_id=None, agent_id=None):
    users = client.fetch_users()
    tickets = client.fetch_tickets(department_id, agent_id)
    logger.info("Fetched %s users and %s tickets", len(users), len(tickets))

    missing = missing_assignee_ids(tickets, users)
    if missing:
        logger.info("Backfilling %s assignees missing from the user list", len(missing))
        users = users + client.fetch_users_by_ids(missing)

    return summarize(tickets, users)


def create_app(settings=None, client=None):
    settings = settings or load_settings()
    client = client or ZohoDeskClient.from_settings(settings)

    app = Flask(__name__)
    CORS(app)

    @app.get("/api/zoho-assignees-with-ticket-counts")
    def assignees_with_ticket_counts():
        department_id = request.args.get("departmentId", type=str) or None
        agent_id = request.args.get("agentId", type=str) or None
        try:
            payload = collect_counts(client, department_id, agent_id)
        except DeskError as err:
            logger.error("API error: %s", err, exc_info=True)
            return jsonify({"error": FAILURE_MESSAGE}), 500
        except Exception:
            logger.exception("Unexpected error while building ticket counts")
            return jsonify({"error": FAILURE_MESSAGE}), 500
        return jsonify(payload)

    return app


app = create_app()


if __name__ == "__main__":
    settings = load_settings()
    configure_logging(settings.log_level)
    app.run(debug=True, port=settings.port)
