"""
Per-agent ticket status tallies for the assignee dashboard.

Zoho Desk statuses are free text, so every ticket status goes through
STATUS_MAP first. Anything the table does not know lands in "unassigned",
which the routing rules below then count as escalated for assigned tickets.

Routing, first match wins:
1. unassigned assignee + closed status -> not counted
2. unassigned assignee                 -> "unassigned" bucket, unassigned counter
3. status "unassigned" or escalated    -> agent's escalated counter
4. otherwise                           -> agent's counter for the status
"""

UNASSIGNED = "unassigned"
UNASSIGNED_NAME = "Unassigned"
UNKNOWN_NAME = "Unknown"

COUNTER_KEYS = ("open", "closed", "hold", "escalated", "unassigned", "inProgress")

STATUS_MAP = {
    "open": "open",
    "on hold": "hold",
    "hold": "hold",
    "closed": "closed",
    "in progress": "inProgress",
    "unassigned": "unassigned",
    "": "unassigned",
}

UNASSIGNED_ASSIGNEE_VALUES = {"", "none", "null"}


def make_counts():
    return {key: 0 for key in COUNTER_KEYS}


def normalize_status(raw_status) -> str:
    status = raw_status.strip().lower() if isinstance(raw_status, str) else ""
    return STATUS_MAP.get(status, "unassigned")


def is_agent_id(value) -> bool:
    return isinstance(value, (str, int)) and not isinstance(value, bool)


def is_unassigned_assignee(assignee_id) -> bool:
    # lists, dicts and other odd shapes are treated as no assignee
    if not is_agent_id(assignee_id):
        return True
    return str(assignee_id).strip().lower() in UNASSIGNED_ASSIGNEE_VALUES


def _flag(value) -> bool:
    if value is True:
        return True
    return isinstance(value, str) and value.strip().lower() == "true"


def is_escalated(ticket) -> bool:
    return _flag(ticket.get("isEscalated")) or _flag(ticket.get("escalated"))


def resolve_name(user) -> str:
    first = user.get("firstName")
    last = user.get("lastName")
    if first and last:
        return f"{first} {last}"
    for field in ("fullName", "displayName", "name", "email"):
        if user.get(field):
            return user[field]
    return UNKNOWN_NAME


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def is_later_ticket(candidate, current) -> bool:
    """Numbers compare numerically, anything else as strings."""
    if current is None:
        return True
    if _is_number(candidate) and _is_number(current):
        return candidate > current
    return str(candidate) > str(current)


def aggregate(tickets, users):
    counts = {}
    latest_unassigned = {}
    for user in users:
        user_id = user.get("id") if isinstance(user, dict) else None
        if not is_agent_id(user_id) or user_id in counts:
            continue
        counts[user_id] = make_counts()
        latest_unassigned[user_id] = None

    counts[UNASSIGNED] = make_counts()
    latest_unassigned[UNASSIGNED] = None
    unassigned_ticket_numbers = []

    for ticket in tickets:
        if not isinstance(ticket, dict):
            continue
        unassigned_assignee = is_unassigned_assignee(ticket.get("assigneeId"))
        agent_id = UNASSIGNED if unassigned_assignee else ticket.get("assigneeId")
        if agent_id not in counts:
            counts[agent_id] = make_counts()
            latest_unassigned[agent_id] = None

        status = normalize_status(ticket.get("status"))

        # tracked before the closed+unassigned skip below
        if unassigned_assignee or status == "unassigned":
            ticket_number = ticket.get("ticketNumber") or ticket.get("id")
            if ticket_number:
                unassigned_ticket_numbers.append(ticket_number)
                if is_later_ticket(ticket_number, latest_unassigned[agent_id]):
                    latest_unassigned[agent_id] = ticket_number

        if unassigned_assignee and status == "closed":
            continue

        if unassigned_assignee:
            counts[UNASSIGNED]["unassigned"] += 1
        elif status == "unassigned" or is_escalated(ticket):
            counts[agent_id]["escalated"] += 1
        else:
            counts[agent_id][status] += 1

    return {
        "counts": counts,
        "latest_unassigned": latest_unassigned,
        "unassigned_ticket_numbers": unassigned_ticket_numbers,
    }


def _member(agent_id, name, result):
    return {
        "id": agent_id,
        "name": name,
        "tickets": dict(result["counts"][agent_id]),
        "latestUnassignedTicketId": result["latest_unassigned"].get(agent_id),
    }


def build_members(users, result):
    """Known users in input order, then assignees missing from the user list, then the Unassigned bucket."""
    counts = result["counts"]
    members = []
    seen = set()
    for user in users:
        user_id = user.get("id") if isinstance(user, dict) else None
        if not is_agent_id(user_id) or user_id == UNASSIGNED or user_id in seen or user_id not in counts:
            continue
        seen.add(user_id)
        members.append(_member(user_id, resolve_name(user), result))

    for agent_id in counts:
        if agent_id == UNASSIGNED or agent_id in seen:
            continue
        seen.add(agent_id)
        members.append(_member(agent_id, UNKNOWN_NAME, result))

    members.append(_member(UNASSIGNED, UNASSIGNED_NAME, result))
    return members


def summarize(tickets, users):
    result = aggregate(tickets, users)
    return {
        "members": build_members(users, result),
        "unassignedTicketNumbers": result["unassigned_ticket_numbers"],
    }
