"""Management CLI.

Usage:
    python -m firmbook.cli init-db                   # Create the activity_log table
    python -m firmbook.cli issue-token <employee_id> # Mint an access token
    python -m firmbook.cli unbilled                  # Print the unbilled exception report
"""

import asyncio
import sys

from firmbook.auth.jwt import create_access_token
from firmbook.auth.permissions import resolve_permissions
from firmbook.database import create_tables, engine
from firmbook.documents import close_document_store, get_document_store
from firmbook.documents.repository import get_document
from firmbook.schemas.documents import Employee
from firmbook.services.read_model import BillingReadModel
from firmbook.services.reports import unbilled_report


async def init_db():
    await create_tables()
    await engine.dispose()
    print("activity_log table ready.")


async def issue_token(employee_id: str) -> int:
    store = get_document_store()
    try:
        employee = await get_document(store, Employee, employee_id)
    finally:
        await close_document_store()
    if employee is None:
        print(f"Employee not found: {employee_id}", file=sys.stderr)
        return 1
    permissions = resolve_permissions(employee.role)
    print(create_access_token(employee.id, employee.role, permissions))
    return 0


async def list_unbilled():
    store = get_document_store()
    try:
        report = await unbilled_report(BillingReadModel(store))
    finally:
        await close_document_store()
    for row in report.items:
        due = row.due_date.date().isoformat() if row.due_date else "-"
        print(f"  {row.engagement_id}  {row.client_name}  {row.engagement_type_name}  due {due}")
    print(f"\n{report.count} unbilled engagement(s)")


def main(argv: list[str]) -> int:
    cmd = argv[1] if len(argv) > 1 else ""
    if cmd == "init-db":
        asyncio.run(init_db())
    elif cmd == "issue-token" and len(argv) > 2:
        return asyncio.run(issue_token(argv[2]))
    elif cmd == "unbilled":
        asyncio.run(list_unbilled())
    else:
        print("Usage: python -m firmbook.cli [init-db|issue-token <employee_id>|unbilled]")
        return 2
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv))
