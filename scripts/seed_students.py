#!/usr/bin/env python3
"""Seed the database with demo students and academic records.

Usage:
    python scripts/seed_students.py
"""

import asyncio
import sys
from decimal import Decimal
from pathlib import Path

# Ensure project root is on path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "src"))

from transcript_engine.common.config import get_settings
from transcript_engine.common.database import DatabaseManager
from transcript_engine.students.service import StudentService

DEMO_STUDENTS = [
    {
        "usn": "1GU21CS001",
        "name": "Asha Rao",
        "email": "asha.rao@example.edu",
        "major": "B.Tech Computer Science",
        "records": [
            (1, "8.20", "8.20", [("Mathematics I", 84), ("Physics", 78), ("Programming in C", 91)]),
            (2, "8.60", "8.40", [("Mathematics II", 88), ("Data Structures", 90)]),
            (3, "8.90", "8.57", [("Algorithms", 93), ("Digital Logic", 81), ("DBMS", 87)]),
        ],
    },
    {
        "usn": "1GU21EC014",
        "name": "Vikram Shetty",
        "email": "vikram.shetty@example.edu",
        "major": "B.Tech Electronics",
        "records": [
            (1, "7.40", "7.40", [("Mathematics I", 72), ("Basic Electronics", 80)]),
            (2, "7.90", "7.65", [("Signals and Systems", 77), ("Network Analysis", 82)]),
        ],
    },
]


async def seed_students() -> None:
    settings = get_settings()
    db = DatabaseManager(settings)
    await db.init()
    await db.create_all()

    svc = StudentService()

    async with db.get_session() as session:
        for seed in DEMO_STUDENTS:
            if await svc.get_student(session, seed["usn"]):
                print(f"  [skip] {seed['usn']} ({seed['name']}) already exists")
                continue
            await svc.create_student(
                session, seed["usn"], seed["name"], seed["email"], seed["major"],
            )
            for semester, sgpa, cgpa, subjects in seed["records"]:
                await svc.upsert_record(
                    session, seed["usn"], semester,
                    Decimal(sgpa), Decimal(cgpa), subjects,
                )
            print(f"  [created] {seed['usn']} ({seed['name']})")

    await db.close()
    print(f"\nDone. {len(DEMO_STUDENTS)} students seeded.")


if __name__ == "__main__":
    asyncio.run(seed_students())
