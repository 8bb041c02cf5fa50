"""
Sample data for development and demos.

Creates staff accounts, a two-level category tree with tools, a handful of
named patrons plus Faker-generated ones, and a few loans (one of them
overdue) so every resource and tool has something to show.
"""

import logging
import random
from datetime import date, datetime, timedelta

from faker import Faker
from sqlalchemy.orm import Session

from .checkout_repository import checkout_period_days, normalize_due_date
from .schema import Category, Checkout, CheckoutStatusEnum, Patron, Tool, User, UserRoleEnum
from .user_repository import hash_password

logger = logging.getLogger(__name__)

SAMPLE_PASSWORDS = {"admin": "admin123", "john": "volunteer123", "jane": "volunteer123"}

CATEGORY_TREE: dict[str, dict[str, list[tuple[str, int]]]] = {
    "Electrical": {
        "Cutters": [("Wire Cutters", 3), ("Cable Cutters", 2)],
        "Pliers": [("Needle Nose Pliers", 4), ("Lineman Pliers", 2)],
        "Testers & Meters": [("Multimeter", 2), ("Voltage Tester", 5)],
    },
    "Hand Tools": {
        "Hammers": [("Claw Hammer", 10), ("Sledge Hammer", 3)],
        "Screwdrivers": [("Screwdriver Set", 5)],
        "Wrenches": [("Adjustable Wrench", 8), ("Socket Set", 3)],
    },
    "Power Tools": {
        "Drills": [("Cordless Drill", 5), ("Hammer Drill", 2)],
        "Saws": [("Circular Saw", 4), ("Jigsaw", 3)],
        "Sanders": [("Orbital Sander", 3)],
    },
    "Garden & Outdoor": {
        "Lawn Care": [("Lawn Mower", 2), ("Leaf Blower", 3)],
        "Pruning & Trimming": [("Pruning Shears", 6)],
    },
    "Measurement & Layout": {},
    "Safety Equipment": {},
}

NAMED_PATRONS = [
    ("Alice", "Builder", "alice@email.com", "555-555-1001", "100 Construction Way", "62704"),
    ("Bob", "Carpenter", "bob@email.com", "555-555-1002", "200 Woodwork Lane", "62705"),
    ("Carol", "Handyperson", None, "555-555-1003", "300 Fix-It Circle", "62706"),
]


def _users(session: Session) -> list[User]:
    admin = User(
        user_name="admin",
        password_hash=hash_password(SAMPLE_PASSWORDS["admin"]),
        name="Admin User",
        role=UserRoleEnum.ADMIN,
        email="admin@toollibrary.org",
        phone="555-555-0100",
        mailing_street="123 Admin St",
        mailing_city="Springfield",
        mailing_state="IL",
        mailing_zipcode="62701",
        training_date=date(2024, 1, 15),
    )
    session.add(admin)
    session.flush()

    volunteers = [
        User(
            user_name=user_name,
            password_hash=hash_password(SAMPLE_PASSWORDS[user_name]),
            name=name,
            role=UserRoleEnum.VOLUNTEER,
            email=f"{user_name}@toollibrary.org",
            training_date=trained,
            trained_by_id=admin.id,
        )
        for user_name, name, trained in [
            ("john", "John Volunteer", date(2024, 2, 1)),
            ("jane", "Jane Volunteer", date(2024, 2, 15)),
        ]
    ]
    session.add_all(volunteers)
    session.flush()
    return [admin, *volunteers]


def _catalog(session: Session) -> list[Tool]:
    tools: list[Tool] = []
    for parent_name, children in CATEGORY_TREE.items():
        parent = Category(name=parent_name)
        session.add(parent)
        session.flush()
        for child_name, child_tools in children.items():
            child = Category(name=child_name, parent_id=parent.id)
            session.add(child)
            session.flush()
            for tool_name, quantity in child_tools:
                tools.append(
                    Tool(
                        name=tool_name,
                        description=f"{tool_name} available to borrow",
                        category_id=child.id,
                        quantity=quantity,
                    )
                )
    session.add_all(tools)
    session.flush()
    return tools


def _patrons(session: Session, fake: Faker, extra: int, created_by: int) -> list[Patron]:
    patrons = [
        Patron(
            first_name=first,
            last_name=last,
            email=email,
            phone=phone,
            mailing_street=street,
            mailing_city="Springfield",
            mailing_state="IL",
            mailing_zipcode=zipcode,
            created_by=created_by,
        )
        for first, last, email, phone, street, zipcode in NAMED_PATRONS
    ]
    for _ in range(extra):
        patrons.append(
            Patron(
                first_name=fake.first_name(),
                last_name=fake.last_name(),
                email=fake.unique.email(),
                phone=fake.numerify("###-###-####"),
                mailing_street=fake.street_address(),
                mailing_city=fake.city(),
                mailing_state=fake.state_abbr(),
                mailing_zipcode=fake.zipcode(),
                created_by=created_by,
            )
        )
    session.add_all(patrons)
    session.flush()
    return patrons


def seed_sample_data(session: Session, extra_patrons: int = 20, seed: int = 42) -> dict[str, int]:
    """
    Fill an empty database with sample data.

    Returns:
        Number of rows created per table
    """
    fake = Faker()
    Faker.seed(seed)
    rng = random.Random(seed)

    users = _users(session)
    volunteer = users[1]
    tools = _catalog(session)
    patrons = _patrons(session, fake, extra_patrons, created_by=users[0].id)

    now = datetime.now()
    checkouts = []
    for patron, tool in zip(patrons[:3], rng.sample(tools, 3), strict=True):
        checkout_date = now - timedelta(days=3)
        due = normalize_due_date(date.today() + timedelta(days=7))
        checkouts.append(
            Checkout(
                tool_id=tool.id,
                patron_id=patron.id,
                volunteer_id=volunteer.id,
                checkout_date=checkout_date,
                due_date=due,
                checkout_period=checkout_period_days(due, checkout_date),
                status=CheckoutStatusEnum.CHECKED_OUT,
            )
        )

    # One loan that is already late
    overdue_since = now - timedelta(days=21)
    overdue_due = now - timedelta(days=7)
    checkouts.append(
        Checkout(
            tool_id=tools[0].id,
            patron_id=patrons[1].id,
            volunteer_id=volunteer.id,
            checkout_date=overdue_since,
            due_date=overdue_due,
            checkout_period=checkout_period_days(overdue_due, overdue_since),
            status=CheckoutStatusEnum.CHECKED_OUT,
        )
    )
    session.add_all(checkouts)
    session.flush()

    counts = {
        "users": len(users),
        "tools": len(tools),
        "patrons": len(patrons),
        "checkouts": len(checkouts),
    }
    logger.info("Sample data created: %s", counts)
    return counts
