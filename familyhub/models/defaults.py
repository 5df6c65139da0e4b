"""
Default Snapshots

What a local collection contains before anything was ever written
to it (first start on a device, or after the stored blob became
unreadable). Remote tables have no defaults.
"""

from datetime import date

from familyhub.models.entities import (
    CalendarEvent,
    FamilyMember,
    MemberRole,
    ShoppingItem,
    Task,
    TaskType,
)


def default_family() -> list[FamilyMember]:
    return [
        FamilyMember(id="1", name="Mama", avatar="https://picsum.photos/100/100?random=1",
                     color="bg-pink-100 text-pink-700", role=MemberRole.PARENT),
        FamilyMember(id="2", name="Papa", avatar="https://picsum.photos/100/100?random=2",
                     color="bg-blue-100 text-blue-700", role=MemberRole.PARENT),
        FamilyMember(id="3", name="Leo", avatar="https://picsum.photos/100/100?random=3",
                     color="bg-green-100 text-green-700", role=MemberRole.CHILD),
        FamilyMember(id="4", name="Mia", avatar="https://picsum.photos/100/100?random=4",
                     color="bg-yellow-100 text-yellow-700", role=MemberRole.CHILD),
    ]


def default_events() -> list[CalendarEvent]:
    # Dated today, evaluated on every read.
    return [
        CalendarEvent(
            id="1",
            title="Fußballtraining Leo",
            date=date.today(),
            time="17:00",
            end_time="18:30",
            assigned_to=["3"],
            location="Sportplatz",
            description="Mitnehmen: Wasserflasche",
        ),
    ]


def default_shopping() -> list[ShoppingItem]:
    return [
        ShoppingItem(id="1", name="Milch", checked=False),
        ShoppingItem(id="2", name="Brot", checked=True),
    ]


def default_household_tasks() -> list[Task]:
    return [
        Task(id="101", title="Müll rausbringen", done=False,
             assigned_to="3", type=TaskType.HOUSEHOLD),
    ]


def empty() -> list:
    return []
