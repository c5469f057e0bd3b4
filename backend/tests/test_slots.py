import pytest

from app.core.config import Settings
from app.core.exceptions import ConfigurationError
from app.models.classroom import RoomType
from app.services.scheduling.slots import (
    ClassroomResource,
    SectionRequest,
    build_slot_catalog,
    candidates_for,
    slot_catalog_from_settings,
)


def test_default_catalog_has_twenty_weekly_blocks():
    catalog = slot_catalog_from_settings(Settings(database_url="sqlite+pysqlite://"))
    assert len(catalog) == 20
    assert catalog[0].day == "Monday"
    assert catalog[0].start_time == "09:00"
    assert catalog[0].end_time == "10:40"
    assert catalog[-1].day == "Friday"
    assert catalog[-1].start_time == "15:00"


def test_catalog_is_sorted_and_deduplicated():
    catalog = build_slot_catalog(["Wednesday", "Monday", "Mon"], ["13:00", "09:00"], 60)
    assert [(slot.day, slot.start_time) for slot in catalog] == [
        ("Monday", "09:00"),
        ("Monday", "13:00"),
        ("Wednesday", "09:00"),
        ("Wednesday", "13:00"),
    ]


@pytest.mark.parametrize(
    ("days", "starts", "minutes"),
    [
        ([], ["09:00"], 60),
        (["Monday"], [], 60),
        (["Monday"], ["09:00"], 0),
        (["Someday"], ["09:00"], 60),
        (["Monday"], ["9am"], 60),
        (["Monday"], ["09:00", "09:30"], 60),
        (["Monday"], ["23:30"], 60),
    ],
)
def test_invalid_catalog_configuration_is_rejected(days, starts, minutes):
    with pytest.raises(ConfigurationError):
        build_slot_catalog(days, starts, minutes)


def test_settings_accept_comma_separated_lists():
    settings = Settings(
        database_url="sqlite+pysqlite://",
        schedule_days="Monday, Tuesday",
        schedule_block_starts="08:00,10:00",
        schedule_block_minutes=90,
    )
    catalog = slot_catalog_from_settings(settings)
    assert len(catalog) == 4
    assert catalog[1].end_time == "11:30"


def test_candidates_respect_capacity_and_room_type():
    catalog = build_slot_catalog(["Monday"], ["09:00", "11:00"], 100)
    classrooms = [
        ClassroomResource(classroom_id="big", code="B-200", capacity=200, room_type=RoomType.lecture),
        ClassroomResource(classroom_id="small", code="A-10", capacity=10, room_type=RoomType.lecture),
        ClassroomResource(classroom_id="mid", code="C-40", capacity=40, room_type=RoomType.lecture),
        ClassroomResource(classroom_id="lab", code="L-40", capacity=40, room_type=RoomType.lab),
    ]

    lecture = SectionRequest(section_id="s1", instructor_id=None, capacity=25)
    candidates = candidates_for(lecture, classrooms, catalog)
    rooms = [item.classroom.classroom_id for item in candidates]
    assert "small" not in rooms
    # Tightest fit first, then by code; each room paired with every slot in week order.
    assert rooms == ["mid", "mid", "lab", "lab", "big", "big"]
    assert [item.slot.start_time for item in candidates[:2]] == ["09:00", "11:00"]

    lab_section = SectionRequest(section_id="s2", instructor_id=None, capacity=25, room_type=RoomType.lab)
    lab_rooms = {item.classroom.classroom_id for item in candidates_for(lab_section, classrooms, catalog)}
    assert lab_rooms == {"lab"}


def test_candidates_empty_when_nothing_fits():
    catalog = build_slot_catalog(["Monday"], ["09:00"], 100)
    classrooms = [ClassroomResource(classroom_id="r", code="R", capacity=10, room_type=RoomType.lecture)]
    section = SectionRequest(section_id="s", instructor_id=None, capacity=25)
    assert candidates_for(section, classrooms, catalog) == []
