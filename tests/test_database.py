import pytest

import config
from database import Database, activity_statistics, bus_statistics, group_faqs_by_category
from errors import BusinessRuleError, TransportError
from models import ActivityAssignment, BusAssignment, Faq, UserFilters


def test_missing_backend_settings_raise_transport_error(monkeypatch):
    monkeypatch.setattr(config, "SUPABASE_URL", "")
    with pytest.raises(TransportError):
        Database().get_client()


def test_search_by_name_returns_identities_without_hashes(db, fake_client):
    fake_client._find("users", id="u-1")["password_hash"] = "$2b$10$whatever"
    results = db.search_by_name("minj")
    assert [r.name for r in results] == ["Kim Minji", "Kim Minjun"]
    assert all(r.password_hash is None for r in results)


def test_exact_name_lookup(db):
    assert db.get_identity_by_name("  Kim Minji ").id == "u-1"
    assert db.get_identity_by_name("Kim") is None


def test_exact_name_lookup_with_duplicates_is_none(db, fake_client):
    fake_client.add_row("users", {"name": "Kim Minji"})
    assert db.get_identity_by_name("Kim Minji") is None


@pytest.mark.parametrize("phone", ["010-1234-5678", "01012345678", " 01012345678 "])
def test_name_and_phone_lookup_normalizes_hyphens(db, phone):
    assert db.get_identity_by_name_and_phone("Kim Minji", phone).id == "u-1"


def test_name_and_phone_lookup_keeps_the_narrow_rule(db):
    assert db.get_identity_by_name_and_phone("Kim Minji", "010 1234 5678") is None
    assert db.get_identity_by_name_and_phone("Kim Minji", "+82-10-1234-5678") is None


def test_set_credential_hash_goes_through_the_privileged_procedure(db, fake_client):
    db.set_credential_hash("u-2", "hash")
    assert ("rpc", "set_user_password") in fake_client.calls
    assert fake_client._find("users", id="u-2")["password_hash"] == "hash"


def test_remote_failure_becomes_transport_error(db, fake_client):
    fake_client.fail_on.add("users")
    with pytest.raises(TransportError) as excinfo:
        db.get_identity_by_id("u-1")
    assert isinstance(excinfo.value.__cause__, RuntimeError)
    assert "try again" in excinfo.value.message


def test_malformed_row_becomes_transport_error(db, fake_client):
    fake_client.add_row("users", {"id": "u-7", "name": None})
    with pytest.raises(TransportError):
        db.get_identity_by_id("u-7")


def test_get_users_filters(db):
    economics = db.get_users(UserFilters(major="Economics"))
    assert [u.name for u in economics] == ["Kim Minji", "Park Seoyeon"]
    assert [u.name for u in db.get_users(UserFilters(search="park"))] == ["Park Seoyeon"]


def test_create_user_sets_phone(db, fake_client):
    identity = db.create_user(" Choi Yuna ", "Korea University", "Design", 13, "F", "010-7777-8888")
    assert identity.name == "Choi Yuna"
    assert identity.phone_number == "010-7777-8888"
    assert identity.is_registered is False


def test_update_user_never_writes_the_credential(db, fake_client):
    db.update_user("u-1", {"password_hash": "forged", "school": "KAIST"})
    row = fake_client._find("users", id="u-1")
    assert row["password_hash"] is None
    assert row["school"] == "KAIST"


def test_bulk_create_and_delete_users(db, fake_client):
    created = db.bulk_create_users([
        {"name": "A", "school": "S", "major": "M", "generation": "1", "gender": "F"},
        {"name": "B", "school": "S", "major": "M", "generation": "1", "gender": "M", "phone_number": "010"},
    ])
    assert [c.name for c in created] == ["A", "B"]
    assert db.delete_user(created[0].id) is True
    assert db.get_identity_by_id(created[0].id) is None


def test_events_are_ordered_by_day_then_position(db, fake_client):
    db.create_event("Closing", "2025-08-15", "16:00", "17:00", order_index=9)
    db.create_event("Welcome", "2025-08-14", "09:00", "10:00", location=" ", order_index=1)
    db.create_event("Lunch", "2025-08-14", "12:00", "13:00", order_index=2)

    events = db.get_events()

    assert [e.title for e in events] == ["Welcome", "Lunch", "Closing"]
    assert events[0].location is None


def test_notice_lifecycle(db):
    notice = db.create_notice("Bus times", "Buses leave at 9.", is_important=True)
    assert notice.is_important is True

    updated = db.update_notice(notice.id, "Bus times", "Buses leave at 9:30.", False)
    assert updated.content == "Buses leave at 9:30."

    assert db.delete_notice(notice.id) is True
    assert db.get_notice(notice.id) is None


def test_save_introduction_creates_then_updates(db, fake_client):
    data = {"name": "Kim Minji", "school": "SNU", "major": "Economics", "keywords": "coffee",
            "interests": "finance", "bucketlist": "Iceland", "stress_relief": "running",
            "foundation_activity": "mentoring", "mbti": "INTJ"}

    db.save_introduction("u-1", data)
    db.save_introduction("u-1", dict(data, keywords="coffee, jazz"))

    assert len(fake_client.tables["introductions"]) == 1
    assert db.get_introduction("u-1").keywords == "coffee, jazz"
    assert fake_client._find("users", id="u-1")["school"] == "SNU"


def test_room_assignment_and_roommates(db, fake_client):
    fake_client.add_row("rooms", {"id": "r-1", "room_number": "301", "building_name": "East"})
    fake_client.add_row("room_assignments", {"room_id": "r-1", "user_name": "Kim Minji"})
    fake_client.add_row("room_assignments", {"room_id": "r-1", "user_name": "Park Seoyeon"})

    room = db.get_room_assignment_by_name("Kim Minji")

    assert room.room_number == "301"
    assert [m.user_name for m in db.get_roommates(room.room_id)] == ["Kim Minji", "Park Seoyeon"]
    assert db.get_room_assignment_by_name("Nobody") is None


def test_bus_assignment_blank_values_become_none(db):
    db.assign_bus({"user_name": "Kim Minji", "departure_bus": "Bus 1", "return_bus": "", "notes": "  "})
    assignment = db.get_bus_assignment("Kim Minji")
    assert assignment.departure_bus == "Bus 1"
    assert assignment.return_bus is None
    assert assignment.notes is None

    db.remove_bus_assignment("Kim Minji")
    assert db.get_bus_assignment("Kim Minji") is None


def test_activity_assignment_is_replaced(db):
    db.assign_activity({"user_name": "Kim Minji", "program_type": "Surfing"})
    db.assign_activity({"user_name": "Kim Minji", "program_type": "Mio Costa", "session_time": "14:00"})
    assert [a.program_type for a in db.get_activity_assignments()] == ["Mio Costa"]


def test_upload_photo_records_the_public_url(db, fake_client):
    photo = db.upload_photo("u-1", b"jpeg-bytes", "Sunset")

    assert photo.image_url.startswith("https://example.supabase.co/storage/v1/object/public/photos/u-1/")
    assert list(fake_client.objects.values()) == [b"jpeg-bytes"]
    assert db.get_photos()[0].uploader_name == "Kim Minji"


def test_upload_photo_removes_object_when_recording_fails(db, fake_client):
    fake_client.fail_on.add("photos")
    with pytest.raises(TransportError):
        db.upload_photo("u-1", b"jpeg-bytes")
    assert fake_client.objects == {}


def test_storage_failure_is_a_transport_error(db, fake_client):
    fake_client.fail_on.add("storage")
    with pytest.raises(TransportError):
        db.upload_photo("u-1", b"jpeg-bytes")
    assert "photos" not in fake_client.tables


def test_delete_photo_removes_the_stored_object(db, fake_client):
    photo = db.upload_photo("u-1", b"jpeg-bytes")
    db.delete_photo(photo)
    assert fake_client.objects == {}
    assert db.get_photos() == []


def test_likes(db):
    photo = db.upload_photo("u-1", b"jpeg-bytes")
    db.like_photo(photo.id, "u-2")
    assert db.get_liked_photo_ids("u-2") == {photo.id}
    db.unlike_photo(photo.id, "u-2")
    assert db.get_liked_photo_ids("u-2") == set()


def test_counts(db):
    db.create_notice("Hello", "World")
    assert db.get_counts() == {"users": 3, "events": 0, "notices": 1, "photos": 0}


def test_bus_statistics():
    assignments = [
        BusAssignment(user_name="a", departure_bus="Bus 1", return_bus="Bus 2"),
        BusAssignment(user_name="b", departure_bus="Bus 1"),
        BusAssignment(user_name="c"),
    ]
    stats = bus_statistics(assignments)
    assert dict(stats["departure"]) == {"Bus 1": 2, "Bus 2": 0, "Bus 3": 0, "total": 2}
    assert dict(stats["return"]) == {"Bus 1": 0, "Bus 2": 1, "Bus 3": 0, "total": 1}
    assert stats["total"] == 3


def test_activity_statistics():
    stats = activity_statistics([
        ActivityAssignment(user_name="a", program_type="Surfing"),
        ActivityAssignment(user_name="b", program_type="Surfing"),
    ])
    assert dict(stats) == {"Surfing": 2, "Mio Costa": 0, "total": 2}


def test_group_faqs_by_category():
    grouped = group_faqs_by_category([
        Faq(id="1", question="Q1", answer="A", category="Travel"),
        Faq(id="2", question="Q2", answer="A"),
        Faq(id="3", question="Q3", answer="A", category="Travel"),
    ])
    assert list(grouped) == ["Travel", "Other"]
    assert [f.id for f in grouped["Travel"]] == ["1", "3"]


def test_search_treats_like_wildcards_literally(db, fake_client):
    fake_client.add_row("users", {"name": "Lee_Jin"})
    fake_client.add_row("users", {"name": "100% Kim"})

    assert db.search_by_name("Ki_") == []
    assert fake_client.like_patterns[-1] == "%Ki\\_%"
    assert [r.name for r in db.search_by_name("e_J")] == ["Lee_Jin"]
    assert [r.name for r in db.search_by_name("0% K")] == ["100% Kim"]


def test_user_filter_search_treats_wildcards_literally(db):
    assert db.get_users(UserFilters(search="%")) == []


def test_counts_come_from_the_exact_count(db, fake_client):
    for n in range(5):
        fake_client.add_row("photos", {"image_url": f"https://x/{n}.jpg", "user_id": "u-1"})
    counts = db.get_counts()
    assert counts["photos"] == 5
    assert counts["users"] == 3


def test_save_introduction_rejects_another_participants_name(db, fake_client):
    data = {"name": "Kim Minjun", "school": "SNU", "major": "Economics", "keywords": "coffee",
            "interests": "finance", "bucketlist": "Iceland", "stress_relief": "running",
            "foundation_activity": "mentoring"}

    with pytest.raises(BusinessRuleError):
        db.save_introduction("u-1", data)

    assert fake_client._find("users", id="u-1")["name"] == "Kim Minji"
    assert "introductions" not in fake_client.tables
    assert db.get_identity_by_name("Kim Minji").id == "u-1"
    assert db.get_identity_by_name("Kim Minjun").id == "u-2"


def test_is_name_taken_ignores_the_participant_themselves(db):
    assert db.is_name_taken("Kim Minji") is True
    assert db.is_name_taken(" Kim Minji ", exclude_id="u-1") is False
    assert db.is_name_taken("Kim Minji", exclude_id="u-2") is True
    assert db.is_name_taken("Nobody") is False


def test_upload_profile_image_records_the_public_url(db, fake_client):
    identity = db.upload_profile_image("u-1", b"face")

    assert identity.profile_image_url.startswith(
        "https://example.supabase.co/storage/v1/object/public/profiles/u-1/profile_")
    assert fake_client._find("users", id="u-1")["profile_image_url"] == identity.profile_image_url
    assert list(fake_client.objects) == [("profiles", identity.profile_image_path)]


def test_new_profile_image_replaces_the_old_object(db, fake_client):
    first = db.upload_profile_image("u-1", b"old face")
    second = db.upload_profile_image("u-1", b"new face")

    assert second.profile_image_url != first.profile_image_url
    assert fake_client.objects == {("profiles", second.profile_image_path): b"new face"}


def test_profile_image_is_removed_when_recording_fails(db, fake_client):
    first = db.upload_profile_image("u-1", b"old face")
    fake_client.fail_on.add(("users", "update"))

    with pytest.raises(TransportError):
        db.upload_profile_image("u-1", b"new face")

    assert fake_client.objects == {("profiles", first.profile_image_path): b"old face"}
    assert fake_client._find("users", id="u-1")["profile_image_url"] == first.profile_image_url


def test_profile_storage_failure_keeps_the_old_image(db, fake_client):
    first = db.upload_profile_image("u-1", b"old face")
    fake_client.fail_on.add("storage")

    with pytest.raises(TransportError):
        db.upload_profile_image("u-1", b"new face")

    assert db.get_identity_by_id("u-1").profile_image_url == first.profile_image_url


def test_delete_profile_image(db, fake_client):
    db.upload_profile_image("u-1", b"face")

    identity = db.delete_profile_image("u-1")

    assert identity.profile_image_url is None
    assert fake_client.objects == {}
    assert db.delete_profile_image("u-1").profile_image_url is None


def test_profile_image_for_unknown_participant(db):
    with pytest.raises(BusinessRuleError):
        db.upload_profile_image("u-404", b"face")
    with pytest.raises(BusinessRuleError):
        db.delete_profile_image("u-404")
