import itertools
import re
from types import SimpleNamespace

import pytest

from database import Database
from directory_auth import CredentialGate
from pin_manager import PinManager
from session_store import SessionStore

# Low bcrypt cost keeps the suite fast; the hash format is the same.
TEST_ROUNDS = 4


def _like_to_regex(pattern):
    """Translate an SQL LIKE pattern with backslash escapes."""
    parts = []
    chars = iter(pattern)
    for char in chars:
        if char == "\\":
            parts.append(re.escape(next(chars, "\\")))
        elif char == "%":
            parts.append(".*")
        elif char == "_":
            parts.append(".")
        else:
            parts.append(re.escape(char))
    return "".join(parts)


class FakeQuery:
    """Just enough of the PostgREST query builder for ``Database``."""

    def __init__(self, client, table):
        self.client = client
        self.table = table
        self.columns = "*"
        self.filters = []
        self.orders = []
        self.max_rows = None
        self.action = "select"
        self.payload = None
        self.count = None
        self.patterns = client.like_patterns

    def select(self, columns="*", count=None):
        self.columns = columns
        self.count = count
        return self

    def eq(self, column, value):
        self.filters.append(lambda row: row.get(column) == value)
        return self

    def ilike(self, column, pattern):
        self.patterns.append(pattern)
        regex = re.compile("^" + _like_to_regex(pattern) + "$", re.IGNORECASE | re.DOTALL)
        self.filters.append(lambda row: row.get(column) is not None and regex.match(str(row[column])) is not None)
        return self

    def order(self, column, desc=False):
        self.orders.append((column, desc))
        return self

    def limit(self, count):
        self.max_rows = count
        return self

    def insert(self, payload):
        self.action = "insert"
        self.payload = payload
        return self

    def update(self, payload):
        self.action = "update"
        self.payload = payload
        return self

    def delete(self):
        self.action = "delete"
        return self

    def _matches(self, row):
        return all(check(row) for check in self.filters)

    def _project(self, row):
        row = dict(row)
        if "users:user_id" in self.columns:
            user = next((u for u in self.client.tables["users"] if u["id"] == row.get("user_id")), None)
            row["users"] = {"name": user["name"]} if user else None
            return row
        if self.columns.strip() == "*":
            return row
        wanted = [c.strip() for c in self.columns.split(",")]
        return {key: row.get(key) for key in wanted}

    def execute(self):
        self.client.calls.append((self.table, self.action))
        if self.table in self.client.fail_on or (self.table, self.action) in self.client.fail_on:
            raise RuntimeError(f"connection reset while talking to {self.table}")

        rows = self.client.tables.setdefault(self.table, [])

        if self.action == "insert":
            payloads = self.payload if isinstance(self.payload, list) else [self.payload]
            inserted = [self.client.add_row(self.table, payload) for payload in payloads]
            return SimpleNamespace(data=[dict(row) for row in inserted])

        matched = [row for row in rows if self._matches(row)]

        if self.action == "update":
            for row in matched:
                row.update(self.payload)
            return SimpleNamespace(data=[dict(row) for row in matched])

        if self.action == "delete":
            self.client.tables[self.table] = [row for row in rows if row not in matched]
            return SimpleNamespace(data=[dict(row) for row in matched])

        for column, desc in reversed(self.orders):
            matched.sort(key=lambda row: (row.get(column) is None, row.get(column) if row.get(column) is not None else 0), reverse=desc)
        total = len(matched) if self.count == "exact" else None
        if self.max_rows is not None:
            matched = matched[:self.max_rows]
        return SimpleNamespace(data=[self._project(row) for row in matched], count=total)


class FakeRpc:
    def __init__(self, client, function, params):
        self.client = client
        self.function = function
        self.params = params

    def execute(self):
        self.client.calls.append(("rpc", self.function))
        if self.function in self.client.fail_on:
            raise RuntimeError(f"{self.function} timed out")
        handler = getattr(self.client, f"_rpc_{self.function}")
        return SimpleNamespace(data=handler(**self.params))


class FakeBucket:
    def __init__(self, client, name):
        self.client = client
        self.name = name

    def upload(self, path, data, options=None):
        if "storage" in self.client.fail_on:
            raise RuntimeError("storage unavailable")
        self.client.objects[(self.name, path)] = data

    def get_public_url(self, path):
        return f"https://example.supabase.co/storage/v1/object/public/{self.name}/{path}"

    def remove(self, paths):
        for path in paths:
            self.client.objects.pop((self.name, path), None)


class FakeSupabase:
    """In-memory stand-in for a ``supabase.Client``."""

    def __init__(self):
        self.tables = {}
        self.objects = {}
        self.calls = []
        self.like_patterns = []
        self.fail_on = set()
        self._ids = itertools.count(1)
        self.storage = SimpleNamespace(from_=lambda bucket: FakeBucket(self, bucket))

    def add_row(self, table, row):
        row = dict(row)
        row.setdefault("id", str(next(self._ids)))
        self.tables.setdefault(table, []).append(row)
        return row

    def table(self, name):
        return FakeQuery(self, name)

    def rpc(self, function, params=None):
        return FakeRpc(self, function, params or {})

    def remote_calls(self):
        return len(self.calls)

    def _find(self, table, **criteria):
        return next(
            (row for row in self.tables.get(table, []) if all(row.get(k) == v for k, v in criteria.items())),
            None,
        )

    def _rpc_set_user_password(self, p_user_id, p_password_hash):
        row = self._find("users", id=p_user_id)
        if row is None:
            raise RuntimeError("user not found")
        row["password_hash"] = p_password_hash
        return None

    def _rpc_admin_create_user_safe(self, p_name, p_school, p_major, p_generation, p_gender):
        return self.add_row("users", {
            "name": p_name, "school": p_school, "major": p_major,
            "generation": p_generation, "gender": p_gender, "role": "participant",
        })

    def _rpc_admin_delete_user_safe(self, p_user_id):
        before = len(self.tables.get("users", []))
        self.tables["users"] = [u for u in self.tables.get("users", []) if u["id"] != p_user_id]
        return len(self.tables["users"]) < before

    def _rpc_admin_create_notice_safe(self, p_title, p_content, p_is_important):
        return self.add_row("notices", {"title": p_title, "content": p_content, "is_important": p_is_important})

    def _rpc_admin_update_notice_safe(self, p_id, p_title, p_content, p_is_important):
        row = self._find("notices", id=p_id)
        row.update({"title": p_title, "content": p_content, "is_important": p_is_important})
        return [dict(row)]

    def _rpc_admin_delete_notice_safe(self, p_id):
        self.tables["notices"] = [n for n in self.tables.get("notices", []) if n["id"] != p_id]
        return True

    def _rpc_admin_assign_bus(self, p_user_name, **fields):
        row = self._find("bus_assignments", user_name=p_user_name)
        values = {key[2:]: value for key, value in fields.items()}
        if row is None:
            row = self.add_row("bus_assignments", dict(values, user_name=p_user_name))
        else:
            row.update(values)
        return dict(row)

    def _rpc_admin_remove_bus_assignment(self, p_user_name):
        self.tables["bus_assignments"] = [
            a for a in self.tables.get("bus_assignments", []) if a["user_name"] != p_user_name
        ]
        return True

    def _rpc_admin_assign_wavepark(self, p_user_name, p_program_type, p_session_time, p_location, p_notes):
        row = self._find("wavepark_assignments", user_name=p_user_name)
        values = {"program_type": p_program_type, "session_time": p_session_time,
                  "location": p_location, "notes": p_notes}
        if row is None:
            row = self.add_row("wavepark_assignments", dict(values, user_name=p_user_name))
        else:
            row.update(values)
        return dict(row)

    def _rpc_admin_remove_wavepark_assignment(self, p_user_name):
        self.tables["wavepark_assignments"] = [
            a for a in self.tables.get("wavepark_assignments", []) if a["user_name"] != p_user_name
        ]
        return True

    def _rpc_get_user_room_by_name(self, p_user_name):
        assignment = self._find("room_assignments", user_name=p_user_name)
        if assignment is None:
            return None
        room = self._find("rooms", id=assignment["room_id"]) or {}
        return dict(assignment, room_number=room.get("room_number"), building_name=room.get("building_name"))

    def _rpc_get_roommates_by_room_id(self, p_room_id):
        return [
            {"user_name": a["user_name"], "school": a.get("school"), "major": a.get("major")}
            for a in self.tables.get("room_assignments", [])
            if a["room_id"] == p_room_id
        ]


@pytest.fixture
def fake_client():
    client = FakeSupabase()
    client.add_row("users", {"id": "u-1", "name": "Kim Minji", "phone_number": "010-1234-5678",
                             "school": "Seoul National University", "major": "Economics", "generation": "12",
                             "gender": "F", "role": "participant", "password_hash": None})
    client.add_row("users", {"id": "u-2", "name": "Kim Minjun", "phone_number": "01022223333",
                             "school": "KAIST", "major": "Physics", "generation": "11",
                             "gender": "M", "role": "participant", "password_hash": None})
    client.add_row("users", {"id": "u-3", "name": "Park Seoyeon", "phone_number": "010-4444-5555",
                             "school": "Yonsei University", "major": "Economics", "generation": "12",
                             "gender": "F", "role": "admin", "password_hash": None})
    return client


@pytest.fixture
def db(fake_client):
    return Database(client=fake_client)


@pytest.fixture
def storage():
    return {}


@pytest.fixture
def session_store(storage):
    return SessionStore(storage)


@pytest.fixture
def pin_manager(db):
    return PinManager(db, rounds=TEST_ROUNDS)


@pytest.fixture
def gate(db, session_store, pin_manager):
    return CredentialGate(db, session_store, pin_manager=pin_manager)


@pytest.fixture
def register(gate):
    """Run the registration flow for a participant and return the gate."""

    def _register(name, phone, pin="1234"):
        gate.start_over()
        gate.choose_flow("register")
        candidates = gate.search(name)
        match = next(c for c in candidates if c.name == name)
        gate.select_identity(match.id)
        gate.submit_phone(phone)
        gate.submit_pin(pin, pin)
        return gate

    return _register
