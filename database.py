"""
Backend access for the Workshop Participant Portal.

All persistent state lives in the hosted Supabase project. This module only
builds queries, maps rows to the records in ``models`` and turns any failure
of a remote call into a ``TransportError``.
"""
import logging
import uuid
from collections import Counter, OrderedDict

from supabase import create_client

import config
from errors import BusinessRuleError, TransportError
from models import (
    ActivityAssignment,
    BusAssignment,
    Event,
    Faq,
    Identity,
    Introduction,
    Notice,
    Photo,
    RoomAssignment,
    Roommate,
    UserFilters,
    normalize_phone,
)
from passwords import check_pin

logger = logging.getLogger(__name__)

SEARCH_COLUMNS = "id, name, school, major, generation, phone_number, role"


def _blank_to_none(value):
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _contains_pattern(fragment):
    """ILIKE pattern matching the fragment literally anywhere in the value."""
    escaped = str(fragment).replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_')
    return f"%{escaped}%"


def _single(data):
    """Stored procedures return either one object or a one-element list."""
    if isinstance(data, list):
        return data[0] if data else None
    return data


class Database:
    def __init__(self, client=None):
        self.client = client

    def get_client(self):
        """Get the Supabase client, creating it on first use."""
        if self.client is None:
            if not config.SUPABASE_URL or not config.SUPABASE_KEY:
                raise TransportError("The portal is not connected to its backend. Contact the organisers.")
            try:
                self.client = create_client(config.SUPABASE_URL, config.SUPABASE_KEY)
            except Exception as e:
                logger.exception("Could not create the Supabase client")
                raise TransportError() from e
        return self.client

    def table(self, name):
        return self.get_client().table(name)

    def _run(self, query, action):
        try:
            return query.execute()
        except Exception as e:
            logger.exception("%s failed", action)
            raise TransportError() from e

    def _execute(self, query, action):
        """Run a prepared query and return its rows."""
        response = self._run(query, action)
        if response is None:
            return []
        return response.data if response.data is not None else []

    def _rpc(self, function, params, action):
        return self._execute(self.get_client().rpc(function, params), action)

    # Directory sign-in operations
    def search_by_name(self, fragment, limit=config.SEARCH_RESULT_LIMIT):
        """Participants whose name contains the fragment, ordered by name."""
        query = (
            self.table('users')
            .select(SEARCH_COLUMNS)
            .ilike('name', _contains_pattern(fragment))
            .order('name')
            .limit(limit)
        )
        rows = self._execute(query, "Name search")
        return [Identity.from_row(row) for row in rows]

    def get_identity_by_name(self, name):
        """Get the participant with exactly this name."""
        query = self.table('users').select('*').eq('name', name.strip()).limit(2)
        rows = self._execute(query, "User lookup by name")
        if not rows:
            return None
        if len(rows) > 1:
            logger.warning("Name %r matches more than one participant", name)
            return None
        return Identity.from_row(rows[0])

    def get_identity_by_name_and_phone(self, name, phone):
        """Get the participant with this name whose stored phone matches."""
        wanted = normalize_phone(phone)
        query = self.table('users').select('*').eq('name', name.strip())
        rows = self._execute(query, "User lookup by name and phone")
        for row in rows:
            if normalize_phone(row.get('phone_number')) == wanted:
                return Identity.from_row(row)
        return None

    def is_name_taken(self, name, exclude_id=None):
        """Whether a participant other than ``exclude_id`` has exactly this name."""
        query = self.table('users').select('id').eq('name', name.strip())
        rows = self._execute(query, "Checking name")
        return any(str(row.get('id')) != str(exclude_id) for row in rows)

    def get_identity_by_id(self, identity_id):
        """Get a participant by ID."""
        query = self.table('users').select('*').eq('id', identity_id).limit(1)
        rows = self._execute(query, "User lookup by id")
        return Identity.from_row(rows[0]) if rows else None

    def set_credential_hash(self, identity_id, password_hash):
        """Store a PIN hash. Runs as a privileged procedure since the caller is not signed in yet."""
        self._rpc(
            'set_user_password',
            {'p_user_id': identity_id, 'p_password_hash': password_hash},
            "Setting PIN",
        )

    def get_credential_hash(self, identity_id):
        query = self.table('users').select('password_hash').eq('id', identity_id).limit(1)
        rows = self._execute(query, "Reading PIN hash")
        if not rows:
            return None
        return rows[0].get('password_hash')

    def verify_credential(self, identity_id, pin):
        """Check a PIN against the stored hash. False when no hash is on file."""
        return check_pin(pin, self.get_credential_hash(identity_id))

    # User operations
    def get_users(self, filters=None):
        """Get participants, optionally filtered, ordered by name."""
        filters = filters or UserFilters()
        query = self.table('users').select('*')
        for column in ('school', 'major', 'generation', 'role'):
            value = getattr(filters, column)
            if value:
                query = query.eq(column, value)
        if filters.search:
            query = query.ilike('name', _contains_pattern(filters.search))
        rows = self._execute(query.order('name'), "Loading participants")
        return [Identity.from_row(row) for row in rows]

    def create_user(self, name, school, major, generation, gender, phone_number=None):
        """Create a participant."""
        data = self._rpc(
            'admin_create_user_safe',
            {
                'p_name': name.strip(),
                'p_school': school.strip(),
                'p_major': major.strip(),
                'p_generation': str(generation).strip(),
                'p_gender': gender.strip(),
            },
            "Creating participant",
        )
        identity = Identity.from_row(_single(data))
        phone_number = _blank_to_none(phone_number)
        if phone_number:
            identity = self.update_user(identity.id, {'phone_number': phone_number})
        return identity

    def bulk_create_users(self, records):
        """Create several participants. Returns the created identities."""
        created = []
        for record in records:
            created.append(self.create_user(
                record.get('name', ''),
                record.get('school', ''),
                record.get('major', ''),
                record.get('generation', ''),
                record.get('gender', ''),
                record.get('phone_number'),
            ))
        return created

    def update_user(self, user_id, updates):
        """Update participant fields."""
        updates = {key: value for key, value in updates.items() if key != 'password_hash'}
        query = self.table('users').update(updates).eq('id', user_id)
        rows = self._execute(query, "Updating participant")
        if not rows:
            raise TransportError("The participant could not be updated.")
        return Identity.from_row(rows[0])

    def delete_user(self, user_id):
        """Delete a participant together with everything attached to them."""
        return bool(_single(self._rpc('admin_delete_user_safe', {'p_user_id': user_id}, "Deleting participant")))

    # Event operations
    def get_events(self):
        """Get the whole schedule, by day and then by order."""
        query = self.table('events').select('*').order('event_date').order('order_index')
        return [Event.from_row(row) for row in self._execute(query, "Loading schedule")]

    def create_event(self, title, event_date, start_time, end_time, location=None, description=None, order_index=None):
        """Create a schedule entry."""
        row = {
            'title': title.strip(),
            'event_date': event_date,
            'start_time': start_time,
            'end_time': end_time,
            'location': _blank_to_none(location),
            'description': _blank_to_none(description),
            'order_index': order_index,
        }
        rows = self._execute(self.table('events').insert(row), "Creating event")
        return Event.from_row(rows[0]) if rows else None

    def update_event(self, event_id, updates):
        """Update schedule entry details."""
        rows = self._execute(self.table('events').update(updates).eq('id', event_id), "Updating event")
        return Event.from_row(rows[0]) if rows else None

    def delete_event(self, event_id):
        """Delete a schedule entry."""
        self._execute(self.table('events').delete().eq('id', event_id), "Deleting event")
        return True

    # Notice operations
    def get_notices(self):
        """Get notices, newest first."""
        query = self.table('notices').select('*').order('created_at', desc=True)
        return [Notice.from_row(row) for row in self._execute(query, "Loading notices")]

    def get_notice(self, notice_id):
        query = self.table('notices').select('*').eq('id', notice_id).limit(1)
        rows = self._execute(query, "Loading notice")
        return Notice.from_row(rows[0]) if rows else None

    def create_notice(self, title, content, is_important=False):
        data = self._rpc(
            'admin_create_notice_safe',
            {'p_title': title, 'p_content': content, 'p_is_important': bool(is_important)},
            "Creating notice",
        )
        return Notice.from_row(_single(data))

    def update_notice(self, notice_id, title, content, is_important=False):
        data = self._rpc(
            'admin_update_notice_safe',
            {'p_id': notice_id, 'p_title': title, 'p_content': content, 'p_is_important': bool(is_important)},
            "Updating notice",
        )
        return Notice.from_row(_single(data))

    def delete_notice(self, notice_id):
        return bool(_single(self._rpc('admin_delete_notice_safe', {'p_id': notice_id}, "Deleting notice")))

    # FAQ operations
    def get_faqs(self):
        query = (
            self.table('faq')
            .select('id, question, answer, category, updated_at')
            .order('category')
            .order('updated_at')
        )
        return [Faq.from_row(row) for row in self._execute(query, "Loading FAQ")]

    # Introduction operations
    def get_introduction(self, user_id):
        query = self.table('introductions').select('*').eq('user_id', user_id).limit(1)
        rows = self._execute(query, "Loading introduction")
        return Introduction.from_row(rows[0]) if rows else None

    def get_introductions(self):
        query = self.table('introductions').select('*').order('submitted_at', desc=True)
        return [Introduction.from_row(row) for row in self._execute(query, "Loading introductions")]

    def save_introduction(self, user_id, data):
        """Save a participant's introduction, creating it on first save.

        The name doubles as the sign-in key, so a name another participant
        already holds is rejected before anything is written.
        """
        profile = {key: data[key].strip() for key in ('name', 'school', 'major') if data.get(key)}
        if profile.get('name') and self.is_name_taken(profile['name'], exclude_id=user_id):
            raise BusinessRuleError("Another participant already uses that name. Please keep your own name.")
        if profile:
            self._execute(self.table('users').update(profile).eq('id', user_id), "Updating profile")

        row = {
            'user_id': user_id,
            'keywords': data.get('keywords', ''),
            'interests': data.get('interests', ''),
            'bucketlist': data.get('bucketlist', ''),
            'stress_relief': data.get('stress_relief', ''),
            'foundation_activity': data.get('foundation_activity', ''),
            'name': _blank_to_none(data.get('name')),
            'school': _blank_to_none(data.get('school')),
            'major': _blank_to_none(data.get('major')),
            'birth_date': _blank_to_none(data.get('birth_date')),
            'location': _blank_to_none(data.get('location')),
            'mbti': _blank_to_none(data.get('mbti')),
        }

        if self.get_introduction(user_id) is not None:
            query = self.table('introductions').update(row).eq('user_id', user_id)
        else:
            query = self.table('introductions').insert(row)
        rows = self._execute(query, "Saving introduction")
        return Introduction.from_row(rows[0]) if rows else Introduction.from_row(row)

    # Room operations
    def get_room_assignment_by_name(self, user_name):
        data = _single(self._rpc('get_user_room_by_name', {'p_user_name': user_name}, "Loading room"))
        return RoomAssignment.from_row(data) if data else None

    def get_roommates(self, room_id):
        rows = self._rpc('get_roommates_by_room_id', {'p_room_id': room_id}, "Loading roommates") or []
        return [Roommate.from_row(row) for row in rows]

    def get_room_occupancy(self):
        """Rows of the room summary view, by building and room number."""
        query = self.table('room_assignment_summary').select('*').order('building_name').order('room_number')
        return self._execute(query, "Loading room occupancy")

    # Bus operations
    def get_bus_assignments(self):
        query = self.table('bus_assignments').select('*').order('departure_bus').order('user_name')
        return [BusAssignment.from_row(row) for row in self._execute(query, "Loading bus assignments")]

    def get_bus_assignment(self, user_name):
        query = self.table('bus_assignments').select('*').eq('user_name', user_name).limit(1)
        rows = self._execute(query, "Loading bus assignment")
        return BusAssignment.from_row(rows[0]) if rows else None

    def assign_bus(self, data):
        """Create or replace a participant's bus assignment."""
        params = {'p_user_name': data['user_name']}
        for column in ('departure_bus', 'departure_time', 'departure_location',
                       'return_bus', 'return_time', 'arrival_location', 'notes'):
            params[f"p_{column}"] = _blank_to_none(data.get(column))
        return BusAssignment.from_row(_single(self._rpc('admin_assign_bus', params, "Assigning bus")))

    def remove_bus_assignment(self, user_name):
        return self._rpc('admin_remove_bus_assignment', {'p_user_name': user_name}, "Removing bus assignment")

    # Activity operations
    def get_activity_assignments(self):
        query = self.table('wavepark_assignments').select('*').order('program_type').order('user_name')
        return [ActivityAssignment.from_row(row) for row in self._execute(query, "Loading activity assignments")]

    def get_activity_assignment(self, user_name):
        query = self.table('wavepark_assignments').select('*').eq('user_name', user_name).limit(1)
        rows = self._execute(query, "Loading activity assignment")
        return ActivityAssignment.from_row(rows[0]) if rows else None

    def assign_activity(self, data):
        """Create or replace a participant's activity assignment."""
        params = {
            'p_user_name': data['user_name'],
            'p_program_type': data['program_type'],
            'p_session_time': _blank_to_none(data.get('session_time')),
            'p_location': _blank_to_none(data.get('location')),
            'p_notes': _blank_to_none(data.get('notes')),
        }
        return ActivityAssignment.from_row(_single(self._rpc('admin_assign_wavepark', params, "Assigning activity")))

    def remove_activity_assignment(self, user_name):
        return self._rpc('admin_remove_wavepark_assignment', {'p_user_name': user_name}, "Removing activity assignment")

    # Photo operations
    def get_photos(self):
        query = self.table('photos').select('*, users:user_id (name)').order('uploaded_at', desc=True)
        return [Photo.from_row(row) for row in self._execute(query, "Loading photos")]

    def upload_photo(self, user_id, image_bytes, description=None):
        """Upload an image to storage and record it. The stored object is removed if recording fails."""
        path = f"{user_id}/{uuid.uuid4().hex}.jpg"
        bucket = self.get_client().storage.from_(config.PHOTO_BUCKET)
        try:
            bucket.upload(path, image_bytes, {"content-type": "image/jpeg"})
            image_url = bucket.get_public_url(path)
        except Exception as e:
            logger.exception("Photo upload to storage failed")
            raise TransportError("The photo could not be uploaded. Please try again.") from e

        row = {'user_id': user_id, 'image_url': image_url, 'description': _blank_to_none(description)}
        try:
            rows = self._execute(self.table('photos').insert(row), "Recording photo")
        except TransportError:
            self._remove_objects(config.PHOTO_BUCKET, [path])
            raise
        return Photo.from_row(rows[0]) if rows else None

    def delete_photo(self, photo):
        self._execute(self.table('photos').delete().eq('id', photo.id), "Deleting photo")
        if photo.storage_path:
            self._remove_objects(config.PHOTO_BUCKET, [photo.storage_path])
        return True

    # Profile image operations
    def upload_profile_image(self, user_id, image_bytes):
        """Replace a participant's profile image. Returns the updated identity."""
        current = self.get_identity_by_id(user_id)
        if current is None:
            raise BusinessRuleError("We could not find your participant record.")

        path = f"{user_id}/profile_{uuid.uuid4().hex}.jpg"
        bucket = self.get_client().storage.from_(config.PROFILE_BUCKET)
        try:
            bucket.upload(path, image_bytes, {"content-type": "image/jpeg"})
            image_url = bucket.get_public_url(path)
        except Exception as e:
            logger.exception("Profile image upload to storage failed")
            raise TransportError("The profile image could not be uploaded. Please try again.") from e

        try:
            identity = self.update_user(user_id, {'profile_image_url': image_url})
        except TransportError:
            self._remove_objects(config.PROFILE_BUCKET, [path])
            raise

        if current.profile_image_path:
            self._remove_objects(config.PROFILE_BUCKET, [current.profile_image_path])
        return identity

    def delete_profile_image(self, user_id):
        """Remove a participant's profile image. Returns the updated identity."""
        current = self.get_identity_by_id(user_id)
        if current is None:
            raise BusinessRuleError("We could not find your participant record.")
        if not current.profile_image_url:
            return current

        identity = self.update_user(user_id, {'profile_image_url': None})
        if current.profile_image_path:
            self._remove_objects(config.PROFILE_BUCKET, [current.profile_image_path])
        return identity

    def _remove_objects(self, bucket_name, paths):
        try:
            self.get_client().storage.from_(bucket_name).remove(paths)
        except Exception:
            # best effort, a failure leaves an orphaned object behind
            logger.exception("Could not remove %s from storage bucket %s", paths, bucket_name)

    def like_photo(self, photo_id, user_id):
        self._execute(self.table('photo_likes').insert({'photo_id': photo_id, 'user_id': user_id}), "Liking photo")

    def unlike_photo(self, photo_id, user_id):
        query = self.table('photo_likes').delete().eq('photo_id', photo_id).eq('user_id', user_id)
        self._execute(query, "Removing like")

    def get_liked_photo_ids(self, user_id):
        rows = self._execute(self.table('photo_likes').select('photo_id').eq('user_id', user_id), "Loading likes")
        return {row['photo_id'] for row in rows}

    # Dashboard and reporting
    def get_counts(self):
        """Row counts for the admin stat tiles."""
        counts = {}
        for table in ('users', 'events', 'notices', 'photos'):
            query = self.table(table).select('id', count='exact').limit(1)
            response = self._run(query, f"Counting {table}")
            counts[table] = (response.count if response is not None else None) or 0
        return counts


def bus_statistics(assignments, bus_names=config.BUS_NAMES):
    """Riders per departure and return bus."""
    departure = Counter(a.departure_bus for a in assignments if a.departure_bus)
    returning = Counter(a.return_bus for a in assignments if a.return_bus)

    def _summary(counter):
        summary = OrderedDict((name, counter.get(name, 0)) for name in bus_names)
        summary['total'] = sum(counter.values())
        return summary

    return {'departure': _summary(departure), 'return': _summary(returning), 'total': len(assignments)}


def activity_statistics(assignments, programs=config.ACTIVITY_PROGRAMS):
    """Participants per activity program."""
    counter = Counter(a.program_type for a in assignments)
    stats = OrderedDict((program, counter.get(program, 0)) for program in programs)
    stats['total'] = len(assignments)
    return stats


def group_faqs_by_category(faqs, default=config.FAQ_DEFAULT_CATEGORY):
    """FAQ entries keyed by category, keeping the incoming order."""
    grouped = OrderedDict()
    for faq in faqs:
        grouped.setdefault(faq.category or default, []).append(faq)
    return grouped
