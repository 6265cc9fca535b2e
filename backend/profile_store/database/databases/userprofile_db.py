"""
User-profile database manifests.

Two manifests target the ``userprofile`` database:

- ``userprofile-init``: snake_case collections with validators, their
  indexes, the application user and the admin seed profile
- ``userprofile-indexes``: indexes for the camelCase collections used by the
  profile, event, segment and recommendation services

They overlap in purpose and neither is canonical; which one a deployment
applies is an operator decision.
"""
from typing import Any

from bson.int64 import Int64

from profile_store.config import Settings
from profile_store.models.manifest import NOW_MARKER, Manifest, parse_manifest

DB_NAME = "userprofile"

INIT_MANIFEST = "userprofile-init"
INDEXES_MANIFEST = "userprofile-indexes"

APP_USERNAME = "userprofile"

BEHAVIOR_TYPES = ["BROWSE", "SEARCH", "CLICK", "PURCHASE", "SHARE", "FAVORITE", "COMMENT"]


class Collections:
    """Collection names in the userprofile database."""
    # userprofile-init
    USER_PROFILES = "user_profiles"
    USER_BEHAVIORS = "user_behaviors"
    USER_TAGS = "user_tags"

    # userprofile-indexes
    PROFILES = "userProfiles"
    EVENTS = "userEvents"
    SEGMENTS = "userSegments"
    RECOMMENDATIONS = "recommendations"


# Index definitions per collection, in creation order
INIT_INDEXES = {
    Collections.USER_PROFILES: [
        {"name": "idx_userId", "keys": [("userId", 1)], "unique": True},
        {"name": "idx_username", "keys": [("username", 1)]},
        {"name": "idx_updateTime", "keys": [("updateTime", -1)]},
        {"name": "idx_profileScore", "keys": [("profileScore", -1)]},
        {"name": "idx_userId_updateTime", "keys": [("userId", 1), ("updateTime", -1)]},
    ],
    Collections.USER_BEHAVIORS: [
        {"name": "idx_userId", "keys": [("userId", 1)]},
        {"name": "idx_behaviorType", "keys": [("behaviorType", 1)]},
        {"name": "idx_timestamp", "keys": [("timestamp", -1)]},
        {"name": "idx_userId_timestamp", "keys": [("userId", 1), ("timestamp", -1)]},
        {"name": "idx_userId_behaviorType", "keys": [("userId", 1), ("behaviorType", 1)]},
    ],
    Collections.USER_TAGS: [
        {"name": "idx_userId", "keys": [("userId", 1)], "unique": True},
        {"name": "idx_tagName", "keys": [("tags.tagName", 1)]},
        {"name": "idx_category", "keys": [("tags.category", 1)]},
    ],
}

SERVICE_INDEXES = {
    Collections.PROFILES: [
        {"name": "idx_user_id", "keys": [("userId", 1)], "unique": True},
        {"name": "idx_create_time", "keys": [("createTime", -1)]},
        {"name": "idx_update_time", "keys": [("updateTime", -1)]},
        {"name": "idx_userId_updateTime", "keys": [("userId", 1), ("updateTime", -1)]},
    ],
    Collections.EVENTS: [
        {"name": "idx_userId_eventTime", "keys": [("userId", 1), ("eventTime", -1)]},
        {"name": "idx_event_type", "keys": [("eventType", 1)]},
        {"name": "idx_event_time", "keys": [("eventTime", -1)]},
        {"name": "idx_eventType_eventTime", "keys": [("eventType", 1), ("eventTime", -1)]},
    ],
    Collections.SEGMENTS: [
        {"name": "idx_user_id", "keys": [("userId", 1)]},
        {"name": "idx_segment_name", "keys": [("segmentName", 1)]},
        {"name": "idx_create_time", "keys": [("createTime", -1)]},
        {
            "name": "idx_segmentName_userId",
            "keys": [("segmentName", 1), ("userId", 1)],
            "unique": True,
        },
    ],
    Collections.RECOMMENDATIONS: [
        {"name": "idx_userId_createTime", "keys": [("userId", 1), ("createTime", -1)]},
        {"name": "idx_recommendation_type", "keys": [("recommendationType", 1)]},
        {"name": "idx_score", "keys": [("score", -1)]},
    ],
}

USER_PROFILES_VALIDATOR = {
    "required": ["userId", "username"],
    "properties": {
        "userId": {"bson_type": "long", "description": "User ID - required"},
        "username": {"bson_type": "string", "description": "Username - required"},
        "profileScore": {
            "bson_type": ["double", "null"],
            "minimum": 0,
            "maximum": 100,
            "description": "Profile score between 0-100",
        },
    },
}

USER_BEHAVIORS_VALIDATOR = {
    "required": ["userId", "behaviorType", "timestamp"],
    "properties": {
        "userId": {"bson_type": "long", "description": "User ID - required"},
        "behaviorType": {
            "bson_type": "string",
            "enum": BEHAVIOR_TYPES,
            "description": "Behavior type - required",
        },
        "timestamp": {"bson_type": "date", "description": "Behavior timestamp - required"},
    },
}


def _index_entries(indexes: dict[str, list[dict[str, Any]]]) -> list[dict[str, Any]]:
    return [
        {"kind": "index", "collection": collection, **index_def}
        for collection, index_defs in indexes.items()
        for index_def in index_defs
    ]


def admin_profile(user_id: int, username: str) -> dict[str, Any]:
    """The demo profile inserted on first bootstrap."""
    now = {NOW_MARKER: True}
    return {
        "userId": Int64(user_id),
        "username": username,
        "basicInfo": {
            "gender": "UNKNOWN",
            "ageRange": "UNKNOWN",
            "location": "Unknown",
        },
        "behaviorSummary": {
            "totalBehaviors": 0,
            "activeDays": 0,
            "lastActiveTime": now,
            "frequentActions": [],
        },
        "preferenceAnalysis": {
            "interests": [],
            "categories": [],
        },
        "valueAssessment": {
            "profileQuality": "INCOMPLETE",
            "consumptionLevel": "UNKNOWN",
            "preferenceAnalysis": {},
            "avgOrderValue": 0.0,
            "feedingMethod": "UNKNOWN",
            "teachability": "UNKNOWN",
        },
        "profileScore": 50.0,
        "createTime": now,
        "updateTime": now,
    }


def init_manifest(settings: Settings) -> Manifest:
    """Collections, validators, indexes, app user and admin seed."""
    entries: list[dict[str, Any]] = [
        {
            "kind": "user",
            "username": APP_USERNAME,
            "roles": [{"role": "readWrite", "db": DB_NAME}],
        },
        {
            "kind": "collection",
            "name": Collections.USER_PROFILES,
            "validator": USER_PROFILES_VALIDATOR,
        },
        {
            "kind": "collection",
            "name": Collections.USER_BEHAVIORS,
            "validator": USER_BEHAVIORS_VALIDATOR,
        },
        {"kind": "collection", "name": Collections.USER_TAGS},
    ]
    entries.extend(_index_entries(INIT_INDEXES))
    entries.append(
        {
            "kind": "seed",
            "collection": Collections.USER_PROFILES,
            "key": ["userId"],
            "document": admin_profile(settings.seed_admin_user_id, settings.seed_admin_username),
        }
    )
    return parse_manifest(
        {
            "name": INIT_MANIFEST,
            "database": DB_NAME,
            "description": "User profile, behavior and tag collections with validators and admin seed",
            "entries": entries,
        }
    )


def indexes_manifest(settings: Settings) -> Manifest:
    """Background indexes for the profile service collections."""
    return parse_manifest(
        {
            "name": INDEXES_MANIFEST,
            "database": DB_NAME,
            "description": "Indexes for userProfiles, userEvents, userSegments and recommendations",
            "entries": _index_entries(SERVICE_INDEXES),
        }
    )


# Manifest for registry
DB_MANIFEST = {
    "db_name": DB_NAME,
    "purpose": "User profiles, behaviors, tags, segments and recommendations",
    "manifests": {
        INIT_MANIFEST: init_manifest,
        INDEXES_MANIFEST: indexes_manifest,
    },
}
