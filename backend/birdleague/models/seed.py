"""
Default league dataset.

Used when db.json does not exist yet, when it cannot be decoded, and by
DocumentStore.reset().
"""

from birdleague.models.league import Dataset

MEMBERS = [
    {"id": 1, "name": "Matthew"},
    {"id": 2, "name": "Trevor & Katie"},
    {"id": 3, "name": "Marshall"},
    {"id": 4, "name": "Dara"},
    {"id": 5, "name": "Anna"},
    {"id": 6, "name": "Leo & Taylor"},
    {"id": 7, "name": "Jack"},
    {"id": 8, "name": "Emily"},
    {"id": 9, "name": "Grace"},
    {"id": 10, "name": "Ben"},
]

SCHEDULE = [
    {"week": 1, "status": "completed", "matchups": [
        {"m1": 2, "m2": 1},
        {"m1": 3, "m2": 6},
        {"m1": 4, "m2": 7},
        {"m1": 5, "m2": 8},
        {"m1": 10, "m2": 9},
    ]},
    {"week": 2, "status": "completed", "matchups": [
        {"m1": 1, "m2": 6},
        {"m1": 2, "m2": 7},
        {"m1": 3, "m2": 8},
        {"m1": 4, "m2": 9},
        {"m1": 5, "m2": 10},
    ]},
    {"week": 3, "status": "active", "matchups": [
        {"m1": 6, "m2": 7},
        {"m1": 1, "m2": 8},
        {"m1": 2, "m2": 9},
        {"m1": 3, "m2": 10},
        {"m1": 4, "m2": 5},
    ]},
    {"week": 4, "status": "upcoming", "matchups": [
        {"m1": 1, "m2": 3},
        {"m1": 2, "m2": 4},
        {"m1": 5, "m2": 6},
        {"m1": 7, "m2": 9},
        {"m1": 8, "m2": 10},
    ]},
    {"week": 5, "status": "upcoming", "matchups": [
        {"m1": 1, "m2": 4},
        {"m1": 2, "m2": 3},
        {"m1": 5, "m2": 7},
        {"m1": 6, "m2": 10},
        {"m1": 8, "m2": 9},
    ]},
    {"week": 6, "status": "upcoming", "matchups": [
        {"m1": 1, "m2": 5},
        {"m1": 2, "m2": 6},
        {"m1": 3, "m2": 9},
        {"m1": 4, "m2": 8},
        {"m1": 7, "m2": 10},
    ]},
]


def default_dataset() -> Dataset:
    """Fresh copy of the seed dataset; callers may mutate it freely."""
    return Dataset.model_validate(
        {"members": MEMBERS, "schedule": SCHEDULE, "submissions": [], "judgments": []}
    )
