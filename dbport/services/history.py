"""Schema history: the migration step between each pair of adjacent major versions."""

from typing import List

from ..models.migration import MigrationStep, OperationType as Op, StepOperation

V2_DATETIMES = {
    "users": ["created_at"],
    "tags": ["created_at"],
    "posts": ["created_at", "published_at"],
    "subscribers": ["created_at"],
}


def _normalize_v2_datetimes() -> List[StepOperation]:
    return [
        StepOperation(Op.NORMALIZE_DATETIME, table, {"columns": columns})
        for table, columns in V2_DATETIMES.items()
    ]


# Boolean columns of each version; dumps often carry them as 0/1.
BOOLEANS = {
    2: {"posts": ["page", "featured"]},
    3: {"posts": ["featured"], "members": ["subscribed"]},
    4: {"posts": ["featured"], "members": ["subscribed", "email_disabled"]},
}


def _coerce_booleans(major: int) -> List[StepOperation]:
    return [
        StepOperation(Op.COERCE_BOOLEAN, table, {"columns": columns})
        for table, columns in BOOLEANS[major].items()
    ]


V2_TO_V3 = MigrationStep(
    from_version="2.0",
    to_version="3.0",
    description="Post types, multiple authors, setting groups, members",
    operations=_coerce_booleans(2) + _normalize_v2_datetimes() + [
        StepOperation(Op.MAP_VALUES, "posts", {
            "column": "page",
            "target": "type",
            "mapping": {"true": "page", "false": "post"},
            "default": "post",
        }),
        StepOperation(Op.SPLIT_TABLE, "posts", {
            "into": "posts_authors",
            "columns": ["author_id"],
            "key": "post_id",
            "extra": {"sort_order": 0},
        }, notes="Primary author becomes the first posts_authors row"),
        StepOperation(Op.RENAME_COLUMN, "settings", {"from": "type", "to": "group"}),
        StepOperation(Op.RENAME_TABLE, "subscribers", {"to": "members"}),
        StepOperation(Op.MAP_VALUES, "members", {
            "column": "status",
            "target": "subscribed",
            "mapping": {"subscribed": True, "unsubscribed": False},
            "default": True,
        }),
        StepOperation(Op.ADD_COLUMN, "members", {"column": "status", "default": "free"}),
    ],
)

V3_TO_V4 = MigrationStep(
    from_version="3.0",
    to_version="4.0",
    description="Post metadata table, member email preferences, revision datetimes",
    operations=_coerce_booleans(3) + [
        StepOperation(Op.SPLIT_TABLE, "posts", {
            "into": "posts_meta",
            "columns": ["meta_title", "meta_description"],
            "key": "post_id",
            "skip_empty": True,
        }),
        StepOperation(Op.ADD_COLUMN, "users", {"column": "location", "default": None}),
        StepOperation(Op.ADD_COLUMN, "settings", {"column": "flags", "default": None}),
        StepOperation(Op.ADD_COLUMN, "members", {"column": "email_disabled", "default": False}),
        StepOperation(Op.UNIX_TO_ISO, "mobiledoc_revisions", {
            "column": "created_at_ts",
            "target": "created_at",
            "unit": "ms",
        }),
    ],
)

V4_TO_V5 = MigrationStep(
    from_version="4.0",
    to_version="5.0",
    description="Composite keys for join tables, lexical content",
    operations=_coerce_booleans(4) + [
        StepOperation(Op.MERGE_DUPLICATES, "posts_tags", {
            "key": ["post_id", "tag_id"],
            "prefer": "sort_order",
            "drop": ["id"],
        }),
        StepOperation(Op.MERGE_DUPLICATES, "roles_users", {
            "key": ["role_id", "user_id"],
            "drop": ["id"],
        }),
        StepOperation(Op.ADD_COLUMN, "posts", {"column": "lexical", "default": None}),
    ],
)

SCHEMA_HISTORY: List[MigrationStep] = [V2_TO_V3, V3_TO_V4, V4_TO_V5]
