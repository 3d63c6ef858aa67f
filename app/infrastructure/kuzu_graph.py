"""
Kuzu Graph Database - schema

Every entity is a node table keyed by a string id. Ownership and
membership are stored as id properties (``user_id``, ``guild_id``) and
joined in Cypher ``WHERE`` clauses.
"""

import logging

logger = logging.getLogger(__name__)


NODE_TABLES = [
    """
    CREATE NODE TABLE User(
        id STRING,
        email STRING,
        name STRING,
        password_hash STRING,
        provider STRING,
        provider_id STRING,
        profile_image STRING,
        role STRING,
        created_at TIMESTAMP,
        PRIMARY KEY(id)
    )
    """,
    """
    CREATE NODE TABLE TasteRecord(
        id STRING,
        user_id STRING,
        title STRING,
        caption STRING,
        content STRING,
        category STRING,
        tags_json STRING,
        thumb STRING,
        created_at TIMESTAMP,
        PRIMARY KEY(id)
    )
    """,
    """
    CREATE NODE TABLE Stay(
        id STRING,
        user_id STRING,
        lat DOUBLE,
        lng DOUBLE,
        start_time TIMESTAMP,
        end_time TIMESTAMP,
        kakao_place_id STRING,
        category_name STRING,
        category_group_code STRING,
        mapped_category STRING,
        recommendation_points_awarded_at TIMESTAMP,
        created_at TIMESTAMP,
        PRIMARY KEY(id)
    )
    """,
    """
    CREATE NODE TABLE LiveLocation(
        user_id STRING,
        lat DOUBLE,
        lng DOUBLE,
        updated_at TIMESTAMP,
        PRIMARY KEY(user_id)
    )
    """,
    """
    CREATE NODE TABLE Guild(
        id STRING,
        name STRING,
        description STRING,
        category STRING,
        tags_json STRING,
        rules STRING,
        max_members INT64,
        emblem_url STRING,
        owner_id STRING,
        created_at TIMESTAMP,
        PRIMARY KEY(id)
    )
    """,
    """
    CREATE NODE TABLE GuildMembership(
        id STRING,
        user_id STRING,
        guild_id STRING,
        status STRING,
        created_at TIMESTAMP,
        PRIMARY KEY(id)
    )
    """,
    """
    CREATE NODE TABLE GuildScore(
        id STRING,
        user_id STRING,
        guild_id STRING,
        score INT64,
        updated_at TIMESTAMP,
        PRIMARY KEY(id)
    )
    """,
    """
    CREATE NODE TABLE GuildRecord(
        id STRING,
        guild_id STRING,
        user_id STRING,
        mission_id STRING,
        title STRING,
        description STRING,
        content STRING,
        category STRING,
        recorded_at TIMESTAMP,
        rating DOUBLE,
        main_image STRING,
        extra_images_json STRING,
        hashtags_json STRING,
        kakao_place_id STRING,
        created_at TIMESTAMP,
        PRIMARY KEY(id)
    )
    """,
    """
    CREATE NODE TABLE GuildRecordComment(
        id STRING,
        record_id STRING,
        user_id STRING,
        parent_comment_id STRING,
        content STRING,
        created_at TIMESTAMP,
        PRIMARY KEY(id)
    )
    """,
    """
    CREATE NODE TABLE Notification(
        id STRING,
        user_id STRING,
        notification_type STRING,
        record_id STRING,
        comment_id STRING,
        from_user_id STRING,
        content STRING,
        is_read BOOLEAN,
        created_at TIMESTAMP,
        PRIMARY KEY(id)
    )
    """,
    """
    CREATE NODE TABLE GuildMission(
        id STRING,
        guild_id STRING,
        creator_id STRING,
        title STRING,
        content STRING,
        limit_count INT64,
        difficulty STRING,
        main_image STRING,
        extra_images_json STRING,
        created_at TIMESTAMP,
        PRIMARY KEY(id)
    )
    """,
    """
    CREATE NODE TABLE Recommendation(
        id STRING,
        user_id STRING,
        guild_id STRING,
        source STRING,
        stay_id STRING,
        kakao_place_id STRING,
        name STRING,
        category_name STRING,
        category_group_code STRING,
        mapped_category STRING,
        x DOUBLE,
        y DOUBLE,
        distance_meters DOUBLE,
        score DOUBLE,
        road_address STRING,
        address STRING,
        phone STRING,
        status STRING,
        created_at TIMESTAMP,
        PRIMARY KEY(id)
    )
    """,
    """
    CREATE NODE TABLE TasteDashboard(
        user_id STRING,
        total_stays INT64,
        categories_json STRING,
        updated_at TIMESTAMP,
        PRIMARY KEY(user_id)
    )
    """,
]


def initialize_schema(connection) -> None:
    """Create all node tables, skipping the ones that already exist."""
    tables_created = 0
    tables_existed = 0

    for i, query in enumerate(NODE_TABLES):
        try:
            connection.execute(query)
            tables_created += 1
            logger.debug(f"Successfully created table {i+1}/{len(NODE_TABLES)}")
        except RuntimeError as e:
            if "already exists" in str(e).lower():
                tables_existed += 1
                continue
            logger.error(f"Failed to execute schema query {i+1}: {e}")
            raise

    logger.info(f"Kuzu schema ensured: {tables_created} created, {tables_existed} already existed")
