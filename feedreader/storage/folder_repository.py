"""
Folder Repository
=================
"""

import sqlite3
from typing import List, Optional

from ..database.connection import DatabaseConnection
from ..database.models import Folder
from ..ingestion.content_cleaner import to_iso8601
from ..utils.exceptions import DatabaseError, ErrorCode
from ..utils.logging import get_logger_for_component


class FolderRepository:
    """Repository for managing folder rows."""

    def __init__(self, db_connection: DatabaseConnection):
        self.db = db_connection
        self.logger = get_logger_for_component("folder_repository")

    def create_folder(self, folder: Folder) -> bool:
        """Insert a folder; False when a folder with the same id exists."""
        try:
            created = self.db.execute_update(
                "INSERT OR IGNORE INTO folders (id, name, created_at) VALUES (?, ?, ?)",
                (folder.id, folder.name, to_iso8601(folder.created_at)),
            )
        except sqlite3.Error as e:
            self.logger.error(f"Failed to create folder {folder.id}: {e}")
            raise DatabaseError(
                f"Failed to create folder: {e}", error_code=ErrorCode.DATABASE_ERROR
            ) from e

        if created:
            self.logger.info(f"Created folder {folder.id}")
        return created > 0

    def get_folder(self, folder_id: str) -> Optional[Folder]:
        try:
            row = self.db.execute_one("SELECT * FROM folders WHERE id = ?", (folder_id,))
        except sqlite3.Error as e:
            raise DatabaseError(
                f"Failed to get folder {folder_id}: {e}", error_code=ErrorCode.DATABASE_ERROR
            ) from e
        return Folder.from_db_row(row) if row else None

    def list_folders(self) -> List[Folder]:
        try:
            rows = self.db.execute_query("SELECT * FROM folders ORDER BY name")
        except sqlite3.Error as e:
            raise DatabaseError(
                f"Failed to list folders: {e}", error_code=ErrorCode.DATABASE_ERROR
            ) from e
        return [Folder.from_db_row(row) for row in rows]
