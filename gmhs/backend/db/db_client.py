import logging
from typing import Dict, List, Optional
import asyncpg
from datetime import datetime
from ..models.db_models import User, Student, Action, Complaint, Role

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS Users (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    email TEXT NOT NULL UNIQUE,
    password TEXT NOT NULL,
    role TEXT NOT NULL CHECK (role IN ('ADMIN', 'TEACHER', 'PARENT')),
    created_at TIMESTAMPTZ NOT NULL DEFAULT now()
);

CREATE TABLE IF NOT EXISTS Students (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    class_name TEXT NOT NULL,
    parent_id TEXT NOT NULL REFERENCES Users(id) ON DELETE CASCADE,
    teacher_id TEXT REFERENCES Users(id) ON DELETE SET NULL,
    created_at TIMESTAMPTZ NOT NULL DEFAULT now()
);

CREATE TABLE IF NOT EXISTS Actions (
    id TEXT PRIMARY KEY,
    description TEXT NOT NULL,
    student_id TEXT NOT NULL REFERENCES Students(id) ON DELETE CASCADE,
    teacher_id TEXT NOT NULL REFERENCES Users(id) ON DELETE CASCADE,
    created_at TIMESTAMPTZ NOT NULL DEFAULT now()
);

CREATE TABLE IF NOT EXISTS Complaints (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    description TEXT NOT NULL,
    type TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'PENDING' CHECK (status IN ('PENDING', 'IN_PROGRESS', 'RESOLVED')),
    resolution TEXT,
    student_id TEXT NOT NULL REFERENCES Students(id) ON DELETE CASCADE,
    parent_id TEXT NOT NULL REFERENCES Users(id) ON DELETE CASCADE,
    teacher_id TEXT REFERENCES Users(id) ON DELETE SET NULL,
    created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
    resolved_at TIMESTAMPTZ
);
"""


class AsyncPostgresClient:
    """
    PostgreSQL client that owns every query the application issues.
    """
    def __init__(self, pool: asyncpg.Pool):
        self._pool = pool

    async def create_schema(self):
        """Creates the tables if they do not exist yet."""
        async with self._pool.acquire() as connection:
            await connection.execute(SCHEMA)

    # ===== Users =====

    async def add_user(self, user: User):
        query = """
            INSERT INTO Users (id, name, email, password, role, created_at)
            VALUES ($1, $2, $3, $4, $5, $6);
        """
        async with self._pool.acquire() as connection:
            await connection.execute(
                query, user.id, user.name, user.email, user.password, user.role.value, user.created_at
            )

    async def get_user_by_id(self, user_id: str, role: Optional[Role] = None) -> Optional[User]:
        """Returns the user, or None when missing or when it does not have the given role."""
        query = "SELECT * FROM Users WHERE id = $1 AND ($2::text IS NULL OR role = $2);"
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, user_id, role.value if role else None)
            return User(**record) if record else None

    async def get_user_by_email(self, email: str) -> Optional[User]:
        query = "SELECT * FROM Users WHERE email = $1;"
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, email)
            return User(**record) if record else None

    async def get_users_by_ids(self, user_ids: List[str]) -> List[User]:
        if not user_ids:
            return []
        query = "SELECT * FROM Users WHERE id = ANY($1::text[]);"
        async with self._pool.acquire() as connection:
            records = await connection.fetch(query, list(user_ids))
            return [User(**record) for record in records]

    async def get_users_by_role(self, role: Role, order_by_name: bool = False) -> List[User]:
        order = "name ASC" if order_by_name else "created_at DESC"
        query = f"SELECT * FROM Users WHERE role = $1 ORDER BY {order};"
        async with self._pool.acquire() as connection:
            records = await connection.fetch(query, role.value)
            return [User(**record) for record in records]

    async def update_user_profile(self, user_id: str, name: str, email: str) -> Optional[User]:
        query = "UPDATE Users SET name = $2, email = $3 WHERE id = $1 RETURNING *;"
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, user_id, name, email)
            return User(**record) if record else None

    async def update_user_email(self, user_id: str, email: str) -> Optional[User]:
        query = "UPDATE Users SET email = $2 WHERE id = $1 RETURNING *;"
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, user_id, email)
            return User(**record) if record else None

    async def count_users_by_role(self) -> Dict[str, int]:
        query = "SELECT role, COUNT(*) AS count FROM Users GROUP BY role;"
        async with self._pool.acquire() as connection:
            records = await connection.fetch(query)
            return {record["role"]: record["count"] for record in records}

    async def count_users(self, since: Optional[datetime] = None) -> int:
        query = "SELECT COUNT(*) FROM Users WHERE ($1::timestamptz IS NULL OR created_at >= $1);"
        async with self._pool.acquire() as connection:
            return await connection.fetchval(query, since)

    async def delete_teacher(self, teacher_id: str) -> int:
        """
        Deletes a teacher in a single transaction: removes the actions on its
        students, unassigns the students and finally deletes the user.
        Returns the number of students that were assigned to the teacher.
        """
        async with self._pool.acquire() as connection:
            async with connection.transaction():
                student_ids = [
                    record["id"] for record in
                    await connection.fetch("SELECT id FROM Students WHERE teacher_id = $1;", teacher_id)
                ]
                if student_ids:
                    await connection.execute("DELETE FROM Actions WHERE student_id = ANY($1::text[]);", student_ids)
                    await connection.execute("UPDATE Students SET teacher_id = NULL WHERE teacher_id = $1;", teacher_id)
                await connection.execute("DELETE FROM Users WHERE id = $1;", teacher_id)
                return len(student_ids)

    # ===== Students =====

    async def add_student(self, student: Student):
        query = """
            INSERT INTO Students (id, name, class_name, parent_id, teacher_id, created_at)
            VALUES ($1, $2, $3, $4, $5, $6);
        """
        async with self._pool.acquire() as connection:
            await connection.execute(
                query, student.id, student.name, student.class_name,
                student.parent_id, student.teacher_id, student.created_at
            )

    async def get_student_by_id(self, student_id: str) -> Optional[Student]:
        query = "SELECT * FROM Students WHERE id = $1;"
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, student_id)
            return Student(**record) if record else None

    async def get_students(self, teacher_id: Optional[str] = None, parent_id: Optional[str] = None) -> List[Student]:
        """Students filtered by teacher and/or parent, newest first. No filter returns every student."""
        query = """
            SELECT * FROM Students
            WHERE ($1::text IS NULL OR teacher_id = $1)
              AND ($2::text IS NULL OR parent_id = $2)
            ORDER BY created_at DESC;
        """
        async with self._pool.acquire() as connection:
            records = await connection.fetch(query, teacher_id, parent_id)
            return [Student(**record) for record in records]

    async def get_students_by_teachers(self, teacher_ids: List[str]) -> List[Student]:
        if not teacher_ids:
            return []
        query = "SELECT * FROM Students WHERE teacher_id = ANY($1::text[]) ORDER BY created_at DESC;"
        async with self._pool.acquire() as connection:
            records = await connection.fetch(query, list(teacher_ids))
            return [Student(**record) for record in records]

    async def get_students_by_ids(self, student_ids: List[str]) -> List[Student]:
        if not student_ids:
            return []
        query = "SELECT * FROM Students WHERE id = ANY($1::text[]);"
        async with self._pool.acquire() as connection:
            records = await connection.fetch(query, list(student_ids))
            return [Student(**record) for record in records]

    async def update_student(self, student_id: str, name: str, class_name: str, parent_id: str) -> Optional[Student]:
        query = """
            UPDATE Students SET name = $2, class_name = $3, parent_id = $4
            WHERE id = $1 RETURNING *;
        """
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, student_id, name, class_name, parent_id)
            return Student(**record) if record else None

    async def delete_student(self, student_id: str):
        """Deletes the student's actions and then the student, atomically."""
        async with self._pool.acquire() as connection:
            async with connection.transaction():
                await connection.execute("DELETE FROM Actions WHERE student_id = $1;", student_id)
                await connection.execute("DELETE FROM Students WHERE id = $1;", student_id)

    async def assign_students(self, student_ids: List[str], teacher_id: str) -> int:
        query = "UPDATE Students SET teacher_id = $2 WHERE id = ANY($1::text[]);"
        async with self._pool.acquire() as connection:
            result = await connection.execute(query, list(student_ids), teacher_id)
            return int(result.split()[-1])

    async def unassign_students(self, student_ids: List[str], teacher_id: str) -> int:
        query = "UPDATE Students SET teacher_id = NULL WHERE id = ANY($1::text[]) AND teacher_id = $2;"
        async with self._pool.acquire() as connection:
            result = await connection.execute(query, list(student_ids), teacher_id)
            return int(result.split()[-1])

    async def count_students(self, since: Optional[datetime] = None) -> int:
        query = "SELECT COUNT(*) FROM Students WHERE ($1::timestamptz IS NULL OR created_at >= $1);"
        async with self._pool.acquire() as connection:
            return await connection.fetchval(query, since)

    async def get_class_distribution(self) -> List[Dict]:
        """Number of students per class, largest classes first."""
        query = """
            SELECT class_name, COUNT(*) AS count FROM Students
            GROUP BY class_name ORDER BY count DESC;
        """
        async with self._pool.acquire() as connection:
            records = await connection.fetch(query)
            return [{"class_name": record["class_name"], "count": record["count"]} for record in records]

    # ===== Actions =====

    async def add_action(self, action: Action):
        query = """
            INSERT INTO Actions (id, description, student_id, teacher_id, created_at)
            VALUES ($1, $2, $3, $4, $5);
        """
        async with self._pool.acquire() as connection:
            await connection.execute(
                query, action.id, action.description, action.student_id, action.teacher_id, action.created_at
            )

    async def get_actions(self, teacher_id: Optional[str] = None, student_id: Optional[str] = None) -> List[Action]:
        query = """
            SELECT * FROM Actions
            WHERE ($1::text IS NULL OR teacher_id = $1)
              AND ($2::text IS NULL OR student_id = $2)
            ORDER BY created_at DESC;
        """
        async with self._pool.acquire() as connection:
            records = await connection.fetch(query, teacher_id, student_id)
            return [Action(**record) for record in records]

    async def get_actions_for_students(self, student_ids: List[str], since: Optional[datetime] = None) -> List[Action]:
        """Every action on the given students, newest first."""
        if not student_ids:
            return []
        query = """
            SELECT * FROM Actions
            WHERE student_id = ANY($1::text[])
              AND ($2::timestamptz IS NULL OR created_at >= $2)
            ORDER BY created_at DESC;
        """
        async with self._pool.acquire() as connection:
            records = await connection.fetch(query, list(student_ids), since)
            return [Action(**record) for record in records]

    async def count_actions(self, since: Optional[datetime] = None) -> int:
        query = "SELECT COUNT(*) FROM Actions WHERE ($1::timestamptz IS NULL OR created_at >= $1);"
        async with self._pool.acquire() as connection:
            return await connection.fetchval(query, since)

    async def get_action_timestamps(self, since: datetime) -> List[datetime]:
        query = "SELECT created_at FROM Actions WHERE created_at >= $1;"
        async with self._pool.acquire() as connection:
            records = await connection.fetch(query, since)
            return [record["created_at"] for record in records]

    # ===== Complaints =====

    async def add_complaint(self, complaint: Complaint):
        query = """
            INSERT INTO Complaints (id, title, description, type, status, resolution,
                                    student_id, parent_id, teacher_id, created_at, updated_at, resolved_at)
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12);
        """
        async with self._pool.acquire() as connection:
            await connection.execute(
                query, complaint.id, complaint.title, complaint.description, complaint.type.value,
                complaint.status.value, complaint.resolution, complaint.student_id, complaint.parent_id,
                complaint.teacher_id, complaint.created_at, complaint.updated_at, complaint.resolved_at
            )

    async def get_complaint_by_id(self, complaint_id: str) -> Optional[Complaint]:
        query = "SELECT * FROM Complaints WHERE id = $1;"
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, complaint_id)
            return Complaint(**record) if record else None

    async def get_complaints(
        self,
        parent_id: Optional[str] = None,
        teacher_id: Optional[str] = None,
        student_id: Optional[str] = None,
        status: Optional[str] = None,
    ) -> List[Complaint]:
        """Complaints matching every given filter, newest first."""
        query = """
            SELECT * FROM Complaints
            WHERE ($1::text IS NULL OR parent_id = $1)
              AND ($2::text IS NULL OR teacher_id = $2)
              AND ($3::text IS NULL OR student_id = $3)
              AND ($4::text IS NULL OR status = $4)
            ORDER BY created_at DESC;
        """
        async with self._pool.acquire() as connection:
            records = await connection.fetch(query, parent_id, teacher_id, student_id, status)
            return [Complaint(**record) for record in records]

    async def update_complaint(self, complaint: Complaint):
        """Persists the mutable complaint fields."""
        query = """
            UPDATE Complaints
            SET status = $2, resolution = $3, teacher_id = $4, updated_at = $5, resolved_at = $6
            WHERE id = $1;
        """
        async with self._pool.acquire() as connection:
            await connection.execute(
                query, complaint.id, complaint.status.value, complaint.resolution,
                complaint.teacher_id, complaint.updated_at, complaint.resolved_at
            )

    async def count_complaints(self, status: Optional[str] = None, since: Optional[datetime] = None) -> int:
        query = """
            SELECT COUNT(*) FROM Complaints
            WHERE ($1::text IS NULL OR status = $1)
              AND ($2::timestamptz IS NULL OR created_at >= $2);
        """
        async with self._pool.acquire() as connection:
            return await connection.fetchval(query, status, since)
