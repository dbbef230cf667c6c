from __future__ import annotations

from typing import Optional

from sqlalchemy.orm import Session

from orilla.models.project import ProjectMember


class ProjectMemberRepository:
    def __init__(self, db: Session):
        self.db = db

    def find_by_project_and_user(self, project_id: str, user_id: str) -> Optional[ProjectMember]:
        return (
            self.db.query(ProjectMember)
            .filter(
                ProjectMember.project_id == str(project_id),
                ProjectMember.user_id == str(user_id),
            )
            .first()
        )

    def find_by_project_id(self, project_id: str) -> list[ProjectMember]:
        return (
            self.db.query(ProjectMember)
            .filter(ProjectMember.project_id == str(project_id))
            .order_by(ProjectMember.created_at.asc(), ProjectMember.id.asc())
            .all()
        )

    def project_ids_for_user(self, user_id: str) -> set[str]:
        rows = (
            self.db.query(ProjectMember.project_id)
            .filter(ProjectMember.user_id == str(user_id))
            .all()
        )
        return {r[0] for r in rows}
