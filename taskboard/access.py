"""Project membership checks."""

from sqlmodel import Session, or_, select

from taskboard.models import Project, ProjectMember


def user_can_access_project(session: Session, user_id: str, project_id: int) -> bool:
    """True when *user_id* owns or is a member of the project."""
    project = session.get(Project, project_id)
    if project is None:
        return False
    if project.owner_id == user_id:
        return True
    return session.get(ProjectMember, (project_id, user_id)) is not None


def accessible_project_ids(session: Session, user_id: str) -> list[int]:
    statement = (
        select(Project.id)
        .outerjoin(ProjectMember, ProjectMember.project_id == Project.id)
        .where(or_(Project.owner_id == user_id, ProjectMember.user_id == user_id))
        .distinct()
    )
    return list(session.exec(statement).all())
