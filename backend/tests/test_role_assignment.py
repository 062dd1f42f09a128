# backend/tests/test_role_assignment.py
import pytest
from pymongo.errors import PyMongoError

from app.core.exceptions import Forbidden, NotFound, ValidationError
from app.db.repositories import ClassRepository, StudentRepository, UserRepository
from app.services.auth_guard import AuthorizationGuard
from app.services.role_assignment import RoleAssignmentWorkflow

from conftest import ADMIN_EMAIL, OTHER_USER_EMAIL, TEACHER_EMAIL, USER_EMAIL


def build_workflow(db) -> RoleAssignmentWorkflow:
    users = UserRepository(db)
    return RoleAssignmentWorkflow(
        users=users,
        classes=ClassRepository(db),
        students=StudentRepository(db),
        guard=AuthorizationGuard(users),
    )


def teacher_payload(class_id: str, class_name: str = "Class 5") -> dict:
    return {
        "shift": "Morning",
        "subjects": [{
            "classId": class_id,
            "className": class_name,
            "subjects": ["Mathematics", "Science"],
            "roomNumber": "204",
            "classTime": "09:00-10:00",
        }],
        "assignedClasses": [{"classId": class_id, "className": class_name}],
        "classTime": "09:00",
    }


async def test_promote_to_teacher_stores_assignment(seeded_db, class_ids):
    workflow = build_workflow(seeded_db)

    user = await workflow.assign_role(OTHER_USER_EMAIL, "teacher", teacher_payload(class_ids["Class 5"]), ADMIN_EMAIL)

    assert user.role == "teacher"
    assert user.shift == "Morning"
    assert user.assigned_classes[0].class_name == "Class 5"
    stored = await seeded_db["users"].find_one({"email": OTHER_USER_EMAIL})
    assert stored["subjects"][0]["roomNumber"] == "204"


async def test_unknown_class_leaves_user_unmodified(seeded_db):
    workflow = build_workflow(seeded_db)
    before = await seeded_db["users"].find_one({"email": OTHER_USER_EMAIL})

    with pytest.raises(NotFound):
        await workflow.assign_role(OTHER_USER_EMAIL, "teacher", teacher_payload("64b7f0c2a1b2c3d4e5f60718"), ADMIN_EMAIL)

    assert await seeded_db["users"].find_one({"email": OTHER_USER_EMAIL}) == before


async def test_teacher_payload_is_validated(seeded_db, class_ids):
    workflow = build_workflow(seeded_db)
    payload = teacher_payload(class_ids["Class 5"])
    payload["shift"] = "Night"

    with pytest.raises(ValidationError) as exc_info:
        await workflow.assign_role(OTHER_USER_EMAIL, "teacher", payload, ADMIN_EMAIL)

    assert exc_info.value.field == "shift"


async def test_teacher_requires_at_least_one_assigned_class(seeded_db, class_ids):
    workflow = build_workflow(seeded_db)
    payload = {**teacher_payload(class_ids["Class 5"]), "assignedClasses": []}

    with pytest.raises(ValidationError) as exc_info:
        await workflow.assign_role(OTHER_USER_EMAIL, "teacher", payload, ADMIN_EMAIL)

    assert exc_info.value.field == "assignedClasses"


async def test_demotion_clears_teacher_fields(seeded_db, class_ids):
    workflow = build_workflow(seeded_db)
    await workflow.assign_role(OTHER_USER_EMAIL, "teacher", teacher_payload(class_ids["Class 5"]), ADMIN_EMAIL)

    user = await workflow.assign_role(OTHER_USER_EMAIL, "user", {}, ADMIN_EMAIL)

    assert user.role == "user"
    stored = await seeded_db["users"].find_one({"email": OTHER_USER_EMAIL})
    for field in ("shift", "subjects", "assignedClasses", "classTime"):
        assert field not in stored


async def test_invalid_role_is_rejected(seeded_db):
    workflow = build_workflow(seeded_db)

    with pytest.raises(ValidationError) as exc_info:
        await workflow.assign_role(OTHER_USER_EMAIL, "principal", {}, ADMIN_EMAIL)

    assert exc_info.value.field == "role"


async def test_only_admin_assigns_roles(seeded_db):
    workflow = build_workflow(seeded_db)

    with pytest.raises(Forbidden):
        await workflow.assign_role(OTHER_USER_EMAIL, "admin", {}, TEACHER_EMAIL)
    with pytest.raises(Forbidden):
        await workflow.assign_role(USER_EMAIL, "admin", {}, USER_EMAIL)


async def test_assign_role_to_unknown_user(seeded_db):
    workflow = build_workflow(seeded_db)

    with pytest.raises(NotFound):
        await workflow.assign_role("ghost@example.com", "admin", {}, ADMIN_EMAIL)


async def test_remove_class_assignment(seeded_db, class_ids):
    workflow = build_workflow(seeded_db)
    await workflow.assign_role(OTHER_USER_EMAIL, "teacher", teacher_payload(class_ids["Class 5"]), ADMIN_EMAIL)

    user = await workflow.remove_class_assignment(OTHER_USER_EMAIL, ADMIN_EMAIL)

    assert user.role == "user"
    assert user.assigned_classes is None
    assert user.enrolled_class_name is None


# --- Profile updates ---

async def test_user_edits_own_profile(seeded_db):
    workflow = build_workflow(seeded_db)

    user = await workflow.update_profile(USER_EMAIL, {"name": "Amina Khatun", "phone": "01799999999"}, USER_EMAIL)

    assert user.name == "Amina Khatun"
    assert user.role == "user"


async def test_user_cannot_edit_someone_else(seeded_db):
    workflow = build_workflow(seeded_db)

    with pytest.raises(Forbidden):
        await workflow.update_profile(OTHER_USER_EMAIL, {"name": "Hijacked"}, USER_EMAIL)

    stored = await seeded_db["users"].find_one({"email": OTHER_USER_EMAIL})
    assert stored["name"] == "Rahim"


async def test_profile_update_rejects_unknown_fields(seeded_db):
    workflow = build_workflow(seeded_db)

    with pytest.raises(ValidationError):
        await workflow.update_profile(USER_EMAIL, {"enrolledClassName": "Class 12"}, USER_EMAIL)


async def test_profile_update_follows_student_constraints(seeded_db):
    await StudentRepository(seeded_db).insert_if_absent({"email": USER_EMAIL, "name": "Amina K"})
    workflow = build_workflow(seeded_db)

    with pytest.raises(ValidationError) as exc_info:
        await workflow.update_profile(USER_EMAIL, {"name": "A"}, USER_EMAIL)
    assert exc_info.value.field == "name"

    with pytest.raises(ValidationError) as exc_info:
        await workflow.update_profile(USER_EMAIL, {"phone": "০১৭১২৩৪৫৬৭৮"}, USER_EMAIL)
    assert exc_info.value.field == "phone"

    student = await seeded_db["students"].find_one({"email": USER_EMAIL})
    assert student["name"] == "Amina K"
    assert "phone" not in student


async def test_profile_update_is_mirrored_to_student(seeded_db):
    await StudentRepository(seeded_db).insert_if_absent({"email": USER_EMAIL, "name": "Amina K"})
    workflow = build_workflow(seeded_db)

    await workflow.update_profile(USER_EMAIL, {"name": "Amina Khatun", "photoURL": "https://cdn.example.com/a.png"}, ADMIN_EMAIL)

    student = await StudentRepository(seeded_db).get_by_email(USER_EMAIL)
    assert student.name == "Amina Khatun"
    assert student.photo_url == "https://cdn.example.com/a.png"


async def test_failed_mirror_does_not_fail_profile_update(seeded_db, mocker, caplog):
    workflow = build_workflow(seeded_db)
    mocker.patch.object(workflow.students, "update_by_email", side_effect=PyMongoError("students unavailable"))

    user = await workflow.update_profile(USER_EMAIL, {"name": "Amina Khatun"}, USER_EMAIL)

    assert user.name == "Amina Khatun"
    assert "Could not mirror profile fields" in caplog.text
