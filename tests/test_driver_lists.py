from rydz import approvals, driver_lists, profiles, rydz_workflow
from rydz import models as m


def _lists(session, parent_id):
    return profiles.approved_drivers(session, parent_id), profiles.declined_driver_ids(session, parent_id)


def _second_student(session, make_user, parent_id, name="Sky Student"):
    student = make_user(name)
    session.add(m.ParentStudentLink(parent_id=parent_id, student_id=student.id))
    session.commit()
    return student.id


def test_approve_driver_for_students_by_email(session, people):
    result = driver_lists.approve_driver_for_students(
        session, people["parent"], "  DANA.DRIVER@example.com ", [people["student"]],
    )

    assert result.success, result.message
    assert result.data == {"driver_id": people["driver"], "student_ids": [people["student"]]}
    assert _lists(session, people["parent"]) == ({people["driver"]: [people["student"]]}, [])


def test_second_approval_replaces_student_set(session, people, make_user):
    sky = _second_student(session, make_user, people["parent"])

    driver_lists.approve_driver_for_students(session, people["parent"], "dana.driver@example.com", [people["student"], sky])
    driver_lists.approve_driver_for_students(session, people["parent"], "dana.driver@example.com", [sky])

    approved, _ = _lists(session, people["parent"])
    assert approved == {people["driver"]: [sky]}


def test_empty_selection_is_rejected_without_mutation(session, people):
    driver_lists.approve_driver_for_students(session, people["parent"], "dana.driver@example.com", [people["student"]])

    result = driver_lists.approve_driver_for_students(session, people["parent"], "dana.driver@example.com", [])

    assert not result.success
    assert result.kind == "ValidationError"
    assert _lists(session, people["parent"]) == ({people["driver"]: [people["student"]]}, [])


def test_approving_yourself_is_invalid(session, people):
    result = driver_lists.approve_driver_for_students(session, people["parent"], "pat.parent@example.com", [people["student"]])

    assert result.kind == "InvalidSelf"
    assert _lists(session, people["parent"]) == ({}, [])


def test_unknown_driver_email_is_not_found(session, people):
    result = driver_lists.approve_driver_for_students(session, people["parent"], "nobody@example.com", [people["student"]])

    assert result.kind == "NotFound"


def test_cannot_approve_for_someone_elses_student(session, people, make_user):
    stranger = make_user("Stella Stranger")

    result = driver_lists.approve_driver_for_students(session, people["parent"], "dana.driver@example.com", [stranger.id])

    assert result.kind == "Unauthorized"
    assert _lists(session, people["parent"]) == ({}, [])


def test_approval_takes_driver_off_declined_list(session, people):
    session.add(m.DeclinedDriver(parent_id=people["parent"], driver_id=people["driver"]))
    session.commit()

    driver_lists.approve_driver_for_students(session, people["parent"], "dana.driver@example.com", [people["student"]])

    assert _lists(session, people["parent"]) == ({people["driver"]: [people["student"]]}, [])


def test_remove_from_approved_does_not_decline(session, people):
    driver_lists.approve_driver_for_students(session, people["parent"], "dana.driver@example.com", [people["student"]])

    result = driver_lists.remove_from_list(session, people["parent"], people["driver"], "approved")

    assert result.success
    assert _lists(session, people["parent"]) == ({}, [])


def test_remove_from_declined(session, people):
    session.add(m.DeclinedDriver(parent_id=people["parent"], driver_id=people["driver"]))
    session.commit()

    result = driver_lists.remove_from_list(session, people["parent"], people["driver"], "declined")

    assert result.success
    assert _lists(session, people["parent"]) == ({}, [])


def test_remove_absent_driver_is_a_noop(session, people):
    result = driver_lists.remove_from_list(session, people["parent"], people["driver"], "declined")

    assert result.success
    assert "was not on" in result.message


def test_remove_rejects_unknown_list_and_non_parents(session, people):
    assert driver_lists.remove_from_list(session, people["parent"], people["driver"], "favourites").kind == "ValidationError"
    assert driver_lists.remove_from_list(session, people["student"], people["driver"], "approved").kind == "Unauthorized"


def test_update_driver_list_add(session, people, make_user):
    sky = _second_student(session, make_user, people["parent"])

    added = driver_lists.update_driver_list(session, people["parent"], people["driver"], "approved", "add")
    assert added.success
    assert _lists(session, people["parent"]) == ({people["driver"]: [people["student"], sky]}, [])

    declined = driver_lists.update_driver_list(session, people["parent"], people["driver"], "declined", "add")
    assert declined.success
    assert _lists(session, people["parent"]) == ({}, [people["driver"]])

    assert driver_lists.update_driver_list(session, people["parent"], people["parent"], "declined", "add").kind == "InvalidSelf"


def test_driver_never_on_both_lists(session, people, make_ryd):
    parent, student, driver = people["parent"], people["student"], people["driver"]

    def check():
        approved, declined = _lists(session, parent)
        assert not (set(approved) & set(declined))

    ryd = make_ryd(driver)
    rydz_workflow.request_to_join(session, ryd, student, student)
    approvals.decide_driver_approval(session, parent, student, driver, ryd, "reject")
    check()

    driver_lists.update_driver_list(session, parent, driver, "approved", "add")
    check()

    driver_lists.remove_from_list(session, parent, driver, "approved")
    driver_lists.update_driver_list(session, parent, driver, "declined", "add")
    check()

    ryd2 = make_ryd(driver, event_name="Semifinal")
    driver_lists.remove_from_list(session, parent, driver, "declined")
    rydz_workflow.request_to_join(session, ryd2, student, student)
    approvals.decide_driver_approval(session, parent, student, driver, ryd2, "approve_permanently")
    check()
    assert _lists(session, parent) == ({driver: [student]}, [])

    driver_lists.approve_driver_for_students(session, parent, "dana.driver@example.com", [student])
    driver_lists.update_driver_list(session, parent, driver, "declined", "add")
    check()
    assert _lists(session, parent) == ({}, [driver])


def test_find_driver_by_email_reports_current_approvals(session, people):
    driver_lists.approve_driver_for_students(session, people["parent"], "dana.driver@example.com", [people["student"]])

    result = driver_lists.find_driver_by_email(session, people["parent"], "Dana.Driver@example.com")

    assert result.success
    assert result.data.driver.uid == people["driver"]
    assert result.data.approved_student_ids == [people["student"]]
