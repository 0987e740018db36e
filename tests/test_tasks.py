from datetime import datetime

from conftest import auth, run
from aceops.services.task_service import expand_schedule
from utils.time_utils import ist_date_key, ist_midnight_utc


def _days(schedule, start, end):
    return [ist_date_key(d) for d in expand_schedule(schedule, ist_midnight_utc(start), ist_midnight_utc(end))]


def test_daily_weekly_and_alternate_expansion():
    assert _days("Daily", "2026-03-01", "2026-03-03") == ["2026-03-01", "2026-03-02", "2026-03-03"]
    assert _days("Weekly", "2026-03-01", "2026-03-20") == ["2026-03-01", "2026-03-08", "2026-03-15"]
    assert _days("AlternateDays", "2026-03-01", "2026-03-06") == ["2026-03-01", "2026-03-03", "2026-03-05"]


def test_monthly_clamps_day_and_stops_at_year_end():
    assert _days("Monthly", "2026-10-31", "2027-03-01") == ["2026-10-31", "2026-11-30", "2026-12-31"]


def test_non_recurring_schedules_do_not_expand():
    assert _days("None", "2026-03-01", "2026-03-03") == []
    assert _days("SelectedDates", "2026-03-01", "2026-03-03") == []
    assert expand_schedule("Daily", None, ist_midnight_utc("2026-03-03")) == []


def test_expanded_dates_are_ist_midnights():
    first = expand_schedule("Daily", ist_midnight_utc("2026-03-01"), ist_midnight_utc("2026-03-01"))[0]
    assert first == datetime(2026, 2, 28, 18, 30)


def _task(**overrides):
    task = {"ticketName": "Follow up artwork", "toBeClosedBy": "2026-07-15"}
    task.update(overrides)
    return task


def test_create_and_skip_duplicates(client, admin, db):
    response = client.post("/api/admin/tasks", json=[_task(), _task(ticketName="Send samples")], headers=auth(admin))
    assert response.status_code == 201
    tasks = response.json()["tasks"]
    assert len(tasks) == 2
    assert tasks[0]["taskRef"].startswith("#")
    assert len(tasks[0]["taskRef"]) == 9
    assert tasks[0]["assignedTo"] == str(admin["_id"])
    assert tasks[0]["toBeClosedBy"].startswith("2026-07-14T18:30")

    response = client.post("/api/admin/tasks", json=_task(), headers=auth(admin))
    assert response.json()["tasks"] == []
    assert run(db.tasks.count_documents({})) == 2


def test_recurring_task_expands_selected_dates(client, admin):
    response = client.post("/api/admin/tasks", json=_task(
        schedule="Daily", fromDate="2026-07-01", toDate="2026-07-03", selectedDates=["2026-08-01"],
    ), headers=auth(admin))
    task = response.json()["tasks"][0]
    assert len(task["selectedDates"]) == 3


def test_selected_dates_are_normalised(client, admin):
    response = client.post("/api/admin/tasks", json=_task(
        schedule="SelectedDates", selectedDates=["2026-07-10", "2026-07-05", "2026-07-10"],
    ), headers=auth(admin))
    dates = response.json()["tasks"][0]["selectedDates"]
    assert [d[:10] for d in dates] == ["2026-07-04", "2026-07-09"]


def test_task_validation(client, admin):
    response = client.post("/api/admin/tasks", json=_task(assignedTo="b" * 24), headers=auth(admin))
    assert response.status_code == 404
    assert response.json()["message"] == "Assigned user not found"

    response = client.post("/api/admin/tasks", json=_task(toBeClosedBy="someday"), headers=auth(admin))
    assert response.status_code == 400

    response = client.post("/api/admin/tasks", json=_task(opportunityId="c" * 24), headers=auth(admin))
    assert response.json()["message"] == "Opportunity not found"


def test_opportunity_code_and_picker(client, admin, db):
    open_opp = {"opportunityCode": "OPP-7", "opportunityName": "Diwali hampers", "opportunityStatus": "Open",
                "createdAt": datetime(2026, 6, 1)}
    closed_opp = {"opportunityCode": "OPP-3", "opportunityName": "Old order", "opportunityStatus": "Won",
                  "createdAt": datetime(2026, 5, 1)}
    run(db.opportunities.insert_many([open_opp, closed_opp]))

    picker = client.get("/api/admin/tasks/opportunities", headers=auth(admin)).json()
    assert [o["opportunityCode"] for o in picker] == ["OPP-7"]

    response = client.post("/api/admin/tasks", json=_task(opportunityId=str(open_opp["_id"])), headers=auth(admin))
    assert response.json()["tasks"][0]["opportunityCode"] == "OPP-7 - Diwali hampers"

    tasks = client.get("/api/admin/tasks", params={"searchTerm": "diwali"}, headers=auth(admin)).json()
    assert tasks[0]["opportunityId"]["opportunityName"] == "Diwali hampers"


def test_visibility_and_search(client, admin, super_admin, make_user):
    other = make_user("Other Admin", role="ADMIN")
    client.post("/api/admin/tasks", json=_task(), headers=auth(admin))
    client.post("/api/admin/tasks", json=_task(ticketName="Assigned to admin", assignedTo=str(admin["_id"])), headers=auth(other))
    client.post("/api/admin/tasks", json=_task(ticketName="Private"), headers=auth(other))

    def names(user, **params):
        return sorted(t["ticketName"] for t in client.get("/api/admin/tasks", params=params, headers=auth(user)).json())

    assert names(admin) == ["Assigned to admin", "Follow up artwork"]
    assert names(admin, searchTerm="private") == []
    assert names(super_admin) == ["Assigned to admin", "Follow up artwork", "Private"]


def test_calendar_marks_overdue(client, admin):
    client.post("/api/admin/tasks", json=[
        _task(ticketName="Late", toBeClosedBy="2020-01-01"),
        _task(ticketName="Finished", toBeClosedBy="2020-01-02", completedOn="Done"),
    ], headers=auth(admin))

    events = {e["extendedProps"]["task"]["ticketName"]: e for e in
              client.get("/api/admin/tasks/calendar", headers=auth(admin)).json()}
    assert events["Late"]["date"] == "2020-01-01"
    assert events["Late"]["backgroundColor"] == "red"
    assert events["Finished"]["borderColor"] is None


def test_update_rebuilds_series_and_logs(client, admin):
    task = client.post("/api/admin/tasks", json=_task(), headers=auth(admin)).json()["tasks"][0]

    response = client.put(f"/api/admin/tasks/{task['_id']}", json={
        "schedule": "Weekly", "fromDate": "2026-07-01", "toDate": "2026-07-15", "completedOn": "Done",
    }, headers=auth(admin))
    updated = response.json()["task"]
    assert len(updated["selectedDates"]) == 3
    assert updated["completedOn"] == "Done"
    assert {entry["field"] for entry in updated["logs"] if entry["action"] == "update"} >= {"schedule", "completedOn"}

    response = client.put(f"/api/admin/tasks/{task['_id']}", json={"schedule": "None"}, headers=auth(admin))
    assert response.json()["task"]["selectedDates"] == []


def test_only_creator_or_assignee_may_edit(client, admin, make_user):
    other = make_user("Other Admin", role="ADMIN")
    task = client.post("/api/admin/tasks", json=_task(), headers=auth(admin)).json()["tasks"][0]
    response = client.put(f"/api/admin/tasks/{task['_id']}", json={"ticketName": "Hijack"}, headers=auth(other))
    assert response.status_code == 403


def test_delete_removes_the_series(client, admin, db):
    client.post("/api/admin/tasks", json=_task(ticketName="Standup", fromDate="2026-07-01", toDate="2026-07-03",
                                               schedule="Daily", toBeClosedBy="2026-07-01"), headers=auth(admin))
    client.post("/api/admin/tasks", json=_task(ticketName="Standup", fromDate="2026-07-01", toDate="2026-07-03",
                                               schedule="Daily", toBeClosedBy="2026-07-02"), headers=auth(admin))
    client.post("/api/admin/tasks", json=_task(ticketName="Standup", toBeClosedBy="2026-08-01"), headers=auth(admin))

    first = run(db.tasks.find_one({"toBeClosedBy": ist_midnight_utc("2026-07-01")}))
    response = client.delete(f"/api/admin/tasks/{first['_id']}", headers=auth(admin))
    assert response.json() == {"message": "Deleted 2 task(s)"}
    assert run(db.tasks.count_documents({})) == 1
