from datetime import date, timedelta

from fastapi import status

from app.core.config import settings
from app.core.dates import format_display_date
from app.models.schedule import InterviewType, ScheduleBooking, ScheduleStatus


def _book_payload(slot, start, end, **extra):
    payload = {
        "scheduleId": slot.id,
        "startTime": start,
        "endTime": end,
        "interviewType": "online",
        "companyName": "Acme Corp",
    }
    payload.update(extra)
    return payload


def test_public_view_merges_slots_and_lists_companies(client, job_seeker, make_slot, company, interview_day):
    """Back-to-back slots are shown as one window; past and non-available slots are hidden."""
    make_slot("09:00", "10:00")
    make_slot("10:00", "11:00")
    make_slot("13:00", "14:00", InterviewType.onsite)
    make_slot("15:00", "16:00", status=ScheduleStatus.booked)
    make_slot("09:00", "10:00", day=date.today() - timedelta(days=1))

    response = client.get(f"/api/public/schedule/{job_seeker.schedule_token}")

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["jobSeeker"]["name"] == "Taro Yamada"
    assert data["jobSeeker"]["onlineBlockMinutes"] == settings.schedule_block.online_block_minutes
    assert data["jobSeeker"]["onsiteBlockMinutes"] == settings.schedule_block.onsite_block_minutes
    windows = [(s["date"], s["startTime"], s["endTime"], s["interviewType"]) for s in data["schedules"]]
    assert windows == [
        (interview_day.isoformat(), "09:00", "11:00", "online"),
        (interview_day.isoformat(), "13:00", "14:00", "onsite"),
    ]
    assert data["companies"] == [{"id": company.id, "name": "Acme Corp"}]


def test_public_view_uses_job_seeker_buffer_override(client, db_session, job_seeker):
    job_seeker.online_block_minutes = 0
    db_session.commit()

    data = client.get(f"/api/public/schedule/{job_seeker.schedule_token}").json()

    assert data["jobSeeker"]["onlineBlockMinutes"] == 0


def test_unknown_token_is_404(client):
    """An unknown scheduling URL is reported as an invalid token."""
    response = client.get("/api/public/schedule/does-not-exist")
    assert response.status_code == status.HTTP_404_NOT_FOUND
    body = response.json()
    assert body["success"] is False
    assert body["error"] == "INVALID_TOKEN"
    assert body["message"]


def test_book_unknown_token_is_404(client, make_slot):
    slot = make_slot("09:00", "10:00")
    response = client.post("/api/public/schedule/does-not-exist/book", json=_book_payload(slot, "09:00", "10:00"))
    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json()["error"] == "INVALID_TOKEN"


def test_book_confirms_and_notifies(client, job_seeker, make_slot, notifier, interview_day, staff_user):
    slot = make_slot("09:00", "10:00")

    response = client.post(
        f"/api/public/schedule/{job_seeker.schedule_token}/book",
        json=_book_payload(slot, "09:15", "09:45"),
    )

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["success"] is True
    booking = data["booking"]
    assert booking["candidateName"] == "Taro Yamada"
    assert booking["companyName"] == "Acme Corp"
    assert booking["date"] == format_display_date(interview_day)
    assert (booking["startTime"], booking["endTime"]) == ("09:15", "09:45")
    assert booking["interviewType"] == "online"
    assert booking["confirmedAt"]
    assert data["newSchedules"] == [
        {"startTime": "09:00", "endTime": "09:15"},
        {"startTime": "09:45", "endTime": "10:00"},
    ]

    assert len(notifier.sent) == 1
    sent = notifier.sent[0]
    assert sent.candidate_name == "Taro Yamada"
    assert sent.user_email == staff_user.email
    assert sent.slack_user_id == "U123"
    assert (sent.start_time, sent.end_time) == ("09:15", "09:45")


def test_book_with_company_id(client, db_session, job_seeker, make_slot, company):
    slot = make_slot("09:00", "10:00")

    response = client.post(
        f"/api/public/schedule/{job_seeker.schedule_token}/book",
        json=_book_payload(slot, "09:00", "10:00", companyName=None, companyId=company.id),
    )

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["booking"]["companyName"] == "Acme Corp"
    assert db_session.query(ScheduleBooking).one().company_id == company.id


def test_book_missing_fields_is_invalid_request(client, job_seeker, notifier):
    response = client.post(f"/api/public/schedule/{job_seeker.schedule_token}/book", json={})

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["error"] == "INVALID_REQUEST"
    assert notifier.sent == []


def test_malformed_body_is_invalid_request(client, job_seeker):
    response = client.post(
        f"/api/public/schedule/{job_seeker.schedule_token}/book",
        content="not json",
        headers={"Content-Type": "application/json"},
    )
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["error"] == "INVALID_REQUEST"


def test_book_gap_is_invalid_time_range(client, job_seeker, make_slot):
    first = make_slot("09:00", "09:20")
    make_slot("09:25", "09:40")

    response = client.post(
        f"/api/public/schedule/{job_seeker.schedule_token}/book",
        json=_book_payload(first, "09:00", "09:30"),
    )

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["error"] == "INVALID_TIME_RANGE"


def test_booking_rate_limit(client, job_seeker):
    """The sixth booking attempt within a minute is refused."""
    url = f"/api/public/schedule/{job_seeker.schedule_token}/book"
    headers = {"X-Forwarded-For": "198.51.100.7"}
    for _ in range(5):
        assert client.post(url, json={}, headers=headers).status_code == status.HTTP_400_BAD_REQUEST

    response = client.post(url, json={}, headers=headers)

    assert response.status_code == status.HTTP_429_TOO_MANY_REQUESTS
    assert int(response.headers["Retry-After"]) > 0
    assert response.headers["X-RateLimit-Remaining"] == "0"
    body = response.json()
    assert body["error"] == "RATE_LIMITED"
    assert body["retryAfter"] > 0

    # Other clients are counted separately
    other = client.post(url, json={}, headers={"X-Forwarded-For": "198.51.100.8"})
    assert other.status_code == status.HTTP_400_BAD_REQUEST


def test_schedule_view_rate_limit_is_separate(client, job_seeker):
    headers = {"X-Forwarded-For": "198.51.100.9"}
    for _ in range(5):
        client.post(f"/api/public/schedule/{job_seeker.schedule_token}/book", json={}, headers=headers)

    response = client.get(f"/api/public/schedule/{job_seeker.schedule_token}", headers=headers)
    assert response.status_code == status.HTTP_200_OK
