import pytest

from sitenotify.schemas.activity import ActivityEvent, ActivityType, Actor
from sitenotify.schemas.identity import UserType
from sitenotify.schemas.notification import DeliveryMode
from sitenotify.services.dispatcher import (
    DEFAULT_TITLE,
    TITLE_TEMPLATES,
    NotificationDispatcher,
    build_body,
    build_title,
    clean_project_name,
)
from sitenotify.services.recipients import RecipientResolver


def event(activity_type="material_imported", actor_id="S1", role=UserType.STAFF, **kwargs):
    return ActivityEvent(
        activity_type=activity_type,
        client_id=kwargs.pop("client_id", "C1"),
        actor=Actor(user_id=actor_id, full_name=actor_id, role=role),
        **kwargs,
    )


def make_dispatcher(api, notifier, **kwargs):
    return NotificationDispatcher(RecipientResolver(api), api, notifier, **kwargs)


class ExplodingResolver:
    async def resolve_recipients(self, *args, **kwargs):
        raise RuntimeError("unexpected bug")


def test_every_activity_type_has_a_title():
    assert set(TITLE_TEMPLATES) == set(ActivityType)


def test_titles():
    assert build_title(ActivityType.MATERIAL_IMPORTED, "S1") == "Materials Imported by S1"
    assert build_title(ActivityType.MINI_SECTION_DELETED, "Ana") == "Mini-Section Deleted by Ana"
    assert build_title("something_new", "Ana") == DEFAULT_TITLE.format(name="Ana")
    assert build_title(None, "Ana") == "Activity Update by Ana"


def test_legacy_activity_names_are_accepted():
    assert event("material_added").activity_type == ActivityType.MATERIAL_IMPORTED
    assert event("usage_added").activity_type == ActivityType.MATERIAL_USED


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("tower a", "Tower A"),
        ("tmp riverside block", "Riverside Block"),
        ("Harbor Test", "Harbor"),
        ("test", "test"),
        ("x tmp", "x tmp"),
    ],
)
def test_clean_project_name(raw, expected):
    assert clean_project_name(raw) == expected


def test_body_prefers_message_and_prefixes_project():
    assert build_body(event(details="20 bags of cement", project_name="tower a")) == "Tower A: 20 bags of cement"
    assert build_body(event(details="ignored", message="Custom text")) == "Custom text"
    assert build_body(event(details="")) == ""


async def test_staff_activity_notifies_admins(api, notifier, backend_state, inbox):
    dispatcher = make_dispatcher(api, notifier)

    result = await dispatcher.send_activity_notification(
        event(project_id="P1", project_name="Tower A", details="20 bags of cement")
    )

    assert result.sent == 2
    assert result.failed == 0
    assert result.used_fallback is False
    assert [r.user_id for r in result.recipients] == ["A1", "A2"]

    payload = backend_state.sends[0]
    assert payload["title"] == "Materials Imported by S1"
    assert payload["body"] == "Tower A: 20 bags of cement"
    assert [r["userId"] for r in payload["recipients"]] == ["A1", "A2"]
    assert payload["data"]["activityType"] == "material_imported"
    assert payload["data"]["clientId"] == "C1"
    assert payload["data"]["projectId"] == "P1"
    assert payload["data"]["route"] == "notifications"
    assert isinstance(payload["timestamp"], int)
    assert await inbox.list() == []


async def test_unreachable_backend_falls_back_locally(offline_api, notifier, presenter, inbox):
    dispatcher = make_dispatcher(offline_api, notifier)

    result = await dispatcher.send_activity_notification(event(details="20 bags"))

    assert (result.sent, result.failed, result.used_fallback) == (0, 0, True)
    [record] = await inbox.list()
    assert record.title == "Materials Imported by S1"
    assert record.body == "20 bags"
    assert record.delivery_mode == DeliveryMode.LOCAL_FALLBACK
    assert presenter.presented[0].title == "Materials Imported by S1"


async def test_send_rejection_falls_back(api, notifier, backend_state):
    backend_state.send_status = 502
    result = await make_dispatcher(api, notifier).send_activity_notification(event())

    assert result.used_fallback is True
    assert result.sent == 0
    assert [r.user_id for r in result.recipients] == ["A1", "A2"]
    assert result.record is not None


async def test_zero_sent_is_a_soft_failure(api, notifier, backend_state):
    backend_state.sent_override = 0
    result = await make_dispatcher(api, notifier).send_activity_notification(event())

    assert result.used_fallback is True
    assert result.sent == 0
    assert result.failed == 2
    assert result.reason == "zero sent"


async def test_no_recipients_is_a_noop_by_default(api, notifier, backend_state, inbox):
    result = await make_dispatcher(api, notifier, local_fallback_on_empty=False).send_activity_notification(
        event(client_id="C404")
    )

    assert (result.sent, result.failed, result.used_fallback) == (0, 0, False)
    assert backend_state.sends == []
    assert await inbox.list() == []


async def test_no_recipients_can_notify_self(api, notifier, inbox):
    dispatcher = make_dispatcher(api, notifier, local_fallback_on_empty=False)

    result = await dispatcher.send_activity_notification(event(client_id="C404"), notify_self_when_empty=True)

    assert result.used_fallback is True
    assert len(await inbox.list()) == 1


async def test_unexpected_errors_never_escape(api, notifier, inbox):
    dispatcher = NotificationDispatcher(ExplodingResolver(), api, notifier)

    result = await dispatcher.send_activity_notification(event())

    assert result.used_fallback is True
    assert result.reason.startswith("error:")
    assert len(await inbox.list()) == 1


async def test_dangerous_details_are_scrubbed_from_data(api, notifier, backend_state):
    result = await make_dispatcher(api, notifier).send_activity_notification(
        event(project_id="javascript:alert(1)")
    )

    assert result.used_fallback is False
    assert backend_state.sends[0]["data"]["projectId"] == "alert(1)"
