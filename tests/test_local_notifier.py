import asyncio

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from sitenotify.schemas.notification import DeliveryMode, NotificationRecord, NotificationSource
from sitenotify.services.inbox import NotificationInbox
from sitenotify.services.local_notifier import LocalNotifier


class BrokenPresenter:
    async def present(self, record):
        raise RuntimeError("OS refused to show notification")


async def test_inbox_is_newest_first_and_capped(session_factory):
    inbox = NotificationInbox(session_factory, limit=3)
    for i in range(5):
        await inbox.add(NotificationRecord(title=f"n{i}"))

    records = await inbox.list()
    assert [r.title for r in records] == ["n4", "n3", "n2"]


async def test_read_tracking(inbox):
    first = await inbox.add(NotificationRecord(title="first"))
    await inbox.add(NotificationRecord(title="second"))
    assert await inbox.unread_count() == 2

    assert await inbox.mark_read(first.id) is True
    assert await inbox.mark_read(first.id) is False
    assert await inbox.unread_count() == 1
    assert [r.title for r in await inbox.list(unread_only=True)] == ["second"]
    assert (await inbox.get(first.id)).is_read is True

    assert await inbox.mark_all_read() == 1
    assert await inbox.unread_count() == 0


async def test_delete_and_clear(inbox):
    first = await inbox.add(NotificationRecord(title="first"))
    await inbox.add(NotificationRecord(title="second"))

    assert await inbox.delete(first.id) is True
    assert await inbox.delete(first.id) is False
    assert await inbox.get(first.id) is None
    assert await inbox.clear() == 1
    assert await inbox.list() == []


async def test_schedule_stores_and_presents(notifier, presenter, inbox):
    record = await notifier.schedule("Labor Added by S1", "Tower A: 8 workers", {"route": "notifications"})

    assert record.id is not None
    assert record.source == NotificationSource.LOCAL
    assert record.delivery_mode == DeliveryMode.LOCAL_FALLBACK
    assert presenter.presented == [record]
    assert (await inbox.list())[0].data == {"route": "notifications"}


async def test_schedule_blocks_dangerous_content(notifier, presenter, inbox):
    assert await notifier.schedule("<script>alert(1)</script>", "body") is None
    assert await notifier.schedule("", "") is None
    assert presenter.presented == []
    assert await inbox.list() == []


async def test_receive_sanitizes_data(notifier, presenter):
    record = await notifier.receive(
        "Staff Added by A1",
        "Tower A",
        {"type": "activity", "url": "/notifications", "clientId": "C1", "count": 3, "message": "  Cement delivered "},
    )

    assert record.source == NotificationSource.PUSH
    assert record.delivery_mode == DeliveryMode.REMOTE
    assert record.data == {"type": "activity", "url": "/notifications", "message": "Cement delivered"}
    assert presenter.presented == [record]


async def test_receive_drops_rejected_pushes(notifier, inbox):
    assert await notifier.receive("Hi", "onload=steal()", {}) is None
    assert await inbox.list() == []


async def test_navigation_target(notifier):
    assert notifier.navigation_target(NotificationRecord(title="t", data={"url": "/projects/42"})) == "/projects/42"
    assert notifier.navigation_target(NotificationRecord(title="t", data={"route": "notifications"})) == "notifications"
    assert notifier.navigation_target(NotificationRecord(title="t", data={"url": "https://evil.example.com"})) is None
    assert notifier.navigation_target(NotificationRecord(title="t")) is None


async def test_presenter_failure_does_not_lose_record(inbox):
    notifier = LocalNotifier(inbox, presenter=BrokenPresenter())

    record = await notifier.schedule("Title", "Body")

    assert record is not None
    assert len(await inbox.list()) == 1


async def test_presentation_is_delayed_on_scheduler(inbox, presenter):
    scheduler = AsyncIOScheduler()
    scheduler.start()
    try:
        notifier = LocalNotifier(inbox, presenter=presenter, scheduler=scheduler, delay_seconds=0.1)

        record = await notifier.schedule("Title", "Body")
        assert presenter.presented == []

        for _ in range(50):
            if presenter.presented:
                break
            await asyncio.sleep(0.05)
        assert [r.id for r in presenter.presented] == [record.id]
    finally:
        scheduler.shutdown(wait=False)
