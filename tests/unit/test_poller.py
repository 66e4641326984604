import pytest

from imagestudio.core.exceptions import PollTimeoutError, ProviderError, TransportError
from imagestudio.modules.imagery.schemas import EnhancementStatusResponse, TaskStatus
from imagestudio.workflow.poller import StatusPoller
from imagestudio.workflow.tasks import EnhancementTask, TaskState

PENDING = EnhancementStatusResponse(status=TaskStatus.PENDING)


def success(image="https://cdn.test/out.jpg"):
    return EnhancementStatusResponse(status=TaskStatus.SUCCESS, image=image)


def error(message):
    return EnhancementStatusResponse(status=TaskStatus.ERROR, message=message)


class ScriptedStatus:
    """Returns the scripted answers in order, repeating the last one."""

    def __init__(self, *answers):
        self.answers = list(answers)
        self.calls = []

    async def __call__(self, task_id):
        self.calls.append(task_id)
        answer = self.answers.pop(0) if len(self.answers) > 1 else self.answers[0]
        if isinstance(answer, Exception):
            raise answer
        return answer


class FakeClock:
    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self):
        return self.now

    async def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


def make_poller(fetch, clock=None, **kwargs):
    clock = clock or FakeClock()
    return StatusPoller(fetch, sleep=clock.sleep, clock=clock, **kwargs)


def make_task():
    return EnhancementTask(task_id="t-1", slot_id="slot-1")


@pytest.mark.asyncio
async def test_pending_three_times_then_success():
    fetch = ScriptedStatus(PENDING, PENDING, PENDING, success())
    clock = FakeClock()
    poller = make_poller(fetch, clock=clock, interval=2.0, step=10)
    task = make_task()
    seen = []

    image = await poller.poll(task, on_progress=lambda t: seen.append(t.progress))

    assert image == "https://cdn.test/out.jpg"
    assert seen == [10, 20, 30, 100]
    assert seen == sorted(seen)
    assert all(p < 100 for p in seen[:-1])
    assert task.state == TaskState.SUCCEEDED
    assert clock.sleeps == [2.0, 2.0, 2.0]
    assert fetch.calls == ["t-1"] * 4


@pytest.mark.asyncio
async def test_progress_is_capped_below_100_while_pending():
    fetch = ScriptedStatus(*([PENDING] * 12), success())
    poller = make_poller(fetch, step=10)
    seen = []

    await poller.poll(make_task(), on_progress=lambda t: seen.append(t.progress))

    assert max(seen[:-1]) == 99
    assert seen[-1] == 100


@pytest.mark.asyncio
async def test_error_status_surfaces_provider_message():
    fetch = ScriptedStatus(PENDING, error("X"))
    poller = make_poller(fetch)
    task = make_task()

    with pytest.raises(ProviderError) as exc_info:
        await poller.poll(task)

    assert exc_info.value.message == "X"
    assert task.state == TaskState.FAILED
    assert task.progress == 100


@pytest.mark.asyncio
async def test_error_status_without_message():
    poller = make_poller(ScriptedStatus(error(None)))

    with pytest.raises(ProviderError) as exc_info:
        await poller.poll(make_task())

    assert exc_info.value.message == "Enhancement failed"


@pytest.mark.asyncio
async def test_success_without_image_is_failure():
    poller = make_poller(ScriptedStatus(success(image=None)))

    with pytest.raises(ProviderError):
        await poller.poll(make_task())


@pytest.mark.asyncio
async def test_transport_error_abandons_task():
    fetch = ScriptedStatus(PENDING, TransportError("HTTP error! status: 500", http_status=500))
    poller = make_poller(fetch)
    task = make_task()

    with pytest.raises(TransportError):
        await poller.poll(task)

    assert task.state == TaskState.FAILED
    assert len(fetch.calls) == 2


@pytest.mark.asyncio
async def test_attempt_bound_raises_timeout():
    fetch = ScriptedStatus(PENDING)
    poller = make_poller(fetch, max_attempts=3, timeout=None)

    with pytest.raises(PollTimeoutError) as exc_info:
        await poller.poll(make_task())

    assert exc_info.value.attempts == 3
    assert exc_info.value.code == 504
    assert len(fetch.calls) == 3


@pytest.mark.asyncio
async def test_time_bound_raises_timeout():
    fetch = ScriptedStatus(PENDING)
    poller = make_poller(fetch, interval=2.0, max_attempts=None, timeout=5.0)

    with pytest.raises(PollTimeoutError):
        await poller.poll(make_task())

    # checks at t=0, 2, 4 run; t=6 exceeds the bound
    assert len(fetch.calls) == 3
