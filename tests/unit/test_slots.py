import pytest
from PIL import Image
from pydantic import ValidationError

from imagestudio.core.exceptions import InputError
from imagestudio.workflow.slots import (
    ImageSlot,
    PreviewRegistry,
    SelectedFile,
    SlotStore,
    Transform,
    load_slots,
)


@pytest.mark.asyncio
async def test_load_slots_keeps_selection_order(png_factory):
    files = [
        SelectedFile(name="wide.png", data=png_factory(300, 100)),
        SelectedFile(name="tall.png", data=png_factory(20, 90)),
        SelectedFile(name="square.png", data=png_factory(50, 50)),
    ]
    previews = PreviewRegistry()

    slots = await load_slots(files, previews)

    assert [s.name for s in slots] == ["wide.png", "tall.png", "square.png"]
    assert [(s.width, s.height) for s in slots] == [(300, 100), (20, 90), (50, 50)]
    assert all(s.included and s.result is None for s in slots)
    assert len({s.slot_id for s in slots}) == 3
    assert previews.active == 3
    assert previews.resolve(slots[1].preview) == files[1].data


@pytest.mark.asyncio
async def test_load_slots_rejects_undecodable_file(png_factory):
    files = [
        SelectedFile(name="ok.png", data=png_factory()),
        SelectedFile(name="notes.txt", data=b"not an image"),
    ]
    previews = PreviewRegistry()

    with pytest.raises(InputError) as exc_info:
        await load_slots(files, previews)

    assert "notes.txt" in exc_info.value.message
    assert previews.active == 0


@pytest.mark.asyncio
async def test_load_slots_rejects_empty_file():
    with pytest.raises(InputError):
        await load_slots([SelectedFile(name="empty.png", data=b"")], PreviewRegistry())


@pytest.mark.asyncio
async def test_replace_releases_previous_previews(png_factory):
    store = SlotStore()
    first = await load_slots([SelectedFile(name="a.png", data=png_factory())], store.previews)
    store.replace(first)

    second = await load_slots([SelectedFile(name="b.png", data=png_factory())], store.previews)
    store.replace(second)

    assert store.previews.active == 1
    assert store.previews.resolve(first[0].preview) is None

    store.clear()
    assert store.previews.active == 0
    assert len(store) == 0


def make_slot(slot_id, **kwargs):
    return ImageSlot(slot_id=slot_id, name=f"{slot_id}.png", source=b"x", width=4, height=3, **kwargs)


def test_update_swaps_whole_collection():
    store = SlotStore()
    store.replace([make_slot("a"), make_slot("b")])
    before = store.slots

    updated = store.update("b", result="data:image/png;base64,AAAA")

    assert updated.result == "data:image/png;base64,AAAA"
    assert store.slots is not before
    assert before[1].result is None
    assert store.get("a") is before[0]
    assert store.index_of("b") == 1


def test_update_missing_slot_returns_none():
    store = SlotStore()
    store.replace([make_slot("a")])
    before = store.slots

    assert store.update("gone", result="x") is None
    assert store.slots is before


def test_toggle_included():
    store = SlotStore()
    store.replace([make_slot("a")])

    assert store.toggle_included("a").included is False
    assert store.toggle_included("a").included is True
    assert store.toggle_included("missing") is None


def test_slots_are_immutable():
    slot = make_slot("a")
    with pytest.raises(ValidationError):
        slot.width = 10


def test_transform_defaults_and_bounds():
    transform = Transform()
    assert (transform.scale, transform.x, transform.y) == (1.0, 0.0, 0.0)
    assert transform.percent == 100

    with pytest.raises(ValidationError):
        Transform(scale=6.0)

    assert transform.scaled(100).scale == 5.0
    assert transform.scaled(0).scale == 0.1
    assert transform.translated(-3, 4).translated(1, 1) == Transform(x=-2, y=5)


@pytest.mark.asyncio
async def test_load_slots_rejects_decompression_bomb(monkeypatch, png_factory):
    monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 100)
    previews = PreviewRegistry()

    with pytest.raises(InputError):
        await load_slots([SelectedFile(name="huge.png", data=png_factory(64, 48))], previews)

    assert previews.active == 0
