"""
CanvasStateModel tests: snapshots, permissions, and content predicates.
"""

import pytest
from pydantic import ValidationError

from overlay_canvas.canvas.state_model import LEGACY_TEXT_ID, CanvasStateModel
from overlay_canvas.errors import ElementNotFound, PermissionDenied
from overlay_canvas.models.canvas_models import AspectRatio, ElementKind, Transform


def _logo(model: CanvasStateModel, x: float = 0, y: float = 0) -> str:
    return model.add_element(
        ElementKind.LOGO,
        Transform(x=x, y=y, width=200, height=120),
        url="https://assets.test/logos/acme.png",
        natural_width=500,
        natural_height=300,
    )


def test_add_element_assigns_unique_ids_and_paint_order():
    model = CanvasStateModel()
    a = _logo(model)
    b = _logo(model)
    t = model.add_element("text", Transform(width=100, height=40), text="Sale")

    assert len({a, b, t}) == 3
    z = [model.get(i).z_order for i in (a, b, t)]
    assert z == sorted(z) and len(set(z)) == 3
    assert [e.id for e in model.snapshot.overlays] == [a, b, t]


def test_duplicate_id_rejected():
    model = CanvasStateModel()
    model.add_element("logo", Transform(width=1, height=1), element_id="x", natural_width=1, natural_height=1)
    with pytest.raises(ValueError):
        model.add_element("logo", Transform(width=1, height=1), element_id="x", natural_width=1, natural_height=1)


def test_base_image_stays_first_and_unique():
    model = CanvasStateModel()
    logo = _logo(model)
    base = model.add_element("base_image", Transform(width=1000, height=800),
                             natural_width=1000, natural_height=800, url="https://assets.test/base.png")
    assert model.snapshot.elements[0].id == base
    assert model.snapshot.base_image.id == base
    assert [e.id for e in model.snapshot.overlays] == [logo]
    with pytest.raises(ValueError):
        model.add_element("base_image", Transform(width=1, height=1), natural_width=1, natural_height=1)


def test_mutations_produce_new_snapshots():
    model = CanvasStateModel()
    logo = _logo(model)
    before = model.snapshot

    model.update_transform(logo, Transform(x=50, y=60, width=400, height=240, scale=2))

    assert before.get(logo).transform.x == 0
    assert model.snapshot.get(logo).transform.scale == 2
    assert model.snapshot.version == before.version + 1
    with pytest.raises(ValidationError):
        before.get(logo).transform.x = 10


def test_transform_extents_must_be_positive():
    with pytest.raises(ValidationError):
        Transform(width=0, height=10)
    with pytest.raises(ValidationError):
        Transform(width=10, height=10, scale=-1)


def test_unknown_element_raises():
    model = CanvasStateModel()
    with pytest.raises(ElementNotFound):
        model.remove_element("nope")
    with pytest.raises(KeyError):
        model.set_visibility("nope", False)


def test_aspect_ratio_requires_advanced_mode():
    model = CanvasStateModel()
    before = model.snapshot

    with pytest.raises(PermissionDenied):
        model.set_aspect_ratio("1:1")
    assert model.snapshot.aspect_ratio == AspectRatio.STANDARD
    assert model.snapshot is before

    model.set_advanced_mode(True)
    model.set_aspect_ratio("1:1")
    assert model.snapshot.aspect_ratio == AspectRatio.SQUARE


def test_invalid_aspect_ratio_value():
    model = CanvasStateModel()
    model.set_advanced_mode(True)
    with pytest.raises(ValueError):
        model.set_aspect_ratio("2:1")


def test_empty_canvas_predicate():
    model = CanvasStateModel()
    assert model.is_empty()

    model.set_legacy_text(text="Hello", visible=False)
    assert model.is_empty()

    model.set_visibility(LEGACY_TEXT_ID, True)
    assert not model.is_empty()
    assert model.element_count() == 1

    model.clear_legacy_text()
    assert model.is_empty()

    # Any entry in the text overlay list counts, visible or not
    text_id = model.add_element("text", Transform(width=100, height=40), text="Hi", visible=False)
    assert not model.is_empty()
    model.remove_element(text_id)
    assert model.is_empty()

    _logo(model)
    assert not model.is_empty()
    assert model.has_exportable_content()


def test_update_text_validates_fields():
    model = CanvasStateModel()
    text_id = model.add_element("text", Transform(width=100, height=40), text="Hi")
    model.update_text(text_id, text="Bye", color="#00FF0080")
    assert model.get(text_id).text == "Bye"

    with pytest.raises(ValueError):
        model.update_text(text_id, color="green")
    with pytest.raises(ValueError):
        model.update_text(text_id, rotation=45)
    with pytest.raises(ValueError):
        model.update_text(_logo(model), text="x")


def test_reorder_moves_paint_order():
    model = CanvasStateModel()
    a, b, c = _logo(model), _logo(model), _logo(model)
    model.reorder(0, 2)
    assert [e.id for e in model.snapshot.overlays] == [b, c, a]
    d = _logo(model)
    assert model.snapshot.overlays[-1].id == d


def test_subscribers_receive_each_snapshot():
    model = CanvasStateModel()
    seen = []
    unsubscribe = model.subscribe(seen.append)
    logo = _logo(model)
    model.set_visibility(logo, False)
    unsubscribe()
    model.remove_element(logo)

    assert [s.version for s in seen] == [1, 2]
    assert seen[-1].get(logo).visible is False


def test_restore_rolls_back_but_keeps_version_increasing():
    model = CanvasStateModel()
    logo = _logo(model)
    saved = model.snapshot
    model.remove_element(logo)
    model.restore(saved)
    assert model.snapshot.get(logo) is not None
    assert model.snapshot.version > saved.version


def test_legacy_text_is_addressable_by_id():
    model = CanvasStateModel()
    model.set_legacy_text(text="Old", visible=True)
    assert model.get(LEGACY_TEXT_ID).text == "Old"

    model.update_text(LEGACY_TEXT_ID, text="New", is_bold=True)
    assert model.snapshot.legacy_text.text == "New"
    assert model.snapshot.legacy_text.is_bold

    assert [layer.id for layer in model.snapshot.layers] == [LEGACY_TEXT_ID]
    _logo(model)
    assert model.snapshot.layers[-1].id == LEGACY_TEXT_ID

    model.remove_element(LEGACY_TEXT_ID)
    assert model.snapshot.legacy_text is None
    with pytest.raises(ElementNotFound):
        model.remove_element(LEGACY_TEXT_ID)
