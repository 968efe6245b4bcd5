"""
InteractionController tests: drag, resize, cancel, and pointer filtering.
"""

import pytest

from overlay_canvas.canvas.coordinates import Viewport
from overlay_canvas.canvas.interaction import HitTarget, InteractionController, InteractionState
from overlay_canvas.canvas.state_model import CanvasStateModel
from overlay_canvas.models.canvas_models import Corner, Transform
from overlay_canvas.models.composition_models import ComposeOptions
from overlay_canvas.services.composition_engine import resolve_overlay_box

# Display pixels == image pixels
IDENTITY = Viewport(display_width=1000, display_height=800, image_width=1000, image_height=800)
# Display at half size
HALF = Viewport(display_width=500, display_height=400, image_width=1000, image_height=800)


@pytest.fixture
def model():
    model = CanvasStateModel()
    model.add_element("base_image", Transform(width=1000, height=800), element_id="base",
                      natural_width=1000, natural_height=800)
    model.add_element("logo", Transform(x=100, y=100, width=200, height=120), element_id="logo",
                      natural_width=500, natural_height=300)
    return model


@pytest.fixture
def controller(model):
    return InteractionController(model, min_scale=0.1)


def test_drag_moves_by_pointer_delta(model, controller):
    assert controller.pointer_down((150, 150), IDENTITY)
    assert controller.state == InteractionState.DRAGGING

    controller.pointer_move((200, 170))
    t = model.get("logo").transform
    assert (t.x, t.y) == pytest.approx((150, 120))
    assert (t.width, t.height, t.scale) == (200, 120, 1)

    controller.pointer_up()
    assert controller.state == InteractionState.IDLE
    assert controller.session is None
    assert model.get("logo").transform.x == pytest.approx(150)


def test_drag_delta_is_mapped_through_viewport(model, controller):
    # (75, 75) on a half-size display is image (150, 150), inside the logo
    controller.pointer_down((75, 75), HALF)
    controller.pointer_move((85, 65))
    t = model.get("logo").transform
    assert (t.x, t.y) == pytest.approx((120, 80))


def test_cancel_restores_start_transform(model, controller):
    start = model.get("logo").transform
    controller.pointer_down((150, 150), IDENTITY)
    controller.pointer_move((600, 500))
    controller.cancel()
    assert controller.state == InteractionState.IDLE
    assert model.get("logo").transform == start


def test_pointer_cancel_keeps_last_transform(model, controller):
    controller.pointer_down((150, 150), IDENTITY)
    controller.pointer_move((160, 150))
    controller.pointer_cancel()
    assert controller.state == InteractionState.IDLE
    assert model.get("logo").transform.x == pytest.approx(110)


def test_move_without_session_is_ignored(model, controller):
    version = model.snapshot.version
    assert controller.pointer_move((500, 500)) is None
    assert model.snapshot.version == version


def test_pointer_down_on_empty_space_deselects(model, controller):
    controller.selected_id = "logo"
    assert not controller.pointer_down((900, 700), IDENTITY)
    assert controller.selected_id is None
    assert controller.state == InteractionState.IDLE


def test_only_primary_pointer_drives_session(model, controller):
    assert not controller.pointer_down((150, 150), IDENTITY, pointer_id=2, is_primary=False)

    controller.pointer_down((150, 150), IDENTITY, pointer_id=1)
    assert controller.pointer_move((400, 400), pointer_id=7) is None
    controller.pointer_up(pointer_id=7)
    assert controller.state == InteractionState.DRAGGING

    # A second pointer-down can't start another gesture
    assert not controller.pointer_down((150, 150), IDENTITY, pointer_id=1)
    controller.pointer_up(pointer_id=1)
    assert controller.state == InteractionState.IDLE


def test_resize_from_br_anchor_doubles_scale(model, controller):
    # Grab the top-left handle, so the bottom-right corner is the anchor
    target = HitTarget(element_id="logo", handle=Corner.TL)
    controller.pointer_down((100, 100), IDENTITY, target=target)
    assert controller.state == InteractionState.RESIZING
    assert controller.session.anchor_corner == Corner.BR

    controller.pointer_move((-100, -20))
    t = model.get("logo").transform
    assert t.scale == pytest.approx(2)
    assert (t.width, t.height) == pytest.approx((400, 240))
    assert t.corner(Corner.BR) == pytest.approx((300, 220))

    controller.pointer_up()
    assert controller.state == InteractionState.IDLE


def test_resize_through_zoomed_viewport(model, controller):
    # Grab BR at (300, 220) image = (150, 110) display on the half-size viewport
    controller.pointer_down((150, 110), HALF, target=HitTarget(element_id="logo", handle=Corner.BR))
    controller.pointer_move((200, 140))
    t = model.get("logo").transform
    assert t.scale == pytest.approx(1.5)
    assert t.height / t.width == pytest.approx(300 / 500, abs=1e-3)
    assert (t.x, t.y) == pytest.approx((100, 100))


def test_resize_never_goes_below_min_scale(model, controller):
    controller.pointer_down((300, 220), IDENTITY, target=HitTarget(element_id="logo", handle=Corner.BR))
    controller.pointer_move((-500, -500))
    t = model.get("logo").transform
    assert t.scale == pytest.approx(0.1)
    assert t.width > 0 and t.height > 0
    assert t.corner(Corner.TL) == pytest.approx((100, 100))


def test_text_resize_changes_width_only(model, controller):
    model.add_element("text", Transform(x=400, y=400, width=150, height=40), element_id="txt", text="Sale")
    controller.pointer_down((550, 440), IDENTITY, target=HitTarget(element_id="txt", handle=Corner.BR))
    controller.pointer_move((600, 500))
    t = model.get("txt").transform
    assert (t.x, t.y, t.width, t.height, t.scale) == pytest.approx((400, 400, 200, 40, 1))

    controller.pointer_move((0, 440))
    assert model.get("txt").transform.width == pytest.approx(1)


def test_hit_test_prefers_selected_handles_then_topmost(model, controller):
    model.add_element("logo", Transform(x=150, y=150, width=100, height=60), element_id="top",
                      natural_width=100, natural_height=60)
    assert controller.hit_test((160, 160), IDENTITY) == HitTarget(element_id="top")
    assert controller.hit_test((120, 120), IDENTITY) == HitTarget(element_id="logo")

    controller.selected_id = "logo"
    assert controller.hit_test((301, 219), IDENTITY) == HitTarget(element_id="logo", handle=Corner.BR)

    model.set_visibility("top", False)
    assert controller.hit_test((160, 160), IDENTITY) == HitTarget(element_id="logo")


def test_base_image_is_not_draggable(model, controller):
    assert controller.hit_test((900, 700), IDENTITY) is None
    assert not controller.pointer_down((900, 700), IDENTITY, target=HitTarget(element_id="base"))


def test_transitions_emit_events(model, controller):
    events = []
    controller.subscribe(events.append)
    controller.pointer_down((150, 150), IDENTITY)
    controller.pointer_move((160, 150))
    controller.pointer_up()

    assert [e.state for e in events] == [
        InteractionState.DRAGGING,
        InteractionState.DRAGGING,
        InteractionState.IDLE,
    ]
    assert events[-1].transform.x == pytest.approx(110)
    assert events[-1].version == model.snapshot.version


def test_locked_resize_restores_natural_ratio_and_matches_render(model, controller):
    # A square box for a 5:3 logo, as a client could send it
    model.add_element("logo", Transform(x=0, y=0, width=200, height=200), element_id="square",
                      natural_width=500, natural_height=300)
    controller.pointer_down((200, 200), IDENTITY, target=HitTarget(element_id="square", handle=Corner.BR))
    controller.pointer_move((400, 400))

    t = model.get("square").transform
    assert t.scale == pytest.approx(2)
    assert t.height / t.width == pytest.approx(300 / 500, abs=1e-3)
    assert (t.x, t.y, t.width, t.height) == resolve_overlay_box(t.x, t.y, 500, 300, 1000, 800, scale=t.scale)


@pytest.mark.parametrize("scale_step", [(-60, -36), (50, 30), (150, 90)])
def test_resized_box_always_equals_rendered_box(model, controller, scale_step):
    controller.pointer_down((300, 220), IDENTITY, target=HitTarget(element_id="logo", handle=Corner.BR))
    controller.pointer_move((300 + scale_step[0], 220 + scale_step[1]))
    t = model.get("logo").transform
    _, _, width, height = resolve_overlay_box(t.x, t.y, 500, 300, 1000, 800, scale=t.scale)
    assert (t.width, t.height) == (width, height)


def test_locked_resize_stops_at_natural_size(model, controller):
    model.add_element("logo", Transform(x=0, y=0, width=100, height=60), element_id="small",
                      natural_width=100, natural_height=60)
    controller.pointer_down((100, 60), IDENTITY, target=HitTarget(element_id="small", handle=Corner.BR))
    controller.pointer_move((400, 240))
    t = model.get("small").transform
    assert (t.width, t.height) == (100, 60)


def test_upscale_option_reaches_resize(model):
    controller = InteractionController(model, options=ComposeOptions(allow_upscale=True))
    model.add_element("logo", Transform(x=0, y=0, width=100, height=60), element_id="small",
                      natural_width=100, natural_height=60)
    controller.pointer_down((100, 60), IDENTITY, target=HitTarget(element_id="small", handle=Corner.BR))
    controller.pointer_move((200, 120))
    t = model.get("small").transform
    # 0.2 * 1000 * 2
    assert (t.width, t.height) == (400, 240)


def test_locked_size_without_base_image():
    model = CanvasStateModel()
    controller = InteractionController(model)
    assert controller.locked_size(500, 300, 0.5) == (250, 150)


def test_set_transform_conforms_logo_box(model, controller):
    written = controller.set_transform("logo", Transform(x=10, y=20, width=999, height=1, scale=1.5))
    assert (written.x, written.y, written.width, written.height) == (10, 20, 300, 180)
    assert model.get("logo").transform == written

    model.add_element("text", Transform(width=50, height=20), element_id="txt", text="Hi")
    free = Transform(x=1, y=2, width=321, height=45)
    assert controller.set_transform("txt", free) == free


def test_legacy_text_can_be_dragged(model, controller):
    model.set_legacy_text(transform=Transform(x=600, y=600, width=200, height=50), text="Legacy", visible=True)
    assert controller.hit_test((650, 620), IDENTITY) == HitTarget(element_id="legacy-text")

    assert controller.pointer_down((650, 620), IDENTITY)
    controller.pointer_move((600, 500))
    controller.pointer_up()
    t = model.snapshot.legacy_text.transform
    assert (t.x, t.y) == pytest.approx((550, 480))


def test_hidden_legacy_text_is_not_hit(model, controller):
    model.set_legacy_text(transform=Transform(x=600, y=600, width=200, height=50), text="Legacy", visible=False)
    assert controller.hit_test((650, 620), IDENTITY) is None
