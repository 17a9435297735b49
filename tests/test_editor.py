import numpy as np
import pytest

from conftest import make_source
from localrembg.editor import MaskEditor, StrokeAction, StrokeCommand, disc_mask
from localrembg.errors import SurfaceBusy, UnknownArtifact
from localrembg.pipeline import BatchMattingPipeline
from localrembg.surface import decode_rgba


@pytest.fixture
def artifact(surface, handles, ready_model):
    pipeline = BatchMattingPipeline(surface, handles)
    result = pipeline.process_batch([make_source("dog.png", width=30, height=20, seed=4)], ready_model)
    return result.artifacts[0]


@pytest.fixture
def editor(surface, handles):
    return MaskEditor(surface, handles)


def distances(width, height, cx, cy):
    ys, xs = np.mgrid[:height, :width]
    return np.sqrt((xs - cx) ** 2 + (ys - cy) ** 2)


def test_disc_mask_includes_boundary():
    disc = disc_mask(5, 5, 2, 2, 2)

    assert disc[2, 0] and disc[0, 2] and disc[4, 2]
    assert not disc[0, 0]
    assert disc.sum() == 13


class TestApplyStroke:
    def test_erase_only_touches_the_disc(self, editor, artifact):
        before = decode_rgba(artifact.png)

        editor.apply_stroke(artifact, StrokeAction.ERASE, 8, 6, 4.5)

        after = decode_rgba(artifact.png)
        inside = distances(30, 20, 8, 6) <= 4.5
        assert np.array_equal(after[~inside], before[~inside])
        assert np.all(after[inside][:, 3] == 0)

    def test_restore_paints_opaque_neutral_fill(self, editor, artifact):
        before = decode_rgba(artifact.png)

        editor.apply_stroke(artifact, "restore", 22, 10, 3)

        after = decode_rgba(artifact.png)
        inside = distances(30, 20, 22, 10) <= 3
        assert np.all(after[inside] == [255, 255, 255, 255])
        assert np.array_equal(after[~inside], before[~inside])

    def test_custom_restore_fill(self, surface, handles, artifact):
        editor = MaskEditor(surface, handles, restore_fill=(128, 128, 128))

        editor.apply_stroke(artifact, StrokeAction.RESTORE, 0, 0, 1)

        assert decode_rgba(artifact.png)[0, 0].tolist() == [128, 128, 128, 255]

    def test_strokes_accumulate(self, editor, artifact):
        editor.apply_stroke(artifact, StrokeAction.ERASE, 5, 5, 2)
        editor.apply_stroke(artifact, StrokeAction.ERASE, 20, 15, 2)

        after = decode_rgba(artifact.png)
        assert after[5, 5, 3] == 0
        assert after[15, 20, 3] == 0

    def test_restore_after_erase_uses_fill_not_source(self, editor, artifact):
        source = decode_rgba(artifact.png)[5, 5].copy()

        editor.apply_stroke(artifact, StrokeAction.ERASE, 5, 5, 2)
        editor.apply_stroke(artifact, StrokeAction.RESTORE, 5, 5, 2)

        restored = decode_rgba(artifact.png)[5, 5]
        assert restored.tolist() == [255, 255, 255, 255]
        assert restored.tolist() != source.tolist()

    def test_dimensions_are_preserved(self, editor, artifact):
        editor.apply_stroke(artifact, StrokeAction.ERASE, 100, 100, 500)

        assert decode_rgba(artifact.png).shape == (20, 30, 4)
        assert artifact.size == (30, 20)

    def test_one_live_handle_after_many_strokes(self, editor, handles, artifact):
        previous = [artifact.handle]

        for step in range(6):
            editor.apply_stroke(artifact, StrokeAction.ERASE, step * 4, step * 3, 2)
            previous.append(artifact.handle)

        assert handles.live_count == 1
        assert handles.is_live(artifact.handle)
        assert not any(handles.is_live(handle) for handle in previous[:-1])
        assert artifact.handle.data == artifact.png

    def test_stale_handle_leaves_no_orphan(self, editor, handles, artifact):
        png = artifact.png
        handles.release(artifact.handle)

        with pytest.raises(ValueError):
            editor.apply_stroke(artifact, StrokeAction.ERASE, 3, 3, 2)

        assert handles.live_count == 0
        assert artifact.png == png

    def test_rejects_negative_radius(self, editor, artifact):
        with pytest.raises(ValueError):
            editor.apply_stroke(artifact, StrokeAction.ERASE, 1, 1, -1)

    def test_rejects_unknown_action(self, editor, artifact):
        with pytest.raises(ValueError):
            editor.apply_stroke(artifact, "smudge", 1, 1, 1)

    def test_busy_surface_rejects_stroke(self, surface, editor, handles, artifact):
        handle = artifact.handle

        with surface.session("batch"):
            with pytest.raises(SurfaceBusy):
                editor.apply_stroke(artifact, StrokeAction.ERASE, 1, 1, 1)

        assert artifact.handle is handle
        assert handles.is_live(handle)


class TestDispatch:
    def test_routes_command_by_artifact_id(self, editor, artifact):
        command = StrokeCommand(artifact_id=artifact.id, action=StrokeAction.ERASE, x=3, y=3, radius=1)

        assert editor.dispatch(command, [artifact]) is artifact
        assert decode_rgba(artifact.png)[3, 3, 3] == 0

    def test_unknown_artifact(self, editor, artifact):
        command = StrokeCommand(artifact_id="missing", action=StrokeAction.ERASE, x=3, y=3)

        with pytest.raises(UnknownArtifact):
            editor.dispatch(command, [artifact])
