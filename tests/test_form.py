"""Tests for the create/edit form controller."""

from beadboard.core.bead import BeadType
from beadboard.core.form import FormField, FormState, TextBuffer
from beadboard.core.mutations import CreateBeadCommand, UpdateBeadCommand
from tests.conftest import make_bead as bead


def type_text(form, text):
    for ch in text:
        form.handle_key(ch, ch)


class TestTextBuffer:
    def test_insert_and_cursor(self):
        buf = TextBuffer("helo")
        buf.left()
        buf.insert("l")
        assert buf.text == "hello"
        assert buf.cursor == 4

    def test_single_line_flattens_newlines(self):
        buf = TextBuffer()
        buf.insert("one\ntwo")
        assert buf.text == "one two"
        buf.newline()
        assert "\n" not in buf.text

    def test_multiline_newline(self):
        buf = TextBuffer("ab", multiline=True)
        buf.newline()
        buf.insert("cd")
        assert buf.text == "ab\ncd"

    def test_backspace_and_delete(self):
        buf = TextBuffer("abc")
        buf.backspace()
        assert buf.text == "ab"
        buf.home()
        buf.delete()
        assert buf.text == "b"
        buf.home()
        buf.backspace()
        assert buf.text == "b"

    def test_home_end_work_on_current_line(self):
        buf = TextBuffer("first\nsecond", multiline=True)
        buf.home()
        assert buf.cursor == len("first\n")
        buf.left()
        buf.home()
        assert buf.cursor == 0
        buf.end()
        assert buf.cursor == len("first")

    def test_word_motion(self):
        buf = TextBuffer("fix the crash")
        buf.word_left()
        assert buf.cursor == len("fix the ")
        buf.word_left()
        assert buf.cursor == len("fix ")
        buf.word_right()
        assert buf.cursor == len("fix the")

    def test_kill_commands(self):
        buf = TextBuffer("fix the crash")
        buf.delete_word_back()
        assert buf.text == "fix the "
        buf.home()
        buf.word_right()
        buf.delete_to_line_end()
        assert buf.text == "fix"
        buf.delete_to_line_start()
        assert buf.text == ""


class TestFormKeys:
    def test_typing_into_title(self):
        form = FormState()
        type_text(form, "Hello")
        assert form.title == "Hello"

    def test_tab_order(self):
        form = FormState()
        order = []
        for _ in range(5):
            order.append(form.field)
            form.next_field()
        assert order == [
            FormField.TITLE,
            FormField.TYPE,
            FormField.PRIORITY,
            FormField.DESCRIPTION,
            FormField.LABELS,
        ]
        assert form.field == FormField.TITLE
        form.prev_field()
        assert form.field == FormField.LABELS

    def test_enter_per_field(self):
        form = FormState()
        form.handle_key("enter")
        assert form.field == FormField.TYPE

        form.field_index = 3
        type_text(form, "a")
        form.handle_key("enter")
        type_text(form, "b")
        assert form.description == "a\nb"

        form.field_index = 4
        type_text(form, "x")
        form.handle_key("enter")
        assert form.buffers[FormField.LABELS].text == "x"
        assert form.field == FormField.LABELS

    def test_type_cycles(self):
        form = FormState()
        form.field_index = 1
        form.handle_key("right")
        assert form.bead_type == BeadType.BUG
        form.handle_key("left")
        form.handle_key("left")
        assert form.bead_type == list(BeadType)[-1]

    def test_priority_adjusts_and_clamps(self):
        form = FormState()
        form.field_index = 2
        form.handle_key("right")
        assert form.priority == 3
        for _ in range(5):
            form.handle_key("right")
        assert form.priority == 4
        form.handle_key("0", "0")
        assert form.priority == 0
        form.handle_key("left")
        assert form.priority == 0
        form.handle_key("9", "9")
        assert form.priority == 0

    def test_ctrl_w_in_title(self):
        form = FormState()
        type_text(form, "Fix bug")
        form.handle_key("ctrl+w")
        assert form.title == "Fix "

    def test_paste_into_labels_joins_lines(self):
        form = FormState()
        form.field_index = 4
        form.paste("ui\nbackend\n")
        assert form.labels == ["ui", "backend"]

    def test_paste_into_description_keeps_newlines(self):
        form = FormState()
        form.field_index = 3
        form.paste("line one\nline two")
        assert form.description == "line one\nline two"


class TestPayload:
    def test_create_payload(self):
        form = FormState()
        type_text(form, "  New thing  ")
        form.field_index = 4
        type_text(form, "a, b, a, ,c")
        payload = form.payload()
        assert isinstance(payload, CreateBeadCommand)
        assert payload.title == "New thing"
        assert payload.labels == ("a", "b", "c")
        assert payload.priority == 2
        assert payload.bead_type == BeadType.TASK

    def test_can_submit_requires_title(self):
        form = FormState()
        assert not form.can_submit()
        type_text(form, "   ")
        assert not form.can_submit()
        type_text(form, "x")
        assert form.can_submit()

    def test_edit_prefills(self):
        original = bead("bd-1", title="Old", description="Body", labels=frozenset({"b", "a"}))
        form = FormState(editing=original)
        assert form.editing_id == "bd-1"
        assert form.title == "Old"
        assert form.description == "Body"
        assert form.buffers[FormField.LABELS].text == "a, b"

    def test_edit_payload_contains_only_changes(self):
        original = bead("bd-1", title="Old", priority=2, labels=frozenset({"a", "b"}))
        form = FormState(editing=original)
        form.handle_key("backspace")
        form.handle_key("backspace")
        form.handle_key("backspace")
        type_text(form, "New")
        form.field_index = 2
        form.handle_key("1", "1")
        form.field_index = 4
        form.buffers[FormField.LABELS] = TextBuffer("b, c")
        payload = form.payload()
        assert isinstance(payload, UpdateBeadCommand)
        assert payload.title == "New"
        assert payload.priority == 1
        assert payload.description is None
        assert payload.bead_type is None
        assert payload.add_labels == ("c",)
        assert payload.remove_labels == ("a",)

    def test_unchanged_edit_is_empty(self):
        form = FormState(editing=bead("bd-1", title="Same"))
        assert form.payload().is_empty
