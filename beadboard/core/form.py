"""State for the create/edit bead form."""

from enum import Enum
from typing import Optional, Union

from beadboard.core.bead import Bead, BeadType
from beadboard.core.mutations import CreateBeadCommand, UpdateBeadCommand

MAX_PRIORITY = 4
BEAD_TYPES = list(BeadType)


class TextBuffer:
    """Editable text with a cursor (an offset into ``text``)."""

    def __init__(self, text: str = "", multiline: bool = False):
        self.text = text
        self.cursor = len(text)
        self.multiline = multiline

    def __repr__(self) -> str:
        return f"TextBuffer({self.text!r}, cursor={self.cursor})"

    def _line_start(self) -> int:
        return self.text.rfind("\n", 0, self.cursor) + 1

    def _line_end(self) -> int:
        end = self.text.find("\n", self.cursor)
        return len(self.text) if end == -1 else end

    def insert(self, chars: str) -> None:
        if not self.multiline:
            chars = " ".join(line.rstrip() for line in chars.splitlines()) if "\n" in chars else chars
        self.text = self.text[: self.cursor] + chars + self.text[self.cursor:]
        self.cursor += len(chars)

    def newline(self) -> None:
        if self.multiline:
            self.insert("\n")

    def backspace(self) -> None:
        if self.cursor > 0:
            self.text = self.text[: self.cursor - 1] + self.text[self.cursor:]
            self.cursor -= 1

    def delete(self) -> None:
        self.text = self.text[: self.cursor] + self.text[self.cursor + 1:]

    def left(self) -> None:
        self.cursor = max(0, self.cursor - 1)

    def right(self) -> None:
        self.cursor = min(len(self.text), self.cursor + 1)

    def home(self) -> None:
        self.cursor = self._line_start()

    def end(self) -> None:
        self.cursor = self._line_end()

    def _word_start(self) -> int:
        pos = self.cursor
        while pos > 0 and self.text[pos - 1].isspace():
            pos -= 1
        while pos > 0 and not self.text[pos - 1].isspace():
            pos -= 1
        return pos

    def _word_end(self) -> int:
        pos = self.cursor
        size = len(self.text)
        while pos < size and self.text[pos].isspace():
            pos += 1
        while pos < size and not self.text[pos].isspace():
            pos += 1
        return pos

    def word_left(self) -> None:
        self.cursor = self._word_start()

    def word_right(self) -> None:
        self.cursor = self._word_end()

    def delete_word_back(self) -> None:
        start = self._word_start()
        self.text = self.text[:start] + self.text[self.cursor:]
        self.cursor = start

    def delete_to_line_start(self) -> None:
        start = self._line_start()
        self.text = self.text[:start] + self.text[self.cursor:]
        self.cursor = start

    def delete_to_line_end(self) -> None:
        self.text = self.text[: self.cursor] + self.text[self._line_end():]


class FormField(str, Enum):
    TITLE = "title"
    TYPE = "type"
    PRIORITY = "priority"
    DESCRIPTION = "description"
    LABELS = "labels"


FIELD_ORDER = [
    FormField.TITLE,
    FormField.TYPE,
    FormField.PRIORITY,
    FormField.DESCRIPTION,
    FormField.LABELS,
]

TEXT_FIELDS = (FormField.TITLE, FormField.DESCRIPTION, FormField.LABELS)

# Editing keys shared by every text field, keyed by Textual key names.
_EDIT_KEYS = {
    "backspace": TextBuffer.backspace,
    "delete": TextBuffer.delete,
    "left": TextBuffer.left,
    "right": TextBuffer.right,
    "home": TextBuffer.home,
    "end": TextBuffer.end,
    "ctrl+a": TextBuffer.home,
    "ctrl+e": TextBuffer.end,
    "ctrl+left": TextBuffer.word_left,
    "ctrl+right": TextBuffer.word_right,
    "alt+b": TextBuffer.word_left,
    "alt+f": TextBuffer.word_right,
    "ctrl+w": TextBuffer.delete_word_back,
    "ctrl+backspace": TextBuffer.delete_word_back,
    "ctrl+u": TextBuffer.delete_to_line_start,
    "ctrl+k": TextBuffer.delete_to_line_end,
}


class FormState:
    """Fields, focus and buffers of the open create/edit form.

    ``editing`` holds the bead being edited; it is None when creating.
    """

    def __init__(self, editing: Optional[Bead] = None):
        self.editing = editing
        self.field_index = 0
        self.error: Optional[str] = None
        self.submitting: Optional[int] = None  # ticket seq while a submit is in flight
        self.buffers = {
            FormField.TITLE: TextBuffer(),
            FormField.DESCRIPTION: TextBuffer(multiline=True),
            FormField.LABELS: TextBuffer(),
        }
        self.bead_type = BeadType.TASK
        self.priority = 2
        if editing is not None:
            self.buffers[FormField.TITLE] = TextBuffer(editing.title)
            self.buffers[FormField.DESCRIPTION] = TextBuffer(editing.description, multiline=True)
            self.buffers[FormField.LABELS] = TextBuffer(", ".join(sorted(editing.labels)))
            self.bead_type = editing.bead_type
            self.priority = editing.priority

    @property
    def editing_id(self) -> Optional[str]:
        return self.editing.id if self.editing is not None else None

    @property
    def field(self) -> FormField:
        return FIELD_ORDER[self.field_index]

    @property
    def title(self) -> str:
        return self.buffers[FormField.TITLE].text

    @property
    def description(self) -> str:
        return self.buffers[FormField.DESCRIPTION].text

    @property
    def labels(self) -> list[str]:
        """Comma separated labels, trimmed, empty entries dropped, first occurrence kept."""
        seen: list[str] = []
        for part in self.buffers[FormField.LABELS].text.split(","):
            label = part.strip()
            if label and label not in seen:
                seen.append(label)
        return seen

    def can_submit(self) -> bool:
        return bool(self.title.strip())

    def next_field(self) -> None:
        self.field_index = (self.field_index + 1) % len(FIELD_ORDER)

    def prev_field(self) -> None:
        self.field_index = (self.field_index - 1) % len(FIELD_ORDER)

    def cycle_type(self, delta: int) -> None:
        idx = BEAD_TYPES.index(self.bead_type)
        self.bead_type = BEAD_TYPES[(idx + delta) % len(BEAD_TYPES)]

    def adjust_priority(self, delta: int) -> None:
        self.priority = max(0, min(MAX_PRIORITY, self.priority + delta))

    def paste(self, text: str) -> None:
        field = self.field
        if field == FormField.LABELS:
            parts = [line.strip() for line in text.splitlines() if line.strip()]
            self.buffers[field].insert(", ".join(parts))
        elif field in TEXT_FIELDS:
            self.buffers[field].insert(text)

    def handle_key(self, key: str, character: Optional[str] = None) -> None:
        """Apply one key press to the focused field.

        ``key`` uses Textual key names ("left", "ctrl+w", "enter", ...);
        ``character`` is the printable character, if any. Submit, cancel and
        field switching are handled by the caller.
        """
        field = self.field
        if field == FormField.TYPE:
            if key in ("left", "up", "h", "k"):
                self.cycle_type(-1)
            elif key in ("right", "down", "l", "j"):
                self.cycle_type(1)
            return
        if field == FormField.PRIORITY:
            if key in ("left", "up", "h", "k"):
                self.adjust_priority(-1)
            elif key in ("right", "down", "l", "j"):
                self.adjust_priority(1)
            elif character is not None and character.isdigit() and int(character) <= MAX_PRIORITY:
                self.priority = int(character)
            return

        buf = self.buffers[field]
        if key == "enter":
            if field == FormField.TITLE:
                self.next_field()
            elif field == FormField.DESCRIPTION:
                buf.newline()
            return
        action = _EDIT_KEYS.get(key)
        if action is not None:
            action(buf)
        elif character is not None and character.isprintable():
            buf.insert(character)

    def payload(self) -> Union[CreateBeadCommand, UpdateBeadCommand]:
        """The command this form submits: a creation, or only the changed fields."""
        title = self.title.strip()
        description = self.description.strip()
        if self.editing is None:
            return CreateBeadCommand(
                title=title,
                bead_type=self.bead_type,
                priority=self.priority,
                description=description,
                labels=tuple(self.labels),
            )
        old = self.editing
        new_labels = set(self.labels)
        return UpdateBeadCommand(
            bead_id=old.id,
            title=title if title != old.title.strip() else None,
            description=description if description != old.description.strip() else None,
            bead_type=self.bead_type if self.bead_type != old.bead_type else None,
            priority=self.priority if self.priority != old.priority else None,
            add_labels=tuple(sorted(new_labels - old.labels)),
            remove_labels=tuple(sorted(old.labels - new_labels)),
        )
